"""Process resource probes backed by psutil."""

import psutil


class PsutilResourceProbe:
    """ResourceProbe reading the resident set size of a process.

    Args:
        pid: Process to inspect (default: the current process).
    """

    def __init__(self, pid: int | None = None) -> None:
        self._process = psutil.Process(pid)

    def memory_bytes(self) -> int:
        return int(self._process.memory_info().rss)
