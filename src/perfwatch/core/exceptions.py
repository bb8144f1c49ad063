"""Exceptions raised by perfwatch."""


class PerfwatchError(Exception):
    """Base class for perfwatch errors."""


class InvalidAlertRuleError(PerfwatchError, ValueError):
    """Raised when an alert rule definition cannot be evaluated meaningfully."""


class DuplicateAlertRuleError(PerfwatchError, ValueError):
    """Raised when adding a rule whose id is already registered."""

    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Alert rule {rule_id!r} is already registered")
        self.rule_id = rule_id


class UnsupportedFormatError(PerfwatchError, ValueError):
    """Raised when exporting to a format that has no encoder."""

    def __init__(self, fmt: str) -> None:
        super().__init__(f"Unsupported export format: {fmt!r}")
        self.format = fmt
