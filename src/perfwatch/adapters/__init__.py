"""Adapters connecting the core to storage, probes, logging and frameworks."""
