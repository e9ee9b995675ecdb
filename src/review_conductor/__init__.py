"""Review Conductor - multi-agent review orchestration."""

__version__ = "0.1.0"
