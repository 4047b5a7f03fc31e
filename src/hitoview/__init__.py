"""hitoview - session-state engine for a categorizing image gallery browser."""

__version__ = "0.4.0"


class HitoviewError(Exception):
    """Base class for all errors raised by hitoview."""
