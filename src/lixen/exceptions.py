"""Custom exceptions for lixen."""


class LixenError(Exception):
    """Base exception for all lixen errors."""


class ConfigError(LixenError):
    """Configuration-related errors."""


class TagSyntaxError(LixenError):
    """Malformed tag annotation content."""


class AnalysisError(LixenError):
    """Per-file dependency analysis failed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot analyze '{path}': {reason}")
        self.path = path
        self.reason = reason


class IndexingError(LixenError):
    """Indexing errors."""
