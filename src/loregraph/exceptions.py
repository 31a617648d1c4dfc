"""Custom exceptions for LoreGraph."""


class LoreGraphError(Exception):
    """Base exception for all LoreGraph errors."""


class ConfigError(LoreGraphError):
    """Configuration-related errors."""


class CorpusError(LoreGraphError):
    """Corpus loading and validation errors."""

    def __init__(self, path: str, detail: str):
        super().__init__(f"Invalid corpus '{path}': {detail}")
        self.path = path
        self.detail = detail
