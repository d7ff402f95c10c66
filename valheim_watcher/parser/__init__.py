"""Event extraction from Valheim server log lines."""
from .errors import (
    ParseError,
    DateTimeParseError,
    IntegerParseError,
    FloatParseError,
)
from .extractor import EventExtractor, extract

__all__ = [
    "EventExtractor",
    "extract",
    "ParseError",
    "DateTimeParseError",
    "IntegerParseError",
    "FloatParseError",
]
