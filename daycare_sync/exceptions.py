"""Custom exception hierarchy for daycare report ingestion."""

from daycare_sync.models import ProcessingOutcome


class DaycareSyncError(Exception):
    """Base exception for all ingestion errors."""


class DataQualityError(DaycareSyncError):
    """An expected problem with the email itself. Skipped, never retried."""

    outcome: ProcessingOutcome = ProcessingOutcome.SKIPPED_INVALID_DATA


class DecodeError(DataQualityError):
    """Raised when a message body has a malformed base64url transport encoding."""


class NoHtmlFound(DataQualityError):
    """Raised when a message has no HTML part to parse."""


class MissingSender(DataQualityError):
    """Raised when no sender address can be read from the From header."""


class ParseFailure(DataQualityError):
    """Raised when a parser could not find the report's critical fields."""


class NoParserFound(DataQualityError):
    """Raised when no parser strategy resolves for the sender."""

    outcome = ProcessingOutcome.SKIPPED_NO_PARSER_FOUND


class ChildNotFound(DataQualityError):
    """Raised when no child in the user's roster matches the parsed name."""

    outcome = ProcessingOutcome.SKIPPED_CHILD_NOT_FOUND


class AmbiguousChildMatch(DataQualityError):
    """Raised when more than one child matches the parsed name."""

    outcome = ProcessingOutcome.SKIPPED_AMBIGUOUS_CHILD_MATCH

    def __init__(self, child_name: str, candidates: list[str]):
        self.child_name = child_name
        self.candidates = candidates
        super().__init__(
            f"Ambiguous child match for '{child_name}'. Found: {', '.join(candidates)}"
        )


class InvalidDate(DataQualityError):
    """Raised when the report date cannot be turned into a calendar date."""


class PersistenceError(DaycareSyncError):
    """Raised when reading from or writing to the report store fails."""


class MessageFetchError(DaycareSyncError):
    """Raised when fetching messages from Gmail fails."""
