"""Data models for the report ingestion pipeline."""

from dataclasses import asdict, dataclass, field
from enum import StrEnum


@dataclass
class Nap:
    """A nap line. Unparseable lines keep their raw text in duration_text."""

    duration_text: str | None = None
    start_time: str | None = None
    end_time: str | None = None


@dataclass
class Meal:
    time: str | None
    food: str
    details: str = ""
    initials: list[str] = field(default_factory=list)


@dataclass
class BathroomEvent:
    time: str | None
    type: str
    status: str
    initials: list[str] = field(default_factory=list)


@dataclass
class Activity:
    description: str
    categories: list[str] = field(default_factory=list)
    goals: str | None = None


@dataclass
class Photo:
    src: str
    description: str = ""


@dataclass
class ParsedReport:
    """Fields extracted from one daily report email, still as printed."""

    child_name: str
    report_date: str
    teacher_notes: str = ""
    naps: list[Nap] = field(default_factory=list)
    meals: list[Meal] = field(default_factory=list)
    bathroom_events: list[BathroomEvent] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)
    photos: list[Photo] = field(default_factory=list)


@dataclass(frozen=True)
class ProviderBinding:
    """A user's mapping from a sender address (or @domain) to a provider."""

    sender_matcher: str
    strategy_id: str | None = None
    provider_name: str | None = None


@dataclass(frozen=True)
class Child:
    id: str
    first_name: str
    last_name: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


class ProcessingOutcome(StrEnum):
    """Terminal outcome of processing one source message."""

    SUCCESS = "SUCCESS"
    SKIPPED_EXISTS = "SKIPPED_EXISTS"
    SKIPPED_CHILD_NOT_FOUND = "SKIPPED_CHILD_NOT_FOUND"
    SKIPPED_AMBIGUOUS_CHILD_MATCH = "SKIPPED_AMBIGUOUS_CHILD_MATCH"
    SKIPPED_INVALID_DATA = "SKIPPED_INVALID_DATA"
    SKIPPED_NO_PARSER_FOUND = "SKIPPED_NO_PARSER_FOUND"
    ERROR = "ERROR"


@dataclass
class MessageResult:
    message_id: str
    outcome: ProcessingOutcome
    error: str | None = None
    report_id: str | None = None


# BatchResult counter attribute for each outcome
_OUTCOME_COUNTERS: dict[ProcessingOutcome, str] = {
    ProcessingOutcome.SUCCESS: "imported",
    ProcessingOutcome.SKIPPED_EXISTS: "skipped_exists",
    ProcessingOutcome.SKIPPED_CHILD_NOT_FOUND: "skipped_child_not_found",
    ProcessingOutcome.SKIPPED_AMBIGUOUS_CHILD_MATCH: "skipped_ambiguous_child_match",
    ProcessingOutcome.SKIPPED_INVALID_DATA: "skipped_invalid_data",
    ProcessingOutcome.SKIPPED_NO_PARSER_FOUND: "skipped_no_parser_found",
    ProcessingOutcome.ERROR: "errors",
}


@dataclass
class BatchResult:
    """Aggregated outcome counts for one sync run."""

    total_found: int = 0
    imported: int = 0
    skipped_exists: int = 0
    skipped_child_not_found: int = 0
    skipped_invalid_data: int = 0
    skipped_no_parser_found: int = 0
    skipped_ambiguous_child_match: int = 0
    errors: int = 0
    results: list[MessageResult] = field(default_factory=list)
    deferred: list[str] = field(default_factory=list)

    def record(self, result: MessageResult) -> None:
        """Append a message result and bump its outcome counter."""
        self.results.append(result)
        counter = _OUTCOME_COUNTERS[result.outcome]
        setattr(self, counter, getattr(self, counter) + 1)

    @property
    def skipped(self) -> int:
        return (
            self.skipped_exists
            + self.skipped_child_not_found
            + self.skipped_invalid_data
            + self.skipped_no_parser_found
            + self.skipped_ambiguous_child_match
        )

    @property
    def message(self) -> str:
        """Human-readable one-line summary of the run."""
        if self.imported > 0:
            plural = "s" if self.imported != 1 else ""
            return f"Successfully imported {self.imported} new report{plural}"
        if self.total_found > 0:
            return "No new reports to import"
        return "No reports found"

    def stats(self) -> dict[str, int]:
        """Counts only, for storage in the sync run log."""
        data = asdict(self)
        data.pop("results")
        data["deferred"] = len(self.deferred)
        return data
