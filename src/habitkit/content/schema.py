"""Content records and validation result types.

Records keep the camelCase keys of the JSON content on the way in and out
(`from_dict` / `to_dict`) but expose snake_case attributes. Content fields
default to None, which means "absent" throughout the pipeline.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

Severity = Literal["critical", "high", "medium"]
ContentType = Literal["habit", "research"]
SourceTier = Literal["core", "modular", "custom"]

ID_PATTERN = r"[A-Za-z0-9_-]+"

HABIT_DIFFICULTIES = ("trivial", "easy", "moderate", "beginner", "intermediate", "advanced")
RESEARCH_DIFFICULTIES = ("beginner", "intermediate", "advanced")
RECOMMENDED_TIME_MINUTES = (1, 2, 3, 5, 10, 15, 20, 25, 30, 45, 60)
FREQUENCY_TYPES = ("daily", "weekly", "periodic", "custom")

# Published for editors and tooling; the validator does not enforce them.
HABIT_CATEGORIES = (
    "stress",
    "sleep",
    "exercise",
    "nutrition",
    "productivity",
    "mindfulness",
    "tier1_foundation",
    "tier2_optimization",
    "tier3_microhabits",
)
RESEARCH_CATEGORIES = (
    "nutritional_supplementation",
    "cognitive_enhancement",
    "mood_enhancement",
    "sleep_optimization",
    "stress_management",
    "exercise_performance",
)


class ErrorKind(str, Enum):
    """What a ValidationError is about. The fixer dispatches on this."""

    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_ID_FORMAT = "invalid_id_format"
    INVALID_DIFFICULTY = "invalid_difficulty"
    INVALID_FREQUENCY = "invalid_frequency"
    INVALID_FIELD_TYPE = "invalid_field_type"
    UNKNOWN_RESEARCH_REFERENCE = "unknown_research_reference"
    DUPLICATE_ID = "duplicate_id"
    LOAD_FAILURE = "load_failure"


class WarningKind(str, Enum):
    """What a ValidationWarning is about."""

    UNUSUAL_DURATION = "unusual_duration"
    NO_GOAL_TAGS = "no_goal_tags"
    NO_RESEARCH_BACKING = "no_research_backing"
    SHORT_INSTRUCTIONS = "short_instructions"
    INVALID_SAMPLE_SIZE = "invalid_sample_size"
    INVALID_STUDY_YEAR = "invalid_study_year"
    SHORT_CONTENT = "short_content"
    NO_KEY_TAKEAWAYS = "no_key_takeaways"
    UNKNOWN_HABIT_REFERENCE = "unknown_habit_reference"


def _coerce_id(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _pick(data: dict, *keys: str) -> Any:
    """Return the first present key's value (camelCase or snake_case spelling)."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def _without(data: dict, keys: set[str]) -> dict:
    return {k: v for k, v in data.items() if k not in keys}


# ── Records ──────────────────────────────────────────────────


# attribute -> JSON key
_HABIT_KEYS = {
    "id": "id",
    "title": "title",
    "description": "description",
    "category": "category",
    "goal_tags": "goalTags",
    "time_minutes": "timeMinutes",
    "difficulty": "difficulty",
    "instructions": "instructions",
    "research_ids": "researchIds",
    "frequency": "frequency",
}


@dataclass
class Habit:
    """A single habit. Created by the loader, mutated only by the fixer."""

    id: str | None = None
    title: str | None = None
    description: str | None = None
    category: str | None = None
    goal_tags: list[str] | None = None
    time_minutes: int | None = None
    difficulty: str | None = None
    instructions: str | None = None
    research_ids: list[str] | None = None
    frequency: dict | None = None
    extra: dict = field(default_factory=dict)
    source: str | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict, source: str | None = None) -> Habit:
        known = set(_HABIT_KEYS) | set(_HABIT_KEYS.values())
        return cls(
            id=_coerce_id(data.get("id")),
            title=data.get("title"),
            description=data.get("description"),
            category=data.get("category"),
            goal_tags=_pick(data, "goalTags", "goal_tags"),
            time_minutes=_pick(data, "timeMinutes", "time_minutes"),
            difficulty=data.get("difficulty"),
            instructions=data.get("instructions"),
            research_ids=_pick(data, "researchIds", "research_ids"),
            frequency=data.get("frequency"),
            extra=_without(data, known),
            source=source,
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        for attr, key in _HABIT_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        out.update(self.extra)
        return out

    @property
    def display_title(self) -> str:
        return self.title or "Unknown"


_STUDY_KEYS = {
    "sample_size": "sampleSize",
    "year": "year",
    "journal": "journal",
    "study_type": "studyType",
    "evidence_level": "evidenceLevel",
}


@dataclass
class StudyDetails:
    """Advisory metadata about the study behind an article."""

    sample_size: int | None = None
    year: int | None = None
    journal: str | None = None
    study_type: str | None = None
    evidence_level: str | None = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> StudyDetails:
        known = set(_STUDY_KEYS) | set(_STUDY_KEYS.values())
        return cls(
            sample_size=_pick(data, "sampleSize", "sample_size"),
            year=data.get("year"),
            journal=data.get("journal"),
            study_type=_pick(data, "studyType", "study_type"),
            evidence_level=_pick(data, "evidenceLevel", "evidence_level"),
            extra=_without(data, known),
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        for attr, key in _STUDY_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        out.update(self.extra)
        return out


_RESEARCH_KEYS = {
    "id": "id",
    "title": "title",
    "category": "category",
    "difficulty": "difficulty",
    "tags": "tags",
    "reading_time": "readingTime",
    "study_details": "studyDetails",
    "content": "content",
    "related_habits": "relatedHabits",
    "key_takeaways": "keyTakeaways",
}


@dataclass
class ResearchArticle:
    """A research article backing one or more habits."""

    id: str | None = None
    title: str | None = None
    category: str | None = None
    difficulty: str | None = None
    tags: list[str] | None = None
    reading_time: int | None = None
    study_details: StudyDetails | None = None
    content: str | None = None
    related_habits: list[str] | None = None
    key_takeaways: list[str] | None = None
    extra: dict = field(default_factory=dict)
    source: str | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict, source: str | None = None) -> ResearchArticle:
        known = set(_RESEARCH_KEYS) | set(_RESEARCH_KEYS.values())
        details = _pick(data, "studyDetails", "study_details")
        return cls(
            id=_coerce_id(data.get("id")),
            title=data.get("title"),
            category=data.get("category"),
            difficulty=data.get("difficulty"),
            tags=data.get("tags"),
            reading_time=_pick(data, "readingTime", "reading_time"),
            study_details=StudyDetails.from_dict(details) if isinstance(details, dict) else None,
            content=data.get("content"),
            related_habits=_pick(data, "relatedHabits", "related_habits"),
            key_takeaways=_pick(data, "keyTakeaways", "key_takeaways"),
            extra=_without(data, known),
            source=source,
        )

    def to_dict(self) -> dict:
        out: dict[str, Any] = {}
        for attr, key in _RESEARCH_KEYS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            out[key] = value.to_dict() if isinstance(value, StudyDetails) else value
        out.update(self.extra)
        return out

    @property
    def display_title(self) -> str:
        return self.title or "Unknown"


@dataclass(frozen=True)
class SourceRecord:
    """One loaded source: where it came from and what it held."""

    path: str
    category: str
    content_type: ContentType
    tier: SourceTier
    payload: list[dict]
    loaded_at: str


# ── Validation ───────────────────────────────────────────────


@dataclass
class ValidationError:
    kind: ErrorKind
    message: str
    severity: Severity
    source: str = "unknown"
    item_id: str | None = None
    field: str | None = None
    # `field` above shadows dataclasses.field inside this class body
    details: dict = dataclasses.field(default_factory=dict)


@dataclass
class ValidationWarning:
    kind: WarningKind
    message: str
    source: str = "unknown"
    item_id: str | None = None
    field: str | None = None
    suggestion: str | None = None
    details: dict = dataclasses.field(default_factory=dict)


@dataclass
class ValidationSummary:
    total_habits: int = 0
    total_research: int = 0
    files_loaded: list[str] = field(default_factory=list)
    duplicates_found: int = 0
    processing_time: float = 0.0  # milliseconds


@dataclass
class ValidationResult:
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)
    summary: ValidationSummary = field(default_factory=ValidationSummary)

    @property
    def is_valid(self) -> bool:
        return not self.critical_errors

    @property
    def critical_errors(self) -> list[ValidationError]:
        return [e for e in self.errors if e.severity == "critical"]


@dataclass
class ContentFix:
    """One auditable change made by the fixer."""

    content_type: ContentType
    item_id: str | None
    field: str
    old_value: Any
    new_value: Any
    reason: str


@dataclass
class ContentLoadResult:
    habits: list[Habit]
    research: list[ResearchArticle]
    validation: ValidationResult
    loaded_files: list[SourceRecord]
    fixes: list[ContentFix] = field(default_factory=list)
