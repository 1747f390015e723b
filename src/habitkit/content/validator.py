"""Content validator — schema, cross-reference and duplicate checks.

validate_all() is pure over its inputs. Results are concatenated from four
passes in a fixed order (habit schema, research schema, cross-references,
duplicates) so that repeated runs produce identical message sequences.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import date
from typing import Any

from habitkit.content.schema import (
    FREQUENCY_TYPES,
    HABIT_DIFFICULTIES,
    ID_PATTERN,
    RECOMMENDED_TIME_MINUTES,
    RESEARCH_DIFFICULTIES,
    ErrorKind,
    Habit,
    ResearchArticle,
    ValidationError,
    ValidationResult,
    ValidationSummary,
    ValidationWarning,
    WarningKind,
)

logger = logging.getLogger(__name__)

HABIT_REQUIRED_FIELDS = (
    "id",
    "title",
    "description",
    "time_minutes",
    "category",
    "goal_tags",
    "instructions",
    "difficulty",
)
RESEARCH_REQUIRED_FIELDS = (
    "id",
    "title",
    "category",
    "tags",
    "reading_time",
    "difficulty",
    "study_details",
    "content",
)

# Fields checked for shape once present; a wrong shape is reported, not inspected.
HABIT_FIELD_TYPES: dict[str, type] = {
    "title": str,
    "description": str,
    "category": str,
    "instructions": str,
    "goal_tags": list,
    "research_ids": list,
}
RESEARCH_FIELD_TYPES: dict[str, type] = {
    "title": str,
    "category": str,
    "content": str,
    "tags": list,
    "related_habits": list,
    "key_takeaways": list,
}

MIN_INSTRUCTIONS_LENGTH = 20
MIN_CONTENT_LENGTH = 100
MIN_STUDY_YEAR = 1900

_ID_RE = re.compile(ID_PATTERN)

Issues = tuple[list[ValidationError], list[ValidationWarning]]


def is_missing(value: Any) -> bool:
    """None, empty string and False are missing; 0 and empty collections are present."""
    if value is None or value is False:
        return True
    return isinstance(value, str) and value == ""


class ContentValidator:
    """Validate habit and research collections."""

    def __init__(self, current_year: int | None = None) -> None:
        self._current_year = current_year

    @property
    def current_year(self) -> int:
        return self._current_year or date.today().year

    def validate_all(
        self, habits: list[Habit], research: list[ResearchArticle]
    ) -> ValidationResult:
        start = time.perf_counter()
        errors: list[ValidationError] = []
        warnings: list[ValidationWarning] = []

        # 1. Individual habits
        for index, habit in enumerate(habits):
            e, w = self._validate_habit(habit)
            _tag(e, w, "habit", index)
            errors.extend(e)
            warnings.extend(w)

        # 2. Individual research articles
        for index, article in enumerate(research):
            e, w = self._validate_research(article)
            _tag(e, w, "research", index)
            errors.extend(e)
            warnings.extend(w)

        # 3. Cross-references
        e, w = self._validate_cross_references(habits, research)
        errors.extend(e)
        warnings.extend(w)

        # 4. Duplicates
        duplicate_errors = self._validate_duplicates(habits, research)
        errors.extend(duplicate_errors)

        result = ValidationResult(
            errors=errors,
            warnings=warnings,
            summary=ValidationSummary(
                total_habits=len(habits),
                total_research=len(research),
                duplicates_found=len(duplicate_errors),
                processing_time=(time.perf_counter() - start) * 1000,
            ),
        )
        logger.debug(
            "Validated %d habits, %d research: %d errors, %d warnings",
            len(habits),
            len(research),
            len(errors),
            len(warnings),
        )
        return result

    # ── Pass 1: habits ───────────────────────────────────────

    def _validate_habit(self, habit: Habit) -> Issues:
        errors: list[ValidationError] = []
        warnings: list[ValidationWarning] = []
        source = habit.source or "unknown"
        item_id = habit.id

        errors.extend(self._missing_fields(habit, HABIT_REQUIRED_FIELDS, source))
        errors.extend(self._wrong_types(habit, HABIT_FIELD_TYPES, source))

        if item_id and not _ID_RE.fullmatch(item_id):
            errors.append(
                ValidationError(
                    kind=ErrorKind.INVALID_ID_FORMAT,
                    message=(
                        "Habit ID contains invalid characters "
                        "(use only letters, numbers, hyphens, underscores)"
                    ),
                    severity="high",
                    source=source,
                    item_id=item_id,
                    field="id",
                )
            )

        if habit.time_minutes and habit.time_minutes not in RECOMMENDED_TIME_MINUTES:
            warnings.append(
                ValidationWarning(
                    kind=WarningKind.UNUSUAL_DURATION,
                    message=(
                        f"Unusual time duration: {habit.time_minutes} minutes. "
                        "Consider using standard durations."
                    ),
                    source=source,
                    item_id=item_id,
                    field="time_minutes",
                    suggestion=f"Use one of: {', '.join(map(str, RECOMMENDED_TIME_MINUTES))}",
                )
            )

        if habit.difficulty and habit.difficulty not in HABIT_DIFFICULTIES:
            errors.append(
                self._invalid_difficulty(habit.difficulty, HABIT_DIFFICULTIES, item_id, source)
            )

        if habit.frequency is not None and not _valid_frequency(habit.frequency):
            errors.append(
                ValidationError(
                    kind=ErrorKind.INVALID_FREQUENCY,
                    message=f"Invalid frequency: {habit.frequency!r}",
                    severity="medium",
                    source=source,
                    item_id=item_id,
                    field="frequency",
                    details={"allowed_types": list(FREQUENCY_TYPES)},
                )
            )

        if isinstance(habit.goal_tags, list) and not habit.goal_tags:
            warnings.append(
                ValidationWarning(
                    kind=WarningKind.NO_GOAL_TAGS,
                    message="Habit has no goal tags - it won't appear in personalized recommendations",
                    source=source,
                    item_id=item_id,
                    field="goal_tags",
                    suggestion="Add at least one goal tag to make this habit discoverable",
                )
            )

        if not habit.research_ids:
            warnings.append(
                ValidationWarning(
                    kind=WarningKind.NO_RESEARCH_BACKING,
                    message="Habit has no research references",
                    source=source,
                    item_id=item_id,
                    field="research_ids",
                    suggestion="Add research IDs to support evidence-based recommendations",
                )
            )

        if (
            isinstance(habit.instructions, str)
            and habit.instructions
            and len(habit.instructions) < MIN_INSTRUCTIONS_LENGTH
        ):
            warnings.append(
                ValidationWarning(
                    kind=WarningKind.SHORT_INSTRUCTIONS,
                    message="Instructions seem very short - consider adding more detail",
                    source=source,
                    item_id=item_id,
                    field="instructions",
                    suggestion="Provide step-by-step instructions for better user experience",
                )
            )

        return errors, warnings

    # ── Pass 2: research ─────────────────────────────────────

    def _validate_research(self, article: ResearchArticle) -> Issues:
        errors: list[ValidationError] = []
        warnings: list[ValidationWarning] = []
        source = article.source or "unknown"
        item_id = article.id

        errors.extend(self._missing_fields(article, RESEARCH_REQUIRED_FIELDS, source))
        errors.extend(self._wrong_types(article, RESEARCH_FIELD_TYPES, source))

        if item_id and not _ID_RE.fullmatch(item_id):
            errors.append(
                ValidationError(
                    kind=ErrorKind.INVALID_ID_FORMAT,
                    message="Article ID contains invalid characters",
                    severity="high",
                    source=source,
                    item_id=item_id,
                    field="id",
                )
            )

        if article.difficulty and article.difficulty not in RESEARCH_DIFFICULTIES:
            errors.append(
                self._invalid_difficulty(
                    article.difficulty, RESEARCH_DIFFICULTIES, item_id, source
                )
            )

        details = article.study_details
        if details is not None:
            if not isinstance(details.sample_size, int) or details.sample_size < 1:
                warnings.append(
                    ValidationWarning(
                        kind=WarningKind.INVALID_SAMPLE_SIZE,
                        message="Study sample size is missing or invalid",
                        source=source,
                        item_id=item_id,
                        field="study_details.sample_size",
                    )
                )
            year = details.year
            if not isinstance(year, int) or not MIN_STUDY_YEAR <= year <= self.current_year:
                warnings.append(
                    ValidationWarning(
                        kind=WarningKind.INVALID_STUDY_YEAR,
                        message="Study year is missing or seems invalid",
                        source=source,
                        item_id=item_id,
                        field="study_details.year",
                    )
                )

        if (
            isinstance(article.content, str)
            and article.content
            and len(article.content) < MIN_CONTENT_LENGTH
        ):
            warnings.append(
                ValidationWarning(
                    kind=WarningKind.SHORT_CONTENT,
                    message="Article content seems very short",
                    source=source,
                    item_id=item_id,
                    field="content",
                    suggestion="Consider adding more detailed content for better user value",
                )
            )

        if not article.key_takeaways:
            warnings.append(
                ValidationWarning(
                    kind=WarningKind.NO_KEY_TAKEAWAYS,
                    message="Article has no key takeaways",
                    source=source,
                    item_id=item_id,
                    field="key_takeaways",
                    suggestion="Add key takeaways to help users quickly understand the main points",
                )
            )

        return errors, warnings

    # ── Pass 3: cross-references ─────────────────────────────

    def _validate_cross_references(
        self, habits: list[Habit], research: list[ResearchArticle]
    ) -> Issues:
        errors: list[ValidationError] = []
        warnings: list[ValidationWarning] = []
        research_ids = {r.id for r in research}
        habit_ids = {h.id for h in habits}

        for habit in habits:
            for research_id in as_list(habit.research_ids):
                if not isinstance(research_id, str) or research_id not in research_ids:
                    errors.append(
                        ValidationError(
                            kind=ErrorKind.UNKNOWN_RESEARCH_REFERENCE,
                            message=f"Habit references unknown research ID: {research_id}",
                            severity="medium",
                            source=habit.source or "unknown",
                            item_id=habit.id,
                            field="research_ids",
                            details={"invalid_reference": research_id},
                        )
                    )

        for article in research:
            for habit_id in as_list(article.related_habits):
                if not isinstance(habit_id, str) or habit_id not in habit_ids:
                    warnings.append(
                        ValidationWarning(
                            kind=WarningKind.UNKNOWN_HABIT_REFERENCE,
                            message=f"Research article references unknown habit ID: {habit_id}",
                            source=article.source or "unknown",
                            item_id=article.id,
                            field="related_habits",
                            suggestion="Remove invalid reference or add the corresponding habit",
                            details={"invalid_reference": habit_id},
                        )
                    )

        return errors, warnings

    # ── Pass 4: duplicates ───────────────────────────────────

    def _validate_duplicates(
        self, habits: list[Habit], research: list[ResearchArticle]
    ) -> list[ValidationError]:
        errors = []
        for collection, items, noun in (
            ("habit", habits, "habits"),
            ("research", research, "articles"),
        ):
            groups: dict[str, list[Habit | ResearchArticle]] = {}
            for item in items:
                if item.id:
                    groups.setdefault(item.id, []).append(item)

            for item_id, group in groups.items():
                if len(group) < 2:
                    continue
                errors.append(
                    ValidationError(
                        kind=ErrorKind.DUPLICATE_ID,
                        message=(
                            f"Duplicate {collection} ID: {item_id} "
                            f"(found in {len(group)} {noun})"
                        ),
                        severity="critical",
                        source="multiple",
                        item_id=item_id,
                        field="id",
                        details={
                            "duplicate_id": item_id,
                            "collection": collection,
                            "duplicate_items": [i.display_title for i in group],
                            "sources": [i.source or "unknown" for i in group],
                        },
                    )
                )
        return errors

    # ── Helpers ──────────────────────────────────────────────

    def _missing_fields(
        self,
        item: Habit | ResearchArticle,
        required: tuple[str, ...],
        source: str,
    ) -> list[ValidationError]:
        return [
            ValidationError(
                kind=ErrorKind.MISSING_REQUIRED_FIELD,
                message=f"Missing required field: {name}",
                severity="critical",
                source=source,
                item_id=item.id or "unknown",
                field=name,
            )
            for name in required
            if is_missing(getattr(item, name))
        ]

    def _wrong_types(
        self,
        item: Habit | ResearchArticle,
        expected: dict[str, type],
        source: str,
    ) -> list[ValidationError]:
        errors = []
        for name, kind in expected.items():
            value = getattr(item, name)
            if is_missing(value) or isinstance(value, kind):
                continue
            label = "a list" if kind is list else "text"
            errors.append(
                ValidationError(
                    kind=ErrorKind.INVALID_FIELD_TYPE,
                    message=f"Field {name} should be {label}, got {type(value).__name__}",
                    severity="medium",
                    source=source,
                    item_id=item.id,
                    field=name,
                    details={"expected": kind.__name__, "actual": type(value).__name__},
                )
            )
        return errors

    def _invalid_difficulty(
        self,
        value: str,
        allowed: tuple[str, ...],
        item_id: str | None,
        source: str,
    ) -> ValidationError:
        return ValidationError(
            kind=ErrorKind.INVALID_DIFFICULTY,
            message=f"Invalid difficulty level: {value}",
            severity="medium",
            source=source,
            item_id=item_id,
            field="difficulty",
            details={"allowed_values": list(allowed)},
        )


def _valid_frequency(frequency: Any) -> bool:
    return isinstance(frequency, dict) and frequency.get("type") in FREQUENCY_TYPES


def as_list(value: Any) -> list:
    """Reference fields of the wrong shape are reported elsewhere and skipped here."""
    return value if isinstance(value, list) else []


def _tag(
    errors: list[ValidationError],
    warnings: list[ValidationWarning],
    collection: str,
    index: int,
) -> None:
    """Record which record a per-item finding is about, for the fixer."""
    for finding in (*errors, *warnings):
        finding.details["collection"] = collection
        finding.details["index"] = index
