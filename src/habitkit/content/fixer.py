"""Content fixer — deterministic repairs for validation findings.

Works on deep copies so the loader's output can always be retried. Every
change is recorded as a ContentFix; findings without a registered rule are
passed back untouched.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from habitkit.content.schema import (
    HABIT_DIFFICULTIES,
    RESEARCH_DIFFICULTIES,
    ContentFix,
    ContentType,
    ErrorKind,
    Habit,
    ResearchArticle,
    ValidationError,
    ValidationWarning,
    WarningKind,
)

logger = logging.getLogger(__name__)

DEFAULT_FREQUENCY = {"type": "daily"}

REQUIRED_DEFAULTS: dict[ContentType, dict[str, Any]] = {
    "habit": {
        "title": "Untitled Habit",
        "description": "No description provided",
        "category": "general",
        "difficulty": "beginner",
        "time_minutes": 5,
    },
    "research": {
        "title": "Untitled Research",
        "content": "Content not available",
        "reading_time": 5,
        "difficulty": "beginner",
    },
}

# Filled only when a warning names the field and the field is absent.
OPTIONAL_DEFAULTS: dict[str, Any] = {
    "research_ids": [],
    "key_takeaways": [],
}

DIFFICULTY_SYNONYMS = {
    "easy": "beginner",
    "simple": "beginner",
    "trivial": "beginner",
    "medium": "intermediate",
    "moderate": "intermediate",
    "hard": "advanced",
    "difficult": "advanced",
    "expert": "advanced",
}

UNFIXABLE_KINDS = frozenset(
    {
        ErrorKind.INVALID_ID_FORMAT,
        ErrorKind.INVALID_FIELD_TYPE,
        ErrorKind.UNKNOWN_RESEARCH_REFERENCE,
        ErrorKind.LOAD_FAILURE,
    }
)

Item = Habit | ResearchArticle


@dataclass
class FixResult:
    habits: list[Habit]
    research: list[ResearchArticle]
    fixes: list[ContentFix] = field(default_factory=list)
    unfixable_errors: list[ValidationError] = field(default_factory=list)


class ContentFixer:
    """Apply registered repairs and keep an audit trail of what changed."""

    def __init__(self) -> None:
        self.fixes: list[ContentFix] = []
        # id(record) -> id it had before this run renamed it
        self._original_ids: dict[int, str] = {}
        self._error_handlers: dict[ErrorKind, Callable[..., bool]] = {
            ErrorKind.MISSING_REQUIRED_FIELD: self._fix_missing_field,
            ErrorKind.DUPLICATE_ID: self._fix_duplicate_id,
            ErrorKind.INVALID_DIFFICULTY: self._fix_invalid_difficulty,
            ErrorKind.INVALID_FREQUENCY: self._fix_invalid_frequency,
        }
        self._warning_handlers: dict[WarningKind, Callable[..., None]] = {
            WarningKind.UNKNOWN_HABIT_REFERENCE: self._prune_related_habits,
        }

    @property
    def fixable_kinds(self) -> frozenset[ErrorKind]:
        return frozenset(self._error_handlers)

    def auto_fix(
        self,
        habits: list[Habit],
        research: list[ResearchArticle],
        errors: list[ValidationError],
        warnings: list[ValidationWarning],
    ) -> FixResult:
        self.fixes = []
        self._original_ids = {}
        fixed_habits = copy.deepcopy(habits)
        fixed_research = copy.deepcopy(research)
        unfixable: list[ValidationError] = []

        for error in errors:
            handler = self._error_handlers.get(error.kind)
            if handler is None or not handler(error, fixed_habits, fixed_research):
                unfixable.append(error)

        for warning in warnings:
            handler = self._warning_handlers.get(warning.kind)
            if handler is not None:
                handler(warning, fixed_habits, fixed_research)
            elif warning.field in OPTIONAL_DEFAULTS:
                self._add_optional_field(warning, fixed_habits, fixed_research)

        logger.debug("Applied %d fixes, %d errors left unfixed", len(self.fixes), len(unfixable))
        return FixResult(
            habits=fixed_habits,
            research=fixed_research,
            fixes=list(self.fixes),
            unfixable_errors=unfixable,
        )

    # ── Lookup ───────────────────────────────────────────────

    def _locate(
        self,
        finding: ValidationError | ValidationWarning,
        habits: list[Habit],
        research: list[ResearchArticle],
    ) -> tuple[ContentType, Item] | None:
        """Find the record a finding is about: by recorded index, else by id (habits first)."""
        index = finding.details.get("index")
        collection = finding.details.get("collection")
        if isinstance(index, int) and collection in ("habit", "research"):
            items = habits if collection == "habit" else research
            if 0 <= index < len(items):
                item = items[index]
                expected = _raw_id(finding.item_id)
                if item.id == expected or self._original_ids.get(id(item)) == expected:
                    return collection, item

        if finding.item_id is None:
            return None
        for item in habits:
            if item.id == finding.item_id:
                return "habit", item
        for item in research:
            if item.id == finding.item_id:
                return "research", item
        return None

    def _record(
        self, content_type: ContentType, item_id: str | None, name: str, old: Any, new: Any, reason: str
    ) -> None:
        self.fixes.append(
            ContentFix(
                content_type=content_type,
                item_id=item_id,
                field=name,
                old_value=old,
                new_value=new,
                reason=reason,
            )
        )

    # ── Error rules ──────────────────────────────────────────

    def _fix_missing_field(
        self, error: ValidationError, habits: list[Habit], research: list[ResearchArticle]
    ) -> bool:
        if not error.field:
            return False
        found = self._locate(error, habits, research)
        if found is None:
            return False
        content_type, item = found
        if error.field not in REQUIRED_DEFAULTS[content_type]:
            return False
        new = copy.deepcopy(REQUIRED_DEFAULTS[content_type][error.field])
        old = getattr(item, error.field)
        setattr(item, error.field, new)
        self._record(
            content_type, item.id, error.field, old, new,
            f"Added missing required field '{error.field}'",
        )
        return True

    def _fix_duplicate_id(
        self, error: ValidationError, habits: list[Habit], research: list[ResearchArticle]
    ) -> bool:
        duplicate_id = error.details.get("duplicate_id")
        collection = error.details.get("collection")
        if not duplicate_id or collection not in ("habit", "research"):
            return False
        items: list[Item] = habits if collection == "habit" else research

        duplicates = [item for item in items if item.id == duplicate_id]
        if len(duplicates) < 2:
            return False
        taken = {item.id for item in items}
        suffix = 0
        # Keep the first occurrence; rename the rest to {id}_{n}
        for item in duplicates[1:]:
            suffix += 1
            while f"{duplicate_id}_{suffix}" in taken:
                suffix += 1
            new_id = f"{duplicate_id}_{suffix}"
            self._original_ids.setdefault(id(item), duplicate_id)
            item.id = new_id
            taken.add(new_id)
            self._record(
                collection, duplicate_id, "id", duplicate_id, new_id,
                "Renamed duplicate ID to make it unique",
            )
        return True

    def _fix_invalid_difficulty(
        self, error: ValidationError, habits: list[Habit], research: list[ResearchArticle]
    ) -> bool:
        found = self._locate(error, habits, research)
        if found is None:
            return False
        content_type, item = found
        allowed = HABIT_DIFFICULTIES if content_type == "habit" else RESEARCH_DIFFICULTIES
        old = item.difficulty
        if old in allowed:
            return True
        new = DIFFICULTY_SYNONYMS.get(str(old).strip().lower(), "beginner")
        if new not in allowed:
            new = "beginner"
        item.difficulty = new
        self._record(content_type, item.id, "difficulty", old, new, "Corrected invalid difficulty level")
        return True

    def _fix_invalid_frequency(
        self, error: ValidationError, habits: list[Habit], research: list[ResearchArticle]
    ) -> bool:
        found = self._locate(error, habits, research)
        if found is None or found[0] != "habit":
            return False
        habit = found[1]
        old = habit.frequency
        new = copy.deepcopy(DEFAULT_FREQUENCY)
        habit.frequency = new
        self._record("habit", habit.id, "frequency", old, new, "Added default daily frequency")
        return True

    # ── Warning rules ────────────────────────────────────────

    def _add_optional_field(
        self,
        warning: ValidationWarning,
        habits: list[Habit],
        research: list[ResearchArticle],
    ) -> None:
        found = self._locate(warning, habits, research)
        if found is None:
            return
        content_type, item = found
        name = warning.field
        # Only fill what is entirely absent; never overwrite an unusual value.
        if not hasattr(item, name) or getattr(item, name) is not None:
            return
        new = copy.deepcopy(OPTIONAL_DEFAULTS[name])
        setattr(item, name, new)
        self._record(
            content_type, item.id, name, None, new,
            f"Added optional field '{name}' with default value",
        )

    def _prune_related_habits(
        self,
        warning: ValidationWarning,
        habits: list[Habit],
        research: list[ResearchArticle],
    ) -> None:
        # All articles, not only warning.item_id: duplicates may already be renamed.
        habit_ids = {h.id for h in habits}
        for article in research:
            if not isinstance(article.related_habits, list) or not article.related_habits:
                continue
            kept = [h for h in article.related_habits if isinstance(h, str) and h in habit_ids]
            if len(kept) == len(article.related_habits):
                continue
            removed = [h for h in article.related_habits if not (isinstance(h, str) and h in habit_ids)]
            old = list(article.related_habits)
            article.related_habits = kept
            self._record(
                "research", article.id, "related_habits", old, kept,
                f"Removed non-existent habit references: {', '.join(map(str, removed))}",
            )

    # ── Report ───────────────────────────────────────────────

    def generate_report(self, fixes: list[ContentFix] | None = None) -> str:
        """Grouped transcript of applied fixes: habits first, then research."""
        fixes = self.fixes if fixes is None else fixes
        if not fixes:
            return "No fixes applied."

        habit_fixes = [f for f in fixes if f.content_type == "habit"]
        research_fixes = [f for f in fixes if f.content_type == "research"]

        lines = [f"Applied {len(fixes)} fixes:", ""]
        for title, group in (
            ("Habit Fixes", habit_fixes),
            ("Research Article Fixes", research_fixes),
        ):
            if not group:
                continue
            lines.append(f"{title} ({len(group)}):")
            for fix in group:
                lines.append(f"  - {fix.item_id}: {fix.reason}")
                lines.append(f"    {fix.field}: {_render(fix.old_value)} → {_render(fix.new_value)}")
            lines.append("")
        return "\n".join(lines).rstrip() + "\n"


def _render(value: Any) -> str:
    if value is None:
        return "undefined"
    return json.dumps(value, ensure_ascii=False, default=str)


def _raw_id(item_id: str | None) -> str | None:
    # Missing-field errors report a missing id as "unknown".
    return None if item_id == "unknown" else item_id

