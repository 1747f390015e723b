"""Content manager — the cached, query-facing side of the pipeline.

Responsibilities:
1. Run loader → validator → (optional) fixer once and cache the result
2. Serve queries from the cache, initializing on first use
3. Degrade to an explicitly invalid empty result when loading fails
4. Reload on demand (hot reload / development)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from habitkit.config import ContentConfig
from habitkit.content.fixer import ContentFixer
from habitkit.content.loader import ContentLoader
from habitkit.content.schema import (
    ContentLoadResult,
    ErrorKind,
    Habit,
    ResearchArticle,
    ValidationError,
    ValidationResult,
    ValidationSummary,
)
from habitkit.content.sources import FileSystemSourceProvider
from habitkit.content.validator import ContentValidator, as_list

if TYPE_CHECKING:
    from habitkit.config import HabitkitConfig

logger = logging.getLogger(__name__)


class ValidationFailedError(Exception):
    """Content failed validation and fail_on_validation_error is set."""

    def __init__(self, result: ContentLoadResult) -> None:
        self.result = result
        critical = len(result.validation.critical_errors)
        super().__init__(f"Content validation failed with {critical} critical errors")


@dataclass
class ContentStats:
    habits: int
    research: int
    files_loaded: int
    errors: int
    warnings: int
    fixes: int
    processing_time: float  # milliseconds
    loaded_at: str


class ContentManager:
    """Owns the single cached ContentLoadResult for a process."""

    def __init__(
        self,
        loader: ContentLoader,
        validator: ContentValidator | None = None,
        fixer: ContentFixer | None = None,
        config: ContentConfig | None = None,
    ) -> None:
        self.loader = loader
        self.validator = validator or ContentValidator()
        self.fixer = fixer or ContentFixer()
        self.config = config or loader.config
        self._result: ContentLoadResult | None = None
        self._initialized = False
        self._progress_level = logging.INFO if self.config.debug_logging else logging.DEBUG

    @classmethod
    def from_config(cls, config: HabitkitConfig) -> ContentManager:
        provider = FileSystemSourceProvider(config.sources.content_dir, config.sources)
        return cls(ContentLoader(provider, config.content), config=config.content)

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ── Lifecycle ────────────────────────────────────────────

    async def initialize(self) -> ContentLoadResult:
        """Load, validate and cache. Returns the cached result on later calls."""
        if self._initialized and self._result is not None:
            return self._result

        logger.log(self._progress_level, "Initializing content pipeline...")
        start = time.perf_counter()
        try:
            loaded = await self.loader.load_all_content()
        except Exception as e:
            logger.error("Content loading failed, serving empty fallback content: %s", e)
            # Cached but not marked initialized: the next call retries.
            self._result = _fallback_result(e)
            return self._result

        result = self._process(loaded, start)
        if self.config.fail_on_validation_error and not result.validation.is_valid:
            raise ValidationFailedError(result)

        self._result = result
        self._initialized = True
        logger.log(
            self._progress_level,
            "Content ready: %d habits, %d research articles",
            len(result.habits),
            len(result.research),
        )
        return result

    async def reload(self) -> ContentLoadResult:
        """Drop the cache and initialize again."""
        logger.info("Reloading content")
        self._initialized = False
        self._result = None
        return await self.initialize()

    def _process(self, loaded: ContentLoadResult, start: float) -> ContentLoadResult:
        result = loaded
        if self.config.validate_content:
            validation = self.validator.validate_all(result.habits, result.research)
            if self.config.auto_fix and (validation.errors or validation.warnings):
                fixed = self.fixer.auto_fix(
                    result.habits, result.research, validation.errors, validation.warnings
                )
                if fixed.fixes:
                    logger.info("%s", self.fixer.generate_report(fixed.fixes).rstrip())
                result.habits = fixed.habits
                result.research = fixed.research
                result.fixes = fixed.fixes
                duplicates = validation.summary.duplicates_found
                validation = self.validator.validate_all(result.habits, result.research)
                validation.summary.duplicates_found = duplicates
            result.validation = validation

        result.validation.summary.files_loaded = [f.path for f in result.loaded_files]
        result.validation.summary.processing_time = (time.perf_counter() - start) * 1000
        self._log_validation(result.validation)
        return result

    def _log_validation(self, validation: ValidationResult) -> None:
        if not self.config.debug_logging:
            return
        summary = validation.summary
        logger.info(
            "Validation summary: %d habits, %d research, %d files, %d duplicates, %.1fms",
            summary.total_habits,
            summary.total_research,
            len(summary.files_loaded),
            summary.duplicates_found,
            summary.processing_time,
        )
        for error in validation.errors:
            logger.info("  [%s] %s (%s)", error.severity, error.message, error.source)
        for warning in validation.warnings:
            logger.info("  [warning] %s (%s)", warning.message, warning.source)

    # ── Queries ──────────────────────────────────────────────

    async def _content(self) -> ContentLoadResult | None:
        if not self._initialized:
            await self.initialize()
        return self._result

    async def get_habits(self) -> list[Habit]:
        result = await self._content()
        return result.habits if result else []

    async def get_research_articles(self) -> list[ResearchArticle]:
        result = await self._content()
        return result.research if result else []

    async def get_habits_for_goals(self, goal_tags: list[str]) -> list[Habit]:
        """Habits sharing at least one goal tag with the request."""
        wanted = set(goal_tags)
        return [
            h
            for h in await self.get_habits()
            if any(isinstance(tag, str) and tag in wanted for tag in as_list(h.goal_tags))
        ]

    async def get_research_for_habit(self, habit_id: str) -> list[ResearchArticle]:
        """Articles linked to a habit from either side of the relation."""
        habits = await self.get_habits()
        cited: list = []
        for habit in habits:
            if habit.id == habit_id:
                cited.extend(as_list(habit.research_ids))
        return [
            article
            for article in await self.get_research_articles()
            if article.id in cited or habit_id in as_list(article.related_habits)
        ]

    def get_last_validation_result(self) -> ValidationResult | None:
        return self._result.validation if self._result else None

    def get_stats(self) -> ContentStats | None:
        if self._result is None:
            return None
        validation = self._result.validation
        loaded_files = self._result.loaded_files
        return ContentStats(
            habits=validation.summary.total_habits,
            research=validation.summary.total_research,
            files_loaded=len(validation.summary.files_loaded),
            errors=len(validation.errors),
            warnings=len(validation.warnings),
            fixes=len(self._result.fixes),
            processing_time=validation.summary.processing_time,
            loaded_at=(
                loaded_files[0].loaded_at
                if loaded_files
                else datetime.now(timezone.utc).isoformat(timespec="seconds")
            ),
        )


def _fallback_result(error: Exception) -> ContentLoadResult:
    return ContentLoadResult(
        habits=[],
        research=[],
        validation=ValidationResult(
            errors=[
                ValidationError(
                    kind=ErrorKind.LOAD_FAILURE,
                    message="Content loading system failed to initialize",
                    severity="critical",
                    source="system",
                    details={"error": str(error)},
                )
            ],
            summary=ValidationSummary(),
        ),
        loaded_files=[],
    )
