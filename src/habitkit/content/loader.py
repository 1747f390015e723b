"""Content loader — read every discovered source and merge into two collections.

Reads are issued concurrently; the merge is applied in discovery order
(core, modular, custom) no matter which read finishes first. Nothing is
de-duplicated here: duplicates stay visible, with their provenance, for the
validator and fixer.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import PurePosixPath

import frontmatter

from habitkit.config import ContentConfig
from habitkit.content.schema import (
    ContentLoadResult,
    Habit,
    ResearchArticle,
    SourceRecord,
    ValidationResult,
    ValidationSummary,
)
from habitkit.content.sources import TIER_ORDER, DiscoveredSource, SourceProvider

logger = logging.getLogger(__name__)

# Keys under which a wrapped source may hold its records, tried in order.
_COLLECTION_KEYS = {
    "habit": ("habits", "data"),
    "research": ("research", "articles", "studies", "data"),
}


class LoadError(Exception):
    """A required source could not be read or parsed."""


class ContentFormatError(ValueError):
    """A source parsed fine but its shape is not a record collection."""


class ContentLoader:
    """Discover, read, decode and merge content sources."""

    def __init__(self, provider: SourceProvider, config: ContentConfig | None = None) -> None:
        self.provider = provider
        self.config = config or ContentConfig()
        self._progress_level = logging.INFO if self.config.debug_logging else logging.DEBUG

    async def load_all_content(self) -> ContentLoadResult:
        """Load every source. Raises LoadError only for a failed required source."""
        start = time.perf_counter()
        sources = sorted(self.provider.discover(), key=lambda s: TIER_ORDER[s.tier])
        logger.log(self._progress_level, "Discovered %d content sources", len(sources))

        raw = await asyncio.gather(
            *(self.provider.read(source) for source in sources), return_exceptions=True
        )

        habits: list[Habit] = []
        research: list[ResearchArticle] = []
        loaded: list[SourceRecord] = []

        for source, data in zip(sources, raw):
            if isinstance(data, BaseException):
                if not isinstance(data, Exception):
                    raise data
                self._source_failed(source, data)
                continue
            try:
                records = self._decode(source, data)
            except Exception as e:
                self._source_failed(source, e)
                continue

            if source.content_type == "habit":
                habits.extend(Habit.from_dict(r, source=source.name) for r in records)
            else:
                research.extend(ResearchArticle.from_dict(r, source=source.name) for r in records)
            loaded.append(
                SourceRecord(
                    path=source.name,
                    category=source.category,
                    content_type=source.content_type,
                    tier=source.tier,
                    payload=records,
                    loaded_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
                )
            )
            logger.log(
                self._progress_level,
                "Loaded %s (%d %s records)",
                source.name,
                len(records),
                source.content_type,
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.log(
            self._progress_level,
            "Content loaded: %d habits, %d research articles from %d sources in %.1fms",
            len(habits),
            len(research),
            len(loaded),
            elapsed_ms,
        )
        return ContentLoadResult(
            habits=habits,
            research=research,
            validation=ValidationResult(
                summary=ValidationSummary(
                    total_habits=len(habits),
                    total_research=len(research),
                    files_loaded=[record.path for record in loaded],
                    processing_time=elapsed_ms,
                )
            ),
            loaded_files=loaded,
        )

    def _source_failed(self, source: DiscoveredSource, error: Exception) -> None:
        if source.required:
            logger.error("Required source %s failed to load: %s", source.name, error)
            raise LoadError(f"Required source {source.name} failed to load: {error}") from error
        logger.warning("Skipping %s source %s: %s", source.tier, source.name, error)

    def _decode(self, source: DiscoveredSource, data: bytes) -> list[dict]:
        """Bytes -> list of raw record dicts, normalized across source shapes."""
        if len(data) > self.config.max_file_size:
            logger.warning(
                "%s is %d bytes, above the advisory limit of %d",
                source.name,
                len(data),
                self.config.max_file_size,
            )
        text = data.decode("utf-8")

        if PurePosixPath(source.name).suffix.lower() == ".md":
            return [self._parse_markdown(text)]

        content = json.loads(text)
        if isinstance(content, list):
            items = content
        elif isinstance(content, dict):
            items = None
            for key in _COLLECTION_KEYS[source.content_type]:
                if isinstance(content.get(key), list):
                    items = content[key]
                    break
            if items is None:
                raise ContentFormatError(
                    f"unknown {source.content_type} format (keys: {sorted(content)})"
                )
        else:
            raise ContentFormatError(f"expected a list or object, got {type(content).__name__}")

        records = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                logger.warning("Ignoring non-object entry %d in %s", index, source.name)
                continue
            records.append(item)
        return records

    def _parse_markdown(self, text: str) -> dict:
        """One article per file: frontmatter is the record, body is the content."""
        post = frontmatter.loads(text)
        record = dict(post.metadata)
        if not record:
            raise ContentFormatError("markdown source has no frontmatter")
        if post.content.strip():
            record.setdefault("content", post.content)
        return record


def format_loading_summary(result: ContentLoadResult) -> str:
    """Human-readable overview of what was loaded and from where."""
    by_type = {"habit": 0, "research": 0}
    custom = 0
    for record in result.loaded_files:
        by_type[record.content_type] += 1
        if record.tier == "custom":
            custom += 1

    lines = [
        "Content Loading Summary:",
        f"  Total Files: {len(result.loaded_files)}",
        f"  Habits: {len(result.habits)} (from {by_type['habit']} files)",
        f"  Research: {len(result.research)} (from {by_type['research']} files)",
        f"  Custom: {custom} files",
        "",
        "Source Files:",
    ]
    for record in result.loaded_files:
        lines.append(
            f"  {record.tier}/{record.path} ({record.category}, "
            f"{len(record.payload)} {record.content_type})"
        )
    return "\n".join(lines)
