"""Source providers — enumerate and classify content sources, read their bytes.

Discovery never validates; it only lists what exists and tags each entry
with a tier, a category and a content type.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, runtime_checkable

from habitkit.config import SourcesConfig
from habitkit.content.schema import ContentType, SourceTier

logger = logging.getLogger(__name__)

TIER_ORDER: dict[str, int] = {"core": 0, "modular": 1, "custom": 2}

_NAMING_PATTERNS = {
    ("modular", "habit"): re.compile(r"^[a-z-]+-habits\.json$"),
    ("modular", "research"): re.compile(r"^[a-z-]+-research\.json$"),
    ("custom", "habit"): re.compile(r"^[a-z-]+(habits|research)?\.json$"),
    ("custom", "research"): re.compile(r"^[a-z-]+(habits|research)?\.json$"),
}


@dataclass(frozen=True)
class DiscoveredSource:
    """A classified, not-yet-read content source."""

    name: str
    tier: SourceTier
    category: str
    content_type: ContentType
    required: bool = False


@runtime_checkable
class SourceProvider(Protocol):
    """Protocol that all content source backends must implement."""

    def discover(self) -> list[DiscoveredSource]:
        """List available sources, core first, then modular, then custom."""
        ...

    async def read(self, source: DiscoveredSource) -> bytes:
        """Return the raw bytes of a discovered source."""
        ...


# ── Classification helpers ───────────────────────────────────


def category_from_name(name: str) -> str:
    """'habits/sleep-habits.json' -> 'sleep'."""
    stem = PurePosixPath(name).stem
    return stem.split("-")[0] or "unknown"


def content_type_from_name(name: str) -> ContentType | None:
    """Classify by naming convention; None when the name says neither."""
    lowered = PurePosixPath(name).name.lower()
    if "research" in lowered:
        return "research"
    if "habit" in lowered:
        return "habit"
    return None


def check_naming_convention(sources: list[DiscoveredSource]) -> list[str]:
    """Report modular/custom JSON sources that break the file naming convention."""
    issues: list[str] = []
    for source in sources:
        filename = PurePosixPath(source.name).name
        if source.tier == "core" or not filename.endswith(".json"):
            continue
        pattern = _NAMING_PATTERNS.get((source.tier, source.content_type))
        if pattern and not pattern.match(filename):
            issues.append(
                f"{filename}: doesn't follow {source.tier} {source.content_type} naming convention"
            )
    return issues


# ── Filesystem ───────────────────────────────────────────────


class FileSystemSourceProvider:
    """Scan a content directory laid out as core files + modular/custom subdirs."""

    def __init__(self, root: Path, config: SourcesConfig | None = None) -> None:
        self.root = root
        self.config = config or SourcesConfig()

    def discover(self) -> list[DiscoveredSource]:
        sources: list[DiscoveredSource] = []

        # 1. Core files are listed whether or not they exist; reading them decides.
        for name in self.config.core_habits:
            sources.append(DiscoveredSource(name, "core", "core", "habit", required=True))
        for name in self.config.core_research:
            sources.append(DiscoveredSource(name, "core", "core", "research", required=True))

        # 2. Modular, one category per file
        for path in self._scan(self.config.habits_dir, ("*.json",)):
            sources.append(
                DiscoveredSource(self._name(path), "modular", category_from_name(path.name), "habit")
            )
        for path in self._scan(self.config.research_dir, ("*.json", "*.md")):
            sources.append(
                DiscoveredSource(
                    self._name(path), "modular", category_from_name(path.name), "research"
                )
            )

        # 3. Custom overrides
        for path in self._scan(self.config.custom_dir, ("*.json", "*.md")):
            content_type = content_type_from_name(path.name)
            if content_type is None:
                logger.debug("No type in custom file name %s, treating as habits", path.name)
                content_type = "habit"
            sources.append(DiscoveredSource(self._name(path), "custom", "custom", content_type))

        return sources

    def _scan(self, subdir: str, patterns: tuple[str, ...]) -> list[Path]:
        directory = self.root / subdir
        if not directory.is_dir():
            logger.debug("No %s directory under %s", subdir, self.root)
            return []
        found: set[Path] = set()
        for pattern in patterns:
            found.update(p for p in directory.glob(pattern) if p.is_file())
        return sorted(found)

    def _name(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    async def read(self, source: DiscoveredSource) -> bytes:
        return await asyncio.to_thread((self.root / source.name).read_bytes)

    def snapshot(self) -> dict[str, float]:
        """Modification times of every discovered source that exists."""
        result: dict[str, float] = {}
        for source in self.discover():
            path = self.root / source.name
            try:
                result[source.name] = path.stat().st_mtime
            except OSError:
                continue
        return result


# ── In-memory ────────────────────────────────────────────────


class InMemorySourceProvider:
    """Sources held in memory — fixtures, bundles, or content fetched elsewhere."""

    def __init__(self) -> None:
        self._sources: list[DiscoveredSource] = []
        self._payloads: dict[str, bytes] = {}
        self._versions: dict[str, int] = {}

    def add(
        self,
        name: str,
        payload: Any,
        *,
        tier: SourceTier = "modular",
        content_type: ContentType | None = None,
        category: str | None = None,
        required: bool | None = None,
    ) -> DiscoveredSource:
        """Register (or replace) a named payload. Bytes/str are kept as-is, anything else is JSON-encoded."""
        content_type = content_type or content_type_from_name(name) or "habit"
        if category is None:
            category = tier if tier in ("core", "custom") else category_from_name(name)
        if required is None:
            required = tier == "core"
        source = DiscoveredSource(name, tier, category, content_type, required)

        if isinstance(payload, bytes):
            data = payload
        elif isinstance(payload, str):
            data = payload.encode("utf-8")
        else:
            data = json.dumps(payload, ensure_ascii=False).encode("utf-8")

        self._put(source)
        self._payloads[name] = data
        self._versions[name] = self._versions.get(name, 0) + 1
        return source

    def add_missing(
        self, name: str, *, tier: SourceTier = "core", content_type: ContentType = "habit"
    ) -> DiscoveredSource:
        """Register a source that is discovered but cannot be read."""
        category = tier if tier in ("core", "custom") else category_from_name(name)
        source = DiscoveredSource(name, tier, category, content_type, required=tier == "core")
        self._put(source)
        self._payloads.pop(name, None)
        return source

    def _put(self, source: DiscoveredSource) -> None:
        for i, existing in enumerate(self._sources):
            if existing.name == source.name:
                self._sources[i] = source
                return
        self._sources.append(source)

    def remove(self, name: str) -> None:
        self._sources = [s for s in self._sources if s.name != name]
        self._payloads.pop(name, None)
        self._versions.pop(name, None)

    def discover(self) -> list[DiscoveredSource]:
        return sorted(self._sources, key=lambda s: TIER_ORDER[s.tier])

    async def read(self, source: DiscoveredSource) -> bytes:
        try:
            return self._payloads[source.name]
        except KeyError:
            raise FileNotFoundError(source.name) from None

    def snapshot(self) -> dict[str, int]:
        return dict(self._versions)
