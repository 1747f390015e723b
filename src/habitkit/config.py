"""Configuration loading from environment variables and habitkit.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_CONTENT_DIR = Path("content")
_CONFIG_FILENAME = "habitkit.toml"
_DEFAULT_MAX_FILE_SIZE = 1024 * 1024

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class ContentConfig:
    """Pipeline behaviour switches."""

    validate_content: bool = True
    fail_on_validation_error: bool = False
    debug_logging: bool = False
    max_file_size: int = _DEFAULT_MAX_FILE_SIZE  # bytes, advisory
    auto_fix: bool = False
    hot_reload: bool = False
    watch_interval: float = 2.0


@dataclass
class SourcesConfig:
    """Where content files live, relative to content_dir."""

    content_dir: Path = _DEFAULT_CONTENT_DIR
    core_habits: list[str] = field(default_factory=lambda: ["habits.json"])
    core_research: list[str] = field(default_factory=lambda: ["research_articles.json"])
    habits_dir: str = "habits"
    research_dir: str = "research"
    custom_dir: str = "content-custom"


@dataclass
class HabitkitConfig:
    """Top-level habitkit configuration."""

    content: ContentConfig = field(default_factory=ContentConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    log_level: str = "INFO"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return bool(default)
    return value.strip().lower() in _TRUE_VALUES


def load_config(config_path: Path | None = None) -> HabitkitConfig:
    """Load configuration from environment variables and optional habitkit.toml.

    Priority: environment variables > habitkit.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.habitkit/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".habitkit" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    content_data = file_data.get("content", {})
    sources_data = file_data.get("sources", {})
    defaults = SourcesConfig()

    config = HabitkitConfig(
        content=ContentConfig(
            validate_content=_env_bool(
                "HABITKIT_VALIDATE", content_data.get("validate_content", True)
            ),
            fail_on_validation_error=_env_bool(
                "HABITKIT_FAIL_ON_ERROR", content_data.get("fail_on_validation_error", False)
            ),
            debug_logging=_env_bool("HABITKIT_DEBUG", content_data.get("debug_logging", False)),
            max_file_size=int(
                os.getenv(
                    "HABITKIT_MAX_FILE_SIZE",
                    content_data.get("max_file_size", _DEFAULT_MAX_FILE_SIZE),
                )
            ),
            auto_fix=_env_bool("HABITKIT_AUTO_FIX", content_data.get("auto_fix", False)),
            hot_reload=_env_bool("HABITKIT_HOT_RELOAD", content_data.get("hot_reload", False)),
            watch_interval=float(content_data.get("watch_interval", 2.0)),
        ),
        sources=SourcesConfig(
            content_dir=Path(
                os.getenv(
                    "HABITKIT_CONTENT_DIR",
                    sources_data.get("content_dir", str(_DEFAULT_CONTENT_DIR)),
                )
            ),
            core_habits=list(sources_data.get("core_habits", defaults.core_habits)),
            core_research=list(sources_data.get("core_research", defaults.core_research)),
            habits_dir=sources_data.get("habits_dir", defaults.habits_dir),
            research_dir=sources_data.get("research_dir", defaults.research_dir),
            custom_dir=sources_data.get("custom_dir", defaults.custom_dir),
        ),
        log_level=os.getenv("HABITKIT_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
