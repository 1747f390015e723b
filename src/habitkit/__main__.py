"""Entry point: python -m habitkit [--config PATH] <command>

- validate: Load + validate content, exit 1 when invalid
- fix:      Load + validate + auto-fix, optionally write the fixed files
- stats:    Print content statistics
- watch:    Hot-reload loop (development)
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

from habitkit.config import HabitkitConfig, load_config
from habitkit.content.fixer import ContentFixer
from habitkit.content.loader import ContentLoader, LoadError, format_loading_summary
from habitkit.content.manager import ContentManager, ValidationFailedError
from habitkit.content.schema import ValidationResult
from habitkit.content.sources import FileSystemSourceProvider, check_naming_convention
from habitkit.content.validator import ContentValidator
from habitkit.content.watcher import ContentWatcher

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _print_findings(validation: ValidationResult) -> None:
    for error in validation.errors:
        where = f"{error.source}:{error.item_id}" if error.item_id else error.source
        print(f"  ERROR [{error.severity}] {where} - {error.message}")
    for warning in validation.warnings:
        where = f"{warning.source}:{warning.item_id}" if warning.item_id else warning.source
        print(f"  WARNING {where} - {warning.message}")


def _write_collection(path: Path, records: list[dict]) -> None:
    path.write_text(
        json.dumps(records, indent=2, ensure_ascii=False, default=str) + "\n",
        encoding="utf-8",
    )


# ── Commands ─────────────────────────────────────────────────


async def _validate(config: HabitkitConfig) -> int:
    provider = FileSystemSourceProvider(config.sources.content_dir, config.sources)
    manager = ContentManager(ContentLoader(provider, config.content), config=config.content)
    try:
        result = await manager.initialize()
    except ValidationFailedError as e:
        result = e.result

    print(format_loading_summary(result))
    naming = check_naming_convention(provider.discover())
    if naming:
        print("\nNaming issues:")
        for issue in naming:
            print(f"  {issue}")

    validation = result.validation
    print(f"\n{len(validation.errors)} errors, {len(validation.warnings)} warnings")
    _print_findings(validation)

    if not validation.is_valid:
        print(f"\nContent is INVALID ({len(validation.critical_errors)} critical errors)")
        return 1
    print("\nContent is valid")
    return 0


async def _fix(config: HabitkitConfig, output: Path | None) -> int:
    provider = FileSystemSourceProvider(config.sources.content_dir, config.sources)
    try:
        loaded = await ContentLoader(provider, config.content).load_all_content()
    except LoadError as e:
        logger.error("%s", e)
        return 1
    validation = ContentValidator().validate_all(loaded.habits, loaded.research)

    fixer = ContentFixer()
    fixed = fixer.auto_fix(loaded.habits, loaded.research, validation.errors, validation.warnings)
    print(fixer.generate_report(fixed.fixes))

    if fixed.unfixable_errors:
        print(f"{len(fixed.unfixable_errors)} errors need manual attention:")
        for error in fixed.unfixable_errors:
            print(f"  [{error.severity}] {error.source}:{error.item_id} - {error.message}")

    if output is not None:
        output.mkdir(parents=True, exist_ok=True)
        _write_collection(output / "habits.json", [h.to_dict() for h in fixed.habits])
        _write_collection(
            output / "research_articles.json", [r.to_dict() for r in fixed.research]
        )
        print(f"\nFixed content written to {output}")

    revalidated = ContentValidator().validate_all(fixed.habits, fixed.research)
    return 0 if revalidated.is_valid else 1


async def _stats(config: HabitkitConfig) -> int:
    manager = ContentManager.from_config(config)
    try:
        await manager.initialize()
    except ValidationFailedError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    stats = manager.get_stats()
    if stats is None:
        return 1
    for name, value in dataclasses.asdict(stats).items():
        print(f"{name:>16}: {value}")
    return 0


async def _watch(config: HabitkitConfig) -> int:
    if not config.content.hot_reload:
        print(
            "Hot reload is disabled (set HABITKIT_HOT_RELOAD=1 or [content] hot_reload = true)",
            file=sys.stderr,
        )
        return 1
    provider = FileSystemSourceProvider(config.sources.content_dir, config.sources)
    manager = ContentManager(ContentLoader(provider, config.content), config=config.content)
    watcher = ContentWatcher(manager, provider, config.content.watch_interval)
    await watcher.run()
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="habitkit", description="Habit content pipeline")
    parser.add_argument("--config", type=Path, default=None, help="Path to habitkit.toml")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("validate", help="Load and validate content")
    fix_parser = subparsers.add_parser("fix", help="Auto-fix content problems")
    fix_parser.add_argument("--output", type=Path, default=None, help="Write fixed files here")
    subparsers.add_parser("stats", help="Show content statistics")
    subparsers.add_parser("watch", help="Reload content when files change")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = load_config(args.config)
    _setup_logging(config.log_level)

    if args.command == "validate":
        code = asyncio.run(_validate(config))
    elif args.command == "fix":
        code = asyncio.run(_fix(config, args.output))
    elif args.command == "stats":
        code = asyncio.run(_stats(config))
    else:
        try:
            code = asyncio.run(_watch(config))
        except KeyboardInterrupt:
            code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
