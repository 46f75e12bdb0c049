# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Command-line interface.

Commands:
- analyze: print files (or tests, or test methods) affected by a change set
- cache-stats: print cache statistics as JSON
- cache-clear: delete the on-disk cache
- watch: rebuild incrementally and print affected files as sources change

Results go to stdout, one per line; logs go to stderr. Errors exit with 1.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from xfile_impact import __version__
from xfile_impact.analyzer import DependencyAnalyzer
from xfile_impact.config import Config, ConfigurationError
from xfile_impact.diff_parser import changed_methods, parse_unified_diff
from xfile_impact.extractors.method_calls import MethodCallExtractor
from xfile_impact.extractors.registry import available_extractors
from xfile_impact.full_scan import FullScanMatcher, compile_delimited, is_regex_pattern
from xfile_impact.logging_setup import LOG_DIR_NAME, setup_logging
from xfile_impact.parallel import read_source
from xfile_impact.scanner import ProjectScanner
from xfile_impact.strategies import strategy_names
from xfile_impact.test_selection import TestMethodAnalyzer
from xfile_impact.vcs import ChangeDetectionError, ChangeDetector
from xfile_impact.watcher import SourceWatcher

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("files", "tests", "methods")


class CommandError(Exception):
    """Raised for invalid command-line usage detected after parsing."""

    pass


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for all subcommands."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    common.add_argument("--config", type=Path, default=None, help="Configuration file")
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    common.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help=f"Directory for JSON log files (default: <project>/{LOG_DIR_NAME})",
    )

    parser = argparse.ArgumentParser(
        prog="xfile-impact",
        description="Select the PHP files and tests affected by a change set",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", parents=[common], help="Print affected files")
    analyze.add_argument(
        "--output",
        "-o",
        choices=OUTPUT_FORMATS,
        default="files",
        help="files: all affected files; tests: affected test files; "
        "methods: affected test methods as file::method",
    )
    analyze.add_argument("--strategy", "-s", choices=strategy_names(), default=None)
    analyze.add_argument("--extractor", choices=available_extractors(), default=None)
    analyze.add_argument("--from", dest="from_ref", default=None, help="Base git ref")
    analyze.add_argument("--to", dest="to_ref", default=None, help="Target git ref")
    analyze.add_argument("--staged", action="store_true", help="Analyze staged changes only")
    analyze.add_argument(
        "--full-scan-pattern",
        default=None,
        help="Pattern that triggers a full scan (replaces configured patterns)",
    )
    analyze.add_argument("--no-cache", action="store_true", help="Ignore and skip the cache")
    analyze.add_argument(
        "files", nargs="*", help="Changed files (skips git change detection)"
    )

    subparsers.add_parser("cache-stats", parents=[common], help="Print cache statistics")
    subparsers.add_parser("cache-clear", parents=[common], help="Delete the cache")

    watch = subparsers.add_parser(
        "watch", parents=[common], help="Print affected files as sources change"
    )
    watch.add_argument(
        "--interval", type=float, default=1.0, help="Seconds between batches (default: 1)"
    )
    return parser


def _emit(lines: Iterable[str]) -> None:
    for line in lines:
        print(line)


def _relative_paths(project_root: Path, files: Iterable[str]) -> List[str]:
    """Normalize user-supplied paths to project-relative POSIX paths."""
    result = []
    for f in files:
        path = Path(f)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(project_root)
            except ValueError:
                logger.warning(f"Ignoring file outside the project: {f}")
                continue
        result.append(path.as_posix())
    return result


def _load_config(args: argparse.Namespace, project_root: Path) -> Config:
    config = Config(args.config, project_root=project_root)
    if getattr(args, "command", None) == "analyze":
        config.override(
            strategy=args.strategy,
            extractor=args.extractor,
            cache_enabled=False if args.no_cache else None,
        )
    return config


def _scanner(project_root: Path, config: Config) -> ProjectScanner:
    return ProjectScanner(project_root, config.ignore_patterns, config.source_extensions)


def _select_test_methods(
    analyzer: DependencyAnalyzer,
    project_root: Path,
    all_files: List[str],
    changed_by_file: Dict[str, Set[str]],
) -> List[str]:
    """Test methods (as ``file::method``) affected by the changed methods."""
    changed: Set[str] = set()
    for methods in changed_by_file.values():
        changed.update(methods)
    if not changed:
        return []

    analyzer.build_method_call_graph(all_files)
    affected = analyzer.get_affected_methods(changed)

    selector = TestMethodAnalyzer()
    test_files = [f for f in all_files if selector.is_test_file(f)]
    index = selector.analyze_test_files(test_files, project_root)

    selected = selector.find_for_affected_methods(affected, index.test_methods)
    affected_classes = {m.split("::", 1)[0] for m in affected if "::" in m}
    selected |= selector.find_for_classes(affected_classes, index.test_methods)
    if not selected:
        selected = selector.find_by_namespace(list(changed_by_file), index.test_methods)
    # A changed test method selects itself
    selected |= {m for m in affected if m in index.test_methods}

    return sorted(f"{index.test_files[t]}::{t.rsplit('::', 1)[1]}" for t in selected)


def _changed_methods_for_files(
    project_root: Path, files: Iterable[str]
) -> Dict[str, Set[str]]:
    """Without a diff every method of an explicitly named file counts as changed."""
    extractor = MethodCallExtractor()
    result: Dict[str, Set[str]] = {}
    for path in files:
        try:
            spans = extractor.method_spans(read_source(project_root / path))
        except OSError as e:
            logger.warning(f"Cannot read {path}: {e}")
            continue
        if spans:
            result[path] = set(spans)
    return result


def run_analyze(args: argparse.Namespace, project_root: Path) -> int:
    if args.staged and (args.from_ref is not None or args.to_ref is not None):
        raise CommandError("Cannot use --staged with --from or --to")
    if args.to_ref is not None and args.from_ref is None:
        raise CommandError("--to requires --from")
    if (
        args.full_scan_pattern
        and is_regex_pattern(args.full_scan_pattern)
        and compile_delimited(args.full_scan_pattern) is None
    ):
        raise CommandError(f"Invalid regex pattern: {args.full_scan_pattern}")

    config = _load_config(args, project_root)
    detector = ChangeDetector(project_root)
    if args.files:
        all_changed = _relative_paths(project_root, args.files)
    else:
        all_changed = detector.changed_files(args.from_ref, args.to_ref, args.staged)

    scanner = _scanner(project_root, config)
    matcher = FullScanMatcher(config.full_scan_patterns)
    if matcher.should_trigger(all_changed, args.full_scan_pattern):
        # Everything is affected: list every file, or let the test runner run all tests
        if args.output == "files":
            _emit(scanner.scan())
        return 0

    changed_sources = [f for f in all_changed if scanner.is_source_file(f)]
    if not changed_sources:
        return 0

    all_files = scanner.scan()
    analyzer = DependencyAnalyzer(project_root, config)
    analyzer.build_dependency_graph(all_files)

    if args.output == "methods":
        if args.files:
            changed_by_file = _changed_methods_for_files(project_root, changed_sources)
        else:
            ranges = parse_unified_diff(
                detector.diff_text(args.from_ref, args.to_ref, args.staged)
            )
            changed_by_file = changed_methods(project_root, ranges, config.source_extensions)
        _emit(_select_test_methods(analyzer, project_root, all_files, changed_by_file))
        return 0

    affected = analyzer.get_affected_files(changed_sources)
    if args.output == "tests":
        selector = TestMethodAnalyzer()
        affected = {f for f in affected if selector.is_test_file(f)}
    _emit(sorted(affected))
    return 0


def run_cache_stats(args: argparse.Namespace, project_root: Path) -> int:
    analyzer = DependencyAnalyzer(project_root, _load_config(args, project_root))
    print(json.dumps(analyzer.get_cache_stats(), indent=2, sort_keys=True))
    return 0


def run_cache_clear(args: argparse.Namespace, project_root: Path) -> int:
    analyzer = DependencyAnalyzer(project_root, _load_config(args, project_root))
    if analyzer.clear_cache():
        print(f"Cache cleared: {analyzer.cache.cache_dir if analyzer.cache else ''}")
    else:
        print("Cache is disabled")
    return 0


def run_watch(args: argparse.Namespace, project_root: Path) -> int:
    config = _load_config(args, project_root)
    scanner = _scanner(project_root, config)
    analyzer = DependencyAnalyzer(project_root, config)
    analyzer.build_dependency_graph(scanner.scan())

    def on_batch(changed: Set[str]) -> None:
        analyzer.build_dependency_graph(scanner.scan())
        _emit(sorted(analyzer.get_affected_files(changed)))
        sys.stdout.flush()

    watcher = SourceWatcher(project_root, scanner, on_batch)
    watcher.start()
    try:
        while True:
            time.sleep(args.interval)
            watcher.flush()
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()
    return 0


COMMANDS = {
    "analyze": run_analyze,
    "cache-stats": run_cache_stats,
    "cache-clear": run_cache_clear,
    "watch": run_watch,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    project_root = args.project_root.resolve()

    setup_logging(
        log_dir=args.log_dir or project_root / LOG_DIR_NAME,
        log_level=logging.DEBUG if args.verbose else logging.WARNING,
        file_level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        return COMMANDS[args.command](args, project_root)
    except (CommandError, ConfigurationError, ChangeDetectionError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error running {args.command}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
