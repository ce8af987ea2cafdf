"""
Markdown Asset Pipeline - command-line entry point.

Exports a directory of markdown files into a self-contained zip bundle, or
normalizes the files in place by relocating remote images into durable storage.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .config_loader import ConfigLoader
from .exporters import ArchiveBuilder, FileDocumentStore
from .fetchers import AssetFetcher
from .importers import Normalizer, build_uploader
from .logger import LOGGER_NAME, log_config, log_section, setup_logging
from .orchestrator import BatchNormalizer


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='asset-pipeline',
        description="Make markdown documents self-contained with respect to their images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Bundle a directory of documents with all their images
  asset-pipeline export ./docs -o bundle.zip

  # Move remote images into durable storage and rewrite the files
  asset-pipeline normalize ./docs --config config.yaml

  # Preview normalization without writing files
  asset-pipeline normalize ./docs --dry-run -v
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        'directory',
        type=str,
        help='Directory containing markdown files'
    )
    common.add_argument(
        '--config',
        type=str,
        help='Path to configuration YAML file (defaults are used when omitted)'
    )
    common.add_argument(
        '--storage-root',
        type=str,
        help='Root directory that local /uploads/ links resolve against'
    )
    common.add_argument(
        '--workers',
        type=int,
        help='Parallel image fetches per document'
    )
    common.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )
    common.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )
    common.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    export_parser = subparsers.add_parser(
        'export',
        parents=[common],
        help='Export documents and their images into a zip archive'
    )
    export_parser.add_argument(
        '-o', '--output',
        type=str,
        default='bundle.zip',
        help='Archive path to write (default: bundle.zip)'
    )

    normalize_parser = subparsers.add_parser(
        'normalize',
        parents=[common],
        help='Relocate remote images into durable storage and rewrite documents'
    )
    normalize_parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Report what would change without writing files'
    )

    return parser


def load_config(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Build the effective configuration: defaults, then config file, then CLI arguments.

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If validation fails
    """
    if args.config:
        config = ConfigLoader.load(args.config)
    else:
        config = ConfigLoader.with_defaults()

    config = ConfigLoader.merge_with_args(config, args)
    ConfigLoader.validate(config)
    return config


def run_export(config: Dict[str, Any], args: argparse.Namespace, logger: logging.Logger) -> int:
    """Export the directory into an archive. Returns the exit code."""
    store = FileDocumentStore(Path(args.directory))
    documents = store.list_documents()

    with AssetFetcher(config) as fetcher:
        builder = ArchiveBuilder(config, fetcher=fetcher)
        data = builder.build(documents)

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)

    stats = builder.get_stats()
    _print_summary("EXPORT SUMMARY", [
        f"Archive: {output} ({len(data)} bytes)",
        f"Documents: {stats['documents_written']}/{stats['documents_total']} written",
        f"Images: {stats['images_written']} bundled, {stats['images_reused']} reused, "
        f"{stats['images_failed']} kept as links",
    ])

    if stats['documents_failed'] > 0:
        logger.warning(f"Export completed with {stats['documents_failed']} failed document(s)")
        return 1
    logger.info("Export completed successfully")
    return 0


def run_normalize(config: Dict[str, Any], args: argparse.Namespace, logger: logging.Logger) -> int:
    """Normalize every document of the directory in place. Returns the exit code."""
    store = FileDocumentStore(Path(args.directory))

    with AssetFetcher(config) as fetcher:
        normalizer = Normalizer(config, uploader=build_uploader(config), fetcher=fetcher)
        batch = BatchNormalizer(
            normalizer,
            store,
            dry_run=args.dry_run,
            show_progress=config['export'].get('progress_bars', True)
        )
        counts = batch.run()

    stats = normalizer.get_stats()
    title = "NORMALIZE SUMMARY (DRY RUN)" if args.dry_run else "NORMALIZE SUMMARY"
    _print_summary(title, [
        f"Documents: {counts['total']} total, {counts['succeeded']} updated, "
        f"{counts['skipped']} unchanged, {counts['failed']} failed",
        f"Images: {stats['images_relocated']} relocated, {stats['images_failed']} kept as links",
    ])

    if counts['failed'] > 0:
        logger.warning(f"Normalization completed with {counts['failed']} failed document(s)")
        return 1
    logger.info("Normalization completed successfully")
    return 0


def _print_summary(title: str, lines: List[str]) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)
    for line in lines:
        print(f"  {line}")
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(verbosity=args.verbose)
        logger = logging.getLogger(f'{LOGGER_NAME}.cli')

        config = load_config(args)

        # Reconfigure logging with config file settings
        setup_logging(
            verbosity=args.verbose,
            log_file=config['logging'].get('file'),
            level=config['logging'].get('level')
        )

        log_section(f"Markdown Asset Pipeline {__version__}")
        log_config(config)

        if args.command == 'export':
            return run_export(config, args, logger)
        return run_normalize(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
