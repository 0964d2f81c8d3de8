#!/usr/bin/env python3
"""
Slite to Outline Migration Tool - Main CLI Entry Point

This script provides the command-line interface for migrating a Slite backup
(markdown files with media folders) into Outline, preserving the folder
hierarchy, re-uploading attachments and rewriting internal links.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv

# Add project root to Python path for relative imports
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

# Project imports
from config_loader import ConfigLoader
from importers import OutlineClient
from logger import log_config, log_section, setup_logging
from models import AttachmentKeyMode
from orchestrator import MigrationOrchestrator, MigrationReport

# Version
__version__ = "1.0.0"

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        description="Migrate a Slite backup into Outline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  OUTLINE_DOMAIN   Outline base URL (e.g., https://docs.example.com)
  OUTLINE_API_KEY  Outline API key
  Both may also be placed in a .env file in the working directory.

Examples:
  # Migrate ./slite-backup/channels with default settings
  python migrate.py

  # Preview without touching Outline
  python migrate.py --dry-run

  # Custom export location and configuration
  python migrate.py --config config.yaml --source /data/slite/channels

  # Verbose logging
  python migrate.py -vv
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration YAML file (optional)'
    )

    parser.add_argument(
        '--source',
        type=str,
        help='Export root holding one directory per collection (default: ./slite-backup/channels)'
    )

    parser.add_argument(
        '--dry-run',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Preview migration without making changes'
    )

    parser.add_argument(
        '--attachment-key-mode',
        choices=[mode.value for mode in AttachmentKeyMode],
        default=None,
        help='Key attachment URLs by link text only (literal) or by link text and document (scoped)'
    )

    parser.add_argument(
        '--report',
        type=str,
        help='Path of the JSON report (default: migration_report.json)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    return parser


def check_connectivity(client: OutlineClient, logger: logging.Logger) -> bool:
    """Verify the Outline endpoint and API key before any content is created."""
    logger.info("Testing Outline connectivity")
    try:
        info = client.auth_info()
    except Exception as e:
        logger.error(f"Outline connectivity test failed: {str(e)}")
        return False

    team = (info.get('team') or {}).get('name')
    user = (info.get('user') or {}).get('name')
    logger.info(f"Connected to Outline as {user or 'unknown user'} (team: {team or 'unknown'})")
    return True


def run_migration(config: dict, logger: logging.Logger) -> int:
    """Execute the complete migration pipeline."""
    dry_run = config.get('migration', {}).get('dry_run', False)
    logger.info(f"Starting migration pipeline (dry_run={dry_run})")

    try:
        if dry_run:
            orchestrator = MigrationOrchestrator(config, logger=logger)
            report = orchestrator.preview()
        else:
            client = OutlineClient.from_config(config)
            if not check_connectivity(client, logger):
                return EXIT_FAILURE

            orchestrator = MigrationOrchestrator(config, client=client, logger=logger)
            report = orchestrator.orchestrate_migration()

        # Display report
        report_generator = MigrationReport(logger)
        print("\n" + report_generator.format_console_report(report))

        # Export JSON report
        report_path = config.get('migration', {}).get('report_path')
        if report_path:
            try:
                report_generator.export_json_report(report, report_path)
            except OSError as e:
                logger.warning(f"Failed to export JSON report: {str(e)}")

        summary = report.get('summary', {})
        if summary.get('orchestration_failed'):
            logger.error(f"Migration failed: {summary.get('orchestration_error')}")
            return EXIT_FAILURE

        errors = summary.get('total_errors', 0)
        if errors > 0:
            logger.warning(f"Migration completed with {errors} per-item errors (see report)")
        else:
            logger.info("Migration completed successfully")
        return EXIT_SUCCESS

    except KeyboardInterrupt:
        logger.error("Migration interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.error(f"Migration failed: {str(e)}", exc_info=True)
        return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        load_dotenv()

        # Minimal logging for config loading
        logger = setup_logging(verbosity=args.verbose, log_file=args.log_file)

        log_section("Slite to Outline Migration Tool")
        logger.info(f"Version: {__version__}")

        # Load configuration (CLI takes precedence)
        if args.config:
            logger.info(f"Loading configuration from {args.config}")
        config = ConfigLoader.load(args.config)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)

        # Reconfigure logging with config file settings
        logging_config = config.get('logging', {})
        if logging_config.get('level') or logging_config.get('file'):
            logger = setup_logging(
                verbosity=args.verbose,
                log_file=logging_config.get('file'),
                level=logging_config.get('level')
            )

        log_config(config)

        return run_migration(config, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except yaml.YAMLError as e:
        print(f"ERROR: Invalid configuration file: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        print("\nMigration interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
