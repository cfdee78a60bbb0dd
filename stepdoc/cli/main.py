"""Main CLI entry point for stepdoc."""

import argparse
import logging
import sys
from typing import Optional

from .commands import print_document, simulate_document


def add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress non-error output'
    )
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warn', 'error'],
        default='warn',
        help='Set log level'
    )


def configure_logging(args: argparse.Namespace) -> None:
    """Set up logging from the common flags."""
    level_name = 'warning' if args.log_level == 'warn' else args.log_level
    log_level = getattr(logging, level_name.upper())
    if args.debug:
        log_level = logging.DEBUG
    elif args.quiet:
        log_level = logging.ERROR

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the stepdoc CLI."""
    parser = argparse.ArgumentParser(
        prog='stepdoc',
        description='Author, print and simulate command documents'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Print command
    print_parser = subparsers.add_parser('print', help='Validate and print a document')
    print_parser.add_argument(
        'document',
        type=str,
        help='Path to document definition YAML file'
    )
    print_parser.add_argument(
        '--format',
        choices=['yaml', 'json'],
        default='yaml',
        help='Output format'
    )
    print_parser.add_argument(
        '--output',
        type=str,
        metavar='FILE',
        help='Write to FILE instead of stdout'
    )
    add_logging_arguments(print_parser)

    # Simulate command
    simulate_parser = subparsers.add_parser('simulate', help='Simulate a document locally')
    simulate_parser.add_argument(
        'document',
        type=str,
        help='Path to document definition YAML file'
    )
    simulate_parser.add_argument(
        '--input',
        action='append',
        metavar='KEY=VALUE',
        help='Document input (can be specified multiple times)'
    )
    simulate_parser.add_argument(
        '--input-file',
        type=str,
        help='Path to JSON file containing document inputs'
    )
    simulate_parser.add_argument(
        '--mock',
        action='store_true',
        help='Record calls instead of running them'
    )
    simulate_parser.add_argument(
        '--mock-responses',
        type=str,
        metavar='FILE',
        help='YAML file with canned responses (implies --mock)'
    )
    add_logging_arguments(simulate_parser)

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    configure_logging(parsed_args)

    if parsed_args.command == 'print':
        return print_document(parsed_args)
    elif parsed_args.command == 'simulate':
        return simulate_document(parsed_args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
