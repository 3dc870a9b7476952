"""ctf-stats – CLI-Tool zur Aufbereitung von qllr-CTF-Exporten."""

import argparse
import logging
from pathlib import Path

from ctfstats.pipeline import PipelineResult, process_data
from ctfstats.reader import read_annotations, read_matches, read_registry, read_team_config
from ctfstats.reporter import print_summary, write_health_report
from ctfstats.suggestions import DEFAULT_THRESHOLD


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description='Aufbereitung eines qllr-Match-Exports zu Team- und Lineup-Statistiken.',
        prog='analyze.py',
    )
    parser.add_argument(
        '--matches', required=True, type=Path,
        help='Pfad zum Match-Export (JSON-Array)',
    )
    parser.add_argument(
        '--registry', required=True, type=Path,
        help='Pfad zur player_registry.json',
    )
    parser.add_argument(
        '--config', required=True, type=Path,
        help='Pfad zur team_config.json',
    )
    parser.add_argument(
        '--roles', type=Path,
        help='Pfad zur manual_roles.json (optional)',
    )
    parser.add_argument(
        '--html', type=Path,
        help='Pfad fuer einen HTML-Data-Health-Report',
    )
    parser.add_argument(
        '--summary', action='store_true',
        help='Zusammenfassung auf stdout ausgeben',
    )
    parser.add_argument(
        '--fuzzy-threshold', type=float, default=DEFAULT_THRESHOLD,
        help=f'Schwellenwert fuer Alias-Vorschlaege (Standard: {DEFAULT_THRESHOLD})',
    )
    return parser


def run(args: argparse.Namespace) -> PipelineResult:
    """Load all inputs and run the pipeline."""
    config = read_team_config(args.config)
    registry = read_registry(args.registry, config)
    raw_matches = read_matches(args.matches)
    annotations = read_annotations(args.roles) if args.roles else []

    return process_data(
        raw_matches, registry, config, annotations,
        fuzzy_threshold=args.fuzzy_threshold,
    )


def main() -> None:
    """Main entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(levelname)s: %(message)s',
    )

    parser = build_parser()
    args = parser.parse_args()

    if not 0.0 <= args.fuzzy_threshold <= 1.0:
        parser.error('--fuzzy-threshold muss zwischen 0 und 1 liegen.')

    try:
        result = run(args)
    except ValueError as exc:
        parser.error(str(exc))

    title = args.matches.stem
    if args.html:
        write_health_report(result, args.html, title)

    if args.summary or not args.html:
        print_summary(result, title)


if __name__ == '__main__':
    main()
