"""
Command line interface for loading GESLA-3 station files.

Selects stations by file name, site name, bounding box, nearest coordinates
or country, loads them with the requested flag removal and prints a
per-station summary. The combined observations can be written to CSV or
parquet.

Examples:
    gesla site Aberdeen --all
    gesla --gesla-removal --contributor-removal 3 4 5 country GBR -o gbr.parquet
    gesla bbox 60 50 -10 2
    gesla nearest -2.08 57.14 -n 3
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .catalog import load_catalog
from .config import load_settings
from .core.flags import FlagPolicy
from .exceptions import GeslaError
from .loader import ResultSet, StationLoader, shutdown_worker_pool
from .logging_utils import setup_logging
from .naming import NAME_FIELDS, rename_stations
from .resolver import SiteResolver, prompt_chooser, select_all

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog='gesla',
        description='Load GESLA-3 tide gauge files with quality-control filtering'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    parser.add_argument(
        '--config',
        type=Path,
        help='Settings file (default: config/gesla_settings.yaml)'
    )
    parser.add_argument(
        '--data-dir',
        type=Path,
        help='Directory holding the GESLA-3 station files'
    )
    parser.add_argument(
        '--metadata',
        type=Path,
        help='GESLA-3 metadata CSV (GESLA3_ALL.csv)'
    )
    parser.add_argument(
        '--gesla-removal',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Remove values flagged by the GESLA checks'
    )
    parser.add_argument(
        '--contributor-removal',
        type=int,
        nargs='*',
        metavar='FLAG',
        help='Contributor flags to remove (0-5)'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Load files in parallel with this many worker threads'
    )
    parser.add_argument(
        '--on-error',
        choices=['raise', 'collect'],
        help='Abort on the first unreadable file, or skip and report it'
    )
    parser.add_argument(
        '--collision',
        choices=['raise', 'warn', 'suffix'],
        help='Handling of files that map to the same station key'
    )
    parser.add_argument(
        '--rename',
        nargs='+',
        choices=list(NAME_FIELDS),
        help='Key stations by these catalog fields instead of file name'
    )
    parser.add_argument(
        '--output', '-o',
        type=Path,
        help='Write all observations to this file'
    )
    parser.add_argument(
        '--format',
        choices=['csv', 'parquet'],
        help='Output file format (default: from the output suffix, else parquet)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    files = subparsers.add_parser('files', help='Load files by name')
    files.add_argument('filenames', nargs='+')

    site = subparsers.add_parser('site', help='Load files by site name substring')
    site.add_argument('names', nargs='+')
    site.add_argument(
        '--all',
        action='store_true',
        help='Load every matching site instead of prompting'
    )

    bbox = subparsers.add_parser('bbox', help='Load files inside a bounding box')
    bbox.add_argument('north', type=float)
    bbox.add_argument('south', type=float)
    bbox.add_argument('west', type=float)
    bbox.add_argument('east', type=float)

    nearest = subparsers.add_parser('nearest', help='Load the stations nearest to a point')
    nearest.add_argument('longitude', type=float)
    nearest.add_argument('latitude', type=float)
    nearest.add_argument('-n', type=int, default=1, help='Number of stations')

    country = subparsers.add_parser('country', help='Load files by country code')
    country.add_argument('codes', nargs='+')

    return parser


def resolve_filenames(args: argparse.Namespace, metadata: Path) -> List[str]:
    """Turn the selected sub-command into a list of file names."""
    if args.command == 'files':
        return list(args.filenames)

    catalog = load_catalog(metadata)
    if args.command == 'site':
        chooser = select_all if args.all else prompt_chooser
        return SiteResolver(catalog, chooser=chooser).by_site_name(args.names)

    resolver = SiteResolver(catalog)
    if args.command == 'bbox':
        return resolver.by_bbox([args.north, args.south, args.west, args.east])
    if args.command == 'nearest':
        return resolver.nearest((args.longitude, args.latitude), args.n)
    return resolver.by_country(args.codes)


def write_output(results: ResultSet, output: Path, file_format: Optional[str] = None) -> Path:
    """Write the long-format observations of a ResultSet."""
    if file_format is None:
        file_format = 'csv' if output.suffix.lower() == '.csv' else 'parquet'
    output.parent.mkdir(parents=True, exist_ok=True)

    frame = results.to_frame()
    if file_format == 'csv':
        frame.to_csv(output, index=False)
    else:
        frame.to_parquet(output, index=False)
    logger.info(f"Output saved to: {output}")
    return output


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
    except GeslaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log_file = settings['logging'].get('file')
    setup_logging(
        level='DEBUG' if args.verbose else settings['logging'].get('level', 'INFO'),
        log_file=Path(log_file) if log_file else None
    )

    data_dir = args.data_dir or Path(settings['data']['directory'])
    metadata = args.metadata or Path(settings['data']['metadata_file'])
    gesla_removal = settings['filters']['gesla_removal'] if args.gesla_removal is None else args.gesla_removal
    contributor_removal = (
        settings['filters']['contributor_removal']
        if args.contributor_removal is None else args.contributor_removal
    )

    try:
        policy = FlagPolicy.from_options(gesla_removal, contributor_removal)
        filenames = resolve_filenames(args, metadata)
        if not filenames:
            logger.warning("No stations selected")
            return 0

        loader = StationLoader(
            data_dir,
            policy=policy,
            header_length=settings['data']['header_length'],
            collision=args.collision or settings['loader']['collision'],
            on_error=args.on_error or settings['loader']['on_error'],
            max_workers=args.workers or settings['loader']['max_workers']
        )
        results = loader.load(filenames)

        if args.rename:
            results = rename_stations(results, load_catalog(metadata), fields=args.rename)

        summary = results.summary()
        if not summary.empty:
            print(summary.to_string(index=False))
        for filename, error in results.failures.items():
            print(f"FAILED {filename}: {error}", file=sys.stderr)

        if args.output:
            write_output(results, args.output, args.format)

    except (GeslaError, ValueError) as e:
        logger.error(f"Error loading GESLA data: {e}")
        return 1
    finally:
        shutdown_worker_pool()

    return 0 if results.ok else 2


if __name__ == '__main__':
    sys.exit(main())
