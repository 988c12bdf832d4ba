"""
CLI Interface for the Stance Engine

Provides command-line access to stance series, topic distributions, flip
events and voice comparisons over CSV data or the seeded demo dataset.
"""

import argparse
import json
import logging
import sys

import pandas as pd

from config import get_log_level

from .errors import StanceEngineError
from .facade import QueryFacade
from .handlers import compare_handler, distribution_handler, flips_handler, stance_handler
from .ingest import load_csv
from .seeds import seed_demo_data


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else getattr(logging, get_log_level(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_facade(args) -> QueryFacade:
    """Create the facade and load data from CSV files or the demo seeder."""
    facade = QueryFacade.from_config()

    if args.demo:
        print("🌱 Seeding demo data...")
        stats = seed_demo_data(facade.store, facade.catalog, seed=args.seed)
        print(f"   📈 Stance points: {stats['stance_points']}")
        print(f"   📣 Mindshare points: {stats['mindshare_points']}")

    for path, kind in ((args.stance_csv, "stance"), (args.mindshare_csv, "mindshare")):
        if not path:
            continue
        result = load_csv(facade.store, path, kind=kind)
        if not result['success']:
            raise StanceEngineError(f"Could not load {kind} data: {result['error']}")
        print(f"📥 Loaded {result['points_loaded']} {kind} points from {path} "
              f"({result['rejected']} rejected)")

    return facade


def _print_json(payload):
    print(json.dumps(payload, indent=2, default=str))


def show_series(args):
    """Show the stance series of one voice on one topic."""
    facade = build_facade(args)
    payload = stance_handler(facade, args.voice, args.topic, window=args.window)

    if not payload['points']:
        print(f"⚠️  No stance data for {args.voice} on {args.topic} ({args.window})")
        return 0

    print(f"📊 {facade.catalog.voice_name(args.voice)} on {facade.catalog.topic_label(args.topic)}")
    print(f"   Points: {len(payload['points'])}")
    print(f"   Flips: {len(payload['flip_events'])}")
    ring = facade.get_stance_ring(args.voice, args.topic)
    if ring:
        print(f"   Current: {ring.stance:+.2f} ({ring.label})")

    if args.json:
        _print_json(payload)
    return 0


def show_distribution(args):
    """Show the stance distribution of a topic."""
    facade = build_facade(args)
    payload = distribution_handler(facade, args.topic)
    counts = payload['distribution']

    print(f"🎭 Stance distribution: {facade.catalog.topic_label(args.topic)}")
    print(f"   Against: {counts['against']}  Neutral: {counts['neutral']}  For: {counts['for']}")
    weighted = payload['mindshare_weighted_stance']
    if weighted is not None:
        print(f"   Mindshare-weighted stance: {weighted:+.3f}")

    if payload['top_voices']:
        print(f"\n🏆 Top voices by mindshare:")
        for standing in payload['top_voices']:
            share = standing['mindshare']
            share_text = f"{share:.1f}" if share is not None else "n/a"
            print(f"   {facade.catalog.voice_name(standing['voice_id'])}: "
                  f"{standing['stance']:+.2f} (mindshare {share_text})")

    if args.json:
        _print_json(payload)
    return 0


def show_flips(args):
    """Show the flip events on a topic."""
    facade = build_facade(args)
    payload = flips_handler(facade, args.topic, window=args.window)

    print(f"🔄 Flip events: {facade.catalog.topic_label(args.topic)} ({args.window})")
    if not payload['flip_events']:
        print("   No flips detected")
    for event in payload['flip_events']:
        delta_ms = event['delta_mindshare']
        ms_text = f", mindshare {delta_ms:+.1f}" if delta_ms is not None else ""
        print(f"   {event['t0']}  {facade.catalog.voice_name(event['voice_id'])}: "
              f"{event['stance_before']:+.2f} → {event['stance_after']:+.2f}{ms_text}")

    if args.json:
        _print_json(payload)
    return 0


def run_compare(args):
    """Compare the flips of several voices on a topic."""
    facade = build_facade(args)
    payload = compare_handler(facade, args.topic, args.voices, window=args.window)

    print(f"⚖️  Comparing {', '.join(payload['voices'])} on {facade.catalog.topic_label(args.topic)}")
    print(f"   Flips: {len(payload['flip_events'])}")
    for annotation in payload['annotations']:
        print(f"   💡 [{annotation['type']}] {annotation['text']}")

    if args.json:
        _print_json(payload)
    return 0


def show_status(args):
    """Show store statistics."""
    facade = build_facade(args)
    stats = facade.store.stats()

    print(f"📊 Stance Engine Status")
    print(f"{'='*50}")
    print(f"   Stance series: {stats['stance_series']} ({stats['stance_points']} points)")
    print(f"   Mindshare series: {stats['mindshare_series']} ({stats['mindshare_points']} points)")
    print(f"   Voices: {stats['voices']}  Topics: {stats['topics']}")

    latest = []
    for topic_id in facade.store.topic_ids():
        for voice_id in facade.store.voices_for_topic(topic_id):
            point = facade.store.stance_points(voice_id, topic_id)[-1]
            latest.append({"topic_id": topic_id, "voice_id": voice_id, "stance": point.stance})

    if latest:
        df = pd.DataFrame(latest)
        stance_stats = df['stance'].describe()
        print(f"\n🎭 Latest Stance Statistics:")
        print(f"   Mean: {stance_stats['mean']:+.3f}")
        print(f"   Std: {stance_stats['std']:.3f}")
        print(f"   Min: {stance_stats['min']:+.3f}")
        print(f"   Max: {stance_stats['max']:+.3f}")

        flips = {t: len(facade.get_flip_events_for_topic(t, window="all")) for t in facade.store.topic_ids()}
        top_topics = sorted(flips.items(), key=lambda kv: (-kv[1], kv[0]))[:5]
        print(f"\n🏆 Topics with most flips:")
        for topic_id, count in top_topics:
            print(f"   {facade.catalog.topic_label(topic_id)}: {count} flips")
    else:
        print(f"\n⚠️  No stance data loaded")

    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Stance Engine - Stance and Mindshare Analytics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m stance --demo status
  python -m stance --demo series --voice candace-owens --topic israel-gaza --window 30d
  python -m stance --stance-csv stance.csv distribution --topic ukraine-aid
  python -m stance --demo compare --topic crypto --voices andrew-tate,elon-musk
        """
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument('--demo', action='store_true', help='Seed the store with demo data')
    parser.add_argument('--seed', type=int, default=42, help='Random seed for demo data')
    parser.add_argument('--stance-csv', help='CSV with voice_id, topic_id, timestamp, stance, confidence')
    parser.add_argument('--mindshare-csv', help='CSV with voice_id, timestamp, mindshare')
    parser.add_argument('--json', action='store_true', help='Also print the JSON payload')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Series command
    series_parser = subparsers.add_parser('series', help='Show a voice stance series on a topic')
    series_parser.add_argument('--voice', required=True, help='Voice id')
    series_parser.add_argument('--topic', required=True, help='Topic id')
    series_parser.add_argument('--window', default='7d', help='Time window (24h, 7d, 30d, all)')

    # Distribution command
    dist_parser = subparsers.add_parser('distribution', help='Show the stance distribution of a topic')
    dist_parser.add_argument('--topic', required=True, help='Topic id')

    # Flips command
    flips_parser = subparsers.add_parser('flips', help='List flip events on a topic')
    flips_parser.add_argument('--topic', required=True, help='Topic id')
    flips_parser.add_argument('--window', default='all', help='Time window (24h, 7d, 30d, all)')

    # Compare command
    compare_parser = subparsers.add_parser('compare', help='Compare voices on a topic')
    compare_parser.add_argument('--topic', required=True, help='Topic id')
    compare_parser.add_argument('--voices', required=True, help='Comma-separated voice ids')
    compare_parser.add_argument('--window', default='all', help='Time window (24h, 7d, 30d, all)')

    # Status command
    subparsers.add_parser('status', help='Show store statistics')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Setup logging
    setup_logging(args.verbose)

    commands = {
        'series': show_series,
        'distribution': show_distribution,
        'flips': show_flips,
        'compare': run_compare,
        'status': show_status,
    }

    try:
        return commands[args.command](args)
    except StanceEngineError as e:
        print(f"❌ {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
