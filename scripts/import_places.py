#!/usr/bin/env python3
"""
Import an exported Google Maps actor dataset (JSON) into the businesses table.

Runs the records through the same reconcile + batch write path as a live
scrape, with log lines going to the console only.

Usage:
    python scripts/import_places.py dataset.json
    python scripts/import_places.py dataset.json --search-query "gym Tirana"
    python scripts/import_places.py dataset.json --no-skip-duplicates

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import sys
import os
import json
import argparse
import logging
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import init_db
from app.logging_config import configure_logging
from app.pipeline.base import ScrapeStats
from app.pipeline.manager import load_existing
from app.pipeline.persistence import BatchWriter
from app.pipeline.reconcile import Reconciler
from app.pipeline.relay import LogRelay

logger = logging.getLogger('scripts.import_places')


def load_records(path):
    with open(path, encoding='utf-8') as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise ValueError(f"{path}: expected a JSON array of places")
    return records


def default_search_query(records, path):
    for record in records:
        if isinstance(record, dict) and record.get('searchString'):
            return record['searchString']
    return os.path.splitext(os.path.basename(path))[0]


def import_places(records, search_query, skip_duplicates=True):
    """Reconcile and persist `records`. Returns the run stats."""
    relay = LogRelay()
    stats = ScrapeStats()
    now = datetime.now(timezone.utc)

    existing = load_existing(relay) if skip_duplicates else {}

    result = Reconciler(existing, skip_duplicates, search_query, now, relay, stats).reconcile(records)

    writer = BatchWriter(relay)
    writer.write_inserts(result.to_insert, stats)
    writer.write_updates(result.to_update, stats, now)

    relay.publish(f"[RESULTS] {stats.summary()}", 'success')
    return stats


def main():
    parser = argparse.ArgumentParser(description='Import an exported Google Maps dataset')
    parser.add_argument('path', help='JSON file exported from the actor dataset')
    parser.add_argument('--search-query', help='search_query stored on new rows '
                                               '(default: first record searchString)')
    parser.add_argument('--no-skip-duplicates', action='store_true',
                        help='insert every name even if it is already stored')
    args = parser.parse_args()

    configure_logging()
    init_db()

    records = load_records(args.path)
    print(f"Found {len(records)} records to import")

    stats = import_places(
        records,
        search_query=args.search_query or default_search_query(records, args.path),
        skip_duplicates=not args.no_skip_duplicates,
    )
    print(f"\nDone. {stats.summary()}")
    return 0 if stats.failed == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
