"""
Reconciliation — classify scraped places into insert / update / skip.

A single sequential pass over the actor results. Per record, in order:

  1. advertisement         → ignored (not counted anywhere)
  2. no name               → failed
  3. name seen this run    → duplicate
  4. name already stored   → duplicate, unless the stored row has no phone and
                             the new record does — then queue a phone backfill
  5. otherwise             → insert

Names are compared lower-cased only (no trimming): "Cafe X" and "Cafe X "
are different businesses.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, Any, Optional

from app.config import SAMPLE_SIZE
from app.pipeline.base import ScrapeStats, ExistingBusiness, PendingUpdate, ReconcileResult
from app.pipeline.mapping import is_advertisement, map_place, build_insert_row, sample_entry
from app.pipeline.relay import LogRelay

logger = logging.getLogger('pipeline.reconcile')


def name_key(name: str) -> str:
    return name.lower()


class Reconciler:
    """
    Owns the run-scoped dedup state: the names decided so far and the index
    of stored businesses (loaded once at run start; empty when
    skip_duplicates is off).
    """

    def __init__(self, existing: Optional[Dict[str, ExistingBusiness]], skip_duplicates: bool,
                 search_query: str, now: datetime, relay: Optional[LogRelay] = None,
                 stats: Optional[ScrapeStats] = None):
        self.existing = existing or {}
        self.skip_duplicates = skip_duplicates
        self.search_query = search_query
        self.now = now
        self.relay = relay or LogRelay()
        self.stats = stats if stats is not None else ScrapeStats()
        self.decided = set()

    def reconcile(self, items: Iterable[Dict[str, Any]]) -> ReconcileResult:
        result = ReconcileResult()
        for item in items:
            self._classify(item, result)
        logger.info("Reconciled: %d to insert, %d to update, %d duplicates, %d failed",
                    len(result.to_insert), len(result.to_update),
                    self.stats.duplicates, self.stats.failed)
        return result

    def _classify(self, item: Dict[str, Any], result: ReconcileResult):
        if is_advertisement(item):
            return

        business = map_place(item)
        name = business['name']
        if not name:
            self.stats.failed += 1
            return

        self.stats.scraped += 1
        key = name_key(name)

        if key in self.decided:
            self.stats.duplicates += 1
            self.relay.publish(f"    [=] {name} (duplicate in batch)", 'item-skip')
            return

        stored = self.existing.get(key) if self.skip_duplicates else None

        if stored is None:
            result.to_insert.append(build_insert_row(business, self.search_query, self.now))
            self.relay.publish(
                f"    [+] {name} | {business['category_name'] or '-'} | Phone: {business['phone'] or '-'}",
                'item-new',
            )
            self._add_sample(result, business)
        elif stored.phone:
            self.stats.duplicates += 1
            self.relay.publish(f"    [=] {name} (exists)", 'item-skip')
        elif business['phone']:
            result.to_update.append(PendingUpdate(
                id=stored.id,
                name=name,
                phone=business['phone'],
                phone_unformatted=business['phone_unformatted'],
            ))
            self.relay.publish(f"    [~] {name} (will update phone: {business['phone']})", 'item-update')
            self._add_sample(result, business)
        else:
            self.stats.duplicates += 1
            self.relay.publish(f"    [=] {name} (exists, no new phone)", 'item-skip')

        self.decided.add(key)

    @staticmethod
    def _add_sample(result: ReconcileResult, business: Dict[str, Any]):
        if len(result.sample) < SAMPLE_SIZE:
            result.sample.append(sample_entry(business))
