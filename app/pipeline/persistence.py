"""
Batch persistence — write reconciled businesses to the database.

Inserts go in chunks of INSERT_CHUNK_SIZE. When a chunk is rejected the whole
chunk is retried one row per transaction so a single bad row only costs
itself. Phone backfills are applied one at a time.

Every failure is counted and reported; none of them abort the run.
"""
import logging
from datetime import datetime
from typing import Dict, List, Any

from sqlalchemy import insert, update

from app.config import INSERT_CHUNK_SIZE
from app.database import get_session
from app.models.business import Business
from app.pipeline.base import ScrapeStats, PendingUpdate, RowFailure
from app.pipeline.relay import LogRelay

logger = logging.getLogger('pipeline.persistence')


def chunked(rows: List[Any], size: int):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class BatchWriter:

    def __init__(self, relay: LogRelay = None, chunk_size: int = INSERT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.relay = relay or LogRelay()
        self.chunk_size = chunk_size

    # ── Inserts ──────────────────────────────────────────────────────────

    def write_inserts(self, rows: List[Dict[str, Any]], stats: ScrapeStats) -> List[RowFailure]:
        """
        Insert new businesses. Adds to stats.inserted / stats.failed and
        returns the per-row failures (only rows that failed on their own).
        """
        failures: List[RowFailure] = []
        if not rows:
            return failures

        self.relay.publish(f"[DB] Inserting {len(rows)} new businesses...", 'info')

        for number, chunk in enumerate(chunked(rows, self.chunk_size), start=1):
            if self._insert_chunk(chunk):
                stats.inserted += len(chunk)
                self.relay.publish(f"[DB] Inserted chunk {number}: {len(chunk)} records", 'success')
                continue

            self.relay.publish(
                f"[DB] Chunk {number} failed ({len(chunk)} rows). Retrying row-by-row...", 'error'
            )
            for row in chunk:
                error = self._insert_row(row)
                if error is None:
                    stats.inserted += 1
                else:
                    stats.failed += 1
                    failures.append(RowFailure(name=row.get('name') or '', error=error))
                    self.relay.publish(f"    [!] Failed: {row.get('name')} -- {error}", 'error')
            self.relay.publish(f"[DB] Chunk {number} row-by-row done", 'info')

        logger.info("Inserted %d of %d rows (%d failed)", len(rows) - len(failures), len(rows), len(failures))
        return failures

    def _insert_chunk(self, chunk: List[Dict[str, Any]]) -> bool:
        session = get_session()
        try:
            session.execute(insert(Business), chunk)
            session.commit()
            return True
        except Exception:
            session.rollback()
            logger.warning("Chunk insert of %d rows rejected", len(chunk), exc_info=True)
            return False
        finally:
            session.close()

    def _insert_row(self, row: Dict[str, Any]):
        session = get_session()
        try:
            session.execute(insert(Business), [row])
            session.commit()
            return None
        except Exception as e:
            session.rollback()
            return str(e)
        finally:
            session.close()

    # ── Updates ──────────────────────────────────────────────────────────

    def write_updates(self, updates: List[PendingUpdate], stats: ScrapeStats,
                      now: datetime) -> List[RowFailure]:
        """Apply phone backfills one per transaction."""
        failures: List[RowFailure] = []
        if not updates:
            return failures

        self.relay.publish(f"[DB] Updating {len(updates)} existing businesses...", 'info')

        for pending in updates:
            error = self._update_row(pending, now)
            if error is None:
                stats.updated += 1
            else:
                stats.failed += 1
                failures.append(RowFailure(name=pending.name, error=error))
                self.relay.publish(f"[DB] Update error for {pending.id}: {error}", 'error')

        self.relay.publish(f"[DB] Updated {len(updates) - len(failures)} records with phone numbers", 'success')
        return failures

    def _update_row(self, pending: PendingUpdate, now: datetime):
        session = get_session()
        try:
            result = session.execute(
                update(Business)
                .where(Business.id == pending.id)
                .values(
                    phone=pending.phone,
                    phone_unformatted=pending.phone_unformatted,
                    scraped_at=now,
                )
            )
            if result.rowcount == 0:
                session.rollback()
                return f"business {pending.id} no longer exists"
            session.commit()
            return None
        except Exception as e:
            session.rollback()
            return str(e)
        finally:
            session.close()
