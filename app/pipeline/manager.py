"""
Scrape Manager — run orchestration.

Drives one scrape run end to end:

  validate request → open log relay → scrape (actor) → reconcile → persist → summary

Runs synchronously inside the request by default, or as a background RQ job
when the caller asks for it. Both paths share run_scrape().
"""
import logging
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Any

from app.config import APIFY_API_TOKEN, DEFAULT_MAX_RESULTS, SCRAPE_JOB_TIMEOUT
from app.extensions import redis_client
from app.models.run import ScrapeRun
from app.pipeline.base import ScrapeStats, zero_stats
from app.pipeline.persistence import BatchWriter
from app.pipeline.reconcile import Reconciler
from app.pipeline.relay import LogRelay
from app.services.apify import GoogleMapsScraper, build_search_strings, resolve_neighborhoods
from app.services.db import load_existing_index, persist_scrape_run

logger = logging.getLogger('pipeline.manager')

BANNER = '=' * 70


# ── Lazy RQ queue (avoids import-time Redis connection) ──────────────────────

_queue = None

def _get_queue():
    global _queue
    if _queue is None:
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


# ── Request validation ───────────────────────────────────────────────────────

@dataclass
class ScrapeRequest:
    search_query: str
    city: str
    neighborhoods: List[str] = field(default_factory=list)
    max_results: int = DEFAULT_MAX_RESULTS
    skip_duplicates: bool = True
    scrape_id: Optional[str] = None
    api_token: Optional[str] = None
    background: bool = False


def parse_scrape_request(data: Dict[str, Any]) -> Tuple[Optional[ScrapeRequest], Optional[str]]:
    """
    Build a ScrapeRequest from the JSON body.

    Returns (request, None) or (None, error message). Nothing external is
    touched here, so a rejected request costs no actor run and no run record.
    """
    data = data or {}
    search_query = data.get('searchQuery')
    city = data.get('city')
    if not search_query or not city:
        return None, 'Missing required fields: searchQuery, city'

    api_token = data.get('apifyApiKey') or APIFY_API_TOKEN
    if not api_token:
        return None, 'Apify API key is required. Enter it in the UI or set APIFY_API_KEY env var.'

    raw_max = data.get('maxResults', data.get('limit'))
    try:
        max_results = DEFAULT_MAX_RESULTS if raw_max in (None, '') else int(raw_max)
    except (TypeError, ValueError):
        return None, 'maxResults must be a positive integer'
    if max_results < 1:
        return None, 'maxResults must be a positive integer'

    neighborhoods = [n for n in (data.get('neighborhoods') or []) if isinstance(n, str) and n.strip()]
    if not neighborhoods and data.get('useNeighborhoods'):
        neighborhoods = resolve_neighborhoods(data.get('selectedNeighborhoods') or [])

    skip_duplicates = data.get('skipDuplicates')

    return ScrapeRequest(
        search_query=search_query,
        city=city,
        neighborhoods=neighborhoods,
        max_results=max_results,
        skip_duplicates=True if skip_duplicates is None else bool(skip_duplicates),
        scrape_id=data.get('scrapeId') or None,
        api_token=api_token,
        background=bool(data.get('background')),
    ), None


def error_response(message: str) -> Dict[str, Any]:
    return {'success': False, 'message': message, 'stats': zero_stats(), 'sample': []}


# ── Public API ────────────────────────────────────────────────────────────────

def create_run(req: ScrapeRequest) -> ScrapeRun:
    run = ScrapeRun(
        id=req.scrape_id,
        search_query=req.search_query,
        city=req.city,
        neighborhoods=req.neighborhoods,
        max_results=req.max_results,
        skip_duplicates=req.skip_duplicates,
    )
    run.save()
    persist_scrape_run(run)
    return run


def launch_scrape(req: ScrapeRequest) -> ScrapeRun:
    """Create a run and enqueue it as a background RQ job."""
    run = create_run(req)
    _get_queue().enqueue(execute_scrape_job, run.id, asdict(req), job_timeout=SCRAPE_JOB_TIMEOUT)
    logger.info("Enqueued scrape run %s", run.id)
    return run


def get_run_status(run_id: str) -> Optional[dict]:
    run = ScrapeRun.load(run_id)
    if not run:
        return None
    return run.to_dict()


# ── Run executor ─────────────────────────────────────────────────────────────

def execute_scrape_job(run_id: str, payload: Dict[str, Any]):
    """RQ entry point."""
    run = ScrapeRun.load(run_id)
    if not run:
        logger.error("Scrape run %s not found", run_id)
        return
    run_scrape(ScrapeRequest(**payload), run=run)


def run_scrape(req: ScrapeRequest, run: ScrapeRun = None,
               scraper: GoogleMapsScraper = None) -> Tuple[Dict[str, Any], int]:
    """
    Execute one scrape run and return (response body, HTTP status).

    Any unexpected exception fails the run; the counters gathered up to that
    point are still reported.
    """
    started = time.monotonic()
    run = run or create_run(req)
    stats = ScrapeStats()

    with LogRelay(run.id, redis_client) as relay:
        try:
            _announce(relay, req)
            run.transition('scraping')

            existing = {}
            if req.skip_duplicates:
                existing = load_existing(relay)

            scraper = scraper or GoogleMapsScraper(req.api_token)
            items = scraper.scrape(
                build_search_strings(req.search_query, req.city, req.neighborhoods),
                req.city,
                req.max_results,
                relay,
            )

            run.transition('reconciling')
            now = datetime.now(timezone.utc)
            reconciler = Reconciler(existing, req.skip_duplicates, req.search_query, now, relay, stats)
            result = reconciler.reconcile(items)
            run.sample = result.sample

            run.transition('persisting')
            writer = BatchWriter(relay)
            failures = writer.write_inserts(result.to_insert, stats)
            failures += writer.write_updates(result.to_update, stats, now)
            for failure in failures:
                run.add_error(f"{failure.name}: {failure.error}")

            duration = time.monotonic() - started
            message = (f"Scraped {stats.scraped} in {duration:.1f}s. Inserted: {stats.inserted}, "
                       f"Updated: {stats.updated}, Duplicates: {stats.duplicates}, Failed: {stats.failed}")

            relay.publish(BANNER)
            relay.publish(f"[SCRAPE COMPLETE] Duration: {duration:.1f}s", 'success')
            relay.publish(f"[RESULTS] {stats.summary()}", 'success')
            relay.publish(BANNER)

            run.stats = stats.to_dict()
            run.duration_secs = round(duration, 1)
            run.complete(message)
            persist_scrape_run(run)

            return {
                'success': True,
                'message': message,
                'stats': stats.to_dict(),
                'sample': result.sample,
                'run_id': run.id,
            }, 200

        except Exception as e:
            message = str(e) or 'Unknown error occurred'
            logger.error("Scrape run %s failed: %s", run.id, message, exc_info=True)
            relay.publish(f"[FATAL ERROR] {message}", 'error')

            run.stats = stats.to_dict()
            run.duration_secs = round(time.monotonic() - started, 1)
            run.fail(message)
            persist_scrape_run(run)

            return {
                'success': False,
                'message': message,
                'stats': stats.to_dict(),
                'sample': [],
                'run_id': run.id,
            }, 500


def _announce(relay: LogRelay, req: ScrapeRequest):
    relay.publish(BANNER)
    relay.publish(f'[SCRAPE START] "{req.search_query}" in {req.city}')
    relay.publish(f"[CONFIG] Max results: {req.max_results} | Skip duplicates: {req.skip_duplicates}")
    relay.publish(f"[CONFIG] Neighborhoods: {len(req.neighborhoods) if req.neighborhoods else 'city-wide'}")
    relay.publish(BANNER)


def load_existing(relay: LogRelay) -> Dict[str, Any]:
    """Existing-business index for dedup; an empty one if the lookup fails."""
    relay.publish("[DB] Loading existing businesses...")
    try:
        existing = load_existing_index()
    except Exception as e:
        logger.error("Existing-business lookup failed", exc_info=True)
        relay.publish(f"[DB] Error loading existing: {e}", 'error')
        return {}
    relay.publish(f"[DB] Loaded {len(existing)} existing businesses")
    return existing
