"""
ScrapeRun model — Redis-backed scrape run tracking.

A ScrapeRun is one operator-triggered scrape moving through:

    pending → scraping → reconciling → persisting → done
                 (any non-terminal state) → failed
"""
import json
import logging
import uuid
from datetime import datetime
from typing import Dict, Optional, List

from app.extensions import redis_client as r

logger = logging.getLogger('models.run')

RUN_TTL = 86400 * 7  # 7 days

TERMINAL_STATUSES = ('done', 'failed')

ALLOWED_TRANSITIONS = {
    'pending': ('scraping', 'failed'),
    'scraping': ('reconciling', 'failed'),
    'reconciling': ('persisting', 'failed'),
    'persisting': ('done', 'failed'),
    'done': (),
    'failed': (),
}


class ScrapeRun:
    """
    Redis-backed run object.

    Keys:
        scrape_run:{id}     → JSON blob of run state
        scrape_runs:list    → sorted set of run IDs by creation time
    """

    def __init__(
        self,
        id: str = None,
        search_query: str = '',
        city: str = '',
        neighborhoods: List[str] = None,
        max_results: int = 100,
        skip_duplicates: bool = True,
    ):
        self.id = id or str(uuid.uuid4())
        self.status = 'pending'
        self.search_query = search_query
        self.city = city
        self.neighborhoods = neighborhoods or []
        self.max_results = max_results
        self.skip_duplicates = skip_duplicates
        self.created_at = datetime.now().isoformat()
        self.updated_at = self.created_at
        self.stats = {'scraped': 0, 'inserted': 0, 'updated': 0, 'duplicates': 0, 'failed': 0}
        self.sample: List[Dict] = []
        self.message = ''
        self.errors: List[Dict] = []
        self.duration_secs: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'status': self.status,
            'search_query': self.search_query,
            'city': self.city,
            'neighborhoods': self.neighborhoods,
            'max_results': self.max_results,
            'skip_duplicates': self.skip_duplicates,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'stats': self.stats,
            'sample': self.sample,
            'message': self.message,
            'errors': self.errors[-20:],  # Keep last 20 errors
            'duration_secs': self.duration_secs,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> 'ScrapeRun':
        run = cls.__new__(cls)
        run.id = d['id']
        run.status = d.get('status', 'pending')
        run.search_query = d.get('search_query', '')
        run.city = d.get('city', '')
        run.neighborhoods = d.get('neighborhoods', [])
        run.max_results = d.get('max_results', 100)
        run.skip_duplicates = d.get('skip_duplicates', True)
        run.created_at = d.get('created_at', '')
        run.updated_at = d.get('updated_at', run.created_at)
        run.stats = d.get('stats', {})
        run.sample = d.get('sample', [])
        run.message = d.get('message', '')
        run.errors = d.get('errors', [])
        run.duration_secs = d.get('duration_secs')
        return run

    def save(self):
        """Persist run state to Redis. Redis being down never fails the run."""
        self.updated_at = datetime.now().isoformat()
        try:
            r.setex(f'scrape_run:{self.id}', RUN_TTL, json.dumps(self.to_dict()))
            r.zadd('scrape_runs:list', {self.id: datetime.fromisoformat(self.created_at).timestamp()})
        except Exception as e:
            logger.warning("Could not save run %s to Redis: %s", self.id, e)
        return self

    def transition(self, status: str):
        """Move to the next status; illegal moves raise ValueError."""
        allowed = ALLOWED_TRANSITIONS.get(self.status)
        if allowed is None or status not in allowed:
            raise ValueError(f"Illegal run transition: {self.status} → {status}")
        self.status = status
        self.save()

    def add_error(self, message: str):
        self.errors.append({
            'status': self.status,
            'message': message,
            'timestamp': datetime.now().isoformat(),
        })

    def complete(self, message: str = ''):
        """Mark run as done."""
        if message:
            self.message = message
        self.transition('done')

    def fail(self, reason: str = ''):
        """Mark run as failed. A run that already ended stays as it was."""
        if self.is_terminal:
            return
        if reason:
            self.message = reason
            self.add_error(reason)
        self.transition('failed')

    @classmethod
    def _from_record(cls, record) -> 'ScrapeRun':
        """Build a ScrapeRun from a ScrapeRunRecord row."""
        run = cls.__new__(cls)
        run.id = record.id
        run.status = record.status
        run.search_query = record.search_query
        run.city = record.city
        run.neighborhoods = record.neighborhoods or []
        run.max_results = record.max_results
        run.skip_duplicates = record.skip_duplicates
        run.created_at = record.created_at.isoformat() if record.created_at else ''
        run.updated_at = (record.finished_at or record.created_at).isoformat() if record.created_at else ''
        run.stats = {
            'scraped': record.scraped or 0,
            'inserted': record.inserted or 0,
            'updated': record.updated or 0,
            'duplicates': record.duplicates or 0,
            'failed': record.failed or 0,
        }
        run.sample = []
        run.message = record.message or ''
        run.errors = []
        run.duration_secs = record.duration_secs
        return run

    @classmethod
    def load(cls, run_id: str) -> Optional['ScrapeRun']:
        """Load a run from Redis, falling back to the database."""
        try:
            data = r.get(f'scrape_run:{run_id}')
        except Exception as e:
            logger.warning("Redis read for run %s failed: %s", run_id, e)
            data = None
        if data:
            return cls.from_dict(json.loads(data))

        # Fallback to DB
        try:
            from app.database import get_session
            from app.models.scrape_run import ScrapeRunRecord
            session = get_session()
            try:
                record = session.get(ScrapeRunRecord, run_id)
                if record:
                    return cls._from_record(record)
            finally:
                session.close()
        except Exception:
            logger.error("Run history lookup for %s failed", run_id, exc_info=True)
        return None

    @classmethod
    def list_recent(cls, limit: int = 20) -> List['ScrapeRun']:
        """List recent runs from Redis, falling back to the database."""
        try:
            run_ids = r.zrevrange('scrape_runs:list', 0, limit - 1)
        except Exception as e:
            logger.warning("Redis run listing failed: %s", e)
            run_ids = []
        if run_ids:
            runs = []
            for run_id in run_ids:
                run = cls.load(run_id)
                if run:
                    runs.append(run)
            return runs

        # Fallback to DB
        try:
            from app.database import get_session
            from app.models.scrape_run import ScrapeRunRecord
            session = get_session()
            try:
                records = (session.query(ScrapeRunRecord)
                           .order_by(ScrapeRunRecord.created_at.desc())
                           .limit(limit).all())
                return [cls._from_record(rec) for rec in records]
            finally:
                session.close()
        except Exception:
            logger.error("Run history listing failed", exc_info=True)
            return []
