"""
Database helpers — called from the run manager, routes and outreach senders.

Run-history writes are wrapped in try/except so a scrape never blocks on DB
errors. Read helpers, the existing-business index included, let errors
propagate to the caller.
"""
import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Any

from sqlalchemy import or_

from app.database import get_session
from app.models.business import Business
from app.models.scrape_run import ScrapeRunRecord
from app.pipeline.base import ExistingBusiness

logger = logging.getLogger('services.db')

SORTABLE_COLUMNS = ('rating', 'review_count', 'name', 'created_at', 'scraped_at')
OUTREACH_FLAGS = ('email_sent', 'sms_sent')
SEND_FILTERS = ('sent', 'not_sent', 'all')


# ── Scrape ingestion ─────────────────────────────────────────────────────────

def load_existing_index() -> Dict[str, ExistingBusiness]:
    """
    Lower-cased name → (id, phone) for every stored business.

    Loaded once per run. Errors propagate so the caller can tell a failed
    load from an empty table.
    """
    session = get_session()
    try:
        index = {}
        for business_id, name, phone in session.query(Business.id, Business.name, Business.phone):
            index.setdefault(name.lower(), ExistingBusiness(id=business_id, phone=phone))
        logger.info("Loaded %d existing businesses for dedup", len(index))
        return index
    finally:
        session.close()


def persist_scrape_run(run):
    """
    INSERT or UPDATE a scrape run record.

    Called twice:
      1. After run creation (INSERT)
      2. After the run is done / failed (UPDATE)
    """
    session = get_session()
    try:
        record = session.get(ScrapeRunRecord, run.id)
        if record is None:
            record = ScrapeRunRecord(
                id=run.id,
                search_query=run.search_query,
                city=run.city,
                neighborhoods=run.neighborhoods,
                max_results=run.max_results,
                skip_duplicates=run.skip_duplicates,
                status=run.status,
                created_at=datetime.fromisoformat(run.created_at),
            )
            session.add(record)
        else:
            record.status = run.status
            record.message = run.message or None
            record.duration_secs = run.duration_secs
            for key in ('scraped', 'inserted', 'updated', 'duplicates', 'failed'):
                setattr(record, key, (run.stats or {}).get(key, 0))
            if run.status in ('done', 'failed'):
                record.finished_at = datetime.now()

        session.commit()
    except Exception:
        session.rollback()
        logger.error("Failed to persist scrape run %s", run.id, exc_info=True)
    finally:
        session.close()


# ── Business listing ─────────────────────────────────────────────────────────

def _total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def _filtered_business_query(session, search_query: str = '', name: str = '',
                             sort_by: str = 'created_at', sort_order: str = 'desc'):
    query = session.query(Business)
    if search_query:
        query = query.filter(Business.search_query == search_query)
    if name:
        query = query.filter(Business.name.ilike(f'%{name}%'))

    column = getattr(Business, sort_by if sort_by in SORTABLE_COLUMNS else 'created_at')
    ordering = column.asc() if sort_order == 'asc' else column.desc()
    # Nulls last regardless of direction
    return query.order_by(column.is_(None), ordering)


def list_businesses(page: int = 1, limit: int = 10, search_query: str = '', name: str = '',
                    sort_by: str = 'created_at', sort_order: str = 'desc') -> Dict[str, Any]:
    """Paginated business listing: {data, total, page, totalPages}."""
    session = get_session()
    try:
        query = _filtered_business_query(session, search_query, name, sort_by, sort_order)
        total = query.order_by(None).count()
        rows = query.offset((page - 1) * limit).limit(limit).all()
        return {
            'data': [b.to_dict() for b in rows],
            'total': total,
            'page': page,
            'totalPages': _total_pages(total, limit),
        }
    finally:
        session.close()


def export_businesses(search_query: str = '', name: str = '',
                      sort_by: str = 'created_at', sort_order: str = 'desc') -> List[Dict[str, Any]]:
    """Every business matching the listing filters, unpaginated."""
    session = get_session()
    try:
        query = _filtered_business_query(session, search_query, name, sort_by, sort_order)
        return [b.to_dict() for b in query.all()]
    finally:
        session.close()


def get_business(business_id: str) -> Optional[Dict[str, Any]]:
    session = get_session()
    try:
        business = session.get(Business, business_id)
        return business.to_dict() if business else None
    finally:
        session.close()


def update_outreach_flags(business_id: str, flags: Dict[str, bool]) -> Optional[Dict[str, Any]]:
    """
    Set email_sent / sms_sent. Setting a flag true stamps its *_at time;
    clearing it clears the time. Returns the updated business, or None if
    the id is unknown. Callers validate the keys.
    """
    session = get_session()
    try:
        business = session.get(Business, business_id)
        if business is None:
            return None
        now = datetime.now()
        for flag, value in flags.items():
            setattr(business, flag, bool(value))
            setattr(business, f'{flag}_at', now if value else None)
        session.commit()
        return business.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def delete_business(business_id: str) -> bool:
    session = get_session()
    try:
        business = session.get(Business, business_id)
        if business is None:
            return False
        session.delete(business)
        session.commit()
        return True
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ── Outreach lists ───────────────────────────────────────────────────────────

def _sent_filter(query, column, send_filter: str):
    if send_filter == 'sent':
        return query.filter(column.is_(True))
    if send_filter == 'not_sent':
        return query.filter(or_(column.is_(False), column.is_(None)))
    return query


def has_email(business) -> bool:
    emails = business.emails
    return isinstance(emails, list) and any(isinstance(e, str) and e.strip() for e in emails)


def email_list(send_filter: str = 'not_sent', page: int = 1, limit: int = 50) -> Dict[str, Any]:
    """Businesses with at least one non-blank email, ordered by name."""
    session = get_session()
    try:
        query = session.query(Business).filter(Business.emails.isnot(None))
        query = _sent_filter(query, Business.email_sent, send_filter).order_by(Business.name.asc())
        # JSON emptiness is not portable across SQLite/Postgres, so filter here
        matching = [b for b in query.all() if has_email(b)]
        total = len(matching)
        offset = (page - 1) * limit
        data = [{
            'id': b.id,
            'name': b.name,
            'emails': b.emails,
            'category_name': b.category_name,
            'email_sent': b.email_sent,
            'email_sent_at': b.email_sent_at.isoformat() if b.email_sent_at else None,
        } for b in matching[offset:offset + limit]]
        return {'data': data, 'total': total, 'page': page, 'totalPages': _total_pages(total, limit)}
    finally:
        session.close()


def phone_list(send_filter: str = 'not_sent', page: int = 1, limit: int = 500,
               no_website: bool = False) -> Dict[str, Any]:
    """Businesses with a phone, ordered by name. no_website keeps only those without a site."""
    session = get_session()
    try:
        query = session.query(Business).filter(Business.phone.isnot(None), Business.phone != '')
        query = _sent_filter(query, Business.sms_sent, send_filter)
        if no_website:
            query = query.filter(or_(Business.website.is_(None), Business.website == ''))
        total = query.count()
        rows = query.order_by(Business.name.asc()).offset((page - 1) * limit).limit(limit).all()
        data = [{
            'id': b.id,
            'name': b.name,
            'phone': b.phone,
            'website': b.website,
            'emails': b.emails,
            'category_name': b.category_name,
            'sms_sent': b.sms_sent,
            'sms_sent_at': b.sms_sent_at.isoformat() if b.sms_sent_at else None,
        } for b in rows]
        return {'data': data, 'total': total, 'page': page, 'totalPages': _total_pages(total, limit)}
    finally:
        session.close()


# ── Outreach senders ─────────────────────────────────────────────────────────

def get_sms_candidates(business_ids: List[str]) -> List[Tuple[str, str, str]]:
    """(id, name, phone) for the given ids that have a phone and no SMS sent yet."""
    session = get_session()
    try:
        rows = (session.query(Business.id, Business.name, Business.phone)
                .filter(Business.id.in_(business_ids))
                .filter(Business.phone.isnot(None), Business.phone != '')
                .filter(or_(Business.sms_sent.is_(False), Business.sms_sent.is_(None)))
                .all())
        return [(r.id, r.name, r.phone) for r in rows]
    finally:
        session.close()


def get_email_candidates(business_ids: List[str]) -> List[Tuple[str, str, str]]:
    """(id, name, first email) for the given ids that have an email and none sent yet."""
    session = get_session()
    try:
        rows = (session.query(Business)
                .filter(Business.id.in_(business_ids))
                .filter(or_(Business.email_sent.is_(False), Business.email_sent.is_(None)))
                .all())
        candidates = []
        for b in rows:
            if b.emails and isinstance(b.emails, list) and b.emails[0]:
                candidates.append((b.id, b.name, b.emails[0]))
        return candidates
    finally:
        session.close()


def _mark_sent(business_id: str, flag: str):
    session = get_session()
    try:
        business = session.get(Business, business_id)
        if business is None:
            return
        setattr(business, flag, True)
        setattr(business, f'{flag}_at', datetime.now())
        session.commit()
    except Exception:
        session.rollback()
        logger.error("Failed to mark %s on business %s", flag, business_id, exc_info=True)
    finally:
        session.close()


def mark_sms_sent(business_id: str):
    _mark_sent(business_id, 'sms_sent')


def mark_email_sent(business_id: str):
    _mark_sent(business_id, 'email_sent')
