"""
Dashboard aggregates over the businesses table.
"""
import logging
from collections import Counter
from typing import Dict, Any

from sqlalchemy import func, or_

from app.database import get_session
from app.models.business import Business

logger = logging.getLogger('services.stats')

TOP_CATEGORY_COUNT = 5


def get_business_stats() -> Dict[str, Any]:
    """Counts and averages shown on the dashboard cards."""
    session = get_session()
    try:
        total = session.query(func.count(Business.id)).scalar() or 0

        avg_rating = session.query(func.avg(Business.rating)).filter(Business.rating.isnot(None)).scalar()
        total_reviews = session.query(func.sum(Business.review_count)).scalar() or 0

        top = (session.query(Business.name, Business.rating)
               .filter(Business.rating.isnot(None))
               .order_by(Business.rating.desc(), Business.review_count.desc())
               .first())

        with_phone = session.query(func.count(Business.id)).filter(Business.phone.isnot(None)).scalar() or 0
        with_website = session.query(func.count(Business.id)).filter(Business.website.isnot(None)).scalar() or 0
        closed = (session.query(func.count(Business.id))
                  .filter(or_(Business.permanently_closed.is_(True), Business.temporarily_closed.is_(True)))
                  .scalar() or 0)

        # JSON list columns and social handles are counted in Python
        social_columns = [getattr(Business, f) for f in Business.SOCIAL_FIELDS]
        with_email = 0
        with_social = 0
        for row in session.query(Business.emails, *social_columns):
            emails, socials = row[0], row[1:]
            if isinstance(emails, list) and emails:
                with_email += 1
            if any(socials):
                with_social += 1

        categories = Counter(
            name for (name,) in session.query(Business.category_name).filter(Business.category_name.isnot(None))
        )

        return {
            'totalBusinesses': total,
            'avgRating': round(float(avg_rating), 1) if avg_rating is not None else 0,
            'totalReviews': int(total_reviews),
            'topRated': {'name': top.name, 'rating': top.rating} if top else None,
            'withPhone': with_phone,
            'withEmail': with_email,
            'withWebsite': with_website,
            'withSocial': with_social,
            'closedCount': closed,
            'topCategories': [
                {'name': name, 'count': count}
                for name, count in categories.most_common(TOP_CATEGORY_COUNT)
            ],
        }
    finally:
        session.close()
