"""
Database engine + session factory.

Defaults to SQLite for local dev, Postgres in production.
Every helper opens its own session via get_session() and closes it in finally.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from app.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


# Hosted Postgres URLs come as postgres:// but SQLAlchemy 2.x requires postgresql://
url = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

if url.startswith('sqlite'):
    engine = create_engine(url, connect_args={'check_same_thread': False})
else:
    engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

SessionLocal = sessionmaker(bind=engine)


def get_session():
    """Return a new DB session."""
    return SessionLocal()


def init_db():
    """Create all tables (local dev / import script). Production uses Alembic."""
    import app.models.business  # noqa: F401
    import app.models.scrape_run  # noqa: F401
    Base.metadata.create_all(engine)
