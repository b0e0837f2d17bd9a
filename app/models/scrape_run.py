"""
Postgres-backed scrape run record — mirrors the Redis ScrapeRun for history.
"""
from sqlalchemy import Column, Text, Integer, Float, Boolean, DateTime, JSON
from sqlalchemy.sql import func

from app.database import Base


class ScrapeRunRecord(Base):
    __tablename__ = 'scrape_runs'

    id = Column(Text, primary_key=True)
    search_query = Column(Text, nullable=False)
    city = Column(Text, nullable=False)
    neighborhoods = Column(JSON, default=list)
    max_results = Column(Integer, default=100)
    skip_duplicates = Column(Boolean, default=True)
    status = Column(Text, nullable=False, default='pending')
    scraped = Column(Integer, default=0)
    inserted = Column(Integer, default=0)
    updated = Column(Integer, default=0)
    duplicates = Column(Integer, default=0)
    failed = Column(Integer, default=0)
    message = Column(Text, nullable=True)
    duration_secs = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)
