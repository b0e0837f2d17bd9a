"""
Business model — one row per scraped place, deduplicated by lower-cased name at ingestion.
"""
import uuid

from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, JSON
from sqlalchemy.sql import func

from app.database import Base


def _new_id():
    return str(uuid.uuid4())


class Business(Base):
    __tablename__ = 'businesses'

    id = Column(Text, primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)

    # Contact
    phone = Column(Text, nullable=True)
    phone_unformatted = Column(Text, nullable=True)
    emails = Column(JSON, default=list)
    phones = Column(JSON, default=list)
    website = Column(Text, nullable=True)
    maps_url = Column(Text, nullable=True)

    # Descriptive
    rating = Column(Float, nullable=True)
    review_count = Column(Integer, default=0)
    price = Column(Text, nullable=True)
    category_name = Column(Text, nullable=True)
    categories = Column(JSON, default=list)
    address = Column(Text, nullable=True)
    neighborhood = Column(Text, nullable=True)
    street = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    postal_code = Column(Text, nullable=True)
    state = Column(Text, nullable=True)
    country_code = Column(Text, nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    # Status
    permanently_closed = Column(Boolean, default=False)
    temporarily_closed = Column(Boolean, default=False)

    # Upstream identifiers (opaque)
    place_id = Column(Text, nullable=True)
    cid = Column(Text, nullable=True)

    # Media / extra
    images_count = Column(Integer, default=0)
    image_url = Column(Text, nullable=True)
    hotel_stars = Column(Text, nullable=True)
    domain = Column(Text, nullable=True)
    instagram = Column(Text, nullable=True)
    facebook = Column(Text, nullable=True)
    twitter = Column(Text, nullable=True)
    youtube = Column(Text, nullable=True)
    tiktok = Column(Text, nullable=True)
    linkedin = Column(Text, nullable=True)
    whatsapp = Column(Text, nullable=True)
    opening_hours = Column(JSON, default=list)
    additional_info = Column(JSON, default=dict)

    # Outreach flags, written only by the outreach senders
    email_sent = Column(Boolean, default=False)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)
    sms_sent = Column(Boolean, default=False)
    sms_sent_at = Column(DateTime(timezone=True), nullable=True)

    # Provenance
    search_query = Column(Text, nullable=True)
    scraped_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    SOCIAL_FIELDS = ('instagram', 'facebook', 'twitter', 'youtube', 'tiktok', 'linkedin', 'whatsapp')

    def to_dict(self):
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if hasattr(value, 'isoformat'):
                value = value.isoformat()
            data[column.name] = value
        return data
