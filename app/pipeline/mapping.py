"""
Google Maps actor record → business row.

The actor emits camelCase keys; social handles come as lists and only the
first entry is kept. Falsy source values (empty string, 0, []) fall back to
null or the column default, matching how the rows have always been stored.
"""
from datetime import datetime
from typing import Dict, Any, Optional

from app.config import FALLBACK_LATITUDE, FALLBACK_LONGITUDE

# Business column → actor list key
SOCIAL_SOURCES = {
    'instagram': 'instagrams',
    'facebook': 'facebooks',
    'twitter': 'twitters',
    'youtube': 'youtubes',
    'tiktok': 'tiktoks',
    'linkedin': 'linkedIns',
    'whatsapp': 'whatsapps',
}


def _first(values) -> Optional[str]:
    if isinstance(values, list) and values:
        return values[0] or None
    return None


def is_advertisement(item: Dict[str, Any]) -> bool:
    return bool(item.get('isAdvertisement'))


def map_place(item: Dict[str, Any]) -> Dict[str, Any]:
    """Map one raw actor record onto business field names. `name` may be None."""
    location = item.get('location') or {}

    business = {
        'name': item.get('title') or None,
        'phone': item.get('phone') or None,
        'phone_unformatted': item.get('phoneUnformatted') or None,
        'review_count': item.get('reviewsCount') or 0,
        'rating': item.get('totalScore') or None,
        'address': item.get('address') or None,
        'latitude': location.get('lat') or FALLBACK_LATITUDE,
        'longitude': location.get('lng') or FALLBACK_LONGITUDE,
        'website': item.get('website') or None,
        'maps_url': item.get('url') or None,
        'price': item.get('price') or None,
        'category_name': item.get('categoryName') or None,
        'categories': item.get('categories') or [],
        'neighborhood': item.get('neighborhood') or None,
        'street': item.get('street') or None,
        'city': item.get('city') or None,
        'postal_code': item.get('postalCode') or None,
        'state': item.get('state') or None,
        'country_code': item.get('countryCode') or None,
        'permanently_closed': bool(item.get('permanentlyClosed')),
        'temporarily_closed': bool(item.get('temporarilyClosed')),
        'place_id': item.get('placeId') or None,
        'cid': item.get('cid') or None,
        'images_count': item.get('imagesCount') or 0,
        'image_url': item.get('imageUrl') or None,
        'hotel_stars': item.get('hotelStars') or None,
        'emails': item.get('emails') or [],
        'phones': item.get('phones') or [],
        'domain': item.get('domain') or None,
        'opening_hours': item.get('openingHours') or [],
        'additional_info': item.get('additionalInfo') or {},
    }
    for column, source_key in SOCIAL_SOURCES.items():
        business[column] = _first(item.get(source_key))
    return business


def build_insert_row(business: Dict[str, Any], search_query: str, now: datetime) -> Dict[str, Any]:
    """Full insert payload for a new business."""
    row = dict(business)
    row['search_query'] = search_query
    row['scraped_at'] = now
    return row


def sample_entry(business: Dict[str, Any]) -> Dict[str, Any]:
    """Partial record shown back to the operator."""
    return {
        'name': business.get('name'),
        'phone': business.get('phone'),
        'rating': business.get('rating'),
        'category_name': business.get('category_name'),
    }
