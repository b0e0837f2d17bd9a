"""Tests for app.pipeline.mapping — actor record → business row."""
from datetime import datetime, timezone

from app.config import FALLBACK_LATITUDE, FALLBACK_LONGITUDE
from app.pipeline.mapping import is_advertisement, map_place, build_insert_row, sample_entry


class TestMapPlace:

    def test_maps_core_fields(self, make_place):
        business = map_place(make_place())
        assert business['name'] == 'Cafe Blloku'
        assert business['phone'] == '+355 69 123 4567'
        assert business['phone_unformatted'] == '+355691234567'
        assert business['rating'] == 4.6
        assert business['review_count'] == 212
        assert business['latitude'] == 41.3189
        assert business['longitude'] == 19.8152
        assert business['maps_url'].startswith('https://www.google.com/maps')
        assert business['categories'] == ['Cafe', 'Coffee shop']

    def test_first_social_handle_only(self, make_place):
        business = map_place(make_place(
            instagrams=['https://instagram.com/a', 'https://instagram.com/b'],
            linkedIns=['https://linkedin.com/company/x'],
        ))
        assert business['instagram'] == 'https://instagram.com/a'
        assert business['linkedin'] == 'https://linkedin.com/company/x'
        assert business['facebook'] is None

    def test_missing_location_uses_fallback(self, make_place):
        business = map_place(make_place(location=None))
        assert business['latitude'] == FALLBACK_LATITUDE
        assert business['longitude'] == FALLBACK_LONGITUDE

    def test_falsy_values_become_defaults(self):
        business = map_place({'title': '', 'phone': '', 'reviewsCount': None, 'emails': None})
        assert business['name'] is None
        assert business['phone'] is None
        assert business['review_count'] == 0
        assert business['emails'] == []
        assert business['additional_info'] == {}
        assert business['permanently_closed'] is False


class TestHelpers:

    def test_is_advertisement(self):
        assert is_advertisement({'isAdvertisement': True})
        assert not is_advertisement({'isAdvertisement': False})
        assert not is_advertisement({})

    def test_build_insert_row_adds_provenance(self, make_place):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        business = map_place(make_place())
        row = build_insert_row(business, 'cafe Tirana', now)
        assert row['search_query'] == 'cafe Tirana'
        assert row['scraped_at'] == now
        assert 'search_query' not in business

    def test_sample_entry_keys(self, make_place):
        entry = sample_entry(map_place(make_place()))
        assert set(entry) == {'name', 'phone', 'rating', 'category_name'}
