"""Tests for app.models.run — Redis-backed ScrapeRun tracking."""
import json
import pytest
from unittest.mock import patch
from datetime import datetime

from app.models.run import ScrapeRun, ALLOWED_TRANSITIONS, TERMINAL_STATUSES


# ── Helpers ──────────────────────────────────────────────────────────────────

def _make_run(**overrides):
    """Build a ScrapeRun with Redis mocked out."""
    fields = dict(search_query='cafe', city='Tirana')
    fields.update(overrides)
    with patch('app.models.run.r'):
        return ScrapeRun(**fields)


# ── Initialization ───────────────────────────────────────────────────────────

class TestRunInit:
    """ScrapeRun.__init__ defaults."""

    def test_default_id_is_uuid(self):
        run = _make_run()
        assert len(run.id) == 36

    def test_custom_id(self):
        assert _make_run(id='custom-123').id == 'custom-123'

    def test_starts_pending(self):
        assert _make_run().status == 'pending'

    def test_zero_stats(self):
        assert _make_run().stats == {'scraped': 0, 'inserted': 0, 'updated': 0, 'duplicates': 0, 'failed': 0}

    def test_created_at_is_iso_string(self):
        datetime.fromisoformat(_make_run().created_at)

    def test_neighborhoods_default_empty(self):
        assert _make_run().neighborhoods == []


# ── Transitions ──────────────────────────────────────────────────────────────

class TestTransitions:
    """Status only moves forward; done and failed are final."""

    @patch('app.models.run.r')
    def test_happy_path(self, mock_r):
        run = _make_run()
        for status in ('scraping', 'reconciling', 'persisting'):
            run.transition(status)
        run.complete('all good')
        assert run.status == 'done'
        assert run.message == 'all good'
        assert run.is_terminal

    @patch('app.models.run.r')
    def test_skipping_a_state_is_illegal(self, mock_r):
        run = _make_run()
        with pytest.raises(ValueError, match='Illegal run transition'):
            run.transition('persisting')
        assert run.status == 'pending'

    @patch('app.models.run.r')
    def test_every_active_state_can_fail(self, mock_r):
        for status in ('pending', 'scraping', 'reconciling', 'persisting'):
            run = _make_run()
            run.status = status
            run.fail('boom')
            assert run.status == 'failed'

    @patch('app.models.run.r')
    def test_terminal_states_are_final(self, mock_r):
        for status in TERMINAL_STATUSES:
            assert ALLOWED_TRANSITIONS[status] == ()
            run = _make_run()
            run.status = status
            with pytest.raises(ValueError):
                run.transition('scraping')

    @patch('app.models.run.r')
    def test_fail_after_done_is_noop(self, mock_r):
        run = _make_run()
        run.status = 'done'
        run.message = 'finished'
        run.fail('late error')
        assert run.status == 'done'
        assert run.message == 'finished'
        assert run.errors == []

    @patch('app.models.run.r')
    def test_fail_records_reason(self, mock_r):
        run = _make_run()
        run.fail('actor exploded')
        assert run.message == 'actor exploded'
        assert run.errors[0]['message'] == 'actor exploded'
        assert run.errors[0]['status'] == 'pending'

    @patch('app.models.run.r')
    def test_transition_saves(self, mock_r):
        run = _make_run()
        run.transition('scraping')
        mock_r.setex.assert_called_once()


# ── Serialization ────────────────────────────────────────────────────────────

class TestToDict:

    def test_contains_expected_keys(self):
        d = _make_run().to_dict()
        for key in ('id', 'status', 'search_query', 'city', 'neighborhoods', 'max_results',
                    'skip_duplicates', 'created_at', 'updated_at', 'stats', 'sample',
                    'message', 'errors', 'duration_secs'):
            assert key in d

    def test_errors_truncated_to_last_20(self):
        run = _make_run()
        run.errors = [{'message': f'e{i}'} for i in range(30)]
        errors = run.to_dict()['errors']
        assert len(errors) == 20
        assert errors[0]['message'] == 'e10'

    def test_round_trip(self):
        run = _make_run(neighborhoods=['Blloku'], max_results=7, skip_duplicates=False)
        run.sample = [{'name': 'A'}]
        loaded = ScrapeRun.from_dict(json.loads(json.dumps(run.to_dict())))
        assert loaded.to_dict() == run.to_dict()


# ── Save / load ──────────────────────────────────────────────────────────────

class TestSave:

    @patch('app.models.run.r')
    def test_save_keys(self, mock_r):
        run = _make_run(id='run-save-1')
        result = run.save()
        assert result is run
        assert mock_r.setex.call_args.args[0] == 'scrape_run:run-save-1'
        assert mock_r.setex.call_args.args[1] == 7 * 86400
        assert mock_r.zadd.call_args.args[0] == 'scrape_runs:list'

    @patch('app.models.run.r')
    def test_redis_down_does_not_raise(self, mock_r):
        mock_r.setex.side_effect = ConnectionError('redis down')
        _make_run().save()


class TestLoad:

    @patch('app.models.run.r')
    def test_load_from_redis(self, mock_r):
        run = _make_run(id='run-load-1')
        mock_r.get.return_value = json.dumps(run.to_dict())
        loaded = ScrapeRun.load('run-load-1')
        assert loaded.id == 'run-load-1'
        assert loaded.city == 'Tirana'

    @patch('app.models.run.r')
    def test_missing_everywhere_is_none(self, mock_r):
        mock_r.get.return_value = None
        assert ScrapeRun.load('nonexistent') is None

    @patch('app.models.run.r')
    def test_falls_back_to_history(self, mock_r, db_session):
        from app.models.scrape_run import ScrapeRunRecord
        db_session.add(ScrapeRunRecord(
            id='old-run', search_query='gym', city='Tirana', status='done',
            inserted=4, created_at=datetime(2026, 1, 1, 10, 0),
            finished_at=datetime(2026, 1, 1, 10, 5),
        ))
        db_session.commit()
        mock_r.get.side_effect = ConnectionError('redis down')

        loaded = ScrapeRun.load('old-run')
        assert loaded.status == 'done'
        assert loaded.stats['inserted'] == 4
        assert loaded.updated_at == '2026-01-01T10:05:00'


class TestListRecent:

    @patch('app.models.run.r')
    def test_from_redis_skips_expired(self, mock_r):
        alive = _make_run(id='alive')
        mock_r.zrevrange.return_value = ['alive', 'expired']
        mock_r.get.side_effect = lambda key: {
            'scrape_run:alive': json.dumps(alive.to_dict()),
        }.get(key)

        runs = ScrapeRun.list_recent(limit=5)
        mock_r.zrevrange.assert_called_once_with('scrape_runs:list', 0, 4)
        assert [r.id for r in runs] == ['alive']

    @patch('app.models.run.r')
    def test_falls_back_to_history(self, mock_r, db_session):
        from app.models.scrape_run import ScrapeRunRecord
        for i in range(3):
            db_session.add(ScrapeRunRecord(
                id=f'run-{i}', search_query='gym', city='Tirana', status='done',
                created_at=datetime(2026, 1, 1 + i),
            ))
        db_session.commit()
        mock_r.zrevrange.return_value = []

        runs = ScrapeRun.list_recent(limit=2)
        assert [r.id for r in runs] == ['run-2', 'run-1']
