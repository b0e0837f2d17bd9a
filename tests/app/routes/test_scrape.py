"""Tests for the scrape routes — launch, run lookup, neighborhoods, SSE log stream."""
import json
from unittest.mock import patch

from app.models.run import ScrapeRun
from app.pipeline.relay import END_OF_STREAM


BODY = {'searchQuery': 'cafe', 'city': 'Tirana', 'apifyApiKey': 'tok'}


# ── POST /api/scrape-businesses ──────────────────────────────────────────────

class TestScrapeBusinesses:

    @patch('app.routes.scrape.run_scrape')
    def test_missing_fields_is_400(self, mock_run, client):
        resp = client.post('/api/scrape-businesses', json={'city': 'Tirana'})
        assert resp.status_code == 400
        data = resp.get_json()
        assert data['success'] is False
        assert data['message'] == 'Missing required fields: searchQuery, city'
        assert data['stats']['inserted'] == 0
        mock_run.assert_not_called()

    @patch('app.pipeline.manager.APIFY_API_TOKEN', None)
    @patch('app.routes.scrape.run_scrape')
    def test_missing_token_is_400(self, mock_run, client, fake_redis):
        resp = client.post('/api/scrape-businesses', json={'searchQuery': 'cafe', 'city': 'Tirana'})
        assert resp.status_code == 400
        assert 'Apify API key is required' in resp.get_json()['message']
        mock_run.assert_not_called()
        assert fake_redis.store == {}

    @patch('app.routes.scrape.run_scrape')
    def test_sync_returns_run_result(self, mock_run, client):
        mock_run.return_value = ({'success': True, 'message': 'ok', 'stats': {}, 'sample': [], 'run_id': 'r1'}, 200)
        resp = client.post('/api/scrape-businesses', json=BODY)
        assert resp.status_code == 200
        assert resp.get_json()['run_id'] == 'r1'
        req = mock_run.call_args.args[0]
        assert req.search_query == 'cafe'
        assert req.api_token == 'tok'

    @patch('app.routes.scrape.run_scrape')
    def test_sync_failure_status_passes_through(self, mock_run, client):
        mock_run.return_value = ({'success': False, 'message': 'boom', 'stats': {}, 'sample': []}, 500)
        assert client.post('/api/scrape-businesses', json=BODY).status_code == 500

    @patch('app.routes.scrape.launch_scrape')
    def test_background_is_202(self, mock_launch, client):
        mock_launch.return_value = ScrapeRun(id='run-bg', search_query='cafe', city='Tirana')
        resp = client.post('/api/scrape-businesses', json=dict(BODY, background=True))
        assert resp.status_code == 202
        assert resp.get_json()['run_id'] == 'run-bg'

    @patch('app.pipeline.manager.GoogleMapsScraper')
    def test_end_to_end_with_fake_actor(self, MockScraper, client, make_place):
        MockScraper.return_value.scrape.return_value = [make_place('A'), make_place('B')]
        resp = client.post('/api/scrape-businesses', json=BODY)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['stats']['inserted'] == 2
        MockScraper.assert_called_once_with('tok')


# ── Runs ─────────────────────────────────────────────────────────────────────

class TestScrapeRuns:

    def test_get_run(self, client):
        run = ScrapeRun(search_query='cafe', city='Tirana').save()
        resp = client.get(f'/api/scrape-runs/{run.id}')
        assert resp.status_code == 200
        assert resp.get_json()['status'] == 'pending'

    def test_unknown_run_404(self, client):
        assert client.get('/api/scrape-runs/nope').status_code == 404

    def test_list_runs_newest_first(self, client):
        older = ScrapeRun(search_query='a', city='Tirana')
        older.created_at = '2026-01-01T10:00:00'
        older.save()
        newer = ScrapeRun(search_query='b', city='Tirana')
        newer.created_at = '2026-01-02T10:00:00'
        newer.save()

        data = client.get('/api/scrape-runs').get_json()
        assert [r['id'] for r in data] == [newer.id, older.id]

    def test_neighborhoods(self, client):
        data = client.get('/api/neighborhoods').get_json()
        assert data[0] == {'index': 0, 'name': 'Blloku'}


# ── SSE ──────────────────────────────────────────────────────────────────────

def _preloaded_pubsub(fake_redis, *envelopes):
    """PubSub that already holds the given envelopes, as if published after subscribe."""
    pubsub = fake_redis.pubsub()
    for envelope in envelopes:
        pubsub.pending.append({'type': 'message', 'channel': 'x', 'data': json.dumps(envelope)})
    return pubsub


class TestLogStream:

    def test_relays_lines_turns_heartbeats_into_keep_alive_and_ends(self, client, fake_redis):
        run = ScrapeRun(search_query='cafe', city='Tirana').save()
        payload = {'message': '[+] Cafe X', 'type': 'item-new', 'timestamp': 't'}
        pubsub = _preloaded_pubsub(
            fake_redis,
            {'event': 'heartbeat', 'payload': {}},
            {'event': 'log', 'payload': payload},
            {'event': 'end'},
        )

        with patch.object(fake_redis, 'pubsub', return_value=pubsub):
            resp = client.get(f'/stream/scrape/{run.id}')
            body = resp.get_data(as_text=True)

        assert resp.mimetype == 'text/event-stream'
        assert body == ': keep-alive\n\n' + f'data: {json.dumps(payload)}\n\n' + END_OF_STREAM
        assert 'heartbeat' not in body
        assert pubsub.closed

    def test_finished_run_ends_idle_stream(self, client, fake_redis):
        run = ScrapeRun(search_query='cafe', city='Tirana')
        run.status = 'done'
        run.save()
        body = client.get(f'/stream/scrape/{run.id}').get_data(as_text=True)
        assert body == END_OF_STREAM

    def test_unknown_run_ends_idle_stream(self, client):
        body = client.get('/stream/scrape/never-existed').get_data(as_text=True)
        assert body == END_OF_STREAM

    def test_idle_running_run_gets_keep_alive(self, client, fake_redis):
        run = ScrapeRun(search_query='cafe', city='Tirana').save()
        calls = {'n': 0}

        def load(run_id):
            calls['n'] += 1
            if calls['n'] == 1:
                return run
            return None

        with patch('app.routes.scrape.ScrapeRun.load', side_effect=load):
            body = client.get(f'/stream/scrape/{run.id}').get_data(as_text=True)
        assert body == ': keep-alive\n\n' + END_OF_STREAM
