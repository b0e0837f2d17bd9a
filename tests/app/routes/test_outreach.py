"""Tests for the outreach routes — bulk sends and SMS.to pass-throughs."""
from unittest.mock import patch, MagicMock

from app.services.sms import SmsError


class TestSendSms:

    def test_requires_ids(self, client):
        resp = client.post('/api/send-sms', json={'businessIds': []})
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'businessIds array is required'

    @patch('app.services.sms.SMSTO_API_KEY', None)
    def test_not_configured(self, client):
        resp = client.post('/api/send-sms', json={'businessIds': ['b1']})
        assert resp.status_code == 500
        assert 'SMSTO_API_KEY' in resp.get_json()['error']

    @patch('app.routes.outreach.send_sms_campaign')
    @patch('app.services.sms.SMSTO_API_KEY', 'key')
    def test_runs_campaign(self, mock_campaign, client):
        mock_campaign.return_value = {'sent': 1, 'failed': 0, 'errors': []}
        resp = client.post('/api/send-sms', json={'businessIds': ['b1']})
        assert resp.status_code == 200
        assert resp.get_json()['sent'] == 1
        assert mock_campaign.call_args.args[0] == ['b1']


class TestSendEmails:

    def test_requires_ids(self, client):
        assert client.post('/api/send-emails', json={}).status_code == 400

    @patch('app.routes.outreach.SmtpMailer')
    def test_not_configured(self, MockMailer, client):
        MockMailer.return_value.configured = False
        resp = client.post('/api/send-emails', json={'businessIds': ['b1']})
        assert resp.status_code == 500

    @patch('app.routes.outreach.send_email_campaign')
    @patch('app.routes.outreach.SmtpMailer')
    def test_runs_campaign(self, MockMailer, mock_campaign, client):
        MockMailer.return_value.configured = True
        mock_campaign.return_value = {'sent': 2, 'failed': 1, 'errors': ['x']}
        resp = client.post('/api/send-emails', json={'businessIds': ['b1', 'b2', 'b3']})
        assert resp.get_json() == {'sent': 2, 'failed': 1, 'errors': ['x']}


class TestSmsAccount:

    @patch('app.routes.outreach.SmsToClient')
    def test_balance(self, MockClient, client):
        MockClient.return_value.configured = True
        MockClient.return_value.balance.return_value = {'balance': 3.2}
        assert client.get('/api/sms-balance').get_json() == {'balance': 3.2}

    @patch('app.routes.outreach.SmsToClient')
    def test_provider_status_is_passed_through(self, MockClient, client):
        MockClient.return_value.configured = True
        MockClient.return_value.balance.side_effect = SmsError(401, 'Unauthenticated')
        resp = client.get('/api/sms-balance')
        assert resp.status_code == 401
        assert 'Unauthenticated' in resp.get_json()['error']

    @patch('app.routes.outreach.SmsToClient')
    def test_messages_query_args(self, MockClient, client):
        MockClient.return_value.configured = True
        MockClient.return_value.list_messages.return_value = {'data': []}
        client.get('/api/sms-messages?limit=5&page=3&status=FAILED')
        MockClient.return_value.list_messages.assert_called_once_with(limit=5, page=3, status='FAILED')
