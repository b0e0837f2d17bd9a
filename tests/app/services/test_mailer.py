"""Tests for app.services.mailer — SMTP connection handling and message shape."""
from unittest.mock import patch

from app.services.mailer import SmtpMailer, EMAIL_TEXT


def _mailer(port=587):
    return SmtpMailer(host='smtp.example.com', port=port, user='me@example.com', password='pw')


class TestConfigured:

    def test_all_settings_required(self):
        assert _mailer().configured
        assert not SmtpMailer(host=None, port=587, user='u', password='p').configured
        assert not SmtpMailer(host='h', port=None, user='u', password='p').configured


class TestConnection:

    @patch('app.services.mailer.smtplib.SMTP')
    def test_starttls_on_587(self, mock_smtp):
        with _mailer(587):
            pass
        mock_smtp.assert_called_once_with('smtp.example.com', 587, timeout=30)
        conn = mock_smtp.return_value
        conn.starttls.assert_called_once()
        conn.login.assert_called_once_with('me@example.com', 'pw')
        conn.quit.assert_called_once()

    @patch('app.services.mailer.smtplib.SMTP_SSL')
    def test_implicit_tls_on_465(self, mock_ssl):
        with _mailer('465'):
            pass
        mock_ssl.assert_called_once_with('smtp.example.com', 465, timeout=30)
        mock_ssl.return_value.starttls.assert_not_called()

    @patch('app.services.mailer.smtplib.SMTP')
    def test_send_uses_open_connection(self, mock_smtp):
        with _mailer() as mailer:
            mailer.send('owner@cafe.al')
        msg = mock_smtp.return_value.send_message.call_args.args[0]
        assert msg['To'] == 'owner@cafe.al'


class TestBuildMessage:

    def test_headers(self):
        msg = _mailer().build_message('owner@cafe.al')
        assert msg['To'] == 'owner@cafe.al'
        assert msg['Bcc'] == 'me@example.com'
        assert msg['Reply-To']
        assert msg['Subject']

    def test_text_and_html_parts(self):
        msg = _mailer().build_message('owner@cafe.al')
        assert msg.is_multipart()
        types = [part.get_content_type() for part in msg.iter_parts()]
        assert types == ['text/plain', 'text/html']
        assert msg.get_body(('plain',)).get_content().strip() == EMAIL_TEXT.strip()
