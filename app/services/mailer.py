"""
SMTP mailer for the outreach email campaign.

One SMTP connection per campaign. Port 465 uses implicit TLS, anything else
is upgraded with STARTTLS. The SMTP user is BCC'd on every message so the
sent campaign shows up in the operator's mailbox.
"""
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from app.config import (
    SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS,
    EMAIL_FROM, EMAIL_REPLY_TO, EMAIL_SUBJECT,
)

logger = logging.getLogger('services.mailer')

SMTP_TIMEOUT = 30

EMAIL_TEXT = """Përshëndetje,

Shpresoj t'ju gjej mirë.

Jemi iProPixel Solutions, një agjenci e zhvillimit të faqeve web dhe aplikacioneve, dhe po kontaktojmë biznese lokale për t'ju ofruar mundësinë e krijimit ose përmirësimit të prezencës së tyre online.

Nëse aktualisht keni një faqe web, ne mund ta ridizajnojmë dhe përmirësojmë për ta bërë më moderne, më të shpejtë dhe më efektive për klientët tuaj. Nëse nuk keni ende një faqe web, mund t'ju krijojmë një website profesional nga fillimi, i personalizuar sipas nevojave tuaja.

Aktualisht po ofrojmë një promocion me 80% zbritje në shërbimet tona për një numër të kufizuar biznesesh.

Nëse jeni të interesuar, do të na vinte kënaqësi të diskutojmë më tej dhe t'ju prezantojmë disa shembuj pune.

Faleminderit për kohën tuaj,

iProPixel Solutions

Website: https://ipropixel.com
Tel / WhatsApp: +355 68 227 7167
Email: info@ipropixel.com

---
Digital Agency | Tiranë, Shqipëri
ipropixel.com | info@ipropixel.com | +355 68 227 7167
Nëse nuk dëshironi të merrni email të tjera, ju lutem na shkruani në info@ipropixel.com me subjektin "Unsubscribe".
"""

EMAIL_HTML = """<!DOCTYPE html>
<html lang="sq">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>iProPixel Solutions</title>
</head>
<body style="margin:0;padding:0;background-color:#f4f4f7;font-family:Arial,Helvetica,sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background-color:#f4f4f7;">
    <tr>
      <td align="center" style="padding:40px 20px;">
        <table role="presentation" width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff;border-radius:8px;">
          <tr>
            <td style="background-color:#1a1a2e;padding:32px 40px;text-align:center;">
              <h1 style="margin:0;color:#ffffff;font-size:24px;">iProPixel Solutions</h1>
              <p style="margin:8px 0 0;color:#a0a0c0;font-size:13px;">Digital Agency | Tiranë, Shqipëri</p>
            </td>
          </tr>
          <tr>
            <td style="padding:40px;color:#4a4a68;font-size:15px;line-height:1.6;">
              <h2 style="margin:0 0 20px;color:#1a1a2e;font-size:18px;">Përshëndetje,</h2>
              <p>Shpresoj t'ju gjej mirë.</p>
              <p>Jemi <strong>iProPixel Solutions</strong>, një agjenci e zhvillimit të faqeve web dhe aplikacioneve, dhe po kontaktojmë biznese lokale për t'ju ofruar mundësinë e krijimit ose përmirësimit të prezencës së tyre online.</p>
              <p>Nëse aktualisht keni një faqe web, ne mund ta ridizajnojmë dhe përmirësojmë për ta bërë më moderne, më të shpejtë dhe më efektive për klientët tuaj. Nëse nuk keni ende një faqe web, mund t'ju krijojmë një website profesional nga fillimi, i personalizuar sipas nevojave tuaja.</p>
              <p style="padding:16px 20px;background-color:#fff3e0;border-left:4px solid #ff9800;color:#e65100;font-weight:700;">
                Aktualisht po ofrojmë një promocion me 80% zbritje në shërbimet tona për një numër të kufizuar biznesesh.
              </p>
              <p>Nëse jeni të interesuar, do të na vinte kënaqësi të diskutojmë më tej dhe t'ju prezantojmë disa shembuj pune.</p>
              <p>Faleminderit për kohën tuaj,</p>
              <p style="color:#1a1a2e;font-weight:700;">iProPixel Solutions</p>
              <p>
                <a href="https://ipropixel.com" style="display:inline-block;padding:14px 32px;background-color:#1a1a2e;color:#ffffff;text-decoration:none;border-radius:6px;">Vizitoni Website</a>
                <a href="https://wa.me/355682277167" style="display:inline-block;padding:14px 32px;background-color:#25D366;color:#ffffff;text-decoration:none;border-radius:6px;">WhatsApp</a>
              </p>
            </td>
          </tr>
          <tr>
            <td style="background-color:#f9f9fc;padding:24px 40px;border-top:1px solid #e8e8f0;color:#8a8aa0;font-size:13px;text-align:center;">
              <p style="margin:0 0 8px;">ipropixel.com | info@ipropixel.com | +355 68 227 7167</p>
              <p style="margin:0;color:#b0b0c0;font-size:11px;">Nëse nuk dëshironi të merrni email të tjera, ju lutem na shkruani në info@ipropixel.com me subjektin "Unsubscribe".</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


class SmtpMailer:
    """
    Usage:
        with SmtpMailer() as mailer:
            mailer.send('someone@example.com')
    """

    def __init__(self, host: Optional[str] = SMTP_HOST, port=SMTP_PORT,
                 user: Optional[str] = SMTP_USER, password: Optional[str] = SMTP_PASS):
        self.host = host
        self.port = int(port) if port else None
        self.user = user
        self.password = password
        self._smtp = None

    @property
    def configured(self) -> bool:
        return bool(self.host and self.port and self.user and self.password)

    def __enter__(self):
        if self.port == 465:
            self._smtp = smtplib.SMTP_SSL(self.host, self.port, timeout=SMTP_TIMEOUT)
        else:
            self._smtp = smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT)
            self._smtp.starttls()
        self._smtp.login(self.user, self.password)
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            self._smtp.quit()
        except smtplib.SMTPException as e:
            logger.debug("SMTP quit failed: %s", e)
        finally:
            self._smtp = None
        return False

    def build_message(self, to: str) -> EmailMessage:
        msg = EmailMessage()
        msg['From'] = EMAIL_FROM
        msg['Reply-To'] = EMAIL_REPLY_TO
        msg['To'] = to
        msg['Bcc'] = self.user
        msg['Subject'] = EMAIL_SUBJECT
        msg.set_content(EMAIL_TEXT)
        msg.add_alternative(EMAIL_HTML, subtype='html')
        return msg

    def send(self, to: str):
        self._smtp.send_message(self.build_message(to))
