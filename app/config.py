"""
Centralized configuration — env vars, pipeline constants, neighborhood list.
"""
import os


# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Apify (Google Maps scraper actor) ────────────────────────────────────────
APIFY_API_TOKEN = os.getenv('APIFY_API_TOKEN') or os.getenv('APIFY_API_KEY')
GOOGLE_MAPS_SCRAPER_ACTOR = os.getenv('GOOGLE_MAPS_SCRAPER_ACTOR', 'nwua9Gu5YrADL7ZDj')
SCRAPE_LANGUAGE = os.getenv('SCRAPE_LANGUAGE', 'en')
DEFAULT_MAX_RESULTS = 100

# ── Ingestion ────────────────────────────────────────────────────────────────
INSERT_CHUNK_SIZE = 500     # backing store rejects larger batch writes
SAMPLE_SIZE = 5
FALLBACK_LATITUDE = float(os.getenv('FALLBACK_LATITUDE', '41.3275'))
FALLBACK_LONGITUDE = float(os.getenv('FALLBACK_LONGITUDE', '19.8187'))
SCRAPE_JOB_TIMEOUT = 3600

# ── Log relay ────────────────────────────────────────────────────────────────
RELAY_HEARTBEAT_SECS = float(os.getenv('RELAY_HEARTBEAT_SECS', '20'))
RELAY_JOIN_TIMEOUT_SECS = float(os.getenv('RELAY_JOIN_TIMEOUT_SECS', '5'))
SSE_POLL_SECS = 15

# ── SMS.to ───────────────────────────────────────────────────────────────────
SMSTO_API_KEY = os.getenv('SMSTO_API_KEY')
SMSTO_API_URL = 'https://api.sms.to'
SMSTO_AUTH_URL = 'https://auth.sms.to'
SMS_SENDER_ID = os.getenv('SMS_SENDER_ID', 'iProPixel')
SMS_DELAY_SECS = float(os.getenv('SMS_DELAY_SECS', '5'))
SMS_TEMPLATE = os.getenv(
    'SMS_TEMPLATE',
    'Pershendetje {name},\n\n'
    'Jemi iProPixel Solutions, agjenci e zhvillimit te faqeve web. '
    'Po ofrojme 80% zbritje per biznese lokale.\n\n'
    'Vizitoni: ipropixel.com\n'
    'WhatsApp: +355 68 227 7167\n\n'
    'Faleminderit!',
)

# ── SMTP ─────────────────────────────────────────────────────────────────────
SMTP_HOST = os.getenv('SMTP_HOST')
SMTP_PORT = os.getenv('SMTP_PORT')
SMTP_USER = os.getenv('SMTP_USER')
SMTP_PASS = os.getenv('SMTP_PASS')
EMAIL_FROM = os.getenv('EMAIL_FROM', '"iProPixel Solutions" <info@ipropixel.com>')
EMAIL_REPLY_TO = os.getenv('EMAIL_REPLY_TO', 'info@ipropixel.com')
EMAIL_SUBJECT = os.getenv(
    'EMAIL_SUBJECT',
    'Ofertë promocionale për përmirësimin ose krijimin e faqes web',
)
EMAIL_DELAY_SECS = float(os.getenv('EMAIL_DELAY_SECS', '8'))

# ── Sub-locality qualifiers (Tirana neighborhoods) ───────────────────────────
NEIGHBORHOODS = [
    'Blloku',
    'Qendra',
    'Komuna e Parisit',
    'Rruga e Kavajes',
    'Rruga e Durresit',
    '21 Dhjetori',
    'Lapraka',
    'Kombinat',
    'Don Bosko',
    'Selita',
    'Yzberisht',
    'Porcelan',
    'Astir',
    'Vasil Shanto',
    'Fresku',
    'Liqeni Artificial',
    'Sauk',
    'Kodra e Diellit',
    'Kinostudio',
    'Medreseja',
    'Ali Demi',
    'Rruga e Elbasanit',
    'Shkoza',
    'Bregu i Lumit',
    'Bathore',
    'Paskuqan',
]
