"""
Outreach campaigns — sequential, throttled email and SMS sends.

Each business is contacted once: only businesses whose flag is still unset
are picked up, and the flag is set only after the provider accepted the
message. Sends are spaced by a fixed delay (none after the last one).
"""
import logging
import time
from typing import Callable, Dict, Iterable, Iterator, List, Any, TypeVar

from app.config import SMS_DELAY_SECS, EMAIL_DELAY_SECS
from app.services.db import get_sms_candidates, get_email_candidates, mark_sms_sent, mark_email_sent
from app.services.mailer import SmtpMailer
from app.services.sms import SmsToClient, normalize_phone, render_sms

logger = logging.getLogger('services.outreach')

T = TypeVar('T')


def throttled(items: Iterable[T], delay: float, sleep: Callable[[float], Any] = time.sleep) -> Iterator[T]:
    """Yield items, sleeping `delay` seconds between consecutive items."""
    first = True
    for item in items:
        if not first and delay > 0:
            sleep(delay)
        first = False
        yield item


def _empty_result(reason: str) -> Dict[str, Any]:
    return {'sent': 0, 'failed': 0, 'errors': [reason]}


def send_sms_campaign(business_ids: List[str], client: SmsToClient = None,
                      delay: float = SMS_DELAY_SECS, sleep=time.sleep) -> Dict[str, Any]:
    client = client or SmsToClient()
    candidates = get_sms_candidates(business_ids)
    if not candidates:
        return _empty_result('No eligible businesses found (they may have already been messaged or lack phone numbers)')

    sent, failed, errors = 0, 0, []
    for business_id, name, phone in throttled(candidates, delay, sleep):
        to = normalize_phone(phone)
        try:
            client.send(to, render_sms(name))
        except Exception as e:
            failed += 1
            errors.append(f"{name} ({to}): {e}")
            logger.error("SMS to %s failed: %s", name, e)
            continue
        mark_sms_sent(business_id)
        sent += 1
        logger.info("Sent SMS %d/%d: %s (%s)", sent, len(candidates), name, to)

    return {'sent': sent, 'failed': failed, 'errors': errors}


def send_email_campaign(business_ids: List[str], mailer: SmtpMailer = None,
                        delay: float = EMAIL_DELAY_SECS, sleep=time.sleep) -> Dict[str, Any]:
    mailer = mailer or SmtpMailer()
    candidates = get_email_candidates(business_ids)
    if not candidates:
        return _empty_result('No eligible businesses found (they may have already been emailed or lack email addresses)')

    sent, failed, errors = 0, 0, []
    with mailer:
        for business_id, name, email in throttled(candidates, delay, sleep):
            try:
                mailer.send(email)
            except Exception as e:
                failed += 1
                errors.append(f"{name} ({email}): {e}")
                logger.error("Email to %s failed: %s", name, e)
                continue
            mark_email_sent(business_id)
            sent += 1
            logger.info("Sent email %d/%d: %s (%s)", sent, len(candidates), name, email)

    return {'sent': sent, 'failed': failed, 'errors': errors}
