"""
SMS.to API client — send, balance, message history.
"""
import logging
import re
import requests
from typing import Dict, Any, Optional

from app.config import SMSTO_API_KEY, SMSTO_API_URL, SMSTO_AUTH_URL, SMS_SENDER_ID, SMS_TEMPLATE

logger = logging.getLogger('services.sms')

REQUEST_TIMEOUT = 30

_PHONE_NOISE = re.compile(r'[\s\-()]')


class SmsError(Exception):
    """Non-2xx answer from SMS.to. Carries the provider's status code."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"SMS.to API error ({status_code}): {body}")


def normalize_phone(phone: str) -> str:
    """Strip spaces, dashes and parentheses; ensure a leading '+'."""
    phone = _PHONE_NOISE.sub('', phone or '')
    return phone if phone.startswith('+') else f'+{phone}'


def render_sms(business_name: str) -> str:
    return SMS_TEMPLATE.format(name=business_name)


class SmsToClient:

    def __init__(self, api_key: Optional[str] = None, sender_id: str = SMS_SENDER_ID,
                 api_url: str = SMSTO_API_URL, auth_url: str = SMSTO_AUTH_URL):
        self.api_key = api_key or SMSTO_API_KEY
        self.sender_id = sender_id
        self.api_url = api_url.rstrip('/')
        self.auth_url = auth_url.rstrip('/')

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }

    @staticmethod
    def _checked(response: requests.Response) -> Dict[str, Any]:
        if not response.ok:
            logger.error("SMS.to returned %d: %s", response.status_code, response.text)
            raise SmsError(response.status_code, response.text)
        return response.json()

    def send(self, to: str, message: str) -> Dict[str, Any]:
        """Send one SMS. `to` must already be normalized."""
        logger.info("Sending SMS to %s (%d chars, sender_id=%s)", to, len(message), self.sender_id)
        response = requests.post(
            f'{self.api_url}/sms/send',
            json={'message': message, 'to': to, 'sender_id': self.sender_id},
            headers=self._headers(),
            timeout=REQUEST_TIMEOUT,
        )
        return self._checked(response)

    def balance(self) -> Dict[str, Any]:
        response = requests.get(f'{self.auth_url}/api/balance', headers=self._headers(), timeout=REQUEST_TIMEOUT)
        return self._checked(response)

    def list_messages(self, limit: int = 25, page: int = 1, status: str = '') -> Dict[str, Any]:
        """Most recent first."""
        params = {
            'limit': limit,
            'page': page,
            'order_direction': 'desc',
            'order_by': 'created_at',
        }
        if status:
            params['status'] = status
        response = requests.get(f'{self.api_url}/v2/messages', params=params,
                                headers=self._headers(), timeout=REQUEST_TIMEOUT)
        return self._checked(response)
