"""
Outreach routes — bulk SMS / email sends and SMS.to account pass-throughs.
"""
import logging
from flask import Blueprint, request, jsonify

from app.services.mailer import SmtpMailer
from app.services.outreach import send_sms_campaign, send_email_campaign
from app.services.sms import SmsToClient, SmsError

logger = logging.getLogger('routes.outreach')

bp = Blueprint('outreach', __name__)

SMS_NOT_CONFIGURED = 'SMSTO_API_KEY environment variable is not configured'


def _business_ids():
    data = request.get_json(silent=True) or {}
    ids = data.get('businessIds')
    if not isinstance(ids, list) or not ids:
        return None
    return ids


@bp.route('/api/send-sms', methods=['POST'])
def send_sms():
    business_ids = _business_ids()
    if business_ids is None:
        return jsonify({'error': 'businessIds array is required'}), 400

    client = SmsToClient()
    if not client.configured:
        return jsonify({'error': SMS_NOT_CONFIGURED}), 500

    try:
        return jsonify(send_sms_campaign(business_ids, client))
    except Exception as e:
        logger.error("SMS campaign failed: %s", e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error'}), 500


@bp.route('/api/send-emails', methods=['POST'])
def send_emails():
    business_ids = _business_ids()
    if business_ids is None:
        return jsonify({'error': 'businessIds array is required'}), 400

    mailer = SmtpMailer()
    if not mailer.configured:
        return jsonify({'error': 'SMTP environment variables are not configured'}), 500

    try:
        return jsonify(send_email_campaign(business_ids, mailer))
    except Exception as e:
        logger.error("Email campaign failed: %s", e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error'}), 500


@bp.route('/api/sms-balance')
def sms_balance():
    client = SmsToClient()
    if not client.configured:
        return jsonify({'error': SMS_NOT_CONFIGURED}), 500
    try:
        return jsonify(client.balance())
    except SmsError as e:
        return jsonify({'error': str(e)}), e.status_code
    except Exception as e:
        logger.error("SMS balance lookup failed: %s", e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error'}), 500


@bp.route('/api/sms-messages')
def sms_messages():
    client = SmsToClient()
    if not client.configured:
        return jsonify({'error': SMS_NOT_CONFIGURED}), 500
    try:
        return jsonify(client.list_messages(
            limit=request.args.get('limit', 25, type=int),
            page=request.args.get('page', 1, type=int),
            status=request.args.get('status', ''),
        ))
    except SmsError as e:
        return jsonify({'error': str(e)}), e.status_code
    except Exception as e:
        logger.error("SMS message listing failed: %s", e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error'}), 500
