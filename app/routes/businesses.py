"""
Business routes — browse, flag, delete, outreach lists, CSV export.
"""
import csv
import io
import logging
from datetime import datetime
from flask import Blueprint, request, jsonify, Response

from app.services.db import (
    list_businesses, export_businesses, update_outreach_flags, delete_business,
    email_list, phone_list, OUTREACH_FLAGS, SEND_FILTERS,
)

logger = logging.getLogger('routes.businesses')

bp = Blueprint('businesses', __name__)

EXPORT_COLUMNS = [
    'name', 'category_name', 'phone', 'emails', 'website', 'address', 'neighborhood', 'city',
    'rating', 'review_count', 'instagram', 'facebook', 'maps_url',
    'email_sent', 'sms_sent', 'search_query', 'scraped_at',
]


def _page_args(default_limit: int):
    page = max(request.args.get('page', 1, type=int) or 1, 1)
    limit = max(request.args.get('limit', default_limit, type=int) or default_limit, 1)
    return page, limit


def _send_filter() -> str:
    value = request.args.get('filter', 'not_sent')
    return value if value in SEND_FILTERS else 'not_sent'


@bp.route('/api/businesses')
def get_businesses():
    page, limit = _page_args(10)
    try:
        return jsonify(list_businesses(
            page=page,
            limit=limit,
            search_query=request.args.get('search_query', ''),
            name=request.args.get('name', ''),
            sort_by=request.args.get('sort_by', 'created_at'),
            sort_order=request.args.get('sort_order', 'desc'),
        ))
    except Exception as e:
        logger.error("Business query failed: %s", e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error occurred'}), 500


@bp.route('/api/businesses/<business_id>', methods=['PATCH'])
def patch_business(business_id):
    """Only the outreach flags can be changed here."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({'error': 'JSON body with email_sent and/or sms_sent is required'}), 400

    unknown = sorted(set(data) - set(OUTREACH_FLAGS))
    if unknown:
        return jsonify({'error': f"Only {', '.join(OUTREACH_FLAGS)} can be updated (got: {', '.join(unknown)})"}), 400
    if not all(isinstance(v, bool) for v in data.values()):
        return jsonify({'error': 'Flag values must be true or false'}), 400

    try:
        business = update_outreach_flags(business_id, data)
    except Exception as e:
        logger.error("Flag update for %s failed: %s", business_id, e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error occurred'}), 500
    if business is None:
        return jsonify({'error': 'Business not found'}), 404
    return jsonify(business)


@bp.route('/api/businesses/<business_id>', methods=['DELETE'])
def remove_business(business_id):
    try:
        deleted = delete_business(business_id)
    except Exception as e:
        logger.error("Delete of %s failed: %s", business_id, e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error occurred'}), 500
    if not deleted:
        return jsonify({'error': 'Business not found'}), 404
    return jsonify({'success': True, 'id': business_id})


@bp.route('/api/businesses/email-list')
def get_email_list():
    page, limit = _page_args(50)
    try:
        return jsonify(email_list(send_filter=_send_filter(), page=page, limit=limit))
    except Exception as e:
        logger.error("Email list query failed: %s", e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error'}), 500


@bp.route('/api/businesses/phone-list')
def get_phone_list():
    page, limit = _page_args(500)
    try:
        return jsonify(phone_list(
            send_filter=_send_filter(),
            page=page,
            limit=limit,
            no_website=request.args.get('noWebsite') == 'true',
        ))
    except Exception as e:
        logger.error("Phone list query failed: %s", e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error'}), 500


def _csv_value(value):
    if value is None:
        return ''
    if isinstance(value, list):
        return '; '.join(str(v) for v in value if v)
    return value


@bp.route('/api/businesses/export')
def export_csv():
    rows = export_businesses(
        search_query=request.args.get('search_query', ''),
        name=request.args.get('name', ''),
        sort_by=request.args.get('sort_by', 'created_at'),
        sort_order=request.args.get('sort_order', 'desc'),
    )

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, extrasaction='ignore')
    writer.writeheader()
    for row in rows:
        writer.writerow({col: _csv_value(row.get(col)) for col in EXPORT_COLUMNS})

    filename = f"businesses_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    logger.info("Exported %d businesses", len(rows))
    return Response(
        buffer.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )
