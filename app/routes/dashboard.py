"""
Dashboard routes — health check, business stats API.
"""
import logging
from flask import Blueprint, jsonify

from app.services.stats import get_business_stats

logger = logging.getLogger('routes.dashboard')

bp = Blueprint('dashboard', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/stats')
def get_stats():
    """API endpoint for dashboard stats."""
    try:
        return jsonify(get_business_stats())
    except Exception as e:
        logger.error("Error generating stats: %s", e, exc_info=True)
        return jsonify({'error': str(e) or 'Unknown error occurred'}), 500
