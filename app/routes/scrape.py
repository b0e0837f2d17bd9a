"""
Scrape routes — launch a scrape, inspect runs, live log stream (SSE).
"""
import logging
from flask import Blueprint, request, jsonify, Response, stream_with_context

from app.config import NEIGHBORHOODS, SSE_POLL_SECS
from app.extensions import redis_client
from app.models.run import ScrapeRun
from app.pipeline.manager import (
    parse_scrape_request, error_response, run_scrape, launch_scrape, get_run_status,
)
from app.pipeline.relay import channel_for, format_sse, END_OF_STREAM

logger = logging.getLogger('routes.scrape')

bp = Blueprint('scrape', __name__)


@bp.route('/api/scrape-businesses', methods=['POST'])
def scrape_businesses():
    """Run a scrape. Synchronous unless the body asks for `background`."""
    data = request.get_json(silent=True) or {}
    req, error = parse_scrape_request(data)
    if error:
        return jsonify(error_response(error)), 400

    try:
        if req.background:
            run = launch_scrape(req)
            return jsonify({
                'success': True,
                'message': f'Scrape queued for "{req.search_query}" in {req.city}',
                'run_id': run.id,
            }), 202

        body, status = run_scrape(req)
        return jsonify(body), status

    except Exception as e:
        logger.error("Scrape request failed: %s", e, exc_info=True)
        return jsonify(error_response(str(e) or 'Unknown error occurred')), 500


@bp.route('/api/scrape-runs')
def list_scrape_runs():
    """List recent scrape runs."""
    limit = request.args.get('limit', 20, type=int)
    runs = ScrapeRun.list_recent(limit=limit)
    return jsonify([run.to_dict() for run in runs])


@bp.route('/api/scrape-runs/<run_id>')
def get_scrape_run(run_id):
    status = get_run_status(run_id)
    if not status:
        return jsonify({'error': 'Run not found'}), 404
    return jsonify(status)


@bp.route('/api/neighborhoods')
def list_neighborhoods():
    return jsonify([{'index': i, 'name': name} for i, name in enumerate(NEIGHBORHOODS)])


@bp.route('/stream/scrape/<run_id>')
def stream_scrape_logs(run_id):
    """
    SSE stream of a run's log lines.

    Only lines published after the viewer connects are delivered. Heartbeats
    are sent on as SSE keep-alive comments; the stream ends on the run's end
    marker, or when an idle poll finds the run already finished.
    """
    def generate():
        pubsub = redis_client.pubsub()
        pubsub.subscribe(channel_for(run_id))
        try:
            while True:
                message = pubsub.get_message(ignore_subscribe_messages=True, timeout=SSE_POLL_SECS)
                if message is None:
                    run = ScrapeRun.load(run_id)
                    if run is None or run.is_terminal:
                        yield END_OF_STREAM
                        break
                    yield ": keep-alive\n\n"
                    continue
                if message.get('type') != 'message':
                    continue

                frame = format_sse(message.get('data'))
                if frame is None:
                    # Heartbeat or junk frame
                    yield ": keep-alive\n\n"
                    continue
                yield frame
                if frame == END_OF_STREAM:
                    break
        finally:
            try:
                pubsub.unsubscribe()
                pubsub.close()
            except Exception as e:
                logger.debug("SSE cleanup for %s failed: %s", run_id, e)

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )
