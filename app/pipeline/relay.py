"""
Scrape log relay — Redis pub/sub side channel for live run progress.

One LogRelay per run. The channel is `scrape-logs:{run_id}`; every message is
a JSON envelope:

    {"event": "log", "payload": {"message": ..., "type": ..., "timestamp": ...}}
    {"event": "heartbeat", "payload": {}}
    {"event": "end"}

Delivery is at-most-once with no backlog: a viewer that subscribes late never
sees earlier lines. The relay is best-effort — nothing it does may fail the run.
"""
import json
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Optional

from app.config import RELAY_HEARTBEAT_SECS, RELAY_JOIN_TIMEOUT_SECS

logger = logging.getLogger('pipeline.relay')

CHANNEL_PREFIX = 'scrape-logs'

LOG_KINDS = ('info', 'success', 'error', 'item-new', 'item-update', 'item-skip')


class RelayError(Exception):
    """Raised internally when the relay channel cannot be joined."""


def channel_for(run_id: str) -> str:
    return f'{CHANNEL_PREFIX}:{run_id}'


class LogRelay:
    """
    Run-scoped log relay.

    Usage:
        with LogRelay(run_id, redis_client) as relay:
            relay.publish("Starting", "info")

    Without a run_id (or a Redis client) the relay only writes to the process
    log — there is no channel and no heartbeat.
    """

    def __init__(self, run_id: Optional[str] = None, redis_client=None,
                 heartbeat_interval: float = RELAY_HEARTBEAT_SECS,
                 join_timeout: float = RELAY_JOIN_TIMEOUT_SECS):
        self.run_id = run_id
        self.redis = redis_client
        self.heartbeat_interval = heartbeat_interval
        self.join_timeout = join_timeout
        self._pubsub = None
        self._stop = threading.Event()
        self._heartbeat_thread: Optional[threading.Thread] = None
        self._open = False
        self._closed = False

    @property
    def channel(self) -> Optional[str]:
        return channel_for(self.run_id) if self.run_id else None

    @property
    def is_open(self) -> bool:
        return self._open

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def open(self) -> 'LogRelay':
        """
        Join the run channel and start the heartbeat.

        Blocks until Redis acknowledges the subscription so that nothing is
        published into a channel we have not confirmed. The subscription is
        dropped once acknowledged; the relay never reads its own channel. If
        the join fails the relay degrades to process-log only.
        """
        if self._open or self._closed or not self.run_id or self.redis is None:
            return self

        try:
            self._pubsub = self.redis.pubsub()
            self._pubsub.subscribe(self.channel)
            self._await_join()
        except Exception as e:
            logger.warning("Log relay for run %s disabled: %s", self.run_id, e)
            self._release_pubsub()
            return self

        # Only the join needs the subscription
        self._release_pubsub()
        self._open = True
        self._heartbeat_thread = threading.Thread(
            target=self._heartbeat_loop,
            name=f'relay-heartbeat-{self.run_id[:8]}',
            daemon=True,
        )
        self._heartbeat_thread.start()
        logger.debug("Relay joined %s", self.channel)
        return self

    def close(self):
        """Stop the heartbeat and send the end marker. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        self._stop.set()
        if self._heartbeat_thread is not None:
            self._heartbeat_thread.join()
            self._heartbeat_thread = None

        if self._open:
            self._send({'event': 'end'})
            self._open = False

        self._release_pubsub()

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ── Publishing ────────────────────────────────────────────────────────

    def publish(self, message: str, kind: str = 'info', timestamp: Optional[str] = None):
        """Publish one log line. Always echoed to the process log; never raises."""
        if kind not in LOG_KINDS:
            logger.warning("Unknown log kind %r — sending as info", kind)
            kind = 'info'

        level = logging.ERROR if kind == 'error' else logging.INFO
        logger.log(level, "%s", message, extra={'run_id': self.run_id})

        if not self._open:
            return
        self._send({
            'event': 'log',
            'payload': {
                'message': message,
                'type': kind,
                'timestamp': timestamp or datetime.now(timezone.utc).isoformat(),
            },
        })

    def heartbeat(self):
        """Keep-alive frame — viewers must not render it."""
        if self._open:
            self._send({'event': 'heartbeat', 'payload': {}})

    # ── Internals ─────────────────────────────────────────────────────────

    def _await_join(self):
        deadline = time.monotonic() + self.join_timeout
        while time.monotonic() < deadline:
            message = self._pubsub.get_message(timeout=0.1)
            if message and message.get('type') == 'subscribe':
                return
        raise RelayError(f"no subscribe ack on {self.channel} after {self.join_timeout}s")

    def _heartbeat_loop(self):
        while not self._stop.wait(self.heartbeat_interval):
            self.heartbeat()

    def _send(self, envelope: dict):
        try:
            self.redis.publish(self.channel, json.dumps(envelope))
        except Exception as e:
            logger.debug("Relay publish to %s failed: %s", self.channel, e)

    def _release_pubsub(self):
        if self._pubsub is None:
            return
        try:
            self._pubsub.unsubscribe()
            self._pubsub.close()
        except Exception as e:
            logger.debug("Relay cleanup for %s failed: %s", self.channel, e)
        finally:
            self._pubsub = None


# ── Viewer side (SSE) ─────────────────────────────────────────────────────────

END_OF_STREAM = 'event: end\ndata: {}\n\n'


def format_sse(raw) -> Optional[str]:
    """
    Turn one relay envelope into an SSE frame.

    Returns None for frames the viewer must not see (heartbeats, junk) and
    END_OF_STREAM for the end marker.
    """
    try:
        envelope = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(envelope, dict):
        return None

    event = envelope.get('event')
    if event == 'end':
        return END_OF_STREAM
    if event != 'log':
        return None
    return f"data: {json.dumps(envelope.get('payload') or {})}\n\n"
