"""Presence/broadcast transports a peer can run on.

Both adapters expose the same duck-typed surface used by
``GameOrchestrator``: ``subscribe``, ``track``, ``publish``, ``unsubscribe``,
``start_background_task`` and ``sleep``.

- ``LocalHub``/``LocalTransport``: in-process channels, delivered
  synchronously. Used by tests and ``flask arena-sim``.
- ``SocketIOTransport``: python-socketio client for the relay server's
  ``/ws`` namespace.
"""

import json
import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

import socketio

PresenceCallback = Callable[[Any], None]
BroadcastCallback = Callable[[str, Any], None]

WS_NAMESPACE = '/ws'


def _over_the_wire(payload: Any) -> Any:
    # Peers never share objects, only JSON
    return json.loads(json.dumps(payload))


class LocalHub:
    """A process-local stand-in for a hosted presence/broadcast service."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Dict[str, 'LocalTransport']] = {}
        self._tracked: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def join(self, channel: str, transport: 'LocalTransport') -> None:
        with self._lock:
            self._subscribers.setdefault(channel, {})[transport.key] = transport

    def track(self, channel: str, transport: 'LocalTransport', meta: Dict[str, Any]) -> None:
        with self._lock:
            self._tracked.setdefault(channel, {})[transport.key] = dict(meta)
        self._sync(channel)

    def leave(self, channel: str, transport: 'LocalTransport') -> None:
        with self._lock:
            self._subscribers.get(channel, {}).pop(transport.key, None)
            self._tracked.get(channel, {}).pop(transport.key, None)
            if not self._subscribers.get(channel):
                self._subscribers.pop(channel, None)
                self._tracked.pop(channel, None)
        self._sync(channel)

    def publish(self, channel: str, sender: 'LocalTransport', event: str, payload: Any) -> None:
        with self._lock:
            targets = [t for k, t in self._subscribers.get(channel, {}).items() if k != sender.key]
        for target in targets:
            target.deliver_broadcast(event, _over_the_wire(payload))

    def snapshot(self, channel: str) -> Dict[str, List[Dict[str, Any]]]:
        with self._lock:
            return presence_snapshot(self._tracked.get(channel, {}).values())

    def _sync(self, channel: str) -> None:
        with self._lock:
            targets = list(self._subscribers.get(channel, {}).values())
            snapshot = presence_snapshot(self._tracked.get(channel, {}).values())
        for target in targets:
            target.deliver_presence(_over_the_wire(snapshot))


def presence_snapshot(metas) -> Dict[str, List[Dict[str, Any]]]:
    """Group tracked metas by participant id, the shape peers receive."""
    snapshot: Dict[str, List[Dict[str, Any]]] = {}
    for meta in metas:
        snapshot.setdefault(str(meta.get('user_id')), []).append(dict(meta))
    return snapshot


class LocalTransport:
    def __init__(self, hub: LocalHub, key: Optional[str] = None):
        self.hub = hub
        self.key = key or str(uuid.uuid4())
        self.channel: Optional[str] = None
        self._on_presence: Optional[PresenceCallback] = None
        self._on_broadcast: Optional[BroadcastCallback] = None
        self._threads: List[threading.Thread] = []

    def subscribe(self, channel: str, on_presence_sync: PresenceCallback, on_broadcast: BroadcastCallback) -> None:
        self.channel = channel
        self._on_presence = on_presence_sync
        self._on_broadcast = on_broadcast
        self.hub.join(channel, self)

    def track(self, meta: Dict[str, Any]) -> None:
        self.hub.track(self._require_channel(), self, meta)

    def publish(self, channel: str, event: str, payload: Any) -> None:
        self.hub.publish(channel, self, event, payload)

    def unsubscribe(self) -> None:
        if self.channel is None:
            return
        channel, self.channel = self.channel, None
        self.hub.leave(channel, self)

    def deliver_presence(self, snapshot: Any) -> None:
        if self._on_presence is not None:
            self._on_presence(snapshot)

    def deliver_broadcast(self, event: str, payload: Any) -> None:
        if self._on_broadcast is not None:
            self._on_broadcast(event, payload)

    def start_background_task(self, target, *args, **kwargs) -> threading.Thread:
        thread = threading.Thread(target=target, args=args, kwargs=kwargs, daemon=True)
        self._threads.append(thread)
        thread.start()
        return thread

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def _require_channel(self) -> str:
        if self.channel is None:
            raise RuntimeError('subscribe() before track()')
        return self.channel


class SocketIOTransport:
    """Peer side of the relay server protocol."""

    def __init__(self, url: str, client: Optional[socketio.Client] = None, logger: Optional[logging.Logger] = None):
        self.url = url
        self.client = client or socketio.Client(reconnection=True)
        self.logger = logger or logging.getLogger(__name__)
        self.channel: Optional[str] = None
        self._meta: Optional[Dict[str, Any]] = None

    def subscribe(self, channel: str, on_presence_sync: PresenceCallback, on_broadcast: BroadcastCallback) -> None:
        self.channel = channel

        def _on_connect():
            self.client.emit('join_channel', {'channel': channel}, namespace=WS_NAMESPACE)
            # Presence is tied to the socket, so announce again after a reconnect
            if self._meta is not None:
                self.client.emit('track', {'channel': channel, 'meta': self._meta}, namespace=WS_NAMESPACE)

        def _on_presence(data):
            if (data or {}).get('channel') == channel:
                on_presence_sync(data.get('members') or {})

        def _on_broadcast(data):
            if (data or {}).get('channel') == channel:
                on_broadcast(data.get('event'), data.get('payload'))

        def _on_error(data):
            self.logger.warning(f"[relay-error] channel={channel} message={(data or {}).get('message')}")

        def _on_disconnect(*args):
            self.logger.info(f"[relay-disconnect] channel={channel}")

        self.client.on('connect', _on_connect, namespace=WS_NAMESPACE)
        self.client.on('presence_sync', _on_presence, namespace=WS_NAMESPACE)
        self.client.on('broadcast', _on_broadcast, namespace=WS_NAMESPACE)
        self.client.on('error', _on_error, namespace=WS_NAMESPACE)
        self.client.on('disconnect', _on_disconnect, namespace=WS_NAMESPACE)
        self.client.connect(self.url, namespaces=[WS_NAMESPACE])

    def track(self, meta: Dict[str, Any]) -> None:
        self._meta = dict(meta)
        self.client.emit('track', {'channel': self.channel, 'meta': self._meta}, namespace=WS_NAMESPACE)

    def publish(self, channel: str, event: str, payload: Any) -> None:
        self.client.emit('broadcast', {'channel': channel, 'event': event, 'payload': payload}, namespace=WS_NAMESPACE)

    def unsubscribe(self) -> None:
        if self.channel is None:
            return
        try:
            self.client.emit('leave_channel', {'channel': self.channel}, namespace=WS_NAMESPACE)
        finally:
            self.channel = None
            self.client.disconnect()

    def start_background_task(self, target, *args, **kwargs):
        return self.client.start_background_task(target, *args, **kwargs)

    def sleep(self, seconds: float) -> None:
        self.client.sleep(seconds)
