from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from pydantic import ValidationError
from typing import Dict, Any, List
import threading

from arena import socketio
from arena.schemas import PresenceMeta
from arena.transport import WS_NAMESPACE, presence_snapshot


# ---- Relay state: which socket tracks what, per channel ----
# The relay holds no game state; it only mirrors presence and fans out broadcasts.

_state_lock = threading.Lock()
_sid_to_channels: Dict[str, set] = {}
_presence: Dict[str, Dict[str, Dict[str, Any]]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room(channel: str) -> str:
    return f"channel:{channel}"


def _channel_from(data) -> str:
    channel = (data or {}).get('channel')
    if not isinstance(channel, str) or not channel.strip():
        return ''
    return channel.strip()


def channel_members(channel: str) -> List[Dict[str, Any]]:
    with _state_lock:
        return [dict(m) for m in _presence.get(channel, {}).values()]


def active_channels() -> Dict[str, int]:
    with _state_lock:
        return {name: len(metas) for name, metas in _presence.items()}


def reset_relay_state() -> None:
    with _state_lock:
        _sid_to_channels.clear()
        _presence.clear()


def _sync_presence(channel: str) -> None:
    members = presence_snapshot(channel_members(channel))
    # socketio.emit since this may run outside the sender's request context
    socketio.emit('presence_sync', {'channel': channel, 'members': members}, to=_room(channel), namespace=WS_NAMESPACE)


def _drop_presence(sid: str, channel: str) -> bool:
    with _state_lock:
        metas = _presence.get(channel)
        removed = metas.pop(sid, None) if metas is not None else None
        if metas is not None and not metas:
            _presence.pop(channel, None)
        joined = _sid_to_channels.get(sid)
        if joined is not None:
            joined.discard(channel)
    return removed is not None


# ---- Handlers ----

def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    sid = _get_sid()
    with _state_lock:
        channels = _sid_to_channels.pop(sid, set())
    for channel in channels:
        if _drop_presence(sid, channel):
            current_app.logger.info(f"[presence-leave] channel={channel} sid={sid} reason=disconnect")
            _sync_presence(channel)


def handle_join_channel(data):
    channel = _channel_from(data)
    if not channel:
        emit('error', {'message': 'channel is required'})
        return
    join_room(_room(channel))
    with _state_lock:
        _sid_to_channels.setdefault(_get_sid(), set()).add(channel)
    emit('joined', {'channel': channel})
    # Late joiners need the current membership straight away
    emit('presence_sync', {'channel': channel, 'members': presence_snapshot(channel_members(channel))})


def handle_track(data):
    channel = _channel_from(data)
    if not channel:
        emit('error', {'message': 'channel is required'})
        return
    try:
        meta = PresenceMeta.model_validate((data or {}).get('meta'))
    except ValidationError:
        emit('error', {'message': 'meta must carry user_id, name and team (ALPHA or BETA)'})
        return
    sid = _get_sid()
    join_room(_room(channel))
    with _state_lock:
        _sid_to_channels.setdefault(sid, set()).add(channel)
        _presence.setdefault(channel, {})[sid] = meta.model_dump()
    current_app.logger.info(f"[presence-track] channel={channel} user={meta.user_id} team={meta.team}")
    _sync_presence(channel)


def handle_broadcast(data):
    channel = _channel_from(data)
    event = (data or {}).get('event')
    if not channel or not isinstance(event, str) or not event:
        emit('error', {'message': 'channel and event are required'})
        return
    with _state_lock:
        joined = channel in _sid_to_channels.get(_get_sid(), set())
    if not joined:
        emit('error', {'message': f'join channel {channel} before broadcasting'})
        return
    # Best effort fan-out; the sender does not get its own message back
    emit(
        'broadcast',
        {'channel': channel, 'event': event, 'payload': (data or {}).get('payload')},
        to=_room(channel),
        include_self=False,
    )


def handle_leave_channel(data):
    channel = _channel_from(data)
    if not channel:
        emit('error', {'message': 'channel is required'})
        return
    sid = _get_sid()
    leave_room(_room(channel))
    removed = _drop_presence(sid, channel)
    emit('left', {'channel': channel})
    if removed:
        current_app.logger.info(f"[presence-leave] channel={channel} sid={sid} reason=leave")
        _sync_presence(channel)


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [WS_NAMESPACE] + (['/'] if testing else [])
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('disconnect', handle_disconnect, namespace=ns)
        socketio.on_event('join_channel', handle_join_channel, namespace=ns)
        socketio.on_event('track', handle_track, namespace=ns)
        socketio.on_event('broadcast', handle_broadcast, namespace=ns)
        socketio.on_event('leave_channel', handle_leave_channel, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
