from flask import Blueprint, jsonify

from arena.services.game.presence import PresenceTracker
from arena.socketio_events import active_channels, channel_members


channels = Blueprint('channels', __name__)


@channels.route('/', methods=['GET'])
def list_channels():
    """
    Lists channels that currently have tracked members.
    """
    return jsonify([
        {'channel': name, 'members': count}
        for name, count in sorted(active_channels().items())
    ])


@channels.route('/<string:channel>/presence', methods=['GET'])
def get_presence(channel):
    """
    Returns the channel's members and the leader every peer will elect from them.
    """
    metas = channel_members(channel)
    if not metas:
        return jsonify({'error': 'Channel not found'}), 404

    tracker = PresenceTracker()
    tracker.sync(metas)
    members = sorted(tracker.current_members(), key=lambda m: m.id)
    return jsonify({
        'channel': channel,
        'members': [m.to_dict() for m in members],
        'leader_id': tracker.leader_id(),
        'team_counts': tracker.team_counts(),
    })
