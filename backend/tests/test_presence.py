from arena.models import ALPHA, BETA, Participant
from arena.services.game.presence import PresenceTracker, elect, parse_snapshot


def _p(pid, team=ALPHA):
    return Participant(id=pid, name=pid.upper(), team=team)


def test_elect_smallest_id():
    assert elect({_p('c'), _p('a'), _p('b')}) == 'a'


def test_elect_empty_has_no_leader():
    assert elect(set()) is None
    assert elect([]) is None


def test_elect_is_order_independent():
    members = [_p('m'), _p('k'), _p('z')]
    assert elect(members) == elect(reversed(members)) == 'k'


def test_parse_snapshot_keyed_and_flat():
    keyed = {'a': [{'user_id': 'a', 'name': 'A', 'team': 'ALPHA'}], 'b': [{'user_id': 'b', 'name': 'B', 'team': 'BETA'}]}
    flat = [{'user_id': 'a', 'name': 'A', 'team': 'ALPHA'}, {'user_id': 'b', 'name': 'B', 'team': 'BETA'}]
    assert parse_snapshot(keyed) == parse_snapshot(flat) == {_p('a'), Participant('b', 'B', BETA)}


def test_parse_snapshot_drops_malformed_and_duplicates():
    snapshot = {
        'a': [{'user_id': 'a', 'name': 'A', 'team': 'ALPHA'}, {'user_id': 'a', 'name': 'A', 'team': 'ALPHA'}],
        'x': [{'user_id': 'x', 'name': 'X', 'team': 'GAMMA'}],
        'y': [{'name': 'no id', 'team': 'BETA'}],
    }
    assert parse_snapshot(snapshot) == {_p('a')}


def test_tracker_last_snapshot_wins_and_notifies():
    seen = []
    tracker = PresenceTracker()
    tracker.add_listener(lambda members: seen.append(elect(members)))

    assert tracker.sync([_p('b').to_meta(), _p('c').to_meta()]) is True
    assert tracker.leader_id() == 'b'
    # Same membership again: no change, no notification
    assert tracker.sync({'c': [_p('c').to_meta()], 'b': [_p('b').to_meta()]}) is False
    # A smaller id joining takes over immediately
    tracker.sync([_p('a').to_meta(), _p('b').to_meta(), _p('c').to_meta()])
    # Snapshot fully replaces: b and c vanish
    tracker.sync([_p('d', BETA).to_meta()])
    tracker.sync([])

    assert seen == ['b', 'a', 'd', None]
    assert tracker.current_members() == frozenset()


def test_tracker_team_counts():
    tracker = PresenceTracker()
    tracker.sync([_p('a').to_meta(), _p('b', BETA).to_meta(), _p('c', BETA).to_meta()])
    assert tracker.team_counts() == {ALPHA: 1, BETA: 2}
