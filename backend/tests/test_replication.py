import pytest

from arena.models import ALPHA, BATTLE, BEAR, BULL, LIVE, RESULT, GameState, TeamStats
from arena.services.game.replication import StateReplicator


def _leader_state():
    state = GameState(
        phase=RESULT,
        phase_end_time=1_704_067_260_000,
        start_price=100.0,
        current_price=104.5,
        price_source=LIVE,
        winner=ALPHA,
        commentary='Upper sector taken.',
    )
    state.alpha_stats = TeamStats(votes_up=7, votes_down=3, total_votes=10, stance=BULL, conviction=70)
    state.beta_stats = TeamStats(votes_up=1, votes_down=2, total_votes=3, stance=BEAR, conviction=67)
    return state


def _payload(seq=1000, leader='a', **overrides):
    payload = StateReplicator.pack(_leader_state(), leader, seq)
    payload.update(overrides)
    return payload


def test_pack_excludes_local_series():
    payload = _payload()
    assert 'priceHistory' not in payload and 'chat' not in payload
    assert payload['leaderId'] == 'a' and payload['seq'] == 1000
    assert payload['alphaStats'] == {'votesUp': 7, 'votesDown': 3, 'totalVotes': 10, 'stance': BULL, 'conviction': 70}


def test_merge_replaces_fields_and_appends_local_price_point():
    follower = GameState()
    replicator = StateReplicator()

    assert replicator.merge(follower, _payload(), received_at=555) is True

    assert follower.phase == RESULT
    assert follower.current_price == 104.5
    assert follower.winner == ALPHA
    assert follower.alpha_stats == TeamStats(7, 3, 10, BULL, 70)
    assert follower.beta_stats == TeamStats(1, 2, 3, BEAR, 67)
    assert [(p.timestamp, p.price) for p in follower.price_history] == [(555, 104.5)]


def test_merge_is_idempotent():
    follower = GameState()
    replicator = StateReplicator()
    payload = _payload()

    replicator.merge(follower, payload, received_at=1)
    once = follower.to_dict()
    assert replicator.merge(follower, payload, received_at=2) is False
    assert follower.to_dict() == once


def test_merge_drops_out_of_order_tick_from_same_leader():
    follower = GameState()
    replicator = StateReplicator()
    replicator.merge(follower, _payload(seq=2000, phase=BATTLE), received_at=1)
    assert replicator.merge(follower, _payload(seq=1000, phase=RESULT), received_at=2) is False
    assert follower.phase == BATTLE


def test_merge_accepts_new_leader_and_rejects_foreign_sender():
    follower = GameState()
    replicator = StateReplicator()
    replicator.merge(follower, _payload(seq=5000, leader='b'), received_at=1)
    # A new leader has its own sequence
    assert replicator.merge(follower, _payload(seq=10, leader='a'), received_at=2) is True
    # A deposed leader's late tick is dropped once the follower knows who leads
    assert replicator.merge(follower, _payload(seq=6000, leader='b'), received_at=3, expected_leader='a') is False
    assert replicator.last_leader == 'a'


def test_merge_forgets_leaders_older_than_the_previous_one():
    follower = GameState()
    replicator = StateReplicator()
    for seq, leader in enumerate('abcd', start=1):
        assert replicator.merge(follower, _payload(seq=seq * 100, leader=leader), received_at=seq) is True
    assert set(replicator._last_applied) == {'c', 'd'}

    # Re-delivery from the current and previous leader is still absorbed
    assert replicator.merge(follower, _payload(seq=400, leader='d'), received_at=9) is False
    assert replicator.merge(follower, _payload(seq=300, leader='c'), received_at=9) is False
    assert replicator.last_leader == 'd'


@pytest.mark.parametrize('corrupt', [
    {'currentPrice': 'lots'},
    {'phase': 'INTERMISSION'},
    {'winner': 'GAMMA'},
    {'phaseEndTime': 12.5},
    {'seq': -1},
    {'alphaStats': {'votesUp': 1, 'votesDown': 1, 'totalVotes': 5, 'stance': BULL, 'conviction': 50}},
    {'betaStats': {'votesUp': True, 'votesDown': 0, 'totalVotes': 1, 'stance': BULL, 'conviction': 100}},
    {'betaStats': None},
    {'commentary': None},
])
def test_malformed_payload_is_rejected_whole(corrupt):
    follower = GameState()
    replicator = StateReplicator()
    replicator.merge(follower, _payload(seq=1), received_at=1)
    before = follower.to_dict()

    assert replicator.merge(follower, _payload(seq=2, **corrupt), received_at=2) is False
    assert follower.to_dict() == before


def test_partial_payload_is_rejected():
    follower = GameState()
    payload = _payload()
    del payload['startPrice']
    assert StateReplicator().merge(follower, payload, received_at=1) is False
    assert follower.current_price == 0.0


def test_non_dict_payload_is_rejected():
    assert StateReplicator().merge(GameState(), ['nope'], received_at=1) is False
