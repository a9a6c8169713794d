import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from arena.models import GameState, PricePoint, TeamStats
from arena.schemas import TickPayload


class StateReplicator:
    """Leader-side packing and follower-side merging of the game tick.

    Only the authoritative fields travel; price history and chat are kept
    locally by each node. Every payload carries the sending leader's id and a
    sequence number (its tick sample time in ms) so a follower can drop stale
    or duplicated payloads.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)
        self._last_applied: Dict[str, int] = {}
        self.last_leader: Optional[str] = None

    @staticmethod
    def pack(state: GameState, leader_id: str, seq: int) -> Dict[str, Any]:
        return {
            'leaderId': leader_id,
            'seq': seq,
            'currentPrice': state.current_price,
            'priceSource': state.price_source,
            'phase': state.phase,
            'phaseEndTime': state.phase_end_time,
            'startPrice': state.start_price,
            'alphaStats': state.alpha_stats.to_dict(),
            'betaStats': state.beta_stats.to_dict(),
            'winner': state.winner,
            'commentary': state.commentary,
        }

    def validate(self, raw: Any) -> Optional[TickPayload]:
        try:
            payload = TickPayload.model_validate(raw)
        except ValidationError as exc:
            self._logger.warning(f"[merge-reject] invalid tick payload errors={exc.errors(include_url=False)}")
            return None
        for label, stats in (('alpha', payload.alphaStats), ('beta', payload.betaStats)):
            if stats.totalVotes != stats.votesUp + stats.votesDown:
                self._logger.warning(
                    f"[merge-reject] {label} totalVotes={stats.totalVotes} != up+down={stats.votesUp + stats.votesDown}"
                )
                return None
        return payload

    def is_fresh(self, payload: TickPayload) -> bool:
        last = self._last_applied.get(payload.leaderId)
        return last is None or payload.seq > last

    def merge(self, state: GameState, raw: Any, received_at: int, expected_leader: Optional[str] = None) -> bool:
        """Apply a received tick to ``state``; return True if it was applied.

        Malformed payloads are rejected whole and the prior state kept.
        A payload not newer than the last one applied from the same leader
        is dropped, which makes re-delivery a no-op. When ``expected_leader``
        is given, ticks from any other sender (e.g. a deposed leader) are
        dropped too.
        """
        payload = self.validate(raw)
        if payload is None:
            return False
        if expected_leader is not None and payload.leaderId != expected_leader:
            self._logger.info(f"[merge-foreign] sender={payload.leaderId} expected={expected_leader}")
            return False
        if not self.is_fresh(payload):
            self._logger.debug(f"[merge-stale] leader={payload.leaderId} seq={payload.seq}")
            return False
        apply_payload(state, payload)
        state.price_history.append(PricePoint(timestamp=received_at, price=payload.currentPrice))
        if payload.leaderId != self.last_leader:
            # Only the current and the previous leader can still send fresh ticks
            self._last_applied = {
                leader: seq for leader, seq in self._last_applied.items()
                if leader in (payload.leaderId, self.last_leader)
            }
        self._last_applied[payload.leaderId] = payload.seq
        self.last_leader = payload.leaderId
        return True


def apply_payload(state: GameState, payload: TickPayload) -> None:
    state.current_price = payload.currentPrice
    state.price_source = payload.priceSource
    state.phase = payload.phase
    state.phase_end_time = payload.phaseEndTime
    state.start_price = payload.startPrice
    state.alpha_stats = TeamStats.from_dict(payload.alphaStats.model_dump())
    state.beta_stats = TeamStats.from_dict(payload.betaStats.model_dump())
    state.winner = payload.winner
    state.commentary = payload.commentary
