import logging
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from pydantic import ValidationError

from arena.models import ALPHA, BETA, Participant
from arena.schemas import PresenceMeta

logger = logging.getLogger(__name__)

MembershipListener = Callable[[FrozenSet[Participant]], None]


def elect(members: Iterable[Participant]) -> Optional[str]:
    """Return the id of the leader for a membership snapshot.

    The lexicographically smallest participant id wins. Every node that sees
    the same snapshot reaches the same answer without exchanging messages.
    An empty snapshot has no leader and yields ``None``.
    """
    ids = [m.id for m in members]
    if not ids:
        return None
    return min(ids)


def parse_snapshot(snapshot: Any) -> FrozenSet[Participant]:
    """Turn a raw presence snapshot into participants.

    Accepts either the keyed form ``{key: [meta, ...]}`` or a flat list of
    metas. Malformed metas are dropped.
    """
    if isinstance(snapshot, dict):
        metas: List[Any] = []
        for entries in snapshot.values():
            if isinstance(entries, (list, tuple)):
                metas.extend(entries)
            else:
                metas.append(entries)
    else:
        metas = list(snapshot or [])

    members = {}
    for raw in metas:
        try:
            meta = PresenceMeta.model_validate(raw)
        except ValidationError as exc:
            logger.warning(f"[presence-drop] malformed meta={raw!r} errors={exc.error_count()}")
            continue
        # A participant tracked from several sockets collapses to one member
        members[meta.user_id] = Participant(id=meta.user_id, name=meta.name, team=meta.team)
    return frozenset(members.values())


class PresenceTracker:
    """Mirror of the transport's presence set (last snapshot wins)."""

    def __init__(self):
        self._members: FrozenSet[Participant] = frozenset()
        self._listeners: List[MembershipListener] = []

    def add_listener(self, listener: MembershipListener) -> None:
        self._listeners.append(listener)

    def sync(self, snapshot: Any) -> bool:
        """Replace the membership with ``snapshot``; return True if it changed."""
        members = parse_snapshot(snapshot)
        if members == self._members:
            return False
        self._members = members
        for listener in list(self._listeners):
            listener(members)
        return True

    def current_members(self) -> FrozenSet[Participant]:
        return self._members

    def leader_id(self) -> Optional[str]:
        return elect(self._members)

    def team_counts(self) -> Dict[str, int]:
        counts = {ALPHA: 0, BETA: 0}
        for m in self._members:
            counts[m.team] += 1
        return counts
