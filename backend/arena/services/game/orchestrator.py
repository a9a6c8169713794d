import logging
import random
import threading
import time
import uuid
from typing import Any, Callable, Dict, FrozenSet, Optional, Set

from pydantic import ValidationError

from arena.models import (
    BATTLE,
    DOWN,
    RESULT,
    UP,
    VOTING,
    ChatMessage,
    GameState,
    Participant,
    PricePoint,
)
from arena.schemas import CHAT_MSG, GAME_TICK, VOTE_CAST, ChatPayload, VotePayload
from arena.settings import GameSettings
from .clock import (
    EDGE_FINALIZE,
    EDGE_RESET,
    EDGE_RESOLVE,
    compute_phase,
    edge_for,
    is_progress_checkpoint,
    voting_window,
)
from .commentary import NEXT_CYCLE_LINE, NO_COMMANDER_LINE, PROGRESS, RESOLVED, START, BattleContext, pick_line
from .presence import PresenceTracker, elect
from .price_feed import PriceFeed
from .replication import StateReplicator
from .scoring import resolve
from .voting import finalize, record_vote

LEADER = 'LEADER'
FOLLOWER = 'FOLLOWER'

# Slack after the whole second so the sampled second is the one we aimed for
TICK_ALIGN_SLACK_SEC = 0.05


class GameOrchestrator:
    """One peer's view of the arena.

    Owns the local ``GameState`` behind a single lock. Presence syncs,
    broadcasts, local votes, chat and ticks all enter through methods that
    take the lock, so the state is only ever mutated by one caller at a time.

    The node is LEADER when ``elect`` picks its own id from the current
    presence snapshot, FOLLOWER otherwise, and suspended when nobody is
    present. Only the leader's ticks do anything; followers merge the
    leader's ``game_tick`` broadcasts.
    """

    def __init__(
        self,
        participant: Participant,
        transport,
        settings: Optional[GameSettings] = None,
        price_feed: Optional[PriceFeed] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.participant = participant
        self.transport = transport
        self.settings = settings or GameSettings()
        self.channel = self.settings.channel
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock
        self._rng = rng or random.Random()

        self.state = GameState.new(self.settings.price_history_limit, self.settings.chat_history_limit)
        self.presence = PresenceTracker()
        self.presence.add_listener(self._on_membership_change)
        self.replicator = StateReplicator(logger=self.logger)
        self.price_feed = price_feed or PriceFeed(
            url=self.settings.price_url,
            timeout=self.settings.price_timeout,
            fallback_price=self.settings.fallback_price,
            step=self.settings.simulated_step,
            rng=self._rng,
            logger=self.logger,
        )

        self.role = FOLLOWER
        self.leader_id: Optional[str] = None
        self.current_vote: Optional[str] = None
        self._voted_window: Optional[int] = None
        # Leader-side ledger of who already voted, per voting window
        self._voters: Dict[int, Set[str]] = {}

        self._lock = threading.RLock()
        self._tick_in_flight = False
        self._running = False

    # ---- lifecycle ----

    def start(self) -> None:
        self.transport.subscribe(self.channel, self.handle_presence_sync, self.handle_broadcast)
        self.transport.track(self.participant.to_meta())
        self._running = True
        self.transport.start_background_task(self._run_ticker)
        self.logger.info(f"[start] participant={self.participant.id} team={self.participant.team} channel={self.channel}")

    def stop(self) -> None:
        self._running = False
        self.transport.unsubscribe()
        self.logger.info(f"[stop] participant={self.participant.id}")

    @property
    def running(self) -> bool:
        return self._running

    def _run_ticker(self) -> None:
        interval = self.settings.tick_interval
        while self._running:
            delay = interval - (self._clock() % interval) + TICK_ALIGN_SLACK_SEC
            self.transport.sleep(delay)
            if not self._running:
                break
            try:
                self.tick()
            except Exception:
                # One bad tick must not stop the clock
                self.logger.exception(f"[tick-error] participant={self.participant.id}")

    # ---- role ----

    @property
    def is_leader(self) -> bool:
        return self.role == LEADER

    @property
    def suspended(self) -> bool:
        return self.leader_id is None

    def _on_membership_change(self, members: FrozenSet[Participant]) -> None:
        leader_id = elect(members)
        role = LEADER if leader_id == self.participant.id else FOLLOWER
        if role != self.role or leader_id != self.leader_id:
            self.logger.info(
                f"[role] participant={self.participant.id} {self.role} -> {role} leader={leader_id} members={len(members)}"
            )
        self.role = role
        self.leader_id = leader_id
        if leader_id is None:
            self.state.commentary = NO_COMMANDER_LINE

    # ---- transport callbacks ----

    def handle_presence_sync(self, snapshot: Any) -> None:
        with self._lock:
            self.presence.sync(snapshot)

    def handle_broadcast(self, event: str, payload: Any) -> None:
        if event == GAME_TICK:
            self._receive_tick(payload)
        elif event == VOTE_CAST:
            self._receive_vote(payload)
        elif event == CHAT_MSG:
            self._receive_chat(payload)
        else:
            self.logger.debug(f"[broadcast-ignore] event={event}")

    def _receive_tick(self, payload: Any) -> None:
        with self._lock:
            if self.is_leader:
                # Another node still thinks it leads; our own ticks are authoritative here
                self.logger.debug(f"[merge-skip] participant={self.participant.id} is leader")
                return
            applied = self.replicator.merge(
                self.state,
                payload,
                received_at=int(self._clock() * 1000),
                expected_leader=self.leader_id,
            )
            if applied:
                self.price_feed.seed(self.state.current_price)

    def _receive_vote(self, raw: Any) -> None:
        try:
            vote = VotePayload.model_validate(raw)
        except ValidationError as exc:
            self.logger.warning(f"[vote-reject] invalid vote payload errors={exc.error_count()}")
            return
        with self._lock:
            if not self.is_leader:
                return
            self._count_vote(vote.participantId, vote.team, vote.vote, vote.window, self._clock())

    def _receive_chat(self, raw: Any) -> None:
        try:
            msg = ChatPayload.model_validate(raw)
        except ValidationError as exc:
            self.logger.warning(f"[chat-reject] invalid chat payload errors={exc.error_count()}")
            return
        with self._lock:
            if any(m.id == msg.id for m in self.state.chat):
                return
            self.state.chat.append(ChatMessage(**msg.model_dump()))

    # ---- votes ----

    def _count_vote(self, participant_id: str, team: str, vote: str, window: int, now: float) -> bool:
        phase, _ = compute_phase(now)
        current_window = voting_window(now)
        if phase != VOTING or window != current_window:
            self.logger.debug(f"[vote-ignore] participant={participant_id} phase={phase} window={window}")
            return False
        voters = self._voters.setdefault(current_window, set())
        if participant_id in voters:
            self.logger.debug(f"[vote-ignore] participant={participant_id} already voted window={window}")
            return False
        # Older windows are closed for good
        for stale in [w for w in self._voters if w != current_window]:
            del self._voters[stale]
        voters.add(participant_id)
        record_vote(self.state.stats_for(team), vote)
        return True

    def submit_vote(self, vote: str) -> bool:
        """Cast the local participant's vote for this window.

        Ignored (returns False) outside VOTING, for an unknown vote, or when
        this participant already voted in the current window. Followers count
        the vote optimistically and forward it to the leader; the leader's
        next tick carries the authoritative counts.
        """
        if vote not in (UP, DOWN):
            return False
        now = self._clock()
        with self._lock:
            phase, _ = compute_phase(now)
            window = voting_window(now)
            if phase != VOTING or self._voted_window == window:
                return False
            self._voted_window = window
            self.current_vote = vote
            if self.is_leader:
                self._count_vote(self.participant.id, self.participant.team, vote, window, now)
                return True
            record_vote(self.state.stats_for(self.participant.team), vote)
            payload = VotePayload(
                participantId=self.participant.id,
                team=self.participant.team,
                vote=vote,
                window=window,
            ).model_dump()
        self.transport.publish(self.channel, VOTE_CAST, payload)
        return True

    def can_vote(self) -> bool:
        now = self._clock()
        return compute_phase(now)[0] == VOTING and self._voted_window != voting_window(now)

    # ---- chat ----

    def send_chat_message(self, text: str) -> Optional[ChatMessage]:
        text = (text or '').strip()[: self.settings.chat_max_length].strip()
        if not text:
            return None
        msg = ChatMessage(
            id=str(uuid.uuid4()),
            sender=self.participant.name,
            team=self.participant.team,
            text=text,
            timestamp=int(self._clock() * 1000),
        )
        with self._lock:
            self.state.chat.append(msg)
        self.transport.publish(self.channel, CHAT_MSG, msg.to_dict())
        return msg

    # ---- tick ----

    def tick(self, now: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """Run one leader pass and broadcast it.

        Leadership is decided once, up front. Returns the broadcast payload,
        or None when this node is not the leader or a tick is already running.
        """
        with self._lock:
            if self._tick_in_flight:
                self.logger.warning(f"[tick-skip] participant={self.participant.id} previous tick still running")
                return None
            if not self.is_leader:
                return None
            self._tick_in_flight = True
        try:
            if now is None:
                now = self._clock()
            price, source = self.price_feed.fetch()
            with self._lock:
                payload = self._advance(now, price, source)
        finally:
            with self._lock:
                self._tick_in_flight = False
        self.transport.publish(self.channel, GAME_TICK, payload)
        return payload

    def _advance(self, now: float, price: float, source: str) -> Dict[str, Any]:
        st = self.state
        stamp = int(now * 1000)
        phase, phase_end = compute_phase(now)
        st.current_price = price
        st.price_source = source
        st.phase = phase
        st.phase_end_time = phase_end

        edge = edge_for(now)
        if edge == EDGE_FINALIZE:
            st.start_price = price
            finalize(st.alpha_stats)
            finalize(st.beta_stats)
            st.commentary = pick_line(self._context(START, 0.0), self._rng)
        elif edge == EDGE_RESOLVE:
            st.winner = resolve(st.start_price, price, st.alpha_stats, st.beta_stats)
            st.commentary = pick_line(self._context(RESOLVED, self._delta_pct(price)), self._rng)
        elif edge == EDGE_RESET:
            st.reset_round()
            st.commentary = NEXT_CYCLE_LINE
            self._voters.clear()
        elif phase == BATTLE and is_progress_checkpoint(now):
            st.commentary = pick_line(self._context(PROGRESS, self._delta_pct(price)), self._rng)

        if phase != RESULT:
            st.winner = None
        st.price_history.append(PricePoint(timestamp=stamp, price=price))

        if edge:
            self.logger.info(
                f"[edge] {edge} phase={phase} price={price:.2f} start={st.start_price:.2f} "
                f"alpha={st.alpha_stats.stance}/{st.alpha_stats.conviction} "
                f"beta={st.beta_stats.stance}/{st.beta_stats.conviction} winner={st.winner}"
            )
        else:
            self.logger.debug(f"[tick] phase={phase} price={price:.2f} source={source}")
        return self.replicator.pack(st, self.participant.id, stamp)

    def _delta_pct(self, price: float) -> float:
        start = self.state.start_price
        if not start:
            return 0.0
        return (price - start) / start * 100

    def _context(self, moment: str, delta: float) -> BattleContext:
        st = self.state
        return BattleContext(
            phase=moment,
            price_delta=delta,
            alpha_stance=st.alpha_stats.stance,
            alpha_conviction=st.alpha_stats.conviction,
            beta_stance=st.beta_stats.stance,
            beta_conviction=st.beta_stats.conviction,
            winner=st.winner,
        )

    # ---- presentation ----

    def snapshot(self) -> GameState:
        with self._lock:
            return self.state.copy()

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'participant': self.participant.to_dict(),
                'role': self.role,
                'leader_id': self.leader_id,
                'suspended': self.suspended,
                'members': len(self.presence.current_members()),
                'team_counts': self.presence.team_counts(),
                'can_vote': self.can_vote(),
                'current_vote': self.current_vote if self._voted_window == voting_window(self._clock()) else None,
            }
