import bisect
import copy
import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

# Teams
ALPHA = 'ALPHA'
BETA = 'BETA'
TEAMS = (ALPHA, BETA)
DRAW = 'DRAW'

# Stances
BULL = 'BULL'
BEAR = 'BEAR'
UNDECIDED = 'UNDECIDED'

# Votes
UP = 'UP'
DOWN = 'DOWN'

# Phases
VOTING = 'VOTING'
BATTLE = 'BATTLE'
RESULT = 'RESULT'

# Price sources
LIVE = 'LIVE'
SIMULATED = 'SIMULATED'

PRICE_HISTORY_LIMIT = 60
CHAT_HISTORY_LIMIT = 30

CONNECTING_COMMENTARY = 'Connecting to global command core...'


@dataclass(frozen=True)
class Participant:
    id: str
    name: str
    team: str

    @classmethod
    def create(cls, name: str, team: Optional[str] = None, rng: Optional[random.Random] = None) -> 'Participant':
        """Mint a fresh participant, picking a random team when none is given."""
        if team is None:
            team = (rng or random).choice(TEAMS)
        return cls(id=str(uuid.uuid4()), name=name, team=team)

    def to_meta(self) -> Dict[str, str]:
        # Shape announced into the presence set
        return {'user_id': self.id, 'name': self.name, 'team': self.team}

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'team': self.team}


@dataclass
class TeamStats:
    votes_up: int = 0
    votes_down: int = 0
    total_votes: int = 0
    stance: str = UNDECIDED
    conviction: int = 0

    def to_dict(self):
        return {
            'votesUp': self.votes_up,
            'votesDown': self.votes_down,
            'totalVotes': self.total_votes,
            'stance': self.stance,
            'conviction': self.conviction,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TeamStats':
        return cls(
            votes_up=data['votesUp'],
            votes_down=data['votesDown'],
            total_votes=data['totalVotes'],
            stance=data['stance'],
            conviction=data['conviction'],
        )


@dataclass(frozen=True)
class PricePoint:
    timestamp: int
    price: float

    def to_dict(self):
        return {'timestamp': self.timestamp, 'price': self.price}


@dataclass(frozen=True)
class ChatMessage:
    id: str
    sender: str
    team: str
    text: str
    timestamp: int

    def to_dict(self):
        return {
            'id': self.id,
            'sender': self.sender,
            'team': self.team,
            'text': self.text,
            'timestamp': self.timestamp,
        }


class BoundedSeries:
    """Timestamp-ordered sliding window.

    Items must expose a ``timestamp`` attribute. Late arrivals are inserted in
    timestamp order; once ``capacity`` is exceeded the oldest item is evicted.
    """

    def __init__(self, capacity: int, items=None):
        if capacity <= 0:
            raise ValueError('capacity must be positive')
        self.capacity = capacity
        self._items: List[Any] = []
        for item in items or ():
            self.append(item)

    def append(self, item) -> None:
        bisect.insort_right(self._items, item, key=lambda i: i.timestamp)
        if len(self._items) > self.capacity:
            del self._items[0]

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items))

    def __getitem__(self, idx):
        return self._items[idx]

    def to_list(self):
        return [i.to_dict() for i in self._items]


@dataclass
class GameState:
    phase: str = VOTING
    phase_end_time: int = 0
    start_price: float = 0.0
    current_price: float = 0.0
    price_source: str = SIMULATED
    alpha_stats: TeamStats = field(default_factory=TeamStats)
    beta_stats: TeamStats = field(default_factory=TeamStats)
    winner: Optional[str] = None
    commentary: str = CONNECTING_COMMENTARY
    price_history: BoundedSeries = field(default_factory=lambda: BoundedSeries(PRICE_HISTORY_LIMIT))
    chat: BoundedSeries = field(default_factory=lambda: BoundedSeries(CHAT_HISTORY_LIMIT))

    @classmethod
    def new(cls, price_history_limit: int = PRICE_HISTORY_LIMIT, chat_limit: int = CHAT_HISTORY_LIMIT) -> 'GameState':
        return cls(price_history=BoundedSeries(price_history_limit), chat=BoundedSeries(chat_limit))

    def stats_for(self, team: str) -> TeamStats:
        if team == ALPHA:
            return self.alpha_stats
        if team == BETA:
            return self.beta_stats
        raise ValueError(f'unknown team {team!r}')

    def reset_round(self) -> None:
        self.alpha_stats = TeamStats()
        self.beta_stats = TeamStats()
        self.winner = None

    def team_chat(self, team: str) -> List[ChatMessage]:
        return [m for m in self.chat if m.team == team]

    def copy(self) -> 'GameState':
        return copy.deepcopy(self)

    def to_dict(self):
        return {
            'phase': self.phase,
            'phaseEndTime': self.phase_end_time,
            'startPrice': self.start_price,
            'currentPrice': self.current_price,
            'priceSource': self.price_source,
            'alphaStats': self.alpha_stats.to_dict(),
            'betaStats': self.beta_stats.to_dict(),
            'winner': self.winner,
            'commentary': self.commentary,
            'priceHistory': self.price_history.to_list(),
            'chat': self.chat.to_list(),
        }
