"""Wire schemas for everything that crosses the presence/broadcast transport.

Each broadcast event has its own model. Scalars are strict so a payload with
a field of the wrong type is rejected as a whole rather than coerced.
"""

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StrictInt, StrictStr

# Broadcast event names
GAME_TICK = 'game_tick'
CHAT_MSG = 'chat_msg'
VOTE_CAST = 'vote_cast'

TeamName = Literal['ALPHA', 'BETA']


def _number_only(value):
    # Accept JSON numbers only: no numeric strings, no booleans
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError('must be a number')
    return value


Price = Annotated[float, BeforeValidator(_number_only), Field(allow_inf_nan=False)]


class WireModel(BaseModel):
    model_config = ConfigDict(extra='ignore', frozen=True)


class PresenceMeta(WireModel):
    user_id: StrictStr = Field(min_length=1)
    name: StrictStr
    team: TeamName


class TeamStatsPayload(WireModel):
    votesUp: StrictInt = Field(ge=0)
    votesDown: StrictInt = Field(ge=0)
    totalVotes: StrictInt = Field(ge=0)
    stance: Literal['BULL', 'BEAR', 'UNDECIDED']
    conviction: StrictInt = Field(ge=0, le=100)


class TickPayload(WireModel):
    leaderId: StrictStr = Field(min_length=1)
    seq: StrictInt = Field(ge=0)
    currentPrice: Price
    priceSource: Literal['LIVE', 'SIMULATED']
    phase: Literal['VOTING', 'BATTLE', 'RESULT']
    phaseEndTime: StrictInt
    startPrice: Price
    alphaStats: TeamStatsPayload
    betaStats: TeamStatsPayload
    winner: Optional[Literal['ALPHA', 'BETA', 'DRAW']]
    commentary: StrictStr


class ChatPayload(WireModel):
    id: StrictStr = Field(min_length=1)
    sender: StrictStr
    team: TeamName
    text: StrictStr = Field(min_length=1)
    timestamp: StrictInt


class VotePayload(WireModel):
    participantId: StrictStr = Field(min_length=1)
    team: TeamName
    vote: Literal['UP', 'DOWN']
    # Epoch second of the minute the vote was cast in
    window: StrictInt
