from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from src.core.types import DEFAULT_TIME_CONTROL, Skill


# ---- Inbound WebSocket messages ----
class InboundMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str


class PlayerMessage(InboundMessage):
    name: str = Field(default="Player", validation_alias=AliasChoices("name", "playerName"))
    time_limit: Optional[str] = Field(default=DEFAULT_TIME_CONTROL, validation_alias=AliasChoices("timeLimit", "time_limit"))

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, value: Optional[str]) -> str:
        value = str(value or "").strip()
        return value[:40] or "Player"


class JoinMessage(PlayerMessage):
    room_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("roomCode", "room_code"))

    @field_validator("room_code", mode="before")
    @classmethod
    def clean_room_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip().upper()
        return value or None


class CreateBotGameMessage(PlayerMessage):
    skill: Skill = Field(default=Skill.MEDIUM, validation_alias=AliasChoices("skill", "botDifficulty"))

    @field_validator("skill", mode="before")
    @classmethod
    def parse_skill(cls, value: Any) -> Skill:
        return Skill.parse(value if isinstance(value, str) else None)


class MoveMessage(InboundMessage):
    from_square: str = Field(validation_alias=AliasChoices("from", "from_square"))
    to_square: str = Field(validation_alias=AliasChoices("to", "to_square"))
    promotion: Optional[str] = None


# ---- REST responses ----
class PlayerInfo(BaseModel):
    name: str


class RoomSummary(BaseModel):
    room_code: str
    status: str
    time_control: str
    position: str
    turn: str
    players: Dict[str, Optional[PlayerInfo]]
    remaining: Dict[str, int]
    bot_skill: Optional[str] = None


class RoomListResponse(BaseModel):
    rooms: List[RoomSummary]
    waiting: int


class HealthResponse(BaseModel):
    status: str
    rooms: int
    suggestion_service: bool
