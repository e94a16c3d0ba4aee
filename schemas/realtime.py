from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional, Union

# Client -> relay
JOIN_ROOM = "join-room"
LEAVE_ROOM = "leave-room"
SIGNAL = "signal"

# Relay -> client
USER_JOINED = "user-joined"
USER_LEFT = "user-left"
ROOM_MEMBERS = "room-members"


class Envelope(BaseModel):
    """Every frame on the wire: {"event": "...", "data": {...}}"""
    event: str
    data: dict[str, Any] = Field(default_factory=dict)


class JoinRoomPayload(BaseModel):
    """Only `room` can fail validation. Empty or wrongly typed optional fields become None."""
    room: Optional[str] = None
    user_id: Optional[Union[int, float, str]] = Field(default=None, alias="userId")
    display_name: Optional[str] = Field(default=None, alias="displayName")

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id_or_none(cls, value):
        if not value or not isinstance(value, (int, float, str)):
            return None
        return value

    @field_validator("display_name", mode="before")
    @classmethod
    def _display_name_or_none(cls, value):
        if not value or not isinstance(value, str):
            return None
        return value

class LeaveRoomPayload(BaseModel):
    room: Optional[str] = None
