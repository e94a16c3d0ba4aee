from pydantic import BaseModel
from typing import Optional, Union


class CreateMeetingRequest(BaseModel):
    slug: Optional[str] = None
    title: Optional[str] = None
    owner_id: Optional[Union[int, str]] = None

class MeetingResponse(BaseModel):
    id: int
    slug: str
    title: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: str

class ParticipantResponse(BaseModel):
    meeting_id: int
    user_id: Optional[Union[int, str]] = None
    display_name: Optional[str] = None
    joined_at: str
