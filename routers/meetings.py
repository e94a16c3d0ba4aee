from fastapi import APIRouter, HTTPException, Request, Response
from schemas.meetings import CreateMeetingRequest, MeetingResponse, ParticipantResponse
from logging_config import get_logger

logger = get_logger(__name__)

meetings_router = APIRouter(prefix="/meeting", tags=["meeting"])


def get_backend(request: Request):
    return request.app.state.backend


@meetings_router.post("/create", response_model=MeetingResponse)
async def create_meeting(meeting: CreateMeetingRequest, request: Request, response: Response):
    # Body: { "slug": "math101", "title": "optional", "owner_id": "optional" }
    # 201 with the new meeting, or 200 with the meeting already holding this slug
    if not meeting.slug:
        raise HTTPException(status_code=400, detail="slug required")

    logger.info(f"Meeting creation request for slug {meeting.slug} from {request.client.host if request.client else 'unknown'}")
    try:
        record, created = get_backend(request).create_meeting(meeting.slug, meeting.title, meeting.owner_id)
    except Exception as e:
        logger.error(f"Error creating meeting {meeting.slug}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="internal")

    response.status_code = 201 if created else 200
    return MeetingResponse(**record)


@meetings_router.get("/{slug}", response_model=MeetingResponse)
async def get_meeting(slug: str, request: Request):
    try:
        record = get_backend(request).get_meeting(slug)
    except Exception as e:
        logger.error(f"Error fetching meeting {slug}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="internal")

    if not record:
        logger.warning(f"Meeting {slug} not found")
        raise HTTPException(status_code=404, detail="not found")
    return MeetingResponse(**record)


@meetings_router.get("/{slug}/participants", response_model=list[ParticipantResponse])
async def get_meeting_participants(slug: str, request: Request):
    """Participants recorded when clients joined the meeting's realtime room."""
    backend = get_backend(request)
    try:
        meeting_id = backend.get_meeting_id(slug)
        if meeting_id is None:
            raise HTTPException(status_code=404, detail="not found")
        return [ParticipantResponse(**row) for row in backend.get_participants(meeting_id)]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching participants for meeting {slug}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="internal")
