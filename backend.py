import redis
import json
from datetime import datetime
from typing import Optional, Union
from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB
from redis_keys import REDIS_MEETING_KEY, REDIS_MEETING_SLUG_KEY, REDIS_MEETING_ID_SEQ, REDIS_PARTICIPANTS_KEY
from logging_config import get_logger

logger = get_logger(__name__)


class RedisBackend:
    """Meeting store used by the HTTP API and, best-effort, by the realtime relay.

    All methods are blocking. Async callers run them through the event loop's executor.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        if redis_client is None:
            redis_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD,
                                       db=REDIS_DB, decode_responses=True)
            logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
        self.redis_client = redis_client

    def ping(self) -> bool:
        try:
            self.redis_client.ping()
            logger.info("Redis client connected successfully")
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}")
            return False

    def create_meeting(self, slug: str, title: Optional[str] = None, owner_id: Optional[Union[str, int]] = None):
        """Create a meeting for slug unless one exists. Returns (meeting, created)."""
        existing = self.get_meeting(slug)
        if existing:
            logger.debug(f"Meeting for slug {slug} already exists with id {existing['id']}")
            return existing, False

        meeting_id = self.redis_client.incr(REDIS_MEETING_ID_SEQ)
        meeting_key = REDIS_MEETING_KEY.format(meeting_id=meeting_id)
        meeting_data = {
            "id": meeting_id,
            "slug": slug,
            "title": title,
            "owner_id": owner_id,
            "created_at": datetime.now().isoformat(),
        }
        self.redis_client.hset(meeting_key, mapping={k: str(v) for k, v in meeting_data.items() if v is not None})

        # The slug key decides the winner when two creates race
        if not self.redis_client.set(REDIS_MEETING_SLUG_KEY.format(slug=slug), meeting_id, nx=True):
            self.redis_client.delete(meeting_key)
            logger.info(f"Lost create race for slug {slug}, returning the existing meeting")
            return self.get_meeting(slug), False

        logger.info(f"Meeting {meeting_id} created for slug {slug}")
        return self._decode_meeting(self.redis_client.hgetall(meeting_key)), True

    def get_meeting_id(self, slug: str) -> Optional[int]:
        meeting_id = self.redis_client.get(REDIS_MEETING_SLUG_KEY.format(slug=slug))
        if meeting_id is None:
            return None
        return int(meeting_id)

    def get_meeting(self, slug: str) -> Optional[dict]:
        logger.debug(f"Fetching meeting {slug}")
        meeting_id = self.get_meeting_id(slug)
        if meeting_id is None:
            logger.debug(f"Meeting {slug} not found in Redis")
            return None
        meeting_data = self.redis_client.hgetall(REDIS_MEETING_KEY.format(meeting_id=meeting_id))
        if not meeting_data:
            return None
        return self._decode_meeting(meeting_data)

    def add_participant(self, meeting_id: int, user_id=None, display_name: Optional[str] = None) -> dict:
        participant = {
            "meeting_id": meeting_id,
            "user_id": user_id,
            "display_name": display_name,
            "joined_at": datetime.now().isoformat(),
        }
        self.redis_client.rpush(REDIS_PARTICIPANTS_KEY.format(meeting_id=meeting_id), json.dumps(participant))
        logger.debug(f"Stored participant {user_id} ({display_name}) for meeting {meeting_id}")
        return participant

    def record_participant(self, slug: str, user_id=None, display_name: Optional[str] = None) -> Optional[dict]:
        """Store a participant row when slug belongs to a known meeting. Returns None on a miss."""
        meeting_id = self.get_meeting_id(slug)
        if meeting_id is None:
            logger.debug(f"No meeting for room {slug}, participant not recorded")
            return None
        return self.add_participant(meeting_id, user_id, display_name)

    def get_participants(self, meeting_id: int) -> list:
        rows = self.redis_client.lrange(REDIS_PARTICIPANTS_KEY.format(meeting_id=meeting_id), 0, -1)
        return [json.loads(row) for row in rows]

    @staticmethod
    def _decode_meeting(meeting_data: dict) -> dict:
        return {
            "id": int(meeting_data["id"]),
            "slug": meeting_data["slug"],
            "title": meeting_data.get("title"),
            "owner_id": meeting_data.get("owner_id"),
            "created_at": meeting_data.get("created_at", ""),
        }
