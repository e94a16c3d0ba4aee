REDIS_MEETING_KEY = "meeting:{meeting_id}" # meeting id - hash of meeting fields
REDIS_MEETING_SLUG_KEY = "meeting:slug:{slug}" # meeting slug - string holding the meeting id
REDIS_MEETING_ID_SEQ = "meeting:next_id" # counter used to allocate meeting ids
REDIS_PARTICIPANTS_KEY = "meeting:participants:{meeting_id}" # meeting id - list of JSON participant rows

# **Example `meeting:{id}` hash fields**
# - `id` = integer id allocated from `meeting:next_id`
# - `slug` = room name clients pass to `join-room`
# - `title` = optional
# - `owner_id` = optional
# - `created_at` = ISO timestamp

# **Example `meeting:participants:{id}` entry**
# - {"meeting_id": 1, "user_id": "42", "display_name": "Ms. Rao", "joined_at": "..."}
