from pydantic import BaseModel
from typing import Literal, List

class ConflictDetail(BaseModel):
    id: str
    conflict_type: Literal["room_conflict", "faculty_conflict"]
    day: str
    description: str
    severity: Literal["hard", "soft"] = "hard"
    affected_sessions: List[str]  # session ids involved

class CapacityShortfall(BaseModel):
    session_id: str
    room_id: str
    capacity: int | None  # None when the room is a fallback id outside the catalogue
    student_count: int
