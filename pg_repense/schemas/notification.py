# pg_repense/schemas/notification.py
from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID


class MarkReadIn(BaseModel):
    """Either `notification_ids`, or `type` together with `reference_id`"""
    notification_ids: Optional[List[UUID]] = None
    type: Optional[str] = None
    reference_id: Optional[UUID] = None


class MarkObservationsReadIn(BaseModel):
    attendance_ids: List[UUID] = Field(..., min_length=1)


class ConversationOpenIn(BaseModel):
    class_id: Optional[UUID] = None
    student_id: Optional[UUID] = None


class MessageIn(BaseModel):
    body: str
