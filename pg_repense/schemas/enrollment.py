# pg_repense/schemas/enrollment.py
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID


class EnrollmentCreate(BaseModel):
    student_id: UUID
    class_id: UUID
    confirm_reenrollment: bool = False


class EnrollmentOut(BaseModel):
    id: UUID
    student_id: UUID
    class_id: UUID
    status: str
    transferido_de_class_id: Optional[UUID] = None
    criado_em: datetime
    concluido_em: Optional[datetime] = None
    cancelado_em: Optional[datetime] = None
    transferido_em: Optional[datetime] = None

    class Config:
        from_attributes = True


class TransferPriorityIn(BaseModel):
    to_class_id: UUID
