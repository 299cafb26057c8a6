# pg_repense/schemas/session.py - Facilitator session and check-in payloads
from pydantic import BaseModel, validator
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID


class SessionOpenIn(BaseModel):
    class_id: UUID


class SessionFinalizeIn(BaseModel):
    relatorio: Optional[str] = None


class AttendanceRecord(BaseModel):
    student_id: UUID
    presente: bool
    observacao: Optional[str] = None


class AttendanceIn(BaseModel):
    records: List[AttendanceRecord]

    @validator('records')
    def at_least_one(cls, v):
        if not v:
            raise ValueError('Envie ao menos um registro de presença')
        return v


class FinalReportIn(BaseModel):
    final_report: str


class SessionOut(BaseModel):
    id: UUID
    class_id: UUID
    teacher_id: UUID
    numero_sessao: int
    data_sessao: date
    status: str
    relatorio: Optional[str] = None
    encerrada_em: Optional[datetime] = None
    criado_em: datetime

    class Config:
        from_attributes = True
