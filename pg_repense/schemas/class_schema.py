# pg_repense/schemas/class_schema.py
import re
from pydantic import BaseModel, validator
from typing import Optional, List
from datetime import date, datetime
from uuid import UUID

from pg_repense.models.class_model import GrupoRepense, ModeloCurso, Cidade
from pg_repense.services.class_service import capacity_status, capacity_percentage

HORARIO_PATTERN = r'^([01]\d|2[0-3]):[0-5]\d$'


def _clean_optional(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class ClassCreate(BaseModel):
    grupo_repense: GrupoRepense
    modelo: ModeloCurso
    cidade: Cidade = Cidade.INDAIATUBA.value
    capacidade: int
    eh_ativo: bool = True
    eh_16h: bool = False
    eh_mulheres: bool = False
    link_whatsapp: Optional[str] = None
    data_inicio: Optional[date] = None
    horario: Optional[str] = None
    numero_sessoes: int = 9
    teacher_id: Optional[UUID] = None

    @validator('capacidade')
    def validate_capacidade(cls, v):
        if v < 1:
            raise ValueError('Capacidade deve ser maior que zero')
        return v

    @validator('numero_sessoes')
    def validate_numero_sessoes(cls, v):
        if v < 1 or v > 20:
            raise ValueError('Número de sessões deve estar entre 1 e 20')
        return v

    @validator('link_whatsapp', 'horario', pre=True)
    def blank_to_none(cls, v):
        return _clean_optional(v)

    @validator('horario')
    def validate_horario(cls, v):
        if v is not None and not re.match(HORARIO_PATTERN, v):
            raise ValueError('Horário deve estar no formato HH:MM')
        return v

    class Config:
        use_enum_values = True


class ClassUpdate(BaseModel):
    modelo: Optional[ModeloCurso] = None
    cidade: Optional[Cidade] = None
    capacidade: Optional[int] = None
    eh_ativo: Optional[bool] = None
    eh_16h: Optional[bool] = None
    eh_mulheres: Optional[bool] = None
    link_whatsapp: Optional[str] = None
    data_inicio: Optional[date] = None
    horario: Optional[str] = None
    numero_sessoes: Optional[int] = None
    teacher_id: Optional[UUID] = None

    @validator('capacidade')
    def validate_capacidade(cls, v):
        if v is not None and v < 1:
            raise ValueError('Capacidade deve ser maior que zero')
        return v

    @validator('numero_sessoes')
    def validate_numero_sessoes(cls, v):
        if v is not None and (v < 1 or v > 20):
            raise ValueError('Número de sessões deve estar entre 1 e 20')
        return v

    @validator('link_whatsapp', 'horario', pre=True)
    def blank_to_none(cls, v):
        return _clean_optional(v)

    @validator('horario')
    def validate_horario(cls, v):
        if v is not None and not re.match(HORARIO_PATTERN, v):
            raise ValueError('Horário deve estar no formato HH:MM')
        return v

    class Config:
        use_enum_values = True


class TeacherRef(BaseModel):
    id: UUID
    nome: str
    email: str

    class Config:
        from_attributes = True


class ClassOut(BaseModel):
    id: UUID
    grupo_repense: str
    modelo: str
    cidade: str
    capacidade: int
    numero_inscritos: int
    vagas_disponiveis: int
    eh_ativo: bool
    arquivada: bool
    eh_16h: bool
    eh_mulheres: bool
    link_whatsapp: Optional[str]
    data_inicio: Optional[date]
    horario: Optional[str]
    numero_sessoes: int
    teacher_id: Optional[UUID]
    teacher: Optional[TeacherRef] = None
    final_report: Optional[str] = None
    criado_em: datetime
    capacity_percentage: int = 0
    capacity_status: str = "ok"

    @validator('capacity_percentage', always=True)
    def compute_percentage(cls, v, values):
        return capacity_percentage(values.get('numero_inscritos', 0), values.get('capacidade', 0))

    @validator('capacity_status', always=True)
    def compute_status(cls, v, values):
        return capacity_status(values.get('numero_inscritos', 0), values.get('capacidade', 0))

    class Config:
        from_attributes = True


class PublicClassOut(BaseModel):
    """Catalog entry shown on the registration page"""
    id: UUID
    grupo_repense: str
    modelo: str
    cidade: str
    horario: Optional[str]
    data_inicio: Optional[date]
    eh_16h: bool
    eh_mulheres: bool
    capacidade: int
    vagas_disponiveis: int

    class Config:
        from_attributes = True


class BatchArchiveIn(BaseModel):
    class_ids: List[UUID]

    @validator('class_ids')
    def not_empty(cls, v):
        if not v:
            raise ValueError('Informe ao menos uma turma')
        return v


class MoveStudentIn(BaseModel):
    student_id: UUID
    to_class_id: UUID


# Fields that may be cleared with an explicit null on update
CLEARABLE_FIELDS = ("teacher_id", "link_whatsapp", "horario", "data_inicio")


def update_changes(payload: ClassUpdate) -> dict:
    return {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in CLEARABLE_FIELDS
    }
