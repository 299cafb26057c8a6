# pg_repense/schemas/people.py - Admin, facilitator and student representations
from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from uuid import UUID

from pg_repense.utils.documents import only_digits, validate_phone, normalize_name, parse_birth_date


class AdminOut(BaseModel):
    id: UUID
    email: str
    nome: Optional[str] = None
    role: str

    class Config:
        from_attributes = True


class TeacherCreate(BaseModel):
    nome: str
    email: EmailStr
    telefone: Optional[str] = None
    password: Optional[str] = None

    @validator('nome')
    def validate_nome(cls, v):
        if not v or not v.strip():
            raise ValueError('Nome é obrigatório')
        return normalize_name(v)

    @validator('email')
    def lower_email(cls, v):
        return v.lower()

    @validator('telefone')
    def validate_telefone(cls, v):
        if v and not validate_phone(v):
            raise ValueError('Telefone deve ter 11 dígitos (DDD + número)')
        return only_digits(v) or None


class TeacherUpdate(BaseModel):
    nome: Optional[str] = None
    email: Optional[EmailStr] = None
    telefone: Optional[str] = None
    eh_ativo: Optional[bool] = None

    @validator('nome')
    def validate_nome(cls, v):
        return normalize_name(v) if v else v

    @validator('email')
    def lower_email(cls, v):
        return v.lower() if v else v


class TeacherOut(BaseModel):
    id: UUID
    nome: str
    email: str
    telefone: Optional[str] = None
    eh_ativo: bool
    criado_em: datetime

    class Config:
        from_attributes = True


class TeacherCreated(TeacherOut):
    """Returned once on creation with the generated password"""
    password: str


class StudentOut(BaseModel):
    id: UUID
    nome: str
    cpf: str
    telefone: str
    email: Optional[str] = None
    genero: Optional[str] = None
    estado_civil: Optional[str] = None
    nascimento: Optional[date] = None
    cidade_preferencia: Optional[str] = None
    priority_list: bool
    priority_list_course_id: Optional[UUID] = None
    priority_list_added_at: Optional[datetime] = None
    criado_em: datetime

    class Config:
        from_attributes = True


class StudentDetail(StudentOut):
    enrollments: List[Dict[str, Any]] = []
    observations: List[Dict[str, Any]] = []


class StudentUpdate(BaseModel):
    nome: Optional[str] = None
    telefone: Optional[str] = None
    email: Optional[EmailStr] = None
    genero: Optional[str] = None
    estado_civil: Optional[str] = None
    nascimento: Optional[date] = None
    cidade_preferencia: Optional[str] = None

    @validator('nome')
    def validate_nome(cls, v):
        return normalize_name(v) if v else v

    @validator('telefone')
    def validate_telefone(cls, v):
        if v is not None and not validate_phone(v):
            raise ValueError('Telefone deve ter 11 dígitos (DDD + número)')
        return only_digits(v) if v else v

    @validator('nascimento', pre=True)
    def parse_nascimento(cls, v):
        return parse_birth_date(v)


class AuditLogOut(BaseModel):
    id: UUID
    event_type: str
    actor_id: Optional[UUID] = None
    actor_type: str
    target_entity: Optional[str] = None
    target_id: Optional[UUID] = None
    action: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_")
    ip_address: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    criado_em: datetime

    class Config:
        from_attributes = True
