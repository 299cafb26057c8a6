# pg_repense/schemas/registration.py - Public registration and waitlist payloads
from pydantic import BaseModel, EmailStr, validator
from typing import Optional
from datetime import date
from uuid import UUID

from pg_repense.models.class_model import Cidade
from pg_repense.utils.documents import (
    only_digits,
    validate_cpf,
    validate_phone,
    normalize_name,
    has_full_name,
    parse_birth_date,
)

GENEROS = ("Masculino", "Feminino")


class RegistrantIn(BaseModel):
    nome: str
    cpf: str
    telefone: str
    email: Optional[EmailStr] = None
    genero: Optional[str] = None
    estado_civil: Optional[str] = None
    nascimento: Optional[date] = None
    cidade_preferencia: Optional[Cidade] = None

    @validator('nome')
    def validate_nome(cls, v):
        v = normalize_name(v)
        if not has_full_name(v):
            raise ValueError('Informe nome e sobrenome')
        return v

    @validator('cpf')
    def validate_cpf_digits(cls, v):
        if not validate_cpf(v):
            raise ValueError('CPF inválido')
        return only_digits(v)

    @validator('telefone')
    def validate_telefone(cls, v):
        if not validate_phone(v):
            raise ValueError('Telefone deve ter 11 dígitos (DDD + número)')
        return only_digits(v)

    @validator('email', pre=True)
    def blank_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @validator('genero')
    def validate_genero(cls, v):
        if v is not None and v not in GENEROS:
            raise ValueError('Gênero deve ser Masculino ou Feminino')
        return v

    @validator('nascimento', pre=True)
    def parse_nascimento(cls, v):
        return parse_birth_date(v)

    class Config:
        use_enum_values = True


class RegisterIn(RegistrantIn):
    class_id: UUID

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "nome": "Maria da Silva",
                "cpf": "529.982.247-25",
                "telefone": "(11) 98765-4321",
                "email": "maria@example.com",
                "genero": "Feminino",
                "nascimento": "25-12-1990",
                "cidade_preferencia": "Indaiatuba",
                "class_id": "00000000-0000-0000-0000-000000000000",
            }
        }


class PriorityListIn(RegistrantIn):
    class_id: UUID


class ChangeCourseIn(BaseModel):
    cpf: str
    student_id: UUID
    old_enrollment_id: UUID
    new_class_id: UUID

    @validator('cpf')
    def digits_only(cls, v):
        return only_digits(v)


class ValidateEnrollmentIn(BaseModel):
    student_id: UUID
    class_id: UUID
