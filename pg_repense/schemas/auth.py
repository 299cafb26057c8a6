# pg_repense/schemas/auth.py
from pydantic import BaseModel


class LoginIn(BaseModel):
    email: str
    password: str

    class Config:
        json_schema_extra = {
            "example": {
                "email": "admin@example.com",
                "password": "senha-segura-1"
            }
        }


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str
