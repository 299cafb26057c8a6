# pg_repense/services/auth_service.py - Authentication business logic
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Optional, Dict, Any
import logging

from pg_repense.core.errors import AuthError
from pg_repense.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    password_manager,
)
from pg_repense.models.admin import Admin
from pg_repense.models.teacher import Teacher

logger = logging.getLogger(__name__)


class AuthService:
    """Service class for authentication operations"""

    def __init__(self, db: Session):
        self.db = db

    def create_admin(self, email: str, password: str, nome: Optional[str] = None, role: str = "admin") -> Admin:
        """
        Create an administrator account

        Raises:
            ValueError: If an admin with this email already exists
        """
        email = email.lower().strip()
        existing = self.db.execute(select(Admin).where(Admin.email == email)).scalar_one_or_none()
        if existing:
            raise ValueError("Admin with this email already exists")

        admin = Admin(email=email, nome=nome, password_hash=hash_password(password), role=role)
        try:
            self.db.add(admin)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Admin created: {email} ({role})")
        return admin

    def authenticate_admin(self, email: str, password: str) -> Optional[Admin]:
        """
        Authenticate an admin with email and password

        Returns:
            Admin object if authentication successful, None otherwise
        """
        admin = self.db.execute(
            select(Admin).where(Admin.email == email.lower().strip())
        ).scalar_one_or_none()
        if not admin or not verify_password(password, admin.password_hash):
            return None
        logger.info(f"Admin authenticated: {admin.email}")
        return admin

    def authenticate_teacher(self, email: str, password: str) -> Teacher:
        """
        Authenticate a facilitator.

        Raises:
            AuthError: 401 on bad credentials, 403 when the account is inactive
        """
        teacher = self.db.execute(
            select(Teacher).where(Teacher.email == email.lower().strip())
        ).scalar_one_or_none()
        if not teacher or not verify_password(password, teacher.password_hash):
            logger.warning(f"Failed facilitator login for {email}")
            raise AuthError("Email ou senha inválidos", "INVALID_CREDENTIALS", 401)
        if not teacher.eh_ativo:
            logger.warning(f"Inactive facilitator login attempt: {teacher.email}")
            raise AuthError("Facilitador inativo", "TEACHER_INACTIVE", 403)
        logger.info(f"Facilitator authenticated: {teacher.email}")
        return teacher

    def token_for_admin(self, admin: Admin) -> Dict[str, Any]:
        token = create_access_token(admin.id, admin.role, email=admin.email)
        return {"access_token": token, "token_type": "bearer"}

    def token_for_teacher(self, teacher: Teacher) -> Dict[str, Any]:
        token = create_access_token(teacher.id, "teacher", email=teacher.email)
        return {"access_token": token, "token_type": "bearer"}

    def change_teacher_password(self, teacher: Teacher, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, teacher.password_hash):
            raise AuthError("Senha atual incorreta", "INVALID_PASSWORD", 400)

        strength = password_manager.validate_password_strength(new_password)
        if not strength["valid"]:
            raise AuthError(
                "Senha não atende aos requisitos",
                "WEAK_PASSWORD",
                400,
                feedback=strength["feedback"],
            )

        teacher.password_hash = hash_password(new_password)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Facilitator {teacher.id} changed password")
