# pg_repense/core/security.py - Authentication utilities (JWT, password hashing)
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Union
import secrets
import string
import re

import jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status

from pg_repense.core.config import settings

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
    bcrypt__ident="2b"
)


class SecurityError(Exception):
    """Custom exception for security-related errors"""
    pass


class TokenManager:
    """Manages JWT token creation and validation"""

    RESERVED_CLAIMS = {"sub", "iat", "exp", "iss", "aud", "type", "jti"}

    def __init__(self):
        self.secret_key = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.issuer = settings.JWT_ISSUER
        self.audience = settings.JWT_AUDIENCE

    def expiry_for_role(self, role: str) -> timedelta:
        if role == "teacher":
            return timedelta(days=settings.JWT_TEACHER_TOKEN_EXPIRE_DAYS)
        return timedelta(hours=settings.JWT_ADMIN_TOKEN_EXPIRE_HOURS)

    def create_access_token(
        self,
        subject: Union[str, Any],
        role: str,
        expires_delta: Optional[timedelta] = None,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Create a JWT access token.

        Args:
            subject: Token subject (admin or teacher ID)
            role: Role claim, one of admin, superadmin, teacher
            expires_delta: Custom expiration time
            additional_claims: Additional JWT claims

        Returns:
            Encoded JWT token string

        Raises:
            SecurityError: If token creation fails
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or self.expiry_for_role(role))

        payload = {
            "sub": str(subject),
            "role": role,
            "iat": now,
            "exp": expire,
            "iss": self.issuer,
            "aud": self.audience,
            "type": "access",
            "jti": secrets.token_hex(16),
        }

        if additional_claims:
            for claim in additional_claims:
                if claim in self.RESERVED_CLAIMS or claim == "role":
                    raise SecurityError(f"Cannot override reserved JWT claim: {claim}")
            payload.update(additional_claims)

        try:
            return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except jwt.PyJWTError as e:
            raise SecurityError(f"Failed to create access token: {e}")

    def decode_token(self, token: str, verify_exp: bool = True) -> Dict[str, Any]:
        """
        Decode and validate a JWT token.

        Raises:
            HTTPException: If token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_exp": verify_exp}
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token expirado",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except jwt.InvalidTokenError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token inválido",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if payload.get("type") != "access":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Tipo de token inválido",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return payload


class PasswordManager:
    """Manages password hashing, verification, and strength validation"""

    @staticmethod
    def hash_password(password: str) -> str:
        if not password:
            raise SecurityError("Password cannot be empty")
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches, False otherwise (including malformed hashes)
        """
        if not plain_password or not hashed_password:
            return False

        try:
            return pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            return False

    @staticmethod
    def validate_password_strength(password: str) -> Dict[str, Any]:
        """
        Validate password strength with detailed feedback.

        Returns:
            Dictionary with `valid` and a list of `feedback` messages
        """
        if not password:
            return {"valid": False, "feedback": ["A senha não pode ser vazia"]}

        feedback = []
        if len(password) < 8:
            feedback.append("A senha deve ter pelo menos 8 caracteres")
        if not re.search(r'[A-Za-z]', password):
            feedback.append("A senha deve conter pelo menos uma letra")
        if not re.search(r'\d', password):
            feedback.append("A senha deve conter pelo menos um número")
        if password.lower() in ["password", "12345678", "senha123", "repense123", "qwerty123"]:
            feedback.append("Senha muito comum")

        return {"valid": not feedback, "feedback": feedback}

    @staticmethod
    def generate_password(length: Optional[int] = None) -> str:
        """Random password for new facilitator accounts"""
        length = length or settings.TEACHER_DEFAULT_PASSWORD_LENGTH
        alphabet = string.ascii_letters + string.digits
        while True:
            candidate = "".join(secrets.choice(alphabet) for _ in range(length))
            if re.search(r'[A-Za-z]', candidate) and re.search(r'\d', candidate):
                return candidate


# Create global instances
token_manager = TokenManager()
password_manager = PasswordManager()


def create_access_token(subject: Union[str, Any], role: str, **claims: Any) -> str:
    return token_manager.create_access_token(subject, role, additional_claims=claims or None)


def decode_token(token: str) -> Dict[str, Any]:
    return token_manager.decode_token(token)


def hash_password(password: str) -> str:
    return password_manager.hash_password(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return password_manager.verify_password(plain_password, hashed_password)


__all__ = [
    "TokenManager", "PasswordManager", "SecurityError",
    "token_manager", "password_manager",
    "create_access_token", "decode_token", "hash_password", "verify_password",
]
