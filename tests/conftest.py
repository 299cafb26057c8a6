# tests/conftest.py - Shared fixtures: in-memory database, API client and factories
import os
import itertools

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from pg_repense.core.db import db_manager, get_engine, get_db
from pg_repense.core.security import hash_password, create_access_token
from pg_repense.models import Base, Admin, Teacher, Student, Class, Enrollment
from pg_repense.main import app

_sequence = itertools.count(1)

DEFAULT_PASSWORD = "senha1234"


@pytest.fixture(autouse=True)
def engine():
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(engine):
    session = db_manager.SessionLocal()
    yield session
    session.close()


def override_get_db():
    session = db_manager.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_admin(db):
    def _make(role="admin", password=DEFAULT_PASSWORD):
        n = next(_sequence)
        admin = Admin(
            email=f"admin{n}@repense.org",
            nome=f"Admin {n}",
            password_hash=hash_password(password),
            role=role,
        )
        db.add(admin)
        db.commit()
        return admin
    return _make


@pytest.fixture
def make_teacher(db):
    def _make(eh_ativo=True, password=DEFAULT_PASSWORD):
        n = next(_sequence)
        teacher = Teacher(
            nome=f"Facilitador {n}",
            email=f"facilitador{n}@repense.org",
            password_hash=hash_password(password),
            eh_ativo=eh_ativo,
        )
        db.add(teacher)
        db.commit()
        return teacher
    return _make


@pytest.fixture
def make_class(db):
    def _make(teacher=None, **fields):
        values = {
            "grupo_repense": "Igreja",
            "modelo": "presencial",
            "cidade": "Indaiatuba",
            "capacidade": 10,
            "horario": "19:30",
            "numero_sessoes": 9,
        }
        values.update(fields)
        klass = Class(teacher_id=teacher.id if teacher else None, **values)
        db.add(klass)
        db.commit()
        return klass
    return _make


@pytest.fixture
def make_student(db):
    def _make(**fields):
        n = next(_sequence)
        values = {
            "nome": f"Participante {n}",
            "cpf": f"{n:011d}",
            "telefone": f"119{n:08d}",
            "genero": "Feminino",
        }
        values.update(fields)
        student = Student(**values)
        db.add(student)
        db.commit()
        return student
    return _make


@pytest.fixture
def enroll(db):
    """Insert an active enrollment directly, keeping the class counter in sync"""
    def _enroll(student, klass):
        enrollment = Enrollment(student_id=student.id, class_id=klass.id, status="ativo")
        klass.numero_inscritos += 1
        db.add(enrollment)
        db.commit()
        return enrollment
    return _enroll


def auth_headers(user, role):
    token = create_access_token(user.id, role, email=user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(make_admin):
    admin = make_admin()
    return auth_headers(admin, admin.role)


@pytest.fixture
def headers_for():
    """headers_for(user) builds a bearer header; the role defaults to the account's own"""
    def _headers(user, role=None):
        return auth_headers(user, role or getattr(user, "role", "teacher"))
    return _headers
