# pg_repense/models/__init__.py - Import all models so SQLAlchemy can discover them

from pg_repense.models.base import Base

from pg_repense.models.admin import Admin, AdminRole
from pg_repense.models.teacher import Teacher
from pg_repense.models.student import Student
from pg_repense.models.class_model import Class, GrupoRepense, ModeloCurso, Cidade
from pg_repense.models.enrollment import Enrollment, EnrollmentStatus
from pg_repense.models.session import ClassSession, Attendance, SessionStatus
from pg_repense.models.notification import AdminNotification, TeacherNotification, NotificationType
from pg_repense.models.conversation import Conversation, Message
from pg_repense.models.audit_log import AuditLog

__all__ = [
    "Base",
    "Admin",
    "AdminRole",
    "Teacher",
    "Student",
    "Class",
    "GrupoRepense",
    "ModeloCurso",
    "Cidade",
    "Enrollment",
    "EnrollmentStatus",
    "ClassSession",
    "Attendance",
    "SessionStatus",
    "AdminNotification",
    "TeacherNotification",
    "NotificationType",
    "Conversation",
    "Message",
    "AuditLog",
]
