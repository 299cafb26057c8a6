# pg_repense/services/conversation_service.py - Admin <-> facilitator message threads
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Optional, Dict, Any, List
from uuid import UUID
import logging

from pg_repense.core.config import settings
from pg_repense.core.errors import ConversationError
from pg_repense.models.base import utcnow
from pg_repense.models.admin import Admin
from pg_repense.models.teacher import Teacher
from pg_repense.models.class_model import Class
from pg_repense.models.student import Student
from pg_repense.models.conversation import Conversation, Message
from pg_repense.models.notification import NotificationType
from pg_repense.services.notification_service import NotificationService, class_ref, preview

logger = logging.getLogger(__name__)


def message_out(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "body": message.body,
        "sender_type": message.sender_type,
        "sender_admin_id": message.sender_admin_id,
        "sender_teacher_id": message.sender_teacher_id,
        "criado_em": message.criado_em,
    }


class ConversationService:
    """
    Threads are attached to a class and optionally to one student.
    Posting a message notifies the other side: facilitator messages reach
    every admin, admin messages reach the class facilitator.
    """

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def _get(self, conversation_id: UUID) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if not conversation:
            raise ConversationError("Conversa não encontrada", "CONVERSATION_NOT_FOUND", 404)
        return conversation

    def _get_for_teacher(self, teacher: Teacher, conversation_id: UUID) -> Conversation:
        conversation = self._get(conversation_id)
        if conversation.class_.teacher_id != teacher.id:
            raise ConversationError("Você não tem permissão para acessar esta conversa", "FORBIDDEN", 403)
        return conversation

    def summary(self, conversation: Conversation) -> Dict[str, Any]:
        last = self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id)
            .order_by(Message.criado_em.desc())
            .limit(1)
        ).scalar_one_or_none()
        return {
            "id": conversation.id,
            "class": class_ref(conversation.class_),
            "student": {"id": conversation.student.id, "nome": conversation.student.nome} if conversation.student else None,
            "last_message": preview(last.body, 80) if last else None,
            "atualizado_em": conversation.atualizado_em,
        }

    def _find_or_create(self, klass: Class, student_id: Optional[UUID] = None) -> Conversation:
        if student_id and not self.db.get(Student, student_id):
            raise ConversationError("Participante não encontrado", "STUDENT_NOT_FOUND", 404)

        stmt = select(Conversation).where(Conversation.class_id == klass.id)
        if student_id:
            stmt = stmt.where(Conversation.student_id == student_id)
        else:
            stmt = stmt.where(Conversation.student_id.is_(None))
        conversation = self.db.execute(stmt).scalars().first()
        if conversation:
            return conversation

        conversation = Conversation(class_id=klass.id, student_id=student_id)
        try:
            self.db.add(conversation)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Conversation {conversation.id} created for class {klass.id}")
        return conversation

    # ------------------------------------------------------------------
    # Facilitator side
    # ------------------------------------------------------------------

    def list_for_teacher(self, teacher: Teacher) -> List[Dict[str, Any]]:
        conversations = self.db.execute(
            select(Conversation)
            .join(Class, Class.id == Conversation.class_id)
            .where(Class.teacher_id == teacher.id)
            .order_by(Conversation.atualizado_em.desc())
        ).scalars().all()
        return [self.summary(c) for c in conversations]

    def open_for_teacher(self, teacher: Teacher, class_id: UUID, student_id: Optional[UUID] = None) -> Conversation:
        klass = self.db.get(Class, class_id)
        if not klass:
            raise ConversationError("Turma não encontrada", "CLASS_NOT_FOUND", 404)
        if klass.teacher_id != teacher.id:
            raise ConversationError("Você não tem permissão para acessar esta turma", "FORBIDDEN", 403)
        if not klass.accepts_enrollments:
            raise ConversationError("Turma não está ativa", "CLASS_INACTIVE", 400)
        return self._find_or_create(klass, student_id)

    def teacher_messages(self, teacher: Teacher, conversation_id: UUID) -> List[Dict[str, Any]]:
        conversation = self._get_for_teacher(teacher, conversation_id)
        return self._messages(conversation)

    def post_as_teacher(self, teacher: Teacher, conversation_id: UUID, body: str) -> Message:
        conversation = self._get_for_teacher(teacher, conversation_id)
        message = self._post(conversation, body, sender_type="teacher", sender_teacher_id=teacher.id)
        logger.info(f"Facilitator {teacher.id} posted to conversation {conversation.id}")
        return message

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------

    def list_for_admin(self, class_id: Optional[UUID] = None) -> List[Dict[str, Any]]:
        stmt = select(Conversation)
        if class_id:
            stmt = stmt.where(Conversation.class_id == class_id)
        conversations = self.db.execute(stmt.order_by(Conversation.atualizado_em.desc())).scalars().all()
        return [self.summary(c) for c in conversations]

    def open_for_admin(self, class_id: UUID, student_id: Optional[UUID] = None) -> Conversation:
        klass = self.db.get(Class, class_id)
        if not klass:
            raise ConversationError("Turma não encontrada", "CLASS_NOT_FOUND", 404)
        return self._find_or_create(klass, student_id)

    def admin_messages(self, conversation_id: UUID) -> List[Dict[str, Any]]:
        return self._messages(self._get(conversation_id))

    def post_as_admin(self, admin: Admin, conversation_id: UUID, body: str) -> Message:
        conversation = self._get(conversation_id)
        message = self._post(conversation, body, sender_type="admin", sender_admin_id=admin.id)
        logger.info(f"Admin {admin.id} posted to conversation {conversation.id}")
        return message

    def _messages(self, conversation: Conversation) -> List[Dict[str, Any]]:
        messages = self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id)
            .order_by(Message.criado_em)
        ).scalars().all()
        return [message_out(m) for m in messages]

    # ------------------------------------------------------------------

    def _post(self, conversation: Conversation, body: str, sender_type: str, **sender) -> Message:
        body = (body or "").strip()
        if not body:
            raise ConversationError("Mensagem não pode ser vazia", "MESSAGE_EMPTY", 400)
        if len(body) > settings.MESSAGE_MAX_LENGTH:
            raise ConversationError(
                f"Mensagem deve ter no máximo {settings.MESSAGE_MAX_LENGTH} caracteres",
                "MESSAGE_TOO_LONG",
                400,
            )

        message = Message(conversation_id=conversation.id, body=body, sender_type=sender_type, **sender)
        try:
            self.db.add(message)
            conversation.atualizado_em = utcnow()
            self.db.flush()
            if sender_type == "teacher":
                self.notifications.notify_admins(
                    NotificationType.TEACHER_MESSAGE.value, conversation.id, reset_read=True
                )
            elif conversation.class_.teacher_id:
                self.notifications.notify_teacher(conversation.class_.teacher_id, conversation.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return message
