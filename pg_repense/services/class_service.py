# pg_repense/services/class_service.py - Class management, archive gate and facilitator status
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from datetime import date
from typing import Optional, Dict, Any, List
from uuid import UUID
import logging

from pg_repense.core.errors import ClassError
from pg_repense.models.class_model import Class
from pg_repense.models.teacher import Teacher
from pg_repense.models.session import ClassSession, SessionStatus

logger = logging.getLogger(__name__)

# Fields an admin may change after creation
UPDATABLE_FIELDS = (
    "capacidade", "eh_ativo", "teacher_id", "link_whatsapp", "horario",
    "data_inicio", "numero_sessoes", "eh_16h", "eh_mulheres", "cidade", "modelo",
)


def capacity_status(numero_inscritos: int, capacidade: int) -> str:
    """Bucket used by dashboards: ok, warning_70, warning_80, warning_90, full"""
    if capacidade <= 0:
        return "ok"
    percentage = numero_inscritos / capacidade * 100
    if percentage >= 100:
        return "full"
    if percentage >= 90:
        return "warning_90"
    if percentage >= 80:
        return "warning_80"
    if percentage >= 70:
        return "warning_70"
    return "ok"


def capacity_percentage(numero_inscritos: int, capacidade: int) -> int:
    return round(numero_inscritos / capacidade * 100) if capacidade > 0 else 0


class ClassService:
    """Service class for class administration"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, class_id: UUID) -> Class:
        klass = self.db.get(Class, class_id)
        if not klass:
            raise ClassError("Turma não encontrada", "CLASS_NOT_FOUND", 404)
        return klass

    def list_classes(
        self,
        eh_ativo: Optional[bool] = None,
        teacher_id: Optional[UUID] = None,
        grupo_repense: Optional[str] = None,
        arquivada: Optional[bool] = False,
        aguardando_inicio: bool = False,
    ) -> List[Class]:
        """Archived classes are hidden unless `arquivada` is True or None"""
        stmt = select(Class)
        if arquivada is not None:
            stmt = stmt.where(Class.arquivada.is_(arquivada))
        if eh_ativo is not None:
            stmt = stmt.where(Class.eh_ativo.is_(eh_ativo))
        if teacher_id:
            stmt = stmt.where(Class.teacher_id == teacher_id)
        if grupo_repense:
            stmt = stmt.where(Class.grupo_repense == grupo_repense)
        if aguardando_inicio:
            stmt = stmt.where(Class.data_inicio > date.today())
        stmt = stmt.order_by(Class.data_inicio.desc(), Class.criado_em.desc())
        return list(self.db.execute(stmt).scalars().all())

    def session_count(self, class_id: UUID) -> int:
        return self.db.execute(
            select(func.count(ClassSession.id)).where(ClassSession.class_id == class_id)
        ).scalar_one()

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_teacher_assignable(self, teacher_id: UUID, will_be_active: bool, class_id: Optional[UUID] = None) -> None:
        teacher = self.db.get(Teacher, teacher_id)
        if not teacher:
            raise ClassError("Facilitador não encontrado", "TEACHER_NOT_FOUND", 400)
        if not teacher.eh_ativo:
            raise ClassError("Facilitador está inativo", "TEACHER_INACTIVE", 400)

        if will_be_active:
            stmt = select(func.count(Class.id)).where(
                Class.teacher_id == teacher_id,
                Class.eh_ativo.is_(True),
                Class.arquivada.is_(False),
            )
            if class_id:
                stmt = stmt.where(Class.id != class_id)
            if self.db.execute(stmt).scalar_one() >= 1:
                raise ClassError("Facilitador já tem 1 grupo ativo", "TEACHER_HAS_ACTIVE_CLASS", 400)

    def _check_link_available(self, link: Optional[str], class_id: Optional[UUID] = None) -> None:
        if not link:
            return
        stmt = select(Class.id).where(Class.link_whatsapp == link)
        if class_id:
            stmt = stmt.where(Class.id != class_id)
        if self.db.execute(stmt).first():
            raise ClassError("Link WhatsApp já usado em outro grupo", "WHATSAPP_LINK_TAKEN", 400)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, data: Dict[str, Any]) -> Class:
        teacher_id = data.get("teacher_id")
        if teacher_id:
            self._check_teacher_assignable(teacher_id, data.get("eh_ativo", True))
        self._check_link_available(data.get("link_whatsapp"))

        klass = Class(numero_inscritos=0, **data)
        try:
            self.db.add(klass)
            self.db.flush()
            self.sync_teachers_active_status()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Class created: {klass.id} ({klass.grupo_repense}, {klass.cidade})")
        return klass

    def update(self, class_id: UUID, changes: Dict[str, Any]) -> Class:
        klass = self.get(class_id)

        if "capacidade" in changes and changes["capacidade"] < klass.numero_inscritos:
            raise ClassError(
                f"Capacidade não pode ser menor que o número de inscritos ({klass.numero_inscritos})",
                "CAPACITY_BELOW_ENROLLED",
                400,
            )

        if changes.get("eh_ativo") and klass.arquivada:
            raise ClassError("Turma arquivada não pode ser reativada", "CLASS_ARCHIVED", 400)

        next_active = changes.get("eh_ativo", klass.eh_ativo)
        if changes.get("teacher_id"):
            self._check_teacher_assignable(changes["teacher_id"], next_active, class_id=klass.id)

        if changes.get("link_whatsapp"):
            self._check_link_available(changes["link_whatsapp"], class_id=klass.id)

        for field in UPDATABLE_FIELDS:
            if field in changes:
                value = changes[field]
                if field in ("link_whatsapp", "horario") and value == "":
                    value = None
                setattr(klass, field, value)

        try:
            self.db.flush()
            self.sync_teachers_active_status()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Class updated: {klass.id} fields={sorted(changes)}")
        return klass

    # ------------------------------------------------------------------
    # Archive gate
    # ------------------------------------------------------------------

    def check_can_archive(self, klass: Class) -> None:
        """
        Archiving is blocked while a session is open, and once the target
        session count is reached until a final report exists.
        """
        open_session = self.db.execute(
            select(ClassSession.id).where(
                ClassSession.class_id == klass.id,
                ClassSession.status == SessionStatus.OPEN.value,
            )
        ).first()
        if open_session:
            raise ClassError(
                "Não é possível arquivar uma turma com sessão em andamento",
                "SESSION_OPEN",
                400,
            )

        if self.session_count(klass.id) >= klass.numero_sessoes and not (klass.final_report or "").strip():
            raise ClassError(
                "Relatório final é obrigatório para arquivar uma turma que completou todas as sessões",
                "FINAL_REPORT_REQUIRED",
                400,
            )

    def _set_archived(self, klass: Class, archived: bool) -> None:
        if archived:
            self.check_can_archive(klass)
            klass.arquivada = True
            klass.eh_ativo = False
        else:
            klass.arquivada = False

    def toggle_archive(self, class_id: UUID) -> Class:
        klass = self.get(class_id)
        archived = not klass.arquivada
        try:
            self._set_archived(klass, archived)
            self.db.flush()
            self.sync_teachers_active_status()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Class {class_id} {'archived' if archived else 'unarchived'}")
        return klass

    def archive(self, class_id: UUID) -> Class:
        """Soft delete: archive if not archived yet"""
        klass = self.get(class_id)
        if klass.arquivada:
            return klass
        return self.toggle_archive(class_id)

    def batch_archive(self, class_ids: List[UUID]) -> Dict[str, Any]:
        archived: List[str] = []
        skipped: List[Dict[str, Any]] = []

        try:
            for class_id in class_ids:
                klass = self.db.get(Class, class_id)
                if not klass:
                    skipped.append({"id": str(class_id), "code": "CLASS_NOT_FOUND", "error": "Turma não encontrada"})
                    continue
                if klass.arquivada:
                    archived.append(str(class_id))
                    continue
                try:
                    self._set_archived(klass, True)
                except ClassError as e:
                    skipped.append({"id": str(class_id), "code": e.code, "error": e.message})
                    continue
                archived.append(str(class_id))

            self.db.flush()
            self.sync_teachers_active_status()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Batch archive: {len(archived)} archived, {len(skipped)} skipped")
        return {"archived": archived, "skipped": skipped, "count": len(archived)}

    # ------------------------------------------------------------------
    # Facilitator status
    # ------------------------------------------------------------------

    def sync_teachers_active_status(self) -> Dict[str, int]:
        """
        A facilitator is active iff they lead an active, non-archived class.
        Facilitators with no class at all keep their current flag so newly
        created accounts stay assignable. Does not commit.
        """
        teachers = self.db.execute(select(Teacher)).scalars().all()
        activated = deactivated = 0

        for teacher in teachers:
            classes = self.db.execute(
                select(Class.eh_ativo, Class.arquivada).where(Class.teacher_id == teacher.id)
            ).all()
            if not classes:
                continue
            should_be_active = any(eh_ativo and not arquivada for eh_ativo, arquivada in classes)
            if should_be_active and not teacher.eh_ativo:
                teacher.eh_ativo = True
                activated += 1
            elif not should_be_active and teacher.eh_ativo:
                teacher.eh_ativo = False
                deactivated += 1

        if activated or deactivated:
            logger.info(f"Facilitator status sync: {activated} activated, {deactivated} deactivated")
        return {"activated_count": activated, "deactivated_count": deactivated}
