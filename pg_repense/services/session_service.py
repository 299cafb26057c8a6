# pg_repense/services/session_service.py - Session lifecycle, check-in and reports
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func
from typing import Optional, Dict, Any, List, Tuple
from uuid import UUID
import logging

from pg_repense.core.config import settings
from pg_repense.core.errors import SessionError
from pg_repense.models.base import utcnow
from pg_repense.models.class_model import Class
from pg_repense.models.teacher import Teacher
from pg_repense.models.student import Student
from pg_repense.models.enrollment import Enrollment, EnrollmentStatus
from pg_repense.models.session import ClassSession, Attendance, SessionStatus
from pg_repense.models.notification import NotificationType
from pg_repense.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

ATIVO = EnrollmentStatus.ATIVO.value
OPEN = SessionStatus.OPEN.value
CLOSED = SessionStatus.CLOSED.value


def attendance_stats(total: int, rows: List[Attendance]) -> Dict[str, Any]:
    presentes = sum(1 for a in rows if a.presente)
    ausentes = len(rows) - presentes
    return {
        "total": total,
        "presentes": presentes,
        "ausentes": ausentes,
        "nao_registrado": max(total - len(rows), 0),
        "percentual": round(presentes / total * 100) if total else 0,
    }


def session_summary(session: ClassSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "class_id": session.class_id,
        "numero_sessao": session.numero_sessao,
        "data_sessao": session.data_sessao,
        "status": session.status,
        "relatorio": session.relatorio,
        "encerrada_em": session.encerrada_em,
        "grupo_repense": session.class_.grupo_repense if session.class_ else None,
    }


def clean_text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class SessionService:
    """
    Facilitator-side session flow: open, check-in, finalize.

    A class has at most one open session and a facilitator holds at most one
    open session across all classes. Finalizing requires an attendance row
    for every student with an active enrollment in the class.
    """

    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_owned_class(self, teacher: Optional[Teacher], class_id: UUID) -> Class:
        klass = self.db.get(Class, class_id)
        if not klass:
            raise SessionError("Turma não encontrada", "CLASS_NOT_FOUND", 404)
        if teacher is not None and klass.teacher_id != teacher.id:
            raise SessionError("Você não tem permissão para acessar esta turma", "FORBIDDEN", 403)
        return klass

    def _get_owned_session(self, teacher: Optional[Teacher], session_id: UUID) -> ClassSession:
        session = self.db.get(ClassSession, session_id)
        if not session:
            raise SessionError("Sessão não encontrada", "SESSION_NOT_FOUND", 404)
        if teacher is not None and session.class_.teacher_id != teacher.id:
            raise SessionError("Você não tem permissão para acessar esta sessão", "FORBIDDEN", 403)
        return session

    def active_enrollments(self, class_id: UUID) -> List[Enrollment]:
        return list(self.db.execute(
            select(Enrollment)
            .join(Student, Student.id == Enrollment.student_id)
            .where(Enrollment.class_id == class_id, Enrollment.status == ATIVO)
            .order_by(Student.nome)
        ).scalars().all())

    def _attendance_rows(self, session_id: UUID) -> Dict[UUID, Attendance]:
        rows = self.db.execute(
            select(Attendance).where(Attendance.session_id == session_id)
        ).scalars().all()
        return {row.student_id: row for row in rows}

    def _roster(self, session: ClassSession) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        enrollments = self.active_enrollments(session.class_id)
        recorded = self._attendance_rows(session.id)
        active_ids = {e.student_id for e in enrollments}

        students = []
        for enrollment in enrollments:
            row = recorded.get(enrollment.student_id)
            students.append({
                "student_id": enrollment.student_id,
                "enrollment_id": enrollment.id,
                "nome": enrollment.student.nome,
                "telefone": enrollment.student.telefone,
                "presente": row.presente if row else None,
                "observacao": row.observacao if row else None,
            })
        stats = attendance_stats(
            len(enrollments), [row for sid, row in recorded.items() if sid in active_ids]
        )
        return students, stats

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_active_session(self, teacher: Teacher) -> Optional[Dict[str, Any]]:
        session = self.db.execute(
            select(ClassSession).where(ClassSession.teacher_id == teacher.id, ClassSession.status == OPEN)
        ).scalar_one_or_none()
        if not session:
            return None
        students, stats = self._roster(session)
        return {"session": session_summary(session), "students": students, "stats": stats}

    def get_session(self, session_id: UUID, teacher: Optional[Teacher] = None) -> Dict[str, Any]:
        """Session detail with roster; `teacher=None` skips the ownership check (admin view)"""
        session = self._get_owned_session(teacher, session_id)
        students, stats = self._roster(session)
        return {"session": session_summary(session), "students": students, "stats": stats}

    def get_attendance(self, teacher: Teacher, session_id: UUID) -> Dict[str, Any]:
        session = self._get_owned_session(teacher, session_id)
        students, stats = self._roster(session)
        return {"session_id": session.id, "attendance": students, "stats": stats}

    def class_sessions(self, class_id: UUID, teacher: Optional[Teacher] = None) -> List[Dict[str, Any]]:
        klass = self.get_owned_class(teacher, class_id)
        sessions = self.db.execute(
            select(ClassSession)
            .where(ClassSession.class_id == klass.id)
            .order_by(ClassSession.numero_sessao)
        ).scalars().all()

        total = len(self.active_enrollments(klass.id))
        result = []
        for session in sessions:
            summary = session_summary(session)
            summary["stats"] = attendance_stats(total, list(self._attendance_rows(session.id).values()))
            result.append(summary)
        return result

    def at_risk_students(self, teacher: Teacher, threshold: Optional[int] = None) -> List[Dict[str, Any]]:
        """Active enrollments with at least `threshold` recorded absences, most absences first"""
        if threshold is None:
            threshold = settings.AT_RISK_ABSENCE_THRESHOLD
        absences = func.count(Attendance.id)
        rows = self.db.execute(
            select(Enrollment, absences)
            .join(Attendance, Attendance.enrollment_id == Enrollment.id)
            .join(Class, Class.id == Enrollment.class_id)
            .where(
                Class.teacher_id == teacher.id,
                Class.arquivada.is_(False),
                Enrollment.status == ATIVO,
                Attendance.presente.is_(False),
            )
            .group_by(Enrollment.id)
            .having(absences >= threshold)
            .order_by(absences.desc())
        ).all()

        return [
            {
                "student_id": enrollment.student_id,
                "nome": enrollment.student.nome,
                "telefone": enrollment.student.telefone,
                "class_id": enrollment.class_id,
                "grupo_repense": enrollment.class_.grupo_repense,
                "faltas": count,
            }
            for enrollment, count in rows
        ]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            message = str(e.orig)
            if "uq_session_open_per_teacher" in message or "sessions.teacher_id" in message:
                raise SessionError("Você já possui uma sessão ativa", "ACTIVE_SESSION_EXISTS", 400)
            if "uq_session_class_numero" in message:
                raise SessionError("Sessão já foi iniciada para esta turma", "SESSION_CONFLICT", 409)
            raise

    def open_session(self, teacher: Teacher, class_id: UUID) -> Tuple[ClassSession, bool]:
        """Return `(session, reused)`; an open session of the class is reused"""
        klass = self.get_owned_class(teacher, class_id)
        if not klass.accepts_enrollments:
            raise SessionError("Turma não está ativa", "CLASS_INACTIVE", 400)

        existing = self.db.execute(
            select(ClassSession).where(ClassSession.class_id == klass.id, ClassSession.status == OPEN)
        ).scalar_one_or_none()
        if existing:
            logger.info(f"Reusing open session {existing.id} for class {klass.id}")
            return existing, True

        elsewhere = self.db.execute(
            select(ClassSession).where(ClassSession.teacher_id == teacher.id, ClassSession.status == OPEN)
        ).scalar_one_or_none()
        if elsewhere:
            logger.warning(f"Teacher {teacher.id} tried to open a second session (open: {elsewhere.id})")
            raise SessionError(
                "Você já possui uma sessão ativa em outra turma. Finalize-a antes de iniciar outra.",
                "ACTIVE_SESSION_EXISTS",
                400,
                active_session=session_summary(elsewhere),
            )

        last = self.db.execute(
            select(func.max(ClassSession.numero_sessao)).where(ClassSession.class_id == klass.id)
        ).scalar_one()
        session = ClassSession(
            class_id=klass.id,
            teacher_id=teacher.id,
            numero_sessao=(last or 0) + 1,
            status=OPEN,
        )
        try:
            self.db.add(session)
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise SessionError("Você já possui uma sessão ativa", "ACTIVE_SESSION_EXISTS", 400)
        self._commit()

        logger.info(f"Session {session.numero_sessao} opened for class {klass.id} ({session.id})")
        return session, False

    def save_attendance(self, teacher: Teacher, session_id: UUID, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Upsert attendance by (session, student).

        Each record has `student_id`, `presente` and an optional
        `observacao`. Students without an active enrollment in the class are
        rejected as a whole batch.
        """
        session = self._get_owned_session(teacher, session_id)
        if not session.is_open:
            raise SessionError("Sessão já foi finalizada", "SESSION_CLOSED", 400)

        enrollments = {e.student_id: e for e in self.active_enrollments(session.class_id)}
        invalid = [str(r["student_id"]) for r in records if r["student_id"] not in enrollments]
        if invalid:
            raise SessionError(
                "Alguns participantes não estão matriculados nesta turma",
                "INVALID_STUDENTS",
                400,
                invalid_student_ids=invalid,
            )

        existing = self._attendance_rows(session.id)
        try:
            for record in records:
                student_id = record["student_id"]
                observacao = clean_text(record.get("observacao"))
                row = existing.get(student_id)
                previous = row.observacao if row else None

                if row is None:
                    row = Attendance(
                        session_id=session.id,
                        student_id=student_id,
                        enrollment_id=enrollments[student_id].id,
                    )
                    self.db.add(row)
                    existing[student_id] = row
                row.enrollment_id = enrollments[student_id].id
                row.presente = bool(record.get("presente"))
                row.observacao = observacao
                self.db.flush()

                if observacao and observacao != previous:
                    row.lida_por_admin = False
                    row.lida_em = None
                    self.notifications.notify_admins(
                        NotificationType.STUDENT_OBSERVATION.value, row.id, reset_read=True
                    )
            self._commit()
        except Exception:
            self.db.rollback()
            raise

        rows = list(existing.values())
        logger.info(f"Attendance saved for session {session.id}: {len(records)} record(s)")
        return {"success": True, "stats": attendance_stats(len(enrollments), rows)}

    def finalize(self, teacher: Teacher, session_id: UUID, relatorio: Optional[str] = None) -> ClassSession:
        session = self._get_owned_session(teacher, session_id)
        if not session.is_open:
            raise SessionError("Sessão já foi finalizada", "SESSION_CLOSED", 400)

        recorded = self._attendance_rows(session.id)
        missing = [str(e.student_id) for e in self.active_enrollments(session.class_id) if e.student_id not in recorded]
        if missing:
            logger.warning(f"Session {session.id} finalize blocked: {len(missing)} student(s) without check-in")
            raise SessionError(
                "Faça o check-in de todos os participantes antes de finalizar a sessão",
                "CHECK_IN_REQUIRED",
                400,
                missing_student_ids=missing,
            )

        try:
            session.status = CLOSED
            session.relatorio = clean_text(relatorio)
            session.encerrada_em = utcnow()
            self.db.flush()
            if session.relatorio:
                self.notifications.notify_admins(NotificationType.SESSION_REPORT.value, session.id)
            self._commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Session {session.id} closed (class {session.class_id}, #{session.numero_sessao})")
        return session

    def get_final_report(self, teacher: Teacher, class_id: UUID) -> Dict[str, Any]:
        klass = self.get_owned_class(teacher, class_id)
        return {
            "class_id": klass.id,
            "final_report": klass.final_report,
            "final_report_em": klass.final_report_em,
            "sessions_count": self.db.execute(
                select(func.count(ClassSession.id)).where(ClassSession.class_id == klass.id)
            ).scalar_one(),
            "numero_sessoes": klass.numero_sessoes,
        }

    def submit_final_report(self, teacher: Teacher, class_id: UUID, text: Optional[str]) -> Class:
        klass = self.get_owned_class(teacher, class_id)
        report = clean_text(text)
        if not report:
            raise SessionError("Relatório final não pode ser vazio", "FINAL_REPORT_EMPTY", 400)

        first_submission = not klass.final_report
        try:
            klass.final_report = report
            klass.final_report_em = utcnow()
            self.db.flush()
            if first_submission:
                self.notifications.notify_admins(NotificationType.FINAL_REPORT.value, klass.id)
            self._commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Final report {'submitted' if first_submission else 'updated'} for class {klass.id}")
        return klass
