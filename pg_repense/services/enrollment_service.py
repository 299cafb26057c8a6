# pg_repense/services/enrollment_service.py - Enrollment lifecycle, transfers and the priority list
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from collections import defaultdict
from typing import Optional, Dict, Any, List
from uuid import UUID
import logging

from pg_repense.core.errors import EnrollmentError
from pg_repense.models.base import utcnow
from pg_repense.models.student import Student
from pg_repense.models.class_model import Class
from pg_repense.models.enrollment import Enrollment, EnrollmentStatus
from pg_repense.utils.documents import only_digits

logger = logging.getLogger(__name__)

ATIVO = EnrollmentStatus.ATIVO.value
CONCLUIDO = EnrollmentStatus.CONCLUIDO.value
CANCELADO = EnrollmentStatus.CANCELADO.value
TRANSFERIDO = EnrollmentStatus.TRANSFERIDO.value

MALE = "Masculino"


def course_summary(klass: Class) -> Dict[str, Any]:
    return {
        "id": str(klass.id),
        "grupo_repense": klass.grupo_repense,
        "modelo": klass.modelo,
        "cidade": klass.cidade,
        "horario": klass.horario,
        "data_inicio": klass.data_inicio.isoformat() if klass.data_inicio else None,
    }


class EnrollmentService:
    """
    Every public method either commits all of its changes (enrollment rows
    plus the class counters they affect) or rolls back and raises
    EnrollmentError. `numero_inscritos` always equals the number of `ativo`
    enrollments of the class.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_student(self, student_id: UUID) -> Student:
        student = self.db.get(Student, student_id)
        if not student:
            raise EnrollmentError("Participante não encontrado", "STUDENT_NOT_FOUND", 404)
        return student

    def _get_class(self, class_id: UUID, lock: bool = False, label: str = "Grupo") -> Class:
        stmt = select(Class).where(Class.id == class_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        klass = self.db.execute(stmt).scalar_one_or_none()
        if not klass:
            raise EnrollmentError(f"{label} não encontrado", "CLASS_NOT_FOUND", 404)
        return klass

    def _get_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = self.db.get(Enrollment, enrollment_id)
        if not enrollment:
            raise EnrollmentError("Inscrição não encontrada", "ENROLLMENT_NOT_FOUND", 404)
        return enrollment

    def _student_enrollments(self, student_id: UUID, statuses: Optional[List[str]] = None) -> List[Enrollment]:
        stmt = select(Enrollment).where(Enrollment.student_id == student_id)
        if statuses:
            stmt = stmt.where(Enrollment.status.in_(statuses))
        return list(self.db.execute(stmt.order_by(Enrollment.criado_em)).scalars().all())

    def active_enrollments(self, student_id: UUID) -> List[Enrollment]:
        return self._student_enrollments(student_id, [ATIVO])

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _check_eligibility(
        self,
        student: Student,
        klass: Class,
        confirm_reenrollment: bool = False,
        ignore_enrollment_id: Optional[UUID] = None,
        check_gender: bool = True,
    ) -> None:
        """Raise EnrollmentError if `student` may not hold an active enrollment in `klass`"""
        if not klass.accepts_enrollments:
            raise EnrollmentError("Grupo não está ativo", "CLASS_INACTIVE", 400)

        if check_gender and klass.eh_mulheres and student.genero == MALE:
            raise EnrollmentError("Este grupo é exclusivo para mulheres", "WOMEN_ONLY_CLASS", 400)

        same_group = [
            e for e in self._student_enrollments(student.id)
            if e.class_.grupo_repense == klass.grupo_repense and e.id != ignore_enrollment_id
        ]

        if any(e.status == ATIVO and e.class_id == klass.id for e in same_group):
            raise EnrollmentError("Você já está matriculado nesta turma", "ALREADY_ENROLLED", 409)
        if any(e.status == ATIVO for e in same_group):
            raise EnrollmentError(
                f"Já possui inscrição ativa em {klass.grupo_repense}", "ALREADY_ENROLLED", 409
            )
        if any(e.status == CONCLUIDO for e in same_group):
            raise EnrollmentError(
                f"Já concluiu o PG Repense {klass.grupo_repense}", "ALREADY_COMPLETED", 409
            )
        if not confirm_reenrollment and any(e.status == CANCELADO for e in same_group):
            raise EnrollmentError(
                "Inscrição anterior foi cancelada. Confirme para se reinscrever.",
                "PREVIOUSLY_CANCELLED",
                409,
                requires_confirmation=True,
            )

    def _open_enrollment(
        self, student: Student, class_id: UUID, transferido_de_class_id: Optional[UUID] = None
    ) -> Enrollment:
        """Capacity check and counter increment under a row lock on the class"""
        klass = self._get_class(class_id, lock=True)
        if not klass.accepts_enrollments:
            raise EnrollmentError("Grupo não está ativo", "CLASS_INACTIVE", 400)
        if klass.is_full:
            raise EnrollmentError("Grupo lotado", "CLASS_FULL", 409)

        enrollment = Enrollment(
            student_id=student.id,
            class_id=klass.id,
            status=ATIVO,
            transferido_de_class_id=transferido_de_class_id,
        )
        self.db.add(enrollment)
        klass.numero_inscritos = Class.numero_inscritos + 1
        self.db.flush()
        return enrollment

    def _close_enrollment(self, enrollment: Enrollment, new_status: str) -> None:
        if not enrollment.is_active:
            raise EnrollmentError("Inscrição não está ativa", "ENROLLMENT_NOT_ACTIVE", 400)

        now = utcnow()
        enrollment.status = new_status
        if new_status == CONCLUIDO:
            enrollment.concluido_em = now
        elif new_status == CANCELADO:
            enrollment.cancelado_em = now
        elif new_status == TRANSFERIDO:
            enrollment.transferido_em = now

        klass = self._get_class(enrollment.class_id, lock=True)
        klass.numero_inscritos = Class.numero_inscritos - 1
        self.db.flush()

    def _integrity_error(self, e: IntegrityError) -> Exception:
        message = str(e.orig)
        if "ck_class_capacity" in message:
            return EnrollmentError("Grupo lotado", "CLASS_FULL", 409)
        if "uq_enrollment_active_student_class" in message or "enrollments.student_id" in message:
            return EnrollmentError("Você já está matriculado nesta turma", "ALREADY_ENROLLED", 409)
        return e

    def _run(self, operation, *args, **kwargs):
        """Run a unit of work, committing on success and rolling back on any error"""
        try:
            result = operation(*args, **kwargs)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            error = self._integrity_error(e)
            if error is e:
                raise
            raise error from e
        except Exception:
            self.db.rollback()
            raise
        return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, student_id: UUID, class_id: UUID, confirm_reenrollment: bool = False) -> Enrollment:
        """Enroll a student, incrementing the class counter"""
        def work():
            student = self._get_student(student_id)
            klass = self._get_class(class_id)
            self._check_eligibility(student, klass, confirm_reenrollment)
            return self._open_enrollment(student, klass.id)

        try:
            enrollment = self._run(work)
        except EnrollmentError as e:
            logger.warning(f"Enrollment rejected for student {student_id} in class {class_id}: {e.code}")
            raise
        logger.info(f"Enrollment created: {enrollment.id} (student {student_id}, class {class_id})")
        return enrollment

    def complete(self, enrollment_id: UUID) -> Enrollment:
        def work():
            enrollment = self._get_enrollment(enrollment_id)
            self._close_enrollment(enrollment, CONCLUIDO)
            return enrollment

        enrollment = self._run(work)
        logger.info(f"Enrollment {enrollment_id} completed")
        return enrollment

    def cancel(self, enrollment_id: UUID) -> Enrollment:
        def work():
            enrollment = self._get_enrollment(enrollment_id)
            self._close_enrollment(enrollment, CANCELADO)
            return enrollment

        enrollment = self._run(work)
        logger.info(f"Enrollment {enrollment_id} cancelled")
        return enrollment

    def validate(self, student_id: UUID, class_id: UUID) -> Dict[str, Any]:
        """Dry run of `create`; never mutates"""
        try:
            student = self._get_student(student_id)
            klass = self._get_class(class_id)
            self._check_eligibility(student, klass)
            if klass.is_full:
                raise EnrollmentError("Grupo lotado", "CLASS_FULL", 409)
        except EnrollmentError as e:
            previous = None
            if e.code == "PREVIOUSLY_CANCELLED":
                cancelled = [
                    en for en in self._student_enrollments(student_id, [CANCELADO])
                    if en.class_.grupo_repense == klass.grupo_repense
                ]
                if cancelled:
                    previous = {
                        "id": str(cancelled[-1].id),
                        "class_id": str(cancelled[-1].class_id),
                        "cancelado_em": cancelled[-1].cancelado_em.isoformat() if cancelled[-1].cancelado_em else None,
                    }
            return {
                "can_enroll": False,
                "error": e.message,
                "code": e.code,
                "requires_confirmation": e.code == "PREVIOUSLY_CANCELLED",
                "previous_enrollment": previous,
            }
        return {"can_enroll": True, "error": None, "code": None, "requires_confirmation": False, "previous_enrollment": None}

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def _transfer(self, student: Student, source: Enrollment, to_class_id: UUID) -> Enrollment:
        if source.class_id == to_class_id:
            raise EnrollmentError("O participante já está neste grupo", "SAME_CLASS", 400)

        destination = self._get_class(to_class_id, label="Novo grupo")
        if not destination.accepts_enrollments:
            raise EnrollmentError("Novo grupo não está ativo", "CLASS_INACTIVE", 400)

        concluded_here = self.db.execute(
            select(Enrollment.id).where(
                Enrollment.student_id == student.id,
                Enrollment.class_id == destination.id,
                Enrollment.status == CONCLUIDO,
            )
        ).first()
        if concluded_here:
            raise EnrollmentError("O participante já concluiu esse PG Repense", "ALREADY_COMPLETED", 409)

        # Any other active enrollment in the destination group blocks the move
        blocking = [
            e for e in self._student_enrollments(student.id, [ATIVO])
            if e.id != source.id and e.class_.grupo_repense == destination.grupo_repense
        ]
        if blocking:
            raise EnrollmentError(
                f"Já possui inscrição ativa em {destination.grupo_repense}", "ALREADY_ENROLLED", 409
            )

        from_class_id = source.class_id
        self._close_enrollment(source, TRANSFERIDO)
        return self._open_enrollment(student, destination.id, transferido_de_class_id=from_class_id)

    def transfer_enrolled(self, student_id: UUID, from_class_id: UUID, to_class_id: UUID) -> Enrollment:
        """
        Move an active enrollment to another class.

        The source row becomes `transferido` and a fresh `ativo` row is
        created at the destination, so attendance starts from zero there.
        """
        def work():
            student = self._get_student(student_id)
            self._get_class(from_class_id)
            source = self.db.execute(
                select(Enrollment).where(
                    Enrollment.student_id == student_id,
                    Enrollment.class_id == from_class_id,
                    Enrollment.status == ATIVO,
                )
            ).scalar_one_or_none()
            if not source:
                raise EnrollmentError(
                    "Participante não possui inscrição ativa neste grupo", "ENROLLMENT_NOT_FOUND", 404
                )
            return self._transfer(student, source, to_class_id)

        enrollment = self._run(work)
        logger.info(f"Student {student_id} transferred from class {from_class_id} to {to_class_id}")
        return enrollment

    def transfer_from_priority_list(self, student_id: UUID, to_class_id: UUID) -> Enrollment:
        """Place a waitlisted student into a class; the waitlist entry holds no capacity"""
        def work():
            student = self._get_student(student_id)
            if not student.priority_list:
                raise EnrollmentError(
                    "Participante não está na lista de prioridade", "NOT_ON_PRIORITY_LIST", 400
                )
            klass = self._get_class(to_class_id)
            self._check_eligibility(student, klass, confirm_reenrollment=True, check_gender=False)
            enrollment = self._open_enrollment(student, klass.id)
            student.clear_priority_list()
            student.cidade_preferencia = klass.cidade
            return enrollment

        enrollment = self._run(work)
        logger.info(f"Student {student_id} moved from priority list into class {to_class_id}")
        return enrollment

    # ------------------------------------------------------------------
    # Public registration
    # ------------------------------------------------------------------

    def _find_student_by_cpf(self, cpf: str) -> Optional[Student]:
        return self.db.execute(
            select(Student).where(Student.cpf == only_digits(cpf))
        ).scalar_one_or_none()

    def _ensure_contact_available(self, telefone: str, email: Optional[str], student: Optional[Student]) -> None:
        owner = self.db.execute(select(Student).where(Student.telefone == telefone)).scalar_one_or_none()
        if owner and (student is None or owner.id != student.id):
            raise EnrollmentError("Telefone já cadastrado", "PHONE_TAKEN", 409)
        if email:
            owner = self.db.execute(select(Student).where(Student.email == email)).scalar_one_or_none()
            if owner and (student is None or owner.id != student.id):
                raise EnrollmentError("Email já cadastrado", "EMAIL_TAKEN", 409)

    def _upsert_student(self, data: Dict[str, Any], student: Optional[Student]) -> Student:
        fields = {
            "nome": data["nome"],
            "telefone": data["telefone"],
            "email": data.get("email") or (student.email if student else None),
            "genero": data.get("genero") or (student.genero if student else None),
            "estado_civil": data.get("estado_civil") or (student.estado_civil if student else None),
            "nascimento": data.get("nascimento") or (student.nascimento if student else None),
            "cidade_preferencia": data.get("cidade_preferencia") or (student.cidade_preferencia if student else None),
        }
        if student is None:
            student = Student(cpf=only_digits(data["cpf"]), **fields)
            self.db.add(student)
        else:
            for key, value in fields.items():
                setattr(student, key, value)
        self.db.flush()
        return student

    def register(self, data: Dict[str, Any], class_id: UUID) -> Dict[str, Any]:
        """
        Public registration.

        When the registrant already holds an active enrollment nothing is
        changed: a `requires_course_change` proposal is returned and the
        swap only happens through `change_course`.
        """
        def work():
            klass = self._get_class(class_id, label="Curso")
            if not klass.accepts_enrollments:
                raise EnrollmentError("Curso não está ativo", "CLASS_INACTIVE", 400)
            if klass.is_full:
                raise EnrollmentError("Curso lotado", "CLASS_FULL", 409)

            student = self._find_student_by_cpf(data["cpf"])
            if student:
                active = self.active_enrollments(student.id)
                if any(e.class_id == klass.id for e in active):
                    raise EnrollmentError("Você já está matriculado nesta turma", "ALREADY_ENROLLED", 409)

                same_group = next((e for e in active if e.class_.grupo_repense == klass.grupo_repense), None)
                if same_group is None:
                    concluded = self.db.execute(
                        select(Enrollment.id).where(
                            Enrollment.student_id == student.id,
                            Enrollment.class_id == klass.id,
                            Enrollment.status == CONCLUIDO,
                        )
                    ).first()
                    if concluded:
                        raise EnrollmentError("Você já concluiu esse PG Repense", "ALREADY_COMPLETED", 409)

                conflict = same_group or (active[0] if active else None)
                if conflict:
                    return {
                        "requires_course_change": True,
                        "existing_enrollment": {
                            "id": str(conflict.id),
                            "class_id": str(conflict.class_id),
                            "status": conflict.status,
                            "student_id": str(student.id),
                        },
                        "current_course": course_summary(conflict.class_),
                        "new_course": course_summary(klass),
                    }

            self._ensure_contact_available(data["telefone"], data.get("email"), student)
            student = self._upsert_student(data, student)
            student.clear_priority_list()
            self._check_eligibility(student, klass, confirm_reenrollment=True)
            enrollment = self._open_enrollment(student, klass.id)
            return {
                "success": True,
                "enrollment_id": str(enrollment.id),
                "student_id": str(student.id),
            }

        result = self._run(work)
        if result.get("requires_course_change"):
            logger.info(f"Registration for class {class_id} needs course change confirmation")
        else:
            logger.info(f"Registration created enrollment {result['enrollment_id']} in class {class_id}")
        return result

    def change_course(
        self, cpf: str, student_id: UUID, old_enrollment_id: UUID, new_class_id: UUID
    ) -> Dict[str, Any]:
        """Confirm step of a course change proposed by `register`"""
        def work():
            student = self._get_student(student_id)
            if student.cpf != only_digits(cpf):
                raise EnrollmentError("CPF não corresponde ao participante", "CPF_MISMATCH", 403)

            old = self._get_enrollment(old_enrollment_id)
            if old.student_id != student.id:
                raise EnrollmentError("Inscrição não pertence ao participante", "ENROLLMENT_MISMATCH", 403)
            if old.status != ATIVO:
                raise EnrollmentError("Inscrição não está ativa", "ENROLLMENT_NOT_ACTIVE", 400)

            new_class = self._get_class(new_class_id, label="Novo curso")
            if old.class_id == new_class.id:
                raise EnrollmentError("Você já está matriculado nesta turma", "SAME_CLASS", 400)
            if not new_class.accepts_enrollments:
                raise EnrollmentError("Novo curso não está ativo", "CLASS_INACTIVE", 400)
            if new_class.is_full:
                raise EnrollmentError("Novo curso lotado", "CLASS_FULL", 409)

            if old.class_.grupo_repense == new_class.grupo_repense:
                enrollment = self._transfer(student, old, new_class.id)
                action = "transferred"
            else:
                self._close_enrollment(old, CANCELADO)
                self._check_eligibility(student, new_class, confirm_reenrollment=True)
                enrollment = self._open_enrollment(student, new_class.id)
                action = "cancelled_and_enrolled"

            student.cidade_preferencia = new_class.cidade
            return {
                "success": True,
                "action": action,
                "enrollment_id": str(enrollment.id),
                "student_id": str(student.id),
                "old_enrollment_id": str(old.id),
            }

        result = self._run(work)
        logger.info(f"Course change for student {student_id}: {result['action']} into class {new_class_id}")
        return result

    # ------------------------------------------------------------------
    # Priority list
    # ------------------------------------------------------------------

    def add_to_priority_list(self, data: Dict[str, Any], class_id: UUID) -> Student:
        def work():
            klass = self._get_class(class_id, label="Curso")
            student = self._find_student_by_cpf(data["cpf"])
            if student and self.active_enrollments(student.id):
                raise EnrollmentError(
                    "Você já possui uma inscrição ativa", "ALREADY_ENROLLED", 409
                )
            self._ensure_contact_available(data["telefone"], data.get("email"), student)
            student = self._upsert_student(data, student)
            student.priority_list = True
            student.priority_list_course_id = klass.id
            student.priority_list_added_at = utcnow()
            return student

        student = self._run(work)
        logger.info(f"Student {student.id} added to priority list for class {class_id}")
        return student

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def available_classes(
        self, student_id: Optional[UUID] = None, genero: Optional[str] = None
    ) -> Dict[str, Dict[str, List[Class]]]:
        """Open classes grouped by grupo_repense, then city"""
        excluded_groups = set()
        if student_id:
            student = self._get_student(student_id)
            genero = genero or student.genero
            for enrollment in self._student_enrollments(student_id, [ATIVO, CONCLUIDO]):
                excluded_groups.add(enrollment.class_.grupo_repense)

        classes = self.db.execute(
            select(Class)
            .where(Class.eh_ativo.is_(True), Class.arquivada.is_(False))
            .order_by(Class.grupo_repense, Class.cidade, Class.data_inicio, Class.horario)
        ).scalars().all()

        grouped: Dict[str, Dict[str, List[Class]]] = defaultdict(lambda: defaultdict(list))
        for klass in classes:
            if klass.grupo_repense in excluded_groups:
                continue
            if klass.eh_mulheres and genero == MALE:
                continue
            grouped[klass.grupo_repense][klass.cidade].append(klass)

        return {grupo: dict(cities) for grupo, cities in grouped.items()}
