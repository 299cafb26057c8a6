# pg_repense/models/class_model.py - PG course offerings
from __future__ import annotations
import uuid
import enum
from datetime import date, datetime
from sqlalchemy import String, Integer, Date, DateTime, Boolean, Text, ForeignKey, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pg_repense.models.base import Base, utcnow


class GrupoRepense(str, enum.Enum):
    """Fixed group categories a class belongs to"""
    IGREJA = "Igreja"
    ESPIRITUALIDADE = "Espiritualidade"
    EVANGELHO = "Evangelho"


class ModeloCurso(str, enum.Enum):
    ONLINE = "online"
    PRESENCIAL = "presencial"


class Cidade(str, enum.Enum):
    INDAIATUBA = "Indaiatuba"
    ITU = "Itu"


class Class(Base):
    """
    A PG offering. `numero_inscritos` is a denormalized count of the
    `ativo` enrollments and is only changed in the same transaction as the
    enrollment status it mirrors.
    """
    __tablename__ = "classes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    grupo_repense: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    modelo: Mapped[str] = mapped_column(String(16), nullable=False)
    cidade: Mapped[str] = mapped_column(String(32), nullable=False, default=Cidade.INDAIATUBA.value)

    capacidade: Mapped[int] = mapped_column(Integer, nullable=False)
    numero_inscritos: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    eh_ativo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    arquivada: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    eh_16h: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    eh_mulheres: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    link_whatsapp: Mapped[str | None] = mapped_column(String(500), unique=True)
    data_inicio: Mapped[date | None] = mapped_column(Date)
    horario: Mapped[str | None] = mapped_column(String(32))
    numero_sessoes: Mapped[int] = mapped_column(Integer, nullable=False, default=9)

    teacher_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    final_report: Mapped[str | None] = mapped_column(Text)
    final_report_em: Mapped[datetime | None] = mapped_column(DateTime)

    criado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    atualizado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    teacher: Mapped["Teacher"] = relationship("Teacher", back_populates="classes")
    enrollments: Mapped[list["Enrollment"]] = relationship(
        "Enrollment", back_populates="class_", foreign_keys="Enrollment.class_id"
    )
    sessions: Mapped[list["ClassSession"]] = relationship("ClassSession", back_populates="class_")

    __table_args__ = (
        CheckConstraint("numero_inscritos >= 0 AND numero_inscritos <= capacidade", name="ck_class_capacity"),
        CheckConstraint("capacidade > 0", name="ck_class_capacidade_positive"),
        CheckConstraint("numero_sessoes BETWEEN 1 AND 20", name="ck_class_numero_sessoes"),
        CheckConstraint("grupo_repense IN ('Igreja','Espiritualidade','Evangelho')", name="ck_class_grupo"),
        CheckConstraint("modelo IN ('online','presencial')", name="ck_class_modelo"),
        CheckConstraint("cidade IN ('Indaiatuba','Itu')", name="ck_class_cidade"),
    )

    @property
    def vagas_disponiveis(self) -> int:
        return max(self.capacidade - self.numero_inscritos, 0)

    @property
    def is_full(self) -> bool:
        return self.numero_inscritos >= self.capacidade

    @property
    def accepts_enrollments(self) -> bool:
        return self.eh_ativo and not self.arquivada
