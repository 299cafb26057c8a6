"""initial schema

Revision ID: 5c1e2a9d7b40
Revises:
Create Date: 2025-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5c1e2a9d7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        'admins',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('nome', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='admin'),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("role IN ('admin','superadmin')", name='ck_admin_role'),
    )
    op.create_index('ix_admins_email', 'admins', ['email'], unique=True)

    op.create_table(
        'teachers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('nome', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('telefone', sa.String(length=20), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('eh_ativo', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_teachers_email', 'teachers', ['email'], unique=True)

    op.create_table(
        'classes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('grupo_repense', sa.String(length=32), nullable=False),
        sa.Column('modelo', sa.String(length=16), nullable=False),
        sa.Column('cidade', sa.String(length=32), nullable=False, server_default='Indaiatuba'),
        sa.Column('capacidade', sa.Integer(), nullable=False),
        sa.Column('numero_inscritos', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('eh_ativo', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('arquivada', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('eh_16h', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('eh_mulheres', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('link_whatsapp', sa.String(length=500), nullable=True),
        sa.Column('data_inicio', sa.Date(), nullable=True),
        sa.Column('horario', sa.String(length=32), nullable=True),
        sa.Column('numero_sessoes', sa.Integer(), nullable=False, server_default='9'),
        sa.Column('teacher_id', sa.Uuid(), nullable=True),
        sa.Column('final_report', sa.Text(), nullable=True),
        sa.Column('final_report_em', sa.DateTime(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('atualizado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('link_whatsapp'),
        sa.CheckConstraint('numero_inscritos >= 0 AND numero_inscritos <= capacidade', name='ck_class_capacity'),
        sa.CheckConstraint('capacidade > 0', name='ck_class_capacidade_positive'),
        sa.CheckConstraint('numero_sessoes BETWEEN 1 AND 20', name='ck_class_numero_sessoes'),
        sa.CheckConstraint("grupo_repense IN ('Igreja','Espiritualidade','Evangelho')", name='ck_class_grupo'),
        sa.CheckConstraint("modelo IN ('online','presencial')", name='ck_class_modelo'),
        sa.CheckConstraint("cidade IN ('Indaiatuba','Itu')", name='ck_class_cidade'),
    )
    op.create_index('ix_classes_grupo_repense', 'classes', ['grupo_repense'])
    op.create_index('ix_classes_arquivada', 'classes', ['arquivada'])
    op.create_index('ix_classes_teacher_id', 'classes', ['teacher_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('nome', sa.String(length=255), nullable=False),
        sa.Column('cpf', sa.String(length=11), nullable=False),
        sa.Column('telefone', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('genero', sa.String(length=32), nullable=True),
        sa.Column('estado_civil', sa.String(length=32), nullable=True),
        sa.Column('nascimento', sa.Date(), nullable=True),
        sa.Column('cidade_preferencia', sa.String(length=32), nullable=True),
        sa.Column('priority_list', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('priority_list_course_id', sa.Uuid(), nullable=True),
        sa.Column('priority_list_added_at', sa.DateTime(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['priority_list_course_id'], ['classes.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_students_cpf', 'students', ['cpf'], unique=True)
    op.create_index('ix_students_telefone', 'students', ['telefone'], unique=True)
    op.create_index('ix_students_email', 'students', ['email'], unique=True)

    op.create_table(
        'enrollments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ativo'),
        sa.Column('transferido_de_class_id', sa.Uuid(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('concluido_em', sa.DateTime(), nullable=True),
        sa.Column('cancelado_em', sa.DateTime(), nullable=True),
        sa.Column('transferido_em', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['transferido_de_class_id'], ['classes.id'], ondelete='SET NULL'),
        sa.CheckConstraint("status IN ('ativo','concluido','cancelado','transferido')", name='ck_enrollment_status'),
    )
    op.create_index('ix_enrollments_student_id', 'enrollments', ['student_id'])
    op.create_index('ix_enrollments_class_id', 'enrollments', ['class_id'])
    op.create_index(
        'uq_enrollment_active_student_class', 'enrollments', ['student_id', 'class_id'],
        unique=True,
        sqlite_where=sa.text("status = 'ativo'"),
        postgresql_where=sa.text("status = 'ativo'"),
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.Column('numero_sessao', sa.Integer(), nullable=False),
        sa.Column('data_sessao', sa.Date(), nullable=False, server_default=sa.text('CURRENT_DATE')),
        sa.Column('status', sa.String(length=8), nullable=False, server_default='open'),
        sa.Column('relatorio', sa.Text(), nullable=True),
        sa.Column('encerrada_em', sa.DateTime(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('class_id', 'numero_sessao', name='uq_session_class_numero'),
        sa.CheckConstraint("status IN ('open','closed')", name='ck_session_status'),
    )
    op.create_index('ix_sessions_class_id', 'sessions', ['class_id'])
    op.create_index('ix_sessions_teacher_id', 'sessions', ['teacher_id'])
    op.create_index(
        'uq_session_open_per_teacher', 'sessions', ['teacher_id'],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    op.create_table(
        'attendance',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('enrollment_id', sa.Uuid(), nullable=False),
        sa.Column('presente', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('observacao', sa.Text(), nullable=True),
        sa.Column('lida_por_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('lida_em', sa.DateTime(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('atualizado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['enrollment_id'], ['enrollments.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('session_id', 'student_id', name='uq_attendance_session_student'),
    )
    op.create_index('ix_attendance_session_id', 'attendance', ['session_id'])
    op.create_index('ix_attendance_student_id', 'attendance', ['student_id'])
    op.create_index('ix_attendance_enrollment_id', 'attendance', ['enrollment_id'])

    op.create_table(
        'conversations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('class_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('atualizado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['class_id'], ['classes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_conversations_class_id', 'conversations', ['class_id'])

    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('conversation_id', sa.Uuid(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('sender_type', sa.String(length=16), nullable=False),
        sa.Column('sender_admin_id', sa.Uuid(), nullable=True),
        sa.Column('sender_teacher_id', sa.Uuid(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['conversation_id'], ['conversations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sender_admin_id'], ['admins.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['sender_teacher_id'], ['teachers.id'], ondelete='SET NULL'),
        sa.CheckConstraint("sender_type IN ('admin','teacher')", name='ck_message_sender_type'),
    )
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])

    op.create_table(
        'notification_reads',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('admin_id', sa.Uuid(), nullable=False),
        sa.Column('notification_type', sa.String(length=32), nullable=False),
        sa.Column('reference_id', sa.Uuid(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('admin_id', 'notification_type', 'reference_id', name='uq_notification_admin_ref'),
    )
    op.create_index('ix_notification_reads_admin_unread', 'notification_reads', ['admin_id', 'read_at'])

    op.create_table(
        'teacher_notification_reads',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.Column('notification_type', sa.String(length=32), nullable=False),
        sa.Column('reference_id', sa.Uuid(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['teacher_id'], ['teachers.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('teacher_id', 'notification_type', 'reference_id', name='uq_notification_teacher_ref'),
    )
    op.create_index('ix_teacher_notification_reads_unread', 'teacher_notification_reads', ['teacher_id', 'read_at'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('actor_type', sa.String(length=16), nullable=False),
        sa.Column('target_entity', sa.String(length=32), nullable=True),
        sa.Column('target_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='success'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('criado_em', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_event_type_criado_em', 'audit_logs', ['event_type', 'criado_em'])
    op.create_index('ix_audit_logs_actor', 'audit_logs', ['actor_type', 'actor_id'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('teacher_notification_reads')
    op.drop_table('notification_reads')
    op.drop_table('messages')
    op.drop_table('conversations')
    op.drop_table('attendance')
    op.drop_table('sessions')
    op.drop_table('enrollments')
    op.drop_table('students')
    op.drop_table('classes')
    op.drop_table('teachers')
    op.drop_table('admins')
