"""create report tables

Revision ID: 3f1c2a7d9b10
Revises:
Create Date: 2025-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1c2a7d9b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONDocument = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('salt', sa.String(length=64), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'school_years',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('label', sa.String(length=32), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('label'),
    )

    op.create_table(
        'modules',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('school_year_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['school_year_id'], ['school_years.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_modules_school_year_id', 'modules', ['school_year_id'])

    op.create_table(
        'module_templates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('module_id', sa.String(length=36), nullable=False),
        sa.Column('evaluation_type', sa.String(length=8), nullable=False),
        sa.Column('data', JSONDocument, nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['module_id'], ['modules.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('module_id', 'evaluation_type', name='uq_module_template_type'),
    )
    op.create_index('ix_module_templates_module_id', 'module_templates', ['module_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('module_id', sa.String(length=36), nullable=False),
        sa.Column('evaluation_type', sa.String(length=8), nullable=False),
        sa.Column('teacher_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('firstname', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('note', sa.String(length=16), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=False),
        sa.Column('group_name', sa.String(length=128), nullable=False),
        sa.Column('class_name', sa.String(length=64), nullable=False),
        sa.Column('teacher', sa.String(length=255), nullable=False),
        sa.Column('evaluation_date', sa.String(length=32), nullable=False),
        sa.Column('coaching_date', sa.String(length=32), nullable=False),
        sa.Column('operational_competence', sa.Text(), nullable=False),
        sa.Column('competency_options', JSONDocument, nullable=False),
        sa.Column('competencies', JSONDocument, nullable=False),
        sa.Column('summary_by_competencies', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('competency_summary_overrides', JSONDocument, nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['module_id'], ['modules.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_students_module_id', 'students', ['module_id'])
    op.create_index('ix_students_teacher_id', 'students', ['teacher_id'])

    op.create_table(
        'system_settings',
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', JSONDocument, nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade():
    op.drop_table('system_settings')

    op.drop_index('ix_students_teacher_id', table_name='students')
    op.drop_index('ix_students_module_id', table_name='students')
    op.drop_table('students')

    op.drop_index('ix_module_templates_module_id', table_name='module_templates')
    op.drop_table('module_templates')

    op.drop_index('ix_modules_school_year_id', table_name='modules')
    op.drop_table('modules')

    op.drop_table('school_years')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
