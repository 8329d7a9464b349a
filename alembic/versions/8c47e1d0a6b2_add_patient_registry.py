"""Add patient registry and link diagnostics to patients

Revision ID: 8c47e1d0a6b2
Revises: 3a1f5c2b9d04
Create Date: 2026-10-20 10:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8c47e1d0a6b2'
down_revision: Union[str, None] = '3a1f5c2b9d04'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

gender = sa.Enum('male', 'female', 'other', name='gender')


def upgrade() -> None:
    op.create_table(
        'patients',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('patient_code', sa.String(), nullable=False),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('gender', gender, nullable=True),
        sa.Column('district', sa.String(), nullable=True),
        sa.Column('facility_name', sa.String(), nullable=True),
        sa.Column('created_by_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_patients_patient_code'), 'patients', ['patient_code'], unique=True)
    op.create_index(op.f('ix_patients_district'), 'patients', ['district'], unique=False)
    op.create_index(op.f('ix_patients_created_at'), 'patients', ['created_at'], unique=False)

    # Batch mode so the constraint change also works on SQLite
    with op.batch_alter_table('diagnostics') as batch_op:
        batch_op.alter_column('subject_id', existing_type=sa.String(), type_=sa.String(length=36), existing_nullable=False)
        batch_op.create_foreign_key('fk_diagnostics_subject_id_patients', 'patients', ['subject_id'], ['id'])


def downgrade() -> None:
    with op.batch_alter_table('diagnostics') as batch_op:
        batch_op.drop_constraint('fk_diagnostics_subject_id_patients', type_='foreignkey')
        batch_op.alter_column('subject_id', existing_type=sa.String(length=36), type_=sa.String(), existing_nullable=False)

    op.drop_index(op.f('ix_patients_created_at'), table_name='patients')
    op.drop_index(op.f('ix_patients_district'), table_name='patients')
    op.drop_index(op.f('ix_patients_patient_code'), table_name='patients')
    op.drop_table('patients')

    gender.drop(op.get_bind(), checkfirst=True)
