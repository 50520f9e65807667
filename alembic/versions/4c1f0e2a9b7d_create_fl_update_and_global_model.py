"""create fl_model_update and fl_global_model

Revision ID: 4c1f0e2a9b7d
Revises:
Create Date: 2026-10-17 09:12:40.118305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1f0e2a9b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. Append-only update log
    op.create_table(
        "fl_model_update",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.String(), nullable=False),
        sa.Column("course_id", sa.String(), nullable=False),
        sa.Column("training_round", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("weights", sa.JSON(), nullable=False),
        sa.Column("biases", sa.JSON(), nullable=False),
        sa.Column("accuracy", sa.Float(), nullable=False),
        sa.Column("privacy_budget_used", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_fl_model_update_course_id", "fl_model_update", ["course_id"])
    op.create_index("ix_fl_model_update_created_at", "fl_model_update", ["created_at"])

    # 2. Versioned global models; one row per (course, version)
    op.create_table(
        "fl_global_model",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("weights", sa.JSON(), nullable=False),
        sa.Column("biases", sa.JSON(), nullable=False),
        sa.Column("num_contributors", sa.Integer(), nullable=False),
        sa.Column("avg_accuracy", sa.Float(), nullable=False),
        sa.Column("deployed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("course_id", "version", name="uq_fl_global_model_course_version"),
    )
    op.create_index("ix_fl_global_model_course_id", "fl_global_model", ["course_id"])


def downgrade() -> None:
    op.drop_index("ix_fl_global_model_course_id", table_name="fl_global_model")
    op.drop_table("fl_global_model")
    op.drop_index("ix_fl_model_update_created_at", table_name="fl_model_update")
    op.drop_index("ix_fl_model_update_course_id", table_name="fl_model_update")
    op.drop_table("fl_model_update")
