"""create_saved_rolls

Revision ID: 3c7d9e2a41b5
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c7d9e2a41b5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ROLL_TYPES = (
    "normal",
    "advantage",
    "disadvantage",
    "exploding",
    "spell_damage",
    "healing",
    "attack",
    "skill_check",
    "saving_throw",
    "custom",
)


def upgrade() -> None:
    """Create saved_rolls table."""
    op.create_table(
        "saved_rolls",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("entry_id", sa.String(32), nullable=False, unique=True),
        sa.Column("session_key", sa.String(100), nullable=False),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("dice_configuration", sa.String(100), nullable=False),
        sa.Column("dice_sides", sa.Integer(), nullable=True),
        sa.Column("rolls_json", sa.Text(), nullable=False),
        sa.Column("final_result", sa.Integer(), nullable=False),
        sa.Column("modifier", sa.Integer(), nullable=False),
        sa.Column(
            "roll_type",
            sa.Enum(*_ROLL_TYPES, name="rolltype", native_enum=False),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("rolled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "saved_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_saved_rolls_session_key", "saved_rolls", ["session_key"])


def downgrade() -> None:
    """Drop saved_rolls table."""
    op.drop_index("ix_saved_rolls_session_key", table_name="saved_rolls")
    op.drop_table("saved_rolls")
