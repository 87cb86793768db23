"""create validators and validatorables tables

Revision ID: 002
Revises: 001
Create Date: 2021-10-18 06:56:37.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "validators",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("approver_description", sa.Text(), nullable=False),
        # Ordered field names the validator reads / may update
        sa.Column("readable_fields", sa.JSON(), nullable=False),
        sa.Column("updatable_fields", sa.JSON(), nullable=False),
        sa.Column("callback", sa.JSON(), nullable=True),
        sa.Column("creator_id", sa.Integer(), nullable=True),
        sa.Column("updater_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["updater_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_validators_id", "validators", ["id"], unique=False)
    op.create_index("ix_validators_slug", "validators", ["slug"], unique=True)

    op.create_table(
        "validatorables",
        sa.Column("validator_id", sa.Integer(), nullable=False),
        sa.Column("validatorable_type", sa.String(64), nullable=False),
        sa.Column("validatorable_id", sa.Integer(), nullable=False),
        # Generic field name -> concrete field name of the attached entity
        sa.Column("mapped_readable_fields", sa.JSON(), nullable=False),
        sa.Column("mapped_updatable_fields", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["validator_id"], ["validators.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint(
            "validator_id",
            "validatorable_id",
            "validatorable_type",
            name="validatorables_table_primary",
        ),
    )
    op.create_index(
        "ix_validatorables_validatorable",
        "validatorables",
        ["validatorable_type", "validatorable_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_validatorables_validatorable", table_name="validatorables")
    op.drop_table("validatorables")
    op.drop_index("ix_validators_slug", table_name="validators")
    op.drop_index("ix_validators_id", table_name="validators")
    op.drop_table("validators")
