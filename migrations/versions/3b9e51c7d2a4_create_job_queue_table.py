"""create job_queue table

Revision ID: 3b9e51c7d2a4
Revises:
Create Date: 2026-10-18 09:12:40.218311

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b9e51c7d2a4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "job_queue",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "queue", sa.Text, nullable=False, comment="Queue (scheduling partition) name"
        ),
        sa.Column(
            "type",
            sa.Text,
            nullable=False,
            comment="Job type, resolves to a registered handler",
        ),
        sa.Column(
            "data", sa.JSON, nullable=True, comment="Opaque payload passed to the handler"
        ),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="pending",
            comment="pending|processing|retrying|completed|failed|cancelled",
        ),
        sa.Column(
            "priority",
            sa.Integer,
            nullable=False,
            server_default="5",
            comment="Higher priority is selected first",
        ),
        sa.Column(
            "attempts",
            sa.Integer,
            nullable=False,
            server_default="0",
            comment="Executions started so far",
        ),
        # Execution policy
        sa.Column("max_attempts", sa.Integer, nullable=False),
        sa.Column(
            "timeout", sa.Integer, nullable=False, comment="Handler timeout in milliseconds"
        ),
        sa.Column(
            "retry_delay",
            sa.Integer,
            nullable=False,
            comment="Base retry delay in milliseconds",
        ),
        sa.Column("exponential_backoff", sa.Boolean, nullable=False),
        # Outcome
        sa.Column(
            "result",
            sa.JSON,
            nullable=True,
            comment="Return value of the last successful run",
        ),
        sa.Column("error", sa.Text, nullable=True, comment="Last error message"),
        sa.Column(
            "error_code", sa.Text, nullable=True, comment="Structured error identifier"
        ),
        # Timestamps
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "next_retry_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="Earliest retry time while retrying",
        ),
        # Constraints
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'retrying', "
            "'completed', 'failed', 'cancelled')",
            name="job_queue_status_check",
        ),
        sa.CheckConstraint("attempts <= max_attempts", name="job_queue_attempts_check"),
    )

    # Selection: WHERE queue AND status ORDER BY priority DESC, created_at
    op.create_index(
        "ix_job_queue_selection",
        "job_queue",
        ["queue", "status", "priority", "created_at"],
    )
    op.create_index("ix_job_queue_next_retry_at", "job_queue", ["next_retry_at"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_job_queue_next_retry_at", table_name="job_queue")
    op.drop_index("ix_job_queue_selection", table_name="job_queue")
    op.drop_table("job_queue")
