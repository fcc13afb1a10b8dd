"""Initial ballot schema: users, elections, candidates, votes.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("membership_id", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("mobile", sa.String(15), nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=False),
        sa.Column("street", sa.String(200), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("postal_code", sa.String(20), nullable=False),
        sa.Column("nic", sa.String(20), nullable=False),
        sa.Column("division", sa.String(20), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="voter"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("otp_hash", sa.String(64), nullable=True),
        sa.Column("otp_expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("membership_id", name="users_membership_id_key"),
        sa.UniqueConstraint("nic", name="users_nic_key"),
        sa.CheckConstraint("role IN ('voter', 'admin')", name="ck_users_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("idx_users_division", "users", ["division"])

    op.create_table(
        "elections",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="upcoming"),
        sa.Column("is_cancelled", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("division", sa.String(20), nullable=False),
        sa.Column("max_candidates", sa.Integer, nullable=False),
        sa.Column("total_votes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_secret_ballot", sa.Boolean, nullable=False, server_default="true"),
        sa.Column(
            "created_by_id",
            sa.Uuid,
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        *_timestamps(),
        sa.CheckConstraint("end_date > start_date", name="ck_elections_date_order"),
        sa.CheckConstraint(
            "status IN ('upcoming', 'active', 'completed', 'cancelled')",
            name="ck_elections_status",
        ),
        sa.CheckConstraint("max_candidates BETWEEN 2 AND 20", name="ck_elections_max_candidates"),
        sa.CheckConstraint("total_votes >= 0", name="ck_elections_total_votes"),
    )
    op.create_index("idx_elections_status_dates", "elections", ["status", "start_date", "end_date"])
    op.create_index("idx_elections_division_status", "elections", ["division", "status"])

    op.create_table(
        "candidates",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "election_id",
            sa.Uuid,
            sa.ForeignKey("elections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("membership_id", sa.String(20), nullable=False),
        sa.Column("division", sa.String(20), nullable=False),
        sa.Column("position", sa.String(100), nullable=False),
        sa.Column("manifesto", sa.Text, nullable=False),
        sa.Column("experience", sa.String(500), nullable=False),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("ballot_order", sa.Integer, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("vote_count", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("election_id", "membership_id", name="uq_candidates_election_membership"),
        sa.UniqueConstraint("election_id", "ballot_order", name="uq_candidates_election_ballot_order"),
        sa.CheckConstraint("vote_count >= 0", name="ck_candidates_vote_count"),
    )
    op.create_index("idx_candidates_election_active", "candidates", ["election_id", "is_active"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("voter_id", sa.Uuid, sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("election_id", sa.Uuid, sa.ForeignKey("elections.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("candidate_id", sa.Uuid, sa.ForeignKey("candidates.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("cast_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("user_agent", sa.String(500), nullable=False),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default="false"),
        # One recorded vote per voter per election, enforced by the store.
        sa.UniqueConstraint("voter_id", "election_id", name="uq_votes_voter_election"),
    )
    op.create_index("idx_votes_election_candidate", "votes", ["election_id", "candidate_id"])
    op.create_index("idx_votes_cast_at", "votes", ["cast_at"])


def downgrade() -> None:
    op.drop_table("votes")
    op.drop_table("candidates")
    op.drop_table("elections")
    op.drop_index("idx_users_division", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
