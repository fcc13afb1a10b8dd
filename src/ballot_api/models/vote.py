"""Vote ORM model: the append-only ballot fact table.

The ``uq_votes_voter_election`` constraint is the integrity mechanism that
guarantees at most one recorded vote per voter per election, independent of
how many application processes race to insert one.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ballot_api.models.base import Base, UUIDMixin


class Vote(Base, UUIDMixin):
    """A single cast ballot. Inserted once; never updated or deleted."""

    __tablename__ = "votes"

    voter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    election_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("elections.id", ondelete="RESTRICT"),
        nullable=False,
    )
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("candidates.id", ondelete="RESTRICT"),
        nullable=False,
    )
    cast_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ip_address: Mapped[str] = mapped_column(String(45), nullable=False)
    user_agent: Mapped[str] = mapped_column(String(500), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    __table_args__ = (
        UniqueConstraint("voter_id", "election_id", name="uq_votes_voter_election"),
        Index("idx_votes_election_candidate", "election_id", "candidate_id"),
        Index("idx_votes_cast_at", "cast_at"),
    )
