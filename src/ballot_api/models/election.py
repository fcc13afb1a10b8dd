"""Election and Candidate ORM models.

An election owns its candidates. ``status`` is a cached copy of the derived
lifecycle status; ``is_cancelled`` is the administrative terminal override.
``total_votes`` and ``Candidate.vote_count`` are counters over the vote log,
only ever changed by atomic in-database increments or reconciliation.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ballot_api.models.base import Base, TimestampMixin, UUIDMixin


class Election(Base, UUIDMixin, TimestampMixin):
    """A division-scoped ballot event."""

    __tablename__ = "elections"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="upcoming", server_default="upcoming")
    is_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    division: Mapped[str] = mapped_column(String(20), nullable=False)
    max_candidates: Mapped[int] = mapped_column(Integer, nullable=False)
    total_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_secret_ballot: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    candidates: Mapped[list["Candidate"]] = relationship(
        back_populates="election",
        cascade="all, delete-orphan",
        order_by="Candidate.ballot_order",
    )

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_elections_date_order"),
        CheckConstraint(
            "status IN ('upcoming', 'active', 'completed', 'cancelled')",
            name="ck_elections_status",
        ),
        CheckConstraint("max_candidates BETWEEN 2 AND 20", name="ck_elections_max_candidates"),
        CheckConstraint("total_votes >= 0", name="ck_elections_total_votes"),
        Index("idx_elections_status_dates", "status", "start_date", "end_date"),
        Index("idx_elections_division_status", "division", "status"),
    )


class Candidate(Base, UUIDMixin, TimestampMixin):
    """A candidate standing in exactly one election."""

    __tablename__ = "candidates"

    election_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("elections.id", ondelete="CASCADE"),
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    membership_id: Mapped[str] = mapped_column(String(20), nullable=False)
    division: Mapped[str] = mapped_column(String(20), nullable=False)
    position: Mapped[str] = mapped_column(String(100), nullable=False)
    manifesto: Mapped[str] = mapped_column(Text, nullable=False)
    experience: Mapped[str] = mapped_column(String(500), nullable=False)
    photo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ballot_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    election: Mapped["Election"] = relationship(back_populates="candidates")

    __table_args__ = (
        UniqueConstraint("election_id", "membership_id", name="uq_candidates_election_membership"),
        UniqueConstraint("election_id", "ballot_order", name="uq_candidates_election_ballot_order"),
        CheckConstraint("vote_count >= 0", name="ck_candidates_vote_count"),
        Index("idx_candidates_election_active", "election_id", "is_active"),
    )
