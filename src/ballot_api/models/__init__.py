"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from ballot_api.models.election import Candidate, Election
from ballot_api.models.user import User
from ballot_api.models.vote import Vote

__all__ = [
    "Candidate",
    "Election",
    "User",
    "Vote",
]
