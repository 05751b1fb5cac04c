from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .seed import GiveawaySeed  # noqa: F401
from .proof import FairnessProof  # noqa: F401

__all__ = [
    "Base",
    "GiveawaySeed",
    "FairnessProof",
]
