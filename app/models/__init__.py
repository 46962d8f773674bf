from app import db  # noqa: F401 - imported for model imports

from .fixture import Fixture
from .prediction import Prediction
from .season import Season
from .user import User

__all__ = [
    "User",
    "Season",
    "Fixture",
    "Prediction",
]
