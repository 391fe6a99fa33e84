# Import all models to ensure they are registered with SQLAlchemy
from . import appointment

__all__ = [
    "appointment",
]
