# SQLAlchemy models
from .base import Base
from .objects import CollocationRow, LanguageObjectRow, MasteryRecordRow
from .usage import ExpansionEventRow, ObjectUsageSpaceRow

__all__ = [
    "Base",
    "CollocationRow",
    "LanguageObjectRow",
    "MasteryRecordRow",
    "ExpansionEventRow",
    "ObjectUsageSpaceRow",
]
