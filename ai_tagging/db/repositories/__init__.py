"""Repository layer: standardized data access for all models."""

from ai_tagging.db.repositories.asset import AssetRepository, AssetTagRepository
from ai_tagging.db.repositories.base import BaseRepository
from ai_tagging.db.repositories.job import TaggingJobRepository
from ai_tagging.db.repositories.review import ReviewItemRepository
from ai_tagging.db.repositories.team import TeamConfigRepository

__all__ = [
    "BaseRepository",
    "AssetRepository",
    "AssetTagRepository",
    "TaggingJobRepository",
    "ReviewItemRepository",
    "TeamConfigRepository",
]
