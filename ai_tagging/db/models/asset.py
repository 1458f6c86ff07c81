"""Locally cached assets and the team tag taxonomy."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from ai_tagging.db.database import Base
from ai_tagging.db.models.base import TimestampMixin, generate_uuid


class AssetObject(TimestampMixin, Base):
    """An asset mirrored from the external asset-management system.

    ``content_analysis`` and ``tags`` are JSON encoded. ``tags`` is the last
    tag list fetched back from the external system after tags were applied.
    """

    __tablename__ = "asset_objects"
    __table_args__ = (
        UniqueConstraint("team_id", "external_id", name="uq_asset_objects_team_external"),
        Index("idx_asset_objects_team", "team_id"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    team_id = Column(String, nullable=False)
    external_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    materialized_path = Column(String, nullable=True)
    content_analysis = Column(Text, nullable=True)  # JSON: {"ai_description": ...}
    tags = Column(Text, nullable=True)  # JSON list of {"tagId", "tagPath"}


class AssetTag(TimestampMixin, Base):
    """A node of a team's tag taxonomy (at most three levels deep).

    Integer ids are what the LLM sees and answers with as ``leafTagId``.
    """

    __tablename__ = "asset_tags"
    __table_args__ = (Index("idx_asset_tags_team_parent", "team_id", "parent_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("asset_tags.id", ondelete="CASCADE"), nullable=True)
    name = Column(String, nullable=False)
    external_id = Column(String, nullable=True)  # Tag id in the external system
    tagging_enabled = Column(Boolean, nullable=False, default=True)
    keywords = Column(Text, nullable=True)  # JSON list[str]
    negative_keywords = Column(Text, nullable=True)  # JSON list[str]
    sort = Column(Integer, nullable=False, default=0)
