"""Per-team configuration storage."""

from sqlalchemy import Column, String, Text, UniqueConstraint

from ai_tagging.db.database import Base
from ai_tagging.db.models.base import TimestampMixin, generate_uuid


class TeamConfig(TimestampMixin, Base):
    __tablename__ = "team_configs"
    __table_args__ = (UniqueConstraint("team_id", "key", name="uq_team_configs_team_key"),)

    id = Column(String, primary_key=True, default=generate_uuid)
    team_id = Column(String, nullable=False, index=True)
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False)  # JSON encoded
    updated_by = Column(String, nullable=True)
