"""Timeline model: one legal case with its metadata."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Uuid

from app.db.base import Base


class Timeline(Base):
    __tablename__ = "timeline"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    case_name = Column(String(255), nullable=False)
    area_of_law = Column(String(100), nullable=False)  # criminal, civil, corporate, family, intellectual

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
