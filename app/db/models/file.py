"""TimelineFile model: an uploaded file attached to a timeline."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, Text, Uuid

from app.db.base import Base


class TimelineFile(Base):
    __tablename__ = "file"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    timeline_id = Column(Uuid(as_uuid=True), ForeignKey("timeline.id"), nullable=False, index=True)

    file_name = Column(String(255), nullable=False)
    url = Column(Text, nullable=False, default="")  # empty when the upload failed
    size = Column(BigInteger, nullable=False, default=0)  # bytes
    position = Column(Integer, nullable=False, default=0)  # order within the create call

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
