"""Pydantic schemas for timelines and their files.

Wire format is camelCase (``caseName``, ``fileName``, ``timelineId``);
Python attributes stay snake_case.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class FileIn(CamelModel):
    """A file already uploaded to object storage.

    ``size`` is a byte count. Numeric strings are accepted and coerced.
    """

    file_name: str
    url: str
    size: int = Field(ge=0)


class TimelineCreate(CamelModel):
    case_name: str
    area_of_law: str
    files: list[FileIn] = Field(default_factory=list)


class TimelineCreated(CamelModel):
    timeline_id: UUID


class FileOut(CamelModel):
    id: UUID
    timeline_id: UUID
    file_name: str
    url: str
    size: int
    created_at: datetime
    updated_at: datetime


class TimelineWithFiles(CamelModel):
    """A timeline with its files joined.

    files defaults to empty array, never null.
    """

    id: UUID
    case_name: str
    area_of_law: str
    created_at: datetime
    updated_at: datetime
    files: list[FileOut] = Field(default_factory=list)
