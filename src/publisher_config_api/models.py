from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

PUBLISHER_ID_MAX_LENGTH = 100
ALIAS_NAME_MAX_LENGTH = 200


class PublisherListItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: StrictStr
    alias: StrictStr
    file: StrictStr


class PublisherIndex(BaseModel):
    model_config = ConfigDict(extra="allow")

    publishers: List[PublisherListItem] = Field(default_factory=list)


class PageRule(BaseModel):
    model_config = ConfigDict(extra="allow")

    pageType: StrictStr = Field(min_length=1)
    selector: StrictStr = Field(min_length=1)
    position: StrictStr = Field(min_length=1)


class PublisherConfig(BaseModel):
    # Front-end specific keys are kept as-is in the stored file.
    model_config = ConfigDict(extra="allow")

    publisherId: StrictStr = Field(min_length=1, max_length=PUBLISHER_ID_MAX_LENGTH)
    aliasName: StrictStr = Field(min_length=1, max_length=ALIAS_NAME_MAX_LENGTH)
    isActive: StrictBool
    pages: List[PageRule]


class ValidationResult(BaseModel):
    ok: bool
    detail: Optional[str] = None


class MutationResponse(BaseModel):
    success: bool
    filename: Optional[str] = None


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime
    uptime: float
    detail: Optional[str] = None
