from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ApiKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    expires_at: Optional[datetime] = None
    permissions: List[str] = Field(default_factory=list)


class ApiKeyUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""


class ApiKeyActivation(BaseModel):
    active: bool


class ApiKeyOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    user_id: str
    expires_at: Optional[datetime] = Field(None, validation_alias="expires_at_utc")
    active: bool
    permissions: List[str] = Field(default_factory=list, validation_alias="permission_names")
    created_at: datetime = Field(validation_alias="created_at_utc")

    model_config = {"from_attributes": True, "populate_by_name": True}


class ApiKeyCreated(ApiKeyOut):
    # returned once; only its hash is kept
    raw_key: str
