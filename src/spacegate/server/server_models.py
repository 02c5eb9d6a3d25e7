"""Request/Response Pydantic models for the space administration routes."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateKeyRequest(_CamelRequest):
    display_name: str = ""
    upstream_credential: Optional[str] = None
    gemini_key: Optional[str] = None  # older front ends send geminiKey


class GenerateKeyResponse(BaseModel):
    apiKey: str
    endpoint: str


class SpaceConfigUpdate(_CamelRequest):
    model: Optional[str] = Field(default=None, min_length=1)
    system_instruction: Optional[str] = None


class ReconcileRequest(_CamelRequest):
    live_space_ids: list[str] = Field(default_factory=list)
