"""Vault data models — the prompt record and the dataset document exchanged with storage."""

from __future__ import annotations

import time
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from promptvault.errors import SerializationFailure

SCHEMA_VERSION = 1


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex


class PromptRecord(BaseModel):
    """A single prompt in the vault. JSON field names are camelCase."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_id, min_length=1)
    title: str
    content: str
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = Field(default=False, alias="isFavorite")
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    updated_at: int = Field(default_factory=now_ms, alias="updatedAt")
    usage_count: int = Field(default=0, ge=0, alias="usageCount")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class VaultDataset(BaseModel):
    """The whole vault: the unit stored in the cache and in the remote blob."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    prompts: list[PromptRecord] = Field(default_factory=list)
    version: int = SCHEMA_VERSION
    last_sync: int = Field(default=0, alias="lastSync")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        """Canonical JSON document."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_document(cls, data: Any) -> VaultDataset:
        if not isinstance(data, dict):
            raise SerializationFailure("Vault document must be a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise SerializationFailure(f"Malformed vault document: {e.error_count()} error(s)") from e

    @classmethod
    def from_json(cls, text: str | bytes) -> VaultDataset:
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            raise SerializationFailure(f"Malformed vault document: {e.error_count()} error(s)") from e
