"""
Prompt list operations — pure functions over ``list[PromptRecord]``.

These never touch storage; the orchestrator applies them through its single
``mutate()`` choke point so every edit is debounced out to the remote store.
Records are immutable, so each edit returns a new list with new records.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError

from promptvault.errors import NotFound, SerializationFailure
from promptvault.vault.models import PromptRecord, VaultDataset, now_ms

VARIABLE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

# Fields an edit may never change
IMMUTABLE_FIELDS = frozenset({"id", "created_at", "createdAt"})

_record_list = TypeAdapter(list[PromptRecord])


def extract_variables(text: str) -> list[str]:
    """Unique ``{{name}}`` placeholders in order of first appearance."""
    names: list[str] = []
    for match in VARIABLE_PATTERN.finditer(text):
        name = match.group(1).strip()
        if name and name not in names:
            names.append(name)
    return names


def fill_variables(text: str, values: Mapping[str, str]) -> str:
    """Substitute placeholders; unknown ones are left as written."""

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        return values.get(name, match.group(0))

    return VARIABLE_PATTERN.sub(_sub, text)


def clean_tags(tags: Iterable[str]) -> list[str]:
    """Strip tags, dropping blanks and repeats. Applied to user edits only."""
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def new_prompt(
    title: str,
    content: str,
    category: str = "",
    tags: Iterable[str] = (),
    is_favorite: bool = False,
) -> PromptRecord:
    now = now_ms()
    return PromptRecord(
        title=title,
        content=content,
        category=category,
        tags=clean_tags(tags),
        is_favorite=is_favorite,
        created_at=now,
        updated_at=now,
        usage_count=0,
    )


def find_prompt(prompts: Iterable[PromptRecord], prompt_id: str) -> PromptRecord:
    for p in prompts:
        if p.id == prompt_id:
            return p
    raise NotFound(f"No prompt with id {prompt_id}")


def add_prompt(prompts: list[PromptRecord], record: PromptRecord) -> list[PromptRecord]:
    return [*prompts, record]


def update_prompt(
    prompts: list[PromptRecord], prompt_id: str, **changes: Any
) -> list[PromptRecord]:
    """Apply field changes to one record and refresh its updatedAt."""
    bad = IMMUTABLE_FIELDS.intersection(changes)
    if bad:
        raise ValueError(f"Cannot change immutable field(s): {', '.join(sorted(bad))}")

    result = []
    for p in prompts:
        if p.id == prompt_id:
            data = p.model_dump()
            data.update(changes)
            if "tags" in changes:
                data["tags"] = clean_tags(changes["tags"])
            data["updated_at"] = now_ms()
            p = PromptRecord.model_validate(data)
        result.append(p)
    return result


def delete_prompt(prompts: list[PromptRecord], prompt_id: str) -> list[PromptRecord]:
    return [p for p in prompts if p.id != prompt_id]


def toggle_favorite(prompts: list[PromptRecord], prompt_id: str) -> list[PromptRecord]:
    return [
        p.model_copy(update={"is_favorite": not p.is_favorite}) if p.id == prompt_id else p
        for p in prompts
    ]


def record_usage(prompts: list[PromptRecord], prompt_id: str) -> list[PromptRecord]:
    return [
        p.model_copy(update={"usage_count": p.usage_count + 1}) if p.id == prompt_id else p
        for p in prompts
    ]


def merge_imported(
    prompts: list[PromptRecord], incoming: Iterable[PromptRecord]
) -> list[PromptRecord]:
    """Append imported records whose ids are not already present."""
    seen = {p.id for p in prompts}
    merged = list(prompts)
    for record in incoming:
        if record.id not in seen:
            seen.add(record.id)
            merged.append(record)
    return merged


def export_prompts(prompts: Iterable[PromptRecord]) -> str:
    """Backup format: a JSON array of prompt records."""
    return json.dumps([p.to_document() for p in prompts], indent=2, ensure_ascii=False)


def parse_import(text: str) -> list[PromptRecord]:
    """Parse a backup: a JSON array of records, or a whole vault document.

    All-or-nothing: any record that does not match the expected shape
    rejects the whole import with SerializationFailure.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SerializationFailure(f"Import is not valid JSON: {e.msg}") from e

    if isinstance(data, list):
        try:
            return _record_list.validate_python(data)
        except ValidationError as e:
            raise SerializationFailure(
                f"Import contains malformed prompts: {e.error_count()} error(s)"
            ) from e
    if isinstance(data, dict) and "prompts" in data:
        return list(VaultDataset.from_document(data).prompts)
    raise SerializationFailure("Import must be a list of prompts or a vault document")
