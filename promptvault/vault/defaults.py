"""Built-in starter prompts, seeded when a vault has no data anywhere yet."""

from __future__ import annotations

from promptvault.vault.models import PromptRecord, VaultDataset, new_id, now_ms

DAY_MS = 86_400_000


def default_dataset() -> VaultDataset:
    """A fresh copy of the starter dataset (new ids on every call)."""
    now = now_ms()
    return VaultDataset(
        prompts=[
            PromptRecord(
                id=new_id(),
                title="Universal system prompt",
                content=(
                    "You are an expert in {{field}}. Answer in a structured way, using bullet "
                    "lists and subheadings. Give practical, actionable advice. Avoid filler and "
                    "generic phrases. Add examples where they help."
                ),
                category="System",
                tags=["system", "basic"],
                is_favorite=True,
                created_at=now - DAY_MS * 5,
                updated_at=now - DAY_MS * 5,
                usage_count=23,
            ),
            PromptRecord(
                id=new_id(),
                title="Code refactoring",
                content=(
                    "Analyze this code and suggest improvements:\n\n"
                    "```{{language}}\n{{code}}\n```\n\n"
                    "Improve:\n1. Readability\n2. Performance\n3. Error handling\n"
                    "4. Adherence to best practices\n\nExplain every change."
                ),
                category="Code",
                tags=["refactoring", "code", "review"],
                is_favorite=True,
                created_at=now - DAY_MS * 3,
                updated_at=now - DAY_MS * 2,
                usage_count=15,
            ),
            PromptRecord(
                id=new_id(),
                title="Article writing",
                content=(
                    'Write an article on "{{topic}}" for {{audience}}.\n\n'
                    "Requirements:\n- Length: {{length}} words\n- Tone: {{tone}}\n"
                    "- Include an introduction, body and conclusion\n- Add 3-5 subheadings\n"
                    "- Use examples and analogies"
                ),
                category="Content",
                tags=["article", "copywriting"],
                is_favorite=False,
                created_at=now - DAY_MS * 2,
                updated_at=now - DAY_MS,
                usage_count=8,
            ),
        ],
        last_sync=0,
    )
