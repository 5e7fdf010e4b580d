"""Tests for promptvault.prompts — pure prompt list operations."""

import json

import pytest

from promptvault import prompts as ops
from promptvault.errors import NotFound, SerializationFailure
from promptvault.vault.models import PromptRecord


@pytest.fixture
def prompts():
    return [
        PromptRecord(id="a", title="A", content="Hello {{name}}", created_at=1, updated_at=1),
        PromptRecord(id="b", title="B", content="Bye", created_at=2, updated_at=2),
    ]


class TestVariables:
    def test_extract_in_order_unique(self):
        text = "{{ topic }} for {{audience}}, again {{topic}} and {{tone}}"
        assert ops.extract_variables(text) == ["topic", "audience", "tone"]

    def test_extract_none(self):
        assert ops.extract_variables("no placeholders {here}") == []

    def test_fill(self):
        text = "Write about {{topic}} for {{ audience }}."
        filled = ops.fill_variables(text, {"topic": "GCM", "audience": "devs"})
        assert filled == "Write about GCM for devs."

    def test_fill_leaves_unknown(self):
        assert ops.fill_variables("{{a}} {{b}}", {"a": "1"}) == "1 {{b}}"


class TestEdits:
    def test_new_prompt(self):
        p = ops.new_prompt("T", "C", category="Code", tags=["x"])
        assert p.created_at == p.updated_at
        assert p.usage_count == 0
        assert p.tags == ["x"]

    def test_add(self, prompts):
        new = ops.new_prompt("C", "c")
        result = ops.add_prompt(prompts, new)
        assert [p.id for p in result] == ["a", "b", new.id]
        assert len(prompts) == 2

    def test_update_refreshes_updated_at(self, prompts):
        result = ops.update_prompt(prompts, "a", title="A2", tags=["t", "t"])
        a = ops.find_prompt(result, "a")
        assert a.title == "A2"
        assert a.tags == ["t"]
        assert a.updated_at > 1
        assert a.created_at == 1
        assert ops.find_prompt(result, "b") is prompts[1]

    def test_new_prompt_cleans_tags(self):
        p = ops.new_prompt("T", "C", tags=[" code ", "code", "", "ai"])
        assert p.tags == ["code", "ai"]

    def test_update_leaves_other_tags_alone(self):
        stored = [PromptRecord(id="a", title="A", content="c", tags=[" x", " x"])]
        result = ops.update_prompt(stored, "a", title="A2")
        assert result[0].tags == [" x", " x"]

    def test_update_rejects_immutable_fields(self, prompts):
        with pytest.raises(ValueError):
            ops.update_prompt(prompts, "a", id="zzz")
        with pytest.raises(ValueError):
            ops.update_prompt(prompts, "a", created_at=5)

    def test_delete(self, prompts):
        assert [p.id for p in ops.delete_prompt(prompts, "a")] == ["b"]

    def test_toggle_favorite(self, prompts):
        once = ops.toggle_favorite(prompts, "b")
        assert ops.find_prompt(once, "b").is_favorite is True
        twice = ops.toggle_favorite(once, "b")
        assert ops.find_prompt(twice, "b").is_favorite is False

    def test_record_usage(self, prompts):
        result = ops.record_usage(ops.record_usage(prompts, "a"), "a")
        assert ops.find_prompt(result, "a").usage_count == 2

    def test_find_missing(self, prompts):
        with pytest.raises(NotFound):
            ops.find_prompt(prompts, "nope")


class TestImportExport:
    def test_export_is_json_array(self, prompts):
        data = json.loads(ops.export_prompts(prompts))
        assert [d["id"] for d in data] == ["a", "b"]
        assert "isFavorite" in data[0]

    def test_import_array(self, prompts):
        imported = ops.parse_import(ops.export_prompts(prompts))
        assert imported == prompts

    def test_import_full_document(self):
        text = json.dumps({"prompts": [{"id": "x", "title": "X", "content": "x"}], "version": 1})
        assert [p.id for p in ops.parse_import(text)] == ["x"]

    @pytest.mark.parametrize(
        "text",
        ["not json", '{"no": "prompts"}', "42", '[{"id": "x"}]', '[{"title": 1, "content": []}]'],
    )
    def test_import_rejects_bad_shapes(self, text):
        with pytest.raises(SerializationFailure):
            ops.parse_import(text)

    def test_merge_skips_existing_ids(self, prompts):
        incoming = [
            PromptRecord(id="a", title="dup", content=""),
            PromptRecord(id="c", title="C", content=""),
            PromptRecord(id="c", title="C again", content=""),
        ]
        merged = ops.merge_imported(prompts, incoming)
        assert [p.id for p in merged] == ["a", "b", "c"]
        assert ops.find_prompt(merged, "a").title == "A"
