import json
from datetime import date, datetime

from transcript_engine.core.models import Item, ItemKind, ItemRole, ItemStatus, text_content
from transcript_engine.export import (
    export_json,
    format_transcript_text,
    transcript_filename,
    write_transcript_text,
)


def _items():
    return [
        Item(id="u1", role=ItemRole.USER, content=text_content("Hi there"), status=ItemStatus.COMPLETED,
             timestamp=datetime(2025, 3, 14, 9, 30, 5)),
        Item(id="call-c1", kind=ItemKind.FUNCTION_CALL, role=ItemRole.ASSISTANT,
             content=text_content('lookup({"id":1})'), call_id="c1",
             timestamp=datetime(2025, 3, 14, 9, 30, 7)),
        Item(id="output-c1", kind=ItemKind.FUNCTION_CALL_OUTPUT, role=ItemRole.TOOL,
             content=text_content("Function call response: ok"), call_id="c1", status=ItemStatus.COMPLETED,
             timestamp=datetime(2025, 3, 14, 9, 30, 8)),
        Item(id="a1", role=ItemRole.ASSISTANT, content=text_content("Found it"),
             timestamp=datetime(2025, 3, 14, 9, 30, 9)),
    ]


class TestTextExport:

    def test_role_labels_and_blank_line_separation(self):
        text = format_transcript_text(_items())

        assert text == (
            "Caller (09:30:05): Hi there\n\n"
            'Assistant (09:30:07): lookup({"id":1})\n\n'
            "Tool (09:30:08): Function call response: ok\n\n"
            "Assistant (09:30:09): Found it"
        )

    def test_roles_without_fixed_label_are_capitalized(self):
        items = [
            Item(id="s1", role=ItemRole.SYSTEM, content=text_content("Be brief"),
                 timestamp=datetime(2025, 3, 14, 9, 30, 0)),
            Item(id="m1", role=None, content=text_content("Unlabelled"),
                 timestamp=datetime(2025, 3, 14, 9, 30, 1)),
        ]

        assert format_transcript_text(items) == "System (09:30:00): Be brief\n\nAssistant (09:30:01): Unlabelled"

    def test_empty_transcript(self):
        assert format_transcript_text([]) == ""

    def test_items_not_mutated(self):
        items = _items()
        before = [item.to_dict() for item in items]
        format_transcript_text(items)
        export_json(items)
        assert [item.to_dict() for item in items] == before


class TestJsonExport:

    def test_document_shape(self):
        document = json.loads(export_json(_items(), call_status="ended"))

        assert document["call_status"] == "ended"
        assert [item["id"] for item in document["items"]] == ["u1", "call-c1", "output-c1", "a1"]
        assert document["items"][0]["type"] == "message"
        assert document["items"][0]["timestamp"] == "2025-03-14T09:30:05"
        assert document["items"][2]["role"] == "tool"

    def test_round_trip_through_item(self):
        original = _items()[1]
        restored = Item.from_dict(json.loads(export_json([original]))["items"][0])
        assert restored == original


class TestFilenames:

    def test_transcript_and_analysis_names(self):
        day = date(2025, 3, 14)
        assert transcript_filename(day=day) == "call-transcript-2025-03-14.txt"
        assert transcript_filename("call-analysis", ".txt", day) == "call-analysis-2025-03-14.txt"
        assert transcript_filename(ext="json", day=day) == "call-transcript-2025-03-14.json"

    def test_write_transcript_text(self, tmp_path):
        path = write_transcript_text(_items(), str(tmp_path / "out"), day=date(2025, 3, 14))

        assert path.endswith("call-transcript-2025-03-14.txt")
        with open(path, encoding="utf-8") as f:
            assert f.read().startswith("Caller (09:30:05): Hi there")
