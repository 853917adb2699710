"""
Unit tests for response extraction.

Providers wrap JSON in fences, prepend prose and leave trailing commas;
all of that must parse to the same object as the clean reply.
"""

import json
from unittest.mock import patch

import pytest

from calorieai.domain.analysis.extraction import (
    extract_payload,
    isolate_json_object,
    parse_json_object,
    repair_json,
    strip_code_fences,
)
from calorieai.domain.analysis.ports import FinishStatus, ProviderReply
from calorieai.domain.errors import (
    MalformedResponseError,
    RejectedResponseError,
    TruncatedResponseError,
)

CLEAN = {"foods": [{"localized_name": "Elma", "calories": 95}], "health_score": 90}


def reply(text: str, finish: FinishStatus = FinishStatus.COMPLETE) -> ProviderReply:
    return ProviderReply(text=text, finish=finish, finish_reason="STOP")


class TestExtractPayload:
    def test_clean_json(self) -> None:
        assert extract_payload(reply(json.dumps(CLEAN))) == CLEAN

    @pytest.mark.parametrize(
        "wrapped",
        [
            "```json\n{body}\n```",
            "Here is the analysis:\n```json\n{body}\n```\nEnjoy your meal!",
            "Sure! {body}",
            "```\n{body}\n```",
            "```JSON {body}```",
        ],
    )
    def test_fences_and_prose_yield_same_object(self, wrapped: str) -> None:
        text = wrapped.replace("{body}", json.dumps(CLEAN, indent=2))

        assert extract_payload(reply(text)) == CLEAN

    def test_extraction_is_idempotent(self) -> None:
        once = extract_payload(reply("```json\n" + json.dumps(CLEAN) + "\n```"))

        assert extract_payload(reply(json.dumps(once))) == once

    def test_trailing_commas_are_repaired(self) -> None:
        text = '{"foods": [{"localized_name": "Elma", "calories": 95,},], "health_score": 90,}'

        assert extract_payload(reply(text)) == CLEAN

    def test_truncated_reply_is_not_repaired(self) -> None:
        text = '{"foods": [{"localized_name": "Elma", "calories": 95,'

        with patch("calorieai.domain.analysis.extraction.repair_json") as repair:
            with pytest.raises(TruncatedResponseError):
                extract_payload(reply(text, FinishStatus.TRUNCATED))

        repair.assert_not_called()

    def test_rejected_reply(self) -> None:
        with pytest.raises(RejectedResponseError):
            extract_payload(reply("", FinishStatus.REJECTED))

    def test_empty_content(self) -> None:
        with pytest.raises(MalformedResponseError, match="EMPTY_CONTENT"):
            extract_payload(reply("   "))

    def test_prose_without_json(self) -> None:
        with pytest.raises(MalformedResponseError, match="NO_JSON_OBJECT") as exc_info:
            extract_payload(reply("I cannot see any food in this picture."))

        assert exc_info.value.raw_snippet == "I cannot see any food in this picture."

    def test_unrepairable_json(self) -> None:
        with pytest.raises(MalformedResponseError, match="INVALID_JSON"):
            extract_payload(reply('{"foods": [ {"name": "Elma" "calories": 95} ]}'))

    def test_unknown_finish_still_parses(self) -> None:
        assert extract_payload(reply(json.dumps(CLEAN), FinishStatus.UNKNOWN)) == CLEAN


class TestHelpers:
    def test_strip_code_fences(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_isolate_json_object(self) -> None:
        assert isolate_json_object('note: {"a": {"b": 1}} thanks') == '{"a": {"b": 1}}'

    def test_repair_json_keeps_commas_inside_strings_alone(self) -> None:
        assert repair_json('{"a": "x, y", "b": [1, 2,],}') == '{"a": "x, y", "b": [1, 2]}'

    def test_root_must_be_object(self) -> None:
        with pytest.raises(MalformedResponseError, match="ROOT_NOT_OBJECT"):
            parse_json_object("[1, 2]")
