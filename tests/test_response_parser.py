import json
import logging

import pytest

from conftest import VALID_REPLIES
from sheet_insights.errors import MalformedInsightError
from sheet_insights.prompt_builder import InsightKind, get_template
from sheet_insights.response_parser import normalize_insight, strip_code_fences


@pytest.mark.parametrize(
    "raw",
    [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```JSON\n{"a": 1}```',
        '```\n{"a": 1}\n```',
        '  \n{"a": 1}\n  ',
    ],
)
def test_fenced_and_padded_json(raw):
    assert normalize_insight(raw) == {"a": 1}


def test_strip_code_fences_leaves_plain_text():
    assert strip_code_fences("  plain  ") == "plain"


def test_invalid_json_keeps_raw_text(caplog):
    with caplog.at_level(logging.ERROR, logger="sheet_insights.response_parser"):
        with pytest.raises(MalformedInsightError) as info:
            normalize_insight("not json")

    assert info.value.raw_text == "not json"
    assert "not json" in caplog.text


@pytest.mark.parametrize("raw", ["[1, 2]", '"text"', "42", "null"])
def test_non_object_json_is_rejected(raw):
    with pytest.raises(MalformedInsightError):
        normalize_insight(raw)


@pytest.mark.parametrize("raw", [None, "", "```json\n```"])
def test_empty_completion_is_rejected(raw):
    with pytest.raises(MalformedInsightError):
        normalize_insight(raw)


@pytest.mark.parametrize("kind", list(InsightKind))
def test_valid_replies_pass_shape_check(kind):
    reply = VALID_REPLIES[kind.value]
    assert normalize_insight(json.dumps(reply), get_template(kind)) == reply


def test_shape_check_is_skipped_without_template():
    assert normalize_insight('{"unexpected": true}') == {"unexpected": True}


def test_shape_mismatch_is_malformed():
    with pytest.raises(MalformedInsightError) as info:
        normalize_insight('{"takeaway": "x"}', get_template(InsightKind.FINAL_SUMMARY))
    assert "final_summary" in str(info.value)


def test_alert_labels_outside_the_prompt_vocabulary_are_kept():
    reply = json.loads(json.dumps(VALID_REPLIES["alerts"]))
    reply["alerts"][0]["type"] = "info"
    reply["correlations"][0]["trend"] = "flat"
    assert normalize_insight(json.dumps(reply), get_template(InsightKind.ALERTS)) == reply


def test_alerts_must_be_a_list():
    reply = {"alerts": {"id": 1}, "correlations": []}
    with pytest.raises(MalformedInsightError):
        normalize_insight(json.dumps(reply), get_template(InsightKind.ALERTS))


def test_extra_keys_and_string_ids_are_tolerated():
    reply = {
        "limitations": [{"id": "L1", "text": "t", "fixed": False, "severity": "low"}],
        "takeaway": "do it",
        "confidence": 0.7,
    }
    assert normalize_insight(json.dumps(reply), get_template("final_summary")) == reply
