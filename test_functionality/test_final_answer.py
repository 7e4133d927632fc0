import json

from agent.final_answer import parse_final_answer, resolve_final_answer
from domain.models import DEFAULT_SUMMARY, Recommendation

ANSWER = {
    "summary": "The Anker pair is the best value.",
    "recommendations": [
        {"categoryLabel": "Budget", "productTitle": "Anker P20i", "reason": "Cheap and solid"},
    ],
    "followUpQuestion": "Do you need noise cancelling?",
    "followUpOptions": ["Yes", "No"],
}


def test_parses_plain_json():
    answer = parse_final_answer(json.dumps(ANSWER))
    assert answer.summary == "The Anker pair is the best value."
    assert answer.recommendations == [
        Recommendation(category_label="Budget", product_title="Anker P20i", reason="Cheap and solid"),
    ]
    assert answer.follow_up_question == "Do you need noise cancelling?"
    assert answer.follow_up_options == ["Yes", "No"]


def test_parses_fenced_json_with_surrounding_text():
    content = "Sure! Here you go:\n```json\n" + json.dumps(ANSWER) + "\n```\nEnjoy."
    answer = parse_final_answer(content)
    assert answer is not None
    assert answer.summary == ANSWER["summary"]


def test_blank_summary_falls_back_to_default():
    answer = parse_final_answer(json.dumps({"summary": "  ", "recommendations": []}))
    assert answer.summary == DEFAULT_SUMMARY


def test_invalid_shapes_are_dropped():
    answer = parse_final_answer(json.dumps({
        "summary": "ok",
        "recommendations": ["not a dict", {"productTitle": "X"}],
        "followUpQuestion": 7,
        "followUpOptions": "Yes",
    }))
    assert answer.recommendations == [Recommendation(product_title="X")]
    assert answer.follow_up_question is None
    assert answer.follow_up_options == []


def test_non_json_returns_none():
    assert parse_final_answer("I found three great pairs of earbuds.") is None
    assert parse_final_answer("[1, 2, 3]") is None
    assert parse_final_answer("{broken") is None
    assert parse_final_answer("") is None


def test_resolve_uses_raw_text_when_not_json():
    answer = resolve_final_answer("  I found three great pairs of earbuds.  ")
    assert answer.summary == "I found three great pairs of earbuds."
    assert answer.recommendations == []
    assert answer.follow_up_question is None


def test_resolve_missing_content_gives_default():
    assert resolve_final_answer(None).summary == DEFAULT_SUMMARY
    assert resolve_final_answer("   ").summary == DEFAULT_SUMMARY


def test_payload_uses_wire_keys():
    payload = parse_final_answer(json.dumps(ANSWER)).to_payload()
    assert payload == {
        "content": ANSWER["summary"],
        "recommendations": ANSWER["recommendations"],
        "followUpQuestion": ANSWER["followUpQuestion"],
        "followUpOptions": ANSWER["followUpOptions"],
    }
