import json

import pytest

from processing import categorizer as categorizer_module
from processing.categorizer import (
    NO_SPEECH_SUMMARY,
    NO_SUMMARY_PLACEHOLDER,
    CategorizationFailed,
    Categorizer,
    ConfigurationMissing,
    extract_json_object,
    normalize_activities,
    validate_category,
)
from processing.prompts import build_categorize_prompt

CATEGORIES = [
    {"id": "work", "name": "Work"},
    {"id": "meals", "name": "Meals & Cooking"},
    {"id": "other", "name": "Other"},
]
VALID_IDS = [c["id"] for c in CATEGORIES]


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code
        self.ok = 200 <= status_code < 300

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def gemini_reply(text):
    return FakeResponse({"candidates": [{"content": {"parts": [{"text": text}]}}]})


@pytest.fixture
def posts(monkeypatch):
    """Intercepta requests.post y devuelve las respuestas encoladas."""
    calls = []
    replies = []

    def fake_post(url, **kwargs):
        calls.append((url, kwargs))
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(categorizer_module.requests, "post", fake_post)
    fake_post.calls = calls
    fake_post.replies = replies
    return fake_post


def test_empty_transcript_makes_no_request(posts):
    """Sin voz no se llama al modelo, ni siquiera sin API key."""
    result = Categorizer(api_key="").categorize("   ", 30, CATEGORIES)
    assert result == {"activities": [{
        "summary": NO_SPEECH_SUMMARY, "category": "other", "tags": [], "duration": 0,
    }]}
    assert posts.calls == []


def test_missing_api_key_raises_configuration_missing(posts):
    with pytest.raises(ConfigurationMissing):
        Categorizer(api_key="").categorize("I cooked dinner", 30, CATEGORIES)
    assert posts.calls == []


def test_api_key_from_settings(posts, settings):
    settings.update(api_key="from-settings")
    posts.replies.append(gemini_reply('{"activities": []}'))
    with pytest.raises(CategorizationFailed):
        Categorizer(settings=settings).categorize("I cooked dinner", 30, CATEGORIES)
    assert posts.calls[0][1]["params"] == {"key": "from-settings"}


def test_multiple_activities(posts):
    reply = {
        "activities": [
            {"summary": "Made coffee", "category": "meals", "tags": ["Coffee"], "duration": 5},
            {"summary": "Wrote the report", "category": "WORK", "tags": ["writing"], "duration": 25},
        ],
    }
    posts.replies.append(gemini_reply("Here you go:\n```json\n" + json.dumps(reply) + "\n```"))

    result = Categorizer(api_key="k").categorize(
        "Five minutes making coffee then the report", 30, CATEGORIES,
    )

    assert result["activities"] == [
        {"summary": "Made coffee", "category": "meals", "tags": ["coffee"], "duration": 5},
        {"summary": "Wrote the report", "category": "work", "tags": ["writing"], "duration": 25},
    ]
    body = posts.calls[0][1]["json"]
    prompt = body["contents"][0]["parts"][0]["text"]
    assert "30 minutes" in prompt
    assert "meals (Meals & Cooking)" in prompt
    assert body["generationConfig"]["temperature"] == 0.2


def test_unknown_category_falls_back_to_other(posts):
    posts.replies.append(gemini_reply(json.dumps({
        "activities": [{"summary": "Walked", "category": "hiking", "duration": 30}],
    })))
    result = Categorizer(api_key="k").categorize("went hiking", 30, CATEGORIES)
    assert result["activities"][0]["category"] == "other"


def test_single_object_response_uses_budget(posts):
    posts.replies.append(gemini_reply(json.dumps({
        "summary": "Answered email", "category": "work", "tags": ["email"],
    })))
    result = Categorizer(api_key="k").categorize("email all afternoon", 45, CATEGORIES)
    assert result["activities"] == [
        {"summary": "Answered email", "category": "work", "tags": ["email"], "duration": 45},
    ]


def test_http_error_raises_categorization_failed(posts):
    posts.replies.append(FakeResponse({"error": {"message": "quota exceeded"}}, status_code=429))
    with pytest.raises(CategorizationFailed, match="quota exceeded"):
        Categorizer(api_key="k").categorize("some words", 30, CATEGORIES)


def test_network_error_raises_categorization_failed(posts):
    posts.replies.append(ConnectionError("offline"))
    with pytest.raises(CategorizationFailed):
        Categorizer(api_key="k").categorize("some words", 30, CATEGORIES)


def test_non_json_reply_raises_categorization_failed(posts):
    posts.replies.append(gemini_reply("Sorry, I cannot help with that."))
    with pytest.raises(CategorizationFailed):
        Categorizer(api_key="k").categorize("some words", 30, CATEGORIES)


def test_test_connection_reports_failure(posts):
    posts.replies.append(ConnectionError("offline"))
    assert Categorizer(api_key="k").test_connection() is False
    assert Categorizer(api_key="").test_connection() is False

    posts.replies.append(gemini_reply("OK"))
    assert Categorizer(api_key="k").test_connection() is True


def test_proxy_provider(posts):
    posts.replies.append(FakeResponse({
        "activities": [{"summary": "Lunch", "category": "meals", "tags": [], "duration": 30}],
    }))
    categorizer = Categorizer(provider="proxy", proxy_url="https://proxy.example/")
    result = categorizer.categorize("had lunch", 30, CATEGORIES)

    url, kwargs = posts.calls[0]
    assert url == "https://proxy.example/categorize"
    assert kwargs["json"]["defaultDurationMinutes"] == 30
    assert result["activities"][0]["category"] == "meals"


def test_proxy_error_response(posts):
    posts.replies.append(FakeResponse({"error": "boom", "code": "CATEGORIZE_ERROR"}, status_code=500))
    categorizer = Categorizer(provider="proxy", proxy_url="https://proxy.example")
    with pytest.raises(CategorizationFailed, match="boom"):
        categorizer.categorize("had lunch", 30, CATEGORIES)


def test_proxy_without_url_is_not_configured():
    categorizer = Categorizer(provider="proxy")
    assert categorizer.is_configured() is False
    with pytest.raises(ConfigurationMissing):
        categorizer.categorize("had lunch", 30, CATEGORIES)


def test_extract_json_object():
    assert extract_json_object('prefix {"a": {"b": 1}} suffix') == {"a": {"b": 1}}
    for bad in ("", "no braces here", "{not json}", "[1, 2]"):
        with pytest.raises(CategorizationFailed):
            extract_json_object(bad)


def test_validate_category():
    assert validate_category(" Work ", VALID_IDS) == "work"
    assert validate_category("unknown", VALID_IDS) == "other"
    assert validate_category(None, VALID_IDS) == "other"
    assert validate_category("unknown", ["work"]) == "work"


def test_normalize_activities_coerces_fields():
    activities = normalize_activities({
        "activities": [
            {"summary": "  ", "category": "work", "tags": "not-a-list", "duration": 12.6},
            {"summary": "x", "category": "meals", "tags": [1, "Food"], "duration": -3},
            {"summary": "y", "category": "meals", "duration": True},
            "garbage",
        ],
    }, VALID_IDS, 30)

    assert activities[0] == {"summary": NO_SUMMARY_PLACEHOLDER, "category": "work", "tags": [], "duration": 13}
    assert activities[1]["duration"] == 0
    assert activities[1]["tags"] == ["food"]
    assert activities[2]["duration"] == 0
    assert len(activities) == 3


def test_normalize_activities_rejects_empty_list():
    with pytest.raises(CategorizationFailed):
        normalize_activities({"activities": []}, VALID_IDS, 30)


def test_prompt_lists_categories():
    prompt = build_categorize_prompt("hello", 20, CATEGORIES)
    assert '"hello"' in prompt
    assert "20 minutes" in prompt
    assert "work (Work)" in prompt


def test_durations_round_half_up():
    activities = normalize_activities({
        "activities": [
            {"summary": "a", "category": "work", "duration": 2.5},
            {"summary": "b", "category": "work", "duration": 0.5},
            {"summary": "c", "category": "work", "duration": 7.49},
        ],
    }, VALID_IDS, 30)
    assert [a["duration"] for a in activities] == [3, 1, 7]
