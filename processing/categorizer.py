import json
import logging
import math
import re

import requests

from processing.prompts import TEST_CONNECTION_PROMPT, build_categorize_prompt

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OTHER_CATEGORY = "other"
NO_SPEECH_SUMMARY = "No speech detected"
NO_SUMMARY_PLACEHOLDER = "No summary available"

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class CategorizationFailed(RuntimeError):
    pass


class ConfigurationMissing(RuntimeError):
    pass


def no_speech_result() -> dict:
    return {
        "activities": [{
            "summary": NO_SPEECH_SUMMARY,
            "category": OTHER_CATEGORY,
            "tags": [],
            "duration": 0,
        }],
    }


def extract_json_object(text: str) -> dict:
    """Busca el primer bloque {...} en la respuesta del modelo y lo parsea."""
    if not text or not text.strip():
        raise CategorizationFailed("Empty response from language model")
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        raise CategorizationFailed("Invalid response format from language model")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise CategorizationFailed(f"Language model returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise CategorizationFailed("Language model response is not a JSON object")
    return parsed


def validate_category(category, valid_ids: list[str]) -> str:
    if isinstance(category, str) and category.strip():
        normalized = category.strip().lower()
    else:
        normalized = OTHER_CATEGORY
    if normalized in valid_ids:
        return normalized
    if OTHER_CATEGORY in valid_ids:
        return OTHER_CATEGORY
    return valid_ids[0] if valid_ids else OTHER_CATEGORY


def _coerce_tags(tags) -> list[str]:
    if not isinstance(tags, list):
        return []
    return [t.strip().lower() for t in tags if isinstance(t, str) and t.strip()]


def _coerce_duration(value, default: int) -> int:
    # bool es subclase de int en Python
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return max(0, math.floor(value + 0.5))


def _coerce_summary(value) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return NO_SUMMARY_PLACEHOLDER


def normalize_activities(parsed: dict, valid_ids: list[str], budget_minutes: int) -> list[dict]:
    raw = parsed.get("activities")
    if isinstance(raw, list):
        items = [(a, 0) for a in raw if isinstance(a, dict)]
    else:
        # Formato antiguo: una sola actividad plana
        items = [(parsed, budget_minutes)]

    activities = [
        {
            "summary": _coerce_summary(item.get("summary")),
            "category": validate_category(item.get("category"), valid_ids),
            "tags": _coerce_tags(item.get("tags")),
            "duration": _coerce_duration(item.get("duration"), default),
        }
        for item, default in items
    ]
    if not activities:
        raise CategorizationFailed("Language model returned no activities")
    return activities


class Categorizer:
    def __init__(self, provider: str = "gemini", api_key: str = None, model: str = None,
                 settings=None, proxy_url: str = None, ollama_url: str = None,
                 ollama_model: str = None, timeout: int = 60):
        self.provider = provider
        self.api_key = api_key
        self.model = model
        self.settings = settings
        self.proxy_url = (proxy_url or "").rstrip("/")
        self.ollama_url = ollama_url or "http://localhost:11434"
        self.ollama_model = ollama_model or "llama3"
        self.timeout = timeout

    def _get_api_key(self) -> str:
        if self.api_key:
            return self.api_key
        if self.settings is not None:
            return self.settings.get_api_key()
        return ""

    def _require_api_key(self) -> str:
        key = self._get_api_key()
        if not key:
            raise ConfigurationMissing(
                "API key not configured. Set GEMINI_API_KEY in your .env file "
                "or add an API key in settings."
            )
        return key

    def is_configured(self) -> bool:
        if self.provider == "proxy":
            return bool(self.proxy_url)
        if self.provider == "ollama":
            return True
        return bool(self._get_api_key())

    def categorize(self, transcript: str, budget_minutes: int = 30, categories=()) -> dict:
        if not transcript or not transcript.strip():
            return no_speech_result()

        categories = [{"id": c["id"], "name": c["name"]} for c in categories]
        valid_ids = [c["id"] for c in categories]

        if self.provider == "proxy":
            parsed = self._call_proxy(transcript, budget_minutes, categories)
        else:
            prompt = build_categorize_prompt(transcript, budget_minutes, categories)
            parsed = extract_json_object(self._call_llm(prompt))

        activities = normalize_activities(parsed, valid_ids, budget_minutes)
        logger.info(
            "Transcripcion categorizada en %d actividad(es), %d min en total",
            len(activities), sum(a["duration"] for a in activities),
        )
        return {"activities": activities}

    def test_connection(self) -> bool:
        try:
            if self.provider == "proxy":
                return self._test_proxy()
            return bool(self._call_llm(TEST_CONNECTION_PROMPT, max_tokens=16).strip())
        except Exception as e:
            logger.warning("Prueba de conexion fallida (%s): %s", self.provider, e)
            return False

    def _call_llm(self, prompt: str, max_tokens: int = 1024) -> str:
        try:
            if self.provider == "gemini":
                return self._call_gemini(prompt, max_tokens)
            if self.provider == "anthropic":
                return self._call_anthropic(prompt, max_tokens)
            if self.provider == "ollama":
                return self._call_ollama(prompt)
        except (CategorizationFailed, ConfigurationMissing):
            raise
        except Exception as e:
            raise CategorizationFailed(f"Categorization request failed: {e}") from e
        raise ConfigurationMissing(f"Unsupported LLM provider: {self.provider}")

    def _call_gemini(self, prompt: str, max_tokens: int) -> str:
        api_key = self._require_api_key()
        url = GEMINI_API_URL.format(model=self.model or "gemini-2.0-flash")
        response = requests.post(
            url,
            params={"key": api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": 0.2,
                    "topK": 40,
                    "topP": 0.95,
                    "maxOutputTokens": max_tokens,
                },
            },
            timeout=self.timeout,
        )
        if not response.ok:
            raise CategorizationFailed(_error_message(response))

        data = response.json()
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise CategorizationFailed("No response from Gemini API") from e
        if not text:
            raise CategorizationFailed("No response from Gemini API")
        return text

    def _call_anthropic(self, prompt: str, max_tokens: int) -> str:
        api_key = self._require_api_key()
        import anthropic

        client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout)
        message = client.messages.create(
            model=self.model or "claude-sonnet-4-5-20250929",
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        return message.content[0].text

    def _call_ollama(self, prompt: str) -> str:
        response = requests.post(
            f"{self.ollama_url}/api/generate",
            json={
                "model": self.ollama_model,
                "prompt": prompt,
                "stream": False,
                "format": "json",
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()["response"]

    def _call_proxy(self, transcript: str, budget_minutes: int, categories: list[dict]) -> dict:
        if not self.proxy_url:
            raise ConfigurationMissing("Proxy URL not configured. Set TIMESCRIBE_PROXY_URL.")
        try:
            response = requests.post(
                f"{self.proxy_url}/categorize",
                json={
                    "transcript": transcript,
                    "defaultDurationMinutes": budget_minutes,
                    "categories": categories,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise CategorizationFailed(f"Categorization request failed: {e}") from e

        if not response.ok:
            raise CategorizationFailed(_error_message(response))
        try:
            data = response.json()
        except ValueError as e:
            raise CategorizationFailed("Proxy returned a non-JSON response") from e
        if not isinstance(data, dict):
            raise CategorizationFailed("Proxy response is not a JSON object")
        return data

    def _test_proxy(self) -> bool:
        if not self.proxy_url:
            return False
        response = requests.post(f"{self.proxy_url}/test-connection", json={}, timeout=self.timeout)
        return response.ok and response.json().get("success") is True


def _error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"API error: {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str) and error:
            return error
    return f"API error: {response.status_code}"
