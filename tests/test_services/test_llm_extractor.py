"""Tests for the LLM enrichment back-ends."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.config import Settings
from app.services.llm_extractor import (
    MAX_TEXT_CHARS,
    ClaudeExtractor,
    OpenAIExtractor,
    build_llm_extractor,
    build_prompts,
    page_text,
    parse_json_answer,
)

PAGE = """
<html><body>
<nav>Menu</nav>
<main><p>Lumière Hospitality SAS</p><p>12 rue de la Paix, 75002 Paris</p></main>
<script>var tracking = 1;</script>
</body></html>
"""


def _openai_response(content: str | None):
    """Build a mock OpenAI chat completion."""
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    resp = MagicMock()
    resp.choices = [choice]
    return resp


def _claude_response(text: str):
    """Build a mock Anthropic response."""
    block = MagicMock()
    block.text = text
    resp = MagicMock()
    resp.content = [block]
    return resp


@pytest.fixture
def openai_extractor():
    return OpenAIExtractor(api_key="test-key")


@pytest.fixture
def claude_extractor():
    return ClaudeExtractor(api_key="test-key")


# --- Prompt building ---


def test_page_text_prefers_main_content():
    text = page_text(PAGE)
    assert "Lumière Hospitality SAS" in text
    assert "Menu" not in text
    assert "tracking" not in text


def test_page_text_is_capped():
    text = page_text(f"<main>{'a ' * MAX_TEXT_CHARS}</main>")
    assert len(text) == MAX_TEXT_CHARS + 3
    assert text.endswith("...")


def test_prompts_by_page_type():
    legal_system, legal_user = build_prompts("text", "https://x.fr/mentions", "legal")
    team_system, team_user = build_prompts("text", "https://x.fr/equipe", "team")
    general_system, _ = build_prompts("text", "https://x.fr/", "general")

    assert "legalName" in legal_system
    assert "https://x.fr/mentions" in legal_user
    assert '"team"' in team_user
    assert "Sales & Marketing" in team_system
    assert general_system not in (legal_system, team_system)


# --- Answer parsing ---


def test_parse_plain_json():
    assert parse_json_answer('{"company": {"name": "X"}}') == {"company": {"name": "X"}}


def test_parse_fenced_json():
    assert parse_json_answer('```json\n{"team": []}\n```') == {"team": []}


def test_parse_json_in_prose():
    assert parse_json_answer('Here you go: {"team": []} hope this helps') == {"team": []}


def test_parse_rejects_garbage_and_arrays():
    assert parse_json_answer("no json here") is None
    assert parse_json_answer("[1, 2]") is None
    assert parse_json_answer(None) is None


# --- OpenAI ---


async def test_openai_extract(openai_extractor):
    mock_resp = _openai_response('{"company": {"legalName": "Lumière Hospitality SAS"}}')
    with patch.object(
        openai_extractor._client.chat.completions, "create",
        new_callable=AsyncMock, return_value=mock_resp,
    ) as create:
        result = await openai_extractor.extract(PAGE, "https://x.fr/mentions", "legal", "gpt-4o")

    assert result == {"company": {"legalName": "Lumière Hospitality SAS"}}
    kwargs = create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0]["role"] == "system"


async def test_openai_default_model(openai_extractor):
    mock_resp = _openai_response("{}")
    with patch.object(
        openai_extractor._client.chat.completions, "create",
        new_callable=AsyncMock, return_value=mock_resp,
    ) as create:
        await openai_extractor.extract(PAGE, "https://x.fr/")

    assert create.await_args.kwargs["model"] == "gpt-4o-mini"


async def test_openai_api_error_returns_none(openai_extractor):
    with patch.object(
        openai_extractor._client.chat.completions, "create",
        new_callable=AsyncMock, side_effect=Exception("API error"),
    ):
        result = await openai_extractor.extract(PAGE, "https://x.fr/")
    assert result is None


async def test_openai_empty_answer_returns_none(openai_extractor):
    mock_resp = _openai_response(None)
    with patch.object(
        openai_extractor._client.chat.completions, "create",
        new_callable=AsyncMock, return_value=mock_resp,
    ):
        result = await openai_extractor.extract(PAGE, "https://x.fr/")
    assert result is None


async def test_openai_text_preparation_error_returns_none(openai_extractor):
    with patch("app.services.llm_extractor.page_text", side_effect=ValueError("bad markup")):
        result = await openai_extractor.extract(PAGE, "https://x.fr/")
    assert result is None


# --- Claude ---


async def test_claude_extract_ignores_openai_model(claude_extractor):
    mock_resp = _claude_response('```json\n{"team": [{"name": "Jean Dupont"}]}\n```')
    with patch.object(
        claude_extractor._client.messages, "create",
        new_callable=AsyncMock, return_value=mock_resp,
    ) as create:
        result = await claude_extractor.extract(PAGE, "https://x.fr/equipe", "team", "gpt-4o")

    assert result == {"team": [{"name": "Jean Dupont"}]}
    assert create.await_args.kwargs["model"] == "claude-sonnet-4-20250514"


async def test_claude_api_error_returns_none(claude_extractor):
    with patch.object(
        claude_extractor._client.messages, "create",
        new_callable=AsyncMock, side_effect=Exception("API error"),
    ):
        result = await claude_extractor.extract(PAGE, "https://x.fr/")
    assert result is None


async def test_claude_text_preparation_error_returns_none(claude_extractor):
    with patch("app.services.llm_extractor.page_text", side_effect=ValueError("bad markup")):
        result = await claude_extractor.extract(PAGE, "https://x.fr/")
    assert result is None


# --- Factory ---


def test_build_openai_extractor():
    settings = Settings(llm_provider="openai", openai_api_key="sk-test")
    assert isinstance(build_llm_extractor(settings), OpenAIExtractor)


def test_build_claude_extractor():
    settings = Settings(llm_provider="anthropic", anthropic_api_key="sk-ant-test")
    assert isinstance(build_llm_extractor(settings), ClaudeExtractor)


def test_build_without_key_returns_none():
    settings = Settings(llm_provider="openai", openai_api_key="")
    assert build_llm_extractor(settings) is None


def test_build_unknown_provider_returns_none():
    settings = Settings(llm_provider="mistral", openai_api_key="sk-test")
    assert build_llm_extractor(settings) is None
