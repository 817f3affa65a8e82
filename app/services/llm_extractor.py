"""Optional LLM enrichment for company identity and team members.

Both back-ends share the prompts and the answer parsing. An extractor is built
once at start-up and handed to the crawler; every failure is logged and turned
into ``None`` so a crawl never depends on it.
"""

import json
import logging
import re
from typing import Protocol

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from app.config import Settings
from app.extractors.html import make_soup
from app.mappers.normalization import collapse_whitespace

logger = logging.getLogger(__name__)

MAX_TEXT_CHARS = 12000
_MAX_TOKENS = 2000
_TEMPERATURE = 0.1

_NOISE_TAGS = ("script", "style", "noscript", "iframe", "embed", "form")
_MAIN_CONTENT = "main, article, .content, .main-content"
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

_COMPANY_JSON = """{
  "company": {
    "name": "string or null",
    "legalName": "string or null",
    "address": {
      "street": "string or null",
      "postalCode": "string or null",
      "city": "string or null",
      "country": "string or null",
      "countryName": "string or null"
    }
  }
}"""

_TEAM_JSON = """{
  "team": [
    {
      "name": "Full Name (First Last)",
      "role": "Job Title or null",
      "linkedin": "https://linkedin.com/in/username or null"
    }
  ]
}"""

_GENERAL_JSON = """{
  "company": {
    "name": "string or null",
    "legalName": "string or null",
    "address": {
      "street": "string or null",
      "postalCode": "string or null",
      "city": "string or null",
      "country": "string or null",
      "countryName": "string or null"
    }
  },
  "team": [
    {
      "name": "Full Name",
      "role": "Job Title or null",
      "linkedin": "https://linkedin.com/in/username or null"
    }
  ]
}"""

_COMPANY_SYSTEM = """You are an expert at extracting structured company information from web pages.
Extract ONLY the following information in valid JSON format:
- company.name: The company's display name (not legal name)
- company.legalName: The official legal name (e.g., "SARL X", "SAS Y", "LTD Z")
- company.address.street: Street address (number + street name, e.g., "60 rue de Monceau")
- company.address.postalCode: Postal/ZIP code (e.g., "75008")
- company.address.city: City name (e.g., "Paris")
- company.address.country: ISO country code (FR, GB, US, etc.)
- company.address.countryName: Full country name (e.g., "France")

Return ONLY valid JSON, no explanations. If a field is not found, use null."""

_TEAM_SYSTEM = """You are an expert at extracting team member information from web pages.
Extract a list of team members with their names, roles, and LinkedIn profiles.
Ignore section titles like "Leadership", "Sales & Marketing", "Company Support Department", etc.
Only extract actual people with real names (First Name + Last Name pattern).
Each person should be a separate object. Do not group multiple names together.
Return ONLY valid JSON object format with a "team" array."""

_GENERAL_SYSTEM = """You are an expert at extracting structured company information from web pages.
Extract company name, legal name, address, and team members if present.
Return ONLY valid JSON format."""


class LLMExtractor(Protocol):
    async def extract(
        self, html: str, source_url: str, page_type: str = "general", model: str | None = None
    ) -> dict | None: ...


def page_text(html: str) -> str:
    """Main visible text of a page, capped at MAX_TEXT_CHARS."""
    soup = make_soup(html)
    for tag in soup.find_all(_NOISE_TAGS):
        tag.decompose()
    main = soup.select_one(_MAIN_CONTENT) or soup.body or soup
    text = collapse_whitespace(main.get_text(" "))
    if len(text) > MAX_TEXT_CHARS:
        return text[:MAX_TEXT_CHARS] + "..."
    return text


def build_prompts(text: str, source_url: str, page_type: str) -> tuple[str, str]:
    """(system, user) prompts for a page type: legal/contact, team, or general."""
    if page_type in ("legal", "contact"):
        return _COMPANY_SYSTEM, (
            f"Extract company information from this page (URL: {source_url}):\n\n"
            f"{text}\n\nReturn JSON in this exact format:\n{_COMPANY_JSON}"
        )
    if page_type == "team":
        return _TEAM_SYSTEM, (
            f"Extract team members from this page (URL: {source_url}):\n\n"
            f"{text}\n\nReturn JSON object in this exact format:\n{_TEAM_JSON}\n\n"
            "Each person should be a separate object in the team array. "
            "Extract all team members you can find."
        )
    return _GENERAL_SYSTEM, (
        f"Extract company information from this page (URL: {source_url}):\n\n"
        f"{text}\n\nReturn JSON in this exact format:\n{_GENERAL_JSON}"
    )


def parse_json_answer(text: str | None) -> dict | None:
    """Parse a model answer: plain JSON, fenced JSON, or an object embedded in prose."""
    if not text:
        return None
    stripped = re.sub(r"```(?:json)?\s*", "", text).strip().rstrip("`")

    try:
        obj = json.loads(stripped)
        if isinstance(obj, dict):
            return obj
    except (json.JSONDecodeError, ValueError):
        pass

    match = _JSON_OBJECT_RE.search(stripped)
    if match:
        try:
            obj = json.loads(match.group(0))
            if isinstance(obj, dict):
                return obj
        except (json.JSONDecodeError, ValueError):
            pass

    return None


class OpenAIExtractor:
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: AsyncOpenAI | None = None):
        self._client = client or AsyncOpenAI(api_key=api_key)
        self._model = model

    async def extract(
        self, html: str, source_url: str, page_type: str = "general", model: str | None = None
    ) -> dict | None:
        try:
            system_prompt, user_prompt = build_prompts(page_text(html), source_url, page_type)
            response = await self._client.chat.completions.create(
                model=model or self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                temperature=_TEMPERATURE,
                max_tokens=_MAX_TOKENS,
            )
            content = response.choices[0].message.content if response.choices else None
        except Exception:
            logger.warning("OpenAI extraction failed for %s", source_url, exc_info=True)
            return None

        data = parse_json_answer(content)
        if data is None:
            logger.warning("OpenAI returned no usable JSON for %s", source_url)
        else:
            logger.info("OpenAI extracted data from %s (pageType: %s)", source_url, page_type)
        return data


class ClaudeExtractor:
    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        client: AsyncAnthropic | None = None,
    ):
        self._client = client or AsyncAnthropic(api_key=api_key)
        self._model = model

    async def extract(
        self, html: str, source_url: str, page_type: str = "general", model: str | None = None
    ) -> dict | None:
        # ``model`` names an OpenAI model in job options; Claude keeps its own
        try:
            system_prompt, user_prompt = build_prompts(page_text(html), source_url, page_type)
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=_MAX_TOKENS,
                temperature=_TEMPERATURE,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
            text = response.content[0].text if response.content else None
        except Exception:
            logger.warning("Claude extraction failed for %s", source_url, exc_info=True)
            return None

        data = parse_json_answer(text)
        if data is None:
            logger.warning("Claude returned no usable JSON for %s", source_url)
        else:
            logger.info("Claude extracted data from %s (pageType: %s)", source_url, page_type)
        return data


def build_llm_extractor(settings: Settings) -> LLMExtractor | None:
    """The configured back-end, or None when its API key is missing."""
    provider = settings.llm_provider.lower()
    if provider == "anthropic":
        if not settings.anthropic_api_key:
            return None
        return ClaudeExtractor(settings.anthropic_api_key, settings.anthropic_model)
    if provider == "openai":
        if not settings.openai_api_key:
            return None
        return OpenAIExtractor(settings.openai_api_key, settings.openai_model)
    logger.warning("Unknown LLM provider %r, enrichment disabled", settings.llm_provider)
    return None
