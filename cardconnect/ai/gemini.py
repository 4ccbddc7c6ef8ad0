"""Gemini client - business card extraction, company enrichment and contact analysis.

Talks to the Generative Language ``generateContent`` REST endpoint over
httpx. Extraction failures raise ``ModelFailure``; enrichment never raises
and degrades to fixed fallback strings instead. Contact analysis raises
``ModelFailure`` like extraction.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Protocol, Sequence

import httpx

from ..config import settings
from ..errors import ModelFailure
from ..models.card import UNKNOWN_INDUSTRY, Card
from ..schemas.card import CardDraft, Enrichment
from ..sync.field_mapper import ai_card_to_draft

logger = logging.getLogger(__name__)

ENRICH_FAILED = "Failed to enrich data."
ENRICH_EMPTY = "Could not generate description."

EXTRACTION_PROMPT = """\
Analyze this image. It may contain one or more business cards.
For each business card found, extract the following information:
- Name
- Title
- Phone
- Email
- Website
- Company Name
- Department
- Address

Return the result as a JSON array of objects. Keys should be: name, title, phone, email, website, companyName, department, address.
If a field is missing, omit it or use null.
Do not include markdown formatting like ```json ... ```. Just return the raw JSON string.
"""

ANALYSIS_PROMPT = """\
You are an expert Business Development Consultant.
Your goal is to help the user grow their network and find business opportunities using their contact list and external knowledge (Google Search).

User's Contact List:
{context}

User Question: {question}

Instructions:
1. Use Google Search to find current news, company needs, or professional background if relevant to the question.
2. Suggest specific contacts from the list who might be good targets or connectors.
3. Recommend companies that might be good targets based on the user's intent.
4. Be professional, strategic, and concise.
"""

ENRICHMENT_PROMPT = """\
Act as an expert Sales Agent connecting industry supply and demand.
Use Google Search to find up-to-date information about the following company and person.

Business Card Info:
Company: {company}
Title: {title}
Department: {department}
Address: {address}
Website: {website}

Generate a concise Sales Analysis:
1. **Industry**: A short industry tag.
2. **Company Summary**: A concise description of what the company does.
3. **Sales Analysis Report** (formatted in Markdown):
   - **Supply & Demand**: What does this company likely sell (Supply) and what do they likely need/buy (Demand)?
   - **Why Connect**: Why does this candidate/company stand out? What is the specific opportunity?
   - **Top Recommended Contacts**: Who are the specific top contacts (roles or real names if found) that the user should reach out to at this company to initiate a business relationship?

Return the result as a strictly valid JSON object with keys:
- "companyDescription": (String) The company summary.
- "roleDescription": (String) The 'Sales Analysis Report' in Markdown.
- "industry": (String) The industry tag.

Do not include markdown formatting for the JSON itself (no ```json code blocks). Just return the raw JSON string.
"""


class CardExtractor(Protocol):
    async def extract(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> list[CardDraft]: ...


class CardEnricher(Protocol):
    async def enrich(self, draft: CardDraft) -> Enrichment: ...


class ContactAnalyst(Protocol):
    async def analyze(self, question: str, cards: Sequence[Card]) -> str: ...


def strip_markdown_fence(text: str) -> str:
    """Remove ```json / ``` markers the model adds despite being told not to."""
    return text.replace("```json", "").replace("```", "").strip()


def _response_text(payload: dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate.

    Raises ModelFailure when the payload does not have the
    ``candidates[0].content.parts`` shape.
    """
    candidates = payload.get("candidates") or []
    if not isinstance(candidates, list):
        raise ModelFailure("Unexpected Gemini response: candidates is not a list")
    if not candidates:
        return ""
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise ModelFailure("Unexpected Gemini response: candidate is not an object")
    content = candidate.get("content") or {}
    if not isinstance(content, dict):
        raise ModelFailure("Unexpected Gemini response: content is not an object")
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise ModelFailure("Unexpected Gemini response: parts is not a list")
    return "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict))


def enrichment_fallback(message: str = ENRICH_FAILED) -> Enrichment:
    return Enrichment(company_description=message, role_description=message, industry=UNKNOWN_INDUSTRY)


def contact_context(cards: Sequence[Card]) -> str:
    """One line per card, separated by ``---`` lines."""
    labels = (
        ("Name", "name"),
        ("Company", "company_name"),
        ("Title", "title"),
        ("Email", "email"),
        ("Role", "person_role_description"),
    )
    return "\n---\n".join(
        ", ".join(f"{label}: {getattr(card, attr) or ''}" for label, attr in labels)
        for card in cards
    )


class GeminiClient:
    """Gemini REST client implementing extraction, enrichment and contact analysis.

    Usage:
        async with GeminiClient() as gemini:
            drafts = await gemini.extract(jpeg_bytes)
            enrichment = await gemini.enrich(drafts[0])
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        base_url: str | None = None,
        enrichment_search: bool | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.enrichment_search = (
            settings.gemini_enrichment_search if enrichment_search is None else enrichment_search
        )
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url or settings.gemini_base_url,
            headers={"Content-Type": "application/json"},
            timeout=settings.http_timeout_seconds,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def _generate(self, parts: list[dict[str, Any]], tools: list[dict] | None = None) -> str:
        """Call generateContent and return the response text. Raises ModelFailure."""
        if not self.api_key:
            raise ModelFailure("Gemini API key not set. Set CARDCONNECT_GEMINI_API_KEY")

        body: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if tools:
            body["tools"] = tools

        try:
            response = await self._client.post(
                f"/models/{self.model}:generateContent",
                params={"key": self.api_key},
                json=body,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ModelFailure(f"Gemini API error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise ModelFailure(f"Gemini unreachable: {e}") from e
        except ValueError as e:
            raise ModelFailure("Gemini returned a non-JSON body") from e

        if not isinstance(payload, dict):
            raise ModelFailure("Unexpected Gemini response shape")
        return _response_text(payload)

    async def extract(self, image_bytes: bytes, mime_type: str = "image/jpeg") -> list[CardDraft]:
        """Extract zero or more card drafts from a photo."""
        parts = [
            {"text": EXTRACTION_PROMPT},
            {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(image_bytes).decode("ascii")}},
        ]
        text = await self._generate(parts)
        if not text:
            raise ModelFailure("No text in response")
        logger.debug("Extraction raw response: %s", text)

        try:
            data = json.loads(strip_markdown_fence(text))
        except json.JSONDecodeError as e:
            raise ModelFailure(f"Could not parse extraction response: {e.msg}") from e

        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise ModelFailure(f"Expected a JSON array of cards, got {type(data).__name__}")

        drafts = []
        for item in data:
            if not isinstance(item, dict):
                logger.warning("Ignoring non-object extraction entry: %r", item)
                continue
            drafts.append(ai_card_to_draft(item))
        logger.info("Extracted %d card draft(s)", len(drafts))
        return drafts

    async def enrich(self, draft: CardDraft) -> Enrichment:
        """Describe the company and role on a card. Never raises."""
        prompt = ENRICHMENT_PROMPT.format(
            company=draft.company_name or "Unknown",
            title=draft.title or "Unknown",
            department=draft.department or "Unknown",
            address=draft.address or "",
            website=draft.website or "",
        )
        tools = [{"google_search": {}}] if self.enrichment_search else None

        try:
            text = await self._generate([{"text": prompt}], tools=tools)
        except ModelFailure as e:
            logger.warning("Enrichment failed: %s", e.message)
            return enrichment_fallback()

        if not text:
            logger.warning("Enrichment returned no text")
            return enrichment_fallback(ENRICH_EMPTY)

        try:
            data = json.loads(strip_markdown_fence(text))
        except json.JSONDecodeError as e:
            logger.warning("Enrichment response was not JSON: %s", e.msg)
            return enrichment_fallback()
        if not isinstance(data, dict):
            logger.warning("Enrichment response was not an object")
            return enrichment_fallback()

        return Enrichment(
            company_description=str(data.get("companyDescription") or ""),
            role_description=str(data.get("roleDescription") or ""),
            industry=str(data.get("industry") or UNKNOWN_INDUSTRY),
        )

    async def analyze(self, question: str, cards: Sequence[Card]) -> str:
        """Answer a free-form question about the contact list. Raises ModelFailure."""
        question = question.strip()
        if not question:
            raise ModelFailure("Question is empty")
        prompt = ANALYSIS_PROMPT.format(context=contact_context(cards), question=question)
        text = await self._generate([{"text": prompt}])
        if not text:
            raise ModelFailure("No text in response")
        logger.info("Answered contact question over %d card(s)", len(cards))
        return text
