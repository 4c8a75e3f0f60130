"""Review responses: single-row-per-review storage and AI drafting."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.review import BrandVoice, Review, ReviewResponse
from ..models.tenant import User
from . import review_svc
from .llm_client import ChatClient

logger = logging.getLogger(__name__)

TONE_INSTRUCTIONS = {
    "friendly": "Be warm, casual, and approachable. Use friendly language.",
    "apologetic": "Express sincere apology. Take responsibility. Offer to make things right.",
    "empathetic": "Show understanding and compassion. Acknowledge the customer's feelings.",
    "professional": "Be professional, courteous, and helpful.",
}

DRAFT_SYSTEM_PROMPT = (
    "You are a professional customer service representative writing responses to "
    "customer reviews. Generate helpful, appropriate responses."
)


async def get_response(db: AsyncSession, review_id: uuid.UUID) -> ReviewResponse | None:
    stmt = select(ReviewResponse).where(ReviewResponse.review_id == review_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_response(
    db: AsyncSession,
    review_id: uuid.UUID,
    defaults: dict[str, Any],
) -> tuple[ReviewResponse, bool]:
    """Get the review's response or create it. Returns (response, created).

    ``review_response.review_id`` is unique; if a concurrently running workflow
    inserts first, the IntegrityError is absorbed and its row is returned.
    """
    existing = await get_response(db, review_id)
    if existing:
        return existing, False

    response = ReviewResponse(review_id=review_id, **defaults)
    try:
        async with db.begin_nested():
            db.add(response)
    except IntegrityError:
        existing = await get_response(db, review_id)
        if existing is None:
            raise
        logger.info("Response for review %s created concurrently; reusing it", review_id)
        return existing, False
    return response, True


async def create_fallback_draft(
    db: AsyncSession,
    review_id: uuid.UUID,
    user_id: uuid.UUID | None,
    reason: str,
    tone: str | None = None,
) -> ReviewResponse:
    """Leave an empty draft carrying ``reason`` so a human can take over.

    An existing draft gets the reason recorded; approved or published
    responses are left alone.
    """
    response, created = await get_or_create_response(
        db,
        review_id,
        {
            "user_id": user_id,
            "content": "",
            "status": "draft",
            "ai_generated": False,
            "tone": tone or "professional",
            "language": "en",
            "rejection_reason": reason,
        },
    )
    if not created and response.status == "draft":
        response.rejection_reason = reason
        if response.user_id is None:
            response.user_id = user_id
    await db.flush()
    return response


class ResponseDrafter:
    """Drafts a reply to a review with the language model."""

    def __init__(self, chat_client: ChatClient):
        self.chat = chat_client

    async def generate_response(
        self,
        db: AsyncSession,
        review: Review,
        user: User,
        params: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Return ``{"response": ReviewResponse}`` or None when drafting failed."""
        tone = params.get("tone", "professional")
        language = params.get("language", "en")
        brand_voice = await self._brand_voice(db, review, params.get("brand_voice_id"))
        prompt = await self._build_prompt(db, review, params, brand_voice)

        completion = await self.chat.complete(
            system=DRAFT_SYSTEM_PROMPT,
            prompt=prompt,
            temperature=0.7,
            max_tokens=500,
            timeout=settings.ai_generation_timeout_seconds,
        )
        if not completion.ok:
            logger.warning(
                "Response drafting failed for review %s: %s", review.id, completion.error
            )
            return None

        response, _ = await get_or_create_response(db, review.id, {"user_id": user.id})
        response.user_id = user.id
        response.content = completion.text.strip()
        response.status = "draft"
        response.ai_generated = True
        response.tone = tone
        response.language = language
        response.rejection_reason = None
        response.brand_voice_id = brand_voice.id if brand_voice else None
        await db.flush()
        return {"response": response}

    async def _brand_voice(
        self, db: AsyncSession, review: Review, brand_voice_id: Any
    ) -> BrandVoice | None:
        if brand_voice_id:
            key = review_svc.as_uuid(brand_voice_id)
            return await db.get(BrandVoice, key) if key else None
        location = await review_svc.get_location(db, review.location_id)
        if not location:
            return None
        stmt = (
            select(BrandVoice)
            .where(BrandVoice.tenant_id == location.tenant_id)
            .where(BrandVoice.is_default.is_(True))
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def _build_prompt(
        self,
        db: AsyncSession,
        review: Review,
        params: dict[str, Any],
        brand_voice: BrandVoice | None,
    ) -> str:
        tone = params.get("tone", "professional")
        lines = [
            "Generate a response to this customer review.",
            "",
            f"Review (Rating: {review.rating}/5 stars):",
            review.content or "(No text content, rating only)",
            "",
            f"Tone: {TONE_INSTRUCTIONS.get(tone, TONE_INSTRUCTIONS['professional'])}",
        ]
        if params.get("auto_detect_language"):
            lines.append("Respond in the same language as the review.")
        else:
            lines.append(f"Respond in language code '{params.get('language', 'en')}'.")

        if brand_voice:
            lines += ["", "Brand Voice Guidelines:", brand_voice.guidelines]
            if brand_voice.example_responses:
                lines.append("Example responses in our brand voice:")
                lines += [f"- {example}" for example in brand_voice.example_responses]

        if params.get("use_sentiment_context"):
            sentiment = await review_svc.get_sentiment(db, review.id)
            if sentiment:
                lines += [
                    "",
                    "Sentiment Analysis Context:",
                    f"- Overall sentiment: {sentiment.sentiment}",
                    f"- Sentiment score: {sentiment.sentiment_score}",
                ]
                emotions = sentiment.top_emotions()
                if emotions:
                    lines.append(f"- Key emotions: {', '.join(emotions)}")

        if params.get("include_location_context"):
            location = await review_svc.get_location(db, review.location_id)
            if location:
                lines += ["", "Location Context:", f"- Business name: {location.name}"]
                if location.address:
                    lines.append(f"- Address: {location.address}")

        if params.get("max_length"):
            lines += ["", f"Keep the response under {params['max_length']} characters."]

        lines += ["", "Generate only the response text, no additional commentary."]
        return "\n".join(lines)
