"""Tag a review."""

from __future__ import annotations

from pydantic import Field, field_validator

from .base import Action, ActionConfig, load_review


class AddTagConfig(ActionConfig):
    tags: list[str] = Field(min_length=1)

    @field_validator("tags", mode="before")
    @classmethod
    def _accept_single_tag(cls, value):
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("tags")
    @classmethod
    def _strip(cls, value: list[str]) -> list[str]:
        tags = [tag.strip() for tag in value if tag and tag.strip()]
        if not tags:
            raise ValueError("at least one non-empty tag is required")
        return tags


class AddTagAction(Action):
    type = "add_tag"
    name = "Add Tag"
    description = "Add tags to the review's metadata"
    config_model = AddTagConfig

    async def run(self, db, config: AddTagConfig, ctx, workflow):
        review = await load_review(db, ctx)
        current = review.tags
        merged = list(current)
        for tag in config.tags:
            if tag not in merged:
                merged.append(tag)

        review.meta = {**(review.meta or {}), "tags": merged}
        await db.flush()
        return {
            "review_id": str(review.id),
            "tags_added": [tag for tag in merged if tag not in current],
            "all_tags": merged,
        }
