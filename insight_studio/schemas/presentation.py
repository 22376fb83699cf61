"""Pydantic schemas for the presentation outline."""

from pydantic import BaseModel, Field


class PresentationSlide(BaseModel):
    """One slide: a category heading and the accepted insights under it."""

    position: int = Field(..., ge=1)
    category: str
    title: str
    bullets: list[str] = Field(default_factory=list)
    insight_ids: list[str] = Field(default_factory=list)


class PresentationOutline(BaseModel):
    """Ordered slide outline built from accepted insights."""

    project_id: str
    title: str
    slides: list[PresentationSlide] = Field(default_factory=list)
    insight_count: int = 0
