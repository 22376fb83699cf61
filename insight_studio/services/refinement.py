"""Conversational refinement of a stored insight with Claude.

Claude replies with advice followed by a refined version of the insight.
The refined sections are merged over the current content; when the caller
asks for it, the changes are written back through the insight repository.
"""

from dataclasses import dataclass, field

from insight_studio.core.errors import RefinementError
from insight_studio.core.logging import get_logger
from insight_studio.integrations.claude import ClaudeClient
from insight_studio.schemas.insight import (
    ConversationMessage,
    ConversationRole,
    InsightContent,
    StrategicInsight,
)
from insight_studio.services.insight_parser import extract_refined_sections
from insight_studio.services.insight_store import InsightRepository

logger = get_logger(__name__)

REFINE_UNAVAILABLE_MESSAGE = (
    "I'm having trouble connecting to the AI service. You can continue editing "
    "the insight manually, or try again in a moment."
)
_ROLE_LABELS = {ConversationRole.USER: "User", ConversationRole.ASSISTANT: "Assistant"}
_PROMPT_SECTIONS = {"title", "summary", "details", "evidence", "impact", "recommendations"}


def format_conversation(messages: list[ConversationMessage]) -> str | None:
    if not messages:
        return None
    return "\n".join(f"{_ROLE_LABELS[m.role]}: {m.content}" for m in messages)


@dataclass
class RefinementResult:
    insight: StrategicInsight
    response: str
    refined_content: InsightContent
    changed_fields: list[str] = field(default_factory=list)
    applied: bool = False


class InsightRefiner:
    """Asks Claude to refine one insight and optionally stores the result."""

    def __init__(self, repository: InsightRepository, claude: ClaudeClient) -> None:
        self._repository = repository
        self._claude = claude

    async def refine(
        self,
        project_id: str,
        insight_id: str,
        prompt: str,
        conversation: list[ConversationMessage] | None = None,
        apply: bool = False,
    ) -> RefinementResult:
        """Refine one insight.

        Raises:
            InsightNotFoundError: If the insight is not stored for the project.
            RefinementError: If Claude is unavailable or the request failed.
        """
        insight = await self._repository.get_insight(project_id, insight_id)
        content = insight.content

        result = await self._claude.refine_insight(
            insight.title,
            content.model_dump(include=_PROMPT_SECTIONS),
            prompt,
            format_conversation(conversation or []),
        )
        if not result.success or not result.text:
            logger.warning(
                "Insight refinement failed",
                extra={
                    "project_id": project_id,
                    "insight_id": insight_id,
                    "error": result.error,
                    "status_code": result.status_code,
                },
            )
            raise RefinementError(
                REFINE_UNAVAILABLE_MESSAGE,
                retriable=result.retriable,
                context={"error": result.error},
            )

        update = extract_refined_sections(result.text, content)
        if update is None:
            return RefinementResult(insight=insight, response=result.text, refined_content=content)

        changes = update.model_dump(exclude_unset=True)
        refined = content.model_copy(update=changes)
        applied = False
        if apply:
            insight = await self._repository.update_insight(project_id, insight_id, update)
            applied = True

        logger.info(
            "Insight refined",
            extra={
                "project_id": project_id,
                "insight_id": insight_id,
                "fields": sorted(changes),
                "applied": applied,
            },
        )
        return RefinementResult(
            insight=insight,
            response=result.text,
            refined_content=refined,
            changed_fields=sorted(changes),
            applied=applied,
        )
