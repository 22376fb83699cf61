"""Claude/Anthropic LLM integration client for strategic insight generation.

Features:
- Async HTTP client using httpx (direct calls to the Messages API)
- API key validation (prefix and minimum length) before any network call
- Circuit breaker for fault tolerance
- Transport retries with exponential backoff for 5xx, timeouts and network errors
- Handles rate limits (429) and auth failures (401/403)
- Masks API keys in all logs

ERROR LOGGING REQUIREMENTS:
- Log all outbound API calls with model, timing and retry attempt
- Log request/response bodies at DEBUG level (truncated)
- Log token usage for quota tracking
- Never log a full API key

The client returns CompletionResult objects instead of raising; the
analysis layer turns failed results into fallback insights.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx

from insight_studio.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from insight_studio.core.config import ANTHROPIC_KEY_PREFIX, get_settings
from insight_studio.core.logging import claude_logger, get_logger, mask_api_key

logger = get_logger(__name__)

ANTHROPIC_API_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"

# Per-document cap and overall cap on prompt content
MAX_DOCUMENT_CHARS = 20_000
MAX_PROMPT_CONTENT_CHARS = 85_000


@dataclass
class CompletionResult:
    """Result of a Claude completion request."""

    success: bool
    text: str | None = None
    stop_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    error: str | None = None
    status_code: int | None = None
    duration_ms: float = 0.0
    request_id: str | None = None

    @property
    def retriable(self) -> bool:
        """Auth and request-shape failures will not succeed on retry."""
        return self.status_code not in (400, 401, 403, 404)


def validate_api_key(api_key: str | None, min_length: int | None = None) -> str | None:
    """Check an Anthropic API key without calling the API.

    Returns:
        None when the key looks usable, otherwise the reason it was rejected.
    """
    if min_length is None:
        min_length = get_settings().anthropic_api_key_min_length
    if not api_key:
        return "missing"
    if not api_key.startswith(ANTHROPIC_KEY_PREFIX):
        return f"missing {ANTHROPIC_KEY_PREFIX} prefix"
    if len(api_key) < min_length:
        return f"shorter than {min_length} characters"
    return None


DOCUMENT_CATEGORIES = (
    "business_challenges",
    "audience_gaps",
    "competitive_threats",
    "gaming_opportunities",
    "strategic_recommendations",
    "key_narratives",
)

WEBSITE_CATEGORIES = (
    "business_imperatives",
    "gaming_audience_opportunity",
    "strategic_activation_pathways",
    "company_positioning",
    "competitive_landscape",
    "key_partnerships",
    "public_announcements",
    "consumer_engagement",
    "product_service_fit",
)

DOCUMENT_SYSTEM_PROMPT = """You are an expert strategic consultant specializing in gaming and gamification strategy.
You analyze client business documents and identify strategic insights related to gaming opportunities.

Focus on:
1. Business challenges that can be solved through gamification
2. Audience gaps that can be filled with gaming elements
3. Competitive threats that can be addressed through gaming
4. Specific gaming opportunities that could benefit the client
5. Strategic recommendations for implementation
6. Key narratives that could form presentation slides

Respond ONLY with valid JSON in this format, wrapped in a ```json code block:
{
  "insights": [
    {
      "id": "<unique id>",
      "category": "<one of: %s>",
      "content": {
        "title": "<clear, concise title>",
        "summary": "<one or two sentence summary>",
        "details": "<detailed explanation with evidence from the documents>",
        "evidence": "<quotes or facts from the documents>",
        "impact": "<expected business impact>",
        "recommendations": "<concrete next steps>",
        "dataPoints": ["<supporting data point>"]
      },
      "confidence": <70-100>,
      "needsReview": <true if confidence is below 70>
    }
  ]
}

Aim for 6-10 specific, non-generic insights across different categories.
If the documents do not contain enough information, respond with
{"insights": [], "insufficientContent": true}.""" % ", ".join(DOCUMENT_CATEGORIES)

WEBSITE_SYSTEM_PROMPT = """You are an expert strategic consultant specializing in gaming strategy.
You analyze the public website of a company and identify how gaming could serve its business.

Respond ONLY with valid JSON in this format, wrapped in a ```json code block:
{
  "insights": [
    {
      "id": "<unique id>",
      "category": "<one of: %s>",
      "content": {
        "title": "<clear, concise title>",
        "summary": "<one or two sentence summary>",
        "details": "<explanation grounded in the website content>",
        "recommendations": "<concrete next steps>"
      },
      "confidence": <0-100>,
      "needsReview": <true|false>
    }
  ]
}

Base every insight on the website content provided. Aim for 6-9 insights.""" % ", ".join(
    WEBSITE_CATEGORIES
)

REFINE_SYSTEM_PROMPT = """You are an expert strategic consultant from Games Age, a gaming consultancy that helps businesses integrate gaming into their strategy.
Your job is to help refine strategic insights about gaming and make them more impactful, specific, and actionable.

When refining insights:
- Maintain the original intent but make it more valuable
- Add concrete examples and data points when relevant
- Make recommendations specific and actionable
- Keep the tone professional but conversational
- Provide clear rationale for your suggested changes
- Always maintain the structured format with title, summary, details, evidence, impact, and recommendations

Your analysis should be structured and maintain the original insight format. When you suggest changes, make sure to include the complete structured content in your response.

You're an expert in gaming industry trends, audience analysis, competitive positioning, and gaming opportunities for businesses."""

# Sampling settings for conversational refinement
REFINE_TEMPERATURE = 0.7
REFINE_MAX_TOKENS = 1500

PROCESSING_MODE_INSTRUCTIONS = {
    "comprehensive": (
        "Perform a comprehensive analysis. Cover every category and support each "
        "insight with evidence from the documents."
    ),
    "quick": (
        "Perform a quick analysis. Focus on the most important three to five "
        "insights and keep details brief."
    ),
}


class ClaudeClient:
    """Async client for the Anthropic Messages API.

    Provides LLM capabilities with:
    - API key validation
    - Circuit breaker for fault tolerance
    - Retry logic with exponential backoff
    - Structured logging with masked credentials
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        """Initialize Claude client.

        Args:
            api_key: Anthropic API key. Defaults to settings.
            model: Model to use. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
            max_retries: Maximum attempts per request. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
            max_tokens: Maximum response tokens. Defaults to settings.
        """
        settings = get_settings()

        self._api_key = api_key or settings.anthropic_api_key
        self._model = model or settings.claude_model
        self._timeout = timeout or settings.claude_timeout
        self._max_retries = max(1, max_retries or settings.claude_max_retries)
        self._retry_delay = retry_delay if retry_delay is not None else settings.claude_retry_delay
        self._max_tokens = max_tokens or settings.claude_max_tokens

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.claude_circuit_failure_threshold,
                recovery_timeout=settings.claude_circuit_recovery_timeout,
            ),
            name="claude",
        )

        self._client: httpx.AsyncClient | None = None
        self._key_problem = validate_api_key(
            self._api_key, settings.anthropic_api_key_min_length
        )
        if self._key_problem and self._api_key:
            claude_logger.invalid_api_key(self._key_problem, self._api_key)

    @property
    def available(self) -> bool:
        """Whether a usable API key is configured."""
        return self._key_problem is None

    @property
    def key_problem(self) -> str | None:
        """Why the configured key was rejected, if it was."""
        return self._key_problem

    @property
    def api_key_hint(self) -> str:
        """Masked form of the configured key, safe to return to clients."""
        return mask_api_key(self._api_key)

    @property
    def model(self) -> str:
        return self._model

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers: dict[str, str] = {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "anthropic-version": ANTHROPIC_API_VERSION,
            }
            if self._api_key:
                headers["x-api-key"] = self._api_key

            self._client = httpx.AsyncClient(
                base_url=ANTHROPIC_API_URL,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("Claude client closed")

    def _backoff(self, attempt: int) -> float:
        return self._retry_delay * (2**attempt)

    async def _wait_before_retry(self, attempt: int, reason: str) -> None:
        delay = self._backoff(attempt)
        logger.warning(
            f"Claude request attempt {attempt + 1} failed, retrying in {delay}s",
            extra={
                "attempt": attempt + 1,
                "max_retries": self._max_retries,
                "delay_seconds": delay,
                "reason": reason,
            },
        )
        await asyncio.sleep(delay)

    async def complete(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float = 0.2,
    ) -> CompletionResult:
        """Send a completion request to Claude.

        Args:
            user_prompt: The user message
            system_prompt: Optional system prompt
            max_tokens: Maximum response tokens (overrides default)
            temperature: Sampling temperature

        Returns:
            CompletionResult with response text and metadata
        """
        if not self.available:
            claude_logger.graceful_fallback("complete", f"API key {self._key_problem}")
            return CompletionResult(
                success=False,
                error=f"Anthropic API key {self._key_problem}",
                status_code=401,
            )

        if not await self._circuit_breaker.can_execute():
            claude_logger.graceful_fallback("complete", "Circuit breaker open")
            return CompletionResult(success=False, error="Circuit breaker is open")

        start_time = time.monotonic()
        client = await self._get_client()
        request_id: str | None = None
        failure = CompletionResult(success=False, error="No attempt made")

        request_body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if system_prompt:
            request_body["system"] = system_prompt
            claude_logger.request_body(self._model, system_prompt, user_prompt)

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            last_attempt = attempt == self._max_retries - 1
            claude_logger.api_call_start(self._model, len(user_prompt), retry_attempt=attempt)

            try:
                response = await client.post("/v1/messages", json=request_body)
            except httpx.TimeoutException:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                claude_logger.timeout(self._model, self._timeout)
                claude_logger.api_call_error(
                    self._model,
                    duration_ms,
                    None,
                    "Request timed out",
                    "TimeoutError",
                    retry_attempt=attempt,
                )
                await self._circuit_breaker.record_failure()
                failure = CompletionResult(
                    success=False,
                    error=f"Request timed out after {self._timeout}s",
                    duration_ms=duration_ms,
                )
                if not last_attempt:
                    await self._wait_before_retry(attempt, "timeout")
                    continue
                break
            except httpx.RequestError as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                claude_logger.api_call_error(
                    self._model,
                    duration_ms,
                    None,
                    str(e),
                    type(e).__name__,
                    retry_attempt=attempt,
                )
                await self._circuit_breaker.record_failure()
                failure = CompletionResult(
                    success=False, error=f"Request failed: {e}", duration_ms=duration_ms
                )
                if not last_attempt:
                    await self._wait_before_retry(attempt, str(e))
                    continue
                break

            duration_ms = (time.monotonic() - attempt_start) * 1000
            request_id = response.headers.get("request-id")
            status = response.status_code

            if status == 429:
                retry_after_header = response.headers.get("retry-after")
                retry_after = float(retry_after_header) if retry_after_header else None
                claude_logger.rate_limit(self._model, retry_after=retry_after)
                await self._circuit_breaker.record_failure()
                failure = CompletionResult(
                    success=False,
                    error="Rate limit exceeded",
                    status_code=429,
                    request_id=request_id,
                    duration_ms=duration_ms,
                )
                if not last_attempt and retry_after and retry_after <= 60:
                    await asyncio.sleep(retry_after)
                    continue
                break

            if status in (401, 403):
                claude_logger.auth_failure(status, self._api_key)
                claude_logger.api_call_error(
                    self._model,
                    duration_ms,
                    status,
                    "Authentication failed",
                    "AuthError",
                    retry_attempt=attempt,
                    request_id=request_id,
                )
                await self._circuit_breaker.record_failure()
                return CompletionResult(
                    success=False,
                    error=f"Authentication failed ({status})",
                    status_code=status,
                    request_id=request_id,
                    duration_ms=duration_ms,
                )

            if status >= 500:
                error_msg = f"Server error ({status})"
                claude_logger.api_call_error(
                    self._model,
                    duration_ms,
                    status,
                    error_msg,
                    "ServerError",
                    retry_attempt=attempt,
                    request_id=request_id,
                )
                await self._circuit_breaker.record_failure()
                failure = CompletionResult(
                    success=False,
                    error=error_msg,
                    status_code=status,
                    request_id=request_id,
                    duration_ms=duration_ms,
                )
                if not last_attempt:
                    await self._wait_before_retry(attempt, error_msg)
                    continue
                break

            if status >= 400:
                error_body = response.json() if response.content else None
                error_msg = (
                    error_body.get("error", {}).get("message", str(error_body))
                    if isinstance(error_body, dict)
                    else "Client error"
                )
                claude_logger.api_call_error(
                    self._model,
                    duration_ms,
                    status,
                    error_msg,
                    "ClientError",
                    retry_attempt=attempt,
                    request_id=request_id,
                )
                return CompletionResult(
                    success=False,
                    error=f"Client error ({status}): {error_msg}",
                    status_code=status,
                    request_id=request_id,
                    duration_ms=duration_ms,
                )

            data = response.json()
            blocks = data.get("content", [])
            text = "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")
            stop_reason = data.get("stop_reason")
            usage = data.get("usage", {})
            input_tokens = usage.get("input_tokens")
            output_tokens = usage.get("output_tokens")

            claude_logger.api_call_success(
                self._model,
                duration_ms,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                request_id=request_id,
            )
            claude_logger.response_body(self._model, text, duration_ms, stop_reason=stop_reason)
            if input_tokens and output_tokens:
                claude_logger.token_usage(self._model, input_tokens, output_tokens)

            await self._circuit_breaker.record_success()
            return CompletionResult(
                success=True,
                text=text,
                stop_reason=stop_reason,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                request_id=request_id,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

        failure.duration_ms = (time.monotonic() - start_time) * 1000
        return failure

    async def analyze_documents(
        self,
        documents: list[dict[str, Any]],
        client_industry: str,
        project_title: str = "",
        client_website: str | None = None,
        processing_mode: str = "comprehensive",
    ) -> CompletionResult:
        """Ask Claude for strategic insights about a set of documents.

        Args:
            documents: Dicts with name, priority and content, highest priority first.
            client_industry: Industry used to frame the analysis.
            project_title: Optional project title.
            client_website: Optional website mentioned as extra context.
            processing_mode: "comprehensive" or "quick".
        """
        sections: list[str] = []
        remaining = MAX_PROMPT_CONTENT_CHARS
        for index, doc in enumerate(documents, start=1):
            if remaining <= 0:
                break
            content = (doc.get("content") or "")[: min(MAX_DOCUMENT_CHARS, remaining)]
            remaining -= len(content)
            sections.append(
                f"--- DOCUMENT {index}: {doc.get('name', 'Untitled')} "
                f"(priority {doc.get('priority', 0)}) ---\n{content or '[no extractable text]'}"
            )

        website_context = (
            f"\nClient website: {client_website}. Consider it as additional context."
            if client_website
            else ""
        )
        title_context = f' for project "{project_title}"' if project_title else ""
        user_prompt = (
            f"Analyze these documents for a client in the {client_industry} "
            f"industry{title_context}. Identify strategic gaming and gamification "
            f"opportunities for this client.{website_context}\n\n"
            f"{PROCESSING_MODE_INSTRUCTIONS.get(processing_mode, PROCESSING_MODE_INSTRUCTIONS['comprehensive'])}\n\n"
            f"DOCUMENT CONTENT TO ANALYZE:\n" + "\n\n".join(sections)
        )
        return await self.complete(user_prompt, system_prompt=DOCUMENT_SYSTEM_PROMPT)

    async def analyze_website(
        self,
        website_content: str,
        website_url: str,
        client_name: str,
        client_industry: str,
    ) -> CompletionResult:
        """Ask Claude for strategic insights about a company website."""
        user_prompt = (
            f"Analyze the website of {client_name or 'the client'} ({website_url}), "
            f"a company in the {client_industry} industry.\n\n"
            f"WEBSITE CONTENT:\n{website_content}"
        )
        return await self.complete(user_prompt, system_prompt=WEBSITE_SYSTEM_PROMPT)

    async def refine_insight(
        self,
        insight_title: str,
        content: dict[str, str | None],
        prompt: str,
        conversation_context: str | None = None,
    ) -> CompletionResult:
        """Ask Claude to refine one insight.

        The reply is free text: advice first, then a refined version laid out
        as "Title: / Summary: / Details: / Evidence: / Impact: /
        Recommendations:" sections.

        Args:
            insight_title: Title the insight currently has.
            content: Current text of each section, keyed by section name.
            prompt: The user's latest request.
            conversation_context: Earlier turns of the refinement conversation.
        """
        current = (
            f"CURRENT INSIGHT CONTENT:\n"
            f"Title: {content.get('title') or ''}\n"
            f"Summary: {content.get('summary') or ''}\n"
            f"Details: {content.get('details') or ''}\n"
            f"Evidence: {content.get('evidence') or ''}\n"
            f"Impact: {content.get('impact') or ''}\n"
            f"Recommendations: {content.get('recommendations') or ''}"
        )
        if conversation_context:
            user_prompt = (
                f"Here's our conversation so far about refining this insight:\n"
                f"{conversation_context}\n\n{current}\n\n"
                f"USER'S LATEST QUESTION/REQUEST:\n{prompt}\n\n"
                "Please respond to the request and if appropriate, suggest an updated "
                "version with all sections preserved."
            )
        else:
            user_prompt = (
                f'I need to refine the following insight about "{insight_title}":\n\n'
                f"{current}\n\nUSER REQUEST:\n{prompt}\n\n"
                "Please help me improve this insight. First, respond to my request with "
                "helpful advice.\nThen, provide a complete refined version with all sections "
                "(title, summary, details, evidence, impact, and recommendations) preserved."
            )
        return await self.complete(
            user_prompt,
            system_prompt=REFINE_SYSTEM_PROMPT,
            max_tokens=REFINE_MAX_TOKENS,
            temperature=REFINE_TEMPERATURE,
        )


# Global Claude client instance
claude_client: ClaudeClient | None = None


async def init_claude() -> ClaudeClient:
    """Initialize the global Claude client."""
    global claude_client
    if claude_client is None:
        claude_client = ClaudeClient()
        if claude_client.available:
            logger.info("Claude client initialized", extra={"model": claude_client.model})
        else:
            logger.info(
                "Claude not configured, analysis will use fallback insights",
                extra={"reason": claude_client.key_problem},
            )
    return claude_client


async def close_claude() -> None:
    """Close the global Claude client."""
    global claude_client
    if claude_client:
        await claude_client.close()
        claude_client = None


async def get_claude() -> ClaudeClient:
    """Dependency for getting the Claude client."""
    global claude_client
    if claude_client is None:
        await init_claude()
    return claude_client  # type: ignore[return-value]
