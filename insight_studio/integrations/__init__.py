"""External service integrations: Claude, S3 and website fetching."""

from insight_studio.integrations.claude import (
    ClaudeClient,
    CompletionResult,
    close_claude,
    get_claude,
    init_claude,
    validate_api_key,
)
from insight_studio.integrations.s3 import (
    S3AuthError,
    S3CircuitOpenError,
    S3Client,
    S3ConnectionError,
    S3Error,
    S3NotFoundError,
    close_s3,
    get_s3,
    init_s3,
)
from insight_studio.integrations.website_fetcher import (
    WebsiteContent,
    WebsiteFetcher,
    close_website_fetcher,
    get_website_fetcher,
    init_website_fetcher,
)

__all__ = [
    # Claude
    "ClaudeClient",
    "CompletionResult",
    "close_claude",
    "get_claude",
    "init_claude",
    "validate_api_key",
    # S3
    "S3AuthError",
    "S3CircuitOpenError",
    "S3Client",
    "S3ConnectionError",
    "S3Error",
    "S3NotFoundError",
    "close_s3",
    "get_s3",
    "init_s3",
    # Website
    "WebsiteContent",
    "WebsiteFetcher",
    "close_website_fetcher",
    "get_website_fetcher",
    "init_website_fetcher",
]
