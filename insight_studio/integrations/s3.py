"""S3 document storage client with circuit breaker.

Features:
- boto3-based client with S3-compatible endpoint support (LocalStack, MinIO)
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff
- Operation logging with key, bucket and timing

ERROR LOGGING REQUIREMENTS:
- Log every operation with key, method and timing
- Include retry attempt number in logs
- Never log credentials

boto3 is synchronous; every call runs in the default executor.
"""

import asyncio
import re
import time
from collections.abc import Callable
from io import BytesIO
from typing import Any

import boto3
from botocore.config import Config as BotoConfig  # type: ignore[import-not-found]
from botocore.exceptions import (  # type: ignore[import-not-found]
    BotoCoreError,
    ClientError,
    ConnectionError,
    EndpointConnectionError,
)

from insight_studio.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from insight_studio.core.config import get_settings
from insight_studio.core.logging import get_logger

logger = get_logger(__name__)

_AUTH_ERROR_CODES = frozenset({"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"})
_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class S3Error(Exception):
    """Base exception for S3 errors."""

    def __init__(self, message: str, operation: str | None = None, key: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.key = key


class S3ConnectionError(S3Error):
    """Raised when the storage endpoint cannot be reached."""


class S3AuthError(S3Error):
    """Raised when storage credentials are rejected."""


class S3NotFoundError(S3Error):
    """Raised when an object does not exist."""


class S3CircuitOpenError(S3Error):
    """Raised when the circuit breaker is open."""


def build_document_key(project_id: str, document_id: str, filename: str) -> str:
    """Object key for an uploaded document: projects/{project}/documents/{id}/{name}."""
    safe_name = _UNSAFE_KEY_CHARS.sub("_", filename).strip("_") or "document"
    return f"projects/{project_id}/documents/{document_id}/{safe_name}"


class S3Client:
    """Client for S3-compatible object storage."""

    def __init__(
        self,
        bucket: str | None = None,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        """Initialize S3 client.

        Args:
            bucket: Bucket name. Defaults to settings.
            endpoint_url: Custom endpoint (LocalStack). Defaults to settings.
            access_key: Access key. Defaults to settings.
            secret_key: Secret key. Defaults to settings.
            region: Region. Defaults to settings.
            timeout: Connect/read timeout in seconds. Defaults to settings.
            max_retries: Maximum attempts. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
        """
        settings = get_settings()

        self._bucket = bucket or settings.s3_bucket
        self._endpoint_url = endpoint_url or settings.s3_endpoint_url
        self._access_key = access_key or settings.s3_access_key
        self._secret_key = secret_key or settings.s3_secret_key
        self._region = region or settings.s3_region
        self._timeout = timeout or settings.s3_timeout
        self._max_retries = max(1, max_retries or settings.s3_max_retries)
        self._retry_delay = retry_delay if retry_delay is not None else settings.s3_retry_delay

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.s3_circuit_failure_threshold,
                recovery_timeout=settings.s3_circuit_recovery_timeout,
            ),
            name="s3",
        )

        self._client: Any = None
        self._available = bool(self._bucket and self._access_key and self._secret_key)

    @property
    def available(self) -> bool:
        """Whether bucket and credentials are configured."""
        return self._available

    @property
    def bucket(self) -> str | None:
        return self._bucket

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def object_url(self, key: str) -> str:
        """Addressable URL of an object (path-style when an endpoint is set)."""
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def _get_client(self) -> Any:
        if self._client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "aws_access_key_id": self._access_key,
                "aws_secret_access_key": self._secret_key,
                "region_name": self._region,
                "config": BotoConfig(
                    connect_timeout=self._timeout,
                    read_timeout=self._timeout,
                    retries={"max_attempts": 0},
                ),
            }
            if self._endpoint_url:
                client_kwargs["endpoint_url"] = self._endpoint_url
            self._client = boto3.client(**client_kwargs)
        return self._client

    def _classify_client_error(self, error: ClientError, operation: str, key: str | None) -> S3Error:
        details = error.response.get("Error", {})
        code = details.get("Code", "Unknown")
        message = details.get("Message", str(error))
        if code in _AUTH_ERROR_CODES:
            return S3AuthError(f"Authentication failed: {message}", operation, key)
        if code in _NOT_FOUND_CODES:
            return S3NotFoundError(f"Object not found: {key}", operation, key)
        if code == "NoSuchBucket":
            return S3Error(f"Bucket not found: {self._bucket}", operation, key)
        return S3Error(f"S3 error ({code}): {message}", operation, key)

    async def _execute_with_retry(
        self, operation: str, func: Callable[[], Any], key: str | None = None
    ) -> Any:
        """Run a boto3 call with retries and the circuit breaker.

        Auth, not-found and missing-bucket errors are not retried.
        Not-found does not count as a circuit failure.

        Raises:
            S3Error: Or one of its subclasses.
        """
        if not self._available:
            raise S3Error(
                "S3 not configured (missing bucket, access_key, or secret_key)",
                operation=operation,
                key=key,
            )

        if not await self._circuit_breaker.can_execute():
            logger.warning(
                f"S3 {operation} blocked by circuit breaker",
                extra={"s3_operation": operation, "s3_key": key},
            )
            raise S3CircuitOpenError("Circuit breaker is open", operation=operation, key=key)

        last_error: S3Error | None = None
        loop = asyncio.get_running_loop()

        for attempt in range(self._max_retries):
            start_time = time.monotonic()
            logger.debug(
                f"S3 {operation} started",
                extra={"s3_operation": operation, "s3_key": key, "retry_attempt": attempt},
            )
            try:
                result = await loop.run_in_executor(None, func)
            except ClientError as e:
                last_error = self._classify_client_error(e, operation, key)
            except (EndpointConnectionError, ConnectionError) as e:
                last_error = S3ConnectionError(f"Connection failed: {e}", operation, key)
            except BotoCoreError as e:
                last_error = S3Error(f"S3 error: {e}", operation, key)
            else:
                logger.info(
                    f"S3 {operation} completed",
                    extra={
                        "s3_operation": operation,
                        "s3_key": key,
                        "s3_bucket": self._bucket,
                        "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
                    },
                )
                await self._circuit_breaker.record_success()
                return result

            logger.error(
                f"S3 {operation} failed: {last_error}",
                extra={
                    "s3_operation": operation,
                    "s3_key": key,
                    "s3_bucket": self._bucket,
                    "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
                    "error_type": type(last_error).__name__,
                    "retry_attempt": attempt,
                },
            )
            if isinstance(last_error, S3NotFoundError):
                raise last_error
            await self._circuit_breaker.record_failure()
            if isinstance(last_error, S3AuthError) or "Bucket not found" in str(last_error):
                raise last_error

            if attempt < self._max_retries - 1:
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    f"S3 {operation} attempt {attempt + 1} failed, retrying in {delay}s",
                    extra={"s3_operation": operation, "s3_key": key, "delay_seconds": delay},
                )
                await asyncio.sleep(delay)

        raise last_error or S3Error("Operation failed after all retries", operation, key)

    async def upload_file(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> str:
        """Upload bytes under key and return the key."""
        client = self._get_client()

        def upload() -> str:
            client.upload_fileobj(
                BytesIO(data), self._bucket, key, ExtraArgs={"ContentType": content_type}
            )
            return key

        await self._execute_with_retry("upload_file", upload, key)
        return key

    async def get_file(self, key: str) -> bytes:
        """Download an object.

        Raises:
            S3NotFoundError: If the object does not exist.
        """
        client = self._get_client()

        def download() -> bytes:
            response = client.get_object(Bucket=self._bucket, Key=key)
            body: bytes = response["Body"].read()
            return body

        result: bytes = await self._execute_with_retry("get_file", download, key)
        return result

    async def delete_file(self, key: str) -> bool:
        """Delete an object. An object that is already gone counts as deleted."""
        client = self._get_client()

        def delete() -> bool:
            client.delete_object(Bucket=self._bucket, Key=key)
            return True

        try:
            await self._execute_with_retry("delete_file", delete, key)
        except S3NotFoundError:
            logger.info("S3 object already deleted", extra={"s3_key": key})
        return True

    async def check_health(self) -> bool:
        """Whether the bucket can be reached with the configured credentials."""
        if not self._available:
            return False
        client = self._get_client()

        def head_bucket() -> bool:
            client.head_bucket(Bucket=self._bucket)
            return True

        try:
            return bool(await self._execute_with_retry("head_bucket", head_bucket))
        except S3Error:
            return False


# Global S3 client instance
s3_client: S3Client | None = None


async def init_s3() -> S3Client:
    """Initialize the global S3 client."""
    global s3_client
    if s3_client is None:
        s3_client = S3Client()
        if s3_client.available:
            logger.info("S3 client initialized", extra={"s3_bucket": s3_client.bucket})
        else:
            logger.info("S3 not configured (missing credentials or bucket)")
    return s3_client


async def close_s3() -> None:
    """Drop the global S3 client."""
    global s3_client
    if s3_client:
        s3_client = None
        logger.info("S3 client closed")


async def get_s3() -> S3Client:
    """Dependency for getting the S3 client."""
    global s3_client
    if s3_client is None:
        await init_s3()
    return s3_client  # type: ignore[return-value]
