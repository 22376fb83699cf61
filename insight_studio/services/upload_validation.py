"""Upload batch validation.

Validates a batch of files before anything is stored:
- The whole batch is refused when it would push the project over its file limit
- Otherwise each file is checked on its own for size and extension
"""

import asyncio
import os
import random
from collections.abc import AsyncIterator, Iterable, Sequence
from dataclasses import dataclass, field

from insight_studio.core.errors import ValidationError
from insight_studio.core.logging import get_logger

logger = get_logger(__name__)

ACCEPT_ALL = "*"


@dataclass(frozen=True)
class UploadCandidate:
    """A file offered for upload, before it is stored."""

    filename: str
    size: int
    content_type: str | None = None

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename)[1].lower()


@dataclass
class UploadValidationResult:
    """Outcome of validating one batch."""

    accepted: list[UploadCandidate] = field(default_factory=list)
    rejected: list[tuple[UploadCandidate, str]] = field(default_factory=list)
    progress: dict[str, int] = field(default_factory=dict)


def _format_megabytes(size_bytes: int) -> str:
    megabytes = size_bytes / (1024 * 1024)
    return str(int(megabytes)) if megabytes == int(megabytes) else f"{megabytes:.1f}"


def check_file(
    candidate: UploadCandidate,
    allowed_extensions: Iterable[str],
    max_file_size_bytes: int,
) -> str | None:
    """Reason the file is rejected, or None when it is acceptable."""
    if candidate.size > max_file_size_bytes:
        return f"File exceeds maximum size of {_format_megabytes(max_file_size_bytes)}MB"

    allowed = [ext.lower() for ext in allowed_extensions]
    if ACCEPT_ALL not in allowed and candidate.extension not in allowed:
        return f"File type not accepted. Accepted types: {', '.join(allowed)}"
    return None


def validate_upload_batch(
    files: Sequence[UploadCandidate],
    current_count: int,
    max_files: int,
    allowed_extensions: Iterable[str],
    max_file_size_bytes: int,
) -> UploadValidationResult:
    """Split a batch into accepted and rejected files.

    Args:
        files: Files offered in this batch.
        current_count: Files the target already holds.
        max_files: Upper bound on files held after this batch.
        allowed_extensions: Lower-case extensions with leading dot, or "*".
        max_file_size_bytes: Per-file size limit.

    Returns:
        Accepted files (each with a zeroed progress entry) and rejected
        files paired with their reason.

    Raises:
        ValidationError: If the batch would exceed max_files; nothing is accepted.
    """
    if current_count + len(files) > max_files:
        logger.warning(
            "Upload batch refused: file limit exceeded",
            extra={
                "current_count": current_count,
                "batch_size": len(files),
                "max_files": max_files,
            },
        )
        raise ValidationError(
            f"You can upload a maximum of {max_files} files.",
            context={"current_count": current_count, "batch_size": len(files)},
        )

    allowed = list(allowed_extensions)
    result = UploadValidationResult()
    for candidate in files:
        reason = check_file(candidate, allowed, max_file_size_bytes)
        if reason is None:
            result.accepted.append(candidate)
            result.progress[candidate.filename] = 0
        else:
            result.rejected.append((candidate, reason))

    if result.rejected:
        logger.info(
            "Upload batch partially rejected",
            extra={
                "accepted_count": len(result.accepted),
                "rejected": [c.filename for c, _ in result.rejected],
            },
        )
    return result


async def simulate_upload_progress(
    filename: str,
    interval: float = 0.2,
    rng: random.Random | None = None,
) -> AsyncIterator[int]:
    """Yield cosmetic upload percentages until 100.

    The values are decoration for a progress bar. They say nothing about
    bytes transferred and nothing should be decided from them.
    """
    rng = rng or random.Random(filename)
    progress = 0
    while progress < 100:
        await asyncio.sleep(interval)
        progress = min(100, progress + rng.randint(5, 19))
        yield progress
