"""Services layer - Business logic and orchestration.

Services coordinate between the database, the insight store and the
integrations to implement the upload, analysis and review use cases.
"""

from insight_studio.services.analysis import (
    AnalysisDispatcher,
    AnalysisOutcome,
    ClaudeAnalysisBackend,
    normalize_response,
)
from insight_studio.services.analysis_session import (
    AnalysisSessionManager,
    close_session_manager,
    get_session_manager,
    init_session_manager,
)
from insight_studio.services.document import DocumentService, IncomingFile
from insight_studio.services.fallback_insights import (
    generate_document_fallback,
    generate_website_fallback,
)
from insight_studio.services.insight_store import (
    InMemoryInsightStore,
    InsightRepository,
    InsightStore,
    RedisInsightStore,
    close_insight_store,
    get_insight_store,
    init_insight_store,
    merge_insights,
)
from insight_studio.services.presentation import build_outline
from insight_studio.services.priority import (
    calculate_document_priority,
    sort_documents_by_priority,
)
from insight_studio.services.progress import ProgressSink, ProgressTracker
from insight_studio.services.project import ProjectService
from insight_studio.services.refinement import InsightRefiner
from insight_studio.services.review import ReviewService, compute_review_stats
from insight_studio.services.upload_validation import (
    UploadCandidate,
    UploadValidationResult,
    validate_upload_batch,
)

__all__ = [
    # Analysis
    "AnalysisDispatcher",
    "AnalysisOutcome",
    "AnalysisSessionManager",
    "ClaudeAnalysisBackend",
    "close_session_manager",
    "get_session_manager",
    "init_session_manager",
    "normalize_response",
    # Documents
    "DocumentService",
    "IncomingFile",
    "UploadCandidate",
    "UploadValidationResult",
    "calculate_document_priority",
    "sort_documents_by_priority",
    "validate_upload_batch",
    # Insights
    "InMemoryInsightStore",
    "InsightRefiner",
    "InsightRepository",
    "InsightStore",
    "RedisInsightStore",
    "close_insight_store",
    "generate_document_fallback",
    "generate_website_fallback",
    "get_insight_store",
    "init_insight_store",
    "merge_insights",
    # Progress
    "ProgressSink",
    "ProgressTracker",
    # Projects
    "ProjectService",
    # Review & presentation
    "ReviewService",
    "build_outline",
    "compute_review_stats",
]
