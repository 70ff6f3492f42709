from .backoff import compute_backoff_delay
from .classifier import FAILURE_RULES, classify_failure, structured_error_from_reason
from .metadata import PRESERVED_KEYS, merge_metadata
from .pricing import MODEL_PRICING, calculate_cost, get_model_pricing
from .client import (
    GenerationRequest,
    GenerationResponse,
    ModelMetadata,
    OpenAIGenerationClient,
    map_provider_error,
)
from .orchestrator import GenerationOrchestrator, ProgressReporter

__all__ = [
    "compute_backoff_delay",
    "FAILURE_RULES",
    "classify_failure",
    "structured_error_from_reason",
    "PRESERVED_KEYS",
    "merge_metadata",
    "MODEL_PRICING",
    "calculate_cost",
    "get_model_pricing",
    "GenerationRequest",
    "GenerationResponse",
    "ModelMetadata",
    "OpenAIGenerationClient",
    "map_provider_error",
    "GenerationOrchestrator",
    "ProgressReporter",
]
