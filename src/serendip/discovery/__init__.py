"""Domain classification and the two discovery engines."""

from .classifier import (
    ClassificationMethod,
    ClassificationStrategy,
    ClusterStrategy,
    DomainClassifier,
    FolderStrategy,
    NoteNotFoundError,
    TagStrategy,
    build_strategy,
)
from .deep import (
    DeepDiscoveryConfig,
    DeepDiscoveryEngine,
    EvaluationResult,
    parse_evaluation_response,
)
from .filters import FolderFilter
from .standard import DiscoveryConfig, StandardDiscoveryEngine, count_generic_terms

__all__ = [
    "ClassificationMethod",
    "ClassificationStrategy",
    "ClusterStrategy",
    "DeepDiscoveryConfig",
    "DeepDiscoveryEngine",
    "DiscoveryConfig",
    "DomainClassifier",
    "EvaluationResult",
    "FolderFilter",
    "FolderStrategy",
    "NoteNotFoundError",
    "StandardDiscoveryEngine",
    "TagStrategy",
    "build_strategy",
    "count_generic_terms",
    "parse_evaluation_response",
]
