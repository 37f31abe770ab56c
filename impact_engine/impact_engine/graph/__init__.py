"""Task matching and downstream impact traversal."""

from impact_engine.graph.matching import (
    MatchMode,
    TaskMatcher,
    TaskPredicate,
    extract_model_names,
    match_tasks,
)
from impact_engine.graph.walker import (
    CachingLineageSource,
    ImpactGraphWalker,
    LineageSource,
)

__all__ = [
    # Matching
    "MatchMode",
    "TaskMatcher",
    "TaskPredicate",
    "extract_model_names",
    "match_tasks",
    # Traversal
    "CachingLineageSource",
    "ImpactGraphWalker",
    "LineageSource",
]
