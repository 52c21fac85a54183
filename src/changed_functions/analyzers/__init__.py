"""Change impact analysis over the file reference graph."""

from .path_classifier import (
    PathClassifier, DEFAULT_UNIT_PATTERN, DEFAULT_FULL_DEPLOYMENT_PATTERN, unit_name
)
from .reference_graph_builder import (
    ReferenceGraph, ReferenceGraphBuilder, ReferenceMapSource, DEFAULT_VENDOR_DIRECTORIES
)
from .impact_resolver import ImpactResolver, ImpactScope
from .deployment_decision import (
    AnalysisConfiguration, DecisionReason, DeploymentDecision, DeploymentPlan
)

__all__ = [
    "PathClassifier", "DEFAULT_UNIT_PATTERN", "DEFAULT_FULL_DEPLOYMENT_PATTERN", "unit_name",
    "ReferenceGraph", "ReferenceGraphBuilder", "ReferenceMapSource", "DEFAULT_VENDOR_DIRECTORIES",
    "ImpactResolver", "ImpactScope",
    "AnalysisConfiguration", "DecisionReason", "DeploymentDecision", "DeploymentPlan",
]
