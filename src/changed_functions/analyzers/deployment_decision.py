"""Deployment Decision - Decides whether to deploy everything or only the affected functions."""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .impact_resolver import ImpactResolver
from .path_classifier import (
    DEFAULT_FULL_DEPLOYMENT_PATTERN, DEFAULT_UNIT_PATTERN, PathClassifier, compile_pattern
)
from .reference_graph_builder import DEFAULT_VENDOR_DIRECTORIES, ReferenceGraphBuilder


logger = logging.getLogger(__name__)


@dataclass
class AnalysisConfiguration:
    """Configuration for a single deployment decision."""
    unit_pattern: str = DEFAULT_UNIT_PATTERN
    full_deployment_pattern: str = DEFAULT_FULL_DEPLOYMENT_PATTERN
    unit_glob: Optional[str] = None  # analysis is skipped when unset
    workspace_root: str = field(default_factory=os.getcwd)
    changed_file_filter: Optional[str] = None
    vendor_directories: Tuple[str, ...] = DEFAULT_VENDOR_DIRECTORIES

    def __post_init__(self):
        # GitHub Actions passes unset inputs as empty strings
        self.unit_pattern = self.unit_pattern or DEFAULT_UNIT_PATTERN
        self.full_deployment_pattern = self.full_deployment_pattern or DEFAULT_FULL_DEPLOYMENT_PATTERN
        self.unit_glob = self.unit_glob or None
        self.changed_file_filter = self.changed_file_filter or None
        self.workspace_root = os.path.abspath(self.workspace_root or os.getcwd())
        self.vendor_directories = tuple(self.vendor_directories)

    def classifier(self) -> PathClassifier:
        """Compile the configured patterns (raises ConfigurationError when malformed)."""
        return PathClassifier(self.unit_pattern, self.full_deployment_pattern,
                              root_directory=self.workspace_root)

    def validate(self) -> None:
        """Fail on any malformed regex before doing any work."""
        self.classifier()
        if self.changed_file_filter:
            compile_pattern(self.changed_file_filter, 'changed file filter')


class DecisionReason(Enum):
    """Why a deployment plan looks the way it does."""
    MISSING_UNIT_GLOB = "missing_unit_glob"
    MISSING_CREDENTIALS = "missing_credentials"
    NO_UNIT_FILES = "no_unit_files"
    NO_CHANGED_FILES = "no_changed_files"
    FULL_DEPLOYMENT_TRIGGER = "full_deployment_trigger"
    NO_FUNCTIONS_AFFECTED = "no_functions_affected"
    FUNCTIONS_AFFECTED = "functions_affected"


@dataclass
class DeploymentPlan:
    """Functions to deploy. An empty list means deploy everything."""
    functions: List[str]
    reason: DecisionReason
    changed_files: List[str] = field(default_factory=list)
    unit_paths: List[str] = field(default_factory=list)
    trigger: Optional[str] = None  # file that forced a full deployment

    @property
    def deploy_all(self) -> bool:
        return not self.functions

    @classmethod
    def everything(cls, reason: DecisionReason, changed_files: Iterable[str] = (),
                   trigger: Optional[str] = None) -> 'DeploymentPlan':
        return cls(functions=[], reason=reason, changed_files=list(changed_files), trigger=trigger)


class DeploymentDecision:
    """Orchestrates the short-circuit checks, graph construction and impact resolution."""

    def __init__(self, configuration: Optional[AnalysisConfiguration] = None,
                 graph_builder: Optional[ReferenceGraphBuilder] = None):
        self.config = configuration or AnalysisConfiguration()
        self.classifier = self.config.classifier()
        self.resolver = ImpactResolver(self.classifier)
        self.graph_builder = graph_builder or ReferenceGraphBuilder(
            vendor_directories=self.config.vendor_directories
        )

    def decide(self, changed_paths: Iterable[str]) -> DeploymentPlan:
        """Decide which functions to deploy for the given diff-relative changed paths."""
        changed_paths = list(changed_paths)

        if not self.config.unit_glob:
            logger.warning("No function glob configured, all functions will be deployed.")
            return DeploymentPlan.everything(DecisionReason.MISSING_UNIT_GLOB, changed_paths)

        if not changed_paths:
            logger.debug("No changed files provided, all functions will be deployed.")
            return DeploymentPlan.everything(DecisionReason.NO_CHANGED_FILES)

        # checked before the graph is built, these files bypass impact analysis
        trigger = self.classifier.trigger_for(changed_paths)
        if trigger is not None:
            logger.info("Change to %s triggers a full deployment.", trigger)
            return DeploymentPlan.everything(
                DecisionReason.FULL_DEPLOYMENT_TRIGGER, changed_paths, trigger=trigger
            )

        unit_files = self.graph_builder.find_candidate_files(
            self.config.unit_glob, self.config.workspace_root
        )
        if not unit_files:
            logger.warning("Function glob %r matched no files, all functions will be deployed.",
                           self.config.unit_glob)
            return DeploymentPlan.everything(DecisionReason.NO_UNIT_FILES, changed_paths)

        absolute_paths = self.normalize_paths(changed_paths)
        graph = self.graph_builder.build_from_files(unit_files, self.config.workspace_root)
        scope = self.resolver.analyze(absolute_paths, graph)

        if not scope.functions:
            logger.info("No specific functions changed, so all will be deployed.")
            return DeploymentPlan.everything(DecisionReason.NO_FUNCTIONS_AFFECTED, changed_paths)

        logger.info("%d functions changed and will deploy.", len(scope.functions))
        return DeploymentPlan(
            functions=scope.functions,
            reason=DecisionReason.FUNCTIONS_AFFECTED,
            changed_files=changed_paths,
            unit_paths=scope.unit_paths,
        )

    def normalize_paths(self, file_paths: Iterable[str]) -> List[str]:
        """Resolve diff-relative paths against the workspace root."""
        return [
            os.path.abspath(os.path.join(self.config.workspace_root, file_path))
            for file_path in file_paths
        ]
