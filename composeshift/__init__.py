"""
composeshift - Docker Compose conversion toolkit

Converts docker-compose.yaml to Kubernetes manifests, Docker Swarm stacks
and Helm charts, and validates the results.
"""

__version__ = "0.1.0"

from .types import (
    ComposeError,
    HelmGenerationError,
    TargetPlatform,
    ProxyType,
    ResourceProfile,
    Severity,
    PortMapping,
    VolumeMount,
    ServiceMetadata,
    ComposeMetadata,
    ParseResult,
    ConversionOptions,
    KubernetesManifests,
    KubernetesConversionResult,
    StackConversionResult,
    HelmChart,
    HelmValidation,
    ValidationIssue,
    ValidationSummary,
    ValidationResult,
)

from .parser import (
    parse,
    extract_metadata,
    load_compose_file,
)

from .kubernetes import convert as convert_to_kubernetes
from .swarm import convert as convert_to_stack
from .helm import (
    generate_helm_chart,
    validate_helm_chart,
)

from .validator import (
    validate_kubernetes_manifests,
    validate_docker_stack,
)

from .pipeline import (
    ConversionBundle,
    convert_project,
    load_conversion_options,
)

from .store import (
    ProjectStore,
    MemoryProjectStore,
    StorageQuotaExceeded,
)

__all__ = [
    # Types
    "ComposeError",
    "HelmGenerationError",
    "TargetPlatform",
    "ProxyType",
    "ResourceProfile",
    "Severity",
    "PortMapping",
    "VolumeMount",
    "ServiceMetadata",
    "ComposeMetadata",
    "ParseResult",
    "ConversionOptions",
    "KubernetesManifests",
    "KubernetesConversionResult",
    "StackConversionResult",
    "HelmChart",
    "HelmValidation",
    "ValidationIssue",
    "ValidationSummary",
    "ValidationResult",
    # Parser
    "parse",
    "extract_metadata",
    "load_compose_file",
    # Projectors
    "convert_to_kubernetes",
    "convert_to_stack",
    "generate_helm_chart",
    "validate_helm_chart",
    # Validation
    "validate_kubernetes_manifests",
    "validate_docker_stack",
    # Pipeline
    "ConversionBundle",
    "convert_project",
    "load_conversion_options",
    # Storage
    "ProjectStore",
    "MemoryProjectStore",
    "StorageQuotaExceeded",
]
