"""
Kubernetes validation rules.

Naming and label checks, per-kind field rules, best-practice checks and
cross-resource reference extraction used by the manifest validator.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from .types import Severity

# DNS-1123 subdomain
DNS_SUBDOMAIN_PATTERN = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)

# DNS-1123 label
DNS_LABEL_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

LABEL_VALUE_PATTERN = re.compile(r"^(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?$")

MAX_NAME_LENGTH = 253
MAX_LABEL_LENGTH = 63


@dataclass
class ValidationRule:
    """Constraint on a single dotted field path."""
    field: str
    message: str
    severity: Severity
    required: bool = False
    type: Optional[str] = None  # string, number, boolean, object, array
    pattern: Optional[Pattern[str]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass
class ResourceRequirement:
    """Rule table for one resource kind."""
    api_version: str
    kind: str
    required_fields: List[str]
    metadata_rules: List[ValidationRule] = field(default_factory=list)
    spec_rules: List[ValidationRule] = field(default_factory=list)


@dataclass
class BestPracticeCheck:
    id: str
    name: str
    description: str
    check: Callable[[Dict[str, Any]], bool]
    severity: Severity
    recommendation: str


@dataclass
class ResourceReference:
    """A ConfigMap, Secret or PVC that a workload points at."""
    kind: str
    name: str
    referenced_by: str
    field: str


def validate_resource_name(name: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Check a resource name is a DNS-1123 subdomain.

    Returns:
        Tuple of (valid, error message)
    """
    if not name:
        return False, "Resource name cannot be empty"

    if len(name) > MAX_NAME_LENGTH:
        return False, "Resource name must be no more than 253 characters"

    if not DNS_SUBDOMAIN_PATTERN.match(name):
        return False, (
            'Resource name must consist of lower case alphanumeric characters, "-" or ".", '
            "and must start and end with an alphanumeric character"
        )

    return True, None


def validate_namespace(namespace: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Check a namespace is a DNS-1123 label."""
    if not namespace:
        return False, "Namespace cannot be empty"

    if len(namespace) > MAX_LABEL_LENGTH:
        return False, "Namespace must be no more than 63 characters"

    if not DNS_LABEL_PATTERN.match(namespace):
        return False, (
            'Namespace must consist of lower case alphanumeric characters or "-", '
            "and must start and end with an alphanumeric character"
        )

    return True, None


def validate_label(key: str, value: str) -> Tuple[bool, Optional[str]]:
    """
    Check a label key/value pair.

    Keys may carry one "prefix/" that must be a DNS subdomain; the name part
    is a DNS label of 1-63 characters. Values are at most 63 characters and
    may be empty.

    Returns:
        Tuple of (valid, error message)
    """
    key_parts = key.split("/")
    if len(key_parts) > 2:
        return False, 'Label key can have at most one "/" separator'

    if len(key_parts) == 2:
        prefix, name = key_parts
        if len(prefix) > MAX_NAME_LENGTH:
            return False, "Label key prefix must be no more than 253 characters"
        if not DNS_SUBDOMAIN_PATTERN.match(prefix):
            return False, "Label key prefix must be a valid DNS subdomain"
        if not name or len(name) > MAX_LABEL_LENGTH:
            return False, "Label key name must be 1-63 characters"
        if not DNS_LABEL_PATTERN.match(name):
            return False, "Label key name must be a valid DNS label"
    else:
        name = key_parts[0]
        if not name or len(name) > MAX_LABEL_LENGTH:
            return False, "Label key must be 1-63 characters"
        if not DNS_LABEL_PATTERN.match(name):
            return False, "Label key must be a valid DNS label"

    if len(value) > MAX_LABEL_LENGTH:
        return False, "Label value must be no more than 63 characters"

    if value and not LABEL_VALUE_PATTERN.match(value):
        return False, (
            'Label value must be empty or consist of alphanumeric characters, "-", "_" or ".", '
            "and must start and end with an alphanumeric character"
        )

    return True, None


def _name_rule(kind_label: str) -> ValidationRule:
    return ValidationRule(
        field="metadata.name",
        required=True,
        type="string",
        min_length=1,
        max_length=MAX_NAME_LENGTH,
        pattern=DNS_SUBDOMAIN_PATTERN,
        message=f"{kind_label} name must be a valid DNS subdomain",
        severity=Severity.ERROR,
    )


DEPLOYMENT_RULES = ResourceRequirement(
    api_version="apps/v1",
    kind="Deployment",
    required_fields=["apiVersion", "kind", "metadata", "spec"],
    metadata_rules=[
        _name_rule("Deployment"),
        ValidationRule(
            field="metadata.namespace",
            type="string",
            pattern=DNS_LABEL_PATTERN,
            message="Namespace must be a valid DNS label",
            severity=Severity.ERROR,
        ),
    ],
    spec_rules=[
        ValidationRule(
            field="spec.replicas",
            type="number",
            min=0,
            message="Replicas must be a non-negative integer",
            severity=Severity.ERROR,
        ),
        ValidationRule(
            field="spec.selector",
            required=True,
            type="object",
            message="Deployment must have a selector",
            severity=Severity.ERROR,
        ),
        ValidationRule(
            field="spec.template",
            required=True,
            type="object",
            message="Deployment must have a pod template",
            severity=Severity.ERROR,
        ),
    ],
)

SERVICE_RULES = ResourceRequirement(
    api_version="v1",
    kind="Service",
    required_fields=["apiVersion", "kind", "metadata", "spec"],
    metadata_rules=[_name_rule("Service")],
    spec_rules=[
        ValidationRule(
            field="spec.selector",
            type="object",
            message="Service should have a selector (except for headless services)",
            severity=Severity.WARNING,
        ),
        ValidationRule(
            field="spec.ports",
            required=True,
            type="array",
            min_length=1,
            message="Service must define at least one port",
            severity=Severity.ERROR,
        ),
    ],
)

CONFIGMAP_RULES = ResourceRequirement(
    api_version="v1",
    kind="ConfigMap",
    required_fields=["apiVersion", "kind", "metadata"],
    metadata_rules=[_name_rule("ConfigMap")],
)

PVC_RULES = ResourceRequirement(
    api_version="v1",
    kind="PersistentVolumeClaim",
    required_fields=["apiVersion", "kind", "metadata", "spec"],
    metadata_rules=[_name_rule("PVC")],
    spec_rules=[
        ValidationRule(
            field="spec.accessModes",
            required=True,
            type="array",
            message="PVC must define access modes",
            severity=Severity.ERROR,
        ),
        ValidationRule(
            field="spec.resources",
            required=True,
            type="object",
            message="PVC must define resource requirements",
            severity=Severity.ERROR,
        ),
    ],
)

INGRESS_RULES = ResourceRequirement(
    api_version="networking.k8s.io/v1",
    kind="Ingress",
    required_fields=["apiVersion", "kind", "metadata", "spec"],
    metadata_rules=[_name_rule("Ingress")],
    spec_rules=[
        ValidationRule(
            field="spec.rules",
            type="array",
            message="Ingress should define routing rules",
            severity=Severity.WARNING,
        ),
    ],
)

_RULES_BY_KIND = {
    rules.kind: rules
    for rules in (DEPLOYMENT_RULES, SERVICE_RULES, CONFIGMAP_RULES, PVC_RULES, INGRESS_RULES)
}


def get_validation_rules(kind: Optional[str]) -> Optional[ResourceRequirement]:
    """Rule table for a kind, or None for kinds without one."""
    if not isinstance(kind, str):
        return None
    return _RULES_BY_KIND.get(kind)


def get_nested_value(obj: Any, path: str) -> Any:
    """Resolve a dotted path ("spec.template.spec") or return None."""
    current = obj
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _mappings(value: Any) -> List[Dict[str, Any]]:
    """Dict entries of a list, or nothing when value is not a list."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _pod_containers(manifest: Dict[str, Any]) -> List[Dict[str, Any]]:
    return _mappings(get_nested_value(manifest, "spec.template.spec.containers"))


def _all_containers(manifest: Dict[str, Any], predicate: Callable[[Dict[str, Any]], bool]) -> bool:
    """Vacuously true for anything but a Deployment."""
    if manifest.get("kind") != "Deployment":
        return True
    return all(predicate(c) for c in _pod_containers(manifest))


def _has_explicit_tag(container: Dict[str, Any]) -> bool:
    image = container.get("image")
    if not isinstance(image, str):
        return False
    return ":" in image and not image.endswith(":latest")


def _has_multiple_replicas(manifest: Dict[str, Any]) -> bool:
    if manifest.get("kind") != "Deployment":
        return True
    replicas = get_nested_value(manifest, "spec.replicas") or 1
    return isinstance(replicas, (int, float)) and replicas >= 2


def _has_pod_security_context(manifest: Dict[str, Any]) -> bool:
    if manifest.get("kind") != "Deployment":
        return True
    return bool(get_nested_value(manifest, "spec.template.spec.securityContext"))


def _has_labels(manifest: Dict[str, Any]) -> bool:
    labels = get_nested_value(manifest, "metadata.labels") or {}
    return isinstance(labels, dict) and len(labels) >= 2


BEST_PRACTICE_CHECKS: List[BestPracticeCheck] = [
    BestPracticeCheck(
        id="bp-001",
        name="Resource Limits Defined",
        description="Containers should have resource limits defined",
        check=lambda m: _all_containers(m, lambda c: bool(get_nested_value(c, "resources.limits"))),
        severity=Severity.WARNING,
        recommendation="Define resource limits to prevent resource exhaustion",
    ),
    BestPracticeCheck(
        id="bp-002",
        name="Resource Requests Defined",
        description="Containers should have resource requests defined",
        check=lambda m: _all_containers(m, lambda c: bool(get_nested_value(c, "resources.requests"))),
        severity=Severity.WARNING,
        recommendation="Define resource requests for proper scheduling",
    ),
    BestPracticeCheck(
        id="bp-003",
        name="Liveness Probe Configured",
        description="Containers should have liveness probes",
        check=lambda m: _all_containers(m, lambda c: bool(c.get("livenessProbe"))),
        severity=Severity.INFO,
        recommendation="Add liveness probes to detect and restart unhealthy containers",
    ),
    BestPracticeCheck(
        id="bp-004",
        name="Readiness Probe Configured",
        description="Containers should have readiness probes",
        check=lambda m: _all_containers(m, lambda c: bool(c.get("readinessProbe"))),
        severity=Severity.INFO,
        recommendation="Add readiness probes to ensure traffic is sent only to ready pods",
    ),
    BestPracticeCheck(
        id="bp-005",
        name="Security Context Defined",
        description="Pods should have security context defined",
        check=_has_pod_security_context,
        severity=Severity.WARNING,
        recommendation="Define security context to follow security best practices",
    ),
    BestPracticeCheck(
        id="bp-006",
        name="Run As Non-Root",
        description="Containers should run as non-root user",
        check=lambda m: _all_containers(
            m, lambda c: get_nested_value(c, "securityContext.runAsNonRoot") is True
        ),
        severity=Severity.WARNING,
        recommendation="Configure containers to run as non-root for better security",
    ),
    BestPracticeCheck(
        id="bp-007",
        name="Image Tag Specified",
        description="Container images should have explicit tags (not :latest)",
        check=lambda m: _all_containers(m, _has_explicit_tag),
        severity=Severity.WARNING,
        recommendation="Use explicit image tags instead of :latest for reproducibility",
    ),
    BestPracticeCheck(
        id="bp-008",
        name="Multiple Replicas",
        description="Production deployments should have multiple replicas",
        check=_has_multiple_replicas,
        severity=Severity.INFO,
        recommendation="Use at least 2 replicas for high availability",
    ),
    BestPracticeCheck(
        id="bp-009",
        name="Labels Defined",
        description="Resources should have meaningful labels",
        check=_has_labels,
        severity=Severity.INFO,
        recommendation="Add labels for better resource organization and selection",
    ),
    BestPracticeCheck(
        id="bp-010",
        name="Service Selector Matches Deployment",
        description="Service selector should match deployment labels",
        # Cross-resource matching happens in the validator's reference pass
        check=lambda m: True,
        severity=Severity.ERROR,
        recommendation="Ensure service selector matches deployment pod labels",
    ),
]


def extract_resource_references(manifest: Dict[str, Any]) -> List[ResourceReference]:
    """
    Collect ConfigMap, Secret and PVC references from a Deployment.

    Looks at env valueFrom, envFrom and pod volumes. Other kinds reference
    nothing.

    Args:
        manifest: Kubernetes manifest

    Returns:
        List of references in document order
    """
    if manifest.get("kind") != "Deployment":
        return []

    name = get_nested_value(manifest, "metadata.name")
    referenced_by = f"{name} (Deployment)"
    references: List[ResourceReference] = []

    def add(kind: str, target: Any, field_path: str) -> None:
        if target:
            references.append(ResourceReference(
                kind=kind,
                name=str(target),
                referenced_by=referenced_by,
                field=field_path,
            ))

    for idx, container in enumerate(_pod_containers(manifest)):
        env = container.get("env")
        for env_idx, env_var in enumerate(env if isinstance(env, list) else []):
            field_path = f"spec.template.spec.containers[{idx}].env[{env_idx}]"
            add("ConfigMap", get_nested_value(env_var, "valueFrom.configMapKeyRef.name"), field_path)
            add("Secret", get_nested_value(env_var, "valueFrom.secretKeyRef.name"), field_path)

        env_from = container.get("envFrom")
        for env_from_idx, source in enumerate(env_from if isinstance(env_from, list) else []):
            field_path = f"spec.template.spec.containers[{idx}].envFrom[{env_from_idx}]"
            add("ConfigMap", get_nested_value(source, "configMapRef.name"), field_path)
            add("Secret", get_nested_value(source, "secretRef.name"), field_path)

    volumes = get_nested_value(manifest, "spec.template.spec.volumes")
    for idx, volume in enumerate(volumes if isinstance(volumes, list) else []):
        field_path = f"spec.template.spec.volumes[{idx}]"
        add("ConfigMap", get_nested_value(volume, "configMap.name"), field_path)
        add("Secret", get_nested_value(volume, "secret.secretName"), field_path)
        add("PersistentVolumeClaim", get_nested_value(volume, "persistentVolumeClaim.claimName"), field_path)

    return references
