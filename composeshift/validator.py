"""
Static validation of generated manifests.

Approximates kubectl dry-run and helm lint without a cluster: naming,
labels, per-kind field rules, best-practice checks and cross-resource
references, summarized as a 0-100 quality score.
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml

from .rules import (
    BEST_PRACTICE_CHECKS,
    ValidationRule,
    extract_resource_references,
    get_nested_value,
    get_validation_rules,
    validate_label,
    validate_namespace,
    validate_resource_name,
)
from .schema import json_type
from .types import Severity, ValidationIssue, ValidationResult, ValidationSummary

logger = logging.getLogger(__name__)

ERROR_PENALTY = 15
WARNING_PENALTY = 5
INFO_PENALTY = 2

STACK_RESOURCE = "docker-stack.yml"


def _issue(
    severity: Severity,
    manifest: Dict[str, Any],
    message: str,
    field: Optional[str] = None,
    suggestion: Optional[str] = None,
    resource: Optional[str] = None,
) -> ValidationIssue:
    metadata = manifest.get("metadata") if isinstance(manifest.get("metadata"), dict) else {}
    return ValidationIssue(
        severity=severity,
        resource=resource or metadata.get("name") or "unknown",
        kind=manifest.get("kind") or "unknown",
        message=message,
        field=field,
        suggestion=suggestion,
    )


def _matches_type(value: Any, expected: str) -> bool:
    return json_type(value) == expected


def _validate_field(manifest: Dict[str, Any], rule: ValidationRule) -> List[ValidationIssue]:
    """Apply one field rule to a manifest."""
    value = get_nested_value(manifest, rule.field)

    if value is None:
        if rule.required:
            return [_issue(rule.severity, manifest, rule.message, field=rule.field)]
        return []

    if rule.type and not _matches_type(value, rule.type):
        return [_issue(
            rule.severity,
            manifest,
            f"{rule.field} must be of type {rule.type}, got {json_type(value)}",
            field=rule.field,
        )]

    issues = []

    if rule.type == "string":
        if rule.min_length and len(value) < rule.min_length:
            issues.append(_issue(
                rule.severity, manifest,
                f"{rule.field} must be at least {rule.min_length} characters",
                field=rule.field,
            ))
        if rule.max_length and len(value) > rule.max_length:
            issues.append(_issue(
                rule.severity, manifest,
                f"{rule.field} must be no more than {rule.max_length} characters",
                field=rule.field,
            ))
        if rule.pattern and not rule.pattern.match(value):
            issues.append(_issue(rule.severity, manifest, rule.message, field=rule.field))

    elif rule.type == "array":
        if rule.min_length and len(value) < rule.min_length:
            issues.append(_issue(rule.severity, manifest, rule.message, field=rule.field))

    elif rule.type == "number":
        if rule.min is not None and value < rule.min:
            issues.append(_issue(
                rule.severity, manifest,
                f"{rule.field} must be at least {rule.min:g}",
                field=rule.field,
            ))
        if rule.max is not None and value > rule.max:
            issues.append(_issue(
                rule.severity, manifest,
                f"{rule.field} must be no more than {rule.max:g}",
                field=rule.field,
            ))

    return issues


def validate_kubernetes_manifest(manifest: Dict[str, Any]) -> List[ValidationIssue]:
    """
    Validate a single Kubernetes manifest.

    Args:
        manifest: Parsed manifest

    Returns:
        Issues in check order (structure, naming, labels, kind rules,
        best practices)
    """
    issues: List[ValidationIssue] = []

    if not manifest.get("apiVersion"):
        issues.append(_issue(Severity.ERROR, manifest, "Missing required field: apiVersion",
                             field="apiVersion"))

    if not manifest.get("kind"):
        issues.append(_issue(Severity.ERROR, manifest, "Missing required field: kind",
                             field="kind"))

    metadata = manifest.get("metadata")
    if not isinstance(metadata, dict) or not metadata:
        issues.append(_issue(Severity.ERROR, manifest, "Missing required field: metadata",
                             field="metadata"))
        return issues

    name = metadata.get("name")
    if not name:
        issues.append(_issue(Severity.ERROR, manifest, "Missing required field: metadata.name",
                             field="metadata.name", resource="unnamed"))
    else:
        valid, error = validate_resource_name(str(name))
        if not valid:
            issues.append(_issue(Severity.ERROR, manifest, error or "Invalid resource name",
                                 field="metadata.name"))

    namespace = metadata.get("namespace")
    if namespace:
        valid, error = validate_namespace(str(namespace))
        if not valid:
            issues.append(_issue(Severity.ERROR, manifest, error or "Invalid namespace",
                                 field="metadata.namespace"))

    labels = metadata.get("labels") or {}
    if isinstance(labels, dict):
        for key, value in labels.items():
            valid, error = validate_label(str(key), "" if value is None else str(value))
            if not valid:
                issues.append(_issue(Severity.ERROR, manifest, error or "Invalid label",
                                     field=f"metadata.labels.{key}"))

    rules = get_validation_rules(manifest.get("kind"))
    if rules:
        for field_path in rules.required_fields:
            if get_nested_value(manifest, field_path) is None:
                issues.append(_issue(Severity.ERROR, manifest,
                                     f"Missing required field: {field_path}", field=field_path))

        for rule in rules.metadata_rules + rules.spec_rules:
            issues.extend(_validate_field(manifest, rule))

    for check in BEST_PRACTICE_CHECKS:
        if not check.check(manifest):
            issues.append(_issue(check.severity, manifest, check.description,
                                 suggestion=check.recommendation))

    return issues


def calculate_quality_score(
    total_resources: int,
    error_count: int,
    warning_count: int,
    info_count: int,
) -> int:
    """
    Score a validation run from 0 to 100.

    Every error costs 15, every warning 5 and every info item 2. An empty
    resource set scores 0.
    """
    if total_resources == 0:
        return 0

    score = 100
    score -= error_count * ERROR_PENALTY
    score -= warning_count * WARNING_PENALTY
    score -= info_count * INFO_PENALTY
    return max(0, min(100, score))


def generate_suggestions(
    errors: List[ValidationIssue],
    warnings: List[ValidationIssue],
    info: List[ValidationIssue],
) -> List[str]:
    """Derive remediation hints from issue counts and message keywords."""
    suggestions = []

    if errors:
        plural = "s" if len(errors) > 1 else ""
        suggestions.append(f"Fix {len(errors)} critical error{plural} before deploying")

    if len(warnings) > 5:
        suggestions.append("Consider addressing warnings to improve production readiness")

    if len(info) > 10:
        suggestions.append("Review informational items to follow Kubernetes best practices")

    messages = [issue.message.lower() for issue in warnings + info]

    if any("resource" in m for m in messages):
        suggestions.append("Define resource requests and limits for better cluster management")

    if any("probe" in m or "health" in m for m in messages):
        suggestions.append("Add health checks (liveness/readiness probes) for improved reliability")

    if any("security" in m for m in messages):
        suggestions.append("Apply security best practices (non-root user, read-only filesystem)")

    return suggestions


def _build_result(
    total_resources: int,
    errors: List[ValidationIssue],
    warnings: List[ValidationIssue],
    info: List[ValidationIssue],
) -> ValidationResult:
    return ValidationResult(
        valid=len(errors) == 0,
        score=calculate_quality_score(total_resources, len(errors), len(warnings), len(info)),
        errors=errors,
        warnings=warnings,
        info=info,
        suggestions=generate_suggestions(errors, warnings, info),
        summary=ValidationSummary(
            total_resources=total_resources,
            valid_resources=max(0, total_resources - len(errors)),
            error_count=len(errors),
            warning_count=len(warnings),
            info_count=len(info),
        ),
    )


def _split_by_severity(
    issues: List[ValidationIssue],
) -> Tuple[List[ValidationIssue], List[ValidationIssue], List[ValidationIssue]]:
    errors, warnings, info = [], [], []
    for issue in issues:
        if issue.severity == Severity.ERROR:
            errors.append(issue)
        elif issue.severity == Severity.WARNING:
            warnings.append(issue)
        else:
            info.append(issue)
    return errors, warnings, info


def validate_kubernetes_manifests(yaml_text: str) -> ValidationResult:
    """
    Validate a multi-document Kubernetes YAML stream.

    Never raises: unreadable YAML becomes a single error issue.

    Args:
        yaml_text: One or more manifests separated by ---

    Returns:
        ValidationResult for the whole stream
    """
    try:
        documents = list(yaml.safe_load_all(yaml_text))
    except yaml.YAMLError as e:
        logger.debug("Manifest YAML could not be parsed: %s", e)
        return ValidationResult.failure(
            ValidationIssue(
                severity=Severity.ERROR,
                resource="N/A",
                kind="N/A",
                message=f"YAML parsing error: {e}",
            ),
            "Fix YAML syntax errors and try again",
        )

    manifests = [doc for doc in documents if isinstance(doc, dict)]
    if not manifests:
        return ValidationResult.failure(
            ValidationIssue(
                severity=Severity.ERROR,
                resource="N/A",
                kind="N/A",
                message="No valid manifests found in YAML",
            ),
            "Ensure your YAML contains valid Kubernetes resource definitions",
        )

    issues: List[ValidationIssue] = []
    for manifest in manifests:
        issues.extend(validate_kubernetes_manifest(manifest))
    errors, warnings, info = _split_by_severity(issues)

    # Index pass first so forward references resolve
    available: Dict[str, Set[str]] = {}
    for manifest in manifests:
        kind = manifest.get("kind")
        name = get_nested_value(manifest, "metadata.name")
        if isinstance(kind, str) and name:
            available.setdefault(kind, set()).add(str(name))

    for manifest in manifests:
        for ref in extract_resource_references(manifest):
            if ref.name in available.get(ref.kind, set()):
                continue
            warnings.append(ValidationIssue(
                severity=Severity.WARNING,
                resource=ref.referenced_by,
                kind=ref.kind,
                field=ref.field,
                message=f'Referenced {ref.kind} "{ref.name}" not found in manifests',
                suggestion=(
                    f'Create a {ref.kind} resource named "{ref.name}" '
                    f"or ensure it exists in your cluster"
                ),
            ))

    result = _build_result(len(manifests), errors, warnings, info)
    logger.debug(
        "Validated %d manifests: score=%d errors=%d warnings=%d info=%d",
        len(manifests), result.score, len(errors), len(warnings), len(info),
    )
    return result


def _stack_issue(
    severity: Severity,
    message: str,
    resource: str = STACK_RESOURCE,
    kind: str = "Service",
    field: Optional[str] = None,
    suggestion: Optional[str] = None,
) -> ValidationIssue:
    return ValidationIssue(
        severity=severity,
        resource=resource,
        kind=kind,
        message=message,
        field=field,
        suggestion=suggestion,
    )


def validate_docker_stack(yaml_text: str) -> ValidationResult:
    """
    Validate a Docker Swarm stack document.

    Never raises: unreadable YAML becomes a single error issue.

    Args:
        yaml_text: docker-stack.yml content

    Returns:
        ValidationResult with one resource per service
    """
    try:
        config = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        return ValidationResult.failure(
            _stack_issue(Severity.ERROR, f"YAML parsing error: {e}", kind="DockerCompose"),
            "Fix YAML syntax errors",
        )

    if not isinstance(config, dict):
        return ValidationResult.failure(
            _stack_issue(Severity.ERROR, "Invalid Docker Compose YAML", kind="DockerCompose"),
            "Check YAML syntax",
        )

    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    info: List[ValidationIssue] = []

    if not config.get("version"):
        warnings.append(_stack_issue(
            Severity.WARNING,
            "Docker Compose version not specified",
            kind="DockerCompose",
            field="version",
            suggestion='Add version: "3.8" or higher',
        ))

    services = config.get("services")
    if not isinstance(services, dict) or not services:
        errors.append(_stack_issue(
            Severity.ERROR,
            "No services defined",
            kind="DockerCompose",
            field="services",
        ))
        return _build_result(0, errors, warnings, info)

    for name, service in services.items():
        service = service if isinstance(service, dict) else {}

        if not service.get("image") and not service.get("build"):
            errors.append(_stack_issue(
                Severity.ERROR,
                "Service must define either image or build",
                resource=name,
                field="image",
            ))

        deploy = service.get("deploy")
        if deploy and not isinstance(deploy, dict):
            errors.append(_stack_issue(
                Severity.ERROR,
                "deploy must be a mapping",
                resource=name,
                field="deploy",
            ))
        elif not deploy:
            info.append(_stack_issue(
                Severity.INFO,
                "No deploy configuration specified",
                resource=name,
                field="deploy",
                suggestion="Add deploy section with replicas, resources, and restart_policy",
            ))
        else:
            if deploy.get("replicas") is None:
                info.append(_stack_issue(
                    Severity.INFO,
                    "Replicas not specified (defaults to 1)",
                    resource=name,
                    field="deploy.replicas",
                    suggestion="Specify replicas for production deployments",
                ))
            if not deploy.get("resources"):
                warnings.append(_stack_issue(
                    Severity.WARNING,
                    "No resource limits defined",
                    resource=name,
                    field="deploy.resources",
                    suggestion="Define resource limits to prevent resource exhaustion",
                ))

        if not service.get("healthcheck"):
            info.append(_stack_issue(
                Severity.INFO,
                "No healthcheck defined",
                resource=name,
                suggestion="Add healthcheck for better reliability",
            ))

    return _build_result(len(services), errors, warnings, info)
