"""
Production hardening for Kubernetes Deployments.

Applies health probes, resource limits and security contexts to an
already-built Deployment manifest. Every operation works on a deep copy and
returns the hardened manifest.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .types import ResourceProfile

logger = logging.getLogger(__name__)

RESOURCE_PROFILES: Dict[ResourceProfile, Dict[str, Dict[str, str]]] = {
    ResourceProfile.SMALL: {
        "requests": {"cpu": "100m", "memory": "128Mi"},
        "limits": {"cpu": "500m", "memory": "512Mi"},
    },
    ResourceProfile.MEDIUM: {
        "requests": {"cpu": "250m", "memory": "256Mi"},
        "limits": {"cpu": "1000m", "memory": "1Gi"},
    },
    ResourceProfile.LARGE: {
        "requests": {"cpu": "500m", "memory": "512Mi"},
        "limits": {"cpu": "2000m", "memory": "2Gi"},
    },
}

DEFAULT_PROBE_PORT = 8080

# (initialDelaySeconds, periodSeconds, timeoutSeconds, failureThreshold)
LIVENESS_TIMINGS = (30, 10, 5, 3)
READINESS_TIMINGS = (10, 5, 3, 3)

# Memory units in MiB; binary suffixes are checked before their decimal prefix
_MEMORY_UNITS = [
    ("Ki", 1 / 1024),
    ("Mi", 1),
    ("Gi", 1024),
    ("Ti", 1024 * 1024),
    ("Pi", 1024 ** 3),
    ("Ei", 1024 ** 4),
    ("K", 1 / 1000),
    ("M", 1),
    ("G", 1000),
    ("T", 1000 * 1000),
    ("P", 1000 ** 3),
    ("E", 1000 ** 4),
]


@dataclass
class HealthCheckOptions:
    """Probe overrides; None timings fall back to the per-probe defaults."""
    liveness_path: str = "/health"
    readiness_path: str = "/ready"
    port: Optional[Union[int, str]] = None
    initial_delay_seconds: Optional[int] = None
    period_seconds: Optional[int] = None
    timeout_seconds: Optional[int] = None
    failure_threshold: Optional[int] = None
    use_tcp: bool = False


@dataclass
class ResourceLimitOptions:
    """Pick a profile, or bypass the table with a custom resources block."""
    profile: ResourceProfile = ResourceProfile.SMALL
    custom: Optional[Dict[str, Dict[str, str]]] = None


@dataclass
class SecurityOptions:
    run_as_user: int = 1000
    fs_group: int = 1000
    read_only_root_filesystem: bool = False
    allow_privilege_escalation: bool = False
    drop_capabilities: bool = True


@dataclass
class ResourceCheck:
    """Outcome of validate_resource_limits."""
    valid: bool
    warnings: List[str] = field(default_factory=list)


def get_resource_profile(profile: Union[ResourceProfile, str]) -> Dict[str, Dict[str, str]]:
    """
    Get requests/limits for a named profile.

    Args:
        profile: small, medium or large

    Returns:
        Fresh resources dict (safe to mutate)

    Raises:
        ValueError: If the profile has no table entry (including custom)
    """
    profile = ResourceProfile(profile)
    if profile not in RESOURCE_PROFILES:
        raise ValueError(f"No resource table for profile '{profile.value}'")
    return copy.deepcopy(RESOURCE_PROFILES[profile])


def _timings(
    defaults: Tuple[int, int, int, int],
    options: HealthCheckOptions,
) -> Dict[str, int]:
    delay, period, timeout, threshold = defaults
    return {
        "initialDelaySeconds": options.initial_delay_seconds or delay,
        "periodSeconds": options.period_seconds or period,
        "timeoutSeconds": options.timeout_seconds or timeout,
        "failureThreshold": options.failure_threshold or threshold,
    }


def build_probes(
    port: Union[int, str],
    options: Optional[HealthCheckOptions] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Build a liveness and readiness probe pair.

    Args:
        port: Container port to probe
        options: Paths, timings and probe type overrides

    Returns:
        Tuple of (livenessProbe, readinessProbe)
    """
    options = options or HealthCheckOptions()

    if options.use_tcp:
        liveness: Dict[str, Any] = {"tcpSocket": {"port": port}}
        readiness: Dict[str, Any] = {"tcpSocket": {"port": port}}
    else:
        liveness = {
            "httpGet": {
                "path": options.liveness_path,
                "port": port,
                "scheme": "HTTP",
            },
        }
        readiness = {
            "httpGet": {
                "path": options.readiness_path,
                "port": port,
                "scheme": "HTTP",
            },
        }

    liveness.update(_timings(LIVENESS_TIMINGS, options))
    readiness.update(_timings(READINESS_TIMINGS, options))
    return liveness, readiness


def _containers(deployment: Dict[str, Any]) -> List[Dict[str, Any]]:
    return deployment["spec"]["template"]["spec"].get("containers") or []


def _first_container_port(container: Dict[str, Any]) -> Optional[int]:
    ports = container.get("ports") or []
    if ports:
        return ports[0].get("containerPort")
    return None


def add_health_checks(
    deployment: Dict[str, Any],
    options: Optional[HealthCheckOptions] = None,
) -> Dict[str, Any]:
    """
    Add liveness and readiness probes to every container.

    The port comes from options, else the container's first port. When
    neither exists, or use_tcp is set, TCP socket probes are used (port 8080
    if nothing else is known).

    Args:
        deployment: Deployment manifest
        options: Probe overrides

    Returns:
        Hardened copy of the deployment
    """
    options = options or HealthCheckOptions()
    hardened = copy.deepcopy(deployment)

    for container in _containers(hardened):
        port = options.port or _first_container_port(container)

        if not port or options.use_tcp:
            tcp_options = copy.copy(options)
            tcp_options.use_tcp = True
            liveness, readiness = build_probes(port or DEFAULT_PROBE_PORT, tcp_options)
        else:
            liveness, readiness = build_probes(port, options)

        container["livenessProbe"] = liveness
        container["readinessProbe"] = readiness

    return hardened


def add_resource_limits(
    deployment: Dict[str, Any],
    options: Optional[ResourceLimitOptions] = None,
) -> Dict[str, Any]:
    """
    Set resources on every container from a profile or custom block.

    Args:
        deployment: Deployment manifest
        options: Profile selection or custom resources

    Returns:
        Hardened copy of the deployment
    """
    options = options or ResourceLimitOptions()
    hardened = copy.deepcopy(deployment)

    if options.custom is not None:
        resources = options.custom
    else:
        resources = get_resource_profile(options.profile)

    for container in _containers(hardened):
        container["resources"] = copy.deepcopy(resources)

    return hardened


def build_container_security_context(
    options: Optional[SecurityOptions] = None,
) -> Dict[str, Any]:
    """Container securityContext for the given overrides."""
    options = options or SecurityOptions()
    context: Dict[str, Any] = {
        "runAsUser": options.run_as_user,
        "runAsNonRoot": True,
        "readOnlyRootFilesystem": options.read_only_root_filesystem,
        "allowPrivilegeEscalation": options.allow_privilege_escalation,
    }
    if options.drop_capabilities:
        context["capabilities"] = {"drop": ["ALL"]}
    return context


def build_pod_security_context(
    options: Optional[SecurityOptions] = None,
) -> Dict[str, Any]:
    """Pod securityContext for the given overrides."""
    options = options or SecurityOptions()
    return {
        "fsGroup": options.fs_group,
        "runAsNonRoot": True,
        "seccompProfile": {
            "type": "RuntimeDefault",
        },
    }


def add_security_best_practices(
    deployment: Dict[str, Any],
    options: Optional[SecurityOptions] = None,
) -> Dict[str, Any]:
    """
    Apply container and pod security contexts.

    Args:
        deployment: Deployment manifest
        options: Security overrides

    Returns:
        Hardened copy of the deployment
    """
    hardened = copy.deepcopy(deployment)

    for container in _containers(hardened):
        container["securityContext"] = build_container_security_context(options)

    hardened["spec"]["template"]["spec"]["securityContext"] = build_pod_security_context(options)
    return hardened


def apply_all_optimizations(
    deployment: Dict[str, Any],
    health_checks: Union[HealthCheckOptions, bool, None] = None,
    resource_limits: Union[ResourceLimitOptions, bool, None] = None,
    security: Union[SecurityOptions, bool, None] = None,
) -> Dict[str, Any]:
    """
    Apply every hardening step.

    Each argument may be False to skip that step, True or None for the
    defaults, or an options object to customize it. The default resource
    profile here is medium.

    Args:
        deployment: Deployment manifest
        health_checks: Probe step control
        resource_limits: Resource step control
        security: Security step control

    Returns:
        Hardened copy of the deployment
    """
    hardened = copy.deepcopy(deployment)

    if health_checks is not False:
        probe_options = health_checks if isinstance(health_checks, HealthCheckOptions) else None
        hardened = add_health_checks(hardened, probe_options)

    if resource_limits is not False:
        if isinstance(resource_limits, ResourceLimitOptions):
            resource_options = resource_limits
        else:
            resource_options = ResourceLimitOptions(profile=ResourceProfile.MEDIUM)
        hardened = add_resource_limits(hardened, resource_options)

    if security is not False:
        security_options = security if isinstance(security, SecurityOptions) else None
        hardened = add_security_best_practices(hardened, security_options)

    logger.debug("Applied production optimizations to %s",
                 hardened.get("metadata", {}).get("name"))
    return hardened


def parse_cpu(cpu: str) -> float:
    """
    Parse a CPU quantity to millicores ("250m" -> 250, "0.5" -> 500).

    Raises:
        ValueError: If the quantity is not a number with an optional m suffix
    """
    cpu = str(cpu).strip()
    if cpu.endswith("m"):
        return float(cpu[:-1])
    return float(cpu) * 1000


def parse_memory(memory: str) -> float:
    """
    Parse a memory quantity to MiB. A bare number is read as bytes.

    Raises:
        ValueError: If the quantity has an unknown suffix
    """
    memory = str(memory).strip()
    for unit, multiplier in _MEMORY_UNITS:
        if memory.endswith(unit):
            return float(memory[:-len(unit)]) * multiplier
    return float(memory) / (1024 * 1024)


def _read_quantity(
    parser: Callable[[str], float],
    quantities: Dict[str, Any],
    key: str,
    label: str,
    warnings: List[str],
) -> Optional[float]:
    """Parsed quantity, or None when absent or unreadable (with a warning)."""
    value = quantities.get(key)
    if not value:
        return None
    try:
        return parser(value)
    except ValueError:
        warnings.append(f"{label} ({value}) is not a valid quantity")
        return None


def validate_resource_limits(resources: Optional[Dict[str, Any]]) -> ResourceCheck:
    """
    Sanity-check a container resources block.

    Unreadable quantities are reported as warnings, never raised.

    Args:
        resources: Container resources (requests/limits)

    Returns:
        ResourceCheck with a warning per suspicious value
    """
    if not resources:
        return ResourceCheck(valid=False, warnings=["No resource limits defined"])

    warnings: List[str] = []
    requests = resources.get("requests") if isinstance(resources.get("requests"), dict) else {}
    limits = resources.get("limits") if isinstance(resources.get("limits"), dict) else {}

    cpu_request = _read_quantity(parse_cpu, requests, "cpu", "CPU request", warnings)
    mem_request = _read_quantity(parse_memory, requests, "memory", "Memory request", warnings)
    cpu_limit = _read_quantity(parse_cpu, limits, "cpu", "CPU limit", warnings)
    mem_limit = _read_quantity(parse_memory, limits, "memory", "Memory limit", warnings)

    if cpu_request is not None and cpu_request < 10:
        warnings.append(
            f"CPU request ({requests['cpu']}) seems very low, may cause throttling"
        )

    if mem_request is not None and mem_request < 64:
        warnings.append(
            f"Memory request ({requests['memory']}) seems very low, may cause OOM"
        )

    if cpu_limit and cpu_request and cpu_limit < cpu_request:
        warnings.append("CPU limit is lower than request")

    if mem_limit and mem_request and mem_limit < mem_request:
        warnings.append("Memory limit is lower than request")

    return ResourceCheck(valid=len(warnings) == 0, warnings=warnings)


def generate_recommendations(deployment: Dict[str, Any]) -> List[str]:
    """
    List remediation hints for a Deployment.

    Args:
        deployment: Deployment manifest

    Returns:
        Human-readable recommendations (empty if fully hardened)
    """
    recommendations: List[str] = []

    for index, container in enumerate(_containers(deployment)):
        name = container.get("name") or f"container-{index}"

        if not container.get("livenessProbe"):
            recommendations.append(f"Add liveness probe to container '{name}'")
        if not container.get("readinessProbe"):
            recommendations.append(f"Add readiness probe to container '{name}'")

        resources = container.get("resources")
        if not resources:
            recommendations.append(f"Define resource limits for container '{name}'")
        else:
            if not resources.get("requests"):
                recommendations.append(f"Define resource requests for container '{name}'")
            if not resources.get("limits"):
                recommendations.append(f"Define resource limits for container '{name}'")

        security_context = container.get("securityContext")
        if not security_context:
            recommendations.append(f"Add security context to container '{name}'")
        else:
            if not security_context.get("runAsNonRoot"):
                recommendations.append(f"Set runAsNonRoot=true for container '{name}'")
            if security_context.get("allowPrivilegeEscalation") is not False:
                recommendations.append(
                    f"Set allowPrivilegeEscalation=false for container '{name}'"
                )

    if not deployment["spec"]["template"]["spec"].get("securityContext"):
        recommendations.append("Add pod security context")

    return recommendations
