"""
Type definitions for composeshift.

These dataclasses represent a parsed Docker Compose document, the options
shared by every projector, and the results returned by projectors and
validators.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ComposeError(ValueError):
    """Base error for compose conversion."""


class HelmGenerationError(ComposeError):
    """Raised when a Helm chart cannot be generated from a compose document."""


class TargetPlatform(str, Enum):
    """Conversion target."""
    KUBERNETES = "kubernetes"
    SWARM = "swarm"
    BOTH = "both"


class ProxyType(str, Enum):
    """Reverse proxy placed in front of the converted services."""
    TRAEFIK = "traefik"
    NGINX = "nginx"
    CADDY = "caddy"
    NONE = "none"


class ResourceProfile(str, Enum):
    """Named CPU/memory tier."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    CUSTOM = "custom"


class Severity(str, Enum):
    """Validation issue severity."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


_LEADING_INT = re.compile(r"\s*(\d+)")


def _leading_int(value: str) -> Optional[int]:
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1))


@dataclass
class PortMapping:
    """Port mapping configuration."""
    host_port: int
    container_port: int
    protocol: str = "tcp"

    @classmethod
    def parse(cls, port_spec: "str | int | dict") -> Optional["PortMapping"]:
        """
        Parse port specification from docker-compose format.

        Supports "8080:80", "127.0.0.1:8080:80", "80" and an optional
        "/tcp" or "/udp" suffix. Returns None when a numeric segment
        cannot be read.
        """
        if isinstance(port_spec, bool):
            return None

        if isinstance(port_spec, int):
            return cls(host_port=port_spec, container_port=port_spec)

        if isinstance(port_spec, dict):
            target = port_spec.get("target")
            if target is None:
                return None
            container_port = _leading_int(str(target))
            published = port_spec.get("published", target)
            host_port = _leading_int(str(published))
            if container_port is None or host_port is None:
                return None
            return cls(
                host_port=host_port,
                container_port=container_port,
                protocol=str(port_spec.get("protocol", "tcp")).lower(),
            )

        parts = str(port_spec).split(":")
        protocol = "tcp"

        # Protocol only ever trails the container segment
        last_part = parts[-1]
        if "/" in last_part:
            last_part, proto = last_part.split("/", 1)
            protocol = proto.lower()

        if len(parts) == 2:
            host_port = _leading_int(parts[0])
            container_port = _leading_int(last_part)
        elif len(parts) == 3:
            # IP:host:container
            host_port = _leading_int(parts[1])
            container_port = _leading_int(last_part)
        else:
            container_port = _leading_int(last_part)
            host_port = container_port

        if host_port is None or container_port is None:
            return None

        return cls(
            host_port=host_port,
            container_port=container_port,
            protocol=protocol,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hostPort": self.host_port,
            "containerPort": self.container_port,
            "protocol": self.protocol,
        }


@dataclass
class VolumeMount:
    """Volume mount configuration."""
    source: str
    target: str
    read_only: bool = False
    type: str = "volume"  # bind, volume

    @staticmethod
    def is_bind_source(source: str) -> bool:
        """Host paths start with / or . and are never backed by a claim."""
        return source.startswith("/") or source.startswith(".")

    @classmethod
    def parse(cls, volume_spec: "str | dict") -> Optional["VolumeMount"]:
        """
        Parse volume specification from docker-compose format.

        String form is "source:target[:ro]". Entries without a target
        are skipped (returns None).
        """
        if isinstance(volume_spec, dict):
            target = volume_spec.get("target")
            if not target:
                return None
            source = str(volume_spec.get("source", ""))
            vol_type = volume_spec.get("type")
            if vol_type not in ("bind", "volume"):
                vol_type = "bind" if cls.is_bind_source(source) else "volume"
            return cls(
                source=source,
                target=target,
                read_only=bool(volume_spec.get("read_only", False)),
                type=vol_type,
            )

        parts = str(volume_spec).split(":")
        if len(parts) < 2:
            return None

        source = parts[0]
        target = parts[1]
        read_only = len(parts) >= 3 and parts[2] == "ro"
        vol_type = "bind" if cls.is_bind_source(source) else "volume"

        return cls(source=source, target=target, read_only=read_only, type=vol_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "source": self.source,
            "target": self.target,
            "readOnly": self.read_only,
        }


def _env_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_environment(environment: Any) -> Dict[str, str]:
    """
    Flatten compose environment into a string mapping.

    Array form splits on the first "=" (later duplicates win); mapping
    form coerces every value to a string.
    """
    if not environment:
        return {}

    result: Dict[str, str] = {}
    if isinstance(environment, list):
        for item in environment:
            key, _, value = str(item).partition("=")
            if key:
                result[key] = value
        return result

    for key, value in environment.items():
        result[str(key)] = _env_value(value)
    return result


def extract_depends_on(depends_on: Any) -> List[str]:
    """Reduce short or long depends_on syntax to a list of service names."""
    if not depends_on:
        return []
    if isinstance(depends_on, dict):
        return list(depends_on.keys())
    return list(depends_on)


@dataclass
class ServiceMetadata:
    """Derived per-service metadata, computed once at parse time."""
    name: str
    image: Optional[str] = None
    ports: List[PortMapping] = field(default_factory=list)
    volumes: List[VolumeMount] = field(default_factory=list)
    environment_variables: Dict[str, str] = field(default_factory=dict)
    depends_on: List[str] = field(default_factory=list)
    has_health_check: bool = False
    replicas: Optional[int] = None

    @classmethod
    def from_dict(cls, name: str, data: Optional[Dict[str, Any]]) -> "ServiceMetadata":
        """Parse from a docker-compose service definition."""
        data = data or {}
        deploy = data.get("deploy") or {}

        ports = []
        for spec in data.get("ports") or []:
            mapping = PortMapping.parse(spec)
            if mapping is not None:
                ports.append(mapping)

        volumes = []
        for spec in data.get("volumes") or []:
            mount = VolumeMount.parse(spec)
            if mount is not None:
                volumes.append(mount)

        return cls(
            name=name,
            image=data.get("image"),
            ports=ports,
            volumes=volumes,
            environment_variables=parse_environment(data.get("environment")),
            depends_on=extract_depends_on(data.get("depends_on")),
            has_health_check=bool(data.get("healthcheck")),
            replicas=deploy.get("replicas"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "image": self.image,
            "ports": [p.to_dict() for p in self.ports],
            "volumes": [v.to_dict() for v in self.volumes],
            "environmentVariables": dict(self.environment_variables),
            "dependsOn": list(self.depends_on),
            "hasHealthCheck": self.has_health_check,
            "replicas": self.replicas,
        }


@dataclass
class ComposeMetadata:
    """Metadata extracted from a whole compose document."""
    services: List[ServiceMetadata] = field(default_factory=list)
    volume_names: List[str] = field(default_factory=list)
    network_names: List[str] = field(default_factory=list)

    def get_service(self, name: str) -> Optional[ServiceMetadata]:
        for service in self.services:
            if service.name == name:
                return service
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "services": [s.to_dict() for s in self.services],
            "volumeNames": list(self.volume_names),
            "networkNames": list(self.network_names),
        }


@dataclass
class ParseResult:
    """Result of parsing compose YAML text."""
    success: bool
    data: Optional[Dict[str, Any]] = None
    metadata: Optional[ComposeMetadata] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


# Keys accepted by ConversionOptions.from_dict, external camelCase -> field
_OPTION_ALIASES = {
    "targetPlatform": "target_platform",
    "proxyType": "proxy_type",
    "addHealthChecks": "add_health_checks",
    "addResourceLimits": "add_resource_limits",
    "resourceProfile": "resource_profile",
    "addSecurity": "add_security",
    "letsEncryptEmail": "lets_encrypt_email",
    "customDomains": "custom_domains",
}


@dataclass(frozen=True)
class ConversionOptions:
    """Options shared by every projector for one conversion run."""
    target_platform: TargetPlatform = TargetPlatform.KUBERNETES
    proxy_type: ProxyType = ProxyType.NONE
    add_health_checks: bool = True
    add_resource_limits: bool = True
    resource_profile: Optional[ResourceProfile] = ResourceProfile.SMALL
    add_security: bool = True
    namespace: str = "default"
    lets_encrypt_email: Optional[str] = None
    custom_domains: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ConversionOptions":
        """Parse options from a mapping using either camelCase or snake_case keys."""
        if not data:
            return cls()

        values: Dict[str, Any] = {}
        for key, value in data.items():
            values[_OPTION_ALIASES.get(key, key)] = value

        profile = values.get("resource_profile", ResourceProfile.SMALL)

        return cls(
            target_platform=TargetPlatform(values.get("target_platform", "kubernetes")),
            proxy_type=ProxyType(values.get("proxy_type", "none")),
            add_health_checks=bool(values.get("add_health_checks", True)),
            add_resource_limits=bool(values.get("add_resource_limits", True)),
            resource_profile=ResourceProfile(profile) if profile else None,
            add_security=bool(values.get("add_security", True)),
            namespace=values.get("namespace") or "default",
            lets_encrypt_email=values.get("lets_encrypt_email"),
            custom_domains=dict(values.get("custom_domains") or {}),
        )

    def effective_profile(self) -> ResourceProfile:
        """Profile used by the Kubernetes and Swarm projectors (custom/absent -> small)."""
        if self.resource_profile and self.resource_profile != ResourceProfile.CUSTOM:
            return self.resource_profile
        return ResourceProfile.SMALL

    def wants_kubernetes(self) -> bool:
        return self.target_platform in (TargetPlatform.KUBERNETES, TargetPlatform.BOTH)

    def wants_swarm(self) -> bool:
        return self.target_platform in (TargetPlatform.SWARM, TargetPlatform.BOTH)


@dataclass
class KubernetesManifests:
    """Kubernetes objects produced for one compose document."""
    deployments: List[Dict[str, Any]] = field(default_factory=list)
    services: List[Dict[str, Any]] = field(default_factory=list)
    config_maps: List[Dict[str, Any]] = field(default_factory=list)
    persistent_volume_claims: List[Dict[str, Any]] = field(default_factory=list)

    def all(self) -> List[Dict[str, Any]]:
        """All manifests in file-emission order."""
        return (
            self.deployments
            + self.services
            + self.config_maps
            + self.persistent_volume_claims
        )


@dataclass
class KubernetesConversionResult:
    """Result of the Kubernetes projector."""
    success: bool
    manifests: Optional[KubernetesManifests] = None
    yaml: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class StackConversionResult:
    """Result of the Swarm projector."""
    success: bool
    yaml: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class HelmChart:
    """Generated Helm chart sources."""
    chart_yaml: str
    values_yaml: str
    templates: Dict[str, str] = field(default_factory=dict)

    def files(self) -> Dict[str, str]:
        """Chart files keyed by their path inside the chart directory."""
        files = {
            "Chart.yaml": self.chart_yaml,
            "values.yaml": self.values_yaml,
        }
        for filename, content in self.templates.items():
            files[f"templates/{filename}"] = content
        return files


@dataclass
class HelmValidation:
    """Narrow helm-lint style result."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ValidationIssue:
    """A single validator finding."""
    severity: Severity
    resource: str
    kind: str
    message: str
    field: Optional[str] = None
    suggestion: Optional[str] = None
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "severity": self.severity.value,
            "resource": self.resource,
            "kind": self.kind,
            "message": self.message,
        }
        if self.field is not None:
            data["field"] = self.field
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        if self.line is not None:
            data["line"] = self.line
        return data


@dataclass
class ValidationSummary:
    total_resources: int = 0
    valid_resources: int = 0
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalResources": self.total_resources,
            "validResources": self.valid_resources,
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "infoCount": self.info_count,
        }


@dataclass
class ValidationResult:
    """Validation report shared by the Kubernetes, Swarm and Helm paths."""
    valid: bool
    score: int
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    info: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    summary: ValidationSummary = field(default_factory=ValidationSummary)

    @classmethod
    def failure(cls, issue: ValidationIssue, suggestion: str) -> "ValidationResult":
        """Single-error result used when the input could not be read at all."""
        return cls(
            valid=False,
            score=0,
            errors=[issue],
            suggestions=[suggestion],
            summary=ValidationSummary(error_count=1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "score": self.score,
            "errors": [i.to_dict() for i in self.errors],
            "warnings": [i.to_dict() for i in self.warnings],
            "info": [i.to_dict() for i in self.info],
            "suggestions": list(self.suggestions),
            "summary": self.summary.to_dict(),
        }
