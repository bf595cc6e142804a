"""
Docker Swarm stack generation from Docker Compose documents.

Produces a docker-stack.yml document: the compose file with deploy,
healthcheck and overlay network defaults filled in.
"""

import copy
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .parser import parse_ports
from .types import ConversionOptions, ResourceProfile, StackConversionResult

logger = logging.getLogger(__name__)

STACK_VERSION = "3.8"
MIN_STACK_VERSION = 3.3
DEFAULT_REPLICAS = 3
DEFAULT_HEALTHCHECK_PORT = 80

SWARM_RESOURCE_PROFILES: Dict[ResourceProfile, Dict[str, Dict[str, str]]] = {
    ResourceProfile.SMALL: {
        "limits": {"cpus": "0.50", "memory": "512M"},
        "reservations": {"cpus": "0.10", "memory": "128M"},
    },
    ResourceProfile.MEDIUM: {
        "limits": {"cpus": "1.00", "memory": "1G"},
        "reservations": {"cpus": "0.25", "memory": "256M"},
    },
    ResourceProfile.LARGE: {
        "limits": {"cpus": "2.00", "memory": "2G"},
        "reservations": {"cpus": "0.50", "memory": "512M"},
    },
}

# Defaults merged into deploy when the key is absent
DEPLOY_DEFAULTS: Dict[str, Any] = {
    "placement": {
        "constraints": ["node.role == worker"],
    },
    "restart_policy": {
        "condition": "on-failure",
        "delay": "5s",
        "max_attempts": 3,
        "window": "120s",
    },
    "update_config": {
        "parallelism": 2,
        "delay": "10s",
        "failure_action": "rollback",
        "order": "start-first",
    },
    "rollback_config": {
        "parallelism": 0,
        "order": "stop-first",
    },
    "labels": {},
}

LOGGING_DEFAULTS: Dict[str, Any] = {
    "driver": "json-file",
    "options": {
        "max-size": "10m",
        "max-file": "3",
    },
}


def _dump(document: Dict[str, Any]) -> str:
    return yaml.dump(document, default_flow_style=False, sort_keys=False)


def _version_number(version: Any) -> Optional[float]:
    """Leading numeric part of a compose version ("3.8" -> 3.8, "3" -> 3.0)."""
    if version is None:
        return None
    match = re.match(r"\s*(\d+(?:\.\d+)?)", str(version))
    if not match:
        return None
    return float(match.group(1))


def _add_deploy_config(service: Dict[str, Any], options: ConversionOptions) -> None:
    """Fill in deploy defaults without overwriting existing keys."""
    deploy = service.get("deploy")
    if not deploy:
        deploy = {}
        service["deploy"] = deploy

    if not deploy.get("replicas"):
        deploy["replicas"] = DEFAULT_REPLICAS

    for key in ("placement", "restart_policy"):
        if not deploy.get(key):
            deploy[key] = copy.deepcopy(DEPLOY_DEFAULTS[key])

    if options.add_resource_limits:
        deploy["resources"] = copy.deepcopy(
            SWARM_RESOURCE_PROFILES[options.effective_profile()]
        )

    for key in ("update_config", "rollback_config", "labels"):
        if not deploy.get(key):
            deploy[key] = copy.deepcopy(DEPLOY_DEFAULTS[key])


def _add_health_check(service: Dict[str, Any]) -> None:
    if service.get("healthcheck"):
        return

    ports = parse_ports(service.get("ports") or [])
    port = ports[0].container_port if ports else DEFAULT_HEALTHCHECK_PORT

    service["healthcheck"] = {
        "test": ["CMD-SHELL", f"curl -f http://localhost:{port or DEFAULT_HEALTHCHECK_PORT}/health || exit 1"],
        "interval": "30s",
        "timeout": "10s",
        "retries": 3,
        "start_period": "40s",
    }


def _configure_networks(document: Dict[str, Any]) -> None:
    networks = document.get("networks")
    if not networks:
        document["networks"] = {
            "default": {
                "driver": "overlay",
                "attachable": True,
            },
        }
        return

    for name in list(networks):
        network = networks[name]
        if network is None:
            network = {}
            networks[name] = network
        if not network.get("driver"):
            network["driver"] = "overlay"
        if "attachable" not in network:
            network["attachable"] = True


def convert(
    document: Dict[str, Any],
    options: Optional[ConversionOptions] = None,
) -> StackConversionResult:
    """
    Convert a compose document to a Docker Swarm stack file.

    The input document is never modified.

    Args:
        document: Parsed compose document
        options: Conversion options

    Returns:
        StackConversionResult with the stack YAML and any warnings
    """
    options = options or ConversionOptions()
    warnings: List[str] = []

    try:
        stack = copy.deepcopy(document)

        version = _version_number(stack.get("version"))
        if version is None or version < MIN_STACK_VERSION:
            stack["version"] = STACK_VERSION
            warnings.append(f"Updated version to {STACK_VERSION} for Docker Swarm compatibility")

        services = stack.get("services") or {}
        for name in list(services):
            if services[name] is None:
                services[name] = {}
            service = services[name]

            _add_deploy_config(service, options)

            if options.add_health_checks:
                _add_health_check(service)

            if service.get("build"):
                warnings.append(
                    f"Service '{name}' has 'build' context which is not supported in "
                    f"Docker Stack. Please build and push the image first."
                )
                del service["build"]

            if not service.get("image"):
                warnings.append(
                    f"Service '{name}' is missing 'image' field. "
                    f"This is required for Docker Stack deployment."
                )

        _configure_networks(stack)
        content = _dump(stack)
    except Exception as e:
        logger.exception("Docker Stack conversion failed")
        return StackConversionResult(success=False, error=str(e) or type(e).__name__)

    for warning in warnings:
        logger.warning(warning)

    return StackConversionResult(success=True, yaml=content, warnings=warnings)


def validate_service(name: str, service: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Check a service can be deployed with docker stack deploy.

    Args:
        name: Service name
        service: Compose service definition

    Returns:
        Tuple of (valid, errors)
    """
    errors = []

    if not service.get("image"):
        errors.append(f"Service '{name}' must have 'image' field for Docker Stack deployment")

    if service.get("build"):
        errors.append(f"Service '{name}' has 'build' context which is not supported in Docker Stack")

    if service.get("container_name"):
        errors.append(
            f"Service '{name}' has 'container_name' which is not supported in Docker Swarm mode"
        )

    if service.get("links"):
        errors.append(
            f"Service '{name}' uses 'links' which are deprecated. "
            f"Use service names for DNS resolution instead"
        )

    return len(errors) == 0, errors


def add_security_best_practices(service: Dict[str, Any]) -> None:
    """Add tmpfs scratch mounts and no-new-privileges to a service in place."""
    if not service.get("tmpfs"):
        service["tmpfs"] = ["/tmp", "/run"]

    if not service.get("security_opt"):
        service["security_opt"] = ["no-new-privileges:true"]


def optimize_for_production(service: Dict[str, Any]) -> None:
    """Add log rotation and a stop grace period to a service in place."""
    if not service.get("logging"):
        service["logging"] = copy.deepcopy(LOGGING_DEFAULTS)

    if not service.get("stop_grace_period"):
        service["stop_grace_period"] = "30s"

    # restart conflicts with deploy.restart_policy
    service.pop("restart", None)


def convert_with_optimizations(
    document: Dict[str, Any],
    options: Optional[ConversionOptions] = None,
) -> StackConversionResult:
    """
    Convert, then apply production optimizations to the generated stack.

    Args:
        document: Parsed compose document
        options: Conversion options

    Returns:
        StackConversionResult with the optimized stack YAML
    """
    options = options or ConversionOptions()
    result = convert(document, options)
    if not result.success or not result.yaml:
        return result

    try:
        stack = yaml.safe_load(result.yaml)
        for service in (stack.get("services") or {}).values():
            optimize_for_production(service)
            if options.add_security:
                add_security_best_practices(service)
        content = _dump(stack)
    except Exception as e:
        logger.exception("Docker Stack optimization failed")
        return StackConversionResult(success=False, error=str(e) or "Optimization failed")

    return StackConversionResult(success=True, yaml=content, warnings=result.warnings)
