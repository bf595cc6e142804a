"""
Kubernetes manifest generators for Docker Compose documents.

Converts compose services to Kubernetes Deployment, Service, ConfigMap and
PersistentVolumeClaim manifests.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import yaml

from .hardening import (
    DEFAULT_PROBE_PORT,
    build_container_security_context,
    build_pod_security_context,
    build_probes,
    get_resource_profile,
)
from .parser import parse_environment, parse_ports, parse_volumes
from .types import (
    ConversionOptions,
    KubernetesConversionResult,
    KubernetesManifests,
    VolumeMount,
)

logger = logging.getLogger(__name__)

DEFAULT_REPLICAS = 3
DEFAULT_IMAGE = "nginx:latest"
DEFAULT_STORAGE = "1Gi"


def to_k8s_name(name: str) -> str:
    """Convert name to valid K8s resource name."""
    return re.sub(r"[^a-z0-9-]", "-", name.lower())


def dump_manifest(manifest: Dict[str, Any]) -> str:
    """Serialize a manifest to block-style YAML, keeping key order."""
    return yaml.dump(manifest, default_flow_style=False, sort_keys=False)


def _labels(app_name: str) -> Dict[str, str]:
    return {
        "app": app_name,
        "app.kubernetes.io/name": app_name,
        "app.kubernetes.io/component": "service",
    }


def _build_volume_mounts(mounts: List[VolumeMount]) -> List[Dict[str, Any]]:
    """Build container volumeMounts, one per compose volume entry."""
    volume_mounts = []
    for index, mount in enumerate(mounts):
        if mount.type == "bind":
            name = f"host-volume-{index}"
        else:
            name = to_k8s_name(mount.source)
        volume_mounts.append({
            "name": name,
            "mountPath": mount.target,
            "readOnly": mount.read_only,
        })
    return volume_mounts


def _build_volumes(app_name: str, mounts: List[VolumeMount]) -> List[Dict[str, Any]]:
    """Build pod volumes matching _build_volume_mounts names."""
    volumes = []
    seen = set()

    for index, mount in enumerate(mounts):
        if mount.type == "bind":
            # Bind mount -> hostPath (not recommended in production)
            volumes.append({
                "name": f"host-volume-{index}",
                "hostPath": {
                    "path": mount.source,
                    "type": "DirectoryOrCreate",
                },
            })
            continue

        vol_name = to_k8s_name(mount.source)
        if vol_name in seen:
            continue
        seen.add(vol_name)

        volumes.append({
            "name": vol_name,
            "persistentVolumeClaim": {
                "claimName": f"{app_name}-{vol_name}",
            },
        })

    return volumes


def generate_deployment(
    name: str,
    service: Dict[str, Any],
    options: ConversionOptions,
    warnings: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Generate Kubernetes Deployment from compose service.

    Args:
        name: Compose service name
        service: Raw compose service definition
        options: Conversion options
        warnings: Optional list that conversion warnings are appended to

    Returns:
        Deployment manifest dict
    """
    app_name = to_k8s_name(name)
    deploy = service.get("deploy") or {}
    replicas = deploy.get("replicas") or DEFAULT_REPLICAS
    labels = _labels(app_name)

    image = service.get("image")
    if not image:
        image = DEFAULT_IMAGE
        if warnings is not None:
            message = f"Service '{name}' has no image, using {DEFAULT_IMAGE}"
            warnings.append(message)
            logger.warning(message)

    container: Dict[str, Any] = {
        "name": app_name,
        "image": image,
    }

    ports = parse_ports(service.get("ports") or [])
    if ports:
        container["ports"] = [
            {
                "containerPort": p.container_port,
                "protocol": p.protocol.upper(),
            }
            for p in ports
        ]

    env = parse_environment(service.get("environment"))
    if env:
        container["env"] = [
            {
                "name": key,
                "valueFrom": {
                    "configMapKeyRef": {
                        "name": f"{app_name}-config",
                        "key": key,
                    },
                },
            }
            for key in env
        ]

    mounts = parse_volumes(service.get("volumes") or [])
    if mounts:
        container["volumeMounts"] = _build_volume_mounts(mounts)

    command = service.get("command")
    if command:
        container["command"] = list(command) if isinstance(command, list) else ["/bin/sh", "-c", command]

    if service.get("working_dir"):
        container["workingDir"] = service["working_dir"]

    if options.add_resource_limits:
        container["resources"] = get_resource_profile(options.effective_profile())

    if options.add_health_checks:
        port = ports[0].container_port if ports else DEFAULT_PROBE_PORT
        liveness, readiness = build_probes(port)
        container["livenessProbe"] = liveness
        container["readinessProbe"] = readiness

    if options.add_security:
        container["securityContext"] = build_container_security_context()

    pod_spec: Dict[str, Any] = {
        "containers": [container],
    }

    volumes = _build_volumes(app_name, mounts)
    if volumes:
        pod_spec["volumes"] = volumes

    if options.add_security:
        pod_spec["securityContext"] = build_pod_security_context()

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": app_name,
            "namespace": options.namespace,
            "labels": labels,
        },
        "spec": {
            "replicas": replicas,
            "selector": {
                "matchLabels": {
                    "app": app_name,
                },
            },
            "template": {
                "metadata": {
                    "labels": dict(labels),
                },
                "spec": pod_spec,
            },
        },
    }


def generate_service(
    name: str,
    service: Dict[str, Any],
    namespace: str,
) -> Optional[Dict[str, Any]]:
    """
    Generate Kubernetes Service from compose service.

    Args:
        name: Compose service name
        service: Raw compose service definition
        namespace: Target namespace

    Returns:
        Service manifest dict or None if no ports
    """
    ports = parse_ports(service.get("ports") or [])
    if not ports:
        return None

    app_name = to_k8s_name(name)

    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": app_name,
            "namespace": namespace,
            "labels": {
                "app": app_name,
            },
        },
        "spec": {
            "type": "ClusterIP",
            "selector": {
                "app": app_name,
            },
            "ports": [
                {
                    "name": f"port-{i}",
                    "protocol": p.protocol.upper(),
                    "port": p.host_port,
                    "targetPort": p.container_port,
                }
                for i, p in enumerate(ports)
            ],
        },
    }


def generate_configmap(
    name: str,
    service: Dict[str, Any],
    namespace: str,
) -> Optional[Dict[str, Any]]:
    """
    Generate ConfigMap holding the service environment.

    Args:
        name: Compose service name
        service: Raw compose service definition
        namespace: Target namespace

    Returns:
        ConfigMap manifest dict or None if no environment
    """
    env = parse_environment(service.get("environment"))
    if not env:
        return None

    app_name = to_k8s_name(name)

    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": f"{app_name}-config",
            "namespace": namespace,
            "labels": {
                "app": app_name,
            },
        },
        "data": env,
    }


def generate_pvcs(
    name: str,
    service: Dict[str, Any],
    namespace: str,
    size: str = DEFAULT_STORAGE,
) -> List[Dict[str, Any]]:
    """
    Generate PersistentVolumeClaims for the named volumes a service mounts.

    Bind mounts never get a claim.

    Args:
        name: Compose service name
        service: Raw compose service definition
        namespace: Target namespace
        size: Requested storage per claim

    Returns:
        List of PVC manifest dicts
    """
    app_name = to_k8s_name(name)
    pvcs = []
    seen = set()

    for mount in parse_volumes(service.get("volumes") or []):
        if mount.type == "bind":
            continue

        pvc_name = to_k8s_name(f"{app_name}-{mount.source}")
        if pvc_name in seen:
            continue
        seen.add(pvc_name)

        pvcs.append({
            "apiVersion": "v1",
            "kind": "PersistentVolumeClaim",
            "metadata": {
                "name": pvc_name,
                "namespace": namespace,
                "labels": {
                    "app": app_name,
                },
            },
            "spec": {
                "accessModes": ["ReadWriteOnce"],
                "resources": {
                    "requests": {
                        "storage": size,
                    },
                },
            },
        })

    return pvcs


def _yaml_files(manifests: KubernetesManifests) -> Dict[str, str]:
    files: Dict[str, str] = {}
    for prefix, items in (
        ("deployment", manifests.deployments),
        ("service", manifests.services),
        ("configmap", manifests.config_maps),
        ("pvc", manifests.persistent_volume_claims),
    ):
        for manifest in items:
            files[f"{prefix}-{manifest['metadata']['name']}.yaml"] = dump_manifest(manifest)
    return files


def convert(
    document: Dict[str, Any],
    options: Optional[ConversionOptions] = None,
) -> KubernetesConversionResult:
    """
    Convert a compose document to Kubernetes manifests.

    Never raises: any internal failure is reported as success=False.

    Args:
        document: Parsed compose document
        options: Conversion options

    Returns:
        KubernetesConversionResult with manifests and per-file YAML
    """
    options = options or ConversionOptions()
    warnings: List[str] = []
    manifests = KubernetesManifests()

    try:
        app_names: Dict[str, str] = {}
        for name, service in (document.get("services") or {}).items():
            service = service or {}

            app_name = to_k8s_name(name)
            if app_name in app_names:
                message = (
                    f"Services '{app_names[app_name]}' and '{name}' both map to '{app_name}', "
                    f"files for '{name}' replace the earlier ones"
                )
                warnings.append(message)
                logger.warning(message)
            app_names[app_name] = name

            manifests.deployments.append(
                generate_deployment(name, service, options, warnings)
            )

            svc = generate_service(name, service, options.namespace)
            if svc:
                manifests.services.append(svc)

            configmap = generate_configmap(name, service, options.namespace)
            if configmap:
                manifests.config_maps.append(configmap)

            manifests.persistent_volume_claims.extend(
                generate_pvcs(name, service, options.namespace)
            )

            logger.debug("Converted service %s to Kubernetes", name)

        files = _yaml_files(manifests)
    except Exception as e:
        logger.exception("Kubernetes conversion failed")
        return KubernetesConversionResult(success=False, error=str(e) or type(e).__name__)

    return KubernetesConversionResult(
        success=True,
        manifests=manifests,
        yaml=files,
        warnings=warnings,
    )
