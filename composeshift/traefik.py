"""
Traefik reverse proxy configuration.

Generates Docker labels, Kubernetes IngressRoutes and static configuration
for putting Traefik v2 in front of converted services.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .kubernetes import to_k8s_name
from .parser import parse_ports

logger = logging.getLogger(__name__)

TRAEFIK_IMAGE = "traefik:v2.10"
CERT_RESOLVER = "letsencrypt"
DEFAULT_PORT = 80


@dataclass
class TraefikOptions:
    """Proxy settings; an email turns on Let's Encrypt and HTTPS redirects."""
    email: Optional[str] = None
    dashboard: bool = True
    domains: Dict[str, str] = field(default_factory=dict)

    @property
    def tls(self) -> bool:
        return bool(self.email)


def _dump(data: Dict[str, Any]) -> str:
    return yaml.dump(data, default_flow_style=False, sort_keys=False)


def service_port(service: Dict[str, Any], published: bool = False) -> int:
    """
    First port of a compose service, or 80.

    Docker labels forward to the container port. Kubernetes routes go through
    the generated Service, which exposes the published port.
    """
    ports = parse_ports(service.get("ports") or [])
    if not ports:
        return DEFAULT_PORT
    return ports[0].host_port if published else ports[0].container_port


def generate_docker_labels(
    service_name: str,
    domain: str,
    port: int,
    enable_tls: bool = False,
    cert_resolver: Optional[str] = None,
) -> Dict[str, str]:
    """
    Generate Traefik labels for a Docker service.

    Args:
        service_name: Compose service name
        domain: Host the router matches
        port: Container port Traefik forwards to
        enable_tls: Route on websecure and redirect plain HTTP
        cert_resolver: Certificate resolver name for TLS

    Returns:
        Dict of label name to value
    """
    router = to_k8s_name(service_name)

    labels = {
        "traefik.enable": "true",
        f"traefik.http.routers.{router}.rule": f"Host(`{domain}`)",
        f"traefik.http.routers.{router}.entrypoints": "websecure" if enable_tls else "web",
        f"traefik.http.services.{router}-service.loadbalancer.server.port": str(port),
    }

    if enable_tls:
        labels[f"traefik.http.routers.{router}.tls"] = "true"
        if cert_resolver:
            labels[f"traefik.http.routers.{router}.tls.certresolver"] = cert_resolver

        # HTTP -> HTTPS redirect
        labels[f"traefik.http.routers.{router}-http.rule"] = f"Host(`{domain}`)"
        labels[f"traefik.http.routers.{router}-http.entrypoints"] = "web"
        labels[f"traefik.http.routers.{router}-http.middlewares"] = f"{router}-https-redirect"
        labels[f"traefik.http.middlewares.{router}-https-redirect.redirectscheme.scheme"] = "https"
        labels[f"traefik.http.middlewares.{router}-https-redirect.redirectscheme.permanent"] = "true"

    return labels


def generate_ingress_route(
    service_name: str,
    domain: str,
    port: int,
    namespace: str = "default",
    enable_tls: bool = False,
    cert_resolver: str = CERT_RESOLVER,
) -> Dict[str, Any]:
    """
    Generate Traefik IngressRoute for one service.

    Args:
        service_name: Compose service name
        domain: Host the route matches
        port: Kubernetes Service port
        namespace: Target namespace
        enable_tls: Serve on websecure with a certificate resolver
        cert_resolver: Certificate resolver name

    Returns:
        IngressRoute manifest dict
    """
    name = to_k8s_name(service_name)

    ingress_route: Dict[str, Any] = {
        "apiVersion": "traefik.io/v1alpha1",
        "kind": "IngressRoute",
        "metadata": {
            "name": f"{name}-ingressroute",
            "namespace": namespace,
            "labels": {
                "app": name,
            },
        },
        "spec": {
            "entryPoints": ["websecure"] if enable_tls else ["web"],
            "routes": [
                {
                    "match": f"Host(`{domain}`)",
                    "kind": "Rule",
                    "services": [
                        {
                            "name": name,
                            "port": port,
                        }
                    ],
                }
            ],
        },
    }

    if enable_tls:
        ingress_route["spec"]["tls"] = {"certResolver": cert_resolver}

    return ingress_route


def generate_static_config(options: Optional[TraefikOptions] = None) -> str:
    """Generate traefik.yml static configuration."""
    options = options or TraefikOptions()

    config: Dict[str, Any] = {
        "api": {
            "dashboard": options.dashboard,
            "insecure": False,
        },
        "entryPoints": {
            "web": {"address": ":80"},
            "websecure": {"address": ":443"},
        },
        "certificatesResolvers": {},
        "providers": {
            "docker": {"exposedByDefault": False},
            "kubernetesCRD": {"enabled": True},
        },
        "log": {"level": "INFO"},
        "accessLog": {"enabled": True},
    }

    if options.email:
        config["entryPoints"]["web"]["http"] = {
            "redirections": {
                "entryPoint": {
                    "to": "websecure",
                    "scheme": "https",
                    "permanent": True,
                },
            },
        }
        config["certificatesResolvers"][CERT_RESOLVER] = {
            "acme": {
                "email": options.email,
                "storage": "/letsencrypt/acme.json",
                "httpChallenge": {"entryPoint": "web"},
            },
        }

    return _dump(config)


def generate_dynamic_config(services: Dict[str, Tuple[str, int]]) -> str:
    """
    Generate file-provider dynamic configuration.

    Args:
        services: Service name to (domain, port)

    Returns:
        Dynamic configuration YAML
    """
    config: Dict[str, Any] = {
        "http": {
            "routers": {},
            "services": {},
            "middlewares": {},
        },
    }

    for service_name, (domain, port) in services.items():
        router = to_k8s_name(service_name)
        config["http"]["routers"][router] = {
            "rule": f"Host(`{domain}`)",
            "service": router,
            "entryPoints": ["websecure"],
            "tls": {"certResolver": CERT_RESOLVER},
        }
        config["http"]["services"][router] = {
            "loadBalancer": {
                "servers": [{"url": f"http://{service_name}:{port}"}],
            },
        }

    return _dump(config)


def add_to_compose(
    document: Dict[str, Any],
    options: Optional[TraefikOptions] = None,
) -> Dict[str, Any]:
    """
    Add a traefik service and routing labels to a compose document.

    Args:
        document: Parsed compose document (not modified)
        options: Proxy settings; domains maps service name to host

    Returns:
        New compose document
    """
    options = options or TraefikOptions()
    compose = copy.deepcopy(document)
    services = compose.setdefault("services", {})

    command = [
        f"--api.dashboard={'true' if options.dashboard else 'false'}",
        "--providers.docker=true",
        "--providers.docker.exposedbydefault=false",
        "--entrypoints.web.address=:80",
        "--entrypoints.websecure.address=:443",
    ]

    if options.email:
        command.extend([
            "--certificatesresolvers.letsencrypt.acme.httpchallenge=true",
            "--certificatesresolvers.letsencrypt.acme.httpchallenge.entrypoint=web",
            f"--certificatesresolvers.letsencrypt.acme.email={options.email}",
            "--certificatesresolvers.letsencrypt.acme.storage=/letsencrypt/acme.json",
            "--entrypoints.web.http.redirections.entrypoint.to=websecure",
            "--entrypoints.web.http.redirections.entrypoint.scheme=https",
            "--entrypoints.web.http.redirections.entrypoint.permanent=true",
        ])

    services["traefik"] = {
        "image": TRAEFIK_IMAGE,
        "container_name": "traefik",
        "restart": "unless-stopped",
        "command": command,
        "ports": ["80:80", "443:443", "8080:8080"],
        "volumes": [
            "/var/run/docker.sock:/var/run/docker.sock:ro",
            "./letsencrypt:/letsencrypt",
        ],
        "labels": {
            "traefik.enable": "true",
            "traefik.http.routers.dashboard.rule": "Host(`traefik.localhost`)",
            "traefik.http.routers.dashboard.service": "api@internal",
            "traefik.http.routers.dashboard.entrypoints": "web",
        },
    }

    for service_name, domain in options.domains.items():
        service = services.get(service_name)
        if service is None:
            logger.warning("No service named %s to route %s to", service_name, domain)
            continue

        labels = service.get("labels") or {}
        if isinstance(labels, list):
            labels = dict(item.partition("=")[::2] for item in labels)
        labels.update(generate_docker_labels(
            service_name,
            domain,
            service_port(service),
            enable_tls=options.tls,
            cert_resolver=CERT_RESOLVER,
        ))
        service["labels"] = labels

    return compose


def generate_kubernetes_setup(
    services: List[Tuple[str, str, int]],
    namespace: str = "default",
    options: Optional[TraefikOptions] = None,
) -> Dict[str, str]:
    """
    Generate one IngressRoute file per service.

    Args:
        services: List of (service name, domain, port)
        namespace: Target namespace
        options: Proxy settings

    Returns:
        Dict of file name to IngressRoute YAML
    """
    options = options or TraefikOptions()
    files = {}
    for name, domain, port in services:
        route = generate_ingress_route(
            name,
            domain,
            port,
            namespace=namespace,
            enable_tls=options.tls,
        )
        files[f"ingressroute-{name}.yaml"] = _dump(route)
    return files


def validate_static_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Check a parsed traefik.yml has what Traefik needs to start."""
    errors = []

    if not config.get("entryPoints"):
        errors.append("Missing entryPoints configuration")

    if not config.get("providers"):
        errors.append("Missing providers configuration")

    resolver = (config.get("certificatesResolvers") or {}).get(CERT_RESOLVER)
    if resolver:
        acme = resolver.get("acme") or {}
        if not acme.get("email"):
            errors.append("Let's Encrypt email is required")
        if not acme.get("storage"):
            errors.append("ACME storage path is required")

    return len(errors) == 0, errors
