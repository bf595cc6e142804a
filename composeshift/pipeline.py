"""
End-to-end conversion of one compose project.

Parses the compose text, runs the projectors selected by the options,
optionally adds reverse proxy configuration, then validates every artifact.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from . import helm, kubernetes, swarm, traefik
from .parser import parse
from .types import (
    ConversionOptions,
    HelmGenerationError,
    ParseResult,
    ProxyType,
    ValidationResult,
)
from .validator import validate_docker_stack, validate_kubernetes_manifests

logger = logging.getLogger(__name__)

STACK_FILE = "swarm/docker-stack.yml"


@dataclass
class ConversionBundle:
    """Every artifact and report produced for one project."""
    success: bool
    project_name: str
    files: Dict[str, str] = field(default_factory=dict)
    validation: Dict[str, ValidationResult] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    parse_result: Optional[ParseResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "projectName": self.project_name,
            "files": sorted(self.files),
            "validation": {k: v.to_dict() for k, v in self.validation.items()},
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }

    def write(self, output_dir: str) -> List[Path]:
        """Write every file under output_dir, creating directories as needed."""
        return write_files(self.files, output_dir)


def write_files(files: Dict[str, str], output_dir: str) -> List[Path]:
    """Write relative path -> content pairs under output_dir."""
    written = []
    root = Path(output_dir)
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written


def load_conversion_options(path: str) -> ConversionOptions:
    """
    Load conversion options from a YAML file.

    Args:
        path: YAML file with camelCase or snake_case option keys

    Returns:
        ConversionOptions

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If an option value is not recognised
    """
    options_path = Path(path)
    if not options_path.exists():
        raise FileNotFoundError(f"Options file not found: {path}")

    with open(options_path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Options file must contain a mapping: {path}")

    return ConversionOptions.from_dict(data)


def join_manifests(manifests: List[Dict[str, Any]]) -> str:
    """Serialize manifests as one multi-document YAML stream."""
    docs = [kubernetes.dump_manifest(m) for m in manifests]
    return "---\n" + "---\n".join(docs)


def _proxy_domains(document: Dict[str, Any], options: ConversionOptions) -> Dict[str, str]:
    """Service name to host for every service that exposes a port."""
    domains = {}
    for name, service in (document.get("services") or {}).items():
        if not (service or {}).get("ports"):
            continue
        domains[name] = options.custom_domains.get(name, f"{name}.example.com")
    return domains


def _add_proxy_files(
    bundle: ConversionBundle,
    document: Dict[str, Any],
    options: ConversionOptions,
) -> None:
    if options.proxy_type == ProxyType.NONE:
        return

    if options.proxy_type != ProxyType.TRAEFIK:
        message = f"Proxy type '{options.proxy_type.value}' is not supported yet, no proxy configuration generated"
        logger.warning(message)
        bundle.warnings.append(message)
        return

    proxy_options = traefik.TraefikOptions(
        email=options.lets_encrypt_email,
        domains=_proxy_domains(document, options),
    )
    bundle.files["proxy/traefik.yml"] = traefik.generate_static_config(proxy_options)

    if options.wants_swarm():
        compose = traefik.add_to_compose(document, proxy_options)
        bundle.files["proxy/docker-compose.traefik.yml"] = yaml.dump(
            compose, default_flow_style=False, sort_keys=False
        )

    if options.wants_kubernetes():
        services = document.get("services") or {}
        routes = [
            (name, domain, traefik.service_port(services[name] or {}, published=True))
            for name, domain in proxy_options.domains.items()
        ]
        setup = traefik.generate_kubernetes_setup(routes, options.namespace, proxy_options)
        for filename, content in setup.items():
            bundle.files[f"proxy/kubernetes/{filename}"] = content


def convert_project(
    yaml_text: str,
    options: Optional[ConversionOptions] = None,
    project_name: str = "app",
    optimize_stack: bool = False,
) -> ConversionBundle:
    """
    Convert compose text into every artifact the options ask for.

    Parse failures stop the pipeline. Projector failures are recorded in
    errors while the remaining projectors still run.

    Args:
        yaml_text: Docker Compose YAML
        options: Conversion options
        project_name: Name used for the Helm chart
        optimize_stack: Run the Swarm production optimization pass

    Returns:
        ConversionBundle with files laid out as kubernetes/, swarm/,
        helm/<chart>/ and proxy/
    """
    options = options or ConversionOptions()
    bundle = ConversionBundle(success=False, project_name=project_name)

    result = parse(yaml_text)
    bundle.parse_result = result
    if not result.success or result.data is None:
        bundle.errors.append(result.error or "Unknown parse error")
        return bundle

    document = result.data
    bundle.warnings.extend(result.warnings)

    if options.wants_kubernetes():
        k8s = kubernetes.convert(document, options)
        bundle.warnings.extend(k8s.warnings)
        if k8s.success and k8s.manifests is not None:
            for filename, content in k8s.yaml.items():
                bundle.files[f"kubernetes/{filename}"] = content
            bundle.validation["kubernetes"] = validate_kubernetes_manifests(
                join_manifests(k8s.manifests.all())
            )
        else:
            bundle.errors.append(f"Kubernetes conversion failed: {k8s.error}")

    if options.wants_swarm():
        convert_stack = swarm.convert_with_optimizations if optimize_stack else swarm.convert
        stack = convert_stack(document, options)
        bundle.warnings.extend(stack.warnings)
        if stack.success and stack.yaml:
            bundle.files[STACK_FILE] = stack.yaml
            bundle.validation["swarm"] = validate_docker_stack(stack.yaml)
        else:
            bundle.errors.append(f"Docker Stack conversion failed: {stack.error}")

    try:
        chart = helm.generate_helm_chart(project_name, document)
    except HelmGenerationError as e:
        bundle.errors.append(f"Helm chart generation failed: {e}")
    else:
        chart_dir = f"helm/{helm.to_chart_name(project_name)}"
        for filename, content in chart.files().items():
            bundle.files[f"{chart_dir}/{filename}"] = content
        bundle.validation["helm"] = helm.to_validation_result(helm.validate_helm_chart(chart))

    _add_proxy_files(bundle, document, options)

    bundle.success = not bundle.errors
    logger.info(
        "Converted %s: %d files, %d warnings, %d errors",
        project_name, len(bundle.files), len(bundle.warnings), len(bundle.errors),
    )
    return bundle
