"""
Docker Compose parser for composeshift.

Loads compose YAML text, validates its structure and extracts per-service
metadata used by the projectors.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from .schema import json_type, validate_compose
from .types import (
    ComposeMetadata,
    ParseResult,
    PortMapping,
    ServiceMetadata,
    VolumeMount,
    extract_depends_on,
    parse_environment,
)

logger = logging.getLogger(__name__)

COMPOSE_FILENAMES = [
    "docker-compose.yaml",
    "docker-compose.yml",
    "compose.yaml",
    "compose.yml",
]


class ComposeLoader(yaml.SafeLoader):
    """SafeLoader without YAML 1.1 base-60 integers, so 80:80 stays a string."""


ComposeLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:int"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ComposeLoader.add_implicit_resolver(
    "tag:yaml.org,2002:int",
    re.compile(
        r"""^(?:[-+]?0b[0-1_]+
        |[-+]?0[0-7_]+
        |[-+]?(?:0|[1-9][0-9_]*)
        |[-+]?0x[0-9a-fA-F_]+)$""",
        re.X,
    ),
    list("-+0123456789"),
)


def parse(yaml_text: str) -> ParseResult:
    """
    Parse and validate Docker Compose YAML text.

    Args:
        yaml_text: Raw compose file content

    Returns:
        ParseResult with the document and metadata on success, or an
        error message describing why the text was rejected
    """
    try:
        parsed = yaml.load(yaml_text, Loader=ComposeLoader)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line = mark.line + 1 if mark is not None else "unknown"
        column = mark.column + 1 if mark is not None else "unknown"
        problem = getattr(e, "problem", None) or str(e)
        return ParseResult(
            success=False,
            error=f"YAML parsing error at line {line}, column {column}: {problem}",
        )

    if not isinstance(parsed, dict):
        return ParseResult(
            success=False,
            error=f"Invalid YAML: Expected an object but got {json_type(parsed)}",
        )

    violations = validate_compose(parsed)
    if violations:
        numbered = "\n".join(f"  {i}. {msg}" for i, msg in enumerate(violations, 1))
        return ParseResult(success=False, error=f"Validation failed:\n{numbered}")

    document = parsed
    if document.get("version") is not None:
        document["version"] = str(document["version"])

    warnings: List[str] = []
    services = document.get("services") or {}
    if not services:
        warnings.append("No services defined in Docker Compose file")

    for name, service in services.items():
        if not service.get("image") and not service.get("build"):
            warnings.append(f"Service '{name}' has neither 'image' nor 'build' specified")

    for warning in warnings:
        logger.warning(warning)

    metadata = extract_metadata(document)
    logger.debug("Parsed compose document with %d services", len(metadata.services))

    return ParseResult(
        success=True,
        data=document,
        metadata=metadata,
        warnings=warnings,
    )


def extract_metadata(document: Dict[str, Any]) -> ComposeMetadata:
    """Extract per-service metadata from a validated compose document."""
    services = [
        ServiceMetadata.from_dict(name, service)
        for name, service in (document.get("services") or {}).items()
    ]

    return ComposeMetadata(
        services=services,
        volume_names=list((document.get("volumes") or {}).keys()),
        network_names=list((document.get("networks") or {}).keys()),
    )


def parse_ports(ports: Iterable[Any]) -> List[PortMapping]:
    """Parse port entries, silently dropping any that cannot be read."""
    result = []
    for spec in ports:
        mapping = PortMapping.parse(spec)
        if mapping is not None:
            result.append(mapping)
    return result


def parse_volumes(volumes: Iterable[Any]) -> List[VolumeMount]:
    """Parse volume entries of the form source:target[:ro]."""
    result = []
    for spec in volumes:
        mount = VolumeMount.parse(spec)
        if mount is not None:
            result.append(mount)
    return result


def validate_service(name: str, service: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Check a single service has the fields every target needs."""
    errors = []
    if not service.get("image") and not service.get("build"):
        errors.append(f"Service '{name}' must have either 'image' or 'build' specified")
    return len(errors) == 0, errors


def find_compose_file(path: str, filename: Optional[str] = None) -> Path:
    """
    Locate a compose file.

    Args:
        path: Compose file, or directory containing one
        filename: Preferred file name inside the directory

    Returns:
        Path to the compose file

    Raises:
        FileNotFoundError: If no compose file exists
    """
    candidate = Path(path)
    if candidate.is_file():
        return candidate

    names = ([filename] if filename else []) + COMPOSE_FILENAMES
    for name in names:
        compose_path = candidate / name
        if compose_path.exists():
            return compose_path

    raise FileNotFoundError(
        f"No docker-compose file found in {path}. "
        f"Tried: {', '.join(names)}"
    )


def load_compose_file(path: str, filename: Optional[str] = None) -> ParseResult:
    """Read and parse a compose file from disk."""
    compose_path = find_compose_file(path, filename)
    logger.debug("Loading compose file %s", compose_path)
    return parse(compose_path.read_text(encoding="utf-8"))
