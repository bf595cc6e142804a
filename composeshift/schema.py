"""
Structural schema for Docker Compose v3 documents.

The schema is deliberately loose: unknown keys pass through, only the shape
of the fields the projectors read is enforced.
"""

from typing import Any, Dict, List

import jsonschema

SERVICE_NAME_PATTERN = r"^[a-zA-Z0-9._-]+$"

_STRING_OR_LIST = {
    "anyOf": [
        {"type": "string"},
        {"type": "array", "items": {"type": "string"}},
    ],
}

_RESOURCE_SPEC = {
    "type": "object",
    "properties": {
        "cpus": {"type": ["string", "number"]},
        "memory": {"type": "string"},
    },
}

COMPOSE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Docker Compose Configuration",
    "type": "object",
    "required": ["services"],
    "properties": {
        "version": {"type": ["string", "number"]},
        "services": {
            "type": "object",
            "propertyNames": {"pattern": SERVICE_NAME_PATTERN},
            "additionalProperties": {"$ref": "#/definitions/service"},
        },
        "volumes": {
            "type": "object",
            "additionalProperties": {
                "anyOf": [{"type": "null"}, {"$ref": "#/definitions/volume"}],
            },
        },
        "networks": {
            "type": "object",
            "additionalProperties": {
                "anyOf": [{"type": "null"}, {"$ref": "#/definitions/network"}],
            },
        },
        "configs": {"type": "object"},
        "secrets": {"type": "object"},
    },
    "definitions": {
        "service": {
            "type": "object",
            "properties": {
                "image": {"type": "string"},
                "build": {
                    "anyOf": [
                        {"type": "string"},
                        {
                            "type": "object",
                            "required": ["context"],
                            "properties": {
                                "context": {"type": "string"},
                                "dockerfile": {"type": "string"},
                                "args": {
                                    "type": "object",
                                    "additionalProperties": {"type": ["string", "number"]},
                                },
                            },
                        },
                    ],
                },
                "container_name": {"type": "string"},
                "ports": {
                    "type": "array",
                    "items": {
                        "anyOf": [
                            {"type": "string"},
                            {"type": "integer"},
                            {
                                "type": "object",
                                "required": ["target"],
                                "properties": {
                                    "target": {"type": "integer"},
                                    "published": {"type": ["integer", "string"]},
                                    "protocol": {"enum": ["tcp", "udp"]},
                                },
                            },
                        ],
                    },
                },
                "expose": {
                    "type": "array",
                    "items": {"type": ["string", "integer"]},
                },
                "environment": {
                    "anyOf": [
                        {
                            "type": "object",
                            "additionalProperties": {
                                "type": ["string", "number", "boolean", "null"],
                            },
                        },
                        {"type": "array", "items": {"type": "string"}},
                    ],
                },
                "env_file": _STRING_OR_LIST,
                "volumes": {
                    "type": "array",
                    "items": {
                        "anyOf": [
                            {"type": "string"},
                            {"type": "object", "required": ["target"]},
                        ],
                    },
                },
                "networks": {
                    "anyOf": [
                        {"type": "array", "items": {"type": "string"}},
                        {"type": "object"},
                    ],
                },
                "depends_on": {
                    "anyOf": [
                        {"type": "array", "items": {"type": "string"}},
                        {
                            "type": "object",
                            "additionalProperties": {
                                "type": "object",
                                "properties": {
                                    "condition": {
                                        "enum": [
                                            "service_started",
                                            "service_healthy",
                                            "service_completed_successfully",
                                        ],
                                    },
                                    "restart": {"type": "boolean"},
                                },
                            },
                        },
                    ],
                },
                "command": _STRING_OR_LIST,
                "entrypoint": _STRING_OR_LIST,
                "working_dir": {"type": "string"},
                "user": {"type": ["string", "integer"]},
                "restart": {"enum": ["no", "always", "on-failure", "unless-stopped"]},
                "labels": {
                    "anyOf": [
                        {"type": "object", "additionalProperties": {"type": "string"}},
                        {"type": "array", "items": {"type": "string"}},
                    ],
                },
                "deploy": {
                    "type": "object",
                    "properties": {
                        "replicas": {"type": "integer", "minimum": 0},
                        "placement": {
                            "type": "object",
                            "properties": {
                                "constraints": {"type": "array", "items": {"type": "string"}},
                            },
                        },
                        "resources": {
                            "type": "object",
                            "properties": {
                                "limits": _RESOURCE_SPEC,
                                "reservations": _RESOURCE_SPEC,
                            },
                        },
                        "restart_policy": {
                            "type": "object",
                            "properties": {
                                "condition": {"enum": ["none", "on-failure", "any"]},
                                "delay": {"type": "string"},
                                "max_attempts": {"type": "integer"},
                                "window": {"type": "string"},
                            },
                        },
                    },
                },
                "healthcheck": {
                    "type": "object",
                    "properties": {
                        "test": _STRING_OR_LIST,
                        "interval": {"type": "string"},
                        "timeout": {"type": "string"},
                        "retries": {"type": "integer"},
                        "start_period": {"type": "string"},
                        "disable": {"type": "boolean"},
                    },
                },
                "extra_hosts": {
                    "anyOf": [
                        {"type": "array", "items": {"type": "string"}},
                        {"type": "object"},
                    ],
                },
                "dns": _STRING_OR_LIST,
                "dns_search": _STRING_OR_LIST,
                "tmpfs": _STRING_OR_LIST,
                "logging": {
                    "type": "object",
                    "properties": {
                        "driver": {"type": "string"},
                        "options": {
                            "type": "object",
                            "additionalProperties": {"type": ["string", "number"]},
                        },
                    },
                },
            },
        },
        "volume": {
            "type": "object",
            "properties": {
                "driver": {"type": "string"},
                "driver_opts": {"type": "object"},
                "external": {
                    "anyOf": [
                        {"type": "boolean"},
                        {
                            "type": "object",
                            "required": ["name"],
                            "properties": {"name": {"type": "string"}},
                        },
                    ],
                },
                "labels": {"type": "object"},
                "name": {"type": "string"},
            },
        },
        "network": {
            "type": "object",
            "properties": {
                "driver": {"type": "string"},
                "driver_opts": {"type": "object"},
                "attachable": {"type": "boolean"},
                "external": {
                    "anyOf": [
                        {"type": "boolean"},
                        {
                            "type": "object",
                            "required": ["name"],
                            "properties": {"name": {"type": "string"}},
                        },
                    ],
                },
                "labels": {"type": "object"},
                "name": {"type": "string"},
                "ipam": {
                    "type": "object",
                    "properties": {
                        "driver": {"type": "string"},
                        "config": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "subnet": {"type": "string"},
                                    "gateway": {"type": "string"},
                                    "ip_range": {"type": "string"},
                                },
                            },
                        },
                    },
                },
            },
        },
    },
}


def json_type(value: Any) -> str:
    """Name a Python value by its JSON type."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _format_error(error: jsonschema.ValidationError) -> List[str]:
    """Render one schema violation as human-readable lines."""
    path = ".".join(str(p) for p in error.absolute_path)

    if error.validator == "required":
        missing = [
            name for name in error.validator_value
            if isinstance(error.instance, dict) and name not in error.instance
        ]
        return [
            f"Field '{path + '.' if path else ''}{name}': Required field is missing"
            for name in missing
        ]

    if error.validator == "type":
        expected = error.validator_value
        if isinstance(expected, list):
            expected = " or ".join(expected)
        return [f"Field '{path}': Expected {expected} but got {json_type(error.instance)}"]

    if error.validator in ("anyOf", "oneOf"):
        return [f"Field '{path}': Invalid format. Please check the Docker Compose specification"]

    # propertyNames violations surface as a pattern error on the key itself
    if error.validator == "pattern" and "propertyNames" in error.schema_path:
        return [
            f"Field '{path}': Name {error.instance!r} must match {SERVICE_NAME_PATTERN}"
        ]

    return [f"Field '{path}': {error.message}"]


def validate_compose(data: Dict[str, Any]) -> List[str]:
    """
    Validate compose data against the structural schema.

    Returns list of human-readable violations (empty if valid).
    """
    validator = jsonschema.Draft7Validator(COMPOSE_SCHEMA)
    errors = sorted(
        validator.iter_errors(data),
        key=lambda e: (".".join(str(p) for p in e.absolute_path), e.message),
    )

    messages: List[str] = []
    for error in errors:
        messages.extend(_format_error(error))
    return messages
