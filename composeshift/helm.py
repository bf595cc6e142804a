"""
Helm chart generation for Docker Compose documents.

Builds Chart.yaml, values.yaml and Go-template sources for a Helm v3 chart.
Templates are emitted as text and rendered later by Helm itself.
"""

import logging
import re
from typing import Any, Dict, Optional

import yaml

from .parser import parse_environment
from .types import (
    HelmChart,
    HelmGenerationError,
    HelmValidation,
    PortMapping,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValidationSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_CHART_VERSION = "0.1.0"
DEFAULT_APP_VERSION = "1.0.0"
DEFAULT_SERVICE_PORT = 80

DEFAULT_RESOURCES = {
    "requests": {
        "cpu": "100m",
        "memory": "128Mi",
    },
    "limits": {
        "cpu": "500m",
        "memory": "512Mi",
    },
}

HELPERS_TEMPLATE = """{{/*
Expand the name of the chart.
*/}}
{{- define "<<chart>>.name" -}}
{{- default .Chart.Name .Values.nameOverride | trunc 63 | trimSuffix "-" }}
{{- end }}

{{/*
Create a default fully qualified app name.
*/}}
{{- define "<<chart>>.fullname" -}}
{{- if .Values.fullnameOverride }}
{{- .Values.fullnameOverride | trunc 63 | trimSuffix "-" }}
{{- else }}
{{- $name := default .Chart.Name .Values.nameOverride }}
{{- if contains $name .Release.Name }}
{{- .Release.Name | trunc 63 | trimSuffix "-" }}
{{- else }}
{{- printf "%s-%s" .Release.Name $name | trunc 63 | trimSuffix "-" }}
{{- end }}
{{- end }}
{{- end }}

{{/*
Create chart name and version as used by the chart label.
*/}}
{{- define "<<chart>>.chart" -}}
{{- printf "%s-%s" .Chart.Name .Chart.Version | replace "+" "_" | trunc 63 | trimSuffix "-" }}
{{- end }}

{{/*
Common labels
*/}}
{{- define "<<chart>>.labels" -}}
helm.sh/chart: {{ include "<<chart>>.chart" . }}
{{ include "<<chart>>.selectorLabels" . }}
{{- if .Chart.AppVersion }}
app.kubernetes.io/version: {{ .Chart.AppVersion | quote }}
{{- end }}
app.kubernetes.io/managed-by: {{ .Release.Service }}
{{- end }}

{{/*
Selector labels
*/}}
{{- define "<<chart>>.selectorLabels" -}}
app.kubernetes.io/name: {{ include "<<chart>>.name" . }}
app.kubernetes.io/instance: {{ .Release.Name }}
{{- end }}
"""

NOTES_HEADER = """Thank you for installing {{ .Chart.Name }}!

Your release is named {{ .Release.Name }}.

To learn more about the release, try:

  $ helm status {{ .Release.Name }}
  $ helm get all {{ .Release.Name }}

"""

NOTES_SERVICE = """{{- if .Values.<<key>>.ingress.enabled }}
  Service <<service>>:
    {{- range .Values.<<key>>.ingress.hosts }}
    http{{ if $.Values.<<key>>.ingress.tls }}s{{ end }}://{{ .host }}
    {{- end }}
{{- else }}
  Service <<service>>:
    kubectl port-forward service/{{ include "<<chart>>.fullname" . }}-<<service>> {{ .Values.<<key>>.service.port }}:{{ .Values.<<key>>.service.port }}
{{- end }}

"""

DEPLOYMENT_TEMPLATE = """{{- if .Values.<<key>>.enabled }}
apiVersion: apps/v1
kind: Deployment
metadata:
  name: {{ include "<<chart>>.fullname" . }}-<<service>>
  labels:
    {{- include "<<chart>>.labels" . | nindent 4 }}
    app.kubernetes.io/component: <<service>>
spec:
  {{- if not .Values.<<key>>.autoscaling.enabled }}
  replicas: {{ .Values.<<key>>.replicaCount }}
  {{- end }}
  selector:
    matchLabels:
      {{- include "<<chart>>.selectorLabels" . | nindent 6 }}
      app.kubernetes.io/component: <<service>>
  template:
    metadata:
      labels:
        {{- include "<<chart>>.selectorLabels" . | nindent 8 }}
        app.kubernetes.io/component: <<service>>
    spec:
      containers:
      - name: <<service>>
        image: "{{ .Values.<<key>>.image.repository }}:{{ .Values.<<key>>.image.tag | default .Chart.AppVersion }}"
        imagePullPolicy: {{ .Values.<<key>>.image.pullPolicy }}
        ports:
        - name: http
          containerPort: {{ .Values.<<key>>.service.port }}
          protocol: TCP
        {{- if .Values.<<key>>.env }}
        env:
        {{- range $key, $value := .Values.<<key>>.env }}
        - name: {{ $key }}
          value: {{ $value | quote }}
        {{- end }}
        {{- end }}
        resources:
          {{- toYaml .Values.<<key>>.resources | nindent 10 }}
{{- end }}
"""

SERVICE_TEMPLATE = """{{- if .Values.<<key>>.enabled }}
apiVersion: v1
kind: Service
metadata:
  name: {{ include "<<chart>>.fullname" . }}-<<service>>
  labels:
    {{- include "<<chart>>.labels" . | nindent 4 }}
    app.kubernetes.io/component: <<service>>
spec:
  type: {{ .Values.<<key>>.service.type }}
  ports:
  - port: {{ .Values.<<key>>.service.port }}
    targetPort: http
    protocol: TCP
    name: http
  selector:
    {{- include "<<chart>>.selectorLabels" . | nindent 4 }}
    app.kubernetes.io/component: <<service>>
{{- end }}
"""

INGRESS_TEMPLATE = """{{- if and .Values.<<key>>.enabled .Values.<<key>>.ingress.enabled }}
apiVersion: networking.k8s.io/v1
kind: Ingress
metadata:
  name: {{ include "<<chart>>.fullname" . }}-<<service>>
  labels:
    {{- include "<<chart>>.labels" . | nindent 4 }}
    app.kubernetes.io/component: <<service>>
  {{- with .Values.<<key>>.ingress.annotations }}
  annotations:
    {{- toYaml . | nindent 4 }}
  {{- end }}
spec:
  {{- if .Values.<<key>>.ingress.className }}
  ingressClassName: {{ .Values.<<key>>.ingress.className }}
  {{- end }}
  {{- if .Values.<<key>>.ingress.tls }}
  tls:
    {{- range .Values.<<key>>.ingress.tls }}
    - hosts:
        {{- range .hosts }}
        - {{ . | quote }}
        {{- end }}
      secretName: {{ .secretName }}
    {{- end }}
  {{- end }}
  rules:
    {{- range .Values.<<key>>.ingress.hosts }}
    - host: {{ .host | quote }}
      http:
        paths:
          {{- range .paths }}
          - path: {{ .path }}
            pathType: {{ .pathType }}
            backend:
              service:
                name: {{ include "<<chart>>.fullname" $ }}-<<service>>
                port:
                  number: {{ $.Values.<<key>>.service.port }}
          {{- end }}
    {{- end }}
{{- end }}
"""


def _render(template: str, **values: str) -> str:
    """Fill <<name>> placeholders, leaving Helm's own {{ }} syntax untouched."""
    for name, value in values.items():
        template = template.replace(f"<<{name}>>", value)
    return template


def _dump(data: Dict[str, Any]) -> str:
    return yaml.dump(data, default_flow_style=False, sort_keys=False)


def to_chart_name(name: str) -> str:
    """Convert project name to a chart name."""
    return re.sub(r"[^a-z0-9-]", "-", name.lower())


def to_values_key(name: str) -> str:
    """
    Convert service name to a values.yaml key.

    Keys are referenced as .Values.<key> in templates, so every
    non-alphanumeric character is stripped.

    Raises:
        HelmGenerationError: If nothing usable is left
    """
    key = re.sub(r"[^a-zA-Z0-9]", "", name)
    if not key:
        raise HelmGenerationError(f"Service name '{name}' has no alphanumeric characters")
    return key


def _split_image(image: Optional[str]) -> Dict[str, str]:
    """Split repository and tag; a registry port before the last "/" is not a tag."""
    repository, tag = image or "", ""
    if ":" in repository.rsplit("/", 1)[-1]:
        repository, _, tag = repository.rpartition(":")
    return {
        "repository": repository or "nginx",
        "tag": tag or "latest",
        "pullPolicy": "IfNotPresent",
    }


def _service_port(name: str, service: Dict[str, Any]) -> int:
    ports = service.get("ports") or []
    if not ports:
        return DEFAULT_SERVICE_PORT

    mapping = PortMapping.parse(ports[0])
    if mapping is None:
        raise HelmGenerationError(f"Service '{name}' has an unreadable port: {ports[0]!r}")
    return mapping.container_port


def generate_chart(
    name: str,
    version: str = DEFAULT_CHART_VERSION,
    app_version: str = DEFAULT_APP_VERSION,
    description: Optional[str] = None,
) -> str:
    """Generate Chart.yaml content."""
    chart = {
        "apiVersion": "v2",
        "name": name,
        "description": description or f"Helm chart for {name}",
        "type": "application",
        "version": version,
        "appVersion": app_version,
        "keywords": ["docker-compose", "kubernetes", "deployment"],
        "maintainers": [
            {
                "name": "DevOps Team",
                "email": "devops@example.com",
            },
        ],
    }
    return _dump(chart)


def generate_values(document: Dict[str, Any]) -> str:
    """
    Generate values.yaml content, one top-level key per service.

    Args:
        document: Parsed compose document

    Returns:
        values.yaml text

    Raises:
        HelmGenerationError: If a service name or port cannot be used
    """
    values: Dict[str, Any] = {}

    for name, service in (document.get("services") or {}).items():
        service = service or {}
        deploy = service.get("deploy") or {}

        entry: Dict[str, Any] = {
            "enabled": True,
            "replicaCount": deploy.get("replicas") or 1,
            "image": _split_image(service.get("image")),
            "service": {
                "type": "ClusterIP",
                "port": _service_port(name, service),
            },
            "resources": {
                "requests": dict(DEFAULT_RESOURCES["requests"]),
                "limits": dict(DEFAULT_RESOURCES["limits"]),
            },
            "autoscaling": {
                "enabled": False,
                "minReplicas": 1,
                "maxReplicas": 10,
                "targetCPUUtilizationPercentage": 80,
            },
            "ingress": {
                "enabled": False,
                "className": "nginx",
                "annotations": {},
                "hosts": [
                    {
                        "host": f"{name}.example.com",
                        "paths": [
                            {
                                "path": "/",
                                "pathType": "Prefix",
                            },
                        ],
                    },
                ],
                "tls": [],
            },
        }

        if service.get("environment"):
            entry["env"] = parse_environment(service["environment"])

        values[to_values_key(name)] = entry

    values["global"] = {
        "storageClass": "standard",
    }

    return _dump(values)


def generate_templates(document: Dict[str, Any], chart_name: str) -> Dict[str, str]:
    """
    Generate template sources keyed by file name under templates/.

    Args:
        document: Parsed compose document
        chart_name: Sanitized chart name used by every include

    Returns:
        Dict of template file name to content
    """
    services = document.get("services") or {}
    templates = {
        "_helpers.tpl": _render(HELPERS_TEMPLATE, chart=chart_name),
    }

    notes = NOTES_HEADER + "Services deployed:\n"
    for name in services:
        notes += f"  - {name}\n"
    notes += "\nTo access your services:\n\n"
    for name in services:
        notes += _render(NOTES_SERVICE, chart=chart_name, key=to_values_key(name), service=name)
    templates["NOTES.txt"] = notes

    for name, service in services.items():
        service = service or {}
        fields = {"chart": chart_name, "key": to_values_key(name), "service": name}

        templates[f"{name}-deployment.yaml"] = _render(DEPLOYMENT_TEMPLATE, **fields)
        if service.get("ports"):
            templates[f"{name}-service.yaml"] = _render(SERVICE_TEMPLATE, **fields)
        templates[f"{name}-ingress.yaml"] = _render(INGRESS_TEMPLATE, **fields)

    return templates


def generate_helm_chart(
    project_name: str,
    document: Dict[str, Any],
    version: str = DEFAULT_CHART_VERSION,
    app_version: str = DEFAULT_APP_VERSION,
    description: Optional[str] = None,
) -> HelmChart:
    """
    Generate a complete Helm chart for a compose document.

    Args:
        project_name: Project name, sanitized into the chart name
        document: Parsed compose document
        version: Chart version
        app_version: Application version
        description: Chart description (default "Helm chart for <project>")

    Returns:
        HelmChart with Chart.yaml, values.yaml and templates

    Raises:
        HelmGenerationError: If values cannot be generated
    """
    chart_name = to_chart_name(project_name)
    chart = HelmChart(
        chart_yaml=generate_chart(
            chart_name,
            version,
            app_version,
            description or f"Helm chart for {project_name}",
        ),
        values_yaml=generate_values(document),
        templates=generate_templates(document, chart_name),
    )
    logger.debug("Generated Helm chart %s with %d templates", chart_name, len(chart.templates))
    return chart


def validate_helm_chart(chart: HelmChart) -> HelmValidation:
    """
    Lint a generated chart the way helm lint would, without Helm.

    Args:
        chart: Generated chart

    Returns:
        HelmValidation with errors and warnings
    """
    errors = []
    warnings = []

    try:
        chart_data = yaml.safe_load(chart.chart_yaml) or {}
        if not isinstance(chart_data, dict):
            errors.append("Chart.yaml: expected a mapping")
            chart_data = {}

        if not chart_data.get("apiVersion"):
            errors.append("Chart.yaml: apiVersion is required")
        if not chart_data.get("name"):
            errors.append("Chart.yaml: name is required")
        if not chart_data.get("version"):
            errors.append("Chart.yaml: version is required")
        if chart_data.get("apiVersion") != "v2":
            warnings.append("Chart.yaml: apiVersion should be v2 for Helm 3")

        yaml.safe_load(chart.values_yaml)
    except yaml.YAMLError as e:
        errors.append(f"YAML parsing error: {e}")

    for filename, content in chart.templates.items():
        if not content or not content.strip():
            warnings.append(f"Template {filename} is empty")

    if not any("deployment" in filename for filename in chart.templates):
        warnings.append("No deployment template found")

    if "_helpers.tpl" not in chart.templates:
        warnings.append("_helpers.tpl not found - recommended for label management")

    return HelmValidation(valid=len(errors) == 0, errors=errors, warnings=warnings)


def to_validation_result(validation: HelmValidation) -> ValidationResult:
    """
    Adapt a HelmValidation to the shared ValidationResult report.

    Args:
        validation: Result of validate_helm_chart

    Returns:
        ValidationResult scored 100 (clean), 80 (warnings only) or 0 (errors)
    """
    if validation.errors:
        score = 0
    elif validation.warnings:
        score = 80
    else:
        score = 100

    return ValidationResult(
        valid=validation.valid,
        score=score,
        errors=[
            ValidationIssue(severity=Severity.ERROR, resource="Helm Chart", kind="Chart", message=msg)
            for msg in validation.errors
        ],
        warnings=[
            ValidationIssue(severity=Severity.WARNING, resource="Helm Chart", kind="Chart", message=msg)
            for msg in validation.warnings
        ],
        summary=ValidationSummary(
            total_resources=1,
            valid_resources=1 if validation.valid else 0,
            error_count=len(validation.errors),
            warning_count=len(validation.warnings),
            info_count=0,
        ),
    )
