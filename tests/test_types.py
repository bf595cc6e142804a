"""Tests for composeshift type definitions."""

import pytest

from composeshift.types import (
    ConversionOptions,
    HelmChart,
    KubernetesManifests,
    PortMapping,
    ProxyType,
    ResourceProfile,
    ServiceMetadata,
    Severity,
    TargetPlatform,
    ValidationIssue,
    ValidationResult,
    VolumeMount,
    extract_depends_on,
    parse_environment,
)


class TestPortMapping:
    """Tests for PortMapping parsing."""

    def test_parse_host_container(self):
        """Test parsing "8080:80" format."""
        port = PortMapping.parse("8080:80")
        assert port.host_port == 8080
        assert port.container_port == 80
        assert port.protocol == "tcp"

    def test_parse_with_ip(self):
        """Test parsing "127.0.0.1:8080:80" format."""
        port = PortMapping.parse("127.0.0.1:8080:80")
        assert port.host_port == 8080
        assert port.container_port == 80

    def test_parse_single_port(self):
        """Test parsing "80" format."""
        port = PortMapping.parse("80")
        assert port.host_port == 80
        assert port.container_port == 80

    def test_parse_with_protocol(self):
        """Test parsing "8080:80/udp" format."""
        port = PortMapping.parse("8080:80/udp")
        assert port.host_port == 8080
        assert port.container_port == 80
        assert port.protocol == "udp"

    def test_parse_int(self):
        """Test parsing integer port."""
        port = PortMapping.parse(3000)
        assert port.host_port == 3000
        assert port.container_port == 3000

    def test_parse_long_syntax(self):
        """Test parsing long-form port mapping."""
        port = PortMapping.parse({"target": 80, "published": 8080, "protocol": "udp"})
        assert port.host_port == 8080
        assert port.container_port == 80
        assert port.protocol == "udp"

    def test_parse_long_syntax_without_published(self):
        port = PortMapping.parse({"target": 5432})
        assert port.host_port == 5432
        assert port.container_port == 5432

    def test_parse_unreadable(self):
        """Non-numeric segments are rejected."""
        assert PortMapping.parse("abc:def") is None
        assert PortMapping.parse({"published": 80}) is None

    def test_to_dict(self):
        assert PortMapping.parse("8080:80").to_dict() == {
            "hostPort": 8080,
            "containerPort": 80,
            "protocol": "tcp",
        }


class TestVolumeMount:
    """Tests for VolumeMount parsing."""

    def test_parse_named_volume(self):
        vol = VolumeMount.parse("data:/var/lib/data")
        assert vol.source == "data"
        assert vol.target == "/var/lib/data"
        assert vol.read_only is False
        assert vol.type == "volume"

    def test_parse_bind_mount(self):
        vol = VolumeMount.parse("./config:/app/config:ro")
        assert vol.source == "./config"
        assert vol.target == "/app/config"
        assert vol.read_only is True
        assert vol.type == "bind"

    def test_parse_absolute_bind_mount(self):
        assert VolumeMount.parse("/srv/data:/data").type == "bind"

    def test_parse_without_target(self):
        """Anonymous volumes have no source/target pair and are skipped."""
        assert VolumeMount.parse("/data") is None

    def test_parse_long_syntax(self):
        vol = VolumeMount.parse({"type": "bind", "source": "./src", "target": "/app", "read_only": True})
        assert vol.type == "bind"
        assert vol.source == "./src"
        assert vol.read_only is True


class TestEnvironment:
    """Tests for environment flattening."""

    def test_list_form(self):
        env = parse_environment(["A=1", "B=x=y", "C="])
        assert env == {"A": "1", "B": "x=y", "C": ""}

    def test_list_form_later_duplicate_wins(self):
        assert parse_environment(["A=1", "A=2"]) == {"A": "2"}

    def test_mapping_form(self):
        env = parse_environment({"PORT": 8080, "DEBUG": True, "EMPTY": None})
        assert env == {"PORT": "8080", "DEBUG": "true", "EMPTY": ""}

    def test_empty(self):
        assert parse_environment(None) == {}
        assert parse_environment([]) == {}

    def test_depends_on_forms(self):
        assert extract_depends_on(["db", "cache"]) == ["db", "cache"]
        assert extract_depends_on({"db": {"condition": "service_healthy"}}) == ["db"]
        assert extract_depends_on(None) == []


class TestServiceMetadata:
    """Tests for ServiceMetadata.from_dict."""

    def test_from_dict(self):
        meta = ServiceMetadata.from_dict("api", {
            "image": "api:1.0",
            "ports": ["8080:80", "bad:port"],
            "volumes": ["data:/data"],
            "environment": ["KEY=value"],
            "depends_on": ["db"],
            "healthcheck": {"test": "true"},
            "deploy": {"replicas": 2},
        })
        assert meta.name == "api"
        assert meta.image == "api:1.0"
        assert len(meta.ports) == 1
        assert meta.volumes[0].source == "data"
        assert meta.environment_variables == {"KEY": "value"}
        assert meta.depends_on == ["db"]
        assert meta.has_health_check is True
        assert meta.replicas == 2

    def test_from_empty_dict(self):
        meta = ServiceMetadata.from_dict("web", None)
        assert meta.image is None
        assert meta.ports == []
        assert meta.replicas is None


class TestConversionOptions:
    """Tests for ConversionOptions."""

    def test_defaults(self):
        options = ConversionOptions()
        assert options.target_platform == TargetPlatform.KUBERNETES
        assert options.proxy_type == ProxyType.NONE
        assert options.add_health_checks is True
        assert options.add_resource_limits is True
        assert options.resource_profile == ResourceProfile.SMALL
        assert options.add_security is True
        assert options.namespace == "default"

    def test_from_dict_camel_case(self):
        options = ConversionOptions.from_dict({
            "targetPlatform": "both",
            "proxyType": "traefik",
            "addHealthChecks": False,
            "resourceProfile": "large",
            "letsEncryptEmail": "ops@example.com",
            "customDomains": {"web": "app.example.com"},
        })
        assert options.target_platform == TargetPlatform.BOTH
        assert options.proxy_type == ProxyType.TRAEFIK
        assert options.add_health_checks is False
        assert options.resource_profile == ResourceProfile.LARGE
        assert options.lets_encrypt_email == "ops@example.com"
        assert options.custom_domains == {"web": "app.example.com"}

    def test_from_dict_snake_case(self):
        options = ConversionOptions.from_dict({"target_platform": "swarm", "namespace": "prod"})
        assert options.target_platform == TargetPlatform.SWARM
        assert options.namespace == "prod"

    def test_from_dict_invalid_value(self):
        with pytest.raises(ValueError):
            ConversionOptions.from_dict({"targetPlatform": "nomad"})

    def test_effective_profile_custom_falls_back_to_small(self):
        options = ConversionOptions(resource_profile=ResourceProfile.CUSTOM)
        assert options.effective_profile() == ResourceProfile.SMALL
        assert ConversionOptions(resource_profile=None).effective_profile() == ResourceProfile.SMALL

    def test_targets(self):
        both = ConversionOptions(target_platform=TargetPlatform.BOTH)
        assert both.wants_kubernetes() and both.wants_swarm()
        swarm = ConversionOptions(target_platform=TargetPlatform.SWARM)
        assert not swarm.wants_kubernetes()
        assert swarm.wants_swarm()


class TestResults:
    """Tests for result containers."""

    def test_manifests_all_order(self):
        manifests = KubernetesManifests(
            deployments=[{"kind": "Deployment"}],
            services=[{"kind": "Service"}],
            config_maps=[{"kind": "ConfigMap"}],
            persistent_volume_claims=[{"kind": "PersistentVolumeClaim"}],
        )
        kinds = [m["kind"] for m in manifests.all()]
        assert kinds == ["Deployment", "Service", "ConfigMap", "PersistentVolumeClaim"]

    def test_helm_chart_files(self):
        chart = HelmChart(chart_yaml="a", values_yaml="b", templates={"x.yaml": "c"})
        assert chart.files() == {
            "Chart.yaml": "a",
            "values.yaml": "b",
            "templates/x.yaml": "c",
        }

    def test_validation_failure(self):
        issue = ValidationIssue(Severity.ERROR, "N/A", "N/A", "broken")
        result = ValidationResult.failure(issue, "fix it")
        assert result.valid is False
        assert result.score == 0
        assert result.summary.error_count == 1
        data = result.to_dict()
        assert data["errors"] == [
            {"severity": "error", "resource": "N/A", "kind": "N/A", "message": "broken"}
        ]
        assert data["suggestions"] == ["fix it"]
        assert data["summary"]["totalResources"] == 0
