"""Tests for composeshift end-to-end conversion."""

import pytest
import yaml

from composeshift.pipeline import (
    STACK_FILE,
    convert_project,
    join_manifests,
    load_conversion_options,
)
from composeshift.types import ConversionOptions, ProxyType, ResourceProfile, TargetPlatform


@pytest.fixture
def compose_text():
    """web with a port, db with a named volume."""
    return """
version: "3.8"
services:
  web:
    image: nginx
    ports:
      - "80:80"
  db:
    image: postgres:15
    volumes:
      - pgdata:/var/lib/postgresql/data
volumes:
  pgdata:
"""


class TestConvertProject:
    """Tests for convert_project()."""

    def test_kubernetes_target(self, compose_text):
        bundle = convert_project(compose_text, project_name="shop")
        assert bundle.success is True
        assert bundle.errors == []
        assert sorted(f for f in bundle.files if f.startswith("kubernetes/")) == [
            "kubernetes/deployment-db.yaml",
            "kubernetes/deployment-web.yaml",
            "kubernetes/pvc-db-pgdata.yaml",
            "kubernetes/service-web.yaml",
        ]
        assert STACK_FILE not in bundle.files
        assert "helm/shop/Chart.yaml" in bundle.files
        assert "helm/shop/templates/web-deployment.yaml" in bundle.files
        assert set(bundle.validation) == {"kubernetes", "helm"}
        assert bundle.validation["kubernetes"].valid is True
        assert bundle.validation["helm"].score == 100

    def test_replica_defaults_differ(self):
        bundle = convert_project("services:\n  web:\n    image: nginx\n")
        assert "replicas: 3" in bundle.files["kubernetes/deployment-web.yaml"]
        assert "replicaCount: 1" in bundle.files["helm/app/values.yaml"]

    def test_swarm_target(self, compose_text):
        options = ConversionOptions(target_platform=TargetPlatform.SWARM)
        bundle = convert_project(compose_text, options)
        assert not any(f.startswith("kubernetes/") for f in bundle.files)
        stack = yaml.safe_load(bundle.files[STACK_FILE])
        assert stack["services"]["web"]["deploy"]["replicas"] == 3
        assert set(bundle.validation) == {"swarm", "helm"}
        assert bundle.validation["swarm"].valid is True

    def test_both_targets(self, compose_text):
        options = ConversionOptions(target_platform=TargetPlatform.BOTH)
        bundle = convert_project(compose_text, options)
        assert set(bundle.validation) == {"kubernetes", "swarm", "helm"}

    def test_optimized_stack(self, compose_text):
        options = ConversionOptions(target_platform=TargetPlatform.SWARM)
        bundle = convert_project(compose_text, options, optimize_stack=True)
        stack = yaml.safe_load(bundle.files[STACK_FILE])
        assert stack["services"]["web"]["stop_grace_period"] == "30s"

    def test_parse_error_stops(self):
        bundle = convert_project("services: [\n")
        assert bundle.success is False
        assert bundle.files == {}
        assert bundle.errors[0].startswith("YAML parsing error")

    def test_helm_error_is_collected(self):
        bundle = convert_project("services:\n  web:\n    image: nginx\n    ports: ['http:web']\n")
        assert bundle.success is False
        assert bundle.errors[0].startswith("Helm chart generation failed")
        assert "kubernetes/deployment-web.yaml" in bundle.files
        assert "helm" not in bundle.validation

    def test_warnings_collected(self):
        text = "version: '3.8'\nservices:\n  api:\n    build: ./api\n"
        options = ConversionOptions(target_platform=TargetPlatform.BOTH)
        bundle = convert_project(text, options)
        assert "Service 'api' has neither 'image' nor 'build' specified" not in bundle.warnings
        assert "Service 'api' has no image, using nginx:latest" in bundle.warnings
        assert any("not supported" in w for w in bundle.warnings)

    def test_traefik_proxy(self, compose_text):
        options = ConversionOptions(
            target_platform=TargetPlatform.BOTH,
            proxy_type=ProxyType.TRAEFIK,
            lets_encrypt_email="ops@example.com",
            custom_domains={"web": "shop.example.com"},
        )
        bundle = convert_project(compose_text, options)
        assert "proxy/traefik.yml" in bundle.files
        assert list(f for f in bundle.files if f.startswith("proxy/kubernetes/")) == [
            "proxy/kubernetes/ingressroute-web.yaml",
        ]
        route = yaml.safe_load(bundle.files["proxy/kubernetes/ingressroute-web.yaml"])
        assert route["spec"]["routes"][0]["match"] == "Host(`shop.example.com`)"
        assert route["spec"]["tls"] == {"certResolver": "letsencrypt"}

        compose = yaml.safe_load(bundle.files["proxy/docker-compose.traefik.yml"])
        assert "traefik" in compose["services"]
        assert "traefik.enable" in compose["services"]["web"]["labels"]

    def test_traefik_default_domain(self, compose_text):
        options = ConversionOptions(proxy_type=ProxyType.TRAEFIK)
        bundle = convert_project(compose_text, options)
        route = yaml.safe_load(bundle.files["proxy/kubernetes/ingressroute-web.yaml"])
        assert route["spec"]["routes"][0]["match"] == "Host(`web.example.com`)"
        assert "proxy/docker-compose.traefik.yml" not in bundle.files

    def test_route_targets_service_port(self):
        text = "services:\n  web:\n    image: nginx:1.25\n    ports: ['8080:80']\n"
        bundle = convert_project(text, ConversionOptions(proxy_type=ProxyType.TRAEFIK))
        route = yaml.safe_load(bundle.files["proxy/kubernetes/ingressroute-web.yaml"])
        service = yaml.safe_load(bundle.files["kubernetes/service-web.yaml"])
        route_service = route["spec"]["routes"][0]["services"][0]
        assert route_service == {"name": service["metadata"]["name"], "port": 8080}
        assert route_service["port"] in [p["port"] for p in service["spec"]["ports"]]

    def test_unsupported_proxy_warns(self, compose_text):
        bundle = convert_project(compose_text, ConversionOptions(proxy_type=ProxyType.NGINX))
        assert not any(f.startswith("proxy/") for f in bundle.files)
        assert "Proxy type 'nginx' is not supported yet, no proxy configuration generated" in bundle.warnings
        assert bundle.success is True

    def test_write(self, compose_text, tmp_path):
        bundle = convert_project(compose_text)
        written = bundle.write(str(tmp_path))
        assert len(written) == len(bundle.files)
        assert (tmp_path / "kubernetes" / "deployment-web.yaml").exists()
        assert (tmp_path / "helm" / "app" / "templates" / "_helpers.tpl").exists()

    def test_to_dict(self, compose_text):
        data = convert_project(compose_text).to_dict()
        assert data["success"] is True
        assert data["projectName"] == "app"
        assert data["files"] == sorted(data["files"])
        assert data["validation"]["helm"]["summary"]["totalResources"] == 1


class TestJoinManifests:
    def test_multi_document(self):
        text = join_manifests([{"kind": "A"}, {"kind": "B"}])
        assert text == "---\nkind: A\n---\nkind: B\n"
        assert [d["kind"] for d in yaml.safe_load_all(text)] == ["A", "B"]


class TestLoadConversionOptions:
    def test_load(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("targetPlatform: both\nresourceProfile: medium\nnamespace: shop\n")
        options = load_conversion_options(str(path))
        assert options.target_platform == TargetPlatform.BOTH
        assert options.resource_profile == ResourceProfile.MEDIUM
        assert options.namespace == "shop"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("")
        assert load_conversion_options(str(path)) == ConversionOptions()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_conversion_options(str(tmp_path / "nope.yaml"))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "options.yaml"
        path.write_text("- a\n")
        with pytest.raises(ValueError):
            load_conversion_options(str(path))
