"""Tests for composeshift Traefik configuration."""

import copy

import pytest
import yaml

from composeshift.traefik import (
    TraefikOptions,
    add_to_compose,
    generate_docker_labels,
    generate_dynamic_config,
    generate_ingress_route,
    generate_kubernetes_setup,
    generate_static_config,
    service_port,
    validate_static_config,
)


@pytest.fixture
def document():
    return {
        "services": {
            "web": {"image": "nginx", "ports": ["8080:80"], "labels": ["existing=1"]},
            "db": {"image": "postgres:15"},
        },
    }


class TestDockerLabels:
    def test_plain_http(self):
        labels = generate_docker_labels("web", "app.example.com", 80)
        assert labels == {
            "traefik.enable": "true",
            "traefik.http.routers.web.rule": "Host(`app.example.com`)",
            "traefik.http.routers.web.entrypoints": "web",
            "traefik.http.services.web-service.loadbalancer.server.port": "80",
        }

    def test_tls_with_redirect(self):
        labels = generate_docker_labels("web", "app.example.com", 80, enable_tls=True, cert_resolver="letsencrypt")
        assert labels["traefik.http.routers.web.entrypoints"] == "websecure"
        assert labels["traefik.http.routers.web.tls.certresolver"] == "letsencrypt"
        assert labels["traefik.http.routers.web-http.middlewares"] == "web-https-redirect"
        assert labels["traefik.http.middlewares.web-https-redirect.redirectscheme.scheme"] == "https"


class TestIngressRoute:
    def test_route(self):
        route = generate_ingress_route("My_Web", "app.example.com", 8080, namespace="prod")
        assert route["apiVersion"] == "traefik.io/v1alpha1"
        assert route["kind"] == "IngressRoute"
        assert route["metadata"]["name"] == "my-web-ingressroute"
        assert route["metadata"]["namespace"] == "prod"
        assert route["spec"]["entryPoints"] == ["web"]
        assert route["spec"]["routes"][0]["services"] == [{"name": "my-web", "port": 8080}]
        assert "tls" not in route["spec"]

    def test_tls(self):
        route = generate_ingress_route("web", "app.example.com", 80, enable_tls=True)
        assert route["spec"]["entryPoints"] == ["websecure"]
        assert route["spec"]["tls"] == {"certResolver": "letsencrypt"}

    def test_kubernetes_setup(self):
        files = generate_kubernetes_setup([("web", "app.example.com", 80)], "default")
        assert list(files) == ["ingressroute-web.yaml"]
        assert yaml.safe_load(files["ingressroute-web.yaml"])["kind"] == "IngressRoute"


class TestStaticConfig:
    def test_without_email(self):
        config = yaml.safe_load(generate_static_config())
        assert config["entryPoints"] == {"web": {"address": ":80"}, "websecure": {"address": ":443"}}
        assert config["certificatesResolvers"] == {}
        assert validate_static_config(config) == (True, [])

    def test_with_email(self):
        config = yaml.safe_load(generate_static_config(TraefikOptions(email="ops@example.com")))
        acme = config["certificatesResolvers"]["letsencrypt"]["acme"]
        assert acme["email"] == "ops@example.com"
        assert config["entryPoints"]["web"]["http"]["redirections"]["entryPoint"]["to"] == "websecure"
        assert validate_static_config(config) == (True, [])

    def test_validate_problems(self):
        config = {"certificatesResolvers": {"letsencrypt": {"acme": {}}}}
        valid, errors = validate_static_config(config)
        assert valid is False
        assert errors == [
            "Missing entryPoints configuration",
            "Missing providers configuration",
            "Let's Encrypt email is required",
            "ACME storage path is required",
        ]


class TestDynamicConfig:
    def test_routers(self):
        config = yaml.safe_load(generate_dynamic_config({"web": ("app.example.com", 80)}))
        assert config["http"]["routers"]["web"]["rule"] == "Host(`app.example.com`)"
        assert config["http"]["services"]["web"]["loadBalancer"]["servers"] == [{"url": "http://web:80"}]


class TestAddToCompose:
    def test_adds_service_and_labels(self, document):
        options = TraefikOptions(email="ops@example.com", domains={"web": "app.example.com"})
        compose = add_to_compose(document, options)

        traefik = compose["services"]["traefik"]
        assert traefik["image"] == "traefik:v2.10"
        assert "--certificatesresolvers.letsencrypt.acme.email=ops@example.com" in traefik["command"]

        labels = compose["services"]["web"]["labels"]
        assert labels["existing"] == "1"
        assert labels["traefik.http.routers.web.rule"] == "Host(`app.example.com`)"
        assert labels["traefik.http.services.web-service.loadbalancer.server.port"] == "80"
        assert labels["traefik.http.routers.web.tls"] == "true"
        assert "labels" not in compose["services"]["db"]

    def test_input_not_modified(self, document):
        original = copy.deepcopy(document)
        add_to_compose(document, TraefikOptions(domains={"web": "app.example.com"}))
        assert document == original

    def test_unknown_service_skipped(self, document):
        compose = add_to_compose(document, TraefikOptions(domains={"missing": "x.example.com"}))
        assert "missing" not in compose["services"]

    def test_service_port(self):
        assert service_port({"ports": ["8080:3000"]}) == 3000
        assert service_port({}) == 80

    def test_service_port_published(self):
        assert service_port({"ports": ["8080:3000"]}, published=True) == 8080
        assert service_port({}, published=True) == 80
