"""Tests for composeshift parser."""

import pytest

from composeshift.parser import (
    find_compose_file,
    load_compose_file,
    parse,
    parse_ports,
    parse_volumes,
    validate_service,
)


@pytest.fixture
def compose_text():
    """Two-service compose file."""
    return """
version: "3.8"
services:
  web:
    image: nginx:alpine
    ports:
      - "80:80"
      - 8443:443
    environment:
      - NGINX_HOST=example.com
    depends_on:
      - api
  api:
    build: ./api
    volumes:
      - data:/var/data
      - ./config:/app/config:ro
volumes:
  data:
networks:
  backend:
"""


class TestParse:
    """Tests for parse()."""

    def test_parse_success(self, compose_text):
        result = parse(compose_text)
        assert result.success is True
        assert result.error is None
        assert set(result.data["services"]) == {"web", "api"}

    def test_metadata(self, compose_text):
        metadata = parse(compose_text).metadata
        web = metadata.get_service("web")
        assert web.image == "nginx:alpine"
        assert [(p.host_port, p.container_port) for p in web.ports] == [(80, 80), (8443, 443)]
        assert web.environment_variables == {"NGINX_HOST": "example.com"}
        assert web.depends_on == ["api"]

        api = metadata.get_service("api")
        assert api.image is None
        assert [v.type for v in api.volumes] == ["volume", "bind"]

        assert metadata.volume_names == ["data"]
        assert metadata.network_names == ["backend"]

    def test_unquoted_port_stays_string(self):
        """8443:443 must not be read as a base-60 integer."""
        result = parse("services:\n  web:\n    image: nginx\n    ports:\n      - 22:22\n")
        assert result.data["services"]["web"]["ports"] == ["22:22"]

    def test_numeric_version_normalized(self):
        result = parse("version: 3.8\nservices:\n  web:\n    image: nginx\n")
        assert result.data["version"] == "3.8"

    def test_idempotent(self, compose_text):
        first = parse(compose_text)
        second = parse(compose_text)
        assert first.data == second.data
        assert first.metadata == second.metadata

    def test_yaml_error_reports_position(self):
        result = parse("services:\n  web:\n    image: [nginx\n")
        assert result.success is False
        assert result.error.startswith("YAML parsing error at line")
        assert "column" in result.error

    def test_not_an_object(self):
        result = parse("- a\n- b\n")
        assert result.success is False
        assert result.error == "Invalid YAML: Expected an object but got array"

    def test_missing_services(self):
        result = parse("version: '3.8'\n")
        assert result.success is False
        assert result.error.startswith("Validation failed:\n  1. ")
        assert "Field 'services': Required field is missing" in result.error

    def test_schema_type_violation(self):
        result = parse("services:\n  web:\n    image: 42\n")
        assert result.success is False
        assert "Field 'services.web.image': Expected string but got number" in result.error

    def test_invalid_service_name(self):
        result = parse("services:\n  'bad name':\n    image: nginx\n")
        assert result.success is False
        assert "must match" in result.error

    def test_empty_services_warns(self):
        result = parse("services: {}\n")
        assert result.success is True
        assert result.warnings == ["No services defined in Docker Compose file"]

    def test_missing_image_and_build_warns(self):
        result = parse("services:\n  web:\n    ports: ['80:80']\n")
        assert result.success is True
        assert result.warnings == ["Service 'web' has neither 'image' nor 'build' specified"]

    def test_unknown_keys_pass_through(self):
        result = parse("services:\n  web:\n    image: nginx\n    x-custom: 1\nx-anchors: {}\n")
        assert result.success is True
        assert result.data["services"]["web"]["x-custom"] == 1


class TestHelpers:
    """Tests for list parsing helpers."""

    def test_parse_ports_drops_unreadable(self):
        ports = parse_ports(["80:80", "nope", 3000])
        assert [p.container_port for p in ports] == [80, 3000]

    def test_parse_volumes_skips_anonymous(self):
        volumes = parse_volumes(["data:/data", "/anonymous"])
        assert len(volumes) == 1

    def test_validate_service(self):
        assert validate_service("web", {"image": "nginx"}) == (True, [])
        valid, errors = validate_service("web", {})
        assert valid is False
        assert errors == ["Service 'web' must have either 'image' or 'build' specified"]


class TestComposeFiles:
    """Tests for locating compose files on disk."""

    def test_find_in_directory(self, tmp_path):
        (tmp_path / "compose.yml").write_text("services: {}\n")
        assert find_compose_file(str(tmp_path)) == tmp_path / "compose.yml"

    def test_find_prefers_docker_compose_yaml(self, tmp_path):
        (tmp_path / "compose.yml").write_text("services: {}\n")
        (tmp_path / "docker-compose.yaml").write_text("services: {}\n")
        assert find_compose_file(str(tmp_path)).name == "docker-compose.yaml"

    def test_find_explicit_file(self, tmp_path):
        path = tmp_path / "stack.yaml"
        path.write_text("services: {}\n")
        assert find_compose_file(str(path)) == path

    def test_find_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            find_compose_file(str(tmp_path))

    def test_load_compose_file(self, tmp_path, compose_text):
        (tmp_path / "docker-compose.yml").write_text(compose_text)
        result = load_compose_file(str(tmp_path))
        assert result.success is True
        assert len(result.metadata.services) == 2
