"""Tests for the compose structural schema."""

from composeshift.schema import json_type, validate_compose


class TestValidateCompose:
    """Tests for validate_compose()."""

    def test_valid_document(self):
        data = {
            "version": "3.8",
            "services": {
                "web": {
                    "image": "nginx",
                    "ports": ["80:80", 443, {"target": 8080, "published": "8080"}],
                    "environment": {"A": "1", "B": 2, "C": None},
                    "depends_on": {"db": {"condition": "service_healthy"}},
                    "deploy": {"replicas": 2, "resources": {"limits": {"cpus": 0.5}}},
                },
                "db": {"image": "postgres:15"},
            },
            "volumes": {"data": None},
        }
        assert validate_compose(data) == []

    def test_required_services(self):
        assert validate_compose({}) == ["Field 'services': Required field is missing"]

    def test_build_requires_context(self):
        errors = validate_compose({"services": {"web": {"build": {"dockerfile": "Dockerfile"}}}})
        assert errors == [
            "Field 'services.web.build': Invalid format. Please check the Docker Compose specification"
        ]

    def test_restart_enum(self):
        errors = validate_compose({"services": {"web": {"image": "x", "restart": "sometimes"}}})
        assert len(errors) == 1
        assert errors[0].startswith("Field 'services.web.restart': ")

    def test_negative_replicas(self):
        errors = validate_compose({"services": {"web": {"image": "x", "deploy": {"replicas": -1}}}})
        assert len(errors) == 1
        assert errors[0].startswith("Field 'services.web.deploy.replicas': ")

    def test_errors_are_sorted(self):
        errors = validate_compose({
            "services": {
                "b": {"image": 1},
                "a": {"image": 2},
            },
        })
        assert errors == [
            "Field 'services.a.image': Expected string but got number",
            "Field 'services.b.image': Expected string but got number",
        ]


class TestJsonType:
    def test_names(self):
        assert json_type(None) == "null"
        assert json_type(True) == "boolean"
        assert json_type(1) == "number"
        assert json_type(1.5) == "number"
        assert json_type("x") == "string"
        assert json_type([]) == "array"
        assert json_type({}) == "object"
