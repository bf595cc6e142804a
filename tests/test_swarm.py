"""Tests for composeshift Docker Swarm stack generation."""

import copy

import pytest
import yaml

from composeshift.swarm import (
    add_security_best_practices,
    convert,
    convert_with_optimizations,
    optimize_for_production,
    validate_service,
)
from composeshift.types import ConversionOptions, ResourceProfile


@pytest.fixture
def document():
    return {
        "version": "3.8",
        "services": {
            "web": {
                "image": "nginx:1.25",
                "ports": ["8080:80"],
                "restart": "always",
            },
            "worker": {
                "image": "worker:1.0",
                "deploy": {"replicas": 5},
            },
        },
    }


def load(result):
    return yaml.safe_load(result.yaml)


class TestConvert:
    """Tests for convert()."""

    def test_deploy_defaults(self, document):
        stack = load(convert(document))
        deploy = stack["services"]["web"]["deploy"]
        assert deploy["replicas"] == 3
        assert deploy["placement"] == {"constraints": ["node.role == worker"]}
        assert deploy["restart_policy"] == {
            "condition": "on-failure",
            "delay": "5s",
            "max_attempts": 3,
            "window": "120s",
        }
        assert deploy["update_config"]["order"] == "start-first"
        assert deploy["rollback_config"] == {"parallelism": 0, "order": "stop-first"}
        assert deploy["labels"] == {}
        assert deploy["resources"] == {
            "limits": {"cpus": "0.50", "memory": "512M"},
            "reservations": {"cpus": "0.10", "memory": "128M"},
        }

    def test_existing_replicas_kept(self, document):
        stack = load(convert(document))
        assert stack["services"]["worker"]["deploy"]["replicas"] == 5

    def test_resource_profile(self, document):
        stack = load(convert(document, ConversionOptions(resource_profile=ResourceProfile.MEDIUM)))
        assert stack["services"]["web"]["deploy"]["resources"]["limits"] == {"cpus": "1.00", "memory": "1G"}

    def test_resources_overwritten(self, document):
        document["services"]["web"]["deploy"] = {"resources": {"limits": {"cpus": "4"}}}
        stack = load(convert(document))
        assert stack["services"]["web"]["deploy"]["resources"]["limits"]["cpus"] == "0.50"

    def test_resources_disabled(self, document):
        stack = load(convert(document, ConversionOptions(add_resource_limits=False)))
        assert "resources" not in stack["services"]["web"]["deploy"]

    def test_healthcheck(self, document):
        stack = load(convert(document))
        assert stack["services"]["web"]["healthcheck"] == {
            "test": ["CMD-SHELL", "curl -f http://localhost:80/health || exit 1"],
            "interval": "30s",
            "timeout": "10s",
            "retries": 3,
            "start_period": "40s",
        }
        assert "localhost:80/" in stack["services"]["worker"]["healthcheck"]["test"][1]

    def test_existing_healthcheck_kept(self, document):
        document["services"]["web"]["healthcheck"] = {"test": ["CMD", "true"]}
        stack = load(convert(document))
        assert stack["services"]["web"]["healthcheck"] == {"test": ["CMD", "true"]}

    def test_default_network(self, document):
        stack = load(convert(document))
        assert stack["networks"] == {"default": {"driver": "overlay", "attachable": True}}

    def test_existing_networks_become_overlay(self, document):
        document["networks"] = {"backend": None, "frontend": {"driver": "bridge"}}
        stack = load(convert(document))
        assert stack["networks"]["backend"] == {"driver": "overlay", "attachable": True}
        assert stack["networks"]["frontend"] == {"driver": "bridge", "attachable": True}

    def test_version_kept(self, document):
        result = convert(document)
        assert result.warnings == []
        assert load(result)["version"] == "3.8"

    def test_old_version_upgraded(self, document):
        document["version"] = "2.4"
        result = convert(document)
        assert load(result)["version"] == "3.8"
        assert result.warnings == ["Updated version to 3.8 for Docker Swarm compatibility"]

    def test_missing_version_upgraded(self, document):
        del document["version"]
        result = convert(document)
        assert load(result)["version"] == "3.8"

    def test_build_is_removed(self, document):
        document["services"]["api"] = {"image": "api:1.0", "build": {"context": "./api"}}
        result = convert(document)

        build_warnings = [w for w in result.warnings if "not supported" in w]
        assert len(build_warnings) == 1
        assert "'api'" in build_warnings[0]
        assert result.warnings == build_warnings
        assert "build" not in load(result)["services"]["api"]

    def test_missing_image_warns(self, document):
        document["services"]["api"] = {"build": "./api"}
        result = convert(document)
        assert any("'api' is missing 'image'" in w for w in result.warnings)

    def test_input_not_modified(self, document):
        original = copy.deepcopy(document)
        convert(document)
        assert document == original


class TestValidateService:
    def test_valid(self):
        assert validate_service("web", {"image": "nginx"}) == (True, [])

    def test_all_problems(self):
        valid, errors = validate_service("web", {
            "build": ".",
            "container_name": "web",
            "links": ["db"],
        })
        assert valid is False
        assert len(errors) == 4
        assert errors[0] == "Service 'web' must have 'image' field for Docker Stack deployment"


class TestOptimizations:
    def test_security_best_practices(self):
        service = {"image": "x"}
        add_security_best_practices(service)
        assert service["tmpfs"] == ["/tmp", "/run"]
        assert service["security_opt"] == ["no-new-privileges:true"]

    def test_optimize_for_production(self):
        service = {"image": "x", "restart": "always"}
        optimize_for_production(service)
        assert service["logging"] == {
            "driver": "json-file",
            "options": {"max-size": "10m", "max-file": "3"},
        }
        assert service["stop_grace_period"] == "30s"
        assert "restart" not in service

    def test_convert_with_optimizations(self, document):
        result = convert_with_optimizations(document)
        assert result.success is True
        web = load(result)["services"]["web"]
        assert "restart" not in web
        assert web["stop_grace_period"] == "30s"
        assert web["security_opt"] == ["no-new-privileges:true"]

    def test_convert_with_optimizations_without_security(self, document):
        result = convert_with_optimizations(document, ConversionOptions(add_security=False))
        assert "security_opt" not in load(result)["services"]["web"]
