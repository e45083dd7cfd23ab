"""Tests for YAML route rules and their matching."""
from __future__ import annotations

from pathlib import Path

import pytest

from tenantauth.authz.permissions import PermissionMode
from tenantauth.security.config import SecurityConfig, SecurityConfigModel, load_security_config
from tenantauth.settings import get_settings


def test_bundled_config_loads():
    config = load_security_config(get_settings().resolved_security_config_path())

    assert config.auth.provider == "dummy"
    assert config.match("/health", "GET").auth_required is False

    bookings = config.match("/bookings/12", "get")
    assert bookings.auth_required is True
    assert bookings.permissions == ("booking.read",)
    assert bookings.mode is PermissionMode.ALL

    assignable = config.match("/roles/assignable", "GET")
    assert assignable.mode is PermissionMode.ANY
    assert set(assignable.permissions) == {"role.read", "role.assign"}

    assert config.match("/roles/3/users/4", "DELETE").permissions == ("role.assign",)


def test_unmatched_route_falls_back_to_default():
    config = _config({"default": {"auth_required": True, "permissions": ["x.read"]}, "routes": []})

    rule = config.match("/anything", "POST")

    assert rule.auth_required is True
    assert rule.permissions == ("x.read",)


def test_method_must_match():
    config = _config({"routes": [{"path": "/bookings", "methods": ["POST"], "permissions": ["booking.create"]}]})

    assert config.match("/bookings", "POST").permissions == ("booking.create",)
    assert config.match("/bookings", "GET").permissions == ()


def test_exact_path_beats_template():
    config = _config(
        {
            "routes": [
                {"path": "/roles/{role_id}", "permissions": ["role.read"]},
                {"path": "/roles/assignable", "permissions": ["role.assign"]},
            ]
        }
    )

    assert config.match("/roles/assignable", "GET").permissions == ("role.assign",)
    assert config.match("/roles/7", "GET").permissions == ("role.read",)
    assert config.match("/roles/7/extra", "GET").permissions == ()


def test_permissions_imply_authentication_under_public_default():
    config = _config(
        {
            "default": {"auth_required": False},
            "routes": [
                {"path": "/open"},
                {"path": "/guarded", "permissions": ["a.b"]},
            ],
        }
    )

    assert config.match("/open", "GET").auth_required is False
    assert config.match("/guarded", "GET").auth_required is True


def test_missing_security_key(tmp_path: Path):
    path = tmp_path / "security.yaml"
    path.write_text("routes: []\n", encoding="utf-8")

    with pytest.raises(ValueError, match="security"):
        load_security_config(path)


def test_config_from_yaml_file(tmp_path: Path):
    path = tmp_path / "security.yaml"
    path.write_text(
        "security:\n"
        "  auth:\n"
        "    provider: jwt\n"
        "  routes:\n"
        "    - path: /reports\n"
        "      methods: [GET]\n"
        "      permissions: [report.view, report.export]\n"
        "      mode: ANY\n",
        encoding="utf-8",
    )

    config = load_security_config(path)

    assert config.auth.provider == "jwt"
    assert config.match("/reports", "GET").mode is PermissionMode.ANY


def _config(raw: dict) -> SecurityConfig:
    return SecurityConfig(SecurityConfigModel.model_validate(raw))
