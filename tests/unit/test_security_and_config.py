from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

import order_service.utils.security as security
from order_service.config import load_settings


def _request(headers):
    return SimpleNamespace(headers=headers)


def test_bearer_token_extraction():
    assert security.bearer_token(_request({"Authorization": "Bearer abc"})) == "abc"
    assert security.bearer_token(_request({"Authorization": "Basic abc"})) is None
    assert security.bearer_token(_request({})) is None

def test_determine_role_defaults_to_user():
    assert security.determine_role({"role": "Admin"}) == "admin"
    assert security.determine_role(None) == "user"

def test_get_current_user_keeps_token_for_propagation(settings, monkeypatch):
    supabase = MagicMock()
    supabase.auth.get_user.return_value = SimpleNamespace(
        user=SimpleNamespace(id="user-1", email="jane@example.com", user_metadata={"role": "seller"})
    )
    monkeypatch.setattr(security, "get_supabase", lambda s: supabase)

    user = security.get_current_user(_request({"Authorization": "Bearer user-jwt"}), settings)

    assert user["id"] == "user-1"
    assert user["role"] == "seller"
    assert user["token"] == "user-jwt"
    assert security.require_admin(user, settings) is user

def test_get_current_user_rejects_unknown_token(settings, monkeypatch):
    supabase = MagicMock()
    supabase.auth.get_user.side_effect = Exception("invalid JWT")
    monkeypatch.setattr(security, "get_supabase", lambda s: supabase)

    with pytest.raises(HTTPException) as exc:
        security.get_current_user(_request({"Authorization": "Bearer nope"}), settings)
    assert exc.value.status_code == 401

def test_require_admin_refuses_regular_user(settings):
    with pytest.raises(HTTPException) as exc:
        security.require_admin({"id": "u", "role": "user"}, settings)
    assert exc.value.status_code == 403


def test_load_settings_reads_and_normalizes_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "project.supabase.co/")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "'sk_test_quoted'")
    monkeypatch.setenv("PRODUCT_SERVICE_URL", "http://products:8003/")
    monkeypatch.setenv("SERVICE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("ADMIN_ROLES", "Admin, Manager")
    monkeypatch.setenv("SMTP_USER", "mailer@shop.test")
    monkeypatch.delenv("MAIL_FROM", raising=False)

    s = load_settings()

    assert s.supabase_url == "https://project.supabase.co"
    assert s.stripe_secret_key == "sk_test_quoted"
    assert s.product_service_url == "http://products:8003"
    assert s.service_timeout == 2.5
    assert s.admin_roles == ["admin", "manager"]
    assert s.mail_from == "mailer@shop.test"
    assert s.checkout_cancel_url.endswith("/cart?canceled=true")
