"""
Deterministic staff code tests.

Verifies:
- Codes are stable within a window and change across windows
- The previous window is accepted as grace; two windows back is not
- Codes are store-specific and secret-specific
"""

import importlib
from datetime import datetime, timedelta

import pytest

import cartcode
from cartcode import config as config_module, create_app
from cartcode.config import DEV_SECRET_KEY
from cartcode.services import staff_code_service
from cartcode.services.staff_code_service import StaffCodeSigner


# Exactly on a 10-minute boundary.
WINDOW_START = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture
def signer():
    return StaffCodeSigner("unit-test-secret", window_minutes=10)


class TestCodeGeneration:

    def test_six_digits(self, signer):
        code = signer.code_for(7, WINDOW_START)
        assert len(code) == 6
        assert code.isdigit()

    def test_stable_within_window(self, signer):
        assert signer.code_for(7, WINDOW_START) == signer.code_for(7, WINDOW_START + timedelta(minutes=9, seconds=59))

    def test_expires_at_window_end(self, signer):
        assert signer.expires_at(WINDOW_START + timedelta(minutes=3)) == WINDOW_START + timedelta(minutes=10)

    def test_differs_by_store_and_secret(self, signer):
        codes = {
            signer.code_for(7, WINDOW_START),
            signer.code_for(8, WINDOW_START),
            StaffCodeSigner("another-secret").code_for(7, WINDOW_START),
        }
        # Truncation to six digits makes collisions possible, just unlikely.
        assert len(codes) == 3

    def test_secret_required(self):
        with pytest.raises(ValueError):
            StaffCodeSigner("")


class TestVerification:

    def test_current_window(self, signer):
        code = signer.code_for(7, WINDOW_START)
        result = signer.verify(7, code, WINDOW_START + timedelta(minutes=5))
        assert result.valid is True
        assert result.expires_at == WINDOW_START + timedelta(minutes=10)

    def test_previous_window_is_grace(self, signer):
        code = signer.code_for(7, WINDOW_START)
        result = signer.verify(7, code, WINDOW_START + timedelta(minutes=15))
        assert result.valid is True
        # Reports the end of the window the code was minted in.
        assert result.expires_at == WINDOW_START + timedelta(minutes=10)

    def test_two_windows_back_rejected(self, signer):
        code = signer.code_for(7, WINDOW_START)
        assert signer.verify(7, code, WINDOW_START + timedelta(minutes=20)).valid is False

    def test_wrong_store_rejected(self, signer):
        code = signer.code_for(7, WINDOW_START)
        assert signer.verify(8, code, WINDOW_START).valid is False

    @pytest.mark.parametrize("code", ["", None, "   ", "abcdef"])
    def test_malformed_rejected(self, signer, code):
        assert signer.verify(7, code, WINDOW_START).valid is False

    def test_reusable_within_window(self, signer):
        # Stateless: nothing is consumed, so the same code verifies repeatedly.
        code = signer.code_for(7, WINDOW_START)
        assert all(signer.verify(7, code, WINDOW_START).valid for _ in range(3))


class TestAppWiring:

    def test_uses_configured_signer(self, app):
        current = staff_code_service.current_code(7, WINDOW_START)
        assert current["code"] == StaffCodeSigner("test-staff-code-secret").code_for(7, WINDOW_START)
        assert staff_code_service.verify_code(7, current["code"], WINDOW_START).valid is True

    def test_missing_secret_fails_app_creation(self):
        with pytest.raises(RuntimeError):
            create_app({
                'TESTING': True,
                'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
                'SECRET_KEY': '',
                'STAFF_CODE_SECRET': '',
            })


@pytest.fixture
def empty_env_config(monkeypatch):
    """Config as loaded from an environment with no secrets set."""
    for name in ("SECRET_KEY", "STAFF_CODE_SECRET", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    fresh = importlib.reload(config_module)
    monkeypatch.setattr(cartcode, "Config", fresh.Config)
    return fresh.Config


class TestSigningSecret:

    def test_empty_environment_fails_app_creation(self, empty_env_config):
        assert empty_env_config.SECRET_KEY == DEV_SECRET_KEY
        assert empty_env_config.STAFF_CODE_SECRET is None

        with pytest.raises(RuntimeError):
            create_app({'TESTING': True, 'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:'})

    def test_placeholder_staff_secret_rejected(self):
        with pytest.raises(RuntimeError):
            create_app({
                'TESTING': True,
                'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
                'SECRET_KEY': DEV_SECRET_KEY,
                'STAFF_CODE_SECRET': DEV_SECRET_KEY,
            })

    def test_falls_back_to_deployment_secret_key(self):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SECRET_KEY': 'deployment-specific-key',
            'STAFF_CODE_SECRET': None,
        })
        signer = app.extensions[staff_code_service.EXTENSION_KEY]
        assert signer.code_for(7, WINDOW_START) == StaffCodeSigner("deployment-specific-key").code_for(7, WINDOW_START)
