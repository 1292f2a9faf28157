"""Unit tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from proofage import config as config_module
from proofage.config import Settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    config_module.get_settings.cache_clear()
    yield
    config_module.get_settings.cache_clear()


class TestDefaults:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("PROOFAGE_PROOF__CALLBACK_POLICY", raising=False)
        settings = Settings()

        assert settings.server.port == 8787
        assert settings.assertion.ttl_seconds == 600
        assert settings.assertion.issuer == "proofage-rail"
        assert settings.proof.default_min_age == 18
        assert settings.proof.callback_policy == "reject"
        assert settings.ledger.prune_enabled is True

    def test_invalid_callback_policy(self):
        with pytest.raises(ValidationError):
            Settings(proof={"callback_policy": "ignore"})


class TestWeakSecrets:
    def test_development_defaults_are_flagged(self):
        assert Settings().weak_secret_warnings() == [
            "security.jwt_signing_key",
            "security.verifier_callback_secret",
        ]

    def test_short_signing_key_is_flagged(self):
        settings = Settings(
            security={"jwt_signing_key": "too-short", "verifier_callback_secret": "s3cret-value"}
        )
        assert settings.weak_secret_warnings() == ["security.jwt_signing_key"]

    def test_strong_secrets(self, settings: Settings):
        assert settings.weak_secret_warnings() == []


class TestSources:
    def test_env_overrides_nested(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PROOFAGE_PROOF__CALLBACK_POLICY", "overwrite")
        monkeypatch.setenv("PROOFAGE_ASSERTION__TTL_SECONDS", "120")

        settings = Settings()

        assert settings.proof.callback_policy == "overwrite"
        assert settings.assertion.ttl_seconds == 120

    def test_yaml_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        config_file = tmp_path / "proofage.yaml"
        config_file.write_text(
            "server:\n  port: 9000\nproof:\n  verify_url_base: https://verify.example/p\n"
        )
        monkeypatch.setenv("PROOFAGE_CONFIG_FILE", str(config_file))

        settings = config_module.get_settings()

        assert settings.server.port == 9000
        assert settings.proof.verify_url_base == "https://verify.example/p"

    def test_missing_file_falls_back(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PROOFAGE_CONFIG_FILE", str(tmp_path / "absent.yaml"))
        monkeypatch.chdir(tmp_path)

        assert config_module._load_config_file() == {}

    def test_settings_are_cached(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        assert config_module.get_settings() is config_module.get_settings()
