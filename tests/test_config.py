"""Tests for settings loading and validation."""

import os

import pytest

from tenant_migration.config import ENV_NAMES, MigrationConfig, load_env_file, normalize_domain
from tenant_migration.errors import ConfigError

FULL_ENV = {
    "SOURCE_DOMAIN": "https://source.eu.auth0.com/",
    "SOURCE_CLIENT_ID": "src-id",
    "SOURCE_CLIENT_SECRET": "src-secret",
    "SOURCE_CONNECTION_ID": "con_src",
    "DESTINATION_DOMAIN": "dest.eu.auth0.com",
    "DESTINATION_CLIENT_ID": "dst-id",
    "DESTINATION_CLIENT_SECRET": "dst-secret",
    "DESTINATION_CONNECTION_ID": "con_dst",
}


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES.values():
        # setenv first so the original value (or absence) is restored afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestMigrationConfig:
    def test_from_env(self):
        config = MigrationConfig.from_env(FULL_ENV)
        assert config.source_domain == "source.eu.auth0.com"
        assert config.dest_domain == "dest.eu.auth0.com"
        assert config.source_connection_id == "con_src"
        assert config.dest_client_secret == "dst-secret"

    def test_reports_every_missing_setting(self):
        env = dict(FULL_ENV)
        del env["SOURCE_CLIENT_SECRET"]
        env["DESTINATION_CONNECTION_ID"] = "   "
        with pytest.raises(ConfigError) as exc_info:
            MigrationConfig.from_env(env)
        message = str(exc_info.value)
        assert "SOURCE_CLIENT_SECRET" in message
        assert "DESTINATION_CONNECTION_ID" in message
        assert "SOURCE_DOMAIN" not in message

    def test_empty_environment(self):
        with pytest.raises(ConfigError) as exc_info:
            MigrationConfig.from_env({})
        for name in ENV_NAMES.values():
            assert name in str(exc_info.value)

    def test_invalid_domain(self):
        env = dict(FULL_ENV, DESTINATION_DOMAIN="dest.eu.auth0.com/api/v2")
        with pytest.raises(ConfigError, match="DESTINATION_DOMAIN"):
            MigrationConfig.from_env(env)

    def test_reads_process_environment(self, clean_env):
        for name, value in FULL_ENV.items():
            clean_env.setenv(name, value)
        assert MigrationConfig.from_env().dest_connection_id == "con_dst"

    def test_tenants(self):
        config = MigrationConfig.from_env(FULL_ENV)
        src = config.source_tenant()
        dst = config.destination_tenant()
        assert (src.domain, src.client_id, src.connection_id) == ("source.eu.auth0.com", "src-id", "con_src")
        assert (dst.domain, dst.client_secret, dst.connection_id) == ("dest.eu.auth0.com", "dst-secret", "con_dst")

    def test_repr_masks_secrets(self):
        config = MigrationConfig.from_env(FULL_ENV)
        assert "src-secret" not in repr(config)
        assert "dst-secret" not in repr(config)
        assert "src-secret" not in repr(config.source_tenant())
        assert "con_src" in repr(config)


@pytest.mark.parametrize("raw, expected", [
    ("tenant.auth0.com", "tenant.auth0.com"),
    ("https://tenant.auth0.com/", "tenant.auth0.com"),
    ("  HTTP://tenant.auth0.com  ", "tenant.auth0.com"),
])
def test_normalize_domain(raw, expected):
    assert normalize_domain(raw) == expected


class TestLoadEnvFile:
    def test_loads_file(self, tmp_path, clean_env):
        env_file = tmp_path / ".env"
        env_file.write_text("SOURCE_DOMAIN=from-file.auth0.com\nSOURCE_CLIENT_ID=file-id\n")
        clean_env.setenv("SOURCE_CLIENT_ID", "from-env")

        assert load_env_file(env_file) is True
        assert os.environ["SOURCE_DOMAIN"] == "from-file.auth0.com"
        assert os.environ["SOURCE_CLIENT_ID"] == "from-env"

    def test_missing_file_is_not_fatal(self, tmp_path, caplog):
        assert load_env_file(tmp_path / "nope.env") is False
        assert "could not be loaded" in caplog.text
