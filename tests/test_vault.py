from types import SimpleNamespace

import pytest

from rfpengine.utils import vault
from rfpengine.utils.vault import KNOWN_SETTINGS, VaultClient


class FakeKV:
    def __init__(self, data=None, error=None):
        self.data = data or {}
        self.error = error
        self.calls = []

    def read_secret_version(self, path, mount_point):
        self.calls.append((mount_point, path))
        if self.error:
            raise self.error
        return {"data": {"data": dict(self.data)}}


class FakeHvacClient:
    def __init__(self, url):
        self.url = url
        self.token = None
        self.approle_logins = []
        self.kv = FakeKV()
        self.auth = SimpleNamespace(
            approle=SimpleNamespace(login=lambda **kw: self.approle_logins.append(kw))
        )
        self.secrets = SimpleNamespace(kv=SimpleNamespace(v2=self.kv))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    names = [n for n in KNOWN_SETTINGS if n != "rfpengine_log_dir"]
    for name in names + ["VAULT_ROLE_ID", "VAULT_SECRET_ID", "VAULT_TOKEN"]:
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(name.upper(), raising=False)


@pytest.fixture
def hvac_client(monkeypatch):
    """hvac.Client replaced by a fake; the created instance is recorded."""
    created = {}

    def _make(url):
        created["client"] = FakeHvacClient(url)
        return created["client"]

    monkeypatch.setattr(vault.hvac, "Client", _make)
    return created


class TestEnvironmentLookup:
    def test_known_defaults(self):
        settings = VaultClient(addr="")
        assert settings.get("db_type") == "mock"
        assert settings.get("postgres_url") == ""
        assert settings.get("llm_model") == "gemini-2.5-flash"
        assert settings.get("groq_model") == "llama-3.1-8b-instant"

    def test_upper_case_env(self, monkeypatch):
        monkeypatch.setenv("DB_TYPE", "postgres")
        assert VaultClient(addr="").get("db_type") == "postgres"

    def test_lower_case_env(self, monkeypatch):
        monkeypatch.setenv("groq_model", "llama-3.3-70b-versatile")
        assert VaultClient(addr="").get("groq_model") == "llama-3.3-70b-versatile"

    def test_empty_env_uses_default(self, monkeypatch):
        monkeypatch.setenv("LLM_MODEL", "")
        assert VaultClient(addr="").get("llm_model") == "gemini-2.5-flash"

    def test_caller_default_beats_known_default(self):
        assert VaultClient(addr="").get("db_type", default="postgres") == "postgres"

    def test_unknown_key_raises(self):
        with pytest.raises(KeyError):
            VaultClient(addr="").get("no_such_setting")

    def test_unknown_key_with_default(self):
        assert VaultClient(addr="").get("no_such_setting", default="x") == "x"


class TestVault:
    def test_no_addr_never_builds_client(self, monkeypatch):
        def _fail(url):
            raise AssertionError("hvac.Client should not be created")

        monkeypatch.setattr(vault.hvac, "Client", _fail)
        assert VaultClient(addr="").values == {}

    def test_token_auth_reads_env_path(self, monkeypatch, hvac_client):
        monkeypatch.setenv("VAULT_TOKEN", "t0k")
        settings = VaultClient(addr="https://vault.local", env="prod")
        assert settings.values == {}

        client = hvac_client["client"]
        assert client.url == "https://vault.local"
        assert client.token == "t0k"
        assert client.kv.calls == [("secret", "rfpengine/prod")]

    def test_approle_auth(self, monkeypatch, hvac_client):
        monkeypatch.setenv("VAULT_ROLE_ID", "role")
        monkeypatch.setenv("VAULT_SECRET_ID", "sid")
        VaultClient(addr="https://vault.local").values

        assert hvac_client["client"].approle_logins == [
            {"role_id": "role", "secret_id": "sid"}
        ]

    def test_no_credentials_skips_read(self, hvac_client):
        assert VaultClient(addr="https://vault.local").values == {}
        assert hvac_client["client"].kv.calls == []

    def test_vault_value_wins_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "from-env")
        settings = VaultClient(addr="https://vault.local")
        kv = FakeKV({"GEMINI_API_KEY": "from-vault"})
        client = FakeHvacClient("x")
        client.secrets.kv.v2 = kv
        monkeypatch.setattr(settings, "_login", lambda: client)

        assert settings.get("gemini_api_key") == "from-vault"
        assert settings.get("Gemini_Api_Key") == "from-vault"

    def test_read_failure_falls_back_to_env(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_URL", "postgresql://localhost/rfp")
        client = FakeHvacClient("x")
        client.secrets.kv.v2 = FakeKV(error=RuntimeError("permission denied"))
        settings = VaultClient(addr="https://vault.local")
        monkeypatch.setattr(settings, "_login", lambda: client)

        assert settings.get("postgres_url") == "postgresql://localhost/rfp"
        assert settings.get("db_type") == "mock"

    def test_values_cached_until_refresh(self, monkeypatch):
        kv = FakeKV({"llm_model": "gemini-2.5-pro"})
        client = FakeHvacClient("x")
        client.secrets.kv.v2 = kv
        settings = VaultClient(addr="https://vault.local")
        monkeypatch.setattr(settings, "_login", lambda: client)

        assert settings.get("llm_model") == "gemini-2.5-pro"
        settings.get("llm_model")
        assert len(kv.calls) == 1

        kv.data = {"llm_model": "gemini-2.5-flash-lite"}
        settings.refresh()
        assert settings.get("llm_model") == "gemini-2.5-flash-lite"
        assert len(kv.calls) == 2
