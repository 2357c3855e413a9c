import json
from types import SimpleNamespace

from core import config
from core.config import (
    DEFAULT_PERMISSION_TABLE_URL,
    fncApplyCliOverrides,
    fncGetProviderConfig,
    fncInitConfig,
    fncLoadConfig,
)


def test_init_creates_default_config(tmp_path):
    path = tmp_path / "cfg" / "config.json"
    cfg = fncInitConfig(str(path))

    assert path.exists()
    assert cfg["permission_table"]["url"] == DEFAULT_PERMISSION_TABLE_URL
    assert cfg["providers"]["entra"]["tenant_id"] == ""


def test_default_location_is_under_home():
    fncInitConfig()
    assert (config.fncHomeFolder() / "config.json").exists()


def test_load_fills_missing_sections(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"providers": {"entra": {"tenant_id": "contoso"}}, "debug": True}), encoding="utf-8")

    cfg = fncLoadConfig(str(path))

    assert cfg["debug"] is True
    assert cfg["providers"]["entra"]["tenant_id"] == "contoso"
    assert cfg["providers"]["entra"]["authority"] == "https://login.microsoftonline.com"
    assert cfg["graph"]["root"] == "https://graph.microsoft.com/v1.0"


def test_unreadable_config_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    cfg = fncLoadConfig(str(path))
    assert cfg["permission_table"]["path"] == ""


def test_environment_wins_over_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"providers": {"entra": {"client_id": "from-file"}}}), encoding="utf-8")
    monkeypatch.setenv("GRANTSCOUT_CLIENT_ID", "'from-env'")
    monkeypatch.setenv("GRANTSCOUT_PERMISSION_TABLE", "/tmp/table.csv")

    cfg = fncLoadConfig(str(path))

    assert cfg["providers"]["entra"]["client_id"] == "from-env"
    assert cfg["permission_table"]["path"] == "/tmp/table.csv"


def test_cli_overrides(tmp_path):
    cfg = fncInitConfig(str(tmp_path / "config.json"))
    cfg = fncApplyCliOverrides(cfg, SimpleNamespace(debug=True, permission_table="local.csv"))

    assert cfg["debug"] is True
    assert cfg["permission_table"]["path"] == "local.csv"


def test_unknown_provider_config(tmp_path):
    cfg = fncInitConfig(str(tmp_path / "config.json"))
    assert fncGetProviderConfig(cfg, "aws") == {}
    assert "client_secret" in fncGetProviderConfig(cfg, "entra")

