# ================================================================
# File     : config.py
# Purpose  : Configuration management for GrantScout
# Notes    : Handles initial creation, loading, and saving of config
# ================================================================

import pathlib
from core.utils import fncPrintMessage, fncEnsureFolder, fncReadJSON, fncWriteJSON, fncLoadEnv

DEFAULT_PERMISSION_TABLE_URL = (
    "https://raw.githubusercontent.com/AzureAD/MSIdentityTools/main/assets/aadconsentgrantpermissiontable.csv"
)


# ================================================================
# Function: fncHomeFolder
# Purpose : Base folder for config and reports
# ================================================================
def fncHomeFolder() -> pathlib.Path:
    return pathlib.Path.home() / ".grantscout"


# ================================================================
# Function: fncDefaultConfig
# Purpose : Return a default configuration dictionary
# Notes   : Called when config file does not exist
# ================================================================
def fncDefaultConfig() -> dict:
    return {
        "version": "1.0",
        "grantscout_home": str(fncHomeFolder()),
        "debug": False,
        "providers": {
            "entra": {
                "tenant_id": "",
                "client_id": "",
                "client_secret": "",
                "authority": "https://login.microsoftonline.com"
            }
        },
        "permission_table": {
            "path": "",
            "url": DEFAULT_PERMISSION_TABLE_URL
        },
        "graph": {
            "root": "https://graph.microsoft.com/v1.0"
        }
    }


# ================================================================
# Function: fncInitConfig
# Purpose : Create or load configuration file
# Notes   : Ensures base folder exists; returns full config dict
# ================================================================
def fncInitConfig(config_path: str = None) -> dict:
    path = pathlib.Path(config_path or fncHomeFolder() / "config.json")

    fncEnsureFolder(path.parent)

    if not path.exists():
        fncPrintMessage(f"No config found at {path}. Creating default...", "warn")
        cfg = fncDefaultConfig()
        fncWriteJSON(str(path), cfg)
        return fncApplyEnvOverrides(cfg)
    return fncLoadConfig(str(path))


# ================================================================
# Function: fncLoadConfig
# Purpose : Load configuration file and apply environment overrides
# Notes   : Missing sections are filled from the defaults
# ================================================================
def fncLoadConfig(config_path: str) -> dict:
    cfg = fncDefaultConfig()
    stored = fncReadJSON(config_path)
    for key, val in stored.items():
        if isinstance(val, dict) and isinstance(cfg.get(key), dict):
            for sub_key, sub_val in val.items():
                if isinstance(sub_val, dict) and isinstance(cfg[key].get(sub_key), dict):
                    cfg[key][sub_key].update(sub_val)
                else:
                    cfg[key][sub_key] = sub_val
        else:
            cfg[key] = val

    cfg = fncApplyEnvOverrides(cfg)
    fncPrintMessage(f"Loaded configuration from {config_path}", "debug")
    return cfg


# ================================================================
# Function: fncApplyEnvOverrides
# Purpose : Let environment variables win over the config file
# Notes   : Uses GRANTSCOUT_TENANT_ID, GRANTSCOUT_CLIENT_ID, etc.
# ================================================================
def fncApplyEnvOverrides(cfg: dict) -> dict:
    entra = cfg["providers"]["entra"]
    entra.update({
        "tenant_id": fncLoadEnv("GRANTSCOUT_TENANT_ID", entra.get("tenant_id")),
        "client_id": fncLoadEnv("GRANTSCOUT_CLIENT_ID", entra.get("client_id")),
        "client_secret": fncLoadEnv("GRANTSCOUT_CLIENT_SECRET", entra.get("client_secret")),
    })
    table = cfg["permission_table"]
    table["path"] = fncLoadEnv("GRANTSCOUT_PERMISSION_TABLE", table.get("path"))
    return cfg


# ================================================================
# Function: fncGetProviderConfig
# Purpose : Return config block for a specific provider
# ================================================================
def fncGetProviderConfig(cfg: dict, provider: str) -> dict:
    providers = cfg.get("providers", {})
    if provider not in providers:
        fncPrintMessage(f"Provider not found in config: {provider}", "warn")
        return {}
    return providers[provider]


# ================================================================
# Function: fncApplyCliOverrides
# Purpose : Apply command-line flags to the loaded config
# Notes   : Handles --debug and --permission-table
# ================================================================
def fncApplyCliOverrides(cfg: dict, args) -> dict:
    if getattr(args, "debug", None):
        cfg["debug"] = True
    table_path = getattr(args, "permission_table", None)
    if table_path:
        cfg.setdefault("permission_table", {})["path"] = str(table_path)
    return cfg


# ================================================================
# Function: fncIsDebug
# Purpose : Return whether debug mode is enabled in config
# ================================================================
def fncIsDebug(cfg: dict) -> bool:
    return bool(cfg.get("debug", False))
