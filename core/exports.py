# ================================================================
# File     : exports.py
# Purpose  : Handle export logic for GrantScout (CSV, JSON)
# Notes    : Called by GrantScout.py after module(s) finish
# ================================================================

import pathlib
from datetime import datetime, timezone

from core.utils import fncPrintMessage, fncEnsureFolder, fncExportCSV, fncWriteJSON

SUPPORTED_FORMATS = {"json", "csv"}


# ================================================================
# Function: fncExportList
# Purpose  : Flatten --export list-of-lists from argparse
# Notes    : Unknown formats are dropped with a warning
# ================================================================
def fncExportList(args_export) -> set:
    if not args_export:
        return set()
    chunks = args_export if isinstance(args_export, (list, tuple)) else [args_export]
    out = set()
    for chunk in chunks:
        items = chunk if isinstance(chunk, (list, tuple)) else [chunk]
        for item in items:
            if not isinstance(item, str):
                continue
            for part in item.replace(",", " ").split():
                out.add(part.strip().lower())

    unknown = out - SUPPORTED_FORMATS
    if unknown:
        fncPrintMessage(f"Ignoring unsupported export format(s): {', '.join(sorted(unknown))}", "warn")
    return out & SUPPORTED_FORMATS


# ================================================================
# Function: fncGetExportPath
# Purpose  : Build structured output path under ~/.grantscout/reports/
# ================================================================
def fncGetExportPath(module_name: str, root: pathlib.Path = None) -> pathlib.Path:
    if root is None:
        root = pathlib.Path.home() / ".grantscout" / "reports"
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    mod_slug = module_name.replace("/", "_").replace("\\", "_")
    return fncEnsureFolder(root / ts / mod_slug)


def _export_tables(out_dir: pathlib.Path, module_name: str, data: dict) -> None:
    headers = data.get("columns")
    for key, val in data.items():
        if isinstance(val, list) and val and isinstance(val[0], dict):
            row_headers = headers if headers and set(headers) == set(val[0].keys()) else None
            fncExportCSV(str(out_dir / f"{module_name}_{key}.csv"), val, headers=row_headers)


# ================================================================
# Function: fncExportSingleModule
# Purpose  : Handle all export formats for one module
# ================================================================
def fncExportSingleModule(module_name: str, data: dict, formats: set, root: pathlib.Path = None) -> pathlib.Path:
    out_dir = fncGetExportPath(module_name, root)

    if "json" in formats:
        fncWriteJSON(str(out_dir / f"{module_name}.json"), data)

    if "csv" in formats:
        _export_tables(out_dir, module_name, data)

    fncPrintMessage(f"Exports written → {out_dir}", "success")
    return out_dir


# ================================================================
# Function: fncExportMultiModule
# Purpose  : Handle all export formats when running multiple modules
# ================================================================
def fncExportMultiModule(results: dict, formats: set, root: pathlib.Path = None) -> pathlib.Path:
    out_dir = fncGetExportPath("ALL_MODULES", root)

    if "json" in formats:
        fncWriteJSON(str(out_dir / "all_modules.json"), results)

    if "csv" in formats:
        for mod, data in results.items():
            if isinstance(data, dict):
                _export_tables(fncEnsureFolder(out_dir / mod), mod, data)

    fncPrintMessage(f"Exports written → {out_dir}", "success")
    return out_dir
