# ================================================================
# File     : utils.py
# Purpose  : Common helpers for GrantScout (console, files, data)
# Notes    : British English; colour console output via colorama
# ================================================================

import os
import json
import csv
import time
import uuid
import random
import pathlib
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from colorama import Fore, Style, init as _colorama_init
from tabulate import tabulate

_colorama_init(autoreset=True)

DEBUG_ENABLED = False

# ================================================================
# Function: fncSetDebug
# Purpose : Globally enable/disable debug output
# Notes   : Called from main after parsing --debug
# ================================================================
def fncSetDebug(enabled: bool) -> None:
    global DEBUG_ENABLED
    DEBUG_ENABLED = bool(enabled)


# ================================================================
# Function: fncPrintMessage
# Purpose : Standardised console output with levels and colours
# Notes   : Levels: info, warn, error, success, debug
# ================================================================
def fncPrintMessage(message: str, level: str = "info") -> None:
    if level == "debug" and not DEBUG_ENABLED:
        return
    colours = {
        "info": Fore.CYAN,
        "warn": Fore.YELLOW,
        "error": Fore.RED,
        "success": Fore.GREEN,
        "debug": Fore.MAGENTA
    }
    prefix = {
        "info": "[•]",
        "warn": "[!]",
        "error": "[✗]",
        "success": "[✓]",
        "debug": "[∆]"
    }
    colour = colours.get(level, "")
    mark = prefix.get(level, "[ ]")
    print(f"{colour}{mark} {message}{Style.RESET_ALL}")


# ================================================================
# Function: fncDisplayBanner
# Purpose : Display GrantScout ASCII banner in rainbow colours
# ================================================================
def fncDisplayBanner(version: str = "v1.0"):
    banner_lines = [
        "  ____                 _   ____                  _   ",
        " / ___|_ __ __ _ _ __ | |_/ ___|  ___ ___  _   _| |_ ",
        "| |  _| '__/ _` | '_ \\| __\\___ \\ / __/ _ \\| | | | __|",
        "| |_| | | | (_| | | | | |_ ___) | (_| (_) | |_| | |_ ",
        " \\____|_|  \\__,_|_| |_|\\__|____/ \\___\\___/ \\__,_|\\__|",
    ]

    colours = [Fore.RED, Fore.YELLOW, Fore.GREEN, Fore.BLUE]

    def rainbow(text: str) -> str:
        """Cycle through colours for a rainbow effect"""
        out = ""
        for i, ch in enumerate(text):
            out += colours[i % len(colours)] + ch
        return out + Style.RESET_ALL

    print("\n")
    for line in banner_lines:
        print(rainbow(line))

    print(f"{Fore.CYAN}\nGrantScout {version} — 'Who said yes to what, and how bad is it?'{Style.RESET_ALL}\n")


# ================================================================
# Function: fncBlurb
# Purpose : Display a short blurb describing current action
# ================================================================
def fncBlurb(action: str, flavour: str = None):
    blurbs = {
        "entra": [
            "Counting every consent ever clicked in your Entra tenant…",
            "Following the oauth2PermissionGrants trail…",
            "Asking each service principal what it was allowed to do…"
        ],
        "generic": [
            "Preparing the clipboard…",
            "Warming up the auditor…"
        ]
    }

    flavour_text = flavour or random.choice(blurbs.get(action, blurbs["generic"]))
    fncPrintMessage(flavour_text, "info")

# ================================================================
# Function: fncEnsureFolder
# Purpose : Create a folder if it does not exist
# Notes   : Returns pathlib.Path object
# ================================================================
def fncEnsureFolder(path: str) -> pathlib.Path:
    p = pathlib.Path(path).expanduser().resolve()
    p.mkdir(parents=True, exist_ok=True)
    return p


# ================================================================
# Function: fncLoadEnv
# Purpose : Read environment variable with default
# Notes   : Strips quotes; returns default if empty
# ================================================================
def fncLoadEnv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name) or default
    if isinstance(val, str):
        return val.strip().strip('"').strip("'")
    return val


# ================================================================
# Function: fncReadJSON
# Purpose : Load JSON from file safely
# Notes   : Returns {} on failure when safe=True
# ================================================================
def fncReadJSON(path: str, safe: bool = True) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as ex:
        if safe:
            fncPrintMessage(f"Could not read JSON '{path}': {ex}", "warn")
            return {}
        raise


# ================================================================
# Function: fncWriteJSON
# Purpose : Write data to JSON with nice formatting
# Notes   : Ensures parent folder exists; UTF-8; 2-space indent
# ================================================================
def fncWriteJSON(path: str, data: Any) -> None:
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    fncPrintMessage(f"Saved JSON → {p}", "success")


# ================================================================
# Function: fncExportCSV
# Purpose : Save list[dict] to CSV
# Notes   : Dict rows keep first-seen key order unless headers given
# ================================================================
def fncExportCSV(path: str, rows: Iterable[Dict[str, Any]], headers: Optional[List[str]] = None) -> None:
    rows = list(rows)
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if not rows:
        with open(p, "w", newline="", encoding="utf-8") as f:
            pass
        fncPrintMessage(f"Created empty CSV → {p}", "warn")
        return

    if not headers:
        headers = []
        for r in rows:
            for k in r.keys():
                if k not in headers:
                    headers.append(k)
    with open(p, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=headers)
        w.writeheader()
        for r in rows:
            w.writerow({k: r.get(k, "") for k in headers})

    fncPrintMessage(f"Saved CSV → {p}", "success")


# ================================================================
# Function: fncRetry
# Purpose : Simple retry wrapper with backoff
# Notes   : should_retry(ex) -> False stops early and re-raises
# ================================================================
def fncRetry(
    fn,
    attempts: int = 3,
    backoff: float = 1.5,
    exceptions: Tuple = (Exception,),
    should_retry: Optional[Callable[[Exception], bool]] = None,
):
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except exceptions as ex:
            if should_retry is not None and not should_retry(ex):
                raise
            if attempt < attempts:
                sleep_for = backoff ** (attempt - 1)
                fncPrintMessage(f"Attempt {attempt}/{attempts} failed: {ex}. Retrying in {sleep_for:.1f}s…", "warn")
                time.sleep(sleep_for)
            else:
                fncPrintMessage(f"All {attempts} attempts failed: {ex}", "error")
                raise


# ================================================================
# Function: fncToTable
# Purpose : Render rows as a table string
# Notes   : Rows are dicts; keys of the first row become headers
# ================================================================
def fncToTable(rows: Iterable[Dict[str, Any]], headers: Optional[List[str]] = None, max_rows: Optional[int] = None) -> str:
    rows = list(rows)
    if not rows:
        return "(no data)"

    truncated = bool(max_rows) and len(rows) > max_rows
    if truncated:
        rows = rows[:max_rows]

    hdrs = headers or list(rows[0].keys())
    table_rows = [[r.get(h, "") for h in hdrs] for r in rows]

    if truncated:
        table_rows.append(["…"] * len(hdrs))
    return tabulate(table_rows, headers=hdrs, tablefmt="github")


# ================================================================
# Function: fncMask
# Purpose : Mask sensitive strings (client secrets, tokens)
# Notes   : Keeps start/end visible; handles short strings
# ================================================================
def fncMask(value: Optional[str], show: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= show * 2:
        return "*" * len(value)
    return f"{value[:show]}{'*' * (len(value) - (show*2))}{value[-show:]}"


# ================================================================
# Function: fncNewRunId
# Purpose : Generate a short unique run identifier
# Notes   : Useful for correlating logs and outputs
# ================================================================
def fncNewRunId(prefix: str = "run") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"
