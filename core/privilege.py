# ================================================================
# File     : core/privilege.py
# Purpose  : Permission table loading and privilege classification
# Notes    : Lookups are case-insensitive. Order of precedence:
#            exact permission -> permission root -> Application
#            write heuristic -> Unranked.
# ================================================================

import csv
import io
import pathlib
from typing import Dict, Iterable, List, Optional, Tuple

import requests

from core.config import DEFAULT_PERMISSION_TABLE_URL
from core.models import (
    GRANT_TYPE_APPLICATION,
    GRANT_TYPE_DELEGATED,
    PERMISSION_TYPE_ALL_PRINCIPALS,
    PERMISSION_TYPE_APPLICATION,
    PERMISSION_TYPE_PRINCIPAL,
    PRIVILEGE_HIGH,
    PRIVILEGE_MEDIUM,
    PRIVILEGE_UNRANKED,
    GrantRecord,
    PermissionTableRow,
)
from core.utils import fncPrintMessage

REQUIRED_COLUMNS = ("Type", "Permission", "Privilege")
FETCH_TIMEOUT = 30

_GRANT_TYPES = {
    PERMISSION_TYPE_ALL_PRINCIPALS: GRANT_TYPE_DELEGATED,
    PERMISSION_TYPE_PRINCIPAL: GRANT_TYPE_DELEGATED,
    PERMISSION_TYPE_APPLICATION: GRANT_TYPE_APPLICATION,
}


class PermissionTableError(Exception):
    """The permission table could not be read, fetched or parsed."""


class PermissionTable:
    """Read-only (permission, grant type) -> privilege lookup. First row wins on duplicates."""

    def __init__(self, rows: Iterable[PermissionTableRow], source: str = ""):
        self.source = source
        self._index: Dict[Tuple[str, str], PermissionTableRow] = {}
        ordered: List[PermissionTableRow] = []
        for row in rows:
            key = (row.permission.lower(), row.grant_type.lower())
            if key in self._index:
                continue
            self._index[key] = row
            ordered.append(row)
        self.rows: Tuple[PermissionTableRow, ...] = tuple(ordered)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def lookup(self, permission: str, grant_type: Optional[str]) -> Optional[str]:
        if not permission or not grant_type:
            return None
        row = self._index.get((permission.lower(), grant_type.lower()))
        return row.privilege if row else None

    def labels(self) -> List[str]:
        seen: List[str] = []
        for row in self.rows:
            if row.privilege not in seen:
                seen.append(row.privilege)
        return seen


# ================================================================
# Loading
# ================================================================

def parse_permission_table(text: str, source: str = "") -> PermissionTable:
    reader = csv.DictReader(io.StringIO(text))
    header = {(h or "").strip().lower(): h for h in (reader.fieldnames or [])}
    missing = [c for c in REQUIRED_COLUMNS if c.lower() not in header]
    if missing:
        raise PermissionTableError(
            f"Permission table {source or '<input>'} is missing column(s): {', '.join(missing)}"
        )

    type_col = header["type"]
    perm_col = header["permission"]
    priv_col = header["privilege"]

    rows: List[PermissionTableRow] = []
    for line_no, raw in enumerate(reader, start=2):
        permission = (raw.get(perm_col) or "").strip()
        grant_type = (raw.get(type_col) or "").strip()
        privilege = (raw.get(priv_col) or "").strip()
        if not permission or not grant_type:
            fncPrintMessage(f"Skipping incomplete permission table row {line_no}", "debug")
            continue
        rows.append(PermissionTableRow(permission=permission, grant_type=grant_type, privilege=privilege))

    if not rows:
        raise PermissionTableError(f"Permission table {source or '<input>'} has no rows")
    return PermissionTable(rows, source=source)


def read_local_permission_table(path: str) -> str:
    p = pathlib.Path(path).expanduser()
    try:
        return p.read_text(encoding="utf-8-sig")
    except OSError as ex:
        raise PermissionTableError(f"Could not read permission table '{p}': {ex}") from ex


def fetch_default_permission_table(url: str = DEFAULT_PERMISSION_TABLE_URL) -> str:
    try:
        resp = requests.get(url, timeout=FETCH_TIMEOUT)
        resp.raise_for_status()
    except requests.exceptions.RequestException as ex:
        raise PermissionTableError(f"Could not download permission table from {url}: {ex}") from ex
    return resp.content.decode("utf-8-sig")


def load_permission_table(path: Optional[str] = None, url: Optional[str] = None) -> PermissionTable:
    """Load the classification table from a local CSV, or download the default one."""
    if path:
        fncPrintMessage(f"Loading permission table from {path}", "info")
        return parse_permission_table(read_local_permission_table(path), source=str(path))

    url = url or DEFAULT_PERMISSION_TABLE_URL
    fncPrintMessage(f"Downloading permission table from {url}", "info")
    return parse_permission_table(fetch_default_permission_table(url), source=url)


# ================================================================
# Classification
# ================================================================

def grant_type_for(permission_type: str) -> Optional[str]:
    """Both delegated consent flavours classify as Delegated."""
    return _GRANT_TYPES.get(permission_type)


def permission_root(permission: str) -> str:
    return permission.split(".", 1)[0]


def classify_privilege(record: GrantRecord, table: PermissionTable) -> str:
    grant_type = grant_type_for(record.permission_type)
    permission = record.permission or ""

    exact = table.lookup(permission, grant_type)
    if exact is not None:
        return exact

    root = table.lookup(permission_root(permission), grant_type)
    if root is not None:
        return root

    if grant_type == GRANT_TYPE_APPLICATION:
        return PRIVILEGE_HIGH if "write" in permission.lower() else PRIVILEGE_MEDIUM

    return PRIVILEGE_UNRANKED


def classify_records(records: List[GrantRecord], table: PermissionTable) -> List[GrantRecord]:
    """Attach a privilege label to every record. A failure leaves the label blank but keeps the row."""
    for record in records:
        try:
            record.privilege = classify_privilege(record, table)
        except (AttributeError, TypeError, ValueError) as ex:
            fncPrintMessage(
                f"Could not classify {record.permission!r} for {record.client_display_name or record.client_object_id}: {ex}",
                "warn",
            )
    return records
