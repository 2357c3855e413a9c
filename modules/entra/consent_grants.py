# ================================================================
# File     : modules/entra/consent_grants.py
# Purpose  : Consent grant report: every delegated and application
#            permission granted in the tenant, with a privilege label
# Notes    : Table load -> collect -> classify -> summarise. The table
#            is loaded before any Graph call so a bad table aborts early.
# ================================================================

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.config import DEFAULT_PERMISSION_TABLE_URL
from core.grants import GrantCollector
from core.models import (
    GRANT_RECORD_COLUMNS,
    PRIVILEGE_HIGH,
    PRIVILEGE_RANK,
    GrantRecord,
)
from core.object_cache import ObjectCache
from core.privilege import PermissionTable, classify_records, load_permission_table
from core.utils import fncPrintMessage, fncToTable, fncNewRunId
from handlers.graph.directory import DirectoryApi

REQUIRED_PERMS = ["Directory.Read.All", "Application.Read.All"]

PREVIEW_HEADERS = ["Privilege", "PermissionType", "ClientDisplayName", "ResourceDisplayName", "Permission", "PrincipalDisplayName"]


def _rank(label: str) -> int:
    return PRIVILEGE_RANK.get(label, 0)


def _label_order(table: PermissionTable, records: List[GrantRecord]) -> List[str]:
    order = sorted(PRIVILEGE_RANK, key=_rank, reverse=True)
    for label in table.labels() + [r.privilege for r in records]:
        if label not in order:
            order.append(label)
    return order


def summarise_privileges(records: List[GrantRecord], table: PermissionTable) -> List[Dict[str, Any]]:
    rows = []
    for label in _label_order(table, records):
        matching = [r for r in records if r.privilege == label]
        rows.append({
            "Privilege": label or "(unclassified)",
            "Grants": len(matching),
            "Delegated": sum(1 for r in matching if r.permission_type.startswith("Delegated")),
            "Application": sum(1 for r in matching if r.permission_type == "Application"),
            "Apps": len({r.client_object_id for r in matching}),
        })
    return rows


def _role_assignees(cache: Optional[ObjectCache], object_id: str) -> int:
    sp = cache.get_typed("ServicePrincipal", object_id) if cache is not None else None
    return len(sp.app_role_assigned_to) if sp is not None else 0


def summarise_apps(records: List[GrantRecord], cache: Optional[ObjectCache] = None) -> List[Dict[str, Any]]:
    """One row per client app. RoleAssignees counts principals holding the app's own roles."""
    apps: Dict[str, Dict[str, Any]] = {}
    for r in records:
        app = apps.setdefault(r.client_object_id, {
            "ClientDisplayName": r.client_display_name,
            "ClientObjectId": r.client_object_id,
            "AppId": r.app_id,
            "MicrosoftRegisteredClientApp": r.is_first_party_app,
            "RoleAssignees": _role_assignees(cache, r.client_object_id),
            "Grants": 0,
            "HighGrants": 0,
            "HighestPrivilege": r.privilege,
        })
        app["Grants"] += 1
        if r.privilege == PRIVILEGE_HIGH:
            app["HighGrants"] += 1
        if _rank(r.privilege) > _rank(app["HighestPrivilege"]):
            app["HighestPrivilege"] = r.privilege

    return sorted(
        apps.values(),
        key=lambda a: (-_rank(a["HighestPrivilege"]), (a["ClientDisplayName"] or "").lower()),
    )


def build_report(client, table: PermissionTable) -> Tuple[List[GrantRecord], ObjectCache]:
    directory = DirectoryApi(client)
    cache = ObjectCache(directory)
    records = GrantCollector(directory, cache).collect()
    return classify_records(records, table), cache


def run(client, args):
    run_id = fncNewRunId("consent-grants")
    ts = datetime.now(timezone.utc).isoformat()
    fncPrintMessage(f"Running Consent Grant Report (run={run_id})", "info")

    table_path = getattr(args, "permission_table", None) or None
    table_url = getattr(args, "permission_table_url", None) or DEFAULT_PERMISSION_TABLE_URL
    table = load_permission_table(table_path, table_url)
    fncPrintMessage(f"Permission table loaded: {len(table)} rows from {table.source}", "success")

    records, cache = build_report(client, table)
    rows = [r.to_row() for r in records]

    preview = sorted(rows, key=lambda r: -_rank(r["Privilege"]))
    fncPrintMessage("Consent grants — top 25 by privilege", "info")
    print(fncToTable(preview, headers=PREVIEW_HEADERS, max_rows=25))

    privilege_summary = summarise_privileges(records, table)
    print(fncToTable(privilege_summary))

    data = {
        "provider": "entra",
        "run_id": run_id,
        "timestamp": ts,
        "permission_table_source": table.source,
        "grant_count": len(rows),
        "columns": GRANT_RECORD_COLUMNS,
        "consent_grants": rows,
        "privilege_summary": privilege_summary,
        "app_summary": summarise_apps(records, cache),
    }

    fncPrintMessage(f"Consent Grant Report complete — {len(rows)} grants.", "success")
    return data
