# ================================================================
# File     : modules/entra/tenant_lookup.py
# Purpose  : Resolve tenant ids or domains to tenant identity details
# Notes    : Works without Graph (--no-graph). Graph adds display and
#            default domain names when the client has permission.
# ================================================================

from core.utils import fncPrintMessage, fncToTable, fncNewRunId
from handlers.metadata.tenant import resolve_tenant

REQUIRED_PERMS = ["CrossTenantInformation.ReadBasic.All"]  # optional enrichment only

PREVIEW_HEADERS = ["Value", "ValueFormat", "Result", "ResolvedTenantId", "TenantRegionScope", "CloudInstance", "DisplayName"]


def _tenant_values(args) -> list:
    raw = getattr(args, "tenant", None) or ""
    return [v.strip() for v in raw.replace(";", ",").split(",") if v.strip()]


def run(client, args):
    run_id = fncNewRunId("tenant-lookup")
    values = _tenant_values(args)
    if not values:
        fncPrintMessage("No tenant values given, use --tenant contoso.com[,<tenant id>]", "warn")
        return {"provider": "entra", "run_id": run_id, "tenants": []}

    environment = getattr(args, "environment", None) or "Global"
    fncPrintMessage(f"Resolving {len(values)} tenant value(s) in {environment} (run={run_id})", "info")

    tenants = [resolve_tenant(v, environment=environment, client=client) for v in values]
    for t in tenants:
        level = "success" if t["Result"] == "Resolved" else "warn"
        fncPrintMessage(f"{t['Value']}: {t['Result']} {t['ResolvedTenantId'] or t['Error']}".rstrip(), level)

    print(fncToTable(tenants, headers=PREVIEW_HEADERS))
    return {"provider": "entra", "run_id": run_id, "tenants": tenants}
