#!/usr/bin/env python3
# ================================================================
# Tool     : GrantScout
# Purpose  : Entra consent grant audit and privilege classification
# Notes    : Read-only. Runs once, prints a preview, exports on request.
# ================================================================

import argparse
import pathlib

from core.config import fncInitConfig, fncApplyCliOverrides, fncIsDebug, fncHomeFolder, fncGetProviderConfig
from core.utils import fncPrintMessage, fncSetDebug, fncDisplayBanner, fncBlurb, fncMask
from core.module_loader import fncRunModule, fncRunAllModules
from core.exports import (
    fncExportList,
    fncExportSingleModule,
    fncExportMultiModule,
)
from handlers.metadata.tenant import LOGIN_HOSTS

# Modules that can run on public endpoints alone
NO_GRAPH_MODULES = {"tenant_lookup"}

# ================================================================
# Function: fncParseArguments
# Purpose  : Define and parse command-line arguments for GrantScout
# ================================================================
def fncParseArguments(argv=None):
    parser = argparse.ArgumentParser(
        prog="GrantScout",
        description="GrantScout — Entra consent grant auditor"
    )

    parser.add_argument(
        "provider",
        choices=["entra"],
        help="Specify which directory provider to target"
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--scan",
        help="Name of module to execute (e.g., consent_grants, tenant_lookup)"
    )
    group.add_argument(
        "--run-all",
        action="store_true",
        help="Run all available modules for the selected provider"
    )

    parser.add_argument(
        "--skip",
        help="Comma-separated module names to skip with --run-all",
        default=""
    )

    parser.add_argument(
        "--export",
        nargs="*",
        metavar="FMT[,FMT...]",
        help="Export formats: csv, json. Example: --export csv,json",
        default=None
    )

    parser.add_argument(
        "--permission-table",
        metavar="PATH",
        help="Local permission table CSV (Type,Permission,Privilege). Default: download the published table",
        default=None
    )

    parser.add_argument(
        "--tenant",
        help="Tenant id(s) or domain(s) for tenant_lookup, comma-separated",
        default=None
    )

    parser.add_argument(
        "--environment",
        choices=sorted(LOGIN_HOSTS),
        default="Global",
        help="Cloud environment for tenant_lookup (default: Global)"
    )

    parser.add_argument(
        "--no-graph",
        action="store_true",
        help="Do not sign in to Microsoft Graph (tenant_lookup only)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug output"
    )

    return parser.parse_args(argv)


# ================================================================
# Function: fncInitClient
# Purpose  : Initialise the Microsoft Graph client
# Notes    : Missing credentials are prompted for by GraphClient
# ================================================================
def fncInitClient(provider: str, cfg: dict):
    if provider != "entra":
        fncPrintMessage(f"Unsupported provider: {provider}", "error")
        return None

    from handlers.graph.client import GraphClient

    entra_cfg = fncGetProviderConfig(cfg, provider)
    tenant_id = entra_cfg.get("tenant_id")
    client_id = entra_cfg.get("client_id")
    client_secret = entra_cfg.get("client_secret")

    if not all([tenant_id, client_id, client_secret]):
        fncPrintMessage("Missing Entra credentials — dropping into interactive mode…", "warn")
    else:
        fncPrintMessage(f"Using app {client_id} with secret {fncMask(client_secret)}", "debug")

    return GraphClient(
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
        authority_host=entra_cfg.get("authority") or "https://login.microsoftonline.com",
        graph_root=cfg.get("graph", {}).get("root") or "https://graph.microsoft.com/v1.0",
    )


# ================================================================
# Function: main
# Purpose  : Main entry point for GrantScout execution
# ================================================================
def main(argv=None):
    args = fncParseArguments(argv)

    cfg = fncInitConfig()
    cfg = fncApplyCliOverrides(cfg, args)
    fncSetDebug(fncIsDebug(cfg))

    # Modules read the effective table location from args
    args.permission_table = cfg.get("permission_table", {}).get("path") or None
    args.permission_table_url = cfg.get("permission_table", {}).get("url") or None

    fncDisplayBanner("v1.0")
    fncBlurb(args.provider)
    if fncIsDebug(cfg):
        fncPrintMessage("Debug output enabled.", "debug")

    graph_free = args.no_graph and not args.run_all and args.scan in NO_GRAPH_MODULES
    if args.no_graph and not graph_free:
        fncPrintMessage("--no-graph only applies to: " + ", ".join(sorted(NO_GRAPH_MODULES)), "error")
        return 2

    client = None
    if not graph_free:
        try:
            client = fncInitClient(args.provider, cfg)
        except Exception as ex:
            fncPrintMessage(f"Could not initialise Graph client: {ex}", "error")
            return 1
        if not client:
            fncPrintMessage("Unable to continue without valid provider client.", "error")
            return 1

    export_formats = fncExportList(args.export)
    reports_root = fncHomeFolder() / "reports"

    failed = False
    if args.run_all:
        skip_list = [m.strip() for m in args.skip.split(",") if m.strip()]
        results = fncRunAllModules(args.provider, client, args, skip_list=skip_list)
        failed = any(isinstance(r, dict) and "error" in r for r in results.values())

        if export_formats:
            fncExportMultiModule(results, export_formats, reports_root)
    else:
        fncPrintMessage(f"Running scan module: {args.scan}", "info")
        result = fncRunModule(args.provider, args.scan, client, args)
        failed = not isinstance(result, dict) or "error" in result

        if export_formats and isinstance(result, dict) and not failed:
            fncExportSingleModule(args.scan, result, export_formats, pathlib.Path(reports_root))

    if failed:
        fncPrintMessage("Scan finished with errors.", "warn")
        return 1
    fncPrintMessage("Scan complete.", "success")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
