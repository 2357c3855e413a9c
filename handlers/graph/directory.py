# ================================================================
# File     : handlers/graph/directory.py
# Purpose  : Directory boundary used by the grant collector
# Notes    : Every call returns a GraphResult instead of raising, so
#            callers choose between skip-and-log and abort per call.
# ================================================================

from typing import Any, Callable

import requests

from core.models import (
    ApplicationGrant,
    DelegatedGrant,
    DirectoryObject,
    GraphResult,
    ServicePrincipal,
)
from core.utils import fncPrintMessage
from handlers.graph.client import GraphApiError
from handlers.graph.graph_helpers import safe_select_get_all

SERVICE_PRINCIPAL_FIELDS = [
    "id",
    "appId",
    "displayName",
    "appOwnerOrganizationId",
    "appRoleAssignmentRequired",
    "appRoles",
]


def _call(description: str, fn: Callable[[], Any]) -> GraphResult:
    try:
        return GraphResult.success(fn())
    except GraphApiError as ex:
        return GraphResult.failure(f"{description}: {ex.message or ex}", ex.status_code)
    except (requests.exceptions.RequestException, ValueError, KeyError, TypeError) as ex:
        return GraphResult.failure(f"{description}: {ex}")


class DirectoryApi:
    """Read-only view of the tenant directory, shaped for the grant collector."""

    def __init__(self, client):
        self.client = client

    def list_service_principals(self) -> GraphResult:
        def _fetch():
            items, missing = safe_select_get_all(
                self.client,
                "servicePrincipals",
                SERVICE_PRINCIPAL_FIELDS,
                expand="appRoleAssignedTo",
            )
            if missing:
                fncPrintMessage(f"Service principal fields unavailable: {', '.join(missing)}", "warn")
            return [ServicePrincipal.from_graph(sp) for sp in items]

        return _call("list service principals", _fetch)

    def list_delegated_grants(self, service_principal_id: str) -> GraphResult:
        return _call(
            f"list oauth2PermissionGrants for {service_principal_id}",
            lambda: [
                DelegatedGrant.from_graph(g)
                for g in self.client.get_all(f"servicePrincipals/{service_principal_id}/oauth2PermissionGrants")
            ],
        )

    def list_application_grants(self, service_principal_id: str) -> GraphResult:
        return _call(
            f"list appRoleAssignments for {service_principal_id}",
            lambda: [
                ApplicationGrant.from_graph(a)
                for a in self.client.get_all(f"servicePrincipals/{service_principal_id}/appRoleAssignments")
            ],
        )

    def resolve_directory_object(self, object_id: str) -> GraphResult:
        return _call(
            f"resolve directory object {object_id}",
            lambda: DirectoryObject.from_graph(self.client.get(f"directoryObjects/{object_id}")),
        )
