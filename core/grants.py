# ================================================================
# File     : core/grants.py
# Purpose  : Collect delegated and application permission grants for
#            every service principal into flat GrantRecord rows
# Notes    : Output order: service principal enumeration order, then
#            delegated before application, then scope token order.
# ================================================================

from typing import List, Optional

from core.models import (
    PERMISSION_TYPE_ALL_PRINCIPALS,
    PERMISSION_TYPE_APPLICATION,
    PERMISSION_TYPE_PRINCIPAL,
    ApplicationGrant,
    DelegatedGrant,
    GrantRecord,
    ServicePrincipal,
)
from core.object_cache import ObjectCache
from core.utils import fncPrintMessage

# Tenants that own Microsoft first-party applications
FIRST_PARTY_TENANT_IDS = frozenset({
    "f8cdef31-a31e-4b4a-93e4-5f571e91255a",  # Microsoft Services
    "72f988bf-86f1-41af-91ab-2d7cd011db47",  # Microsoft
})

_CONSENT_TYPES = {
    "AllPrincipals": PERMISSION_TYPE_ALL_PRINCIPALS,
    "Principal": PERMISSION_TYPE_PRINCIPAL,
}


class GrantCollectionError(Exception):
    """Service principals could not be enumerated; nothing can be collected."""


def is_first_party_app(app_owner_organization_id: Optional[str]) -> bool:
    return (app_owner_organization_id or "").lower() in FIRST_PARTY_TENANT_IDS


def permission_type_for(consent_type: str) -> str:
    # Unknown consent types stay blank.
    return _CONSENT_TYPES.get(consent_type, "")


class GrantCollector:
    def __init__(self, directory, cache: Optional[ObjectCache] = None):
        self.directory = directory
        self.cache = cache if cache is not None else ObjectCache(directory)
        self.failed_principals: List[str] = []

    def collect(self) -> List[GrantRecord]:
        result = self.directory.list_service_principals()
        if not result.ok:
            raise GrantCollectionError(result.error)

        principals: List[ServicePrincipal] = result.value or []
        for sp in principals:
            self.cache.add(sp)
        fncPrintMessage(f"Enumerated {len(principals)} service principals.", "info")

        records: List[GrantRecord] = []
        for idx, client in enumerate(principals, start=1):
            fncPrintMessage(f"[{idx}/{len(principals)}] Collecting grants for {client.display_name or client.id}", "debug")
            records.extend(self.collect_for(client))

        fncPrintMessage(
            f"Collected {len(records)} grant rows ({self.cache.remote_calls} object lookups, "
            f"{len(self.failed_principals)} principals with enumeration errors).",
            "info",
        )
        return records

    def collect_for(self, client: ServicePrincipal) -> List[GrantRecord]:
        first_party = is_first_party_app(client.app_owner_organization_id)
        return self._delegated_records(client, first_party) + self._application_records(client, first_party)

    # ---------- helpers ----------

    def _new_record(self, client: ServicePrincipal, first_party: bool, **fields) -> GrantRecord:
        return GrantRecord(
            client_object_id=client.id,
            client_display_name=client.display_name,
            app_id=client.app_id,
            is_first_party_app=first_party,
            app_owner_organization_id=client.app_owner_organization_id,
            **fields,
        )

    def _display_name(self, object_id: Optional[str]) -> str:
        obj = self.cache.get(object_id)
        return obj.display_name if obj else ""

    def _report_failure(self, client: ServicePrincipal, error: str) -> None:
        if client.id not in self.failed_principals:
            self.failed_principals.append(client.id)
        fncPrintMessage(f"Skipping grants for {client.display_name or client.id}: {error}", "warn")

    # ---------- delegated ----------

    def _delegated_records(self, client: ServicePrincipal, first_party: bool) -> List[GrantRecord]:
        result = self.directory.list_delegated_grants(client.id)
        if not result.ok:
            self._report_failure(client, result.error)
            return []

        records: List[GrantRecord] = []
        for grant in result.value or []:
            for scope in grant.scope.split():
                records.append(self._delegated_record(client, first_party, grant, scope))
        return records

    def _delegated_record(self, client: ServicePrincipal, first_party: bool, grant: DelegatedGrant, scope: str) -> GrantRecord:
        record = self._new_record(
            client,
            first_party,
            permission_type=permission_type_for(grant.consent_type),
            resource_object_id=grant.resource_id,
            resource_display_name="",
            permission=scope,
            principal_object_id=grant.principal_id or "",
        )
        try:
            record.resource_display_name = self._display_name(grant.resource_id)
            if grant.principal_id:
                record.principal_display_name = self._display_name(grant.principal_id)
        except (AttributeError, KeyError, TypeError, ValueError) as ex:
            fncPrintMessage(f"Partial delegated grant row for {client.display_name} / {scope}: {ex}", "warn")
        return record

    # ---------- application ----------

    def _application_records(self, client: ServicePrincipal, first_party: bool) -> List[GrantRecord]:
        result = self.directory.list_application_grants(client.id)
        if not result.ok:
            self._report_failure(client, result.error)
            return []

        return [self._application_record(client, first_party, a) for a in result.value or []]

    def _application_record(self, client: ServicePrincipal, first_party: bool, assignment: ApplicationGrant) -> GrantRecord:
        record = self._new_record(
            client,
            first_party,
            permission_type=PERMISSION_TYPE_APPLICATION,
            resource_object_id=assignment.resource_id,
            resource_display_name=assignment.resource_display_name,
            permission=assignment.app_role_id,
        )
        try:
            resource = self.cache.get(assignment.resource_id)
            if resource is not None:
                record.resource_display_name = record.resource_display_name or resource.display_name
                role = resource.find_app_role(assignment.app_role_id) if isinstance(resource, ServicePrincipal) else None
                if role is not None and role.value:
                    record.permission = role.value
        except (AttributeError, KeyError, TypeError, ValueError) as ex:
            fncPrintMessage(f"Partial application grant row for {client.display_name} / {assignment.app_role_id}: {ex}", "warn")
        return record
