# ================================================================
# File     : core/models.py
# Purpose  : Typed records passed between the Graph boundary, the
#            grant collector, the privilege classifier and exports
# ================================================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

PERMISSION_TYPE_ALL_PRINCIPALS = "Delegated-AllPrincipals"
PERMISSION_TYPE_PRINCIPAL = "Delegated-Principal"
PERMISSION_TYPE_APPLICATION = "Application"

GRANT_TYPE_DELEGATED = "Delegated"
GRANT_TYPE_APPLICATION = "Application"

PRIVILEGE_HIGH = "High"
PRIVILEGE_MEDIUM = "Medium"
PRIVILEGE_LOW = "Low"
PRIVILEGE_UNRANKED = "Unranked"

# Higher rank = more severe. Table-supplied labels not listed here rank 0.
PRIVILEGE_RANK = {
    PRIVILEGE_HIGH: 3,
    PRIVILEGE_MEDIUM: 2,
    PRIVILEGE_LOW: 1,
    PRIVILEGE_UNRANKED: 0,
}

ODATA_SERVICE_PRINCIPAL = "#microsoft.graph.servicePrincipal"


def _as_list(value: Any) -> List[Any]:
    # $select fallbacks can leave a "Not Found" string where a collection belongs
    return value if isinstance(value, list) else []


@dataclass
class GraphResult:
    """Value-or-error returned by every call across the directory boundary."""
    value: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "GraphResult":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> "GraphResult":
        return cls(error=error, status_code=status_code)


@dataclass
class AppRole:
    id: str
    value: str = ""
    display_name: str = ""

    @classmethod
    def from_graph(cls, raw: Dict[str, Any]) -> "AppRole":
        return cls(
            id=raw.get("id") or "",
            value=raw.get("value") or "",
            display_name=raw.get("displayName") or "",
        )


@dataclass
class DirectoryObject:
    id: str
    display_name: str = ""
    odata_type: str = ""

    @classmethod
    def from_graph(cls, raw: Dict[str, Any]) -> "DirectoryObject":
        if raw.get("@odata.type") == ODATA_SERVICE_PRINCIPAL or "appRoles" in raw:
            return ServicePrincipal.from_graph(raw)
        return cls(
            id=raw.get("id") or "",
            display_name=raw.get("displayName") or "",
            odata_type=raw.get("@odata.type") or "",
        )


@dataclass
class ServicePrincipal(DirectoryObject):
    app_id: str = ""
    app_owner_organization_id: str = ""
    app_role_assignment_required: bool = False
    app_roles: List[AppRole] = field(default_factory=list)
    app_role_assigned_to: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_graph(cls, raw: Dict[str, Any]) -> "ServicePrincipal":
        return cls(
            id=raw.get("id") or "",
            display_name=raw.get("displayName") or "",
            odata_type=raw.get("@odata.type") or ODATA_SERVICE_PRINCIPAL,
            app_id=raw.get("appId") or "",
            app_owner_organization_id=raw.get("appOwnerOrganizationId") or "",
            app_role_assignment_required=raw.get("appRoleAssignmentRequired") is True,
            app_roles=[AppRole.from_graph(r) for r in _as_list(raw.get("appRoles")) if isinstance(r, dict)],
            app_role_assigned_to=[a for a in _as_list(raw.get("appRoleAssignedTo")) if isinstance(a, dict)],
        )

    def find_app_role(self, role_id: str) -> Optional[AppRole]:
        for role in self.app_roles:
            if role.id == role_id:
                return role
        return None


@dataclass
class DelegatedGrant:
    resource_id: str
    consent_type: str = ""
    scope: str = ""
    principal_id: Optional[str] = None

    @classmethod
    def from_graph(cls, raw: Dict[str, Any]) -> "DelegatedGrant":
        return cls(
            resource_id=raw.get("resourceId") or "",
            consent_type=raw.get("consentType") or "",
            scope=raw.get("scope") or "",
            principal_id=raw.get("principalId") or None,
        )


@dataclass
class ApplicationGrant:
    resource_id: str
    app_role_id: str
    resource_display_name: str = ""

    @classmethod
    def from_graph(cls, raw: Dict[str, Any]) -> "ApplicationGrant":
        return cls(
            resource_id=raw.get("resourceId") or "",
            app_role_id=raw.get("appRoleId") or "",
            resource_display_name=raw.get("resourceDisplayName") or "",
        )


@dataclass(frozen=True)
class PermissionTableRow:
    permission: str
    grant_type: str
    privilege: str


GRANT_RECORD_COLUMNS = [
    "PermissionType",
    "ClientObjectId",
    "AppId",
    "ClientDisplayName",
    "ResourceObjectId",
    "ResourceDisplayName",
    "Permission",
    "PrincipalObjectId",
    "PrincipalDisplayName",
    "MicrosoftRegisteredClientApp",
    "AppOwnerOrganizationId",
    "Privilege",
]


@dataclass
class GrantRecord:
    permission_type: str
    client_object_id: str
    client_display_name: str
    resource_object_id: str
    resource_display_name: str
    permission: str
    principal_object_id: str = ""
    principal_display_name: str = ""
    is_first_party_app: bool = False
    app_owner_organization_id: str = ""
    app_id: str = ""
    privilege: str = ""

    def to_row(self) -> Dict[str, Any]:
        return {
            "PermissionType": self.permission_type,
            "ClientObjectId": self.client_object_id,
            "AppId": self.app_id,
            "ClientDisplayName": self.client_display_name,
            "ResourceObjectId": self.resource_object_id,
            "ResourceDisplayName": self.resource_display_name,
            "Permission": self.permission,
            "PrincipalObjectId": self.principal_object_id,
            "PrincipalDisplayName": self.principal_display_name,
            "MicrosoftRegisteredClientApp": self.is_first_party_app,
            "AppOwnerOrganizationId": self.app_owner_organization_id,
            "Privilege": self.privilege,
        }
