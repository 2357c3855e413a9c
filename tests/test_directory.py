import requests

from core.models import DirectoryObject, ServicePrincipal
from handlers.graph.client import GraphApiError
from handlers.graph.directory import DirectoryApi
from handlers.graph.graph_helpers import build_query, safe_select_get_all

from conftest import FakeGraphClient

GRAPH_SP = {
    "id": "graph",
    "appId": "00000003-0000-0000-c000-000000000000",
    "displayName": "Microsoft Graph",
    "appOwnerOrganizationId": "f8cdef31-a31e-4b4a-93e4-5f571e91255a",
    "appRoleAssignmentRequired": False,
    "appRoles": [{"id": "role-1", "value": "User.Read.All", "displayName": "Read all users"}],
    "appRoleAssignedTo": [{"principalId": "client", "appRoleId": "role-1"}],
}


def test_list_service_principals_parses_records():
    client = FakeGraphClient(lists={"servicePrincipals": [GRAPH_SP]})
    result = DirectoryApi(client).list_service_principals()

    assert result.ok
    [sp] = result.value
    assert isinstance(sp, ServicePrincipal)
    assert sp.find_app_role("role-1").value == "User.Read.All"
    assert sp.app_role_assigned_to[0]["principalId"] == "client"
    assert "$expand=appRoleAssignedTo" in client.calls[0]


def test_list_service_principals_failure_is_a_result():
    client = FakeGraphClient(lists={"servicePrincipals": GraphApiError(403, "Authorization_RequestDenied")})
    result = DirectoryApi(client).list_service_principals()

    assert not result.ok
    assert result.status_code == 403
    assert "Authorization_RequestDenied" in result.error


def test_grant_listings():
    client = FakeGraphClient(lists={
        "servicePrincipals/client/oauth2PermissionGrants": [
            {"clientId": "client", "resourceId": "graph", "consentType": "Principal",
             "principalId": "user-1", "scope": "User.Read"},
        ],
        "servicePrincipals/client/appRoleAssignments": [
            {"resourceId": "graph", "resourceDisplayName": "Microsoft Graph", "appRoleId": "role-1"},
        ],
    })
    api = DirectoryApi(client)

    [delegated] = api.list_delegated_grants("client").value
    [application] = api.list_application_grants("client").value

    assert (delegated.resource_id, delegated.consent_type, delegated.principal_id) == ("graph", "Principal", "user-1")
    assert (application.resource_display_name, application.app_role_id) == ("Microsoft Graph", "role-1")


def test_grant_listing_network_error_is_a_result():
    client = FakeGraphClient(lists={
        "servicePrincipals/client/oauth2PermissionGrants": requests.exceptions.ConnectionError("reset"),
    })
    result = DirectoryApi(client).list_delegated_grants("client")
    assert not result.ok
    assert result.status_code is None


def test_resolve_directory_object_by_type():
    client = FakeGraphClient(objects={
        "user-1": {"@odata.type": "#microsoft.graph.user", "id": "user-1", "displayName": "Adele Vance"},
        "graph": dict(GRAPH_SP, **{"@odata.type": "#microsoft.graph.servicePrincipal"}),
    })
    api = DirectoryApi(client)

    user = api.resolve_directory_object("user-1").value
    sp = api.resolve_directory_object("graph").value

    assert type(user) is DirectoryObject
    assert user.odata_type == "#microsoft.graph.user"
    assert isinstance(sp, ServicePrincipal)
    assert sp.app_roles[0].id == "role-1"


def test_resolve_missing_object():
    result = DirectoryApi(FakeGraphClient()).resolve_directory_object("deleted")
    assert not result.ok
    assert result.status_code == 404


class _PickyClient:
    def __init__(self):
        self.calls = []

    def get_all(self, endpoint, params=None):
        self.calls.append(endpoint)
        if "appRoleAssignmentRequired" in endpoint:
            raise GraphApiError(400, "Could not find a property named 'appRoleAssignmentRequired' on type 'x'")
        return [{"id": "sp-1"}]


def test_safe_select_drops_unknown_field_and_marks_it():
    client = _PickyClient()
    items, missing = safe_select_get_all(client, "servicePrincipals", ["id", "appRoleAssignmentRequired"])

    assert missing == ["appRoleAssignmentRequired"]
    assert items == [{"id": "sp-1", "appRoleAssignmentRequired": "Not Found"}]
    assert client.calls[-1] == "servicePrincipals?$select=id"


def test_build_query():
    assert build_query("servicePrincipals", []) == "servicePrincipals"
    assert build_query("servicePrincipals", ["id", "appId"], "owners") == "servicePrincipals?$select=id,appId&$expand=owners"
