import pytest

from core.models import GraphResult
from handlers.graph.client import GraphApiError


class FakeDirectory:
    """In-memory stand-in for DirectoryApi."""

    def __init__(self, principals=None, delegated=None, application=None, objects=None):
        self.principals = principals or []
        self.delegated = delegated or {}
        self.application = application or {}
        self.objects = objects or {}
        self.principals_error = None
        self.resolve_calls = []

    def list_service_principals(self):
        if self.principals_error:
            return GraphResult.failure(self.principals_error, 403)
        return GraphResult.success(list(self.principals))

    def _grants(self, source, sp_id):
        value = source.get(sp_id, [])
        return value if isinstance(value, GraphResult) else GraphResult.success(list(value))

    def list_delegated_grants(self, service_principal_id):
        return self._grants(self.delegated, service_principal_id)

    def list_application_grants(self, service_principal_id):
        return self._grants(self.application, service_principal_id)

    def resolve_directory_object(self, object_id):
        self.resolve_calls.append(object_id)
        obj = self.objects.get(object_id)
        if obj is None:
            return GraphResult.failure(f"resolve directory object {object_id}: not found", 404)
        return GraphResult.success(obj)


class FakeGraphClient:
    """Routes GraphClient.get/get_all calls to canned Graph payloads."""

    def __init__(self, lists=None, objects=None):
        self.lists = lists or {}
        self.objects = objects or {}
        self.calls = []

    def get_all(self, endpoint, params=None):
        self.calls.append(endpoint)
        path = endpoint.split("?", 1)[0]
        value = self.lists.get(path)
        if value is None:
            raise GraphApiError(404, f"Resource '{path}' does not exist")
        if isinstance(value, Exception):
            raise value
        return [dict(item) for item in value]

    def get(self, endpoint, params=None):
        self.calls.append(endpoint)
        if endpoint.startswith("directoryObjects/"):
            object_id = endpoint.split("/", 1)[1]
            if object_id in self.objects:
                return dict(self.objects[object_id])
        raise GraphApiError(404, "Resource does not exist")


@pytest.fixture
def fake_directory():
    return FakeDirectory()


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in ("GRANTSCOUT_TENANT_ID", "GRANTSCOUT_CLIENT_ID", "GRANTSCOUT_CLIENT_SECRET", "GRANTSCOUT_PERMISSION_TABLE"):
        monkeypatch.delenv(name, raising=False)
