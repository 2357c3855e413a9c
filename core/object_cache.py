# ================================================================
# File     : core/object_cache.py
# Purpose  : Per-run cache of resolved directory objects
# Notes    : Lives for one report run. Misses are never cached, so an
#            unresolvable id is fetched again on its next reference.
# ================================================================

from typing import Dict, Optional

from core.models import DirectoryObject
from core.utils import fncPrintMessage


class ObjectCache:
    def __init__(self, directory):
        self.directory = directory
        self._by_id: Dict[str, DirectoryObject] = {}
        # type-qualified index, e.g. "ServicePrincipal:<id>"
        self._by_type: Dict[str, DirectoryObject] = {}
        self.remote_calls = 0

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, object_id: str) -> bool:
        return object_id in self._by_id

    def add(self, obj: DirectoryObject) -> DirectoryObject:
        self._by_id[obj.id] = obj
        self._by_type[f"{type(obj).__name__}:{obj.id}"] = obj
        return obj

    def get_typed(self, type_name: str, object_id: str) -> Optional[DirectoryObject]:
        return self._by_type.get(f"{type_name}:{object_id}")

    def get(self, object_id: Optional[str]) -> Optional[DirectoryObject]:
        """Return the cached object, fetching it once on a miss. None when it cannot be resolved."""
        if not object_id:
            return None

        cached = self._by_id.get(object_id)
        if cached is not None:
            return cached

        self.remote_calls += 1
        result = self.directory.resolve_directory_object(object_id)
        if not result.ok or result.value is None:
            fncPrintMessage(f"Could not resolve object {object_id}: {result.error}", "debug")
            return None

        obj = result.value
        if not obj.id:
            obj.id = object_id
        return self.add(obj)
