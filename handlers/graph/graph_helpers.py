# ================================================================
# File     : handlers/graph/graph_helpers.py
# Purpose  : Safer Graph helpers (handle missing $select fields)
# Notes    : Warn instead of fail; add "Not Found" placeholders.
# ================================================================

import re
from typing import List, Dict, Any, Optional, Tuple

from core.utils import fncPrintMessage
from handlers.graph.client import GraphApiError

_MISSING_PROPERTY = re.compile(r"Could not find a property named '([^']+)'")


def build_query(base_endpoint: str, fields: List[str], expand: Optional[str] = None) -> str:
    query = []
    if fields:
        query.append(f"$select={','.join(fields)}")
    if expand:
        query.append(f"$expand={expand}")
    return f"{base_endpoint}?{'&'.join(query)}" if query else base_endpoint


def safe_select_get_all(
    client,
    base_endpoint: str,
    fields: List[str],
    expand: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Calls client.get_all with a $select list. If Graph returns 400 with
    "Could not find a property named 'X'", we warn, drop X, retry once,
    and add X = "Not Found" to every returned row.
    Returns: (items, missing_fields)
    """
    endpoint = build_query(base_endpoint, fields, expand)
    try:
        items = client.get_all(endpoint)
    except GraphApiError as ex:
        m = _MISSING_PROPERTY.search(ex.message or str(ex))
        if ex.status_code != 400 or not m or m.group(1) not in fields:
            raise

        missing = m.group(1)
        fncPrintMessage(f"Property not found: '{missing}' — retrying without it.", "warn")
        retry_fields = [f for f in fields if f != missing]
        items, more_missing = safe_select_get_all(client, base_endpoint, retry_fields, expand)
        for it in items:
            it[missing] = "Not Found"
        return items, [missing] + more_missing

    for it in items:
        for f in fields:
            it.setdefault(f, None)
    return items, []
