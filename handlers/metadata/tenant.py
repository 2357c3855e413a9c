# ================================================================
# File     : handlers/metadata/tenant.py
# Purpose  : Resolve tenant identity from public OpenID metadata
# Notes    : Unauthenticated. Graph enrichment is optional and only
#            used when a GraphClient is supplied.
# ================================================================

import re
from typing import Any, Dict, Optional

import requests

from core.utils import fncPrintMessage

METADATA_TIMEOUT = 15

LOGIN_HOSTS = {
    "Global": "login.microsoftonline.com",
    "USGov": "login.microsoftonline.us",
    "China": "login.chinacloudapi.cn",
}

_GUID = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
_DOMAIN = re.compile(r"^(?=.{1,253}$)(?!-)([a-zA-Z0-9-]{1,63}(?<!-)\.)+[a-zA-Z]{2,63}$")
_ISSUER_TENANT = re.compile(r"https://[^/]+/([0-9a-fA-F-]{36})/")


# ================================================================
# Function: fncGetTenantValueFormat
# Purpose : Classify a tenant value as a tenant id or domain name
# Notes   : Returns None for anything else
# ================================================================
def fncGetTenantValueFormat(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    if _GUID.match(value):
        return "TenantId"
    if _DOMAIN.match(value):
        return "DomainName"
    return None


def oidc_metadata_url(value: str, environment: str = "Global") -> str:
    host = LOGIN_HOSTS[environment]
    return f"https://{host}/{value}/v2.0/.well-known/openid-configuration"


def _empty_result(value: str, environment: str, value_format: Optional[str]) -> Dict[str, Any]:
    return {
        "Environment": environment,
        "Value": value,
        "ValueFormat": value_format or "",
        "Result": "",
        "ResolvedTenantId": "",
        "OidcMetadataUrl": "",
        "TenantRegionScope": "",
        "TenantRegionSubScope": "",
        "CloudInstance": "",
        "GraphHost": "",
        "DisplayName": "",
        "DefaultDomainName": "",
        "FederationBrandName": "",
        "Error": "",
    }


def resolve_tenant(value: str, environment: str = "Global", client=None) -> Dict[str, Any]:
    """
    Resolve a tenant id or verified domain to tenant identity details.
    Result is one of Resolved, NotFound, Invalid, Error.
    """
    value = (value or "").strip()
    if environment not in LOGIN_HOSTS:
        raise ValueError(f"Unknown environment '{environment}' (expected one of {', '.join(LOGIN_HOSTS)})")

    value_format = fncGetTenantValueFormat(value)
    out = _empty_result(value, environment, value_format)
    if not value_format:
        out["Result"] = "Invalid"
        out["Error"] = "Value is neither a tenant id nor a domain name"
        return out

    url = oidc_metadata_url(value, environment)
    out["OidcMetadataUrl"] = url
    fncPrintMessage(f"GET {url}", "debug")

    try:
        resp = requests.get(url, timeout=METADATA_TIMEOUT)
    except requests.exceptions.RequestException as ex:
        out["Result"] = "Error"
        out["Error"] = str(ex)
        return out

    if resp.status_code in (400, 404):
        out["Result"] = "NotFound"
        try:
            out["Error"] = (resp.json() or {}).get("error_description", "")
        except ValueError:
            out["Error"] = resp.text
        return out

    if resp.status_code != 200:
        out["Result"] = "Error"
        out["Error"] = f"HTTP {resp.status_code}: {resp.text[:200]}"
        return out

    try:
        meta = resp.json()
    except ValueError as ex:
        out["Result"] = "Error"
        out["Error"] = f"Invalid metadata document: {ex}"
        return out

    m = _ISSUER_TENANT.match(meta.get("issuer") or "")
    if not m:
        out["Result"] = "Error"
        out["Error"] = f"Unexpected issuer: {meta.get('issuer')}"
        return out

    out.update({
        "Result": "Resolved",
        "ResolvedTenantId": m.group(1),
        "TenantRegionScope": meta.get("tenant_region_scope") or "",
        "TenantRegionSubScope": meta.get("tenant_region_sub_scope") or "",
        "CloudInstance": meta.get("cloud_instance_name") or "",
        "GraphHost": meta.get("msgraph_host") or meta.get("cloud_graph_host_name") or "",
    })

    if client is not None:
        _add_graph_tenant_information(client, out)
    return out


def _add_graph_tenant_information(client, out: Dict[str, Any]) -> None:
    tenant_id = out["ResolvedTenantId"]
    try:
        info = client.get(f"tenantRelationships/findTenantInformationByTenantId(tenantId='{tenant_id}')")
    except Exception as ex:
        fncPrintMessage(f"Tenant information lookup failed for {tenant_id}: {ex}", "warn")
        return
    out["DisplayName"] = info.get("displayName") or ""
    out["DefaultDomainName"] = info.get("defaultDomainName") or ""
    out["FederationBrandName"] = info.get("federationBrandName") or ""
