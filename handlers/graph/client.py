# ================================================================
# File     : client.py
# Purpose  : Microsoft Graph API read-only client for Entra (Azure AD)
# Notes    : Read-only: GET + pagination + retries. No destructive ops.
#            - Auto-refresh token on 401
#            - Proactive refresh if token expires in <5 minutes
# ================================================================

import os
import time
import getpass
from typing import Dict, Any, List, Optional

import msal
import requests

from core.utils import fncPrintMessage, fncRetry

GRAPH_ROOT = "https://graph.microsoft.com/v1.0"
REQUEST_TIMEOUT = 60

# Client errors that will not change on retry
NON_RETRYABLE_STATUS = {400, 401, 403, 404}


class GraphApiError(Exception):
    """Raised when Graph answers with a non-success status."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Graph API request failed with status {status_code}: {message}")


def _is_retryable(ex: Exception) -> bool:
    if isinstance(ex, GraphApiError):
        return ex.status_code not in NON_RETRYABLE_STATUS
    return isinstance(ex, requests.exceptions.RequestException)


class GraphClient:
    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        authority_host: str = "https://login.microsoftonline.com",
        graph_root: str = GRAPH_ROOT,
    ):
        # Try environment variables first
        tenant_id = tenant_id or os.getenv("GRANTSCOUT_TENANT_ID")
        client_id = client_id or os.getenv("GRANTSCOUT_CLIENT_ID")
        client_secret = client_secret or os.getenv("GRANTSCOUT_CLIENT_SECRET")

        # Prompt interactively if any credential is missing
        if not tenant_id:
            tenant_id = input("Enter Tenant ID: ").strip()
        if not client_id:
            client_id = input("Enter Application (Client) ID: ").strip()
        if not client_secret:
            fncPrintMessage(
                "No Client Secret found *Hidden* "
                "Credentials are stored in environment only for this session.",
                "warn",
            )
            client_secret = getpass.getpass("Enter Client Secret (input hidden): ").strip()

        # Persist to environment for the lifetime of the session
        os.environ["GRANTSCOUT_TENANT_ID"] = tenant_id
        os.environ["GRANTSCOUT_CLIENT_ID"] = client_id
        os.environ["GRANTSCOUT_CLIENT_SECRET"] = client_secret

        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.graph_root = graph_root.rstrip("/")

        # Application scope (app-only). The app needs Directory.Read.All / Application.Read.All.
        self.scope = ["https://graph.microsoft.com/.default"]
        self.authority = f"{authority_host.rstrip('/')}/{tenant_id}"

        fncPrintMessage("Initialising Microsoft Graph (read-only) client...", "info")

        self.app = msal.ConfidentialClientApplication(
            client_id=self.client_id,
            client_credential=self.client_secret,
            authority=self.authority,
        )

        self.token: str = ""
        self._token_expires_on: int = 0  # epoch seconds
        self._set_token(self._acquire_token())

        fncPrintMessage("GraphClient initialised (read-only).", "success")

    # ---------- Token helpers ----------

    def _acquire_token(self) -> Dict[str, Any]:
        """Acquire a token using MSAL (silent -> client creds). Returns MSAL result dict."""
        fncPrintMessage("Requesting Microsoft Graph access token...", "debug")
        result = self.app.acquire_token_silent(self.scope, account=None)
        if not result:
            result = self.app.acquire_token_for_client(scopes=self.scope)
        if "access_token" not in result:
            fncPrintMessage(
                f"MSAL Authentication failed: {result.get('error_description', 'Unknown error')}",
                "error",
            )
            raise RuntimeError("Failed to acquire access token")
        return result

    def _set_token(self, msal_result: Dict[str, Any]) -> None:
        """Store token and expiry from MSAL result."""
        self.token = msal_result["access_token"]
        try:
            self._token_expires_on = int(msal_result.get("expires_on") or 0)
        except (TypeError, ValueError):
            self._token_expires_on = 0
        if not self._token_expires_on:
            self._token_expires_on = int(time.time()) + int(msal_result.get("expires_in", 3600))

    def _ensure_fresh_token(self) -> None:
        """Proactively refresh token if it expires in <5 minutes."""
        now = int(time.time())
        if now >= (self._token_expires_on - 300):
            fncPrintMessage("Refreshing access token (nearing expiry)...", "debug")
            self._set_token(self._acquire_token())

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
            "ConsistencyLevel": "eventual",
        }

    # ---------- HTTP handling ----------

    def _resend(self, response: requests.Response) -> requests.Response:
        req = response.request
        return requests.request(method=req.method, url=req.url, headers=self._auth_headers(), timeout=REQUEST_TIMEOUT)

    def _handle_response(self, response: requests.Response, refreshed: bool = False) -> Dict[str, Any]:
        status = response.status_code

        if status == 200:
            return response.json()

        # Rate limit
        if status == 429:
            retry_after = int(response.headers.get("Retry-After", 5))
            fncPrintMessage(f"Rate limit hit. Sleeping for {retry_after}s...", "warn")
            time.sleep(retry_after)
            return self._handle_response(self._resend(response), refreshed=refreshed)

        # Unauthorized (refresh and retry once)
        if status == 401 and not refreshed:
            try:
                body = response.json()
            except ValueError:
                body = {}
            err = (body.get("error") or {})
            code = err.get("code") or ""
            msg = err.get("message") or ""
            if "InvalidAuthenticationToken" in code or "expired" in str(msg).lower():
                fncPrintMessage("Access token expired, Attempting Refresh.", "warn")
                self._set_token(self._acquire_token())
                return self._handle_response(self._resend(response), refreshed=True)

        if status >= 400:
            level = "debug" if status == 404 else "error"
            fncPrintMessage(f"Graph API Error [{status}] -> {response.text}", level)
            raise GraphApiError(status, response.text)

        try:
            return response.json()
        except ValueError:
            return {"status": status, "text": response.text}

    def _request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Single HTTP request with proactive token refresh and 401 auto-refresh retry."""
        self._ensure_fresh_token()
        resp = requests.request(method, url, headers=self._auth_headers(), params=params, timeout=REQUEST_TIMEOUT)
        return self._handle_response(resp)

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("https://"):
            return endpoint
        return f"{self.graph_root}/{endpoint.strip().lstrip('/')}"

    # ---------- Public API ----------

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Perform a GET request to a Graph endpoint (single page).
        Use get_all for paginated resources.
        """
        url = self._url(endpoint)
        fncPrintMessage(f"GET {url}", "debug")
        return fncRetry(lambda: self._request("GET", url, params=params), should_retry=_is_retryable)

    def get_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Retrieve all items from a paginated Graph endpoint.
        Returns a flat list of items (value) for list endpoints.
        Example: client.get_all("servicePrincipals?$select=id,displayName")
        """
        url = self._url(endpoint)
        fncPrintMessage(f"GET (all pages) {url}", "debug")

        data = fncRetry(lambda: self._request("GET", url, params=params), should_retry=_is_retryable)

        if not isinstance(data, dict):
            return []
        if "value" not in data:
            return [data]

        items: List[Dict[str, Any]] = list(data.get("value") or [])
        next_link = data.get("@odata.nextLink")

        while next_link:
            fncPrintMessage(f"Following nextLink -> {next_link}", "debug")
            page_url = next_link
            page = fncRetry(lambda: self._request("GET", page_url), should_retry=_is_retryable)
            if not isinstance(page, dict):
                break
            items.extend(page.get("value") or [])
            next_link = page.get("@odata.nextLink")

        return items
