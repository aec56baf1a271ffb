"""Microsoft Graph REST client (app-only, client credentials) on httpx."""

import time

import httpx

from ..config import AzureADAuthConfig
from ..logging_config import get_logger

logger = get_logger(__name__)

GRAPH_V1 = "https://graph.microsoft.com/v1.0"
GRAPH_BETA = "https://graph.microsoft.com/beta"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Properties requested for every directory user
USER_SELECT = [
    "id",
    "userPrincipalName",
    "displayName",
    "jobTitle",
    "department",
    "officeLocation",
    "city",
    "state",
    "country",
    "companyName",
    "employeeType",
    "employeeHireDate",
    "accountEnabled",
    "userType",
]


class GraphError(Exception):
    """Non-success response from Graph or the token endpoint."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Graph request failed ({status_code}): {message}")
        self.status_code = status_code
        self.message = message


class GraphClient:
    """Thin async wrapper around the Graph endpoints the bot needs."""

    def __init__(
        self,
        auth: AzureADAuthConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not auth.configured:
            raise RuntimeError("Graph is not configured")
        self._auth = auth
        self._http = http_client or httpx.AsyncClient(timeout=60.0)
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def close(self) -> None:
        await self._http.aclose()

    async def _get_token(self) -> str:
        # Refresh five minutes early
        if self._token and time.time() < self._token_expires_at - 300:
            return self._token

        response = await self._http.post(
            f"{self._auth.authority}/{self._auth.tenant_id}/oauth2/v2.0/token",
            data={
                "client_id": self._auth.client_id,
                "client_secret": self._auth.client_secret,
                "scope": GRAPH_SCOPE,
                "grant_type": "client_credentials",
            },
        )
        if response.status_code != 200:
            raise GraphError(response.status_code, response.text)

        payload = response.json()
        self._token = payload["access_token"]
        self._token_expires_at = time.time() + int(payload.get("expires_in", 3600))
        logger.info("Acquired Graph access token")
        return self._token

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        headers: dict | None = None,
        follow_redirects: bool = False,
    ) -> httpx.Response:
        if not url.startswith("http"):
            url = f"{GRAPH_V1}{url}"

        request_headers = {"Authorization": f"Bearer {await self._get_token()}"}
        if headers:
            request_headers.update(headers)

        response = await self._http.request(
            method,
            url,
            params=params,
            json=json,
            headers=request_headers,
            follow_redirects=follow_redirects,
        )
        if response.status_code >= 400:
            raise GraphError(response.status_code, _error_message(response))
        return response

    # Users
    async def get_user(
        self, id_or_upn: str, select: list[str] | None = None
    ) -> dict | None:
        """Get a user by object id or UPN. None if not found."""
        try:
            response = await self._request(
                "GET",
                f"/users/{id_or_upn}",
                params={"$select": ",".join(select or USER_SELECT)},
            )
        except GraphError as e:
            if e.status_code == 404:
                return None
            raise
        return response.json()

    async def get_user_manager(self, id_or_upn: str) -> dict | None:
        try:
            response = await self._request(
                "GET",
                f"/users/{id_or_upn}/manager",
                params={"$select": "id,displayName,userPrincipalName"},
            )
        except GraphError as e:
            if e.status_code == 404:
                return None
            raise
        return response.json()

    async def get_user_count(self) -> int:
        """Total users in the tenant (advanced query)."""
        response = await self._request(
            "GET",
            "/users/$count",
            headers={"ConsistencyLevel": "eventual"},
        )
        return int(response.text.strip().lstrip("\ufeff"))

    async def get_users_delta(
        self, select: list[str] | None = None, delta_link: str | None = None
    ) -> tuple[list[dict], str | None]:
        """
        Run a users delta query.

        Starts a new delta round when delta_link is None. Returns all pages of
        changes plus the @odata.deltaLink to use next time.
        """
        if delta_link:
            url: str | None = delta_link
            params = None
        else:
            url = "/users/delta"
            params = {"$select": ",".join(select or USER_SELECT)}

        users: list[dict] = []
        new_delta_link = None
        while url:
            response = await self._request("GET", url, params=params)
            page = response.json()
            users.extend(page.get("value", []))
            params = None
            url = page.get("@odata.nextLink")
            if not url:
                new_delta_link = page.get("@odata.deltaLink")

        return users, new_delta_link

    # Teams app installation
    async def install_app_for_user(self, user_id: str, teams_app_id: str) -> bool:
        """Install the bot's Teams app for a user. False if already installed."""
        try:
            await self._request(
                "POST",
                f"/users/{user_id}/teamwork/installedApps",
                json={
                    "teamsApp@odata.bind": f"{GRAPH_V1}/appCatalogs/teamsApps/{teams_app_id}"
                },
            )
        except GraphError as e:
            if e.status_code == 409:
                return False
            raise
        return True

    async def get_installed_app_chat_id(
        self, user_id: str, teams_app_id: str
    ) -> str | None:
        """Chat id of the 1:1 conversation between the user and the installed app."""
        response = await self._request(
            "GET",
            f"/users/{user_id}/teamwork/installedApps",
            params={
                "$expand": "teamsApp",
                "$filter": f"teamsApp/id eq '{teams_app_id}'",
            },
        )
        installs = response.json().get("value", [])
        if not installs:
            return None

        chat = await self._request(
            "GET", f"/users/{user_id}/teamwork/installedApps/{installs[0]['id']}/chat"
        )
        return chat.json().get("id")

    # Reports
    async def get_copilot_usage_csv(self, period: str = "D30") -> str:
        """Microsoft 365 Copilot usage user detail report as CSV text."""
        response = await self._request(
            "GET",
            f"{GRAPH_BETA}/reports/getMicrosoft365CopilotUsageUserDetail(period='{period}')",
            params={"$format": "text/csv"},
            follow_redirects=True,
        )
        return response.text


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("code") or response.text
    return response.text
