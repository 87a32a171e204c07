"""
Azure DevOps REST client implementing the catalog contract.

Authenticates with a personal access token (basic auth, empty user name) and
keeps one HTTP session open per scan.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from application.services.azure_devops.catalog import (
    CatalogClient,
    FileRef,
    ProjectPage,
    ProjectRef,
    RepositoryRef,
)
from common.config.config import ADO_API_VERSION, ADO_BASE_URL, ADO_REQUEST_TIMEOUT
from common.exception.exceptions import RemoteError, RemoteUnavailable

logger = logging.getLogger(__name__)

CONTINUATION_TOKEN_HEADER = "x-ms-continuationtoken"
NO_BRANCHES_MESSAGE = "Cannot find any branches for the"
# 203 is the sign-in page Azure DevOps serves for a rejected PAT
AUTH_FAILURE_STATUSES = (203, 401, 403)
MAX_ERROR_MESSAGE_LENGTH = 500


def _segment(value: str) -> str:
    return quote(value, safe="")


class AzureDevOpsClient(CatalogClient):
    """CatalogClient for one Azure DevOps organization."""

    def __init__(
        self,
        organization: str,
        personal_access_token: str,
        base_url: str = ADO_BASE_URL,
        api_version: str = ADO_API_VERSION,
        timeout: float = ADO_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            organization: Organization name, as in https://dev.azure.com/{organization}
            personal_access_token: PAT used for basic auth
            base_url: Service root URL
            api_version: REST api-version sent with every call
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.organization = organization
        self.organization_url = f"{base_url.rstrip('/')}/{_segment(organization)}"
        self.api_version = api_version
        self._token = personal_access_token
        self._timeout = httpx.Timeout(timeout, connect=min(timeout, 30.0))
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def connect(self) -> None:
        """Open the HTTP session, raising RemoteUnavailable when it cannot be set up."""
        if not self.organization or not self._token:
            raise RemoteUnavailable()
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.organization_url + "/",
            auth=("", self._token),
            headers={"Accept": "application/json"},
            timeout=self._timeout,
            transport=self._transport,
            trust_env=False,
        )
        logger.info(f"Opened Azure DevOps session for {self.organization_url}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AzureDevOpsClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def list_projects(self) -> ProjectPage:
        return await self._get_projects(None)

    async def list_more_projects(self, continuation_token: str) -> ProjectPage:
        return await self._get_projects(continuation_token)

    async def list_repositories(self, project_name: str) -> List[RepositoryRef]:
        response = await self._get(f"{_segment(project_name)}/_apis/git/repositories")
        return [RepositoryRef(name=repo.get("name", "")) for repo in self._values(response)]

    async def list_files(self, project_name: str, repo_name: str) -> List[FileRef]:
        path = (
            f"{_segment(project_name)}/_apis/git/repositories/"
            f"{_segment(repo_name)}/items"
        )
        try:
            response = await self._get(path, params={"recursionLevel": "Full"})
        except RemoteError as e:
            if NO_BRANCHES_MESSAGE in e.message:
                logger.info(f"Repository {project_name}/{repo_name} has no branches")
                return []
            raise

        return [
            FileRef(path=item.get("path", ""), object_type=item.get("gitObjectType", ""))
            for item in self._values(response)
        ]

    async def fetch_file_content(
        self, project_name: str, repo_name: str, path: str
    ) -> bytes:
        response = await self._get(
            f"{_segment(project_name)}/_apis/git/repositories/{_segment(repo_name)}/items",
            params={"path": path, "includeContent": "true", "$format": "octetStream"},
            accept="application/octet-stream",
        )
        return response.content

    async def _get_projects(self, continuation_token: Optional[str]) -> ProjectPage:
        params: Dict[str, Any] = {}
        if continuation_token:
            params["continuationToken"] = continuation_token

        response = await self._get("_apis/projects", params=params)
        projects = [
            ProjectRef(name=project.get("name", "")) for project in self._values(response)
        ]
        return ProjectPage(
            projects=projects,
            continuation_token=response.headers.get(CONTINUATION_TOKEN_HEADER) or None,
        )

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        accept: str = "application/json",
    ) -> httpx.Response:
        """Issue a GET and map failures onto the scanner error taxonomy.

        Raises:
            RemoteUnavailable: Session not open, host unreachable or credentials rejected
            RemoteError: Any other non-success response or transport failure
        """
        if self._client is None:
            raise RemoteUnavailable()

        query = {"api-version": self.api_version}
        query.update(params or {})

        try:
            response = await self._client.get(path, params=query, headers={"Accept": accept})
        except httpx.ConnectError as e:
            logger.error(f"Azure DevOps connection error for {path}: {e}")
            raise RemoteUnavailable() from e
        except httpx.RequestError as e:
            raise RemoteError(f"Azure DevOps request error for {path}: {e}") from e

        if response.status_code in AUTH_FAILURE_STATUSES:
            logger.error(
                f"Azure DevOps rejected credentials for {self.organization_url} "
                f"(status: {response.status_code})"
            )
            raise RemoteUnavailable()

        if not response.is_success:
            raise RemoteError(
                f"Azure DevOps request to {path} failed "
                f"(status {response.status_code}): {self._error_message(response)}",
                status_code=response.status_code,
            )

        return response

    @staticmethod
    def _values(response: httpx.Response) -> List[Dict[str, Any]]:
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteError(f"Azure DevOps returned a non-JSON body: {e}") from e
        return body.get("value", []) if isinstance(body, dict) else []

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Service message from a JSON error body, else the status reason phrase.

        Non-JSON bodies such as gateway HTML pages are never echoed.
        """
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])[:MAX_ERROR_MESSAGE_LENGTH]
        return response.reason_phrase or "unexpected response"
