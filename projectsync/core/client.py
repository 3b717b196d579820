"""HTTP client wrapper for the Claude.ai projects API."""

import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .auth import SessionAuth
from .remote import (
    APIError,
    AuthenticationError,
    Conversation,
    ConversationSummary,
    NotFoundError,
    Organization,
    RemoteFile,
    RemoteProject,
)

logger = logging.getLogger(__name__)


class ClaudeClient:
    """HTTP client for the Claude.ai REST API.

    Implements the RemoteStore protocol consumed by the sync engine.
    """

    # Rate limiting shows up as 403 on this API
    RETRY_STATUSES = (403, 429, 500, 502, 503, 504)
    MAX_RETRIES = 3
    BACKOFF_FACTOR = 1.0
    TIMEOUT = 30

    def __init__(self, auth: SessionAuth | None = None) -> None:
        """Initialize client with authentication.

        Args:
            auth: SessionAuth instance (creates one from env if not provided)
        """
        self.auth = auth or SessionAuth()
        self.session = requests.Session()

        retry = Retry(
            total=self.MAX_RETRIES,
            backoff_factor=self.BACKOFF_FACTOR,
            status_forcelist=self.RETRY_STATUSES,
            allowed_methods=None,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def _request(
        self,
        method: str,
        path: str,
        query_params: dict[str, str] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Make an authenticated request to the API.

        Args:
            method: HTTP method
            path: API path (without base URL)
            query_params: Optional query parameters
            json_data: Optional JSON body data

        Returns:
            Parsed JSON response (None for empty bodies)

        Raises:
            APIError: On API errors
        """
        url = self.auth.get_full_url(path, query_params)
        logger.debug("%s %s", method, path)

        try:
            response = self.session.request(
                method=method,
                url=url,
                headers=self.auth.get_headers(),
                json=json_data if method in ("POST", "PUT", "PATCH") else None,
                timeout=self.TIMEOUT,
            )
        except requests.RequestException as e:
            raise APIError(f"Network error: {e}", 0, "network_error") from e

        if response.status_code == 401:
            raise AuthenticationError("Session expired or invalid", 401, "auth_error")
        if response.status_code == 403:
            raise APIError("Rate limit exceeded", 403, "rate_limit")
        if response.status_code == 404:
            raise NotFoundError(f"Resource not found: {path}", 404, "not_found")
        if response.status_code >= 400:
            raise APIError(
                f"API error {response.status_code}: {response.text[:500]}",
                response.status_code,
            )

        # Handle empty responses
        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"Invalid JSON response from {path}", response.status_code) from e

    def get(self, path: str, query_params: dict[str, str] | None = None) -> Any:
        """Make a GET request."""
        return self._request("GET", path, query_params)

    def post(self, path: str, json_data: dict[str, Any] | None = None) -> Any:
        """Make a POST request."""
        return self._request("POST", path, json_data=json_data)

    def put(self, path: str, json_data: dict[str, Any] | None = None) -> Any:
        """Make a PUT request."""
        return self._request("PUT", path, json_data=json_data)

    def delete(self, path: str) -> Any:
        """Make a DELETE request."""
        return self._request("DELETE", path)

    @staticmethod
    def _as_list(response: Any) -> list[dict[str, Any]]:
        if isinstance(response, list):
            return response
        if isinstance(response, dict):
            return response.get("items") or response.get("data") or []
        return []

    # -------------------------------------------------------------------------
    # Organizations
    # -------------------------------------------------------------------------

    def list_organizations(self) -> list[Organization]:
        """List organizations visible to the session."""
        return [Organization.from_api(o) for o in self._as_list(self.get("/organizations"))]

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    def list_projects(self, org_id: str) -> list[RemoteProject]:
        """List projects of an organization, skipping archived ones."""
        response = self.get(f"/organizations/{org_id}/projects")
        return [
            RemoteProject.from_api(p)
            for p in self._as_list(response)
            if not p.get("archived_at")
        ]

    def get_project(self, org_id: str, project_id: str) -> RemoteProject:
        """Get a single project."""
        return RemoteProject.from_api(
            self.get(f"/organizations/{org_id}/projects/{project_id}")
        )

    def get_instructions(self, org_id: str, project_id: str) -> str | None:
        """Get the project's instructions document, None if unset."""
        return self.get_project(org_id, project_id).instructions

    def set_instructions(self, org_id: str, project_id: str, content: str) -> None:
        """Replace the project's instructions document."""
        self.put(
            f"/organizations/{org_id}/projects/{project_id}",
            json_data={"prompt_template": content},
        )

    # -------------------------------------------------------------------------
    # Project files
    # -------------------------------------------------------------------------

    def list_files(self, org_id: str, project_id: str) -> list[RemoteFile]:
        """List knowledge files of a project, including their content."""
        response = self.get(f"/organizations/{org_id}/projects/{project_id}/docs")
        return [RemoteFile.from_api(f) for f in self._as_list(response)]

    def upload_file(
        self,
        org_id: str,
        project_id: str,
        name: str,
        content: str,
    ) -> RemoteFile:
        """Upload a knowledge file."""
        response = self.post(
            f"/organizations/{org_id}/projects/{project_id}/docs",
            json_data={"file_name": name, "content": content},
        )
        if isinstance(response, dict) and "uuid" in response:
            return RemoteFile.from_api(response)
        return RemoteFile(id="", name=name, content=content)

    def delete_file(self, org_id: str, project_id: str, file_id: str) -> None:
        """Delete a knowledge file.

        Raises:
            NotFoundError: If the file does not exist
        """
        self.delete(f"/organizations/{org_id}/projects/{project_id}/docs/{file_id}")

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    def list_conversations(self, org_id: str) -> list[ConversationSummary]:
        """List conversations (without messages)."""
        response = self.get(f"/organizations/{org_id}/chat_conversations")
        return [ConversationSummary.from_api(c) for c in self._as_list(response)]

    def get_conversation(self, org_id: str, conversation_id: str) -> Conversation:
        """Get a conversation with its full message history."""
        response = self.get(
            f"/organizations/{org_id}/chat_conversations/{conversation_id}",
            query_params={"rendering_mode": "raw"},
        )
        return Conversation.from_api(response)

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    def verify_connection(self) -> bool:
        """Verify API connectivity and authentication.

        Returns:
            True if at least one organization is visible

        Raises:
            APIError: On connection or auth failure
        """
        return len(self.list_organizations()) > 0
