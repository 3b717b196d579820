"""Session credentials for the Claude.ai API."""

import os
from urllib.parse import urlencode

from dotenv import load_dotenv


class SessionAuth:
    """Holds the session cookie used to authenticate API requests.

    Acquiring the session key is the user's job (browser cookie); this class
    only loads it and turns it into request headers.
    """

    DEFAULT_BASE_URL = "https://claude.ai/api"

    def __init__(
        self,
        session_key: str | None = None,
        base_url: str | None = None,
        org_id: str | None = None,
    ) -> None:
        """Initialize authentication with credentials.

        Args:
            session_key: Session key (or load from CLAUDE_SESSION_KEY env)
            base_url: API base URL (or load from CLAUDE_BASE_URL env)
            org_id: Default organization ID (or load from CLAUDE_ORG_ID env)
        """
        load_dotenv()

        self.session_key = session_key or os.getenv("CLAUDE_SESSION_KEY", "")
        self.base_url = (base_url or os.getenv("CLAUDE_BASE_URL", self.DEFAULT_BASE_URL)).rstrip("/")
        self.org_id = org_id or os.getenv("CLAUDE_ORG_ID") or None

        if not self.session_key:
            raise ValueError(
                "Missing session key. Set the CLAUDE_SESSION_KEY environment "
                "variable (or .env entry) or pass it directly."
            )

    def get_headers(self, content_type: str = "application/json") -> dict[str, str]:
        """Generate headers for an authenticated API request."""
        return {
            "Cookie": f"sessionKey={self.session_key}",
            "Content-Type": content_type,
            "Accept": "application/json",
        }

    def get_full_url(self, path: str, query_params: dict[str, str] | None = None) -> str:
        """Build full URL from base URL, path, and query params.

        Args:
            path: API path (e.g., /organizations)
            query_params: Optional query parameters

        Returns:
            Full URL string
        """
        url = f"{self.base_url}{path}"
        if query_params:
            url += "?" + urlencode(sorted(query_params.items()))
        return url
