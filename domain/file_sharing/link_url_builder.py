"""
Link URL Builder

Builds the resolvable URL embedded in a share link. The token is the only
secret in the URL; it is independent of any storage-provider URL.
"""

import os
from typing import Optional

DEFAULT_DOWNLOAD_PATH = "/api/links/download"


class LinkUrlBuilder:
    """
    Builds share URLs of the form ``<base_url><download_path>/<token>``.
    """

    def __init__(self, base_url: Optional[str] = None,
                 download_path: str = DEFAULT_DOWNLOAD_PATH):
        """
        Initialize LinkUrlBuilder.

        Args:
            base_url: Public base URL of the service. Falls back to the
                `PUBLIC_BASE_URL` environment variable; when neither is set,
                relative URLs are produced.
            download_path: Path prefix of the download endpoint
        """
        base = base_url if base_url is not None else os.getenv("PUBLIC_BASE_URL", "")
        self.base_url = base.rstrip("/")
        self.download_path = "/" + download_path.strip("/")

    def build(self, token: str) -> str:
        """
        Build the share URL for a token.

        Args:
            token: Share token

        Returns:
            Share URL string
        """
        return f"{self.base_url}{self.download_path}/{token}"
