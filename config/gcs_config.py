"""
Google Cloud Storage Configuration

Builds the GCS client used by the cloud storage variant.
"""

import logging
import os
from typing import Optional

from google.cloud import storage
from google.oauth2 import service_account

logger = logging.getLogger(__name__)


def create_gcs_client(credentials_path: Optional[str] = None) -> storage.Client:
    """
    Create a Google Cloud Storage client.

    A service account key file is used when given (or named by
    GOOGLE_APPLICATION_CREDENTIALS); otherwise the environment's default
    credentials are used. Signed URLs require credentials that can sign,
    which in practice means a service account.

    Args:
        credentials_path: Optional path to a service account JSON key

    Returns:
        storage.Client

    Raises:
        FileNotFoundError: If an explicit key path does not exist
        google.auth.exceptions.DefaultCredentialsError: If no credentials
            can be found
    """
    credentials_path = credentials_path or os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

    if credentials_path:
        if not os.path.exists(credentials_path):
            raise FileNotFoundError(f"GCS credentials file not found: {credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(credentials_path)
        logger.info(f"GCS client initialized with service account: {credentials_path}")
        return storage.Client(credentials=credentials, project=credentials.project_id)

    logger.info("GCS client initialized with default credentials")
    return storage.Client()
