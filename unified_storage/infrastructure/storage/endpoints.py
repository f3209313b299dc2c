"""Endpoint factories: build vendor clients from connection strings or credentials."""
import json
import logging
from typing import Dict, List, Optional

import boto3
import google_auth_httplib2
import httplib2
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.http import HttpRequest

from .base import StorageConfig

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]

# Connection string keys -> StorageConfig attributes
S3_CONNECTION_KEYS = {
    "AccessKeyId": "access_key",
    "SecretAccessKey": "secret_key",
    "Region": "region",
    "EndpointUrl": "endpoint_url",
    "UseSsl": "use_ssl",
}


def parse_connection_string(connection: str) -> Dict[str, str]:
    """Parse ``Key=Value;Key=Value`` (or a JSON object) into a dict.

    Raises:
        ValueError: If a part has no ``=`` or the JSON isn't an object
    """
    connection = (connection or "").strip()
    if not connection:
        raise ValueError("Connection string cannot be null or empty.")

    if connection.startswith("{"):
        data = json.loads(connection)
        if not isinstance(data, dict):
            raise ValueError("Connection JSON must be an object")
        return {str(k): str(v) for k, v in data.items()}

    settings = {}
    for part in connection.split(";"):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Malformed connection string part: {part!r}")
        settings[key.strip()] = value.strip()
    return settings


class S3EndpointFactory:
    """Creates boto3 S3 clients."""

    def __init__(self, config: Optional[StorageConfig] = None):
        self.config = config or StorageConfig(backend="s3")

    def _settings(self, connection: Optional[str]) -> dict:
        settings = {
            "access_key": self.config.access_key,
            "secret_key": self.config.secret_key,
            "region": self.config.region,
            "endpoint_url": self.config.endpoint_url,
            "use_ssl": self.config.use_ssl,
        }
        if connection:
            for key, value in parse_connection_string(connection).items():
                if key in S3_CONNECTION_KEYS:
                    settings[S3_CONNECTION_KEYS[key]] = value
        if isinstance(settings["use_ssl"], str):
            settings["use_ssl"] = settings["use_ssl"].lower() == "true"
        return settings

    def create_endpoint(self, connection: Optional[str] = None):
        """Build an S3 client from a connection string and/or the config."""
        settings = self._settings(connection)

        # Build boto3 client kwargs
        client_kwargs = {
            "service_name": "s3",
            "aws_access_key_id": settings["access_key"],
            "aws_secret_access_key": settings["secret_key"],
            "region_name": settings["region"],
        }

        # Custom endpoint for MinIO/DigitalOcean
        if settings["endpoint_url"]:
            client_kwargs["endpoint_url"] = settings["endpoint_url"]
            client_kwargs["use_ssl"] = settings["use_ssl"]

        logger.info(
            f"Creating S3 client: region={settings['region']}, "
            f"endpoint={settings['endpoint_url'] or 'default'}"
        )
        return boto3.client(**client_kwargs)


class DriveEndpointFactory:
    """Creates Google Drive v3 services from service-account JSON."""

    def __init__(self, scopes: Optional[List[str]] = None):
        self.scopes = scopes or DRIVE_SCOPES

    def create_endpoint(self, credentials_json: str):
        """Build a Drive v3 service.

        httplib2 connections are not thread-safe, and storage operations run
        requests from worker threads, so every request gets its own
        authorized transport.

        Raises:
            ValueError: If the credentials aren't a service-account document
        """
        if not credentials_json:
            raise ValueError("Drive credentials cannot be null or empty.")

        info = json.loads(credentials_json)
        credentials = service_account.Credentials.from_service_account_info(
            info, scopes=self.scopes
        )

        def build_request(http, *args, **kwargs):
            new_http = google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http())
            return HttpRequest(new_http, *args, **kwargs)

        authorized_http = google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http())
        service = build(
            "drive",
            "v3",
            http=authorized_http,
            requestBuilder=build_request,
            cache_discovery=False,
        )
        logger.info(f"Created Google Drive service for {info.get('client_email', 'unknown account')}")
        return service
