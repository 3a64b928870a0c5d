"""
Azure Blob Storage Configuration.

Manifests (CSV, optionally gzipped) and referenced catalog payloads are read
from Blob Storage. Authentication is DefaultAzureCredential against the
account name, or a connection string for local development (Azurite).

Exports:
    StorageConfig: Pydantic storage configuration model
"""

import os
from typing import Optional, Tuple
from pydantic import BaseModel, Field

from .defaults import StorageDefaults


class StorageConfig(BaseModel):
    """Blob Storage configuration."""

    account_name: str = Field(
        default=StorageDefaults.DEFAULT_ACCOUNT_NAME,
        description="Storage account holding manifests and referenced payloads"
    )

    connection_string: Optional[str] = Field(
        default=None,
        repr=False,
        description="Connection string (local development / Azurite). Takes precedence over managed identity."
    )

    manifest_container: str = Field(
        default=StorageDefaults.MANIFEST_CONTAINER,
        description="Default container for manifests when a checkpoint has no bucket"
    )

    object_storage_schemes: Tuple[str, ...] = Field(
        default=StorageDefaults.OBJECT_STORAGE_SCHEMES,
        description="URI schemes resolved through Blob Storage by the fan-in dispatcher"
    )

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"

    def debug_dict(self) -> dict:
        return {
            'account_name': self.account_name,
            'connection_string': '***MASKED***' if self.connection_string else None,
            'manifest_container': self.manifest_container,
            'object_storage_schemes': list(self.object_storage_schemes),
        }

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        schemes = os.environ.get("OBJECT_STORAGE_SCHEMES")
        return cls(
            account_name=os.environ.get("STORAGE_ACCOUNT_NAME", StorageDefaults.DEFAULT_ACCOUNT_NAME),
            connection_string=os.environ.get("AZURE_STORAGE_CONNECTION_STRING"),
            manifest_container=os.environ.get("MANIFEST_CONTAINER", StorageDefaults.MANIFEST_CONTAINER),
            object_storage_schemes=tuple(s.strip() for s in schemes.split(",") if s.strip())
            if schemes else StorageDefaults.OBJECT_STORAGE_SCHEMES,
        )
