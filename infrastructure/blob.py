"""
Blob Storage Repository - Central Authentication Point

Single point of authentication for all blob access in the ingestion
pipeline: manifests and their per-chunk split blobs for the chunked
controller, referenced payloads for the fan-in dispatcher.

Authentication:
    - AZURE_STORAGE_CONNECTION_STRING (local development / Azurite)
    - DefaultAzureCredential against STORAGE_ACCOUNT_NAME otherwise
      (environment, managed identity, Azure CLI)

Usage:
    blob_repo = BlobRepository.instance()
    data = blob_repo.read_blob('manifests', 'sentinel/index.csv.gz')
    item = blob_repo.read_blob_json('items', 'S2A/item.json')

Exports:
    IBlobRepository: Interface for dependency injection
    BlobRepository: Singleton implementation
"""

import json
import threading
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Any, Dict, Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient, ContainerClient, ContentSettings

from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "BlobRepository")


# ============================================================================
# BLOB REPOSITORY INTERFACE
# ============================================================================

class IBlobRepository(ABC):
    """
    Interface for blob storage operations.

    Enables dependency injection and testing/mocking of blob operations.
    """

    @abstractmethod
    def read_blob(self, container: str, blob_path: str) -> bytes:
        """Read entire blob to memory"""
        pass

    @abstractmethod
    def write_blob(self, container: str, blob_path: str, data: bytes,
                   content_type: str = "application/octet-stream") -> None:
        """Write blob from bytes, overwriting"""
        pass

    @abstractmethod
    def blob_exists(self, container: str, blob_path: str) -> bool:
        """Check if blob exists"""
        pass

    def read_blob_to_stream(self, container: str, blob_path: str) -> BytesIO:
        """Read blob to a BytesIO stream."""
        return BytesIO(self.read_blob(container, blob_path))

    def read_blob_json(self, container: str, blob_path: str) -> Any:
        """
        Read and decode a JSON blob.

        Raises:
            ResourceNotFoundError: Blob does not exist
            ValueError: Blob is not valid UTF-8 JSON
        """
        data = self.read_blob(container, blob_path)
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"{container}/{blob_path} is not valid JSON: {e}") from e


# ============================================================================
# BLOB REPOSITORY IMPLEMENTATION
# ============================================================================

class BlobRepository(IBlobRepository):
    """
    Centralized blob storage repository with managed authentication.

    Thread-safe singleton; container clients are cached for connection reuse.
    """

    _instance: Optional['BlobRepository'] = None
    _lock = threading.Lock()

    def __init__(self, connection_string: Optional[str] = None, storage_account: Optional[str] = None):
        """
        Args:
            connection_string: Storage connection string (wins when given)
            storage_account: Account name for DefaultAzureCredential
        """
        try:
            if connection_string:
                logger.info("Initializing BlobRepository with connection string")
                self.blob_service = BlobServiceClient.from_connection_string(connection_string)
                self.storage_account = self.blob_service.account_name
            else:
                self.storage_account = storage_account
                self.account_url = f"https://{storage_account}.blob.core.windows.net"
                logger.info(f"Initializing BlobRepository with DefaultAzureCredential for account: {storage_account}")
                self.credential = DefaultAzureCredential()
                self.blob_service = BlobServiceClient(
                    account_url=self.account_url,
                    credential=self.credential
                )

            self._container_clients: Dict[str, ContainerClient] = {}
            logger.info(f"✅ BlobRepository initialized for account: {self.storage_account}")

        except Exception as e:
            logger.error(f"❌ Failed to initialize BlobRepository: {e}")
            raise

    @classmethod
    def instance(cls) -> 'BlobRepository':
        """
        Get singleton instance configured from the environment.

        Returns:
            BlobRepository singleton instance
        """
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    from config import get_config
                    storage = get_config().storage
                    cls._instance = cls(
                        connection_string=storage.connection_string,
                        storage_account=storage.account_name
                    )
        return cls._instance

    def _get_container_client(self, container: str) -> ContainerClient:
        """Get or create cached container client."""
        if container not in self._container_clients:
            self._container_clients[container] = self.blob_service.get_container_client(container)
            logger.debug(f"Created new container client for: {container}")
        return self._container_clients[container]

    # ========================================================================
    # CORE BLOB OPERATIONS
    # ========================================================================

    def read_blob(self, container: str, blob_path: str) -> bytes:
        """
        Read entire blob to memory.

        Raises:
            ResourceNotFoundError: If blob doesn't exist
        """
        try:
            blob_client = self._get_container_client(container).get_blob_client(blob_path)

            logger.debug(f"Reading blob: {container}/{blob_path}")
            data = blob_client.download_blob().readall()

            logger.debug(f"Successfully read {len(data)} bytes from {container}/{blob_path}")
            return data

        except ResourceNotFoundError:
            logger.error(f"Blob not found: {container}/{blob_path}")
            raise
        except Exception as e:
            logger.error(f"Failed to read blob {container}/{blob_path}: {e}")
            raise

    def write_blob(self, container: str, blob_path: str, data: bytes,
                   content_type: str = "application/octet-stream") -> None:
        """
        Write blob from bytes, overwriting any existing blob.

        Args:
            container: Container name
            blob_path: Path for blob
            data: Bytes to write
            content_type: MIME type for blob
        """
        try:
            blob_client = self._get_container_client(container).get_blob_client(blob_path)
            logger.debug(f"Writing blob: {container}/{blob_path} ({len(data)} bytes)")
            blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except Exception as e:
            logger.error(f"Failed to write blob {container}/{blob_path}: {e}")
            raise

    def blob_exists(self, container: str, blob_path: str) -> bool:
        """
        Check if blob exists.

        Returns:
            True if blob exists, False otherwise
        """
        try:
            blob_client = self._get_container_client(container).get_blob_client(blob_path)
            blob_client.get_blob_properties()
            return True
        except ResourceNotFoundError:
            return False
        except Exception as e:
            logger.error(f"Error checking blob existence: {e}")
            raise
