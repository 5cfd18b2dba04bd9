"""Resolution of stored file references to bytes."""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from casework.core.config import settings
from casework.core.exceptions import ExtractionError
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


class FileStore(ABC):
    """Read access to uploaded files. Writing belongs to the upload layer."""

    @abstractmethod
    async def read(self, file_ref: str) -> bytes:
        """Return the content of a stored file.

        Raises:
            ExtractionError: permanent if the file does not exist or cannot be read
        """


class LocalFileStore(FileStore):
    """File store backed by a directory on the local filesystem."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.storage_root).resolve()

    def resolve(self, file_ref: str) -> Path:
        path = (self.root / file_ref).resolve()
        if self.root not in path.parents and path != self.root:
            raise ExtractionError(f"File reference {file_ref!r} is outside the storage root")
        return path

    async def read(self, file_ref: str) -> bytes:
        path = self.resolve(file_ref)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise ExtractionError(f"the file {file_ref!r} was not found", original_error=e) from e
        except OSError as e:
            LOGGER.warning("Failed to read stored file", extra={"file_ref": file_ref, "error": str(e)})
            raise ExtractionError(f"the file {file_ref!r} could not be read", original_error=e) from e
