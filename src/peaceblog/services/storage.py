"""File storage for uploaded images on the local filesystem."""

import uuid
from pathlib import Path

import aiofiles

from peaceblog.config import settings

PUBLIC_PREFIX = "/uploads"


class StorageService:
    """Service for file storage operations."""

    def __init__(self, root: str | Path | None = None) -> None:
        self.upload_dir = Path(root or settings.storage_path)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def _generate_key(self, prefix: str, extension: str, filename: str | None) -> str:
        """Generate a unique storage key, keeping a readable slice of the original name."""
        unique_id = uuid.uuid4().hex
        stem = Path(filename).stem if filename else ""
        safe_stem = "".join(c for c in stem if c.isalnum() or c in "-_")[:40]
        name = f"{unique_id}_{safe_stem}" if safe_stem else unique_id
        return f"{prefix}/{name}.{extension}"

    def _path_for(self, key: str) -> Path:
        path = (self.upload_dir / key).resolve()
        if not path.is_relative_to(self.upload_dir.resolve()):
            raise ValueError(f"Storage key escapes upload directory: {key}")
        return path

    def url_for(self, key: str) -> str:
        return f"{PUBLIC_PREFIX}/{key}"

    async def upload_file(
        self,
        data: bytes,
        prefix: str,
        extension: str,
        filename: str | None = None,
    ) -> tuple[str, str]:
        """Store bytes and return (url, key).

        Args:
            data: File content as bytes
            prefix: Path prefix (e.g., "images")
            extension: File extension without dot (e.g., "png")
            filename: Optional original filename, used to make keys readable

        Returns:
            Tuple of (public_url, storage_key)
        """
        key = self._generate_key(prefix, extension, filename)
        file_path = self._path_for(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(file_path, "wb") as f:
            await f.write(data)

        return self.url_for(key), key


# Global storage service instance
storage = StorageService()
