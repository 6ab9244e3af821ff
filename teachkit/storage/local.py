import logging
import os

from teachkit.core.config import settings
from teachkit.storage.base import Storage, validate_filename

logger = logging.getLogger(__name__)


class LocalStorage(Storage):
    """Generated artifacts on the local filesystem (or a mounted volume)."""

    def __init__(self, base_path: str | None = None) -> None:
        self.base_path = base_path or settings.storage_base_path

    def _path(self, filename: str) -> str:
        return os.path.join(self.base_path, validate_filename(filename))

    def save(self, filename: str, content: bytes) -> str:
        path = self._path(filename)
        os.makedirs(self.base_path, exist_ok=True)
        tmp_path = f"{path}.part"
        with open(tmp_path, "wb") as f:
            f.write(content)
        os.replace(tmp_path, path)
        logger.info("artifact_saved", extra={"filename": filename, "count": len(content)})
        return path

    def read(self, filename: str) -> bytes:
        with open(self._path(filename), "rb") as f:
            return f.read()

    def exists(self, filename: str) -> bool:
        return os.path.isfile(self._path(filename))


def get_storage() -> Storage:
    return LocalStorage()
