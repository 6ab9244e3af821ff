from abc import ABC, abstractmethod


class Storage(ABC):
    @abstractmethod
    def save(self, filename: str, content: bytes) -> str:
        """Save a generated artifact; returns the stored path."""
        raise NotImplementedError

    @abstractmethod
    def read(self, filename: str) -> bytes:
        """Raises FileNotFoundError when the artifact is missing."""
        raise NotImplementedError

    @abstractmethod
    def exists(self, filename: str) -> bool:
        raise NotImplementedError


def validate_filename(filename: str) -> str:
    """Artifacts live flat under one root; reject anything that could escape it."""
    if not filename or ".." in filename or "/" in filename or "\\" in filename or "\x00" in filename:
        raise ValueError(f"Invalid filename: {filename!r}")
    return filename
