"""Storage of versioned artifacts scoped to applications, users and sessions."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

__all__ = ["Part", "ArtifactService", "InMemoryArtifactService"]

_USER_NAMESPACE_PREFIX = "user:"


@dataclass(frozen=True)
class Part:
    """A piece of artifact content: either text or binary data, with a MIME type."""

    text: str = ""
    data: bytes = b""
    mime_type: str = ""

    @classmethod
    def from_text(cls, text: str, mime_type: str) -> "Part":
        """Build a textual part."""
        return cls(text=text, mime_type=mime_type)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "Part":
        """Build a binary part."""
        return cls(data=bytes(data), mime_type=mime_type)


class ArtifactService(ABC):
    """Interface for artifact storage backends."""

    @abstractmethod
    def save_artifact(
        self, app_name: str, user_id: str, session_id: str, filename: str, artifact: Part
    ) -> int:
        """Store a new version of an artifact and return its version number."""

    @abstractmethod
    def load_artifact(
        self,
        app_name: str,
        user_id: str,
        session_id: str,
        filename: str,
        version: int | None = None,
    ) -> Part | None:
        """Return the given version (latest if None), or None if absent."""

    @abstractmethod
    def list_artifact_keys(self, app_name: str, user_id: str, session_id: str) -> list[str]:
        """Return the sorted filenames visible within a session."""

    @abstractmethod
    def delete_artifact(
        self, app_name: str, user_id: str, session_id: str, filename: str
    ) -> None:
        """Remove every version of an artifact."""

    @abstractmethod
    def list_versions(
        self, app_name: str, user_id: str, session_id: str, filename: str
    ) -> list[int]:
        """Return the version numbers of an artifact in ascending order."""


def _has_user_namespace(filename: str) -> bool:
    return filename.startswith(_USER_NAMESPACE_PREFIX)


class InMemoryArtifactService(ArtifactService):
    """Thread-safe artifact store kept in process memory."""

    def __init__(self) -> None:
        self._artifacts: dict[str, list[Part]] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _path(app_name: str, user_id: str, session_id: str, filename: str) -> str:
        if _has_user_namespace(filename):
            return f"{app_name}/{user_id}/user/{filename}"
        return f"{app_name}/{user_id}/{session_id}/{filename}"

    def save_artifact(self, app_name, user_id, session_id, filename, artifact):
        path = self._path(app_name, user_id, session_id, filename)
        with self._lock:
            versions = self._artifacts.setdefault(path, [])
            versions.append(artifact)
            return len(versions) - 1

    def load_artifact(self, app_name, user_id, session_id, filename, version=None):
        path = self._path(app_name, user_id, session_id, filename)
        with self._lock:
            versions = self._artifacts.get(path)
            if not versions:
                return None
            if version is None:
                return versions[-1]
            if not 0 <= version < len(versions):
                return None
            return versions[version]

    def list_artifact_keys(self, app_name, user_id, session_id):
        session_prefix = f"{app_name}/{user_id}/{session_id}/"
        user_prefix = f"{app_name}/{user_id}/user/"
        with self._lock:
            paths = list(self._artifacts)
        names = []
        for path in paths:
            if path.startswith(session_prefix):
                names.append(path[len(session_prefix):])
            elif path.startswith(user_prefix):
                names.append(path[len(user_prefix):])
        return sorted(names)

    def delete_artifact(self, app_name, user_id, session_id, filename):
        path = self._path(app_name, user_id, session_id, filename)
        with self._lock:
            self._artifacts.pop(path, None)

    def list_versions(self, app_name, user_id, session_id, filename):
        path = self._path(app_name, user_id, session_id, filename)
        with self._lock:
            return list(range(len(self._artifacts.get(path, ()))))