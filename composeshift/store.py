"""
Saved-project storage interface.

Conversion never touches storage directly; callers inject a ProjectStore.
MemoryProjectStore is the in-process implementation, with the same 5 MiB
quota a browser gives local storage.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

STORAGE_LIMIT = 5 * 1024 * 1024
WARNING_THRESHOLD = 0.8


class StorageQuotaExceeded(Exception):
    """Raised when saving a project would exceed the store's capacity."""

    def __init__(self, used: int, limit: int):
        self.used = used
        self.limit = limit
        super().__init__(
            f"Storage quota exceeded ({used / (1024 * 1024):.2f}MB / "
            f"{limit / (1024 * 1024):.2f}MB used)"
        )


@dataclass
class StorageSpace:
    """Capacity signal for a store."""
    used: int
    limit: int

    @property
    def available(self) -> int:
        return self.limit - self.used

    @property
    def usage_percentage(self) -> float:
        return (self.used / self.limit) * 100 if self.limit else 100.0

    @property
    def warning(self) -> bool:
        """True once usage reaches 80% of the limit."""
        return self.usage_percentage >= WARNING_THRESHOLD * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "used": self.used,
            "available": self.available,
            "usagePercentage": self.usage_percentage,
            "limit": self.limit,
            "warning": self.warning,
        }


class ProjectStore(ABC):
    """Key-value store of saved projects, keyed by project id."""

    @abstractmethod
    def get(self, project_id: str) -> Optional[Dict[str, Any]]:
        """Return a saved project, or None."""

    @abstractmethod
    def set(self, project_id: str, project: Dict[str, Any]) -> None:
        """
        Save a project, replacing any previous version.

        Raises:
            StorageQuotaExceeded: If the project does not fit
        """

    @abstractmethod
    def list(self) -> List[str]:
        """Ids of saved projects in insertion order."""

    @abstractmethod
    def delete(self, project_id: str) -> bool:
        """Remove a project. Returns False if it did not exist."""

    @abstractmethod
    def space(self) -> StorageSpace:
        """Current usage against the store limit."""


def _encoded_size(project_id: str, project: Dict[str, Any]) -> int:
    return len(project_id.encode("utf-8")) + len(json.dumps(project).encode("utf-8"))


class MemoryProjectStore(ProjectStore):
    """In-memory ProjectStore, sized by the JSON encoding of each project."""

    def __init__(self, limit: int = STORAGE_LIMIT):
        self.limit = limit
        self._projects: Dict[str, str] = {}
        self._sizes: Dict[str, int] = {}

    def get(self, project_id: str) -> Optional[Dict[str, Any]]:
        encoded = self._projects.get(project_id)
        if encoded is None:
            return None
        return json.loads(encoded)

    def set(self, project_id: str, project: Dict[str, Any]) -> None:
        size = _encoded_size(project_id, project)
        used = sum(self._sizes.values()) - self._sizes.get(project_id, 0) + size
        if used > self.limit:
            raise StorageQuotaExceeded(used, self.limit)

        self._projects[project_id] = json.dumps(project)
        self._sizes[project_id] = size

        space = self.space()
        if space.warning:
            logger.warning("Project storage at %.1f%% of limit", space.usage_percentage)

    def list(self) -> List[str]:
        return list(self._projects)

    def delete(self, project_id: str) -> bool:
        if project_id not in self._projects:
            return False
        del self._projects[project_id]
        del self._sizes[project_id]
        return True

    def space(self) -> StorageSpace:
        return StorageSpace(used=sum(self._sizes.values()), limit=self.limit)
