"""
Catalog contract consumed by the scan engine.

The engine only talks to a CatalogClient; AzureDevOpsClient is the production
implementation and tests provide an in-memory one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

BLOB_OBJECT_TYPE = "blob"


@dataclass(frozen=True)
class ProjectRef:
    name: str


@dataclass(frozen=True)
class ProjectPage:
    """One page of the project listing."""

    projects: List[ProjectRef] = field(default_factory=list)
    continuation_token: Optional[str] = None


@dataclass(frozen=True)
class RepositoryRef:
    name: str


@dataclass(frozen=True)
class FileRef:
    path: str
    object_type: str

    @property
    def is_blob(self) -> bool:
        return self.object_type == BLOB_OBJECT_TYPE


class CatalogClient(ABC):
    """Paginated read access to the projects, repositories and files of one organization."""

    @abstractmethod
    async def list_projects(self) -> ProjectPage:
        """Return the first page of projects."""
        pass

    @abstractmethod
    async def list_more_projects(self, continuation_token: str) -> ProjectPage:
        """Return the page that follows continuation_token."""
        pass

    @abstractmethod
    async def list_repositories(self, project_name: str) -> List[RepositoryRef]:
        pass

    @abstractmethod
    async def list_files(self, project_name: str, repo_name: str) -> List[FileRef]:
        """
        List every entry of a repository's default branch, recursively.

        A repository without branches yields an empty list, not an error.
        """
        pass

    @abstractmethod
    async def fetch_file_content(
        self, project_name: str, repo_name: str, path: str
    ) -> bytes:
        pass
