"""
Search request and result models.

Field aliases keep the PascalCase JSON shape clients already consume:
``{"Projects": [{"Name": ..., "Repositories": [{"Name": ..., "Files": [...]}]}]}``.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SearchCriteria(BaseModel):
    """The three regex patterns for one scan."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    project_name_pattern: str = Field(default="", alias="ProjectNamePattern")
    file_name_pattern: str = Field(default="", alias="FileNamePattern")
    content_pattern: str = Field(default="", alias="ContentPattern")


class Item(BaseModel):
    """A file and its matching lines, in file order."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., alias="Name")
    lines: List[str] = Field(..., alias="Lines")


class Repository(BaseModel):
    """A repository with at least one matching file."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., alias="Name")
    files: List[Item] = Field(..., alias="Files")


class Project(BaseModel):
    """A project with at least one matching repository."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., alias="Name")
    repositories: List[Repository] = Field(..., alias="Repositories")


class Results(BaseModel):
    """Root of the scan result tree."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    projects: List[Project] = Field(default_factory=list, alias="Projects")
    warnings: Optional[List[str]] = Field(default=None, alias="Warnings")

    def to_json_bytes(self) -> bytes:
        """Serialize with the public aliases, omitting Warnings when there are none."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
