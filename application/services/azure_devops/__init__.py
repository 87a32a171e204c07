from application.services.azure_devops.catalog import (
    CatalogClient,
    FileRef,
    ProjectPage,
    ProjectRef,
    RepositoryRef,
)
from application.services.azure_devops.client import AzureDevOpsClient

__all__ = [
    "AzureDevOpsClient",
    "CatalogClient",
    "FileRef",
    "ProjectPage",
    "ProjectRef",
    "RepositoryRef",
]
