"""
Search service: connects to an organization and runs one scan.
"""

import logging
from typing import Callable

from application.models.search_models import Results, SearchCriteria
from application.services.azure_devops.client import AzureDevOpsClient
from application.services.scan.engine import ScanEngine
from application.services.scan.limiter import ConcurrencyLimiter
from common.config.config import SCAN_MAX_CONCURRENCY
from common.telemetry.app_logger import AppLogger

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], AzureDevOpsClient]


class SearchService:
    """Opens a catalog session per request and runs the scan engine against it."""

    def __init__(
        self,
        app_logger: AppLogger,
        client_factory: ClientFactory = AzureDevOpsClient,
        max_concurrency: int = SCAN_MAX_CONCURRENCY,
    ):
        self.app_logger = app_logger
        self.client_factory = client_factory
        self.max_concurrency = max_concurrency

    async def search(
        self, organization: str, personal_access_token: str, criteria: SearchCriteria
    ) -> Results:
        """Scan organization for criteria.

        Raises:
            RemoteUnavailable: Session could not be established
            RemoteError: Project listing failed
            InvalidPattern: A pattern does not compile
        """
        client = self.client_factory(organization, personal_access_token)
        async with client:
            engine = ScanEngine(
                catalog=client,
                criteria=criteria,
                app_logger=self.app_logger,
                limiter=ConcurrencyLimiter(self.max_concurrency),
            )
            results = await engine.scan()

        if results.warnings:
            logger.warning(
                f"Scan of {organization} finished with {len(results.warnings)} warnings"
            )
        return results
