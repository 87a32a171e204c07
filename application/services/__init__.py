"""
Application services package.

Contains the scan engine, the Azure DevOps catalog client and the result cache.
"""

from application.services.search_service import SearchService

__all__ = ["SearchService"]
