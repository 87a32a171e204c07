"""
Application models package.

Contains the search request and result tree models.
"""

from application.models.search_models import (
    Item,
    Project,
    Repository,
    Results,
    SearchCriteria,
)

__all__ = ["Item", "Project", "Repository", "Results", "SearchCriteria"]
