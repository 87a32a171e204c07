"""
Application routes package.

Contains the API endpoint blueprints for the content scanner.
"""

from application.routes.search import search_bp

__all__ = ["search_bp"]
