"""
Common utilities for route handlers.

Provides request body decoding and response formatting.
"""
