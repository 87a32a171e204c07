"""
Regex matching with a uniform error contract.

Patterns use RE2 syntax and are searched anywhere in the candidate
(unanchored), identically for project names, file paths and content lines.
RE2 matches in time linear in the candidate, so a user-supplied pattern cannot
backtrack catastrophically over file content. Lookaround and backreferences
are rejected as invalid patterns.
"""

from dataclasses import dataclass
from typing import Any

import re2

from application.models.search_models import SearchCriteria
from common.exception.exceptions import InvalidPattern

_OPTIONS = re2.Options()
# Compile failures are reported through InvalidPattern only
_OPTIONS.log_errors = False


def compile_pattern(pattern: str) -> Any:
    """Compile pattern, raising InvalidPattern on a syntax error."""
    try:
        return re2.compile(pattern, options=_OPTIONS)
    except re2.error as e:
        raise InvalidPattern(pattern, str(e)) from e


def matches(pattern: str, candidate: str) -> bool:
    """Return True if pattern matches anywhere in candidate."""
    return compile_pattern(pattern).search(candidate) is not None


@dataclass(frozen=True)
class PatternMatcher:
    """A pattern compiled once and applied to many candidates."""

    pattern: Any

    @classmethod
    def from_string(cls, pattern: str) -> "PatternMatcher":
        return cls(compile_pattern(pattern))

    def matches(self, candidate: str) -> bool:
        return self.pattern.search(candidate) is not None


@dataclass(frozen=True)
class CompiledCriteria:
    projects: PatternMatcher
    files: PatternMatcher
    content: PatternMatcher


def compile_criteria(criteria: SearchCriteria) -> CompiledCriteria:
    """Compile all three patterns, failing on the first invalid one."""
    return CompiledCriteria(
        projects=PatternMatcher.from_string(criteria.project_name_pattern),
        files=PatternMatcher.from_string(criteria.file_name_pattern),
        content=PatternMatcher.from_string(criteria.content_pattern),
    )
