"""
Concurrent scan of an organization's projects, repositories, files and lines.

Each rank fans out one task per child and waits for all of them before
building the parent node. A child task returns a BranchOutcome holding its
node (None when nothing matched) and the warnings collected beneath it, so
per-branch remote failures travel upward with the results instead of being
dropped.

Fatal errors (InvalidPattern, RemoteUnavailable) cancel the remaining
siblings and propagate to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from application.models.search_models import (
    Item,
    Project,
    Repository,
    Results,
    SearchCriteria,
)
from application.services.azure_devops.catalog import CatalogClient, FileRef, ProjectRef
from application.services.scan.limiter import ConcurrencyLimiter
from application.services.scan.matcher import (
    CompiledCriteria,
    PatternMatcher,
    compile_criteria,
)
from common.exception.exceptions import RemoteError
from common.telemetry.app_logger import AppLogger

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BranchOutcome(Generic[T]):
    node: Optional[T] = None
    warnings: Tuple[str, ...] = ()


def iter_lines(content: bytes) -> Iterator[str]:
    """Yield the lines of content without their terminators.

    Lines end at ``\\n``; one trailing ``\\r`` is dropped. A trailing newline
    does not produce a final empty line.
    """
    raw_lines = content.split(b"\n")
    if raw_lines and raw_lines[-1] == b"":
        raw_lines.pop()

    for raw in raw_lines:
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        yield raw.decode("utf-8", errors="replace")


def matching_lines(content: bytes, matcher: PatternMatcher) -> List[str]:
    """Return the lines of content matching matcher, in file order."""
    return [line for line in iter_lines(content) if matcher.matches(line)]


def _collect(outcomes: Iterable[BranchOutcome[T]]) -> Tuple[List[T], Tuple[str, ...]]:
    nodes: List[T] = []
    warnings: List[str] = []
    for outcome in outcomes:
        if outcome.node is not None:
            nodes.append(outcome.node)
        warnings.extend(outcome.warnings)
    return nodes, tuple(warnings)


async def _join(coros: Iterable[Awaitable[T]]) -> List[T]:
    """Run coros concurrently and wait for all of them.

    If any of them raises, the others are cancelled before the error is
    re-raised.
    """
    tasks = [asyncio.ensure_future(coro) for coro in coros]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class ScanEngine:
    """Scans one organization for files whose lines match the search criteria."""

    def __init__(
        self,
        catalog: CatalogClient,
        criteria: SearchCriteria,
        app_logger: AppLogger,
        limiter: Optional[ConcurrencyLimiter] = None,
    ):
        """Initialize the engine.

        Args:
            catalog: Remote catalog to walk
            criteria: Project, file and content patterns
            app_logger: Telemetry sink for branch failures
            limiter: Shared cap on in-flight remote calls
        """
        self.catalog = catalog
        self.criteria = criteria
        self.app_logger = app_logger
        self.limiter = limiter or ConcurrencyLimiter()

    async def scan(self) -> Results:
        """Run the scan.

        Returns:
            Result tree holding only branches with at least one matching line,
            plus warnings for branches that failed

        Raises:
            InvalidPattern: A pattern does not compile
            RemoteUnavailable: The catalog cannot be reached
            RemoteError: Project listing failed
        """
        compiled = compile_criteria(self.criteria)
        projects = await self._discover_projects(compiled)
        logger.info(f"Scanning {len(projects)} matching projects")

        outcomes = await _join(
            self._scan_project(project.name, compiled) for project in projects
        )
        nodes, warnings = _collect(outcomes)
        return Results(projects=nodes, warnings=list(warnings) or None)

    async def _discover_projects(self, compiled: CompiledCriteria) -> List[ProjectRef]:
        """Drain every project page, then filter the full listing by name."""
        page = await self.limiter.run(self.catalog.list_projects)
        listed = list(page.projects)

        while page.continuation_token:
            page = await self.limiter.run(
                self.catalog.list_more_projects, page.continuation_token
            )
            listed.extend(page.projects)

        return [project for project in listed if compiled.projects.matches(project.name)]

    async def _scan_project(
        self, project_name: str, compiled: CompiledCriteria
    ) -> BranchOutcome[Project]:
        try:
            repos = await self.limiter.run(self.catalog.list_repositories, project_name)
        except RemoteError as e:
            return self._branch_failure(f"project {project_name}", e)

        outcomes = await _join(
            self._scan_repository(project_name, repo.name, compiled) for repo in repos
        )
        repositories, warnings = _collect(outcomes)
        if not repositories:
            return BranchOutcome(None, warnings)
        return BranchOutcome(Project(name=project_name, repositories=repositories), warnings)

    async def _scan_repository(
        self, project_name: str, repo_name: str, compiled: CompiledCriteria
    ) -> BranchOutcome[Repository]:
        try:
            file_refs = await self.limiter.run(
                self.catalog.list_files, project_name, repo_name
            )
        except RemoteError as e:
            return self._branch_failure(f"repository {project_name}/{repo_name}", e)

        candidates = [ref for ref in file_refs if self._is_candidate(ref, compiled)]
        outcomes = await _join(
            self._scan_file(project_name, repo_name, ref.path, compiled)
            for ref in candidates
        )
        items, warnings = _collect(outcomes)
        if not items:
            return BranchOutcome(None, warnings)
        return BranchOutcome(Repository(name=repo_name, files=items), warnings)

    async def _scan_file(
        self, project_name: str, repo_name: str, path: str, compiled: CompiledCriteria
    ) -> BranchOutcome[Item]:
        try:
            content = await self.limiter.run(
                self.catalog.fetch_file_content, project_name, repo_name, path
            )
        except RemoteError as e:
            return self._branch_failure(f"file {project_name}/{repo_name}{path}", e)

        # Line matching is CPU-bound, run it in the thread pool
        loop = asyncio.get_running_loop()
        lines = await loop.run_in_executor(
            None, matching_lines, content, compiled.content
        )
        if not lines:
            return BranchOutcome()
        return BranchOutcome(Item(name=path, lines=lines))

    @staticmethod
    def _is_candidate(ref: FileRef, compiled: CompiledCriteria) -> bool:
        return ref.is_blob and compiled.files.matches(ref.path)

    def _branch_failure(self, scope: str, error: RemoteError) -> BranchOutcome:
        self.app_logger.log_error(error)
        return BranchOutcome(None, (f"{scope}: {error.message}",))
