"""Tests for ScanEngine."""

import asyncio
import time

import pytest

from application.models.search_models import SearchCriteria
from application.services.scan import engine as engine_module
from application.services.scan.engine import ScanEngine, iter_lines
from application.services.scan.limiter import ConcurrencyLimiter
from common.exception.exceptions import InvalidPattern, RemoteError, RemoteUnavailable
from tests.fixtures.catalog_fixtures import InMemoryCatalog, build_catalog

MATCH_ALL = SearchCriteria(
    project_name_pattern=".*", file_name_pattern=".*", content_pattern=".*"
)
DEFAULT_CRITERIA = SearchCriteria(
    project_name_pattern="Project", file_name_pattern="File", content_pattern="Content"
)


def make_engine(catalog, app_logger, criteria=DEFAULT_CRITERIA, limiter=None):
    return ScanEngine(
        catalog=catalog, criteria=criteria, app_logger=app_logger, limiter=limiter
    )


class TestProjectDiscovery:
    """Project listing, pagination and filtering."""

    @pytest.mark.asyncio
    async def test_no_projects_found(self, app_logger):
        """Zero projects yields an empty tree and no further calls."""
        catalog = InMemoryCatalog()

        results = await make_engine(catalog, app_logger).scan()

        assert results.projects == []
        assert results.warnings is None
        assert catalog.calls["list_projects"] == 1
        assert catalog.calls["list_more_projects"] == 0
        assert catalog.calls["list_repositories"] == 0

    @pytest.mark.asyncio
    async def test_project_without_repositories_is_absent(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_project("Project0")

        results = await make_engine(catalog, app_logger).scan()

        assert results.projects == []
        assert catalog.calls["list_repositories"] == 1
        assert catalog.calls["list_files"] == 0

    @pytest.mark.asyncio
    async def test_all_pages_are_drained_before_filtering(self, app_logger):
        """Projects on the second page are scanned too."""
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", b"Content A")
        catalog.add_project("Project1", page=1)
        catalog.add_file("Project1", "Repo0", "/File0", b"Content B")
        catalog.add_project("Other", page=1)

        results = await make_engine(catalog, app_logger).scan()

        assert sorted(p.name for p in results.projects) == ["Project0", "Project1"]
        assert catalog.calls["list_projects"] == 1
        assert catalog.calls["list_more_projects"] == 1
        assert catalog.calls["list_repositories"] == 2

    @pytest.mark.asyncio
    async def test_projects_not_matching_pattern_are_skipped(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Unrelated", "Repo0", "/File0", b"Content")

        results = await make_engine(catalog, app_logger).scan()

        assert results.projects == []
        assert catalog.calls["list_repositories"] == 0

    @pytest.mark.asyncio
    async def test_project_listing_failure_aborts_scan(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.fail("list_projects", error=RemoteUnavailable())

        with pytest.raises(RemoteUnavailable):
            await make_engine(catalog, app_logger).scan()

    @pytest.mark.asyncio
    async def test_second_page_failure_aborts_scan(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_project("Project0")
        catalog.add_project("Project1", page=1)
        catalog.fail("list_more_projects", "1", error=RemoteError("boom", 500))

        with pytest.raises(RemoteError):
            await make_engine(catalog, app_logger).scan()
        assert catalog.calls["list_repositories"] == 0


class TestPatterns:
    """Pattern compilation happens once, before any remote call."""

    @pytest.mark.parametrize(
        "criteria",
        [
            SearchCriteria(project_name_pattern="(", file_name_pattern="", content_pattern=""),
            SearchCriteria(project_name_pattern="", file_name_pattern="[", content_pattern=""),
            SearchCriteria(project_name_pattern="", file_name_pattern="", content_pattern="*"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_pattern_fails_before_listing(self, app_logger, criteria):
        catalog = InMemoryCatalog()

        with pytest.raises(InvalidPattern):
            await make_engine(catalog, app_logger, criteria=criteria).scan()
        assert catalog.calls["list_projects"] == 0

    @pytest.mark.asyncio
    async def test_only_blob_entries_matching_file_pattern_are_fetched(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", b"Content")
        catalog.add_file("Project0", "Repo0", "/Folder", object_type="tree")
        catalog.add_file("Project0", "Repo0", "/FileModule", object_type="commit")
        catalog.add_file("Project0", "Repo0", "/readme.md", b"Content")

        results = await make_engine(catalog, app_logger).scan()

        assert catalog.calls["fetch_file_content"] == 1
        [project] = results.projects
        [repository] = project.repositories
        assert [item.name for item in repository.files] == ["/File0"]


class TestResultTree:
    """Shape and pruning of the result tree."""

    @pytest.mark.asyncio
    async def test_single_match(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "File0", b"Content To Test\nboo")

        results = await make_engine(catalog, app_logger).scan()

        assert len(results.projects) == 1
        project = results.projects[0]
        assert project.name == "Project0"
        assert len(project.repositories) == 1
        repository = project.repositories[0]
        assert repository.name == "Repo0"
        assert len(repository.files) == 1
        assert repository.files[0].name == "File0"
        assert repository.files[0].lines == ["Content To Test"]

    @pytest.mark.parametrize("shape", [(1, 1, 1, 1), (2, 3, 2, 4), (3, 1, 5, 2)])
    @pytest.mark.asyncio
    async def test_match_all_shape(self, app_logger, shape):
        projects, repositories, files, lines = shape
        catalog = build_catalog(projects, repositories, files, lines)

        results = await make_engine(catalog, app_logger, criteria=MATCH_ALL).scan()

        assert len(results.projects) == projects
        for project in results.projects:
            assert len(project.repositories) == repositories
            for repository in project.repositories:
                assert len(repository.files) == files
                for item in repository.files:
                    assert item.lines == [f"Content line {i}" for i in range(lines)]

    @pytest.mark.asyncio
    async def test_empty_branches_are_pruned(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", b"Content here")
        catalog.add_file("Project0", "Repo1", "/File0", b"nothing here")
        catalog.add_file("Project1", "Repo0", "/File0", b"nothing either")
        catalog.add_repository("Project1", "Empty")

        results = await make_engine(catalog, app_logger).scan()

        assert [p.name for p in results.projects] == ["Project0"]
        assert [r.name for r in results.projects[0].repositories] == ["Repo0"]

    @pytest.mark.asyncio
    async def test_lines_keep_file_order(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file(
            "Project0", "Repo0", "/File0", b"Content 3\nskip\r\nContent 1\r\nContent 2\n"
        )

        results = await make_engine(catalog, app_logger).scan()

        item = results.projects[0].repositories[0].files[0]
        assert item.lines == ["Content 3", "Content 1", "Content 2"]


class TestPartialFailures:
    """Per-branch remote errors become warnings."""

    @pytest.mark.asyncio
    async def test_repository_error_keeps_siblings(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", b"Content")
        catalog.add_file("Project0", "Repo1", "/File0", b"Content")
        catalog.add_file("Project1", "Repo0", "/File0", b"Content")
        catalog.fail("list_files", "Project0", "Repo1", error=RemoteError("items failed", 500))

        results = await make_engine(catalog, app_logger).scan()

        by_name = {p.name: p for p in results.projects}
        assert [r.name for r in by_name["Project0"].repositories] == ["Repo0"]
        assert [r.name for r in by_name["Project1"].repositories] == ["Repo0"]
        assert results.warnings == ["repository Project0/Repo1: items failed"]
        app_logger.log_error.assert_called_once()

    @pytest.mark.asyncio
    async def test_project_and_file_errors_are_all_reported(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", b"Content")
        catalog.add_file("Project0", "Repo0", "/File1", b"Content")
        catalog.add_file("Project1", "Repo0", "/File0", b"Content")
        catalog.fail("list_repositories", "Project1", error=RemoteError("repos failed"))
        catalog.fail(
            "fetch_file_content", "Project0", "Repo0", "/File1", error=RemoteError("gone", 404)
        )

        results = await make_engine(catalog, app_logger).scan()

        assert [p.name for p in results.projects] == ["Project0"]
        assert [i.name for i in results.projects[0].repositories[0].files] == ["/File0"]
        assert sorted(results.warnings) == [
            "file Project0/Repo0/File1: gone",
            "project Project1: repos failed",
        ]

    @pytest.mark.asyncio
    async def test_remote_unavailable_during_fan_out_is_fatal(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", b"Content")
        catalog.fail("list_files", "Project0", "Repo0", error=RemoteUnavailable())

        with pytest.raises(RemoteUnavailable):
            await make_engine(catalog, app_logger).scan()


class TestConcurrency:
    """Fan-out goes through the limiter without starving nested levels."""

    @pytest.mark.asyncio
    async def test_limiter_of_one_completes_nested_fan_out(self, app_logger):
        catalog = build_catalog(3, 3, 3, 2)

        results = await asyncio.wait_for(
            make_engine(
                catalog, app_logger, criteria=MATCH_ALL, limiter=ConcurrencyLimiter(1)
            ).scan(),
            timeout=5,
        )

        assert len(results.projects) == 3

    @pytest.mark.asyncio
    async def test_in_flight_calls_never_exceed_limit(self, app_logger):
        catalog = build_catalog(4, 4, 2, 1)
        in_flight = 0
        peak = 0
        original = catalog.fetch_file_content

        async def slow_fetch(project_name, repo_name, path):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return await original(project_name, repo_name, path)

        catalog.fetch_file_content = slow_fetch

        await make_engine(
            catalog, app_logger, criteria=MATCH_ALL, limiter=ConcurrencyLimiter(3)
        ).scan()

        assert 1 < peak <= 3


class TestIterLines:
    """Line splitting."""

    def test_trailing_newline_adds_no_line(self):
        assert list(iter_lines(b"a\nb\n")) == ["a", "b"]

    def test_crlf_is_stripped(self):
        assert list(iter_lines(b"a\r\nb")) == ["a", "b"]

    def test_blank_lines_are_kept(self):
        assert list(iter_lines(b"a\n\nb")) == ["a", "", "b"]

    def test_empty_content(self):
        assert list(iter_lines(b"")) == []

    def test_invalid_utf8_is_replaced(self):
        assert list(iter_lines(b"caf\xe9")) == ["caf\ufffd"]


class TestEmptyRepositories:
    """Repositories without branches are skipped silently."""

    @pytest.mark.asyncio
    async def test_repository_with_no_files_is_excluded_without_warnings(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", b"Content To Test")
        catalog.add_repository("Project0", "Repo1")

        results = await make_engine(catalog, app_logger).scan()

        [project] = results.projects
        assert [r.name for r in project.repositories] == ["Repo0"]
        assert results.warnings is None
        assert catalog.calls["list_files"] == 2
        app_logger.log_error.assert_not_called()
        app_logger.log_warning.assert_not_called()


async def _heartbeat(gaps, stop):
    loop = asyncio.get_running_loop()
    last = loop.time()
    while not stop.is_set():
        await asyncio.sleep(0.01)
        now = loop.time()
        gaps.append(now - last)
        last = now


class TestEventLoopResponsiveness:
    """Line matching does not block other coroutines."""

    async def _scan_with_heartbeat(self, engine):
        gaps = []
        stop = asyncio.Event()
        heartbeat = asyncio.ensure_future(_heartbeat(gaps, stop))
        try:
            results = await engine.scan()
        finally:
            stop.set()
            await heartbeat
        return results, gaps

    @pytest.mark.asyncio
    async def test_slow_line_matching_runs_off_the_loop(self, app_logger, monkeypatch):
        def slow_matching_lines(content, matcher):
            time.sleep(0.5)
            return ["Content To Test"]

        monkeypatch.setattr(engine_module, "matching_lines", slow_matching_lines)
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", b"Content To Test")

        results, gaps = await self._scan_with_heartbeat(make_engine(catalog, app_logger))

        assert results.projects[0].repositories[0].files[0].lines == ["Content To Test"]
        assert len(gaps) >= 10
        assert max(gaps) < 0.25

    @pytest.mark.asyncio
    async def test_nested_quantifier_over_content_does_not_stall(self, app_logger):
        catalog = InMemoryCatalog()
        catalog.add_file("Project0", "Repo0", "/File0", ("a" * 24 + "b").encode())
        criteria = SearchCriteria(
            project_name_pattern="", file_name_pattern="", content_pattern="(a+)+$"
        )

        results, gaps = await self._scan_with_heartbeat(
            make_engine(catalog, app_logger, criteria=criteria)
        )

        assert results.projects == []
        assert max(gaps, default=0) < 0.5
