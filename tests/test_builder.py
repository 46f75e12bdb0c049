# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the incremental graph builder."""

from typing import List

import pytest

from xfile_impact.builder import IncrementalGraphBuilder
from xfile_impact.cache import CacheManager
from xfile_impact.extractors.token_extractor import TokenSymbolExtractor
from xfile_impact.models import SymbolFact
from xfile_impact.strategies import CONSERVATIVE, MINIMAL


class CountingExtractor(TokenSymbolExtractor):
    """Token extractor that records which sources it was asked to parse."""

    def __init__(self) -> None:
        self.sources: List[str] = []

    def extract(self, source: str) -> SymbolFact:
        self.sources.append(source)
        return super().extract(source)


FILES = {
    "src/User.php": "<?php\nnamespace App;\nclass User {}\n",
    "src/Repo.php": "<?php\nnamespace App;\nclass Repo { public function get() { return new \\App\\User(); } }\n",
    "src/Service.php": "<?php\nnamespace App;\nuse App\\Repo;\nclass Service {}\n",
    "public/index.php": "<?php\nrequire 'bootstrap.php';\n$s = new \\App\\Service();\n",
    "public/bootstrap.php": "<?php\n",
}


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    for path, source in FILES.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(source)
    return root


def make_builder(project, extractor=None, strategy=CONSERVATIVE, track_methods=False):
    return IncrementalGraphBuilder(
        project,
        extractor or CountingExtractor(),
        strategy,
        cache=CacheManager(project / ".xfile_impact"),
        track_methods=track_methods,
    )


def fresh_graph(project, files, strategy=CONSERVATIVE):
    """Full build without any cache, for comparison."""
    builder = IncrementalGraphBuilder(project, TokenSymbolExtractor(), strategy)
    return builder.build(files)


class TestFullBuild:
    def test_first_build_is_full(self, project):
        builder = make_builder(project)
        graph = builder.build(FILES)
        assert builder.last_stats.full_build is True
        assert builder.last_stats.files_parsed == len(FILES)
        assert graph.get_dependents("src/User.php") == {"src/Repo.php"}
        assert graph.get_dependents("src/Repo.php") == {"src/Service.php"}
        assert graph.get_dependents("public/bootstrap.php") == {"public/index.php"}

    def test_build_without_cache_is_always_full(self, project):
        builder = IncrementalGraphBuilder(project, TokenSymbolExtractor(), CONSERVATIVE)
        builder.build(FILES)
        builder.build(FILES)
        assert builder.last_stats.full_build is True

    def test_unreadable_files_are_not_tracked(self, project):
        """Test that a listed file that cannot be read is retried on the next build."""
        builder = make_builder(project)
        builder.build(list(FILES) + ["src/Missing.php"])
        assert builder.last_stats.files_parsed == len(FILES)
        assert "src/Missing.php" not in builder.graph.references
        assert "src/Missing.php" not in builder.registry

        second = make_builder(project)
        second.build(list(FILES) + ["src/Missing.php"])
        assert second.last_stats.files_parsed == 0
        assert second.last_stats.cache_hit is False


class TestIncrementalBuild:
    def test_unchanged_project_is_a_cache_hit(self, project):
        """Test that nothing is parsed when no file changed."""
        make_builder(project).build(FILES)

        extractor = CountingExtractor()
        builder = make_builder(project, extractor)
        graph = builder.build(FILES)
        assert extractor.sources == []
        assert builder.last_stats.cache_hit is True
        assert builder.last_stats.files_from_cache == len(FILES)
        assert graph == fresh_graph(project, FILES)

    def test_only_changed_files_are_parsed(self, project):
        make_builder(project).build(FILES)
        (project / "src/Service.php").write_text(
            "<?php\nnamespace App;\nuse App\\User;\nclass Service { /* now uses User */ }\n"
        )

        extractor = CountingExtractor()
        builder = make_builder(project, extractor)
        graph = builder.build(FILES)
        assert len(extractor.sources) == 1
        assert builder.last_stats.files_parsed == 1
        assert builder.last_stats.files_from_cache == len(FILES) - 1
        assert graph.get_dependents("src/User.php") == {"src/Repo.php", "src/Service.php"}
        assert graph.get_dependents("src/Repo.php") == set()

    def test_incremental_equals_full_build(self, project):
        """Test that an incremental build yields exactly the full-build graph."""
        make_builder(project).build(FILES)
        (project / "src/Repo.php").write_text(
            "<?php\nnamespace App;\nclass Repo extends \\App\\Base {}\n"
        )
        (project / "src/Base.php").write_text("<?php\nnamespace App;\nclass Base {}\n")
        files = list(FILES) + ["src/Base.php"]

        graph = make_builder(project).build(files)
        assert graph == fresh_graph(project, files)
        assert graph.get_dependents("src/Base.php") == {"src/Repo.php"}
        assert graph.get_dependents("src/User.php") == set()

    def test_deleted_file_is_dropped(self, project):
        make_builder(project).build(FILES)
        (project / "src/Repo.php").unlink()
        files = [f for f in FILES if f != "src/Repo.php"]

        builder = make_builder(project)
        graph = builder.build(files)
        assert builder.last_stats.files_dropped == 1
        assert "src/Repo.php" not in graph.tracked_paths()
        assert graph.get_declarer("App\\Repo") is None
        assert "src/Repo.php" not in builder.registry
        assert graph == fresh_graph(project, files)

    def test_file_removed_from_list_is_dropped(self, project):
        """Test that a file still on disk but no longer listed is dropped."""
        make_builder(project).build(FILES)
        files = [f for f in FILES if f != "public/index.php"]
        graph = make_builder(project).build(files)
        assert graph.get_dependents("public/bootstrap.php") == set()
        assert graph == fresh_graph(project, files)

    def test_strategy_change_forces_full_build(self, project):
        make_builder(project).build(FILES)
        builder = make_builder(project, strategy=MINIMAL)
        graph = builder.build(FILES)
        assert builder.last_stats.full_build is True
        assert graph == fresh_graph(project, FILES, MINIMAL)

    def test_repeated_builds_on_one_builder(self, project):
        builder = make_builder(project)
        builder.build(FILES)
        (project / "src/User.php").write_text("<?php\nnamespace App;\nclass User { }\n\n")
        graph = builder.build(FILES)
        assert builder.last_stats.files_parsed == 1
        assert graph is builder.graph
        assert graph == fresh_graph(project, FILES)


class TestMethodTracking:
    def test_method_graph_is_built_and_cached(self, project):
        builder = make_builder(project, track_methods=True)
        builder.build(FILES)
        assert builder.method_graph.methods_in("src/Repo.php") == {"App\\Repo::get"}

        reloaded = make_builder(project, track_methods=True)
        reloaded.build(FILES)
        assert reloaded.last_stats.cache_hit is True
        assert reloaded.method_graph == builder.method_graph

    def test_cache_without_method_data_is_rebuilt(self, project):
        make_builder(project).build(FILES)
        builder = make_builder(project, track_methods=True)
        builder.build(FILES)
        assert builder.last_stats.full_build is True
        assert builder.method_graph.methods_in("src/Repo.php") == {"App\\Repo::get"}

    def test_deleted_file_methods_are_dropped(self, project):
        make_builder(project, track_methods=True).build(FILES)
        (project / "src/Repo.php").unlink()
        builder = make_builder(project, track_methods=True)
        builder.build([f for f in FILES if f != "src/Repo.php"])
        assert builder.method_graph.methods_in("src/Repo.php") == set()
        assert "App\\Repo::get" not in builder.method_graph.calls


DUPLICATES = {
    "a/Dup.php": "<?php\nclass Dup { public function run() {} }\n",
    "b/Dup.php": "<?php\nclass Dup { public function run() { Audit::log(); } }\n",
    "c/Use.php": "<?php\nclass UseDup { public function go() { return Dup::run(); } }\n",
}


@pytest.fixture
def duplicates(tmp_path):
    root = tmp_path / "duplicates"
    for path, source in DUPLICATES.items():
        target = root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(source)
    return root


class TestDuplicateDeclarations:
    def test_greatest_path_owns_after_full_build(self, duplicates):
        graph = make_builder(duplicates).build(DUPLICATES)
        assert graph.get_declarer("Dup") == "b/Dup.php"
        assert graph.get_dependents("b/Dup.php") == {"c/Use.php"}

    def test_editing_losing_file_keeps_owner(self, duplicates):
        make_builder(duplicates).build(DUPLICATES)
        (duplicates / "a/Dup.php").write_text(
            "<?php\nclass Dup { public function run() {} public function stop() {} }\n"
        )
        builder = make_builder(duplicates)
        graph = builder.build(DUPLICATES)
        assert builder.last_stats.full_build is False
        assert builder.last_stats.files_parsed == 1
        assert graph.get_declarer("Dup") == "b/Dup.php"
        assert graph == fresh_graph(duplicates, DUPLICATES)

    def test_deleting_owner_hands_symbol_to_other_declarer(self, duplicates):
        make_builder(duplicates).build(DUPLICATES)
        (duplicates / "b/Dup.php").unlink()
        files = [f for f in DUPLICATES if f != "b/Dup.php"]
        builder = make_builder(duplicates)
        graph = builder.build(files)
        assert builder.last_stats.full_build is False
        assert graph.get_declarer("Dup") == "a/Dup.php"
        assert graph.get_dependents("a/Dup.php") == {"c/Use.php"}
        assert graph == fresh_graph(duplicates, files)

    def test_deleting_owner_hands_methods_to_other_definer(self, duplicates):
        make_builder(duplicates, track_methods=True).build(DUPLICATES)
        (duplicates / "b/Dup.php").unlink()
        files = [f for f in DUPLICATES if f != "b/Dup.php"]
        builder = make_builder(duplicates, track_methods=True)
        builder.build(files)
        assert builder.method_graph.defined_in["Dup::run"] == "a/Dup.php"
        assert builder.method_graph.calls["Dup::run"] == set()

        expected = IncrementalGraphBuilder(
            duplicates, TokenSymbolExtractor(), CONSERVATIVE, track_methods=True
        )
        expected.build(files)
        assert builder.method_graph == expected.method_graph


def test_clear_cache(project):
    builder = make_builder(project)
    builder.build(FILES)
    builder.clear_cache()
    assert len(builder.registry) == 0
    assert not builder.cache.exists()
    builder.build(FILES)
    assert builder.last_stats.full_build is True
