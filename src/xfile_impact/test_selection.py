# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Test-method selection for method-level impact analysis.

Maps affected production methods to the PHPUnit-style test methods that
exercise them. Three matchers, from most to least precise:
1. find_for_affected_methods: the test calls an affected method directly
2. find_for_classes: the test calls any method on an affected class
3. find_by_namespace: path heuristic for tests that reach code indirectly
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from xfile_impact.extractors.method_calls import MethodCallExtractor
from xfile_impact.parallel import read_source

logger = logging.getLogger(__name__)

TEST_DIR_PREFIXES = ("tests/", "test/", "Tests/", "Test/")

# Path components too common to say anything about what a test covers
GENERIC_PATH_COMPONENTS = frozenset({"src", "lib", "app", "tests"})

MIN_NAMESPACE_MATCHES = 2


@dataclass
class TestIndex:
    """Test methods found in a set of test files."""

    __test__ = False

    # test method -> methods it calls
    test_methods: Dict[str, Set[str]] = field(default_factory=dict)
    # test method -> file that defines it
    test_files: Dict[str, str] = field(default_factory=dict)


def _class_of(method: str) -> Optional[str]:
    if "::" not in method:
        return None
    return method.split("::", 1)[0]


class TestMethodAnalyzer:
    """Finds test methods relevant to a set of changes."""

    __test__ = False

    def __init__(self, extractor: Optional[MethodCallExtractor] = None):
        self.extractor = extractor or MethodCallExtractor()

    @staticmethod
    def is_test_file(path: str) -> bool:
        return "Test.php" in path or path.startswith(TEST_DIR_PREFIXES)

    @staticmethod
    def is_test_method(method: str) -> bool:
        """True for ``Class::testSomething`` or ``Class::somethingTest``."""
        if "::" not in method:
            return False
        name = method.rsplit("::", 1)[1]
        return name.startswith("test") or name.endswith("Test")

    def analyze_test_files(self, files: Iterable[str], project_root: Path) -> TestIndex:
        """Scan test files for test methods and the calls they make.

        Args:
            files: Test file paths, project-relative or absolute.
            project_root: Root for relative paths.
        """
        index = TestIndex()
        for path in files:
            absolute = Path(path) if Path(path).is_absolute() else Path(project_root) / path
            try:
                source = read_source(absolute)
            except OSError as e:
                logger.debug(f"Skipping unreadable test file {path}: {e}")
                continue
            for method, calls in self.extractor.extract(source).items():
                if self.is_test_method(method):
                    index.test_methods[method] = set(calls)
                    index.test_files[method] = path
        logger.debug(
            f"Found {len(index.test_methods)} test methods in {len(set(index.test_files.values()))} files"
        )
        return index

    def find_for_affected_methods(
        self, affected_methods: Iterable[str], test_methods: Dict[str, Set[str]]
    ) -> Set[str]:
        """Tests that directly call at least one affected method."""
        affected = set(affected_methods)
        return {test for test, calls in test_methods.items() if calls & affected}

    def find_for_classes(
        self, classes: Iterable[str], test_methods: Dict[str, Set[str]]
    ) -> Set[str]:
        """Tests that call any method of the given classes."""
        wanted = set(classes)
        return {
            test
            for test, calls in test_methods.items()
            if any(_class_of(call) in wanted for call in calls)
        }

    def find_by_namespace(
        self, changed_files: Iterable[str], test_methods: Dict[str, Set[str]]
    ) -> Set[str]:
        """Tests whose class path shares at least two components with a changed file.

        ``src/Shop/Entity/Country.php`` selects ``Shop\\Tests\\Entity\\CountryTest::testName``
        (matches: Shop, Entity, Country). Matching is a case-insensitive
        substring test against the test class name with ``\\`` read as ``/``.
        """
        selected: Set[str] = set()
        test_paths = {
            test: cls.replace("\\", "/").lower()
            for test, cls in ((t, _class_of(t)) for t in test_methods)
            if cls is not None
        }
        for changed in changed_files:
            parts = self._significant_components(changed)
            if len(parts) < MIN_NAMESPACE_MATCHES:
                continue
            for test, test_path in test_paths.items():
                matches = sum(1 for part in parts if part in test_path)
                if matches >= MIN_NAMESPACE_MATCHES:
                    selected.add(test)
        return selected

    @staticmethod
    def _significant_components(path: str) -> List[str]:
        components = [c for c in path.split("/") if c and c not in GENERIC_PATH_COMPONENTS]
        if components:
            # Compare the file's stem, not "Country.php"
            components[-1] = components[-1].rsplit(".", 1)[0]
        return [c.lower() for c in components if c]

    @staticmethod
    def map_to_files(test_methods: Iterable[str], test_files: Dict[str, str]) -> List[str]:
        """Sorted unique files defining the given test methods."""
        return sorted({test_files[t] for t in test_methods if t in test_files})
