# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for test-method selection."""

import pytest

from xfile_impact.test_selection import TestMethodAnalyzer

CART_TEST = """<?php
namespace Shop\\Tests\\Basket;

use Shop\\Entity\\Cart;

class CartTest extends TestCase
{
    public function testTotal()
    {
        Cart::total();
    }

    public function itemsTest()
    {
        Cart::count();
    }

    private function makeCart()
    {
        return Cart::empty();
    }
}
"""

COUNTRY_TEST = """<?php
namespace Shop\\Tests\\Entity;

class CountryTest extends TestCase
{
    public function testName()
    {
        $country = $this->makeCountry();
    }
}
"""

CART_TOTAL = "Shop\\Tests\\Basket\\CartTest::testTotal"
CART_ITEMS = "Shop\\Tests\\Basket\\CartTest::itemsTest"
COUNTRY_NAME = "Shop\\Tests\\Entity\\CountryTest::testName"


@pytest.fixture
def selector():
    return TestMethodAnalyzer()


@pytest.fixture
def index(tmp_path, selector):
    (tmp_path / "tests" / "Basket").mkdir(parents=True)
    (tmp_path / "tests" / "Entity").mkdir(parents=True)
    (tmp_path / "tests" / "Basket" / "CartTest.php").write_text(CART_TEST)
    (tmp_path / "tests" / "Entity" / "CountryTest.php").write_text(COUNTRY_TEST)
    return selector.analyze_test_files(
        ["tests/Basket/CartTest.php", "tests/Entity/CountryTest.php", "tests/Gone.php"],
        tmp_path,
    )


class TestClassification:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("tests/Unit/CartTest.php", True),
            ("src/CartTest.php", True),
            ("Tests/helpers.php", True),
            ("src/Cart.php", False),
        ],
    )
    def test_is_test_file(self, path, expected):
        assert TestMethodAnalyzer.is_test_file(path) is expected

    def test_is_test_method(self):
        assert TestMethodAnalyzer.is_test_method("A::testSomething")
        assert TestMethodAnalyzer.is_test_method("A::somethingTest")
        assert not TestMethodAnalyzer.is_test_method("A::setUp")
        assert not TestMethodAnalyzer.is_test_method("testSomething")


class TestIndexing:
    def test_only_test_methods_are_indexed(self, index):
        """Test that helpers are skipped and unreadable files are ignored."""
        assert set(index.test_methods) == {CART_TOTAL, CART_ITEMS, COUNTRY_NAME}
        assert index.test_methods[CART_TOTAL] == {"Shop\\Entity\\Cart::total"}
        assert index.test_files[COUNTRY_NAME] == "tests/Entity/CountryTest.php"


class TestMatching:
    def test_direct_calls(self, selector, index):
        selected = selector.find_for_affected_methods(
            {"Shop\\Entity\\Cart::total"}, index.test_methods
        )
        assert selected == {CART_TOTAL}

    def test_class_level(self, selector, index):
        selected = selector.find_for_classes({"Shop\\Entity\\Cart"}, index.test_methods)
        assert selected == {CART_TOTAL, CART_ITEMS}

    def test_namespace_heuristic(self, selector, index):
        """Test that a changed entity selects tests sharing two path components."""
        selected = selector.find_by_namespace(
            ["src/Shop/Entity/Country.php"], index.test_methods
        )
        assert selected == {COUNTRY_NAME}

    def test_namespace_heuristic_needs_two_components(self, selector, index):
        assert selector.find_by_namespace(["src/Country.php"], index.test_methods) == set()

    def test_map_to_files(self, selector, index):
        files = selector.map_to_files([CART_TOTAL, CART_ITEMS, "Unknown::testX"], index.test_files)
        assert files == ["tests/Basket/CartTest.php"]
