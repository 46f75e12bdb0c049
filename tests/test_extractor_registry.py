# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for extractor backend registration and lookup."""

import pytest

from xfile_impact.extractors import (
    DEFAULT_EXTRACTOR,
    ExtractorRegistry,
    SymbolExtractor,
    TokenSymbolExtractor,
    available_extractors,
    create_extractor,
)
from xfile_impact.models import SymbolFact


class BrokenExtractor(SymbolExtractor):
    def extract(self, source: str) -> SymbolFact:
        raise RuntimeError("backend bug")

    def name(self) -> str:
        return "broken"


class TestRegistry:
    def test_builtin_backends(self):
        assert available_extractors() == ["token", "tree"]
        assert DEFAULT_EXTRACTOR == "token"

    def test_create_default(self):
        extractor = create_extractor()
        assert isinstance(extractor, TokenSymbolExtractor)
        assert extractor.name() == "token"

    def test_unknown_name_raises(self):
        with pytest.raises(ValueError, match="Unknown extractor 'ast'"):
            create_extractor("ast")

    def test_register_custom_backend(self):
        registry = ExtractorRegistry()
        registry.register("broken", BrokenExtractor)
        assert "broken" in registry.names()
        assert isinstance(registry.create("broken"), BrokenExtractor)

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            ExtractorRegistry().register("", BrokenExtractor)


def test_safe_extract_collapses_backend_errors():
    """A crashing backend yields an empty fact instead of aborting the build."""
    assert BrokenExtractor().safe_extract("<?php class A {}").is_empty()
