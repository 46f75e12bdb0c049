# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for shared name resolution rules."""

from xfile_impact.extractors.naming import (
    is_type_name,
    join_group_name,
    qualify_declaration,
    resolve_name,
    strip_leading_separator,
)


def test_fully_qualified_name_drops_separator():
    assert resolve_name("\\App\\Models\\User", "Other") == "App\\Models\\User"


def test_qualified_name_is_prefixed_with_namespace():
    assert resolve_name("Models\\User", "App") == "App\\Models\\User"


def test_qualified_name_in_global_namespace():
    assert resolve_name("Models\\User", None) == "Models\\User"


def test_unqualified_name_is_left_as_written():
    assert resolve_name("User", "App\\Models") == "User"


def test_namespace_relative_name_uses_current_namespace():
    assert resolve_name("namespace\\Z", "N") == "N\\Z"
    assert resolve_name("Namespace\\Sub\\K", "App") == "App\\Sub\\K"


def test_namespace_relative_name_in_global_namespace():
    assert resolve_name("namespace\\Z", None) == "Z"


def test_qualify_declaration():
    assert qualify_declaration("User", "App\\Models") == "App\\Models\\User"
    assert qualify_declaration("Helper", None) == "Helper"


def test_join_group_name():
    assert join_group_name("\\App\\Contracts\\", "Repository") == "App\\Contracts\\Repository"
    assert join_group_name("App", "Models\\User") == "App\\Models\\User"


def test_strip_leading_separator():
    assert strip_leading_separator("\\Foo") == "Foo"
    assert strip_leading_separator("Foo\\Bar") == "Foo\\Bar"


def test_relative_scopes_are_not_type_names():
    for name in ("self", "static", "parent", "class", "SELF"):
        assert not is_type_name(name)
    assert is_type_name("User")
