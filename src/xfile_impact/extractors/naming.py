# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Name resolution rules shared by every extraction backend.

Both backends route every recorded name through these helpers so they agree
character for character. Aliases introduced by ``use ... as ...`` are never
expanded here.
"""

from typing import Optional

# Class-relative keywords that never name a concrete type on their own.
RELATIVE_SCOPES = frozenset({"self", "static", "parent"})

# Keywords that can follow "new" without naming a type.
NON_TYPE_NAMES = RELATIVE_SCOPES | {"class"}

# Prefix of a name relative to the current namespace, matched case-insensitively.
NAMESPACE_RELATIVE_PREFIX = "namespace\\"


def strip_leading_separator(name: str) -> str:
    return name[1:] if name.startswith("\\") else name


def resolve_name(name: str, namespace: Optional[str]) -> str:
    """Resolve a referenced name against the current namespace.

    - ``\\A\\B`` is fully qualified: the leading separator is dropped.
    - ``A\\B`` is qualified: prefixed with the current namespace, if any.
    - ``namespace\\A`` is namespace-relative: the keyword becomes the current
      namespace, or is dropped in the global namespace.
    - ``A`` is unqualified: left exactly as written.
    """
    if name.startswith("\\"):
        return name[1:]
    if name[: len(NAMESPACE_RELATIVE_PREFIX)].lower() == NAMESPACE_RELATIVE_PREFIX:
        relative = name[len(NAMESPACE_RELATIVE_PREFIX) :]
        return f"{namespace}\\{relative}" if namespace else relative
    if "\\" in name and namespace:
        return f"{namespace}\\{name}"
    return name


def qualify_declaration(short_name: str, namespace: Optional[str]) -> str:
    """Qualified name of a type declared as ``short_name``."""
    return f"{namespace}\\{short_name}" if namespace else short_name


def join_group_name(prefix: str, name: str) -> str:
    """Full name of one clause inside a group import ``use prefix\\{name}``."""
    prefix = strip_leading_separator(prefix).rstrip("\\")
    return f"{prefix}\\{strip_leading_separator(name)}"


def is_type_name(name: str) -> bool:
    """False for relative scopes such as ``self`` and for ``class``."""
    return name.lower() not in NON_TYPE_NAMES
