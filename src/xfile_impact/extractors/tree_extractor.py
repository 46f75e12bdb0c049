# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structural symbol extraction backend over the tree-sitter PHP grammar.

The syntax tree is walked in source order (pre-order, iterative) so namespace
declarations affect exactly the nodes that follow them, as in the token
backend. Node types are matched defensively: several tree-sitter-php releases
name the import clauses differently, and names are always read from node text.
"""

import logging
from typing import List, Optional, Set, Tuple

from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_language

from xfile_impact.extractors.base import SymbolExtractor
from xfile_impact.extractors.naming import (
    is_type_name,
    join_group_name,
    qualify_declaration,
    resolve_name,
    strip_leading_separator,
)
from xfile_impact.models import SymbolFact

logger = logging.getLogger(__name__)

NAME_TYPES = ("name", "qualified_name", "relative_name")

CLASS_LIKE_TYPES = (
    "class_declaration",
    "interface_declaration",
    "trait_declaration",
    "enum_declaration",
)

INCLUDE_TYPES = (
    "include_expression",
    "include_once_expression",
    "require_expression",
    "require_once_expression",
)

# Subtrees whose contents are never inspected
OPAQUE_TYPES = (
    "comment",
    "string",
    "encapsed_string",
    "heredoc",
    "nowdoc",
    "shell_command_expression",
)

PLAIN_STRING_PARTS = ("string_content", "string_value", "escape_sequence")


def _text(node: Node) -> str:
    return node.text.decode("utf-8")


def _first_named(node: Node, types: Tuple[str, ...]) -> Optional[Node]:
    for child in node.named_children:
        if child.type in types:
            return child
    return None


def _has_keyword_child(node: Node) -> bool:
    """True for ``use function ...`` / ``use const ...`` clauses."""
    return any(child.type in ("function", "const") for child in node.children)


class _TreeWalk:
    """Accumulates symbol facts while visiting one syntax tree."""

    def __init__(self) -> None:
        self.namespace: Optional[str] = None

        self.declared_types: Set[str] = set()
        self.uses: Set[str] = set()
        self.extends: Set[str] = set()
        self.implements: Set[str] = set()
        self.traits: Set[str] = set()
        self.instantiations: Set[str] = set()
        self.static_calls: Set[str] = set()
        self.instance_calls: Set[Tuple[str, str]] = set()
        self.includes: Set[str] = set()

    def visit(self, root: Node) -> None:
        # (node, qualified name of the enclosing named class-like declaration)
        stack: List[Tuple[Node, Optional[str]]] = [(root, None)]
        while stack:
            node, enclosing = stack.pop()
            node_type = node.type
            if node_type in OPAQUE_TYPES:
                continue

            if node_type == "namespace_definition":
                name = node.child_by_field_name("name")
                self.namespace = strip_leading_separator(_text(name)) if name else None
            elif node_type == "namespace_use_declaration":
                self._imports(node)
            elif node_type in CLASS_LIKE_TYPES:
                enclosing = self._declaration(node) or enclosing
            elif node_type == "use_declaration":
                for child in node.named_children:
                    if child.type in NAME_TYPES:
                        self.traits.add(resolve_name(_text(child), self.namespace))
            elif node_type == "object_creation_expression":
                self._instantiation(node)
            elif node_type == "scoped_call_expression":
                self._static_call(node)
            elif node_type in ("member_call_expression", "nullsafe_member_call_expression"):
                self._instance_call(node, enclosing)
            elif node_type in INCLUDE_TYPES:
                self._include(node)

            for child in reversed(node.children):
                stack.append((child, enclosing))

    def _imports(self, node: Node) -> None:
        if _has_keyword_child(node):
            return
        group = _first_named(node, ("namespace_use_group",))
        if group is None:
            for clause in node.named_children:
                if clause.type != "namespace_use_clause" or _has_keyword_child(clause):
                    continue
                name = _first_named(clause, NAME_TYPES)
                if name is not None:
                    self.uses.add(strip_leading_separator(_text(name)))
            return

        prefix = _first_named(node, ("namespace_name",) + NAME_TYPES)
        if prefix is None:
            return
        for clause in group.named_children:
            if clause.type not in ("namespace_use_clause", "namespace_use_group_clause"):
                continue
            if _has_keyword_child(clause):
                continue
            name = _first_named(clause, NAME_TYPES + ("namespace_name",))
            if name is not None:
                self.uses.add(join_group_name(_text(prefix), _text(name)))

    def _declaration(self, node: Node) -> Optional[str]:
        name = node.child_by_field_name("name")
        if name is None:
            return None
        class_name = qualify_declaration(_text(name), self.namespace)
        self.declared_types.add(class_name)
        for child in node.named_children:
            if child.type == "base_clause":
                target = self.extends
            elif child.type == "class_interface_clause":
                target = self.implements
            else:
                continue
            for parent in child.named_children:
                if parent.type in NAME_TYPES:
                    target.add(resolve_name(_text(parent), self.namespace))
        return class_name

    def _instantiation(self, node: Node) -> None:
        named = [c for c in node.named_children if c.type != "attribute_list"]
        if not named or named[0].type not in NAME_TYPES:
            return
        class_name = _text(named[0])
        if is_type_name(class_name):
            self.instantiations.add(resolve_name(class_name, self.namespace))

    def _static_call(self, node: Node) -> None:
        scope = node.child_by_field_name("scope")
        method = node.child_by_field_name("name")
        if scope is None or method is None:
            return
        if scope.type not in NAME_TYPES or method.type != "name":
            return
        class_name = _text(scope)
        if is_type_name(class_name):
            self.static_calls.add(resolve_name(class_name, self.namespace))

    def _instance_call(self, node: Node, enclosing: Optional[str]) -> None:
        receiver = node.child_by_field_name("object")
        method = node.child_by_field_name("name")
        if receiver is None or method is None:
            return
        if receiver.type != "variable_name" or method.type != "name":
            return
        variable = _text(receiver)
        if variable == "$this" and enclosing is not None:
            variable = enclosing
        self.instance_calls.add((variable, _text(method)))

    def _include(self, node: Node) -> None:
        named = [c for c in node.named_children if c.type != "comment"]
        if len(named) != 1:
            return
        argument = named[0]
        if argument.type == "parenthesized_expression":
            inner = [c for c in argument.named_children if c.type != "comment"]
            if len(inner) != 1:
                return
            argument = inner[0]
        if argument.type not in ("string", "encapsed_string"):
            return
        if any(part.type not in PLAIN_STRING_PARTS for part in argument.named_children):
            return
        self.includes.add(_text(argument)[1:-1])

    def fact(self) -> SymbolFact:
        return SymbolFact.build(
            declared_types=self.declared_types,
            uses=self.uses,
            extends=self.extends,
            implements=self.implements,
            traits=self.traits,
            instantiations=self.instantiations,
            static_calls=self.static_calls,
            instance_calls=self.instance_calls,
            includes=self.includes,
        )


class TreeSitterSymbolExtractor(SymbolExtractor):
    """Symbol extractor over a full tree-sitter syntax tree.

    The parser is created lazily on first use so instances stay cheap to
    construct (and to create inside worker processes).
    """

    LANGUAGE = "php"

    def __init__(self) -> None:
        self._parser: Optional[Parser] = None

    def name(self) -> str:
        return "tree"

    def _get_parser(self) -> Parser:
        if self._parser is None:
            self._parser = Parser(get_language(self.LANGUAGE))
            logger.debug(f"Loaded tree-sitter grammar '{self.LANGUAGE}'")
        return self._parser

    def extract(self, source: str) -> SymbolFact:
        tree = self._get_parser().parse(source.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            logger.debug("Syntax errors in source, returning empty facts")
            return SymbolFact.empty()
        walk = _TreeWalk()
        walk.visit(root)
        return walk.fact()
