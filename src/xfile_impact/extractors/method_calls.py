# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Method-level call extraction over the PHP token stream.

For every method declared in a named class-like body this module records:
- the calls it makes, as ``Ns\\Class::method`` for static and ``$this`` calls,
  or as an opaque ``$var->method`` token when the receiver's type is unknown
- its lexical line span, from the ``function`` keyword to the closing brace

Unlike SymbolFact extraction, class names here are resolved the way PHP
resolves them: ``use`` aliases are expanded and unqualified names are placed
in the current namespace. There is only one method-level backend, so there is
no cross-backend agreement to preserve.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from xfile_impact.extractors.lexer import LexError, Token, TokenKind, tokenize
from xfile_impact.extractors.naming import (
    NAMESPACE_RELATIVE_PREFIX,
    join_group_name,
    qualify_declaration,
    resolve_name,
    strip_leading_separator,
)

logger = logging.getLogger(__name__)

_EOF = Token(TokenKind.OP, "", 0, 0)

_CLASS_BODY = "class"
_METHOD_BODY = "method"
_NAMESPACE_BODY = "namespace"
_OTHER = "other"


@dataclass
class MethodScan:
    """Result of scanning one file at method granularity."""

    calls: Dict[str, Set[str]] = field(default_factory=dict)
    spans: Dict[str, Tuple[int, int]] = field(default_factory=dict)

    def line_map(self) -> Dict[int, str]:
        """Map every line inside a method span to that method."""
        lines: Dict[int, str] = {}
        for method, (start, end) in self.spans.items():
            for line in range(start, end + 1):
                lines[line] = method
        return lines


@dataclass
class _ClassContext:
    name: str
    parent: Optional[str]


class _MethodWalk:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.namespace: Optional[str] = None
        self.aliases: Dict[str, str] = {}
        self.braces: List[str] = []
        self.classes: List[_ClassContext] = []
        self.methods: List[Tuple[str, int]] = []
        self.pending_classes: Dict[int, _ClassContext] = {}
        self.pending_methods: Dict[int, Tuple[str, int]] = {}
        self.pending_namespaces: Set[int] = set()
        self.scan = MethodScan()

    def at(self, index: int) -> Token:
        if 0 <= index < len(self.tokens):
            return self.tokens[index]
        return _EOF

    def resolve_class(self, name: str) -> str:
        """Resolve a class reference using imports and the current namespace."""
        if name.startswith("\\"):
            return name[1:]
        if name[: len(NAMESPACE_RELATIVE_PREFIX)].lower() == NAMESPACE_RELATIVE_PREFIX:
            return resolve_name(name, self.namespace)
        head, sep, rest = name.partition("\\")
        imported = self.aliases.get(head.lower())
        if imported is not None:
            return f"{imported}{sep}{rest}"
        return qualify_declaration(name, self.namespace)

    def run(self) -> MethodScan:
        i = 0
        while i < len(self.tokens):
            i = self._step(i)
        return self.scan

    def _step(self, i: int) -> int:
        tok = self.tokens[i]

        if tok.is_op("{"):
            if i in self.pending_classes:
                self.braces.append(_CLASS_BODY)
                self.classes.append(self.pending_classes.pop(i))
            elif i in self.pending_methods:
                self.braces.append(_METHOD_BODY)
                self.methods.append(self.pending_methods.pop(i))
            elif i in self.pending_namespaces:
                self.braces.append(_NAMESPACE_BODY)
            else:
                self.braces.append(_OTHER)
            return i + 1

        if tok.is_op("}"):
            if not self.braces:
                return i + 1
            kind = self.braces.pop()
            if kind == _CLASS_BODY:
                self.classes.pop()
            elif kind == _METHOD_BODY:
                method, start = self.methods.pop()
                self.scan.spans[method] = (start, tok.line)
            return i + 1

        if tok.kind == TokenKind.VARIABLE:
            self._instance_call(i)
            return i + 1
        if tok.kind != TokenKind.NAME:
            return i + 1

        prev = self.at(i - 1)
        if prev.is_op("->", "?->", "::") or prev.is_keyword("function", "const"):
            return i + 1

        keyword = tok.text.lower()
        if keyword == "namespace":
            return self._namespace(i)
        if keyword == "use":
            return self._import(i)
        if keyword in ("class", "interface", "trait", "enum"):
            self._declaration(i, keyword)
        elif keyword == "function":
            self._function(i)
        elif self.at(i + 1).is_op("::"):
            self._static_call(i)
        return i + 1

    def _top(self) -> Optional[str]:
        return self.braces[-1] if self.braces else None

    def _namespace(self, i: int) -> int:
        nxt = self.at(i + 1)
        if nxt.kind == TokenKind.NAME:
            self.namespace = strip_leading_separator(nxt.text)
            brace = i + 2
        elif nxt.is_op("{"):
            self.namespace = None
            brace = i + 1
        else:
            return i + 1
        self.aliases = {}
        if self.at(brace).is_op("{"):
            self.pending_namespaces.add(brace)
        return i + 1

    def _import(self, i: int) -> int:
        if self.at(i + 1).is_op("("):
            return i + 1  # closure use
        if any(kind != _NAMESPACE_BODY for kind in self.braces):
            return i + 1  # trait use
        j = i + 1
        if self.at(j).is_keyword("function", "const"):
            return i + 1
        while self.at(j).kind == TokenKind.NAME:
            name = self.at(j).text
            if self.at(j + 1).is_op("\\") and self.at(j + 2).is_op("{"):
                j += 3
                while self.at(j) is not _EOF and not self.at(j).is_op("}"):
                    tok = self.at(j)
                    if tok.is_keyword("function", "const"):
                        j += 2
                    elif tok.kind == TokenKind.NAME:
                        j = self._alias(join_group_name(name, tok.text), j + 1)
                    else:
                        j += 1
                j += 1
            else:
                j = self._alias(strip_leading_separator(name), j + 1)
            if not self.at(j).is_op(","):
                break
            j += 1
        return j

    def _alias(self, full: str, j: int) -> int:
        if self.at(j).is_keyword("as") and self.at(j + 1).kind == TokenKind.NAME:
            alias = self.at(j + 1).text
            j += 2
        else:
            alias = full.rsplit("\\", 1)[-1]
        self.aliases[alias.lower()] = full
        return j

    def _declaration(self, i: int, keyword: str) -> None:
        if keyword == "class" and self.at(i - 1).is_keyword("new"):
            return
        name_tok = self.at(i + 1)
        if name_tok.kind != TokenKind.NAME:
            return
        context = _ClassContext(qualify_declaration(name_tok.text, self.namespace), None)
        j = i + 2
        while True:
            tok = self.at(j)
            if tok is _EOF or tok.is_op(";"):
                return
            if tok.is_op("{"):
                self.pending_classes[j] = context
                return
            if (
                keyword == "class"
                and tok.is_keyword("extends")
                and self.at(j + 1).kind == TokenKind.NAME
            ):
                context.parent = self.resolve_class(self.at(j + 1).text)
            j += 1

    def _function(self, i: int) -> None:
        name_tok = self.at(i + 1)
        if name_tok.kind != TokenKind.NAME and name_tok.is_op("&"):
            # function &byReference()
            name_tok = self.at(i + 2)
        if name_tok.kind != TokenKind.NAME:
            return  # closure
        if self._top() != _CLASS_BODY or not self.classes:
            return  # free function or method of an anonymous class
        method = f"{self.classes[-1].name}::{name_tok.text}"
        self.scan.calls.setdefault(method, set())

        depth = 0
        j = i + 2
        while True:
            tok = self.at(j)
            if tok is _EOF:
                return
            if tok.is_op("("):
                depth += 1
            elif tok.is_op(")"):
                depth -= 1
            elif depth == 0 and tok.is_op("{"):
                self.pending_methods[j] = (method, self.tokens[i].line)
                return
            elif depth == 0 and tok.is_op(";"):
                # abstract or interface method
                self.scan.spans[method] = (self.tokens[i].line, tok.line)
                return
            j += 1

    def _current_method(self) -> Optional[str]:
        return self.methods[-1][0] if self.methods else None

    def _static_call(self, i: int) -> None:
        caller = self._current_method()
        if caller is None:
            return
        method = self.at(i + 2)
        if method.kind != TokenKind.NAME or not self.at(i + 3).is_op("("):
            return
        scope = self.tokens[i].text
        lowered = scope.lower()
        if lowered in ("self", "static"):
            target: Optional[str] = self.classes[-1].name if self.classes else None
        elif lowered == "parent":
            target = self.classes[-1].parent if self.classes else None
        else:
            target = self.resolve_class(scope)
        if target is not None:
            self.scan.calls[caller].add(f"{target}::{method.text}")

    def _instance_call(self, i: int) -> None:
        caller = self._current_method()
        if caller is None or not self.at(i + 1).is_op("->", "?->"):
            return
        method = self.at(i + 2)
        if method.kind != TokenKind.NAME or not self.at(i + 3).is_op("("):
            return
        if self.at(i - 1).is_op("->", "?->", "::", "$"):
            return
        receiver = self.tokens[i].text
        if receiver == "$this" and self.classes:
            self.scan.calls[caller].add(f"{self.classes[-1].name}::{method.text}")
        else:
            self.scan.calls[caller].add(f"{receiver}->{method.text}")


class MethodCallExtractor:
    """Extracts per-method call edges and method line spans from PHP source."""

    def scan(self, source: str) -> MethodScan:
        """Scan source at method granularity. Never raises."""
        try:
            return _MethodWalk(tokenize(source)).run()
        except LexError as e:
            logger.debug(f"Unparseable source, no method data: {e}")
            return MethodScan()

    def extract(self, source: str) -> Dict[str, Set[str]]:
        """Map each ``Class::method`` to the calls it makes."""
        return self.scan(source).calls

    def method_spans(self, source: str) -> Dict[str, Tuple[int, int]]:
        """Map each ``Class::method`` to its (first, last) line."""
        return self.scan(source).spans

    def line_map(self, source: str) -> Dict[int, str]:
        """Map each line inside a method body to its ``Class::method``."""
        return self.scan(source).line_map()
