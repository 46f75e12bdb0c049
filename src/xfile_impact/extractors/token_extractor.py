# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Token-stream symbol extraction backend.

Walks the significant-token stream from extractors.lexer once, keeping only
the context PHP's grammar requires to classify a name:
- the current namespace
- a brace stack recording what each open ``{`` belongs to
- the stack of enclosing named class-like declarations (for ``$this`` calls)

This is the default backend: it has no native dependency and is several times
faster than building a syntax tree.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from xfile_impact.extractors.base import SymbolExtractor
from xfile_impact.extractors.lexer import LexError, Token, TokenKind, tokenize
from xfile_impact.extractors.naming import (
    is_type_name,
    join_group_name,
    qualify_declaration,
    resolve_name,
    strip_leading_separator,
)
from xfile_impact.models import SymbolFact

logger = logging.getLogger(__name__)

_EOF = Token(TokenKind.OP, "", 0, 0)

_MEMBER_ACCESS = ("->", "?->", "::")
_INCLUDE_KEYWORDS = ("include", "include_once", "require", "require_once")
_INCLUDE_TERMINATORS = (";", ")", ",", "]")

# Kinds of brace blocks tracked on the brace stack
_CLASS_BODY = "class"
_ANONYMOUS_CLASS_BODY = "anonymous_class"
_NAMESPACE_BODY = "namespace"
_BLOCK = "block"


class UnbalancedBracesError(ValueError):
    """Raised when the token stream closes a brace that was never opened."""


class _TokenWalk:
    """Single pass over one file's tokens, accumulating symbol facts."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.namespace: Optional[str] = None
        self.braces: List[str] = []
        self.class_stack: List[str] = []
        # token index of a "{" -> (block kind, class name for class bodies)
        self.pending_braces: Dict[int, Tuple[str, Optional[str]]] = {}

        self.declared_types: Set[str] = set()
        self.uses: Set[str] = set()
        self.extends: Set[str] = set()
        self.implements: Set[str] = set()
        self.traits: Set[str] = set()
        self.instantiations: Set[str] = set()
        self.static_calls: Set[str] = set()
        self.instance_calls: Set[Tuple[str, str]] = set()
        self.includes: Set[str] = set()

    def at(self, index: int) -> Token:
        if 0 <= index < len(self.tokens):
            return self.tokens[index]
        return _EOF

    def run(self) -> SymbolFact:
        i = 0
        while i < len(self.tokens):
            i = self._step(i)
        if self.braces:
            raise UnbalancedBracesError(f"{len(self.braces)} unclosed brace(s)")
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

    def _step(self, i: int) -> int:
        tok = self.tokens[i]

        if tok.is_op("{"):
            kind, class_name = self.pending_braces.pop(i, (_BLOCK, None))
            self.braces.append(kind)
            if kind == _CLASS_BODY and class_name is not None:
                self.class_stack.append(class_name)
            return i + 1

        if tok.is_op("}"):
            if not self.braces:
                raise UnbalancedBracesError(f"Unexpected '}}' at line {tok.line}")
            if self.braces.pop() == _CLASS_BODY:
                self.class_stack.pop()
            return i + 1

        if tok.kind == TokenKind.VARIABLE:
            self._instance_call(i)
            return i + 1

        if tok.kind != TokenKind.NAME:
            return i + 1

        prev = self.at(i - 1)
        if prev.is_op(*_MEMBER_ACCESS) or prev.is_keyword("function", "const"):
            # Member names may reuse reserved words ($q->list(), Foo::new())
            return i + 1

        keyword = tok.text.lower()
        if keyword == "namespace":
            return self._namespace(i)
        if keyword == "use":
            return self._use(i)
        if keyword in ("class", "interface", "trait", "enum"):
            return self._declaration(i, keyword)
        if keyword == "new":
            self._new(i)
        elif keyword in _INCLUDE_KEYWORDS:
            self._include(i)
        elif self.at(i + 1).is_op("::"):
            self._static_call(i)
        return i + 1

    def _namespace(self, i: int) -> int:
        nxt = self.at(i + 1)
        if nxt.kind == TokenKind.NAME:
            self.namespace = strip_leading_separator(nxt.text)
            if self.at(i + 2).is_op("{"):
                self.pending_braces[i + 2] = (_NAMESPACE_BODY, None)
            return i + 2
        if nxt.is_op("{"):
            # namespace { ... } is the global namespace
            self.namespace = None
            self.pending_braces[i + 1] = (_NAMESPACE_BODY, None)
        return i + 1

    def _use(self, i: int) -> int:
        top = self.braces[-1] if self.braces else None
        if top in (_CLASS_BODY, _ANONYMOUS_CLASS_BODY):
            return self._trait_use(i)
        if self.at(i + 1).is_op("("):
            # function () use ($captured)
            return i + 1
        if top in (None, _NAMESPACE_BODY):
            return self._import(i)
        return i + 1

    def _trait_use(self, i: int) -> int:
        j = i + 1
        while True:
            tok = self.at(j)
            if tok.kind == TokenKind.NAME:
                self.traits.add(resolve_name(tok.text, self.namespace))
            elif not tok.is_op(","):
                return j
            j += 1

    def _import(self, i: int) -> int:
        j = i + 1
        if self.at(j).is_keyword("function", "const"):
            # Function and constant imports are not type references
            while self.at(j) is not _EOF and not self.at(j).is_op(";"):
                j += 1
            return j

        while self.at(j).kind == TokenKind.NAME:
            name = self.at(j).text
            if self.at(j + 1).is_op("\\") and self.at(j + 2).is_op("{"):
                j = self._import_group(name, j + 3)
            else:
                self.uses.add(strip_leading_separator(name))
                j += 1
                if self.at(j).is_keyword("as"):
                    j += 2
            if not self.at(j).is_op(","):
                break
            j += 1
        return j

    def _import_group(self, prefix: str, j: int) -> int:
        """Record clauses of ``use prefix\\{...}``; returns index after "}"."""
        while True:
            tok = self.at(j)
            if tok is _EOF:
                return j
            if tok.is_op("}"):
                return j + 1
            skip = False
            if tok.is_keyword("function", "const") and self.at(j + 1).kind == TokenKind.NAME:
                skip = True
                j += 1
                tok = self.at(j)
            if tok.kind == TokenKind.NAME:
                if not skip:
                    self.uses.add(join_group_name(prefix, tok.text))
                j += 1
                if self.at(j).is_keyword("as"):
                    j += 2
            if self.at(j).is_op(","):
                j += 1
            elif not self.at(j).is_op("}"):
                # Malformed clause; resynchronize on the next separator
                j += 1

    def _declaration(self, i: int, keyword: str) -> int:
        if keyword == "class" and self.at(i - 1).is_keyword("new"):
            self._anonymous_class(i)
            return i + 1

        name_tok = self.at(i + 1)
        if name_tok.kind != TokenKind.NAME:
            return i + 1
        if keyword == "enum":
            after = self.at(i + 2)
            if not (after.is_op("{", ":") or after.is_keyword("implements")):
                return i + 1

        class_name = qualify_declaration(name_tok.text, self.namespace)
        self.declared_types.add(class_name)

        target: Optional[Set[str]] = None
        j = i + 2
        while True:
            tok = self.at(j)
            if tok is _EOF or tok.is_op(";"):
                return j
            if tok.is_op("{"):
                self.pending_braces[j] = (_CLASS_BODY, class_name)
                return j
            if tok.is_keyword("extends"):
                target = self.extends
            elif tok.is_keyword("implements"):
                target = self.implements
            elif tok.is_op(":"):
                # enum backing type
                target = None
            elif tok.kind == TokenKind.NAME and target is not None:
                target.add(resolve_name(tok.text, self.namespace))
            j += 1

    def _anonymous_class(self, i: int) -> None:
        depth = 0
        j = i + 1
        while j < len(self.tokens):
            tok = self.tokens[j]
            if tok.is_op("("):
                depth += 1
            elif tok.is_op(")"):
                depth -= 1
            elif tok.is_op("{") and depth == 0:
                self.pending_braces[j] = (_ANONYMOUS_CLASS_BODY, None)
                return
            elif tok.is_op(";") and depth == 0:
                return
            j += 1

    def _new(self, i: int) -> None:
        nxt = self.at(i + 1)
        if nxt.kind == TokenKind.NAME and is_type_name(nxt.text):
            self.instantiations.add(resolve_name(nxt.text, self.namespace))

    def _static_call(self, i: int) -> None:
        name = self.tokens[i].text
        if not is_type_name(name):
            return
        if self.at(i + 2).kind == TokenKind.NAME and self.at(i + 3).is_op("("):
            self.static_calls.add(resolve_name(name, self.namespace))

    def _instance_call(self, i: int) -> None:
        if not self.at(i + 1).is_op("->", "?->"):
            return
        method = self.at(i + 2)
        if method.kind != TokenKind.NAME or not self.at(i + 3).is_op("("):
            return
        if self.at(i - 1).is_op("->", "?->", "::", "$"):
            # Receiver is a larger expression, not a plain variable
            return
        receiver = self.tokens[i].text
        if receiver == "$this" and self.class_stack:
            receiver = self.class_stack[-1]
        self.instance_calls.add((receiver, method.text))

    def _include(self, i: int) -> None:
        j = i + 1
        parenthesized = self.at(j).is_op("(")
        if parenthesized:
            j += 1
        argument = self.at(j)
        if argument.kind != TokenKind.STRING or not argument.literal:
            return
        j += 1
        if parenthesized:
            if not self.at(j).is_op(")"):
                return
            j += 1
        terminator = self.at(j)
        if terminator is _EOF or terminator.is_op(*_INCLUDE_TERMINATORS):
            self.includes.add(argument.value)


class TokenSymbolExtractor(SymbolExtractor):
    """Symbol extractor over the regex PHP token stream."""

    def name(self) -> str:
        return "token"

    def extract(self, source: str) -> SymbolFact:
        try:
            tokens = tokenize(source)
            return _TokenWalk(tokens).run()
        except (LexError, UnbalancedBracesError) as e:
            logger.debug(f"Unparseable source, returning empty facts: {e}")
            return SymbolFact.empty()
