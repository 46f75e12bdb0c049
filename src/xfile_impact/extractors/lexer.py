# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""PHP token stream for the token-based extractors.

Produces only the significant tokens (names, variables, strings, numbers and
punctuation) with 1-based line metadata. Whitespace, comments and inline HTML
outside ``<?php ... ?>`` are skipped. String and heredoc bodies are kept as a
single opaque token.

Qualified names such as ``\\App\\Models\\User`` are lexed as one NAME token,
mirroring how PHP 8 lexes T_NAME_QUALIFIED.
"""

import re
from dataclasses import dataclass
from typing import List


class TokenKind:
    """Token kinds emitted by tokenize().

    Design: Using class constants (not Enum) for cheap comparisons.
    """

    NAME = "name"  # identifiers, keywords and qualified names
    VARIABLE = "variable"  # $name
    STRING = "string"  # '...', "...", heredoc, nowdoc, `...`
    NUMBER = "number"
    OP = "op"  # punctuation, including "::", "->", "?->" and "#["


class LexError(ValueError):
    """Raised when the source cannot be tokenized (unterminated construct)."""


@dataclass(frozen=True)
class Token:
    """One significant token.

    ``literal`` is only meaningful for STRING tokens: True when the token is a
    quoted string with no interpolation, i.e. its value is known statically.
    """

    kind: str
    text: str
    line: int
    end_line: int
    literal: bool = False

    def is_op(self, *texts: str) -> bool:
        return self.kind == TokenKind.OP and self.text in texts

    def is_keyword(self, *keywords: str) -> bool:
        return self.kind == TokenKind.NAME and self.text.lower() in keywords

    @property
    def value(self) -> str:
        """String contents without the surrounding quotes."""
        return self.text[1:-1] if self.kind == TokenKind.STRING else self.text


_OPEN_TAG = re.compile(r"<\?(?:php(?=\s|$)|=)?", re.IGNORECASE)

_NAME = r"[^\W\d]\w*"

_PHP_TOKEN = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<close>\?>)
  | (?P<attr>\#\[)
  | (?P<line_comment>(?://|\#).*?(?=\?>|\n|$))
  | (?P<block_comment>/\*.*?\*/)
  | (?P<heredoc><<<[ \t]*(?P<quote>["']?)(?P<label>[A-Za-z_]\w*)(?P=quote)\r?\n)
  | (?P<single>'(?:[^'\\]|\\.)*')
  | (?P<double>"(?:[^"\\]|\\.)*")
  | (?P<backtick>`(?:[^`\\]|\\.)*`)
  | (?P<unterminated>/\*|['"`])
  | (?P<variable>\$"""
    + _NAME
    + r""")
  | (?P<name>\\?"""
    + _NAME
    + r"(?:\\"
    + _NAME
    + r""")*)
  | (?P<number>\d[\w.]*)
  | (?P<op>\?->|->|::|=>|\.\.\.|\?\?=?|\S)
    """,
    re.VERBOSE | re.DOTALL,
)


def _has_interpolation(body: str) -> bool:
    """True when a double-quoted string body interpolates a variable."""
    escaped = False
    for i, ch in enumerate(body[:-1]):
        if escaped:
            escaped = False
            continue
        following = body[i + 1]
        if ch == "\\":
            escaped = True
        elif ch == "$" and (following == "{" or following == "_" or following.isalpha()):
            return True
        elif ch == "{" and following == "$":
            return True
    return False


def tokenize(source: str) -> List[Token]:
    """Tokenize PHP source into significant tokens.

    Args:
        source: Full text of one PHP file.

    Returns:
        Significant tokens in source order. The PHP close tag ``?>`` is
        emitted as a ";" operator, matching PHP's own treatment.

    Raises:
        LexError: On an unterminated string, comment or heredoc.
    """
    tokens: List[Token] = []
    pos = 0
    line = 1
    length = len(source)
    in_php = False

    while pos < length:
        if not in_php:
            open_tag = _OPEN_TAG.search(source, pos)
            if open_tag is None:
                break
            line += source.count("\n", pos, open_tag.end())
            pos = open_tag.end()
            in_php = True
            continue

        match = _PHP_TOKEN.match(source, pos)
        if match is None:  # pragma: no cover - the op group matches any non-space
            raise LexError(f"Unexpected input at line {line}")
        kind = match.lastgroup
        text = match.group(0)
        end = match.end()

        if kind == "unterminated":
            raise LexError(f"Unterminated string or comment at line {line}")

        if kind == "heredoc":
            closing = re.compile(r"^[ \t]*" + re.escape(match.group("label")) + r"\b", re.MULTILINE)
            close_match = closing.search(source, end)
            if close_match is None:
                raise LexError(f"Unterminated heredoc at line {line}")
            end = close_match.end()
            text = source[pos:end]
            tokens.append(Token(TokenKind.STRING, text, line, line + text.count("\n")))
        elif kind == "close":
            tokens.append(Token(TokenKind.OP, ";", line, line))
            in_php = False
        elif kind == "attr":
            tokens.append(Token(TokenKind.OP, "#[", line, line))
        elif kind in ("single", "double", "backtick"):
            if kind == "single":
                literal = True
            elif kind == "double":
                literal = not _has_interpolation(text[1:-1])
            else:
                literal = False
            tokens.append(
                Token(TokenKind.STRING, text, line, line + text.count("\n"), literal=literal)
            )
        elif kind == "variable":
            tokens.append(Token(TokenKind.VARIABLE, text, line, line))
        elif kind == "name":
            tokens.append(Token(TokenKind.NAME, text, line, line))
        elif kind == "number":
            tokens.append(Token(TokenKind.NUMBER, text, line, line))
        elif kind == "op":
            tokens.append(Token(TokenKind.OP, text, line, line))
        # ws, line_comment and block_comment produce no token

        line += text.count("\n")
        pos = end

    return tokens
