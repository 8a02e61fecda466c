"""Tolerant JSON-with-comments toolkit.

This module provides:
- parse: Fault-tolerant parsing of JSONC text (comments, trailing commas)
- modify: Set or remove a top-level property in place, leaving the rest of
  the text byte-for-byte untouched
- format: Re-indent a document (4 spaces) while keeping its comments

Editor settings files are hand-edited and commented, so they are edited as
text rather than re-serialized.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

INDENT = "    "

# Sentinel for modify(): remove the property instead of setting it
REMOVE = object()

_PUNCTUATION = "{}[]:,"
_NUMBER_CHARS = set("0123456789+-.eE")
_LITERALS = {"true": True, "false": False, "null": None}


class JSONCError(ValueError):
    """Text is not a usable JSONC document."""


@dataclass(frozen=True)
class Token:
    """A lexical token of a JSONC document."""

    kind: str  # punctuation char, "string", "number", "literal", "line_comment", "block_comment", "unknown"
    start: int
    end: int
    text: str

    @property
    def is_comment(self) -> bool:
        return self.kind in ("line_comment", "block_comment")


def tokenize(text: str) -> list[Token]:
    """Split JSONC text into tokens, skipping whitespace."""
    tokens: list[Token] = []
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < length else ""

        if ch in " \t\r\n\ufeff":
            i += 1
            continue

        start = i
        if ch in _PUNCTUATION:
            kind = ch
            i += 1
        elif ch == '"':
            kind = "string"
            i += 1
            escape = False
            while i < length:
                c = text[i]
                i += 1
                if escape:
                    escape = False
                elif c == "\\":
                    escape = True
                elif c == '"' or c == "\n":
                    break
        elif ch == "/" and nxt == "/":
            kind = "line_comment"
            end = text.find("\n", i)
            i = length if end == -1 else end
            # Keep "\r" out of the comment text
            if text[start:i].endswith("\r"):
                i -= 1
        elif ch == "/" and nxt == "*":
            kind = "block_comment"
            end = text.find("*/", i + 2)
            i = length if end == -1 else end + 2
        elif ch in _NUMBER_CHARS:
            kind = "number"
            while i < length and text[i] in _NUMBER_CHARS:
                i += 1
        elif ch.isalpha() or ch == "_":
            while i < length and (text[i].isalnum() or text[i] == "_"):
                i += 1
            kind = "literal" if text[start:i] in _LITERALS else "unknown"
        else:
            kind = "unknown"
            i += 1

        tokens.append(Token(kind, start, i, text[start:i]))
    return tokens


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = [t for t in tokens if not t.is_comment]
        self._pos = 0

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise JSONCError("Unexpected end of document")
        self._pos += 1
        return token

    def parse(self) -> Any:
        value = self._value()
        if self._peek() is not None:
            raise JSONCError("Unexpected content after the root value")
        return value

    def _value(self) -> Any:
        token = self._next()
        if token.kind == "{":
            return self._object()
        if token.kind == "[":
            return self._array()
        if token.kind in ("string", "number"):
            try:
                return json.loads(token.text)
            except ValueError as e:
                raise JSONCError(f"Invalid {token.kind} at offset {token.start}") from e
        if token.kind == "literal":
            return _LITERALS[token.text]
        raise JSONCError(f"Unexpected token {token.text!r} at offset {token.start}")

    def _object(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        while True:
            token = self._next()
            if token.kind == "}":
                return result
            if token.kind != "string":
                raise JSONCError(f"Property name expected at offset {token.start}")
            key = json.loads(token.text)
            if self._next().kind != ":":
                raise JSONCError(f"Colon expected after {key!r}")
            result[key] = self._value()
            separator = self._next()
            if separator.kind == "}":
                return result
            if separator.kind != ",":
                raise JSONCError(f"Comma expected at offset {separator.start}")

    def _array(self) -> list[Any]:
        result: list[Any] = []
        while True:
            token = self._peek()
            if token is not None and token.kind == "]":
                self._pos += 1
                return result
            result.append(self._value())
            separator = self._next()
            if separator.kind == "]":
                return result
            if separator.kind != ",":
                raise JSONCError(f"Comma expected at offset {separator.start}")


def parse(text: str | None) -> Any:
    """Parse JSONC text.

    Never raises: empty or malformed documents yield None.
    """
    if not text:
        return None
    tokens = tokenize(text)
    if not any(not t.is_comment for t in tokens):
        return None
    try:
        return _Parser(tokens).parse()
    except JSONCError:
        return None


@dataclass(frozen=True)
class _Property:
    key: str
    start: int  # offset of the key
    value_start: int
    value_end: int


def _root_properties(text: str, tokens: list[Token]) -> tuple[Token, Token, list[_Property]]:
    """Locate the root object and its top-level properties."""
    code = [t for t in tokens if not t.is_comment]
    if not code or code[0].kind != "{":
        raise JSONCError("Root value is not an object")

    properties: list[_Property] = []
    depth = 0
    key_token: Token | None = None
    value_start = value_end = -1
    close: Token | None = None
    expect_key = True

    for token in code:
        if depth == 0:
            if token.kind == "{":
                depth = 1
                continue
            raise JSONCError("Unexpected content after the root object")

        if depth == 1 and token.kind in (",", "}"):
            if key_token is not None and value_start >= 0:
                properties.append(
                    _Property(json.loads(key_token.text), key_token.start, value_start, value_end)
                )
            key_token = None
            value_start = value_end = -1
            expect_key = True
            if token.kind == "}":
                close = token
                break
            continue

        if depth == 1 and expect_key:
            if token.kind == "string":
                key_token = token
            elif token.kind == ":":
                expect_key = False
            continue

        # Inside a property value
        if value_start < 0:
            value_start = token.start
        value_end = token.end
        if token.kind in ("{", "["):
            depth += 1
        elif token.kind in ("}", "]"):
            depth -= 1

    if close is None:
        raise JSONCError("Root object is not closed")
    return code[0], close, properties


def _line_indent(text: str, offset: int) -> str:
    line_start = text.rfind("\n", 0, offset) + 1
    prefix = text[line_start:offset]
    return prefix[: len(prefix) - len(prefix.lstrip(" \t"))]


def _serialize(value: Any, indent: str) -> str:
    raw = json.dumps(value, indent=4, ensure_ascii=False)
    return raw.replace("\n", "\n" + indent)


def modify(text: str, key: str, value: Any) -> str:
    """Set or remove a top-level property.

    Only the edited property is touched; everything else in the text,
    including comments, is kept as is.

    Args:
        text: JSONC document whose root is an object.
        key: Top-level property name.
        value: New value, or REMOVE to delete the property.

    Returns:
        The edited text (unchanged when there is nothing to do).

    Raises:
        JSONCError: If the root value is not an object.
    """
    tokens = tokenize(text)
    if not any(not t.is_comment for t in tokens):
        if value is REMOVE:
            return text
        return "{\n" + INDENT + json.dumps(key) + ": " + _serialize(value, INDENT) + "\n}"

    open_brace, close_brace, properties = _root_properties(text, tokens)
    # Duplicate keys: the last one wins, as in parse()
    index = next(
        (i for i in range(len(properties) - 1, -1, -1) if properties[i].key == key),
        None,
    )

    if value is REMOVE:
        if index is None:
            return text
        prop = properties[index]
        if index > 0:
            begin = properties[index - 1].value_end
            end = prop.value_end
        elif len(properties) > 1:
            begin = prop.start
            end = properties[1].start
        else:
            begin = open_brace.end
            end = close_brace.start
            # Keep the closing brace on its own line
            inner = text[begin:end]
            if "\n" in inner:
                return text[:begin] + "\n" + text[close_brace.start - len(_line_indent(text, close_brace.start)):]
        return text[:begin] + text[end:]

    if index is not None:
        prop = properties[index]
        indent = _line_indent(text, prop.start)
        return text[: prop.value_start] + _serialize(value, indent) + text[prop.value_end:]

    if properties:
        last = properties[-1]
        indent = _line_indent(text, last.start)
        insertion = ",\n" + indent + json.dumps(key) + ": " + _serialize(value, indent)
        return text[: last.value_end] + insertion + text[last.value_end:]

    indent = _line_indent(text, open_brace.start) + INDENT
    insertion = "\n" + indent + json.dumps(key) + ": " + _serialize(value, indent) + "\n"
    return text[: open_brace.end] + insertion + text[close_brace.start:]


def format(text: str, indent_unit: str = INDENT) -> str:  # noqa: A001
    """Re-indent a JSONC document.

    Comments are kept (trailing comments stay on their line) and at most one
    blank line is kept between entries. The result ends with a newline.
    """
    tokens = tokenize(text)
    if not tokens:
        return text

    out: list[str] = []
    level = 0
    prev: Token | None = None

    for token in tokens:
        breaks = text.count("\n", prev.end, token.start) if prev else 0
        closing = token.kind in ("}", "]")
        if closing:
            level = max(level - 1, 0)

        if prev is None:
            separator = ""
        elif prev.kind == "line_comment":
            separator = "\n"
        elif token.is_comment:
            separator = " " if breaks == 0 else "\n"
        elif prev.kind in ("{", "["):
            matching = "}" if prev.kind == "{" else "]"
            separator = "" if token.kind == matching else "\n"
        elif closing or prev.kind == ",":
            separator = "\n"
        elif prev.kind == ":":
            separator = " "
        elif token.kind in (",", ":"):
            separator = ""
        elif prev.kind == "block_comment":
            separator = " " if breaks == 0 else "\n"
        else:
            separator = " "

        if separator == "\n":
            blank = breaks >= 2 and not closing and prev is not None and prev.kind not in ("{", "[")
            out.append("\n\n" if blank else "\n")
            out.append(indent_unit * level)
        else:
            out.append(separator)
        out.append(token.text)

        if token.kind in ("{", "["):
            level += 1
        prev = token

    return "".join(out) + "\n"
