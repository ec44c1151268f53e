"""Reader for PHP var_dump output returned by legacy partner integrations.

The partner pipes its OTA response through ``var_dump`` before sending it,
so the body looks like::

    array(1) {
      ["OTA_VehLocSearchRS"]=> array(4) {
        ["VehMatchedLocs"]=> array(1) {
          [0]=> array(1) { ... }

There is no schema. The reader is tolerant: declared string lengths are
trusted only when they line up with a closing quote, ``//`` comment lines
are ignored, and arrays whose keys are exactly ``0..n-1`` become lists.
"""
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_START_RE = re.compile(r"\b(array|object)\s*\(")
_STRING_END_RE = re.compile(r'"[ \t]*(?=\r?\n|\}|$)')
_INT_RE = re.compile(r"-?\d+")
_FLOAT_RE = re.compile(r"-?(?:\d+\.?\d*(?:[eE][-+]?\d+)?|INF|NAN)")
_NAME_RE = re.compile(r"[^)]*")


class VarDumpError(ValueError):
    """Raised when the text cannot be read as var_dump output."""


class _Reader:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    # -- low level -------------------------------------------------------
    def skip_ws(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch.isspace():
                self.pos += 1
            elif text.startswith("//", self.pos):
                newline = text.find("\n", self.pos)
                self.pos = len(text) if newline == -1 else newline + 1
            else:
                break

    def peek(self, token: str) -> bool:
        self.skip_ws()
        return self.text.startswith(token, self.pos)

    def expect(self, token: str) -> None:
        self.skip_ws()
        if not self.text.startswith(token, self.pos):
            found = self.text[self.pos:self.pos + 20]
            raise VarDumpError(f"Expected {token!r} at offset {self.pos}, found {found!r}")
        self.pos += len(token)

    def match(self, pattern: re.Pattern) -> str:
        self.skip_ws()
        m = pattern.match(self.text, self.pos)
        if not m:
            raise VarDumpError(f"Unexpected token at offset {self.pos}")
        self.pos = m.end()
        return m.group(0)

    # -- grammar ---------------------------------------------------------
    def value(self) -> Any:
        self.skip_ws()
        if self.peek("array"):
            self.expect("array")
            self.expect("(")
            self.match(_INT_RE)
            self.expect(")")
            return self.entries()

        if self.peek("object"):
            self.expect("object")
            self.expect("(")
            self.match(_NAME_RE)
            self.expect(")")
            if self.peek("#"):
                self.expect("#")
                self.match(_INT_RE)
            self.expect("(")
            self.match(_INT_RE)
            self.expect(")")
            return self.entries()

        if self.peek("string"):
            self.expect("string")
            self.expect("(")
            length = int(self.match(_INT_RE))
            self.expect(")")
            self.expect('"')
            return self.string_body(length)

        if self.peek("int"):
            self.expect("int")
            self.expect("(")
            number = int(self.match(_INT_RE))
            self.expect(")")
            return number

        if self.peek("float"):
            self.expect("float")
            self.expect("(")
            number = float(self.match(_FLOAT_RE))
            self.expect(")")
            return number

        if self.peek("bool"):
            self.expect("bool")
            self.expect("(")
            flag = self.match(re.compile(r"true|false"))
            self.expect(")")
            return flag == "true"

        if self.peek("NULL"):
            self.expect("NULL")
            return None

        raise VarDumpError(f"Unknown value at offset {self.pos}: {self.text[self.pos:self.pos + 20]!r}")

    def entries(self) -> Any:
        self.expect("{")
        items: dict[Any, Any] = {}
        while not self.peek("}"):
            if self.pos >= len(self.text):
                raise VarDumpError("Unterminated array")
            key = self.key()
            self.expect("=>")
            items[key] = self.value()
        self.expect("}")

        if items and list(items.keys()) == list(range(len(items))):
            return list(items.values())
        return items

    def key(self) -> Any:
        self.expect("[")
        if self.peek('"'):
            self.expect('"')
            end = self.text.find('"', self.pos)
            if end == -1:
                raise VarDumpError("Unterminated key")
            key = self.text[self.pos:end]
            self.pos = end + 1
            # ["prop":protected] / ["prop":"Class":private]
            close = self.text.find("]", self.pos)
            if close == -1:
                raise VarDumpError("Unterminated key")
            self.pos = close
        else:
            key = int(self.match(_INT_RE))
        self.expect("]")
        return key

    def string_body(self, length: int) -> str:
        text = self.text
        start = self.pos

        end = start + length
        if text[end:end + 1] != '"':
            # Declared length is in bytes
            consumed, i = 0, start
            while i < len(text) and consumed < length:
                consumed += len(text[i].encode("utf-8"))
                i += 1
            if consumed == length and text[i:i + 1] == '"':
                end = i
            else:
                # Length was edited by hand or truncated
                m = _STRING_END_RE.search(text, start)
                if not m:
                    raise VarDumpError(f"Unterminated string at offset {start}")
                end = m.start()

        self.pos = end + 1
        return text[start:end]


def looks_like_vardump(text: str) -> bool:
    return bool(text) and bool(_START_RE.search(text)) and "=>" in text


def parse_vardump(text: str) -> Any:
    """Parse the first var_dump value found in ``text``."""
    if not text:
        raise VarDumpError("Empty input")

    m = _START_RE.search(text)
    if not m:
        raise VarDumpError("No array( or object( found")

    reader = _Reader(text)
    reader.pos = m.start()
    result = reader.value()
    logger.debug(f"Parsed var_dump value ending at offset {reader.pos}/{len(text)}")
    return result
