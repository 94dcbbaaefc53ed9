"""Tokenizer for Go source files."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List


class GoTokenType(Enum):
    # Keywords
    PACKAGE = auto()
    IMPORT = auto()
    TYPE = auto()
    CONST = auto()
    VAR = auto()
    FUNC = auto()
    STRUCT = auto()
    INTERFACE = auto()
    MAP = auto()
    CHAN = auto()
    KEYWORD = auto()  # any other Go keyword

    # Delimiters
    LBRACE = auto()
    RBRACE = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    SEMICOLON = auto()
    COMMA = auto()
    DOT = auto()
    STAR = auto()
    ASSIGN = auto()
    ARROW = auto()
    ELLIPSIS = auto()
    OPERATOR = auto()

    # Literals
    IDENT = auto()
    STRING = auto()
    NUMBER = auto()
    CHAR = auto()

    # Special
    COMMENT = auto()
    EOF = auto()


_KEYWORDS = {
    "package": GoTokenType.PACKAGE,
    "import": GoTokenType.IMPORT,
    "type": GoTokenType.TYPE,
    "const": GoTokenType.CONST,
    "var": GoTokenType.VAR,
    "func": GoTokenType.FUNC,
    "struct": GoTokenType.STRUCT,
    "interface": GoTokenType.INTERFACE,
    "map": GoTokenType.MAP,
    "chan": GoTokenType.CHAN,
}

_OTHER_KEYWORDS = {
    "break", "case", "continue", "default", "defer", "else", "fallthrough",
    "for", "go", "goto", "if", "range", "return", "select", "switch",
}

# Keywords after which a newline terminates the statement.
_TERMINATING_KEYWORDS = {"break", "continue", "fallthrough", "return"}

_SINGLE_CHAR_TOKENS = {
    "{": GoTokenType.LBRACE,
    "}": GoTokenType.RBRACE,
    "(": GoTokenType.LPAREN,
    ")": GoTokenType.RPAREN,
    "[": GoTokenType.LBRACKET,
    "]": GoTokenType.RBRACKET,
    ";": GoTokenType.SEMICOLON,
    ",": GoTokenType.COMMA,
    ".": GoTokenType.DOT,
    "*": GoTokenType.STAR,
    "=": GoTokenType.ASSIGN,
}

# Longest first so that e.g. "<<=" wins over "<<".
_OPERATORS = [
    "<<=", ">>=", "&^=", "...",
    "&&", "||", "<-", "++", "--", "==", "!=", "<=", ">=", ":=",
    "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<", ">>", "&^",
    "+", "-", "/", "%", "&", "|", "^", "<", ">", "!", ":", "~",
]


@dataclass
class GoToken:
    type: GoTokenType
    value: str
    line: int
    col: int
    end_line: int = 0

    def __post_init__(self):
        if not self.end_line:
            self.end_line = self.line


class GoTokenizeError(Exception):
    def __init__(self, message: str, line: int, col: int):
        super().__init__(f"Line {line}:{col}: {message}")


def _ends_statement(tok: GoToken | None) -> bool:
    """Whether a newline after ``tok`` triggers automatic semicolon insertion."""
    if tok is None:
        return False
    if tok.type in (
        GoTokenType.IDENT,
        GoTokenType.STRING,
        GoTokenType.NUMBER,
        GoTokenType.CHAR,
        GoTokenType.RPAREN,
        GoTokenType.RBRACKET,
        GoTokenType.RBRACE,
    ):
        return True
    if tok.type == GoTokenType.KEYWORD and tok.value in _TERMINATING_KEYWORDS:
        return True
    return tok.type == GoTokenType.OPERATOR and tok.value in ("++", "--")


def tokenize_go(text: str) -> List[GoToken]:
    """Tokenize a Go source string into a list of tokens.

    Comment tokens are kept in the stream so the parser can attach doc
    comments to declarations.
    """
    tokens: List[GoToken] = []
    last: GoToken | None = None  # last non-comment token
    i = 0
    line = 1
    col = 1
    n = len(text)

    def insert_semicolon() -> None:
        nonlocal last
        if _ends_statement(last):
            last = GoToken(GoTokenType.SEMICOLON, "\n", line, col)
            tokens.append(last)

    while i < n:
        ch = text[i]

        # Whitespace
        if ch in (" ", "\t", "\r"):
            i += 1
            col += 1
            continue

        if ch == "\n":
            insert_semicolon()
            i += 1
            line += 1
            col = 1
            continue

        # Line comment
        if ch == "/" and i + 1 < n and text[i + 1] == "/":
            start = i
            while i < n and text[i] != "\n":
                i += 1
            tokens.append(GoToken(GoTokenType.COMMENT, text[start:i], line, col))
            col += i - start
            continue

        # General comment
        if ch == "/" and i + 1 < n and text[i + 1] == "*":
            start = i
            start_line, start_col = line, col
            end = text.find("*/", i + 2)
            if end < 0:
                raise GoTokenizeError("comment not terminated", start_line, start_col)
            i = end + 2
            body = text[start:i]
            newlines = body.count("\n")
            if newlines:
                # A general comment spanning lines acts like a newline.
                insert_semicolon()
                line += newlines
                col = len(body) - body.rfind("\n")
            else:
                col += len(body)
            tokens.append(
                GoToken(GoTokenType.COMMENT, body, start_line, start_col, line)
            )
            continue

        # Interpreted string
        if ch == '"' or ch == "'":
            start = i
            i += 1
            while i < n and text[i] != ch:
                if text[i] == "\\":
                    i += 1
                elif text[i] == "\n":
                    raise GoTokenizeError("literal not terminated", line, col)
                i += 1
            if i >= n:
                raise GoTokenizeError("literal not terminated", line, col)
            i += 1
            tok_type = GoTokenType.STRING if ch == '"' else GoTokenType.CHAR
            last = GoToken(tok_type, text[start:i], line, col)
            tokens.append(last)
            col += i - start
            continue

        # Raw string
        if ch == "`":
            end = text.find("`", i + 1)
            if end < 0:
                raise GoTokenizeError("raw string literal not terminated", line, col)
            raw = text[i:end + 1]
            start_line, start_col = line, col
            newlines = raw.count("\n")
            if newlines:
                line += newlines
                col = len(raw) - raw.rfind("\n")
            else:
                col += len(raw)
            last = GoToken(GoTokenType.STRING, raw, start_line, start_col, line)
            tokens.append(last)
            i = end + 1
            continue

        # Number (including forms like 0x1F, 1e9, .5 and 1_000)
        if ch.isdigit() or (ch == "." and i + 1 < n and text[i + 1].isdigit()):
            start = i
            while i < n and (text[i].isalnum() or text[i] in "._"):
                if text[i] in "eEpP" and i + 1 < n and text[i + 1] in "+-":
                    i += 1
                i += 1
            last = GoToken(GoTokenType.NUMBER, text[start:i], line, col)
            tokens.append(last)
            col += i - start
            continue

        # Identifier / keyword
        if ch.isalpha() or ch == "_":
            start = i
            while i < n and (text[i].isalnum() or text[i] == "_"):
                i += 1
            word = text[start:i]
            if word in _KEYWORDS:
                tok_type = _KEYWORDS[word]
            elif word in _OTHER_KEYWORDS:
                tok_type = GoTokenType.KEYWORD
            else:
                tok_type = GoTokenType.IDENT
            last = GoToken(tok_type, word, line, col)
            tokens.append(last)
            col += i - start
            continue

        # Operators, longest match first
        op = next((o for o in _OPERATORS if text.startswith(o, i)), None)
        if op is not None and len(op) > 1:
            if op == "...":
                tok_type = GoTokenType.ELLIPSIS
            elif op == "<-":
                tok_type = GoTokenType.ARROW
            else:
                tok_type = GoTokenType.OPERATOR
            last = GoToken(tok_type, op, line, col)
            tokens.append(last)
            i += len(op)
            col += len(op)
            continue

        # Single-character tokens
        if ch in _SINGLE_CHAR_TOKENS:
            last = GoToken(_SINGLE_CHAR_TOKENS[ch], ch, line, col)
            tokens.append(last)
            i += 1
            col += 1
            continue

        if op is not None:
            last = GoToken(GoTokenType.OPERATOR, op, line, col)
            tokens.append(last)
            i += 1
            col += 1
            continue

        raise GoTokenizeError(f"unexpected character {ch!r}", line, col)

    insert_semicolon()
    tokens.append(GoToken(GoTokenType.EOF, "", line, col))
    return tokens
