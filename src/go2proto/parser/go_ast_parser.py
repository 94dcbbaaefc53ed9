"""Recursive descent parser for Go source files.

Consumes a token stream from go_tokenizer and produces Go AST nodes.
Only package, import, type and const declarations are parsed; var and
func declarations are skipped by bracket balancing.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from .go_ast import (
    GoArrayType,
    GoConstSpec,
    GoConstValue,
    GoFieldDecl,
    GoFile,
    GoImport,
    GoMapType,
    GoNamedType,
    GoOpaqueType,
    GoPointerType,
    GoSliceType,
    GoStructType,
    GoTypeExpr,
    GoTypeSpec,
)
from .go_tokenizer import GoToken, GoTokenType

_OPENERS = {GoTokenType.LPAREN, GoTokenType.LBRACKET, GoTokenType.LBRACE}
_CLOSERS = {GoTokenType.RPAREN, GoTokenType.RBRACKET, GoTokenType.RBRACE}

# Tokens that end an embedded field: ``T``, ``T `json:"t"```, ``T }``.
_EMBEDDED_FOLLOW = {
    GoTokenType.DOT,
    GoTokenType.SEMICOLON,
    GoTokenType.RBRACE,
    GoTokenType.STRING,
}

# Tokens that can start a type expression.
_TYPE_START = {
    GoTokenType.IDENT,
    GoTokenType.STAR,
    GoTokenType.LBRACKET,
    GoTokenType.LPAREN,
    GoTokenType.MAP,
    GoTokenType.CHAN,
    GoTokenType.ARROW,
    GoTokenType.FUNC,
    GoTokenType.STRUCT,
    GoTokenType.INTERFACE,
}

_WORD_TOKENS = {
    GoTokenType.IDENT,
    GoTokenType.NUMBER,
    GoTokenType.STRING,
    GoTokenType.CHAR,
    GoTokenType.KEYWORD,
    GoTokenType.FUNC,
    GoTokenType.STRUCT,
    GoTokenType.INTERFACE,
    GoTokenType.MAP,
    GoTokenType.CHAN,
    GoTokenType.TYPE,
    GoTokenType.CONST,
    GoTokenType.VAR,
}

_SIMPLE_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r",
    "t": "\t", "v": "\v", "\\": "\\", '"': '"', "'": "'",
}
_ESCAPE_RE = re.compile(r"\\(x[0-9a-fA-F]{2}|u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8}|[0-7]{3}|.)")


class GoParseError(Exception):
    def __init__(self, message: str, token: GoToken | None = None):
        if token:
            super().__init__(f"Line {token.line}:{token.col}: {message}")
        else:
            super().__init__(message)


def unquote_go_string(literal: str) -> str:
    """Return the value of an interpreted ("...") or raw (`...`) string literal."""
    if literal.startswith("`"):
        return literal[1:-1].replace("\r", "")

    def _replace(m: re.Match) -> str:
        esc = m.group(1)
        if esc in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[esc]
        if esc[0] in "xuU":
            return chr(int(esc[1:], 16))
        if len(esc) == 3 and esc.isdigit():
            return chr(int(esc, 8))
        return m.group(0)

    return _ESCAPE_RE.sub(_replace, literal[1:-1])


def join_tokens(tokens: List[GoToken]) -> str:
    """Rebuild compact source text from a token run."""
    out: List[str] = []
    prev: GoToken | None = None
    for tok in tokens:
        value = "; " if tok.type == GoTokenType.SEMICOLON else tok.value
        if (
            prev is not None
            and tok.type in _WORD_TOKENS
            and (prev.type in _WORD_TOKENS or prev.type == GoTokenType.RPAREN)
        ):
            out.append(" ")
        out.append(value)
        prev = tok
    return "".join(out).strip("; ")


def _lead_comments(raw: List[GoToken]) -> tuple[List[GoToken], Dict[int, str]]:
    """Split comments out of the token stream.

    Returns the code tokens and a map from code-token index to the text of
    the comment group that ends on the line directly above that token.
    Comments sharing a line with the preceding code token are trailing
    comments and never count as leading documentation.
    """
    tokens: List[GoToken] = []
    docs: Dict[int, str] = {}
    pending: List[GoToken] = []
    prev: GoToken | None = None

    for tok in raw:
        if tok.type == GoTokenType.COMMENT:
            pending.append(tok)
            continue

        if pending:
            # Drop trailing comments of the previous line.
            while pending and prev is not None and pending[0].line == prev.end_line:
                pending.pop(0)
            group: List[GoToken] = []
            for comment in pending:
                if group and comment.line > group[-1].end_line + 1:
                    group = []
                group.append(comment)
            if group and group[-1].end_line + 1 == tok.line:
                docs[len(tokens)] = "\n".join(c.value for c in group)
            pending = []

        tokens.append(tok)
        # Auto-inserted semicolons sit on the line they terminate.
        if not (tok.type == GoTokenType.SEMICOLON and tok.value == "\n"):
            prev = tok

    return tokens, docs


class GoParser:
    """Recursive descent parser for Go source files."""

    def __init__(self, tokens: List[GoToken]):
        self._tokens, self._docs = _lead_comments(tokens)
        self._pos = 0

    # -- public API --

    def parse(self) -> GoFile:
        """Parse the full token stream into a GoFile AST."""
        self._skip_semicolons()
        self._expect(GoTokenType.PACKAGE)
        package_name = self._expect(GoTokenType.IDENT).value
        self._expect_end_of_statement()

        go_file = GoFile(package_name=package_name)

        while not self._at_end():
            tt = self._peek().type

            if tt == GoTokenType.SEMICOLON:
                self._advance()
            elif tt == GoTokenType.IMPORT:
                go_file.imports.extend(self._parse_import_decl())
            elif tt == GoTokenType.TYPE:
                go_file.type_specs.extend(self._parse_type_decl())
            elif tt == GoTokenType.CONST:
                go_file.const_specs.extend(self._parse_const_decl())
            elif tt == GoTokenType.VAR:
                self._skip_statement()
            elif tt == GoTokenType.FUNC:
                self._skip_func()
            else:
                tok = self._peek()
                raise GoParseError(
                    f"non-declaration statement outside function body ({tok.value!r})",
                    tok,
                )

        return go_file

    # -- import parsing --

    def _parse_import_decl(self) -> List[GoImport]:
        self._expect(GoTokenType.IMPORT)
        if self._consume_if(GoTokenType.LPAREN) is None:
            imports = [self._parse_import_spec()]
        else:
            imports = []
            while not self._at_end() and self._peek().type != GoTokenType.RPAREN:
                if self._consume_if(GoTokenType.SEMICOLON):
                    continue
                imports.append(self._parse_import_spec())
                if self._peek().type != GoTokenType.RPAREN:
                    self._expect(GoTokenType.SEMICOLON)
            self._expect(GoTokenType.RPAREN)
        self._expect_end_of_statement()
        return imports

    def _parse_import_spec(self) -> GoImport:
        alias = None
        if self._peek().type in (GoTokenType.IDENT, GoTokenType.DOT):
            alias = self._advance().value
        path = self._expect(GoTokenType.STRING).value
        return GoImport(path=unquote_go_string(path), alias=alias)

    # -- type declarations --

    def _parse_type_decl(self) -> List[GoTypeSpec]:
        """Parse ``type X T`` or a grouped ``type ( ... )`` block.

        For an ungrouped declaration the declaration's doc comment belongs
        to its single spec. Inside a group each spec only gets its own doc.
        """
        doc = self._docs.get(self._pos)
        self._expect(GoTokenType.TYPE)

        if self._consume_if(GoTokenType.LPAREN) is None:
            specs = [self._parse_type_spec(doc)]
        else:
            specs = []
            while not self._at_end() and self._peek().type != GoTokenType.RPAREN:
                if self._consume_if(GoTokenType.SEMICOLON):
                    continue
                specs.append(self._parse_type_spec(self._docs.get(self._pos)))
                if self._peek().type != GoTokenType.RPAREN:
                    self._expect(GoTokenType.SEMICOLON)
            self._expect(GoTokenType.RPAREN)

        self._expect_end_of_statement()
        return specs

    def _parse_type_spec(self, doc: Optional[str]) -> GoTypeSpec:
        name_tok = self._expect(GoTokenType.IDENT)

        has_type_params = False
        if self._peek().type == GoTokenType.LBRACKET and self._looks_like_type_params():
            self._collect_balanced()
            has_type_params = True

        is_alias = self._consume_if(GoTokenType.ASSIGN) is not None
        type_expr = self._parse_type()

        return GoTypeSpec(
            name=name_tok.value,
            type_expr=type_expr,
            doc=doc,
            line=name_tok.line,
            is_alias=is_alias,
            has_type_params=has_type_params,
        )

    def _looks_like_type_params(self) -> bool:
        """Tell ``type List[T any] ...`` apart from ``type Buf [N]byte``."""
        if self._peek_at(1).type != GoTokenType.IDENT:
            return False
        follow = self._peek_at(2)
        if follow.type in (
            GoTokenType.IDENT,
            GoTokenType.COMMA,
            GoTokenType.INTERFACE,
            GoTokenType.LBRACKET,
            GoTokenType.MAP,
            GoTokenType.CHAN,
            GoTokenType.FUNC,
            GoTokenType.STRUCT,
        ):
            return True
        return follow.type == GoTokenType.OPERATOR and follow.value == "~"

    # -- type expressions --

    def _parse_type(self) -> GoTypeExpr:
        tok = self._peek()
        tt = tok.type

        if tt == GoTokenType.IDENT:
            return self._parse_type_name()

        if tt == GoTokenType.STAR:
            self._advance()
            return GoPointerType(elem=self._parse_type())

        if tt == GoTokenType.LBRACKET:
            self._advance()
            if self._consume_if(GoTokenType.RBRACKET):
                return GoSliceType(elem=self._parse_type())
            length: List[GoToken] = []
            depth = 0
            while not self._at_end():
                if self._peek().type == GoTokenType.RBRACKET and depth == 0:
                    break
                t = self._advance()
                if t.type in _OPENERS:
                    depth += 1
                elif t.type in _CLOSERS:
                    depth -= 1
                length.append(t)
            self._expect(GoTokenType.RBRACKET)
            return GoArrayType(length=join_tokens(length), elem=self._parse_type())

        if tt == GoTokenType.MAP:
            self._advance()
            self._expect(GoTokenType.LBRACKET)
            key = self._parse_type()
            self._expect(GoTokenType.RBRACKET)
            return GoMapType(key=key, value=self._parse_type())

        if tt == GoTokenType.STRUCT:
            return self._parse_struct_type()

        if tt == GoTokenType.INTERFACE:
            start = self._pos
            self._advance()
            self._collect_balanced()
            return GoOpaqueType(text=join_tokens(self._tokens[start:self._pos]), kind="interface")

        if tt == GoTokenType.FUNC:
            start = self._pos
            self._advance()
            self._collect_balanced()  # parameters
            if self._peek().type == GoTokenType.LPAREN:
                self._collect_balanced()
            elif self._peek().type in _TYPE_START:
                self._parse_type()
            return GoOpaqueType(text=join_tokens(self._tokens[start:self._pos]), kind="func")

        if tt in (GoTokenType.CHAN, GoTokenType.ARROW):
            start = self._pos
            self._advance()
            if tt == GoTokenType.ARROW:
                self._expect(GoTokenType.CHAN)
            else:
                self._consume_if(GoTokenType.ARROW)
            self._parse_type()
            return GoOpaqueType(text=join_tokens(self._tokens[start:self._pos]), kind="chan")

        if tt == GoTokenType.LPAREN:
            self._advance()
            inner = self._parse_type()
            self._expect(GoTokenType.RPAREN)
            return inner

        raise GoParseError(f"Expected type, got {tt.name} ({tok.value!r})", tok)

    def _parse_type_name(self) -> GoTypeExpr:
        """Parse ``Name``, ``pkg.Name`` or a generic instantiation ``Name[T]``."""
        start = self._pos
        name = self._expect(GoTokenType.IDENT).value
        qualifier = None
        if self._consume_if(GoTokenType.DOT):
            qualifier = name
            name = self._expect(GoTokenType.IDENT).value

        if self._peek().type == GoTokenType.LBRACKET:
            self._collect_balanced()
            return GoOpaqueType(text=join_tokens(self._tokens[start:self._pos]), kind="generic")

        return GoNamedType(name=name, qualifier=qualifier)

    def _parse_struct_type(self) -> GoStructType:
        """Parse: STRUCT LBRACE { FieldDecl ; } RBRACE"""
        self._expect(GoTokenType.STRUCT)
        self._expect(GoTokenType.LBRACE)
        fields: List[GoFieldDecl] = []

        while not self._at_end() and self._peek().type != GoTokenType.RBRACE:
            if self._consume_if(GoTokenType.SEMICOLON):
                continue
            fields.append(self._parse_field_decl())
            if self._peek().type != GoTokenType.RBRACE:
                self._expect(GoTokenType.SEMICOLON)

        self._expect(GoTokenType.RBRACE)
        return GoStructType(fields=fields)

    def _parse_field_decl(self) -> GoFieldDecl:
        """Parse a named field line or an embedded field."""
        tok = self._peek()

        if tok.type == GoTokenType.STAR:
            # Embedded pointer: *T or *pkg.T
            self._advance()
            embedded = self._parse_type_name()
            return GoFieldDecl(
                names=[_embedded_name(embedded)],
                type_expr=GoPointerType(elem=embedded),
                embedded=True,
                tag=self._parse_tag(),
                line=tok.line,
            )

        if tok.type != GoTokenType.IDENT:
            raise GoParseError(f"Expected field name, got {tok.type.name} ({tok.value!r})", tok)

        follow = self._peek_at(1).type
        if follow in _EMBEDDED_FOLLOW or (
            follow == GoTokenType.LBRACKET and self._is_embedded_instantiation()
        ):
            embedded = self._parse_type_name()
            return GoFieldDecl(
                names=[_embedded_name(embedded)],
                type_expr=embedded,
                embedded=True,
                tag=self._parse_tag(),
                line=tok.line,
            )

        names = [self._advance().value]
        while self._consume_if(GoTokenType.COMMA):
            names.append(self._expect(GoTokenType.IDENT).value)
        type_expr = self._parse_type()
        return GoFieldDecl(
            names=names,
            type_expr=type_expr,
            tag=self._parse_tag(),
            line=tok.line,
        )

    def _is_embedded_instantiation(self) -> bool:
        """Tell an embedded ``Box[int]`` apart from a field ``Scores [3]int``.

        Looks past the bracket that follows the current IDENT: an embedded
        instantiation ends the field right after the closing bracket.
        """
        offset = 1
        depth = 0
        while True:
            tok = self._peek_at(offset)
            if tok.type == GoTokenType.EOF:
                return False
            if tok.type in _OPENERS:
                depth += 1
            elif tok.type in _CLOSERS:
                depth -= 1
                if depth == 0:
                    break
            offset += 1
        return self._peek_at(offset + 1).type in (
            GoTokenType.SEMICOLON,
            GoTokenType.RBRACE,
            GoTokenType.STRING,
        )

    def _parse_tag(self) -> Optional[str]:
        tag = self._consume_if(GoTokenType.STRING)
        return unquote_go_string(tag.value) if tag else None

    # -- const declarations --

    def _parse_const_decl(self) -> List[GoConstSpec]:
        self._expect(GoTokenType.CONST)

        if self._consume_if(GoTokenType.LPAREN) is None:
            specs = [self._parse_const_spec()]
        else:
            specs = []
            while not self._at_end() and self._peek().type != GoTokenType.RPAREN:
                if self._consume_if(GoTokenType.SEMICOLON):
                    continue
                specs.append(self._parse_const_spec())
                if self._peek().type != GoTokenType.RPAREN:
                    self._expect(GoTokenType.SEMICOLON)
            self._expect(GoTokenType.RPAREN)

        self._expect_end_of_statement()
        return specs

    def _parse_const_spec(self) -> GoConstSpec:
        """Parse: IdentifierList [ Type ] [ "=" ExpressionList ]"""
        first = self._expect(GoTokenType.IDENT)
        names = [first.value]
        while self._consume_if(GoTokenType.COMMA):
            names.append(self._expect(GoTokenType.IDENT).value)

        type_expr = None
        if self._peek().type in _TYPE_START:
            type_expr = self._parse_type()

        values: List[GoConstValue] = []
        if self._consume_if(GoTokenType.ASSIGN):
            values = self._parse_expression_list()

        return GoConstSpec(names=names, type_expr=type_expr, values=values, line=first.line)

    def _parse_expression_list(self) -> List[GoConstValue]:
        values: List[GoConstValue] = []
        current: List[GoToken] = []
        depth = 0

        while not self._at_end():
            tt = self._peek().type
            if depth == 0 and tt in (GoTokenType.SEMICOLON, GoTokenType.RPAREN):
                break
            tok = self._advance()
            if depth == 0 and tt == GoTokenType.COMMA:
                values.append(_const_value(current))
                current = []
                continue
            if tt in _OPENERS:
                depth += 1
            elif tt in _CLOSERS:
                depth -= 1
            current.append(tok)

        if current:
            values.append(_const_value(current))
        return values

    # -- skip / recovery helpers --

    def _skip_statement(self) -> None:
        """Skip tokens up to and including the next top-level semicolon."""
        depth = 0
        while not self._at_end():
            tok = self._advance()
            if tok.type in _OPENERS:
                depth += 1
            elif tok.type in _CLOSERS:
                depth -= 1
            elif tok.type == GoTokenType.SEMICOLON and depth == 0:
                return

    def _skip_func(self) -> None:
        """Skip a function or method declaration including its body."""
        self._expect(GoTokenType.FUNC)
        depth = 0
        while not self._at_end():
            tt = self._peek().type
            if depth == 0 and tt == GoTokenType.LBRACE:
                self._collect_balanced()
                self._expect_end_of_statement()
                return
            if depth == 0 and tt == GoTokenType.SEMICOLON:
                self._advance()
                return
            tok = self._advance()
            if tok.type in (GoTokenType.LPAREN, GoTokenType.LBRACKET):
                depth += 1
            elif tok.type in (GoTokenType.RPAREN, GoTokenType.RBRACKET):
                depth -= 1

    def _collect_balanced(self) -> List[GoToken]:
        """Consume a bracketed run starting at the current opener."""
        opener = self._peek()
        if opener.type not in _OPENERS:
            raise GoParseError(f"Expected bracket, got {opener.type.name} ({opener.value!r})", opener)
        start = self._pos
        depth = 0
        while not self._at_end():
            tok = self._advance()
            if tok.type in _OPENERS:
                depth += 1
            elif tok.type in _CLOSERS:
                depth -= 1
                if depth == 0:
                    return self._tokens[start:self._pos]
        raise GoParseError("unbalanced brackets", opener)

    def _skip_semicolons(self) -> None:
        while self._peek().type == GoTokenType.SEMICOLON:
            self._advance()

    # -- token helpers --

    def _peek(self) -> GoToken:
        return self._tokens[self._pos]

    def _peek_at(self, offset: int) -> GoToken:
        idx = self._pos + offset
        if idx < len(self._tokens):
            return self._tokens[idx]
        return self._tokens[-1]  # EOF

    def _advance(self) -> GoToken:
        tok = self._tokens[self._pos]
        if tok.type != GoTokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, expected: GoTokenType) -> GoToken:
        tok = self._peek()
        if tok.type != expected:
            raise GoParseError(
                f"Expected {expected.name}, got {tok.type.name} ({tok.value!r})",
                tok,
            )
        return self._advance()

    def _expect_end_of_statement(self) -> None:
        if not self._at_end():
            self._expect(GoTokenType.SEMICOLON)

    def _consume_if(self, expected: GoTokenType) -> GoToken | None:
        if self._peek().type == expected:
            return self._advance()
        return None

    def _at_end(self) -> bool:
        return self._tokens[self._pos].type == GoTokenType.EOF


def _embedded_name(type_expr: GoTypeExpr) -> str:
    """Field name of an embedded field: the unqualified type name."""
    if isinstance(type_expr, GoNamedType):
        return type_expr.name
    # Generic instantiation such as pkg.List[T]
    text = type_expr.text.split("[", 1)[0]
    return text.rsplit(".", 1)[-1]


def _const_value(tokens: List[GoToken]) -> GoConstValue:
    text = join_tokens(tokens)
    if len(tokens) == 1 and tokens[0].type == GoTokenType.STRING:
        return GoConstValue(text=text, string_value=unquote_go_string(tokens[0].value))
    return GoConstValue(text=text)
