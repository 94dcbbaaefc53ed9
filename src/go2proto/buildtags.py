"""Go build constraints.

A file takes part in a load only when its ``_GOOS``/``_GOARCH`` file name
suffix and its ``//go:build`` (or legacy ``// +build``) lines match the
build context. Tags nobody sets, ``ignore`` included, are false.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

KNOWN_OS = frozenset({
    "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
    "ios", "js", "linux", "nacl", "netbsd", "openbsd", "plan9", "solaris",
    "wasip1", "windows", "zos",
})

KNOWN_ARCH = frozenset({
    "386", "amd64", "amd64p32", "arm", "armbe", "arm64", "arm64be",
    "loong64", "mips", "mipsle", "mips64", "mips64le", "mips64p32",
    "mips64p32le", "ppc", "ppc64", "ppc64le", "riscv", "riscv64", "s390",
    "s390x", "sparc", "sparc64", "wasm",
})

UNIX_OS = frozenset({
    "aix", "android", "darwin", "dragonfly", "freebsd", "hurd", "illumos",
    "ios", "linux", "netbsd", "openbsd", "solaris",
})

_GO_BUILD_RE = re.compile(r"^//go:build(?:\s|$)")
_PLUS_BUILD_RE = re.compile(r"^//\s*\+build(?:\s|$)")
_EXPR_TOKEN_RE = re.compile(r"\s*(\(|\)|!|&&|\|\||[A-Za-z0-9_.]+)")
_RELEASE_TAG_RE = re.compile(r"^go1\.\d+$")


class BuildConstraintError(Exception):
    """Raised for a ``//go:build`` line that cannot be parsed."""


@dataclass(frozen=True)
class BuildContext:
    goos: str = "linux"
    goarch: str = "amd64"
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def has_tag(self, tag: str) -> bool:
        if tag in (self.goos, self.goarch, "gc") or tag in self.tags:
            return True
        if tag == "unix":
            return self.goos in UNIX_OS
        if tag == "linux":
            return self.goos == "android"
        if tag == "darwin":
            return self.goos == "ios"
        if tag == "solaris":
            return self.goos == "illumos"
        return bool(_RELEASE_TAG_RE.match(tag))


DEFAULT_CONTEXT = BuildContext()


def matches_file_name(name: str, context: BuildContext = DEFAULT_CONTEXT) -> bool:
    """Check the ``_GOOS``, ``_GOARCH`` or ``_GOOS_GOARCH`` suffix of a file name.

    The part before the first underscore never counts, so ``linux.go``
    is not constrained.
    """
    stem = name[:-len(".go")] if name.endswith(".go") else name
    parts = stem.split("_")[1:]
    if len(parts) >= 2 and parts[-2] in KNOWN_OS and parts[-1] in KNOWN_ARCH:
        return context.has_tag(parts[-2]) and context.has_tag(parts[-1])
    if parts and (parts[-1] in KNOWN_OS or parts[-1] in KNOWN_ARCH):
        return context.has_tag(parts[-1])
    return True


def header_constraints(text: str) -> List[str]:
    """Return the constraint comment lines ahead of the package clause."""
    lines: List[str] = []
    in_block = False
    for raw in text.splitlines():
        line = raw.strip()
        if in_block:
            in_block = "*/" not in line
            continue
        if not line:
            continue
        if line.startswith("//"):
            if _GO_BUILD_RE.match(line) or _PLUS_BUILD_RE.match(line):
                lines.append(line)
            continue
        if line.startswith("/*"):
            in_block = "*/" not in line[2:]
            continue
        break
    return lines


def matches_source(text: str, context: BuildContext = DEFAULT_CONTEXT) -> bool:
    """Evaluate the build constraints of a Go source file.

    A ``//go:build`` line wins over ``// +build`` lines, which are only
    consulted when it is absent.
    """
    constraints = header_constraints(text)
    for line in constraints:
        if _GO_BUILD_RE.match(line):
            return eval_expr(line[len("//go:build"):], context)
    return all(
        _eval_plus_build(line.split("+build", 1)[1], context)
        for line in constraints
    )


def eval_expr(expr: str, context: BuildContext = DEFAULT_CONTEXT) -> bool:
    """Evaluate a ``//go:build`` expression such as ``linux && (amd64 || arm64)``."""
    tokens = _tokenize_expr(expr)
    if not tokens:
        raise BuildConstraintError("empty //go:build expression")
    parser = _ExprParser(tokens, context)
    result = parser.parse_or()
    if parser.pos != len(tokens):
        raise BuildConstraintError(f"unexpected {tokens[parser.pos]!r} in //go:build expression")
    return result


def _tokenize_expr(expr: str) -> List[str]:
    tokens: List[str] = []
    pos = 0
    expr = expr.rstrip()
    while pos < len(expr):
        m = _EXPR_TOKEN_RE.match(expr, pos)
        if m is None:
            raise BuildConstraintError(f"invalid character in //go:build expression: {expr[pos:].strip()!r}")
        tokens.append(m.group(1))
        pos = m.end()
    return tokens


class _ExprParser:
    """or := and { "||" and }; and := not { "&&" not }; not := "!" not | "(" or ")" | tag"""

    def __init__(self, tokens: List[str], context: BuildContext):
        self.tokens = tokens
        self.pos = 0
        self.context = context

    def _peek(self) -> Optional[str]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        tok = self._peek()
        if tok is None:
            raise BuildConstraintError("unexpected end of //go:build expression")
        self.pos += 1
        return tok

    def parse_or(self) -> bool:
        result = self.parse_and()
        while self._peek() == "||":
            self._next()
            # The right side is parsed even when the left is already true.
            right = self.parse_and()
            result = result or right
        return result

    def parse_and(self) -> bool:
        result = self.parse_not()
        while self._peek() == "&&":
            self._next()
            right = self.parse_not()
            result = result and right
        return result

    def parse_not(self) -> bool:
        tok = self._next()
        if tok == "!":
            return not self.parse_not()
        if tok == "(":
            result = self.parse_or()
            if self._next() != ")":
                raise BuildConstraintError("missing ) in //go:build expression")
            return result
        if tok in (")", "&&", "||"):
            raise BuildConstraintError(f"unexpected {tok!r} in //go:build expression")
        return self.context.has_tag(tok)


def _eval_plus_build(options: str, context: BuildContext) -> bool:
    """``// +build linux,amd64 darwin``: spaces are OR, commas are AND."""
    for option in options.split():
        if all(_eval_plus_term(term, context) for term in option.split(",")):
            return True
    return False


def _eval_plus_term(term: str, context: BuildContext) -> bool:
    if term.startswith("!"):
        return not context.has_tag(term[1:])
    return context.has_tag(term)
