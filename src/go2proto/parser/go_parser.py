from __future__ import annotations

from .go_ast import GoFile
from .go_ast_parser import GoParseError, GoParser
from .go_tokenizer import GoTokenizeError, tokenize_go


def parse_go_source(text: str, source_file: str = "") -> GoFile:
    """Parse Go source text into a GoFile AST."""
    try:
        tokens = tokenize_go(text)
    except GoTokenizeError as e:
        raise GoParseError(str(e)) from e
    go_file = GoParser(tokens).parse()
    go_file.path = source_file
    return go_file

