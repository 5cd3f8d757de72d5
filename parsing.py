"""
toyexpr Parser
Whitespace-delimited tokenizer with parenthesis stripping and a recursive-descent
parser producing the expression tree defined in expressions.py
"""

from typing import Callable, Dict, List, Optional
from dataclasses import dataclass
import sys

from pyparsing import ParseException, Regex, col, lineno

from error_handling import ExprErrorHandler, ParseError
from expressions import (
    Add, Block, Call, Expression, Function, If, Let, Set, Val, Var
)


# Raw words are maximal runs of non-whitespace characters
RAW_WORD = Regex(r"\S+")

INTEGER = Regex(r"[+-]?[0-9]+").set_parse_action(lambda t: int(t[0]))

RESERVED_WORDS = frozenset({
    "val", "var", "add", "if", "let", "function", "call", "set", "block",
    "then", "else", "in", "=",
})


@dataclass(frozen=True)
class SourceSpan:
    """Source location of a raw word"""
    filename: str
    line: int
    column: int
    location: int
    text: str = ""

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Token:
    """A word with its parentheses stripped

    depth is the nesting depth right after the word's leading '(' characters,
    i.e. the depth of the construct the word opens or belongs to.
    """
    word: str
    span: SourceSpan
    depth: int

    def __str__(self) -> str:
        return f"WORD({self.word})"


class TokenStream:
    """Single-pass stream of words over a program text, tracking paren depth"""

    def __init__(self, text: str, filename: str = "<input>"):
        self.text = text
        self.filename = filename
        self.errors = ExprErrorHandler(text, filename)
        self._raw = [(tokens[0], start) for tokens, start, _ in RAW_WORD.scan_string(text)]
        self._pos = 0
        self.depth = 0

    def at_end(self) -> bool:
        return self._pos >= len(self._raw)

    def _span(self, raw: str, location: int) -> SourceSpan:
        return SourceSpan(
            self.filename,
            lineno(location, self.text),
            col(location, self.text),
            location,
            raw
        )

    def next_token(self) -> Token:
        """Return the next nonempty word, skipping words made only of parens"""
        while True:
            if self.at_end():
                raise self.errors.make_parse_error(
                    "Unexpected end of input", len(self.text), got="end of input")

            raw, location = self._raw[self._pos]
            self._pos += 1

            leading = len(raw) - len(raw.lstrip('('))
            token_depth = self.depth + leading
            self.depth += raw.count('(') - raw.count(')')

            word = raw.replace('(', '').replace(')', '')
            if word:
                return Token(word, self._span(raw, location), token_depth)

    def skip_closers(self) -> None:
        """Consume upcoming words that consist only of ')'"""
        while not self.at_end():
            raw, _ = self._raw[self._pos]
            if raw.strip(')'):
                return
            self._pos += 1
            self.depth -= len(raw)

    def error(self, message: str, token: Optional[Token] = None,
              expected: Optional[List[str]] = None) -> ParseError:
        if token is None:
            return self.errors.make_parse_error(message, expected=expected)
        return self.errors.make_parse_error(
            message, token.span.location, expected=expected, got=f"'{token.word}'")


# ============================================================================
# RECURSIVE DESCENT
# ============================================================================

def read_and_create(stream: TokenStream, debug: bool = False) -> Expression:
    """Read exactly one expression from the stream"""
    token = stream.next_token()
    parse_rest = KEYWORD_PARSERS.get(token.word)

    if parse_rest is None:
        raise stream.error(f"Unknown keyword '{token.word}'", token, expected=["keyword"])

    if debug:
        print(f"Parsing: {token.word} at {token.span}", file=sys.stderr)

    return parse_rest(stream, token, debug)


def read_identifier(stream: TokenStream) -> str:
    token = stream.next_token()
    if token.word in RESERVED_WORDS:
        raise stream.error(f"'{token.word}' is reserved and cannot name a variable",
                           token, expected=["identifier"])
    return token.word


def expect_word(stream: TokenStream, literal: str) -> None:
    token = stream.next_token()
    if token.word != literal:
        raise stream.error(f"Expected '{literal}' but found '{token.word}'",
                           token, expected=[f"'{literal}'"])


def parse_val(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    token = stream.next_token()
    try:
        value = INTEGER.parse_string(token.word, parse_all=True)[0]
    except ParseException:
        raise stream.error(f"'{token.word}' is not an integer literal",
                           token, expected=["integer"]) from None
    return Val(value)


def parse_var(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    return Var(read_identifier(stream))


def parse_add(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    left = read_and_create(stream, debug)
    right = read_and_create(stream, debug)
    return Add(left, right)


def parse_if(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    left = read_and_create(stream, debug)
    right = read_and_create(stream, debug)
    expect_word(stream, "then")
    then = read_and_create(stream, debug)
    expect_word(stream, "else")
    otherwise = read_and_create(stream, debug)
    return If(left, right, then, otherwise)


def parse_let(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    name = read_identifier(stream)
    expect_word(stream, "=")
    bound = read_and_create(stream, debug)
    expect_word(stream, "in")
    body = read_and_create(stream, debug)
    return Let(name, bound, body)


def parse_function(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    param = read_identifier(stream)
    return Function(param, read_and_create(stream, debug))


def parse_call(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    func = read_and_create(stream, debug)
    arg = read_and_create(stream, debug)
    return Call(func, arg)


def parse_set(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    name = read_identifier(stream)
    return Set(name, read_and_create(stream, debug))


def parse_block(stream: TokenStream, keyword: Token, debug: bool) -> Expression:
    """Collect sub-expressions until the block's closing paren is consumed

    Without parentheses there is nothing to close the block, so a parse failure
    at depth zero ends it with what was collected so far.
    """
    level = keyword.depth
    exprs = []

    while True:
        stream.skip_closers()
        if stream.depth < level:
            break
        try:
            exprs.append(read_and_create(stream, debug))
        except ParseError:
            if stream.depth == 0:
                if debug:
                    print(f"Block at {keyword.span} ended at depth 0", file=sys.stderr)
                break
            raise

    return Block(tuple(exprs))


KEYWORD_PARSERS: Dict[str, Callable[[TokenStream, Token, bool], Expression]] = {
    "val": parse_val,
    "var": parse_var,
    "add": parse_add,
    "if": parse_if,
    "let": parse_let,
    "function": parse_function,
    "call": parse_call,
    "set": parse_set,
    "block": parse_block,
}


# ============================================================================
# ENTRY POINTS
# ============================================================================

def parse_program(text: str, filename: str = "<input>", debug: bool = False) -> Expression:
    """Parse a whole program: exactly one expression, optionally followed by ')' words"""
    stream = TokenStream(text, filename)
    try:
        expr = read_and_create(stream, debug)
    except RecursionError:
        raise stream.error("Expression nesting too deep") from None

    stream.skip_closers()
    if not stream.at_end():
        token = stream.next_token()
        raise stream.error(f"Unexpected trailing input '{token.word}'", token)

    return expr


class ExprParser:
    """Parser facade used by the command line driver and the tests"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def parse_file(self, filepath: str) -> Expression:
        with open(filepath, 'r', encoding='utf-8') as f:
            return self.parse_string(f.read(), filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> Expression:
        return parse_program(text, filename, self.debug)

    def tokenize(self, text: str, filename: str = "<input>") -> List[Token]:
        stream = TokenStream(text, filename)
        tokens = []
        while True:
            try:
                tokens.append(stream.next_token())
            except ParseError:
                if stream.at_end():
                    return tokens
                raise


def create_parser(debug: bool = False) -> ExprParser:
    """Create a toyexpr parser"""
    return ExprParser(debug=debug)


def create_debug_parser() -> ExprParser:
    """Create a toyexpr parser with debug enabled"""
    return ExprParser(debug=True)
