"""
Tokenizer and recursive-descent parser for 'when' expressions.

    or-expr    := and-expr ('or' and-expr)*
    and-expr   := unary ('and' unary)*
    unary      := ('not' | '!') unary | atom
    atom       := '(' or-expr ')' | comparison
    comparison := field relop value
                | field 'is' ('null' | 'not_null' | 'not' 'null')
                | field 'is_not' 'null'

Example:
    compile_expression("code = 111010 and host != null").test(event)
"""
from __future__ import annotations

import re
from typing import Any, List, NamedTuple, Optional

from .exceptions import ExpressionSyntaxError
from .network import NetworkMask
from .predicates import And, Comparison, DateLiteral, Not, NullCheck, Or, Predicate, RELATIONAL_OPS
from .utils import glob_to_regex, parse_millis, relative_millis

_FIELD_CHARS = r"[\w\-.:#$?@]"

_TOKENS = re.compile(
    rf"""
      (?P<ws>\s+)
    | (?P<lparen>\()
    | (?P<rparen>\))
    | (?P<lbracket>\[)
    | (?P<rbracket>\])
    | (?P<comma>,)
    | (?P<date>`[^`]*`)
    | (?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    | (?P<op>==|!=|<>|>=|<=|=|>|<)
    | (?P<bang>!)
    | (?P<cidr>(?:\d{{1,3}}(?:\.\d{{1,3}}){{3}}|[0-9A-Fa-f]*:[0-9A-Fa-f:.]*)/\d{{1,3}})(?![\w.:/])
    | (?P<number>[+-]?(?:0[xX][0-9A-Fa-f]+|(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?))(?!{_FIELD_CHARS})
    | (?P<word>{_FIELD_CHARS}+)
    """,
    re.VERBOSE,
)

_ESCAPE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}

_SYMBOL_OPS = {"=": "=", "==": "=", "!=": "!=", "<>": "!=", ">=": ">=", ">": ">", "<=": "<=", "<": "<"}
_WORD_OPS = set(RELATIONAL_OPS) | {"is", "is_not"}
_RESERVED = {"and", "or", "not"}


class Token(NamedTuple):
    kind: str
    text: str
    pos: int


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKENS.match(text, pos)
        if not m:
            raise ExpressionSyntaxError("Unexpected character", text, pos)

        kind = m.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, m.group(), pos))
        pos = m.end()

    return tokens


def _unquote(token: str) -> str:
    return _ESCAPE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), token[1:-1])


def _number(text: str) -> Any:
    body = text.lstrip("+-").lower()
    if body.startswith("0x"):
        return int(text, 16)

    if any(c in body for c in ".e"):
        return float(text)

    return int(text)


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.i = 0

    def error(self, message: str, token: Optional[Token] = None) -> ExpressionSyntaxError:
        pos = token.pos if token is not None else len(self.text)
        return ExpressionSyntaxError(message, self.text, pos)

    def peek(self) -> Optional[Token]:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def next(self, expected: str = "token") -> Token:
        tok = self.peek()
        if tok is None:
            raise self.error(f"Unexpected end of expression, expected {expected}")

        self.i += 1
        return tok

    def at_word(self, *words: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.kind == "word" and tok.text.lower() in words

    def parse(self) -> Predicate:
        if not self.tokens:
            raise ExpressionSyntaxError("Empty expression", self.text, 0)

        node = self.or_expr()
        tok = self.peek()
        if tok is not None:
            raise self.error(f"Unexpected {tok.text!r}", tok)

        return node

    def or_expr(self) -> Predicate:
        items = [self.and_expr()]
        while self.at_word("or"):
            self.i += 1
            items.append(self.and_expr())

        return items[0] if len(items) == 1 else Or(items)

    def and_expr(self) -> Predicate:
        items = [self.unary()]
        while self.at_word("and"):
            self.i += 1
            items.append(self.unary())

        return items[0] if len(items) == 1 else And(items)

    def unary(self) -> Predicate:
        tok = self.peek()
        if tok is not None and (tok.kind == "bang" or self.at_word("not")):
            self.i += 1
            return Not(self.unary())

        return self.atom()

    def atom(self) -> Predicate:
        tok = self.peek()
        if tok is not None and tok.kind == "lparen":
            self.i += 1
            node = self.or_expr()
            closing = self.next("')'")
            if closing.kind != "rparen":
                raise self.error("Expected ')'", closing)
            return node

        return self.comparison()

    def comparison(self) -> Predicate:
        tok = self.next("field name")
        if tok.kind == "string":
            field = _unquote(tok.text)
        elif tok.kind == "word" and tok.text.lower() not in _RESERVED:
            field = tok.text
        else:
            raise self.error(f"Expected field name, got {tok.text!r}", tok)

        op = self.relop()
        if op in ("is", "is_not"):
            return self.null_check(field, op)

        value = self.value(op)
        pattern = None
        if op in ("like", "not_like") and isinstance(value, str):
            pattern = glob_to_regex(value)

        elif op in ("match", "not_match"):
            try:
                pattern = re.compile(str(value), re.IGNORECASE | re.DOTALL)
            except re.error as exc:
                raise ExpressionSyntaxError(f"Invalid regular expression {value!r}: {exc}") from exc

        return Comparison(field, op, value, pattern)

    def relop(self) -> str:
        tok = self.next("operator")
        if tok.kind == "op":
            return _SYMBOL_OPS[tok.text]

        if tok.kind == "word" and tok.text.lower() in _WORD_OPS:
            return tok.text.lower()

        raise self.error(f"Unknown operator {tok.text!r}", tok)

    def null_check(self, field: str, op: str) -> Predicate:
        tok = self.next("'null'")
        word = tok.text.lower() if tok.kind == "word" else ""
        if word == "null":
            return NullCheck(field, negated=(op == "is_not"))

        if op == "is" and word == "not_null":
            return NullCheck(field, negated=True)

        if op == "is" and word == "not" and self.at_word("null"):
            self.i += 1
            return NullCheck(field, negated=True)

        raise self.error(f"Expected null or not_null, got {tok.text!r}", tok)

    def value(self, op: str) -> Any:
        tok = self.peek()
        if tok is not None and tok.kind == "lbracket":
            self.i += 1
            values: List[Any] = []
            while True:
                tok = self.peek()
                if tok is not None and tok.kind == "rbracket":
                    self.i += 1
                    return tuple(values)

                if values:
                    sep = self.next("',' or ']'")
                    if sep.kind != "comma":
                        raise self.error("Expected ',' or ']'", sep)

                values.append(self.scalar(op))

        return self.scalar(op)

    def scalar(self, op: str) -> Any:
        tok = self.next("value")
        if tok.kind == "string":
            s = _unquote(tok.text)
            if op in ("in", "not_in"):
                mask = NetworkMask.parse(s)
                if mask is not None:
                    return mask
            return s

        if tok.kind == "number":
            return _number(tok.text)

        if tok.kind == "date":
            return self.date(tok)

        if tok.kind == "cidr":
            mask = NetworkMask.parse(tok.text)
            if mask is None:
                raise self.error(f"Invalid network mask {tok.text!r}", tok)
            return mask

        if tok.kind == "word":
            word = tok.text.lower()
            if word == "true":
                return True
            if word == "false":
                return False
            if word == "null":
                return None
            return tok.text

        raise self.error(f"Expected a value, got {tok.text!r}", tok)

    def date(self, tok: Token) -> DateLiteral:
        inner = tok.text[1:-1].strip()
        if inner[:1] in ("+", "-"):
            offset = relative_millis(inner)
            if offset is not None:
                return DateLiteral(inner, offset, relative=True)

        millis = parse_millis(inner)
        if millis is None:
            raise self.error(f"Invalid date {inner!r}", tok)

        return DateLiteral(inner, millis)


def compile_expression(text: str) -> Predicate:
    """Compile a 'when' expression; raises ExpressionSyntaxError on malformed input."""
    if not isinstance(text, str):
        raise ExpressionSyntaxError(f"Expression must be a string, got {type(text).__name__}")

    return _Parser(text).parse()
