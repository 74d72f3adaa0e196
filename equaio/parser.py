"""
Text parsers for equaio expressions.

Two notations are supported:

Infix (parse_expression / parse_statement / parse_rule):
    x + 3 = 5
    X + Y = X => Y = 0
    2 * (a + b)
    -x + f(y, 2)

Prefix (parse_prefix), used by rulesets:
    =(+(X,0),X)
    f(a,b,c)

Both return None on any lexical or grammatical error and never return a
partially built tree. Only symbols declared by the Context are treated as
operators; numbers are accepted when context.handle_numerics is set.
"""

import re
from typing import List, Optional, Sequence, Tuple

from .expression import Context, Expression

# Binding strength of binary operators; unknown symbols get DEFAULT_PRECEDENCE
PRECEDENCE = {
    ",": 0,
    "=>": 1,
    "=": 2,
    "+": 3,
    "-": 3,
    "*": 4,
    "/": 4,
    "^": 5,
}
DEFAULT_PRECEDENCE = 3
RIGHT_ASSOCIATIVE = {"^"}

NUMBER_RE = re.compile(r"\d+(?:\.\d+)?|\.\d+")
NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_']*")

# Token kinds
NUMBER, NAME, OPERATOR, OPEN, CLOSE = "number", "name", "operator", "(", ")"
Token = Tuple[str, str]


class ParseError(ValueError):
    """Raised internally when text does not fit the grammar."""


def precedence_of(symbol: str) -> int:
    return PRECEDENCE.get(symbol, DEFAULT_PRECEDENCE)


# ============================================================
# Infix notation
# ============================================================

def tokenize(text: str, operators: Sequence[str]) -> List[Token]:
    """
    Split infix text into tokens.

    Operator symbols are matched longest first, so "=>" wins over "=".

    Raises:
        ParseError: On a character that starts no token.
    """
    symbols = sorted({op for op in operators if op and not NAME_RE.fullmatch(op)},
                     key=len, reverse=True)
    tokens: List[Token] = []
    i = 0
    while i < len(text):
        c = text[i]
        if c.isspace():
            i += 1
            continue
        if c in "()":
            tokens.append((c, c))
            i += 1
            continue
        m = NUMBER_RE.match(text, i)
        if m:
            tokens.append((NUMBER, m.group()))
            i = m.end()
            continue
        m = NAME_RE.match(text, i)
        if m:
            tokens.append((NAME, m.group()))
            i = m.end()
            continue
        for op in symbols:
            if text.startswith(op, i):
                tokens.append((OPERATOR, op))
                i += len(op)
                break
        else:
            raise ParseError(f"unexpected character {c!r} at {i}")
    return tokens


class _InfixParser:
    """Precedence climbing over a token list."""

    def __init__(self, tokens: List[Token], context: Context, extra_binary: Sequence[str] = ()):
        self.tokens = tokens
        self.pos = 0
        self.context = context
        self.binary = set(context.binary_operators) | set(extra_binary)

    def peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> Token:
        token = self.peek()
        if token is None:
            raise ParseError("unexpected end of input")
        self.pos += 1
        return token

    def parse(self) -> Expression:
        expr = self.expression(0)
        if self.peek() is not None:
            raise ParseError(f"unexpected token {self.peek()[1]!r}")
        return expr

    def expression(self, min_precedence: int) -> Expression:
        left = self.operand()
        while True:
            token = self.peek()
            if token is None or token[0] not in (OPERATOR, NAME) or token[1] not in self.binary:
                return left
            symbol = token[1]
            precedence = precedence_of(symbol)
            if precedence < min_precedence:
                return left
            self.advance()
            next_min = precedence if symbol in RIGHT_ASSOCIATIVE else precedence + 1
            right = self.expression(next_min)
            left = Expression.binary(symbol, left, right)

    def operand(self) -> Expression:
        kind, text = self.advance()
        if kind in (OPERATOR, NAME) and self.context.is_unary_operator(text):
            return Expression.unary(text, self.operand())
        if kind == OPEN:
            inner = self.expression(0)
            if self.advance()[0] != CLOSE:
                raise ParseError("expected ')'")
            return inner.with_bracketed(True)
        if kind == NUMBER:
            if not self.context.handle_numerics:
                raise ParseError(f"numeric literal {text!r} not allowed")
            return Expression.value(text)
        if kind == NAME:
            return Expression.value(text)
        raise ParseError(f"unexpected token {text!r}")


def _parse_infix(text: str, context: Context, extra_binary: Sequence[str] = ()) -> Optional[Expression]:
    operators = list(context.binary_operators) + list(context.unary_operators) + list(extra_binary)
    try:
        tokens = tokenize(text, operators)
        if not tokens:
            return None
        return _InfixParser(tokens, context, extra_binary).parse()
    except ParseError:
        return None


def parse_expression(text: str, context: Context) -> Optional[Expression]:
    """
    Parse an infix expression.

    Returns:
        The expression, or None if the text is not a valid expression.

    Examples:
        parse_expression("x + 3", ctx)     -> (+ x 3)
        parse_expression("2 * (a + b)", ctx)  -> (* 2 [(+ a b)])
    """
    return _parse_infix(text, context)


def parse_statement(text: str, infix_symbol: str, context: Context) -> Optional[Expression]:
    """
    Parse a statement "lhs <infix_symbol> rhs", such as an equality.

    The infix symbol must appear exactly once outside parentheses.

    Returns:
        A binary infix_symbol expression, or None.
    """
    expr = _parse_infix(text, context, (infix_symbol,))
    if expr is None or not expr.is_binary() or expr.symbol != infix_symbol:
        return None
    for side in expr.children:
        if side.is_binary() and side.symbol == infix_symbol and not side.bracketed:
            return None
    return expr


def parse_rule(text: str, context: Context) -> Optional[Expression]:
    """
    Parse a rule: an equality "lhs = rhs" or an implication
    "lhs = rhs => lhs2 = rhs2".

    Returns:
        An "=" or "=>" expression, or None.
    """
    if "=>" not in text:
        return parse_statement(text, "=", context)
    expr = _parse_infix(text, context, ("=>", "="))
    if expr is None or not expr.is_implication():
        return None
    return expr


# ============================================================
# Prefix notation
# ============================================================

def _tokenize_prefix(text: str) -> List[str]:
    tokens = []
    current = ''
    for c in text:
        if c in '(),':
            if current.strip():
                tokens.append(current.strip())
            current = ''
            tokens.append(c)
        elif c.isspace():
            if current.strip():
                tokens.append(current.strip())
            current = ''
        else:
            current += c
    if current.strip():
        tokens.append(current.strip())
    return tokens


def _group_nested(node: Expression, parent: str) -> Expression:
    """Bracket nested operators so the infix form reads back the same tree."""
    if parent in (",", "=", "=>") or not node.is_binary() or node.symbol == ",":
        return node
    return node.with_bracketed(True)


def parse_prefix(text: str, context: Context) -> Optional[Expression]:
    """
    Parse prefix notation: symbol or symbol(arg, arg, ...).

    One argument gives a unary node, two a binary node. Calls with more
    arguments become a unary node over a "," chain of the arguments.

    Examples:
        parse_prefix("=(+(X,0),X)", ctx)  -> X + 0 = X
        parse_prefix("f(a,b,c)", ctx)     -> f(a, b, c)
    """
    tokens = _tokenize_prefix(text)
    pos = 0

    def parse_node() -> Expression:
        nonlocal pos
        if pos >= len(tokens) or tokens[pos] in '(),':
            raise ParseError("expected a symbol")
        symbol = tokens[pos]
        pos += 1
        if pos >= len(tokens) or tokens[pos] != '(':
            if NUMBER_RE.fullmatch(symbol) and not context.handle_numerics:
                raise ParseError(f"numeric literal {symbol!r} not allowed")
            return Expression.value(symbol)

        pos += 1
        args = [parse_node()]
        while pos < len(tokens) and tokens[pos] == ',':
            pos += 1
            args.append(parse_node())
        if pos >= len(tokens) or tokens[pos] != ')':
            raise ParseError("expected ')'")
        pos += 1

        if len(args) == 1:
            return Expression.unary(symbol, _group_nested(args[0], symbol))
        if len(args) == 2 and (context.is_binary_operator(symbol) or symbol in ("=", "=>")):
            return Expression.binary(symbol, _group_nested(args[0], symbol),
                                     _group_nested(args[1], symbol))
        chain = args[0]
        for arg in args[1:]:
            chain = Expression.binary(",", chain, arg)
        return Expression.unary(symbol, chain.with_bracketed(True))

    try:
        if not tokens:
            return None
        expr = parse_node()
        if pos != len(tokens):
            return None
        return expr
    except ParseError:
        return None
