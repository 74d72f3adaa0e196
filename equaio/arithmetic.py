"""
Arithmetic operators and normalizations for equaio.

Provides the operator tables, the arithmetic Context, two-operand literal
calculation and whole-tree rewrites between dual operator forms:

    a - b   <->   a + -b
    a / b   <->   a * /b      (unary "/" is the symbolic reciprocal)
"""

import math
import re
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Union

from .expression import Address, Context, Expression

NumericType = Union[int, float]

# FoldHandler: receives the numeric operands, returns result or None (undefined)
FoldHandler = Callable[[List[NumericType]], Optional[NumericType]]


class Operator(Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"


OPERATOR_SYMBOL: Dict[Operator, str] = {
    Operator.ADD: "+",
    Operator.SUBTRACT: "-",
    Operator.MULTIPLY: "*",
    Operator.DIVIDE: "/",
}

OPERATOR_NAME: Dict[Operator, str] = {
    Operator.ADD: "add",
    Operator.SUBTRACT: "subtract",
    Operator.MULTIPLY: "multiply",
    Operator.DIVIDE: "divide",
}

# Unary forms
NEGATIVE = "-"
RECIPROCAL = "/"

# Pattern variables declared by the arithmetic context
RULE_VARIABLES = ("A", "B", "C", "X", "Y", "Z")

NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d+)?|\.\d+)")


def parse_operator(text: str) -> Optional[Operator]:
    """Look up an operator by symbol ("+") or name ("add")."""
    text = text.strip().lower()
    for op in Operator:
        if text in (OPERATOR_SYMBOL[op], OPERATOR_NAME[op]):
            return op
    return None


def arithmetic_context(variables: Iterable[str] = RULE_VARIABLES) -> Context:
    """Context for arithmetic: + - * / ^ and ",", unary - and /, numbers allowed."""
    return Context(
        variables=variables,
        binary_operators=["+", "-", "*", "/", "^", ","],
        unary_operators=[NEGATIVE, RECIPROCAL],
        handle_numerics=True,
        associative_operators=["+", "*"],
        commutative_operators=["+", "*"],
    )


# ============================================================
# Numeric literals and calculation
# ============================================================

def is_numeric(text: str) -> bool:
    return NUMBER_RE.fullmatch(text.strip()) is not None


def parse_number(text: str) -> Optional[NumericType]:
    """Parse a numeric literal; integers stay int."""
    text = text.strip()
    if not is_numeric(text):
        return None
    if "." in text:
        return float(text)
    return int(text)


def format_number(value: NumericType) -> str:
    # Preserve integer form for integral results
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def binary_only(f: Callable[[NumericType, NumericType], NumericType]) -> FoldHandler:
    """Create a binary-only calculation (e.g., +, -, *)."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2:
            return None
        return f(args[0], args[1])
    return handler


def safe_div() -> FoldHandler:
    """Division that returns None on division by zero."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2 or args[1] == 0:
            return None
        return args[0] / args[1]
    return handler


CALCULATIONS: Dict[Operator, FoldHandler] = {
    Operator.ADD: binary_only(lambda a, b: a + b),
    Operator.SUBTRACT: binary_only(lambda a, b: a - b),
    Operator.MULTIPLY: binary_only(lambda a, b: a * b),
    Operator.DIVIDE: safe_div(),
}


def create_calculation(left: str, right: str, op: Operator) -> Optional[Expression]:
    """
    Build the one-shot rule "left op right = result".

    Returns:
        The equality, or None if an operand is not numeric or the operation
        is undefined on the operands (division by zero).

    Examples:
        create_calculation("5", "3", Operator.SUBTRACT)  -> 5 - 3 = 2
        create_calculation("6", "4", Operator.DIVIDE)    -> 6 / 4 = 1.5
        create_calculation("x", "3", Operator.SUBTRACT)  -> None
    """
    a, b = parse_number(left), parse_number(right)
    if a is None or b is None:
        return None
    handler = CALCULATIONS.get(op)
    if handler is None:
        return None
    result = handler([a, b])
    if result is None:
        return None
    calculation = Expression.binary(OPERATOR_SYMBOL[op],
                                    Expression.create_symbol(left.strip()),
                                    Expression.create_symbol(right.strip()))
    return Expression.create_equality(calculation,
                                      Expression.create_symbol(format_number(result)))


# ============================================================
# Structural rewrites
# ============================================================

def _map_bottom_up(expr: Expression, rewrite: Callable[[Expression], Expression]) -> Expression:
    if expr.children:
        expr = expr.with_children(_map_bottom_up(child, rewrite) for child in expr.children)
    return rewrite(expr)


def _operand(expr: Expression) -> Expression:
    # a binary operand of a unary operator needs its parentheses
    return expr.with_bracketed(True) if expr.is_binary() else expr


def _binary_to_unary_form(binary_symbol: str, dual_symbol: str, unary_symbol: str):
    def rewrite(node: Expression) -> Expression:
        if not (node.is_binary() and node.symbol == binary_symbol):
            return node
        left, right = node.children
        return Expression.binary(dual_symbol, left,
                                 Expression.unary(unary_symbol, _operand(right)),
                                 node.bracketed)
    return rewrite


def _unary_form_to_binary(dual_symbol: str, unary_symbol: str, binary_symbol: str):
    def rewrite(node: Expression) -> Expression:
        if not (node.is_binary() and node.symbol == dual_symbol):
            return node
        left, right = node.children
        if not (right.is_unary() and right.symbol == unary_symbol):
            return node
        return Expression.binary(binary_symbol, left, right.children[0], node.bracketed)
    return rewrite


def turn_subtraction_to_addition(expr: Expression) -> Expression:
    """Rewrite every a - b as a + -b."""
    return _map_bottom_up(expr, _binary_to_unary_form("-", "+", NEGATIVE))


def turn_addition_to_subtraction(expr: Expression) -> Expression:
    """Rewrite every a + -b as a - b."""
    return _map_bottom_up(expr, _unary_form_to_binary("+", NEGATIVE, "-"))


def turn_division_to_multiplication(expr: Expression) -> Expression:
    """Rewrite every a / b as a * /b."""
    return _map_bottom_up(expr, _binary_to_unary_form("/", "*", RECIPROCAL))


def turn_multiplication_to_division(expr: Expression) -> Expression:
    """Rewrite every a * /b as a / b."""
    return _map_bottom_up(expr, _unary_form_to_binary("*", RECIPROCAL, "/"))


def remove_assoc_parentheses(expr: Expression, context: Optional[Context] = None) -> Expression:
    """Strip grouping parentheses inside chains of every associative operator."""
    context = context if context is not None else arithmetic_context()
    present = {node.symbol for _, node in expr.walk() if node.is_binary()}
    for op in context.associative_operators:
        if op in present:
            expr = expr.strip_parentheses_for_associative_op(op)
    return expr


# ============================================================
# Fractions
# ============================================================

def fraction_factors(expr: Expression, address: Address) -> List[Address]:
    """Addresses of the factors of the product at address (itself if not a product)."""
    node = expr.at(address)
    if node.is_binary() and node.symbol == OPERATOR_SYMBOL[Operator.MULTIPLY]:
        return expr.get_operator_chains_from(address)
    return [tuple(address)]


def simplify_fraction(expr: Expression, numerator_index: int,
                      denominator_index: int) -> Optional[Expression]:
    """
    Reduce one numeric factor of a fraction's numerator against one of its denominator.

    Numerator and denominator are read as products; the indices pick a
    factor of each. Two integers are divided by their gcd. Otherwise the
    numerator factor becomes their quotient and the denominator factor 1:

        simplify_fraction(4 * 5 / (2 * 3), 0, 0)  -> 2 * 5 / (1 * 3)
        simplify_fraction(1.5 / 3, 0, 0)          -> 0.5 / 1

    Returns None when expr is not a division, an index is out of range,
    a picked factor is not a numeric literal, or the denominator factor is 0.
    """
    if not (expr.is_binary() and expr.symbol == OPERATOR_SYMBOL[Operator.DIVIDE]):
        return None
    numerators = fraction_factors(expr, (0,))
    denominators = fraction_factors(expr, (1,))
    if not (0 <= numerator_index < len(numerators)
            and 0 <= denominator_index < len(denominators)):
        return None

    num_address = numerators[numerator_index]
    den_address = denominators[denominator_index]
    num_node, den_node = expr.at(num_address), expr.at(den_address)
    if not (num_node.is_value() and den_node.is_value()):
        return None
    num, den = parse_number(num_node.symbol), parse_number(den_node.symbol)
    if num is None or den is None or den == 0:
        return None

    if isinstance(num, int) and isinstance(den, int):
        divisor = math.gcd(num, den)
        num, den = num // divisor, den // divisor
    else:
        num, den = num / den, 1
    return (expr.replace_at(num_address, Expression.value(format_number(num)))
                .replace_at(den_address, Expression.value(format_number(den))))


def simplify_fraction_at(expr: Expression, numerator_index: int, denominator_index: int,
                         address: Address) -> Optional[Expression]:
    """simplify_fraction() applied to the subtree at address."""
    simplified = simplify_fraction(expr.at(address), numerator_index, denominator_index)
    if simplified is None:
        return None
    return expr.replace_at(address, simplified)


# ============================================================
# Built-in algebra rules
# ============================================================

# (id, rule, label)
ALGEBRA_RULES = (
    ("add_zero", "X + 0 = X", "Add by Zero"),
    ("zero_add", "0 + X = X", "Add by Zero"),
    ("mul_one", "X * 1 = X", "Multiply by One"),
    ("one_mul", "1 * X = X", "Multiply by One"),
    ("mul_zero", "X * 0 = 0", "Multiply by Zero"),
    ("zero_mul", "0 * X = 0", "Multiply by Zero"),
    ("div_one", "X / 1 = X", "Divide by One"),
)
