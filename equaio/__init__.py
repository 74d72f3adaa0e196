"""
equaio - step-by-step equation rewriting

A term rewriting engine for "show your work" algebra: rules rewrite an
equation one step at a time and every step is recorded with a label.

Quick Start:
    from equaio import Task, Operator, arithmetic_context

    task = Task(arithmetic_context())
    task.set_current_eq("x + 3 = 5")
    task.apply_arithmetic_to_both_side(Operator.SUBTRACT, "3")
    task.apply_arithmetic_calculation("5", "3", Operator.SUBTRACT)
    task.current  # => Expression('(x + 3) - 3 = 2')

Rules:
    task.add_rule_eq("add_zero", "X + 0 = X", "Add by Zero")
    task.apply_rule("add_zero")

    # Or from a rules file
    task.add_rules(load_rules_from_file("algebra.rules"))

Example Rules File (algebra.rules):
    # Identities
    @add_zero "Add by Zero": X + 0 = X
    @mul_one "Multiply by One": X * 1 = X

    [distribute]
    @left: A * (B + C) = A * B + A * C
"""

__version__ = "0.1.0"

# Expression trees
from .expression import (
    Address,
    Context,
    Expression,
    ExpressionType,
    ExpressionError,
    InvalidAddressError,
    ArityError,
)

# Matching and rewriting
from .rewriter import (
    Bindings,
    NoMatch,
    can_pattern_match,
    try_match_pattern,
    apply_variable_map,
    substitute_symbol,
    find_rewrite_sites,
    apply_rule_equal,
    apply_rule_equal_at,
    apply_implication,
    unbound_variables,
)

# Arithmetic
from .arithmetic import (
    Operator,
    OPERATOR_SYMBOL,
    OPERATOR_NAME,
    RULE_VARIABLES,
    ALGEBRA_RULES,
    arithmetic_context,
    create_calculation,
    turn_subtraction_to_addition,
    turn_addition_to_subtraction,
    turn_division_to_multiplication,
    turn_multiplication_to_division,
    remove_assoc_parentheses,
    simplify_fraction,
    simplify_fraction_at,
)

# Text and display
from .parser import parse_expression, parse_statement, parse_rule, parse_prefix
from .block import Block, BlockType, render

# Rulesets and derivations
from .rules import (
    Rule,
    parse_rule_line,
    load_rules_from_dsl,
    load_rules_from_json,
    load_rules_from_file,
    load_algebra_rules,
)
from .task import Task, DerivationStep

# Public API
__all__ = [
    "__version__",
    # Expression trees
    "Address",
    "Context",
    "Expression",
    "ExpressionType",
    "ExpressionError",
    "InvalidAddressError",
    "ArityError",
    # Matching and rewriting
    "Bindings",
    "NoMatch",
    "can_pattern_match",
    "try_match_pattern",
    "apply_variable_map",
    "substitute_symbol",
    "find_rewrite_sites",
    "apply_rule_equal",
    "apply_rule_equal_at",
    "apply_implication",
    "unbound_variables",
    # Arithmetic
    "Operator",
    "OPERATOR_SYMBOL",
    "OPERATOR_NAME",
    "RULE_VARIABLES",
    "ALGEBRA_RULES",
    "arithmetic_context",
    "create_calculation",
    "turn_subtraction_to_addition",
    "turn_addition_to_subtraction",
    "turn_division_to_multiplication",
    "turn_multiplication_to_division",
    "remove_assoc_parentheses",
    "simplify_fraction",
    "simplify_fraction_at",
    # Text and display
    "parse_expression",
    "parse_statement",
    "parse_rule",
    "parse_prefix",
    "Block",
    "BlockType",
    "render",
    # Rulesets and derivations
    "Rule",
    "parse_rule_line",
    "load_rules_from_dsl",
    "load_rules_from_json",
    "load_rules_from_file",
    "load_algebra_rules",
    "Task",
    "DerivationStep",
]
