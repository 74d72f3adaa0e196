"""
Derivation state machine for equaio.

A Task holds the statement being transformed and records every
transformation as a labelled step:

    task = Task(arithmetic_context())
    task.set_current_eq("x + 3 = 5")
    task.apply_arithmetic_to_both_side(Operator.SUBTRACT, "3")
    task.apply_arithmetic_calculation("5", "3", Operator.SUBTRACT)
    print(task.format_history("chain"))
    # x + 3 = 5
    #   --(subtract both side by 3)-->
    # (x + 3) - 3 = 5 - 3
    #   --(calculate 5 - 3 = 2)-->
    # (x + 3) - 3 = 2

Operations return True on success. On failure they return False, append a
message to error_messages and leave every other field untouched.
"""

import logging
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Union

from .arithmetic import (
    OPERATOR_NAME, OPERATOR_SYMBOL, Operator, create_calculation, parse_operator,
    remove_assoc_parentheses, simplify_fraction_at, turn_addition_to_subtraction,
    turn_division_to_multiplication, turn_multiplication_to_division,
    turn_subtraction_to_addition,
)
from .expression import Address, Context, Expression
from .parser import parse_expression, parse_rule, parse_statement
from .rewriter import (
    apply_implication, apply_rule_equal, apply_rule_equal_at, substitute_symbol,
    unbound_variables,
)
from .rules import Rule

logger = logging.getLogger(__name__)

INDENT = "   "

HISTORY_STYLES = ("verbose", "compact", "labels", "chain")


class DerivationStep(NamedTuple):
    """One entry of a derivation history."""
    expression: Expression
    label: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"expression": self.expression.to_string(), "label": self.label}


# NormalizationFunction: (statement, context) -> statement, run on every new step
NormalizationFunction = Callable[[Expression, Context], Expression]


def _grouped(expr: Expression) -> Expression:
    return expr if expr.is_value() else expr.with_bracketed(True)


class Task:
    """
    Mutable state of one derivation.

    Attributes:
        context: Fixed for the lifetime of the task
        rules: Rule name -> equality or implication expression
        rule_labels: Rule name -> label, for rules that have one
        history: Every statement current has held, with the step's label
        current: The statement being transformed, or None
        target: The statement to reach, or None
        error_messages: Messages of failed operations, oldest first
        print_rhs_only: Show current as "= <expr>" in state_dump()
        normalization_function: Applied to every statement before it is
            recorded, or None
    """

    def __init__(self, context: Context, print_rhs_only: bool = False):
        self.context = context
        self.rules: Dict[str, Expression] = {}
        self.rule_labels: Dict[str, str] = {}
        self.history: List[DerivationStep] = []
        self.current: Optional[Expression] = None
        self.target: Optional[Expression] = None
        self.error_messages: List[str] = []
        self.print_rhs_only = print_rhs_only
        self.normalization_function: Optional[NormalizationFunction] = None

    # ============================================================
    # Internal helpers
    # ============================================================

    def _fail(self, message: str) -> bool:
        self.error_messages.append(message)
        logger.info("%s", message)
        return False

    def _require_current(self) -> bool:
        if self.current is None:
            return self._fail("current statement is not set")
        return True

    def _require_equation(self) -> bool:
        if not self._require_current():
            return False
        if not self.current.is_equation():
            return self._fail("current statement is not an equality")
        return True

    def _rule_problem(self, rule: Expression) -> Optional[str]:
        """Why rule cannot be applied, or None if it can."""
        if not (rule.is_equation() or rule.is_implication()):
            return f"rule is not an equality: {rule}"
        unbound = unbound_variables(rule, self.context)
        if unbound:
            return f"rule has unbound variables: {', '.join(unbound)}"
        return None

    def _resolve_operator(self, op: Union[Operator, str]) -> Optional[Operator]:
        if isinstance(op, Operator):
            return op
        resolved = parse_operator(op)
        if resolved is None:
            self._fail(f"unknown arithmetic operator: {op}")
        return resolved

    def _rewrite_first(self, rule: Expression, label: str, rule_name: str) -> bool:
        problem = self._rule_problem(rule)
        if problem:
            return self._fail(problem)
        if rule.is_implication():
            result = apply_implication(self.current, rule, self.context)
            if result is None:
                return self._fail(f"failed to apply rule: {rule_name}")
            self.set_current_expr(result, label)
            return True
        candidates = apply_rule_equal(self.current, rule, self.context)
        if not candidates:
            return self._fail(f"failed to apply rule: {rule_name}")
        # Only the first site is taken; rewrite_candidates() lists the rest
        self.set_current_expr(candidates[0], label)
        return True

    # ============================================================
    # Statements and rules
    # ============================================================

    def set_normalization_function(self, function: Optional[NormalizationFunction]):
        """
        Install a rewrite run on every statement before it becomes current.

        The function receives the statement and the task's context and
        returns the statement to record. Pass None to remove it.
        """
        self.normalization_function = function

    def set_current_expr(self, expr: Expression, label: str = ""):
        if self.normalization_function is not None:
            expr = self.normalization_function(expr, self.context)
        self.current = expr
        self.history.append(DerivationStep(expr, label))
        logger.debug("step %d: %s  (%s)", len(self.history) - 1, expr, label)

    def set_current_eq(self, text: str) -> bool:
        expr = parse_statement(text, "=", self.context)
        if expr is None:
            return self._fail(f"failed to parse statement: {text}")
        self.set_current_expr(expr, "")
        return True

    def set_target_eq(self, text: str) -> bool:
        expr = parse_statement(text, "=", self.context)
        if expr is None:
            return self._fail(f"failed to parse target: {text}")
        self.target = expr
        return True

    def add_rule_expr(self, name: str, expr: Expression, label: str = "") -> bool:
        """
        Store a rule under name, replacing any rule of that name.

        The rule is "lhs = rhs" or "premise => conclusion", and every
        variable of its right side must occur on its left side.
        """
        problem = self._rule_problem(expr)
        if problem:
            return self._fail(problem)
        self.rules[name] = expr
        if label:
            self.rule_labels[name] = label
        else:
            self.rule_labels.pop(name, None)
        return True

    def add_rule_eq(self, name: str, text: str, label: str = "") -> bool:
        expr = parse_rule(text, self.context)
        if expr is None:
            return self._fail(f"failed to parse rule: {text}")
        return self.add_rule_expr(name, expr, label)

    def add_rules(self, rules: Iterable[Rule]) -> bool:
        """Add loaded Rule records under their ids. True if every one was accepted."""
        accepted = True
        for rule in rules:
            accepted = self.add_rule_expr(rule.id, rule.expression, rule.label) and accepted
        return accepted

    def init_current_with_target_lhs(self) -> bool:
        """Start from "lhs = lhs" where lhs is the target's left side."""
        if self.target is None:
            return self._fail("target statement is not set")
        lhs = self.target.children[0]
        self.set_current_expr(Expression.create_equality(lhs, lhs), "")
        return True

    # ============================================================
    # Both-side operations
    # ============================================================

    def apply_function_to_both_side_expr(self, function: Expression, varname: str,
                                         name: str = "") -> bool:
        """
        Replace current "l = r" by "f[varname <- l] = f[varname <- r]".

        Every node of the function whose symbol is varname is replaced.
        """
        if not self._require_equation():
            return False
        if not name:
            name = f"apply {function} to both side"
        lhs, rhs = self.current.children
        statement = Expression.create_equality(substitute_symbol(function, varname, lhs),
                                               substitute_symbol(function, varname, rhs))
        self.set_current_expr(statement, name)
        return True

    def apply_function_to_both_side(self, text: str, varname: str, name: str = "") -> bool:
        if not self._require_equation():
            return False
        function = parse_expression(text, self.context)
        if function is None:
            return self._fail(f"failed to parse function: {text}")
        if not name:
            name = f"apply {text} to both side"
        return self.apply_function_to_both_side_expr(function, varname, name)

    def apply_arithmetic_to_both_side(self, op: Union[Operator, str], value: str,
                                      name: str = "") -> bool:
        """
        Combine both sides with value, e.g. subtract 3: "l = r" -> "l - 3 = r - 3".

        Operator sides are bracketed: "x + 3 = 5" -> "(x + 3) - 3 = 5 - 3".
        """
        if not self._require_equation():
            return False
        op = self._resolve_operator(op)
        if op is None:
            return False
        operand = parse_expression(value, self.context)
        if operand is None:
            return self._fail(f"failed to parse value: {value}")
        if not name:
            name = f"{OPERATOR_NAME[op]} both side by {value}"

        symbol = OPERATOR_SYMBOL[op]
        operand = _grouped(operand)
        sides = [Expression.binary(symbol, _grouped(side), operand)
                 for side in self.current.children]
        self.set_current_expr(Expression.create_equality(*sides), name)
        return True

    # ============================================================
    # Rules
    # ============================================================

    def apply_rule_expr(self, rule: Expression, name: str = "") -> bool:
        """Rewrite current at the first site where rule's left side matches."""
        if not self._require_equation():
            return False
        return self._rewrite_first(rule, name, name or str(rule))

    def apply_rule(self, rulename: str, name: str = "") -> bool:
        if not self._require_current():
            return False
        if rulename not in self.rules:
            return self._fail(f"rule {rulename} is not defined")
        if not self._require_equation():
            return False
        if not name:
            name = f"apply rule: {rulename}"
        return self._rewrite_first(self.rules[rulename], name, rulename)

    def apply_rule_at(self, rulename: str, address: Address, name: str = "") -> bool:
        """Rewrite current with a named rule at one chosen address."""
        if not self._require_current():
            return False
        if rulename not in self.rules:
            return self._fail(f"rule {rulename} is not defined")
        if not self._require_equation():
            return False
        address = tuple(address)
        if not self.current.has_address(address):
            return self._fail(f"address {address} does not exist in current statement")
        rule = self.rules[rulename]
        problem = self._rule_problem(rule)
        if problem:
            return self._fail(problem)
        if rule.is_implication():
            # premise must match the whole subtree at address
            result = apply_implication(self.current.at(address), rule, self.context)
            if result is not None:
                result = self.current.replace_at(address, result)
        else:
            result = apply_rule_equal_at(self.current, rule, address, self.context)
        if result is None:
            return self._fail(f"failed to apply rule: {rulename} at {address}")
        if not name:
            name = f"apply rule: {rulename}"
        self.set_current_expr(result, name)
        return True

    def rewrite_candidates(self, rulename: str) -> List[Expression]:
        """Every rewrite of current by a named rule, in address order. Changes nothing."""
        rule = self.rules.get(rulename)
        if self.current is None or rule is None or self._rule_problem(rule):
            return []
        if rule.is_implication():
            result = apply_implication(self.current, rule, self.context)
            return [] if result is None else [result]
        return apply_rule_equal(self.current, rule, self.context)

    # ============================================================
    # Rearrangement
    # ============================================================

    def try_swap_two_element(self, addr1: Address, addr2: Address, name: str = "") -> bool:
        """Exchange two operands of a commutative operator chain in current."""
        if not self._require_current():
            return False
        addr1, addr2 = tuple(addr1), tuple(addr2)
        for address in (addr1, addr2):
            if not self.current.has_address(address):
                return self._fail(f"address {address} does not exist in current statement")
        if not self.current.is_in_same_operator_chain(addr1, addr2):
            return self._fail("trying to swap, but the two element are not in the same operator chain")
        op = self.current.at(self.current.chain_root_of(addr1)).symbol
        if not self.context.is_commutative(op):
            return self._fail(f"operator {op} is not commutative")

        if not name:
            name = "rearrange"
        self.set_current_expr(self.current.swap_two_element(addr1, addr2), name)
        return True

    # ============================================================
    # Arithmetic
    # ============================================================

    def apply_arithmetic_calculation(self, left: str, right: str, op: Union[Operator, str],
                                     name: str = "") -> bool:
        """Replace the first "left op right" in current by its value."""
        if not self._require_equation():
            return False
        op = self._resolve_operator(op)
        if op is None:
            return False
        calculation = create_calculation(left, right, op)
        if calculation is None:
            return self._fail(f"failed to create calculation: {left} {OPERATOR_NAME[op]} {right}")
        if not name:
            name = f"calculate {calculation}"
        return self._rewrite_first(calculation, name, name)

    def apply_fraction_simplification_at(self, numerator_index: int, denominator_index: int,
                                         address: Address = (), name: str = "") -> bool:
        """
        Cancel a numeric factor of the fraction at address.

        The indices pick one factor of the numerator and one of the
        denominator product: "(4 * 5) / (2 * 3)" with 0, 0 gives
        "(2 * 5) / (1 * 3)".
        """
        if not self._require_current():
            return False
        address = tuple(address)
        if not self.current.has_address(address):
            return self._fail(f"address {address} does not exist in current statement")
        result = simplify_fraction_at(self.current, numerator_index, denominator_index, address)
        if result is None:
            return self._fail(f"failed to simplify fraction at {address}")
        self.set_current_expr(result, name or "simplify fraction")
        return True

    def _normalize(self, transform, name: str) -> bool:
        if not self._require_current():
            return False
        self.set_current_expr(transform(self.current), name)
        return True

    def apply_arithmetic_turn_subtraction_to_addition(self, name: str = "") -> bool:
        return self._normalize(turn_subtraction_to_addition,
                               name or "turn subtraction to addition")

    def apply_arithmetic_turn_addition_to_subtraction(self, name: str = "") -> bool:
        return self._normalize(turn_addition_to_subtraction,
                               name or "turn addition to subtraction")

    def apply_arithmetic_turn_division_to_multiplication(self, name: str = "") -> bool:
        return self._normalize(turn_division_to_multiplication,
                               name or "turn division to multiplication")

    def apply_arithmetic_turn_multiplication_to_division(self, name: str = "") -> bool:
        return self._normalize(turn_multiplication_to_division,
                               name or "turn multiplication to division")

    def apply_arithmetic_remove_assoc_parentheses(self, name: str = "") -> bool:
        return self._normalize(lambda expr: remove_assoc_parentheses(expr, self.context),
                               name or "remove associative parenthesis")

    # ============================================================
    # Diagnostics
    # ============================================================

    def state_dump(self) -> str:
        """Multi-line listing of history, rules, target, current and errors."""
        lines = ["history:"]
        for expr, label in self.history:
            line = INDENT + expr.to_string()
            if label:
                line += f"    ... ({label})"
            lines.append(line)

        lines.append("rules :")
        for key, value in self.rules.items():
            lines.append(f"{INDENT}{key} : {value}")

        lines.append("target :")
        lines.append(INDENT + (self.target.to_string() if self.target is not None else "None"))

        lines.append("current:")
        if self.current is None:
            lines.append(INDENT + "None")
        elif self.print_rhs_only and self.current.is_binary():
            lines.append(f"{INDENT}= {self.current.children[0]}")
        else:
            lines.append(INDENT + self.current.to_string())

        if self.error_messages:
            lines.append("error messages:")
            lines.extend(INDENT + msg for msg in self.error_messages)
        return "\n".join(lines)

    def print_state(self):
        print(self.state_dump())

    def labels(self) -> List[str]:
        """Labels of the steps after the first, in order."""
        return [step.label for step in self.history[1:]]

    def format_history(self, style: str = "verbose") -> str:
        """
        Format the history in different styles.

        Args:
            style: One of "verbose", "compact", "labels", "chain"
                - "verbose": Initial/Final with numbered steps (default)
                - "compact": Single line summary
                - "labels": Just the step labels
                - "chain": Statements joined by their labels

        Raises:
            ValueError: On an unknown style.
        """
        if style not in HISTORY_STYLES:
            raise ValueError(f"Unknown history style: {style!r}")
        if not self.history:
            return "(empty history)"

        initial, steps = self.history[0], self.history[1:]
        final = self.history[-1]

        if style == "compact":
            return f"{initial.expression} --[{', '.join(self.labels())}]--> {final.expression}"

        if style == "labels":
            return " -> ".join(self.labels()) if steps else "(no steps)"

        if style == "chain":
            parts = [initial.expression.to_string()]
            for step in steps:
                parts.append(f"  --({step.label})-->")
                parts.append(step.expression.to_string())
            return "\n".join(parts)

        lines = [f"Initial: {initial.expression}"]
        for i, step in enumerate(steps, 1):
            lines.append(f"  {i}. {step.label}: {step.expression}")
        lines.append(f"Final: {final.expression}")
        return "\n".join(lines)

    def to_dict(self) -> Dict:
        """Convert the task state to a JSON-serializable dictionary."""
        return {
            "rules": {name: rule.to_string() for name, rule in self.rules.items()},
            "rule_labels": dict(self.rule_labels),
            "history": [step.to_dict() for step in self.history],
            "current": self.current.to_string() if self.current is not None else None,
            "target": self.target.to_string() if self.target is not None else None,
            "error_messages": list(self.error_messages),
        }

    def __repr__(self) -> str:
        return (f"Task(current={self.current!r}, {len(self.rules)} rules, "
                f"{len(self.history)} steps, {len(self.error_messages)} errors)")
