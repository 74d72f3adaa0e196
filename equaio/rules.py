"""
Named rules and ruleset loading for equaio.

Rules can be written in a line based DSL or in JSON.

DSL Format (.rules files):
    # Comment
    @rule-id: lhs = rhs
    @rule-id "Label text": lhs = rhs
    @rule-id: lhs = rhs => lhs2 = rhs2    # implication, rewrites the whole statement

    [group]                  # ids below become group/rule-id
    :include other.rules     # resolved relative to the including file

    Examples:
    @add_zero "Add by Zero": X + 0 = X
    @distribute: A * (B + C) = A * B + A * C

JSON Format:
    {
        "name": "simple",
        "context": {"base": "arithmetic"},
        "variations": [{"expr_prefix": "=(+(A,B),+(B,A))"}],
        "rules": [
            {"id": "rule0", "label": "Rule 0", "expr_prefix": "=(+(X,0),X)"},
            {"id": "rule1", "expr": "X * 1 = X"}
        ]
    }

    Rule ids become "<name>/<id>". When variations are given, every rule
    is expanded into itself plus the result of rewriting its left side with
    each variation that matches there, with ids "<name>/<id>/<n>".
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .arithmetic import ALGEBRA_RULES, RULE_VARIABLES, arithmetic_context
from .expression import Context, Expression
from .parser import parse_prefix, parse_rule, parse_statement
from .rewriter import apply_rule_equal_at

logger = logging.getLogger(__name__)

RULE_LINE_RE = re.compile(r'@([\w/-]+)(?:\s+"([^"]*)")?:\s*(.+)')


class Rule:
    """A named equality or implication rule with an optional human readable label."""

    __slots__ = ('id', 'expression', 'label')

    def __init__(self, id: str, expression: Expression, label: str = ""):
        self.id = id
        self.expression = expression
        self.label = label

    @property
    def lhs(self) -> Expression:
        return self.expression.children[0]

    @property
    def rhs(self) -> Expression:
        return self.expression.children[1]

    def to_dsl(self) -> str:
        """Format as a DSL line readable by parse_rule_line()."""
        name_part = f"@{self.id}"
        if self.label:
            name_part += f" \"{self.label}\""
        return f"{name_part}: {self.expression}"

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "label": self.label, "expr": self.expression.to_string()}

    def __repr__(self) -> str:
        if self.label:
            return f"@{self.id} \"{self.label}\": {self.expression}"
        return f"@{self.id}: {self.expression}"

    def __eq__(self, other):
        if not isinstance(other, Rule):
            return False
        return (self.id, self.expression, self.label) == (other.id, other.expression, other.label)


# ============================================================
# Contexts
# ============================================================

def resolve_context(entry: Optional[Dict[str, Any]]) -> Context:
    """
    Build the Context described by a ruleset's "context" entry.

    {"base": "arithmetic"} gives the arithmetic context; an optional
    "variables" list overrides its pattern variables. A missing entry gives
    an empty Context.

    Raises:
        ValueError: On an unknown base.
    """
    if entry is None:
        return Context()
    base = entry.get("base", "")
    if base != "arithmetic":
        raise ValueError(f"Unknown context base: {base!r}")
    return arithmetic_context(entry.get("variables", RULE_VARIABLES))


# ============================================================
# DSL
# ============================================================

def parse_rule_line(line: str, context: Context, default_id: Optional[str] = None) -> Optional[Rule]:
    """
    Parse a single rule line.

    Formats:
        @id: lhs = rhs
        @id "label": lhs = rhs
        @id: lhs = rhs => lhs2 = rhs2
        lhs = rhs                  (needs default_id)

    Returns: Rule, or None if the line is not a rule

    Raises:
        ValueError: If the line is a rule whose equality or implication does not parse.
    """
    line = line.strip()

    # Skip empty lines and comments
    if not line or line.startswith('#'):
        return None

    rule_id, label, body = default_id, "", line
    if line.startswith('@'):
        match_obj = RULE_LINE_RE.match(line)
        if match_obj is None:
            return None
        rule_id, label, body = match_obj.group(1), match_obj.group(2) or "", match_obj.group(3)

    if '=' not in body or rule_id is None:
        return None

    expression = parse_rule(body, context)
    if expression is None:
        raise ValueError(f"failed to parse rule: {body}")
    return Rule(rule_id, expression, label)


def load_rules_from_dsl(
    text: str,
    context: Optional[Context] = None,
    base_path: Optional[Path] = None,
    _included_files: Optional[set] = None
) -> List[Rule]:
    """
    Load rules from DSL text.

    Supports:
    - Named groups: [groupname], prefixing the ids that follow
    - File includes: :include path/to/file.rules

    Anonymous "lhs = rhs" lines get ids rule1, rule2, ... in file order.

    Args:
        text: DSL text containing rules
        context: Context to parse rules in (arithmetic by default)
        base_path: Base path for resolving relative :include paths
        _included_files: Internal tracking for circular include detection

    Returns:
        List of Rule
    """
    context = context if context is not None else arithmetic_context()
    rules: List[Rule] = []
    current_group = None
    anonymous = 0

    # Track included files to prevent circular includes
    if _included_files is None:
        _included_files = set()

    for line in text.split('\n'):
        line_stripped = line.strip()

        if line_stripped.startswith('[') and line_stripped.endswith(']'):
            current_group = line_stripped[1:-1].strip() or None
            continue

        if line_stripped.startswith(':include '):
            include_path_str = line_stripped[9:].strip()
            if include_path_str:
                include_path = base_path / include_path_str if base_path else Path(include_path_str)

                # Resolve to absolute path for cycle detection
                abs_path = include_path.resolve()
                if abs_path in _included_files:
                    raise ValueError(f"Circular include detected: {include_path}")
                if not include_path.exists():
                    raise FileNotFoundError(f"Include file not found: {include_path}")

                _included_files.add(abs_path)
                logger.debug("including %s", include_path)
                included = load_rules_from_file(include_path, context, _included_files=_included_files)
                if current_group:
                    included = [Rule(f"{current_group}/{r.id}", r.expression, r.label)
                                for r in included]
                rules.extend(included)
            continue

        rule = parse_rule_line(line, context, default_id=f"rule{anonymous + 1}")
        if rule is None:
            continue
        if not line_stripped.startswith('@'):
            anonymous += 1
        if current_group:
            rule.id = f"{current_group}/{rule.id}"
        rules.append(rule)

    logger.debug("loaded %d rules from DSL", len(rules))
    return rules


def rules_to_dsl(rules: List[Rule], name: Optional[str] = None) -> str:
    """
    Export rules to DSL format string.

    Args:
        rules: Rules to export
        name: Optional name to include as a comment header
    """
    lines = []
    if name:
        lines.append(f"# {name}")
        lines.append("")
    lines.extend(rule.to_dsl() for rule in rules)
    return "\n".join(lines)


# ============================================================
# JSON
# ============================================================

def _parse_rule_text(entry: Dict[str, Any], context: Context) -> Expression:
    if "expr_prefix" in entry:
        text = entry["expr_prefix"]
        expression = parse_prefix(text, context)
    elif "expr" in entry:
        text = entry["expr"]
        expression = parse_rule(text, context)
    else:
        raise ValueError(f"rule {entry.get('id')!r} has no expr or expr_prefix")
    if expression is None or not (expression.is_equation() or expression.is_implication()):
        raise ValueError(f"failed to parse rule: {text}")
    return expression


def expand_variations(expression: Expression, variations: List[Expression],
                      context: Context) -> List[Expression]:
    """
    The rule itself followed by each distinct rewrite of its left side.

    Each variation is an equality applied once at the root of the rule's
    left side; variations that do not match there are skipped.
    """
    variants = [expression]
    if expression.is_implication():
        return variants
    for variation in variations:
        lhs = apply_rule_equal_at(expression.lhs, variation, (), context)
        if lhs is None:
            continue
        variant = Expression.create_equality(lhs, expression.rhs)
        if variant not in variants:
            variants.append(variant)
    return variants


def load_rules_from_json(text: str, context: Optional[Context] = None) -> List[Rule]:
    """
    Load a ruleset from JSON text.

    Args:
        text: JSON ruleset (see module docstring)
        context: Overrides the ruleset's own "context" entry

    Raises:
        ValueError: On malformed JSON, a missing name, an unknown context
            base or a rule that does not parse.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid ruleset JSON: {e}") from e

    name = data.get("name")
    if not name:
        raise ValueError("ruleset has no name")
    if context is None:
        context = resolve_context(data.get("context"))

    variations = []
    for entry in data.get("variations") or []:
        variation = parse_prefix(entry.get("expr_prefix", ""), context)
        if variation is None or not variation.is_equation():
            raise ValueError(f"failed to parse variation: {entry.get('expr_prefix')}")
        variations.append(variation)

    rules = []
    for entry in data.get("rules", []):
        rule_id = f"{name}/{entry['id']}"
        label = entry.get("label") or ""
        expression = _parse_rule_text(entry, context)
        if variations:
            for i, variant in enumerate(expand_variations(expression, variations, context)):
                rules.append(Rule(f"{rule_id}/{i}", variant, label))
        else:
            rules.append(Rule(rule_id, expression, label))

    logger.debug("loaded %d rules from ruleset %r", len(rules), name)
    return rules


def load_rules_from_file(
    path: Union[str, Path],
    context: Optional[Context] = None,
    _included_files: Optional[set] = None
) -> List[Rule]:
    """
    Load rules from a .rules or .json file.

    Supports :include directives for DSL files, resolving paths
    relative to the containing file.
    """
    path = Path(path)
    text = path.read_text()

    if path.suffix == '.json':
        return load_rules_from_json(text, context)
    return load_rules_from_dsl(
        text,
        context,
        base_path=path.parent,
        _included_files=_included_files
    )


def load_algebra_rules(context: Optional[Context] = None) -> List[Rule]:
    """The built-in identity rules (add_zero, mul_one, ...) with ids algebra/<id>."""
    context = context if context is not None else arithmetic_context()
    rules = []
    for rule_id, text, label in ALGEBRA_RULES:
        expression = parse_statement(text, "=", context)
        if expression is None:
            raise ValueError(f"failed to parse rule: {text}")
        rules.append(Rule(f"algebra/{rule_id}", expression, label))
    return rules
