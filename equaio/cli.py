#!/usr/bin/env python3
"""
equaio Command-Line Interface

Provides an interactive derivation REPL, script execution and pipe mode.

Usage:
    equaio                               # Start REPL
    equaio derivation.eqio               # Run script
    equaio -e "x + 3 = 5" -e ":both - 3" # Run commands
    equaio -r algebra.rules              # REPL with rules preloaded
    printf 'x + 0 = 5\n:algebra\n:apply algebra/add_zero\n' | equaio   # Filter mode

Script Format (.eqio files):
    #!/usr/bin/env equaio
    :context arithmetic
    :load algebra.rules

    @add_zero "Add by Zero": X + 0 = X

    x + 3 = 5
    :both subtract 3
    :calc 5 - 3
    :history chain

A plain "lhs = rhs" line sets the current statement; "@id: lhs = rhs" lines
define rules. Addresses are dotted child indices: "0.1" is the second child
of the left side, "." is the root.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import __version__
from .arithmetic import RULE_VARIABLES, arithmetic_context, parse_operator
from .block import render
from .expression import Address, Context
from .parser import parse_expression
from .rules import load_algebra_rules, load_rules_from_file, parse_rule_line
from .task import HISTORY_STYLES, Task

logger = logging.getLogger(__name__)

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False


def basic_context() -> Context:
    """Symbolic operators without numerics or algebraic laws."""
    return Context(
        variables=RULE_VARIABLES,
        binary_operators=["+", "-", "*", "/", ","],
        unary_operators=["-"],
    )


# Built-in contexts
CONTEXT_PRESETS: Dict[str, Callable[[], Context]] = {
    "arithmetic": arithmetic_context,
    "basic": basic_context,
}

# Standard ruleset search paths
RULESET_SEARCH_PATHS = [
    Path("./rules"),
    Path.home() / ".config" / "equaio" / "rules",
]

RULESET_SUFFIXES = (".rules", ".json")


def find_ruleset(name_or_path: str) -> Optional[Path]:
    """
    Locate a ruleset file.

    Args:
        name_or_path: A path, or a name looked up as NAME, NAME.rules or
            NAME.json in RULESET_SEARCH_PATHS

    Returns:
        The file's path, or None if not found
    """
    path = Path(name_or_path)
    if path.is_file():
        return path
    if "/" in name_or_path or "\\" in name_or_path:
        return None
    for search_dir in RULESET_SEARCH_PATHS:
        for candidate in [search_dir / name_or_path] + \
                [search_dir / f"{name_or_path}{suffix}" for suffix in RULESET_SUFFIXES]:
            if candidate.is_file():
                return candidate
    return None


def parse_address(text: str) -> Address:
    """
    Parse a dotted address: "0.1" -> (0, 1), "." or "root" -> ().

    Raises:
        ValueError: If a component is not a nonnegative integer.
    """
    text = text.strip()
    if text in ("", ".", "root"):
        return ()
    parts = text.strip(".").split(".")
    if not all(part.isdigit() for part in parts):
        raise ValueError(f"invalid address: {text!r}")
    return tuple(int(part) for part in parts)


def format_address(address: Address) -> str:
    return ".".join(str(i) for i in address) if address else "."


class EquaioCompleter:
    """Tab completer for the equaio REPL."""

    # Commands that can be completed
    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":context", ":current", ":target", ":seed",
        ":rule", ":rules", ":load", ":algebra",
        ":apply", ":at", ":candidates",
        ":fn", ":both", ":calc", ":frac", ":swap",
        ":sub2add", ":add2sub", ":div2mul", ":mul2div", ":unparen",
        ":addresses", ":render", ":history", ":state", ":errors",
    ]

    def __init__(self, repl: 'DerivationREPL'):
        self.repl = repl
        self.matches: List[str] = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)
        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> List[str]:
        line = line.lstrip()

        if line.startswith(":context "):
            return [c for c in CONTEXT_PRESETS if c.startswith(text)]

        if line.startswith(":history "):
            return [s for s in HISTORY_STYLES if s.startswith(text)]

        for cmd in (":apply ", ":at ", ":candidates "):
            if line.startswith(cmd):
                return [r for r in self.repl.task.rules if r.startswith(text)]

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        return []


class DerivationREPL:
    """Interactive REPL driving one Task."""

    def __init__(self, context_name: str = "arithmetic"):
        self.context_name = context_name
        self.task = Task(CONTEXT_PRESETS[context_name]())
        self.running = True

        if HAS_READLINE:
            self.history_file = Path.home() / ".equaio_history"
            try:
                readline.read_history_file(self.history_file)
            except (FileNotFoundError, OSError):
                pass
            readline.set_history_length(1000)

            self.completer = EquaioCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n")

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                logger.debug("could not save history: %s", e)

    def set_context(self, name: str) -> bool:
        """Switch to a preset context. Starts a fresh Task."""
        name = name.lower()
        if name not in CONTEXT_PRESETS:
            return False
        self.context_name = name
        self.task = Task(CONTEXT_PRESETS[name]())
        return True

    def load_rules(self, name_or_path: str) -> int:
        """
        Load a ruleset file into the task.

        Returns:
            Number of rules loaded

        Raises:
            FileNotFoundError: If the ruleset cannot be found
        """
        path = find_ruleset(name_or_path)
        if path is None:
            raise FileNotFoundError(f"ruleset not found: {name_or_path}")
        rules = load_rules_from_file(path, self.task.context)
        self.task.add_rules(rules)
        logger.debug("loaded %d rules from %s", len(rules), path)
        return len(rules)

    def _outcome(self, ok: bool) -> str:
        """The new current statement, or the error just recorded."""
        if ok:
            return str(self.task.current)
        return f"Error: {self.task.error_messages[-1]}"

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""
        task = self.task

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "context":
            if not arg:
                available = ", ".join(CONTEXT_PRESETS)
                return f"Context: {self.context_name}\nAvailable: {available}"
            if self.set_context(arg):
                return f"Context set to: {arg}"
            return f"Unknown context: {arg}"

        elif cmd == "current":
            if not arg:
                return str(task.current) if task.current is not None else "None"
            return self._outcome(task.set_current_eq(arg))

        elif cmd == "target":
            if not arg:
                return str(task.target) if task.target is not None else "None"
            if task.set_target_eq(arg):
                return f"Target: {task.target}"
            return self._outcome(False)

        elif cmd == "seed":
            return self._outcome(task.init_current_with_target_lhs())

        elif cmd == "rule":
            rule_parts = arg.split(None, 1)
            if len(rule_parts) != 2:
                return "Usage: :rule NAME LHS = RHS"
            if task.add_rule_eq(rule_parts[0], rule_parts[1]):
                return f"Rule {rule_parts[0]}: {task.rules[rule_parts[0]]}"
            return self._outcome(False)

        elif cmd == "rules":
            if not task.rules:
                return "No rules loaded"
            lines = []
            for name, rule in task.rules.items():
                label = task.rule_labels.get(name)
                lines.append(f"{name}: {rule}" + (f"  ({label})" if label else ""))
            return "\n".join(lines)

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILE|NAME"
            try:
                count = self.load_rules(arg)
                return f"Loaded {count} rules from {arg}"
            except (OSError, ValueError) as e:
                return f"Error loading {arg}: {e}"

        elif cmd == "algebra":
            rules = load_algebra_rules(task.context)
            task.add_rules(rules)
            return f"Loaded {len(rules)} algebra rules"

        elif cmd == "apply":
            if not arg:
                return "Usage: :apply RULE"
            return self._outcome(task.apply_rule(arg))

        elif cmd == "at":
            at_parts = arg.split()
            if len(at_parts) != 2:
                return "Usage: :at RULE ADDRESS"
            return self._outcome(task.apply_rule_at(at_parts[0], parse_address(at_parts[1])))

        elif cmd == "candidates":
            if not arg:
                return "Usage: :candidates RULE"
            candidates = task.rewrite_candidates(arg)
            if not candidates:
                return "No candidates"
            return "\n".join(f"{i}. {c}" for i, c in enumerate(candidates))

        elif cmd == "fn":
            fn_parts = arg.rsplit(None, 1)
            if len(fn_parts) != 2:
                return "Usage: :fn FUNCTION VARIABLE"
            return self._outcome(task.apply_function_to_both_side(fn_parts[0], fn_parts[1]))

        elif cmd == "both":
            both_parts = arg.split(None, 1)
            if len(both_parts) != 2:
                return "Usage: :both OPERATOR VALUE"
            return self._outcome(task.apply_arithmetic_to_both_side(both_parts[0], both_parts[1]))

        elif cmd == "calc":
            calc_parts = arg.split()
            op = parse_operator(calc_parts[1]) if len(calc_parts) == 3 else None
            if op is None:
                return "Usage: :calc LEFT OPERATOR RIGHT"
            return self._outcome(task.apply_arithmetic_calculation(calc_parts[0], calc_parts[2], op))

        elif cmd == "frac":
            frac_parts = arg.split()
            if len(frac_parts) not in (2, 3) or not all(p.isdigit() for p in frac_parts[:2]):
                return "Usage: :frac NUM_INDEX DEN_INDEX [ADDRESS]"
            address = parse_address(frac_parts[2]) if len(frac_parts) == 3 else ()
            return self._outcome(task.apply_fraction_simplification_at(
                int(frac_parts[0]), int(frac_parts[1]), address))

        elif cmd == "swap":
            swap_parts = arg.split()
            if len(swap_parts) != 2:
                return "Usage: :swap ADDRESS ADDRESS"
            return self._outcome(task.try_swap_two_element(parse_address(swap_parts[0]),
                                                           parse_address(swap_parts[1])))

        elif cmd == "sub2add":
            return self._outcome(task.apply_arithmetic_turn_subtraction_to_addition())

        elif cmd == "add2sub":
            return self._outcome(task.apply_arithmetic_turn_addition_to_subtraction())

        elif cmd == "div2mul":
            return self._outcome(task.apply_arithmetic_turn_division_to_multiplication())

        elif cmd == "mul2div":
            return self._outcome(task.apply_arithmetic_turn_multiplication_to_division())

        elif cmd == "unparen":
            return self._outcome(task.apply_arithmetic_remove_assoc_parentheses())

        elif cmd == "addresses":
            expr = task.current if not arg else parse_expression(arg, task.context)
            if expr is None:
                return "Nothing to show"
            return "\n".join(f"{format_address(address):<8} {node}"
                             for address, node in expr.walk())

        elif cmd == "render":
            if task.current is None:
                return "Nothing to render"
            return render(task.current).to_string()

        elif cmd == "history":
            if arg and arg not in HISTORY_STYLES:
                return f"Unknown style. Options: {', '.join(HISTORY_STYLES)}"
            return task.format_history(arg or "verbose")

        elif cmd == "state":
            return task.state_dump()

        elif cmd == "errors":
            if not task.error_messages:
                return "No errors"
            return "\n".join(task.error_messages)

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """equaio REPL Commands:
  :help                  Show this help
  :context [NAME]        Show or switch context (starts a new derivation)
  :current [LHS = RHS]   Show or set the current statement
  :target [LHS = RHS]    Show or set the target statement
  :seed                  Start from "lhs = lhs" of the target
  :rule NAME LHS = RHS   Define a rule
  :rules                 List rules
  :load FILE|NAME        Load rules from a .rules or .json file
  :algebra               Load the built-in algebra rules
  :apply RULE            Apply a rule at its first match
  :at RULE ADDRESS       Apply a rule at an address (e.g. 0.1)
  :candidates RULE       List every rewrite a rule allows
  :fn FUNCTION VAR       Apply a function to both sides, e.g. :fn X * 2 X
  :both OP VALUE         Combine both sides with a value, e.g. :both - 3
  :calc LEFT OP RIGHT    Replace a literal calculation by its value
  :frac N D [ADDRESS]    Cancel numerator factor N against denominator factor D
  :swap ADDR ADDR        Swap two operands of a commutative chain
  :sub2add :add2sub      Turn a - b into a + -b and back
  :div2mul :mul2div      Turn a / b into a * /b and back
  :unparen               Remove parentheses inside associative chains
  :addresses [EXPR]      List node addresses
  :render                Show the display layout
  :history [STYLE]       Show history (verbose, compact, labels, chain)
  :state                 Show the full task state
  :errors                Show error messages
  :quit                  Exit

Syntax:
  lhs = rhs                        Set the current statement
  @name: lhs = rhs                 Define a rule
  @name "Label": lhs = rhs         Rule with label
  @name: p = q => r = s            Implication, rewrites the whole statement
"""

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        # Empty line or comment
        if not line or line.startswith("#"):
            return None

        try:
            if line.startswith(":"):
                return self.handle_command(line)

            if line.startswith("@"):
                rule = parse_rule_line(line, self.task.context)
                if rule is None:
                    return "Error: failed to parse rule"
                if not self.task.add_rule_expr(rule.id, rule.expression, rule.label):
                    return self._outcome(False)
                return f"Rule {rule.id}: {rule.expression}"

            return self._outcome(self.task.set_current_eq(line))

        except (ValueError, IndexError, KeyError) as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print(f"equaio {__version__} - step-by-step equation rewriting")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                line = input("equaio> ")
                result = self.process_line(line)
                if result:
                    print(result)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs equaio scripts."""

    def __init__(self, context_name: str = "arithmetic"):
        self.repl = DerivationREPL(context_name)

    def _run_lines(self, lines, source: str, quiet: bool) -> int:
        for lineno, line in enumerate(lines, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            result = self.repl.process_line(line)
            if result and result.startswith(("Error", "Unknown")):
                print(f"{source}:{lineno}: {result}", file=sys.stderr)
                return 1
            if result and not quiet:
                print(result)
            if not self.repl.running:
                break
        return 0

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, only errors are printed

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1
        return self._run_lines(lines, str(path), quiet)

    def run_commands(self, commands: List[str], quiet: bool = False) -> int:
        """Run -e commands in order. Returns an exit code."""
        return self._run_lines(commands, "-e", quiet)

    def run_stdin(self, quiet: bool = False) -> int:
        """Read lines from stdin and run them. Returns an exit code."""
        return self._run_lines(sys.stdin, "<stdin>", quiet)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="equaio",
        description="equaio - step-by-step equation rewriting",
        epilog="Examples:\n"
               "  equaio                                 Start REPL\n"
               "  equaio derivation.eqio                 Run script\n"
               "  equaio -e 'x + 3 = 5' -e ':both - 3'   Run commands\n"
               "  equaio -r algebra.rules                REPL with rules\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.eqio)"
    )

    parser.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        help="Load rules from file or search path (can be specified multiple times)"
    )

    parser.add_argument(
        "-c", "--context",
        default="arithmetic",
        choices=sorted(CONTEXT_PRESETS),
        help="Context preset"
    )

    parser.add_argument(
        "-e", "--exec",
        action="append",
        default=[],
        dest="commands",
        help="Run a command or statement (can be specified multiple times)"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (only errors are printed)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log derivation steps (-v for failures, -vv for every step)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=max(logging.WARNING - 10 * args.verbose, logging.DEBUG),
        format="%(levelname)s %(name)s: %(message)s",
    )

    runner = ScriptRunner(args.context)

    for rules_file in args.rules:
        try:
            count = runner.repl.load_rules(rules_file)
            if not args.quiet:
                print(f"Loaded {count} rules from {rules_file}", file=sys.stderr)
        except (OSError, ValueError) as e:
            print(f"Error loading {rules_file}: {e}", file=sys.stderr)
            sys.exit(1)

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif args.commands:
        sys.exit(runner.run_commands(args.commands, quiet=args.quiet))

    elif not sys.stdin.isatty():
        # Pipe/filter mode (stdin is not a terminal)
        sys.exit(runner.run_stdin(quiet=args.quiet))

    else:
        runner.repl.run()


if __name__ == "__main__":
    main()
