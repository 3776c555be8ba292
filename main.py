# treefuzz/main.py
import argparse
import logging
import os
import sys

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from logger import setup_treefuzz_logger
from config import TreefuzzConfig, TreefuzzConfigError
from grammar import GrammarError, GrammarGenerator, load_grammar
from parsers import ParseError, NoParseError, load_parser, PARSER_MAP
from fuzzers import load_fuzzer
from harness import ProgramHarness, Outcome

logger = logging.getLogger("treefuzz.main")
console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="treefuzz: grammar-directed parsing and tree mutation fuzzing"
    )
    parser.add_argument("--mode", choices=["parse", "generate", "fuzz", "check"], default="parse",
                        help="parse an input, generate inputs, fuzz a target, or check a grammar.")
    parser.add_argument("--config", default=None,
                        help="Optional path to an alternate config file (otherwise uses default in ~/.treefuzz/).")
    parser.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Set the logging level for treefuzz.")
    parser.add_argument("--quiet", action="store_true",
                        help="Minimize console output (overrides log-level to WARNING).")
    parser.add_argument("--grammar", default=None,
                        help="Built-in grammar name or path to a BNF/EBNF (.bnf) or dictionary (.json) grammar.")
    parser.add_argument("--start", default=None, help="Start symbol (default: first rule).")
    parser.add_argument("--parser", default=None, choices=sorted(PARSER_MAP),
                        help="Parsing strategy: greedy PEG or exhaustive Earley.")
    parser.add_argument("--input", default=None, help="Input string to parse.")
    parser.add_argument("--input-file", default=None, help="File holding the input to parse.")
    parser.add_argument("--all", action="store_true", help="Show every derivation tree (Earley only).")
    parser.add_argument("--count", type=int, default=10, help="Number of inputs to generate.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility.")
    parser.add_argument("--input-dir", default=None, help="Directory containing seed inputs for fuzzing.")
    parser.add_argument("--output-dir", default=None, help="Directory for generated testcases.")
    parser.add_argument("--target", default=None, help="Command to run each fuzz input against (input on stdin).")
    parser.add_argument("--trials", type=int, default=None, help="Number of fuzz inputs to produce or run.")
    parser.add_argument("--timeout", type=float, default=None, help="Timeout per target execution in seconds.")
    return parser


def apply_args(cfg: TreefuzzConfig, args: argparse.Namespace) -> TreefuzzConfig:
    """Command-line values override the config file."""
    overrides = {
        "grammar": args.grammar,
        "start_symbol": args.start,
        "parser": args.parser,
        "seed": args.seed,
        "input_dir": args.input_dir,
        "output_dir": args.output_dir,
        "target": args.target,
        "testcases": args.trials,
        "timeout": args.timeout,
        "log_level": args.log_level,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(cfg, key, value)
    return cfg


def run_parse(cfg: TreefuzzConfig, args) -> int:
    if args.input_file:
        with open(os.path.expanduser(args.input_file), "r", encoding="utf-8") as f:
            text = f.read()
    elif args.input is not None:
        text = args.input
    else:
        text = sys.stdin.read()

    grammar = load_grammar(cfg.grammar, cfg.start_symbol)
    kwargs = {"max_trees": cfg.max_trees} if cfg.parser == "earley" else {}
    parser = load_parser(cfg.parser, grammar, **kwargs)

    try:
        if args.all:
            trees = list(parser.parse_all(text))
            if not trees:
                parser.parse(text)
        else:
            trees = [parser.parse(text)]
    except NoParseError as e:
        console.print(f"[bold red]{escape(e.message)}[/]")
        if e.expected:
            console.print("Expected one of: " + ", ".join(repr(x) for x in e.expected), markup=False)
        return 1

    for i, tree in enumerate(trees, 1):
        if len(trees) > 1:
            console.print(f"[bold]Derivation {i}/{len(trees)}[/]")
        console.print(tree.to_rich())
    return 0


def run_generate(cfg: TreefuzzConfig, args) -> int:
    grammar = load_grammar(cfg.grammar, cfg.start_symbol)
    grammar.validate(allow_undefined=True)
    generator = GrammarGenerator(grammar, max_depth=cfg.max_depth, max_length=cfg.max_length)
    if cfg.seed is not None:
        generator.random.seed(cfg.seed)

    for _ in range(args.count):
        console.print(generator.generate(), markup=False, highlight=False)
    return 0


def run_check(cfg: TreefuzzConfig, args) -> int:
    grammar = load_grammar(cfg.grammar, cfg.start_symbol)

    table = Table(title=f"[bold bright_cyan]GRAMMAR {cfg.grammar}", border_style="bright_blue")
    table.add_column("Property", style="bold")
    table.add_column("Nonterminals")

    def names(symbols):
        return ", ".join(f"<{n}>" for n in sorted(symbols)) or "-"

    table.add_row("Rules", str(len(grammar)))
    table.add_row("Start symbol", f"<{grammar.start_symbol}>")
    table.add_row("Undefined", names(grammar.undefined_nonterminals()))
    table.add_row("Unreachable", names(set(grammar.rules) - grammar.reachable()))
    table.add_row("Nullable", names(grammar.nullable()))
    table.add_row("Left-recursive", names(grammar.left_recursive()))
    console.print(table)

    grammar.validate()
    console.print("[green]Grammar is valid[/]")
    return 0


def run_fuzz(cfg: TreefuzzConfig, args) -> int:
    fuzzer = load_fuzzer("grammar", cfg.input_dir, cfg)

    if not cfg.target:
        while fuzzer.next():
            path = fuzzer.generate_testcase()
            logger.debug(f"Wrote {path}")
        console.print(f"Wrote {fuzzer.index} testcases to {fuzzer.output_dir}")
        return 0

    harness = ProgramHarness(cfg.target, timeout=cfg.timeout)
    results = fuzzer.run(harness, cfg.testcases)
    fuzzer.stats.print_summary(console)

    failures = sum(1 for _, result in results if result.outcome == Outcome.FAIL)
    if failures:
        console.print(f"[bold red]{failures} failing inputs saved to {fuzzer.crash_dir}[/]")
    return 0


MODES = {
    "parse": run_parse,
    "generate": run_generate,
    "fuzz": run_fuzz,
    "check": run_check,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # 1) Load config
    try:
        cfg = TreefuzzConfig.load(args.config)
    except TreefuzzConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    cfg = apply_args(cfg, args)

    # 2) Configure logging
    log_level = logging.WARNING if args.quiet else getattr(logging, cfg.log_level, logging.INFO)
    setup_treefuzz_logger(log_level=log_level, log_to_console=not args.quiet)

    # 3) Run the chosen mode
    try:
        return MODES[args.mode](cfg, args)
    except (GrammarError, ParseError, ValueError) as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
