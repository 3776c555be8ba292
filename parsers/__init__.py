"""
treefuzz Parsers

Turn input strings into derivation trees of a grammar.

Strategies:
- peg: greedy ordered choice, first successful alternative wins
- earley: exhaustive chart parsing, all derivations preserved
"""

import importlib
import logging

from .base import Parser, ParseError, NoParseError
from .peg_parser import PEGParser
from .earley_parser import EarleyParser, EarleyItem

logger = logging.getLogger("treefuzz.parsers")

PARSER_MAP = {
    "peg": ("peg_parser", "PEGParser"),
    "earley": ("earley_parser", "EarleyParser"),
    # Add more mappings here as new strategies are added
}


def load_parser(parser_name: str, grammar, **kwargs) -> Parser:
    """
    Instantiate a parser strategy by name.

    Raises:
        ValueError: If the strategy is unknown
    """
    if parser_name not in PARSER_MAP:
        logger.error(f"Unknown parser '{parser_name}'")
        raise ValueError(f"Invalid parser: {parser_name} (choose from {', '.join(sorted(PARSER_MAP))})")

    module_name, class_name = PARSER_MAP[parser_name]
    module = importlib.import_module(f".{module_name}", __name__)
    parser_class = getattr(module, class_name)
    logger.debug(f"Loaded parser: {parser_name} (class: {class_name})")
    return parser_class(grammar, **kwargs)


__all__ = ['Parser', 'ParseError', 'NoParseError', 'PEGParser', 'EarleyParser',
           'EarleyItem', 'load_parser', 'PARSER_MAP']
