from abc import ABC, abstractmethod
import logging
from typing import Iterable, Iterator, Optional

from grammar.grammar import Grammar, Symbol
from grammar.derivation_tree import DerivationTree


class ParseError(Exception):
    """Base parse error."""
    def __init__(self, message: str, position: int):
        super().__init__(message)
        self.message = message
        self.position = position


class NoParseError(ParseError):
    """The input has no derivation from the start symbol."""
    def __init__(self, message: str, position: int, expected: Iterable[str] = ()):
        super().__init__(message, position)
        self.expected = sorted(set(expected))


class Parser(ABC):
    """Turns input strings into derivation trees of a grammar."""

    def __init__(self, grammar: Grammar, start_symbol: Optional[str] = None):
        self.grammar = grammar
        self.start_symbol = start_symbol or grammar.start_symbol
        self.logger = logging.getLogger(f"treefuzz.parsers.{self.__class__.__name__}")
        grammar.validate(allow_undefined=True)

    @staticmethod
    def literal(symbol: Symbol, grammar: Grammar) -> Optional[str]:
        """Text a symbol matches literally, None for defined nonterminals."""
        if symbol.terminal:
            return symbol.name
        if not grammar.is_defined(symbol.name):
            return f"<{symbol.name}>"
        return None

    @abstractmethod
    def parse_all(self, text: str, start_symbol: Optional[str] = None) -> Iterator[DerivationTree]:
        """Yield derivation trees for the whole of text."""
        pass

    def parse(self, text: str, start_symbol: Optional[str] = None) -> DerivationTree:
        """Return the first derivation tree, raise NoParseError if there is none."""
        for tree in self.parse_all(text, start_symbol):
            return tree
        raise NoParseError(f"No parse for input of length {len(text)}", len(text))

    def recognize(self, text: str, start_symbol: Optional[str] = None) -> bool:
        try:
            self.parse(text, start_symbol)
        except ParseError:
            return False
        return True
