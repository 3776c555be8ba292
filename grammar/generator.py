"""
Grammar Generator

Generates derivation trees and strings from grammar specifications.
"""

import math
import random
import logging
from typing import Dict, List, Optional

from .grammar import Grammar, GrammarError, Symbol
from .derivation_tree import DerivationTree


logger = logging.getLogger("treefuzz.grammar.generator")


class GrammarGenerator:
    """
    Generates derivation trees from a parsed grammar.

    Features:
    - Recursive generation from start symbol
    - Configurable recursion depth
    - Random production selection
    - Minimum-cost expansion once the depth limit is reached
    - Size constraints on generated strings
    """

    def __init__(self, grammar: Grammar, max_depth: int = 10, max_length: int = 1000,
                 rng: Optional[random.Random] = None):
        """
        Initialize grammar generator.

        Args:
            grammar: Parsed grammar
            max_depth: Depth after which only minimum-cost alternatives are used
            max_length: Maximum generated string length
            rng: Random source (default: a fresh random.Random)
        """
        self.grammar = grammar
        self.max_depth = max_depth
        self.max_length = max_length
        self.random = rng or random.Random()
        self.logger = logging.getLogger("treefuzz.grammar.generator")
        self._costs = self._compute_costs()

    def _compute_costs(self) -> Dict[str, float]:
        """
        Number of rule expansions needed to fully terminate each symbol.

        Undefined nonterminals are emitted literally and cost nothing.
        Symbols that can never terminate keep an infinite cost.
        """
        costs = {name: math.inf for name in self.grammar.rules}

        changed = True
        while changed:
            changed = False
            for name, alternatives in self.grammar.rules.items():
                best = min((self._alternative_cost(alt, costs) for alt in alternatives), default=math.inf)
                if best < costs[name]:
                    costs[name] = best
                    changed = True

        return costs

    def _alternative_cost(self, alternative: List[Symbol], costs: Dict[str, float]) -> float:
        return 1 + sum(costs.get(s.name, 0) for s in alternative if not s.terminal)

    def symbol_cost(self, symbol: str) -> float:
        return self._costs.get(symbol, 0)

    def generate_tree(self, start_symbol: Optional[str] = None, seed: Optional[int] = None) -> DerivationTree:
        """
        Generate a derivation tree from grammar.

        Args:
            start_symbol: Starting rule (default: grammar start symbol)
            seed: Random seed for reproducibility

        Returns:
            Generated derivation tree

        Raises:
            GrammarError: If the symbol cannot derive a finite string
        """
        if seed is not None:
            self.random.seed(seed)

        symbol = start_symbol or self.grammar.start_symbol
        if symbol is None:
            raise GrammarError("Grammar has no start symbol")
        if self.symbol_cost(symbol) == math.inf:
            raise GrammarError(f"<{symbol}> cannot derive a finite string")

        return self._generate_symbol(symbol, depth=0)

    def generate(self, start_symbol: Optional[str] = None, seed: Optional[int] = None) -> str:
        """
        Generate string from grammar.

        Args:
            start_symbol: Starting rule (default: grammar start symbol)
            seed: Random seed for reproducibility

        Returns:
            Generated string, truncated to max_length
        """
        if not self.grammar.rules:
            return ""

        result = self.generate_tree(start_symbol, seed).to_string()

        # Truncate if too long
        if len(result) > self.max_length:
            result = result[:self.max_length]

        return result

    def min_tree(self, symbol: str) -> DerivationTree:
        """Smallest derivation tree for a symbol."""
        if self.symbol_cost(symbol) == math.inf:
            raise GrammarError(f"<{symbol}> cannot derive a finite string")
        return self._generate_symbol(symbol, depth=self.max_depth, randomize=False)

    def _generate_symbol(self, symbol: str, depth: int, randomize: bool = True) -> DerivationTree:
        """
        Generate a subtree from a non-terminal symbol.

        Args:
            symbol: Non-terminal symbol name
            depth: Current recursion depth
            randomize: Pick randomly among equally cheap alternatives

        Returns:
            Generated subtree
        """
        if not self.grammar.is_defined(symbol):
            # Terminal-like undefined symbol
            return DerivationTree.leaf(f"<{symbol}>")

        alternatives = self.grammar.alternatives(symbol)

        # Check depth limit
        if depth >= self.max_depth:
            alternative = self._cheapest_alternative(alternatives, randomize)
        else:
            finite = [alt for alt in alternatives
                      if self._alternative_cost(alt, self._costs) < math.inf]
            alternative = self.random.choice(finite)

        children = []
        for element in alternative:
            if element.terminal:
                children.append(DerivationTree.leaf(element.name))
            else:
                children.append(self._generate_symbol(element.name, depth + 1, randomize))

        return DerivationTree(symbol, children)

    def _cheapest_alternative(self, alternatives: List[List[Symbol]], randomize: bool) -> List[Symbol]:
        costs = [self._alternative_cost(alt, self._costs) for alt in alternatives]
        best = min(costs)
        candidates = [alt for alt, cost in zip(alternatives, costs) if cost == best]
        return self.random.choice(candidates) if randomize else candidates[0]

    def generate_batch(self, count: int, start_symbol: Optional[str] = None) -> List[str]:
        """
        Generate multiple strings.

        Args:
            count: Number of strings to generate
            start_symbol: Starting rule

        Returns:
            List of generated strings
        """
        return [self.generate(start_symbol) for _ in range(count)]

    def get_statistics(self, samples: int = 100) -> Dict:
        """
        Get statistics about generated strings.

        Args:
            samples: Number of samples to analyze

        Returns:
            Dict with statistics
        """
        generated = self.generate_batch(samples)

        lengths = [len(s) for s in generated]
        unique = len(set(generated))

        return {
            'samples': samples,
            'avg_length': sum(lengths) / len(lengths) if lengths else 0,
            'min_length': min(lengths) if lengths else 0,
            'max_length': max(lengths) if lengths else 0,
            'unique_count': unique,
            'uniqueness_ratio': (unique / samples) * 100 if samples else 0
        }


# Convenience function
def generate_from_grammar(grammar: Grammar, count: int = 1,
                          start_symbol: Optional[str] = None) -> List[str]:
    """
    Quick function to generate from grammar.

    Args:
        grammar: Parsed grammar
        count: Number of strings to generate
        start_symbol: Starting rule

    Returns:
        List of generated strings

    Example:
        >>> grammar = parse_grammar(grammar_text)
        >>> strings = generate_from_grammar(grammar, count=10)
    """
    generator = GrammarGenerator(grammar)
    return generator.generate_batch(count, start_symbol)
