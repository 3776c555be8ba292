"""
Grammar Mutator

Mutates derivation trees while keeping them derivations of the grammar.
"""

import random
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from .grammar import Grammar
from .generator import GrammarGenerator
from .derivation_tree import DerivationTree


logger = logging.getLogger("treefuzz.grammar.mutator")


class TreeMutator:
    """
    Mutates derivation trees.

    Every mutation replaces a nonterminal subtree with another subtree for
    the same symbol, so results remain valid derivations and unparse to
    strings the grammar accepts.

    Mutation strategies:
    - swap: replace a subtree with a fragment seen in another input
    - regenerate: replace a subtree with a freshly generated one
    - shrink: replace a subtree with the smallest derivation of its symbol
    - crossover: exchange same-symbol subtrees between two trees
    """

    STRATEGIES = ('swap', 'regenerate', 'shrink')

    def __init__(self, grammar: Grammar, generator: Optional[GrammarGenerator] = None,
                 rng: Optional[random.Random] = None, max_fragments: int = 100):
        """
        Initialize tree mutator.

        Args:
            grammar: Grammar the trees derive from
            generator: Generator used for fresh subtrees (default: built from grammar)
            rng: Random source
            max_fragments: Maximum pooled fragments per symbol
        """
        self.grammar = grammar
        self.random = rng or random.Random()
        self.generator = generator or GrammarGenerator(grammar, max_depth=5, rng=self.random)
        self.max_fragments = max_fragments
        self.fragments: Dict[str, List[DerivationTree]] = defaultdict(list)
        self._fragment_strings: Dict[str, set] = defaultdict(set)
        self.last_strategies: List[str] = []
        self.logger = logging.getLogger("treefuzz.grammar.mutator")

    def add_to_fragment_pool(self, tree: DerivationTree) -> int:
        """
        Record every nonterminal subtree of tree under its symbol.

        Returns:
            Number of new fragments added
        """
        added = 0
        for _, node in tree.walk():
            if node.terminal:
                continue
            text = node.to_string()
            pool = self.fragments[node.symbol]
            if text in self._fragment_strings[node.symbol] or len(pool) >= self.max_fragments:
                continue
            pool.append(node)
            self._fragment_strings[node.symbol].add(text)
            added += 1

        self.logger.debug(f"Added {added} fragments ({sum(len(p) for p in self.fragments.values())} pooled)")
        return added

    def _mutable_paths(self, tree: DerivationTree):
        # Undefined (terminal-like) symbols have no alternatives to swap in
        return [path for path in tree.nonterminal_paths() if self.grammar.is_defined(tree.get(path).symbol)]

    def swap_fragment(self, tree: DerivationTree) -> Optional[DerivationTree]:
        """Replace a random subtree with a different pooled fragment of the same symbol."""
        candidates = []
        for path in self._mutable_paths(tree):
            node = tree.get(path)
            strings = self._fragment_strings.get(node.symbol)
            if strings and (len(strings) > 1 or node.to_string() not in strings):
                candidates.append(path)

        if not candidates:
            return None

        path = self.random.choice(candidates)
        node = tree.get(path)
        text = node.to_string()
        fragment = self.random.choice([f for f in self.fragments[node.symbol] if f.to_string() != text])
        return tree.replace(path, fragment)

    def regenerate(self, tree: DerivationTree) -> Optional[DerivationTree]:
        """Replace a random subtree with a freshly generated one."""
        paths = self._mutable_paths(tree)
        if not paths:
            return None

        path = self.random.choice(paths)
        symbol = tree.get(path).symbol
        return tree.replace(path, self.generator.generate_tree(symbol))

    def shrink(self, tree: DerivationTree) -> Optional[DerivationTree]:
        """Replace a random subtree with the smallest derivation of its symbol."""
        paths = [p for p in self._mutable_paths(tree) if tree.get(p).size() > 1]
        if not paths:
            return None

        path = self.random.choice(paths)
        symbol = tree.get(path).symbol
        return tree.replace(path, self.generator.min_tree(symbol))

    def mutate(self, tree: DerivationTree, mutations: int = 1) -> DerivationTree:
        """
        Mutate tree.

        Args:
            tree: Tree to mutate
            mutations: Number of mutations to apply

        Returns:
            Mutated tree (the input tree is left untouched)
        """
        self.last_strategies = []

        for _ in range(mutations):
            strategies = list(self.STRATEGIES)
            self.random.shuffle(strategies)

            for strategy in strategies:
                if strategy == 'swap':
                    mutated = self.swap_fragment(tree)
                elif strategy == 'regenerate':
                    mutated = self.regenerate(tree)
                else:
                    mutated = self.shrink(tree)

                if mutated is not None:
                    tree = mutated
                    self.last_strategies.append(strategy)
                    break

        return tree

    def crossover(self, tree1: DerivationTree, tree2: DerivationTree) -> Tuple[DerivationTree, DerivationTree]:
        """
        Exchange subtrees with the same symbol between two trees.

        Args:
            tree1: First parent
            tree2: Second parent

        Returns:
            Two offspring; the parents unchanged if they share no symbol
        """
        paths1 = defaultdict(list)
        for path in self._mutable_paths(tree1):
            paths1[tree1.get(path).symbol].append(path)

        paths2 = defaultdict(list)
        for path in self._mutable_paths(tree2):
            paths2[tree2.get(path).symbol].append(path)

        common = sorted(set(paths1) & set(paths2))
        if not common:
            self.logger.debug("Crossover parents share no symbol")
            return tree1, tree2

        symbol = self.random.choice(common)
        path1 = self.random.choice(paths1[symbol])
        path2 = self.random.choice(paths2[symbol])

        node1 = tree1.get(path1)
        node2 = tree2.get(path2)
        return tree1.replace(path1, node2), tree2.replace(path2, node1)

    def mutate_batch(self, trees: List[DerivationTree], count: Optional[int] = None) -> List[DerivationTree]:
        """
        Mutate batch of trees.

        Args:
            trees: Trees to pick from
            count: Number of mutants to produce (default: len(trees))

        Returns:
            List of mutated trees
        """
        if not trees:
            return []

        if count is None:
            count = len(trees)

        return [self.mutate(self.random.choice(trees)) for _ in range(count)]


# Convenience function
def mutate_string(grammar: Grammar, text: str, parser: str = "earley",
                  rng: Optional[random.Random] = None) -> str:
    """
    Quick function to mutate a string through its derivation tree.

    Args:
        grammar: Grammar the string belongs to
        text: String to mutate
        parser: Parser strategy name ("earley" or "peg")
        rng: Random source

    Returns:
        Mutated string

    Example:
        >>> grammar = BuiltinGrammars.load("arithmetic")
        >>> mutated = mutate_string(grammar, "1+2*3")
    """
    from parsers import load_parser

    tree = load_parser(parser, grammar).parse(text)
    mutator = TreeMutator(grammar, rng=rng)
    mutator.add_to_fragment_pool(tree)
    return mutator.mutate(tree).to_string()
