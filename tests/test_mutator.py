"""
Tests for TreeMutator.
"""

import random
import pytest

from grammar import DerivationTree, Grammar, TreeMutator
from grammar.mutator import mutate_string
from parsers import EarleyParser


@pytest.fixture
def earley(arithmetic_grammar):
    return EarleyParser(arithmetic_grammar)


@pytest.fixture
def mutator(arithmetic_grammar, rng):
    return TreeMutator(arithmetic_grammar, rng=rng)


class TestFragmentPool:
    """Tests for the fragment pool."""

    def test_fragments_by_symbol(self, mutator, earley):
        added = mutator.add_to_fragment_pool(earley.parse("1+2"))
        assert added > 0
        assert {"expr", "term", "factor", "number", "digit"} <= set(mutator.fragments)
        assert sorted(f.to_string() for f in mutator.fragments["digit"]) == ["1", "2"]

    def test_duplicates_are_skipped(self, mutator, earley):
        tree = earley.parse("3*4")
        mutator.add_to_fragment_pool(tree)
        assert mutator.add_to_fragment_pool(tree) == 0

    def test_pool_limit(self, arithmetic_grammar, earley):
        mutator = TreeMutator(arithmetic_grammar, max_fragments=2)
        mutator.add_to_fragment_pool(earley.parse("1+2+3+4"))
        assert len(mutator.fragments["digit"]) == 2


class TestMutations:
    """Every mutation keeps the tree a derivation of the grammar."""

    def test_swap_fragment(self, mutator, earley):
        one = earley.parse("1")
        mutator.add_to_fragment_pool(one)
        mutator.add_to_fragment_pool(earley.parse("2"))
        assert mutator.swap_fragment(one).to_string() == "2"

    def test_swap_without_alternatives(self, mutator, earley):
        tree = earley.parse("1")
        mutator.add_to_fragment_pool(tree)
        assert mutator.swap_fragment(tree) is None

    def test_regenerate(self, mutator, earley):
        mutated = mutator.regenerate(earley.parse("(1+2)*3"))
        assert earley.recognize(mutated.to_string())

    def test_shrink(self, mutator, earley):
        tree = earley.parse("(1+2)*3")
        shrunk = mutator.shrink(tree)
        assert earley.recognize(shrunk.to_string())
        assert shrunk.size() <= tree.size()

    def test_shrink_empty_tree(self):
        grammar = Grammar.from_dict({"<s>": ["", "x"]})
        mutator = TreeMutator(grammar)
        assert mutator.shrink(DerivationTree("s")) is None

    def test_mutants_remain_valid(self, mutator, earley):
        seeds = [earley.parse(s) for s in ("1+2", "(3*4)-5", "67/8")]
        for seed in seeds:
            mutator.add_to_fragment_pool(seed)

        for _ in range(40):
            parent = mutator.random.choice(seeds)
            mutant = mutator.mutate(parent, mutations=2)
            text = mutant.to_string()
            assert earley.parse(text).to_string() == text
            assert mutant.symbol == parent.symbol
            assert 1 <= len(mutator.last_strategies) <= 2
            assert set(mutator.last_strategies) <= set(TreeMutator.STRATEGIES)

    def test_mutate_leaves_original_untouched(self, mutator, earley):
        tree = earley.parse("1+2*3")
        mutator.add_to_fragment_pool(earley.parse("9"))
        for _ in range(10):
            mutator.mutate(tree, mutations=3)
        assert tree.to_string() == "1+2*3"
        assert tree == earley.parse("1+2*3")

    def test_mutate_batch(self, mutator, earley):
        trees = [earley.parse("1"), earley.parse("2+3")]
        assert len(mutator.mutate_batch(trees, count=5)) == 5
        assert len(mutator.mutate_batch(trees)) == 2
        assert mutator.mutate_batch([]) == []

    def test_mutate_string(self, arithmetic_grammar, earley):
        mutated = mutate_string(arithmetic_grammar, "1+2", rng=random.Random(8))
        assert earley.recognize(mutated)


class TestCrossover:
    """Tests for subtree crossover."""

    def test_offspring_are_valid(self, mutator, earley):
        first = earley.parse("1+2")
        second = earley.parse("(3*4)")
        for _ in range(20):
            child1, child2 = mutator.crossover(first, second)
            assert earley.recognize(child1.to_string())
            assert earley.recognize(child2.to_string())

    def test_no_common_symbol(self):
        grammar = Grammar.from_dict({"<s>": ["<a>", "<b>"], "<a>": ["x"], "<b>": ["y"]})
        mutator = TreeMutator(grammar)
        tree1 = DerivationTree("a", [DerivationTree.leaf("x")])
        tree2 = DerivationTree("b", [DerivationTree.leaf("y")])
        child1, child2 = mutator.crossover(tree1, tree2)
        assert child1 is tree1
        assert child2 is tree2
