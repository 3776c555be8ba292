"""
Tests for DerivationTree.
"""

import pytest
from rich.tree import Tree as RichTree

from grammar import DerivationTree, Grammar
from parsers import EarleyParser


def sample_tree():
    """<expr> for "1+2" built by hand."""
    leaf = DerivationTree.leaf
    one = DerivationTree("digit", [leaf("1")])
    two = DerivationTree("digit", [leaf("2")])
    return DerivationTree("expr", [one, leaf("+"), two])


class TestDerivationTree:
    """Tests for tree structure and traversal."""

    def test_to_string(self):
        assert sample_tree().to_string() == "1+2"
        assert str(sample_tree()) == "1+2"

    def test_empty_nonterminal(self):
        tree = DerivationTree("opt")
        assert tree.to_string() == ""
        assert not tree.terminal

    def test_terminal_with_children(self):
        with pytest.raises(ValueError):
            DerivationTree("x", [DerivationTree.leaf("y")], terminal=True)

    def test_leaves(self):
        assert [n.symbol for n in sample_tree().leaves()] == ["1", "+", "2"]

    def test_walk_is_preorder(self):
        paths = [path for path, _ in sample_tree().walk()]
        assert paths == [(), (0,), (0, 0), (1,), (2,), (2, 0)]

    def test_nonterminal_paths(self):
        tree = sample_tree()
        assert tree.nonterminal_paths() == [(), (0,), (2,)]
        assert tree.nonterminal_paths("digit") == [(0,), (2,)]

    def test_get(self):
        tree = sample_tree()
        assert tree.get(()) is tree
        assert tree.get((2, 0)).symbol == "2"

    def test_replace_returns_new_tree(self):
        tree = sample_tree()
        three = DerivationTree("digit", [DerivationTree.leaf("3")])
        replaced = tree.replace((2,), three)

        assert replaced.to_string() == "1+3"
        assert tree.to_string() == "1+2"
        # untouched subtrees are shared
        assert replaced.children[0] is tree.children[0]

    def test_replace_root(self):
        other = DerivationTree.leaf("x")
        assert sample_tree().replace((), other) is other

    def test_size_and_depth(self):
        tree = sample_tree()
        assert tree.size() == 6
        assert tree.depth() == 3
        assert DerivationTree.leaf("x").depth() == 1

    def test_equality_and_hash(self):
        assert sample_tree() == sample_tree()
        assert hash(sample_tree()) == hash(sample_tree())
        assert len({sample_tree(), sample_tree()}) == 1
        assert DerivationTree("a") != DerivationTree.leaf("a")


class TestConversions:
    """Tests for tuple, s-expression and rich conversions."""

    def test_to_tuple(self):
        assert sample_tree().to_tuple() == (
            "<expr>", [("<digit>", [("1", [])]), ("+", []), ("<digit>", [("2", [])])]
        )

    def test_tuple_round_trip(self):
        tree = sample_tree()
        assert DerivationTree.from_tuple(tree.to_tuple()) == tree

    def test_from_tuple_none_children(self):
        tree = DerivationTree.from_tuple(("<opt>", None))
        assert tree.symbol == "opt"
        assert tree.children == ()

    def test_to_sexpr(self):
        assert sample_tree().to_sexpr() == "(<expr> (<digit> '1') '+' (<digit> '2'))"
        assert DerivationTree("opt").to_sexpr() == "(<opt>)"

    def test_to_rich(self):
        rendered = sample_tree().to_rich()
        assert isinstance(rendered, RichTree)
        assert "<expr>" in str(rendered.label)
        assert len(rendered.children) == 3

    def test_from_tuple_with_grammar_keeps_undefined_literals(self):
        grammar = Grammar.from_dict({"<s>": ["a<x>b"]})
        tree = EarleyParser(grammar).parse("a<x>b")
        data = tree.to_tuple()
        assert data == ("<s>", [("a", []), ("<x>", []), ("b", [])])

        restored = DerivationTree.from_tuple(data, grammar)
        assert restored == tree
        assert restored.to_string() == "a<x>b"
        assert restored.children[1].terminal

    def test_from_tuple_without_grammar(self):
        restored = DerivationTree.from_tuple(("<s>", [("a", []), ("<x>", [])]))
        assert not restored.children[1].terminal
        assert restored.to_string() == "a"


def deep_tree(depth, last="x"):
    """Right-nested <rep> chain, as produced by repetition helpers."""
    tree = DerivationTree.leaf(last)
    for _ in range(depth):
        tree = DerivationTree("rep", [DerivationTree.leaf("x"), tree])
    return tree


class TestDeepTrees:
    """Trees nested far beyond the interpreter recursion limit."""

    DEPTH = 3000

    def test_traversals(self):
        tree = deep_tree(self.DEPTH)
        assert tree.to_string() == "x" * (self.DEPTH + 1)
        assert tree.depth() == self.DEPTH + 1
        assert tree.size() == 2 * self.DEPTH + 1
        assert len(tree.nonterminal_paths("rep")) == self.DEPTH

    def test_equality_and_hash(self):
        assert deep_tree(self.DEPTH) == deep_tree(self.DEPTH)
        assert hash(deep_tree(self.DEPTH)) == hash(deep_tree(self.DEPTH))
        assert deep_tree(self.DEPTH) != deep_tree(self.DEPTH, last="y")

    def test_replace_deepest_leaf(self):
        tree = deep_tree(self.DEPTH)
        replaced = tree.replace((1,) * self.DEPTH, DerivationTree.leaf("y"))
        assert replaced.to_string().endswith("xy")
        assert replaced == deep_tree(self.DEPTH, last="y")
        assert tree.to_string().endswith("xx")

    def test_conversions(self):
        tree = deep_tree(self.DEPTH)
        assert DerivationTree.from_tuple(tree.to_tuple()) == tree
        assert tree.to_sexpr().startswith("(<rep> 'x' (<rep> 'x'")
        assert len(tree.to_rich().children) == 2
