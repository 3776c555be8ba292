"""
Derivation Trees

Trees produced by the parsers and the generator, consumed by the mutator.

Repetition helpers nest one level per repeated element, so a tree can be
as deep as its input is long. Every traversal here uses an explicit stack.
"""

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from rich.tree import Tree as RichTree
from rich.markup import escape

from .grammar import Grammar


Path = Tuple[int, ...]


class DerivationTree:
    """
    A grammar symbol paired with its ordered children.

    Terminal nodes have no children; their symbol is the literal text.
    Nonterminal nodes carry the rule name. A nonterminal without children
    derived the empty string.

    Trees are treated as immutable: replace() returns a new tree and
    shares every untouched subtree with the original.
    """

    __slots__ = ("symbol", "children", "terminal", "_hash", "_text")

    def __init__(self, symbol: str, children: Sequence["DerivationTree"] = (), terminal: bool = False):
        if terminal and children:
            raise ValueError(f"Terminal node {symbol!r} cannot have children")
        self.symbol = symbol
        self.children: Tuple["DerivationTree", ...] = tuple(children)
        self.terminal = terminal
        self._hash = None
        self._text = None

    @classmethod
    def leaf(cls, text: str) -> "DerivationTree":
        return cls(text, (), True)

    def to_string(self) -> str:
        """Concatenate terminal leaves left to right."""
        if self._text is None:
            self._text = "".join(leaf.symbol for leaf in self.leaves())
        return self._text

    def leaves(self) -> Iterator["DerivationTree"]:
        stack = [self]
        while stack:
            node = stack.pop()
            if node.terminal:
                yield node
            else:
                stack.extend(reversed(node.children))

    def walk(self) -> Iterator[Tuple[Path, "DerivationTree"]]:
        """Pre-order traversal yielding (path, node)."""
        stack: List[Tuple[Path, DerivationTree]] = [((), self)]
        while stack:
            path, node = stack.pop()
            yield path, node
            for i in range(len(node.children) - 1, -1, -1):
                stack.append((path + (i,), node.children[i]))

    def postorder(self) -> Iterator["DerivationTree"]:
        """Every node after all of its children."""
        stack = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded or not node.children:
                yield node
            else:
                stack.append((node, True))
                stack.extend((child, False) for child in reversed(node.children))

    def nonterminal_paths(self, symbol: Optional[str] = None) -> List[Path]:
        """Paths of nonterminal nodes, optionally restricted to one symbol."""
        return [
            path for path, node in self.walk()
            if not node.terminal and (symbol is None or node.symbol == symbol)
        ]

    def get(self, path: Path) -> "DerivationTree":
        node = self
        for index in path:
            node = node.children[index]
        return node

    def replace(self, path: Path, subtree: "DerivationTree") -> "DerivationTree":
        """Return a copy of this tree with the node at path replaced."""
        ancestors = [self]
        for index in path[:-1]:
            ancestors.append(ancestors[-1].children[index])

        node = subtree
        for parent, index in zip(reversed(ancestors), reversed(path)):
            children = list(parent.children)
            children[index] = node
            node = DerivationTree(parent.symbol, children, parent.terminal)
        return node

    def size(self) -> int:
        return sum(1 for _ in self.walk())

    def depth(self) -> int:
        return 1 + max(len(path) for path, _ in self.walk())

    def to_tuple(self) -> tuple:
        """(symbol, children) form, nonterminals rendered as <name>."""
        built: Dict[int, tuple] = {}
        for node in self.postorder():
            if node.terminal:
                built[id(node)] = (node.symbol, [])
            else:
                built[id(node)] = (f"<{node.symbol}>", [built[id(c)] for c in node.children])
        return built[id(self)]

    @classmethod
    def from_tuple(cls, data, grammar: Optional[Grammar] = None) -> "DerivationTree":
        """
        Inverse of to_tuple().

        Without a grammar every "<name>" symbol becomes a nonterminal. With
        one, only defined rules do; undefined "<name>" symbols stay the
        literal leaves the parsers produce for them.
        """
        def is_rule(symbol: str) -> bool:
            if not (symbol.startswith('<') and symbol.endswith('>') and len(symbol) > 2):
                return False
            return grammar is None or grammar.is_defined(symbol[1:-1])

        results: List[DerivationTree] = []
        stack = [(data, False)]
        while stack:
            item, expanded = stack.pop()
            symbol, children = item[0], item[1] or ()
            if not is_rule(symbol):
                results.append(cls.leaf(symbol))
            elif expanded:
                split = len(results) - len(children)
                node = cls(symbol[1:-1], results[split:])
                del results[split:]
                results.append(node)
            else:
                stack.append((item, True))
                stack.extend((child, False) for child in reversed(children))

        return results[0]

    def to_sexpr(self) -> str:
        built: Dict[int, str] = {}
        for node in self.postorder():
            if node.terminal:
                built[id(node)] = repr(node.symbol)
            else:
                inner = " ".join(built[id(c)] for c in node.children)
                built[id(node)] = f"(<{node.symbol}> {inner})" if inner else f"(<{node.symbol}>)"
        return built[id(self)]

    def _rich_label(self) -> str:
        if self.terminal:
            return f"[green]{escape(repr(self.symbol))}[/]"
        return f"[bold cyan]<{escape(self.symbol)}>[/]"

    def to_rich(self, parent: Optional[RichTree] = None) -> RichTree:
        """Build a rich Tree for terminal display."""
        root = parent.add(self._rich_label()) if parent is not None else RichTree(self._rich_label())
        stack = [(self, root)]
        while stack:
            node, branch = stack.pop()
            for child in node.children:
                stack.append((child, branch.add(child._rich_label())))
        return root

    def __eq__(self, other):
        if not isinstance(other, DerivationTree):
            return NotImplemented
        stack = [(self, other)]
        while stack:
            a, b = stack.pop()
            if a is b:
                continue
            if a.symbol != b.symbol or a.terminal != b.terminal or len(a.children) != len(b.children):
                return False
            if a._hash is not None and b._hash is not None and a._hash != b._hash:
                return False
            stack.extend(zip(a.children, b.children))
        return True

    def __hash__(self):
        stack = [self]
        while stack:
            node = stack[-1]
            if node._hash is not None:
                stack.pop()
                continue
            pending = [c for c in node.children if c._hash is None]
            if pending:
                stack.extend(pending)
                continue
            node._hash = hash((node.symbol, node.terminal, tuple(c._hash for c in node.children)))
            stack.pop()
        return self._hash

    def __repr__(self):
        if self.terminal:
            return f"DerivationTree.leaf({self.symbol!r})"
        return f"DerivationTree({self.symbol!r}, children={len(self.children)})"

    def __str__(self):
        return self.to_string()
