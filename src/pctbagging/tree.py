# -*- coding: utf-8 -*-
"""
pctbagging.tree
===============

Decision trees stored as an arena of :class:`TreeNode` records.

Nodes are addressed by integer id (the root is ``0``) and children are kept
as lists of ids, one per branch of the node's split.  Ids are allocated
sequentially by :meth:`DecisionTree.add_node`, which is what lets the
consolidated tree and the base trees share ids while they are grown in
lock-step: position ``k`` is the same node in every tree of the family.

The module also provides the structural statistics reported by the
classifier and the text, rule and Graphviz renderings of a tree.
"""

from __future__ import annotations

import numpy as np

from .dataset import Dataset, Schema
from .split import SplitModel


# -----------------------------------------------------------------------------
# Node
# -----------------------------------------------------------------------------
class TreeNode:
    """A single node of a :class:`DecisionTree`.

    Attributes
    ----------
    node_id : int
        Position of the node in its arena.
    is_leaf : bool
        True if this node is terminal.
    is_empty : bool
        True if no training weight reached the node.
    split : SplitModel or None
        Test of an internal node; ``None`` for leaves.
    children : list[int]
        Child ids, one per branch of ``split``; empty for leaves.
    class_distribution : ndarray or None
        Weighted class counts of the training data reaching the node.
    order : int or None
        Expansion sequence number given by the consolidation loop; ``None``
        for nodes grown afterwards.
    data : Dataset or None
        Training slice, kept only while a later step needs it.
    """

    def __init__(self, node_id: int):
        self.node_id = node_id
        self.is_leaf: bool = True
        self.is_empty: bool = False
        self.split: SplitModel | None = None
        self.children: list = []
        self.class_distribution: np.ndarray | None = None
        self.order: int | None = None
        self.data: Dataset | None = None

    def initialize(self, data: Dataset, n_classes: int, keep_data: bool = False):
        self.class_distribution = data.class_distribution(n_classes)
        self.is_empty = data.total_weight <= 0
        self.data = data if keep_data else None

    def make_leaf(self):
        self.is_leaf = True
        self.split = None
        self.children = []

    @property
    def weight(self) -> float:
        if self.class_distribution is None:
            return 0.0
        return float(self.class_distribution.sum())

    @property
    def errors(self) -> float:
        """Training weight not in the majority class."""
        if self.class_distribution is None or self.weight <= 0:
            return 0.0
        return self.weight - float(self.class_distribution.max())

    @property
    def predicted_class(self) -> int:
        return int(np.argmax(self.class_distribution))

    def probabilities(self) -> np.ndarray:
        tot = self.weight
        if tot <= 0:
            return np.zeros_like(self.class_distribution)
        return self.class_distribution / tot


# -----------------------------------------------------------------------------
# Tree
# -----------------------------------------------------------------------------
class DecisionTree:
    """Arena of :class:`TreeNode` records rooted at id ``0``.

    Parameters
    ----------
    n_classes : int
        Length of every class distribution stored in the tree.
    """

    def __init__(self, n_classes: int):
        self.n_classes = int(n_classes)
        self.nodes: list = []

    def add_node(self) -> TreeNode:
        node = TreeNode(len(self.nodes))
        self.nodes.append(node)
        return node

    def __getitem__(self, node_id: int) -> TreeNode:
        return self.nodes[node_id]

    @property
    def root(self) -> TreeNode:
        return self.nodes[0]

    # ------------------------------------------------------------------
    # Traversal and statistics
    # ------------------------------------------------------------------
    def iter_nodes(self, node_id: int = 0):
        """Yield the nodes reachable from ``node_id`` in preorder."""
        stack = [node_id]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            stack.extend(reversed(node.children))

    def iter_with_depth(self, node_id: int = 0, depth: int = 0):
        stack = [(node_id, depth)]
        while stack:
            nid, d = stack.pop()
            node = self.nodes[nid]
            yield node, d
            stack.extend((c, d + 1) for c in reversed(node.children))

    def leaves(self, node_id: int = 0) -> list:
        return [n for n in self.iter_nodes(node_id) if n.is_leaf]

    def n_leaves(self) -> int:
        return len(self.leaves())

    def n_nodes(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def n_inner_nodes(self) -> int:
        return self.n_nodes() - self.n_leaves()

    def n_levels(self, node_id: int = 0) -> int:
        """Depth of the deepest leaf below ``node_id`` (a leaf has 0 levels)."""
        return max(d for n, d in self.iter_with_depth(node_id) if n.is_leaf)

    def average_branch_length(self, weighted: bool = False) -> float:
        """Mean root-to-leaf path length.

        With ``weighted`` each path counts in proportion to the training
        weight of its leaf, relative to the weight at the root.
        """
        root_w = self.root.weight
        total, n = 0.0, 0
        for node, depth in self.iter_with_depth():
            if not node.is_leaf:
                continue
            n += 1
            if weighted:
                total += (node.weight / root_w) * depth if root_w > 0 else 0.0
            else:
                total += depth
        if weighted:
            return total
        return total / n

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def predict_proba(self, x) -> np.ndarray:
        """Class probabilities of one encoded instance.

        A missing test value sends the instance down every non-empty branch
        weighted by the branch proportions.  Reaching an empty node answers
        with the distribution of the nearest non-empty ancestor; an empty
        root gives the zero vector.
        """
        return self._proba(np.asarray(x, dtype=float), 0, None)

    def _proba(self, x, node_id: int, fallback):
        node = self.nodes[node_id]
        if node.is_empty:
            return fallback if fallback is not None else np.zeros(self.n_classes)
        probs = node.probabilities()
        if node.is_leaf:
            return probs
        b = node.split.branch_of(x[node.split.attribute])
        if b >= 0:
            return self._proba(x, node.children[b], probs)
        acc = np.zeros(self.n_classes)
        for p, child in zip(node.split.proportions, node.children):
            if not self.nodes[child].is_empty:
                acc += p * self._proba(x, child, probs)
        return acc

    # ------------------------------------------------------------------
    # Memory
    # ------------------------------------------------------------------
    def cleanup(self):
        """Drop every kept training slice."""
        for node in self.nodes:
            node.data = None

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def _leaf_label(self, node: TreeNode, schema: Schema, class_names=None) -> str:
        label = schema.class_label(node.predicted_class, class_names)
        if node.errors > 0:
            return f"{label} ({round(node.weight, 2)}/{round(node.errors, 2)})"
        return f"{label} ({round(node.weight, 2)})"

    def dump(self, schema: Schema, *, structure=None, feature_names=None,
             class_names=None, show_order: bool = True) -> str:
        """Indented text rendering of the tree.

        ``structure`` maps internal node ids to the percentage of base trees
        sharing their split; when given it is printed as ``[Str: xx.xx%]``.
        """
        if self.root.is_leaf:
            return ": " + self._leaf_label(self.root, schema, class_names)
        lines = []
        self._dump_node(0, 0, lines, schema, structure, feature_names,
                        class_names, show_order)
        return "\n".join(lines)

    def _dump_node(self, node_id, depth, lines, schema, structure, fn, cn, show_order):
        node = self.nodes[node_id]
        for b, child_id in enumerate(node.children):
            child = self.nodes[child_id]
            parts = ["|   " * depth]
            if show_order:
                parts.append(f"[{node.order}]")
            if structure is not None and node_id in structure:
                parts.append(f"[Str: {structure[node_id]:.2f}%]")
            parts.append(node.split.describe(b, schema, fn))
            if child.is_leaf:
                parts.append(": ")
                if show_order:
                    parts.append(f"[{child.order}] ")
                parts.append(self._leaf_label(child, schema, cn))
                lines.append("".join(parts))
            else:
                lines.append("".join(parts))
                self._dump_node(child_id, depth + 1, lines, schema, structure,
                                fn, cn, show_order)

    def rules(self, schema: Schema, *, feature_names=None, class_names=None) -> list:
        """One ``<antecedent> => <class>`` string per non-empty leaf."""
        rules: list[str] = []
        self._collect_rules(0, [], rules, schema, feature_names, class_names)
        return rules

    def _collect_rules(self, node_id, parts, rules, schema, fn, cn):
        node = self.nodes[node_id]
        if node.is_leaf:
            if node.is_empty:
                return
            body = " AND ".join(parts) if parts else "<root>"
            rules.append(f"{body} => {schema.class_label(node.predicted_class, cn)}")
            return
        for b, child in enumerate(node.children):
            cond = node.split.describe(b, schema, fn)
            self._collect_rules(child, parts + [cond], rules, schema, fn, cn)

    def add_graph_nodes(self, dot, schema: Schema, *, feature_names=None,
                        class_names=None, node_id: int = 0, name: str = "0"):
        node = self.nodes[node_id]
        if node.is_leaf:
            dot.node(name, self._leaf_label(node, schema, class_names),
                     shape="box", style="filled", color="lightgrey")
            return
        fn = feature_names if feature_names is not None else schema.feature_names
        label = fn[node.split.attribute]
        if node.order is not None:
            label = f"[{node.order}] {label}"
        dot.node(name, label, shape="ellipse", style="filled", color="lightblue")
        for b, child in enumerate(node.children):
            child_name = f"{name}_{b}"
            self.add_graph_nodes(dot, schema, feature_names=feature_names,
                                 class_names=class_names, node_id=child,
                                 name=child_name)
            dot.edge(name, child_name, label=node.split.branch_label(b, schema))
