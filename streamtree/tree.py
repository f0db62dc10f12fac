"""Tree structures and the depth-first induction controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import Iterator, List, Optional

import torch

from .config import TreeConfig, resolve_bin_batch_size
from .data import Dataset
from .errors import InvariantViolation
from .impurity import ImpurityInfo
from .partition import partition_rows
from .resources import StreamPool
from .splitter import Question, SplitFinder

logger = logging.getLogger(__name__)


@dataclass
class Node:
    """A leaf (``class_predict`` set) or an internal node (``question`` and two children)."""

    class_predict: Optional[int] = None
    purity: float = 0.0
    question: Optional[Question] = None
    left: Optional["Node"] = None
    right: Optional["Node"] = None
    depth: int = 0
    n_rows: int = 0

    @property
    def is_leaf(self) -> bool:
        return self.question is None

    def describe(self) -> str:
        if self.is_leaf:
            return f"(leaf, {self.class_predict}, {self.purity:.4f})"
        return f"({self.question.column}, {self.question.value:.6g}, {self.purity:.4f})"

    def walk(self) -> Iterator["Node"]:
        """Pre-order traversal, left before right."""
        stack: List[Node] = [self]
        while stack:
            node = stack.pop()
            yield node
            if node.right is not None:
                stack.append(node.right)
            if node.left is not None:
                stack.append(node.left)


@dataclass(slots=True)
class BuildState:
    """Counters scoped to a single ``fit`` call."""

    generator: torch.Generator
    depth_reached: int = 0
    leaf_count: int = 0


@dataclass(slots=True)
class BuildInstrumentation:
    nodes_split: int = 0
    leaves: int = 0
    columns_evaluated: int = 0
    bin_batches: int = 0
    hist_ms: float = 0.0
    partition_ms: float = 0.0

    def to_dict(self) -> dict[str, int | float]:
        return {
            "nodes_split": self.nodes_split,
            "leaves": self.leaves,
            "columns_evaluated": self.columns_evaluated,
            "bin_batches": self.bin_batches,
            "hist_ms": self.hist_ms,
            "partition_ms": self.partition_ms,
        }


@dataclass(slots=True)
class _PendingNode:
    start: int
    stop: int
    depth: int
    impurity: ImpurityInfo | None
    parent: Node | None = None
    is_left: bool = True


def make_generator(random_state: int | None) -> torch.Generator:
    generator = torch.Generator(device="cpu")
    if random_state is not None:
        generator.manual_seed(int(random_state))
    else:
        generator.seed()
    return generator


class TreeBuilder:
    """Grow one tree over a shared, in-place partitioned row-index array.

    Growth is depth-first with the left subtree completed before the right
    one. Pending nodes live on an explicit work-list, so the interpreter
    stack does not grow with ``max_depth``.
    """

    def __init__(self, config: TreeConfig, pool: StreamPool) -> None:
        self.config = config
        self.pool = pool
        self.instrumentation = BuildInstrumentation()

    def build(self, dataset: Dataset, rows: torch.Tensor) -> tuple[Node, BuildState]:
        config = self.config
        bin_batch = resolve_bin_batch_size(config)
        state = BuildState(generator=make_generator(config.random_state))
        self.instrumentation = BuildInstrumentation()
        finder = SplitFinder(
            dataset,
            self.pool,
            n_bins=config.n_bins,
            bin_batch_size=bin_batch,
            column_fraction=config.column_fraction,
        )
        with self.pool.lease(int(rows.numel()), dataset.n_classes, bin_batch):
            root = self._grow(dataset, finder, state, rows)
        self.instrumentation.columns_evaluated = finder.columns_evaluated
        self.instrumentation.bin_batches = finder.bin_batches
        self.instrumentation.hist_ms = finder.hist_ms
        if config.max_leaves != -1 and state.leaf_count > config.max_leaves:
            logger.warning(
                "leaf budget %d exceeded by in-progress splits: %d leaves",
                config.max_leaves,
                state.leaf_count,
            )
        return root, state

    def _grow(self, dataset: Dataset, finder: SplitFinder, state: BuildState, rows: torch.Tensor) -> Node:
        root: Node | None = None
        pending: List[_PendingNode] = [_PendingNode(start=0, stop=int(rows.numel()), depth=0, impurity=None)]
        while pending:
            item = pending.pop()
            node, children = self._grow_node(dataset, finder, state, rows, item)
            if item.parent is None:
                root = node
            elif item.is_left:
                item.parent.left = node
            else:
                item.parent.right = node
            # right pushed first so the left subtree finishes before it
            pending.extend(reversed(children))
        if root is None:
            raise InvariantViolation("tree growth produced no root")
        return root

    def _grow_node(
        self,
        dataset: Dataset,
        finder: SplitFinder,
        state: BuildState,
        rows: torch.Tensor,
        item: _PendingNode,
    ) -> tuple[Node, list[_PendingNode]]:
        depth = item.depth
        node_rows = rows[item.start:item.stop]
        n_rows = item.stop - item.start

        if depth != 0 and item.impurity is not None and item.impurity.purity == 0.0:
            return self._make_leaf(state, item.impurity, depth, n_rows), []
        if self._depth_exhausted(depth) or self._leaves_exhausted(state):
            basis = item.impurity if item.impurity is not None else finder.basis(node_rows)
            return self._make_leaf(state, basis, depth, n_rows), []

        split = finder.find_best(node_rows, state.generator, item.impurity)
        basis = split.impurity.basis
        if not split.found:
            return self._make_leaf(state, basis, depth, n_rows), []

        part_start = perf_counter()
        left_count, right_count = partition_rows(dataset, split.question, node_rows)
        self.instrumentation.partition_ms += (perf_counter() - part_start) * 1000.0
        left_info, right_info = split.impurity.left, split.impurity.right
        if left_count + right_count != n_rows or left_count != left_info.n_rows:
            raise InvariantViolation(
                f"row-count mismatch after partition: left={left_count} right={right_count} "
                f"rows={n_rows} expected_left={left_info.n_rows}"
            )

        self.instrumentation.nodes_split += 1
        logger.debug(
            "split depth=%d column=%d threshold=%.6g gain=%.6g left=%d right=%d",
            depth,
            split.question.column,
            split.question.value,
            split.gain,
            left_count,
            right_count,
        )
        node = Node(question=split.question, purity=basis.purity, depth=depth, n_rows=n_rows)
        mid = item.start + left_count
        children = [
            _PendingNode(item.start, mid, depth + 1, left_info, parent=node, is_left=True),
            _PendingNode(mid, item.stop, depth + 1, right_info, parent=node, is_left=False),
        ]
        return node, children

    def _depth_exhausted(self, depth: int) -> bool:
        return self.config.max_depth != -1 and depth >= self.config.max_depth

    def _leaves_exhausted(self, state: BuildState) -> bool:
        # the node under consideration counts as a prospective leaf
        return self.config.max_leaves != -1 and state.leaf_count + 1 >= self.config.max_leaves

    def _make_leaf(self, state: BuildState, impurity: ImpurityInfo, depth: int, n_rows: int) -> Node:
        state.leaf_count += 1
        state.depth_reached = max(state.depth_reached, depth)
        self.instrumentation.leaves += 1
        return Node(
            class_predict=impurity.majority_class(),
            purity=impurity.purity,
            depth=depth,
            n_rows=n_rows,
        )
