"""
Keypad graphs, shortest path enumeration and move encoding.

A keypad layout is a list of rows; the single ``None`` cell is the gap a
robot arm must never aim at. Every other cell becomes a node of an undirected
graph whose edges join orthogonally adjacent keys.
"""

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Hashable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import shortest_path

logger = logging.getLogger(__name__)

GAP = None
ACTIVATE = "A"

NUMERIC_LAYOUT = [
    ["7", "8", "9"],
    ["4", "5", "6"],
    ["1", "2", "3"],
    [GAP, "0", "A"],
]

DIRECTIONAL_LAYOUT = [
    [GAP, "^", "A"],
    ["<", "v", ">"],
]


# =========================
# Errors
# =========================

class KeypadError(ValueError):
    """Base class for every keypad routing failure."""


class LayoutError(KeypadError):
    pass


class NoPathError(KeypadError):
    pass


class UnknownKeyError(KeypadError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable in HTTP errors
        return str(self.args[0]) if self.args else ""


class GapError(KeypadError):
    pass


class SequenceTooLongError(KeypadError):
    pass


# =========================
# Positions and moves
# =========================

@dataclass(frozen=True)
class Position:
    col: int
    row: int

    def step(self, move: "Move") -> "Position":
        return Position(self.col + move.dcol, self.row + move.drow)


class Move(Enum):
    UP = "^"
    DOWN = "v"
    LEFT = "<"
    RIGHT = ">"

    @property
    def dcol(self) -> int:
        return _OFFSETS[self][0]

    @property
    def drow(self) -> int:
        return _OFFSETS[self][1]

    @classmethod
    def between(cls, a: Position, b: Position) -> "Move":
        delta = (b.col - a.col, b.row - a.row)
        for move, offset in _OFFSETS.items():
            if offset == delta:
                return move
        raise ValueError(f"{a} and {b} are not adjacent")


# Rows grow downward
_OFFSETS: Dict[Move, Tuple[int, int]] = {
    Move.UP: (0, -1),
    Move.DOWN: (0, 1),
    Move.LEFT: (-1, 0),
    Move.RIGHT: (1, 0),
}

PathCandidate = Tuple[Move, ...]


# =========================
# Key graph
# =========================

class KeyGraph:
    """Immutable graph of the keys of one keypad layout."""

    def __init__(
        self,
        name: str,
        positions: Dict[Hashable, Position],
        adjacency: Dict[Hashable, Tuple[Hashable, ...]],
    ):
        self.name = name
        self._positions = positions
        self._adjacency = adjacency
        self._neighbor_sets = {k: frozenset(v) for k, v in adjacency.items()}
        self._by_position = {pos: key for key, pos in positions.items()}
        self._keys = tuple(positions)
        self._index = {key: i for i, key in enumerate(self._keys)}
        self._hops = self._hop_matrix()

    @classmethod
    def build(cls, layout: Sequence[Sequence[Optional[Hashable]]], name: str = "keypad") -> "KeyGraph":
        if not layout or not layout[0]:
            raise LayoutError(f"{name}: layout is empty")
        width = len(layout[0])
        for r, row in enumerate(layout):
            if len(row) != width:
                raise LayoutError(f"{name}: row {r} has {len(row)} cells, expected {width}")

        grid = np.empty((len(layout), width), dtype=object)
        for r, row in enumerate(layout):
            for c, cell in enumerate(row):
                grid[r, c] = cell

        positions: Dict[Hashable, Position] = {}
        for (r, c), key in np.ndenumerate(grid):
            if key is GAP:
                continue
            if key in positions:
                raise LayoutError(f"{name}: key {key!r} appears twice")
            positions[key] = Position(c, r)

        adjacency: Dict[Hashable, Tuple[Hashable, ...]] = {}
        rows, cols = grid.shape
        for key, pos in positions.items():
            linked = []
            for move in Move:
                nxt = pos.step(move)
                if 0 <= nxt.row < rows and 0 <= nxt.col < cols and grid[nxt.row, nxt.col] is not GAP:
                    linked.append(grid[nxt.row, nxt.col])
            adjacency[key] = tuple(linked)

        logger.debug("built %s keypad graph: %d keys", name, len(positions))
        return cls(name, positions, adjacency)

    def _hop_matrix(self) -> np.ndarray:
        n = len(self._keys)
        src, dst = [], []
        for key, linked in self._adjacency.items():
            for other in linked:
                src.append(self._index[key])
                dst.append(self._index[other])
        matrix = csr_matrix((np.ones(len(src)), (src, dst)), shape=(n, n))
        return shortest_path(matrix, directed=False, unweighted=True)

    @property
    def keys(self) -> Tuple[Hashable, ...]:
        return self._keys

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __repr__(self) -> str:
        return f"KeyGraph({self.name!r}, keys={''.join(map(str, self._keys))!r})"

    def require(self, key: Hashable) -> None:
        if key not in self._index:
            raise UnknownKeyError(f"key {key!r} is not on the {self.name} keypad")

    def index(self, key: Hashable) -> int:
        self.require(key)
        return self._index[key]

    def position(self, key: Hashable) -> Position:
        self.require(key)
        return self._positions[key]

    def neighbors(self, key: Hashable) -> FrozenSet[Hashable]:
        self.require(key)
        return self._neighbor_sets[key]

    def ordered_neighbors(self, key: Hashable) -> Tuple[Hashable, ...]:
        self.require(key)
        return self._adjacency[key]

    def key_at(self, position: Position) -> Optional[Hashable]:
        return self._by_position.get(position)

    def hop_count(self, start: Hashable, end: Hashable) -> int:
        hops = self._hops[self.index(start), self.index(end)]
        if np.isinf(hops):
            raise NoPathError(f"{end!r} is unreachable from {start!r} on the {self.name} keypad")
        return int(hops)


# =========================
# Path enumeration and encoding
# =========================

def shortest_paths(graph: KeyGraph, start: Hashable, end: Hashable) -> List[PathCandidate]:
    """Every minimum-hop move sequence from ``start`` to ``end``.

    Breadth-first search that keeps partial paths instead of a single parent
    pointer. A neighbour is only extended when the new distance does not
    exceed the best distance recorded for it, so every kept path is shortest
    and no shortest path is dropped.
    """
    graph.require(start)
    graph.require(end)
    if start == end:
        return [()]

    paths: List[PathCandidate] = []
    shortest: Optional[int] = None
    distance = {start: 0}
    queue = deque([(start, ())])
    while queue:
        key, moves = queue.popleft()
        if shortest is not None and len(moves) >= shortest:
            # BFS order: nothing left in the queue can still reach end
            break
        here = graph.position(key)
        for nxt in graph.ordered_neighbors(key):
            nd = len(moves) + 1
            if distance.get(nxt, nd) < nd:
                continue
            distance[nxt] = nd
            path = moves + (Move.between(here, graph.position(nxt)),)
            if nxt == end:
                paths.append(path)
                shortest = nd
            else:
                queue.append((nxt, path))

    if not paths:
        raise NoPathError(f"{end!r} is unreachable from {start!r} on the {graph.name} keypad")
    return paths


def encode_path(path: PathCandidate) -> str:
    return "".join(move.value for move in path) + ACTIVATE


NUMERIC_KEYPAD = KeyGraph.build(NUMERIC_LAYOUT, name="numeric")
DIRECTIONAL_KEYPAD = KeyGraph.build(DIRECTIONAL_LAYOUT, name="directional")
