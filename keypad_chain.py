"""
Press counting across a chain of directional keypad robots.

The human presses buttons on a directional pad. Each press steers the arm of
the robot one layer down, which in turn presses buttons on its own pad, until
the last robot types on the numeric pad. Every arm starts on ``A``.

Costs are kept as one numpy table per depth over the directional keys:
``tables[d][i, j]`` is the number of human presses needed to move a depth-d
arm from key i to key j and press it. Depth 0 is the arm the human drives
directly, so it only costs the hops plus the activation. Tables are grown
bottom-up so deep chains never recurse.
"""

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional, Tuple

import numpy as np

from keypads import (
    ACTIVATE,
    DIRECTIONAL_KEYPAD,
    NUMERIC_KEYPAD,
    GapError,
    KeyGraph,
    KeypadError,
    Move,
    SequenceTooLongError,
    encode_path,
    shortest_paths,
)

logger = logging.getLogger(__name__)

# Safety cap on chain depth; counts at this depth stay far below int64 range
MAX_CHAIN_DEPTH = 32
# Press strings grow roughly 2.5x per layer
MAX_SEQUENCE_DEPTH = 6


def _pairs(encoding: str) -> Iterable[Tuple[str, str]]:
    # Every arm rests on A after the previous activation
    chain = ACTIVATE + encoding
    return zip(chain, chain[1:])


class CostModel:
    def __init__(self, numeric: KeyGraph = NUMERIC_KEYPAD, directional: KeyGraph = DIRECTIONAL_KEYPAD):
        self.numeric = numeric
        self.directional = directional
        # Filled on first use, so unreachable pairs only fail when queried
        self._candidates: Dict[Tuple[KeyGraph, Hashable, Hashable], List[str]] = {}

        # The directional pad must be connected: every pair seeds the depth-0 table
        n = len(directional.keys)
        base = np.empty((n, n), dtype=np.int64)
        for i, a in enumerate(directional.keys):
            for j, b in enumerate(directional.keys):
                base[i, j] = directional.hop_count(a, b) + 1
        self._tables: List[np.ndarray] = [base]
        self._lock = threading.Lock()

    def candidates(self, graph: KeyGraph, start: Hashable, end: Hashable) -> List[str]:
        graph.require(start)
        graph.require(end)
        found = self._candidates.get((graph, start, end))
        if found is None:
            # Racing threads compute the same list; the last write wins
            found = [encode_path(p) for p in shortest_paths(graph, start, end)]
            self._candidates[(graph, start, end)] = found
        return found

    def _check_depth(self, depth: int) -> None:
        if depth < 0 or depth > MAX_CHAIN_DEPTH:
            raise ValueError(f"chain depth must be between 0 and {MAX_CHAIN_DEPTH}, got {depth}")

    def _table(self, depth: int) -> np.ndarray:
        tables = self._tables
        if depth < len(tables):
            return tables[depth]
        with self._lock:
            while len(self._tables) <= depth:
                below = self._tables[-1]
                keys = self.directional.keys
                table = np.empty_like(below)
                for i, a in enumerate(keys):
                    for j, b in enumerate(keys):
                        table[i, j] = min(
                            self._expansion_cost(below, enc)
                            for enc in self.candidates(self.directional, a, b)
                        )
                self._tables.append(table)
                logger.debug("grew cost table to depth %d", len(self._tables) - 1)
        return self._tables[depth]

    def _expansion_cost(self, below: np.ndarray, encoding: str) -> int:
        index = self.directional.index
        return int(sum(below[index(a), index(b)] for a, b in _pairs(encoding)))

    def best_transition(self, graph: KeyGraph, start: Hashable, end: Hashable, depth: int) -> Tuple[int, str]:
        """Cheapest way to move ``graph``'s arm from ``start`` to ``end`` and press it.

        Returns the press count at the top of a ``depth``-layer chain and the
        winning encoding. Candidates of equal hop length can differ here: runs
        of one direction are cheaper for the layer above than alternations.
        """
        self._check_depth(depth)
        options = self.candidates(graph, start, end)
        if depth == 0:
            return graph.hop_count(start, end) + 1, options[0]
        below = self._table(depth - 1)
        return min(((self._expansion_cost(below, enc), enc) for enc in options), key=lambda t: t[0])

    def prepare(self, chain_depth: int) -> None:
        """Build every table a numeric query at ``chain_depth`` reads."""
        self._check_depth(chain_depth)
        if chain_depth > 0:
            self._table(chain_depth - 1)

    def cost(self, start: Hashable, end: Hashable, depth: int) -> int:
        self._check_depth(depth)
        table = self._table(depth)
        return int(table[self.directional.index(start), self.directional.index(end)])

    def cost_numeric(self, start: Hashable, end: Hashable, depth: int) -> int:
        return self.best_transition(self.numeric, start, end, depth)[0]


# =========================
# Sequence encoding
# =========================

@dataclass
class CodeResult:
    code: str
    presses: Optional[int] = None
    numeric_value: Optional[int] = None
    sequence: Optional[str] = None
    error: Optional[str] = None

    @property
    def complexity(self) -> Optional[int]:
        if self.presses is None:
            return None
        return self.presses * self.numeric_value

    def to_dict(self) -> Dict[str, object]:
        if self.error is not None:
            return {"code": self.code, "error": self.error}
        out = {
            "code": self.code,
            "presses": self.presses,
            "numeric_value": self.numeric_value,
            "complexity": self.complexity,
        }
        if self.sequence is not None:
            out["sequence"] = self.sequence
        return out


class SequenceEncoder:
    def __init__(self, cost_model: Optional[CostModel] = None):
        self.cost_model = cost_model or CostModel()

    @property
    def numeric(self) -> KeyGraph:
        return self.cost_model.numeric

    def _validate(self, target: str) -> None:
        for ch in target:
            self.numeric.require(ch)

    def total_cost(self, target: str, chain_depth: int) -> int:
        self._validate(target)
        self.cost_model.prepare(chain_depth)
        return sum(self.cost_model.cost_numeric(a, b, chain_depth) for a, b in _pairs(target))

    @staticmethod
    def numeric_value(target: str) -> int:
        m = re.match(r"\d+", target)
        return int(m.group()) if m else 0

    def complexity(self, target: str, chain_depth: int) -> int:
        return self.numeric_value(target) * self.total_cost(target, chain_depth)

    def press_levels(self, target: str, chain_depth: int) -> List[str]:
        """Optimal press strings for every layer, numeric pad controller first.

        Each layer re-walks the cost tables and keeps the winning candidate
        for every pair, so the last string has length ``total_cost``.
        """
        self._validate(target)
        if chain_depth > MAX_SEQUENCE_DEPTH:
            raise SequenceTooLongError(
                f"sequences are only reconstructed up to depth {MAX_SEQUENCE_DEPTH}, got {chain_depth}"
            )
        model = self.cost_model
        levels = ["".join(model.best_transition(self.numeric, a, b, chain_depth)[1] for a, b in _pairs(target))]
        for remaining in range(chain_depth - 1, -1, -1):
            levels.append("".join(
                model.best_transition(model.directional, a, b, remaining)[1] for a, b in _pairs(levels[-1])
            ))
        return levels

    def press_sequence(self, target: str, chain_depth: int) -> str:
        return self.press_levels(target, chain_depth)[-1]

    def evaluate(
        self,
        targets: Iterable[str],
        chain_depth: int,
        with_sequence: bool = False,
        max_workers: int = 4,
    ) -> List[CodeResult]:
        def run(target: str) -> CodeResult:
            try:
                result = CodeResult(
                    code=target,
                    presses=self.total_cost(target, chain_depth),
                    numeric_value=self.numeric_value(target),
                )
            except KeypadError as e:
                logger.warning("rejected code %r: %s", target, e)
                return CodeResult(code=target, error=str(e))
            if with_sequence:
                result.sequence = self.press_sequence(target, chain_depth)
            return result

        targets = list(targets)
        if with_sequence and chain_depth > MAX_SEQUENCE_DEPTH:
            raise SequenceTooLongError(
                f"sequences are only reconstructed up to depth {MAX_SEQUENCE_DEPTH}, got {chain_depth}"
            )
        # Warm the shared tables once instead of racing for the lock
        self.cost_model.prepare(chain_depth)
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(run, targets))
        logger.info("evaluated %d codes at depth %d", len(results), chain_depth)
        return results


# =========================
# Replay
# =========================

def _drive(graph: KeyGraph, presses: str) -> str:
    pos = graph.position(ACTIVATE)
    typed = []
    for ch in presses:
        if ch == ACTIVATE:
            typed.append(graph.key_at(pos))
            continue
        try:
            move = Move(ch)
        except ValueError:
            raise KeypadError(f"{ch!r} is not a directional press") from None
        pos = pos.step(move)
        if graph.key_at(pos) is None:
            raise GapError(f"arm left the {graph.name} keypad at {pos}")
    return "".join(typed)


def replay(
    presses: str,
    chain_depth: int,
    numeric: KeyGraph = NUMERIC_KEYPAD,
    directional: KeyGraph = DIRECTIONAL_KEYPAD,
) -> str:
    """Push ``presses`` through the chain and return what the numeric pad types."""
    stream = presses
    for graph in [directional] * chain_depth + [numeric]:
        stream = _drive(graph, stream)
    return stream
