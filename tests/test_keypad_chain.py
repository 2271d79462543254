"""Tests for press counting through chains of keypad robots.

Sample codes and answers are the canonical keypad conundrum example:
    029A 980A 179A 456A 379A -> 126384 with 2 robots

Run:
    pytest tests/test_keypad_chain.py -v
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from keypad_chain import (
    MAX_CHAIN_DEPTH,
    MAX_SEQUENCE_DEPTH,
    CodeResult,
    CostModel,
    SequenceEncoder,
    replay,
)
from keypads import (
    DIRECTIONAL_KEYPAD,
    NUMERIC_KEYPAD,
    GapError,
    KeyGraph,
    KeypadError,
    NoPathError,
    SequenceTooLongError,
    UnknownKeyError,
)

SAMPLE = ["029A", "980A", "179A", "456A", "379A"]
SAMPLE_PRESSES = {"029A": 68, "980A": 60, "179A": 68, "456A": 64, "379A": 64}


@pytest.fixture(scope="module")
def model() -> CostModel:
    return CostModel(NUMERIC_KEYPAD, DIRECTIONAL_KEYPAD)


@pytest.fixture(scope="module")
def encoder(model) -> SequenceEncoder:
    return SequenceEncoder(model)


# ---------------------------------------------------------------------------
# Cost model
# ---------------------------------------------------------------------------


class TestCostModel:
    def test_same_key_costs_one_press(self, model) -> None:
        for depth in range(6):
            for key in DIRECTIONAL_KEYPAD.keys:
                assert model.cost(key, key, depth) == 1
            for key in NUMERIC_KEYPAD.keys:
                assert model.cost_numeric(key, key, depth) == 1

    def test_depth_zero_is_hops_plus_activate(self, model) -> None:
        for a in DIRECTIONAL_KEYPAD.keys:
            for b in DIRECTIONAL_KEYPAD.keys:
                assert model.cost(a, b, 0) == DIRECTIONAL_KEYPAD.hop_count(a, b) + 1
        assert model.cost_numeric("A", "0", 0) == 2
        assert model.cost_numeric("7", "A", 0) == 6

    def test_known_costs(self, model) -> None:
        assert model.cost("A", "<", 0) == 4
        # v<<A beats <v<A one layer up
        assert model.cost("A", "<", 1) == 10
        assert model.cost("<", "A", 1) == 8

    def test_cost_can_be_asymmetric(self, model) -> None:
        keys = DIRECTIONAL_KEYPAD.keys
        assert any(
            model.cost(a, b, 1) != model.cost(b, a, 1)
            for a in keys for b in keys
        )

    def test_monotonic_in_depth(self, model) -> None:
        for a in DIRECTIONAL_KEYPAD.keys:
            for b in DIRECTIONAL_KEYPAD.keys:
                costs = [model.cost(a, b, d) for d in range(8)]
                assert costs == sorted(costs)
        for a in NUMERIC_KEYPAD.keys:
            for b in NUMERIC_KEYPAD.keys:
                costs = [model.cost_numeric(a, b, d) for d in range(8)]
                assert costs == sorted(costs)

    def test_tie_break_prefers_runs(self, model) -> None:
        cost, encoding = model.best_transition(NUMERIC_KEYPAD, "2", "9", 1)
        assert encoding in (">^^A", "^^>A")
        assert model.best_transition(NUMERIC_KEYPAD, "2", "9", 0)[0] == 4
        # ^>^A expands to 10 presses
        assert cost == 8
        assert cost < sum(model.cost(a, b, 0) for a, b in zip("A^>^", "^>^A"))

    def test_unknown_key(self, model) -> None:
        with pytest.raises(UnknownKeyError):
            model.cost("A", "7", 1)
        with pytest.raises(UnknownKeyError):
            model.cost_numeric("A", "<", 1)

    @pytest.mark.parametrize("depth", [-1, MAX_CHAIN_DEPTH + 1])
    def test_depth_out_of_range(self, model, depth) -> None:
        with pytest.raises(ValueError, match="chain depth"):
            model.cost("A", "^", depth)


# ---------------------------------------------------------------------------
# Sequence encoder
# ---------------------------------------------------------------------------


class TestSequenceEncoder:
    @pytest.mark.parametrize("code,presses", sorted(SAMPLE_PRESSES.items()))
    def test_sample_presses(self, encoder, code, presses) -> None:
        assert encoder.total_cost(code, 2) == presses

    def test_numeric_value(self) -> None:
        assert SequenceEncoder.numeric_value("379A") == 379
        assert SequenceEncoder.numeric_value("029A") == 29
        assert SequenceEncoder.numeric_value("A") == 0

    def test_sample_complexity(self, encoder) -> None:
        assert sum(encoder.complexity(code, 2) for code in SAMPLE) == 126384

    def test_sample_complexity_deep_chain(self, encoder) -> None:
        assert sum(encoder.complexity(code, 25) for code in SAMPLE) == 154115708116294

    def test_idempotent_on_warm_cache(self, encoder) -> None:
        first = encoder.total_cost("456A", 25)
        assert encoder.total_cost("456A", 25) == first

    def test_depth_zero_is_numeric_encoding_length(self, encoder) -> None:
        assert encoder.total_cost("029A", 0) == len("<A^A>^^AvvvA")

    def test_unknown_code(self, encoder) -> None:
        with pytest.raises(UnknownKeyError):
            encoder.total_cost("02B", 2)
        assert encoder.total_cost("029A", 2) == 68

    def test_press_levels(self, encoder) -> None:
        levels = encoder.press_levels("029A", 2)
        assert [len(level) for level in levels] == [12, 28, 68]
        assert levels[0] in ("<A^A>^^AvvvA", "<A^A^^>AvvvA")

    @pytest.mark.parametrize("depth", [0, 1, 2, 3, 4])
    def test_press_sequence_is_optimal_and_replays(self, encoder, depth) -> None:
        for code in SAMPLE:
            presses = encoder.press_sequence(code, depth)
            assert len(presses) == encoder.total_cost(code, depth)
            assert replay(presses, depth) == code

    def test_sequence_depth_limit(self, encoder) -> None:
        with pytest.raises(SequenceTooLongError):
            encoder.press_sequence("029A", MAX_SEQUENCE_DEPTH + 1)

    def test_evaluate(self, encoder) -> None:
        results = encoder.evaluate(SAMPLE + ["12X"], 2, max_workers=3)
        assert [r.code for r in results] == SAMPLE + ["12X"]
        assert [r.presses for r in results[:-1]] == [SAMPLE_PRESSES[c] for c in SAMPLE]
        assert sum(r.complexity for r in results[:-1]) == 126384
        assert results[-1].error is not None
        assert results[-1].complexity is None

    def test_evaluate_with_sequence(self, encoder) -> None:
        (result,) = encoder.evaluate(["379A"], 2, with_sequence=True)
        assert len(result.sequence) == 64
        assert result.to_dict()["sequence"] == result.sequence

    def test_evaluate_sequence_depth_limit_fails_up_front(self, encoder) -> None:
        with pytest.raises(SequenceTooLongError):
            encoder.evaluate(SAMPLE, MAX_SEQUENCE_DEPTH + 1, with_sequence=True)
        # Counts alone are fine at that depth
        results = encoder.evaluate(SAMPLE, MAX_SEQUENCE_DEPTH + 1)
        assert all(r.error is None for r in results)

    def test_result_dict(self) -> None:
        ok = CodeResult(code="379A", presses=64, numeric_value=379)
        assert ok.to_dict() == {"code": "379A", "presses": 64, "numeric_value": 379, "complexity": 24256}
        bad = CodeResult(code="x", error="nope")
        assert bad.to_dict() == {"code": "x", "error": "nope"}


# ---------------------------------------------------------------------------
# Shared cost model
# ---------------------------------------------------------------------------


class TestSharedCostModel:
    def test_cold_tables_grown_from_many_threads(self) -> None:
        model = CostModel(NUMERIC_KEYPAD, DIRECTIONAL_KEYPAD)
        encoder = SequenceEncoder(model)
        codes = SAMPLE * 4
        barrier = threading.Barrier(len(codes))

        def run(code):
            barrier.wait()
            return code, encoder.total_cost(code, 25)

        with ThreadPoolExecutor(max_workers=len(codes)) as pool:
            results = list(pool.map(run, codes))

        by_code = {}
        for code, presses in results:
            by_code.setdefault(code, set()).add(presses)
        assert all(len(seen) == 1 for seen in by_code.values())
        assert len(model._tables) == 25
        assert sum(
            SequenceEncoder.numeric_value(code) * seen.pop() for code, seen in by_code.items()
        ) == 154115708116294

    def test_unreachable_numeric_pair_fails_on_query(self) -> None:
        split = KeyGraph.build([["A", None, "9"]], name="split")
        encoder = SequenceEncoder(CostModel(split, DIRECTIONAL_KEYPAD))
        assert encoder.total_cost("AA", 2) == 2
        with pytest.raises(NoPathError):
            encoder.total_cost("9A", 2)


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------


class TestReplay:
    def test_known_chain(self) -> None:
        human = "<vA<AA>>^AvAA<^A>A<v<A>>^AvA^A<vA>^A<v<A>^A>AAvA^A<v<A>A>^AAAvA<^A>A"
        assert replay(human, 2) == "029A"
        assert replay("v<<A>>^A<A>AvA<^AA>A<vAAA>^A", 1) == "029A"
        assert replay("<A^A>^^AvvvA", 0) == "029A"

    def test_arm_over_gap(self) -> None:
        # From A, two lefts put the numeric arm on the gap
        with pytest.raises(GapError):
            replay("<<A", 0)

    def test_bad_press(self) -> None:
        with pytest.raises(KeypadError):
            replay("x", 0)
