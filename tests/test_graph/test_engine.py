"""
Tests for the pipeline engine (define_graph / run / arun)

Covers:
1. Routing: linear, branching, async steps, terminals
2. Failure semantics: error outcome, unhandled_error, timeouts, bad updates
3. Construction-time validation
4. Isolation: state copies, determinism, concurrent runs
"""

import asyncio
from typing import Optional, TypedDict

import pytest

from signal_agent.exceptions import GraphDefinitionError, NodeExecutionError
from signal_agent.graph.engine import (
    ERROR_OUTCOME,
    UNHANDLED_ERROR_TERMINAL,
    PipelineRunState,
    Terminal,
    arun,
    define_graph,
    run,
)


class DemoState(PipelineRunState):
    ticker: str
    value: int
    note: Optional[str]


class BareState(TypedDict):
    ticker: str


def _ok(update=None, outcome="ok"):
    def step(state):
        return dict(update or {}), outcome
    return step


def _boom(state):
    raise RuntimeError("boom")


def _linear_graph(**kwargs):
    return define_graph(
        nodes={
            "start": lambda s: ({"value": s["value"] + 1}, "ok"),
            "double": lambda s: ({"value": s["value"] * 2}, "ok"),
        },
        edges={
            ("start", "ok"): "double",
            ("double", "ok"): Terminal("done"),
        },
        entry="start",
        state_schema=DemoState,
        **kwargs,
    )


# ============================================================================
# ROUTING
# ============================================================================

class TestRouting:
    """Transitions follow the (node, outcome) table until a terminal"""

    def test_linear_run(self):
        final = run(_linear_graph(), {"ticker": "SOL", "value": 1})

        assert final["terminal"] == "done"
        assert final["path"] == ["start", "double"]
        assert final["value"] == 4
        assert final["outcome"] == "ok"
        assert final.get("error") is None
        assert set(final["node_execution_times"]) == {"start", "double"}

    def test_branching_by_outcome(self):
        def check(state):
            return {}, "high" if state["value"] > 10 else "low"

        graph = define_graph(
            nodes={"check": check, "annotate": _ok({"note": "big"})},
            edges={
                ("check", "high"): "annotate",
                ("check", "low"): Terminal("skipped"),
                ("annotate", "ok"): Terminal("done"),
            },
            entry="check",
            state_schema=DemoState,
        )

        low = graph.run({"ticker": "A", "value": 3})
        high = graph.run({"ticker": "B", "value": 30})

        assert low["terminal"] == "skipped"
        assert low["path"] == ["check"]
        assert high["terminal"] == "done"
        assert high["path"] == ["check", "annotate"]
        assert high["note"] == "big"

    def test_async_steps(self):
        async def fetch(state):
            await asyncio.sleep(0)
            return {"note": f"fetched {state['ticker']}"}, "ok"

        graph = define_graph(
            nodes={"fetch": fetch},
            edges={("fetch", "ok"): Terminal("done")},
            entry="fetch",
            state_schema=DemoState,
        )
        final = graph.run({"ticker": "SOL", "value": 0})

        assert final["note"] == "fetched SOL"
        assert final["terminal"] == "done"

    def test_terminal_stops_the_run(self):
        calls = []

        def later(state):
            calls.append(state["ticker"])
            return {}, "ok"

        graph = define_graph(
            nodes={"gate": _ok(outcome="stop"), "later": later},
            edges={
                ("gate", "stop"): Terminal("stopped"),
                ("gate", "go"): "later",
                ("later", "ok"): Terminal("done"),
            },
            entry="gate",
            state_schema=DemoState,
        )
        final = graph.run({"ticker": "SOL", "value": 0})

        assert final["terminal"] == "stopped"
        assert calls == []

    def test_none_update_is_allowed(self):
        graph = define_graph(
            nodes={"noop": lambda s: (None, "ok")},
            edges={("noop", "ok"): Terminal("done")},
            entry="noop",
            state_schema=DemoState,
        )
        assert graph.run({"ticker": "X", "value": 7})["value"] == 7

    @pytest.mark.asyncio
    async def test_arun_module_function(self):
        final = await arun(_linear_graph(), {"ticker": "SOL", "value": 0})
        assert final["terminal"] == "done"

    def test_terminals_property(self):
        assert _linear_graph().terminals == ["done", UNHANDLED_ERROR_TERMINAL]


# ============================================================================
# FAILURE SEMANTICS
# ============================================================================

class TestFailureSemantics:
    """Step failures become outcome 'error'; missing transitions stop at unhandled_error"""

    def test_exception_routes_to_error_terminal(self):
        graph = define_graph(
            nodes={"explode": _boom},
            edges={("explode", ERROR_OUTCOME): Terminal("error")},
            entry="explode",
            state_schema=DemoState,
        )
        final = graph.run({"ticker": "SOL", "value": 0})

        assert final["terminal"] == "error"
        assert final["outcome"] == ERROR_OUTCOME
        assert isinstance(final["error"], NodeExecutionError)
        assert final["error"].node_name == "explode"
        assert isinstance(final["error"].cause, RuntimeError)
        assert "boom" in str(final["error"])

    def test_exception_without_error_edge_is_unhandled(self):
        graph = define_graph(
            nodes={"explode": _boom},
            edges={("explode", "ok"): Terminal("done")},
            entry="explode",
            state_schema=DemoState,
        )
        final = graph.run({"ticker": "SOL", "value": 0})

        assert final["terminal"] == UNHANDLED_ERROR_TERMINAL
        assert isinstance(final["error"].cause, RuntimeError)

    def test_unknown_outcome_is_unhandled(self):
        graph = define_graph(
            nodes={"guess": _ok(outcome="surprise")},
            edges={("guess", "ok"): Terminal("done")},
            entry="guess",
            state_schema=DemoState,
        )
        final = graph.run({"ticker": "SOL", "value": 0})

        assert final["terminal"] == UNHANDLED_ERROR_TERMINAL
        assert final["outcome"] == "surprise"
        assert "no transition" in str(final["error"])

    def test_timeout_becomes_error(self):
        async def slow(state):
            await asyncio.sleep(1)
            return {}, "ok"

        graph = define_graph(
            nodes={"slow": slow},
            edges={("slow", "ok"): Terminal("done"), ("slow", ERROR_OUTCOME): Terminal("error")},
            entry="slow",
            state_schema=DemoState,
            node_timeout=0.05,
        )
        final = graph.run({"ticker": "SOL", "value": 0})

        assert final["terminal"] == "error"
        assert "timed out" in str(final["error"])

    @pytest.mark.parametrize("update", [
        {"ticker": "ETH"},                # frozen key changed
        {"unknown_field": 1},             # outside schema
        {"terminal": "hijacked"},         # engine field
        {"path": ["fake"]},               # engine field
    ])
    def test_invalid_updates_become_error(self, update):
        graph = define_graph(
            nodes={"bad": _ok(update)},
            edges={("bad", "ok"): Terminal("done"), ("bad", ERROR_OUTCOME): Terminal("error")},
            entry="bad",
            state_schema=DemoState,
            frozen_keys=("ticker",),
        )
        final = graph.run({"ticker": "SOL", "value": 0})

        assert final["terminal"] == "error"
        assert final["ticker"] == "SOL"
        assert final["path"] == ["bad"]

    def test_rewriting_frozen_key_with_same_value_is_allowed(self):
        graph = define_graph(
            nodes={"echo": lambda s: ({"ticker": s["ticker"]}, "ok")},
            edges={("echo", "ok"): Terminal("done")},
            entry="echo",
            state_schema=DemoState,
            frozen_keys=("ticker",),
        )
        assert graph.run({"ticker": "SOL", "value": 0})["terminal"] == "done"

    @pytest.mark.parametrize("result", [
        {"value": 1},             # not a tuple
        ({"value": 1}, ""),       # empty outcome
        (["value"], "ok"),        # update not a mapping
    ])
    def test_malformed_step_result_becomes_error(self, result):
        graph = define_graph(
            nodes={"weird": lambda s: result},
            edges={("weird", "ok"): Terminal("done"), ("weird", ERROR_OUTCOME): Terminal("error")},
            entry="weird",
            state_schema=DemoState,
        )
        final = graph.run({"ticker": "SOL", "value": 0})

        assert final["terminal"] == "error"
        assert isinstance(final["error"], NodeExecutionError)


# ============================================================================
# CONSTRUCTION
# ============================================================================

class TestDefineGraphValidation:
    """Malformed definitions are rejected before anything runs"""

    def test_empty_graph(self):
        with pytest.raises(GraphDefinitionError):
            define_graph(nodes={}, edges={}, entry="a", state_schema=DemoState)

    def test_missing_entry(self):
        with pytest.raises(GraphDefinitionError, match="Entry node"):
            define_graph(nodes={"a": _ok()}, edges={}, entry="b", state_schema=DemoState)

    def test_non_callable_step(self):
        with pytest.raises(GraphDefinitionError, match="not callable"):
            define_graph(nodes={"a": "nope"}, edges={}, entry="a", state_schema=DemoState)

    def test_edge_to_undefined_node(self):
        with pytest.raises(GraphDefinitionError, match="undefined node"):
            define_graph(
                nodes={"a": _ok()}, edges={("a", "ok"): "ghost"}, entry="a", state_schema=DemoState,
            )

    def test_edge_from_undefined_node(self):
        with pytest.raises(GraphDefinitionError, match="undefined node"):
            define_graph(
                nodes={"a": _ok()}, edges={("ghost", "ok"): Terminal("done")}, entry="a", state_schema=DemoState,
            )

    def test_malformed_edge_key(self):
        with pytest.raises(GraphDefinitionError):
            define_graph(nodes={"a": _ok()}, edges={"a": Terminal("done")}, entry="a", state_schema=DemoState)

    def test_cycle_rejected(self):
        with pytest.raises(GraphDefinitionError, match="acyclic"):
            define_graph(
                nodes={"a": _ok(), "b": _ok()},
                edges={("a", "ok"): "b", ("b", "ok"): "a"},
                entry="a",
                state_schema=DemoState,
            )

    def test_self_loop_rejected(self):
        with pytest.raises(GraphDefinitionError, match="acyclic"):
            define_graph(nodes={"a": _ok()}, edges={("a", "ok"): "a"}, entry="a", state_schema=DemoState)

    def test_reserved_terminal_name(self):
        with pytest.raises(GraphDefinitionError, match="reserved"):
            define_graph(
                nodes={"a": _ok()},
                edges={("a", "ok"): Terminal(UNHANDLED_ERROR_TERMINAL)},
                entry="a",
                state_schema=DemoState,
            )

    @pytest.mark.parametrize("name", ["a:b", "fetch|retry"])
    def test_reserved_character_in_node_name(self, name):
        with pytest.raises(GraphDefinitionError, match="reserved character"):
            define_graph(
                nodes={name: _ok()},
                edges={(name, "ok"): Terminal("done")},
                entry=name,
                state_schema=DemoState,
            )

    def test_schema_without_engine_fields(self):
        with pytest.raises(GraphDefinitionError, match="PipelineRunState"):
            define_graph(nodes={"a": _ok()}, edges={}, entry="a", state_schema=BareState)

    def test_node_name_clashing_with_state_field(self):
        with pytest.raises(GraphDefinitionError, match="clash"):
            define_graph(nodes={"note": _ok()}, edges={}, entry="note", state_schema=DemoState)

    def test_unknown_frozen_key(self):
        with pytest.raises(GraphDefinitionError, match="Frozen"):
            define_graph(
                nodes={"a": _ok()}, edges={}, entry="a", state_schema=DemoState, frozen_keys=("missing",),
            )

    def test_declared_outcome_without_transition(self):
        with pytest.raises(GraphDefinitionError, match="No transition"):
            define_graph(
                nodes={"a": _ok()},
                edges={("a", "ok"): Terminal("done")},
                entry="a",
                state_schema=DemoState,
                outcomes={"a": ("ok", "reject")},
            )

    def test_edge_for_undeclared_outcome(self):
        with pytest.raises(GraphDefinitionError, match="undeclared"):
            define_graph(
                nodes={"a": _ok()},
                edges={("a", "ok"): Terminal("done"), ("a", "other"): Terminal("done")},
                entry="a",
                state_schema=DemoState,
                outcomes={"a": ("ok",)},
            )

    def test_error_outcome_needs_no_declaration(self):
        graph = define_graph(
            nodes={"a": _ok()},
            edges={("a", "ok"): Terminal("done"), ("a", ERROR_OUTCOME): Terminal("error")},
            entry="a",
            state_schema=DemoState,
            outcomes={"a": ("ok",)},
        )
        assert graph.entry == "a"

    def test_definition_error_is_value_error(self):
        with pytest.raises(ValueError):
            define_graph(nodes={}, edges={}, entry="a", state_schema=DemoState)


# ============================================================================
# ISOLATION
# ============================================================================

class TestIsolation:
    """Runs are independent and steps cannot corrupt shared state"""

    def test_unknown_initial_key_rejected(self):
        with pytest.raises(ValueError, match="outside the state schema"):
            _linear_graph().run({"ticker": "SOL", "value": 0, "bogus": True})

    def test_step_receives_a_copy(self):
        seen = []

        def mutate(state):
            state["value"] = 999
            return {}, "ok"

        def observe(state):
            seen.append(state["value"])
            return {}, "ok"

        graph = define_graph(
            nodes={"mutate": mutate, "observe": observe},
            edges={("mutate", "ok"): "observe", ("observe", "ok"): Terminal("done")},
            entry="mutate",
            state_schema=DemoState,
        )
        final = graph.run({"ticker": "SOL", "value": 5})

        assert seen == [5]
        assert final["value"] == 5

    def test_deterministic_for_same_input(self):
        graph = _linear_graph()
        first = graph.run({"ticker": "SOL", "value": 3})
        second = graph.run({"ticker": "SOL", "value": 3})

        assert first["terminal"] == second["terminal"]
        assert first["path"] == second["path"]
        assert first["value"] == second["value"]

    @pytest.mark.asyncio
    async def test_concurrent_runs_share_one_graph(self):
        async def tag(state):
            await asyncio.sleep(0.01 * (state["value"] % 3))
            return {"note": state["ticker"]}, "ok"

        graph = define_graph(
            nodes={"tag": tag},
            edges={("tag", "ok"): Terminal("done")},
            entry="tag",
            state_schema=DemoState,
        )
        tickers = [f"T{i}" for i in range(6)]
        finals = await asyncio.gather(*[
            graph.arun({"ticker": t, "value": i}) for i, t in enumerate(tickers)
        ])

        assert [f["note"] for f in finals] == tickers
        assert all(f["path"] == ["tag"] for f in finals)
