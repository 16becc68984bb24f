"""
Pipeline Engine

A small DAG executor built on LangGraph's StateGraph. Each node is a step

    step(state) -> (partial_update, outcome_label)        # sync or async

and routing is an explicit transition table

    edges[(node_name, outcome_label)] -> next_node_name | Terminal(name)

The engine wraps every step so that:
- the step receives a copy of the running state and returns a partial update
  (shallow-merged by LangGraph, later values overwrite earlier ones)
- a step that raises (or exceeds the node timeout) produces outcome 'error',
  with the exception wrapped in NodeExecutionError under state['error']
- an outcome without a transition stops the run at the 'unhandled_error'
  terminal, carrying the error
- reaching a Terminal writes state['terminal'] and routes to END, so no
  further node can run for that state

Construction (define_graph) rejects undefined nodes, a missing entry node,
cycles, and (when outcome labels are declared) non-exhaustive transitions.

Example:
    >>> graph = define_graph(
    ...     nodes={'check': check_step, 'fetch': fetch_step},
    ...     edges={
    ...         ('check', 'ok'): 'fetch',
    ...         ('check', 'reject'): Terminal('rejected'),
    ...         ('fetch', 'done'): Terminal('complete'),
    ...         ('fetch', 'error'): Terminal('error'),
    ...     },
    ...     entry='check',
    ...     state_schema=MyState,
    ... )
    >>> final_state = graph.run({'ticker': 'SOL'})
    >>> final_state['terminal']
    'complete'
"""

import asyncio
import inspect
import logging
import operator
import time
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypedDict,
    Union,
    get_type_hints,
)

from langgraph.graph import END, START, StateGraph

from signal_agent.exceptions import GraphDefinitionError, NodeExecutionError

logger = logging.getLogger(__name__)


ERROR_OUTCOME = "error"
UNHANDLED_ERROR_TERMINAL = "unhandled_error"

# Fields owned by the engine; steps may not write them
ENGINE_FIELDS = ("outcome", "terminal", "error", "path", "node_execution_times")

# LangGraph rejects these characters in node names
RESERVED_NAME_CHARS = (":", "|")


@dataclass(frozen=True)
class Terminal:
    """Named end state of a pipeline run."""

    name: str


class PipelineRunState(TypedDict):
    """
    Engine bookkeeping fields. Every pipeline state schema must extend this.
    """

    outcome: Optional[str]                                          # Last outcome label
    terminal: Optional[str]                                         # Terminal reached
    error: Optional[NodeExecutionError]                             # Failure carried to the terminal
    path: Annotated[List[str], operator.add]                        # Nodes executed, in order
    node_execution_times: Annotated[Dict[str, float], operator.or_]  # Seconds per node


StepResult = Tuple[Optional[Mapping[str, Any]], str]
Step = Callable[[Dict[str, Any]], Union[StepResult, Awaitable[StepResult]]]
Target = Union[str, Terminal]


# ============================================================================
# GRAPH VALIDATION
# ============================================================================

def _find_cycle(nodes: Iterable[str], adjacency: Mapping[str, Sequence[str]]) -> Optional[List[str]]:
    """Return one cycle as a node list, or None if the graph is acyclic."""
    white, grey, black = 0, 1, 2
    color = {name: white for name in nodes}
    stack: List[str] = []

    def visit(name: str) -> Optional[List[str]]:
        color[name] = grey
        stack.append(name)
        for nxt in adjacency.get(name, ()):
            if color[nxt] == grey:
                return stack[stack.index(nxt):] + [nxt]
            if color[nxt] == white:
                found = visit(nxt)
                if found:
                    return found
        stack.pop()
        color[name] = black
        return None

    for name in list(color):
        if color[name] == white:
            found = visit(name)
            if found:
                return found
    return None


def _validate_definition(
    nodes: Mapping[str, Step],
    edges: Mapping[Tuple[str, str], Target],
    entry: str,
    state_schema: type,
    outcomes: Optional[Mapping[str, Sequence[str]]],
    frozen_keys: Sequence[str],
) -> None:
    if not nodes:
        raise GraphDefinitionError("Graph has no nodes")

    for name, step in nodes.items():
        if not isinstance(name, str) or not name:
            raise GraphDefinitionError(f"Invalid node name: {name!r}")
        if name in (START, END):
            raise GraphDefinitionError(f"Node name '{name}' is reserved")
        if any(char in name for char in RESERVED_NAME_CHARS):
            raise GraphDefinitionError(f"Node name '{name}' contains a reserved character")
        if not callable(step):
            raise GraphDefinitionError(f"Step for node '{name}' is not callable")

    if entry not in nodes:
        raise GraphDefinitionError(f"Entry node '{entry}' is not defined")

    adjacency: Dict[str, List[str]] = {name: [] for name in nodes}
    for key, target in edges.items():
        if not (isinstance(key, tuple) and len(key) == 2):
            raise GraphDefinitionError(f"Edge key must be (node, outcome), got {key!r}")
        source, outcome = key
        if source not in nodes:
            raise GraphDefinitionError(f"Edge {key!r} starts at undefined node '{source}'")
        if not isinstance(outcome, str) or not outcome:
            raise GraphDefinitionError(f"Edge {key!r} has an invalid outcome label")
        if isinstance(target, Terminal):
            if target.name == UNHANDLED_ERROR_TERMINAL:
                raise GraphDefinitionError(f"Terminal name '{UNHANDLED_ERROR_TERMINAL}' is reserved")
            continue
        if not isinstance(target, str) or target not in nodes:
            raise GraphDefinitionError(f"Edge {key!r} points to undefined node {target!r}")
        adjacency[source].append(target)

    cycle = _find_cycle(nodes, adjacency)
    if cycle:
        raise GraphDefinitionError(f"Graph must be acyclic, found cycle: {' -> '.join(cycle)}")

    fields = get_type_hints(state_schema)
    missing = [field for field in ENGINE_FIELDS if field not in fields]
    if missing:
        raise GraphDefinitionError(
            f"State schema {state_schema.__name__} must extend PipelineRunState "
            f"(missing: {', '.join(missing)})"
        )
    clashing = sorted(name for name in nodes if name in fields)
    if clashing:
        raise GraphDefinitionError(f"Node names clash with state fields: {', '.join(clashing)}")
    unknown_frozen = [key for key in frozen_keys if key not in fields]
    if unknown_frozen:
        raise GraphDefinitionError(f"Frozen keys not in state schema: {', '.join(unknown_frozen)}")

    if outcomes is not None:
        for name, labels in outcomes.items():
            if name not in nodes:
                raise GraphDefinitionError(f"Outcomes declared for undefined node '{name}'")
            for label in labels:
                if label != ERROR_OUTCOME and (name, label) not in edges:
                    raise GraphDefinitionError(f"No transition for declared outcome ({name!r}, {label!r})")
        for source, outcome in edges:
            declared = outcomes.get(source)
            if declared is not None and outcome != ERROR_OUTCOME and outcome not in declared:
                raise GraphDefinitionError(f"Edge for undeclared outcome ({source!r}, {outcome!r})")

    reachable = {entry}
    frontier = [entry]
    while frontier:
        for nxt in adjacency[frontier.pop()]:
            if nxt not in reachable:
                reachable.add(nxt)
                frontier.append(nxt)
    unreachable = sorted(set(nodes) - reachable)
    if unreachable:
        logger.warning(f"Nodes unreachable from entry '{entry}': {', '.join(unreachable)}")


# ============================================================================
# PIPELINE GRAPH
# ============================================================================

class PipelineGraph:
    """
    A validated, compiled pipeline. Build it with define_graph().

    The compiled LangGraph graph is stateless between invocations, so one
    PipelineGraph can serve many concurrent runs.
    """

    def __init__(
        self,
        nodes: Mapping[str, Step],
        edges: Mapping[Tuple[str, str], Target],
        entry: str,
        state_schema: type,
        frozen_keys: Sequence[str] = (),
        node_timeout: Optional[float] = None,
    ):
        self.nodes: Dict[str, Step] = dict(nodes)
        self.edges: Dict[Tuple[str, str], Target] = dict(edges)
        self.entry = entry
        self.state_schema = state_schema
        self.frozen_keys = tuple(frozen_keys)
        self.node_timeout = node_timeout if node_timeout and node_timeout > 0 else None
        self._state_fields = frozenset(get_type_hints(state_schema))
        self.compiled = self._compile()

    @property
    def terminals(self) -> List[str]:
        """All terminal names reachable through declared edges, plus unhandled_error."""
        names = sorted({t.name for t in self.edges.values() if isinstance(t, Terminal)})
        return names + [UNHANDLED_ERROR_TERMINAL]

    def transition(self, node_name: str, outcome: Optional[str]) -> Optional[Target]:
        return self.edges.get((node_name, outcome))

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def _compile(self):
        workflow = StateGraph(self.state_schema)

        for name, step in self.nodes.items():
            workflow.add_node(name, self._wrap_step(name, step))

        workflow.add_edge(START, self.entry)

        for name in self.nodes:
            path_map = {
                target: target
                for (source, _), target in self.edges.items()
                if source == name and isinstance(target, str)
            }
            path_map[END] = END
            workflow.add_conditional_edges(name, self._make_router(name), path_map)

        return workflow.compile()

    def _make_router(self, node_name: str):
        def route(state: Dict[str, Any]) -> str:
            if state.get("terminal"):
                return END
            # The step wrapper already resolved Terminal / missing transitions
            return self.transition(node_name, state.get("outcome"))

        route.__name__ = f"route_after_{node_name}"
        return route

    def _wrap_step(self, node_name: str, step: Step):
        async def run_step(state: Dict[str, Any]) -> Dict[str, Any]:
            started = time.perf_counter()
            try:
                update, outcome = await self._invoke_step(node_name, step, dict(state))
                self._check_update(node_name, update, state)
            except Exception as exc:
                error = exc if isinstance(exc, NodeExecutionError) else NodeExecutionError.from_exception(node_name, exc)
                logger.error(f"Pipeline node '{node_name}' failed: {error}")
                update, outcome = {"error": error}, ERROR_OUTCOME

            update["outcome"] = outcome
            target = self.transition(node_name, outcome)
            if target is None:
                if "error" not in update:
                    update["error"] = NodeExecutionError(
                        node_name, f"no transition defined for outcome '{outcome}'"
                    )
                update["terminal"] = UNHANDLED_ERROR_TERMINAL
                logger.error(f"Pipeline stopped at '{UNHANDLED_ERROR_TERMINAL}' after '{node_name}' ({outcome})")
            elif isinstance(target, Terminal):
                update["terminal"] = target.name
                logger.info(f"Pipeline reached terminal '{target.name}' after '{node_name}'")
            else:
                logger.debug(f"Pipeline transition {node_name} --{outcome}--> {target}")

            update["path"] = [node_name]
            update["node_execution_times"] = {node_name: time.perf_counter() - started}
            return update

        run_step.__name__ = node_name
        return run_step

    async def _invoke_step(self, node_name: str, step: Step, state: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
        result = step(state)
        if inspect.isawaitable(result):
            if self.node_timeout is not None:
                try:
                    result = await asyncio.wait_for(result, timeout=self.node_timeout)
                except asyncio.TimeoutError as exc:
                    raise NodeExecutionError(
                        node_name, f"timed out after {self.node_timeout:g}s", cause=exc
                    ) from exc
            else:
                result = await result

        if not (isinstance(result, tuple) and len(result) == 2):
            raise NodeExecutionError(node_name, f"step must return (update, outcome), got {type(result).__name__}")

        update, outcome = result
        if update is None:
            update = {}
        if not isinstance(update, Mapping):
            raise NodeExecutionError(node_name, f"update must be a mapping, got {type(update).__name__}")
        if not isinstance(outcome, str) or not outcome:
            raise NodeExecutionError(node_name, f"outcome must be a non-empty string, got {outcome!r}")
        return dict(update), outcome

    def _check_update(self, node_name: str, update: Mapping[str, Any], state: Mapping[str, Any]) -> None:
        engine_keys = sorted(set(update) & set(ENGINE_FIELDS))
        if engine_keys:
            raise NodeExecutionError(node_name, f"steps may not write engine fields: {', '.join(engine_keys)}")

        unknown = sorted(set(update) - self._state_fields)
        if unknown:
            raise NodeExecutionError(node_name, f"update has keys outside the state schema: {', '.join(unknown)}")

        changed = [key for key in self.frozen_keys if key in update and update[key] != state.get(key)]
        if changed:
            raise NodeExecutionError(node_name, f"identity fields are immutable during a run: {', '.join(changed)}")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _prepare_input(self, initial_state: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = sorted(set(initial_state) - self._state_fields)
        if unknown:
            raise ValueError(f"Initial state has keys outside the state schema: {', '.join(unknown)}")

        state = dict(initial_state)
        state.update(outcome=None, terminal=None, error=None, path=[], node_execution_times={})
        return state

    async def arun(self, initial_state: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Execute the pipeline once and return the final state.

        The returned state always carries 'terminal' (the end state reached)
        and 'path' (nodes executed, in order).
        """
        state = self._prepare_input(initial_state)
        config = {"recursion_limit": len(self.nodes) + 5}
        final_state = await self.compiled.ainvoke(state, config=config)
        return dict(final_state)

    def run(self, initial_state: Mapping[str, Any]) -> Dict[str, Any]:
        """Synchronous wrapper around arun(). Not usable inside a running event loop."""
        return asyncio.run(self.arun(initial_state))


# ============================================================================
# PUBLIC API
# ============================================================================

def define_graph(
    nodes: Mapping[str, Step],
    edges: Mapping[Tuple[str, str], Target],
    entry: str,
    state_schema: type,
    outcomes: Optional[Mapping[str, Sequence[str]]] = None,
    frozen_keys: Sequence[str] = (),
    node_timeout: Optional[float] = None,
) -> PipelineGraph:
    """
    Validate and compile a pipeline graph.

    Args:
        nodes: Node name -> step function (sync or async)
        edges: (node name, outcome label) -> next node name or Terminal
        entry: Name of the first node
        state_schema: TypedDict extending PipelineRunState
        outcomes: Optional node name -> every outcome label the step can return.
            When given, each non-error label must have a transition.
        frozen_keys: State fields steps may not change during a run
        node_timeout: Seconds an awaited step may take before it counts as 'error'

    Returns:
        PipelineGraph ready to run

    Raises:
        GraphDefinitionError: If the definition is invalid
    """
    _validate_definition(nodes, edges, entry, state_schema, outcomes, frozen_keys)
    graph = PipelineGraph(nodes, edges, entry, state_schema, frozen_keys, node_timeout)
    logger.info(
        f"Pipeline graph defined: {len(graph.nodes)} nodes, {len(graph.edges)} transitions, "
        f"entry='{entry}', terminals={graph.terminals}"
    )
    return graph


async def arun(graph: PipelineGraph, initial_state: Mapping[str, Any]) -> Dict[str, Any]:
    return await graph.arun(initial_state)


def run(graph: PipelineGraph, initial_state: Mapping[str, Any]) -> Dict[str, Any]:
    return graph.run(initial_state)
