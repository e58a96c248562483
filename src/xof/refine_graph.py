"""LangGraph wrapper for the refine loop - trace harness only.

This wraps the refine_loop steps in a LangGraph StateGraph so that each
step is visible as a node in LangGraph Studio.

NO new orchestration logic. Same steps, same attempt accounting as
run_refine_loop(), just structured visibility.
"""

import threading
from dataclasses import fields
from pathlib import Path
from typing import Any, List, Optional
from typing_extensions import TypedDict

from langgraph.graph import StateGraph, END

from xof.code_block import CodeBlock
from xof.config import Config
from xof.model_client import ModelClient
from xof.refine_loop import (
    RefineRun,
    build_prompt_node,
    decide_node,
    execute_node,
    generate_node,
    initial_state,
    persist_node,
    refine_node,
    select_block_node,
)
from xof.refine_state import RefineState
from xof.script_runner import ScriptResult


# Upper bound on graph steps per attempt (build .. refine)
STEPS_PER_ATTEMPT = 7


class RefineGraphState(TypedDict):
    """State for the refine graph - mirrors RefineState fields."""
    output_path: Path
    language: str
    max_attempts: int
    attempts: int
    context_files: List[Path]
    prompt: str
    response: Optional[str]
    code: Optional[CodeBlock]
    result: Optional[ScriptResult]
    review: Optional[str]
    status: str
    # Collaborators (passed through state)
    run: Any


def graph_to_refine_state(state: RefineGraphState) -> RefineState:
    return RefineState(**{f.name: state[f.name] for f in fields(RefineState)})


def refine_state_to_graph(rs: RefineState, run: RefineRun) -> RefineGraphState:
    values = {f.name: getattr(rs, f.name) for f in fields(RefineState)}
    return {**values, "run": run}


def _wrap(step):
    """Lift a refine_loop step into a graph node."""
    def node(state: RefineGraphState) -> RefineGraphState:
        rs = step(graph_to_refine_state(state), state["run"])
        return refine_state_to_graph(rs, state["run"])
    node.__name__ = step.__name__
    node.__doc__ = step.__doc__
    return node


def node_start(state: RefineGraphState) -> RefineGraphState:
    """No attempt budget means nothing to do."""
    status = "FAILED" if state["max_attempts"] == 0 else "RUNNING"
    return {**state, "status": status}


# --- Conditional Edges ---

def should_start(state: RefineGraphState) -> str:
    return "end" if state["status"] == "FAILED" else "build_prompt"


def should_refine(state: RefineGraphState) -> str:
    """Loop back while the last attempt failed and attempts remain."""
    if state["status"] == "REFINE":
        return "refine"
    return "end"


# --- Graph Builder ---

def build_refine_graph() -> StateGraph:
    """
    Build the refine graph.

    Flow:
        start -> build_prompt -> generate -> select_block -> persist
              -> execute -> decide -> (SUCCESS | FAILED) -> end
                                   -> (REFINE) -> refine -> build_prompt
    """
    graph = StateGraph(RefineGraphState)

    graph.add_node("start", node_start)
    graph.add_node("build_prompt", _wrap(build_prompt_node))
    graph.add_node("generate", _wrap(generate_node))
    graph.add_node("select_block", _wrap(select_block_node))
    graph.add_node("persist", _wrap(persist_node))
    graph.add_node("execute", _wrap(execute_node))
    graph.add_node("decide", _wrap(decide_node))
    graph.add_node("refine", _wrap(refine_node))

    graph.set_entry_point("start")

    graph.add_conditional_edges(
        "start",
        should_start,
        {"end": END, "build_prompt": "build_prompt"},
    )
    graph.add_edge("build_prompt", "generate")
    graph.add_edge("generate", "select_block")
    graph.add_edge("select_block", "persist")
    graph.add_edge("persist", "execute")
    graph.add_edge("execute", "decide")
    graph.add_conditional_edges(
        "decide",
        should_refine,
        {"end": END, "refine": "refine"},
    )
    graph.add_edge("refine", "build_prompt")

    return graph


def run_refine_graph(
    config: Config,
    client: ModelClient,
    cancel: Optional[threading.Event] = None,
    trace: bool = False,
) -> RefineState:
    """
    Run the refine graph and return final state.

    This is the traced equivalent of run_refine_loop().
    """
    compiled = build_refine_graph().compile()

    run = RefineRun(config=config, client=client, cancel=cancel, trace=trace)
    initial = refine_state_to_graph(initial_state(config), run)

    final_state = compiled.invoke(
        initial,
        config={"recursion_limit": STEPS_PER_ATTEMPT * initial["max_attempts"] + 10},
    )

    return graph_to_refine_state(final_state)


# Pre-compiled graph for Studio discovery
refine_graph = build_refine_graph().compile()
