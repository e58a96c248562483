"""Generate -> extract -> execute -> refine loop.

Each attempt makes exactly one generate call (plus one review call when
`review` is enabled and the attempt failed). Backend, filesystem and process
start-up failures abort the loop; only verification failures and responses
without a matching code block are retried.
"""

import threading
from dataclasses import dataclass
from typing import Optional

from xof.code_block import CodeBlock, lang_from_file
from xof.config import Config
from xof.markdown import extract_code_blocks, select_code_block
from xof.model_client import ModelClient, traced_generate
from xof.prompts import build_prompt, review_prompt
from xof.refine_state import RefineState
from xof.script_runner import (
    ScriptCancelledError,
    ScriptResult,
    ScriptSetupError,
    run_script,
)


class NoCodeBlockError(Exception):
    """The response had no code block tagged with the expected language."""

    def __init__(self, language: str):
        self.language = language
        super().__init__(f"no `{language}` code block found in response")


class AttemptsExhaustedError(Exception):
    """Every attempt failed verification."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"attempted {attempts} time(s) and failed")


class RefineCancelledError(Exception):
    """The cancel event was set while the loop was running."""
    pass


@dataclass
class RefineRun:
    """Collaborators shared by every step of one loop run."""
    config: Config
    client: ModelClient
    cancel: Optional[threading.Event] = None
    trace: bool = False


def _echo(*lines: str) -> None:
    for line in lines:
        print(line, flush=True)


def _check_cancel(run: RefineRun) -> None:
    if run.cancel is not None and run.cancel.is_set():
        raise RefineCancelledError("refine loop cancelled")


def _generate(run: RefineRun, prompt: str, phase: str, attempt: int) -> str:
    model = run.config.resolved_model()
    if run.trace:
        result = traced_generate(run.client, model, prompt, phase=phase, attempt=attempt)
    else:
        result = run.client.generate(model, prompt)
    return result.content


def initial_state(config: Config) -> RefineState:
    output_path = config.output_path()
    return RefineState(
        output_path=output_path,
        language=lang_from_file(output_path),
        max_attempts=max(config.attempt, 0),
        context_files=config.context_files(),
    )


# --- Steps ---

def build_prompt_node(state: RefineState, run: RefineRun) -> RefineState:
    """Compose the prompt; from the second attempt on, fold in the last failure."""
    failure = state.result.render() if state.result is not None else None
    state.prompt = build_prompt(
        run.config.prompt,
        state.context_files,
        code=state.code,
        failure=failure,
        review=state.review,
    )
    state.status = "RUNNING"
    return state


def generate_node(state: RefineState, run: RefineRun) -> RefineState:
    """Call the backend. ModelClientError propagates: it is not retried."""
    _check_cancel(run)
    state.attempts += 1
    _echo(f"=== attempt {state.attempts}/{state.max_attempts} ===")
    state.response = _generate(run, state.prompt, "generate", state.attempts)
    return state


def select_block_node(state: RefineState, run: RefineRun) -> RefineState:
    """
    Keep the last code block tagged with the output file's language.

    Without a match the attempt fails here: the raw response becomes the
    "previous code" of the next prompt and nothing is written or executed.
    """
    code = select_code_block(extract_code_blocks(state.response or ""), state.language)
    if code is None:
        state.code = CodeBlock(language="markdown", content=state.response or "")
        state.result = ScriptResult(error=NoCodeBlockError(state.language))
        _echo("=== no code generated ===", state.result.render())
        return state

    state.code = code
    state.result = None
    _echo("=== generated code ===", str(code))
    return state


def persist_node(state: RefineState, run: RefineRun) -> RefineState:
    # A result already set means select_block_node failed this attempt
    if state.result is not None:
        return state
    state.code.write_to(state.output_path)
    return state


def execute_node(state: RefineState, run: RefineRun) -> RefineState:
    """Run the verification script; no script means the attempt passes."""
    if state.result is not None:
        return state
    if not run.config.script:
        state.result = ScriptResult()
        return state

    result = run_script(run.config.script, cancel=run.cancel, timeout=run.config.timeout)
    if isinstance(result.error, (ScriptSetupError, ScriptCancelledError)):
        raise result.error

    state.result = result
    if result.ok:
        _echo("=== PASSED with output ===", result.stdout)
    else:
        _echo("=== FAILED with output ===", result.render())
    return state


def decide_node(state: RefineState, run: RefineRun) -> RefineState:
    if state.result is not None and state.result.ok:
        state.status = "SUCCESS"
    elif state.attempts >= state.max_attempts:
        state.status = "FAILED"
    else:
        state.status = "REFINE"
    return state


def refine_node(state: RefineState, run: RefineRun) -> RefineState:
    """Optionally ask the backend to review the failure before the next attempt."""
    state.review = None
    if run.config.review:
        _check_cancel(run)
        state.review = _generate(
            run,
            review_prompt(state.code, state.result.render()),
            "review",
            state.attempts,
        )
        _echo("=== review ===", state.review)
    return state


def run_refine_loop(
    config: Config,
    client: ModelClient,
    cancel: Optional[threading.Event] = None,
    trace: bool = False,
) -> RefineState:
    """
    Main refine loop.

    Logic:
    1. Build prompt, generate, select block, persist, execute
    2. If the script passes -> SUCCESS
    3. If attempts remain -> (review) and go back to 1 with the failure
    4. Otherwise -> FAILED

    `attempt` <= 0 makes no attempt and ends FAILED.
    """
    run = RefineRun(config=config, client=client, cancel=cancel, trace=trace)
    state = initial_state(config)

    if state.max_attempts == 0:
        state.status = "FAILED"
        return state

    while True:
        state = build_prompt_node(state, run)
        state = generate_node(state, run)
        state = select_block_node(state, run)
        state = persist_node(state, run)
        state = execute_node(state, run)
        state = decide_node(state, run)
        if state.status != "REFINE":
            return state
        state = refine_node(state, run)


def generate_code(
    config: Config,
    client: ModelClient,
    cancel: Optional[threading.Event] = None,
    trace: bool = False,
) -> RefineState:
    """
    Run the loop and raise unless it ends in SUCCESS.

    Raises:
        AttemptsExhaustedError: If every attempt failed
    """
    state = run_refine_loop(config, client, cancel=cancel, trace=trace)
    if state.status != "SUCCESS":
        raise AttemptsExhaustedError(state.attempts)
    return state
