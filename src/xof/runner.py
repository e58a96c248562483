"""Thin runner: load config, run the refine loop, write a report."""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

from xof.config import Config
from xof.model_client import ModelClient, get_model_client
from xof.refine_loop import run_refine_loop
from xof.refine_state import RefineState


def write_run_report(
    state: RefineState,
    config: Config,
    output_dir: Path,
    start_time: datetime,
    end_time: datetime,
) -> Path:
    """
    Write a structured run report to disk.

    Report format: JSON with the final attempt's details.
    Filename: {output stem}_{timestamp}.json
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    task_id = state.output_path.stem
    timestamp = end_time.strftime("%Y%m%d_%H%M%S")
    report_path = output_dir / f"{task_id}_{timestamp}.json"

    result = state.result
    report = {
        "task_id": task_id,
        "output": str(state.output_path),
        "model": config.resolved_model(),
        "provider": config.provider,
        "status": state.status,
        "attempts": state.attempts,
        "max_attempts": state.max_attempts,
        "language": state.language,
        "stdout": result.stdout if result else None,
        "stderr": result.stderr if result else None,
        "error": str(result.error) if result and result.error else None,
        "start_time": start_time.isoformat(),
        "end_time": end_time.isoformat(),
        "duration_seconds": (end_time - start_time).total_seconds(),
    }

    report_path.write_text(json.dumps(report, indent=2))

    return report_path


def run_config(
    config: Config,
    reports_dir: Optional[Path] = None,
    use_graph: bool = False,
    trace: bool = False,
    cancel: Optional[threading.Event] = None,
    client: Optional[ModelClient] = None,
) -> RefineState:
    """
    Main entry point: run the refine loop for one config.

    Args:
        config: Loaded config
        reports_dir: Where to write a JSON report (None = no report)
        use_graph: If True, run through the LangGraph wrapper
        trace: If True, record model calls as LangSmith spans
        cancel: Event that aborts the run when set
        client: Model client (default: built from config.provider)

    Returns:
        Final RefineState
    """
    if client is None:
        client = get_model_client(config.provider)

    start_time = datetime.now()

    if use_graph:
        from xof.refine_graph import run_refine_graph
        final_state = run_refine_graph(config, client, cancel=cancel, trace=trace)
    else:
        final_state = run_refine_loop(config, client, cancel=cancel, trace=trace)

    end_time = datetime.now()

    print("Run complete.")
    print(f"  Status: {final_state.status}")
    print(f"  Attempts: {final_state.attempts}/{final_state.max_attempts}")
    print(f"  Output: {final_state.output_path}")

    if reports_dir is not None:
        report_path = write_run_report(
            state=final_state,
            config=config,
            output_dir=reports_dir,
            start_time=start_time,
            end_time=end_time,
        )
        print(f"  Report: {report_path}")

    return final_state
