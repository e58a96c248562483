#!/usr/bin/env python3
"""Proof script for the refine loop against a live backend."""

import tempfile
from pathlib import Path

# Ensure .env is loaded
from dotenv import load_dotenv
load_dotenv()

from xof.config import Config
from xof.model_client import ModelClientError, get_model_client
from xof.refine_loop import run_refine_loop


def main():
    work_dir = Path(tempfile.mkdtemp(prefix="xof_proof_"))
    output = work_dir / "hello.py"

    config = Config(
        output="hello.py",
        prompt="Write a Python program that prints 'hello' to stdout.",
        script=f'test "$(python3 {output})" = hello',
        attempt=5,
        base_dir=work_dir,
    )

    print(f"Working directory: {work_dir}")
    print(f"  model: {config.resolved_model()}")
    print(f"  attempt budget: {config.attempt}")

    client = get_model_client(config.provider)

    print(f"\n=== RUNNING REFINE LOOP ===")
    try:
        final_state = run_refine_loop(config, client)
    except ModelClientError as e:
        print(f"ERROR: backend unavailable: {e}")
        return

    print(f"\n=== FINAL STATE ===")
    print(f"  status: {final_state.status}")
    print(f"  attempts: {final_state.attempts}")

    if final_state.status == "SUCCESS":
        print(f"\n=== FINAL CODE ===")
        print(output.read_text())

    print(f"\n{'='*40}")
    if final_state.status == "SUCCESS" and final_state.attempts == 1:
        print("PROOF PASSED: Verified on the first attempt.")
    elif final_state.status == "SUCCESS":
        print(f"PROOF PASSED: Verified after {final_state.attempts} attempts.")
    else:
        print(f"PROOF FAILED: attempted {final_state.attempts} time(s)")


if __name__ == "__main__":
    main()
