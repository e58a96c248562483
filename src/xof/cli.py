"""CLI entrypoint for xof."""

import signal
import threading
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from xof.config import ConfigError, load_config, load_env_settings, lookup_config
from xof.constants import DEFAULT_CONFIG_NAME

# Load .env file on CLI startup
load_dotenv()


def _resolve_config(config_file: Optional[str]):
    path = Path(config_file) if config_file else lookup_config()
    return path, load_config(path)


def _install_cancel_handler(cancel: threading.Event):
    """First Ctrl-C cancels the run cleanly; a second one aborts at once.

    Returns the previous SIGINT handler.
    """
    def handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        cancel.set()
        click.echo("\nCancelling... (press Ctrl-C again to abort)", err=True)

    return signal.signal(signal.SIGINT, handler)


@click.group()
@click.version_option(package_name="xof")
def cli():
    """xof - generate code with a model, verify it with a script, refine until it passes."""
    pass


@cli.command("run")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help=f"Config file (default: nearest {DEFAULT_CONFIG_NAME} in cwd or a parent)",
)
@click.option(
    "--report-dir",
    type=click.Path(file_okay=False),
    default="xof-reports",
    help="Directory for JSON run reports (default: xof-reports)",
)
@click.option("--no-report", is_flag=True, help="Do not write a run report")
@click.option("--graph", "use_graph", is_flag=True, help="Run through the LangGraph wrapper")
@click.option("--trace", is_flag=True, help="Record model calls as LangSmith spans")
def run_cmd(
    config_file: Optional[str],
    report_dir: str,
    no_report: bool,
    use_graph: bool,
    trace: bool,
):
    """Run the generate -> verify -> refine loop for one config.

    \b
    Config format (xof.yaml):
        model: gemma2            # optional
        output: main.py          # file the code is written to
        prompt: Write a program that prints 'hello'.
        script: python main.py   # verification script, optional
        attempt: 3
        context: ["src/*.py"]    # optional glob patterns
    """
    from xof.model_client import ModelClientError
    from xof.refine_loop import AttemptsExhaustedError, RefineCancelledError
    from xof.runner import run_config
    from xof.script_runner import ScriptError

    try:
        config_path, config = _resolve_config(config_file)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Running config: {config_path}")
    if use_graph:
        click.echo("  (LangGraph wrapper enabled)")
    click.echo()

    cancel = threading.Event()
    previous_handler = _install_cancel_handler(cancel)

    try:
        final_state = run_config(
            config,
            reports_dir=None if no_report else Path(report_dir).resolve(),
            use_graph=use_graph,
            trace=trace,
            cancel=cancel,
        )
    except (ConfigError, ModelClientError, ScriptError, RefineCancelledError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if final_state.status != "SUCCESS":
        click.echo(f"Error: {AttemptsExhaustedError(final_state.attempts)}", err=True)
        raise SystemExit(1)


@cli.command("check-config")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help=f"Config file (default: nearest {DEFAULT_CONFIG_NAME})",
)
def check_config(config_file: Optional[str]):
    """Load the config and show what a run would use."""
    try:
        config_path, config = _resolve_config(config_file)
        files = config.context_files()
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)

    settings = load_env_settings()

    click.echo(f"Configuration loaded successfully: {config_path}")
    click.echo(f"  provider: {config.provider}")
    click.echo(f"  model: {config.resolved_model()}")
    click.echo(f"  output: {config.output_path()}")
    click.echo(f"  attempt: {config.attempt}")
    click.echo(f"  script: {'[set]' if config.script else '[none]'}")
    click.echo(f"  review: {config.review}")
    click.echo(f"  context files: {len(files)}")
    for path in files:
        click.echo(f"    {path}")
    if config.provider == "ollama":
        click.echo(f"  OLLAMA_HOST: {settings.ollama_host}")
    else:
        click.echo(f"  OPENROUTER_API_KEY: {'[set]' if settings.openrouter_api_key else '[missing]'}")


@cli.command("extract")
@click.argument("markdown_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--lang", help="Only print the last block with this language tag")
def extract(markdown_file: str, lang: Optional[str]):
    """Print the fenced code blocks found in a markdown file."""
    from xof.markdown import extract_code_blocks, select_code_block

    document = Path(markdown_file).read_text(encoding="utf-8")
    blocks = extract_code_blocks(document)

    if lang is not None:
        block = select_code_block(blocks, lang)
        if block is None:
            click.echo(f"Error: no `{lang}` code block found", err=True)
            raise SystemExit(1)
        click.echo(block.content, nl=False)
        return

    for i, block in enumerate(blocks, start=1):
        click.echo(f"# block {i} ({block.language or 'untagged'})")
        click.echo(str(block))


@cli.group()
def model():
    """Model backend commands."""
    pass


@model.command("test")
@click.option("--provider", type=click.Choice(["ollama", "openrouter"]), default="ollama")
@click.option("--model", "model_id", default=None, help="Model id (default: gemma2)")
@click.option("--timeout", type=float, default=60.0, help="Request timeout in seconds")
def model_test(provider: str, model_id: Optional[str], timeout: float):
    """Send a one-line prompt to check the backend is reachable."""
    from xof.constants import DEFAULT_MODEL
    from xof.model_client import ModelClientError, get_model_client

    model_id = model_id or DEFAULT_MODEL
    click.echo(f"Testing {provider} model: {model_id}")

    try:
        client = get_model_client(provider)
        result = client.generate(model_id, "Reply with the single word: ok", timeout=timeout)
    except ModelClientError as e:
        click.echo(f"Model error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"  Response model: {result.model}")
    click.echo(f"  Response: {result.content.strip()[:200]}")
    if result.usage:
        click.echo(f"  Usage: {result.usage}")


@cli.command("observe")
@click.argument("task_id", required=False)
@click.option(
    "--reports-dir",
    type=click.Path(),
    default="xof-reports",
    help="Directory holding run reports (default: xof-reports)",
)
def observe_cmd(task_id: Optional[str], reports_dir: str):
    """Show a summary of past runs.

    TASK_ID: Output file stem to filter on (optional)
    """
    from xof.observe import print_summary

    print_summary(Path(reports_dir), task_id)


if __name__ == "__main__":
    cli()
