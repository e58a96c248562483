"""Prompt templates for the refine loop."""

from pathlib import Path
from typing import List, Optional

from xof.code_block import CodeBlock


SYSTEM_PROMPT = (
    "You are a senior software engineer who writes clean and precise code "
    "with detailed comments. Return code ONLY."
)

REVIEW_SYSTEM_PROMPT = (
    "You are a senior software engineer. Review the following code and error. "
    "Provide actionable suggestions:"
)

REFINE_INSTRUCTION = (
    "The code above failed verification. Fix it and return the fixed code ONLY."
)


def file_context(files: List[Path]) -> str:
    """
    Render context files as labelled fenced blocks.

    Returns "" when there are no files.

    Raises:
        OSError: If a file can't be read.
    """
    if not files:
        return ""
    sections = ["Given the following files:"]
    for path in files:
        sections.append(f"# {path}:\n{CodeBlock.from_file(path).printable()}")
    return "\n\n".join(sections)


def refine_addendum(code: CodeBlock, failure: str, review: Optional[str] = None) -> str:
    """Retry section: previous code, its failure report, optional review notes."""
    parts = ["Previously generated code:", str(code), failure]
    if review:
        parts.append(f"Review comments:\n\n{review}")
    parts.append(REFINE_INSTRUCTION)
    return "\n\n".join(p for p in parts if p)


def build_prompt(
    user_prompt: str,
    files: List[Path],
    code: Optional[CodeBlock] = None,
    failure: Optional[str] = None,
    review: Optional[str] = None,
) -> str:
    """
    Compose the full prompt for one attempt.

    Order: system instruction, file context, user prompt, and (from the
    second attempt on) the refine addendum.
    """
    messages = [SYSTEM_PROMPT]
    context = file_context(files)
    if context:
        messages.append(context)
    if user_prompt:
        messages.append(user_prompt)
    if code is not None:
        messages.append(refine_addendum(code, failure or "", review))
    return "\n\n".join(messages)


def review_prompt(code: CodeBlock, failure: str) -> str:
    return "\n\n".join([REVIEW_SYSTEM_PROMPT, str(code), failure])
