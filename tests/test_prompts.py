"""Tests for prompt composition."""

from xof.code_block import CodeBlock
from xof.prompts import (
    REFINE_INSTRUCTION,
    REVIEW_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_prompt,
    file_context,
    refine_addendum,
    review_prompt,
)


class TestFileContext:
    def test_no_files(self):
        assert file_context([]) == ""

    def test_files_rendered_as_labelled_blocks(self, tmp_path):
        lib = tmp_path / "lib.py"
        lib.write_text("def add(a, b):\n    return a + b\n")

        context = file_context([lib])

        assert context == (
            "Given the following files:\n\n"
            f"# {lib}:\n"
            "```python\ndef add(a, b):\n    return a + b\n```"
        )

    def test_binary_file_is_rendered_with_replacement(self, tmp_path):
        blob = tmp_path / "blob.bin"
        blob.write_bytes(b"\xff\x00data\n")

        context = file_context([blob])

        assert "\ufffd\x00data\n" in context
        context.encode("utf-8")


class TestBuildPrompt:
    def test_first_attempt_order(self, tmp_path):
        lib = tmp_path / "lib.py"
        lib.write_text("X = 1\n")

        prompt = build_prompt("Write main.py.", [lib])

        system_at = prompt.index(SYSTEM_PROMPT)
        context_at = prompt.index("Given the following files:")
        user_at = prompt.index("Write main.py.")
        assert system_at < context_at < user_at
        assert REFINE_INSTRUCTION not in prompt

    def test_without_context_or_prompt(self):
        assert build_prompt("", []) == SYSTEM_PROMPT

    def test_retry_appends_addendum_last(self):
        code = CodeBlock("python", "print(1/0)\n")
        failure = "Stderr:\n```\nZeroDivisionError\n```"

        prompt = build_prompt("Print a number.", [], code=code, failure=failure)

        assert prompt.index("Print a number.") < prompt.index(str(code))
        assert prompt.index(str(code)) < prompt.index(failure)
        assert prompt.endswith(REFINE_INSTRUCTION)


class TestRefineAddendum:
    def test_includes_review_when_given(self):
        addendum = refine_addendum(CodeBlock("python", "x\n"), "Error:\n```\nboom\n```", "Rename x.")
        assert "Review comments:\n\nRename x." in addendum
        assert addendum.index("Rename x.") < addendum.index(REFINE_INSTRUCTION)

    def test_skips_empty_failure(self):
        addendum = refine_addendum(CodeBlock("python", "x\n"), "")
        assert "\n\n\n\n" not in addendum


def test_review_prompt():
    code = CodeBlock("python", "x\n")
    prompt = review_prompt(code, "Error:\n```\nboom\n```")
    assert prompt.startswith(REVIEW_SYSTEM_PROMPT)
    assert str(code) in prompt
    assert prompt.endswith("boom\n```")
