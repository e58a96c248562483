"""Code block value type shared by the extractor, prompts and the loop."""

import os
from dataclasses import dataclass
from pathlib import Path

from xof.constants import LANG_EXTENSIONS


def lang_from_file(path) -> str:
    """Map a file's extension to a fence language tag (rs -> rust, ...)."""
    ext = Path(path).suffix.lstrip(".")
    return LANG_EXTENSIONS.get(ext, ext)


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block: language tag (may be empty) plus raw content."""

    language: str
    content: str

    @classmethod
    def from_file(cls, path) -> "CodeBlock":
        # newline="" keeps \r\n intact and surrogateescape keeps undecodable
        # bytes, so content round-trips byte for byte
        with open(path, encoding="utf-8", errors="surrogateescape", newline="") as f:
            return cls(language=lang_from_file(path), content=f.read())

    def printable(self) -> "CodeBlock":
        """Copy safe to embed in a prompt: undecodable bytes become U+FFFD."""
        raw = self.content.encode("utf-8", errors="surrogateescape")
        return CodeBlock(self.language, raw.decode("utf-8", errors="replace"))

    def __str__(self) -> str:
        body = self.content if self.content.endswith("\n") else self.content + "\n"
        return f"```{self.language}\n{body}```"

    def write_to(self, path) -> None:
        """Replace the file at `path` with this block's content."""
        with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
            f.write(self.content)
            f.flush()
            os.fsync(f.fileno())
