"""State carried between steps of the refine loop."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from xof.code_block import CodeBlock
from xof.script_runner import ScriptResult


@dataclass
class RefineState:
    output_path: Path
    language: str
    max_attempts: int
    attempts: int = 0
    context_files: List[Path] = field(default_factory=list)
    prompt: str = ""
    response: Optional[str] = None
    code: Optional[CodeBlock] = None
    result: Optional[ScriptResult] = None
    review: Optional[str] = None
    status: str = "PENDING"  # PENDING | RUNNING | REFINE | SUCCESS | FAILED
