"""Constants for the xof refine loop."""

import os

# Default backend model when the config leaves `model` empty
DEFAULT_MODEL = "gemma2"

DEFAULT_PROVIDER = "ollama"

DEFAULT_CONFIG_NAME = "xof.yaml"

DEFAULT_OLLAMA_HOST = "http://localhost:11434"

# File extension -> fence language tag. Unlisted extensions pass through.
LANG_EXTENSIONS = {
    "rs": "rust",
    "js": "javascript",
    "py": "python",
    "sh": "bash",
}

SCRIPT_SHEBANG = "#!/bin/bash\n\n"

DEFAULT_REQUEST_TIMEOUT_S = float(os.getenv("XOF_REQUEST_TIMEOUT_S", "300"))

# Grace between SIGTERM and SIGKILL for a cancelled script
DEFAULT_KILL_GRACE_S = float(os.getenv("XOF_KILL_GRACE_S", "2"))
