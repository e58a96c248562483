"""Configuration loading for the xof refine loop."""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv

from xof.constants import (
    DEFAULT_CONFIG_NAME,
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_HOST,
    DEFAULT_PROVIDER,
)


class ConfigError(Exception):
    """Raised when a config file is missing or malformed."""
    pass


PROVIDERS = ("ollama", "openrouter")


@dataclass
class Config:
    """One refine-loop run, as read from xof.yaml."""

    model: str = ""
    output: str = ""
    prompt: str = ""
    script: str = ""
    attempt: int = 0
    context: List[str] = field(default_factory=list)
    provider: str = DEFAULT_PROVIDER
    review: bool = False
    timeout: Optional[float] = None  # seconds, per script run

    # Directory of the config file; relative paths resolve against it
    base_dir: Path = field(default_factory=Path.cwd)

    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODEL

    def output_path(self) -> Path:
        return self.base_dir / self.output

    def context_files(self) -> List[Path]:
        """Resolve `context` glob patterns to absolute paths, pattern by pattern."""
        files: List[Path] = []
        for pattern in self.context:
            if Path(pattern).is_absolute():
                raise ConfigError(f"Context pattern must be relative: {pattern}")
            matches = sorted(p for p in self.base_dir.glob(pattern) if p.is_file())
            files.extend(p.resolve() for p in matches)
        return files


# Expected YAML types per key (bool is checked before int since bool is an int)
_FIELD_TYPES = {
    "model": str,
    "output": str,
    "prompt": str,
    "script": str,
    "attempt": int,
    "context": list,
    "provider": str,
    "review": bool,
    "timeout": (int, float),
}


def parse_config(data: Optional[dict], base_dir: Path) -> Config:
    """
    Build a Config from already-parsed YAML data.

    Raises:
        ConfigError: On unknown keys or values of the wrong type.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Config must be a YAML mapping")

    known = {f.name for f in fields(Config)} - {"base_dir"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    values = {}
    for key, value in data.items():
        if value is None:
            continue
        expected = _FIELD_TYPES[key]
        if isinstance(value, bool) and expected is not bool:
            raise ConfigError(f"Config key '{key}' has wrong type: bool")
        if not isinstance(value, expected):
            raise ConfigError(
                f"Config key '{key}' has wrong type: {type(value).__name__}"
            )
        values[key] = value

    context = values.get("context", [])
    if not all(isinstance(p, str) for p in context):
        raise ConfigError("Config key 'context' must be a list of glob patterns")

    provider = values.get("provider", DEFAULT_PROVIDER)
    if provider not in PROVIDERS:
        raise ConfigError(
            f"Unknown provider '{provider}'. Expected one of: {', '.join(PROVIDERS)}"
        )

    return Config(base_dir=base_dir, **values)


def load_config(path: Path) -> Config:
    """
    Load a config file.

    Args:
        path: Path to xof.yaml (or any YAML file with the same keys)

    Returns:
        Config whose base_dir is the directory holding the file.

    Raises:
        ConfigError: If the file can't be read or parsed.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")

    return parse_config(data, base_dir=path.resolve().parent)


def lookup_config(start: Optional[Path] = None) -> Path:
    """
    Find xof.yaml in `start` (default: cwd) or any parent directory.

    Raises:
        ConfigError: If no config exists up to the filesystem root.
    """
    current = Path(start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / DEFAULT_CONFIG_NAME
        if candidate.is_file():
            return candidate
    raise ConfigError(f"no {DEFAULT_CONFIG_NAME} found")


@dataclass
class EnvSettings:
    """Backend settings loaded from environment."""

    ollama_host: str
    openrouter_api_key: Optional[str]


def load_env_settings() -> EnvSettings:
    """Load backend settings from environment variables (and .env)."""
    load_dotenv()

    return EnvSettings(
        ollama_host=os.environ.get("OLLAMA_HOST") or DEFAULT_OLLAMA_HOST,
        openrouter_api_key=os.environ.get("OPENROUTER_API_KEY"),
    )
