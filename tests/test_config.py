"""Tests for config loading and lookup."""

import pytest

from xof.config import Config, ConfigError, load_config, load_env_settings, lookup_config
from xof.constants import DEFAULT_MODEL


FULL_CONFIG = """
model: qwen2.5-coder
output: main.py
prompt: Write a program that prints 'hello'.
script: python main.py
attempt: 3
context:
  - "lib/*.py"
  - "README.md"
"""


class TestLoadConfig:
    """Parsing xof.yaml."""

    def test_full_config(self, tmp_path):
        path = tmp_path / "xof.yaml"
        path.write_text(FULL_CONFIG)

        config = load_config(path)

        assert config.model == "qwen2.5-coder"
        assert config.output == "main.py"
        assert config.script == "python main.py"
        assert config.attempt == 3
        assert config.context == ["lib/*.py", "README.md"]
        assert config.provider == "ollama"
        assert config.review is False
        assert config.timeout is None
        assert config.base_dir == tmp_path.resolve()

    def test_empty_file_is_empty_config(self, tmp_path):
        path = tmp_path / "xof.yaml"
        path.write_text("")

        config = load_config(path)

        assert config.attempt == 0
        assert config.context == []
        assert config.resolved_model() == DEFAULT_MODEL

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "xof.yaml"
        path.write_text("attempts: 3\n")
        with pytest.raises(ConfigError, match="Unknown config keys: attempts"):
            load_config(path)

    @pytest.mark.parametrize(
        "content",
        ["attempt: three\n", "attempt: true\n", "context: src/*.py\n", "review: 1\n", "context: [1]\n"],
    )
    def test_wrong_types_rejected(self, tmp_path, content):
        path = tmp_path / "xof.yaml"
        path.write_text(content)
        with pytest.raises(ConfigError):
            load_config(path)

    def test_unknown_provider_rejected(self, tmp_path):
        path = tmp_path / "xof.yaml"
        path.write_text("provider: nope\n")
        with pytest.raises(ConfigError, match="Unknown provider"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "xof.yaml"
        path.write_text("prompt: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "xof.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read config"):
            load_config(tmp_path / "missing.yaml")


class TestConfigPaths:
    """Output and context resolution relative to the config directory."""

    def test_output_path_is_relative_to_base_dir(self, tmp_path):
        config = Config(output="out/main.py", base_dir=tmp_path)
        assert config.output_path() == tmp_path / "out" / "main.py"

    def test_context_files_in_pattern_order(self, tmp_path):
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "b.py").write_text("b\n")
        (tmp_path / "lib" / "a.py").write_text("a\n")
        (tmp_path / "README.md").write_text("readme\n")

        config = Config(context=["README.md", "lib/*.py", "missing/*.rs"], base_dir=tmp_path)

        assert config.context_files() == [
            (tmp_path / "README.md").resolve(),
            (tmp_path / "lib" / "a.py").resolve(),
            (tmp_path / "lib" / "b.py").resolve(),
        ]

    def test_absolute_context_pattern_rejected(self, tmp_path):
        config = Config(context=["/etc/*.conf"], base_dir=tmp_path)
        with pytest.raises(ConfigError):
            config.context_files()


class TestLookupConfig:
    """Directory walk for xof.yaml."""

    def test_found_in_parent(self, tmp_path):
        (tmp_path / "xof.yaml").write_text("attempt: 1\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        assert lookup_config(nested) == (tmp_path / "xof.yaml").resolve()

    def test_nearest_wins(self, tmp_path):
        (tmp_path / "xof.yaml").write_text("attempt: 1\n")
        nested = tmp_path / "a"
        nested.mkdir()
        (nested / "xof.yaml").write_text("attempt: 2\n")

        assert lookup_config(nested) == (nested / "xof.yaml").resolve()

    def test_uses_cwd_by_default(self, tmp_path, monkeypatch):
        (tmp_path / "xof.yaml").write_text("attempt: 1\n")
        monkeypatch.chdir(tmp_path)
        assert lookup_config() == (tmp_path / "xof.yaml").resolve()

    def test_not_found(self, tmp_path, monkeypatch):
        monkeypatch.setattr("xof.config.DEFAULT_CONFIG_NAME", "xof-test-never-exists.yaml")
        with pytest.raises(ConfigError, match="no xof-test-never-exists.yaml found"):
            lookup_config(tmp_path)


class TestEnvSettings:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("OLLAMA_HOST", raising=False)
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

        settings = load_env_settings()

        assert settings.ollama_host == "http://localhost:11434"
        assert settings.openrouter_api_key is None

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434")
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")

        settings = load_env_settings()

        assert settings.ollama_host == "http://gpu-box:11434"
        assert settings.openrouter_api_key == "sk-test"
