"""The LangGraph wrapper must behave exactly like run_refine_loop()."""

import pytest

from xof.config import Config
from xof.model_client import ModelClientError
from xof.refine_graph import build_refine_graph, run_refine_graph

from test_refine_loop import BAD, GOOD, FakeClient, fenced


@pytest.fixture
def config(tmp_path):
    return Config(
        output="answer.sh",
        prompt="Write a script that prints ok.",
        script='test "$(bash answer.sh)" = ok',
        attempt=3,
        base_dir=tmp_path,
    )


@pytest.fixture(autouse=True)
def in_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)


class TestRefineGraph:
    def test_graph_has_loop_nodes(self):
        nodes = set(build_refine_graph().nodes)
        assert {"build_prompt", "generate", "select_block", "persist", "execute", "decide", "refine"} <= nodes

    def test_success_after_retry(self, config, tmp_path):
        client = FakeClient([fenced("bash", "echo nope\n"), GOOD])

        state = run_refine_graph(config, client)

        assert state.status == "SUCCESS"
        assert state.attempts == 2
        assert len(client.calls) == 2
        assert (tmp_path / "answer.sh").read_text() == "echo ok\n"

    def test_exhausted_budget(self, config):
        client = FakeClient([BAD] * 3)

        state = run_refine_graph(config, client)

        assert state.status == "FAILED"
        assert state.attempts == 3
        assert len(client.calls) == 3

    def test_many_attempts_stay_under_recursion_limit(self, config):
        config.attempt = 12
        client = FakeClient(["no code"] * 12)

        state = run_refine_graph(config, client)

        assert state.status == "FAILED"
        assert state.attempts == 12

    def test_zero_budget(self, config):
        config.attempt = 0
        client = FakeClient([])

        state = run_refine_graph(config, client)

        assert state.status == "FAILED"
        assert client.calls == []

    def test_backend_error_propagates(self, config):
        client = FakeClient([ModelClientError("Network error: refused")])
        with pytest.raises(ModelClientError):
            run_refine_graph(config, client)
