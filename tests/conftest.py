import pytest


@pytest.fixture(autouse=True)
def isolate_home_config(monkeypatch, tmp_path):
    """Point the data directory at a temporary location.

    Tests must never read or write the user's real ``~/.smartcommit``
    configuration or history, and an exported API key must not leak into
    config tests.
    """
    data_dir = tmp_path / "smartcommit-home"
    monkeypatch.setenv("SMARTCOMMIT_HOME", str(data_dir))
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    yield data_dir
