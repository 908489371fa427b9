import json

import pytest
from click.testing import CliRunner

import smartcommit.cli as cli
from smartcommit.config.loader import get_config_directory, get_config_path, save_config
from smartcommit.diff.diff_extractor import DiffBundle
from smartcommit.history.store import HistoryStore
from smartcommit.llm.base import Completion, LLMError
from smartcommit.vcs.git_client import FileChange, GitError, RepositoryError


class FakeGitClient:
    """In-memory repository with an index, used in place of GitClient."""

    instance = None
    missing = False

    def __init__(self, repo_root, fail_paths=()):
        self.repo_root = repo_root
        self.repo_name = "demo"
        self.index = set()
        self.commits = []
        self.pushes = 0
        self.fail_paths = set(fail_paths)

    @classmethod
    def open(cls, path):
        if cls.missing:
            raise RepositoryError(f"Not a git repository: {path}")
        return cls.instance

    @staticmethod
    def find_repo_root(start):
        return None

    def reset_to_head(self):
        self.index.clear()

    def stage_files(self, files):
        for path in files:
            if path in self.fail_paths:
                raise GitError(f"pathspec '{path}' did not match any files")
        self.index.update(files)

    def get_staged_files(self):
        return sorted(self.index)

    def stage_all(self):
        self.index.update({"a.py", "b.py"})

    def commit(self, message):
        self.commits.append((message, sorted(self.index)))
        self.index.clear()

    def push(self):
        self.pushes += 1


class ScriptedLLM:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    def complete(self, model, prompt):
        self.calls += 1
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return Completion(answer, model)


BUNDLE = DiffBundle(
    staged_diff="",
    unstaged_diff="@@ -1 +1 @@\n",
    files=[FileChange("a.py", worktree_status="M"), FileChange("b.py", worktree_status="M")],
    excerpts={"a.py": "1: a", "b.py": "1: b"},
)

SINGLE = json.dumps({"summary": "feat: update a and b", "description": "Both files.", "type": "feat"})


@pytest.fixture
def repo(monkeypatch, tmp_path):
    save_config({"api_key": "sk-test", "max_retries": 2})
    git = FakeGitClient(tmp_path)
    FakeGitClient.instance = git
    FakeGitClient.missing = False
    monkeypatch.setattr(cli, "GitClient", FakeGitClient)
    monkeypatch.setattr(cli, "build_diff_bundle", lambda client, radius: BUNDLE)
    return git


def use_llm(monkeypatch, *answers):
    llm = ScriptedLLM(*answers)
    monkeypatch.setattr(cli, "make_client", lambda config: llm)
    return llm


def generation_records():
    directory = get_config_directory() / "generations"
    return [json.loads(path.read_text()) for path in sorted(directory.glob("*.json"))]


def test_single_commit_auto(repo, monkeypatch):
    use_llm(monkeypatch, SINGLE)
    result = CliRunner().invoke(cli.main, ["--auto"])

    assert result.exit_code == cli.EXIT_SUCCESS, result.output
    assert repo.commits == [("feat: update a and b\n\nBoth files.", ["a.py", "b.py"])]
    assert repo.pushes == 1
    history = HistoryStore(get_config_directory()).load_history("demo")
    assert [entry["summary"] for entry in history] == ["feat: update a and b"]
    records = generation_records()
    assert len(records) == 1
    assert records[0]["accepted"] is True
    assert records[0]["metadata"]["provider"] == "openrouter"


def test_single_commit_regenerate_then_accept(repo, monkeypatch):
    second = json.dumps({"summary": "fix: second try"})
    llm = use_llm(monkeypatch, SINGLE, second)
    result = CliRunner().invoke(cli.main, [], input="r\na\n")

    assert result.exit_code == cli.EXIT_SUCCESS, result.output
    assert llm.calls == 2
    assert [message for message, _ in repo.commits] == ["fix: second try"]
    assert sorted(r["accepted"] for r in generation_records()) == [False, True]


def test_single_commit_cancel(repo, monkeypatch):
    use_llm(monkeypatch, SINGLE)
    result = CliRunner().invoke(cli.main, [], input="c\n")

    assert result.exit_code == cli.EXIT_SUCCESS
    assert repo.commits == []
    assert "Commit cancelled" in result.output
    records = generation_records()
    assert records[0]["accepted"] is False
    assert "acceptedAt" in records[0]


def test_regenerate_limit_reached(repo, monkeypatch):
    use_llm(monkeypatch, SINGLE)
    result = CliRunner().invoke(cli.main, [], input="r\nr\n")
    assert result.exit_code == cli.EXIT_ALL_DECLINED
    assert repo.commits == []


def test_selective_commit_stages_selected_files_only(repo, monkeypatch):
    answer = json.dumps({"summary": "feat: only a", "selectedFiles": ["a.py"]})
    llm = use_llm(monkeypatch, answer)
    result = CliRunner().invoke(cli.main, ["--only", "the a module", "--auto"])

    assert result.exit_code == cli.EXIT_SUCCESS, result.output
    assert repo.commits == [("feat: only a", ["a.py"])]
    assert llm.calls == 1


def test_staging_failure_exit_code(repo, monkeypatch):
    repo.fail_paths = {"a.py"}
    use_llm(monkeypatch, json.dumps({"summary": "feat: only a", "selectedFiles": ["a.py"]}))
    result = CliRunner().invoke(cli.main, ["--only", "a", "--auto"])
    assert result.exit_code == cli.EXIT_VCS_FAILURE
    assert repo.commits == []


def test_generation_failure_exit_code(repo, monkeypatch):
    save_config({"api_key": "sk-test", "max_retries": 1})
    use_llm(monkeypatch, LLMError("service unavailable"))
    result = CliRunner().invoke(cli.main, ["--auto"])
    assert result.exit_code == cli.EXIT_LLM_FAILURE
    assert "service unavailable" in result.output


def test_clean_repository(repo, monkeypatch):
    monkeypatch.setattr(cli, "build_diff_bundle", lambda client, radius: None)
    use_llm(monkeypatch, SINGLE)
    result = CliRunner().invoke(cli.main, [])
    assert result.exit_code == cli.EXIT_NO_CHANGES


def test_not_a_repository(repo, monkeypatch):
    FakeGitClient.missing = True
    use_llm(monkeypatch, SINGLE)
    result = CliRunner().invoke(cli.main, [])
    assert result.exit_code == cli.EXIT_NO_REPO


def test_invalid_config(repo, monkeypatch):
    get_config_path().write_text("{broken")
    result = CliRunner().invoke(cli.main, [])
    assert result.exit_code == cli.EXIT_CONFIG_ERROR


def test_grouped_and_only_are_exclusive():
    result = CliRunner().invoke(cli.main, ["--grouped", "--only", "x"])
    assert result.exit_code == cli.EXIT_INVALID_USAGE


def test_radius_must_be_positive():
    result = CliRunner().invoke(cli.main, ["--radius", "0"])
    assert result.exit_code == cli.EXIT_INVALID_USAGE


def test_grouped_partial_failure(repo, monkeypatch):
    repo.fail_paths = {"b.py"}
    grouped = json.dumps(
        [
            {"summary": "feat: a", "files": ["a.py"]},
            {"summary": "feat: b", "files": ["b.py"]},
        ]
    )
    use_llm(monkeypatch, grouped)
    result = CliRunner().invoke(cli.main, ["--grouped", "--auto"])

    assert result.exit_code == cli.EXIT_PARTIAL_FAILURE, result.output
    assert repo.commits == [("feat: a", ["a.py"])]
    assert "1 committed, 1 failed" in result.output
    history = HistoryStore(get_config_directory()).load_history("demo")
    assert [entry["summary"] for entry in history] == ["feat: a"]
    assert generation_records()[0]["accepted"] is True


def test_grouped_skip_twice_declines(repo, monkeypatch):
    use_llm(monkeypatch, json.dumps([{"summary": "feat: a", "files": ["a.py"]}]))
    result = CliRunner().invoke(cli.main, ["--grouped"], input="s\ns\n")

    assert result.exit_code == cli.EXIT_ALL_DECLINED
    assert repo.commits == []
    assert "last chance" in result.output
    assert generation_records()[0]["accepted"] is False


def test_grouped_interactive_accept(repo, monkeypatch):
    grouped = json.dumps(
        [
            {"summary": "feat: a", "files": ["a.py"]},
            {"summary": "feat: b", "files": ["b.py"]},
        ]
    )
    use_llm(monkeypatch, grouped)
    result = CliRunner().invoke(cli.main, ["--grouped"], input="s\na\na\n")

    assert result.exit_code == cli.EXIT_SUCCESS, result.output
    assert [message for message, _ in repo.commits] == ["feat: b", "feat: a"]


def test_first_run_prompts_for_api_key(monkeypatch):
    llm = use_llm(monkeypatch, "Hello from test-model!")
    result = CliRunner().invoke(cli.main, ["--test"], input="sk-typed\n")

    assert result.exit_code == cli.EXIT_SUCCESS, result.output
    assert json.loads(get_config_path().read_text())["api_key"] == "sk-typed"
    assert "Hello from test-model!" in result.output
    assert llm.calls == 1


def test_connection_test_failure(monkeypatch):
    save_config({"api_key": "sk-test"})
    use_llm(monkeypatch, LLMError("401 unauthorized"))
    result = CliRunner().invoke(cli.main, ["--test"])
    assert result.exit_code == cli.EXIT_LLM_FAILURE


def test_stats(monkeypatch):
    store = HistoryStore(get_config_directory())
    record = store.save_generation("demo", {})
    store.update_status(record, accepted=True)
    store.save_generation("demo", {})
    result = CliRunner().invoke(cli.main, ["--stats"])

    assert result.exit_code == cli.EXIT_SUCCESS
    assert "Total generations: 2" in result.output
    assert "Acceptance rate: 50.0%" in result.output


def test_clean_removes_data():
    save_config({"api_key": "sk-test"})
    HistoryStore(get_config_directory()).save_generation("demo", {})
    result = CliRunner().invoke(cli.main, ["--clean"])

    assert result.exit_code == cli.EXIT_SUCCESS
    assert not get_config_path().exists()
    assert list((get_config_directory() / "generations").glob("*.json")) == []


def test_version():
    result = CliRunner().invoke(cli.main, ["--version"])
    assert result.exit_code == 0
    assert "smartc" in result.output


def test_make_client_by_provider():
    ollama = cli.make_client({"provider": "ollama", "model": "llama3", "port": 1234})
    assert ollama.provider == "ollama"
    assert ollama.port == 1234
    openrouter = cli.make_client({"provider": "openrouter", "api_key": "k", "max_tokens": 50})
    assert openrouter.provider == "openrouter"
    assert openrouter.max_tokens == 50
