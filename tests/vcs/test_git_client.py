import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from smartcommit.vcs.git_client import CommitError, FileChange, GitClient, GitError, RepositoryError


class DummyProc(SimpleNamespace):
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


class TestGitClient(unittest.TestCase):
    def test_get_changes_parses_status(self) -> None:
        output = (
            " M modified_file.py\0"
            "A  added_file.py\0"
            "D  deleted_file.py\0"
            "R  renamed_new.py\0renamed_old.py\0"
            "MM both.py\0"
            "?? untracked.txt\0"
            "!! ignored.log\0"
            "?? with space.png\0"
        )
        seen = []

        def fake_run(self, args, check=True):
            seen.append(args)
            if args[0] == "status":
                return DummyProc(returncode=0, stdout=output, stderr="")
            raise AssertionError(f"Unexpected git command: {args}")

        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            client = GitClient(Path("/repo"))
            changes = client.get_changes()

        self.assertEqual(seen, [["status", "--porcelain", "-z", "-uall"]])
        by_path = {change.path: change for change in changes}
        self.assertEqual(
            list(by_path),
            [
                "modified_file.py",
                "added_file.py",
                "deleted_file.py",
                "renamed_new.py",
                "both.py",
                "untracked.txt",
                "with space.png",
            ],
        )
        self.assertEqual(by_path["modified_file.py"].status, "M")
        self.assertEqual(by_path["added_file.py"].status, "A")
        self.assertTrue(by_path["added_file.py"].is_new)
        self.assertTrue(by_path["deleted_file.py"].is_deleted)
        self.assertEqual(by_path["renamed_new.py"].orig_path, "renamed_old.py")
        self.assertEqual(by_path["untracked.txt"].status, "?")
        self.assertTrue(by_path["untracked.txt"].is_new)
        self.assertTrue(by_path["with space.png"].is_binary)

    def test_get_changes_can_exclude_untracked(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(stdout=" M a.py\0?? b.py\0")
            changes = GitClient(Path("/repo")).get_changes(include_untracked=False)
        self.assertEqual([change.path for change in changes], ["a.py"])

    def test_get_changes_keeps_non_ascii_paths_verbatim(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(stdout="?? café.txt\0R  naïve.py\0old name.py\0")
            changes = GitClient(Path("/repo")).get_changes()
        self.assertEqual([change.path for change in changes], ["café.txt", "naïve.py"])
        self.assertEqual(changes[1].orig_path, "old name.py")

    def test_get_staged_files_splits_on_nul(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.return_value = DummyProc(stdout="café.txt\0b c.py\0")
            self.assertEqual(GitClient(Path("/repo")).get_staged_files(), ["café.txt", "b c.py"])
        self.assertEqual(mock_run.call_args[0][1], ["diff", "--cached", "--name-only", "-z"])

    def test_status_description(self) -> None:
        self.assertEqual(
            FileChange("a", index_status="M", worktree_status="M").status_description,
            "Modified (staged), Modified (unstaged)",
        )
        self.assertEqual(FileChange("a", index_status="A").status_description, "Added (staged)")
        self.assertEqual(FileChange("a", worktree_status="D").status_description, "Deleted (unstaged)")
        self.assertEqual(
            FileChange("a", index_status="?", worktree_status="?").status_description, "Untracked"
        )

    def test_get_diff_arguments(self) -> None:
        calls = []

        def fake_run(self, args, check=True):
            calls.append(args)
            return DummyProc(stdout="diff")

        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            client = GitClient(Path("/repo"))
            client.get_diff()
            client.get_diff("a.py", cached=True)
        self.assertEqual(calls, [["diff"], ["diff", "--cached", "--", "a.py"]])

    def test_stage_files_calls_correct_commands(self) -> None:
        calls = []

        def fake_run(self, args, check=True):
            calls.append(args)
            return DummyProc(returncode=0, stdout="", stderr="")

        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            client = GitClient(Path("/tmp/repo"))
            with patch("pathlib.Path.exists", lambda self: self.name != "file_deleted.py"):
                client.stage_files(["file_exists.py", "file_deleted.py"])
        self.assertIn(["add", "--", "file_exists.py"], calls)
        self.assertIn(["rm", "--cached", "--quiet", "--", "file_deleted.py"], calls)

    def test_commit_failure_raises_commit_error(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = GitError("nothing to commit")
            with self.assertRaises(CommitError) as ctx:
                GitClient(Path("/repo")).commit("feat: x")
        self.assertIn("nothing to commit", str(ctx.exception))

    def test_push_sets_upstream_when_missing(self) -> None:
        calls = []

        def fake_run(self, args, check=True):
            calls.append(args)
            if args == ["push"]:
                raise GitError("fatal: The current branch topic has no upstream branch.")
            if args[0] == "rev-parse":
                return DummyProc(stdout="topic\n")
            return DummyProc()

        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = fake_run
            GitClient(Path("/repo")).push()
        self.assertEqual(calls[-1], ["push", "--set-upstream", "origin", "topic"])

    def test_push_failure_raises_commit_error(self) -> None:
        with patch.object(GitClient, "_run", autospec=True) as mock_run:
            mock_run.side_effect = GitError("rejected")
            with self.assertRaises(CommitError):
                GitClient(Path("/repo")).push()


def test_open_rejects_non_repository(tmp_path):
    with pytest.raises(RepositoryError):
        GitClient.open(tmp_path)


def test_open_rejects_missing_path(tmp_path):
    with pytest.raises(RepositoryError):
        GitClient.open(tmp_path / "nope")


def test_open_finds_root_from_subdirectory(tmp_path):
    (tmp_path / ".git").mkdir()
    nested = tmp_path / "src" / "pkg"
    nested.mkdir(parents=True)
    client = GitClient.open(nested)
    assert client.repo_root == tmp_path.resolve()
    assert client.repo_name == tmp_path.resolve().name


def test_run_wraps_missing_executable(monkeypatch, tmp_path):
    def fail(*args, **kwargs):
        raise FileNotFoundError("git")

    monkeypatch.setattr("subprocess.run", fail)
    with pytest.raises(GitError):
        GitClient(tmp_path).get_current_branch()
