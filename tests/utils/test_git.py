"""Tests for repository and project root lookup."""

from pathlib import Path

from scheck.utils.git import find_git_root, find_project_root


class TestFindGitRoot:
    """Tests for find_git_root function."""

    def test_walks_up_from_cwd(self, tmp_path, monkeypatch):
        repo = tmp_path / "payments-api"
        (repo / ".git").mkdir(parents=True)
        handlers = repo / "src" / "webhooks"
        handlers.mkdir(parents=True)
        monkeypatch.chdir(handlers)

        assert find_git_root() == repo

    def test_outside_any_repo(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert find_git_root() is None

    def test_explicit_start(self, tmp_path):
        (tmp_path / ".git").mkdir()
        keys = tmp_path / "src" / "keys"
        keys.mkdir(parents=True)

        assert find_git_root(keys) == tmp_path

    def test_git_worktree_file(self, tmp_path):
        """A .git file (worktree or submodule) also marks the root."""
        (tmp_path / ".git").write_text("gitdir: /elsewhere\n")

        assert find_git_root(tmp_path) == tmp_path

    def test_env_override_wins(self, tmp_path, monkeypatch):
        (tmp_path / ".git").mkdir()
        monkeypatch.setenv("SCHECK_GIT_ROOT", "/srv/checkout")

        assert find_git_root(tmp_path) == Path("/srv/checkout")




class TestFindProjectRoot:
    """Tests for find_project_root function."""

    def test_nearest_scheck_dir(self, tmp_path):
        """The nearest ancestor with .scheck/ wins over the git root."""
        (tmp_path / ".git").mkdir()
        service = tmp_path / "services" / "api"
        (service / ".scheck").mkdir(parents=True)
        subdir = service / "src"
        subdir.mkdir()

        assert find_project_root(subdir) == service

    def test_falls_back_to_git_root(self, tmp_path):
        (tmp_path / ".git").mkdir()
        subdir = tmp_path / "src"
        subdir.mkdir()

        assert find_project_root(subdir) == tmp_path

    def test_falls_back_to_start(self, tmp_path):
        assert find_project_root(tmp_path) == tmp_path

    def test_defaults_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert find_project_root() == tmp_path
