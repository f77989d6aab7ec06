"""Smoke tests for all CLI commands using typer CliRunner."""

from pathlib import Path
from unittest.mock import patch

import pytest
import tomlkit
from helpers import NOW, FakeProvider, make_commit, make_mr
from rich.console import Console
from typer.testing import CliRunner

import mrw.settings as settings_module
from mrw.engine import Engine
from mrw.errors import GitContextError
from mrw.main import app
from mrw.models import Event, Project, User
from mrw.settings import MrwSettings

runner = CliRunner()

MR_URL = "https://gitlab.example.com/group/proj1/-/merge_requests/5"


@pytest.fixture(autouse=True)
def reset_lru_cache():
    settings_module._load_toml.cache_clear()
    yield
    settings_module._load_toml.cache_clear()


@pytest.fixture(autouse=True)
def wide_output():
    """Render tables wide enough that cell text is never truncated."""
    with patch("mrw.main.rprint", Console(width=200).print):
        yield


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MRW_PROFILE", "MRW_TOKEN", "MRW_TEAM", "MRW_BASE_URL", "MRW_ISSUE_URL_TEMPLATE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _settings(**overrides) -> MrwSettings:
    fields = {
        "base_url": "https://gitlab.example.com",
        "token": "glpat-test",
        "team": ["alice", "bob", "carol"],
        "issue_url_template": "https://t.example.com/browse/{issue}",
    }
    return MrwSettings(**{**fields, **overrides})


def _no_git() -> tuple[str, str]:
    raise GitContextError("not a git repository")


def _in_clone() -> tuple[str, str]:
    return "git@gitlab.example.com:group/proj1.git", "feature"


def _invoke(fake: FakeProvider, args: list[str], *, team=("alice", "bob", "carol"), context=_no_git, **kwargs):
    engine = Engine(fake, list(team), clock=lambda: NOW, context_resolver=context)
    with (
        patch("mrw.main.get_settings", return_value=_settings()),
        patch("mrw.main.get_engine", return_value=engine),
    ):
        return runner.invoke(app, args, **kwargs)


@pytest.fixture
def team_fake(fake: FakeProvider, alice: User, bob: User, carol: User) -> FakeProvider:
    fake.add_users(alice, bob, carol)
    fake.projects["group/proj1"] = Project(id=1, path="group/proj1")
    fake.mrs = [make_mr(5, author=alice, source_branch="feature", title="ENG-7 Hotfix")]
    fake.commits[1] = [make_commit("a", bob.email), make_commit("b", bob.email), make_commit("c", carol.email)]
    return fake


class TestMyMr:
    def test_renders_table(self, fake: FakeProvider) -> None:
        fake.my_mrs = [make_mr(1, title="Hotfix")]
        result = _invoke(fake, ["my", "mr"])
        assert result.exit_code == 0
        assert "Hotfix" in result.output

    def test_suggests_creating_merge_request(self, fake: FakeProvider) -> None:
        fake.projects["group/proj1"] = Project(id=1, path="group/proj1")
        result = _invoke(fake, ["my", "mr"], context=_in_clone)
        assert result.exit_code == 0
        assert "No open merge requests." in result.output
        assert "No merge request for this branch yet" in result.output

    def test_no_hint_outside_clone(self, fake: FakeProvider) -> None:
        result = _invoke(fake, ["my", "mr"])
        assert result.exit_code == 0
        assert "Create one" not in result.output


class TestMyReview:
    def test_renders_table(self, fake: FakeProvider, alice: User, bob: User) -> None:
        fake.current_user = bob
        fake.mrs = [make_mr(1, author=alice, reviewers=[bob], title="Hotfix")]
        result = _invoke(fake, ["my", "review"])
        assert result.exit_code == 0
        assert "Hotfix" in result.output
        assert "alice" in result.output

    def test_nothing_waiting(self, fake: FakeProvider, bob: User) -> None:
        fake.current_user = bob
        result = _invoke(fake, ["my", "review"])
        assert result.exit_code == 0
        assert "Nothing waiting for your review." in result.output


class TestMyActivity:
    def test_renders_table(self, fake: FakeProvider, bob: User) -> None:
        fake.current_user = bob
        fake.events = [
            Event(id=1, action="opened", target_type="MergeRequest", target_title="Hotfix", created_at=NOW)
        ]
        result = _invoke(fake, ["my", "activity", "--after", "2025-03-10"])
        assert result.exit_code == 0
        assert "Hotfix" in result.output
        assert fake.count("get_user_events") == 1

    def test_no_activity(self, fake: FakeProvider, bob: User) -> None:
        fake.current_user = bob
        result = _invoke(fake, ["my", "activity"])
        assert result.exit_code == 0
        assert "No activity in this period." in result.output

    def test_bad_date_exits(self, fake: FakeProvider) -> None:
        result = _invoke(fake, ["my", "activity", "--after", "yesterday"])
        assert result.exit_code == 1
        assert "error:" in result.output
        assert fake.calls == []


class TestTeamReview:
    def test_renders_table(self, fake: FakeProvider, alice: User, bob: User) -> None:
        fake.add_users(alice, bob)
        fake.mrs = [make_mr(1, author=alice, reviewers=[bob], title="Hotfix")]
        result = _invoke(fake, ["team", "review"], team=("alice", "bob"))
        assert result.exit_code == 0
        assert "Hotfix" in result.output
        assert "bob" in result.output


class TestRoulette:
    def test_applies_with_yes(self, team_fake: FakeProvider) -> None:
        result = _invoke(team_fake, ["mr", "roulette", MR_URL, "--yes"])
        assert result.exit_code == 0
        assert "Merge request updated." in result.output
        assert team_fake.updates == [(1, 5, 2, [3])]

    def test_confirm_accepted(self, team_fake: FakeProvider) -> None:
        result = _invoke(team_fake, ["mr", "roulette", MR_URL], input="y\n")
        assert result.exit_code == 0
        assert team_fake.updates == [(1, 5, 2, [3])]

    def test_confirm_declined(self, team_fake: FakeProvider) -> None:
        result = _invoke(team_fake, ["mr", "roulette", MR_URL], input="n\n")
        assert result.exit_code == 0
        assert "Merge request updated." not in result.output
        assert team_fake.updates == []

    def test_current_branch(self, team_fake: FakeProvider) -> None:
        result = _invoke(team_fake, ["mr", "roulette", "-y"], context=_in_clone)
        assert result.exit_code == 0
        assert team_fake.updates == [(1, 5, 2, [3])]

    def test_empty_team_exits(self, team_fake: FakeProvider) -> None:
        result = _invoke(team_fake, ["mr", "roulette", MR_URL, "--yes"], team=())
        assert result.exit_code == 1
        assert "no team members available" in result.output
        assert team_fake.updates == []

    def test_bad_url_exits(self, team_fake: FakeProvider) -> None:
        result = _invoke(team_fake, ["mr", "roulette", "https://gitlab.example.com/group/proj1/-/issues/5"])
        assert result.exit_code == 1
        assert "error:" in result.output

    def test_outside_clone_without_url_exits(self, team_fake: FakeProvider) -> None:
        result = _invoke(team_fake, ["mr", "roulette"])
        assert result.exit_code == 1
        assert "not a git repository" in result.output


class TestMrStatus:
    def test_renders_table(self, team_fake: FakeProvider, bob: User) -> None:
        team_fake.approvals[(1, 5)] = [bob]
        result = _invoke(team_fake, ["mr", "status", MR_URL])
        assert result.exit_code == 0
        assert "Hotfix" in result.output
        assert "waiting" in result.output

    def test_unknown_project_exits(self, fake: FakeProvider) -> None:
        result = _invoke(fake, ["mr", "status", MR_URL])
        assert result.exit_code == 1
        assert "project not found" in result.output


class TestBrowse:
    def test_mr_browse(self, team_fake: FakeProvider) -> None:
        with patch("mrw.main.webbrowser.open") as mock_open:
            result = _invoke(team_fake, ["mr", "browse"], context=_in_clone)
        assert result.exit_code == 0
        mock_open.assert_called_once_with(MR_URL)

    def test_issue_browse(self, team_fake: FakeProvider) -> None:
        with patch("mrw.main.webbrowser.open") as mock_open:
            result = _invoke(team_fake, ["issue", "browse"], context=_in_clone)
        assert result.exit_code == 0
        mock_open.assert_called_once_with("https://t.example.com/browse/ENG-7")

    def test_issue_browse_without_number(self, fake: FakeProvider) -> None:
        fake.projects["group/proj1"] = Project(id=1, path="group/proj1")
        fake.mrs = [make_mr(5, source_branch="feature", title="Hotfix")]
        with patch("mrw.main.webbrowser.open") as mock_open:
            result = _invoke(fake, ["issue", "browse"], context=_in_clone)
        assert result.exit_code == 1
        assert "no issue number found" in result.output
        mock_open.assert_not_called()


class TestMissingSettings:
    def test_exits_without_token(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings_module, "CONFIG_PATH", tmp_path / "missing.toml")
        result = runner.invoke(app, ["team", "review"])
        assert result.exit_code == 1
        assert "Missing GitLab credentials" in result.output


class TestSetDefault:
    def test_creates_config_if_missing(self, tmp_path: Path) -> None:
        config_path = tmp_path / "mrw" / "config.toml"
        with patch("mrw.main.CONFIG_PATH", config_path):
            result = runner.invoke(app, ["set-default", "work"])
        assert result.exit_code == 0
        assert tomlkit.loads(config_path.read_text())["default_profile"] == "work"

    def test_validates_profile_exists(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.toml"
        config_path.write_text(tomlkit.dumps({"work": {"token": "t"}}))
        with patch("mrw.main.CONFIG_PATH", config_path):
            result = runner.invoke(app, ["set-default", "nonexistent"])
        assert result.exit_code == 1
        assert "default_profile" not in config_path.read_text()

    def test_updates_existing_config(self, tmp_path: Path) -> None:
        config_path = tmp_path / "config.toml"
        config_path.write_text("# my profiles\n" + tomlkit.dumps({"work": {"token": "t"}, "home": {"token": "h"}}))
        with patch("mrw.main.CONFIG_PATH", config_path):
            result = runner.invoke(app, ["set-default", "home"])
        assert result.exit_code == 0
        text = config_path.read_text()
        assert "# my profiles" in text
        assert tomlkit.loads(text)["default_profile"] == "home"


class TestConfigShow:
    def test_masks_token(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_path = tmp_path / "config.toml"
        config_path.write_text(tomlkit.dumps({"work": {"token": "glpat-abcdefghij", "team": ["alice"]}}))
        monkeypatch.setattr(settings_module, "CONFIG_PATH", config_path)
        result = runner.invoke(app, ["config-show"])
        assert result.exit_code == 0
        assert "...fghij" in result.output
        assert "glpat-abcdefghij" not in result.output


class TestInit:
    def test_writes_profile(self, tmp_path: Path) -> None:
        config_path = tmp_path / "mrw" / "config.toml"
        answers = "work\nhttps://git.corp.io/\nglpat-secret\nalice, bob\n\nn\ny\n"
        with patch("mrw.main.CONFIG_PATH", config_path):
            result = runner.invoke(app, ["init"], input=answers)
        assert result.exit_code == 0
        doc = tomlkit.loads(config_path.read_text())
        assert doc["default_profile"] == "work"
        assert doc["work"]["base_url"] == "https://git.corp.io"
        assert list(doc["work"]["team"]) == ["alice", "bob"]
        assert "issue_url_template" not in doc["work"]
