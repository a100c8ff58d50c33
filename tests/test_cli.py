"""命令行接口测试"""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from modpublish import __version__
from modpublish.cli import main
from modpublish.core.dep.models import ModuleKey
from modpublish.services import container as container_mod
from modpublish.services.vendor_service import RunSummary
from modpublish.utils.logger import reset_logging


@pytest.fixture()
def runner() -> Iterator[CliRunner]:
    yield CliRunner(env={"MODPUBLISH_LOG_LEVEL": "WARNING"})
    reset_logging()


class TestEscape:
    def test_escape(self, runner: CliRunner) -> None:
        r = runner.invoke(main, ["escape", "github.com/BurntSushi/toml"])
        assert r.exit_code == 0
        assert r.output.strip() == "github.com/!burnt!sushi/toml"

    def test_unescape(self, runner: CliRunner) -> None:
        r = runner.invoke(main, ["unescape", "github.com/!burnt!sushi/toml"])
        assert r.exit_code == 0
        assert r.output.strip() == "github.com/BurntSushi/toml"

    def test_unescape_invalid(self, runner: CliRunner) -> None:
        r = runner.invoke(main, ["unescape", "github.com/!B"])
        assert r.exit_code == 1
        assert "无效转义" in r.output

    def test_version(self, runner: CliRunner) -> None:
        r = runner.invoke(main, ["--version"])
        assert __version__ in r.output


class TestLedger:
    def test_list(self, runner: CliRunner, tmp_path: Path) -> None:
        ledger = tmp_path / "ledger.yml"
        ledger.write_text(yaml.dump({"published": ["github.com/!sirupsen/logrus:v1.4.2"]}))
        r = runner.invoke(main, ["ledger", "-c", str(tmp_path / "none.yml"), "--ledger", str(ledger)])
        assert r.exit_code == 0
        assert "github.com/Sirupsen/logrus@v1.4.2" in r.output
        assert "共 1 个" in r.output

    def test_empty(self, runner: CliRunner, tmp_path: Path) -> None:
        r = runner.invoke(main, ["ledger", "-c", str(tmp_path / "none.yml"),
                                 "--ledger", str(tmp_path / "ledger.yml")])
        assert r.exit_code == 0
        assert "没有已发布的模块" in r.output

    def test_clear(self, runner: CliRunner, tmp_path: Path) -> None:
        ledger = tmp_path / "ledger.yml"
        ledger.write_text("published: []\n")
        r = runner.invoke(main, ["ledger", "-c", str(tmp_path / "none.yml"),
                                 "--ledger", str(ledger), "--clear"])
        assert r.exit_code == 0
        assert not ledger.exists()


class _FakeVendor:
    def __init__(self, summary: RunSummary) -> None:
        self.summary = summary
        self.modules: list[str] = []

    def project_modules(self, project: str) -> set[str]:
        return {"example.com/b@v1.0.0", "example.com/a@v1.0.0"}

    def run(self, modules: list[str]) -> RunSummary:
        self.modules = list(modules)
        return self.summary


class TestPublish:
    BASE = ["publish", "--url", "https://art.example.com", "--repo", "go-local"]

    def _patch(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, summary: RunSummary) -> _FakeVendor:
        vendor = _FakeVendor(summary)

        class _Container:
            pass

        fake = _Container()
        fake.vendor = vendor  # type: ignore[attr-defined]
        monkeypatch.setattr("modpublish.cli._svc", lambda: fake)
        monkeypatch.setattr(container_mod, "_global", None)
        monkeypatch.chdir(tmp_path)
        return vendor

    def test_missing_repo(self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        r = runner.invoke(main, ["publish", "example.com/a@v1.0.0"])
        assert r.exit_code == 1
        assert "target_repo" in r.output

    def test_no_targets(self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self._patch(monkeypatch, tmp_path, RunSummary())
        r = runner.invoke(main, self.BASE)
        assert r.exit_code == 2

    def test_success(self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        vendor = self._patch(monkeypatch, tmp_path, RunSummary(total=2, successes=2, skipped=1))
        r = runner.invoke(main, [*self.BASE, "example.com/a@v1.0.0", "--project", str(tmp_path)])
        assert r.exit_code == 0, r.output
        assert vendor.modules == [
            "example.com/a@v1.0.0", "example.com/a@v1.0.0", "example.com/b@v1.0.0",
        ]
        assert "发布 1" in r.output

    def test_failures_exit_code(self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        key = ModuleKey("example.com/a", "v1.0.0")
        self._patch(monkeypatch, tmp_path, RunSummary(total=1, failures=1, failed=[key.id]))
        r = runner.invoke(main, [*self.BASE, "example.com/a@v1.0.0", "--json"])
        assert r.exit_code == 1
        assert json.loads(r.output)["failed"] == [key.id]
