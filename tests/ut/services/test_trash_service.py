"""TrashService 单元测试（缓存预置在磁盘上，git 调用脚本化）"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pytest
import yaml

from gotrash.core.config import Config
from gotrash.core.exceptions import ConfigError, ResolutionError
from gotrash.services.trash_service import TrashService, guess_root_package
from gotrash.utils.shell import CommandResult

ROOT = "example.com/app"


def _write(base: Path, rel: str, content: str = "x") -> None:
    p = base / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content)


def _toplevel_is_cwd(args, cwd):
    return CommandResult(0, cwd + "\n", "")


@pytest.fixture()
def workspace(tmp_path):
    proj = tmp_path / "proj"
    cache = tmp_path / "cache"
    _write(proj, "main.go", 'package main\n\nimport "github.com/a/lib"\n\nfunc main() {}\n')
    src = cache / "src"
    _write(src, "github.com/a/lib/lib.go", 'package lib\n\nimport "github.com/c/deep"\n')
    _write(src, "github.com/a/lib/unused/u.go", "package unused\n")
    _write(src, "github.com/a/lib/README.md", "# lib\n")
    _write(src, "github.com/a/lib/LICENSE", "MIT\n")
    _write(src, "github.com/c/deep/deep.go", "package deep\n")
    _write(src, "github.com/z/unused/z.go", "package z\n")
    return proj, cache


@pytest.fixture()
def scripted(fake_executor):
    fake_executor.handle("git rev-parse --show-toplevel", _toplevel_is_cwd)
    fake_executor.on("git rev-parse HEAD", stdout="deadbeef\n")
    fake_executor.on("git remote", stdout="origin\n")
    fake_executor.on("git describe", stdout="v1.2.3\n")
    return fake_executor


def _service(proj: Path, cache: Path, executor, **kwargs) -> TrashService:
    cfg = Config(directory=str(proj), cache_dir=str(cache), max_workers=2, **kwargs)
    return TrashService(cfg, executor=executor)


MANIFEST = """\
package: example.com/app
import:
  - package: github.com/a/lib
    version: v1.0.0
  - package: github.com/c/deep
    version: v2.0.0
  - package: github.com/z/unused
    version: v0.1.0
"""


class TestSync:
    def test_sync_and_prune(self, workspace, scripted, caplog) -> None:
        proj, cache = workspace
        (proj / "vendor.conf").write_text(MANIFEST)
        with caplog.at_level(logging.WARNING):
            _service(proj, cache, scripted).run()

        vendor = proj / "vendor"
        files = {p.relative_to(vendor).as_posix() for p in vendor.rglob("*") if p.is_file()}
        assert files == {
            "github.com/a/lib/lib.go", "github.com/a/lib/LICENSE", "github.com/c/deep/deep.go",
        }
        assert "github.com/z/unused" in caplog.text
        cmds = scripted.commands()
        assert "git checkout -f --detach v1.0.0" in cmds
        assert "git checkout -f --detach v2.0.0" in cmds
        assert not any(c.startswith("go get") for c in cmds)

    def test_keep_skips_pruning(self, workspace, scripted) -> None:
        proj, cache = workspace
        (proj / "vendor.conf").write_text(MANIFEST.replace("package: example.com/app\n", ""))
        _service(proj, cache, scripted, keep=True).run()
        vendor = proj / "vendor"
        assert (vendor / "github.com/a/lib/unused/u.go").exists()
        assert (vendor / "github.com/z/unused/z.go").exists()

    def test_missing_version_aborts_before_git(self, workspace, scripted) -> None:
        proj, cache = workspace
        (proj / "vendor.conf").write_text("package: example.com/app\nimport:\n  - package: github.com/a/lib\n")
        with pytest.raises(ConfigError, match="github.com/a/lib"):
            _service(proj, cache, scripted).run()
        assert scripted.calls == []
        assert not (proj / "vendor").exists()

    def test_missing_manifest(self, workspace, scripted) -> None:
        proj, cache = workspace
        with pytest.raises(ConfigError, match="清单文件不存在"):
            _service(proj, cache, scripted).run()

    def test_resolution_failure_leaves_vendor_untouched(self, workspace, scripted) -> None:
        proj, cache = workspace
        (proj / "vendor.conf").write_text(MANIFEST)
        _write(proj, "vendor/previous.go", "package previous\n")
        scripted.on("git checkout -f --detach v2.0.0", 1)
        with pytest.raises(ResolutionError):
            _service(proj, cache, scripted).run()
        assert (proj / "vendor/previous.go").exists()

    def test_transitive_extras(self, workspace, scripted) -> None:
        proj, cache = workspace
        src = cache / "src"
        _write(src, "github.com/a/lib/Godeps/Godeps.json", json.dumps({
            "Deps": [
                {"ImportPath": "github.com/c/deep", "Rev": "ignored"},
                {"ImportPath": "github.com/t/extra/pkg", "Rev": "abc123"},
            ],
        }))
        _write(src, "github.com/t/extra/pkg/e.go", "package pkg\n")
        _write(src, "github.com/a/lib/lib.go",
               'package lib\n\nimport (\n\t"github.com/c/deep"\n\t"github.com/t/extra/pkg"\n)\n')
        (proj / "vendor.conf").write_text(
            "package: example.com/app\n"
            "import:\n"
            "  - package: github.com/a/lib\n    version: v1.0.0\n    transitive: true\n"
            "  - package: github.com/c/deep\n    version: v2.0.0\n"
        )
        _service(proj, cache, scripted).run()

        cmds = scripted.commands()
        assert "git checkout -f --detach abc123" in cmds
        assert "git checkout -f --detach ignored" not in cmds
        assert (proj / "vendor/github.com/t/extra/pkg/e.go").exists()

    def test_staging(self, workspace, scripted) -> None:
        proj, cache = workspace
        _write(cache / "src", "github.com/a/lib/staging/src/github.com/a/api/api.go", "package api\n")
        (proj / "vendor.conf").write_text(
            "package: example.com/app\nimport:\n"
            "  - package: github.com/a/lib\n    version: v1.0.0\n    staging: true\n"
        )
        _service(proj, cache, scripted, keep=True).run()
        assert (proj / "vendor/github.com/a/api/api.go").exists()


class TestUpdate:
    def test_regenerates_manifest(self, workspace, scripted) -> None:
        proj, cache = workspace
        (proj / "vendor.conf").write_text(
            "package: example.com/app\n"
            "import:\n"
            "  - package: github.com/a/lib\n    repo: https://mirror.example/lib.git\n"
            "  - package: github.com/gone/away\n    version: v0.0.1\n"
        )
        svc = _service(proj, cache, scripted, update=True)
        manifest = svc.run()

        data = yaml.safe_load((proj / "vendor.conf").read_text())
        assert data == {
            "package": ROOT,
            "import": [
                {"package": "github.com/a/lib", "version": "v1.2.3",
                 "repo": "https://mirror.example/lib.git"},
                {"package": "github.com/c/deep", "version": "v1.2.3"},
            ],
        }
        assert [s.import_path for s in manifest.imports] == ["github.com/a/lib", "github.com/c/deep"]
        remote = manifest.get("github.com/a/lib").remote.name
        cmds = scripted.commands()
        assert f"git checkout -f --detach {remote}/master" in cmds
        assert "git checkout -f --detach origin/master" in cmds
        assert "git checkout -f --detach v1.2.3" in cmds
        assert (proj / "vendor/github.com/c/deep/deep.go").exists()

    def test_creates_missing_manifest(self, workspace, scripted, tmp_path) -> None:
        proj, cache = workspace
        gopath = tmp_path / "go"
        (gopath / "src").mkdir(parents=True)
        with pytest.raises(ConfigError, match="不在"):
            _service(proj, cache, scripted, update=True, gopath=str(gopath)).run()
        assert (proj / "vendor.conf").exists()


class TestGuessRootPackage:
    def test_derived_from_gopath(self, tmp_path) -> None:
        project = tmp_path / "go" / "src" / "example.com" / "app"
        project.mkdir(parents=True)
        assert guess_root_package(project, str(tmp_path / "go")) == ROOT

    def test_empty_gopath(self, tmp_path) -> None:
        with pytest.raises(ConfigError, match="GOPATH"):
            guess_root_package(tmp_path, "")

    def test_multiple_paths(self, tmp_path) -> None:
        with pytest.raises(ConfigError, match="只能包含一个路径"):
            guess_root_package(tmp_path, os.pathsep.join(["/a", "/b"]))

    def test_missing_src(self, tmp_path) -> None:
        with pytest.raises(ConfigError, match="不存在"):
            guess_root_package(tmp_path, str(tmp_path / "go"))

    def test_project_outside_gopath(self, tmp_path) -> None:
        (tmp_path / "go" / "src").mkdir(parents=True)
        (tmp_path / "elsewhere").mkdir()
        with pytest.raises(ConfigError, match="不在"):
            guess_root_package(tmp_path / "elsewhere", str(tmp_path / "go"))
