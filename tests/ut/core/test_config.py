"""config.py 单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from gotrash.core.config import Config, get_config, init_config
from gotrash.core.exceptions import ConfigError


class TestConfig:
    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("TRASH_CACHE", raising=False)
        monkeypatch.setenv("GOPATH", "/go")
        cfg = Config.from_env()
        assert cfg.manifest == "vendor.conf"
        assert cfg.target == "vendor"
        assert cfg.gopath == "/go"
        assert cfg.skip_tags == ["ignore"]
        assert cfg.cache_dir == str(Path.home() / ".trash-cache")

    def test_cache_env(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("TRASH_CACHE", str(tmp_path))
        cfg = Config.from_env()
        assert cfg.cache_root == tmp_path.resolve()
        assert cfg.cache_src == tmp_path.resolve() / "src"

    def test_overrides_and_none_ignored(self, tmp_path) -> None:
        cfg = Config.from_env(directory=str(tmp_path), target="third_party", cache_dir=None)
        assert cfg.vendor_dir == tmp_path.resolve() / "third_party"
        assert cfg.cache_dir

    def test_unknown_override_rejected(self) -> None:
        with pytest.raises(ConfigError, match="custom"):
            Config.from_env(custom="x")

    def test_ignore_tag_always_present(self) -> None:
        cfg = Config(skip_tags=["integration", "integration"])
        assert cfg.skip_tags == ["integration", "ignore"]

    def test_workers_clamped(self) -> None:
        assert Config(max_workers=0).max_workers == 1

    def test_init_config_sets_current(self, tmp_path) -> None:
        cfg = init_config(directory=str(tmp_path), keep=True)
        assert get_config() is cfg
        assert cfg.keep
