"""vendor.py 单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from gotrash.core.exceptions import ConfigError, VendorError
from gotrash.core.models import PackageSpec
from gotrash.core.vendor import VendorSync, strip_vcs_metadata


def _write(base: Path, rel: str, content: str = "x") -> None:
    p = base / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content)


@pytest.fixture()
def cache_src(tmp_path):
    src = tmp_path / "cache" / "src"
    _write(src, "github.com/a/b/b.go", "package b\n")
    _write(src, "github.com/a/b/.git/HEAD", "ref: refs/heads/master\n")
    _write(src, "github.com/a/b/sub/s.go", "package sub\n")
    _write(src, "github.com/c/d/d.go", "package d\n")
    _write(src, "github.com/c/d/.git", "gitdir: ../../.git/modules/d\n")
    _write(src, "k8s.io/kubernetes/k.go", "package kubernetes\n")
    _write(src, "k8s.io/kubernetes/staging/src/k8s.io/api/a.go", "package api\n")
    _write(src, "k8s.io/kubernetes/staging/src/k8s.io/client-go/c.go", "package client\n")
    return src


SPECS = [PackageSpec("github.com/a/b", "v1"), PackageSpec("github.com/c/d", "v2")]


class TestVendorSync:
    def test_copy_and_strip(self, cache_src, tmp_path) -> None:
        vendor = tmp_path / "proj" / "vendor"
        VendorSync(cache_src).sync(vendor, SPECS, strip_vcs=True)
        assert (vendor / "github.com/a/b/b.go").read_text() == "package b\n"
        assert (vendor / "github.com/a/b/sub/s.go").exists()
        assert (vendor / "github.com/c/d/d.go").exists()
        assert not (vendor / "github.com/a/b/.git").exists()
        assert not (vendor / "github.com/c/d/.git").exists()
        # 缓存工作树本身不受影响
        assert (cache_src / "github.com/a/b/.git/HEAD").exists()

    def test_keep_vcs_metadata(self, cache_src, tmp_path) -> None:
        vendor = tmp_path / "vendor"
        VendorSync(cache_src).sync(vendor, SPECS, strip_vcs=False)
        assert (vendor / "github.com/a/b/.git/HEAD").exists()

    def test_stale_content_removed(self, cache_src, tmp_path) -> None:
        vendor = tmp_path / "vendor"
        _write(vendor, "github.com/old/pkg/old.go")
        VendorSync(cache_src).sync(vendor, SPECS)
        assert not (vendor / "github.com/old").exists()

    def test_missing_version_aborts_before_mutation(self, cache_src, tmp_path) -> None:
        vendor = tmp_path / "vendor"
        _write(vendor, "github.com/old/pkg/old.go")
        specs = [*SPECS, PackageSpec("github.com/e/f")]
        with pytest.raises(ConfigError, match="github.com/e/f"):
            VendorSync(cache_src).sync(vendor, specs)
        assert (vendor / "github.com/old/pkg/old.go").exists()

    def test_missing_cache_entry(self, cache_src, tmp_path) -> None:
        with pytest.raises(VendorError, match="缓存中不存在"):
            VendorSync(cache_src).sync(tmp_path / "vendor", [PackageSpec("github.com/no/pe", "v1")])

    def test_nested_packages(self, cache_src, tmp_path) -> None:
        vendor = tmp_path / "vendor"
        specs = [PackageSpec("github.com/a/b/sub", "v1"), PackageSpec("github.com/a/b", "v1")]
        VendorSync(cache_src).sync(vendor, specs)
        assert (vendor / "github.com/a/b/b.go").exists()
        assert (vendor / "github.com/a/b/sub/s.go").exists()
        assert sorted(p.name for p in (vendor / "github.com/a").iterdir()) == ["b"]


class TestStaging:
    def test_copy_staging(self, cache_src, tmp_path) -> None:
        vendor = tmp_path / "vendor"
        spec = PackageSpec("k8s.io/kubernetes", "v1.10.0", staging=True)
        sync = VendorSync(cache_src)
        sync.sync(vendor, [spec])
        copied = sync.copy_staging(vendor, spec)
        assert [p.name for p in copied] == ["api", "client-go"]
        assert (vendor / "k8s.io/api/a.go").exists()
        assert (vendor / "k8s.io/client-go/c.go").exists()
        assert (vendor / "k8s.io/kubernetes/k.go").exists()

    def test_missing_staging_dir(self, cache_src, tmp_path) -> None:
        with pytest.raises(VendorError, match="staging"):
            VendorSync(cache_src).copy_staging(tmp_path / "vendor", PackageSpec("github.com/a/b", "v1"))


class TestStripVcs:
    def test_counts_removed_entries(self, tmp_path) -> None:
        _write(tmp_path, "a/.git/config")
        _write(tmp_path, "a/b/.hg/store")
        _write(tmp_path, "c/.git")
        _write(tmp_path, "c/keep.go")
        assert strip_vcs_metadata(tmp_path) == 3
        assert (tmp_path / "c/keep.go").exists()
        assert not (tmp_path / "a/b/.hg").exists()
