"""Tests for Settings."""

from pathlib import Path

import pytest

from gitcache import Settings


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.cache_root == "/repos"
        assert s.branch == "main"
        assert s.clone_depth == 1
        assert s.remote_base == "https://github.com"
        assert s.cors_proxy is None
        assert s.log_level == "WARNING"
        assert s.cache_dir == Path.home() / ".gitcache"

    def test_remote_url(self):
        assert Settings().remote_url("octo", "notes") == "https://github.com/octo/notes"

    def test_trailing_slashes_stripped(self):
        s = Settings(remote_base="https://git.example.com/", cors_proxy="https://relay/x/")
        assert s.remote_base == "https://git.example.com"
        assert s.cors_proxy == "https://relay/x"

    def test_transport_url_direct(self):
        assert Settings().transport_url("https://github.com/a/b") == "https://github.com/a/b"

    def test_transport_url_through_proxy(self):
        s = Settings(cors_proxy="https://app.example.com/cors-proxy")
        assert s.transport_url("https://github.com/a/b") == \
            "https://app.example.com/cors-proxy/github.com/a/b"

    def test_proxy_ignores_local_paths(self):
        s = Settings(cors_proxy="https://app.example.com/cors-proxy")
        assert s.transport_url("/srv/git/a/b") == "/srv/git/a/b"

    @pytest.mark.parametrize("kwargs", [
        {"cache_root": "repos"},
        {"remote_base": ""},
        {"branch": ""},
        {"branch": "has space"},
        {"clone_depth": 0},
        {"log_level": "LOUD"},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            Settings(**kwargs)

    def test_log_level_case_insensitive(self):
        assert Settings(log_level="debug").log_level == "DEBUG"


class TestFromEnv:
    def test_empty_env(self):
        assert Settings.from_env({}) == Settings()

    def test_reads_variables(self, tmp_path):
        s = Settings.from_env({
            "GITCACHE_DIR": str(tmp_path),
            "GITCACHE_REMOTE_BASE": "https://git.example.com",
            "GITCACHE_CORS_PROXY": "https://relay",
            "GITCACHE_LFS_URL": "https://lfs.example.com",
            "GITCACHE_BRANCH": "trunk",
            "GITCACHE_CLONE_DEPTH": "5",
            "GITCACHE_LOG_LEVEL": "info",
        })
        assert s.cache_dir == tmp_path
        assert s.remote_base == "https://git.example.com"
        assert s.cors_proxy == "https://relay"
        assert s.lfs_url == "https://lfs.example.com"
        assert s.branch == "trunk"
        assert s.clone_depth == 5
        assert s.log_level == "INFO"

    def test_depth_zero_means_full_history(self):
        assert Settings.from_env({"GITCACHE_CLONE_DEPTH": "0"}).clone_depth is None

    def test_bad_depth(self):
        with pytest.raises(ValueError, match="GITCACHE_CLONE_DEPTH"):
            Settings.from_env({"GITCACHE_CLONE_DEPTH": "deep"})

    def test_overrides_win(self, tmp_path):
        s = Settings.from_env({"GITCACHE_BRANCH": "trunk"}, branch="dev", cache_dir=None)
        assert s.branch == "dev"
        assert s.cache_dir == Path.home() / ".gitcache"
