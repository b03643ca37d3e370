"""Tests for repository identities and cache path derivation."""

import pytest

from gitcache import RepositoryIdentity, cache_path, parse_identity, sanitize_segment
from gitcache._paths import join, relative_to


# ---------------------------------------------------------------------------
# sanitize_segment / cache_path
# ---------------------------------------------------------------------------

class TestCachePath:
    def test_lowercases_and_replaces(self):
        assert cache_path(RepositoryIdentity("Octo Cat", "My.Repo")) == "/repos/octo-cat/my-repo"

    def test_keeps_safe_characters(self):
        assert cache_path(RepositoryIdentity("a_b-c", "x9")) == "/repos/a_b-c/x9"

    def test_trims_whitespace_first(self):
        assert sanitize_segment("  Notes  ") == "notes"

    def test_every_unsafe_char_replaced(self):
        assert sanitize_segment("a/b\\c:d") == "a-b-c-d"

    def test_non_ascii_replaced(self):
        assert sanitize_segment("Café") == "caf-"

    def test_collisions_are_accepted(self):
        a = cache_path(RepositoryIdentity("o", "a.b"))
        b = cache_path(RepositoryIdentity("o", "a-b"))
        assert a == b

    def test_custom_root(self):
        assert cache_path(RepositoryIdentity("O", "N"), "/data/") == "/data/o/n"

    def test_output_alphabet(self):
        path = cache_path(RepositoryIdentity("Wéird Owner!", "  ~Name?  "))
        owner, name = path.split("/")[2:]
        for segment in (owner, name):
            assert all(c.isascii() and (c.isalnum() or c in "_-") for c in segment)
            assert segment == segment.lower()

    def test_idempotent(self):
        once = sanitize_segment("Some Repo.git")
        assert sanitize_segment(once) == once

    def test_cache_key(self):
        assert RepositoryIdentity("Octo", "Notes").cache_key() == ("octo", "notes")


class TestParseIdentity:
    def test_owner_and_name(self):
        repo = parse_identity("octocat/hello-world")
        assert repo == RepositoryIdentity("octocat", "hello-world")
        assert str(repo) == "octocat/hello-world"

    def test_surrounding_slashes(self):
        assert parse_identity("/a/b/") == RepositoryIdentity("a", "b")

    @pytest.mark.parametrize("value", ["", "owner", "owner/", "/name", "a/b/c"])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="OWNER/NAME"):
            parse_identity(value)


class TestJoin:
    def test_join(self):
        assert join("/repos/a/b", "uploads", "x.png") == "/repos/a/b/uploads/x.png"

    def test_join_strips_slashes(self):
        assert join("/repos/", "/a/", "b") == "/repos/a/b"

    def test_join_root(self):
        assert join("/", "") == "/"

    def test_relative_to(self):
        assert relative_to("/repos/a/b", "/repos/a/b/src/x.mp4") == "src/x.mp4"

    def test_relative_to_already_relative(self):
        assert relative_to("/repos/a/b", "/movie.mp4") == "movie.mp4"
