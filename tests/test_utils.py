"""
Unit tests for utils module.
"""
import pytest
from unittest.mock import patch

from topic_coverage.utils import (
    sanitize_text, normalize_whitespace, bare_domain, is_valid_url,
    first_env_var, chunk_list, sha256_hex, truncate, unique, frequent_terms,
    retry_on_failure
)


class TestTextProcessing:
    """Test text processing functions."""

    def test_sanitize_text(self):
        """Test text sanitization."""
        dirty_text = "  This   has   extra   spaces  &nbsp; and &amp; entities  "
        clean_text = sanitize_text(dirty_text)
        assert "  " not in clean_text
        assert "&nbsp;" not in clean_text
        assert "&amp;" not in clean_text
        assert clean_text.strip() == clean_text

    def test_sanitize_empty(self):
        assert sanitize_text("") == ""
        assert sanitize_text(None) == ""

    def test_normalize_whitespace_keeps_paragraphs(self):
        """Runs of spaces collapse but paragraph breaks survive."""
        text = "First   line\nstill first\n\n\n   Second    paragraph  "
        assert normalize_whitespace(text) == "First line still first\n\nSecond paragraph"

    def test_truncate(self):
        assert truncate("abcdef", 3) == "abc"
        assert truncate("abc", 10) == "abc"

    def test_frequent_terms(self):
        """Words of four or more letters by frequency, ties in first-seen order."""
        text = "SEO tips for content. Content strategy and content audits. Strategy matters."
        assert frequent_terms(text, limit=2) == ["content", "strategy"]

    def test_frequent_terms_min_count(self):
        text = "alpha alpha beta gamma gamma gamma"
        assert frequent_terms(text, min_count=2) == ["gamma", "alpha"]
        assert frequent_terms("   ") == []


class TestUrls:
    """Test URL helpers."""

    def test_bare_domain(self):
        assert bare_domain("https://www.example.com/path") == "example.com"
        assert bare_domain("not a url") == "not a url"

    def test_is_valid_url(self):
        """Test URL validation."""
        assert is_valid_url("https://example.com")
        assert is_valid_url("http://example.com/path")
        assert not is_valid_url("ftp://example.com")
        assert not is_valid_url("not-a-url")
        assert not is_valid_url("")


class TestHelpers:
    """Test small helpers."""

    def test_chunk_list(self):
        """Test list chunking."""
        test_list = list(range(10))
        chunks = chunk_list(test_list, 3)
        assert len(chunks) == 4
        assert chunks[0] == [0, 1, 2]
        assert chunks[-1] == [9]

    def test_unique_preserves_order(self):
        assert unique(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]

    def test_sha256_hex(self):
        digest = sha256_hex("hello")
        assert digest == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"

    def test_first_env_var(self, monkeypatch):
        """The first non-empty variable wins."""
        monkeypatch.delenv("TC_FIRST", raising=False)
        monkeypatch.setenv("TC_SECOND", "")
        monkeypatch.setenv("TC_THIRD", "value")
        assert first_env_var("TC_FIRST", "TC_SECOND", "TC_THIRD") == "value"
        assert first_env_var("TC_FIRST") is None


class TestRetry:
    """Test retry_on_failure decorator."""

    def test_retries_then_succeeds(self):
        calls = []

        @retry_on_failure(max_retries=3, delay=0.5, exceptions=(ValueError,))
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ValueError("boom")
            return "ok"

        with patch("topic_coverage.utils.time.sleep") as sleep:
            assert flaky() == "ok"

        assert len(calls) == 3
        # Exponential backoff
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_gives_up(self):
        @retry_on_failure(max_retries=2, delay=0, exceptions=(ValueError,))
        def always_fails():
            raise ValueError("boom")

        with patch("topic_coverage.utils.time.sleep"):
            with pytest.raises(ValueError):
                always_fails()

    def test_unhandled_errors_propagate_immediately(self):
        calls = []

        @retry_on_failure(max_retries=3, delay=0, exceptions=(ValueError,))
        def wrong_error():
            calls.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            wrong_error()
        assert len(calls) == 1
