"""
Tests for the document cache.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

from tableau_language_server.analysis import analyze_text
from tableau_language_server.cache import CacheEntry, DocumentCache, SymbolIndex
from tableau_language_server.lsp_data import CalcSymbolKind


def make_entry(document_id, version, text="SUM([Sales])"):
    return CacheEntry(
        document_id=document_id,
        version=version,
        parsed_document=analyze_text(text),
        lines=tuple(text.split("\n"))
    )


class TestDocumentCache:
    """Test storing and evicting cache entries."""

    def test_put_and_get(self, clock):
        """Test basic storage."""
        cache = DocumentCache(clock=clock)
        entry = make_entry("a", 1)

        assert cache.put(entry)
        assert cache.get("a") is entry
        assert "a" in cache
        assert len(cache) == 1
        assert entry.last_access == clock.now

    def test_version_guard(self, clock):
        """Test that an older version never replaces a newer one."""
        cache = DocumentCache(clock=clock)
        cache.put(make_entry("a", 2))

        assert not cache.put(make_entry("a", 1))
        assert cache.peek("a").version == 2
        assert cache.put(make_entry("a", 2))
        assert cache.put(make_entry("a", 3))
        assert cache.peek("a").version == 3

    def test_lru_eviction(self, clock):
        """Test that the least recently used document is evicted first."""
        cache = DocumentCache(max_entries=2, clock=clock)
        cache.put(make_entry("a", 1))
        cache.put(make_entry("b", 1))
        cache.get("a")
        cache.put(make_entry("c", 1))

        assert cache.document_ids() == ["a", "c"]
        assert cache.get_cache_stats()["evictions"] == 1

    def test_peek_does_not_touch(self, clock):
        """Test that peeking keeps the access order."""
        cache = DocumentCache(max_entries=2, clock=clock)
        cache.put(make_entry("a", 1))
        cache.put(make_entry("b", 1))
        cache.peek("a")
        cache.put(make_entry("c", 1))

        assert "a" not in cache

    def test_invalidate_and_clear(self, clock):
        """Test removing entries."""
        cache = DocumentCache(clock=clock)
        cache.put(make_entry("a", 1))
        cache.put(make_entry("b", 1))

        assert cache.invalidate("a")
        assert not cache.invalidate("a")
        assert cache.clear() == 1
        assert len(cache) == 0

    def test_sweep_releases_idle_indexes(self, clock):
        """Test that indexes unused for longer than the TTL are released."""
        cache = DocumentCache(index_ttl=300.0, clock=clock)
        entry = make_entry("a", 1)
        cache.put(entry)
        entry.get_index()

        clock.advance(200)
        cache.get("a")
        clock.advance(200)
        assert cache.sweep() == 0
        assert entry.index is not None

        clock.advance(101)
        assert cache.sweep() == 1
        assert entry.index is None
        assert cache.get_cache_stats()["indexed_documents"] == 0

    def test_index_rebuilt_after_sweep(self, clock):
        """Test that a released index is rebuilt on demand."""
        cache = DocumentCache(index_ttl=10.0, clock=clock)
        entry = make_entry("a", 1)
        cache.put(entry)
        entry.get_index()

        clock.advance(11)
        cache.sweep()
        assert len(cache.get("a").get_index().symbols_by_name("SUM")) == 1

    def test_stats(self, clock):
        """Test cache statistics."""
        cache = DocumentCache(max_entries=5, clock=clock)
        cache.put(make_entry("a", 1))
        cache.get("a").get_index()

        assert cache.get_cache_stats() == {
            "cached_documents": 1,
            "indexed_documents": 1,
            "max_entries": 5,
            "evictions": 0,
        }


class TestSymbolIndex:
    """Test line and name lookups."""

    def test_lines(self):
        """Test the line index covers nested symbols."""
        parsed = analyze_text("IF [a] THEN\n  SUM([b])\nEND")
        index = SymbolIndex(parsed.symbols)

        line_one = index.symbols_at_line(1)
        assert [s.name for s in line_one] == ["SUM", "b", ")"]
        assert index.symbols_at_line(7) == []

    def test_names(self):
        """Test the name index skips expressions and comments."""
        parsed = analyze_text("// note\n(1 + 2) * sum([Sales]) + SUM([sales])")
        index = SymbolIndex(parsed.symbols)

        assert len(index.symbols_by_name("Sum")) == 2
        assert len(index.symbols_by_name("SALES")) == 2
        assert index.symbols_by_name("// note") == []
        assert index.symbols_by_name("(1 + 2)") == []
        assert all(s.kind == CalcSymbolKind.FUNCTION_CALL for s in index.symbols_by_name("sum"))

    def test_len(self):
        """Test counting indexed symbols."""
        parsed = analyze_text("SUM([Sales])")
        assert len(SymbolIndex(parsed.symbols)) == 3
