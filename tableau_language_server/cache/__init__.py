"""
Document cache for the Tableau Language Server.

Keeps the latest parse result of each open document together with the data
needed to re-parse it incrementally, plus lazily built lookup indexes.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..analysis.types import ParsedDocument
from ..lsp_data import CalcDiagnostic, CalcSymbol, CalcSymbolKind

logger = logging.getLogger(__name__)

UNNAMED_KINDS = frozenset({CalcSymbolKind.EXPRESSION, CalcSymbolKind.COMMENT})


class SymbolIndex:
    """Line and name lookups over one document's symbol tree."""

    def __init__(self, symbols: Tuple[CalcSymbol, ...]):
        self._by_line: Dict[int, List[CalcSymbol]] = {}
        self._by_name: Dict[str, List[CalcSymbol]] = {}

        for top in symbols:
            for symbol in top.walk():
                self._by_line.setdefault(symbol.range.start.line, []).append(symbol)
                if symbol.kind not in UNNAMED_KINDS and symbol.name:
                    self._by_name.setdefault(symbol.name.upper(), []).append(symbol)

    def symbols_at_line(self, line: int) -> List[CalcSymbol]:
        """Symbols that start on a line, outermost first."""
        return list(self._by_line.get(line, []))

    def symbols_by_name(self, name: str) -> List[CalcSymbol]:
        """Symbols with a name, compared case-insensitively."""
        return list(self._by_name.get(name.upper(), []))

    def __len__(self) -> int:
        return sum(len(symbols) for symbols in self._by_line.values())


@dataclass
class CacheEntry:
    """Cached state of one document version."""
    document_id: str
    version: int
    parsed_document: ParsedDocument
    lines: Tuple[str, ...]
    symbol_diagnostics: Tuple[Tuple[CalcDiagnostic, ...], ...] = ()
    last_access: float = 0.0
    index: Optional[SymbolIndex] = field(default=None, repr=False)

    def get_index(self) -> SymbolIndex:
        """Get the lookup index, building it on first use."""
        if self.index is None:
            self.index = SymbolIndex(self.parsed_document.symbols)
            logger.debug(f"Built symbol index for {self.document_id} v{self.version}")
        return self.index


class DocumentCache:
    """Bounded map from document id to its latest cache entry."""

    def __init__(self, max_entries: int = 100, index_ttl: float = 300.0,
                 clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self.index_ttl = index_ttl
        self.clock = clock
        self._entries: 'OrderedDict[str, CacheEntry]' = OrderedDict()
        self._evictions = 0

    def get(self, document_id: str) -> Optional[CacheEntry]:
        """
        Get a document's entry and mark it as recently used.

        Args:
            document_id: Document identifier

        Returns:
            The cache entry, or None if the document is not cached
        """
        entry = self._entries.get(document_id)
        if entry is not None:
            entry.last_access = self.clock()
            self._entries.move_to_end(document_id)
        return entry

    def peek(self, document_id: str) -> Optional[CacheEntry]:
        """Get a document's entry without touching its access time."""
        return self._entries.get(document_id)

    def put(self, entry: CacheEntry) -> bool:
        """
        Store an entry unless a newer version is already cached.

        Args:
            entry: Entry to store

        Returns:
            True if the entry was stored
        """
        current = self._entries.get(entry.document_id)
        if current is not None and entry.version < current.version:
            logger.debug(
                f"Not caching {entry.document_id} v{entry.version}, "
                f"v{current.version} is already cached"
            )
            return False

        entry.last_access = self.clock()
        self._entries[entry.document_id] = entry
        self._entries.move_to_end(entry.document_id)

        while len(self._entries) > self.max_entries:
            evicted_id, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug(f"Evicted {evicted_id} from document cache")

        return True

    def invalidate(self, document_id: str) -> bool:
        """Drop a document's entry. Returns True if there was one."""
        removed = self._entries.pop(document_id, None) is not None
        if removed:
            logger.debug(f"Invalidated cache entry for {document_id}")
        return removed

    def clear(self) -> int:
        """Drop every entry and return how many there were."""
        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"Cleared document cache ({count} entries)")
        return count

    def sweep(self) -> int:
        """
        Release lookup indexes that have not been used for a while.

        Returns:
            Number of indexes released
        """
        now = self.clock()
        released = 0
        for entry in self._entries.values():
            if entry.index is not None and now - entry.last_access > self.index_ttl:
                entry.index = None
                released += 1
        if released:
            logger.debug(f"Released {released} idle symbol indexes")
        return released

    def document_ids(self) -> List[str]:
        return list(self._entries.keys())

    def __contains__(self, document_id: str) -> bool:
        return document_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_cache_stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        return {
            "cached_documents": len(self._entries),
            "indexed_documents": sum(1 for e in self._entries.values() if e.index is not None),
            "max_entries": self.max_entries,
            "evictions": self._evictions
        }


# Export main classes
__all__ = [
    "SymbolIndex",
    "CacheEntry",
    "DocumentCache",
]
