"""
Incremental re-parse controller.

Decides between a full parse and a region re-parse for every document
version, keeps the cache current and notifies diagnostics listeners.
A region re-parse always yields the same ParsedDocument as a full parse of
the same text.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from . import DocumentAnalyzer, RegionAnalysis
from .types import DiagnosticsReport, ParsedDocument
from ..cache import CacheEntry, DocumentCache
from ..config import Config
from ..lsp_data import CalcDiagnostic, CalcSymbol
from ..signatures import FunctionSignatureTable
from ..span import SpanBuilder, ZeroPosition

logger = logging.getLogger(__name__)

DiagnosticsListener = Callable[[DiagnosticsReport], None]


class DocumentState(Enum):
    """Cache state of a document."""
    UNCACHED = "uncached"
    CACHED = "cached"
    INVALIDATED = "invalidated"


class ParseMode(Enum):
    """How the last parse request was served."""
    FULL = "full"
    INCREMENTAL = "incremental"
    UNCHANGED = "unchanged"
    CACHED = "cached"


@dataclass(frozen=True)
class ReparsePlan:
    """Line-aligned region of a document to re-parse."""
    prefix_count: int
    suffix_start: int
    start_line: int
    end_line_old: int
    end_line_new: int
    line_delta: int


def changed_lines(old: Sequence[str], new: Sequence[str]) -> Tuple[int, int]:
    """
    Compare two line lists by their common prefix and suffix.

    Returns:
        (prefix, suffix) line counts, never overlapping in either list
    """
    limit = min(len(old), len(new))
    prefix = 0
    while prefix < limit and old[prefix] == new[prefix]:
        prefix += 1

    suffix = 0
    while suffix < limit - prefix and old[-1 - suffix] == new[-1 - suffix]:
        suffix += 1

    return prefix, suffix


def _is_open(symbol: CalcSymbol) -> bool:
    # A call whose parenthesis lies past the region is open as well
    return symbol.is_fallback or (symbol.is_container and not symbol.is_closed)


class ReparseController:
    """Entry point of the analysis core: parse requests, lookups and cache control."""

    def __init__(self, config: Optional[Config] = None,
                 signatures: Optional[FunctionSignatureTable] = None,
                 cache: Optional[DocumentCache] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config or Config()
        self.settings = self.config.incremental
        self.analyzer = DocumentAnalyzer(
            signatures or self.config.signatures,
            self.config.diagnostics_config,
            max_nesting_depth=self.settings.max_nesting_depth,
            max_diagnostics=self.config.get_max_diagnostics_per_file()
        )
        self.cache = cache or DocumentCache(
            self.settings.max_cache_entries, self.settings.index_ttl_seconds, clock
        )
        self.last_parse_mode: Optional[ParseMode] = None

        self._invalidated: Set[str] = set()
        self._listeners: List[DiagnosticsListener] = []
        self._stats: Dict[str, int] = {
            "full_parses": 0,
            "incremental_parses": 0,
            "unchanged_parses": 0,
            "cache_hits": 0,
            "stale_results": 0,
        }

    def parse(self, document_id: str, text: str, version: int,
              previous_entry: Optional[CacheEntry] = None) -> ParsedDocument:
        """
        Parse a document version.

        Args:
            document_id: Identifier of the document (usually its URI)
            text: Full text of this version
            version: Monotonically increasing document version
            previous_entry: Entry to diff against instead of the cached one

        Returns:
            ParsedDocument for this version
        """
        current = self.cache.peek(document_id)
        if current is not None and version < current.version:
            logger.debug(
                f"{document_id}: version {version} is older than cached {current.version}, "
                "result will not be cached"
            )
            self._stats["stale_results"] += 1
            self.last_parse_mode = ParseMode.FULL
            return self.analyzer.analyze(document_id, text, version)

        self.cache.sweep()

        lines = tuple(text.split('\n'))
        base = previous_entry if previous_entry is not None else current
        usable = (
            base is not None
            and base.document_id == document_id
            and document_id not in self._invalidated
        )

        if usable and base.lines == lines:
            if base.version == version:
                self._stats["cache_hits"] += 1
                self.last_parse_mode = ParseMode.CACHED
                self.cache.get(document_id)
                return base.parsed_document

            parsed = replace(base.parsed_document, version=version)
            entry = replace(base, version=version, parsed_document=parsed, index=None)
            self._stats["unchanged_parses"] += 1
            return self._store(entry, ParseMode.UNCHANGED)

        entry = None
        if usable:
            try:
                entry = self._parse_incremental(base, document_id, text, lines, version)
            except Exception:
                logger.exception(f"Incremental parse of {document_id} failed, parsing in full")
                entry = None

        if entry is not None:
            self._stats["incremental_parses"] += 1
            return self._store(entry, ParseMode.INCREMENTAL)

        self._stats["full_parses"] += 1
        return self._store(self._parse_full(document_id, text, lines, version), ParseMode.FULL)

    def _store(self, entry: CacheEntry, mode: ParseMode) -> ParsedDocument:
        self.last_parse_mode = mode
        if self.cache.put(entry):
            self._invalidated.discard(entry.document_id)
        logger.debug(f"Parsed {entry.document_id} v{entry.version} ({mode.value})")
        self._notify(entry.parsed_document)
        return entry.parsed_document

    def _parse_full(self, document_id: str, text: str, lines: Tuple[str, ...],
                    version: int) -> CacheEntry:
        region = self.analyzer.analyze_region(text)
        return self._entry(document_id, version, lines, region.symbols, region.symbol_diagnostics)

    def _entry(self, document_id: str, version: int, lines: Tuple[str, ...],
               symbols: List[CalcSymbol],
               symbol_diagnostics: Sequence[Sequence[CalcDiagnostic]]) -> CacheEntry:
        parsed = self.analyzer.finalize(document_id, version, symbols, symbol_diagnostics)
        return CacheEntry(
            document_id=document_id,
            version=version,
            parsed_document=parsed,
            lines=lines,
            symbol_diagnostics=tuple(tuple(group) for group in symbol_diagnostics)
        )

    def _parse_incremental(self, base: CacheEntry, document_id: str, text: str,
                           lines: Tuple[str, ...], version: int) -> Optional[CacheEntry]:
        plan = self.plan_reparse(base, lines)
        if plan is None:
            return None

        builder = SpanBuilder(text)
        start = builder.line_offset(plan.start_line)
        reaches_end = plan.end_line_new >= len(lines)
        end = len(text) if reaches_end else builder.line_offset(plan.end_line_new)

        region: RegionAnalysis = self.analyzer.analyze_region(text, start, end)
        if region.truncated:
            logger.debug(f"{document_id}: token crosses the re-parse region, parsing in full")
            return None
        if not reaches_end and region.symbols and _is_open(region.symbols[-1]):
            logger.debug(f"{document_id}: re-parsed region ends inside a construct, parsing in full")
            return None

        old_symbols = base.parsed_document.symbols
        delta = plan.line_delta
        symbols = list(old_symbols[:plan.prefix_count])
        symbols.extend(region.symbols)
        symbols.extend(s.shifted(delta) for s in old_symbols[plan.suffix_start:])

        symbol_diagnostics = list(base.symbol_diagnostics[:plan.prefix_count])
        symbol_diagnostics.extend(region.symbol_diagnostics)
        symbol_diagnostics.extend(
            tuple(d.shifted(delta) for d in group)
            for group in base.symbol_diagnostics[plan.suffix_start:]
        )

        logger.debug(
            f"{document_id}: re-parsed lines {plan.start_line}-{plan.end_line_new}, "
            f"reused {plan.prefix_count + len(old_symbols) - plan.suffix_start} symbols"
        )
        return self._entry(document_id, version, lines, symbols, symbol_diagnostics)

    def plan_reparse(self, base: CacheEntry, lines: Sequence[str]) -> Optional[ReparsePlan]:
        """
        Choose the region to re-parse, or None when a full parse is required.

        The region covers the changed lines plus one unchanged top-level
        symbol on each side, widened so that it starts and ends on lines no
        symbol outside it touches.
        """
        total = len(lines)
        if total < self.settings.min_lines_for_incremental:
            return None

        old_lines = base.lines
        prefix, suffix = changed_lines(old_lines, lines)
        old_changed_end = len(old_lines) - suffix
        changed = max(old_changed_end, total - suffix) - prefix
        if changed > self.settings.max_changed_fraction * total:
            logger.debug(f"{changed} of {total} lines changed, parsing in full")
            return None

        symbols = base.parsed_document.symbols
        if not symbols:
            return None

        # Last symbol entirely above the change and first one entirely below it
        before = -1
        for index, symbol in enumerate(symbols):
            if symbol.range.end.line < prefix:
                before = index
            else:
                break
        after = len(symbols)
        for index in range(before + 1, len(symbols)):
            if symbols[index].range.start.line >= old_changed_end:
                after = index
                break

        if before < 0:
            first, start_line = 0, 0
        else:
            first = before
            while first > 0 and symbols[first - 1].range.end.line >= symbols[first].range.start.line:
                first -= 1
            start_line = symbols[first].range.start.line

        if after >= len(symbols):
            last = len(symbols) - 1
            end_line_old = len(old_lines)
        else:
            last = after
            while (last + 1 < len(symbols)
                   and symbols[last + 1].range.start.line <= symbols[last].range.end.line):
                last += 1
            end_line_old = symbols[last].range.end.line + 1

        line_delta = total - len(old_lines)
        return ReparsePlan(
            prefix_count=first,
            suffix_start=last + 1,
            start_line=start_line,
            end_line_old=end_line_old,
            end_line_new=end_line_old + line_delta,
            line_delta=line_delta
        )

    def _notify(self, parsed: ParsedDocument) -> None:
        report = DiagnosticsReport(parsed.document_id, parsed.version, parsed.diagnostics)
        for listener in list(self._listeners):
            try:
                listener(report)
            except Exception as e:
                logger.error(f"Error in diagnostics listener: {e}")

    def add_diagnostics_listener(self, listener: DiagnosticsListener) -> None:
        """Register a callback receiving a DiagnosticsReport after every parse."""
        self._listeners.append(listener)

    def remove_diagnostics_listener(self, listener: DiagnosticsListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get_document_state(self, document_id: str) -> DocumentState:
        if document_id not in self.cache:
            return DocumentState.UNCACHED
        if document_id in self._invalidated:
            return DocumentState.INVALIDATED
        return DocumentState.CACHED

    def get_parsed_document(self, document_id: str) -> Optional[ParsedDocument]:
        entry = self.cache.get(document_id)
        return entry.parsed_document if entry else None

    def get_symbols_at_line(self, document_id: str, line: int) -> List[CalcSymbol]:
        """All symbols of a document that start on a line."""
        entry = self.cache.get(document_id)
        if entry is None:
            return []
        return entry.get_index().symbols_at_line(line)

    def get_symbols_by_name(self, document_id: str, name: str) -> List[CalcSymbol]:
        """Named symbols of a document, matched case-insensitively."""
        entry = self.cache.get(document_id)
        if entry is None:
            return []
        return entry.get_index().symbols_by_name(name)

    def get_symbol_at_position(self, document_id: str,
                               position: ZeroPosition) -> Optional[CalcSymbol]:
        """
        Find the deepest symbol whose range contains a position.

        Args:
            document_id: Document identifier
            position: Zero-indexed position

        Returns:
            The innermost enclosing symbol, or None
        """
        entry = self.cache.get(document_id)
        if entry is None:
            return None

        found = None
        candidates = list(entry.parsed_document.symbols)
        while True:
            match = _enclosing(candidates, position)
            if match is None:
                return found
            found = match
            candidates = list(match.parts())

    def invalidate_document(self, document_id: str) -> None:
        """Forget everything cached for a document."""
        self.cache.invalidate(document_id)
        self._invalidated.discard(document_id)

    def evict_all(self) -> int:
        """Drop the whole cache. Returns the number of dropped documents."""
        self._invalidated.clear()
        return self.cache.clear()

    def reload_signatures(self, signatures: Optional[FunctionSignatureTable] = None) -> None:
        """
        Switch to a new signature table and mark every cached document invalid.

        Invalidated documents are parsed in full on their next request.
        """
        if signatures is not None:
            self.analyzer.set_signatures(signatures)
        self._invalidated.update(self.cache.document_ids())
        logger.info(f"Signatures reloaded, {len(self._invalidated)} cached documents invalidated")

    def get_cache_stats(self) -> Dict[str, int]:
        """Get cache and parse statistics."""
        stats = self.cache.get_cache_stats()
        stats.update(self._stats)
        stats["invalidated_documents"] = len(self._invalidated)
        return stats


def _enclosing(candidates: Sequence[CalcSymbol], position: ZeroPosition) -> Optional[CalcSymbol]:
    # Prefer a symbol strictly containing the position over one ending at it
    touching = None
    for symbol in candidates:
        if symbol.range.start <= position < symbol.range.end:
            return symbol
        if touching is None and symbol.range.contains_position(position):
            touching = symbol
    return touching


# Export main classes
__all__ = [
    "DocumentState",
    "ParseMode",
    "ReparsePlan",
    "ReparseController",
    "changed_lines",
]
