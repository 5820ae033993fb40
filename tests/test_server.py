"""
Tests for the LSP server adapter.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import json

import pytest
from lsprotocol.types import (
    ClientCapabilities,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DocumentSymbolParams,
    InitializeParams,
    SymbolKind,
    TextDocumentContentChangeEvent_Type2,
    TextDocumentIdentifier,
    TextDocumentItem,
    VersionedTextDocumentIdentifier,
)

from tableau_language_server import __version__
from tableau_language_server.analysis.incremental import DocumentState
from tableau_language_server.server import CalcLanguageServer

URI = "file:///workbook/profit.twbl"


class FakeDocument:
    def __init__(self, source, version=None):
        self.source = source
        self.version = version


class FakeWorkspace:
    """Stands in for the pygls workspace, which only exists after initialize."""

    def __init__(self):
        self.text_documents = {}

    def get_text_document(self, uri):
        return self.text_documents[uri]


@pytest.fixture
def workspace(monkeypatch):
    fake = FakeWorkspace()
    monkeypatch.setattr(CalcLanguageServer, "workspace", property(lambda self: fake))
    return fake


@pytest.fixture
def published():
    return []


@pytest.fixture
def server(monkeypatch, workspace, published):
    ls = CalcLanguageServer()

    def record(uri, diagnostics, version=None):
        published.append((uri, diagnostics, version))

    monkeypatch.setattr(ls, "publish_diagnostics", record)
    return ls


def open_params(text, version=1):
    return DidOpenTextDocumentParams(
        text_document=TextDocumentItem(uri=URI, language_id="tableau", version=version, text=text)
    )


def change_params(text, version):
    return DidChangeTextDocumentParams(
        text_document=VersionedTextDocumentIdentifier(uri=URI, version=version),
        content_changes=[TextDocumentContentChangeEvent_Type2(text=text)]
    )


class TestServerSetup:
    """Test server construction and initialization."""

    def test_server_creation(self, server):
        """Test server identity."""
        assert server.name == "tableau-language-server"
        assert server.version == __version__
        assert server.controller is not None

    def test_initialize(self, server, tmp_path):
        """Test applying initialization options."""
        path = tmp_path / "functions.json"
        path.write_text(json.dumps({"MARGIN": [2, 2]}))
        params = InitializeParams(
            capabilities=ClientCapabilities(),
            initialization_options={"signature_file": str(path), "max_diagnostics_per_file": 1}
        )

        server.initialize(params)

        assert "MARGIN" in server.config.signatures
        assert server.controller.analyzer.max_diagnostics == 1
        assert "MARGIN" in server.controller.analyzer.signatures

    def test_initialize_with_missing_file(self, server, tmp_path, caplog):
        """Test that a missing signature file keeps the built-ins."""
        params = InitializeParams(
            capabilities=ClientCapabilities(),
            initialization_options={"signature_file": str(tmp_path / "missing.json")}
        )

        server.initialize(params)

        assert "SUM" in server.config.signatures
        assert "Could not load signatures" in caplog.text


@pytest.mark.asyncio
class TestDocumentSync:
    """Test document notifications."""

    async def test_did_open_publishes(self, server, published):
        """Test that opening a document publishes its diagnostics."""
        await server.did_open(open_params("ROUD([Sales])"))

        assert len(published) == 1
        uri, diagnostics, version = published[0]
        assert uri == URI
        assert version == 1
        assert len(diagnostics) == 1
        diagnostic = diagnostics[0]
        assert diagnostic.message == "Unknown function: ROUD"
        assert diagnostic.severity == DiagnosticSeverity.Warning
        assert diagnostic.source == "tableau-language-server"
        assert diagnostic.data["suggestion"] == "ROUND"
        assert diagnostic.data["category"] == "unknown function"

    async def test_did_change_uses_workspace_text(self, server, workspace, published):
        """Test that changes are read from the workspace document."""
        await server.did_open(open_params("SUM([Sales])"))
        workspace.text_documents[URI] = FakeDocument("SUM([Sales]", 2)

        await server.did_change(change_params("SUM([Sales]", 2))

        uri, diagnostics, version = published[-1]
        assert version == 2
        assert [d.severity for d in diagnostics] == [DiagnosticSeverity.Warning]
        assert diagnostics[0].message == "Close the SUM function call with ')'."
        assert diagnostics[0].data["recovered"] is True

    async def test_did_close_clears(self, server, published):
        """Test that closing a document clears its diagnostics."""
        await server.did_open(open_params("ROUD([Sales])"))
        await server.did_close(DidCloseTextDocumentParams(text_document=TextDocumentIdentifier(uri=URI)))

        assert published[-1] == (URI, [], None)
        assert server.controller.get_document_state(URI) == DocumentState.UNCACHED


@pytest.mark.asyncio
class TestDocumentSymbols:
    """Test the document symbol request."""

    async def test_symbols_of_open_document(self, server):
        """Test outline symbols without operators and comments."""
        await server.did_open(open_params("SUM([Sales]) + 1 // note"))

        symbols = await server.document_symbol(
            DocumentSymbolParams(text_document=TextDocumentIdentifier(uri=URI))
        )

        assert [s.name for s in symbols] == ["SUM", "1"]
        assert symbols[0].kind == SymbolKind.Function
        assert symbols[0].children[0].name == "Sales"
        assert symbols[0].children[0].kind == SymbolKind.Field
        assert symbols[1].kind == SymbolKind.Constant

    async def test_symbols_parse_on_demand(self, server, workspace):
        """Test that an uncached document is parsed from the workspace."""
        workspace.text_documents[URI] = FakeDocument("{FIXED [Region] : SUM([Sales])}")

        symbols = await server.document_symbol(
            DocumentSymbolParams(text_document=TextDocumentIdentifier(uri=URI))
        )

        assert [s.name for s in symbols] == ["FIXED"]
        assert symbols[0].kind == SymbolKind.Object
        assert server.controller.get_parsed_document(URI).version == 0

    async def test_symbols_for_unknown_document(self, server, caplog):
        """Test that a failing request returns no symbols."""
        symbols = await server.document_symbol(
            DocumentSymbolParams(text_document=TextDocumentIdentifier(uri=URI))
        )
        assert symbols == []
        assert "Error in document symbol" in caplog.text


@pytest.mark.asyncio
class TestReloadSignatures:
    """Test the signature reload command."""

    async def test_reload_rechecks_open_documents(self, server, workspace, published):
        """Test that every open document is analyzed again."""
        await server.did_open(open_params("ROUD([Sales])"))
        workspace.text_documents[URI] = FakeDocument("ROUD([Sales])", 1)

        server.reload_signatures()

        assert len(published) == 2
        assert published[-1][2] == 1
        assert server.controller.get_document_state(URI) == DocumentState.CACHED
