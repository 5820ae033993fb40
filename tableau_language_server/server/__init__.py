"""
LSP server implementation for the Tableau Language Server.

A thin adapter: document events go to the re-parse controller, diagnostics
come back through its listener and are published to the client.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
from typing import List, Optional

from pygls.server import LanguageServer
from lsprotocol.types import (
    InitializeParams,
    DidOpenTextDocumentParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DocumentSymbol,
    DocumentSymbolParams,
)

from .. import __version__
from ..analysis.incremental import ReparseController
from ..analysis.types import DiagnosticsReport
from ..config import Config
from ..lsp_data import CalcSymbolKind

logger = logging.getLogger(__name__)

RELOAD_SIGNATURES_COMMAND = "tableau.reloadSignatures"


class CalcLanguageServer(LanguageServer):
    """Tableau calculation language server implementation."""

    def __init__(self, config: Optional[Config] = None):
        super().__init__("tableau-language-server", __version__)

        self.config = config or Config()
        self.controller = self._create_controller()

        # Register LSP handlers
        self._register_handlers()

    def _create_controller(self) -> ReparseController:
        controller = ReparseController(self.config)
        controller.add_diagnostics_listener(self._publish)
        return controller

    def _register_handlers(self) -> None:
        """Register LSP message handlers."""

        @self.feature("initialize")
        def initialize(params: InitializeParams) -> None:
            self.initialize(params)

        @self.feature("textDocument/didOpen")
        async def did_open(params: DidOpenTextDocumentParams) -> None:
            await self.did_open(params)

        @self.feature("textDocument/didChange")
        async def did_change(params: DidChangeTextDocumentParams) -> None:
            await self.did_change(params)

        @self.feature("textDocument/didClose")
        async def did_close(params: DidCloseTextDocumentParams) -> None:
            await self.did_close(params)

        @self.feature("textDocument/documentSymbol")
        async def document_symbol(params: DocumentSymbolParams) -> List[DocumentSymbol]:
            return await self.document_symbol(params)

        @self.command(RELOAD_SIGNATURES_COMMAND)
        def reload_signatures(*args) -> None:
            self.reload_signatures(*args)

    def initialize(self, params: InitializeParams) -> None:
        """Apply initialization options and rebuild the controller."""
        logger.info("Initializing Tableau Language Server")

        if params.initialization_options:
            self.config.set_initialization_options(params.initialization_options)
            options = self.config.initialization_options

            if options.signature_file:
                try:
                    self.config.load_signatures(options.signature_file)
                except Exception as e:
                    logger.error(f"Could not load signatures, using built-ins: {e}")

            if options.diagnostics_config_file:
                try:
                    self.config.load_diagnostics_config(options.diagnostics_config_file)
                except Exception as e:
                    logger.error(f"Could not load diagnostics config: {e}")

        self.controller = self._create_controller()

    async def did_open(self, params: DidOpenTextDocumentParams) -> None:
        """Handle document open."""
        document = params.text_document
        self._parse(document.uri, document.text, document.version)

    async def did_change(self, params: DidChangeTextDocumentParams) -> None:
        """Handle document change."""
        uri = params.text_document.uri
        # The workspace has already applied the content changes
        document = self.workspace.get_text_document(uri)
        self._parse(uri, document.source, params.text_document.version)

    async def did_close(self, params: DidCloseTextDocumentParams) -> None:
        """Handle document close."""
        uri = params.text_document.uri
        self.controller.invalidate_document(uri)
        self.publish_diagnostics(uri, [])

    async def document_symbol(self, params: DocumentSymbolParams) -> List[DocumentSymbol]:
        """Handle document symbol request."""
        try:
            uri = params.text_document.uri
            parsed = self.controller.get_parsed_document(uri)
            if parsed is None:
                document = self.workspace.get_text_document(uri)
                parsed = self.controller.parse(uri, document.source, document.version or 0)

            return [
                symbol.to_lsp_document_symbol()
                for symbol in parsed.symbols
                if symbol.kind not in (CalcSymbolKind.OPERATOR, CalcSymbolKind.COMMENT)
            ]

        except Exception as e:
            logger.error(f"Error in document symbol: {e}")
            return []

    def reload_signatures(self, *args) -> None:
        """Reload the signature file and re-check every open document."""
        options = self.config.initialization_options
        if options and options.signature_file:
            try:
                self.config.load_signatures(options.signature_file)
            except Exception as e:
                logger.error(f"Could not reload signatures: {e}")
                return

        self.controller.reload_signatures(self.config.signatures)
        for uri, document in list(self.workspace.text_documents.items()):
            self._parse(uri, document.source, document.version or 0)

    def _parse(self, uri: str, text: str, version: Optional[int]) -> None:
        try:
            self.controller.parse(uri, text, version or 0)
        except Exception as e:
            logger.error(f"Error analyzing document {uri}: {e}")

    def _publish(self, report: DiagnosticsReport) -> None:
        diagnostics = [d.to_lsp_diagnostic() for d in report.diagnostics]
        self.publish_diagnostics(report.document_id, diagnostics, report.version)


def run_server(config: Optional[Config] = None) -> int:
    """
    Run the Tableau Language Server over stdin/stdout.

    Args:
        config: Optional configuration to start with

    Returns:
        Exit code
    """
    try:
        server = CalcLanguageServer(config)
        server.start_io()
        return 0

    except Exception as e:
        logger.error(f"Server error: {e}")
        return 1


# Export main functions
__all__ = [
    "CalcLanguageServer",
    "run_server",
    "RELOAD_SIGNATURES_COMMAND",
]
