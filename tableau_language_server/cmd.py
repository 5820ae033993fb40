"""
Command line interface for the Tableau Language Server.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .analysis.incremental import ReparseController
from .analysis.types import ParsedDocument
from .config import Config
from .lsp_data import path_to_uri

logger = logging.getLogger(__name__)

CALCULATION_EXTENSIONS = ('.twbl',)


def discover_calculation_files(root: Path) -> List[Path]:
    """Find calculation files below a directory, sorted by path."""
    return sorted(
        path for path in root.rglob('*')
        if path.is_file() and path.suffix.lower() in CALCULATION_EXTENSIONS
    )


def format_diagnostics(file_path: Path, parsed: ParsedDocument) -> List[str]:
    """Render diagnostics as ``file:line:col: severity: message`` lines (one-indexed)."""
    lines = []
    for diagnostic in parsed.diagnostics:
        start = diagnostic.range.start.to_one_indexed()
        lines.append(
            f"{file_path}:{start.line}:{start.column}: "
            f"{diagnostic.severity.value}: {diagnostic.message}"
        )
    return lines


def run_cli(
    files: Sequence[Path] = (),
    signatures_path: Optional[Path] = None,
    diagnostics_cfg_path: Optional[Path] = None
) -> int:
    """
    Check calculation files from the command line.

    Args:
        files: Files to check; every calculation file below the current
            directory when empty
        signatures_path: Optional function signature JSON file
        diagnostics_cfg_path: Optional diagnostics configuration JSON file

    Returns:
        Exit code (0 for success, 1 if any error remains)
    """
    logger.debug("Running in CLI mode")

    try:
        # Initialize configuration
        config = Config()
        if signatures_path:
            config.load_signatures(signatures_path)
        if diagnostics_cfg_path:
            config.load_diagnostics_config(diagnostics_cfg_path)

        controller = ReparseController(config)

        calc_files = list(files) or discover_calculation_files(Path.cwd())
        if not calc_files:
            logger.warning("No calculation files found in current directory")
            return 0

        logger.info(f"Found {len(calc_files)} calculation files to analyze")

        total_errors = 0
        total_warnings = 0

        for calc_file in calc_files:
            logger.info(f"Analyzing {calc_file}")

            try:
                content = calc_file.read_text(encoding='utf-8')
                parsed = controller.parse(path_to_uri(calc_file), content, 0)

                for line in format_diagnostics(calc_file, parsed):
                    print(line)

                total_errors += len(parsed.errors)
                total_warnings += len(parsed.warnings)

            except Exception as e:
                logger.error(f"Failed to analyze {calc_file}: {e}")
                total_errors += 1

        # Print summary
        if total_errors > 0 or total_warnings > 0:
            print(f"\nSummary: {total_errors} errors, {total_warnings} warnings")
        else:
            print(f"\nAll {len(calc_files)} files analyzed successfully")

        return 1 if total_errors > 0 else 0

    except Exception as e:
        logger.error(f"CLI analysis failed: {e}", exc_info=True)
        return 1
