"""
Main entry point for the Tableau Language Server.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from . import version
from .cmd import run_cli
from .config import Config
from .server import run_server


logger = logging.getLogger(__name__)


@click.command()
@click.option(
    "--cli",
    is_flag=True,
    help="Check calculation files from the command line instead of serving LSP"
)
@click.option(
    "--signatures",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Optional function signature JSON file"
)
@click.option(
    "--diagnostics-cfg",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Optional diagnostics configuration JSON file (cli only)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose logging"
)
@click.argument(
    "files",
    nargs=-1,
    type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.version_option(version=version())
def main(
    cli: bool,
    signatures: Optional[Path],
    diagnostics_cfg: Optional[Path],
    verbose: bool,
    files: Tuple[Path, ...]
) -> None:
    """
    The Tableau calculation language server.

    Communicates over stdin/stdout using the Language Server Protocol, or
    with --cli checks FILES (default: every .twbl file below the current
    directory) and prints their diagnostics.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    logger.debug("Tableau Language Server starting")

    try:
        if cli:
            logger.info("Starting in CLI mode")
            exit_code = run_cli(files, signatures, diagnostics_cfg)
            sys.exit(exit_code)
        else:
            logger.info("Starting LSP server")
            config = Config()
            if signatures:
                config.load_signatures(signatures)
            exit_code = run_server(config)
            sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Server failed with error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
