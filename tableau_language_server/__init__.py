"""
Tableau Language Server

Editor tooling backend for the Tableau calculation language. It turns the
raw, often incomplete text of a calculated field into a symbol tree plus
diagnostics on every keystroke, re-parsing only the edited region of large
calculations.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

__version__ = "0.1.0"
__author__ = "Tableau Language Server contributors"
__license__ = "Apache-2.0 OR MIT"

import logging

# Set up default logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def version() -> str:
    """Return the version string."""
    return __version__


def internal_error(message: str, *args) -> None:
    """Log an internal error message."""
    logger = logging.getLogger(__name__)
    if args:
        logger.error(f"Internal Error: {message.format(*args)}")
    else:
        logger.error(f"Internal Error: {message}")


# Export commonly used types and functions
__all__ = [
    "version",
    "internal_error",
    "__version__",
    "__author__",
    "__license__",
]
