"""
Configuration management for the Tableau Language Server.

© 2026 Tableau Language Server contributors
SPDX-License-Identifier: Apache-2.0 and MIT
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field, asdict
from enum import Enum

from .signatures import FunctionSignatureTable

logger = logging.getLogger(__name__)


class LogLevel(Enum):
    """Log levels supported by the server."""
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"


LOG_LEVEL_MAP = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.TRACE: logging.DEBUG  # Python doesn't have TRACE, use DEBUG
}


@dataclass
class DiagnosticsConfig:
    """Configuration for diagnostic rules."""
    enabled_rules: List[str] = field(default_factory=list)
    disabled_rules: List[str] = field(default_factory=list)
    rule_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DiagnosticsConfig':
        """Create DiagnosticsConfig from dictionary."""
        return cls(
            enabled_rules=data.get('enabled_rules', []),
            disabled_rules=data.get('disabled_rules', []),
            rule_configs=data.get('rule_configs', {})
        )


@dataclass
class IncrementalSettings:
    """Tuning of the incremental re-parse controller."""
    # Documents with fewer lines are always parsed in full
    min_lines_for_incremental: int = 20
    # Re-parse in full when more than this share of the lines changed
    max_changed_fraction: float = 0.3
    max_cache_entries: int = 100
    index_ttl_seconds: float = 300.0
    max_nesting_depth: int = 64

    def __post_init__(self):
        if self.min_lines_for_incremental < 0:
            raise ValueError("min_lines_for_incremental must not be negative")
        if not 0.0 <= self.max_changed_fraction <= 1.0:
            raise ValueError("max_changed_fraction must be between 0 and 1")
        if self.max_cache_entries < 1:
            raise ValueError("max_cache_entries must be at least 1")
        if self.max_nesting_depth < 1:
            raise ValueError("max_nesting_depth must be at least 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'IncrementalSettings':
        """Create IncrementalSettings from dictionary."""
        defaults = cls()
        return cls(
            min_lines_for_incremental=int(data.get('min_lines_for_incremental', defaults.min_lines_for_incremental)),
            max_changed_fraction=float(data.get('max_changed_fraction', defaults.max_changed_fraction)),
            max_cache_entries=int(data.get('max_cache_entries', defaults.max_cache_entries)),
            index_ttl_seconds=float(data.get('index_ttl_seconds', defaults.index_ttl_seconds)),
            max_nesting_depth=int(data.get('max_nesting_depth', defaults.max_nesting_depth))
        )


@dataclass
class InitializationOptions:
    """Options that can be passed during LSP initialization."""
    signature_file: Optional[Path] = None
    diagnostics_config_file: Optional[Path] = None
    max_diagnostics_per_file: int = 100
    log_level: LogLevel = LogLevel.INFO
    incremental: IncrementalSettings = field(default_factory=IncrementalSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InitializationOptions':
        """Create InitializationOptions from dictionary."""
        log_level = LogLevel.INFO
        if 'log_level' in data:
            try:
                log_level = LogLevel(data['log_level'])
            except ValueError:
                logger.warning(f"Invalid log level: {data['log_level']}")

        return cls(
            signature_file=Path(data['signature_file']) if data.get('signature_file') else None,
            diagnostics_config_file=(
                Path(data['diagnostics_config_file']) if data.get('diagnostics_config_file') else None
            ),
            max_diagnostics_per_file=data.get('max_diagnostics_per_file', 100),
            log_level=log_level,
            incremental=IncrementalSettings.from_dict(data.get('incremental', {}))
        )


class Config:
    """Main configuration class for the Tableau Language Server."""

    def __init__(self):
        self._initialization_options: Optional[InitializationOptions] = None
        self._diagnostics_config: Optional[DiagnosticsConfig] = None
        self._signatures = FunctionSignatureTable()

    @property
    def initialization_options(self) -> Optional[InitializationOptions]:
        """Get initialization options."""
        return self._initialization_options

    def set_initialization_options(self, options: Dict[str, Any]) -> None:
        """Set initialization options from LSP initialize request."""
        self._initialization_options = InitializationOptions.from_dict(options)
        logger.info(f"Initialization options set: {self._initialization_options}")

        # Apply log level
        logging.getLogger().setLevel(LOG_LEVEL_MAP[self._initialization_options.log_level])

    @property
    def signatures(self) -> FunctionSignatureTable:
        """Get the function signature table."""
        return self._signatures

    def load_signatures(self, path: Path) -> None:
        """
        Load function signatures from a JSON file.

        The format is:
        {
          "<FUNCTION NAME>": [<min args>, <max args or null>],
          "<FUNCTION NAME>": {"min_args": 1, "max_args": 2, "documentation": "..."}
        }

        Args:
            path: Path to the signature JSON file
        """
        self._signatures.load_json(path)

    def load_diagnostics_config(self, path: Path) -> None:
        """
        Load diagnostics configuration from a JSON file.

        Args:
            path: Path to the diagnostics config JSON file
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            self._diagnostics_config = DiagnosticsConfig.from_dict(data)
            logger.info(f"Loaded diagnostics config from {path}: {self._diagnostics_config}")

        except Exception as e:
            logger.error(f"Failed to load diagnostics config from {path}: {e}")
            raise

    @property
    def diagnostics_config(self) -> Optional[DiagnosticsConfig]:
        """Get diagnostics configuration."""
        return self._diagnostics_config

    @property
    def incremental(self) -> IncrementalSettings:
        """Get incremental re-parse settings."""
        if self._initialization_options:
            return self._initialization_options.incremental
        return IncrementalSettings()

    def get_max_diagnostics_per_file(self) -> int:
        """Get maximum number of diagnostics per file."""
        if self._initialization_options:
            return self._initialization_options.max_diagnostics_per_file
        return 100

    def clear(self) -> None:
        """Clear all configuration."""
        self._initialization_options = None
        self._diagnostics_config = None
        self._signatures = FunctionSignatureTable()
        logger.debug("Configuration cleared")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        options = None
        if self._initialization_options:
            options = {
                'signature_file': str(self._initialization_options.signature_file or ''),
                'diagnostics_config_file': str(self._initialization_options.diagnostics_config_file or ''),
                'max_diagnostics_per_file': self._initialization_options.max_diagnostics_per_file,
                'log_level': self._initialization_options.log_level.value,
                'incremental': asdict(self._initialization_options.incremental),
            }
        return {
            'function_count': len(self._signatures),
            'has_diagnostics_config': self._diagnostics_config is not None,
            'initialization_options': options,
        }
