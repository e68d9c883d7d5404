"""Record format identification.

Runs the compiled plan of every known format against the leading bytes of
a file to determine which formats it could be, independent of extension.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from hexstruct.config import FormatConfig, load_config
from hexstruct.plan import ParseResult, StructPlan

logger = logging.getLogger(__name__)


class FileIdentifier:
    """Identify binary files by parsing their headers with each known format.

    Parameters
    ----------
    configs : list[FormatConfig] or None
        Format definitions to match against.  When *None* the built-in
        defaults are loaded.
    namespace : mapping, optional
        Extra names for the formats' transform expressions.
    """

    def __init__(self, configs: list[FormatConfig] | None = None,
                 namespace: Mapping[str, Any] | None = None):
        self.configs: list[FormatConfig] = configs if configs is not None else load_config()
        self.plans: list[tuple[FormatConfig, StructPlan]] = [
            (cfg, cfg.compile(namespace)) for cfg in self.configs
        ]
        self._max_read = max((plan.size for _, plan in self.plans), default=0)

    def parse_bytes(self, data: bytes) -> list[tuple[FormatConfig, ParseResult]]:
        """Run every format against *data* and return each outcome."""
        outcomes = []
        for cfg, plan in self.plans:
            result = plan.parse_bytes(data)
            if not result.ok:
                logger.debug("%s does not match: %s", cfg.name, result.error)
            outcomes.append((cfg, result))
        return outcomes

    def identify_bytes(self, data: bytes) -> list[FormatConfig]:
        """Identify format from raw bytes.

        Parameters
        ----------
        data : bytes
            Initial bytes of a file.

        Returns
        -------
        list[FormatConfig]
            All formats whose plan parses *data*, largest record first.
        """
        matches = [cfg for cfg, result in self.parse_bytes(data) if result.ok]
        matches.sort(key=lambda c: c.size, reverse=True)
        return matches

    def identify_file(self, path: str | Path) -> list[FormatConfig]:
        """Identify format of a file on disk, reading only the bytes needed."""
        with open(Path(path), "rb") as fh:
            data = fh.read(self._max_read)
        return self.identify_bytes(data)

    def identify_by_extension(self, path: str | Path) -> list[FormatConfig]:
        """Return configs whose extension list matches the file suffix."""
        ext = Path(path).suffix.lower()
        return [cfg for cfg in self.configs if ext in cfg.extensions]
