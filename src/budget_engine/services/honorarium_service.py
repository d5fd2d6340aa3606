"""
Honorarium Service - Resolves the client-specific honorarium percentage.

The agency keeps one honorarium percentage per client. The table is a CSV
export with `client_name` and `honorario_percent` columns.
"""
import logging
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pandas as pd

from ..engine.money import clamp_percent, parse_percent

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('client_name', 'honorario_percent')


class HonorariumTable:
    """
    Case-insensitive client → honorarium percentage lookup.

    An absent file yields an empty table; a file without the expected
    columns is a configuration error.
    """

    def __init__(self, frame: Optional[pd.DataFrame] = None):
        self.rates: dict[str, Decimal] = {}
        if frame is not None and not frame.empty:
            self._load_frame(frame)

    @classmethod
    def from_csv(cls, path: Optional[Path]) -> 'HonorariumTable':
        """Load the table from CSV; missing path → empty table."""
        if path is None or not Path(path).exists():
            return cls()
        frame = pd.read_csv(path, dtype=str).fillna('')
        frame.columns = [c.strip() for c in frame.columns]
        return cls(frame)

    @classmethod
    def from_mapping(cls, rates: dict) -> 'HonorariumTable':
        """Build a table from a plain {client: percent} mapping."""
        frame = pd.DataFrame(
            [{'client_name': k, 'honorario_percent': v} for k, v in rates.items()],
            columns=list(REQUIRED_COLUMNS),
        )
        return cls(frame)

    def _load_frame(self, frame: pd.DataFrame):
        missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(
                f"Honorarium table is missing columns: {', '.join(missing)}"
            )

        for _, row in frame.iterrows():
            client = self._key(row['client_name'])
            if not client:
                continue
            # cells may hold numpy scalars; parse their text form
            percent, ok = parse_percent(str(row['honorario_percent']).strip(), default=Decimal('0'))
            if not ok:
                logger.warning("Unparsable honorarium %r for client %r; using 0",
                               row['honorario_percent'], row['client_name'])
            clamped = clamp_percent(percent)
            if clamped != percent:
                logger.warning("Honorarium %s%% for client %r clamped to %s%%",
                               percent, row['client_name'], clamped)
            self.rates[client] = clamped

    @staticmethod
    def _key(client) -> str:
        return str(client or '').strip().lower()

    def lookup(self, client: Optional[str]) -> Optional[Decimal]:
        """Return the client's honorarium percentage, or None if unknown."""
        if not client:
            return None
        return self.rates.get(self._key(client))

    def __len__(self) -> int:
        return len(self.rates)
