"""This module contains MarketSnapshot - the current market data row of a security"""

from typing import Any, Callable, Dict, Optional

from common.logging_adapter import KeyValContextLogger
from iss_security.entities import Board
from iss_security.errors import DataNotFound
from iss_security.provider import Provider

SELECTION_FIELD = "VALTODAY"


def _traded_value(row: Dict[str, Any]) -> float:
    value = row.get(SELECTION_FIELD)
    if value is None:
        return float("-inf")
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("-inf")


class MarketSnapshot:
    """
    Holds at most one live market data row for a security.

    The provider answers with one row per board; the row with the greatest traded value today wins,
    ties going to the earliest row in provider order.
    """

    def __init__(self, secid: str, provider: Provider, board: Callable[[], Board], logger: KeyValContextLogger):
        self.secid = secid
        self.provider = provider
        self._board = board
        self.logger = logger
        self._row: Optional[Dict[str, Any]] = None

    @property
    def loaded(self) -> bool:
        return self._row is not None

    def ensure_loaded(self) -> None:
        if self._row is None:
            self.refresh()

    def refresh(self) -> None:
        """
        Fetch market data for the current board's engine and market and keep the selected row

        :raises: DataNotFound: if the provider returns no rows

        """
        board = self._board()
        rows = self.provider.fetch_market_data(board.engine, board.market, self.secid)
        if not rows:
            raise DataNotFound(f'No market data available for "{self.secid}"')
        # sorted() is stable with reverse=True, equal values keep provider order
        selected = sorted(rows, key=_traded_value, reverse=True)[0]
        self._row = {k.lower(): v for k, v in selected.items()}
        self.logger.info("market data refreshed", rows=len(rows), board=self._row.get("boardid"))

    def field(self, name: str) -> Any:
        """
        Return a field of the selected row, loading the snapshot first if needed

        :param name: str: field name, any case
        :raises: DataNotFound: if the snapshot has no such field

        """
        self.ensure_loaded()
        key = name.lower()
        if key not in self._row:
            raise DataNotFound(f'Market data of "{self.secid}" has no field "{name}"')
        return self._row[key]

    @property
    def row(self) -> Dict[str, Any]:
        self.ensure_loaded()
        return dict(self._row)
