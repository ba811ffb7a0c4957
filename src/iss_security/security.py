"""This module contains the class Security which models a tradable security on the exchange"""

import logging
import threading
from datetime import date
from typing import Any, Dict, List, Optional

from common.logging_adapter import KeyValContextLogger
from iss_security.attributes import AccessorRouter, AttributeStore
from iss_security.entities import Board, DateRange, HistoryRow
from iss_security.errors import DataNotFound, InvalidArgument
from iss_security.helpers import parse_trading_day, to_trading_day
from iss_security.history import HistoryCache
from iss_security.market_snapshot import MarketSnapshot
from iss_security.provider import Provider


class Security:
    """
    A security whose remote data is fetched lazily and cached for the lifetime of the instance.

    Security state consists of:
        :secid: str: exchange security code, fixed at construction
        :_store: AttributeStore: descriptor properties and boards, loaded on first access
        :_snapshot: MarketSnapshot: selected live market data row, loaded on first market data access
        :_history: HistoryCache: daily quotes learned from previous queries, never evicted
        :_router: AccessorRouter: dispatch of attribute names across descriptor and market data
        :_lock: threading.RLock: serializes every operation touching the state above

    Construction performs no network access: an unknown code only fails on first use.
    """

    def __init__(self, code: str, provider: Provider, logger: Optional[KeyValContextLogger] = None):
        """
        Initializes Security for a raw exchange code.

        :param code: str: exchange security code, e.g. SBER
        :param provider: Provider: source of remote data
        :param logger: Optional[KeyValContextLogger]:  (Default value = None) parent logger, secid gets bound to it
        :raises: InvalidArgument: if code is empty or not a string

        """
        if not isinstance(code, str) or not code.strip():
            raise InvalidArgument("Security code can not be empty")
        self._secid = code.strip()
        if logger is None:
            logger = KeyValContextLogger(logging.getLogger(__name__))
        self.logger = logger.bind(secid=self._secid)
        self.provider = provider
        self._lock = threading.RLock()
        self._store = AttributeStore(self._secid, provider, self.logger)
        self._snapshot = MarketSnapshot(self._secid, provider, lambda: self._store.board, self.logger)
        self._history = HistoryCache(self._secid, provider, lambda: self._store.board, self.logger)
        self._router = AccessorRouter(self._store, self._snapshot.field)

    @classmethod
    def from_name(cls, name: str, provider: Provider, logger: Optional[KeyValContextLogger] = None) -> "Security":
        """
        Create a Security from free text (name, ISIN, code) by asking the provider for the best match

        :param name: str: text to search for
        :param provider: Provider: source of remote data
        :param logger: Optional[KeyValContextLogger]:  (Default value = None) parent logger
        :returns: Security for the first match
        :raises: InvalidArgument: if name is empty
        :raises: DataNotFound: if nothing matches

        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidArgument("Security name can not be empty")
        matches = provider.find_security(name.strip(), 1)
        if not matches:
            raise DataNotFound(f'No securities matching "{name}"')
        return cls(matches[0]["secid"], provider, logger)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._secid!r})"

    @property
    def secid(self) -> str:
        return self._secid

    def get(self, name: str) -> Any:
        """
        Return a descriptor property or a market data value by name

        :param name: str: e.g. `shortname`, `ISIN`, `last_price`, `getDailyHigh`
        :returns: the value as the provider reported it
        :raises: UnsupportedAttribute: if name is neither a property nor a known market data alias

        """
        with self._lock:
            return self._router.resolve(name)

    def supported_attributes(self) -> List[str]:
        with self._lock:
            return self._router.supported()

    @property
    def properties(self) -> Dict[str, Any]:
        with self._lock:
            return self._store.properties

    @property
    def board(self) -> Board:
        with self._lock:
            return self._store.board

    @property
    def available_boards(self) -> List[Board]:
        with self._lock:
            return self._store.available_boards

    @property
    def engine(self) -> str:
        return self.board.engine

    @property
    def market(self) -> str:
        return self.board.market

    @property
    def market_data(self) -> Dict[str, Any]:
        """Selected market data row with lower case field names"""
        with self._lock:
            return self._snapshot.row

    def refresh(self) -> None:
        """Re-fetch market data even if it was loaded already; history stays untouched"""
        with self._lock:
            self._snapshot.refresh()

    def get_indices(self) -> List[Dict[str, Any]]:
        """
        Return the indices this security is a component of

        :raises: DataNotFound: if the security is not part of any index

        """
        indices = self.provider.fetch_indices(self._secid)
        if not indices:
            raise DataNotFound(f'No indices for "{self._secid}"')
        return indices

    def get_dates(self) -> DateRange:
        """
        Return the first and last day of available history on the current board

        :raises: DataNotFound: when no data is available for this security

        """
        board = self.board
        dates = self.provider.fetch_date_range(board.engine, board.market, board.board_id, self._secid)
        if not dates:
            raise DataNotFound(f'No available data for "{self._secid}"')
        return DateRange(from_date=parse_trading_day(dates[0]["from"]), till_date=parse_trading_day(dates[0]["till"]))

    def get_historical_quotes(self, from_: Any = None, to: Any = None) -> Dict[date, HistoryRow]:
        """
        Return daily quotes of the current board, fetching only when the range is not fully cached

        :param from_: None/False for an open bound, a date, a datetime or ISO text
        :param to: None/False for an open bound, a date, a datetime or ISO text
        :returns: Dict[date, HistoryRow]: trading days in chronological order, days without trading left out
        :raises: InvalidArgument: for malformed or inverted bounds, before any provider access

        """
        from_day = to_trading_day(from_)
        to_day = to_trading_day(to)
        with self._lock:
            return self._history.query(from_day, to_day)

    def known_history_days(self) -> List[date]:
        """Days ever covered by a history query, trading days and gap days alike, in chronological order"""
        with self._lock:
            return self._history.known_days()

    def gap_days(self) -> List[date]:
        """Days inside queried ranges for which the provider reported no trading"""
        with self._lock:
            return self._history.gap_days()

    def is_history_cached(self, from_: Any, to: Any) -> bool:
        """
        Check whether a bounded history query would be answered without asking the provider

        :param from_: a date, a datetime or ISO text
        :param to: a date, a datetime or ISO text
        :raises: InvalidArgument: for malformed, open or inverted bounds

        """
        from_day = to_trading_day(from_)
        to_day = to_trading_day(to)
        if from_day is None or to_day is None:
            raise InvalidArgument("Both bounds are required to check the history cache")
        if from_day > to_day:
            raise InvalidArgument(f"Range start {from_day} is after range end {to_day}")
        with self._lock:
            return self._history.is_covered(from_day, to_day)
