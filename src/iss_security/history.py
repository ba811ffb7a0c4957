"""This module contains HistoryCache - an incremental, date indexed cache of daily quotes"""

from datetime import date
from typing import Callable, Dict, Iterator, List, Optional

from common.logging_adapter import KeyValContextLogger
from iss_security.entities import Board, HistoryRow
from iss_security.errors import DataNotFound, InvalidArgument
from iss_security.helpers import days_between, iter_days, parse_trading_day
from iss_security.provider import Provider, Row

HISTORY_FIELDS = ("open", "high", "low", "close", "volume")


class HistoryCache:
    """
    Daily quotes of one security keyed by trading day, kept in chronological order.

    A day maps to:
        - a HistoryRow: the provider reported trading on that day
        - None: the day was inside a fetched range but the provider reported nothing (gap day)
    A day that is not a key has never been queried. Gaps are learned from responses, never from a calendar.
    The cache only grows.
    """

    def __init__(self, secid: str, provider: Provider, board: Callable[[], Board], logger: KeyValContextLogger):
        self.secid = secid
        self.provider = provider
        self._board = board
        self.logger = logger
        self._days: Dict[date, Optional[HistoryRow]] = {}

    def __len__(self) -> int:
        return len(self._days)

    def __contains__(self, day: date) -> bool:
        return day in self._days

    def __iter__(self) -> Iterator[date]:
        return iter(self._days)

    def known_days(self) -> List[date]:
        return list(self._days)

    def gap_days(self) -> List[date]:
        return [day for day, row in self._days.items() if row is None]

    def is_covered(self, from_day: date, to_day: date) -> bool:
        """
        Check that every calendar day of [from_day, to_day] has been queried before

        :param from_day: date: first day
        :param to_day: date: last day
        :returns: bool

        """
        return all(day in self._days for day in iter_days(from_day, to_day))

    def query(self, from_day: Optional[date] = None, to_day: Optional[date] = None) -> Dict[date, HistoryRow]:
        """
        Return daily quotes for a range, serving it from the cache when the whole range is known.

        Open-ended ranges always go to the provider since they cannot be checked against cached days.

        :param from_day: Optional[date]: first day, provider decides if None
        :param to_day: Optional[date]: last day, provider decides if None
        :returns: Dict[date, HistoryRow]: trading days in chronological order, gap days left out
        :raises: InvalidArgument: if from_day is after to_day

        """
        bounded = from_day is not None and to_day is not None
        if bounded:
            if from_day > to_day:
                raise InvalidArgument(f"Range start {from_day} is after range end {to_day}")
            if self.is_covered(from_day, to_day):
                self.logger.debug("history cache hit", start=from_day, end=to_day,
                                  days=days_between(from_day, to_day))
                return {day: row for day, row in self._slice(from_day, to_day) if row is not None}
            self.logger.debug("history cache miss", start=from_day, end=to_day)
        return self._fetch(from_day, to_day)

    def _slice(self, from_day: date, to_day: date):
        for day in iter_days(from_day, to_day):
            yield day, self._days[day]

    def _fetch(self, from_day: Optional[date], to_day: Optional[date]) -> Dict[date, HistoryRow]:
        """
        Fetch a range from the provider and merge it into the cache

        :param from_day: Optional[date]: first day or None
        :param to_day: Optional[date]: last day or None
        :returns: Dict[date, HistoryRow]: fetched rows in chronological order
        :raises: DataNotFound: if an open-ended fetch returns nothing

        """
        board = self._board()
        raw_rows = self.provider.fetch_history(board.engine, board.market, board.board_id, self.secid,
                                               from_day, to_day)
        fetched = {parse_trading_day(raw["TRADEDATE"]): self.to_history_row(raw) for raw in raw_rows}
        self.logger.info("history fetched", start=from_day or "", end=to_day or "", rows=len(fetched),
                         board=board.board_id)

        bounded = from_day is not None and to_day is not None
        if not fetched and not bounded:
            raise DataNotFound(f'No history available for "{self.secid}"')
        if bounded:
            for day in iter_days(from_day, to_day):
                # placeholders only for days never seen, known rows stay
                self._days.setdefault(day, None)
        self._days.update(fetched)
        self._days = dict(sorted(self._days.items()))
        self.logger.debug("history merged", cached=len(self._days), gaps=len(self.gap_days()))
        return dict(sorted(fetched.items()))

    @staticmethod
    def to_history_row(raw: Row) -> HistoryRow:
        """Map a provider history row (upper case fields) to a HistoryRow"""
        return HistoryRow(**{name: raw.get(name.upper()) for name in HISTORY_FIELDS})
