"""This module contains entity-definitions that constitute the data and state of a Security"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional

from iss_security.errors import ProviderError

EXCHANGE_TIMEZONE = "Europe/Moscow"
DATE_FORMAT = "%Y-%m-%d"
ISS_BASE_URL = "https://iss.moex.com/iss"


@dataclass(frozen=True)
class Board:
    """
    Board represents a trading venue/mode combination a security is listed on.
    It is identified by board id and classified by engine and market.
    This class is immutable; the raw provider row is retained in `properties`.
    """
    board_id: str
    engine: str
    market: str
    properties: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Board":
        """
        Build a Board from a provider board row

        :param row: Dict[str, Any]: row with at least `boardid`, `engine` and `market` keys (any case)
        :returns: Instance of Board
        :raises: ProviderError: if the row lacks board id, engine or market

        """
        lowered = {k.lower(): v for k, v in row.items()}
        try:
            return cls(board_id=lowered["boardid"], engine=lowered["engine"], market=lowered["market"],
                       properties=lowered)
        except KeyError as e:
            raise ProviderError(f"Malformed board row, missing {e.args[0]}: {row}") from e


@dataclass(frozen=True)
class HistoryRow:
    """
    HistoryRow holds daily price/volume of a security for one trade date.
    Values are kept exactly as the provider returned them.
    """
    open: Optional[float]
    high: Optional[float]
    low: Optional[float]
    close: Optional[float]
    volume: Optional[float]


@dataclass(frozen=True)
class DateRange:
    """First and last trade dates for which history is available"""
    from_date: date
    till_date: date


@dataclass(frozen=False)
class IssConfig:
    """
    IssConfig models the settings of the remote information service client.
    """
    base_url: str = field(default=ISS_BASE_URL)
    timeout: float = field(default=10.0)
    language: str = field(default="en")
    retries: int = field(default=3)
    backoff_factor: float = field(default=0.3)
