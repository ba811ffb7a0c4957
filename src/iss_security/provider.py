"""This module contains the Provider contract and IssProvider, its HTTP/JSON implementation"""

import abc
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from common.logging_adapter import KeyValContextLogger
from iss_security.entities import IssConfig
from iss_security.errors import ProviderError
from iss_security.helpers import format_trading_day

Row = Dict[str, Any]


class Provider(abc.ABC):
    """
    Source of raw security data. Every method blocks until the remote side answers.
    Empty results are returned as empty containers; transport failures raise ProviderError.
    """

    @abc.abstractmethod
    def fetch_descriptor(self, secid: str) -> Dict[str, List[Row]]:
        """Return blocks `description` (rows with `name`/`value`) and `boards`; empty dict if unknown"""

    @abc.abstractmethod
    def fetch_market_data(self, engine: str, market: str, secid: str) -> List[Row]:
        """Return one live market data row per board"""

    @abc.abstractmethod
    def fetch_history(self, engine: str, market: str, board: str, secid: str,
                      from_day: Optional[date] = None, to_day: Optional[date] = None) -> List[Row]:
        """Return daily rows with TRADEDATE, OPEN, HIGH, LOW, CLOSE, VOLUME; open bounds are left to the provider"""

    @abc.abstractmethod
    def find_security(self, query: str, limit: int) -> List[Row]:
        """Return securities matching free text, each with at least `secid`"""

    @abc.abstractmethod
    def fetch_indices(self, secid: str) -> List[Row]:
        """Return the indices given security is a component of"""

    @abc.abstractmethod
    def fetch_date_range(self, engine: str, market: str, board: str, secid: str) -> List[Row]:
        """Return rows with `from`/`till` dates of available history"""


class IssProvider(Provider):
    """
    Provider backed by the exchange information service REST API.

    Every ISS block is shaped as {"columns": [...], "data": [[...], ...]} and is turned into a list of row dicts.
    Requests share one session with a retry policy for throttling and server errors.
    """

    RETRY_STATUSES = (429, 500, 502, 503, 504)

    def __init__(self, config: IssConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.logger = KeyValContextLogger(logging.getLogger(__name__), base_url=config.base_url)
        self.session = session if session is not None else requests.Session()
        retry_strategy = Retry(
            total=config.retries,
            backoff_factor=config.backoff_factor,
            status_forcelist=list(self.RETRY_STATUSES),
            allowed_methods=["GET"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def fetch_descriptor(self, secid: str) -> Dict[str, List[Row]]:
        payload = self._get(f"/securities/{secid}.json", {"iss.only": "description,boards"})
        description = self._rows(payload, "description")
        if not description:
            return {}
        return {"description": description, "boards": self._rows(payload, "boards")}

    def fetch_market_data(self, engine: str, market: str, secid: str) -> List[Row]:
        payload = self._get(f"/engines/{engine}/markets/{market}/securities/{secid}.json",
                            {"iss.only": "marketdata"})
        return self._rows(payload, "marketdata")

    def fetch_history(self, engine: str, market: str, board: str, secid: str,
                      from_day: Optional[date] = None, to_day: Optional[date] = None) -> List[Row]:
        """
        Fetch daily history, following the `history.cursor` block until every page has been read

        :param engine: str: engine id
        :param market: str: market id
        :param board: str: board id
        :param secid: str: security code
        :param from_day: Optional[date]: first day, provider default if None
        :param to_day: Optional[date]: last day, provider default if None
        :returns: List[Row]: rows of all pages in provider order

        """
        path = f"/history/engines/{engine}/markets/{market}/boards/{board}/securities/{secid}.json"
        params: Dict[str, Any] = {"iss.only": "history,history.cursor"}
        if from_day is not None:
            params["from"] = format_trading_day(from_day)
        if to_day is not None:
            params["till"] = format_trading_day(to_day)
        rows: List[Row] = []
        start = 0
        while True:
            params["start"] = start
            payload = self._get(path, params)
            page = self._rows(payload, "history")
            rows.extend(page)
            cursor = self._rows(payload, "history.cursor")
            if not page or not cursor:
                break
            next_start = cursor[0]["INDEX"] + cursor[0]["PAGESIZE"]
            if next_start <= start or next_start >= cursor[0]["TOTAL"]:
                break
            start = next_start
            self.logger.debug("next history page", secid=secid, start=start, total=cursor[0]["TOTAL"])
        return rows

    def find_security(self, query: str, limit: int) -> List[Row]:
        payload = self._get("/securities.json", {"q": query, "limit": limit, "iss.only": "securities"})
        return self._rows(payload, "securities")

    def fetch_indices(self, secid: str) -> List[Row]:
        payload = self._get(f"/securities/{secid}/indices.json", {"iss.only": "indices"})
        return self._rows(payload, "indices")

    def fetch_date_range(self, engine: str, market: str, board: str, secid: str) -> List[Row]:
        payload = self._get(f"/history/engines/{engine}/markets/{market}/boards/{board}/securities/{secid}/dates.json",
                            {"iss.only": "dates"})
        return self._rows(payload, "dates")

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Perform a GET request against the service and decode its JSON body

        :param path: str: endpoint path relative to base url
        :param params: Dict[str, Any]: query parameters
        :returns: decoded JSON document
        :raises: ProviderError: on transport errors, HTTP errors or an undecodable body

        """
        url = f"{self.config.base_url}{path}"
        query = dict(params, **{"iss.meta": "off", "lang": self.config.language})
        self.logger.debug("request", url=url, params=query)
        try:
            response = self.session.get(url, params=query, timeout=self.config.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            self.logger.error("request failed", url=url)
            raise ProviderError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            self.logger.error("malformed response", url=url)
            raise ProviderError(f"Malformed response from {url}") from e

    @staticmethod
    def _rows(payload: Dict[str, Any], block: str) -> List[Row]:
        """Convert a columns/data block to row dicts; a missing block yields no rows"""
        table = payload.get(block) or {}
        columns = table.get("columns", [])
        return [dict(zip(columns, values)) for values in table.get("data", [])]
