"""This module contains the lazily loaded descriptor of a security and the attribute dispatch over it"""

from typing import Any, Callable, Dict, List, Optional

from common.logging_adapter import KeyValContextLogger
from iss_security.entities import Board
from iss_security.errors import DataNotFound, UnsupportedAttribute
from iss_security.helpers import normalize_property_name
from iss_security.provider import Provider

MARKET_DATA_ALIASES: Dict[str, str] = {
    "lastprice": "last",
    "openingprice": "open",
    "closingprice": "lcloseprice",
    "dailylow": "low",
    "dailyhigh": "high",
    "volume": "valtoday",
    "dailychange": "change",
    "dailypercentagechange": "lasttoprevprice",
}


class AttributeStore:
    """
    Descriptor properties plus available and current boards of one security.

    State moves one way, Unloaded -> Loaded, on the first successful `ensure_loaded`.
    A failed load keeps the store Unloaded so a later call retries.
    """

    def __init__(self, secid: str, provider: Provider, logger: KeyValContextLogger):
        self.secid = secid
        self.provider = provider
        self.logger = logger
        self._properties: Dict[str, Any] = {}
        self._boards: List[Board] = []
        self._board: Optional[Board] = None
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def ensure_loaded(self) -> None:
        """
        Load descriptor and boards from the provider unless already loaded

        :raises: DataNotFound: if the provider knows nothing about the security

        """
        if self._loaded:
            return
        self.logger.info("loading descriptor")
        descriptor = self.provider.fetch_descriptor(self.secid)
        description = descriptor.get("description") if descriptor else None
        if not description:
            raise DataNotFound(f'Security "{self.secid}" not found')
        boards = [Board.from_row(row) for row in descriptor.get("boards", [])]
        if not boards:
            raise DataNotFound(f'Security "{self.secid}" is not listed on any board')

        self._properties = {normalize_property_name(row["name"]): row["value"] for row in description}
        self._boards = boards
        self._board = boards[0]
        self._loaded = True
        self.logger.info("descriptor loaded", properties=len(self._properties), boards=len(boards),
                         board=self._board.board_id)

    @property
    def properties(self) -> Dict[str, Any]:
        self.ensure_loaded()
        return dict(self._properties)

    @property
    def board(self) -> Board:
        self.ensure_loaded()
        return self._board

    @property
    def available_boards(self) -> List[Board]:
        self.ensure_loaded()
        return list(self._boards)


class AccessorRouter:
    """
    Resolves a named attribute in two ordered stages:
        1. descriptor property with the same canonical key
        2. market data field registered for the canonical key in `aliases`
    Anything else is rejected with UnsupportedAttribute.
    """

    def __init__(self, store: AttributeStore, market_field: Callable[[str], Any],
                 aliases: Optional[Dict[str, str]] = None):
        self.store = store
        self.market_field = market_field
        self.aliases = MARKET_DATA_ALIASES if aliases is None else aliases

    def resolve(self, name: str) -> Any:
        """
        Return the value of given attribute, loading descriptor and market data on demand

        :param name: str: attribute name in any supported spelling
        :returns: property or market data value
        :raises: UnsupportedAttribute: if name is neither a property nor a known alias

        """
        self.store.ensure_loaded()
        key = normalize_property_name(name)
        properties = self.store.properties
        if key in properties:
            return properties[key]
        if key in self.aliases:
            return self.market_field(self.aliases[key])
        raise UnsupportedAttribute(f'Attribute "{name}" does not exist')

    def supported(self) -> List[str]:
        """Canonical keys this router can resolve, descriptor properties first"""
        return list(self.store.properties) + [k for k in self.aliases if k not in self.store.properties]
