"""Exceptions raised by the security client"""


class IssError(Exception):
    """Root of all errors raised by this package"""


class InvalidArgument(IssError, ValueError):
    """Malformed identifier, malformed date string, or a date of the wrong type"""


class DataNotFound(IssError, LookupError):
    """Provider returned an empty result where data is required"""


class UnsupportedAttribute(IssError, AttributeError):
    """Accessor name maps to neither a descriptor property nor a market data alias"""


class ProviderError(IssError, RuntimeError):
    """Transport or protocol failure while talking to the provider"""
