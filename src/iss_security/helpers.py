"""This module holds helper functions for the security client"""

import json
import logging
import logging.config
import re
from datetime import date, datetime, timedelta
from typing import Any, Iterator, Optional
from zoneinfo import ZoneInfo

from common.logging_adapter import KeyValContextLogger
from iss_security.entities import DATE_FORMAT, EXCHANGE_TIMEZONE, IssConfig
from iss_security.errors import InvalidArgument, ProviderError

_GETTER_PREFIX = re.compile(r"^get(?=[A-Z_\s-])")
_SEPARATORS = re.compile(r"[\s_-]+")


def to_trading_day(value: Any) -> Optional[date]:
    """
    Convert a user supplied date bound to a calendar date in the exchange time zone

    :param value: None or False for an open bound, a date, a datetime, or ISO formatted text
    :returns: Optional[date]: the trading day, or None for an open bound
    :raises: InvalidArgument: for unparseable text or values of any other type

    """
    if value is None or value is False:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(ZoneInfo(EXCHANGE_TIMEZONE))
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return to_trading_day(datetime.fromisoformat(text))
        except ValueError as e:
            raise InvalidArgument(f"Invalid date passed as string: {value}") from e
    raise InvalidArgument(f"Date must be a date, a datetime or a string, got {type(value).__name__}")


def format_trading_day(day: date) -> str:
    """
    Format a trading day the way the provider expects it

    :param day: date: trading day
    :returns: str: day formatted with DATE_FORMAT

    """
    return day.strftime(DATE_FORMAT)


def parse_trading_day(text: str) -> date:
    """
    Parse a provider formatted date

    :param text: str: date formatted with DATE_FORMAT
    :returns: date
    :raises: ProviderError: if text does not follow DATE_FORMAT

    """
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except (TypeError, ValueError) as e:
        raise ProviderError(f"Invalid trade date from provider: {text}") from e


def iter_days(from_day: date, to_day: date) -> Iterator[date]:
    """
    Enumerate every calendar day of the inclusive range [from_day, to_day]

    :param from_day: date: first day
    :param to_day: date: last day
    :returns: Iterator[date]: days in chronological order, nothing if from_day > to_day

    """
    for offset in range(days_between(from_day, to_day)):
        yield from_day + timedelta(days=offset)


def days_between(from_day: date, to_day: date) -> int:
    """Inclusive number of calendar days between two days; 0 for an inverted range"""
    return max((to_day - from_day).days + 1, 0)


def normalize_property_name(name: str) -> str:
    """
    Reduce an attribute name to its canonical key: `getLastPrice`, `last_price`, `Last Price` -> `lastprice`

    :param name: str: requested attribute name
    :returns: str: canonical property key

    """
    return _SEPARATORS.sub("", _GETTER_PREFIX.sub("", name.strip())).lower()


def load_iss_config(config_path: str) -> IssConfig:
    """
    Load config for the information service client from given JSON file

    :param config_path: str: path to config JSON file
    :returns: Instance of IssConfig

    """
    with open(config_path, encoding='utf-8') as fp:
        config_json = json.load(fp)
    iss = config_json.get("iss", {})
    defaults = IssConfig()
    return IssConfig(
        base_url=iss.get("base_url", defaults.base_url).rstrip("/"),
        timeout=float(iss.get("timeout", defaults.timeout)),
        language=iss.get("language", defaults.language),
        retries=int(iss.get("retries", defaults.retries)),
        backoff_factor=float(iss.get("backoff_factor", defaults.backoff_factor)),
    )


def get_configured_logger(name: str, config_path: str = "config/logging_dict_config.json") -> KeyValContextLogger:
    """
    Create a KeyValContextLogger instance using given logger if configured in dict config JSON file

    :param name: str: name of logger in dict config
    :param config_path: str: path to JSON file containing dict config
    :returns: Instance of KeyValContextLogger
    :raises: ValueError: if given logger name is not configured in logging dict config

    """
    with open(config_path, encoding='utf-8') as fp:
        config_json = json.load(fp)
    if name not in config_json["loggers"]:
        raise ValueError(f"Logger not configured in {config_path}: {name}")
    logging.config.dictConfig(config_json)
    return KeyValContextLogger(logger=logging.getLogger(name))
