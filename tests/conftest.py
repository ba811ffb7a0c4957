import logging
from io import StringIO

import pytest
from pytest_mock import MockerFixture

from common.logging_adapter import KeyValContextLogger
from iss_security.provider import Provider


@pytest.fixture
def log_stream():
    return StringIO("")


@pytest.fixture
def string_logger(log_stream):
    formatter = logging.Formatter("level=%(levelname)s logger=%(name)s %(message)s")
    handler = logging.StreamHandler(stream=log_stream)
    handler.setLevel("DEBUG")
    handler.setFormatter(formatter)
    a_logger = logging.getLogger("string_logger")
    a_logger.propagate = False
    a_logger.setLevel("DEBUG")
    a_logger.handlers = [handler]
    return KeyValContextLogger(logger=a_logger)


@pytest.fixture
def sber_descriptor():
    return {
        "description": [
            {"name": "SECID", "title": "Code", "value": "SBER"},
            {"name": "SHORTNAME", "title": "Short name", "value": "Sberbank"},
            {"name": "ISIN", "title": "ISIN", "value": "RU0009029540"},
        ],
        "boards": [
            {"secid": "SBER", "boardid": "TQBR", "engine": "stock", "market": "shares", "is_primary": 1},
            {"secid": "SBER", "boardid": "SMAL", "engine": "stock", "market": "shares", "is_primary": 0},
        ]
    }


@pytest.fixture
def provider(sber_descriptor, mocker: MockerFixture):
    mock_provider = mocker.create_autospec(Provider, instance=True)
    mock_provider.fetch_descriptor.return_value = sber_descriptor
    return mock_provider
