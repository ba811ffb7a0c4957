import threading
from datetime import date, datetime, timezone

import pytest

from iss_security.entities import Board, DateRange, HistoryRow
from iss_security.errors import DataNotFound, InvalidArgument, UnsupportedAttribute
from iss_security.security import Security


@pytest.fixture
def sber(provider, string_logger):
    return Security("SBER", provider, string_logger)


@pytest.fixture
def weekly_history(provider):
    provider.fetch_history.return_value = [
        {"TRADEDATE": "2023-01-02", "OPEN": 141.6, "HIGH": 142.2, "LOW": 140.1, "CLOSE": 141.1, "VOLUME": 20_000_000},
        {"TRADEDATE": "2023-01-03", "OPEN": 141.4, "HIGH": 142.9, "LOW": 140.9, "CLOSE": 142.0, "VOLUME": 25_000_000},
        {"TRADEDATE": "2023-01-06", "OPEN": 142.0, "HIGH": 143.5, "LOW": 141.8, "CLOSE": 143.1, "VOLUME": 18_000_000},
    ]
    return provider.fetch_history.return_value


@pytest.mark.parametrize("code", ["", "   ", None, 123])
def test_empty_code_rejected(provider, code):
    with pytest.raises(InvalidArgument):
        Security(code, provider)
    assert not provider.method_calls


def test_construction_is_lazy(provider):
    provider.fetch_descriptor.return_value = {}
    security = Security("NOSUCH", provider)
    assert security.secid == "NOSUCH"
    assert not provider.method_calls
    with pytest.raises(DataNotFound) as e_info:
        security.get("shortname")
    assert e_info.value.args[0] == 'Security "NOSUCH" not found'


def test_from_name(provider):
    provider.find_security.return_value = [{"secid": "SBER", "shortname": "Sberbank"}]
    security = Security.from_name(" sberbank ", provider)
    assert security.secid == "SBER"
    assert provider.find_security.call_args[0] == ("sberbank", 1)
    assert not provider.fetch_descriptor.called


def test_from_name_no_match(provider):
    provider.find_security.return_value = []
    with pytest.raises(DataNotFound) as e_info:
        Security.from_name("nothing like it", provider)
    assert e_info.value.args[0] == 'No securities matching "nothing like it"'


def test_from_name_empty(provider):
    with pytest.raises(InvalidArgument):
        Security.from_name("", provider)
    assert not provider.find_security.called


def test_descriptor_access(sber, provider):
    assert sber.get("shortname") == "Sberbank"
    assert sber.get("ISIN") == "RU0009029540"
    assert sber.board == Board("TQBR", "stock", "shares")
    assert sber.engine == "stock"
    assert sber.market == "shares"
    assert len(sber.available_boards) == 2
    assert sber.properties["secid"] == "SBER"
    assert provider.fetch_descriptor.call_count == 1


def test_market_data_access(sber, provider):
    provider.fetch_market_data.return_value = [
        {"BOARDID": "TQBR", "LAST": 142.5, "OPEN": 141.0, "LOW": 140.0, "HIGH": 143.0, "LCLOSEPRICE": None,
         "VALTODAY": 9_000_000_000, "CHANGE": 1.4, "LASTTOPREVPRICE": 0.99},
        {"BOARDID": "SMAL", "LAST": 142.0, "VALTODAY": 1_000_000},
    ]
    assert sber.get("last price") == 142.5
    assert sber.get("getOpeningPrice") == 141.0
    assert sber.get("closing_price") is None
    assert sber.get("dailyLow") == 140.0
    assert sber.get("dailyHigh") == 143.0
    assert sber.get("volume") == 9_000_000_000
    assert sber.get("dailyChange") == 1.4
    assert sber.get("dailyPercentageChange") == 0.99
    assert sber.market_data["boardid"] == "TQBR"
    assert provider.fetch_market_data.call_count == 1


def test_unsupported(sber, provider):
    with pytest.raises(UnsupportedAttribute):
        sber.get("dividendYield")
    assert not provider.fetch_market_data.called


def test_refresh(sber, provider):
    provider.fetch_market_data.side_effect = [[{"LAST": 1.0}], [{"LAST": 2.0}]]
    assert sber.get("lastprice") == 1.0
    sber.refresh()
    assert sber.get("lastprice") == 2.0


def test_refresh_does_not_touch_history(sber, provider, weekly_history):
    provider.fetch_market_data.return_value = [{"LAST": 1.0}]
    sber.get_historical_quotes("2023-01-02", "2023-01-06")
    sber.refresh()
    sber.get_historical_quotes("2023-01-02", "2023-01-06")
    assert provider.fetch_history.call_count == 1
    assert len(sber.known_history_days()) == 5


def test_historical_quotes_scenario(sber, provider, weekly_history):
    week = sber.get_historical_quotes("2023-01-02", "2023-01-06")
    assert list(week) == [date(2023, 1, 2), date(2023, 1, 3), date(2023, 1, 6)]
    assert provider.fetch_history.call_args[0] == (
        "stock", "shares", "TQBR", "SBER", date(2023, 1, 2), date(2023, 1, 6))
    assert sber.known_history_days() == [date(2023, 1, d) for d in range(2, 7)]
    assert sber.gap_days() == [date(2023, 1, 4), date(2023, 1, 5)]

    midweek = sber.get_historical_quotes(date(2023, 1, 3), date(2023, 1, 5))
    assert midweek == {date(2023, 1, 3): HistoryRow(141.4, 142.9, 140.9, 142.0, 25_000_000)}
    assert provider.fetch_history.call_count == 1


def test_historical_quotes_accepts_datetimes(sber, provider, weekly_history):
    sber.get_historical_quotes("2023-01-02", "2023-01-06")
    # 2023-01-05 21:30 UTC is 2023-01-06 00:30 in Moscow
    sber.get_historical_quotes(datetime(2023, 1, 2, 12, 0), datetime(2023, 1, 5, 21, 30, tzinfo=timezone.utc))
    assert provider.fetch_history.call_count == 1


@pytest.mark.parametrize("bounds", [("yesterday-ish", None), (None, 20230106), ("2023-01-06", "2023-01-02")])
def test_historical_quotes_invalid_bounds(sber, provider, bounds):
    with pytest.raises(InvalidArgument):
        sber.get_historical_quotes(*bounds)
    assert not provider.method_calls


def test_historical_quotes_open_ended(sber, provider, weekly_history):
    sber.get_historical_quotes(False, "2023-01-06")
    assert provider.fetch_history.call_args[0][4:] == (None, date(2023, 1, 6))


def test_get_dates(sber, provider):
    provider.fetch_date_range.return_value = [{"from": "2011-11-21", "till": "2023-01-06"}]
    assert sber.get_dates() == DateRange(date(2011, 11, 21), date(2023, 1, 6))
    assert provider.fetch_date_range.call_args[0] == ("stock", "shares", "TQBR", "SBER")


def test_get_dates_empty(sber, provider):
    provider.fetch_date_range.return_value = []
    with pytest.raises(DataNotFound) as e_info:
        sber.get_dates()
    assert e_info.value.args[0] == 'No available data for "SBER"'


def test_get_indices(sber, provider):
    provider.fetch_indices.return_value = [{"SECID": "IMOEX", "SHORTNAME": "MOEX Russia Index"}]
    assert sber.get_indices() == [{"SECID": "IMOEX", "SHORTNAME": "MOEX Russia Index"}]
    provider.fetch_indices.return_value = []
    with pytest.raises(DataNotFound):
        sber.get_indices()


def test_logs_carry_secid(sber, provider, log_stream, weekly_history):
    sber.get_historical_quotes("2023-01-02", "2023-01-06")
    lines = log_stream.getvalue().splitlines()
    assert lines
    assert all(line.endswith('secid="SBER"') for line in lines)
    assert any('event="history fetched"' in line for line in lines)


def test_concurrent_queries_fetch_once(sber, provider, weekly_history):
    barrier = threading.Barrier(4)
    results = []

    def worker():
        barrier.wait()
        results.append(sber.get_historical_quotes("2023-01-02", "2023-01-06"))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert provider.fetch_history.call_count == 1
    assert provider.fetch_descriptor.call_count == 1
    assert len(results) == 4
    assert all(result == results[0] for result in results)


def test_repr(sber):
    assert repr(sber) == "Security('SBER')"


def test_cache_introspection_during_queries(sber, provider):
    provider.fetch_history.return_value = []
    stop = threading.Event()
    errors = []

    def reader():
        while not stop.is_set():
            try:
                gaps = sber.gap_days()
                # the cache only grows, so earlier gaps are always among later known days
                assert set(gaps) <= set(sber.known_history_days())
            except Exception as e:
                errors.append(e)
                return

    thread = threading.Thread(target=reader)
    thread.start()
    try:
        for offset in range(300):
            day = date.fromordinal(date(2023, 1, 1).toordinal() + 2 * offset)
            sber.get_historical_quotes(day, day)
    finally:
        stop.set()
        thread.join()
    assert errors == []
    assert len(sber.gap_days()) == 300


def test_returned_day_lists_are_copies(sber, provider, weekly_history):
    sber.get_historical_quotes("2023-01-02", "2023-01-06")
    sber.known_history_days().clear()
    sber.gap_days().clear()
    assert len(sber.known_history_days()) == 5
    assert len(sber.gap_days()) == 2


def test_is_history_cached(sber, provider, weekly_history):
    assert not sber.is_history_cached("2023-01-03", "2023-01-05")
    sber.get_historical_quotes("2023-01-02", "2023-01-06")
    assert sber.is_history_cached("2023-01-03", date(2023, 1, 5))
    assert not sber.is_history_cached("2023-01-05", "2023-01-07")
    with pytest.raises(InvalidArgument):
        sber.is_history_cached(None, "2023-01-05")
    with pytest.raises(InvalidArgument):
        sber.is_history_cached("2023-01-05", "2023-01-03")
    assert provider.fetch_history.call_count == 1


def test_supported_attributes(sber, provider):
    supported = sber.supported_attributes()
    assert supported[:3] == ["secid", "shortname", "isin"]
    assert "lastprice" in supported
    assert "dailypercentagechange" in supported
    assert provider.fetch_descriptor.call_count == 1
    assert not provider.fetch_market_data.called
