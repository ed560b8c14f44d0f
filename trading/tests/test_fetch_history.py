"""Tests for the paginated history fetch."""

import itertools
from unittest.mock import patch, call

import pytest
import requests

from mexchistory.dataflows.mexc_contract_api import (
    ApiError,
    DAY_MS,
    MexcContractClient,
    ORDER_HISTORY_ENDPOINT,
    POSITION_HISTORY_ENDPOINT,
)
from mexchistory.models.history_models import HistoryFilters
from tests.conftest import FIXED_TS, make_response, page

SLEEP = "mexchistory.dataflows.mexc_contract_api.time.sleep"


def _sent_params(session):
    """Query strings sent on each call, in order."""
    return [c.kwargs["params"] for c in session.get.call_args_list]


class TestFetchHistory:

    def test_concatenates_pages_until_empty(self, client):
        pages = [[{"id": 1}, {"id": 2}], [{"id": 3}, {"id": 4}], [{"id": 5}, {"id": 6}], []]
        client.session.get.side_effect = [page(p) for p in pages]

        with patch(SLEEP) as sleep:
            records = client.fetch_history(POSITION_HISTORY_ENDPOINT, {"symbol": "BTC_USDT"}, page_size=2)

        assert records == [{"id": i} for i in range(1, 7)]
        assert client.session.get.call_count == 4
        # One pause between each pair of requests
        assert sleep.call_args_list == [call(0.3)] * 3

    def test_page_counter_increments(self, client):
        client.session.get.side_effect = [page([{"id": 1}]), page([{"id": 2}]), page([])]

        with patch(SLEEP):
            client.fetch_history(ORDER_HISTORY_ENDPOINT, {}, page_size=1)

        assert _sent_params(client.session) == [
            "page_num=1&page_size=1",
            "page_num=2&page_size=1",
            "page_num=3&page_size=1",
        ]

    def test_first_page_empty(self, client):
        client.session.get.return_value = page([])

        with patch(SLEEP) as sleep:
            assert client.fetch_history(ORDER_HISTORY_ENDPOINT) == []

        assert client.session.get.call_count == 1
        sleep.assert_not_called()

    def test_null_data_treated_as_empty(self, client):
        client.session.get.return_value = make_response({"success": True, "data": None})

        with patch(SLEEP):
            assert client.fetch_history(ORDER_HISTORY_ENDPOINT) == []

    def test_request_shape(self, client):
        client.session.get.return_value = page([])

        client.fetch_history(POSITION_HISTORY_ENDPOINT, {"symbol": "BTC_USDT", "states": None})

        args, kwargs = client.session.get.call_args
        assert args[0] == "https://contract.mexc.com" + POSITION_HISTORY_ENDPOINT
        assert kwargs["params"] == "page_num=1&page_size=100&symbol=BTC_USDT"

        headers = kwargs["headers"]
        expected_params = {"symbol": "BTC_USDT", "page_num": 1, "page_size": 100}
        assert headers["ApiKey"] == "test-key"
        assert headers["Request-Time"] == str(FIXED_TS)
        assert headers["Recv-Window"] == "60000"
        assert headers["Signature"] == client.generate_signature(str(FIXED_TS), expected_params)

    def test_session_sends_json_content_type(self):
        client = MexcContractClient("k", "s")
        assert client.session.headers["Content-Type"] == "application/json"

    def test_fresh_timestamp_per_page(self):
        ticks = itertools.count(FIXED_TS, 350)
        client = MexcContractClient("k", "s", clock=lambda: next(ticks))
        with patch.object(client, "session") as session:
            session.get.side_effect = [page([{"id": 1}]), page([])]
            with patch(SLEEP):
                client.fetch_history(ORDER_HISTORY_ENDPOINT)

            stamps = [c.kwargs["headers"]["Request-Time"] for c in session.get.call_args_list]
            signatures = [c.kwargs["headers"]["Signature"] for c in session.get.call_args_list]

        assert stamps == [str(FIXED_TS), str(FIXED_TS + 350)]
        assert signatures[0] != signatures[1]


class TestFetchHistoryErrors:

    def test_success_false_raises_with_server_message(self, client):
        client.session.get.return_value = make_response(
            {"success": False, "code": 602, "message": "bad signature"}
        )

        with pytest.raises(ApiError, match="bad signature") as exc_info:
            client.fetch_history(POSITION_HISTORY_ENDPOINT)

        assert exc_info.value.code == 602
        assert exc_info.value.status_code == 200

    def test_success_false_without_message(self, client):
        client.session.get.return_value = make_response({"success": False})

        with pytest.raises(ApiError, match="Unknown error"):
            client.fetch_history(POSITION_HISTORY_ENDPOINT)

    def test_http_error_status(self, client):
        client.session.get.return_value = make_response({"success": False}, status_code=500)

        with pytest.raises(ApiError) as exc_info:
            client.fetch_history(ORDER_HISTORY_ENDPOINT)

        error = exc_info.value
        assert error.status_code == 500
        assert error.details()["status"] == 500
        assert error.details()["headers"] == {"Content-Type": "application/json"}

    def test_transport_failure(self, client):
        client.session.get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ApiError, match="connection failed"):
            client.fetch_history(ORDER_HISTORY_ENDPOINT)

    def test_timeout(self, client):
        client.session.get.side_effect = requests.exceptions.Timeout()

        with pytest.raises(ApiError, match="timeout"):
            client.fetch_history(ORDER_HISTORY_ENDPOINT)

    def test_malformed_body(self, client):
        client.session.get.return_value = make_response(["not", "an", "envelope"])

        with pytest.raises(ApiError, match="Malformed"):
            client.fetch_history(ORDER_HISTORY_ENDPOINT)

    def test_failure_mid_pagination_aborts(self, client):
        client.session.get.side_effect = [
            page([{"id": 1}]),
            make_response({"success": False, "message": "too many requests"}),
            page([{"id": 3}]),
        ]

        with patch(SLEEP):
            with pytest.raises(ApiError, match="too many requests"):
                client.fetch_history(ORDER_HISTORY_ENDPOINT, page_size=1)

        assert client.session.get.call_count == 2


class TestHistoryEndpoints:

    def test_position_history_default_window_and_sorting(self, client):
        client.session.get.side_effect = [
            page([{"positionId": 1, "createTime": 100}, {"positionId": 2, "createTime": 300}]),
            page([{"positionId": 3, "createTime": 200}]),
            page([]),
        ]

        with patch(SLEEP):
            positions = client.get_position_history(HistoryFilters(symbol="BTC_USDT", states="3"))

        assert [p["positionId"] for p in positions] == [2, 3, 1]

        sent = client.session.get.call_args_list[0].kwargs["params"]
        pairs = dict(pair.split("=") for pair in sent.split("&"))
        assert int(pairs["end_time"]) - int(pairs["start_time"]) == 90 * DAY_MS
        assert pairs["symbol"] == "BTC_USDT"
        assert "states" not in pairs

    def test_order_history_sends_filters(self, client):
        client.session.get.return_value = page([])
        filters = HistoryFilters(
            symbol="ETH_USDT", states="3,4", category=1, side=1, order_type=5,
            start_time=1000, end_time=2000,
        )

        client.get_order_history(filters, page_size=50)

        assert client.session.get.call_args.kwargs["params"] == (
            "category=1&end_time=2000&page_num=1&page_size=50&side=1"
            "&start_time=1000&states=3%2C4&symbol=ETH_USDT&type=5"
        )

    def test_order_history_empty_symbol_not_sent(self, client):
        client.session.get.return_value = page([])

        client.get_order_history(HistoryFilters(symbol="", start_time=1, end_time=2))

        assert client.session.get.call_args.kwargs["params"] == "end_time=2&page_num=1&page_size=100&start_time=1"

    def test_end_time_only_window(self, client):
        client.session.get.return_value = page([])

        client.get_order_history(HistoryFilters(end_time=100 * DAY_MS))

        sent = client.session.get.call_args.kwargs["params"]
        assert f"start_time={10 * DAY_MS}" in sent
        assert f"end_time={100 * DAY_MS}" in sent
