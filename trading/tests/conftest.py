"""Shared fixtures for the history reporter tests."""

from unittest.mock import MagicMock

import pytest
import requests

from mexchistory.config import reset_config_cache
from mexchistory.dataflows.mexc_contract_api import MexcContractClient

FIXED_TS = 1700000000000


def make_response(payload, status_code=200):
    """Build a mocked requests.Response carrying a JSON payload."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = str(payload)
    response.headers = {"Content-Type": "application/json"}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Error", response=response
        )
    else:
        response.raise_for_status.return_value = None
    return response


def page(records):
    return make_response({"success": True, "code": 0, "data": records})


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture
def client():
    """Client with a mocked session and a fixed clock."""
    c = MexcContractClient(
        api_key="test-key",
        api_secret="test-secret",
        clock=lambda: FIXED_TS,
    )
    c.session = MagicMock()
    return c
