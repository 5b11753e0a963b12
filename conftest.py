"""Shared pytest fixtures for CreatorHub packages."""

import pytest
from unittest.mock import MagicMock, patch


@pytest.fixture
def mock_bigquery_client():
    """Mock google.cloud.bigquery.Client for testing."""
    with patch("google.cloud.bigquery.Client") as mock:
        client = MagicMock()
        mock.return_value = client
        yield client


@pytest.fixture
def mock_httpx_client():
    """Mock httpx.Client for testing."""
    with patch("httpx.Client") as mock:
        client = MagicMock()
        mock.return_value = client
        yield client


@pytest.fixture
def shop_api_routes(mock_httpx_client):
    """Route mocked shop API requests by path.

    Map a path to an envelope ``data`` dict, or to a list of them to serve
    one per call. Unrouted paths answer with an empty envelope.
    """
    routes = {}

    def _request(method, path, json=None, params=None):
        data = routes.get(path, {})
        if isinstance(data, list):
            data = data.pop(0) if data else {}
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = {"code": 0, "message": "Success", "data": data}
        return response

    mock_httpx_client.request.side_effect = _request
    return routes


@pytest.fixture
def sample_recipient():
    """Masked recipient address as returned on a sample order."""
    return {
        "name": "J*** D**",
        "phone_number": "(+1)808*****34",
        "address_line1": "1*** K******* St",
        "postal_code": "96813",
        "district_info": [
            {"address_level_name": "Country", "address_name": "United States"},
            {"address_level_name": "State", "address_name": "Hawaii"},
            {"address_level_name": "City", "address_name": "Honolulu"},
        ],
    }
