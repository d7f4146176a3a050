from unittest.mock import MagicMock
from wallabag_api.config import ClientConfig
import pytest


@pytest.fixture
def config():
    return ClientConfig(
        base_uri="https://wallabag.example.com/",
        client_id="client-id",
        client_secret="client-secret",
        timeout=5000,
    )


@pytest.fixture
def token_manager():
    """
    Provide a mocked TokenManager holding a valid access token.
    """
    tm = MagicMock()
    tm.get_access_token.return_value = "valid_token"
    return tm


def _response(status_code=200, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    return resp


@pytest.fixture
def make_response():
    """
    Factory for mocked requests.Response objects.
    """
    return _response


@pytest.fixture
def session():
    """
    Provide a mocked requests.Session answering 200 with an empty body.
    """
    s = MagicMock()
    s.request.return_value = _response()
    return s
