from wallabag_api.auth import TokenManager, TokenPair, EXPIRY_MARGIN
from wallabag_api.exceptions import AuthenticationError
from unittest.mock import patch, MagicMock
import threading
import requests
import pytest
import json
import time


@pytest.fixture
def tmp_token_file(tmp_path):
    return tmp_path / ".token.json"


@pytest.fixture
def valid_token_data():
    return {
        "access_token": "abc123",
        "refresh_token": "rftoken",
        "expires_in": 3600,
        "obtained_at": int(time.time()) - 100,
    }


@pytest.fixture
def token_response():
    resp = MagicMock()
    resp.raise_for_status.return_value = None
    resp.json.return_value = {
        "access_token": "newtoken",
        "refresh_token": "newrefresh",
        "expires_in": 3600,
        "token_type": "bearer",
    }
    return resp


def test_starts_unauthenticated(config):
    tm = TokenManager(config)
    assert tm.token is None
    assert tm.is_authenticated is False


def test_explicit_tokens(config):
    tm = TokenManager(config, access_token="abc", refresh_token="rf")
    assert tm.token == TokenPair(access_token="abc", refresh_token="rf")
    assert tm.is_authenticated is True


def test_load_valid_token(
    config,
    tmp_token_file,
    valid_token_data
):
    tmp_token_file.write_text(json.dumps(valid_token_data))
    tm = TokenManager(config, token_file=str(tmp_token_file))
    assert tm.token == TokenPair(**valid_token_data)


def test_load_invalid_json(
    config,
    tmp_token_file
):
    tmp_token_file.write_text("{invalid_json")
    tm = TokenManager(config, token_file=str(tmp_token_file))
    assert tm.token is None


def test_load_missing_keys(
    config,
    tmp_token_file
):
    tmp_token_file.write_text(json.dumps({"access_token": "abc"}))
    tm = TokenManager(config, token_file=str(tmp_token_file))
    assert tm.token is None


def test_is_expired_returns_true_if_expired(valid_token_data):
    valid_token_data["expires_in"] = 1
    valid_token_data["obtained_at"] = int(time.time()) - 1000
    assert TokenPair(**valid_token_data).is_expired() is True


def test_is_expired_returns_false_if_valid(valid_token_data):
    assert TokenPair(**valid_token_data).is_expired() is False


def test_is_expired_honours_margin():
    token = TokenPair("abc", "rf", expires_in=100, obtained_at=1000)
    assert token.is_expired(now=1000 + 100 - EXPIRY_MARGIN - 1) is False
    assert token.is_expired(now=1000 + 100 - EXPIRY_MARGIN) is True


def test_token_without_expiry_is_never_expired():
    assert TokenPair("abc", "rf").is_expired() is False
    assert TokenPair("", "rf").is_expired() is True


def test_request_token_password_grant(
    config,
    token_response,
    tmp_token_file
):
    session = MagicMock()
    session.post.return_value = token_response

    tm = TokenManager(
        config,
        session=session,
        token_file=str(tmp_token_file)
    )
    token = tm.request_token("alice", "s3cret")

    assert token.access_token == "newtoken"
    assert token.refresh_token == "newrefresh"
    assert token.expires_in == 3600
    assert token.obtained_at is not None
    assert tm.token is token

    session.post.assert_called_once_with(
        "https://wallabag.example.com/oauth/v2/token",
        data={
            "grant_type": "password",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "username": "alice",
            "password": "s3cret",
        },
        timeout=5.0
    )

    saved = json.loads(tmp_token_file.read_text())
    assert saved["access_token"] == "newtoken"
    assert saved["refresh_token"] == "newrefresh"


@patch("wallabag_api.auth.requests.post")
def test_request_token_without_session_uses_requests(
    mock_post,
    config,
    token_response
):
    mock_post.return_value = token_response

    tm = TokenManager(config)
    tm.request_token("alice", "s3cret")

    mock_post.assert_called_once()
    assert tm.token.access_token == "newtoken"


def test_request_token_rejected(config):
    resp = MagicMock()
    resp.raise_for_status.side_effect = requests.exceptions.HTTPError(
        "400 Bad Request"
    )
    session = MagicMock()
    session.post.return_value = resp

    tm = TokenManager(config, session=session)
    with pytest.raises(AuthenticationError):
        tm.request_token("alice", "wrong")

    assert tm.token is None


def test_request_token_connection_error_keeps_tokens(config):
    session = MagicMock()
    session.post.side_effect = requests.exceptions.ConnectionError("down")

    tm = TokenManager(config, session=session, access_token="abc",
                      refresh_token="rf")
    with pytest.raises(AuthenticationError):
        tm.request_token("alice", "s3cret")

    assert tm.token.access_token == "abc"


def test_response_without_access_token(config):
    resp = MagicMock()
    resp.raise_for_status.return_value = None
    resp.json.return_value = {"error": "invalid_grant"}
    session = MagicMock()
    session.post.return_value = resp

    tm = TokenManager(config, session=session)
    with pytest.raises(AuthenticationError):
        tm.request_token("alice", "s3cret")


def test_refresh_success(config, token_response):
    session = MagicMock()
    session.post.return_value = token_response

    tm = TokenManager(config, session=session, access_token="old",
                      refresh_token="rftoken")
    token = tm.refresh_access_token()

    assert token.access_token == "newtoken"
    assert tm.token.access_token == "newtoken"
    payload = session.post.call_args.kwargs["data"]
    assert payload["grant_type"] == "refresh_token"
    assert payload["refresh_token"] == "rftoken"


def test_refresh_preserves_refresh_token_if_missing(config):
    resp = MagicMock()
    resp.raise_for_status.return_value = None
    resp.json.return_value = {"access_token": "newtoken"}
    session = MagicMock()
    session.post.return_value = resp

    tm = TokenManager(config, session=session, access_token="old",
                      refresh_token="rftoken")
    token = tm.refresh_access_token()

    assert token.refresh_token == "rftoken"
    assert token.expires_in is None


def test_refresh_without_refresh_token(config):
    session = MagicMock()
    tm = TokenManager(config, session=session)

    with pytest.raises(AuthenticationError):
        tm.refresh_access_token()

    session.post.assert_not_called()


def test_get_access_token_returns_existing(config):
    session = MagicMock()
    tm = TokenManager(config, session=session, access_token="abc123",
                      refresh_token="rf")

    assert tm.get_access_token() == "abc123"
    session.post.assert_not_called()


def test_get_access_token_refreshes_if_expired(
    config,
    token_response,
    tmp_token_file,
    valid_token_data
):
    valid_token_data["obtained_at"] = int(time.time()) - 10000
    tmp_token_file.write_text(json.dumps(valid_token_data))
    session = MagicMock()
    session.post.return_value = token_response

    tm = TokenManager(config, session=session,
                      token_file=str(tmp_token_file))

    assert tm.get_access_token() == "newtoken"
    session.post.assert_called_once()


def test_get_access_token_refreshes_if_only_refresh_token(
    config,
    token_response
):
    session = MagicMock()
    session.post.return_value = token_response

    tm = TokenManager(config, session=session, refresh_token="rftoken")

    assert tm.get_access_token() == "newtoken"


def test_get_access_token_not_authenticated(config):
    tm = TokenManager(config, session=MagicMock())

    with pytest.raises(AuthenticationError, match="Not authenticated"):
        tm.get_access_token()


def test_clear_removes_tokens_and_file(
    config,
    tmp_token_file,
    valid_token_data
):
    tmp_token_file.write_text(json.dumps(valid_token_data))
    tm = TokenManager(config, token_file=str(tmp_token_file))

    tm.clear()

    assert tm.token is None
    assert not tmp_token_file.exists()


@patch.object(TokenManager, "_refresh_locked")
def test_thread_safety(mock_refresh, config):
    tm = TokenManager(config, refresh_token="rftoken")

    def fake_refresh():
        time.sleep(0.05)
        tm._token = TokenPair("abc123", "rftoken")
        return tm._token

    mock_refresh.side_effect = fake_refresh

    results = []

    def worker():
        results.append(tm.get_access_token())

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads: t.start()
    for t in threads: t.join()

    mock_refresh.assert_called_once()
    assert results == ["abc123"] * 5


@pytest.mark.parametrize("field, value", [
    ("expires_in", "soon"),
    ("obtained_at", "yesterday"),
    ("expires_in", [3600]),
])
def test_malformed_expiry_forces_refresh(
    config,
    token_response,
    tmp_token_file,
    valid_token_data,
    field,
    value
):
    valid_token_data[field] = value
    tmp_token_file.write_text(json.dumps(valid_token_data))
    session = MagicMock()
    session.post.return_value = token_response

    tm = TokenManager(config, session=session,
                      token_file=str(tmp_token_file))

    assert tm.token.is_expired() is True
    assert tm.get_access_token() == "newtoken"
    session.post.assert_called_once()


def test_explicit_access_token_keeps_stored_refresh_token(
    config,
    tmp_token_file,
    valid_token_data
):
    tmp_token_file.write_text(json.dumps(valid_token_data))

    tm = TokenManager(config, token_file=str(tmp_token_file),
                      access_token="explicit")

    assert tm.token.access_token == "explicit"
    assert tm.token.refresh_token == "rftoken"


def test_explicit_refresh_token_wins_over_stored(
    config,
    tmp_token_file,
    valid_token_data
):
    tmp_token_file.write_text(json.dumps(valid_token_data))

    tm = TokenManager(config, token_file=str(tmp_token_file),
                      access_token="explicit", refresh_token="other")

    assert tm.token.refresh_token == "other"
