"""Unit tests for CLI commands.

All tests use Typer's CliRunner and mock _get_client / _open_service so
that no real HTTP requests are made.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from typer.testing import CliRunner

from protoclient.auth import credentials as creds_store
from protoclient.core.exceptions import AuthenticationRequiredError, TransportFailure
from protoclient.core.models import Chat, Message, Profile
from protoclient_cli.main import app

runner = CliRunner()

API = "https://box.example.com/api/v1/"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(creds_store, "_CONFIG_DIR", tmp_path)
    monkeypatch.setattr(creds_store, "_CREDENTIALS_FILE", tmp_path / "credentials.json")
    monkeypatch.setenv("PROTONET_URL", "https://box.example.com")
    monkeypatch.setenv("PROTONET_TOKEN", "tok123")
    return tmp_path


@pytest.fixture()
def mock_chats():
    return [
        Chat(
            id=7,
            url=f"{API}private_chats/7",
            meeps_url=f"{API}private_chats/7/meeps",
            title="alice & bob",
            updated_at="2026-10-01T12:00:00Z",
        ),
        Chat(
            id=12,
            url=f"{API}private_chats/12",
            meeps_url=f"{API}private_chats/12/meeps",
            title="alice & carol",
        ),
    ]


@pytest.fixture()
def mock_messages():
    return [
        Message(id=1, message="hello", user_id=1, created_at="2026-10-01T12:00:00Z"),
        Message(id=2, message="hi!", user_id=2, created_at="2026-10-01T12:01:00Z"),
    ]


def _make_client():
    client = MagicMock()
    client.__aenter__.return_value = client
    return client


def _make_service(chats, messages=None):
    """Return a MagicMock ChatService with canned return values."""
    svc = MagicMock()
    svc.get_chats = AsyncMock(return_value=chats)
    svc.get_messages_for = AsyncMock(return_value=messages)
    svc.find_chat = AsyncMock(return_value=chats[0] if chats else None)
    svc.provider.get_me = AsyncMock(return_value=Profile(id=1, name="alice"))
    svc.provider.create_message = AsyncMock(
        return_value=Message(id=3, message="posted", user_id=1, created_at=None)
    )
    svc.provider.create_file_message = AsyncMock(
        return_value=Message(id=4, message="", user_id=1, created_at=None)
    )
    svc.provider.open_download_stream = AsyncMock(return_value=httpx.ByteStream(b"file-bytes"))
    return svc


def _patched(svc):
    return (
        patch("protoclient_cli.main._get_client", return_value=_make_client()),
        patch("protoclient_cli.main._open_service", AsyncMock(return_value=svc)),
    )


def _invoke(svc, args, **kwargs):
    get_client, open_service = _patched(svc)
    with get_client, open_service:
        return runner.invoke(app, args, **kwargs)


# ---------------------------------------------------------------------------
# auth commands
# ---------------------------------------------------------------------------


def test_login_saves_token(config_dir):
    client = _make_client()
    client.login_with_password = AsyncMock(return_value=True)
    client.token = "tok999"
    client.user = Profile(id=1, name="alice")
    with patch("protoclient_cli.main._get_client", return_value=client):
        result = runner.invoke(
            app,
            ["auth", "login", "--url", "https://other.example.com"],
            input="alice\nsecret\n",
        )
    assert result.exit_code == 0
    assert "alice" in result.output
    client.login_with_password.assert_awaited_once_with("alice", "secret")
    assert creds_store.load() == {"url": "https://other.example.com", "token": "tok999"}


def test_login_rejected(config_dir):
    client = _make_client()
    client.login_with_password = AsyncMock(return_value=False)
    client.token = None
    with patch("protoclient_cli.main._get_client", return_value=client):
        result = runner.invoke(app, ["auth", "login"], input="alice\nwrong\n")
    assert result.exit_code == 1
    assert "rejected" in result.output
    assert creds_store.load() == {}


def test_login_transport_error(config_dir):
    client = _make_client()
    client.login_with_password = AsyncMock(side_effect=TransportFailure("refused"))
    with patch("protoclient_cli.main._get_client", return_value=client):
        result = runner.invoke(app, ["auth", "login"], input="alice\nsecret\n")
    assert result.exit_code == 1
    assert "refused" in result.output


def test_status_validates_token(mock_chats):
    svc = _make_service(mock_chats)
    result = _invoke(svc, ["auth", "status"])
    assert result.exit_code == 0
    assert "alice" in result.output
    svc.provider.get_me.assert_awaited_once()


def test_status_without_token(monkeypatch):
    monkeypatch.delenv("PROTONET_TOKEN")
    result = runner.invoke(app, ["auth", "status"])
    assert result.exit_code == 1
    assert "No token configured" in result.output


def test_logout_removes_saved_token(config_dir):
    creds_store.save("https://box.example.com", "tok123")
    result = runner.invoke(app, ["auth", "logout"])
    assert result.exit_code == 0
    assert not creds_store.credentials_path().exists()


def test_rejected_token_exits(mock_chats):
    get_client = patch("protoclient_cli.main._get_client", return_value=_make_client())
    open_service = patch(
        "protoclient_cli.main._open_service",
        AsyncMock(side_effect=AuthenticationRequiredError("The saved token was rejected.")),
    )
    with get_client, open_service:
        result = runner.invoke(app, ["chats", "list"])
    assert result.exit_code == 1
    assert "rejected" in result.output


def test_missing_url(monkeypatch):
    monkeypatch.delenv("PROTONET_URL")
    result = runner.invoke(app, ["chats", "list"])
    assert result.exit_code == 1
    assert "No server URL" in result.output


# ---------------------------------------------------------------------------
# chats commands
# ---------------------------------------------------------------------------


def test_list_table_output(mock_chats):
    result = _invoke(_make_service(mock_chats), ["chats", "list"])
    assert result.exit_code == 0
    assert "alice & bob" in result.output
    assert "Total: 2 chats" in result.output


def test_list_json_output(mock_chats):
    result = _invoke(_make_service(mock_chats), ["chats", "list", "--output", "json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert [c["id"] for c in data] == [7, 12]
    assert data[0]["meeps_url"].endswith("/private_chats/7/meeps")


def test_messages_json_output(mock_chats, mock_messages):
    svc = _make_service(mock_chats, mock_messages)
    result = _invoke(svc, ["chats", "messages", "1", "--output", "json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert [m["message"] for m in data] == ["hello", "hi!"]
    svc.get_messages_for.assert_awaited_once_with("1")


def test_messages_unknown_chat(mock_chats):
    result = _invoke(_make_service(mock_chats, None), ["chats", "messages", "42"])
    assert result.exit_code == 1
    assert "No chat matching" in result.output


def test_post_message(mock_chats):
    svc = _make_service(mock_chats)
    result = _invoke(svc, ["chats", "post", "1", "hello there"])
    assert result.exit_code == 0
    assert "Posted message 3" in result.output
    svc.provider.create_message.assert_awaited_once_with(
        f"{API}private_chats/7/meeps", "hello there"
    )


def test_post_unknown_chat():
    svc = _make_service([])
    result = _invoke(svc, ["chats", "post", "9", "hello"])
    assert result.exit_code == 1
    svc.provider.create_message.assert_not_called()


def test_upload_file(mock_chats, tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG")
    svc = _make_service(mock_chats)
    result = _invoke(svc, ["chats", "upload", "1", str(path)])
    assert result.exit_code == 0
    assert "Posted message 4" in result.output
    _, kwargs = svc.provider.create_file_message.call_args
    assert kwargs["content_type"] == "image/png"


# ---------------------------------------------------------------------------
# download
# ---------------------------------------------------------------------------


def test_download_writes_file(mock_chats, tmp_path):
    dest = tmp_path / "out.bin"
    result = _invoke(_make_service(mock_chats), ["download", f"{API}files/1", str(dest)])
    assert result.exit_code == 0
    assert dest.read_bytes() == b"file-bytes"


def test_download_empty_stream(mock_chats, tmp_path):
    svc = _make_service(mock_chats)
    svc.provider.open_download_stream = AsyncMock(return_value=httpx.ByteStream(b""))
    dest = tmp_path / "out.bin"
    result = _invoke(svc, ["download", f"{API}files/1", str(dest)])
    assert result.exit_code == 1
    assert "Nothing downloaded" in result.output
    assert not dest.exists()
