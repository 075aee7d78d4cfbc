"""Persistent storage for a Protonet session token.

``credentials.json`` holds the server URL and the token issued at the
last ``auth login``.  The client never reads this file; the CLI uses it
to re-supply the token through the token login entry point.

The file is stored under ``~/.config/protoclient/`` with permissions
restricted to the owner (0o600).
"""

import json
from pathlib import Path

_CONFIG_DIR = Path.home() / ".config" / "protoclient"
_CREDENTIALS_FILE = _CONFIG_DIR / "credentials.json"


def save(url: str, token: str) -> None:
    """Persist the server URL and token to the config file.

    Creates the config directory if it does not already exist and restricts
    file permissions to the owner only.

    Args:
        url: The server root URL the token was issued by.
        token: The session token.
    """
    _CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    _CREDENTIALS_FILE.write_text(
        json.dumps({"url": url, "token": token}, indent=2),
        encoding="utf-8",
    )
    _CREDENTIALS_FILE.chmod(0o600)


def load() -> dict[str, str]:
    """Load the saved URL and token.

    Returns:
        A dictionary with ``url`` and ``token`` keys, or an empty
        dictionary if no credentials file exists or it cannot be parsed.
    """
    if not _CREDENTIALS_FILE.exists():
        return {}
    try:
        data = json.loads(_CREDENTIALS_FILE.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def clear() -> bool:
    """Remove the credentials file.

    Returns:
        ``True`` if the file was deleted, ``False`` if it did not exist.
    """
    if _CREDENTIALS_FILE.exists():
        _CREDENTIALS_FILE.unlink()
        return True
    return False


def credentials_path() -> Path:
    """Return the path to the credentials file."""
    return _CREDENTIALS_FILE
