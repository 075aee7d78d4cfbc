"""Authentication layer — session state and credential storage."""

from protoclient.auth.interfaces import AuthCredentials, AuthProvider
from protoclient.auth.store import ActiveSession, CredentialStore

__all__ = ["ActiveSession", "AuthCredentials", "AuthProvider", "CredentialStore"]
