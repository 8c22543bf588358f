from __future__ import annotations
"""Bearer token providers consulted before every request."""
import threading
from typing import Protocol, Sequence

import google.auth
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account

from .errors import AuthError
from .profiles import KeychainStore

DEFAULT_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/cloud-platform",)


class TokenProvider(Protocol):
    """Anything that can produce a bearer token for the requested scopes."""

    def token(self, scopes: Sequence[str]) -> str:
        ...


class StaticTokenProvider:
    """Returns a fixed token, e.g. one printed by ``gcloud auth print-access-token``."""

    def __init__(self, token: str):
        self._token = token

    def token(self, scopes: Sequence[str]) -> str:
        if not self._token:
            raise AuthError("No access token configured")
        return self._token


class KeyringTokenProvider:
    """Reads a stored access token from the OS keychain on every call."""

    def __init__(self, profile_name: str, keychain: KeychainStore | None = None):
        self._profile_name = profile_name
        self._keychain = keychain or KeychainStore()

    def token(self, scopes: Sequence[str]) -> str:
        secret = self._keychain.get_secret(self._profile_name)
        if not secret:
            raise AuthError(f"No access token stored for profile '{self._profile_name}'")
        return secret


class GoogleAuthTokenProvider:
    """Application default or service-account credentials via ``google-auth``.

    Credentials are cached per scope set and refreshed when they expire. The
    cache is guarded by a lock so one provider can serve concurrent operations.
    """

    def __init__(self, credentials_path: str | None = None, request_factory=None):
        self._credentials_path = credentials_path
        self._request_factory = request_factory
        self._credentials: dict[tuple[str, ...], object] = {}
        self._lock = threading.Lock()

    def token(self, scopes: Sequence[str]) -> str:
        key = tuple(scopes) or DEFAULT_SCOPES
        with self._lock:
            try:
                credentials = self._credentials.get(key)
                if credentials is None:
                    credentials = self._load_credentials(key)
                    self._credentials[key] = credentials
                if not credentials.valid:
                    credentials.refresh(self._build_request())
            except (GoogleAuthError, OSError, ValueError) as exc:
                raise AuthError(str(exc)) from exc
            if not credentials.token:
                raise AuthError("Credentials did not produce an access token")
            return credentials.token

    def _load_credentials(self, scopes: tuple[str, ...]):
        if self._credentials_path:
            return service_account.Credentials.from_service_account_file(
                self._credentials_path, scopes=list(scopes)
            )
        credentials, _project = google.auth.default(scopes=list(scopes))
        return credentials

    def _build_request(self):
        if self._request_factory is not None:
            return self._request_factory()
        from google.auth.transport.requests import Request

        return Request()
