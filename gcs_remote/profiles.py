from __future__ import annotations
"""Connection profile models and persistence."""
from dataclasses import dataclass
import json
import logging
from pathlib import Path

import keyring
from keyring.errors import KeyringError

LOGGER = logging.getLogger(__name__)

DEFAULT_API_ENDPOINT = "https://storage.googleapis.com"
CREDENTIAL_MODES = ("adc", "service_account", "token")


@dataclass
class ConnectionProfile:
    """Represents a saved bucket connection."""

    name: str
    bucket: str
    api_endpoint: str = DEFAULT_API_ENDPOINT
    credentials_mode: str = "adc"
    credentials_path: str = ""
    token: str = ""


class KeychainStore:
    """Encapsulates OS keychain access for stored access tokens."""

    def __init__(self, service_name: str = "gcs-remote"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        try:
            return keyring.get_password(self._service_name, profile_name) or ""
        except KeyringError:
            LOGGER.warning("Keychain lookup failed for profile '%s'", profile_name)
            return ""

    def set_secret(self, profile_name: str, secret: str) -> None:
        if not profile_name:
            return
        if not secret:
            self.delete_secret(profile_name)
            return
        try:
            keyring.set_password(self._service_name, profile_name, secret)
        except KeyringError:
            LOGGER.warning("Unable to store token for profile '%s' in keychain", profile_name)

    def delete_secret(self, profile_name: str) -> None:
        if not profile_name:
            return
        try:
            keyring.delete_password(self._service_name, profile_name)
        except KeyringError:
            return


class ProfileStorage:
    """Simple JSON-backed store for connection profiles.

    Tokens never stay in the JSON file: a plaintext ``token`` found on load
    is moved into the keychain and the file is rewritten without it.
    """

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".gcs_remote_connections.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    @property
    def keychain(self) -> KeychainStore:
        return self._keychain

    def load(self) -> list[ConnectionProfile]:
        data = self._read_data()
        profiles: list[ConnectionProfile] = []
        sanitized: list[dict[str, str]] = []
        saw_plaintext = False
        for entry in data:
            try:
                name = entry["name"]
                bucket = entry["bucket"]
            except (KeyError, TypeError):
                continue
            mode = entry.get("credentials_mode", "adc")
            if mode not in CREDENTIAL_MODES:
                mode = "adc"
            token = entry.get("token", "")
            if token:
                saw_plaintext = True
                self._keychain.set_secret(name, token)
            elif mode == "token":
                token = self._keychain.get_secret(name)
            profile = ConnectionProfile(
                name=name,
                bucket=bucket,
                api_endpoint=entry.get("api_endpoint") or DEFAULT_API_ENDPOINT,
                credentials_mode=mode,
                credentials_path=entry.get("credentials_path", ""),
                token=token,
            )
            profiles.append(profile)
            sanitized.append(self._serialize(profile))
        if saw_plaintext:
            self._write_data(sanitized)
        return profiles

    def save(self, profiles: list[ConnectionProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = []
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.token)
            data.append(self._serialize(profile))
        existing_names = {entry.get("name") for entry in self._read_data() if isinstance(entry, dict)}
        current_names = {profile.name for profile in profiles}
        for name in existing_names - current_names:
            if isinstance(name, str) and name:
                self._keychain.delete_secret(name)
        self._write_data(data)

    def _read_data(self) -> list:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            LOGGER.warning("Ignoring unreadable profile file %s", self._path)
            return []
        return data if isinstance(data, list) else []

    @staticmethod
    def _serialize(profile: ConnectionProfile) -> dict[str, str]:
        return {
            "name": profile.name,
            "bucket": profile.bucket,
            "api_endpoint": profile.api_endpoint,
            "credentials_mode": profile.credentials_mode,
            "credentials_path": profile.credentials_path,
        }

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
