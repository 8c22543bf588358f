from __future__ import annotations
"""Controller layer wiring saved profiles and settings to :class:`RemoteStorage`."""

import logging
from typing import Callable

from .auth import GoogleAuthTokenProvider, KeyringTokenProvider, StaticTokenProvider, TokenProvider
from .profiles import ConnectionProfile, ProfileStorage
from .services import RemoteStorage
from .settings import AppSettings, SettingsStorage

LOGGER = logging.getLogger(__name__)


class NotConnectedError(RuntimeError):
    """Raised when a bucket operation is attempted before connecting."""


class StorageController:
    """Coordinates profile management with the :class:`RemoteStorage` facade."""

    def __init__(
        self,
        storage: ProfileStorage | None = None,
        settings_storage: SettingsStorage | None = None,
        service_factory: Callable[..., RemoteStorage] | None = None,
    ):
        self._storage = storage or ProfileStorage()
        self._settings_storage = settings_storage or SettingsStorage()
        self._service_factory = service_factory or RemoteStorage
        self._profiles: list[ConnectionProfile] = self._storage.load()
        self._settings: AppSettings = self._settings_storage.load()
        self._service: RemoteStorage | None = None
        self._selected_profile: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._service is not None

    @property
    def selected_profile(self) -> str | None:
        return self._selected_profile

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def update_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._settings_storage.save(settings)

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles)

    def save_profile(self, profile: ConnectionProfile, *, original_name: str | None = None) -> None:
        if original_name and original_name != profile.name:
            self._profiles = [p for p in self._profiles if p.name != original_name]
        self._upsert_profile(profile)
        self._persist_profiles()

    def delete_profile(self, name: str) -> None:
        before = len(self._profiles)
        self._profiles = [p for p in self._profiles if p.name != name]
        if len(self._profiles) == before:
            raise ValueError(f"Profile '{name}' does not exist")
        if self._selected_profile == name:
            self.disconnect()
        self._persist_profiles()

    def get_profile(self, name: str) -> ConnectionProfile:
        for profile in self._profiles:
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def connect_with_profile(self, name: str) -> RemoteStorage:
        profile = self.get_profile(name)
        LOGGER.debug("Connecting using profile '%s' (bucket '%s')", name, profile.bucket)
        service = self._service_factory(
            profile.bucket,
            self.token_provider_for(profile),
            api_endpoint=profile.api_endpoint,
            settings=self._settings,
        )
        self.disconnect()
        self._service = service
        self._selected_profile = name
        return service

    def token_provider_for(self, profile: ConnectionProfile) -> TokenProvider:
        if profile.credentials_mode == "token":
            if profile.token:
                return StaticTokenProvider(profile.token)
            return KeyringTokenProvider(profile.name, self._storage.keychain)
        if profile.credentials_mode == "service_account":
            return GoogleAuthTokenProvider(profile.credentials_path or None)
        return GoogleAuthTokenProvider()

    def require_service(self) -> RemoteStorage:
        if self._service is None:
            raise NotConnectedError("Not connected to a bucket")
        return self._service

    def disconnect(self) -> None:
        if self._service is not None:
            self._service.close()
        self._service = None
        self._selected_profile = None

    def _upsert_profile(self, profile: ConnectionProfile) -> None:
        for idx, existing in enumerate(self._profiles):
            if existing.name == profile.name:
                self._profiles[idx] = profile
                break
        else:
            self._profiles.append(profile)

    def _persist_profiles(self) -> None:
        self._storage.save(self._profiles)
