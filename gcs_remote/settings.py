from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
from pathlib import Path

MAX_BATCH_SIZE = 100


@dataclass
class AppSettings:
    """Simple container for persistent client settings."""

    list_page_size: int = 1000
    download_chunk_size: int = 64 * 1024
    request_timeout: float = 60.0
    batch_size: int = MAX_BATCH_SIZE


def _positive_int(value, default: int, maximum: int | None = None) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    if parsed <= 0:
        return default
    if maximum is not None:
        parsed = min(parsed, maximum)
    return parsed


def _positive_float(value, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".gcs_remote_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        return AppSettings(
            list_page_size=_positive_int(data.get("list_page_size"), AppSettings.list_page_size),
            download_chunk_size=_positive_int(
                data.get("download_chunk_size"), AppSettings.download_chunk_size
            ),
            request_timeout=_positive_float(data.get("request_timeout"), AppSettings.request_timeout),
            batch_size=_positive_int(data.get("batch_size"), AppSettings.batch_size, MAX_BATCH_SIZE),
        )

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        payload["list_page_size"] = max(int(settings.list_page_size), 1)
        payload["download_chunk_size"] = max(int(settings.download_chunk_size), 1)
        payload["batch_size"] = min(max(int(settings.batch_size), 1), MAX_BATCH_SIZE)
        if float(settings.request_timeout) <= 0:
            payload["request_timeout"] = AppSettings.request_timeout
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
