from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the sensor hub service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_reading(self, reading: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/sensor-data", json=reading)

    def get_room(self, room_id: str) -> Dict[str, Any]:
        return self._request(
            "GET",
            f"/api/rooms/{quote(room_id, safe='')}",
            not_found=f"Room {room_id} has not reported yet.",
        )

    def list_rooms(self) -> Dict[str, Any]:
        return self._request("GET", "/api/rooms")

    def get_history(self, room_id: str, hours: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._request("GET", f"/api/history/{quote(room_id, safe='')}", params=self._window(hours))

    def get_stats(self, room_id: str, hours: Optional[int] = None) -> Dict[str, Any]:
        return self._request("GET", f"/api/stats/{quote(room_id, safe='')}", params=self._window(hours))

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/api/health")

    @staticmethod
    def _window(hours: Optional[int]) -> Dict[str, int]:
        return {} if hours is None else {"hours": hours}

    def _request(self, method: str, url: str, not_found: Optional[str] = None, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
            if response.status_code == 404 and not_found:
                raise typer.BadParameter(not_found)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
