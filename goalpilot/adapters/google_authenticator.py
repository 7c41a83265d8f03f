"""
Google OAuth 2.0 authentication using the Device Authorization Grant.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
import requests
from keyring.errors import KeyringError, PasswordDeleteError
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()


KEYRING_SERVICE_NAME = "goalpilot"


class GoogleAuthenticator:
    """
    Handles authentication with Google using the device code flow.

    This flow is ideal for CLI applications:
    1. App requests a device code
    2. App displays a code and URL
    3. User visits URL in browser and enters code
    4. User grants calendar access
    5. App polls until it receives access and refresh tokens
    """

    DEVICE_CODE_URL = "https://oauth2.googleapis.com/device/code"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

    # Required scope for free/busy lookups and event creation
    SCOPES = ["https://www.googleapis.com/auth/calendar.events", "https://www.googleapis.com/auth/calendar.readonly"]

    # Tokens this close to expiry are treated as expired
    EXPIRY_MARGIN_SECONDS = 60

    def __init__(
        self,
        client_id: str,
        client_secret: str = "",
        cache_file: Path | None = None
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: Google OAuth client ID (TV and limited-input device type)
            client_secret: Client secret issued with the client ID
            cache_file: Optional path to the plaintext fallback token cache
        """
        if not client_id:
            raise AuthenticationError(
                "No Google client_id configured. Add google.client_id to config.yaml."
            )

        self.client_id = client_id
        self.client_secret = client_secret

        self.cache_file = cache_file or Path.home() / ".goalpilot_token_cache.json"
        self._key_identifier = self.client_id
        self._keyring_supported = True
        self._cache_backend = "keyring"
        self._insecure_storage_warning: Optional[str] = None
        self.cache: Dict[str, Any] = self._load_cache()

    @property
    def cache_backend(self) -> str:
        """Return the active cache backend (keyring or file)."""
        return self._cache_backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Provide a warning message when the cache falls back to plaintext storage."""
        return self._insecure_storage_warning

    def _load_cache(self) -> Dict[str, Any]:
        """Load token cache from keyring or disk if it exists."""
        serialized = self._load_cache_from_keyring()
        if serialized is None:
            serialized = self._load_cache_from_file()

        if serialized:
            try:
                data = json.loads(serialized)
                if isinstance(data, dict):
                    return data
            except ValueError as exc:
                logger.warning("Could not deserialize token cache: %s", exc)

        return {}

    def _load_cache_from_keyring(self) -> Optional[str]:
        if not self._keyring_supported:
            return None

        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _load_cache_from_file(self) -> Optional[str]:
        if self.cache_file.exists():
            try:
                with open(self.cache_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read()
            except OSError as exc:
                logger.warning("Could not load token cache file %s: %s", self.cache_file, exc)
        return None

    def _save_cache(self) -> None:
        """Save token cache to the configured backend."""
        serialized = json.dumps(self.cache)

        if self._keyring_supported and self._save_cache_to_keyring(serialized):
            return

        self._save_cache_to_file(serialized)

    def _save_cache_to_keyring(self, serialized: str) -> bool:
        try:
            keyring.set_password(
                KEYRING_SERVICE_NAME,
                self._key_identifier,
                serialized,
            )
            self._cache_backend = "keyring"
            return True
        except KeyringError as exc:  # pragma: no cover - environment dependent
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _save_cache_to_file(self, serialized: str) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as file_handle:
                file_handle.write(serialized)
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache to %s: %s", self.cache_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        if self._keyring_supported:
            logger.warning(
                "Secure credential storage unavailable (%s). Falling back to plaintext cache.",
                reason,
            )
        self._keyring_supported = False
        self._cache_backend = "file"
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext cache at {self.cache_file}."
            )

    def _cached_token_valid(self) -> bool:
        token = self.cache.get("access_token")
        expires_at = self.cache.get("expires_at", 0)
        return bool(token) and time.time() < expires_at - self.EXPIRY_MARGIN_SECONDS

    def _store_token_response(self, result: Dict[str, Any]) -> str:
        self.cache["access_token"] = result["access_token"]
        self.cache["expires_at"] = time.time() + int(result.get("expires_in", 3600))
        # Refresh responses omit the refresh token; keep the old one
        if result.get("refresh_token"):
            self.cache["refresh_token"] = result["refresh_token"]
        self._save_cache()
        return result["access_token"]

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using cache, refresh, or a new device flow.

        Args:
            force_refresh: Force authentication even if cached token exists

        Returns:
            Access token string

        Raises:
            AuthenticationError: If authentication fails
        """
        if not force_refresh:
            if self._cached_token_valid():
                return self.cache["access_token"]

            if self.cache.get("refresh_token"):
                try:
                    return self._refresh_access_token()
                except AuthenticationError as exc:
                    logger.warning("Token refresh failed, starting device flow: %s", exc)

        # Need to authenticate interactively
        return self._authenticate_device_code_flow()

    def _refresh_access_token(self) -> str:
        result = self._post(self.TOKEN_URL, {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.cache["refresh_token"],
            "grant_type": "refresh_token",
        })

        if "access_token" not in result:
            raise AuthenticationError(
                f"Refresh failed: {result.get('error_description', result.get('error', 'Unknown error'))}"
            )

        return self._store_token_response(result)

    def _authenticate_device_code_flow(self) -> str:
        """
        Perform device code flow authentication.

        Returns:
            Access token

        Raises:
            AuthenticationError: If authentication fails or the code expires
        """
        console.print("\n[bold cyan]🔐 Google Authentication Required[/bold cyan]")
        console.print("You need to sign in to access your calendar.\n")

        flow = self._post(self.DEVICE_CODE_URL, {
            "client_id": self.client_id,
            "scope": " ".join(self.SCOPES),
        })

        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to initiate device flow: {flow.get('error_description', flow.get('error', 'Unknown error'))}"
            )

        console.print("[bold]Please follow these steps:[/bold]")
        console.print(f"1. Open a browser and go to: [bold cyan]{flow['verification_url']}[/bold cyan]")
        console.print(f"2. Enter this code: [bold yellow]{flow['user_code']}[/bold yellow]")
        console.print("3. Sign in with your Google account")
        console.print("4. Grant the requested calendar permissions\n")
        console.print("[dim]Waiting for authentication...[/dim]\n")

        result = self._poll_for_token(flow)

        console.print("[bold green]✓ Authentication successful![/bold green]\n")

        return self._store_token_response(result)

    def _poll_for_token(self, flow: Dict[str, Any]) -> Dict[str, Any]:
        interval = int(flow.get("interval", 5))
        deadline = time.time() + int(flow.get("expires_in", 1800))

        while time.time() < deadline:
            time.sleep(interval)

            result = self._post(self.TOKEN_URL, {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "device_code": flow["device_code"],
                "grant_type": self.DEVICE_GRANT_TYPE,
            })

            if "access_token" in result:
                return result

            error = result.get("error")
            if error == "authorization_pending":
                continue
            if error == "slow_down":
                interval += 5
                continue

            raise AuthenticationError(
                f"Authentication failed: {result.get('error_description', error or 'Unknown error')}"
            )

        raise AuthenticationError("Authentication failed: device code expired")

    def _post(self, url: str, data: Dict[str, str]) -> Dict[str, Any]:
        # OAuth errors come back as 4xx with a JSON body, so no raise_for_status
        try:
            response = requests.post(url, data=data, timeout=30)
            return response.json()
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Could not reach Google OAuth endpoint: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError(f"Invalid response from Google OAuth endpoint: {exc}") from exc

    def clear_cache(self) -> None:
        """Clear the token cache (force re-authentication next time)."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except PasswordDeleteError:
            # nothing stored
            pass
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove credentials from keyring: %s", exc)
        self.cache = {}
        console.print("[green]Token cache cleared. You will need to re-authenticate.[/green]")
