"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                        MANIFEST FETCHER                                       ║
║              Remote version.json retrieval (stateless)                        ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  🚫 Cache-busting headers + timestamp query parameter                        ║
║  🔀 Bounded redirect following                                               ║
║  📦 Unwraps base64 hosting-API envelopes ({"content": ..., "encoding": ...}) ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import base64
import binascii
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import requests

from mollylauncher.core.errors import DecodeError, NetworkError, RemoteError
from mollylauncher.core.transport import MAX_REDIRECTS, open_url

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Accept": "application/json",
}


# ══════════════════════════════════════════════════════════════════════════════
# DATA CLASSES
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VersionManifest:
    """Latest published launcher version"""
    version: str
    download_url: str
    changelog: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "VersionManifest":
        """
        Build a manifest from the decoded JSON document.

        Raises:
            DecodeError: required fields are missing or have the wrong type
        """
        if not isinstance(data, dict):
            raise DecodeError("Manifest is not a JSON object")

        version = data.get("version")
        download_url = data.get("downloadUrl") or data.get("download_url")
        if not isinstance(version, str) or not version.strip():
            raise DecodeError("Manifest has no 'version' field")
        if not isinstance(download_url, str) or not download_url.strip():
            raise DecodeError("Manifest has no 'downloadUrl' field")

        changelog = data.get("changelog") or []
        if isinstance(changelog, str):
            changelog = [changelog]
        if not isinstance(changelog, list):
            raise DecodeError("Manifest 'changelog' must be a list of strings")

        return cls(
            version=version.strip(),
            download_url=download_url.strip(),
            changelog=tuple(str(item) for item in changelog),
        )


# ══════════════════════════════════════════════════════════════════════════════
# FETCHER
# ══════════════════════════════════════════════════════════════════════════════

def unwrap_envelope(data: Any) -> Any:
    """
    Decode a hosting-API envelope, or return ``data`` untouched.

    The GitHub contents API returns the file as
    ``{"content": "<base64>", "encoding": "base64", ...}``.
    """
    if not isinstance(data, dict) or "content" not in data:
        return data
    if "version" in data:
        return data

    encoding = str(data.get("encoding", "base64")).lower()
    if encoding != "base64":
        raise DecodeError(f"Unsupported envelope encoding: {encoding}")

    try:
        raw = base64.b64decode(str(data["content"]), validate=False)
        return json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Cannot decode manifest envelope: {e}") from e


class ManifestFetcher:
    """
    Retrieves and decodes the remote manifest.

    Holds no state between calls other than the HTTP session.

    Usage:
        fetcher = ManifestFetcher()
        manifest = fetcher.fetch(UPDATE_JSON_URL)
        print(manifest.version, manifest.changelog)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
        max_redirects: int = MAX_REDIRECTS,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_redirects = max_redirects

    def fetch(self, manifest_url: str) -> VersionManifest:
        """
        Fetch the version manifest.

        Raises:
            NetworkError: connection failure (RedirectLoopError past the bound)
            RemoteError: non-success status after redirects
            DecodeError: body is not a valid manifest
        """
        manifest = VersionManifest.from_dict(self.fetch_json(manifest_url))
        logger.info("Manifest %s: version %s", manifest_url, manifest.version)
        return manifest

    def fetch_json(self, url: str) -> Any:
        """Fetch ``url`` with the no-cache policy and return the decoded JSON."""
        params = {"t": str(int(time.time() * 1000))}

        response = open_url(
            self.session,
            url,
            headers=NO_CACHE_HEADERS,
            params=params,
            timeout=self.timeout,
            max_redirects=self.max_redirects,
        )
        with response:
            if not 200 <= response.status_code < 300:
                raise RemoteError(
                    f"Failed to fetch {url}: HTTP {response.status_code}",
                    response.status_code,
                )
            try:
                body = response.content
            except requests.RequestException as e:
                raise NetworkError(f"Connection lost while reading {url}: {e}") from e

        try:
            data = json.loads(body.decode("utf-8-sig"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"Response from {url} is not valid JSON: {e}") from e

        return unwrap_envelope(data)
