"""
HTTP transport shared by the manifest fetcher and the downloader.

Redirects are followed by hand so the hop count stays bounded and every
hop is visible in the log.
"""

import logging
from typing import Dict, Optional
from urllib.parse import urljoin

import requests

from mollylauncher.core.errors import NetworkError, RedirectLoopError

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5
REDIRECT_STATUSES = (301, 302, 303, 307, 308)
USER_AGENT = "MollysLauncher-Updater"


def open_url(
    session: requests.Session,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
    stream: bool = False,
    timeout: float = 15,
    max_redirects: int = MAX_REDIRECTS,
) -> requests.Response:
    """
    GET ``url``, following 3xx responses that carry a Location header.

    ``params`` are only sent with the first request; redirect targets are
    requested exactly as the server gave them.

    Returns:
        The terminal (non-redirect) response. The caller owns it and must
        close it.

    Raises:
        NetworkError: connection, DNS or timeout failure
        RedirectLoopError: more than ``max_redirects`` hops
    """
    request_headers = {"User-Agent": USER_AGENT}
    if headers:
        request_headers.update(headers)

    current_url = url
    current_params = params
    hops = 0

    while True:
        try:
            response = session.get(
                current_url,
                headers=request_headers,
                params=current_params,
                stream=stream,
                timeout=timeout,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            raise NetworkError(f"Cannot reach {current_url}: {e}") from e

        location = response.headers.get("Location") or response.headers.get("location")
        if response.status_code not in REDIRECT_STATUSES or not location:
            return response

        response.close()
        hops += 1
        if hops > max_redirects:
            raise RedirectLoopError(url, max_redirects)

        next_url = urljoin(current_url, location)
        logger.debug("Redirect %d: %s -> %s", hops, current_url, next_url)
        current_url = next_url
        current_params = None
