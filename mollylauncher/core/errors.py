"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                        UPDATE ERROR TAXONOMY                                  ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  🌐 NetworkError / RedirectLoopError  - transport failures                   ║
║  📡 RemoteError / HttpStatusError     - non-success responses                ║
║  🧾 DecodeError / InvalidVersionError - malformed manifest data              ║
║  💾 IoError                           - local filesystem failures            ║
║  🚀 InstallLaunchError                - installer could not be started       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional


class UpdateError(Exception):
    """Base class for every failure raised by the update core"""
    pass


class NetworkError(UpdateError):
    """Connection, DNS or timeout failure"""
    pass


class RedirectLoopError(NetworkError):
    """Redirect chain exceeded the allowed number of hops"""

    def __init__(self, url: str, max_redirects: int):
        super().__init__(f"Too many redirects (>{max_redirects}) while fetching {url}")
        self.url = url
        self.max_redirects = max_redirects


class RemoteError(UpdateError):
    """Remote endpoint answered with a non-success status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class HttpStatusError(RemoteError):
    """Download ended on a response other than 200"""

    def __init__(self, status_code: int, url: str = ""):
        super().__init__(f"Failed to download: HTTP {status_code}", status_code)
        self.url = url


class DecodeError(UpdateError):
    """Response body is not a valid manifest document"""
    pass


class InvalidVersionError(UpdateError, ValueError):
    """Version string is empty or has a non-numeric segment"""

    def __init__(self, version: str):
        super().__init__(f"Invalid version string: {version!r}")
        self.version = version


class IoError(UpdateError):
    """Disk full, permission denied and other local write failures"""
    pass


class DownloadCancelled(UpdateError):
    """Download was cancelled between chunks"""
    pass


class InstallLaunchError(UpdateError):
    """Downloaded installer could not be invoked"""
    pass
