"""Runtime downloads: HTTP client, download cache, archive installer, Node.js dist."""

from insiders.tools.download import Downloader, DownloadResult
from insiders.tools.http import HttpClient, HttpError, MockHttpClient, RealHttpClient
from insiders.tools.installer import Installer, InstallError
from insiders.tools.node import NODE_DIST_URL, NodeDist

__all__ = [
    # HTTP
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
    # Download
    "Downloader",
    "DownloadResult",
    # Install
    "Installer",
    "InstallError",
    # Node.js
    "NODE_DIST_URL",
    "NodeDist",
]
