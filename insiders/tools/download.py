"""Download cache for runtime archives."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from insiders.core.result import Err, Ok, Result
from insiders.tools.http import HttpClient, HttpError

__all__ = ["Downloader", "DownloadResult"]


@dataclass(frozen=True, slots=True)
class DownloadResult:
    path: Path
    from_cache: bool


class Downloader:
    """Fetches URLs into cache_dir, reusing earlier downloads of the same URL."""

    def __init__(self, http: HttpClient, cache_dir: Path) -> None:
        self._http = http
        self._cache_dir = cache_dir

    def cache_key(self, url: str) -> str:
        """`<url hash>_<file name>`, e.g. `a1b2c3d4_node-v16.20.2-linux-x64.tar.xz`."""
        filename = Path(urlparse(url).path).name or "download"
        url_hash = hashlib.sha256(url.encode()).hexdigest()[:8]
        return f"{url_hash}_{filename}"

    def download(self, url: str) -> Result[DownloadResult, HttpError]:
        cache_path = self._cache_dir / self.cache_key(url)
        if cache_path.is_file():
            return Ok(DownloadResult(path=cache_path, from_cache=True))

        self._cache_dir.mkdir(parents=True, exist_ok=True)
        result = self._http.download(url, cache_path)
        if isinstance(result, Err):
            # A partial file would be served from cache next time.
            cache_path.unlink(missing_ok=True)
            return result
        return Ok(DownloadResult(path=cache_path, from_cache=False))
