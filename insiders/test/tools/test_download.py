from __future__ import annotations

from pathlib import Path

from insiders.core.result import Err, Ok
from insiders.tools.download import Downloader
from insiders.tools.http import HttpError, MockHttpClient

URL = "https://nodejs.org/dist/v16.20.2/node-v16.20.2-linux-x64.tar.gz"


def test_cache_key_keeps_file_name(tmp_path: Path) -> None:
    key = Downloader(MockHttpClient(), tmp_path).cache_key(URL)
    assert key.endswith("_node-v16.20.2-linux-x64.tar.gz")


def test_cache_key_unique_per_url(tmp_path: Path) -> None:
    downloader = Downloader(MockHttpClient(), tmp_path)
    assert downloader.cache_key(URL) != downloader.cache_key(URL.replace("16.20.2", "16.20.1"))


def test_second_download_served_from_cache(tmp_path: Path) -> None:
    http = MockHttpClient()
    http.set_download(URL, b"archive")
    downloader = Downloader(http, tmp_path / "downloads")

    first = downloader.download(URL)
    second = downloader.download(URL)

    assert isinstance(first, Ok)
    assert isinstance(second, Ok)
    assert first.value.from_cache is False
    assert second.value.from_cache is True
    assert second.value.path.read_bytes() == b"archive"
    assert http.calls == [("download", URL)]


def test_failed_download_leaves_nothing(tmp_path: Path) -> None:
    http = MockHttpClient()
    http.set_download(URL, HttpError(url=URL, status=404, message="Not Found"))
    downloader = Downloader(http, tmp_path)

    result = downloader.download(URL)

    assert isinstance(result, Err)
    assert list(tmp_path.iterdir()) == []
