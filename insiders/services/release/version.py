from __future__ import annotations

import re

from insiders.core.result import Err, Ok, Result
from insiders.services.release.errors import StepError


# 0.0.0 keeps every insiders build below any real release in semver order.
VERSION_BASE = "0.0.0"

_CHANNEL_RE = re.compile(r"^[0-9A-Za-z-]+$")
_SHORT_SHA_RE = re.compile(r"^[0-9a-f]{4,40}$")


def compute_version(channel: str, short_sha: str) -> Result[str, StepError]:
    """Build `0.0.0-<channel>.<short-sha>`.

    The result never carries a `v` prefix; npm manifests and dist-tags
    expect the bare form.
    """
    channel = channel.strip()
    sha = short_sha.strip().lower()

    if not _CHANNEL_RE.match(channel):
        return Err(StepError(kind="invalid_input", message=f"invalid release channel: {channel!r}"))
    if not _SHORT_SHA_RE.match(sha):
        return Err(StepError(kind="invalid_input", message=f"invalid short sha: {short_sha!r}"))

    return Ok(f"{VERSION_BASE}-{channel}.{sha}")

