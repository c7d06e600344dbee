"""npm command lines and registry auth configuration."""

from __future__ import annotations

from urllib.parse import urlsplit

# setup-node exports this so npm does not fail on an unset ${NODE_AUTH_TOKEN}
# before the publish step provides the real token.
NODE_AUTH_TOKEN_PLACEHOLDER = "XXXXX-XXXXX-XXXXX-XXXXX"


def install_cmd(npm: str) -> list[str]:
    return [npm, "install"]


def run_script_cmd(npm: str, script: str) -> list[str]:
    return [npm, "run", script]


def version_cmd(npm: str, version: str) -> list[str]:
    # --no-git-tag-version: rewrite package.json only, no commit and no tag.
    return [npm, "version", version, "--force", "--no-git-tag-version"]


def publish_cmd(npm: str, dist_tag: str) -> list[str]:
    return [npm, "publish", "--tag", dist_tag]


def registry_npmrc(registry_url: str) -> str:
    """Contents of the user .npmrc pointing npm at registry_url.

    The token is referenced, not inlined; npm expands ${NODE_AUTH_TOKEN}
    from the environment of whichever command runs.
    """
    url = registry_url if registry_url.endswith("/") else registry_url + "/"
    parts = urlsplit(url)
    auth_prefix = f"//{parts.netloc}{parts.path}"
    return f"{auth_prefix}:_authToken=${{NODE_AUTH_TOKEN}}\nregistry={url}\n"
