from __future__ import annotations

# Quick version checks (node --version)
VERSION_CHECK_TIMEOUT_SECONDS = 30.0

# Package manager operations
INSTALL_TIMEOUT_SECONDS = 30 * 60.0
BUILD_TIMEOUT_SECONDS = 30 * 60.0
TEST_TIMEOUT_SECONDS = 30 * 60.0
VERSION_TIMEOUT_SECONDS = 60.0
PUBLISH_TIMEOUT_SECONDS = 10 * 60.0

# Local scripts
ENGINE_SWAP_TIMEOUT_SECONDS = 5 * 60.0

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0

# Runtime archive downloads, per network operation
DOWNLOAD_TIMEOUT_SECONDS = 60.0
