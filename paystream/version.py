from __future__ import annotations

"""
paystream.version — semantic version string.

Rules:
- BASE_VERSION is the semver for this package.
- If PAYSTREAM_VERSION is set in the environment, that wins (packaging/CI).
"""


import os

# Bump this on intentional releases.
BASE_VERSION = "0.1.0"


def build_version() -> str:
    return os.getenv("PAYSTREAM_VERSION") or BASE_VERSION


__version__ = build_version()

__all__ = ["BASE_VERSION", "build_version", "__version__"]
