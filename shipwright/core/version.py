"""
Template version — the version stamped into every rendered stack.

Deployed stacks record the version that wrote them; the version gate
compares it against this one before every apply.
"""

from __future__ import annotations

import os

# Version of the templates this release renders.
DEFAULT_TEMPLATE_VERSION = "v1.30.0"

TEMPLATE_VERSION_ENV = "SHIPWRIGHT_TEMPLATE_VERSION"


def template_version() -> str:
    """Version to render with; ``SHIPWRIGHT_TEMPLATE_VERSION`` pins another one."""
    return os.environ.get(TEMPLATE_VERSION_ENV) or DEFAULT_TEMPLATE_VERSION

