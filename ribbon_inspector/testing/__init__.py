"""
Public test utilities for ribbon-inspector.
"""

from .fake import FAKE_ENVIRONMENT_URL, FAKE_USER_ID, FakeDataverseClient, FakeRequest
from .harness import build_context, override_inspector_settings

__all__ = [
    "FAKE_ENVIRONMENT_URL",
    "FAKE_USER_ID",
    "FakeDataverseClient",
    "FakeRequest",
    "build_context",
    "override_inspector_settings",
]
