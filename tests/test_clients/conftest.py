"""Client-specific test fixtures: raw API error responses."""

from __future__ import annotations

import pytest
from kubernetes.client.rest import ApiException


@pytest.fixture
def not_found_error() -> ApiException:
    """A 404 from the API server, as raised by the generated client."""
    return ApiException(status=404, reason="Not Found")


@pytest.fixture
def unavailable_error() -> ApiException:
    """A 503 from an API server whose control plane is temporarily unreachable."""
    return ApiException(status=503, reason="Service Unavailable")
