"""Exceptions raised by pyvrmapi.

Request building and site-id resolution raise synchronously so that a
request is never sent against a wrong or missing installation. Transport
failures are folded into a ``ResponseEnvelope`` by the client; the
transport classes below exist so those failures share one message shape.
"""

from __future__ import annotations

from typing import Any


class VRMError(Exception):
    """Base exception for all pyvrmapi errors."""

    pass


class VRMConfigurationError(VRMError):
    """The request configuration cannot be routed.

    Raised for unknown endpoint families or subtypes, unsupported HTTP
    methods on custom requests, and missing site ids or API tokens.
    """

    pass


# Name used throughout the request-building layer.
ConfigurationError = VRMConfigurationError


class ContextLookupError(VRMError):
    """A ``{{scope.key}}`` site-id reference could not be resolved."""

    def __init__(self, reference: str, scope: str, key: str) -> None:
        """Initialize with the unresolved reference.

        Args:
            reference: The raw reference, e.g. ``{{flow.siteId}}``
            scope: Context scope (node, flow or global)
            key: Key looked up within the scope
        """
        self.reference = reference
        self.scope = scope
        self.key = key
        super().__init__(f"Unable to retrieve {reference} from context")


class VRMTransportError(VRMError):
    """Base exception for transport failures."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        data: Any = None,
    ) -> None:
        self.status = status
        self.data = data
        super().__init__(message)


class VRMConnectionError(VRMTransportError):
    """The request never produced an HTTP response."""

    pass


class VRMAPIError(VRMTransportError):
    """The API answered with a non-2xx status."""

    pass
