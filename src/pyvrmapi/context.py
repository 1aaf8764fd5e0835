"""Site-id references into a caller-provided context store.

A site id may be given as ``{{scope.key}}`` (scope is ``node``, ``flow`` or
``global``). The library only recognizes the pattern and asks the store
for the value; storing and scoping values is the caller's job.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol, runtime_checkable

from .exceptions import ContextLookupError, VRMConfigurationError

_LOGGER = logging.getLogger(__name__)

CONTEXT_SCOPES = ("node", "flow", "global")

SITE_ID_REFERENCE = re.compile(r"^\{\{(node|flow|global)\.(.+)\}\}$")


@runtime_checkable
class ContextStore(Protocol):
    """Scoped key/value lookup supplied by the caller."""

    def get(self, scope: str, key: str) -> Any:
        """Return the stored value, or None when the key is unknown."""
        ...

    def set(self, scope: str, key: str, value: Any) -> None:
        """Store a value."""
        ...


class MemoryContextStore:
    """Dictionary-backed ``ContextStore``.

    Example:
        >>> store = MemoryContextStore({"flow": {"siteId": 123456}})
        >>> store.get("flow", "siteId")
        123456
    """

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._scopes: dict[str, dict[str, Any]] = {scope: {} for scope in CONTEXT_SCOPES}
        for scope, values in (initial or {}).items():
            self._scope(scope).update(values)

    def _scope(self, scope: str) -> dict[str, Any]:
        if scope not in self._scopes:
            raise KeyError(f"Unknown context scope: {scope}")
        return self._scopes[scope]

    def get(self, scope: str, key: str) -> Any:
        return self._scope(scope).get(key)

    def set(self, scope: str, key: str, value: Any) -> None:
        self._scope(scope)[key] = value


def parse_site_id_reference(value: str) -> tuple[str, str] | None:
    """Split a ``{{scope.key}}`` reference into (scope, key).

    Returns None when ``value`` is not a reference.
    """
    match = SITE_ID_REFERENCE.match(value)
    if match is None:
        return None
    return match.group(1), match.group(2)


def resolve_site_id(
    site_id: str | int | None,
    context: ContextStore | None = None,
    *,
    override: str | int | None = None,
) -> str:
    """Resolve the site id a request is sent to.

    Args:
        site_id: Configured site id or ``{{scope.key}}`` reference
        context: Store used to resolve references
        override: Site id supplied with the triggering message. Used instead
            of a literal ``site_id``; references always win.

    Returns:
        The site id as a string

    Raises:
        ContextLookupError: If a reference cannot be resolved
        VRMConfigurationError: If no site id is available
    """
    if isinstance(site_id, str):
        reference = parse_site_id_reference(site_id)
        if reference is not None:
            scope, key = reference
            value = context.get(scope, key) if context is not None else None
            if value is None:
                _LOGGER.warning("Site id reference %s is not set in context", site_id)
                raise ContextLookupError(site_id, scope, key)
            return str(value)

    resolved = override if override not in (None, "") else site_id
    if resolved in (None, ""):
        raise VRMConfigurationError("No site id configured")
    return str(resolved)
