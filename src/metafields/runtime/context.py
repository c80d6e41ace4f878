"""
Request-scoped context for server-side evaluation.

One RequestContext is created per request and passed explicitly to the
sanitizer and the view builder. It carries the permission check and the
"assets emitted" flag, so nothing is shared across requests.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

PermissionCheck = Callable[[str], bool]


def _allow_all(capability: str) -> bool:
    return True


@dataclass
class RequestContext:
    """
    Context passed through one render or save request.

    Attributes:
        permission_check: Callable deciding whether the current user holds a
            capability
        content_type: Content type of the item being edited
        assets_emitted: Whether the client runtime assets were already
            emitted during this request
    """

    permission_check: PermissionCheck = _allow_all
    content_type: str = "post"
    assets_emitted: bool = False
    _denied: set[str] = field(default_factory=set, repr=False)

    @classmethod
    def with_capabilities(cls, capabilities: Iterable[str], content_type: str = "post") -> RequestContext:
        """Build a context whose user holds exactly the given capabilities."""
        granted = frozenset(capabilities)
        return cls(permission_check=granted.__contains__, content_type=content_type)

    def can_access(self, capability: str) -> bool:
        """Check whether the current user holds a capability."""
        if not capability:
            return True
        if capability in self._denied:
            return False
        allowed = bool(self.permission_check(capability))
        if not allowed:
            self._denied.add(capability)
        return allowed

    def claim_assets(self) -> bool:
        """
        Claim the one-time asset emission for this request.

        Returns True the first time it is called, False afterwards.
        """
        if self.assets_emitted:
            return False
        self.assets_emitted = True
        return True
