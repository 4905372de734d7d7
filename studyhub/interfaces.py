"""Protocol interfaces for dependency injection.

The HTTP application takes its collaborators explicitly
(``create_app(..., identity_resolver=..., pdf_renderer=...)``). These
Protocols describe what those collaborators must provide; any object with
matching methods qualifies, no inheritance required.

Example:
    >>> from studyhub.interfaces import IPdfRenderer
    >>> class FakeRenderer:
    ...     def render_pdf(self, report):
    ...         return b"%PDF-fake"
    >>> isinstance(FakeRenderer(), IPdfRenderer)
    True
"""

from typing import Protocol, runtime_checkable

from starlette.requests import Request

from studyhub.models import Report, UserIdentity


@runtime_checkable
class IIdentityResolver(Protocol):
    """Turns an incoming request into the identity of its caller."""

    def resolve_identity(self, request: Request) -> UserIdentity:
        """Resolve the caller of ``request``.

        Args:
            request: Incoming HTTP request (cookies and headers are read)

        Returns:
            Identity of the authenticated user

        Raises:
            UnauthorizedError: If the request carries no valid identity
        """
        ...


@runtime_checkable
class IPdfRenderer(Protocol):
    """Rasterises an export report into a PDF document."""

    def render_pdf(self, report: Report) -> bytes:
        """Render ``report`` as PDF bytes.

        Raises:
            Exception: Any failure; callers wrap it in ``ExportError``
        """
        ...


__all__ = ["IIdentityResolver", "IPdfRenderer"]
