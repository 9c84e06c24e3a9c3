"""Control-plane client — package and function records over REST.

``ControllerClient`` is the Protocol the rest of packsmith depends on.
``HttpControllerClient`` talks to the controller's ``/v2`` API through
httpx; ``packsmith.bridge.memory.InMemoryController`` satisfies the same
protocol for tests and offline use.

Every write carries the record's ``resourceVersion``.  The server answers a
stale version with HTTP 409, surfaced as ``StaleRevisionError``; no write is
retried.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from packsmith.core.errors import (
    RemoteStatusError,
    ResourceNotFoundError,
    StaleRevisionError,
    TransportError,
)
from packsmith.models.function import Function
from packsmith.models.package import ObjectMeta, Package

logger = logging.getLogger(__name__)

_Model = TypeVar("_Model", bound=BaseModel)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ControllerClient(Protocol):
    """Record store keyed by (namespace, name) with optimistic concurrency."""

    def get_package(self, name: str, namespace: str) -> Package: ...

    def create_package(self, package: Package) -> ObjectMeta: ...

    def update_package(self, package: Package) -> ObjectMeta: ...

    def delete_package(self, name: str, namespace: str) -> None: ...

    def list_packages(self, namespace: str) -> list[Package]: ...

    def get_function(self, name: str, namespace: str) -> Function: ...

    def update_function(self, function: Function) -> ObjectMeta: ...

    def list_functions(self, namespace: str) -> list[Function]: ...

    def service_url(self, selector: str) -> str: ...


# ---------------------------------------------------------------------------
# HTTP implementation
# ---------------------------------------------------------------------------


class HttpControllerClient:
    """httpx-backed ``ControllerClient``.

    Parameters
    ----------
    server_url:
        Base URL of the controller, e.g. ``http://127.0.0.1:8888``.
    timeout:
        Per-request timeout in seconds.
    client:
        Pre-built ``httpx.Client`` (tests pass one with a ``MockTransport``).
    """

    def __init__(
        self,
        server_url: str,
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base = server_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    # -- Packages ----------------------------------------------------------

    def get_package(self, name: str, namespace: str) -> Package:
        resp = self._request("GET", f"/v2/packages/{name}", "package", name, namespace,
                             params={"namespace": namespace})
        return _parse(resp, Package)

    def create_package(self, package: Package) -> ObjectMeta:
        resp = self._request("POST", "/v2/packages", "package", package.name,
                             package.namespace, json=package.to_wire())
        meta = _parse(resp, ObjectMeta)
        logger.info("Created package %s/%s (rv=%s)", meta.namespace, meta.name,
                    meta.resource_version)
        return meta

    def update_package(self, package: Package) -> ObjectMeta:
        resp = self._request("PUT", f"/v2/packages/{package.name}", "package",
                             package.name, package.namespace, json=package.to_wire())
        meta = _parse(resp, ObjectMeta)
        logger.info("Updated package %s/%s (rv=%s)", meta.namespace, meta.name,
                    meta.resource_version)
        return meta

    def delete_package(self, name: str, namespace: str) -> None:
        self._request("DELETE", f"/v2/packages/{name}", "package", name, namespace,
                      params={"namespace": namespace})
        logger.info("Deleted package %s/%s", namespace, name)

    def list_packages(self, namespace: str) -> list[Package]:
        resp = self._request("GET", "/v2/packages", "package", "", namespace,
                             params={"namespace": namespace})
        return _parse_list(resp, Package)

    # -- Functions ---------------------------------------------------------

    def get_function(self, name: str, namespace: str) -> Function:
        resp = self._request("GET", f"/v2/functions/{name}", "function", name, namespace,
                             params={"namespace": namespace})
        return _parse(resp, Function)

    def update_function(self, function: Function) -> ObjectMeta:
        resp = self._request("PUT", f"/v2/functions/{function.name}", "function",
                             function.name, function.metadata.namespace,
                             json=function.to_wire())
        return _parse(resp, ObjectMeta)

    def list_functions(self, namespace: str) -> list[Function]:
        resp = self._request("GET", "/v2/functions", "function", "", namespace,
                             params={"namespace": namespace})
        return _parse_list(resp, Function)

    # -- Services ----------------------------------------------------------

    def service_url(self, selector: str) -> str:
        """Resolve an in-cluster service address (``host:port``) by label selector."""
        key, _, value = selector.partition("=")
        resp = self._request("GET", "/v2/svcname", "service", selector, "",
                             params={key: value})
        return resp.text.strip()

    # -- Internals ---------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        kind: str,
        name: str,
        namespace: str,
        **kwargs: Any,
    ) -> httpx.Response:
        url = f"{self._base}{path}"
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url}: {exc}") from exc

        if resp.status_code == httpx.codes.NOT_FOUND:
            raise ResourceNotFoundError(url, resp.status_code, f"{kind} {namespace}/{name} not found")
        if resp.status_code == httpx.codes.CONFLICT:
            raise StaleRevisionError(kind, name, namespace, resp.text.strip())
        if not resp.is_success:
            raise RemoteStatusError(url, resp.status_code, resp.text.strip())
        return resp


def _parse(resp: httpx.Response, model: type[_Model]) -> _Model:
    """Validate a response body, reporting malformed records as transport failures."""
    try:
        return model.model_validate(resp.json())
    except (ValueError, ValidationError) as exc:
        raise TransportError(
            f"{resp.request.url}: malformed {model.__name__} in response: {exc}"
        ) from exc


def _parse_list(resp: httpx.Response, model: type[_Model]) -> list[_Model]:
    try:
        return [model.model_validate(item) for item in resp.json() or []]
    except (ValueError, ValidationError) as exc:
        raise TransportError(
            f"{resp.request.url}: malformed {model.__name__} list in response: {exc}"
        ) from exc
