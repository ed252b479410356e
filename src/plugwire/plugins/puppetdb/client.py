"""Minimal PuppetDB query client.

Wraps :class:`httpx.Client` to run PQL queries against the
``/pdb/query/v4`` endpoint. The client is created lazily on the first
query and can be closed explicitly or used as a context manager.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from plugwire.config import resolve_credential
from plugwire.exceptions import PuppetdbError
from plugwire.models import PuppetdbConfig

QUERY_PATH = "/pdb/query/v4"


class PuppetdbClient:
    """Run PQL queries against one PuppetDB server.

    Args:
        config: Connection settings from the project configuration.
        transport: Optional httpx transport, used by tests to stub the
            server.

    Example::

        with PuppetdbClient(PuppetdbConfig(server_url="https://pdb:8081")) as pdb:
            nodes = pdb.query("inventory[certname] { facts.os.family = 'RedHat' }")
    """

    def __init__(
        self,
        config: PuppetdbConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> PuppetdbClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def server_url(self) -> str:
        return self._config.server_url

    def _http(self) -> httpx.Client:
        if self._client is None:
            headers: dict[str, str] = {}
            if self._config.token_source:
                headers["X-Authentication"] = resolve_credential(self._config.token_source)
            self._client = httpx.Client(
                base_url=self._config.server_url,
                timeout=self._config.timeout,
                verify=self._config.cacert or True,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def query(self, query: str) -> list[dict[str, Any]]:
        """Run *query* and return the decoded result rows.

        Raises:
            PuppetdbError: On network failures, non-2xx responses, or a
                response body that is not a JSON array.
        """
        try:
            response = self._http().post(QUERY_PATH, json={"query": query})
        except httpx.HTTPError as exc:
            raise PuppetdbError(
                f"Failed to connect to PuppetDB at {self.server_url}: {exc}"
            ) from exc

        if response.status_code >= 400:
            raise PuppetdbError(
                f"PuppetDB query failed with HTTP {response.status_code}: {response.text}"
            )
        try:
            rows = response.json()
        except ValueError as exc:
            raise PuppetdbError(f"PuppetDB returned invalid JSON: {exc}") from exc
        if not isinstance(rows, list):
            raise PuppetdbError("PuppetDB query did not return a list of results")
        return rows
