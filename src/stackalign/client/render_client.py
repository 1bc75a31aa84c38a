"""Render web service client.

Fetches and stores tile spec collections and stack metadata over the render
web service REST API. All calls are blocking. Every non-2xx response raises
:class:`StackClientError`; nothing is retried.

Resource layout::

    {base_data_url}/owner/{owner}/project/{project}/stack/{stack}/...
"""

import logging
from typing import List, Optional, Protocol
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field

from stackalign.contracts.failure import StackClientError
from stackalign.tiles.collection import ResolvedTileSpecCollection
from stackalign.tiles.tile_spec import TileSpec

__all__ = ['SectionData', 'StackClient', 'RenderDataClient', 'STACK_STATES']

logger = logging.getLogger(__name__)

STACK_STATES = ("LOADING", "COMPLETE", "READ_ONLY", "OFFLINE")


class SectionData(BaseModel):
    """One section's z value as reported by a stack."""

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    section_id: str = Field(alias="sectionId")
    z: float
    tile_count: Optional[int] = Field(None, alias="tileCount")


class StackClient(Protocol):
    """Operations the reconciliation pipeline needs from a tile store."""

    def get_tile(self, stack: str, tile_id: str) -> TileSpec:
        ...

    def get_resolved_tiles(self, stack: str, z: float) -> ResolvedTileSpecCollection:
        ...

    def save_resolved_tiles(self, collection: ResolvedTileSpecCollection, stack: str,
                            z: Optional[float]) -> None:
        ...

    def get_stack_section_data(self, stack: str, min_z: Optional[float] = None,
                               max_z: Optional[float] = None) -> List[SectionData]:
        ...

    def get_stack_metadata(self, stack: str) -> dict:
        ...

    def setup_derived_stack(self, basis_metadata: dict, new_stack: str) -> None:
        ...

    def set_stack_state(self, stack: str, state: str) -> None:
        ...


class RenderDataClient:
    """HTTP implementation of :class:`StackClient` for one owner/project.

    Parameters
    ----------
    base_data_url : str
        Service root, e.g. ``http://host:8080/render-ws/v1``.
    owner, project : str
        Namespace of every stack this client touches.
    session : requests.Session, optional
        Injected session (for testing). A new session is created if None.
    timeout : float, optional
        Per-request timeout in seconds.
    """

    def __init__(self, base_data_url: str, owner: str, project: str,
                 session=None, timeout: float = 120.0):
        self.base_data_url = base_data_url.rstrip("/")
        self.owner = owner
        self.project = project
        self.session = session or requests.Session()
        self.timeout = timeout

    def __repr__(self):
        return f"RenderDataClient({self.base_data_url}, owner={self.owner}, project={self.project})"

    # ------------------------------------------------------------------
    # URL helpers
    # ------------------------------------------------------------------

    def _stack_url(self, stack: str) -> str:
        return (f"{self.base_data_url}/owner/{quote(self.owner, safe='')}"
                f"/project/{quote(self.project, safe='')}/stack/{quote(stack, safe='')}")

    def _request(self, method: str, url: str, **kwargs):
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise StackClientError(f"{method} {url} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise StackClientError(
                f"{method} {url} returned {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        return response

    # ------------------------------------------------------------------
    # StackClient operations
    # ------------------------------------------------------------------

    def get_tile(self, stack: str, tile_id: str) -> TileSpec:
        url = f"{self._stack_url(stack)}/tile/{quote(tile_id, safe='')}"
        return TileSpec.model_validate(self._request("GET", url).json())

    def get_resolved_tiles(self, stack: str, z: float) -> ResolvedTileSpecCollection:
        url = f"{self._stack_url(stack)}/z/{float(z)}/resolvedTiles"
        return ResolvedTileSpecCollection.from_json(self._request("GET", url).json(), z=z)

    def save_resolved_tiles(self, collection: ResolvedTileSpecCollection, stack: str,
                            z: Optional[float]) -> None:
        """Store a collection; ``z=None`` lets tiles carry their own z values."""
        if z is None:
            url = f"{self._stack_url(stack)}/resolvedTiles"
        else:
            url = f"{self._stack_url(stack)}/z/{float(z)}/resolvedTiles"
        self._request("PUT", url, json=collection.to_json())
        logger.info("saved %d tiles to stack %s (z=%s)", collection.tile_count, stack, z)

    def get_stack_section_data(self, stack: str, min_z: Optional[float] = None,
                               max_z: Optional[float] = None) -> List[SectionData]:
        params = {}
        if min_z is not None:
            params["minZ"] = min_z
        if max_z is not None:
            params["maxZ"] = max_z
        url = f"{self._stack_url(stack)}/sectionData"
        return [SectionData.model_validate(item)
                for item in self._request("GET", url, params=params).json()]

    def get_stack_metadata(self, stack: str) -> dict:
        return self._request("GET", self._stack_url(stack)).json()

    def setup_derived_stack(self, basis_metadata: dict, new_stack: str) -> None:
        """Create ``new_stack`` from the basis stack's current version if it is missing.

        An existing COMPLETE stack is moved back to LOADING so it can be written.
        """
        try:
            existing = self.get_stack_metadata(new_stack)
        except StackClientError as exc:
            if exc.status_code != 404:
                raise
            existing = None

        if existing is None:
            version = dict(basis_metadata.get("currentVersion") or {})
            logger.info("setup_derived_stack: creating %s from basis version %s", new_stack, version)
            self._request("POST", self._stack_url(new_stack), json=version)
        elif existing.get("state") == "COMPLETE":
            logger.info("setup_derived_stack: %s is COMPLETE, moving to LOADING", new_stack)
            self.set_stack_state(new_stack, "LOADING")
        else:
            logger.info("setup_derived_stack: %s already exists in state %s",
                        new_stack, existing.get("state"))

    def set_stack_state(self, stack: str, state: str) -> None:
        if state not in STACK_STATES:
            raise ValueError(f"unknown stack state '{state}', expected one of {STACK_STATES}")
        self._request("PUT", f"{self._stack_url(stack)}/state/{state}")
        logger.info("set stack %s state to %s", stack, state)
