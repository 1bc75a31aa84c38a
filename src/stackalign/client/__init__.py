"""Tile store clients.

- render_client: StackClient protocol and its render web service implementation
"""

from stackalign.client.render_client import (
    RenderDataClient,
    SectionData,
    StackClient,
)

__all__ = ["RenderDataClient", "SectionData", "StackClient"]
