"""Mitmproxy addon script for use with mitmdump -s flag.

This script is loaded by mitmdump to run the GTFS-Realtime transform filter.
Configuration comes from gtfsproxy.yaml (see gtfsproxy.config) and the
environment set by `gtfsproxy start`.

Usage:
    mitmdump --mode reverse:https://backend.example.org -s script.py
"""

from __future__ import annotations

import logging
import os
from typing import Any

from gtfsproxy.config import get_config
from gtfsproxy.mitm.addon import GtfsTransformAddon

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class GtfsProxyScript:
    """Mitmproxy addon script that wraps GtfsTransformAddon."""

    def __init__(self) -> None:
        self.addon: GtfsTransformAddon | None = None

    def load(self, loader: Any) -> None:  # noqa: ANN401
        """Called when addon is loaded by mitmproxy."""
        config = get_config()
        config.apply_logging()

        # `gtfsproxy start --backend` takes precedence over gtfsproxy.yaml
        backend_url = os.environ.get("GTFSPROXY_BACKEND_URL")
        if backend_url and backend_url != config.backend_url:
            config = config.model_copy(update={"backend_url": backend_url})

        self.addon = GtfsTransformAddon(config)
        logger.info("GTFS-RT to JSON addon loaded (backend: %s)", config.backend_url)

    async def request(self, flow: Any) -> None:  # noqa: ANN401
        """Handle HTTP request."""
        if self.addon:
            await self.addon.request(flow)

    def done(self) -> None:
        """Called when mitmproxy shuts down."""
        if self.addon:
            self.addon.done()
            logger.info("GTFS-RT to JSON addon shut down")


addons = [GtfsProxyScript()]
