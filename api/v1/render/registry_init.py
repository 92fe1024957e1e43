"""
Render provider registry initialization.
"""

import logging

from api.config.settings import settings
from api.v1.core.registries import provider_registry
from api.v1.render.providers import HttpRenderProvider, mock_provider

logger = logging.getLogger(__name__)


def register_render_providers() -> None:
    """Register all render providers with the provider registry."""

    provider_registry.register("mock", mock_provider)
    provider_registry.register("http", HttpRenderProvider(settings))

    logger.info(
        "Render providers registered",
        extra={"registered_providers": provider_registry.list()},
    )


# Auto-register providers when module is imported
register_render_providers()
