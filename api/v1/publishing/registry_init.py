"""
Story analyzer registry initialization.
"""

import logging

from api.config.settings import settings
from api.v1.core.registries import analyzer_registry
from api.v1.publishing.analysis import OpenAIStoryAnalyzer, StubStoryAnalyzer

logger = logging.getLogger(__name__)


def register_story_analyzers() -> None:
    """Register all story analyzers with the analyzer registry."""

    analyzer_registry.register("stub", StubStoryAnalyzer())
    analyzer_registry.register("openai", OpenAIStoryAnalyzer(settings.openai_model))

    logger.info(
        "Story analyzers registered",
        extra={"registered_analyzers": analyzer_registry.list()},
    )


# Auto-register analyzers when module is imported
register_story_analyzers()
