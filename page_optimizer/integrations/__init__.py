"""Clients for external systems: content host, generative providers, insight tool."""

from page_optimizer.integrations.generative import (
    PROVIDERS,
    GenerationResult,
    GenerativeProvider,
    get_generative_provider,
)
from page_optimizer.integrations.neuronwriter import NeuronWriterClient
from page_optimizer.integrations.wordpress import WordPressClient, WPPost

__all__ = [
    "PROVIDERS",
    "GenerationResult",
    "GenerativeProvider",
    "NeuronWriterClient",
    "WPPost",
    "WordPressClient",
    "get_generative_provider",
]
