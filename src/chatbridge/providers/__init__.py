"""
LLM providers — vendor adapters behind one canonical chat interface.

Adapters talk to LLM APIs (OpenAI, Anthropic) via httpx and normalise each
vendor's response format into ChatResponse.  Mock adapters stand in when no
usable credential is configured.

Auto-imports all built-in adapters so that AdapterRegistry.get("anthropic")
works without explicit imports.
"""

# Auto-register built-in adapters
from chatbridge.providers import anthropic as _anthropic  # noqa: F401
from chatbridge.providers import mock as _mock  # noqa: F401
from chatbridge.providers import openai as _openai  # noqa: F401
from chatbridge.providers.base import AdapterRegistry, BaseProvider  # noqa: F401
