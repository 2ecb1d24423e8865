"""
chatbridge — one canonical chat interface over interchangeable LLM vendors.

chatbridge sits between a chat client and the LLM vendors it talks to.
Requests and responses use one vendor-neutral shape; the model catalog and
the credential store decide, at runtime, which vendor serves which model.
Streams are forwarded chunk by chunk and persisted once they finish.

Package layout (src/chatbridge/):
  core/       — dispatch, model resolution, streaming bridge, store, config
  providers/  — vendor adapters (OpenAI, Anthropic) and demo adapters
  cli/        — Click CLI entry point
"""

__version__ = "0.4.0"
__all__ = ["__version__"]
