"""
ola — a friendly CLI for prompting and optimising reasoning-model calls.

Sends structured prompts (goals, return format, warnings) to OpenAI,
Anthropic, Ollama or Gemini, streams the answer back, and can re-run the
request as recursive waves or an interactive feedback loop.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ola-cli")
except PackageNotFoundError:
    __version__ = "0.0.0"
