"""Runtime settings for BetaLoom.

There is no config file and no environment lookup. Defaults live here;
the CLI can override a few of them, and tests build their own.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Everything a request needs to know about the process it runs in."""

    upstream_url: str = "https://api.anthropic.com"
    host: str = "127.0.0.1"
    port: int = 3456
    max_body_size: int = 50 * 1024 * 1024  # 50MB
    timeout: float = 300.0  # Long timeout for LLM responses
    connect_timeout: float = 10.0
    # Adds the code execution tool and lets every tool be called from it.
    # Turn off if upstream starts rejecting allowed_callers.
    code_execution: bool = True


DEFAULT_SETTINGS = Settings()
