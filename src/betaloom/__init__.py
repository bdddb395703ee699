"""BetaLoom - a forwarding shim that turns on Anthropic's beta tooling."""

__version__ = "0.1.0"
