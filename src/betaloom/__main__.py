"""Entry point for running BetaLoom directly."""

from .cli import app


def main():
    """Run the betaloom CLI."""
    app(prog_name="betaloom")


if __name__ == "__main__":
    main()
