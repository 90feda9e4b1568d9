"""Entry point for `python -m pairgate`."""

from pairgate.cli.commands import app

if __name__ == "__main__":
    app()
