"""Allow ``python -m coolkit``."""

from coolkit.cli.app import app

if __name__ == "__main__":
    app()
