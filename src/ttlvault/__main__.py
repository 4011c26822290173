"""Allow ``python -m ttlvault``."""

from ttlvault.cli.typer_app import app

if __name__ == "__main__":
    app()
