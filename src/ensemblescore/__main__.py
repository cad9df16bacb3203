"""Allow running the CLI with ``python -m ensemblescore``."""

from ensemblescore.cli import app

if __name__ == "__main__":
    app()
