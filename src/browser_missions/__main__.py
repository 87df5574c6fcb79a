"""Allow ``python -m browser_missions``."""

from browser_missions.cli.main import app

if __name__ == "__main__":
    app()
