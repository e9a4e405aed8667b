"""Allow ``python -m dbconverge``."""

from dbconverge.cli.app import app

if __name__ == "__main__":
    app()
