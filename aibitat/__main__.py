"""Entry point for running AIbitat as a module."""

from aibitat.cli import app


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
