"""
Module entry point for: python -m drawcheck

Allows running the analyzer directly as a module:
    python -m drawcheck analyze <drawing> [options]
    python -m drawcheck geotech <report>
    python -m drawcheck info <drawing>
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
