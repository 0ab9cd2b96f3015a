"""Entry point for ``python -m pinecall`` and the ``pinecall`` script."""

from __future__ import annotations

from pinecall.cli import create_cli_app


def main() -> None:
    create_cli_app()()


if __name__ == "__main__":
    main()
