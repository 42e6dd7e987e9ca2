"""Module entrypoint for running audioflow as ``python -m audioflow``."""

from __future__ import annotations

from audioflow.cli import main


if __name__ == "__main__":
    main()
