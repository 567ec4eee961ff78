"""Entry point for `python -m schemebridge` and the `schemebridge` console script."""

from __future__ import annotations

from schemebridge.cli import main

if __name__ == "__main__":
    main()
