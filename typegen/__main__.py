"""Entry point: python -m typegen

Same as the apifox-typegen console script.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    main()
