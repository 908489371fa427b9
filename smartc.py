#!/usr/bin/env python
"""
Thin wrapper script to invoke the smartcommit CLI.

Running ``python smartc.py`` is equivalent to running the ``smartc``
console script installed via ``pyproject.toml``.
"""

from smartcommit.cli import main


if __name__ == "__main__":
    main(prog_name="smartc")
