"""Support ``python -m backend_parity``.

Usage::

    python -m backend_parity verify --backend cpu
    python -m backend_parity info
"""

from __future__ import annotations


def main() -> None:
    from backend_parity.cli import main as cli_main
    cli_main()


if __name__ == "__main__":
    main()
