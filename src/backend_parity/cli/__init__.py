"""CLI package for backend-parity.

``verify`` runs the built-in conformance suite; ``info`` shows the flags and
tolerances that suite would run under.

Usage::

    backend-parity verify --backend cpu --backend accelerated
    backend-parity verify --features '{"HIGH_PRECISION_FLOAT_ENABLED": false}'
    backend-parity info
"""

from __future__ import annotations

import click

@click.group()
@click.version_option(package_name="backend-parity")
def main() -> None:
    """backend-parity: check math backends against reference kernels."""


from backend_parity.cli.info import info  # noqa: E402
from backend_parity.cli.verify import verify  # noqa: E402

main.add_command(verify)
main.add_command(info)
