"""``backend-parity info``: show the active environment and tolerances."""

from __future__ import annotations

import click


@click.command()
def info() -> None:
    """Show feature flags and the comparison tolerances they select."""
    from backend_parity.comparator import tolerance_for
    from backend_parity.environment import get_environment

    env = get_environment()
    click.echo("Active environment")
    click.echo("=" * 50)
    for flag, value in sorted(env.snapshot().items()):
        click.echo(f"  {flag:<32} {value!r}")

    tol = tolerance_for(env)
    click.echo("")
    click.echo("Tolerances")
    click.echo("=" * 50)
    click.echo(f"  {'epsilon':<32} {tol.epsilon:g}")
    click.echo(f"  {'low precision':<32} {tol.low_precision}")
    click.echo(f"  {'low precision epsilon':<32} {tol.low_precision_epsilon:g}")
