"""``backend-parity verify``: run the conformance suite."""

from __future__ import annotations

import sys
from typing import Tuple

import click

from backend_parity.backends import BACKEND_REGISTRY


def _parse_features(values: Tuple[str, ...]) -> list:
    from backend_parity._exceptions import BackendParityError
    from backend_parity.environment import Features

    parsed = []
    for raw in values:
        try:
            parsed.append(Features.from_json(raw))
        except (ValueError, BackendParityError) as exc:
            raise click.BadParameter(f"{raw!r}: {exc}", param_hint="--features") from exc
    return parsed


@click.command()
@click.option(
    "--backend",
    "backends",
    multiple=True,
    type=click.Choice(sorted(BACKEND_REGISTRY)),
    help="Backend to verify (repeatable). Default: all registered backends.",
)
@click.option(
    "--features",
    "features",
    multiple=True,
    help="Feature configuration as a JSON object (repeatable). "
    "Each one produces a separate suite.",
)
def verify(backends: Tuple[str, ...], features: Tuple[str, ...]) -> None:
    """Check each backend's operations against the reference kernels."""
    from backend_parity.conformance import format_report, run_conformance

    features_list = _parse_features(features) or None
    selected = list(backends) or list(BACKEND_REGISTRY)
    click.echo(f"Running conformance suite on: {', '.join(selected)}\n")
    results = run_conformance(selected, features_list)
    click.echo(format_report(results))
    if any(not r.passed for r in results):
        sys.exit(1)
