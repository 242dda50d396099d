"""CLI entry point for rankgraph."""

import json
import logging
import sys

import click

from rankgraph import layout_dict
from rankgraph.errors import InvalidGraphError, InvalidOptionError

_ROUTINGS = ("ORTHOGONAL", "POLYLINE", "SPLINES")


def _parse_overrides(pairs: tuple[str, ...]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"expected key=value, got '{pair}'")
        overrides[key.strip()] = value.strip()
    return overrides


@click.command()
@click.argument("input", required=False, type=click.Path(exists=True))
@click.option("--direction", "-d", "direction", type=str, default=None, help="Override direction (TD, BT, LR, RL)")
@click.option(
    "--routing",
    "-r",
    "routing",
    type=click.Choice(_ROUTINGS, case_sensitive=False),
    default=None,
    help="Override edge routing",
)
@click.option("--option", "-O", "options", multiple=True, help="Layout option override as key=value (repeatable)")
@click.option("--output", "-o", "output", type=str, default=None, help="Write output to this file instead of stdout")
@click.option("--indent", "indent", type=int, default=2, help="JSON indentation (0 for compact output)")
@click.option("--verbose", "-v", "verbose", is_flag=True, help="Log phase progress to stderr")
def main(
    input: str | None,
    direction: str | None,
    routing: str | None,
    options: tuple[str, ...],
    output: str | None,
    indent: int,
    verbose: bool,
) -> None:
    """Lay out an ELK-style JSON graph and write it back with coordinates."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if input:
        try:
            with open(input) as f:
                text = f.read()
        except OSError as e:
            click.echo(f"error: cannot read '{input}': {e}", err=True)
            sys.exit(1)
    else:
        text = sys.stdin.read()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        click.echo(f"error: invalid JSON: {e}", err=True)
        sys.exit(1)

    try:
        overrides = _parse_overrides(options)
    except ValueError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)
    if direction is not None:
        overrides["direction"] = direction
    if routing is not None:
        overrides["edgeRouting"] = routing

    try:
        result, report = layout_dict(data, **overrides)
    except (InvalidOptionError, InvalidGraphError) as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(1)

    for failure in report.failures:
        click.echo(f"warning: unit '{failure.unit}' fell back to grid placement: {failure.error}", err=True)

    rendered = json.dumps(result, indent=indent or None) + "\n"
    if output:
        try:
            with open(output, "w") as f:
                f.write(rendered)
        except OSError as e:
            click.echo(f"error: cannot write '{output}': {e}", err=True)
            sys.exit(1)
    else:
        click.echo(rendered, nl=False)


if __name__ == "__main__":
    main()
