"""``rampload init``: scaffold a starter run configuration."""

from __future__ import annotations

from pathlib import Path
from string import Template

import typer
from rich.console import Console

console = Console(stderr=True)

_CONFIG_TEMPLATE = Template("""\
# rampload run configuration.
#
# Run with:
#     rampload run $filename

target_url: $target_url
sleep_interval: 1s

# Target concurrency ramps linearly from one stage's target to the next.
stages:
  - {duration: 10s, target: 50}
  - {duration: 10s, target: 100}
  - {duration: 10s, target: 200}
  - {duration: 10s, target: 0}

checks:
  status is 200: status == 200

# Bare duration values are milliseconds.
thresholds:
  http_req_duration:
    - p(95)<$p95
""")


def init_cmd(
    path: Path = typer.Argument(
        Path("rampload.yaml"),
        help="Where to write the configuration file.",
        dir_okay=False,
    ),
    target_url: str = typer.Option(
        "http://localhost:9999/clientes/1/extrato",
        "--url",
        "-u",
        help="Endpoint the virtual users will request.",
    ),
    p95: str = typer.Option(
        "1",
        "--p95",
        help="p(95) latency threshold for http_req_duration (e.g. 1, 500ms, 1s).",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite an existing file.",
    ),
) -> None:
    """Write a starter configuration with four ramp stages and a p(95) threshold."""
    if path.exists() and not force:
        console.print(f"[red]File already exists:[/red] {path}")
        raise typer.Exit(code=1)

    content = _CONFIG_TEMPLATE.substitute(
        filename=path.name,
        target_url=target_url,
        p95=p95,
    )
    path.write_text(content, encoding="utf-8")
    console.print(f"[green]Created configuration:[/green] {path}")
