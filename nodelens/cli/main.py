"""NodeLens command-line interface.

Commands:
    nodelens serve                 Run the webhook server (config from NODELENS_* env vars).
    nodelens analyze NODE          Trigger a manual node analysis via the REST API.
    nodelens health                Query the liveness endpoint.
    nodelens version               Print version and exit.

Client commands call the REST API at http://localhost:8080 (configurable
via ``--api-url``).
"""

from __future__ import annotations

import asyncio
import json

import click
import httpx

from nodelens import __version__

_DEFAULT_API_URL = "http://localhost:8080"

_STATUS_COLORS: dict[str, str] = {
    "published": "green",
    "no_alerts": "yellow",
    "no_metrics_data": "yellow",
    "failed": "red",
}


def _styled_status(status: str) -> str:
    return click.style(status, fg=_STATUS_COLORS.get(status, "white"), bold=True)


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------


def _request(
    method: str,
    api_url: str,
    path: str,
    params: dict[str, str] | None = None,
    timeout: float = 30.0,
) -> dict[str, object]:
    """Perform a request and return the parsed JSON body.

    Raises click.ClickException on connection errors or non-2xx responses.
    """
    url = api_url.rstrip("/") + path
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.request(method, url, params=params or {})
        response.raise_for_status()
        return response.json()  # type: ignore[no-any-return]
    except httpx.ConnectError as err:
        raise click.ClickException(f"Cannot connect to NodeLens API at {api_url}. Is the server running?") from err
    except httpx.TimeoutException as err:
        raise click.ClickException(f"Request to {url} timed out after {timeout:.0f}s") from err
    except httpx.HTTPStatusError as exc:
        _handle_error_response(exc.response)
        raise  # _handle_error_response always raises


def _handle_error_response(response: httpx.Response) -> None:
    """Parse an error response body and raise a friendly ClickException."""
    try:
        data: dict[str, object] = response.json()
        msg = f"{data.get('error', 'ERROR')}: {data.get('detail', 'Unknown error')}"
    except Exception:  # noqa: BLE001
        msg = f"HTTP {response.status_code}: {response.text[:200]}"
    raise click.ClickException(msg)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--api-url",
    default=_DEFAULT_API_URL,
    envvar="NODELENS_API_URL",
    show_default=True,
    help="NodeLens REST API base URL.",
)
@click.pass_context
def cli(ctx: click.Context, api_url: str) -> None:
    """NodeLens alert diagnostics from node metrics."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url


@cli.command("version")
def cmd_version() -> None:
    """Print the NodeLens version and exit."""
    click.echo(f"nodelens {__version__}")


@cli.command("serve")
def cmd_serve() -> None:
    """Run the webhook server until SIGINT/SIGTERM."""
    from nodelens.app import main

    asyncio.run(main())


@cli.command("health")
@click.pass_context
def cmd_health(ctx: click.Context) -> None:
    """Check that the server is up."""
    data = _request("GET", ctx.obj["api_url"], "/api/v1/health", timeout=5.0)
    click.echo(f"{click.style(str(data.get('status', '?')), fg='green')}  {data.get('message', '')}")


@cli.command("analyze")
@click.argument("node")
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    default=False,
    help="Print raw JSON response.",
)
@click.pass_context
def cmd_analyze(ctx: click.Context, node: str, output_json: bool) -> None:
    """Run a manual analysis for NODE and publish the result.

    Example:

        nodelens analyze app-vm-01
    """
    api_url: str = ctx.obj["api_url"]
    if not output_json:
        click.echo(click.style("Analyzing", bold=True) + f" {node} ...")

    # The server queries six hours of history and then waits for the LLM.
    data = _request("POST", api_url, "/api/v1/analyze", params={"nodeName": node}, timeout=180.0)

    if output_json:
        click.echo(json.dumps(data, indent=2))
        return

    _print_analysis(data)


def _print_analysis(data: dict[str, object]) -> None:
    """Pretty-print an AnalysisResponseSchema dict."""
    status = str(data.get("status", "?"))
    click.echo("")
    click.echo(f"  {click.style('Status:', bold=True)}  {_styled_status(status)}  {data.get('detail', '')}")
    click.echo(f"  {click.style('Node:', bold=True)}    {data.get('node_name') or '?'}")
    analysis = data.get("analysis")
    if analysis:
        click.echo("")
        click.echo(click.style("Analysis", bold=True, underline=True))
        click.echo(str(analysis))
    click.echo("")


if __name__ == "__main__":
    cli()
