"""CLI entrypoint for DocQA."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="docqa", help="DocQA command-line interface")

DEFAULT_HOST = "http://127.0.0.1:8000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("DOCQA_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=120, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json().get("error", resp.text)
        except ValueError:
            detail = resp.text
        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After")
            if retry_after:
                detail = f"{detail} (retry in {retry_after}s)"
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def serve(
    bind: str = typer.Option("127.0.0.1", "--bind", help="Interface to listen on"),
    port: int = typer.Option(8000, "--port", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run("docqa.app:app", host=bind, port=port, reload=reload)


@app.command()
def upload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    name: Optional[str] = typer.Option(None, "--name", help="Document name (defaults to file name)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Upload a document."""
    with path.expanduser().open("rb") as fh:
        files = {"file": (name or path.name, fh)}
        resp = _request("POST", "/documents", host=host, files=files)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command("list")
def list_documents(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List uploaded documents (sampled, may be incomplete)."""
    resp = _request("GET", "/documents", host=host)
    payload = resp.json()
    typer.echo(json.dumps(payload, indent=2))
    if not payload.get("complete", True):
        typer.echo("Listing is sampled; some documents or chunks may be missing.", err=True)


@app.command()
def delete(
    name: str = typer.Argument(..., help="Document name"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete every chunk of a document."""
    resp = _request("DELETE", "/documents", host=host, json={"documentName": name})
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question text"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ask a question about uploaded documents."""
    resp = _request("POST", "/ask", host=host, json={"question": question})
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def health(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show dependency health."""
    base = _resolve_host(host)
    resp = requests.get(f"{base}/health", timeout=120)
    typer.echo(json.dumps(resp.json(), indent=2))
    if resp.status_code != 200:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
