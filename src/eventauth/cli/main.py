"""eventauth CLI — poke at a running eventauth server.

Usage:
    eventauth hash-password                      # bcrypt a password locally
    eventauth register evt1 alice                # Register a user for an event
    eventauth login evt1 alice                   # Print access + refresh tokens
    eventauth refresh evt1 --refresh-token ...   # Rotate the refresh token
    eventauth whoami evt1 --token ...            # Decode identity via /me
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from eventauth import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"
REFRESH_COOKIE = os.environ.get("EVENTAUTH_REFRESH_COOKIE_NAME", "__session")


def _api_url() -> str:
    return os.environ.get("EVENTAUTH_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the eventauth server."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


async def _request(method: str, path: str, **kwargs) -> httpx.Response:
    async with _client() as c:
        return await c.request(method, path, **kwargs)


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail(r: httpx.Response) -> None:
    """Print an error response and exit non-zero."""
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


def _refresh_cookie(r: httpx.Response) -> Optional[str]:
    """Pull the refresh token out of the Set-Cookie header."""
    for header in r.headers.get_list("set-cookie"):
        name, _, rest = header.partition("=")
        if name.strip() == REFRESH_COOKIE:
            return rest.split(";", 1)[0]
    return None


def _print_tokens(r: httpx.Response) -> None:
    click.secho("access_token:", bold=True)
    click.echo(r.json()["access_token"])
    refresh = _refresh_cookie(r)
    if refresh:
        click.secho("refresh_token:", bold=True)
        click.echo(refresh)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="eventauth")
def main():
    """eventauth — per-event sessions with rotating refresh tokens."""


@main.command("hash-password")
@click.password_option()
@click.option("--rounds", type=int, default=None, help="bcrypt work factor (default from settings)")
def hash_password_cmd(password: str, rounds: Optional[int]):
    """Print a bcrypt hash for PASSWORD."""
    from eventauth.auth.password import HashingError, hash_password

    try:
        click.echo(hash_password(password, rounds=rounds))
    except HashingError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)


@main.command()
@click.argument("event_id")
@click.argument("username")
@click.password_option()
def register(event_id: str, username: str, password: str):
    """Register USERNAME for EVENT_ID."""
    r = _run(_request(
        "POST", f"/api/v1/events/{event_id}/users",
        json={"username": username, "password": password},
    ))
    if r.status_code != 201:
        _fail(r)
    click.secho(f"Registered {username} for {event_id}", fg="green")


@main.command()
@click.argument("event_id")
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True)
def login(event_id: str, username: str, password: str):
    """Log in and print the access and refresh tokens."""
    r = _run(_request(
        "POST", f"/api/v1/events/{event_id}/login",
        json={"username": username, "password": password},
    ))
    if r.status_code != 200:
        _fail(r)
    _print_tokens(r)


@main.command()
@click.argument("event_id")
@click.option("--refresh-token", required=True, envvar="EVENTAUTH_REFRESH_TOKEN")
def refresh(event_id: str, refresh_token: str):
    """Exchange a refresh token for a new pair (the old one stops working)."""
    r = _run(_request(
        "POST", f"/api/v1/events/{event_id}/refresh",
        headers={"Cookie": f"{REFRESH_COOKIE}={refresh_token}"},
    ))
    if r.status_code != 200:
        _fail(r)
    _print_tokens(r)


@main.command()
@click.argument("event_id")
@click.option("--token", required=True, envvar="EVENTAUTH_ACCESS_TOKEN")
def whoami(event_id: str, token: str):
    """Show who an access token belongs to."""
    r = _run(_request(
        "GET", f"/api/v1/events/{event_id}/me",
        headers={"Authorization": f"Bearer {token}"},
    ))
    if r.status_code != 200:
        _fail(r)
    click.echo(_pretty_json(r.json()))


if __name__ == "__main__":
    main()
