from __future__ import annotations

import json
import uuid

import click

from webapp_auth.api.auth.passwords import validate_password_strength
from webapp_auth.api.auth.refresh_tokens import revoke_all_sessions
from webapp_auth.api.models import AuthStore, DuplicateEmailError, User, iso_ts, now_ts
from webapp_auth.config import ConfigError, get_safe_config_report, get_settings
from webapp_auth.utils.crypto import PasswordHasher
from webapp_auth.utils.log import configure_logging, set_log_level


def _store() -> AuthStore:
    try:
        s = get_settings()
    except ConfigError as ex:
        click.echo(f"Configuration error: {ex}", err=True)
        raise SystemExit(2) from ex
    return AuthStore(s.auth_db_path())


def _user_or_exit(store: AuthStore, email: str) -> User:
    user = store.get_user_by_email(email.strip())
    if user is None:
        click.echo(f"No user with email {email}", err=True)
        raise SystemExit(1)
    return user


@click.group(name="webapp-auth")
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this run.")
def cli(log_level: str | None) -> None:
    """
    webapp-auth server and account tooling.
    """
    configure_logging()
    if log_level:
        set_log_level(log_level)


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST).")
@click.option("--port", type=int, default=None, help="Port (default: PORT).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    s = get_settings()
    uvicorn.run(
        "webapp_auth.server:create_app",
        factory=True,
        host=host or s.host,
        port=int(port or s.port),
        reload=reload,
        log_config=None,
    )


@cli.command("create-user")
@click.option("--email", required=True)
@click.option("--name", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_user(email: str, name: str, password: str) -> None:
    """Create an account directly in the auth database."""
    ok, message = validate_password_strength(password)
    if not ok:
        click.echo(str(message), err=True)
        raise SystemExit(2)
    store = _store()
    ts = now_ts()
    try:
        user = store.create_user(
            User(
                id=str(uuid.uuid4()),
                name=name.strip(),
                email=email.strip(),
                password_hash=PasswordHasher().hash(password),
                avatar=None,
                created_at=ts,
                updated_at=ts,
            )
        )
    except DuplicateEmailError:
        click.echo("User with this email already exists", err=True)
        raise SystemExit(1) from None
    click.echo(f"Created user {user.id} <{user.email}>")


@cli.group()
def sessions() -> None:
    """Inspect and revoke refresh-token sessions."""


@sessions.command("list")
@click.option("--email", required=True)
def sessions_list(email: str) -> None:
    store = _store()
    user = _user_or_exit(store, email)
    rows = store.list_active_sessions(user.id)
    for r in rows:
        click.echo(
            f"{r.jti}  created={iso_ts(r.created_at)}  expires={iso_ts(r.expires_at)}"
            f"  ip={r.created_ip or '-'}  ua={r.user_agent or '-'}"
        )
    click.echo(f"{len(rows)} active session(s)")


@sessions.command("revoke-all")
@click.option("--email", required=True)
def sessions_revoke_all(email: str) -> None:
    store = _store()
    user = _user_or_exit(store, email)
    n = revoke_all_sessions(store=store, user_id=user.id)
    click.echo(f"Revoked {n} session(s)")


@sessions.command("prune")
def sessions_prune() -> None:
    """Delete expired session rows."""
    n = _store().prune_expired_sessions()
    click.echo(f"Pruned {n} expired session(s)")


@cli.command("config-report")
def config_report() -> None:
    """Print the effective configuration (secrets shown as SET/UNSET)."""
    click.echo(json.dumps(get_safe_config_report(), indent=2, sort_keys=True))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
