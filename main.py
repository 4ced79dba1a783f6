#!/usr/bin/env python3
"""
Gatekeeper -- management CLI.

Apps have no registration endpoint; they are provisioned here, out of band.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 9000
  python main.py init-db
  python main.py create-app --name billing
  python main.py create-app --name billing --secret "$BILLING_SECRET"
  python main.py list-apps

Environment variables (see core/config.py):
  DATABASE_URL       SQLAlchemy URL. Defaults to gatekeeper.db in the repo root.
  TOKEN_TTL_SECONDS  Session token lifetime. Default 3600.
  BCRYPT_ROUNDS      bcrypt cost factor. Default 12.
  DEBUG              Auto-reload on code changes for `serve`. Default false.
"""

import argparse
import logging
import secrets
import sys
from typing import Optional

from auth.errors import AuthError
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("gatekeeper.cli")


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )
    return 0


def _cmd_init_db(args: argparse.Namespace) -> int:
    store = UserStore(args.database_url)
    store.close()
    print("  Database ready.")
    return 0


def _cmd_create_app(args: argparse.Namespace) -> int:
    """Register an app and print its id and secret.

    When --secret is omitted a random one is generated and printed so it can
    be handed to the calling app.
    """
    secret = args.secret or secrets.token_urlsafe(32)
    store = UserStore(args.database_url)
    try:
        app_id = store.create_app(args.name, secret)
    except AuthError as exc:
        print(f"  [!] Could not create app '{args.name}': {exc.message}")
        return 1
    finally:
        store.close()
    logger.info("Created app id=%d name=%s", app_id, args.name)
    print(f"  app_id: {app_id}")
    print(f"  name:   {args.name}")
    if not args.secret:
        print(f"  secret: {secret}")
    return 0


def _cmd_list_apps(args: argparse.Namespace) -> int:
    store = UserStore(args.database_url)
    try:
        apps = store.list_apps()
    finally:
        store.close()
    if not apps:
        print("  No apps registered.")
        return 0
    for app in apps:
        secret = app.secret if args.show_secrets else "********"
        print(f"  {app.id:>4}  {app.name:<30} {secret}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatekeeper",
        description="Multi-tenant credential authority.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="Override DATABASE_URL for this command",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=_cmd_serve)

    init_db = sub.add_parser("init-db", help="Create tables if they do not exist")
    init_db.set_defaults(func=_cmd_init_db)

    create_app = sub.add_parser("create-app", help="Register a calling app")
    create_app.add_argument("--name", required=True)
    create_app.add_argument("--secret", default=None, help="Signing secret (generated if omitted)")
    create_app.set_defaults(func=_cmd_create_app)

    list_apps = sub.add_parser("list-apps", help="List registered apps")
    list_apps.add_argument("--show-secrets", action="store_true")
    list_apps.set_defaults(func=_cmd_list_apps)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
