#!/usr/bin/env python3
"""
Stockroom -- Inventory management with session and token authentication.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload
  python main.py create-user --name Alice --email alice@example.com

Environment variables (see core/config.py for the full list):
  SECRET_KEY       Signs API tokens. Required unless DEBUG=true.
  SESSION_SECRET   Signs the session cookie. Required unless DEBUG=true.
  DATABASE_URL     SQLAlchemy URL. Defaults to stockroom.db beside this file.
  PORT             Default port for `serve` (4000).
"""

import argparse
import getpass
import sys

from auth.errors import AuthError
from auth.passwords import PasswordHasher
from auth.service import register_user
from auth.store import UserStore
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def _prompt_password() -> str:
    """Ask for the password twice. Returns "" if the entries differ."""
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return ""
    return first


def _create_user(args: argparse.Namespace) -> int:
    settings = get_settings()
    password = _prompt_password()
    if not password:
        return 1

    store = UserStore(settings.database_url)
    try:
        user = register_user(store, PasswordHasher(settings.bcrypt_rounds), args.name, args.email, password)
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        store.close()

    print(f"  Created user {user.email} (id={user.id}).")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="stockroom",
        description="Inventory management with session and token authentication.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py serve --port 8080 --reload
  python main.py create-user --name Alice --email alice@example.com
        """,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the web app and API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT setting, 4000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create a user with a hashed password")
    create.add_argument("--name", required=True, help="Display name")
    create.add_argument("--email", required=True, help="Login email (unique)")
    create.set_defaults(func=_create_user)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
