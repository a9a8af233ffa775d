#!/usr/bin/env python3
"""
Identity service -- operator command line.

Usage:
  python main.py init-db
  python main.py init-db --database-url sqlite:///identity.db
  python main.py generate-secret
  python main.py generate-secret --output /run/secrets/jwt-secret
  python main.py list-users
  python main.py serve --host 0.0.0.0 --port 8000

Environment variables (see core/config.py for the full list):
  DATABASE_URL   SQLAlchemy URL of the user store (default sqlite:///identity.db)
  SECRET_STORE   "env" (JWT_SECRET variable) or "file" (SECRETS_DIR/jwt-secret)
"""

import argparse
import base64
import os
import secrets
import sys
from pathlib import Path

from auth.store import UserRepository
from core.config import get_settings


def _generate_secret() -> str:
    """Return 32 random bytes (256 bits), base64-encoded."""
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


def cmd_init_db(args: argparse.Namespace) -> int:
    url = args.database_url or get_settings().database_url
    repo = UserRepository(url)
    repo.close()
    print(f"  User store ready at {url}")
    return 0


def cmd_generate_secret(args: argparse.Namespace) -> int:
    secret = _generate_secret()
    if not args.output:
        print(secret)
        return 0

    path = Path(args.output)
    if path.exists() and not args.force:
        print(f"  [!] '{path}' already exists. Use --force to overwrite.", file=sys.stderr)
        return 1
    path.parent.mkdir(parents=True, exist_ok=True)
    # Create with owner-only permissions before any secret bytes are written.
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(secret + "\n")
    print(f"  Signing secret written to {path}")
    return 0


def cmd_list_users(args: argparse.Namespace) -> int:
    url = args.database_url or get_settings().database_url
    repo = UserRepository(url)
    try:
        users = repo.get_all_users(page_size=get_settings().user_scan_page_size)
    finally:
        repo.close()
    for user in users:
        pending = " (reset pending)" if user.reset_token else ""
        print(f"  {user.user_id}  {user.email}  {user.created_at}{pending}")
    print(f"  {len(users)} user(s)")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="identity-service",
        description="Operator commands for the identity service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  python main.py generate-secret --output ./secrets/jwt-secret
  SECRET_STORE=file SECRETS_DIR=./secrets python main.py serve --reload
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="Create the user table and indexes if missing")
    p_init.add_argument("--database-url", metavar="URL", help="Override DATABASE_URL")
    p_init.set_defaults(func=cmd_init_db)

    p_secret = sub.add_parser("generate-secret", help="Generate a random 256-bit token signing secret")
    p_secret.add_argument("--output", metavar="PATH", help="Write the secret to PATH (mode 0600) instead of stdout")
    p_secret.add_argument("--force", action="store_true", help="Overwrite an existing --output file")
    p_secret.set_defaults(func=cmd_generate_secret)

    p_list = sub.add_parser("list-users", help="List registered accounts (no hashes are printed)")
    p_list.add_argument("--database-url", metavar="URL", help="Override DATABASE_URL")
    p_list.set_defaults(func=cmd_list_users)

    p_serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
