# SiteLock: Command-line entry point
#
#   sitelock serve [--host H] [--port P]   run the API backend
#   sitelock hash-secret                   print the digest of a password
#   sitelock check URL                     would URL be challenged?
#   sitelock export [FILE]                 write the settings document
#   sitelock import FILE                   load a settings document

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

from . import __version__
from .blocker.exceptions import SiteLockError
from .blocker.matcher import first_match, get_destination
from .blocker.secret import SecretVerifier
from .config import get_config
from .settings.store import get_settings_store
from .settings.transfer import (
    dumps_payload,
    export_filename,
    export_settings,
    import_settings,
    loads_payload,
)


def _cmd_serve(args) -> int:
    from .api.main import start_api_server

    config = get_config()
    start_api_server(host=args.host or config.host, port=args.port or config.port)
    return 0


def _cmd_hash_secret(args) -> int:
    secret = args.secret if args.secret is not None else getpass.getpass("Master password: ")
    if not SecretVerifier.normalize(secret):
        print("Refusing to hash an empty password.", file=sys.stderr)
        return 1
    print(SecretVerifier.digest(secret))
    return 0


def _cmd_check(args) -> int:
    destination = get_destination(args.url)
    if not destination:
        print(f"{args.url}: not a valid URL, never blocked")
        return 0
    rules = asyncio.run(get_settings_store().get_rule_set())
    rule = first_match(args.url, rules)
    if rule is None:
        print(f"{destination}: allowed")
    else:
        print(f"{destination}: blocked by rule {rule!r}")
    return 0


def _cmd_export(args) -> int:
    payload = asyncio.run(export_settings(get_settings_store()))
    path = Path(args.file or export_filename())
    path.write_text(dumps_payload(payload), encoding="utf-8")
    print(f"Exported settings to {path}")
    return 0


def _cmd_import(args) -> int:
    payload = loads_payload(Path(args.file).read_text(encoding="utf-8"))
    secret = args.secret
    if secret is None and args.ask_password:
        secret = getpass.getpass("Current master password: ")
    asyncio.run(import_settings(get_settings_store(), payload, secret))
    print("Imported settings.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitelock",
        description="SiteLock - password-gated site blocker",
    )
    parser.add_argument("--version", action="version", version=f"SiteLock v{__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API backend")
    serve.add_argument("--host", default=None, help="Bind host (default: SITELOCK_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: SITELOCK_PORT)")
    serve.set_defaults(func=_cmd_serve)

    hash_secret = sub.add_parser("hash-secret", help="Print the digest of a master password")
    hash_secret.add_argument("--secret", default=None, help="Password (prompted if omitted)")
    hash_secret.set_defaults(func=_cmd_hash_secret)

    check = sub.add_parser("check", help="Check a URL against the block list")
    check.add_argument("url")
    check.set_defaults(func=_cmd_check)

    export = sub.add_parser("export", help="Export settings to JSON")
    export.add_argument("file", nargs="?", default=None)
    export.set_defaults(func=_cmd_export)

    imp = sub.add_parser("import", help="Import settings from JSON")
    imp.add_argument("file")
    imp.add_argument("--secret", default=None, help="Current master password")
    imp.add_argument(
        "--ask-password", action="store_true",
        help="Prompt for the current master password",
    )
    imp.set_defaults(func=_cmd_import)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (SiteLockError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
