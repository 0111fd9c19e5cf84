from __future__ import annotations

import argparse
import getpass
import sys

from nexus.core.auth import hash_passphrase
from nexus.core.config.manager import ConfigManager
from nexus.core.config.models import CredentialEntry


def main() -> int:
    ap = argparse.ArgumentParser(description="Add a console access code (stored as an scrypt digest).")
    ap.add_argument("--config", default="config/console.json")
    ap.add_argument("--identity", default="nexus-admin-master", help="Identity reference the session is issued for.")
    ap.add_argument("--email", default="master@nexus.admin")
    ap.add_argument("--name", default="Burak", help="Display name shown in audit entries.")
    ap.add_argument("--print-only", action="store_true", help="Print the digest instead of writing the config.")
    args = ap.parse_args()

    code = getpass.getpass("Access code: ")
    if not code or code != getpass.getpass("Repeat: "):
        print("Access codes are empty or do not match.", file=sys.stderr)
        return 1
    digest = hash_passphrase(code)
    if args.print_only:
        print(digest)
        return 0
    cm = ConfigManager(path=args.config)
    cm.load()
    cm.add_credential(CredentialEntry(digest=digest, identity_ref=args.identity, email=args.email, display_name=args.name))
    print(f"Credential for {args.identity} written to {args.config}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
