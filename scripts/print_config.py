from __future__ import annotations

import argparse
import json

from nexus.core.config.manager import ConfigManager


def main() -> None:
    ap = argparse.ArgumentParser(description="Print the effective console config (secrets redacted).")
    ap.add_argument("--config", default="config/console.json")
    args = ap.parse_args()
    cm = ConfigManager(path=args.config)
    cm.load()
    print(json.dumps(cm.describe(), indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
