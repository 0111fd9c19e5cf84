from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import Optional

import uvicorn

from nexus.core.audit.formatter import format_line
from nexus.core.config.manager import ConfigManager
from nexus.core.errors import ConfigError, NexusError
from nexus.core.identity.directory import DirectoryFilter
from nexus.core.logger import setup_logging
from nexus.core.runtime import ConsoleRuntime
from nexus.web.api import create_app


HELP_TEXT = """Console commands:
  :login         sign in with an access code
  :logout        end the console session
  :status        show the committed session snapshot
  :users [q]     list identities (optional search)
  :banned        list banned identities
  :logs [n]      show the newest audit entries
  :help          show this help
  :quit          exit
Anything else is sent to the operator chat; /ban, /purge and /clear are directives."""


def _print_status(runtime: ConsoleRuntime) -> None:
    snap = runtime.snapshot()
    if snap.session is None:
        print("Not authenticated.")
        return
    op = runtime.tiers.operator_for(snap.session)
    state = "SUSPENDED" if snap.suspended else "active"
    print(f"{op.label} ({op.identity_ref}) via {snap.session.kind} session, tier={op.tier.value}, {state}")
    if snap.suspended and snap.ban_state.reason:
        print(f"  reason: {snap.ban_state.reason}")


async def _handle(runtime: ConsoleRuntime, line: str) -> bool:
    cmd, _, rest = line.partition(" ")
    rest = rest.strip()
    if cmd == ":quit":
        return False
    if cmd == ":help":
        print(HELP_TEXT)
    elif cmd == ":login":
        passphrase = await asyncio.to_thread(getpass.getpass, "Access code: ")
        await runtime.login(passphrase)
        _print_status(runtime)
    elif cmd == ":logout":
        await runtime.logout()
        _print_status(runtime)
    elif cmd == ":status":
        _print_status(runtime)
    elif cmd in {":users", ":banned"}:
        runtime.console.acting()
        flt = DirectoryFilter.banned if cmd == ":banned" else DirectoryFilter.all
        for row in await runtime.directory.list(filter=flt, search=rest or None):
            mark = "BANNED" if row.ban.banned else row.identity.status.value
            print(f"  @{row.identity.username:<16} {row.identity.email:<24} {mark}")
    elif cmd == ":logs":
        runtime.console.acting()
        limit = int(rest) if rest.isdigit() else 20
        for entry in await runtime.audit.recent(limit):
            print(f"  {format_line(entry)}")
    else:
        reply = await runtime.console.submit(line)
        await runtime.settle()
        if reply.error:
            print(f"! {reply.error}")
        for msg in reply.added:
            print(f"[{msg.sender}] {msg.text}")
        if runtime.snapshot().suspended:
            _print_status(runtime)
    return True


async def run_console(runtime: ConsoleRuntime, logger: logging.Logger) -> None:
    await runtime.start()
    print(HELP_TEXT)
    _print_status(runtime)
    try:
        while True:
            try:
                line = (await asyncio.to_thread(input, "nexus> ")).strip()
            except EOFError:
                break
            if not line:
                continue
            try:
                if not await _handle(runtime, line):
                    break
            except NexusError as e:
                print(f"! {e.user_message}")
                logger.debug(f"Console command failed: {e.to_dict()}")
    finally:
        await runtime.stop()


def main(argv: Optional[list] = None) -> int:
    ap = argparse.ArgumentParser(description="Nexus moderation console")
    ap.add_argument("--config", default="config/console.json", help="Path to console.json.")
    ap.add_argument("--serve", action="store_true", help="Run the HTTP API instead of the interactive console.")
    ap.add_argument("--host", default=None, help="Bind host (defaults to config).")
    ap.add_argument("--port", type=int, default=None, help="Bind port (defaults to config).")
    args = ap.parse_args(argv)

    try:
        cfg = ConfigManager(path=args.config).load()
    except ConfigError as e:
        print(f"Config error: {e.user_message}", file=sys.stderr)
        return 2

    logger = setup_logging(cfg.logging.log_dir, cfg.logging.level)
    if not cfg.auth.credentials:
        logger.warning("No console credentials configured; run scripts/hash_credential.py to add one.")
    runtime = ConsoleRuntime(cfg=cfg, logger=logger)

    if args.serve:
        app = create_app(runtime, logger=logger.getChild("web"), allowed_origins=cfg.web.allowed_origins)
        host = args.host or cfg.web.bind_host
        port = int(args.port or cfg.web.port)
        logger.info(f"Web server starting on http://{host}:{port}")
        uvicorn.run(app, host=host, port=port, log_level="info")
        return 0

    try:
        asyncio.run(run_console(runtime, logger))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
