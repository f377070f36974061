"""
OpsReport CLI — Bootstrap and management commands.

Commands:
- opsreport init           — Write a starter opsreport.yaml, create the reports table (sql backend)
- opsreport run            — Start the Reflex dev server
- opsreport check          — Probe store, identity and notification backends
- opsreport hash-password  — Print a bcrypt hash for the local auth backend
- opsreport logs-cleanup   — Apply log retention (delete / compress old JSONL files)
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from opsreport.engine.config import CONFIG_FILENAME, STARTER_CONFIG, load_config
from opsreport.engine.errors import ConfigError

logger = logging.getLogger("opsreport.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="opsreport",
        description="OpsReport — operational progress reports dashboard",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # opsreport init
    init_parser = subparsers.add_parser("init", help="Write starter config and create tables")
    init_parser.add_argument(
        "--config", default=CONFIG_FILENAME, help=f"Path to config file (default: {CONFIG_FILENAME})"
    )
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing config file")

    # opsreport run
    run_parser = subparsers.add_parser("run", help="Start the Reflex dev server")
    run_parser.add_argument("--host", default="0.0.0.0", help="Backend host to bind (default: 0.0.0.0)")
    run_parser.add_argument("--port", type=int, default=3000, help="Frontend port (default: 3000)")
    run_parser.add_argument("--backend-port", type=int, default=8000, help="Backend port (default: 8000)")
    run_parser.add_argument("--env", choices=["dev", "prod"], default="dev", help="Environment (default: dev)")

    # opsreport check
    check_parser = subparsers.add_parser("check", help="Probe backend connectivity")
    check_parser.add_argument("--config", default=None, help="Path to config file (default: auto-discover)")
    check_parser.add_argument("--json", action="store_true", help="Print the summary as JSON")

    # opsreport hash-password
    hash_parser = subparsers.add_parser("hash-password", help="Hash a password for auth.users")
    hash_parser.add_argument("--password", help="Password to hash (prompted if not provided)")

    # opsreport logs-cleanup
    cleanup_parser = subparsers.add_parser("logs-cleanup", help="Apply log retention")
    cleanup_parser.add_argument("--config", default=None, help="Path to config file (default: auto-discover)")

    args = parser.parse_args(argv)

    if args.command == "init":
        return cmd_init(args)
    elif args.command == "run":
        return cmd_run(args)
    elif args.command == "check":
        return cmd_check(args)
    elif args.command == "hash-password":
        return cmd_hash_password(args)
    elif args.command == "logs-cleanup":
        return cmd_logs_cleanup(args)
    else:
        parser.print_help()
        return 0


def cmd_init(args: argparse.Namespace) -> int:
    """
    Bootstrap a working directory:
    1. Write a starter opsreport.yaml (unless one exists)
    2. Load and validate it
    3. For the sql backend, create the reports table
    """
    config_path = Path(args.config)
    if config_path.exists() and not args.force:
        print(f"[INFO] {config_path} already exists (use --force to overwrite)")
    else:
        config_path.write_text(STARTER_CONFIG, encoding="utf-8")
        print(f"[OK] Wrote {config_path}")

    try:
        config = load_config(str(config_path))
        print(f"[OK] Loaded config from {config_path}")
    except ConfigError as e:
        print(f"[ERROR] {e.message}")
        return 1

    if config.store.backend != "sql":
        print(f"[INFO] Store backend is '{config.store.backend}'; no local tables to create")
        return 0

    from sqlalchemy.exc import SQLAlchemyError

    from opsreport.db.session import init_db

    try:
        factory = init_db(config.store.database_url, create_tables=True)
        factory.kw["bind"].dispose()
        print(f"[OK] Reports table ready ({config.store.database_url})")
    except SQLAlchemyError as e:
        print(f"[ERROR] Failed to create tables: {e}")
        return 1

    if config.auth.backend == "local" and not config.auth.users:
        print("[WARN] No users configured. Add one under auth.users with `opsreport hash-password`.")
    print("  Run: opsreport run")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Start the Reflex dev server."""
    import subprocess

    print("Starting OpsReport (Reflex) server...")
    try:
        cmd = [
            "reflex", "run",
            "--backend-host", args.host,
            "--frontend-port", str(args.port),
            "--backend-port", str(args.backend_port),
            "--env", args.env,
        ]
        result = subprocess.run(cmd, check=True)
        return result.returncode
    except FileNotFoundError:
        print("[ERROR] 'reflex' command not found. Install: pip install reflex")
        return 1
    except subprocess.CalledProcessError as e:
        return e.returncode
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Run every registered health check; exit 1 if any is unhealthy."""
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"[ERROR] {e.message}")
        return 1

    summary = asyncio.run(_collect_health(config))

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        for name, result in summary["checks"].items():
            tag = "OK" if result["status"] == "healthy" else "FAIL"
            print(f"[{tag}] {name}: {result['message']} ({result['latency_ms']} ms)")
        print(f"\nOverall: {summary['status']}")
    return 0 if summary["status"] == "healthy" else 1


async def _collect_health(config) -> dict:
    from opsreport.engine.runtime import DashboardRuntime

    runtime = DashboardRuntime(config)
    identity = runtime.new_identity()
    service = runtime.health_service(identity)
    try:
        await service.check_all()
        return service.summary()
    finally:
        await identity.close()
        await runtime.shutdown()


def cmd_hash_password(args: argparse.Namespace) -> int:
    """Print a bcrypt hash suitable for ``auth.users`` in opsreport.yaml."""
    from opsreport.security.identity import hash_password

    password = args.password
    if not password:
        while True:
            password = getpass.getpass("  Password: ")
            confirm = getpass.getpass("  Confirm password: ")
            if password == confirm:
                break
            print("  Passwords do not match. Try again.")

    if len(password) < 6:
        print("[ERROR] Password must be at least 6 characters")
        return 1

    print(hash_password(password))
    return 0


def cmd_logs_cleanup(args: argparse.Namespace) -> int:
    """Delete log files past retention and gzip older ones."""
    from opsreport.engine.logging import LogRetentionManager

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"[ERROR] {e.message}")
        return 1

    log_cfg = config.logging
    manager = LogRetentionManager(
        log_dir=log_cfg.directory,
        retention_days={
            "activity": log_cfg.retention.activity_days,
            "errors": log_cfg.retention.error_days,
        },
        compress_after_days=log_cfg.compress_after_days,
    )
    result = manager.cleanup()
    print(f"[OK] Deleted {result['deleted']} file(s), compressed {result['compressed']} file(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
