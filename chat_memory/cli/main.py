"""CLI: chat-memory serve, show, threads, forget, personas, init, config validate."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ..config import CONFIG_FILENAMES, DEFAULT_CONFIG_YAML, load_config, validate_config
from ..core.codec import decode, is_legacy
from ..manager import build_store
from ..personas import Persona
from ..types import ConfigError


def _load_config_or_exit(config_path: str | None = None):
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _get_store(config_path: str | None = None):
    config = _load_config_or_exit(config_path)
    try:
        return build_store(config.storage), config
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_serve(args):
    """Start the HTTP API."""
    import uvicorn

    from ..server import create_app

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    class _SuppressHealthAccess(logging.Filter):
        """Hide load-balancer health probes from the access log."""
        def filter(self, record: logging.LogRecord) -> bool:
            return "GET /health" not in record.getMessage()

    logging.getLogger("uvicorn.access").addFilter(_SuppressHealthAccess())

    config = _load_config_or_exit(args.config)
    try:
        app = create_app(config=config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    host = args.host or config.server.host
    port = args.port or config.server.port
    print(f"chat-memory on {host}:{port} (storage: {config.storage.backend})")
    uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())


def cmd_show(args):
    """Print the decoded memory of one thread."""
    store, config = _get_store(args.config)
    try:
        record = store.get_record(args.thread_id)
        if record is None:
            print(f"No stored thread: {args.thread_id}")
            return

        state = decode(record.encoded_state)
        print(f"Thread:        {record.thread_id}")
        print(f"User:          {record.user_id}")
        print(f"Persona:       {record.persona_id}")
        print(f"Messages:      {record.message_count}")
        print(f"Updated:       {record.updated_at.strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"Format:        {'legacy (unsegmented)' if is_legacy(record.encoded_state) else 'segmented'}")
        print(f"Phase:         {state.phase(config.memory.compaction_threshold).value}")
        print(
            f"Size:          {state.total_length:,} / {config.memory.compaction_threshold:,} chars "
            f"(summary {len(state.summary):,}, recent {len(state.recent):,})"
        )
        if args.raw:
            print()
            print(record.encoded_state)
            return
        if state.summary:
            print()
            print("--- Summary ---")
            print(state.summary)
        if state.recent:
            print()
            print("--- Recent ---")
            print(state.recent)
    finally:
        store.close()


def cmd_threads(args):
    """List stored threads, newest first."""
    store, config = _get_store(args.config)
    try:
        records = store.list_threads(user_id=args.user, limit=args.limit)
    finally:
        store.close()

    if not records:
        print("No stored threads yet.")
        return

    print(f"{'Thread':<28} {'User':<16} {'Persona':<18} {'Msgs':>5} {'Chars':>7} {'Updated':>17}")
    print("-" * 96)
    for r in records:
        state = decode(r.encoded_state)
        print(
            f"{r.thread_id[:28]:<28} {r.user_id[:16]:<16} {r.persona_id[:18]:<18} "
            f"{r.message_count:>5} {state.total_length:>7,} "
            f"{r.updated_at.strftime('%Y-%m-%d %H:%M'):>17}"
        )


def cmd_forget(args):
    """Delete a thread's memory (administrative)."""
    store, config = _get_store(args.config)
    try:
        deleted = store.delete_thread(args.thread_id)
    finally:
        store.close()
    if deleted:
        print(f"Deleted thread {args.thread_id}")
    else:
        print(f"No stored thread: {args.thread_id}")
        sys.exit(1)


def cmd_personas(args):
    """List available personas."""
    for p in Persona:
        profile = p.profile
        print(f"{p.value:<18} {profile.emoji}  {profile.name} - {profile.description}")
        if args.verbose:
            print(f"    style: {profile.translation_style}")


def cmd_init(args):
    """Write a default config file to the current directory."""
    target = Path.cwd() / CONFIG_FILENAMES[0]
    if target.exists() and not args.force:
        print(f"Config already exists: {target} (use --force to overwrite)", file=sys.stderr)
        sys.exit(1)
    target.write_text(DEFAULT_CONFIG_YAML)
    print(f"Wrote {target}")


def cmd_config_validate(args):
    """Validate the config file."""
    config = _load_config_or_exit(args.config)

    errors = validate_config(config)
    if errors:
        print("Config errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    print("Config is valid.")
    print(f"  Storage:    {config.storage.backend}")
    print(f"  Threshold:  {config.memory.compaction_threshold:,} chars")
    print(f"  Reply:      {config.reply.model}")
    print(f"  Summarizer: {config.summarization.model}")


def main():
    parser = argparse.ArgumentParser(
        prog="chat-memory",
        description="Bounded conversation memory for persona chat",
    )
    parser.add_argument("--config", "-c", help="Path to config file")

    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", "-p", type=int, default=None)
    serve_parser.add_argument("--log-level", default="info")

    # show
    show_parser = subparsers.add_parser("show", help="Show a thread's stored memory")
    show_parser.add_argument("thread_id", help="Thread (chat) id")
    show_parser.add_argument("--raw", action="store_true", help="Print the encoded blob")

    # threads
    threads_parser = subparsers.add_parser("threads", help="List stored threads")
    threads_parser.add_argument("--user", "-u", help="Only threads of this user id")
    threads_parser.add_argument("--limit", "-n", type=int, default=50)

    # forget
    forget_parser = subparsers.add_parser("forget", help="Delete a thread's memory")
    forget_parser.add_argument("thread_id", help="Thread (chat) id")

    # personas
    personas_parser = subparsers.add_parser("personas", help="List personas")
    personas_parser.add_argument("--verbose", "-v", action="store_true")

    # init
    init_parser = subparsers.add_parser("init", help="Write a default config file")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing config")

    # config validate
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "show":
        cmd_show(args)
    elif args.command == "threads":
        cmd_threads(args)
    elif args.command == "forget":
        cmd_forget(args)
    elif args.command == "personas":
        cmd_personas(args)
    elif args.command == "init":
        cmd_init(args)
    elif args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        else:
            config_parser.print_help()
            sys.exit(1)


if __name__ == "__main__":
    main()
