"""
Keepwise CLI - Administration and quick inspection from the terminal.

Usage:
    python -m keepwise.cli [--json] [--storage-path PATH] <command>

    python -m keepwise.cli init-db
    python -m keepwise.cli serve [--host HOST] [--port PORT]
    python -m keepwise.cli seed --owner OWNER_ID
    python -m keepwise.cli issue-token OWNER_ID [--ttl SECONDS]
    python -m keepwise.cli recent --owner OWNER_ID [--limit N]
    python -m keepwise.cli extract URL

Global Options:
    --json              Output as JSON for automation/scripting
    --storage-path PATH Directory for the SQLite database (sets KEEPWISE_STORAGE_PATH)
"""

import sys
import os
import asyncio
import argparse
import json

from .config import Settings


def safe_print(text: str, file=None) -> None:
    """Print text safely, handling Unicode encoding errors on Windows."""
    output = file or sys.stdout
    try:
        print(text, file=output)
    except UnicodeEncodeError:
        encoding = output.encoding or 'utf-8'
        safe_text = text.encode(encoding, errors='replace').decode(encoding, errors='replace')
        print(safe_text, file=output)


async def init_db(settings: Settings) -> dict:
    from .database import create_database

    db = create_database(settings)
    try:
        await db.init_db()
    finally:
        await db.close()
    return {"database": settings.get_database_url(), "initialized": True}


async def seed(settings: Settings, owner_id: str) -> dict:
    from .database import create_database
    from .memory import MemoryManager
    from .seed import seed_demo_data

    db = create_database(settings)
    try:
        await db.init_db()
        return await seed_demo_data(MemoryManager(db), owner_id)
    finally:
        await db.close()


async def recent(settings: Settings, owner_id: str, limit: int) -> list:
    from .database import create_database
    from .memory import MemoryManager

    db = create_database(settings)
    try:
        await db.init_db()
        manager = MemoryManager(
            db,
            default_limit=settings.recent_default_limit,
            max_limit=settings.recent_max_limit
        )
        return await manager.recent_memories(owner_id, limit)
    finally:
        await db.close()


async def extract(settings: Settings, url: str) -> dict:
    from .metadata import MetadataExtractor

    return await MetadataExtractor.from_settings(settings).extract(url)


def format_memory(memory: dict) -> str:
    tags = ", ".join(memory.get("tags") or [])
    line = f"[{memory['kind']}] {memory['title']}"
    if memory.get("category"):
        line += f" ({memory['category']})"
    if tags:
        line += f" #{tags}"
    if memory.get("url"):
        line += f"\n    {memory['url']}"
    return line


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Keepwise CLI")

    # Global options
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--storage-path", help="Directory for the SQLite database")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("init-db", help="Create database tables")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    seed_parser = subparsers.add_parser("seed", help="Load demo data for an owner")
    seed_parser.add_argument("--owner", required=True, help="Owner id to seed")

    token_parser = subparsers.add_parser("issue-token", help="Issue a bearer session token")
    token_parser.add_argument("owner_id", help="Owner id the token authenticates")
    token_parser.add_argument("--ttl", type=int, default=None, help="Lifetime in seconds")

    recent_parser = subparsers.add_parser("recent", help="Show an owner's recent memories")
    recent_parser.add_argument("--owner", required=True, help="Owner id")
    recent_parser.add_argument("--limit", type=int, default=None, help="Maximum results")

    extract_parser = subparsers.add_parser("extract", help="Extract metadata for a URL")
    extract_parser.add_argument("url", help="Page to inspect")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.storage_path:
        os.environ['KEEPWISE_STORAGE_PATH'] = args.storage_path

    settings = Settings()

    if args.command == "init-db":
        result = asyncio.run(init_db(settings))
        if args.json:
            print(json.dumps(result))
        else:
            print(f"Database ready: {result['database']}")

    elif args.command == "serve":
        import uvicorn
        from .logging_config import configure_logging
        from .server import create_app

        configure_logging(settings.log_level, settings.log_json)
        uvicorn.run(
            create_app(settings),
            host=args.host or settings.host,
            port=args.port or settings.port,
        )

    elif args.command == "seed":
        result = asyncio.run(seed(settings, args.owner))
        if args.json:
            print(json.dumps(result, default=str))
        else:
            print(f"Seeded {len(result['memories'])} memories for {result['owner_id']}")
            print(f"  Categories: {result['categories']}")
            print(f"  Tags: {result['tags']}")

    elif args.command == "issue-token":
        from .auth import issue_session_token

        ttl = args.ttl or settings.session_ttl_seconds
        token = issue_session_token(args.owner_id, settings.auth_secret, ttl)
        if args.json:
            print(json.dumps({"owner_id": args.owner_id, "token": token, "ttl_seconds": ttl}))
        else:
            print(token)

    elif args.command == "recent":
        from .errors import ValidationError

        try:
            memories = asyncio.run(recent(settings, args.owner, args.limit))
        except ValidationError as e:
            safe_print(f"Error: {'; '.join(e.field_errors.values()) or e}", file=sys.stderr)
            sys.exit(1)
        if args.json:
            print(json.dumps(memories, default=str))
        elif not memories:
            print("No memories yet.")
        else:
            for memory in memories:
                safe_print(format_memory(memory))

    elif args.command == "extract":
        result = asyncio.run(extract(settings, args.url))
        if args.json:
            print(json.dumps(result))
        elif result["success"]:
            for key in ("title", "description", "author", "image", "source"):
                safe_print(f"{key:12} {result[key]}")
        else:
            safe_print(f"Extraction failed: {result.get('error')}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
