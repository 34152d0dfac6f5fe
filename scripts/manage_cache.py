import asyncio
import sys
import argparse
from pathlib import Path

# Add project root to sys.path
project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

from newsdesk.services.cache import cache, ARTICLE_FAMILIES

async def list_keys(pattern: str):
    """List cached keys matching a glob pattern."""
    await cache.init()
    keys = await cache.keys(pattern)
    if not keys:
        print(f"\nNo cached keys match '{pattern}'.")
        return
    print(f"\nCached keys matching '{pattern}':")
    for i, key in enumerate(keys, 1):
        print(f"{i}. {key}")

async def invalidate(pattern: str):
    """Delete every cached key matching a glob pattern."""
    await cache.init()
    removed = await cache.invalidate(pattern)
    print(f"Removed {removed} keys matching '{pattern}'.")

async def flush_articles():
    """Sweep every article cache family, as an article write would."""
    await cache.init()
    removed = await cache.invalidate_families(*ARTICLE_FAMILIES)
    print(f"Removed {removed} keys from {', '.join(ARTICLE_FAMILIES)}.")

async def main(argv=None):
    parser = argparse.ArgumentParser(description="Inspect and sweep the Newsdesk response cache")
    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # List command
    list_parser = subparsers.add_parser('list', help='List cached keys')
    list_parser.add_argument('pattern', nargs='?', default='*', help="Glob pattern, e.g. 'feed:*'")

    # Invalidate command
    invalidate_parser = subparsers.add_parser('invalidate', help='Delete keys matching a pattern')
    invalidate_parser.add_argument('pattern', help="Glob pattern, e.g. 'articles:*'")

    # Flush command
    subparsers.add_parser('flush-articles', help='Sweep all article cache families')

    args = parser.parse_args(argv)

    if args.command == 'list':
        await list_keys(args.pattern)
    elif args.command == 'invalidate':
        await invalidate(args.pattern)
    elif args.command == 'flush-articles':
        await flush_articles()
    else:
        parser.print_help()

if __name__ == "__main__":
    asyncio.run(main())
