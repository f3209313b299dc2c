#!/usr/bin/env python3
"""
Storage management CLI.

The backend is chosen with STORAGE_BACKEND (local, s3, minio, gdrive) and the
related environment variables, or with --config <file.json>.

Usage:
    unified-storage put <path> <local_file> [--overwrite]  - upload a file
    unified-storage get <path> [<local_file>]              - download (stdout if no file)
    unified-storage rm <path>                               - delete file or folder
    unified-storage ls <path>                               - list a folder
    unified-storage exists <path>                           - exit 0 if present, 1 if not

Options:
    --config <file.json>    load storage configuration from a JSON file
"""
import asyncio
import sys
from pathlib import Path

from .config import configure_logging
from .infrastructure.storage import (
    StorageError,
    create_storage,
    get_storage_config,
    load_storage_config,
)
from .infrastructure.storage.factory import get_secret_provider
from .services.secrets import SecretError


def print_usage():
    print(__doc__)


async def cmd_put(storage, args):
    overwrite = "--overwrite" in args
    args = [a for a in args if a != "--overwrite"]
    if len(args) < 2:
        print("Error: put requires <path> <local_file>")
        return 2

    path, local_file = args[0], Path(args[1])
    if not local_file.is_file():
        print(f"Error: local file '{local_file}' not found")
        return 2

    with open(local_file, "rb") as f:
        locator = await storage.add(path, f, overwrite=overwrite)
    print(locator)
    return 0


async def cmd_get(storage, args):
    if len(args) < 1:
        print("Error: get requires <path>")
        return 2

    content = await storage.download(args[0])
    if len(args) > 1:
        Path(args[1]).write_bytes(content)
        print(f"Wrote {len(content)} bytes to {args[1]}")
    else:
        sys.stdout.buffer.write(content)
        sys.stdout.flush()
    return 0


async def cmd_rm(storage, args):
    if len(args) < 1:
        print("Error: rm requires <path>")
        return 2

    await storage.delete(args[0])
    print(f"Deleted {args[0]}")
    return 0


async def cmd_ls(storage, args):
    if len(args) < 1:
        print("Error: ls requires <path>")
        return 2

    items = await storage.list(args[0])
    for item in sorted(items, key=lambda i: (not i.is_folder, i.name)):
        print(item)
    return 0


async def cmd_exists(storage, args):
    if len(args) < 1:
        print("Error: exists requires <path>")
        return 2

    found = await storage.exists(args[0])
    print("yes" if found else "no")
    return 0 if found else 1


COMMANDS = {
    "put": cmd_put,
    "get": cmd_get,
    "rm": cmd_rm,
    "ls": cmd_ls,
    "exists": cmd_exists,
}


async def run(command, args, config_path=None):
    config = load_storage_config(config_path) if config_path else get_storage_config()
    storage = await create_storage(config, get_secret_provider())
    return await COMMANDS[command](storage, args)


def main(argv=None):
    argv = list(sys.argv[1:] if argv is None else argv)

    config_path = None
    if "--config" in argv:
        index = argv.index("--config")
        if index + 1 >= len(argv):
            print("Error: --config requires a file path")
            return 2
        config_path = argv[index + 1]
        del argv[index:index + 2]

    if not argv or argv[0] not in COMMANDS:
        print_usage()
        return 2

    configure_logging()
    try:
        return asyncio.run(run(argv[0], argv[1:], config_path))
    except (StorageError, SecretError) as e:
        print(f"Error: {e}")
        return 1
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
