"""CLI entry point for embedfs: serve embedded resources as a read-only file tree."""

import argparse
import logging
import os
import sys

from embedded import EmbeddedFileProvider
from server import make_server
from store import ResourceStore, StoreError

logger = logging.getLogger(__name__)

# Maps subcommand name -> (module, class)
SUBCOMMANDS = {
    "zip": ("store_zip", "ZipStore"),
    "tar": ("store_tar", "TarStore"),
    "package": ("store_package", "PackageStore"),
}

# Extension -> subcommand name for auto-detection
EXT_MAP = {
    ".zip": "zip", ".whl": "zip", ".pyz": "zip", ".egg": "zip", ".jar": "zip",
    ".tar": "tar", ".tar.gz": "tar", ".tgz": "tar",
    ".tar.bz2": "tar", ".tar.xz": "tar",
}


def detect_subcommand(path: str) -> str:
    """Detect subcommand from file extension."""
    lower = path.lower()
    for ext in sorted(EXT_MAP, key=len, reverse=True):
        if lower.endswith(ext):
            return EXT_MAP[ext]
    raise ValueError(
        f"Cannot detect store for '{path}'. "
        f"Supported extensions: {', '.join(sorted(EXT_MAP))}"
    )


def load_store(source: str, name: str) -> ResourceStore:
    """Load a resource store by subcommand name for the given source."""
    mod_name, cls_name = SUBCOMMANDS[name]
    module = __import__(mod_name)
    return getattr(module, cls_name)(source)


def print_listing(provider: EmbeddedFileProvider, out=None):
    """Print the root directory of a provider, one 'length<TAB>name' per line."""
    out = out or sys.stdout
    for info in provider.get_directory_contents(""):
        print(f"{info.length}\t{info.name}", file=out)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="embedfs: serve resources embedded in an archive or package"
    )
    parser.add_argument("-p", "--port", type=int, default=8080, help="Port to listen on")
    parser.add_argument("--host", default="localhost", help="Host to bind to")
    parser.add_argument("-n", "--namespace", default="", help="Base namespace to expose")
    parser.add_argument("--list", action="store_true", help="Print the listing and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command")

    for name in ("zip", "tar"):
        p = sub.add_parser(name, help=f"Mount a {name} archive")
        p.add_argument("source", help="Archive to mount")

    p = sub.add_parser("package", help="Mount the data files of an importable package")
    p.add_argument("source", help="Dotted package name")

    p = sub.add_parser("auto", help="Auto-detect store from file extension")
    p.add_argument("source", help="Archive to mount")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command != "package" and not os.path.exists(args.source):
        print(f"Error: {args.source} not found", file=sys.stderr)
        sys.exit(1)

    if args.command == "auto":
        try:
            name = detect_subcommand(args.source)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        name = args.command

    try:
        store = load_store(args.source, name)
    except StoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    provider = EmbeddedFileProvider(store, args.namespace)

    if args.list:
        try:
            print_listing(provider)
        except StoreError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        return

    server = make_server(provider, args.host, args.port)
    logger.info("Serving %s (namespace %r) on http://%s:%d/", args.source, args.namespace, args.host, args.port)
    print("Press Ctrl+C to stop.")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down.")
        server.shutdown()


if __name__ == "__main__":
    main()
