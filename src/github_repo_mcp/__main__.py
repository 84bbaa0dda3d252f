#!/usr/bin/env python3
"""github-repo-mcp MCP Server entry point.

Run:
  python -m github_repo_mcp                         # start server (stdio)
  python -m github_repo_mcp --transport http        # serve /mcp, /sse and /health
  python -m github_repo_mcp --test                  # run lightweight self-tests then exit
"""

import argparse
import asyncio
import os
import sys

from github_repo_mcp.server import run_http_server, run_server, test_server


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(prog="github_repo_mcp", add_help=True)
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Serve MCP over stdio (default) or over HTTP.",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("GITHUB_REPO_MCP_HOST", "127.0.0.1"),
        help="Bind address for --transport http.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("GITHUB_REPO_MCP_PORT", "8000")),
        help="Bind port for --transport http.",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Run built-in server self tests (tool & resource listing) then exit.",
    )
    return parser.parse_args(argv)


def main() -> None:
    """CLI dispatcher for the MCP server."""
    args = parse_args(sys.argv[1:])
    try:
        if args.test:
            asyncio.run(test_server())
        elif args.transport == "http":
            run_http_server(args.host, args.port)
        else:
            asyncio.run(run_server())
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        print(f"Server error: {exc}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
