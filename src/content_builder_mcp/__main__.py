"""Entry point for content-builder-mcp server."""

import argparse
import asyncio
import logging
import os
import sys

from .build import ContentPolicy
from .build.policy import ALLOWED_PLATFORMS, ALLOWED_PROFILES
from .server import close_builder, create_server


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Content Builder MCP Server - Compile game content via MCP"
    )
    parser.add_argument(
        "--msbuild",
        type=str,
        default=None,
        help="MSBuild executable used to compile content. "
        "Defaults to CONTENT_BUILDER_MSBUILD or 'msbuild' on PATH.",
    )
    parser.add_argument(
        "--temp-root",
        type=str,
        default=None,
        help="Directory under which build workspaces are created. "
        "Defaults to CONTENT_BUILDER_TEMP or the system temp directory.",
    )
    parser.add_argument(
        "--platform",
        choices=sorted(ALLOWED_PLATFORMS),
        default="Windows",
        help="Target platform for compiled content.",
    )
    parser.add_argument(
        "--profile",
        choices=sorted(ALLOWED_PROFILES),
        default="Reach",
        help="Graphics profile for compiled content.",
    )
    return parser.parse_args(argv)


async def main() -> None:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args()
    policy = ContentPolicy(platform=args.platform, profile=args.profile)

    logger.info(f"Starting Content Builder MCP Server (platform: {policy.platform}, profile: {policy.profile})...")

    mcp = create_server(msbuild_path=args.msbuild, policy=policy, temp_root=args.temp_root)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        # Remove our workspace
        close_builder()
        logger.info("Server stopped")


def run() -> None:
    """Run the server."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
