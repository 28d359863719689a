"""MCP Server for content compilation."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path

from mcp.server.fastmcp import Context, FastMCP
from pydantic import AnyUrl

from .build import (
    DEFAULT_IMPORTERS,
    BuildManager,
    ContentBuilder,
    ContentPolicy,
    MSBuildEngine,
)

logger = logging.getLogger(__name__)

# Global build session (single client mode)
_builder: ContentBuilder | None = None
_msbuild_path: str | None = None
_policy: ContentPolicy | None = None
_temp_root: str | None = None


def get_builder() -> ContentBuilder:
    """Get or create the content build session.

    Note: Single client mode - one workspace per server process.
    """
    global _builder
    if _builder is None or _builder.is_closed:
        engine = MSBuildEngine(_msbuild_path or os.environ.get("CONTENT_BUILDER_MSBUILD"))
        _builder = BuildManager().create_session(
            engine=engine,
            policy=_policy,
            temp_root=_temp_root,
        )
    return _builder


def close_builder() -> None:
    """Close the build session and remove its workspace."""
    global _builder
    if _builder is not None:
        _builder.close()
        _builder = None


def create_server(
    msbuild_path: str | None = None,
    policy: ContentPolicy | None = None,
    temp_root: str | None = None,
) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        msbuild_path: MSBuild executable used as the content engine
        policy: Platform/profile settings for every build
        temp_root: Root directory for build workspaces
    """
    global _msbuild_path, _policy, _temp_root
    _msbuild_path = msbuild_path
    _policy = policy
    _temp_root = temp_root
    mcp = FastMCP("content-builder-mcp")

    async def notify_assets_changed(ctx: Context) -> None:
        """Notify client that content://assets resource has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl("content://assets"))
        except Exception:
            pass  # Notification failure shouldn't break the tool

    async def notify_build_changed(ctx: Context) -> None:
        """Notify client that content://last-build resource has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl("content://last-build"))
        except Exception:
            pass

    # ============== Asset Tools ==============

    @mcp.tool()
    async def add_asset(ctx: Context, path: str, name: str | None = None) -> dict:
        """
        Add a content file using the default importer and processor for its extension.

        Known extensions: textures (.png, .jpg, .bmp, .tga, .dds, ...), models
        (.x, .fbx), effects (.fx), audio (.wav, .mp3, .wma) and .spritefont.
        For other files use add_asset_explicit.

        Args:
            path: Path to the source file
            name: Asset name (defaults to the file name without extension)
        """
        try:
            entry = get_builder().add(path, name)
            await notify_assets_changed(ctx)
            return {"success": True, "data": entry.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def add_asset_explicit(
        ctx: Context,
        path: str,
        name: str | None = None,
        importer: str | None = None,
        processor: str | None = None,
    ) -> dict:
        """
        Add a content file with an explicit importer and processor.

        Leave importer empty to let the pipeline pick one from the extension,
        and processor empty to pass the data through unprocessed.

        Args:
            path: Path to the source file
            name: Asset name (defaults to the file name without extension)
            importer: Importer name (e.g. TextureImporter)
            processor: Processor name (e.g. TextureProcessor)
        """
        try:
            entry = get_builder().add_explicit(path, name, importer, processor)
            await notify_assets_changed(ctx)
            return {"success": True, "data": entry.to_dict()}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def list_assets() -> dict:
        """List registered content files in build order."""
        try:
            assets = [entry.to_dict() for entry in get_builder().assets]
            return {"success": True, "data": assets}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def clear_assets(ctx: Context) -> dict:
        """Remove all registered content files."""
        try:
            removed = get_builder().clear()
            await notify_assets_changed(ctx)
            return {"success": True, "data": {"removed": removed}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def list_importers() -> dict:
        """List the default importer and processor for each known extension."""
        return {
            "success": True,
            "data": {
                ext: {"importer": info.importer, "processor": info.processor}
                for ext, info in DEFAULT_IMPORTERS.items()
            },
        }

    # ============== Build Tools ==============

    @mcp.tool()
    async def build_content(
        ctx: Context,
        timeout: float = 300.0,
        destination: str | None = None,
    ) -> dict:
        """
        Build all registered content files.

        A failed content build is reported with success=True and
        data.success=False; data.errors then holds one line per asset error.
        success=False means the build could not run at all (engine missing or crashed,
        timeout, build already running).

        Args:
            timeout: Maximum seconds to wait for the build
            destination: Directory to copy compiled files to after a successful build
        """
        try:
            builder = get_builder()
            result = await asyncio.to_thread(builder.build, timeout)
            data = result.to_dict()
            data["summary"] = result.to_summary()
            if result.success and destination:
                data["copied"] = await asyncio.to_thread(builder.copy_output, destination)
                data["destination"] = str(Path(destination).resolve())
            await notify_build_changed(ctx)
            return {"success": True, "data": data}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def cancel_build() -> dict:
        """Cancel the build that is currently running."""
        try:
            cancelled = get_builder().cancel()
            return {"success": True, "data": {"cancelled": cancelled}}
        except Exception as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def get_workspace() -> dict:
        """
        Get the build workspace layout and state.

        outputDir holds the compiled files after a successful build.
        """
        try:
            builder = get_builder()
            data = builder.workspace.to_dict()
            data["state"] = builder.state.value
            data["assetCount"] = len(builder.assets)
            return {"success": True, "data": data}
        except Exception as e:
            return {"success": False, "error": str(e)}

    # ============== Resources ==============

    @mcp.resource("content://assets", mime_type="application/json")
    async def assets_resource() -> str:
        """Registered content files (JSON).

        Updates when: assets added or cleared.
        """
        return json.dumps([entry.to_dict() for entry in get_builder().assets], indent=2)

    @mcp.resource("content://last-build", mime_type="application/json")
    async def last_build_resource() -> str:
        """Result of the most recent build (JSON), null before the first build.

        Updates when: a build completes.
        """
        result = get_builder().last_result
        return json.dumps(result.to_dict() if result else None, indent=2)

    logger.info("Content Builder MCP Server initialized")
    return mcp
