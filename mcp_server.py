#!/usr/bin/env python3
"""
Thumbnail Studio - MCP Server
=============================
Model Context Protocol server that exposes the thumbnail editing session
as MCP tools.

Tools:
  - set_reference_image: Load a photo and crop it to the current aspect ratio
  - clear_reference_image: Drop the pending reference photo
  - set_aspect_ratio: Choose 16:9, 9:16, 1:1, 4:3 or 3:4
  - generate_thumbnail: Create a thumbnail, or edit the current one
  - list_history: Show the last 6 generations
  - restore_history: Make a previous generation current again
  - start_over: Clear the current image and start a new thumbnail

Run: python mcp_server.py
"""

import asyncio
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from thumbstudio.config import load_settings
from thumbstudio.errors import ThumbnailError
from thumbstudio.models import ASPECT_RATIOS, GeneratedImage
from thumbstudio.orchestrator import ThumbnailGenerator
from thumbstudio.session import ThumbnailSession

# Paths
BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
OUTPUT_DIR = DATA_DIR / "output"

logger = logging.getLogger("thumbstudio.mcp")


# ─── Helpers ───────────────────────────────────────────────────────────

def download_name(aspect_ratio: str, timestamp_ms: int | None = None) -> str:
    """File name like thumbnail-16-9-1718000000000.png"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"thumbnail-{aspect_ratio.replace(':', '-')}-{timestamp_ms}.png"


def save_image(image: GeneratedImage, aspect_ratio: str, directory: Path | None = None) -> Path:
    directory = directory or OUTPUT_DIR
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / download_name(aspect_ratio)
    path.write_bytes(image.data)
    return path


def describe_session(session: ThumbnailSession) -> str:
    mode = "editing current image" if session.is_editing else "new thumbnail"
    reference = f"yes ({session.reference.mime_type})" if session.reference else "no"
    return (
        f"  Mode: {mode}\n"
        f"  Aspect ratio: {session.aspect_ratio}\n"
        f"  Reference image: {reference}\n"
        f"  History: {len(session.history)} item(s)"
    )


# ─── Generation Lock ──────────────────────────────────────────────────
# One generation at a time. Tools that change the session are refused
# while it runs so the result lands in the session it was started from.

_active_operation: tuple[str, float] | None = None

SESSION_TOOLS = {
    "set_reference_image",
    "clear_reference_image",
    "set_aspect_ratio",
    "generate_thumbnail",
    "restore_history",
    "start_over",
}


def acquire_lock(operation: str) -> bool:
    """Returns False if another operation holds the lock."""
    global _active_operation
    if _active_operation is not None:
        return False
    _active_operation = (operation, time.time())
    return True


def release_lock():
    global _active_operation
    _active_operation = None


def get_lock_status() -> str | None:
    """Return human-readable lock status, or None if no lock."""
    if _active_operation is None:
        return None
    operation, started = _active_operation
    return f"'{operation}' running for {time.time() - started:.0f}s"


# ─── MCP Server ───────────────────────────────────────────────────────

app = Server("thumbnail-studio")
_session: ThumbnailSession | None = None


def get_session() -> ThumbnailSession:
    global _session
    if _session is None:
        _session = ThumbnailSession(ThumbnailGenerator(load_settings()))
    return _session


RATIO_SCHEMA = {
    "type": "string",
    "enum": list(ASPECT_RATIOS),
    "description": "16:9 YouTube, 9:16 Shorts/TikTok, 1:1 Instagram, 4:3 standard, 3:4 portrait",
}


@app.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="set_reference_image",
            description=(
                "Load a reference photo from disk. It is center-cropped to the current "
                "aspect ratio and used by the next generate_thumbnail call "
                "(the subject's face and expression are preserved)."
            ),
            inputSchema={
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Image file path"}},
                "required": ["path"],
            },
        ),
        Tool(
            name="clear_reference_image",
            description="Remove the pending reference photo.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="set_aspect_ratio",
            description="Set the output aspect ratio. A pending reference photo is re-cropped.",
            inputSchema={
                "type": "object",
                "properties": {"aspect_ratio": RATIO_SCHEMA},
                "required": ["aspect_ratio"],
            },
        ),
        Tool(
            name="generate_thumbnail",
            description=(
                "Generate a thumbnail from a description. If a thumbnail was already "
                "generated, the prompt describes the CHANGES to apply to it. "
                "Saves the result to data/output/."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "prompt": {"type": "string", "description": "Scene description or requested change"},
                    "aspect_ratio": RATIO_SCHEMA,
                },
                "required": ["prompt"],
            },
        ),
        Tool(
            name="list_history",
            description="List the most recent generations (newest first, max 6).",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        Tool(
            name="restore_history",
            description="Make a previous generation the current image again.",
            inputSchema={
                "type": "object",
                "properties": {"item_id": {"type": "string"}},
                "required": ["item_id"],
            },
        ),
        Tool(
            name="start_over",
            description="Discard the current image and reference to start a new thumbnail.",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    try:
        result = await _handle_tool(name, arguments or {})
        return [TextContent(type="text", text=result)]
    except ThumbnailError as e:
        logger.error("%s failed: %s", name, e)
        detail = f"\n  Detail: {e.detail}" if e.detail else ""
        return [TextContent(type="text", text=f"ERROR: {e.user_message}{detail}")]
    except (FileNotFoundError, KeyError) as e:
        return [TextContent(type="text", text=f"ERROR: {e}")]
    except Exception as e:
        logger.exception("%s crashed", name)
        return [TextContent(type="text", text=f"ERROR: {str(e)}")]


async def _handle_tool(name: str, args: dict[str, Any]) -> str:
    session = get_session()

    lock_status = get_lock_status()
    if name in SESSION_TOOLS and lock_status:
        return (
            f"BLOCKED: A thumbnail generation is already running ({lock_status}).\n"
            f"Wait for it to finish, then call {name} again."
        )

    # ── set_reference_image ───────────────────────────────────────
    if name == "set_reference_image":
        path = Path(args.get("path", ""))
        if not args.get("path"):
            return "ERROR: path is required"
        if not path.exists():
            raise FileNotFoundError(f"Image not found: {path}")

        reference = session.set_reference(path.read_bytes())
        return (
            f"Reference image loaded!\n"
            f"  Source: {path.name}\n"
            f"  Cropped to: {session.aspect_ratio} ({reference.mime_type}, {len(reference.data)} bytes)\n\n"
            f"Next: generate_thumbnail with the changes you want."
        )

    # ── clear_reference_image ─────────────────────────────────────
    elif name == "clear_reference_image":
        session.clear_reference()
        return "Reference image removed.\n" + describe_session(session)

    # ── set_aspect_ratio ──────────────────────────────────────────
    elif name == "set_aspect_ratio":
        session.set_aspect_ratio(args.get("aspect_ratio", ""))
        return "Aspect ratio updated.\n" + describe_session(session)

    # ── generate_thumbnail ────────────────────────────────────────
    elif name == "generate_thumbnail":
        prompt = args.get("prompt", "")
        if args.get("aspect_ratio"):
            session.set_aspect_ratio(args["aspect_ratio"])

        was_editing = session.is_editing
        acquire_lock("generate_thumbnail")
        try:
            item = await asyncio.to_thread(session.generate, prompt)
        finally:
            release_lock()

        path = save_image(item.image, item.aspect_ratio)
        action = "edited" if was_editing else "generated"
        return (
            f"Thumbnail {action}!\n"
            f"  Path: {path}\n"
            f"  Aspect ratio: {item.aspect_ratio}\n"
            f"  History id: {item.id}\n\n"
            f"Next: generate_thumbnail again to refine it, or start_over."
        )

    # ── list_history ──────────────────────────────────────────────
    elif name == "list_history":
        if not session.history:
            return "History is empty."
        lines = ["Recent generations (newest first):"]
        for item in session.history:
            stamp = time.strftime("%H:%M:%S", time.localtime(item.timestamp))
            lines.append(f"  [{item.id}] {stamp}  {item.aspect_ratio}  {item.prompt[:80]}")
        return "\n".join(lines)

    # ── restore_history ───────────────────────────────────────────
    elif name == "restore_history":
        item_id = args.get("item_id", "")
        if not item_id:
            return "ERROR: item_id is required"
        item = session.restore(item_id)
        return (
            f"Restored [{item.id}]\n"
            f"  Prompt: {item.prompt}\n"
            + describe_session(session)
        )

    # ── start_over ────────────────────────────────────────────────
    elif name == "start_over":
        session.start_over()
        return "Started over.\n" + describe_session(session)

    else:
        return f"ERROR: Unknown tool '{name}'"


# ─── Main ─────────────────────────────────────────────────────────────

async def main():
    load_dotenv(BASE_DIR / ".env")
    logging.basicConfig(
        stream=sys.stderr,
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Missing API key is fatal at startup, not per call
    get_session()

    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


if __name__ == "__main__":
    asyncio.run(main())
