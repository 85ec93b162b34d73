import asyncio
import io
import threading

import pytest
from PIL import Image

import mcp_server
from test_session import FakeGenerator
from thumbstudio.errors import QuotaExceeded
from thumbstudio.session import ThumbnailSession


@pytest.fixture
def session(monkeypatch, tmp_path):
    session = ThumbnailSession(FakeGenerator())
    monkeypatch.setattr(mcp_server, "_session", session)
    monkeypatch.setattr(mcp_server, "OUTPUT_DIR", tmp_path / "output")
    monkeypatch.setattr(mcp_server, "_active_operation", None)
    return session


def run(name, **args):
    return asyncio.run(mcp_server._handle_tool(name, args))


def test_download_name():
    assert mcp_server.download_name("16:9", 1718000000000) == "thumbnail-16-9-1718000000000.png"
    assert mcp_server.download_name("3:4", 5) == "thumbnail-3-4-5.png"


def test_generate_saves_image(session, tmp_path):
    text = run("generate_thumbnail", prompt="a cat astronaut", aspect_ratio="1:1")

    assert "Thumbnail generated!" in text
    saved = list((tmp_path / "output").glob("thumbnail-1-1-*.png"))
    assert len(saved) == 1
    assert saved[0].read_bytes() == b"text:a cat astronaut"
    assert session.history[0].id in text


def test_second_generation_is_an_edit(session):
    run("generate_thumbnail", prompt="first")
    text = run("generate_thumbnail", prompt="make it purple")
    assert "Thumbnail edited!" in text


def test_reference_image_tool(session, tmp_path):
    path = tmp_path / "me.png"
    Image.new("RGB", (500, 500), (1, 2, 3)).save(path)

    text = run("set_reference_image", path=str(path))

    assert "Reference image loaded!" in text
    assert session.reference is not None
    with Image.open(io.BytesIO(session.reference.data)) as image:
        assert image.size == (1280, 720)


def test_missing_reference_file(session, tmp_path):
    with pytest.raises(FileNotFoundError):
        run("set_reference_image", path=str(tmp_path / "nope.png"))


def test_history_tools(session):
    assert run("list_history") == "History is empty."
    run("generate_thumbnail", prompt="first")
    run("generate_thumbnail", prompt="second")

    listing = run("list_history")
    assert "first" in listing and "second" in listing

    oldest = session.history[-1]
    text = run("restore_history", item_id=oldest.id)
    assert "Prompt: first" in text
    assert session.current_image == oldest.image


def test_start_over_and_unknown_tool(session):
    run("generate_thumbnail", prompt="first")
    assert "Mode: new thumbnail" in run("start_over")
    assert run("does_not_exist") == "ERROR: Unknown tool 'does_not_exist'"


def test_session_tools_are_refused_while_generating(session, tmp_path):
    started = threading.Event()
    release = threading.Event()

    def block():
        started.set()
        release.wait(5)

    session.generator.during_call = block

    async def scenario():
        task = asyncio.create_task(
            mcp_server._handle_tool("generate_thumbnail", {"prompt": "cat", "aspect_ratio": "1:1"})
        )
        await asyncio.to_thread(started.wait, 5)
        refused = await mcp_server._handle_tool("set_aspect_ratio", {"aspect_ratio": "9:16"})
        listing = await mcp_server._handle_tool("list_history", {})
        release.set()
        return refused, listing, await task

    refused, listing, text = asyncio.run(scenario())

    assert refused.startswith("BLOCKED:")
    assert listing == "History is empty."
    assert "Aspect ratio: 1:1" in text
    assert session.aspect_ratio == "1:1"
    assert session.history[0].aspect_ratio == "1:1"
    assert len(list((tmp_path / "output").glob("thumbnail-1-1-*.png"))) == 1
    assert mcp_server.get_lock_status() is None


def test_lock_is_released_after_failure(session):
    session.generator.fail_with = QuotaExceeded("busy")

    [reply] = asyncio.run(mcp_server.call_tool("generate_thumbnail", {"prompt": "cat"}))

    assert reply.text.startswith("ERROR: ")
    assert mcp_server.get_lock_status() is None
    session.generator.fail_with = None
    assert "Thumbnail generated!" in run("generate_thumbnail", prompt="cat")
