import asyncio
import socket

import pytest
from fastapi.testclient import TestClient

from app.errors import ContentNotFoundError
from app.serving.content_server import ContentServer
from app.storage.downloads import find_entry_html, find_index_file, resolve_within


def _server(store):
    return ContentServer(store, port=8080, base_url="http://localhost:8080/")


def test_entry_html_priority(tmp_path):
    (tmp_path / "home.html").write_text("home")
    (tmp_path / "default.html").write_text("default")
    assert find_entry_html(tmp_path) == "default.html"


def test_entry_html_falls_back_to_first_html(tmp_path):
    (tmp_path / "zeta.html").write_text("z")
    (tmp_path / "about.html").write_text("a")
    (tmp_path / "notes.txt").write_text("n")
    assert find_entry_html(tmp_path) == "about.html"


def test_no_entry_html(tmp_path):
    (tmp_path / "style.css").write_text("")
    assert find_entry_html(tmp_path) is None
    assert find_entry_html(tmp_path / "missing") is None


def test_index_file_found_in_host_subdirectory(tmp_path):
    site = tmp_path / "example.com"
    site.mkdir()
    (site / "index.html").write_text("<html></html>")
    assert find_index_file(tmp_path) == site / "index.html"


def test_resolve_within_blocks_escapes(tmp_path):
    assert resolve_within(tmp_path, "a/b.css") == (tmp_path / "a" / "b.css").resolve()
    assert resolve_within(tmp_path, "../secret.txt") is None
    assert resolve_within(tmp_path, "a/../../secret.txt") is None


def test_serve_project_returns_url(store):
    directory = store.ensure_job_dir("job1")
    (directory / "index.html").write_text("<h1>hi</h1>")
    server = _server(store)

    assert server.is_project_ready("job1")
    assert server.serve_project("job1") == "http://localhost:8080/job1"
    assert server.is_serving("job1")
    info = server.get_project_info("job1")
    assert info.exists and info.html_file == "index.html" and info.file_count == 1


def test_serve_project_missing_directory(store):
    server = _server(store)
    with pytest.raises(ContentNotFoundError):
        server.serve_project("nope")
    assert not server.get_project_info("nope").exists


def test_serve_project_without_html(store):
    directory = store.ensure_job_dir("job1")
    (directory / "data.json").write_text("{}")
    server = _server(store)
    assert not server.is_project_ready("job1")
    with pytest.raises(ContentNotFoundError):
        server.serve_project("job1")


def test_serves_files_over_http(store, tmp_path):
    directory = store.ensure_job_dir("job1")
    (directory / "index.html").write_text("<h1>home</h1>")
    (directory / "css").mkdir()
    (directory / "css" / "site.css").write_text("body { color: red; }")
    (directory / "blog").mkdir()
    (directory / "blog" / "index.html").write_text("<h1>blog</h1>")
    (tmp_path / "secret.txt").write_text("secret")

    server = _server(store)
    server.serve_project("job1")
    client = TestClient(server.app)

    assert client.get("/job1/").text == "<h1>home</h1>"
    assert client.get("/job1").text == "<h1>home</h1>"
    assert client.get("/job1/css/site.css").text == "body { color: red; }"
    assert client.get("/job1/blog/").text == "<h1>blog</h1>"
    assert client.get("/job1/missing.png").status_code == 404
    assert client.get("/job1/%2e%2e/%2e%2e/secret.txt").status_code == 404
    assert client.get("/other/").status_code == 404


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_busy_port_leaves_server_off(store):
    async def scenario(port):
        server = ContentServer(store, host="127.0.0.1", port=port)
        started = await server.start()
        await asyncio.sleep(0.2)
        running = server.is_running()
        await server.stop()
        return started, running

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen()
        started, running = asyncio.run(scenario(busy.getsockname()[1]))

    assert started is False
    assert running is False


def test_start_and_stop(store):
    async def scenario():
        server = ContentServer(store, host="127.0.0.1", port=_free_port())
        started = await server.start()
        await asyncio.sleep(0.2)
        running = server.is_running()
        await server.stop()
        return started, running, server.is_running()

    started, running, after_stop = asyncio.run(scenario())
    assert started is True
    assert running is True
    assert after_stop is False
