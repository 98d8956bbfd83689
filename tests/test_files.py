"""Request to file resolution and response building, without any socket."""

import asyncio
import os
from pathlib import Path

import pytest

from yazbg.config import ServerConfig
from yazbg.files import (
	DEFAULT_CONTENT_TYPE,
	FileService,
	contentType,
	joinPath,
	sandboxPath,
)
from yazbg.http.model import HTTPRequest, HTTPResponse

WASM: bytes = b"\x00asm\x01\x00\x00\x00\xff\xfe"


@pytest.fixture
def root(tmp_path: Path) -> Path:
	app = tmp_path / "app"
	(app / "assets").mkdir(parents=True)
	(app / "yazbg.html").write_bytes(b"<html>A</html>")
	(app / "index.html").write_bytes(b"<html>index</html>")
	(app / "app.wasm").write_bytes(WASM)
	(app / "app.js").write_bytes(b"console.log(1)")
	(app / "assets" / "style.css").write_bytes(b"body{}")
	(tmp_path / "secret.txt").write_bytes(b"secret")
	return app


def service(root: Path, **options: str | bool) -> FileService:
	return FileService(ServerConfig.FromPreset("yazbg", root=str(root), **options))


def get(svc: FileService, target: str, method: str = "GET") -> HTTPResponse:
	return svc.handle(HTTPRequest(method, target))


def corsHeaders(response: HTTPResponse) -> list[str]:
	return [_ for _ in response.headers.headers if _.startswith("Access-Control-")]


# -----------------------------------------------------------------------------
# CONTENT TYPES
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
	"path,expected",
	[
		("yazbg.html", "text/html"),
		("a/b/style.css", "text/css"),
		("app.js", "text/javascript"),
		("data.json", "application/json"),
		("sprite.png", "image/png"),
		("photo.jpg", "image/jpg"),
		("app.wasm", "application/wasm"),
		("APP.WASM", "application/wasm"),
		("archive.xyz", DEFAULT_CONTENT_TYPE),
		("photo.jpeg", DEFAULT_CONTENT_TYPE),
		("Makefile", DEFAULT_CONTENT_TYPE),
		(".bashrc", DEFAULT_CONTENT_TYPE),
		("app.js?v=1", DEFAULT_CONTENT_TYPE),
	],
)
def test_content_type(path: str, expected: str) -> None:
	assert contentType(path) == expected


def test_content_type_is_by_extension_only(root: Path) -> None:
	assert contentType(str(root / "missing.png")) == "image/png"
	assert contentType("a.html/b") == DEFAULT_CONTENT_TYPE


# -----------------------------------------------------------------------------
# PATH RESOLUTION
# -----------------------------------------------------------------------------


def test_join_path() -> None:
	assert joinPath("/srv/app", "/yazbg.html") == "/srv/app/yazbg.html"
	assert joinPath("/srv/app", "//assets/./style.css") == "/srv/app/assets/style.css"
	assert joinPath(".", "/app.js") == "app.js"


def test_join_path_does_not_sanitize() -> None:
	assert joinPath("/srv/app", "/../etc/passwd") == "/srv/etc/passwd"
	assert joinPath("/srv/app", "/a/../../../x") == "/x"


def test_join_path_keeps_query() -> None:
	assert joinPath("/srv/app", "/app.js?v=1#top") == "/srv/app/app.js?v=1#top"


def test_sandbox_path(root: Path) -> None:
	base = os.path.realpath(root)
	assert sandboxPath(str(root), "/app.js") == os.path.join(base, "app.js")
	assert sandboxPath(str(root), "/assets/../app.js") == os.path.join(base, "app.js")
	assert sandboxPath(str(root), "/") == base
	assert sandboxPath(str(root), "/../secret.txt") is None
	assert sandboxPath(str(root), "/assets/../../secret.txt") is None


def test_sandbox_path_rejects_symlinks_out_of_root(root: Path) -> None:
	(root / "link.txt").symlink_to(root.parent / "secret.txt")
	assert sandboxPath(str(root), "/link.txt") is None


def test_root_targets_resolve_to_document(root: Path) -> None:
	svc = service(root)
	assert svc.resolvePath("/") == str(root / "yazbg.html")
	assert svc.resolvePath("/index.html") == str(root / "yazbg.html")
	assert svc.resolvePath("/yazbg.html") == str(root / "yazbg.html")
	# Only the exact targets are redirected
	assert svc.resolvePath("/?x=1") == str(root / "?x=1")


def test_custom_resolver(root: Path) -> None:
	svc = FileService(
		ServerConfig(root=str(root)), resolver=lambda r, p: os.path.join(r, "app.js")
	)
	res = get(svc, "/anything")
	assert res.status == 200
	assert res.body is not None and res.body.payload == b"console.log(1)"


# -----------------------------------------------------------------------------
# RESPONSES
# -----------------------------------------------------------------------------


def test_scenario(root: Path) -> None:
	svc = service(root)

	res = get(svc, "/")
	assert res.status == 200
	assert res.getHeader("Content-Type") == "text/html"
	assert res.body is not None and res.body.payload == b"<html>A</html>"

	res = get(svc, "/missing.png")
	assert res.status == 404
	assert res.body is not None and b"missing.png" in res.body.payload

	res = get(svc, "/app.wasm")
	assert res.status == 200
	assert res.getHeader("Content-Type") == "application/wasm"
	assert res.body is not None and res.body.payload == WASM


def test_root_is_the_default_document(root: Path) -> None:
	svc = service(root)
	a, b, c = get(svc, "/"), get(svc, "/yazbg.html"), get(svc, "/index.html")
	assert a.status == b.status == c.status == 200
	assert a.body == b.body == c.body


def test_index_preset_serves_index(root: Path) -> None:
	svc = FileService(ServerConfig.FromPreset("index", root=str(root)))
	res = get(svc, "/")
	assert res.body is not None and res.body.payload == b"<html>index</html>"
	assert res.getHeader("Access-Control-Allow-Methods") == "GET, POST, OPTIONS"


def test_nested_file(root: Path) -> None:
	res = get(service(root), "/assets/style.css")
	assert res.status == 200
	assert res.getHeader("Content-Type") == "text/css"
	assert res.getHeader("Content-Length") == "6"


def test_empty_file(root: Path) -> None:
	(root / "empty.json").write_bytes(b"")
	res = get(service(root), "/empty.json")
	assert res.status == 200
	assert res.getHeader("Content-Length") == "0"
	assert res.head().startswith(b"HTTP/1.1 200 OK\r\n")


def test_not_found(root: Path) -> None:
	res = get(service(root), "/nope/missing.png")
	assert res.status == 404
	assert res.getHeader("Content-Type") == "text/plain"
	assert res.body is not None
	assert res.body.payload == b"File not found: /nope/missing.png"
	assert corsHeaders(res) == []


def test_not_found_is_logged(root: Path, capsys: pytest.CaptureFixture[str]) -> None:
	res = get(service(root), "/missing.png")
	err = capsys.readouterr().err
	assert "Error serving file" in err
	assert "No such file or directory" in err
	# The OS error goes to the console only
	assert res.body is not None
	assert b"No such file or directory" not in res.body.payload


def test_null_byte_is_not_found(root: Path) -> None:
	res = get(service(root), "/app.js\x00.png")
	assert res.status == 404
	assert res.body is not None
	assert res.body.payload == b"File not found: /app.js\x00.png"
	assert sandboxPath(str(root), "/app.js\x00.png") is None
	assert get(service(root, sandbox=True), "/app.js\x00.png").status == 404


def test_directory_is_not_found(root: Path) -> None:
	assert get(service(root), "/assets").status == 404
	assert get(service(root), "/assets/").status == 404


def test_missing_document(root: Path) -> None:
	(root / "yazbg.html").unlink()
	res = get(service(root), "/")
	assert res.status == 404
	assert res.body is not None and res.body.payload == b"File not found: /"


def test_query_string_is_part_of_the_path(root: Path) -> None:
	res = get(service(root), "/app.js?v=1")
	assert res.status == 404
	assert res.body is not None and b"/app.js?v=1" in res.body.payload


def test_traversal_is_served_by_default(root: Path) -> None:
	res = get(service(root), "/../secret.txt")
	assert res.status == 200
	assert res.body is not None and res.body.payload == b"secret"


def test_traversal_is_refused_in_sandbox(root: Path) -> None:
	svc = service(root, sandbox=True)
	assert get(svc, "/../secret.txt").status == 404
	assert get(svc, "/app.js").status == 200


def test_cors_enabled(root: Path) -> None:
	res = get(service(root), "/app.js")
	assert res.getHeader("Access-Control-Allow-Origin") == "*"
	assert res.getHeader("Access-Control-Allow-Methods") == "GET, OPTIONS"
	assert res.getHeader("Access-Control-Allow-Headers") == "Content-Type"


def test_cors_disabled(root: Path) -> None:
	svc = service(root, cors=False)
	assert corsHeaders(get(svc, "/app.js")) == []
	assert corsHeaders(get(svc, "/missing.js")) == []


def test_options_falls_through(root: Path) -> None:
	svc = service(root)
	assert get(svc, "/app.js", "OPTIONS").status == 200
	assert get(svc, "/missing", "OPTIONS").status == 404


def test_any_method_is_served(root: Path) -> None:
	assert get(service(root), "/app.js", "POST").status == 200
	assert get(service(root), "/app.js", "DELETE").status == 200


def test_preflight(root: Path) -> None:
	res = get(service(root, preflight=True), "/missing", "OPTIONS")
	assert res.status == 204
	assert res.body is None
	assert res.getHeader("Access-Control-Allow-Origin") == "*"
	assert res.getHeader("Content-Length") is None
	assert res.head().startswith(b"HTTP/1.1 204 No Content\r\n")


def test_preflight_needs_cors(root: Path) -> None:
	svc = service(root, preflight=True, cors=False)
	assert get(svc, "/missing", "OPTIONS").status == 404


def test_process_is_async(root: Path) -> None:
	res = asyncio.run(service(root).process(HTTPRequest("GET", "/app.wasm")))
	assert res.status == 200
	assert res.body is not None and res.body.payload == WASM


# EOF
