import asyncio
import os
from typing import Callable, TypeAlias
from .config import ServerConfig
from .cors import setCORSHeaders
from .http.model import HTTPRequest, HTTPResponse
from .utils.logging import error, warning

# -----------------------------------------------------------------------------
#
# CONTENT TYPES
#
# -----------------------------------------------------------------------------

CONTENT_TYPES: dict[str, str] = {
	".html": "text/html",
	".css": "text/css",
	".js": "text/javascript",
	".json": "application/json",
	".png": "image/png",
	".jpg": "image/jpg",
	".wasm": "application/wasm",
}

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"


def contentType(path: str) -> str:
	"""Returns the content type for the given path, based on its extension
	only. The file is never looked at."""
	return CONTENT_TYPES.get(os.path.splitext(path)[1].lower(), DEFAULT_CONTENT_TYPE)


# -----------------------------------------------------------------------------
#
# PATH RESOLUTION
#
# -----------------------------------------------------------------------------

# Takes the root directory and a request path, returns the local path to read
# or `None` when the request path must not be served.
TPathResolver: TypeAlias = Callable[[str, str], str | None]

# Request targets that are served the default document
ROOT_TARGETS: tuple[str, ...] = ("/", "/index.html")


def joinPath(root: str, path: str) -> str:
	"""Joins the request path to the root directory.

	WARNING: There is no sanitization, `..` segments are resolved by the
	join and may point outside of the root. The server is meant to be used
	on a trusted local network only, use `sandboxPath` otherwise.
	"""
	return os.path.normpath(os.path.join(root, path.lstrip("/")))


def sandboxPath(root: str, path: str) -> str | None:
	"""Like `joinPath`, but the result is canonicalized (symlinks included)
	and rejected if it's not contained in the root directory."""
	base: str = os.path.realpath(root)
	try:
		local: str = os.path.realpath(os.path.join(base, path.lstrip("/")))
	except ValueError:
		# The path has an embedded null byte, it can't name any file
		return None
	return local if os.path.commonpath((base, local)) == base else None


# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class FileService:
	"""Serves the files of the configured root directory, one request at
	a time and without any state kept between requests."""

	def __init__(
		self,
		config: ServerConfig | None = None,
		*,
		resolver: TPathResolver | None = None,
	) -> None:
		self.config: ServerConfig = config or ServerConfig()
		self.resolver: TPathResolver = resolver or (
			sandboxPath if self.config.sandbox else joinPath
		)

	def resolvePath(self, target: str) -> str | None:
		"""Returns the local path for the request target, the site root being
		mapped to the default document. The target is used as-is, which means
		a query string is part of the looked up file name."""
		path: str = f"/{self.config.document}" if target in ROOT_TARGETS else target
		return self.resolver(self.config.root, path)

	def load(self, path: str) -> bytes:
		with open(path, "rb") as f:
			return f.read()

	def notFound(self, request: HTTPRequest) -> HTTPResponse:
		return request.notFound(f"File not found: {request.target}")

	def preflight(self, request: HTTPRequest) -> HTTPResponse:
		return setCORSHeaders(request.empty(204), methods=self.config.corsMethods)

	def handle(self, request: HTTPRequest) -> HTTPResponse:
		"""Builds the response for the given request. This blocks on
		reading the file."""
		if request.method == "OPTIONS" and self.config.preflight and self.config.cors:
			return self.preflight(request)
		local_path = self.resolvePath(request.target)
		if local_path is None:
			warning("Path is outside of root", Path=request.target, Root=self.config.root)
			return self.notFound(request)
		try:
			content: bytes = self.load(local_path)
		except (OSError, ValueError) as e:
			# `ValueError` is for paths with embedded null bytes
			error(
				"Error serving file",
				getattr(e, "errno", None),
				Path=local_path,
				Reason=getattr(e, "strerror", None) or str(e),
			)
			return self.notFound(request)
		response = request.respond(content, contentType(local_path))
		return (
			setCORSHeaders(response, methods=self.config.corsMethods)
			if self.config.cors
			else response
		)

	async def process(self, request: HTTPRequest) -> HTTPResponse:
		# The read is done in a worker thread, so that a slow read does not
		# hold the other connections.
		return await asyncio.to_thread(self.handle, request)

	def __repr__(self) -> str:
		return f"(FileService {self.config.rootPath} /→{self.config.document})"


# EOF
