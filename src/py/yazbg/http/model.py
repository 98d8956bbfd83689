from abc import ABC, abstractmethod
from enum import Enum
from typing import Literal, NamedTuple, TypeAlias, Union

from ..utils.io import DEFAULT_ENCODING
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


def headername(name: str, *, headers: dict[str, str] = {}) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	# NOTE: The default `headers` dict is shared on purpose, it's a cache
	# of normalized names.
	if name in headers:
		return headers[name]
	key: str = name.lower()
	if key in headers:
		return headers[key]
	else:
		normalized: str = "-".join(_.capitalize() for _ in key.split("-"))
		headers[key] = normalized
		return normalized


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request line. The target is kept exactly as sent by
	the client, query string included."""

	method: str
	target: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


class HTTPBodyBlob(NamedTuple):
	"""Represents a whole body as bytes."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data))


# Type alias for what the parser produces
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# WRITER
#
# -----------------------------------------------------------------------------


class HTTPBodyWriter(ABC):
	"""A generic writer for response heads and bodies."""

	__slots__ = ["shouldClose"]

	def __init__(self) -> None:
		self.shouldClose: bool = False

	async def write(self, body: HTTPBodyBlob | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	@abstractmethod
	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest:
	"""Represents an HTTP request, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"target",
		"path",
		"query",
		"_headers",
	]

	def __init__(
		self,
		method: str,
		target: str,
		headers: HTTPHeaders | None = None,
		protocol: str = "HTTP/1.1",
	):
		self.method: str = method
		self.target: str = target
		path, _, query = target.partition("?")
		self.path: str = path
		self.query: str = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers or HTTPHeaders({})

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def keepAlive(self) -> bool:
		"""Tells if the client expects the connection to stay open after
		the response."""
		if self.protocol == "HTTP/1.0":
			return (self.header("Connection") or "").lower() == "keep-alive"
		else:
			return (self.header("Connection") or "").lower() != "close"

	def respond(
		self,
		content: str | bytes | None = None,
		contentType: str | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			protocol=self.protocol,
			headers=headers,
		)

	def empty(
		self,
		status: int = 204,
		headers: dict[str, str] | None = None,
	) -> "HTTPResponse":
		return self.respond(content=None, status=status, headers=headers)

	def error(
		self,
		status: int,
		content: str | None = None,
		contentType: str = "text/plain",
		headers: dict[str, str] | None = None,
	) -> "HTTPResponse":
		message = HTTP_STATUS.get(status, "Server Error")
		return self.respond(
			content=message if content is None else content,
			contentType=contentType,
			status=status,
			message=message,
			headers=headers,
		)

	def notFound(
		self,
		content: str = "Not Found",
		contentType: str = "text/plain",
	) -> "HTTPResponse":
		return self.error(404, content=content, contentType=contentType)

	def __str__(self) -> str:
		return f"Request({self.method} {self.target} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: str | bytes | None = None,
		contentType: str | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		payload: bytes | None = None
		updated_headers: dict[str, str] = {}
		if content is None:
			pass
		elif isinstance(content, str):
			payload = content.encode(DEFAULT_ENCODING)
		elif isinstance(content, bytes):
			payload = content
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		body: HTTPBodyBlob | None = (
			None if payload is None else HTTPBodyBlob.FromBytes(payload)
		)
		if contentType is not None:
			updated_headers["Content-Type"] = contentType
		if body is not None:
			updated_headers["Content-Length"] = str(body.length)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				(updated_headers | headers) if headers else updated_headers,
				contentType=contentType,
				contentLength=None if body is None else body.length,
			),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: HTTPBodyBlob | None = body

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def setHeaders(self, headers: dict[str, str | int | None]) -> "HTTPResponse":
		for k, v in headers.items():
			self.setHeader(k, v)
		return self

	def head(self) -> bytes:
		"""Serializes the status line and headers as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		return "\r\n".join(lines).encode("ascii")

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers.headers})"


# EOF
