from typing import Iterator, Literal
from ..utils.io import LineParser
from .model import (
	HTTPRequest,
	HTTPRequestLine,
	HTTPHeaders,
	HTTPAtom,
	HTTPProcessingStatus,
	headername,
)


class MessageParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "MessageParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` when a request line was parsed, `False` when
		the line is malformed, `None` when more data is needed."""
		line, read = self.line.feed(chunk, start)
		if not line:
			# NOTE: Empty lines before a request line are to be ignored
			return None, read
		try:
			ln = line.decode("ascii")
		except UnicodeDecodeError:
			return False, read
		parts = ln.split(" ")
		if len(parts) != 3 or not parts[0] or not parts[2].startswith("HTTP/"):
			return False, read
		self.value = HTTPRequestLine(parts[0], parts[1], parts[2])
		return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it's the parsed header name."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif line:
			# Headers are expected to be in ASCII, we're lenient there.
			ln: str = line.decode("latin-1")
			i = ln.find(":")
			if i != -1:
				h = ln[:i].lower().strip()
				v = ln[i + 1 :].strip()
				if h == "content-length":
					try:
						self.contentLength = int(v)
					except ValueError:
						self.contentLength = None
				elif h == "content-type":
					self.contentType = v
				n: str = headername(h)
				self.headers[n] = v
				return n, read
			else:
				return None, read
		else:
			return False, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodySkipParser:
	"""Consumes (and drops) the body of a request with a `Content-Length`,
	so that the next request on the connection can be parsed."""

	__slots__ = ["expected", "read"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0

	def reset(self, length: int = 0) -> "BodySkipParser":
		self.expected = length
		self.read = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		left: int = len(chunk) - start
		to_read: int = min(left, self.expected - self.read)
		self.read += to_read
		return (True if self.read >= self.expected else None), to_read


class HTTPParser:
	"""A stateful, incremental HTTP request parser. Chunks are fed as
	they are received and atoms are yielded as soon as they are complete."""

	def __init__(self) -> None:
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.body: BodySkipParser = BodySkipParser()
		self.parser: MessageParser | HeadersParser | BodySkipParser = self.message
		self.requestLine: HTTPRequestLine | None = None

	def reset(self) -> "HTTPParser":
		self.message.reset()
		self.headers.reset()
		self.body.reset()
		self.parser = self.message
		self.requestLine = None
		return self

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# When a chunk is partially read, the underlying parser keeps
			# a buffer up until it is flushed, so we never re-feed data.
			ln, read = self.parser.feed(chunk, offset)
			offset += read
			if ln is None:
				continue
			elif self.parser is self.message:
				if ln is False:
					self.reset()
					yield HTTPProcessingStatus.BadFormat
					# There's no way to resync with the stream after that
					return
				line = self.message.flush()
				self.requestLine = line
				if line is not None:
					yield line
					self.parser = self.headers
			elif self.parser is self.headers:
				if ln is False:
					headers = self.headers.flush()
					line = self.requestLine
					yield headers
					if line is not None:
						yield HTTPRequest(
							method=line.method,
							target=line.target,
							headers=headers,
							protocol=line.protocol,
						)
					# Request bodies are never interpreted, but they still
					# need to be consumed.
					if headers.contentLength and headers.contentLength > 0:
						self.parser = self.body.reset(headers.contentLength)
						yield HTTPProcessingStatus.Body
					else:
						self.parser = self.message.reset()
						yield HTTPProcessingStatus.Complete
				else:
					# `ln` is going to be the header name as a string there.
					pass
			elif self.parser is self.body:
				self.parser = self.message.reset()
				yield HTTPProcessingStatus.Complete
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")


# EOF
