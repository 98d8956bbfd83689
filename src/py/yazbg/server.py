import asyncio
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Awaitable, Callable, Literal, NamedTuple, Protocol

from .config import ServerConfig
from .files import FileService
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .utils.logging import debug, error, event, exception, info, logged, warning


class Application(Protocol):
	"""Anything that turns a request into a response."""

	def process(
		self, request: HTTPRequest
	) -> HTTPResponse | Awaitable[HTTPResponse | None] | None: ...


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


class ServerOptions(NamedTuple):
	host: str = "0.0.0.0"  # nosec: B104
	port: int = 8080
	backlog: int = 1_000
	# This is the polling timeout for accepting new requests, it's how
	# long it takes for the server to notice it was stopped.
	polling: float = 1.0
	readsize: int = 4_096
	keepalive: float = 30.0
	logRequests: bool = True
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


class BindError(OSError):
	"""Raised when the server socket can't be bound."""


SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 39\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Internal server error: Request not sent"
)
SERVER_BADREQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 11\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Bad Request"
)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets."""

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly."""

	@classmethod
	async def OnRequest(
		cls,
		app: Application,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Asynchronous worker, processing the requests sent on a client
		socket until the connection is closed."""
		size: int = options.readsize
		buffer = bytearray(size)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req_count: int = 0
		res_count: int = 0
		try:
			parser: HTTPParser = HTTPParser()
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
				except asyncio.TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				logged(debug) and debug(
					"Reading Request(s)", Client=f"{id(client):x}", Read=n
				)
				# NOTE: With HTTP pipelining, we may receive more than one
				# request in the same payload.
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Requests=req_count)
						await writer.write(SERVER_BADREQUEST)
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req = atom
						if options.logRequests:
							event(req.method, req.target)
						req_count += 1
						if not req.keepAlive:
							keep_alive = False
						res = await cls.SendResponse(req, app, writer)
						if res:
							res_count += 1
						# Requests pipelined after a close are dropped
						if not keep_alive or writer.shouldClose:
							break
			if res_count != req_count:
				warning("Incomplete responses", Requests=req_count, Responses=res_count)
			elif status is HTTPProcessingStatus.Timeout and not req_count:
				warning("Client timed out before sending a request")
		except (BrokenPipeError, ConnectionResetError):
			# Client did an early close
			pass
		except Exception as e:
			exception(e)
		finally:
			# NOTE: The above loop takes care of keep alive, so we always close
			# the connection on exit.
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		app: Application,
		writer: HTTPBodyWriter,
	) -> HTTPResponse | None:
		"""Processes the request within the application and sends a response using the given writer."""
		res: HTTPResponse | None = None
		sent: bool = False
		try:
			r = app.process(request)
			res = r if r is None or isinstance(r, HTTPResponse) else await r
		except Exception as e:
			exception(e, f"Could not process {request.method} {request.target}")
		if res is None:
			warning(
				"Application did not return a response",
				Method=request.method,
				Path=request.target,
			)
			await writer.write(SERVER_ERROR)
			writer.shouldClose = True
		else:
			if not request.keepAlive:
				res.setHeader("Connection", "close")
			# We send the response head, followed by the body. A response to
			# HEAD keeps its `Content-Length` but never has a body.
			await writer.write(res.head())
			sent = True
			if request.method != "HEAD":
				await writer.write(res.body)
		return res if sent else None

	@staticmethod
	def Bind(options: ServerOptions) -> socket.socket:
		"""Creates the listening socket, raising a `BindError` when the
		address can't be bound. We don't try other ports, the address is
		what was asked for."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((options.host, options.port))
		except OSError as e:
			server.close()
			raise BindError(
				e.errno, f"Unable to bind to {options.host}:{options.port}: {e.strerror}"
			) from e
		# The argument is the backlog of connections that will be accepted before
		# they are refused.
		server.listen(options.backlog)
		# This is what we need to use it with asyncio
		server.setblocking(False)
		return server

	@classmethod
	async def Serve(
		cls,
		app: Application,
		options: ServerOptions = ServerOptions(),
		*,
		server: socket.socket | None = None,
	) -> None:
		"""Main server coroutine."""
		server = server or cls.Bind(options)
		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()

		state = ServerState()
		# Registers handlers for signals and exception (so that we log them). Note
		# that signal handlers can only be set from the main thread.
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, state.stop)
			loop.add_signal_handler(SIGTERM, state.stop)
		loop.set_exception_handler(state.onException)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				client.setblocking(False)
				task = loop.create_task(
					cls.OnRequest(app, client, loop=loop, options=options)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)


def run(
	config: ServerConfig | None = None,
	*,
	app: Application | None = None,
	condition: Callable[[], bool] | None = None,
) -> int:
	"""High level function to run the server, returns the process exit
	status."""
	config = config or ServerConfig()
	options = ServerOptions(
		host=config.host,
		port=config.port,
		logRequests=config.logRequests,
		condition=condition,
	)
	try:
		server = AIOSocketServer.Bind(options)
	except BindError as e:
		error(str(e.strerror), "HOSTPORTERR", Host=config.host, Port=config.port)
		return 1
	info("Server running", icon="🚀", URL=f"http://localhost:{config.port}/")
	info("Serving files", Root=config.rootPath)
	info("Root URL (/) will serve", Document=config.documentPath)
	if config.cors:
		info("CORS enabled", Methods=config.corsMethods)
	try:
		asyncio.run(
			AIOSocketServer.Serve(app or FileService(config), options, server=server)
		)
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")
	return 0


# EOF
