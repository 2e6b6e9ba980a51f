import asyncio
import socket
import threading
from dataclasses import dataclass
from email.utils import formatdate
from inspect import isawaitable
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Literal, NamedTuple

from .config import HOST, PORT
from .http.model import (
	HTTPBodyFile,
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Service
from .utils.logging import debug, error, exception, info, warning


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
		else:
			warning("Event loop error", Message=context.get("message"))


class ServerOptions(NamedTuple):
	host: str = HOST
	port: int = PORT
	backlog: int = 1_024
	# This is the polling timeout for accepting new requests, which is how
	# often the server checks if it should stop.
	polling: float = 1.0
	readsize: int = 4_096
	# Idle connections are closed after that many seconds
	keepalive: float = 5.0
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()

SERVER_BAD_REQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Length: 0\r\n"
	b"Connection: close\r\n"
	b"\r\n"
)

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Length: 0\r\n"
	b"Connection: close\r\n"
	b"\r\n"
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

	async def _writeBytes(self, chunk: bytes | None | Literal[False]) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True

	async def _writeFile(self, body: HTTPBodyFile, size: int = 64_000) -> bool:
		if body.length:
			# NOTE: This uses `sendfile` when available, and falls back to
			# reading and sending chunks otherwise.
			await self.loop.sock_sendfile(
				self.client, body.file, offset=body.offset, count=body.length
			)
		return True


class AIOSocketServer:
	"""AsyncIO backend using sockets directly."""

	@classmethod
	async def OnRequest(
		cls,
		service: Service,
		client: socket.socket,
		address: str,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Asynchronous worker, processing the requests sent by a client until
		it closes the connection, times out or asks for the connection to be
		closed."""
		buffer = bytearray(options.readsize)
		parser: HTTPParser = HTTPParser(address)
		writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		keep_alive: bool = True
		req_count: int = 0
		try:
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
				except asyncio.TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				except ConnectionError:
					status = HTTPProcessingStatus.NoData
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				# NOTE: With HTTP pipelining, we may receive more than one
				# request in the same payload.
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Client=address, Count=req_count)
						await writer.write(SERVER_BAD_REQUEST)
						status = atom
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req_count += 1
						if (
							atom.protocol == "HTTP/1.0"
							or (atom.header("Connection") or "").lower() == "close"
						):
							keep_alive = False
						if not await cls.SendResponse(
							atom, service, writer, closing=not keep_alive
						):
							keep_alive = False
							break
			debug(
				"Connection closed",
				Client=address,
				Status=status.name,
				Requests=req_count,
			)
		except ConnectionError:
			# The client went away while we were writing
			pass
		except Exception as e:
			exception(e)
		finally:
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		service: Service,
		writer: HTTPBodyWriter,
		*,
		closing: bool = False,
	) -> bool:
		"""Processes the request within the service and sends a response using
		the given writer. Returns `True` when the connection can be reused."""
		res: HTTPResponse | None = None
		# --
		# We process the response from the service, errors are given to the
		# service to be turned into responses.
		try:
			r = service.process(request)
			res = await r if isawaitable(r) else r
		except Exception as e:
			try:
				res = service.onError(request, e, False)
			except Exception as f:
				exception(f, f"Unhandled error for {request.method} {request.target}")
				res = None
		if res is None:
			await writer.write(SERVER_ERROR)
			return False
		try:
			res.setHeader("Date", formatdate(usegmt=True))
			if closing:
				res.setHeader("Connection", "close")
			await writer.write(res.head())
			# Responses to `HEAD` have the headers of `GET`, without the body
			if request.method != "HEAD":
				await writer.write(res.body)
			return not closing
		except ConnectionError:
			# Client did an early close
			debug("Client closed the connection", Method=request.method, Path=request.path)
			return False
		except Exception as e:
			try:
				service.onError(request, e, True)
			except Exception as f:
				exception(f)
			return False
		finally:
			if res._onClose:
				try:
					res._onClose(res)
				except Exception as e:
					exception(e)
			res.close()

	@staticmethod
	def Bind(options: ServerOptions) -> socket.socket:
		"""Creates the listening socket for the given options."""
		family = socket.AF_INET6 if ":" in options.host else socket.AF_INET
		server = socket.socket(family, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((options.host, options.port))
		except OSError as e:
			server.close()
			error(
				f"Unable to bind to {options.host}:{options.port}, aborting.",
				"HOSTPORTERR",
				Reason=e.strerror,
			)
			raise
		# The argument is the backlog of connections that will be accepted before
		# they are refused.
		server.listen(options.backlog)
		# This is what we need to use it with asyncio
		server.setblocking(False)
		return server

	@classmethod
	async def Serve(
		cls,
		service: Service,
		options: ServerOptions = ServerOptions(),
		*,
		server: socket.socket | None = None,
		state: ServerState | None = None,
	) -> None:
		"""Main server coroutine."""
		server = server or cls.Bind(options)
		loop = asyncio.get_running_loop()
		tasks: set[asyncio.Task[None]] = set()
		state = state or ServerState()
		# Signal handlers can only be registered from the main thread
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, lambda: state.stop())
			loop.add_signal_handler(SIGTERM, lambda: state.stop())
		loop.set_exception_handler(state.onException)

		await service.start()
		host, port = server.getsockname()[:2]
		info(
			f"Listening at {port}",
			icon="🚀",
			Host=host,
			Port=port,
			Service=service.name,
		)
		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, address = await asyncio.wait_for(
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
				task = loop.create_task(
					cls.OnRequest(
						service, client, str(address[0]), loop=loop, options=options
					)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await service.stop()


def run(
	service: Service,
	host: str = HOST,
	port: int = PORT,
	*,
	backlog: int = OPTIONS.backlog,
	polling: float = OPTIONS.polling,
	keepalive: float = OPTIONS.keepalive,
	condition: Callable[[], bool] | None = None,
) -> None:
	"""High level function to run the server until it is interrupted."""
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		polling=polling,
		keepalive=keepalive,
		condition=condition,
	)
	try:
		asyncio.run(AIOSocketServer.Serve(service, options))
	except KeyboardInterrupt:
		info("Manual shutdown")


# EOF
