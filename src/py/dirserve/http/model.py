from abc import ABC, abstractmethod
from enum import Enum
from functools import lru_cache
from typing import BinaryIO, Callable, Literal, NamedTuple, TypeAlias

from ..utils.io import DEFAULT_ENCODING
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


@lru_cache(maxsize=1_024)
def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`."""
	return "-".join(_.capitalize() for _ in name.split("-"))


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	target: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for request processing."""

	headers: dict[str, str]
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Timeout = 10
	NoData = 11
	BadFormat = 12


# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""An error that carries a status and a message. The error handler
	answers with that status and logs the message."""

	def __init__(
		self,
		message: str,
		status: int = 500,
		headers: dict[str, str] | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int = status
		self.headers: dict[str, str] | None = headers


class HTTPStatusError(Exception):
	"""A bare status, answered by the error handler without logging."""

	def __init__(self, status: int, headers: dict[str, str] | None = None):
		super().__init__(status)
		self.status: int = status
		self.headers: dict[str, str] | None = headers


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a whole body as bytes."""

	payload: bytes = b""

	@property
	def length(self) -> int:
		return len(self.payload)


class HTTPBodyFile(NamedTuple):
	"""Represents a body streamed out of an open file, starting at `offset`
	and spanning `length` bytes."""

	file: BinaryIO
	offset: int
	length: int

	def close(self) -> None:
		self.file.close()


THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


class HTTPBodyWriter(ABC):
	"""Writes response heads and bodies to a client."""

	__slots__ = ["shouldClose"]

	def __init__(self) -> None:
		self.shouldClose: bool = False

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if body is None:
			return True
		elif isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return await self._writeFile(body)
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(self, body: HTTPBodyFile, size: int = 64_000) -> bool:
		f = body.file
		f.seek(body.offset)
		left: int = body.length
		while left > 0 and (chunk := f.read(min(size, left))):
			await self._writeBytes(chunk)
			left -= len(chunk)
		return True

	@abstractmethod
	async def _writeBytes(self, chunk: bytes | None | Literal[False]) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest:
	"""Represents an HTTP request, which also acts as a factory for
	responses."""

	__slots__ = ["method", "target", "path", "query", "protocol", "address", "_headers"]

	def __init__(
		self,
		method: str,
		path: str,
		headers: HTTPHeaders | dict[str, str] | None = None,
		*,
		target: str | None = None,
		query: str = "",
		protocol: str = "HTTP/1.1",
		address: str = "",
	):
		self.method: str = method
		self.path: str = path
		self.query: str = query
		# The request target as it was sent, used for logging
		self.target: str = target or (f"{path}?{query}" if query else path)
		self.protocol: str = protocol
		self.address: str = address
		self._headers: HTTPHeaders = (
			headers
			if isinstance(headers, HTTPHeaders)
			else HTTPHeaders({headername(k): v for k, v in (headers or {}).items()})
		)

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	def respond(
		self,
		content: THTTPBody | str | bytes | None = None,
		contentType: str | None = None,
		*,
		status: int = 200,
		headers: dict[str, str] | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			content=content,
			contentType=contentType,
			status=status,
			headers=headers,
			protocol=self.protocol,
		)

	def respondHTML(self, html: str, status: int = 200) -> "HTTPResponse":
		return self.respond(html, "text/html; charset=utf-8", status=status)

	def empty(
		self, status: int, headers: dict[str, str] | None = None
	) -> "HTTPResponse":
		"""An empty bodied response, as sent for all errors."""
		return self.respond(HTTPBodyBlob(), status=status, headers=headers)

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
		content: THTTPBody | str | bytes | None = None,
		contentType: str | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		body: THTTPBody | None
		if content is None:
			body = None
		elif isinstance(content, str):
			body = HTTPBodyBlob(content.encode(DEFAULT_ENCODING))
		elif isinstance(content, bytes):
			body = HTTPBodyBlob(content)
		elif isinstance(content, HTTPBodyBlob) or isinstance(content, HTTPBodyFile):
			body = content
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		res = HTTPResponse(
			protocol=protocol,
			status=status,
			message=message,
			headers=HTTPHeaders({}),
		)
		if headers:
			res.setHeaders(headers)
		if contentType is not None:
			res.setHeader("Content-Type", contentType)
		if body is not None:
			res.setHeader("Content-Length", body.length)
		res.body = body
		return res

	__slots__ = ["protocol", "status", "message", "headers", "body", "_onClose"]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self._onClose: Callable[[HTTPResponse], None] | None = None

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
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [f"{self.protocol} {self.status} {message}"]
		lines += [f"{k}: {v}" for k, v in self.headers.headers.items()]
		lines.append("")
		lines.append("")
		# NOTE: Header values are built from percent-encoded or ASCII strings
		return "\r\n".join(lines).encode("latin-1")

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		"""Registers a callback invoked once the response has been sent, or
		failed to be."""
		self._onClose = callback
		return self

	def close(self) -> None:
		"""Releases the resources held by the body."""
		if isinstance(self.body, HTTPBodyFile):
			self.body.close()

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF
