from typing import Iterator, Literal
from ..utils.io import LineParser
from .model import (
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)

# Requests heads (request line or header line) longer than that are rejected
MAX_LINE_LENGTH: int = 64_000


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
		"""Returns `True` when a request line was parsed, `False` when the
		line is malformed and `None` when more data is needed."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return (False if self.line.pending > MAX_LINE_LENGTH else None), read
		elif not line:
			# Empty lines preceding the request line are ignored
			return None, read
		try:
			ln = line.decode("ascii")
		except UnicodeDecodeError:
			return False, read
		parts = ln.split(" ")
		if len(parts) != 3 or not parts[0].isalpha() or not parts[2].startswith("HTTP/"):
			return False, read
		method, target, protocol = parts
		p: list[str] = target.split("?", 1)
		self.value = HTTPRequestLine(
			method.upper(), target, p[0], p[1] if len(p) > 1 else "", protocol
		)
		return True, read

	def __str__(self) -> str:
		return f"MessageParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
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
			if self.line.pending > MAX_LINE_LENGTH:
				raise ValueError("Header line is too long")
			return None, read
		elif not line:
			return False, read
		# Header values may contain any octet, ISO-8859-1 maps them all
		ln: str = line.decode("latin-1")
		i = ln.find(":")
		if i == -1:
			raise ValueError(f"Malformed header line: {ln!r}")
		h = ln[:i].strip().lower()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			try:
				self.contentLength = int(v)
			except ValueError:
				self.contentLength = None
		n: str = headername(h)
		self.headers[n] = f"{self.headers[n]}, {v}" if n in self.headers else v
		return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class HTTPParser:
	"""A stateful HTTP request parser. Request bodies are not used by the
	file server, they are skipped based on their `Content-Length`."""

	def __init__(self, address: str = "") -> None:
		self.address: str = address
		self.message: MessageParser = MessageParser()
		self.headers: HeadersParser = HeadersParser()
		self.parser: MessageParser | HeadersParser = self.message
		self.requestLine: HTTPRequestLine | None = None
		# Remaining request body bytes to skip
		self.skipping: int = 0

	def feed(self, chunk: bytes) -> Iterator[HTTPRequest | HTTPProcessingStatus]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			if self.skipping:
				read = min(size - offset, self.skipping)
				self.skipping -= read
				offset += read
			elif self.parser is self.message:
				parsed, read = self.message.feed(chunk, offset)
				offset += read
				if parsed is False:
					yield HTTPProcessingStatus.BadFormat
					return
				elif parsed:
					self.requestLine = self.message.flush()
					self.parser = self.headers
			elif self.parser is self.headers:
				try:
					name, read = self.headers.feed(chunk, offset)
				except ValueError:
					yield HTTPProcessingStatus.BadFormat
					return
				offset += read
				if name is False and self.requestLine:
					headers = self.headers.flush()
					line = self.requestLine
					self.requestLine = None
					self.parser = self.message
					self.skipping = max(0, headers.contentLength or 0)
					yield HTTPRequest(
						method=line.method,
						path=line.path,
						headers=headers,
						target=line.target,
						query=line.query,
						protocol=line.protocol,
						address=self.address,
					)
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")


# EOF
