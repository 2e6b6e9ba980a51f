from dirserve.http.model import HTTPProcessingStatus, HTTPRequest, headername
from dirserve.http.parser import HTTPParser
from dirserve.utils.io import LineParser


def test_line_parser():
	parser = LineParser()
	lines: list[bytes] = []
	for chunk in [
		b"GET /time/5 HTTP/1.1\r\nHost: 127.0.0.1\r\nConnection: close",
		b"\r\n\r",
		b"\n",
	]:
		offset: int = 0
		while offset < len(chunk):
			line, read = parser.feed(chunk, offset)
			offset += read
			if line is not None:
				lines.append(line)
	assert lines == [
		b"GET /time/5 HTTP/1.1",
		b"Host: 127.0.0.1",
		b"Connection: close",
		b"",
	]
	assert parser.pending == 0


def test_parse_request():
	parser = HTTPParser("127.0.0.1")
	atoms = list(
		parser.feed(
			b"GET /sub/a%20b.txt?x=1 HTTP/1.1\r\nHost: localhost\r\nuser-agent: curl/8.5.0\r\n\r\n"
		)
	)
	assert len(atoms) == 1
	req = atoms[0]
	assert isinstance(req, HTTPRequest)
	assert req.method == "GET"
	assert req.path == "/sub/a%20b.txt"
	assert req.query == "x=1"
	assert req.target == "/sub/a%20b.txt?x=1"
	assert req.protocol == "HTTP/1.1"
	assert req.address == "127.0.0.1"
	assert req.header("User-Agent") == "curl/8.5.0"
	assert req.header("user-agent") == "curl/8.5.0"
	assert req.header("Range") is None


def test_parse_pipelined():
	parser = HTTPParser()
	payload = (
		b"GET /a HTTP/1.1\r\nHost: localhost\r\n\r\n"
		b"POST /b HTTP/1.1\r\nContent-Length: 5\r\n\r\nhello"
		b"HEAD /c HTTP/1.0\r\n\r\n"
	)
	requests = list(parser.feed(payload))
	assert [(_.method, _.path) for _ in requests] == [
		("GET", "/a"),
		("POST", "/b"),
		("HEAD", "/c"),
	]
	assert requests[2].protocol == "HTTP/1.0"


def test_parse_split():
	parser = HTTPParser()
	payload = b"\r\nGET /a HTTP/1.1\r\nAccept: a\r\nAccept: b\r\n\r\n"
	requests = []
	# Byte by byte, to exercise all the boundaries
	for i in range(len(payload)):
		requests += list(parser.feed(payload[i : i + 1]))
	assert len(requests) == 1
	assert requests[0].header("Accept") == "a, b"


def test_parse_malformed():
	assert list(HTTPParser().feed(b"NONSENSE\r\n\r\n")) == [
		HTTPProcessingStatus.BadFormat
	]
	assert list(HTTPParser().feed(b"GET / HTTP/1.1\r\nNo colon here\r\n\r\n")) == [
		HTTPProcessingStatus.BadFormat
	]
	assert list(HTTPParser().feed(b"GET / FTP/1.1\r\n\r\n")) == [
		HTTPProcessingStatus.BadFormat
	]



def test_headername():
	assert headername("content-TYPE") == "Content-Type"
	assert headername("x-forwarded-for") == "X-Forwarded-For"
	# Clients can send any number of distinct names, the cache stays bounded
	parser = HTTPParser()
	for i in range(3_000):
		list(parser.feed(f"GET / HTTP/1.1\r\nX-Header-{i}: {i}\r\n\r\n".encode()))
	assert headername.cache_info().currsize <= headername.cache_info().maxsize


# EOF
