import asyncio
import os
from pathlib import Path

import pytest

from dirserve.server import AIOSocketServer, ServerOptions, ServerState
from dirserve.services.files import FileService


async def exchange(root: Path, payload: bytes) -> bytes:
	"""Starts a server on a free port, sends the payload on a connection and
	returns everything received until the server closes it."""
	options = ServerOptions(
		host="127.0.0.1", port=0, polling=0.05, keepalive=2.0, stopSignals=False
	)
	server = AIOSocketServer.Bind(options)
	port: int = server.getsockname()[1]
	state = ServerState()
	serving = asyncio.create_task(
		AIOSocketServer.Serve(
			FileService(root, logRequests=False), options, server=server, state=state
		)
	)
	try:
		reader, writer = await asyncio.open_connection("127.0.0.1", port)
		writer.write(payload)
		await writer.drain()
		data = await asyncio.wait_for(reader.read(), timeout=5.0)
		writer.close()
		return data
	finally:
		state.stop()
		await asyncio.wait_for(serving, timeout=5.0)


def test_serve_file(tree: Path):
	data = asyncio.run(
		exchange(tree, b"GET /a.txt HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n")
	)
	head, body = data.split(b"\r\n\r\n", 1)
	lines = head.split(b"\r\n")
	assert lines[0] == b"HTTP/1.1 200 OK"
	assert b"Content-Type: text/plain; charset=utf-8" in lines
	assert b"Content-Length: 5" in lines
	assert b"Connection: close" in lines
	assert any(_.startswith(b"Date: ") for _ in lines)
	assert body == b"hello"


def test_serve_pipelined(tree: Path):
	data = asyncio.run(
		exchange(
			tree,
			b"GET /sub/ HTTP/1.1\r\nHost: localhost\r\n\r\n"
			b"HEAD /a.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"
			b"GET /nope HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n",
		)
	)
	assert data.startswith(b"HTTP/1.1 200 OK\r\n")
	assert b'<a href="/sub/LICENSE">LICENSE</a>' in data
	# The `HEAD` response has no body, the next response follows its head
	assert b"Content-Length: 5\r\n" in data
	assert b"hello" not in data
	assert data.endswith(b"Connection: close\r\n\r\n")
	assert b"HTTP/1.1 404 Not Found\r\n" in data


def test_serve_http10(tree: Path):
	data = asyncio.run(exchange(tree, b"GET /sub/LICENSE HTTP/1.0\r\n\r\n"))
	assert data.startswith(b"HTTP/1.0 200 OK\r\n")
	assert data.endswith(b"\r\n\r\nMIT License")


def test_serve_errors(tree: Path):
	data = asyncio.run(
		exchange(
			tree,
			b"DELETE /a.txt HTTP/1.1\r\nHost: localhost\r\n\r\n"
			b"GET /%zz HTTP/1.1\r\nHost: localhost\r\n\r\n"
			b"NONSENSE\r\n\r\n",
		)
	)
	assert data.startswith(b"HTTP/1.1 405 Method Not Allowed\r\n")
	assert b"Allow: GET, HEAD\r\n" in data
	assert b"HTTP/1.1 400 Bad Request\r\n" in data
	assert data.endswith(
		b"HTTP/1.1 400 Bad Request\r\nContent-Length: 0\r\nConnection: close\r\n\r\n"
	)



@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="FIFOs are POSIX only")
def test_serve_fifo_does_not_block(tree: Path):
	os.mkfifo(tree / "pipe")

	async def scenario() -> tuple[bytes, bytes]:
		options = ServerOptions(
			host="127.0.0.1", port=0, polling=0.05, keepalive=2.0, stopSignals=False
		)
		server = AIOSocketServer.Bind(options)
		port: int = server.getsockname()[1]
		state = ServerState()
		serving = asyncio.create_task(
			AIOSocketServer.Serve(
				FileService(tree, logRequests=False), options, server=server, state=state
			)
		)
		try:
			# The first connection asks for a FIFO nobody writes to
			pipe_reader, pipe_writer = await asyncio.open_connection("127.0.0.1", port)
			pipe_writer.write(b"GET /pipe HTTP/1.1\r\nHost: localhost\r\n\r\n")
			await pipe_writer.drain()
			# ...while the second one asks for a regular file
			reader, writer = await asyncio.open_connection("127.0.0.1", port)
			writer.write(
				b"GET /a.txt HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n"
			)
			await writer.drain()
			data = await asyncio.wait_for(reader.read(), timeout=3.0)
			pipe_head = await asyncio.wait_for(
				pipe_reader.readuntil(b"\r\n\r\n"), timeout=3.0
			)
			writer.close()
			pipe_writer.close()
			return data, pipe_head
		finally:
			state.stop()
			await asyncio.wait_for(serving, timeout=5.0)

	data, pipe_head = asyncio.run(scenario())
	assert data.startswith(b"HTTP/1.1 200 OK\r\n")
	assert data.endswith(b"\r\n\r\nhello")
	assert pipe_head.startswith(b"HTTP/1.1 403 Forbidden\r\n")
	assert b"Content-Length: 0\r\n" in pipe_head


# EOF
