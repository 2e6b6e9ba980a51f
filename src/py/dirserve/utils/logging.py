import sys
import time
from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple, TextIO
from contextvars import ContextVar
from .term import Term

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="dirserve")


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR: dict[LogLevel, int] = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}

# Entries below that level are not sent
LOG_LEVEL: ContextVar[LogLevel] = ContextVar("LogLevel", default=LogLevel.Info)


class LogEntry(NamedTuple):
	origin: str
	time: float
	level: LogLevel = LogLevel.Info
	message: str | None = None
	code: int | str | None = None
	context: dict[str, Any] | None = None
	icon: str | None = None


# NOTE: Streams are looked up at write time, so that redirections of
# `sys.stdout`/`sys.stderr` (including test capture) are honored.
def out() -> TextIO:
	return sys.stdout


def err() -> TextIO:
	return sys.stderr


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(f"{k}={formatData(v)}" for k, v in value.items())
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	stream = err()
	colored: bool = Term.IsColored(stream)
	clr: str = Term.Color(LOG_LEVEL_COLOR[entry.level]) if colored else ""
	bold: str = Term.BOLD if colored else ""
	reset: str = Term.RESET if colored else ""
	icon: str = f" {entry.icon}" if entry.icon else ""
	code: str = f" [{entry.code}]" if entry.code is not None else ""
	stream.write(
		f"{clr}{bold}[{entry.origin}]{reset}{clr}{icon}{code} {entry.message} {formatData(entry.context)}{reset}\n"
	)
	stream.flush()
	return entry


def logged(level: LogLevel) -> bool:
	"""Tells if entries of the given level are currently sent. This is used to
	guard against building entries when not necessary."""
	return level.value >= LOG_LEVEL.get().value


def log(
	level: LogLevel,
	message: str,
	*,
	code: int | str | None = None,
	origin: str | None = None,
	icon: str | None = None,
	context: dict[str, Any],
) -> LogEntry:
	entry = LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		level=level,
		message=message,
		code=code,
		context=context,
		icon=icon,
	)
	return send(entry) if logged(level) else entry


def debug(message: str, *, icon: str | None = None, **context: Any) -> LogEntry:
	return log(LogLevel.Debug, message, icon=icon, context=context)


def info(message: str, *, icon: str | None = None, **context: Any) -> LogEntry:
	return log(LogLevel.Info, message, icon=icon, context=context)


def warning(message: str, *, icon: str | None = None, **context: Any) -> LogEntry:
	return log(LogLevel.Warning, message, icon=icon, context=context)


def error(
	message: str, code: int | str | None, *, icon: str | None = None, **context: Any
) -> LogEntry:
	return log(LogLevel.Error, message, code=code, icon=icon, context=context)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	try:
		stream = err()
		stream.write(
			f"!!! EXCP {f'{message}: [{exception.__class__.__name__}] {exception}' if message else f'[{exception.__class__.__name__}] {exception}'}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# This is called from exception handlers, so it must never raise.
		pass
	# Returns the exception so that this can be used as `raise exception(e)`
	return exception


# -----------------------------------------------------------------------------
#
# ACCESS LOG
#
# -----------------------------------------------------------------------------


def timestamp(at: datetime | None = None) -> str:
	"""Formats the given local time (now by default) as `DD/MM/YYYY HH:MM:CS`,
	where `CS` is the rounded number of centiseconds (which may be `100`)."""
	t: datetime = at or datetime.now()
	centis: int = (t.microsecond // 1_000 + 5) // 10
	return f"{t.day:02d}/{t.month:02d}/{t.year} {t.hour:02d}:{t.minute:02d}:{centis:02d}"


class AccessEntry(NamedTuple):
	"""One line of the access log. When `agent` is `None` the user agent
	segment is omitted, as it is for entries emitted by the error handler."""

	address: str
	method: str
	url: str
	protocol: str
	status: int | None
	agent: str | None = None
	range: str | None = None
	failure: str | None = None

	def format(self, at: datetime | None = None) -> str:
		agent: str = f"{self.agent} - " if self.agent is not None else ""
		status: str = "null" if self.status is None else str(self.status)
		line = f'{self.address} - {timestamp(at)} - {agent}"{self.method} {self.url} {self.protocol}" {status}'
		if self.range:
			line += f" Range: {self.range}"
		if self.failure:
			line += f" ({self.failure})"
		return line


def access(entry: AccessEntry, at: datetime | None = None) -> str:
	"""Writes the access line, to stderr when the entry carries a failure
	and to stdout otherwise."""
	line = entry.format(at)
	stream = err() if entry.failure else out()
	stream.write(f"{line}\n")
	stream.flush()
	return line


# EOF
