from typing import ClassVar
import os

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ


class Term:
	"""ANSI escape sequences used by the log sinks."""

	BOLD: ClassVar[str] = "" if NO_COLOR else "\033[1m"
	RESET: ClassVar[str] = "" if NO_COLOR else "\033[0m"

	@staticmethod
	def Color(color: int, bold: bool = False) -> str:
		return "" if NO_COLOR else f"\033[{'1' if bold else '0'};38;5;{color}m"

	@staticmethod
	def IsColored(stream: object) -> bool:
		"""Tells if colors should be written to the given stream."""
		if NO_COLOR:
			return False
		elif FORCE_COLOR:
			return True
		isatty = getattr(stream, "isatty", None)
		return bool(isatty and isatty())


# EOF
