from typing import ClassVar
import os

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or not NO_COLOR


class Term:
	"""ANSI escape sequences for the console log."""

	BOLD: ClassVar[str] = "\033[1m" if COLOR else ""
	RESET: ClassVar[str] = "\033[0m" if COLOR else ""

	@staticmethod
	def Color(color: int, bold: bool = False) -> str:
		"""Returns the 256-colour foreground sequence for `color`."""
		return f"\033[{'1' if bold else '0'};38;5;{color}m" if COLOR else ""


# EOF
