import os
import sys
import time
from enum import Enum
from typing import NamedTuple, Any, Callable, TypeAlias
from contextvars import ContextVar
from mypy_extensions import KwArg
from .term import Term



TPrimitive: TypeAlias = (
	None | bool | int | float | str | bytes | list[Any] | tuple[Any, ...] | dict[str, Any]
)

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="yazbg")


class LogType(Enum):
	Message = 0  # A general information message
	Event = 20  # An event, like a request being received


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


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: TPrimitive = None
	context: dict[str, TPrimitive] | None = None
	icon: str | None = None


# The signature shared by `debug`, `info` and `warning`, which is what
# components accept when they take a pluggable logger.
TLogger: TypeAlias = Callable[[str, KwArg(TPrimitive)], LogEntry]


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.RESET}={formatData(v)}" for k, v in value.items()
		)
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


# The minimum level that gets written out
LogThreshold: ContextVar[LogLevel] = ContextVar(
	"LogThreshold",
	default=LogLevel.Debug if os.getenv("YAZBG_DEBUG") == "1" else LogLevel.Info,
)


def send(entry: LogEntry) -> LogEntry:
	if entry.level.value < LogThreshold.get().value:
		return entry
	icon: str = f" {entry.icon}" if entry.icon else ""
	clr: str = Term.Color(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		sys.stderr.write(
			f"{clr}{Term.BOLD}[{entry.origin}] {entry.name}{Term.RESET} {formatData(entry.value)} {formatData(entry.context)}{Term.RESET}\n"
		)
	else:
		code: str = f" [{entry.value}]" if entry.value is not None else ""
		sys.stderr.write(
			f"{clr}{Term.BOLD}[{entry.origin}]{Term.RESET}{icon} {entry.message}{code} {formatData(entry.context)}{Term.RESET}\n"
		)
	sys.stderr.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: TPrimitive = None,
	context: dict[str, TPrimitive],
	icon: str | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		icon=icon,
	)


def debug(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Debug,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def info(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context, icon=icon))


def warning(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Warning,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	icon: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
			icon=icon,
		)
	)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	try:
		stream = sys.stderr
		stream.write(
			f"!!! EXCP {f'{message}: ' if message else ''}[{exception.__class__.__name__}] {exception}\n"
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
		# Swallow all exceptions so that this function can be called from an
		# exception handler safely.
		pass

	# Return the exception so that this function can be called like:
	#   raise exception(e)
	return exception


def logged(item: TLogger) -> bool:
	"""Takes one of the logging functions, and tells if it would currently
	write anything. This is used to guard against building the entry's context
	when not necessary."""
	level: LogLevel = (
		LogLevel.Debug
		if item is debug
		else LogLevel.Warning
		if item is warning
		else LogLevel.Info
	)
	return level.value >= LogThreshold.get().value


# EOF
