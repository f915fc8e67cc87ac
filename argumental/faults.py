"""
Argumental faults (declaration errors, invocation errors) and rendering.

Scope
- DeclarationError: programmer mistakes detected while building the declaration
  table (invalid syntax, duplicates, bad sequencing). Raised synchronously and
  meant to crash program startup. Messages carry the stable "ARGUMENTAL_ERROR: "
  prefix followed by a human message naming the offending syntax or name.
- FaultCode: canonical, stable numeric identifiers for all user-facing
  invocation errors. Codes are grouped by domain to keep copy consistent and
  make logs/searches predictable.
- CommandException: base type of invocation errors; carries message + options
  and knows how to render itself in a friendly, lowercased, actionable way.
- trigger(): central entry point to surface a fault on the stderr console.

UX goals
- Soft but technical language: short titles, one-sentence bodies, a single clear hint.
- Lowercased tone with readable styling (configurable via __styles__ in __main__).

Integration
- The engine raises CommandException subclasses internally; the parse() boundary
  catches them and hands them to the host fallback, or to trigger() when none is set.
- Nothing here calls sys.exit: the host decides how to terminate.
"""
import copy
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)

PREFIX = "ARGUMENTAL_ERROR"


class DeclarationError(ValueError):
    """
    construction-time (programmer) error raised by the builder and the grammar.

    the message always starts with "ARGUMENTAL_ERROR: ", so tooling can tell
    declaration problems apart from any other ValueError.
    """

    def __init__(self, message, /):
        assert isinstance(message, str)
        super().__init__("%s: %s" % (PREFIX, message))


class FaultCode(IntEnum):
    """
    canonical fault codes used across the engine (stable identifiers).

    grouping (by high-level domain)
    - routing (2110x)
      • COMMAND_NOT_FOUND
    - options (2111x)
      • UNKNOWN_OPTION, DUPLICATED_OPTION, OPTION_VALUE_REQUIRED, MISSING_OPTION
    - positionals (2112x)
      • ARGS_EXCEEDED, MISSING_ARGUMENT
    - validation (2113x)
      • TYPE_MISMATCH, VALIDATION_FAILED
    - delegated (2114x)
      • DELEGATED_ERROR

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- routing errors ---
    COMMAND_NOT_FOUND     = 21101

    # --- option errors ---
    UNKNOWN_OPTION        = 21111
    DUPLICATED_OPTION     = 21112
    OPTION_VALUE_REQUIRED = 21113
    MISSING_OPTION        = 21114

    # --- positional errors ---
    ARGS_EXCEEDED         = 21121
    MISSING_ARGUMENT      = 21122

    # --- validation errors ---
    TYPE_MISMATCH         = 21131
    VALIDATION_FAILED     = 21132

    # --- delegated errors ---
    DELEGATED_ERROR       = 21141

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    base invocation (user) error.

    subclasses pin their fault code and title through the __fault__ and
    __title__ class attributes; any option passed at construction or through
    copy.replace() overrides them.

    recognized options
    - code, title, hint: header and hint line
    - prog: program name shown in the header
    - colorful, fancy: rendering switches
    - any context the reporter may want to keep (input, argument, expected, got...)
    """
    __fault__ = Unset
    __title__ = "command error"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType({
            "code": type(self).__fault__,
            "title": type(self).__title__,
            "hint": None,
            "prog": None,
            "colorful": True,
            "fancy": False,
        } | options)

    @property
    def code(self):
        return self.options["code"]

    def __str__(self):
        return "" if self.message is Unset else self.message

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def styler(style):
            return styles[style] if self.options["colorful"] else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not self.options["colorful"]:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        prog = text(getattr(main, "__prog__", self.options["prog"]) or "argumental", styler("prog-name"))
        code = self.options["code"]

        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(code.normalize() if isinstance(code, FaultCode) else "?", styler("code")),
            " | ",
            text(self.options["title"].title(), styler("error-title")),
            " ]"
        )
        message = text(str(self), styler("error-message"))

        parts = [message]
        if self.options["hint"]:
            parts.append(Text.assemble(text(" → ", styler("hint-arrow")), text(self.options["hint"], styler("hint"))))

        if self.options["fancy"]:
            return Panel(Group(*parts), title=header, title_align="left")

        return Group(header, *parts)

    def __trigger__(self):
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        fault = type(self)(self.message, **{**self.options, **overrides})
        fault.__cause__ = self.__cause__
        return fault


class UnknownCommandError(CommandException):
    __fault__ = FaultCode.COMMAND_NOT_FOUND
    __title__ = "unknown command"


class UnknownOptionError(CommandException):
    __fault__ = FaultCode.UNKNOWN_OPTION
    __title__ = "unknown option"


class DuplicatedOptionError(CommandException):
    __fault__ = FaultCode.DUPLICATED_OPTION
    __title__ = "duplicated option"


class OptionValueRequiredError(CommandException):
    __fault__ = FaultCode.OPTION_VALUE_REQUIRED
    __title__ = "option value required"


class MissingOptionError(CommandException):
    __fault__ = FaultCode.MISSING_OPTION
    __title__ = "missing option"


class ArgumentsExceededError(CommandException):
    __fault__ = FaultCode.ARGS_EXCEEDED
    __title__ = "too many arguments"


class MissingArgumentError(CommandException):
    __fault__ = FaultCode.MISSING_ARGUMENT
    __title__ = "missing argument"


class TypeMismatchError(CommandException):
    __fault__ = FaultCode.TYPE_MISMATCH
    __title__ = "invalid value"


class ValidationError(CommandException):
    __fault__ = FaultCode.VALIDATION_FAILED
    __title__ = "validation failed"


class DelegatedCommandError(CommandException):
    __fault__ = FaultCode.DELEGATED_ERROR
    __title__ = "delegated error"


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see CommandException).
    - options are merged into the fault via copy.replace(fault, **options) before triggering.
    - rendering happens on the stderr rich console; nothing is raised.

    typical options
    - prog, colorful, fancy, hint, and any other context the reporter may want to show.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


__all__ = (
    "PREFIX",
    "DeclarationError",
    "FaultCode",
    "CommandException",
    "UnknownCommandError",
    "UnknownOptionError",
    "DuplicatedOptionError",
    "OptionValueRequiredError",
    "MissingOptionError",
    "ArgumentsExceededError",
    "MissingArgumentError",
    "TypeMismatchError",
    "ValidationError",
    "DelegatedCommandError",
    "trigger",
)
