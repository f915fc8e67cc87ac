r"""
Argumental argument and option declarations.

Overview
- Declarations
  • ArgumentDeclaration: positional argument (required/optional, single or rest).
  • OptionDeclaration: named option with a short and/or long name, optionally
    carrying a nested ArgumentDeclaration (no argument means a boolean flag).

- Handlers
  • Callback: wraps an action, event, or validator callable together with the way
    it wants its parameters (positional or destructured into a single record).
  • ValidatorParams / ActionParams / EventData: the records handed to handlers.

- Introspection & representation
  • DeclarationType metaclass provides stable __repr__/__rich_repr__/__eq__ built
    from the names listed in __introspectable__, and a hyphenated __typename__
    used in messages.

Declarations are plain mutable records while the builder is running (chained
modifiers such as .required() or .default() update the last declared one) and
are treated as read-only once parsing starts. Deep copies share callables and
compiled patterns, so a global declaration copied into a command still refers
to the same validator objects.

Quick example:
    >>> from argumental.grammar import parse_argument
    >>> argument = parse_argument("[...files]")
    >>> argument.rest, argument.required, argument.label
    (True, False, '[...files]')
"""
import functools
import operator
import re
from typing import NamedTuple

from .utils import *


class DeclarationType(type):
    """
    Metaclass that gives declaration classes a uniform, introspectable shape.

    Responsibilities
    - Derive __typename__ from the class name (camel-case split with hyphens).
    - Provide stable, readable __repr__/__rich_repr__ for diagnostics.
    - Provide field-wise __eq__ over __introspectable__ so declarations compare
      by content (two parses of the same syntax are equal).
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with every introspectable field.
            """
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            """
            Yield (name, object) pairs for pretty printers.
            """
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        @rename("__eq__")
        def __eq__(self, other):
            if type(other) is not type(self):
                return NotImplemented
            return all(getattr(self, name) == getattr(other, name) for name in type(self).__introspectable__)
        self.__eq__ = __eq__
        self.__hash__ = None

        return self


class Callback(metaclass=DeclarationType):
    """
    A handler or validator callable plus its calling convention.

    - destructuring False: the callable receives the record fields positionally
      (only the first __positional__ fields of the record).
    - destructuring True: the callable receives the whole record as one value.
    - sanitizing True: the return value always replaces the validated value,
      None included (validators keep the current value when they return None).

    Callables may be plain functions or coroutine functions; awaiting is the
    engine's job, a Callback only shapes the call.
    """
    __introspectable__ = ("callback", "destructuring", "sanitizing")

    def __init__(self, callback, /, *, destructuring=False, sanitizing=False):
        if not callable(callback):
            raise TypeError("%s target must be callable" % type(self).__typename__)
        self.callback = callback
        self.destructuring = bool(destructuring)
        self.sanitizing = bool(sanitizing)

    def __call__(self, record, /):
        if self.destructuring:
            return self.callback(record)
        return self.callback(*record[:type(record).__positional__])

    def __copy__(self):
        return Callback(self.callback, destructuring=self.destructuring, sanitizing=self.sanitizing)

    def __deepcopy__(self, memo, /):
        # callables are shared, never copied (bound methods would otherwise copy their instance)
        return self.__copy__()


class ValidatorParams(NamedTuple):
    """
    Record handed to validators.

    - value: the current value (possibly produced by a previous validator).
    - name: the argument name, or the option's long (else short) name.
    - arg: True for positional arguments, False for options.
    - cmd: the resolved command name.
    - suspend: call to stop the remaining validators of this field.
    """
    value: object
    name: str
    arg: bool
    cmd: str
    suspend: object

    __positional__ = 5


class ActionParams(NamedTuple):
    """
    Record handed to action handlers.

    Positional handlers receive (args, opts, cmd, suspend); destructuring
    handlers receive the record and can also reach the shared data context.
    """
    args: dict
    opts: dict
    cmd: str
    suspend: object
    data: object

    __positional__ = 4


class EventData(NamedTuple):
    """
    Record handed to lifecycle event handlers (values at the current stage).
    """
    args: dict
    opts: dict
    cmd: str


class ArgumentDeclaration(metaclass=DeclarationType):
    """
    Positional argument declaration.

    Properties
    - name: lower-cased declared name ("file_path").
    - api_name: camelCase key under which the value reaches handlers ("filePath").
    - required: declared with angle brackets.
    - rest: declared with "...", collects every remaining positional token.
    - validators: ordered Callback / re.Pattern list.
    - default: value used when the argument is optional and absent (Unset for none).
    - description: short help text (None for none).
    """
    __introspectable__ = (
        "name",
        "api_name",
        "required",
        "rest",
        "validators",
        "default",
        "description",
    )

    def __init__(self, name, /, *, required=False, rest=False, validators=(), default=Unset, description=None):
        if not isinstance(name, str) or not name:
            raise TypeError("%s name must be a non-empty string" % type(self).__typename__)
        self.name = name
        self.api_name = camelize(name)
        self.required = bool(required)
        self.rest = bool(rest)
        self.validators = list(validators)
        self.default = default
        self.description = description

    @property
    def label(self):
        """
        The syntax form used in messages ("<name>", "[name]", "<...name>").
        """
        name = "..." + self.name if self.rest else self.name
        return "<%s>" % name if self.required else "[%s]" % name


class OptionDeclaration(metaclass=DeclarationType):
    """
    Named option declaration.

    Properties
    - short_name / long_name: names without dashes (at least one is set).
    - api_name: camelCase of long_name, None without a long name.
    - description: short help text (None for none).
    - required: the option must appear on the command line.
    - multi: the option may repeat; its value becomes a list.
    - immediate: the option short-circuits binding/defaults/validation.
    - argument: nested ArgumentDeclaration, or None for a boolean flag.
    """
    __introspectable__ = (
        "short_name",
        "long_name",
        "api_name",
        "description",
        "required",
        "multi",
        "immediate",
        "argument",
    )

    def __init__(
            self,
            *,
            short_name=None,
            long_name=None,
            description=None,
            required=False,
            multi=False,
            immediate=False,
            argument=None
    ):
        if short_name is None and long_name is None:
            raise TypeError("%s must specify at least one name" % type(self).__typename__)
        if argument is not None and not isinstance(argument, ArgumentDeclaration):
            raise TypeError("%s argument must be an argument declaration" % type(self).__typename__)
        self.short_name = short_name
        self.long_name = long_name
        self.api_name = camelize(long_name) if long_name is not None else None
        self.description = description
        self.required = bool(required)
        self.multi = bool(multi)
        self.immediate = bool(immediate)
        self.argument = argument

    @property
    def label(self):
        """
        The spelling used in messages: "--long-name" when available, else "-s".
        """
        if self.long_name is not None:
            return "--" + self.long_name
        return "-" + self.short_name

    @property
    def keys(self):
        """
        The keys under which the value is published to handlers (api name first).
        """
        return tuple(key for key in (self.api_name, self.short_name) if key is not None)

    @property
    def key(self):
        return self.keys[0]

    def collides(self, other, /):
        """
        Whether two options share a short name, a long name, or an api name.
        """
        return any(
            mine is not None and mine == theirs
            for mine, theirs in (
                (self.short_name, other.short_name),
                (self.long_name, other.long_name),
                (self.api_name, other.api_name),
            )
        )


__all__ = (
    "Callback",
    "ValidatorParams",
    "ActionParams",
    "EventData",
    "ArgumentDeclaration",
    "OptionDeclaration",
)
