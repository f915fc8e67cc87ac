"""
Tagged values flowing through an invocation.

Bound values
- Absent        the argument/option never appeared on the command line.
- Missing       the option appeared but its (optional) value was omitted.
- Flag(state)   presence state of an option without argument.
- Value(object) a concrete value (raw token, default, or validator result).
- Multi(items)  ordered per-occurrence values of a multi option (each item is
                a Missing or a Value).

Handlers never see the tags: materialize() turns them into plain Python values
following the three-state contract of options with an argument
(Unset: never provided, None: provided without value, object: provided value).

Validator outcomes
- Continue(value)  keep running the field's validators with value.
- Suspend(value)   stop the field's validators, keep value.
- Fail(message)    abort the invocation with a user-facing message.
"""
import functools
from typing import final

from rich.text import Text

from .utils import Unset

# Bound values block attribute assignment; records initialize their slots through this.
_initialize = object.__setattr__


class Bound:
    """
    Base type of every bound value tag.

    Subclasses are tiny immutable records; they define __match_args__ so the
    engine can interpret them with structural pattern matching.
    """
    __slots__ = ()

    def __setattr__(self, name, value, /):
        raise AttributeError("bound values are immutable")

    def __delattr__(self, name, /):
        raise AttributeError("bound values are immutable")


@final
class AbsentType(Bound):
    """
    Singleton tag for a value that never appeared on the command line.
    """
    __slots__ = ()

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Absent"

    def __rich__(self):
        return Text("Absent", style="dim")

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self


@final
class MissingType(Bound):
    """
    Singleton tag for an option provided without its optional value.
    """
    __slots__ = ()

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Missing"

    def __rich__(self):
        return Text("Missing", style="dim")

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self


@final
class Flag(Bound):
    __slots__ = ("state",)
    __match_args__ = ("state",)

    def __init__(self, state, /):
        _initialize(self, "state", bool(state))

    def __eq__(self, other):
        if not isinstance(other, Flag):
            return NotImplemented
        return self.state == other.state

    def __hash__(self):
        return hash((Flag, self.state))

    def __repr__(self):
        return "Flag(%r)" % self.state


@final
class Value(Bound):
    __slots__ = ("object",)
    __match_args__ = ("object",)

    def __init__(self, object, /):
        _initialize(self, "object", object)

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        return self.object == other.object

    __hash__ = None

    def __repr__(self):
        return "Value(%r)" % (self.object,)


@final
class Multi(Bound):
    __slots__ = ("items",)
    __match_args__ = ("items",)

    def __init__(self, items=(), /):
        items = tuple(items)
        if not all(item is Missing or isinstance(item, Value) for item in items):
            raise TypeError("multi items must be Missing or Value instances")
        _initialize(self, "items", items)

    def append(self, item, /):
        """
        Return a new Multi with one more occurrence (bound values are immutable).
        """
        return Multi(self.items + (item,))

    def __eq__(self, other):
        if not isinstance(other, Multi):
            return NotImplemented
        return self.items == other.items

    __hash__ = None

    def __len__(self):
        return len(self.items)

    def __repr__(self):
        return "Multi(%r)" % (list(self.items),)


Absent = AbsentType()
Missing = MissingType()


def materialize(bound, /, *, positional=False, parametric=True):
    """
    Turn a bound value tag into the plain value handed to handlers.

    parameters
    - bound: Bound
      the tag to convert.
    - positional: bool
      True for positional arguments (absent arguments become None).
    - parametric: bool
      False for options without argument (absent flags become False).

    returns
    - the plain value (see the module docstring for the mapping).
    """
    match bound:
        case AbsentType():
            if positional:
                return None
            return Unset if parametric else False
        case MissingType():
            return None
        case Flag(state):
            return state
        case Value(object):
            return object
        case Multi(items):
            return [materialize(item) for item in items]
    raise TypeError("materialize() argument must be a bound value, not %s" % type(bound).__name__)


class Outcome:
    """
    Base type of normalized validator results.
    """
    __slots__ = ()


@final
class Continue(Outcome):
    __slots__ = ("value",)
    __match_args__ = ("value",)

    def __init__(self, value, /):
        self.value = value

    def __eq__(self, other):
        if not isinstance(other, Continue):
            return NotImplemented
        return self.value == other.value

    __hash__ = None

    def __repr__(self):
        return "Continue(%r)" % (self.value,)


@final
class Suspend(Outcome):
    __slots__ = ("value",)
    __match_args__ = ("value",)

    def __init__(self, value, /):
        self.value = value

    def __eq__(self, other):
        if not isinstance(other, Suspend):
            return NotImplemented
        return self.value == other.value

    __hash__ = None

    def __repr__(self):
        return "Suspend(%r)" % (self.value,)


@final
class Fail(Outcome):
    __slots__ = ("message",)
    __match_args__ = ("message",)

    def __init__(self, message, /):
        if not isinstance(message, str):
            raise TypeError("Fail() message must be a string")
        self.message = message

    def __eq__(self, other):
        if not isinstance(other, Fail):
            return NotImplemented
        return self.message == other.message

    __hash__ = None

    def __repr__(self):
        return "Fail(%r)" % self.message


__all__ = (
    "Bound",
    "AbsentType",
    "MissingType",
    "Absent",
    "Missing",
    "Flag",
    "Value",
    "Multi",
    "materialize",
    "Outcome",
    "Continue",
    "Suspend",
    "Fail",
)
