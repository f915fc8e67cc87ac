"""
Built-in validators.

A validator receives (value, name, arg, cmd, suspend) and either returns a
replacement value, returns None to keep the current one, raises (or returns)
an exception to fail the invocation, or calls suspend() to stop the rest of
the field's pipeline.

The builder does not inherit these: it is composed with a ValidatorProvider
(BuiltinValidators by default) and exposes the provider's validators as its
own upper-case attributes (app.NUMBER, app.FILE_PATH...).
"""
import os
import re
from typing import Protocol, runtime_checkable

_NUMBER = re.compile(r"-?\d+(\.\d+)?")
_BOOLEANS = ("true", "false")


@runtime_checkable
class ValidatorProvider(Protocol):
    """
    Capability exposing named validators to the builder.
    """

    def STRING(self, value, name, arg, cmd=None, suspend=None): ...

    def NUMBER(self, value, name, arg, cmd=None, suspend=None): ...

    def BOOLEAN(self, value, name, arg, cmd=None, suspend=None): ...

    def FILE_PATH(self, value, name, arg, cmd=None, suspend=None): ...

    def STRINGS(self, value, name, arg, cmd=None, suspend=None): ...

    def NUMBERS(self, value, name, arg, cmd=None, suspend=None): ...

    def BOOLEANS(self, value, name, arg, cmd=None, suspend=None): ...


def _invalid(name, arg, requirement):
    return ValueError("Invalid value for %s %s!\n   Value must be %s." % ("argument" if arg else "option", name, requirement))


def _is_string(value):
    if not isinstance(value, str):
        return False
    text = value.strip()
    return text.lower() not in _BOOLEANS and not _NUMBER.fullmatch(text)


def _to_number(value):
    """
    Return the number a value stands for, or None when it is not numeric.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return value
    if isinstance(value, str):
        text = value.strip()
        if match := _NUMBER.fullmatch(text):
            return float(text) if match[1] else int(text)
    return None


def _to_boolean(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _BOOLEANS:
        return value.strip().lower() == "true"
    return None


class BuiltinValidators:
    """
    Default ValidatorProvider.

    - STRING    plain text that does not read as a number or a boolean.
    - NUMBER    ints, floats and numeric strings; casts strings to int/float.
    - BOOLEAN   bools and "true"/"false" (any case); casts strings to bool.
    - FILE_PATH an existing, readable path relative to the working directory.
    - STRINGS / NUMBERS / BOOLEANS apply the singular rule to every element
      of a list value (rest arguments, multi options).
    """

    def STRING(self, value, name, arg, cmd=None, suspend=None):
        if not _is_string(value):
            raise _invalid(name, arg, "string")

    def NUMBER(self, value, name, arg, cmd=None, suspend=None):
        number = _to_number(value)
        if number is None:
            raise _invalid(name, arg, "a number")
        return number

    def BOOLEAN(self, value, name, arg, cmd=None, suspend=None):
        boolean = _to_boolean(value)
        if boolean is None:
            raise _invalid(name, arg, "boolean")
        return boolean

    def FILE_PATH(self, value, name, arg, cmd=None, suspend=None):
        if not isinstance(value, str):
            raise _invalid(name, arg, "a file path")
        path = os.path.join(os.getcwd(), value)
        if not os.path.exists(path):
            reason = "File doesn't exist"
        elif not os.access(path, os.R_OK):
            reason = "File cannot be read"
        else:
            return None
        raise ValueError("Invalid file path for %s %s!\n   %s." % ("argument" if arg else "option", name, reason))

    def STRINGS(self, value, name, arg, cmd=None, suspend=None):
        if not isinstance(value, list) or not all(map(_is_string, value)):
            raise _invalid(name, arg, "multiple strings")

    def NUMBERS(self, value, name, arg, cmd=None, suspend=None):
        numbers = list(map(_to_number, value)) if isinstance(value, list) else [None]
        if None in numbers:
            raise _invalid(name, arg, "multiple numbers")
        return numbers

    def BOOLEANS(self, value, name, arg, cmd=None, suspend=None):
        booleans = list(map(_to_boolean, value)) if isinstance(value, list) else [None]
        if None in booleans:
            raise _invalid(name, arg, "multiple booleans")
        return booleans


__all__ = (
    "ValidatorProvider",
    "BuiltinValidators",
)
