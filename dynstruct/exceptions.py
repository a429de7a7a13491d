"""Exception hierarchy for dynstruct.

Every error derives from :class:`StructError` and from the builtin that
plain Python code would raise in the same situation, so callers can catch
either one.
"""


class StructError(Exception):
    """Base class for all dynstruct errors."""


class NotBuiltError(StructError, RuntimeError):
    """Raised when an operation needs a built struct."""


class InvalidFieldNameError(StructError, ValueError):
    pass


class DuplicateFieldError(StructError, ValueError):
    pass


class AnonymousFieldError(StructError, ValueError):
    pass


class UnsupportedTypeError(StructError, TypeError):
    pass


class UnhashableKeyError(StructError, TypeError):
    """Raised when a mapping field is declared with a non-comparable key type."""


class FieldNotFoundError(StructError, AttributeError):
    pass


class KindMismatchError(StructError, TypeError):
    """Raised when a value's kind does not match the field it is assigned to."""


class FrozenRecordError(StructError, AttributeError):
    pass


class ScanError(StructError, TypeError):
    """Raised when scan_into is given a source or destination that is not a record."""


class EncodeError(StructError, ValueError):
    pass


class DecodeError(StructError, ValueError):
    """Raised when JSON input cannot be decoded into a record."""


class FieldIndexError(StructError, IndexError):
    """Raised when a field position is out of range."""
