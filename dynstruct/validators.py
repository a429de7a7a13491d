from typing import Any, Callable, Dict, List, Mapping, Optional

Validator = Callable[[Any], Any]


class ValidatorMap:
    """Ordered validation callbacks keyed by field name.

    A validator receives the value and signals failure either by returning
    an exception instance or by raising ``ValueError``/``TypeError``. Any
    other return value counts as a pass. Keep one map per logical schema and
    pass it to whatever needs it.
    """

    def __init__(self) -> None:
        self._validators: Dict[str, List[Validator]] = {}

    def add(self, field: str, validator: Validator) -> None:
        """Append ``validator`` to the validators of ``field``."""
        self._validators.setdefault(field, []).append(validator)

    def set(self, field: str, validator: Validator) -> None:
        """Replace every validator of ``field`` with ``validator``."""
        self._validators[field] = [validator]

    def remove(self, field: str) -> None:
        self._validators.pop(field, None)

    def validate(self, field: str, value: Any) -> Optional[Exception]:
        """Run the validators of ``field`` in order and return the first error."""
        for validator in self._validators.get(field, ()):
            try:
                result = validator(value)
            except (ValueError, TypeError) as exc:
                return exc
            if isinstance(result, Exception):
                return result
        return None

    def check(self, field: str, value: Any) -> None:
        """Like :meth:`validate`, but raise the first error."""
        error = self.validate(field, value)
        if error is not None:
            raise error

    def validate_all(self, values: Mapping[str, Any]) -> Dict[str, Exception]:
        """Validate every item of ``values``, returning the failures by field."""
        errors = {}
        for field, value in values.items():
            error = self.validate(field, value)
            if error is not None:
                errors[field] = error
        return errors

    def register(self, *field_names: str) -> Callable[[Validator], Validator]:
        """Decorator adding the function as a validator for one or more fields."""
        if not all(isinstance(name, str) for name in field_names):
            raise TypeError("validator field names must be strings.")

        def decorator(func: Validator) -> Validator:
            for name in field_names:
                self.add(name, func)
            return func

        return decorator

    def fields(self) -> List[str]:
        return list(self._validators)

    def __contains__(self, field: object) -> bool:
        return field in self._validators

    def __len__(self) -> int:
        return len(self._validators)

    def __repr__(self) -> str:
        counts = ", ".join(f"{f}={len(v)}" for f, v in self._validators.items())
        return f"ValidatorMap({counts})"
