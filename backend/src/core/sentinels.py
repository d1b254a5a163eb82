from typing import Any, Dict


class MissingType:
    """
    Marker for a settings field the caller did not send.

    Partial settings updates need three cases per field: omitted (keep the
    stored value), None (clear an optional value such as min_notice_hours)
    and a concrete value.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo: Any):
        return self


MISSING = MissingType()


def provided_fields(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop entries left as MISSING, keeping explicit Nones."""
    return {key: value for key, value in values.items() if value is not MISSING}
