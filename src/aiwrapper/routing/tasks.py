import enum
from typing import Optional


class TaskType(str, enum.Enum):
    """Complexity tier of a request. LOCAL is only ever a routing target."""
    SIMPLE = "SIMPLE"
    MEDIUM = "MEDIUM"
    COMPLEX = "COMPLEX"
    LOCAL = "LOCAL"

    @classmethod
    def parse(cls, value) -> Optional["TaskType"]:
        """Return the tier for a value, or None when it is not a known tier."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None
