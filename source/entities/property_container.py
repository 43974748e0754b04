"""PropertyContainer module."""
from typing import Any, Iterable, Mapping

from errors import UnknownFieldError


class PropertyContainer:
    """Record with a fixed field schema and dirty tracking.

    Subclasses declare ``default_properties`` as an ordered mapping of field names to default values.
    """

    default_properties: Mapping[str, Any] = {}

    def __init__(self, properties: Mapping[str, Any] | None = None) -> None:
        """init."""
        self._properties: dict[str, Any] = dict(self.default_properties)
        self._modified_fields: set[str] = set()
        if properties:
            self.set_properties(properties)

    def get(self, name: str) -> Any:
        """Get current field value."""
        self._assert_known(name)
        return self._properties[name]

    def set(self, name: str, value: Any) -> "PropertyContainer":
        """Set field value, marking it dirty if it changed."""
        self._assert_known(name)
        current = self._properties[name]
        if type(current) is type(value) and current == value:
            return self
        self._properties[name] = value
        self._modified_fields.add(name)
        return self

    def set_properties(self, properties: Mapping[str, Any]) -> "PropertyContainer":
        """Set several fields at once."""
        for name, value in properties.items():
            self.set(name, value)
        return self

    def list_properties(self) -> Iterable[str]:
        """List declared field names."""
        return self.default_properties.keys()

    def has_been_modified(self) -> bool:
        """Check whether any field changed since last load or store."""
        return bool(self._modified_fields)

    def modified_fields(self) -> frozenset[str]:
        """Get names of fields changed since last load or store."""
        return frozenset(self._modified_fields)

    def modified_properties(self) -> dict[str, Any]:
        """Get changed fields with their current values."""
        return {name: self._properties[name] for name in self.list_properties() if name in self._modified_fields}

    def mark_modified(self, name: str) -> None:
        """Force field to be written on next store."""
        self._assert_known(name)
        self._modified_fields.add(name)

    def mark_unmodified(self) -> None:
        """Forget dirty state, values are kept."""
        self._modified_fields.clear()

    def all_fields_for_persistence(self) -> dict[str, Any]:
        """Get all current field values."""
        return dict(self._properties)

    def _assert_known(self, name: str) -> None:
        if name not in self.default_properties:
            raise UnknownFieldError(type(self).__name__, name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._properties!r})"
