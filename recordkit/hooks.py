"""Per-entity lifecycle hooks."""

from typing import Any


class Hooks:
    """Override points called by ActiveRecord; the defaults allow everything and change nothing.

    Subclass and pass an instance to ActiveRecord (or Database.records) to add
    per-entity behaviour, e.g. hashing passwords or protecting a seed row::

        class UserHooks(Hooks):
            def before_delete(self, id):
                return id != 1
    """

    def before_save(self, data: dict[str, Any], insert: bool) -> bool:
        """Called with the filtered, audit-filled data; mutate it in place. Return False to veto."""
        return True

    def after_save(self, insert: bool, data: dict[str, Any]) -> None:
        """Called after a successful write; on insert data carries the new primary key."""

    def before_delete(self, id: Any) -> bool:
        """Return False to veto deleting the row with this id."""
        return True

    def after_delete(self, id: Any) -> None:
        """Called after a successful delete."""

    def after_load(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Transform fetched rows (e.g. type coercion) before relations and hidden fields are handled."""
        return rows


DEFAULT_HOOKS = Hooks()
