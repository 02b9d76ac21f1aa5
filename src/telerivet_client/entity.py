# Telerivet REST Client
# File: entity.py
# Version: v4

"""Generic, dirty-tracked representation of one server-side resource.

An ``Entity`` is a bag of fields plus the resource type that knows how to
turn those fields into the entity's canonical path. Reading a field of an
entity created from an identifier alone performs one GET (``get`` may
therefore suspend); writes stay local until ``save``.

Mutating a single Entity from several concurrent tasks is not supported;
callers sharing one instance must synchronize access themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterator, Optional

from .errors import ProtocolError, StaleEntityError

if TYPE_CHECKING:
    from .client import TelerivetClient
    from .resources import ResourceType

logger = logging.getLogger(__name__)

VARS_FIELD = "vars"


class _Absent:
    """Sentinel returned by ``Entity.get`` for fields the server did not send."""

    _instance: Optional["_Absent"] = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


class CustomVars(MutableMapping):
    """Custom variables of an entity (the ``vars`` field).

    Every write is remembered so that ``save`` only sends the variables
    that changed. Deleting a variable sends ``None`` for it, which the
    server treats as removal.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = dict(values or {})
        self._dirty: Dict[str, Any] = {}
        # set by replace_all until the next save; the local values are complete
        self._replaced = False

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._dirty[key] = value

    def __delitem__(self, key: str) -> None:
        del self._values[key]
        self._dirty[key] = None

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"CustomVars({self._values!r})"

    @property
    def is_dirty(self) -> bool:
        return bool(self._dirty)

    def dirty_variables(self) -> Dict[str, Any]:
        return dict(self._dirty)

    def clear_dirty(self) -> None:
        self._dirty.clear()
        self._replaced = False

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def replace_all(self, values: Mapping[str, Any]) -> None:
        """Replace every variable; removed names are sent as ``None``."""
        new_values = dict(values)
        for key in self._values:
            if key not in new_values:
                self._dirty[key] = None
        for key, value in new_values.items():
            self._dirty[key] = value
        self._values = new_values
        self._replaced = True

    def reset(self, values: Optional[Mapping[str, Any]], keep_dirty: bool = True) -> None:
        """Load server values, re-applying unsaved local edits if asked.

        After ``replace_all`` the local values win outright: server
        variables missing from the replacement are marked for removal.
        """
        new_values = dict(values or {})
        if keep_dirty and self._replaced:
            for key in new_values:
                if key not in self._values:
                    self._dirty[key] = None
            new_values = dict(self._values)
        elif keep_dirty:
            for key, value in self._dirty.items():
                if value is None:
                    new_values.pop(key, None)
                else:
                    new_values[key] = value
        else:
            self._dirty.clear()
            self._replaced = False
        self._values = new_values


class Entity:
    """A single resource instance reachable at ``resource_type.entity_path``.

    ``loaded=False`` means only identifying fields are known; the first
    ``get`` fetches the rest. After ``delete`` succeeds the entity is stale
    and every field operation raises ``StaleEntityError``.
    """

    def __init__(
        self,
        client: "TelerivetClient",
        resource_type: "ResourceType",
        fields: Optional[Mapping[str, Any]] = None,
        loaded: bool = True,
    ) -> None:
        self._client = client
        self._resource_type = resource_type
        self._fields: Dict[str, Any] = {}
        self._vars = CustomVars()
        self._has_vars = False
        self._dirty: Dict[str, Any] = {}
        self._loaded = bool(loaded)
        self._stale = False

        self._apply_data(fields or {}, keep_dirty=False)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def client(self) -> "TelerivetClient":
        return self._client

    @property
    def resource_type(self) -> "ResourceType":
        return self._resource_type

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def stale(self) -> bool:
        return self._stale

    @property
    def path(self) -> str:
        """Canonical API path, built from the entity's identifying fields."""
        return self._resource_type.entity_path(self._fields)

    @property
    def fields(self) -> Dict[str, Any]:
        """Copy of the current field mapping (local edits included)."""
        self._ensure_not_stale("read fields of")
        result = dict(self._fields)
        if self._vars_present():
            result[VARS_FIELD] = self._vars.to_dict()
        return result

    @property
    def dirty_fields(self) -> FrozenSet[str]:
        names = set(self._dirty)
        if self._vars.is_dirty:
            names.add(VARS_FIELD)
        return frozenset(names)

    @property
    def vars(self) -> CustomVars:
        """Live custom variables. Never fetches: on an unloaded entity this
        holds only local edits until ``ensure_loaded`` (or any ``get``)
        brings in the server's values."""
        self._ensure_not_stale("read vars of")
        return self._vars

    def to_dict(self) -> Dict[str, Any]:
        return self.fields

    def __repr__(self) -> str:
        ids = ", ".join(
            f"{name}={self._fields.get(name)!r}" for name in self._resource_type.id_fields
        )
        state = "stale" if self._stale else ("loaded" if self._loaded else "unloaded")
        return f"<{self._resource_type.name} {ids} ({state})>"

    def _vars_present(self) -> bool:
        return self._has_vars or bool(self._vars) or self._vars.is_dirty

    def _ensure_not_stale(self, action: str) -> None:
        if self._stale:
            raise StaleEntityError(
                f"Cannot {action} a deleted {self._resource_type.name}",
                path=self._safe_path(),
            )

    def _safe_path(self) -> Optional[str]:
        try:
            return self.path
        except ValueError:
            return None

    def _apply_data(self, data: Mapping[str, Any], keep_dirty: bool) -> None:
        new_fields = dict(data)
        raw_vars = new_fields.get(VARS_FIELD)
        has_vars = VARS_FIELD in new_fields
        if raw_vars is not None and not isinstance(raw_vars, Mapping):
            raise ProtocolError(
                f"Expected '{VARS_FIELD}' to be an object, got {type(raw_vars).__name__}",
                path=self._safe_path(),
            )

        # identifying fields survive responses that omit them
        for name in self._resource_type.id_fields:
            if name not in new_fields and name in self._fields:
                new_fields[name] = self._fields[name]

        if keep_dirty:
            new_fields.update(self._dirty)
        else:
            self._dirty.clear()

        self._fields = new_fields
        self._vars.reset(raw_vars, keep_dirty=keep_dirty)
        self._has_vars = has_vars

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    async def get(self, name: str, default: Any = ABSENT) -> Any:
        """Return a field value, hydrating the entity first if needed.

        Fields missing from the server's representation yield ``default``
        (``ABSENT`` unless given). Cached values are never refreshed
        implicitly; use ``reload`` for that.
        """
        self._ensure_not_stale("read")
        if not self._loaded:
            await self._load()

        if name == VARS_FIELD:
            return self._vars.to_dict() if self._vars_present() else default
        if name in self._fields:
            return self._fields[name]
        return default

    def set(self, name: str, value: Any) -> None:
        """Change a field locally; nothing is sent until ``save``."""
        self._ensure_not_stale("modify")
        if name == VARS_FIELD:
            self._vars.replace_all(value or {})
            self._has_vars = True
            return
        self._fields[name] = value
        self._dirty[name] = value

    def dirty_payload(self) -> Dict[str, Any]:
        """Request body ``save`` would send right now."""
        payload = dict(self._dirty)
        dirty_vars = self._vars.dirty_variables()
        if dirty_vars:
            payload[VARS_FIELD] = dirty_vars
        return payload

    # ------------------------------------------------------------------
    # Network operations
    # ------------------------------------------------------------------

    async def _load(self) -> None:
        path = self.path
        data = await self._client.request("GET", path)
        if not isinstance(data, Mapping):
            raise ProtocolError(
                f"Expected a JSON object for {self._resource_type.name}, "
                f"got {type(data).__name__}",
                method="GET",
                path=path,
            )
        self._apply_data(data, keep_dirty=True)
        self._loaded = True
        logger.debug("Loaded %s from %s", self._resource_type.name, path)

    async def ensure_loaded(self) -> "Entity":
        """Hydrate now if this entity was created from an identifier only."""
        self._ensure_not_stale("load")
        if not self._loaded:
            await self._load()
        return self

    async def reload(self) -> "Entity":
        """Fetch the server's current state; unsaved edits are kept on top."""
        self._ensure_not_stale("reload")
        await self._load()
        return self

    async def save(self) -> "Entity":
        """Send only the dirty fields (and dirty custom variables).

        Does nothing when nothing changed. On failure the dirty state is
        left untouched so ``save`` can simply be retried.
        """
        self._ensure_not_stale("save")
        payload = self.dirty_payload()
        if not payload:
            return self

        path = self.path
        data = await self._client.request("POST", path, payload)

        if isinstance(data, Mapping) and data:
            self._apply_data(data, keep_dirty=False)
            self._loaded = True
        else:
            # nothing authoritative came back; local values stand
            self._dirty.clear()
        self._vars.clear_dirty()

        logger.debug(
            "Saved %s fields %s to %s",
            self._resource_type.name,
            sorted(payload),
            path,
        )
        return self

    async def delete(self) -> None:
        """Delete the resource; the entity is stale afterwards."""
        self._ensure_not_stale("delete")
        path = self.path
        await self._client.request("DELETE", path)
        self._stale = True
        logger.debug("Deleted %s at %s", self._resource_type.name, path)

    async def request(
        self,
        method: str,
        suffix: str = "",
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Call a resource-specific endpoint below this entity's path."""
        self._ensure_not_stale("call")
        return await self._client.request(method, self.path + suffix, params)
