# Telerivet REST Client
# File: client.py
# Version: v5
"""Root object of the Telerivet client.

Implements:

- configuration layering (explicit options over TELERIVET_* env vars)
- make_entity() / make_cursor() factories shared by every resource kind
- get_by_id() / init_by_id() / query() / create() for any ResourceType
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from .config import ClientConfig
from .cursor import Cursor
from .entity import Entity
from .resources import ResourceType, wrap_response
from .transport import Transport

logger = logging.getLogger(__name__)


class TelerivetClient:
    """Shared, read-only configuration plus the transport built from it.

    Entities and cursors keep a reference to the client that made them;
    the client must outlive them. One client may be shared by any number
    of entities, cursors and tasks.

    Example:
        client = TelerivetClient("my-api-key")
        project = await client.get_by_id(PROJECT, id="PJ123")
        async for contact in client.query(CONTACT, {"project_id": "PJ123"}):
            ...
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        ca_bundle: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        base = config if config is not None else ClientConfig.from_env()
        self._config = base.replace(
            api_key=api_key,
            api_url=api_url,
            timeout=timeout,
            retries=retries,
            ca_bundle=ca_bundle,
        )
        self._transport = Transport(self._config, http_transport=http_transport)
        logger.debug("Telerivet client configured for %s", self._config.base_url)

    def __repr__(self) -> str:
        return f"<TelerivetClient {self._config.base_url}>"

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def transport(self) -> Transport:
        return self._transport

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        idempotent: Optional[bool] = None,
    ) -> Any:
        """Raw JSON request against the API; see ``Transport.request``."""
        return await self._transport.request(
            method, path, params, idempotent=idempotent
        )

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    def make_entity(
        self,
        resource_type: ResourceType,
        fields: Optional[Mapping[str, Any]] = None,
        loaded: bool = True,
    ) -> Any:
        """Build an entity, passed through ``resource_type.wrap`` if set."""
        entity = Entity(self, resource_type, fields, loaded=loaded)
        if resource_type.wrap is not None:
            return resource_type.wrap(entity)
        return entity

    def make_cursor(
        self,
        resource_type: ResourceType,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
    ) -> Cursor:
        return Cursor(self, resource_type, path, query)

    # ------------------------------------------------------------------
    # Generic lookups
    # ------------------------------------------------------------------

    async def get_by_id(self, resource_type: ResourceType, **ids: Any) -> Any:
        """Fetch one resource now (one GET)."""
        entity = Entity(self, resource_type, ids, loaded=False)
        await entity.ensure_loaded()
        if resource_type.wrap is not None:
            return resource_type.wrap(entity)
        return entity

    def init_by_id(self, resource_type: ResourceType, **ids: Any) -> Any:
        """Reference a resource without fetching it; fields load on first get."""
        # fail fast on missing identifying fields
        resource_type.entity_path(ids)
        return self.make_entity(resource_type, ids, loaded=False)

    def query(
        self,
        resource_type: ResourceType,
        scope: Optional[Mapping[str, Any]] = None,
        **query: Any,
    ) -> Cursor:
        """Cursor over the collection of ``resource_type`` within ``scope``."""
        path = resource_type.collection_path(scope)
        return self.make_cursor(resource_type, path, query)

    async def create(
        self,
        resource_type: ResourceType,
        fields: Mapping[str, Any],
        scope: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """POST to the collection; returns the created (or matched) resource.

        Several collections (contacts, groups, labels, tables) treat this as
        get-or-create.
        """
        path = resource_type.collection_path(scope)
        data = await self.request("POST", path, dict(fields))
        return wrap_response(self, resource_type, data, "POST", path, scope=scope)
