# Telerivet REST Client
# File: resources.py
# Version: v3

"""Resource kinds and the few resource-specific verbs built on top of them.

A resource kind is plain data: a name, a path template whose placeholders
are the entity's identifying fields, and an optional ``wrap`` callable that
turns a generic ``Entity`` into whatever facade a caller prefers. Entities
and cursors never look past this descriptor.

    CONTACT.entity_path({"project_id": "PJ1", "id": "CT1"})
        -> "/projects/PJ1/contacts/CT1"
    CONTACT.collection_path({"project_id": "PJ1"})
        -> "/projects/PJ1/contacts"
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

from .errors import ProtocolError

if TYPE_CHECKING:
    from .client import TelerivetClient
    from .entity import Entity

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def _fill(template: str, values: Mapping[str, Any], kind: str) -> str:
    def substitute(match: "re.Match[str]") -> str:
        name = match.group(1)
        value = values.get(name)
        if value is None or value == "":
            raise ValueError(f"{kind} requires '{name}' to build its API path")
        return quote(str(value), safe="")

    return _PLACEHOLDER_RE.sub(substitute, template)


@dataclass(frozen=True)
class ResourceType:
    """Descriptor for one kind of server-side resource."""

    name: str
    path_template: str
    wrap: Optional[Callable[["Entity"], Any]] = field(default=None, compare=False)

    @property
    def id_fields(self) -> Tuple[str, ...]:
        return tuple(_PLACEHOLDER_RE.findall(self.path_template))

    @property
    def key_field(self) -> str:
        """Field holding the entity's own id (the last placeholder)."""
        return self.id_fields[-1]

    @property
    def scope_fields(self) -> Tuple[str, ...]:
        return self.id_fields[:-1]

    @property
    def collection_template(self) -> str:
        return self.path_template.rsplit("/", 1)[0]

    def entity_path(self, fields: Mapping[str, Any]) -> str:
        return _fill(self.path_template, fields, self.name)

    def collection_path(self, scope: Optional[Mapping[str, Any]] = None) -> str:
        return _fill(self.collection_template, scope or {}, self.name)


ORGANIZATION = ResourceType("Organization", "/organizations/{id}")
PROJECT = ResourceType("Project", "/projects/{id}")
CONTACT = ResourceType("Contact", "/projects/{project_id}/contacts/{id}")
MESSAGE = ResourceType("Message", "/projects/{project_id}/messages/{id}")
BROADCAST = ResourceType("Broadcast", "/projects/{project_id}/broadcasts/{id}")
SCHEDULED_MESSAGE = ResourceType(
    "ScheduledMessage", "/projects/{project_id}/scheduled/{id}"
)
GROUP = ResourceType("Group", "/projects/{project_id}/groups/{id}")
LABEL = ResourceType("Label", "/projects/{project_id}/labels/{id}")
PHONE = ResourceType("Phone", "/projects/{project_id}/phones/{id}")
ROUTE = ResourceType("Route", "/projects/{project_id}/routes/{id}")
SERVICE = ResourceType("Service", "/projects/{project_id}/services/{id}")
DATA_TABLE = ResourceType("DataTable", "/projects/{project_id}/tables/{id}")
DATA_ROW = ResourceType(
    "DataRow", "/projects/{project_id}/tables/{table_id}/rows/{id}"
)
CONTACT_SERVICE_STATE = ResourceType(
    "ContactServiceState",
    "/projects/{project_id}/services/{service_id}/states/{contact_id}",
)

RESOURCE_TYPES: Dict[str, ResourceType] = {
    rt.name: rt
    for rt in (
        ORGANIZATION,
        PROJECT,
        CONTACT,
        MESSAGE,
        BROADCAST,
        SCHEDULED_MESSAGE,
        GROUP,
        LABEL,
        PHONE,
        ROUTE,
        SERVICE,
        DATA_TABLE,
        DATA_ROW,
        CONTACT_SERVICE_STATE,
    )
}


def get_resource_type(name: str) -> ResourceType:
    try:
        return RESOURCE_TYPES[name]
    except KeyError:
        raise KeyError(f"Unknown resource type: {name!r}") from None


# ---------------------------------------------------------------------------
# Response wrapping
# ---------------------------------------------------------------------------


def wrap_response(
    client: "TelerivetClient",
    resource_type: ResourceType,
    data: Any,
    method: str,
    path: str,
    scope: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Turn a JSON object from the server into a loaded entity.

    ``scope`` fills in identifying fields the response leaves out.
    """
    if not isinstance(data, Mapping):
        raise ProtocolError(
            f"Expected a JSON object describing a {resource_type.name}",
            method=method,
            path=path,
        )
    fields = dict(scope or {})
    fields.update(data)
    return client.make_entity(resource_type, fields, loaded=True)


async def _post_and_wrap(
    client: "TelerivetClient",
    resource_type: ResourceType,
    path: str,
    options: Optional[Mapping[str, Any]],
    scope: Optional[Mapping[str, Any]] = None,
    idempotent: Optional[bool] = None,
) -> Any:
    data = await client.request(
        "POST", path, dict(options or {}), idempotent=idempotent
    )
    return wrap_response(client, resource_type, data, "POST", path, scope=scope)


# ---------------------------------------------------------------------------
# Project-scoped verbs
# ---------------------------------------------------------------------------
# Verbs that create messages pass idempotent=False: a POST is never repeated.


def _project_path(project_id: str, suffix: str) -> str:
    return PROJECT.entity_path({"id": project_id}) + suffix


async def send_message(
    client: "TelerivetClient", project_id: str, **options: Any
) -> Any:
    """Send one message (SMS, voice call or USSD request)."""
    return await _post_and_wrap(
        client,
        MESSAGE,
        _project_path(project_id, "/messages/send"),
        options,
        scope={"project_id": project_id},
        idempotent=False,
    )


async def send_broadcast(
    client: "TelerivetClient", project_id: str, **options: Any
) -> Any:
    """Send one message to a group or list of numbers."""
    return await _post_and_wrap(
        client,
        BROADCAST,
        _project_path(project_id, "/send_broadcast"),
        options,
        scope={"project_id": project_id},
        idempotent=False,
    )


async def send_multi(
    client: "TelerivetClient", project_id: str, **options: Any
) -> Any:
    """Send up to 100 different messages in one request.

    Returns the raw result: ``messages`` (id and status of each, in request
    order) and ``broadcast_id`` when one was requested.
    """
    return await client.request(
        "POST", _project_path(project_id, "/send_multi"), options, idempotent=False
    )


async def send_messages(
    client: "TelerivetClient", project_id: str, **options: Any
) -> Any:
    """Older batch send to a group or list of numbers.

    Returns ``count_queued`` and ``broadcast_id``. Prefer ``send_broadcast``
    or ``send_multi``.
    """
    return await client.request(
        "POST",
        _project_path(project_id, "/messages/send_batch"),
        options,
        idempotent=False,
    )


async def schedule_message(
    client: "TelerivetClient", project_id: str, **options: Any
) -> Any:
    return await _post_and_wrap(
        client,
        SCHEDULED_MESSAGE,
        _project_path(project_id, "/scheduled"),
        options,
        scope={"project_id": project_id},
        idempotent=False,
    )


async def receive_message(
    client: "TelerivetClient", project_id: str, **options: Any
) -> Any:
    """Record an incoming message as if a phone had received it."""
    return await _post_and_wrap(
        client,
        MESSAGE,
        _project_path(project_id, "/messages/receive"),
        options,
        scope={"project_id": project_id},
        idempotent=False,
    )


async def import_contacts(
    client: "TelerivetClient", project_id: str, **options: Any
) -> Any:
    """Create or update up to 200 contacts at once.

    Returns the raw result; ``contacts`` holds one ``{"id": ...}`` per input
    contact, in request order.
    """
    return await client.request(
        "POST", _project_path(project_id, "/import_contacts"), options
    )


async def get_project_users(client: "TelerivetClient", project_id: str) -> Any:
    """Users with access to the project, as returned by the server."""
    return await client.request("GET", _project_path(project_id, "/users"))


# ---------------------------------------------------------------------------
# Entity verbs
# ---------------------------------------------------------------------------


async def cancel_broadcast(broadcast: "Entity") -> Any:
    """Cancel sending a broadcast; returns the updated broadcast."""
    data = await broadcast.request("POST", "/cancel")
    return wrap_response(
        broadcast.client, BROADCAST, data, "POST", broadcast.path + "/cancel"
    )


async def invoke_service(service: "Entity", **options: Any) -> Dict[str, Any]:
    """Manually invoke a service.

    When the service sent messages, ``sent_messages`` holds them as
    Message entities.
    """
    result = await service.request("POST", "/invoke", options)
    if not isinstance(result, Mapping):
        raise ProtocolError(
            "Expected a JSON object from service invocation",
            method="POST",
            path=service.path + "/invoke",
        )

    result = dict(result)
    if isinstance(result.get("sent_messages"), list):
        result["sent_messages"] = [
            wrap_response(
                service.client, MESSAGE, item, "POST", service.path + "/invoke"
            )
            for item in result["sent_messages"]
        ]
    return result


def _contact_state_suffix(contact_id: str) -> str:
    return "/states/" + quote(str(contact_id), safe="")


async def get_contact_state(service: "Entity", contact_id: str) -> Any:
    suffix = _contact_state_suffix(contact_id)
    data = await service.request("GET", suffix)
    return wrap_response(
        service.client, CONTACT_SERVICE_STATE, data, "GET", service.path + suffix
    )


async def set_contact_state(
    service: "Entity", contact_id: str, **options: Any
) -> Any:
    suffix = _contact_state_suffix(contact_id)
    data = await service.request("POST", suffix, options)
    return wrap_response(
        service.client, CONTACT_SERVICE_STATE, data, "POST", service.path + suffix
    )


async def reset_contact_state(service: "Entity", contact_id: str) -> Any:
    suffix = _contact_state_suffix(contact_id)
    data = await service.request("DELETE", suffix)
    return wrap_response(
        service.client, CONTACT_SERVICE_STATE, data, "DELETE", service.path + suffix
    )
