"""Contact management tools."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from ghl_gateway.errors import UnknownToolError
from ghl_gateway.tools.base import BaseTool, ToolDefinition

logger = structlog.get_logger()

_CONTACT_FIELDS: dict[str, Any] = {
    "firstName": {"type": "string", "description": "Contact first name"},
    "lastName": {"type": "string", "description": "Contact last name"},
    "email": {"type": "string", "description": "Contact email address"},
    "phone": {"type": "string", "description": "Contact phone number"},
    "tags": {
        "type": "array",
        "items": {"type": "string"},
        "description": "Tags to assign to contact",
    },
    "source": {"type": "string", "description": "Source of the contact"},
}

_CONTACT_ID = {"contactId": {"type": "string", "description": "Contact ID"}}

_TAGS = {
    "tags": {
        "type": "array",
        "items": {"type": "string"},
        "description": "Tag names",
    }
}


class ContactTools(BaseTool):
    feature = "contacts"

    def get_tool_definitions(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="create_contact",
                description="Create a new contact in GoHighLevel",
                input_schema={
                    "type": "object",
                    "properties": _CONTACT_FIELDS,
                    "required": ["email"],
                },
            ),
            ToolDefinition(
                name="search_contacts",
                description="Search for contacts with filtering options",
                input_schema={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Search query string"},
                        "email": {"type": "string", "description": "Filter by email address"},
                        "phone": {"type": "string", "description": "Filter by phone number"},
                        "limit": {
                            "type": "number",
                            "description": "Maximum number of results (default: 25)",
                        },
                    },
                },
            ),
            ToolDefinition(
                name="get_contact",
                description="Get a specific contact by ID",
                input_schema={
                    "type": "object",
                    "properties": _CONTACT_ID,
                    "required": ["contactId"],
                },
            ),
            ToolDefinition(
                name="update_contact",
                description="Update an existing contact",
                input_schema={
                    "type": "object",
                    "properties": {**_CONTACT_ID, **_CONTACT_FIELDS},
                    "required": ["contactId"],
                },
            ),
            ToolDefinition(
                name="delete_contact",
                description="Delete a contact",
                input_schema={
                    "type": "object",
                    "properties": _CONTACT_ID,
                    "required": ["contactId"],
                },
            ),
            ToolDefinition(
                name="add_contact_tags",
                description="Add tags to a contact",
                input_schema={
                    "type": "object",
                    "properties": {**_CONTACT_ID, **_TAGS},
                    "required": ["contactId", "tags"],
                },
            ),
            ToolDefinition(
                name="remove_contact_tags",
                description="Remove tags from a contact",
                input_schema={
                    "type": "object",
                    "properties": {**_CONTACT_ID, **_TAGS},
                    "required": ["contactId", "tags"],
                },
            ),
        ]

    async def execute(self, name: str, params: Mapping[str, Any]) -> Any:
        handlers = {
            "create_contact": self.create_contact,
            "search_contacts": self.search_contacts,
            "get_contact": self.get_contact,
            "update_contact": self.update_contact,
            "delete_contact": self.delete_contact,
            "add_contact_tags": self.add_contact_tags,
            "remove_contact_tags": self.remove_contact_tags,
        }
        handler = handlers.get(name)
        if handler is None:
            raise UnknownToolError(name)
        return await handler(params)

    async def create_contact(self, params: Mapping[str, Any]) -> dict[str, Any]:
        async def _run() -> dict[str, Any]:
            self.validate_required(params, ["email"])
            contact = await self.client.create_contact(self.sanitize_params(params))
            logger.info("contact_created", contact_id=contact.get("id"))
            return contact

        return await self.execute_with_logging("create_contact", params, _run)

    async def search_contacts(self, params: Mapping[str, Any]) -> dict[str, Any]:
        async def _run() -> dict[str, Any]:
            data = self.sanitize_params(params)
            result = await self.client.search_contacts(
                query=data.pop("query", None),
                limit=int(data.pop("limit", 25)),
                **data,
            )
            logger.info(
                "contacts_found", contact_count=len(result.get("contacts") or [])
            )
            return result

        return await self.execute_with_logging("search_contacts", params, _run)

    async def get_contact(self, params: Mapping[str, Any]) -> dict[str, Any]:
        async def _run() -> dict[str, Any]:
            self.validate_required(params, ["contactId"])
            return await self.client.get_contact(params["contactId"])

        return await self.execute_with_logging("get_contact", params, _run)

    async def update_contact(self, params: Mapping[str, Any]) -> dict[str, Any]:
        async def _run() -> dict[str, Any]:
            self.validate_required(params, ["contactId"])
            data = self.sanitize_params(params)
            contact_id = data.pop("contactId")
            contact = await self.client.update_contact(contact_id, data)
            logger.info("contact_updated", contact_id=contact_id)
            return contact

        return await self.execute_with_logging("update_contact", params, _run)

    async def delete_contact(self, params: Mapping[str, Any]) -> dict[str, Any]:
        async def _run() -> dict[str, Any]:
            self.validate_required(params, ["contactId"])
            await self.client.delete_contact(params["contactId"])
            return {"succeeded": True, "contactId": params["contactId"]}

        return await self.execute_with_logging("delete_contact", params, _run)

    async def add_contact_tags(self, params: Mapping[str, Any]) -> dict[str, Any]:
        async def _run() -> dict[str, Any]:
            self.validate_required(params, ["contactId", "tags"])
            data = self.sanitize_params(params)
            return await self.client.add_contact_tags(data["contactId"], data["tags"])

        return await self.execute_with_logging("add_contact_tags", params, _run)

    async def remove_contact_tags(self, params: Mapping[str, Any]) -> dict[str, Any]:
        async def _run() -> dict[str, Any]:
            self.validate_required(params, ["contactId", "tags"])
            data = self.sanitize_params(params)
            return await self.client.remove_contact_tags(
                data["contactId"], data["tags"]
            )

        return await self.execute_with_logging("remove_contact_tags", params, _run)
