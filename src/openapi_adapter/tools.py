"""Tool definitions derived from operation contracts."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from .models import OperationContract, ParameterContract, RequestBodyContract, ToolDefinition


logger = logging.getLogger(__name__)


class ToolMapper:
    def build_tools(self, contracts: Iterable[OperationContract]) -> List[ToolDefinition]:
        tools = [self.to_tool(contract) for contract in contracts]
        logger.info("Generated %s tool definitions", len(tools))
        return tools

    def to_tool(self, contract: OperationContract) -> ToolDefinition:
        properties: Dict[str, Any] = {}
        required: List[str] = []

        for param in contract.parameters:
            properties[param.name] = {
                **param.schema,
                "description": param.description or self._parameter_description(param),
            }
            if param.required:
                required.append(param.name)

        body = contract.request_body
        if body is not None:
            properties["body"] = {
                **body.schema,
                "description": self._body_description(body),
            }
            if body.required is not False:
                required.append("body")

        input_schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            input_schema["required"] = required
        input_schema["additionalProperties"] = False

        return ToolDefinition(
            name=contract.operation_id,
            description=self._tool_description(contract),
            input_schema=input_schema,
        )

    def _parameter_description(self, param: ParameterContract) -> str:
        description = f"{param.location.capitalize()} parameter"
        if param.required:
            description += " (required)"
        return description

    def _body_description(self, body: RequestBodyContract) -> str:
        description = body.description or "Request body"
        if len(body.content_types) > 1:
            description += f" (supports: {', '.join(body.content_types)})"
        else:
            description += f" ({body.primary_content_type})"
        if body.schema.get("description"):
            description += f"\n\n{body.schema['description']}"
        return description

    def _tool_description(self, contract: OperationContract) -> str:
        summary = (contract.summary or "").strip()
        details = (contract.description or "").strip()

        if summary:
            description = summary
            if details and details != summary:
                description += f"\n\n{details}"
        elif details:
            description = details
        else:
            description = f"{contract.method} {contract.path}"

        if contract.deprecated:
            description += "\n\nDeprecated: this operation may be removed by the API."
        if contract.tags:
            description += f"\n\nTags: {', '.join(contract.tags)}"

        success_codes = [str(code) for code in contract.responses if str(code).startswith("2")]
        if success_codes:
            description += f"\n\nReturns: {', '.join(success_codes)}"
        return description
