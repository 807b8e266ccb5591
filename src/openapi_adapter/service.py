"""Tool execution service shared by every transport."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from .exceptions import InvocationError
from .invoker import OperationInvoker
from .logging import redact_payload

logger = logging.getLogger(__name__)


class AdapterService:
    """
    Runs tool calls through the invoker and shapes the outcome.

    Typed invocation failures become an ``isError`` result carrying the
    message; anything else is a bug and propagates to the server.
    """

    def __init__(self, invoker: OperationInvoker, max_concurrency: int = 20) -> None:
        self.invoker = invoker
        self.semaphore = asyncio.Semaphore(max_concurrency)

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        arguments = arguments or {}
        async with self.semaphore:
            logger.info("Executing tool=%s arguments=%s", name, redact_payload(arguments))
            try:
                result = await self.invoker.invoke(name, arguments)
            except InvocationError as exc:
                logger.error("Tool execution failed: tool=%s error=%s", name, exc)
                return self._format_error(f"Error executing {name}: {exc}")
            return self._format_result(result)

    def _format_result(self, result: Any) -> Dict[str, Any]:
        return {"content": [{"type": "text", "text": json.dumps(result, indent=2, default=str)}]}

    def _format_error(self, message: str) -> Dict[str, Any]:
        return {"content": [{"type": "text", "text": message}], "isError": True}
