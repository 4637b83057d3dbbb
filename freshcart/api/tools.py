"""
Tools API Endpoints
Exposes the cart tools to voice-agent hosts and other clients.

Endpoints:
- GET  /api/v1/tools             - Tool definitions (Anthropic input_schema format)
- POST /api/v1/tools/{tool_name} - Execute a tool; body = tool arguments

Handled failures (validation, sign-in, not found, stock, storage) come back
as HTTP 200 with success=false and an error_type; only an unknown tool name
is an HTTP error.

Author: TM3
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from freshcart.core.auth import TokenUser, get_current_user_optional
from freshcart.services.cart_tools import TOOLS, CartToolResolver, get_tool_resolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


def get_resolver() -> CartToolResolver:
    """Dependency hook (overridden in tests)"""
    return get_tool_resolver()


@router.get("")
async def list_tools():
    """List the available tools and their argument schemas"""
    return {
        "status": "success",
        "count": len(TOOLS),
        "data": TOOLS
    }


@router.post("/{tool_name}")
def run_tool(
    tool_name: str,
    arguments: Optional[Dict[str, Any]] = Body(default=None),
    user: Optional[TokenUser] = Depends(get_current_user_optional),
    resolver: CartToolResolver = Depends(get_resolver)
):
    """
    Execute one tool for the calling user.

    Anonymous callers are allowed; tools that need an account answer with
    an authentication envelope.
    """
    if tool_name not in resolver.tool_names:
        raise HTTPException(status_code=404, detail=f"Tool '{tool_name}' not found")

    return resolver.execute(tool_name, arguments or {}, user)
