"""
Assistant Chat Service for FreshCart

Integrates Claude (Anthropic) with the cart tools so a shopper can manage
their cart in natural language ("add two kilos of aples", "what's in my
cart?", "place the order").

Features:
- Grocery system prompt with the store's cart rules
- The 8 cart tools, executed on behalf of the signed-in user
- Tool use loop for multi-step requests
- Bounded conversation history

Author: TM3
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import anthropic

from freshcart.core.auth import TokenUser
from freshcart.core.config import settings
from freshcart.services.cart_tools import TOOLS, CartToolResolver, get_tool_resolver

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION
# ============================================================================

MAX_TOKENS = 2048
MAX_HISTORY_TOKENS = 6000
MAX_TOOL_ROUNDS = 8


def estimate_tokens(text: str) -> int:
    """Rough token estimation: ~4 chars per token."""
    return len(text) // 4


def limit_history(
    history: List[Dict[str, str]],
    max_messages: Optional[int] = None
) -> Tuple[List[Dict[str, str]], int]:
    """
    Keep the most recent messages within a message and token budget.

    Returns:
        Tuple of (limited_history, estimated_tokens)
    """
    if not history:
        return [], 0

    max_messages = max_messages or settings.MAX_HISTORY_MESSAGES
    limited = history[-max_messages:]

    total_tokens = sum(estimate_tokens(msg.get("content", "")) for msg in limited)
    while total_tokens > MAX_HISTORY_TOKENS and len(limited) > 2:
        removed = limited.pop(0)
        total_tokens -= estimate_tokens(removed.get("content", ""))

    if len(limited) < len(history):
        logger.info(f"History trimmed: {len(history)} -> {len(limited)} messages (~{total_tokens} tokens)")

    return limited, total_tokens


def get_system_prompt(user: Optional[TokenUser]) -> str:
    today = datetime.now().strftime("%Y-%m-%d")
    who = f"The shopper is signed in as {user.email or user.display_name}." if user else \
        "The shopper is NOT signed in; cart and order tools will ask them to sign in."

    return f"""You are the shopping assistant of FreshCart, an online grocery store. Today is {today}.
{who}

## What you do
- Add, remove and change quantities of items in the shopper's cart
- Tell the shopper what is in the cart and what it costs
- Help them browse products by category or name
- Place the order when they ask, and tell them about past orders

## Rules
1. Always use the tools; NEVER invent products, prices, stock or totals.
2. Cart totals in your answer must come from the most recent tool result.
3. Product names may be misheard or misspelled. Pass them to the tools as spoken;
   the tools find the closest product. If a tool says it matched a different
   name, mention which product was used.
4. "Change apples to 3" sets the quantity to 3 (updateCartItemQuantity);
   "add 3 more apples" adds to it (addItemToCart).
5. placeOrder uses the address and phone saved in the shopper's profile. Never
   ask the shopper to dictate them; if the profile is incomplete, tell them to
   update it in their account.
6. Confirm before placing an order unless the shopper clearly asked to order now.
7. Prices are in {settings.CURRENCY}.

## Style
- Short, friendly sentences suitable for being read aloud
- No markdown tables; list at most a handful of items
- When a tool fails, relay its message and suggest the next step
"""


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class ChatResult:
    """Result of processing a chat message"""
    response: str
    tools_used: List[str]
    model: str
    input_tokens: int
    output_tokens: int
    cart_summary: Optional[Dict[str, Any]] = None
    estimated_cost_usd: float = 0.0
    context_messages: int = 0
    tool_results: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        # Claude Haiku pricing: $1/1M input, $5/1M output
        input_cost = (self.input_tokens / 1_000_000) * 1.0
        output_cost = (self.output_tokens / 1_000_000) * 5.0
        self.estimated_cost_usd = round(input_cost + output_cost, 6)


# ============================================================================
# MAIN SERVICE CLASS
# ============================================================================

class AssistantChatService:
    """
    Runs the Claude tool-use loop against the cart tools.
    """

    def __init__(self, resolver: Optional[CartToolResolver] = None, client=None):
        if client is None:
            if not settings.ANTHROPIC_API_KEY:
                raise ValueError("ANTHROPIC_API_KEY environment variable not set")
            client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)

        self.client = client
        self.resolver = resolver or get_tool_resolver()
        self.model = settings.CLAUDE_MODEL
        logger.info(f"AssistantChatService initialized with model: {self.model}")

    def _create(self, messages: List[Dict[str, Any]], user: Optional[TokenUser]):
        return self.client.messages.create(
            model=self.model,
            max_tokens=MAX_TOKENS,
            system=get_system_prompt(user),
            tools=TOOLS,
            messages=messages
        )

    def process_message(
        self,
        message: str,
        user: Optional[TokenUser],
        history: Optional[List[Dict[str, str]]] = None
    ) -> ChatResult:
        """
        Answer one shopper message, calling cart tools as needed.

        Args:
            message: What the shopper said or typed
            user: Authenticated user, or None
            history: Optional prior turns ({"role": "user"|"assistant", "content": "..."})

        Returns:
            ChatResult with the reply, tools used and the latest cart summary
        """
        tools_used: List[str] = []
        tool_results: List[Dict[str, Any]] = []
        cart_summary = None
        total_input_tokens = 0
        total_output_tokens = 0

        limited_history, history_tokens = limit_history(history or [])
        messages: List[Dict[str, Any]] = [
            {"role": msg["role"], "content": msg["content"]} for msg in limited_history
        ]
        messages.append({"role": "user", "content": message})

        logger.info(f"Context: {len(messages)} messages, ~{history_tokens + estimate_tokens(message)} tokens")

        response = self._create(messages, user)
        total_input_tokens += response.usage.input_tokens
        total_output_tokens += response.usage.output_tokens

        rounds = 0
        while response.stop_reason == "tool_use" and rounds < MAX_TOOL_ROUNDS:
            rounds += 1
            tool_use_blocks = [block for block in response.content if block.type == "tool_use"]

            results = []
            for tool_use in tool_use_blocks:
                tools_used.append(tool_use.name)
                envelope = self.resolver.execute(tool_use.name, tool_use.input, user)
                tool_results.append({"tool": tool_use.name, **envelope})

                if isinstance(envelope.get("cartSummary"), dict):
                    cart_summary = envelope["cartSummary"]

                results.append({
                    "type": "tool_result",
                    "tool_use_id": tool_use.id,
                    "content": json.dumps(envelope, ensure_ascii=False, default=str)
                })

            messages.append({"role": "assistant", "content": response.content})
            messages.append({"role": "user", "content": results})

            response = self._create(messages, user)
            total_input_tokens += response.usage.input_tokens
            total_output_tokens += response.usage.output_tokens

        if response.stop_reason == "tool_use":
            logger.warning(f"Tool loop stopped after {MAX_TOOL_ROUNDS} rounds")

        text_content = None
        for block in response.content:
            if getattr(block, "type", None) == "text":
                text_content = block.text
                break

        if not text_content:
            text_content = "Sorry, I couldn't come up with an answer. Could you say that again?"

        logger.info(f"Message completed. Tools used: {tools_used}, Tokens: {total_input_tokens}/{total_output_tokens}")

        return ChatResult(
            response=text_content,
            tools_used=tools_used,
            model=self.model,
            input_tokens=total_input_tokens,
            output_tokens=total_output_tokens,
            cart_summary=cart_summary,
            context_messages=len(messages),
            tool_results=tool_results
        )


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

_service_instance: Optional[AssistantChatService] = None


def get_chat_service() -> AssistantChatService:
    """
    Get the singleton chat service instance.

    Raises:
        ValueError: ANTHROPIC_API_KEY is not configured
    """
    global _service_instance
    if _service_instance is None:
        _service_instance = AssistantChatService()
    return _service_instance
