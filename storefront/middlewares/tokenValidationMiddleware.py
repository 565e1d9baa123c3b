"""Token validation middleware for chat endpoints."""
import json
import logging
import tiktoken
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from storefront.config import settings

logger = logging.getLogger(__name__)

CHAT_PATHS = ("/functions/na-expert-chat", "/functions/wholesale-chat")

# Initialize tiktoken encoder (using cl100k_base for GPT-4/GPT-3.5)
tiktoken_encoder = tiktoken.get_encoding("cl100k_base")


def count_tokens(text: str) -> int:
    return len(tiktoken_encoder.encode(text))


class TokenValidationMiddleware(BaseHTTPMiddleware):
    """Reject chat requests whose user messages exceed the token cap."""

    def __init__(self, app, max_tokens: int = None):
        super().__init__(app)
        self.max_tokens = max_tokens or settings.max_chat_message_tokens

    async def dispatch(self, request: StarletteRequest, call_next):
        if request.method == "POST" and request.url.path in CHAT_PATHS:
            body_bytes = await request.body()
            try:
                data = json.loads(body_bytes) if body_bytes else {}
            except json.JSONDecodeError:
                data = {}  # Let the endpoint report invalid JSON

            messages = data.get("messages") if isinstance(data, dict) else None
            for message in messages if isinstance(messages, list) else []:
                if not isinstance(message, dict) or message.get("role") != "user":
                    continue
                content = message.get("content")
                if not isinstance(content, str):
                    continue
                token_count = count_tokens(content)
                if token_count > self.max_tokens:
                    logger.info("Rejected chat message with %d tokens", token_count)
                    return JSONResponse(
                        status_code=400,
                        content={
                            "error": f"Message exceeds maximum token limit. Got {token_count} tokens, "
                                     f"maximum allowed is {self.max_tokens}."
                        },
                    )

        return await call_next(request)
