"""OpenAI-compatible chat gateway over Gemini File Search stores."""

from spacegate.gateway.completions import ChatGateway, bearer_token
from spacegate.gateway.translate import ChatCompletionRequest, parse_request, to_upstream_query

__all__ = ["ChatGateway", "ChatCompletionRequest", "bearer_token", "parse_request", "to_upstream_query"]
