"""
OpenRouter client.

OpenRouter provides access to many LLM models through a unified API.
Uses OpenAI-compatible format.
https://openrouter.ai/docs
"""

from .openai_compat import OpenAICompatibleClient


# Short names for the models the router wires up
OPENROUTER_MODELS = {
    "deepseek-chat": "deepseek/deepseek-chat-v3.1",
    "llama-4-maverick-free": "meta-llama/llama-4-maverick:free",
    "claude-3.5-haiku": "anthropic/claude-3.5-haiku",
    "gemini-2.0-flash": "google/gemini-2.0-flash-exp",
}


class OpenRouterClient(OpenAICompatibleClient):
    """
    Client for OpenRouter API.

    OpenRouter provides unified access to models from multiple providers.
    Requires OPENROUTER_API_KEY environment variable.
    """

    provider_label = "OpenRouter"

    def __init__(
        self,
        api_key: str,
        model: str = "deepseek-chat",
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: int = 120,
        site_url: str | None = None,  # For rankings
        site_name: str | None = None,
    ):
        """
        Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key
            model: Model name (short name or full provider/model path)
            base_url: OpenRouter API base URL
            timeout: Request timeout in seconds
            site_url: Your site URL (for leaderboard attribution)
            site_name: Your site name (for leaderboard attribution)
        """
        super().__init__(
            api_key=api_key,
            model=self._resolve_model(model),
            base_url=base_url,
            timeout=timeout,
        )
        self.site_url = site_url
        self.site_name = site_name or "mailsim"

    @staticmethod
    def _resolve_model(model: str) -> str:
        """Resolve short model name to full path."""
        if "/" in model:
            return model
        return OPENROUTER_MODELS.get(model, model)

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["HTTP-Referer"] = self.site_url or "https://github.com/mailsim"
        headers["X-Title"] = self.site_name
        return headers
