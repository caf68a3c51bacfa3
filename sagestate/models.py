"""Model catalog. Turns configured clients into resolvable chat models."""

from dataclasses import dataclass, replace

# (name, max_input_tokens, max_output_tokens)
BUILTIN_MODELS: dict[str, list[tuple[str, int | None, int | None]]] = {
    "openai": [
        ("gpt-4o", 128000, 16384),
        ("gpt-4o-mini", 128000, 16384),
        ("gpt-4-turbo", 128000, 4096),
        ("gpt-4", 8192, 4096),
        ("gpt-3.5-turbo", 16385, 4096),
    ],
    "claude": [
        ("claude-3-5-sonnet-20240620", 200000, 8192),
        ("claude-3-opus-20240229", 200000, 4096),
        ("claude-3-haiku-20240307", 200000, 4096),
    ],
    "gemini": [
        ("gemini-1.5-pro-latest", 1048576, 8192),
        ("gemini-1.5-flash-latest", 1048576, 8192),
    ],
    "groq": [
        ("llama3-70b-8192", 8192, None),
        ("mixtral-8x7b-32768", 32768, None),
    ],
    "deepseek": [
        ("deepseek-chat", 32768, 4096),
        ("deepseek-coder", 32768, 4096),
    ],
    "mistral": [
        ("mistral-large-latest", 32000, None),
        ("open-mixtral-8x22b", 64000, None),
    ],
}

# Platforms reachable through the generic OpenAI-compatible client
OPENAI_COMPATIBLE_PLATFORMS: list[tuple[str, str]] = [
    ("deepseek", "https://api.deepseek.com"),
    ("groq", "https://api.groq.com/openai/v1"),
    ("mistral", "https://api.mistral.ai/v1"),
    ("openrouter", "https://openrouter.ai/api/v1"),
    ("perplexity", "https://api.perplexity.ai"),
]

CLIENT_TYPES = ["openai", "claude", "gemini", "ollama", "openai-compatible"]


@dataclass
class Model:
    """A chat model offered by a configured client."""

    client_name: str
    name: str
    max_input_tokens: int | None = None
    max_output_tokens: int | None = None

    @property
    def id(self) -> str:
        return f"{self.client_name}:{self.name}"

    def set_max_tokens(self, value: int | None):
        """Overrides the maximum number of output tokens for this model."""
        self.max_output_tokens = value

    @classmethod
    def find(cls, models: list["Model"], value: str) -> "Model | None":
        """
        Resolves a model identifier against a list of models.\n
        `client:name` matches exactly, or falls back to an unlisted model
        named `name` on client `client`. A bare `client` picks that client's
        first model.
        """
        client_name, _, model_name = value.partition(":")
        if model_name:
            for m in models:
                if m.id == value:
                    return replace(m)
            for m in models:
                if m.client_name == client_name:
                    return replace(
                        m,
                        name=model_name,
                        max_input_tokens=None,
                        max_output_tokens=None,
                    )
            return None
        for m in models:
            if m.client_name == client_name:
                return replace(m)
        return None


def client_name(client: dict) -> str:
    """Returns the configured name of a client, falling back to its type"""
    return client.get("name") or client.get("type", "")


def list_chat_models(settings) -> list[Model]:
    """Lists every chat model offered by the clients in settings."""
    models: list[Model] = []
    for client in settings.clients:
        name = client_name(client)
        entries = client.get("models")
        if entries:
            for entry in entries:
                models.append(
                    Model(
                        client_name=name,
                        name=entry["name"],
                        max_input_tokens=entry.get("max_input_tokens"),
                        max_output_tokens=entry.get("max_output_tokens"),
                    )
                )
            continue
        builtin = BUILTIN_MODELS.get(name) or BUILTIN_MODELS.get(client.get("type", ""))
        for model_name, max_input, max_output in builtin or []:
            models.append(Model(name, model_name, max_input, max_output))
    return models


def list_client_types() -> list[str]:
    """Client types offered by the setup wizard"""
    return CLIENT_TYPES + [name for name, _ in OPENAI_COMPATIBLE_PLATFORMS]


def is_openai_compatible(platform: str) -> bool:
    return any(name == platform for name, _ in OPENAI_COMPATIBLE_PLATFORMS)


def create_client_config(
    client_type: str, api_base: str = "", model_name: str = ""
) -> tuple[str, dict]:
    """
    Builds a client entry for the settings file.\n
    Returns (default model id, client dict). Clients without a built-in
    catalog need a model_name.
    """
    if is_openai_compatible(client_type):
        base = dict(OPENAI_COMPATIBLE_PLATFORMS)[client_type]
        client = {"type": "openai-compatible", "name": client_type, "api_base": base}
    else:
        client = {"type": client_type}
        if api_base:
            client["api_base"] = api_base

    builtin = BUILTIN_MODELS.get(client_type)
    if model_name:
        if not builtin:
            client["models"] = [{"name": model_name}]
        return f"{client_type}:{model_name}", client
    if builtin:
        return f"{client_type}:{builtin[0][0]}", client
    return client_type, client
