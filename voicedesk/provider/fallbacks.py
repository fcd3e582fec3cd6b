"""Built-in catalogs served when the provider account lacks the listing endpoints."""

import copy

_AZURE_BASE = "https://bolna-ai-models.cognitiveservices.azure.com"
_OPENROUTER_BASE = "https://openrouter.ai/api/v1/chat/completions"


def _llm(model, display_name, provider, family, base_url=None, library=None, deprecated=False):
    return {
        "library": library,
        "provider": provider,
        "deprecated": deprecated,
        "base_url": base_url,
        "model": model,
        "display_name": display_name,
        "family": family,
    }


MODEL_CATALOG = {
    "llmModels": [
        _llm("gpt-4.1-mini", "gpt-4.1-mini", "openai", "openai", library="openai"),
        _llm("gpt-4.1", "gpt-4.1", "openai", "openai", library="openai"),
        _llm("gpt-4o-mini", "gpt-4o mini", "openai", "openai", library="openai"),
        _llm("gpt-4o", "gpt-4o", "openai", "openai", library="openai"),
        _llm("gpt-3.5-turbo", "gpt-3.5-turbo", "openai", "openai", library="openai"),
        _llm("gpt-4.1-nano", "gpt-4.1-nano", "openai", "openai", library="openai", deprecated=True),
        _llm("azure/gpt-4.1-mini", "gpt-4.1-mini cluster", "azure", "azure-openai", _AZURE_BASE, ""),
        _llm("azure/gpt-4.1", "gpt-4.1 cluster", "azure", "azure-openai", _AZURE_BASE, ""),
        _llm("azure/gpt-4o-mini", "gpt-4o-mini cluster", "azure", "azure-openai", _AZURE_BASE, ""),
        _llm("azure/gpt-4o", "gpt-4o cluster", "azure", "azure-openai", _AZURE_BASE, ""),
        _llm("azure/gpt-4", "gpt-4 cluster", "azure", "azure-openai", _AZURE_BASE, ""),
        _llm("openai/gpt-oss-20b", "gpt-oss-20b", "openrouter", "openrouter-openai", _OPENROUTER_BASE),
        _llm("openai/gpt-oss-120b", "gpt-oss-120b", "openrouter", "openrouter-openai", _OPENROUTER_BASE),
        _llm("openai/gpt-4o-mini", "gpt-4o-mini", "openrouter", "openrouter-openai", _OPENROUTER_BASE),
        _llm("openai/gpt-4.1", "gpt-4.1", "openrouter", "openrouter-openai", _OPENROUTER_BASE),
        _llm("anthropic/claude-sonnet-4", "Claude sonnet-4", "openrouter", "openrouter-claude", _OPENROUTER_BASE),
        _llm("deepseek/deepseek-chat", "deepseek-chat", "deepseek", "deepseek",
             "https://api.deepseek.com/v1", "litellm"),
        _llm("claude-sonnet-4-20250514", "sonnet-4", "anthropic", "anthropic"),
    ],
    "asrs": [
        {
            "id": "564f91ea-f4dc-45b3-9223-0ee131d9ee5a",
            "model": "nova-3",
            "name": "nova-3",
            "provider": "deepgram",
            "languages": ["multi-hi", "en", "hi"],
        },
        {
            "id": "6fcf78da-b360-4b41-b882-fe84b90256ed",
            "model": "nova-2",
            "name": "nova-2",
            "provider": "deepgram",
            "languages": ["en", "hi", "fr"],
        },
    ],
}

VOICE_CATALOG = [
    {"id": "v1", "voice_id": "rachel", "provider": "elevenlabs", "name": "Rachel",
     "model": "eleven_turbo_v2_5", "accent": "en-US (female)"},
    {"id": "v2", "voice_id": "matthew", "provider": "polly", "name": "Matthew",
     "model": "polly-matthew", "accent": "en-US (male)"},
    {"id": "v3", "voice_id": "asteria", "provider": "deepgram", "name": "Asteria",
     "model": "aura-asteria-en", "accent": "en-US (female)"},
]


def default_models() -> dict:
    return copy.deepcopy(MODEL_CATALOG)


def default_voices() -> list[dict]:
    return copy.deepcopy(VOICE_CATALOG)
