from __future__ import annotations
import os
from typing import Any, Dict, List, Optional, Sequence

# Any OpenAI-compatible chat endpoint; defaults point at a local LM Studio
CHAT_API_BASE    = os.getenv("CHAT_API_BASE", "http://127.0.0.1:1234/v1")
CHAT_API_KEY     = os.getenv("CHAT_API_KEY", "lm-studio")
CHAT_MODEL       = os.getenv("CHAT_MODEL", "qwen2.5-32b-instruct-mlx")
CHAT_TIMEOUT     = float(os.getenv("CHAT_TIMEOUT", "120"))
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
CHAT_MAX_TOKENS  = int(os.getenv("CHAT_MAX_TOKENS", "800"))

SYSTEM_PROMPT = (
    "You are a helpful, conversational AI assistant. Answer user questions naturally and helpfully. "
    "Do not mention knowledge graphs, nodes, or internal data structures unless the user specifically asks about them."
)

# How many earlier utterances are offered to the model as conversation context
CONTEXT_NODES = 12

def _complete(messages: List[Dict[str, str]], temperature: float, max_tokens: int) -> Optional[str]:
    import requests
    payload = {
        "model": CHAT_MODEL,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "stream": False,
    }
    try:
        resp = requests.post(
            f"{CHAT_API_BASE.rstrip('/')}/chat/completions",
            headers={"Authorization": f"Bearer {CHAT_API_KEY}"},
            json=payload,
            timeout=CHAT_TIMEOUT,
        )
        resp.raise_for_status()
        choices = resp.json().get("choices") or [{}]
    except (requests.RequestException, ValueError) as e:
        print(f"[cgraph.llm] Chat request failed: {e}")
        return None
    content = (choices[0].get("message") or {}).get("content")
    return content.strip() if content else None

def _graph_context(nodes: Sequence[Any]) -> Optional[str]:
    labels = [(getattr(n, "label", None) or "").split("\n")[0].strip() for n in nodes]
    labels = [l for l in labels if l]
    if not labels:
        return None
    return "Earlier topics in this conversation:\n" + "\n".join(f"- {l}" for l in labels[-CONTEXT_NODES:])

def chat_reply(message: str, graph: Any = None, system: str = SYSTEM_PROMPT,
               temperature: float = CHAT_TEMPERATURE, max_tokens: int = CHAT_MAX_TOKENS) -> Optional[str]:
    """
    Ask the chat model for a reply to `message`. `graph` is the current graph
    snapshot (anything with a `nodes` sequence); its labels are passed as
    background context. Returns None when the service fails or answers empty.
    """
    messages = [{"role": "system", "content": system}]
    ctx = _graph_context(getattr(graph, "nodes", None) or [])
    if ctx:
        messages.append({"role": "system", "content": ctx})
    messages.append({"role": "user", "content": message})
    return _complete(messages, temperature, max_tokens)
