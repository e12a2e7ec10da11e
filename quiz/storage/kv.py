"""Memory KV - Backend KV assincrono em memoria (interface do AgentFS kv)."""

from __future__ import annotations

import copy
from typing import Any


class MemoryKV:
    """KV store em memoria com a mesma interface de ``agentfs.kv``.

    ``get``/``set``/``delete``/``list(prefix)`` assincronos; valores sao
    copiados na entrada e na saida para imitar serializacao.

    Example:
        >>> kv = MemoryKV()
        >>> await kv.set("quiz:abc:state", {"title": "Redes"})
        >>> await kv.list(prefix="quiz:")
        [{'key': 'quiz:abc:state'}]
    """

    def __init__(self):
        self._data: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list(self, prefix: str = "") -> list[dict[str, str]]:
        return [{"key": key} for key in sorted(self._data) if key.startswith(prefix)]
