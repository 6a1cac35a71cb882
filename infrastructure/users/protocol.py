"""UserStore protocol: permanent user persistence lives outside this service."""

from typing import Any, Mapping, Protocol


class UserStore(Protocol):
    async def exists(self, email: str) -> bool: ...

    async def create(self, email: str, payload: Mapping[str, Any]) -> None: ...
