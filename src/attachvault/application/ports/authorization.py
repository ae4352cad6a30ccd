from __future__ import annotations
from typing import Protocol

class Authorizer(Protocol):
    # Raise (preferably AuthorizationDenied) to deny
    async def check_permission(self, resources: list[str], ability: str) -> None: ...
