"""Authorization checks around attachment operations."""

from __future__ import annotations

from typing import Optional, Sequence

from loguru import logger

from attachvault.application.batch import BatchContext
from attachvault.application.ports.authorization import Authorizer
from attachvault.domain.errors import AttachmentError, AuthorizationDenied


class SecurityGate:
    """Asks the configured Authorizer for ``{prepend}{action}{append}`` on a resource scope.

    Everything is allowed when no authorizer is configured or the scope is empty.
    """

    def __init__(
        self,
        authorizer: Optional[Authorizer] = None,
        ability_prepend: str = "",
        ability_append: str = "",
    ) -> None:
        self.authorizer = authorizer
        self.ability_prepend = ability_prepend
        self.ability_append = ability_append

    def ability(self, action: str) -> str:
        return f"{self.ability_prepend}{action}{self.ability_append}"

    async def check(self, resources: Sequence[str], action: str) -> None:
        """Raise AuthorizationDenied (or the authorizer's own AttachmentError) on denial."""
        if self.authorizer is None or not resources:
            return

        ability = self.ability(action)
        scope = list(dict.fromkeys(resources))
        try:
            await self.authorizer.check_permission(scope, ability)
        except AttachmentError:
            raise
        except Exception as e:
            raise AuthorizationDenied(message=f"'{ability}' denied on {', '.join(scope)}: {e}") from e

    async def capture(self, ctx: BatchContext, action: str = "create") -> None:
        """Run the check for a batch, recording a denial instead of raising it."""
        try:
            await self.check(ctx.resource_hrefs, action)
        except AttachmentError as e:
            logger.info(f"[{ctx.batch_id}] authorization '{self.ability(action)}' denied: {e.message}")
            ctx.authorization_error = e
