"""Access policy for pack operations."""

import logging
from typing import Any, Optional

from gitway.git.protocol import RECEIVE_PACK, UPLOAD_PACK

logger = logging.getLogger(__name__)


class AccessPolicy:
    """Decide whether a repository may be pulled from or pushed to.

    A server-wide override wins when it is set; otherwise the repository's
    own setting is read through its adapter. Nothing is cached, the policy
    is evaluated for every request.
    """

    def __init__(
        self,
        adapter: Any,
        allow_pull: Optional[bool] = None,
        allow_push: Optional[bool] = None,
    ):
        self.adapter = adapter
        self.allow_pull = allow_pull
        self.allow_push = allow_push

    async def can_upload_pack(self) -> bool:
        if self.allow_pull is not None:
            return self.allow_pull
        return await self.adapter.allow_pull()

    async def can_receive_pack(self) -> bool:
        if self.allow_push is not None:
            return self.allow_push
        return await self.adapter.allow_push()

    async def allows(self, service: Optional[str]) -> bool:
        """Check a service name; unknown services are never allowed."""
        if service == UPLOAD_PACK:
            return await self.can_upload_pack()
        if service == RECEIVE_PACK:
            return await self.can_receive_pack()
        logger.debug(f"Unknown git service requested: {service}")
        return False
