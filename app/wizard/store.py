"""Redis persistence for upload wizard drafts.

Keys:
    casetimeline:draft:{draft_id}                   WizardState as JSON
    casetimeline:draft:{draft_id}:blob:{staged_id}  staged file bytes

Every key carries the draft TTL, refreshed on each save, so abandoned drafts
and their staged bytes expire on their own.
"""

import uuid

import redis.asyncio as redis

from app.core.exceptions import DraftNotFoundError
from app.wizard.models import WizardState


class DraftStore:
    """Stores wizard state and staged file bytes in Redis."""

    KEY_PREFIX = "casetimeline:draft:"
    DEFAULT_TTL = 86400  # 24 hours

    def __init__(self, redis_client: redis.Redis, ttl: int | None = None):
        self.redis = redis_client
        self.ttl = ttl or self.DEFAULT_TTL

    def _state_key(self, draft_id: str) -> str:
        return f"{self.KEY_PREFIX}{draft_id}"

    def _blob_key(self, draft_id: str, staged_id: str) -> str:
        return f"{self.KEY_PREFIX}{draft_id}:blob:{staged_id}"

    async def create(self, state: WizardState | None = None) -> str:
        draft_id = uuid.uuid4().hex
        await self.save(draft_id, state or WizardState())
        return draft_id

    async def load(self, draft_id: str) -> WizardState:
        """Load a draft.

        Raises:
            DraftNotFoundError: unknown or expired draft id
        """
        raw = await self.redis.get(self._state_key(draft_id))
        if raw is None:
            raise DraftNotFoundError(draft_id)
        return WizardState.model_validate_json(raw)

    async def exists(self, draft_id: str) -> bool:
        return bool(await self.redis.exists(self._state_key(draft_id)))

    async def save(
        self, draft_id: str, state: WizardState, blobs: dict[str, bytes] | None = None
    ) -> None:
        """Write the state and refresh the TTL of every staged blob it references.

        New staged bytes passed in ``blobs`` (keyed by staged id) are written in
        the same transaction, so a failed save leaves no orphaned blobs.
        """
        async with self.redis.pipeline(transaction=True) as pipe:
            for staged_id, data in (blobs or {}).items():
                pipe.set(self._blob_key(draft_id, staged_id), data, ex=self.ttl)
            pipe.set(
                self._state_key(draft_id),
                state.model_dump_json(by_alias=True),
                ex=self.ttl,
            )
            for staged in state.staged:
                pipe.expire(self._blob_key(draft_id, staged.id), self.ttl)
            await pipe.execute()

    async def get_blob(self, draft_id: str, staged_id: str) -> bytes | None:
        return await self.redis.get(self._blob_key(draft_id, staged_id))

    async def delete_blobs(self, draft_id: str, staged_ids: list[str]) -> None:
        if staged_ids:
            await self.redis.delete(*(self._blob_key(draft_id, s) for s in staged_ids))

    async def delete(self, draft_id: str) -> None:
        """Delete a draft and every staged blob belonging to it."""
        keys = [self._state_key(draft_id)]
        async for key in self.redis.scan_iter(match=f"{self._state_key(draft_id)}:blob:*"):
            keys.append(key)
        await self.redis.delete(*keys)
