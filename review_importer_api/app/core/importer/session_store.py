"""
Redis-based upload session and progress storage for review imports.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import List, Optional
import redis.asyncio as aioredis

from app.core.importer.models import UploadSession, ImportProgress


# TTL: 1 hour
UPLOAD_SESSION_TTL = 3600


class UploadSessionStore:
    """Manage review-import upload sessions and progress in Redis."""

    def __init__(self, redis_client: aioredis.Redis, ttl: int = UPLOAD_SESSION_TTL):
        """
        Initialize upload session store.

        Args:
            redis_client: Redis async client
            ttl: Expiry in seconds for session and progress keys
        """
        self.redis = redis_client
        self.ttl = ttl

    def _session_key(self, store_id: str, upload_id: str) -> str:
        return f"reviews:upload:{store_id}:{upload_id}"

    def _progress_key(self, store_id: str, upload_id: str) -> str:
        return f"reviews:progress:{store_id}:{upload_id}"

    async def create_session(
        self,
        store_id: str,
        file_path: str,
        total_rows: int,
        headers: List[str]
    ) -> UploadSession:
        """
        Create a new upload session.

        Args:
            store_id: Store ID
            file_path: Path to the uploaded CSV
            total_rows: Data row count
            headers: Parsed column headers

        Returns:
            The stored UploadSession
        """
        session = UploadSession(
            upload_id=str(uuid.uuid4()),
            store_id=store_id,
            file_path=file_path,
            total_rows=total_rows,
            headers=headers,
            uploaded_at=datetime.now(timezone.utc).isoformat()
        )

        # Redis hash values must be strings
        key = self._session_key(store_id, session.upload_id)
        await self.redis.hset(key, mapping={
            "upload_id": session.upload_id,
            "store_id": store_id,
            "file_path": file_path,
            "total_rows": str(total_rows),
            "headers": json.dumps(headers),
            "uploaded_at": session.uploaded_at
        })
        await self.redis.expire(key, self.ttl)

        return session

    async def get_session(self, store_id: str, upload_id: str) -> Optional[UploadSession]:
        """
        Get upload session.

        Returns:
            UploadSession or None if not found / expired
        """
        raw = await self.redis.hgetall(self._session_key(store_id, upload_id))
        if not raw:
            return None

        data = {}
        for k, v in raw.items():
            key_str = k.decode() if isinstance(k, bytes) else k
            data[key_str] = v.decode() if isinstance(v, bytes) else v

        if data.get("store_id") != store_id:
            return None

        try:
            headers = json.loads(data.get("headers") or "[]")
        except json.JSONDecodeError:
            headers = []

        try:
            total_rows = int(data.get("total_rows", 0))
        except (ValueError, TypeError):
            total_rows = 0

        return UploadSession(
            upload_id=data.get("upload_id", upload_id),
            store_id=store_id,
            file_path=data.get("file_path", ""),
            total_rows=total_rows,
            headers=headers,
            uploaded_at=data.get("uploaded_at", "")
        )

    async def get_progress(self, store_id: str, upload_id: str) -> Optional[ImportProgress]:
        """Get running progress, or None before the first batch."""
        value = await self.redis.get(self._progress_key(store_id, upload_id))
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode()
        return ImportProgress.from_dict(json.loads(value))

    async def save_progress(self, store_id: str, upload_id: str, progress: ImportProgress) -> None:
        """Persist progress with the session TTL."""
        await self.redis.set(
            self._progress_key(store_id, upload_id),
            json.dumps(progress.to_dict()),
            ex=self.ttl
        )

    async def delete_session(self, store_id: str, upload_id: str) -> bool:
        """
        Delete upload session and its progress.

        Returns:
            True if anything was deleted
        """
        deleted = await self.redis.delete(
            self._session_key(store_id, upload_id),
            self._progress_key(store_id, upload_id)
        )
        return deleted > 0

    async def active_file_paths(self) -> List[str]:
        """File paths referenced by every live session."""
        paths = []
        cursor = 0
        while True:
            cursor, keys = await self.redis.scan(cursor, match="reviews:upload:*", count=100)
            for key in keys:
                path = await self.redis.hget(key, "file_path")
                if path:
                    paths.append(path.decode() if isinstance(path, bytes) else path)
            if cursor == 0:
                break
        return paths
