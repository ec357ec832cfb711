import asyncio
import json
import random
import string
import time
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

from pinecone import Pinecone, ServerlessSpec

from app.core.config import get_settings
from app.providers import ProviderFactory
from app.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

STATS_TOP_K = 10000
SIMILAR_TOP_K = 3


def _memory_id(user_id: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{user_id}_{int(time.time() * 1000)}_{suffix}"


def _flatten_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """Pinecone metadata accepts strings, numbers, booleans and lists of strings only."""
    flat: Dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        elif isinstance(value, list) and all(isinstance(v, str) for v in value):
            flat[key] = value
        else:
            flat[key] = json.dumps(value, default=str)
    return flat


class MemoryService:
    """Semantic long-term memory: OpenAI embeddings stored in a Pinecone index, filtered per user."""

    def __init__(self, api_key: Optional[str] = None, index_name: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.PINECONE_API_KEY
        self.index_name = index_name or settings.PINECONE_INDEX
        self._client: Optional[Pinecone] = None
        self._index = None
        self._lock = asyncio.Lock()

        if not self.api_key:
            logger.warning("Pinecone API key not configured - memory service will be disabled")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> Pinecone:
        if self._client is None:
            self._client = Pinecone(api_key=self.api_key)
        return self._client

    def _ensure_index_sync(self):
        client = self._get_client()
        existing = client.list_indexes().names()
        if self.index_name not in existing:
            logger.info(f"Creating Pinecone index: {self.index_name}")
            client.create_index(
                name=self.index_name,
                dimension=settings.EMBEDDING_DIMENSION,
                metric="cosine",
                spec=ServerlessSpec(cloud=settings.PINECONE_CLOUD, region=settings.PINECONE_REGION),
            )
        return client.Index(self.index_name)

    async def _get_index(self):
        if not self.enabled:
            return None
        if self._index is None:
            async with self._lock:
                if self._index is None:
                    self._index = await asyncio.to_thread(self._ensure_index_sync)
                    logger.info(f"Pinecone index ready: {self.index_name}")
        return self._index

    async def _embed(self, text: str) -> List[float]:
        provider = ProviderFactory.get_provider("openai")
        return await provider.embed(text)

    async def store_memory(self, user_id: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        metadata = metadata or {}
        try:
            index = await self._get_index()
            if index is None:
                logger.warning("Pinecone index not available, skipping memory storage")
                return ""

            embedding = await self._embed(content)
            memory_id = _memory_id(user_id)
            vector_metadata = _flatten_metadata({
                **metadata,
                "userId": user_id,
                "content": content,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "type": metadata.get("type", "general"),
                "context": json.dumps(metadata.get("context", {}), default=str),
            })

            await asyncio.to_thread(
                index.upsert,
                vectors=[{"id": memory_id, "values": embedding, "metadata": vector_metadata}]
            )
            logger.info(f"Stored memory: {memory_id}")
            return memory_id
        except Exception as e:
            logger.error(f"Memory storage error: {e}")
            return ""

    async def _query(self, index, embedding: List[float], top_k: int, flt: Dict[str, Any]):
        return await asyncio.to_thread(
            index.query,
            vector=embedding,
            top_k=top_k,
            filter=flt,
            include_metadata=True,
            include_values=False,
        )

    async def search_memories(self, user_id: str, query: str, top_k: int = 5) -> List[Dict[str, Any]]:
        try:
            index = await self._get_index()
            if index is None:
                return []

            embedding = await self._embed(query)
            response = await self._query(index, embedding, top_k, {"userId": user_id})
            results = []
            for match in response.matches:
                metadata = match.metadata or {}
                results.append({
                    "id": match.id,
                    "content": metadata.get("content"),
                    "score": match.score,
                    "metadata": metadata,
                })
            return results
        except Exception as e:
            logger.error(f"Memory search error: {e}")
            return []

    async def find_similar_content(self, user_id: str, content: str, context_type: str = "general") -> List[Dict[str, Any]]:
        try:
            index = await self._get_index()
            if index is None:
                return []

            embedding = await self._embed(content)
            response = await self._query(index, embedding, SIMILAR_TOP_K, {"userId": user_id, "type": context_type})
            results = []
            for match in response.matches:
                metadata = match.metadata or {}
                try:
                    context = json.loads(metadata.get("context") or "{}")
                except json.JSONDecodeError:
                    context = {}
                results.append({"content": metadata.get("content"), "context": context, "score": match.score})
            return results
        except Exception as e:
            logger.error(f"Similar content search error: {e}")
            return []

    async def update_memory(self, memory_id: str, new_content: str, new_metadata: Optional[Dict[str, Any]] = None) -> bool:
        try:
            index = await self._get_index()
            if index is None:
                return False

            embedding = await self._embed(new_content)
            metadata = _flatten_metadata({
                **(new_metadata or {}),
                "content": new_content,
                "updatedAt": datetime.now(timezone.utc).isoformat(),
            })
            await asyncio.to_thread(index.update, id=memory_id, values=embedding, set_metadata=metadata)
            return True
        except Exception as e:
            logger.error(f"Memory update error: {e}")
            return False

    async def delete_memory(self, memory_id: str) -> bool:
        try:
            index = await self._get_index()
            if index is None:
                return False
            await asyncio.to_thread(index.delete, ids=[memory_id])
            return True
        except Exception as e:
            logger.error(f"Memory deletion error: {e}")
            return False

    async def get_stats(self, user_id: str) -> Dict[str, Any]:
        try:
            index = await self._get_index()
            if index is None:
                return {"totalMemories": 0}

            # Pinecone has no per-filter count; a broad query over a neutral vector approximates one
            neutral = [0.1] * settings.EMBEDDING_DIMENSION
            response = await asyncio.to_thread(
                index.query,
                vector=neutral,
                top_k=STATS_TOP_K,
                filter={"userId": user_id},
                include_metadata=False,
            )
            return {
                "totalMemories": len(response.matches or []),
                "lastUpdate": datetime.now(timezone.utc).isoformat(),
            }
        except Exception as e:
            logger.error(f"Memory stats error: {e}")
            return {"totalMemories": 0, "error": True}

    async def test_connection(self) -> bool:
        if not self.enabled:
            logger.warning("Pinecone API key not configured")
            return False
        try:
            await asyncio.to_thread(lambda: self._get_client().list_indexes())
            logger.info("Pinecone connection test successful")
            return True
        except Exception as e:
            logger.error(f"Pinecone connection test failed: {e}")
            return False


memory_service = MemoryService()
