"""
Index storage for scored pages.
Supports both file-based (JSON) and Redis storage.
"""

import hashlib
import json
import logging
import os
import shutil
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, List, Any, Iterable, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..indexer.scored_index import ScoredIndex, DEFAULT_TOP_K
from ..indexer.text import tokenize
from ..utils.config import StorageConfig

STORAGE_VERSION = '1.0'


class IndexStoreError(Exception):
    """Raised when the index cannot be opened, written or read."""
    pass


@dataclass
class IndexedDocument:
    """A crawled page as persisted for retrieval."""
    url: str
    title: str
    body: str
    authority_score: float
    language: str
    is_partial: bool = False

    @classmethod
    def from_scrape_result(cls, result, authority_score: float) -> 'IndexedDocument':
        return cls(
            url=result.url,
            title=result.title or "",
            body=result.body_text,
            authority_score=authority_score,
            language=result.language,
            is_partial=result.is_partial,
        )


class IndexStore:
    """Abstract base class for index storage backends."""

    async def initialize(self):
        """Open the backend. Raises IndexStoreError if it is unreachable."""
        raise NotImplementedError

    async def clear(self):
        """Remove everything written by a previous indexing run."""
        raise NotImplementedError

    async def store_documents(self, documents: Iterable[IndexedDocument]) -> int:
        raise NotImplementedError

    async def store_scored_index(self, index: ScoredIndex):
        raise NotImplementedError

    async def load_scored_index(self) -> ScoredIndex:
        raise NotImplementedError

    async def get_document(self, url: str) -> Optional[IndexedDocument]:
        raise NotImplementedError

    async def term_count(self) -> int:
        """Number of indexed terms. Raises IndexStoreError if no index was ever stored."""
        raise NotImplementedError

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[Tuple[str, float]]:
        raise NotImplementedError

    async def get_stats(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError


class FileIndexStore(IndexStore):
    """JSON files under a data directory; suits development and single-host use."""

    INDEX_FILE = 'scored_index.json'
    URL_INDEX_FILE = 'url_index.json'

    def __init__(self, data_directory: str):
        self.data_directory = Path(data_directory)
        self.logger = logging.getLogger(__name__)
        self._cached_index: Optional[ScoredIndex] = None
        self.stats = {
            'documents_stored': 0,
            'terms_stored': 0,
        }

    @property
    def index_path(self) -> Path:
        return self.data_directory / self.INDEX_FILE

    @property
    def documents_path(self) -> Path:
        return self.data_directory / 'documents'

    async def initialize(self):
        """Create data directory structure."""
        try:
            self.data_directory.mkdir(parents=True, exist_ok=True)
            self.documents_path.mkdir(exist_ok=True)
        except OSError as e:
            raise IndexStoreError(f"Failed to initialize file storage at {self.data_directory}: {e}") from e

        self.logger.info(f"File index store initialized at {self.data_directory}")

    async def clear(self):
        try:
            if self.documents_path.exists():
                shutil.rmtree(self.documents_path)
            self.documents_path.mkdir(parents=True, exist_ok=True)
            for name in (self.INDEX_FILE, self.URL_INDEX_FILE):
                (self.data_directory / name).unlink(missing_ok=True)
        except OSError as e:
            raise IndexStoreError(f"Failed to clear {self.data_directory}: {e}") from e
        self._cached_index = None
        self.logger.info(f"Cleared previous index at {self.data_directory}")

    def _get_file_path(self, url: str) -> Path:
        """Generate file path for URL."""
        url_hash = hashlib.sha256(url.encode('utf-8')).hexdigest()
        # Use first 2 chars for directory structure
        return self.documents_path / url_hash[:2] / f"{url_hash}.json"

    def _write_json(self, path: Path, data: Any):
        """Write via a temporary file so readers never see a partial file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp_path, path)

    async def store_documents(self, documents: Iterable[IndexedDocument]) -> int:
        url_index = {}
        count = 0
        try:
            for document in documents:
                file_path = self._get_file_path(document.url)
                data = asdict(document)
                data['stored_at'] = datetime.now(timezone.utc).isoformat()
                data['storage_version'] = STORAGE_VERSION
                self._write_json(file_path, data)
                url_index[document.url] = str(file_path.relative_to(self.data_directory))
                count += 1

            self._write_json(self.data_directory / self.URL_INDEX_FILE, url_index)
        except (OSError, TypeError, ValueError) as e:
            raise IndexStoreError(f"Failed to store documents: {e}") from e

        self.stats['documents_stored'] = count
        self.logger.info(f"Stored {count} documents")
        return count

    async def store_scored_index(self, index: ScoredIndex):
        try:
            self._write_json(self.index_path, index.to_dict())
        except (OSError, TypeError, ValueError) as e:
            raise IndexStoreError(f"Failed to save index to {self.index_path}: {e}") from e

        self._cached_index = index
        self.stats['terms_stored'] = len(index)
        self.logger.info(f"Saved {len(index)} terms to {self.index_path}")

    async def load_scored_index(self) -> ScoredIndex:
        if not self.index_path.exists():
            raise IndexStoreError(f"Index file '{self.index_path}' not found. Run the indexer first.")

        try:
            with open(self.index_path, 'r', encoding='utf-8') as f:
                index = ScoredIndex.from_dict(json.load(f))
        except (OSError, ValueError) as e:
            raise IndexStoreError(f"Failed to load index from {self.index_path}: {e}") from e

        self._cached_index = index
        return index

    async def get_document(self, url: str) -> Optional[IndexedDocument]:
        file_path = self._get_file_path(url)
        if not file_path.exists():
            return None

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise IndexStoreError(f"Failed to read document for {url}: {e}") from e

        data.pop('stored_at', None)
        data.pop('storage_version', None)
        return IndexedDocument(**data)

    async def term_count(self) -> int:
        index = self._cached_index
        if index is None:
            index = await self.load_scored_index()
        return len(index)

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[Tuple[str, float]]:
        index = self._cached_index
        if index is None:
            index = await self.load_scored_index()
        return index.search(query, top_k)

    async def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.copy()
        if self.data_directory.exists():
            stats['total_size_bytes'] = sum(
                f.stat().st_size for f in self.data_directory.rglob('*') if f.is_file()
            )
        return stats

    async def close(self):
        self._cached_index = None


class RedisIndexStore(IndexStore):
    """
    Redis-backed store.

    Layout, under ``key_prefix``:
      <prefix>:term:<term>  hash url -> score
      <prefix>:terms        set of terms
      <prefix>:doc:<url>    hash of document fields
      <prefix>:docs         set of document URLs
    """

    def __init__(self, config: Dict[str, Any], client: Optional[redis.Redis] = None):
        self.config = config
        self.key_prefix = config.get('key_prefix', 'spiderrank')
        self.client: Optional[redis.Redis] = client
        self.logger = logging.getLogger(__name__)
        self.stats = {
            'documents_stored': 0,
            'terms_stored': 0,
        }

    def _key(self, *parts: str) -> str:
        return ':'.join((self.key_prefix,) + parts)

    async def initialize(self):
        if self.client is None:
            self.client = redis.Redis(
                host=self.config.get('host', 'localhost'),
                port=self.config.get('port', 6379),
                db=self.config.get('db', 0),
                password=self.config.get('password'),
                decode_responses=True
            )
        try:
            await self.client.ping()
        except (RedisError, OSError) as e:
            raise IndexStoreError(f"Failed to connect to Redis: {e}") from e
        self.logger.info("Redis index store connection established")

    async def clear(self):
        try:
            keys = [key async for key in self.client.scan_iter(match=self._key('*'))]
            if keys:
                await self.client.delete(*keys)
        except RedisError as e:
            raise IndexStoreError(f"Failed to clear Redis index: {e}") from e
        self.logger.info(f"Cleared {len(keys)} Redis keys under {self.key_prefix}")

    async def store_documents(self, documents: Iterable[IndexedDocument]) -> int:
        count = 0
        try:
            async with self.client.pipeline(transaction=False) as pipe:
                for document in documents:
                    pipe.hset(self._key('doc', document.url), mapping={
                        'url': document.url,
                        'title': document.title,
                        'body': document.body,
                        'authority_score': document.authority_score,
                        'language': document.language,
                        'is_partial': int(document.is_partial),
                    })
                    pipe.sadd(self._key('docs'), document.url)
                    count += 1
                await pipe.execute()
        except RedisError as e:
            raise IndexStoreError(f"Failed to store documents in Redis: {e}") from e

        self.stats['documents_stored'] = count
        self.logger.info(f"Stored {count} documents in Redis")
        return count

    async def store_scored_index(self, index: ScoredIndex):
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                for term, postings in index.scores.items():
                    if not postings:
                        continue
                    # repr round-trips floats exactly
                    pipe.hset(self._key('term', term),
                              mapping={url: repr(score) for url, score in postings.items()})
                    pipe.sadd(self._key('terms'), term)
                pipe.hset(self._key('meta'), mapping={
                    'stored_at': datetime.now(timezone.utc).isoformat(),
                    'storage_version': STORAGE_VERSION,
                })
                await pipe.execute()
        except RedisError as e:
            raise IndexStoreError(f"Failed to store index in Redis: {e}") from e

        self.stats['terms_stored'] = len(index)
        self.logger.info(f"Stored {len(index)} terms in Redis")

    async def _load_terms(self, terms: Iterable[str]) -> ScoredIndex:
        index = ScoredIndex()
        for term in terms:
            postings = await self.client.hgetall(self._key('term', term))
            for url, value in postings.items():
                index.add(term, url, float(value))
        return index

    async def load_scored_index(self) -> ScoredIndex:
        try:
            terms = await self.client.smembers(self._key('terms'))
            return await self._load_terms(sorted(terms))
        except RedisError as e:
            raise IndexStoreError(f"Failed to load index from Redis: {e}") from e

    async def get_document(self, url: str) -> Optional[IndexedDocument]:
        try:
            data = await self.client.hgetall(self._key('doc', url))
        except RedisError as e:
            raise IndexStoreError(f"Failed to read document for {url}: {e}") from e
        if not data:
            return None
        return IndexedDocument(
            url=data['url'],
            title=data.get('title', ''),
            body=data.get('body', ''),
            authority_score=float(data.get('authority_score', 0.0)),
            language=data.get('language', ''),
            is_partial=data.get('is_partial') == '1',
        )

    async def term_count(self) -> int:
        try:
            meta = await self.client.hgetall(self._key('meta'))
            if not meta:
                raise IndexStoreError(
                    f"No index stored under '{self.key_prefix}'. Run the indexer first."
                )
            return await self.client.scard(self._key('terms'))
        except RedisError as e:
            raise IndexStoreError(f"Failed to read index size: {e}") from e

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[Tuple[str, float]]:
        try:
            index = await self._load_terms(set(tokenize(query)))
        except RedisError as e:
            raise IndexStoreError(f"Search failed: {e}") from e
        return index.search(query, top_k)

    async def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.copy()
        try:
            stats['terms'] = await self.client.scard(self._key('terms'))
            stats['documents'] = await self.client.scard(self._key('docs'))
        except RedisError as e:
            self.logger.error(f"Error getting stats: {e}")
        return stats

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None
            self.logger.info("Redis connection closed")


class IndexStoreManager:
    """Selects and fronts the configured storage backend."""

    def __init__(self, config: StorageConfig):
        self.config = config
        self.backend: Optional[IndexStore] = None
        self.logger = logging.getLogger(__name__)

    async def initialize(self):
        """Initialize the appropriate storage backend."""
        backend_type = self.config.type.lower()

        if backend_type == 'redis':
            self.backend = RedisIndexStore(self.config.redis)
        elif backend_type == 'file':
            self.backend = FileIndexStore(self.config.file.get('data_directory', 'data'))
        else:
            raise IndexStoreError(f"Unknown storage type: {backend_type}")

        await self.backend.initialize()
        self.logger.info(f"Index store initialized with {backend_type} backend")

    def _require_backend(self) -> IndexStore:
        if not self.backend:
            raise IndexStoreError("Index store not initialized")
        return self.backend

    async def clear(self):
        await self._require_backend().clear()

    async def store_documents(self, documents: Iterable[IndexedDocument]) -> int:
        return await self._require_backend().store_documents(documents)

    async def store_scored_index(self, index: ScoredIndex):
        await self._require_backend().store_scored_index(index)

    async def load_scored_index(self) -> ScoredIndex:
        return await self._require_backend().load_scored_index()

    async def get_document(self, url: str) -> Optional[IndexedDocument]:
        return await self._require_backend().get_document(url)

    async def term_count(self) -> int:
        return await self._require_backend().term_count()

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[Tuple[str, float]]:
        return await self._require_backend().search(query, top_k)

    async def get_stats(self) -> Dict[str, Any]:
        return await self._require_backend().get_stats()

    async def close(self):
        if self.backend:
            await self.backend.close()
