"""
NoteLens - Redis Caching Service
Caches parsed notes by content hash and edit analyses by session
"""

import logging
import hashlib
from typing import Dict, Optional, Any

import redis
from redis import Redis, RedisError

from notelens.config import settings
from notelens.schemas import ParsedNote, EditAnalysisResult

logger = logging.getLogger(__name__)


PARSE_PREFIX = "parse"
ANALYSIS_PREFIX = "analysis"


# =============================================================================
# Redis Cache Service
# =============================================================================

class RedisCacheService:
    """Best-effort cache; every operation degrades to a miss when Redis is down"""

    def __init__(self, redis_client: Optional[Redis] = None, default_ttl: Optional[int] = None):
        self.redis_client: Optional[Redis] = redis_client
        self.default_ttl = default_ttl if default_ttl is not None else settings.cache_ttl

        if self.redis_client is None:
            self._connect()

    def _connect(self):
        """Establish Redis connection"""
        try:
            self.redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                max_connections=settings.redis_max_connections,
                socket_connect_timeout=5,
                socket_timeout=5
            )
            self.redis_client.ping()
            logger.info(f"Redis cache connected: {settings.redis_url}")

        except RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            logger.warning("Caching will be disabled")
            self.redis_client = None

    def _is_available(self) -> bool:
        if not self.redis_client:
            return False
        try:
            self.redis_client.ping()
            return True
        except RedisError:
            return False

    # =========================================================================
    # Key Generation
    # =========================================================================

    def _generate_key(self, prefix: str, *identifiers: Any) -> str:
        """prefix:id1:id2:..."""
        return ":".join([prefix] + [str(i) for i in identifiers])

    @staticmethod
    def content_hash(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def _set(self, key: str, value: str, ttl: Optional[int]) -> bool:
        if not self._is_available():
            return False
        try:
            self.redis_client.setex(key, ttl or self.default_ttl, value)
            return True
        except RedisError as e:
            logger.error(f"Failed to cache {key}: {e}")
            return False

    def _get(self, key: str) -> Optional[str]:
        if not self._is_available():
            return None
        try:
            return self.redis_client.get(key)
        except RedisError as e:
            logger.error(f"Failed to read cache {key}: {e}")
            return None

    # =========================================================================
    # Parsed Note Caching
    # =========================================================================

    def cache_parsed_note(self, text: str, parsed: ParsedNote, ttl: Optional[int] = None) -> bool:
        """
        Cache a parse result under the hash of its input text

        Args:
            text: Raw note text that was parsed
            parsed: Parse result
            ttl: Time-to-live in seconds (default: settings.cache_ttl)

        Returns:
            True if cached successfully
        """
        if parsed.parse_metadata.errors:
            # Failed parses are not worth replaying
            return False

        key = self._generate_key(PARSE_PREFIX, self.content_hash(text))
        stored = self._set(key, parsed.model_dump_json(), ttl)
        if stored:
            logger.info(f"Cached parsed note ({parsed.parse_metadata.total_sections} sections)")
        return stored

    def get_cached_parsed_note(self, text: str) -> Optional[ParsedNote]:
        """Parsed note for this exact text, if cached"""
        cached = self._get(self._generate_key(PARSE_PREFIX, self.content_hash(text)))
        if not cached:
            return None
        try:
            parsed = ParsedNote.model_validate_json(cached)
        except ValueError as e:
            logger.warning(f"Discarding unreadable cached parse: {e}")
            return None
        logger.debug("Parse cache hit")
        return parsed

    # =========================================================================
    # Analysis Result Caching
    # =========================================================================

    def cache_analysis_result(self, result: EditAnalysisResult, ttl: Optional[int] = None) -> bool:
        """Cache an analysis result under its session ID"""
        if not result.session_id:
            return False
        key = self._generate_key(ANALYSIS_PREFIX, result.session_id)
        return self._set(key, result.model_dump_json(), ttl)

    def get_cached_analysis(self, session_id: str) -> Optional[EditAnalysisResult]:
        cached = self._get(self._generate_key(ANALYSIS_PREFIX, session_id))
        if not cached:
            return None
        try:
            return EditAnalysisResult.model_validate_json(cached)
        except ValueError as e:
            logger.warning(f"Discarding unreadable cached analysis for {session_id}: {e}")
            return None

    def invalidate_analysis(self, session_id: str) -> int:
        if not self._is_available():
            return 0
        try:
            return self.redis_client.delete(self._generate_key(ANALYSIS_PREFIX, session_id))
        except RedisError as e:
            logger.error(f"Failed to invalidate analysis cache: {e}")
            return 0

    # =========================================================================
    # Health Check
    # =========================================================================

    def health_check(self) -> Dict[str, Any]:
        """Check Redis health"""
        if not self.redis_client:
            return {"status": "disconnected", "available": False}
        try:
            self.redis_client.ping()
            return {"status": "healthy", "available": True}
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return {"status": "unhealthy", "available": False, "error": str(e)}


# =============================================================================
# Global Cache Instance
# =============================================================================

_cache_service: Optional[RedisCacheService] = None


def get_cache_service() -> RedisCacheService:
    """Get or create cache service instance"""
    global _cache_service
    if _cache_service is None:
        _cache_service = RedisCacheService()
    return _cache_service


def set_cache_service(service: Optional[RedisCacheService]):
    """Replace the shared cache service (tests, alternative backends)"""
    global _cache_service
    _cache_service = service
