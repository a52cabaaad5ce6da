"""
Redis client configuration for leaselock.

Supports both local development and remote deployments with
proper authentication, connection pooling, and error handling.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

import redis

from leaselock.config.settings import DatabaseSettings

logger = logging.getLogger(__name__)


class RedisClientFactory:
    """Factory for creating configured Redis clients."""

    @staticmethod
    def create_client(
        redis_url: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        password: Optional[str] = None,
        settings: Optional[DatabaseSettings] = None,
        **kwargs
    ) -> redis.Redis:
        """
        Create a Redis client with proper configuration.

        Args:
            redis_url: Complete Redis URL (takes precedence)
            host: Redis host
            port: Redis port
            password: Redis password
            settings: Database settings used for anything not passed explicitly
            **kwargs: Additional Redis client parameters

        Returns:
            Configured Redis client
        """
        settings = settings or DatabaseSettings()
        config = RedisClientFactory._build_config(redis_url, host, port, password, settings)

        pool_kwargs = {
            'max_connections': kwargs.pop('max_connections', settings.max_connections),
            'socket_connect_timeout': kwargs.pop('socket_connect_timeout', settings.socket_connect_timeout),
            'socket_timeout': kwargs.pop('socket_timeout', settings.socket_timeout),
            'decode_responses': kwargs.pop('decode_responses', True),
        }

        if config['url']:
            client = redis.Redis.from_url(
                config['url'],
                **pool_kwargs,
                **kwargs
            )
            logger.info(f"Redis client created from URL: {RedisClientFactory._mask_url(config['url'])}")
        else:
            client = redis.Redis(
                host=config['host'],
                port=config['port'],
                db=config['db'],
                password=config['password'],
                **pool_kwargs,
                **kwargs
            )
            logger.info(f"Redis client created: {config['host']}:{config['port']} (auth: {'yes' if config['password'] else 'no'})")

        return client

    @staticmethod
    def _build_config(
        redis_url: Optional[str],
        host: Optional[str],
        port: Optional[int],
        password: Optional[str],
        settings: DatabaseSettings
    ) -> dict:
        """Build Redis configuration from explicit arguments, then settings."""

        # 1. Explicit URL parameter
        if redis_url:
            return {'url': redis_url, 'host': None, 'port': None, 'db': None, 'password': None}

        # 2. REDIS_URL from settings, unless host/port were given explicitly
        if settings.redis_url and not (host or port):
            return {'url': settings.redis_url, 'host': None, 'port': None, 'db': None, 'password': None}

        settings_password = (
            settings.redis_password.get_secret_value() if settings.redis_password else None
        )
        config = {
            'url': None,
            'host': host or settings.redis_host,
            'port': port or settings.redis_port,
            'db': settings.redis_db,
            'password': password or settings_password,
        }
        logger.debug(f"Built Redis config from settings: {config['host']}:{config['port']}")
        return config

    @staticmethod
    def _mask_url(url: str) -> str:
        """Mask password in URL for logging."""
        parsed = urlparse(url)
        if parsed.password:
            masked_netloc = parsed.netloc.replace(parsed.password, '***')
            return url.replace(parsed.netloc, masked_netloc)
        return url

    @staticmethod
    def test_connection(client: redis.Redis) -> bool:
        """
        Test Redis connection health.

        Args:
            client: Redis client to test

        Returns:
            True if connection is healthy
        """
        try:
            response = client.ping()
        except redis.RedisError as e:
            logger.error(f"Redis connection test failed: {e}")
            return False
        if response:
            logger.info("Redis connection test successful")
            return True
        logger.error("Redis ping returned False")
        return False


def create_redis_client(**kwargs) -> redis.Redis:
    """
    Convenience function to create a Redis client.

    Usage:
        # Local development (REDIS_HOST / REDIS_PORT / REDIS_PASSWORD or defaults)
        client = create_redis_client()

        # Explicit configuration
        client = create_redis_client(host='10.0.0.5', port=6380, password='secret')

        # URL-based
        client = create_redis_client(redis_url='redis://:password@host:port/0')
    """
    return RedisClientFactory.create_client(**kwargs)


def validate_redis_connection(client: redis.Redis) -> None:
    """
    Validate Redis connection and log results.

    Raises:
        ConnectionError: If Redis is not accessible
    """
    if not RedisClientFactory.test_connection(client):
        raise ConnectionError("Redis connection validation failed")
