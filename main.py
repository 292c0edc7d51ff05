#!/usr/bin/env python3
"""
channel-health - Main Entry Point
Liveness monitoring for externally hosted IPTV channels.
"""

import uvicorn
import logging
import sys
import os
import asyncio

# Add the src directory to Python path so local modules in `src/` can be imported
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

# Import configs AFTER setting up the path
from redis_config import get_redis_config, should_use_redis
from config import settings, VERSION


def main():
    """Main function to start the channel-health server."""

    # Try to use uvloop for better async performance
    try:
        import uvloop
        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
        use_uvloop = True
    except ImportError:
        use_uvloop = False

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger = logging.getLogger(__name__)
    logger.info("="*60)
    logger.info(
        f"⚡️ Starting channel-health v{VERSION} on {settings.HOST}:{settings.PORT}")
    logger.info("="*60)
    logger.info(f"ℹ️  Log level set to: {settings.LOG_LEVEL}")
    if use_uvloop:
        logger.info("✅ Using uvloop for optimized async I/O performance")
    else:
        logger.info(
            "✅ Using standard asyncio (install uvloop for better performance)")

    if settings.HEALTH_CHECK_ENABLED:
        logger.info(
            f"✅ Health sweeps every {settings.HEALTH_CHECK_INTERVAL_HOURS}h "
            f"(batches of {settings.SWEEP_BATCH_SIZE}, offline after {settings.FAILURE_THRESHOLD} failures)")
    else:
        logger.info("⏸️  Periodic health sweeps disabled")

    if settings.RELOAD:
        logger.info("🔄 Auto-reload is enabled.")

    # If the Redis registry is enabled, perform a quick connectivity check and log result
    if should_use_redis():
        import redis.asyncio as redis_async
        from redis.exceptions import RedisError

        redis_url = get_redis_config().get('redis_url')

        async def _check_redis():
            client = redis_async.from_url(redis_url, decode_responses=True)
            try:
                await client.ping()
                return True
            except RedisError:
                return False
            finally:
                await client.aclose()

        if asyncio.run(_check_redis()):
            logger.info("✅ Redis available and reachable for the channel registry")
        else:
            logger.warning(
                f"❌  Redis configured but ping failed for: {redis_url}; sweeps will fail until it is reachable")

    uvicorn.run(
        "api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
        loop="uvloop" if use_uvloop and not settings.RELOAD else "asyncio"
    )


if __name__ == "__main__":
    main()
