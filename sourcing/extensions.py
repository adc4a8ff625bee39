import logging
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import redis as _redis
from rq import Queue

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

# Set by init_redis; the bulk-scan lock and deferred admin runs read these
redis_client: _redis.Redis = None  # type: ignore
task_queue: Queue = None  # type: ignore


class DisabledQueue:
    """Stands in for the RQ queue when Redis is absent; deferred runs get a 503."""

    def __init__(self, name):
        self.name = name

    def enqueue(self, func, *args, **kwargs):
        logger.warning("Queue %s disabled, dropping job %s", self.name, func.__name__)
        return None


def init_redis(app):
    """Connect Redis and the sourcing job queue, or fall back to DisabledQueue."""
    global redis_client, task_queue
    redis_url = app.config.get("REDIS_URL", "")
    queue_name = app.config.get("RQ_QUEUE_NAME", "image-sourcing")
    if not redis_url:
        logger.warning("REDIS_URL not set: deferred runs and the scan lock are off")
        redis_client = None
        task_queue = DisabledQueue(queue_name)
        return

    try:
        redis_client = _redis.from_url(redis_url, decode_responses=False)
        redis_client.ping()
        task_queue = Queue(
            queue_name,
            connection=redis_client,
            default_timeout=app.config.get("RQ_JOB_TIMEOUT", 3600),
        )
    except _redis.RedisError as e:
        logger.warning("Redis unreachable at startup (%s): deferred runs disabled", e)
        redis_client = None
        task_queue = DisabledQueue(queue_name)
