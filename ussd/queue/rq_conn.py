from redis import Redis
from rq import Queue


def get_queue(redis_url: str, name: str) -> Queue:
    # RQ needs a raw (bytes) connection, so it does not share the decoded client.
    conn = Redis.from_url(redis_url)
    return Queue(name, connection=conn)
