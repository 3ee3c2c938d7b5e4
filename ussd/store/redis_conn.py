from redis import Redis


def get_redis(url: str, socket_timeout: float = 5.0) -> Redis:
    return Redis.from_url(url, decode_responses=True, socket_timeout=socket_timeout)
