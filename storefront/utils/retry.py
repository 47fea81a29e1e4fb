# storefront/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import requests
import redis

from storefront.utils.settings import RETRY_ATTEMPTS


# tylko dla infrastruktury (redis, wysylka maili w workerze)
# wywolania oauth / pwned nie sa ponawiane
def _backoff(exc_types, base: float, max_wait: float, attempts: int):
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=base, min=base, max=max_wait),
        retry=retry_if_exception_type(exc_types),
    )


def http_retry(attempts: int = RETRY_ATTEMPTS):
    # graph token + sendMail
    return _backoff(requests.RequestException, 0.3, 3, attempts)


def redis_retry(attempts: int = RETRY_ATTEMPTS):
    return _backoff(redis.RedisError, 0.2, 2, attempts)
