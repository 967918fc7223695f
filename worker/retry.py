"""재시도 backoff 계산"""

import random


def compute_backoff(
    attempts: int,
    base_seconds: float,
    max_seconds: float,
    jitter: float = 0.2,
    rng: random.Random | None = None,
) -> float:
    """
    지수 backoff (jitter 포함)

    base * 2^(attempts-1) 을 max_seconds로 자른 뒤 [1-jitter, 1+jitter] 범위의
    임의 배수를 곱한다.

    Args:
        attempts: 지금까지의 시도 횟수 (1 이상)
        base_seconds: 첫 재시도 대기 시간
        max_seconds: 대기 시간 상한 (jitter 적용 전)
        jitter: 흔들림 비율 (0이면 고정)
        rng: 난수 생성기 (테스트에서 고정 seed 주입)
    """
    exponent = max(attempts - 1, 0)
    delay = min(base_seconds * (2 ** exponent), max_seconds)
    if jitter > 0:
        rng = rng or random
        delay *= rng.uniform(1 - jitter, 1 + jitter)
    return max(delay, 0.0)
