"""고정소수점 수치 커널

SCALE = 10**18 정수 표현 ("1.0" == SCALE).
exp / ln / pow 근사. 전부 순수 함수: 외부 의존 없음.

정밀도: 두 다항식 절단(exp 5차 Taylor, ln 5항 atanh 급수)의 오차 수준.
화면 표시용 금융 정밀도에는 충분하지만, 여러 연산을 연쇄하는 용도는 아니다.
클램프 임계값(±60, 축소 경계 2.0)은 호출자가 의존하는 계약이므로 바꾸지 않는다.
음수 인자의 exp는 리터럴 Taylor 다항식이 아니라 SCALE² / poly(|x|) 로 평가한다.
리터럴 다항식은 음수 쪽 상대 오차가 커서 축소 경계에서 단조성이 깨지므로 의도적으로 벗어난다.
"""

from decimal import Decimal
from typing import Union

SCALE = 10**18
MAX_UINT256 = (1 << 256) - 1

EXP_LOWER_BOUND = -60 * SCALE
EXP_UPPER_BOUND = 60 * SCALE
REDUCTION_BOUND = 2 * SCALE

_TAYLOR_TERMS = 5
_LN_SERIES_DENOMINATORS = (3, 5, 7, 9)


class FixedPointDomainError(ValueError):
    """정의역 밖 입력 (ln(0), pow(0, p) 등)"""


def tdiv(numerator: int, denominator: int) -> int:
    """0 방향 절단 나눗셈. 음수에서도 부호 대칭을 유지한다."""
    if denominator == 0:
        raise ZeroDivisionError("fixed-point division by zero")
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def mul(a: int, b: int) -> int:
    """고정소수점 곱 a·b / SCALE"""
    return tdiv(a * b, SCALE)


def div(a: int, b: int) -> int:
    """고정소수점 나눗셈 a·SCALE / b"""
    return tdiv(a * SCALE, b)


def to_fixed(value: Union[Decimal, int, str]) -> int:
    """Decimal/정수/문자열 → 고정소수점 정수 (0 방향 절단)"""
    return int(Decimal(value) * SCALE)


def from_fixed(value: int) -> Decimal:
    """고정소수점 정수 → Decimal (표시용)"""
    return Decimal(value) / Decimal(SCALE)


def _exp_taylor(x: int) -> int:
    """0 <= x <= 2.0 구간의 1 + x + x²/2 + x³/6 + x⁴/24 + x⁵/120"""
    total = SCALE
    term = SCALE
    for n in range(1, _TAYLOR_TERMS + 1):
        term = tdiv(term * x, SCALE * n)
        total += term
    return total


def exp(x: int) -> int:
    """e^x (부호 있는 고정소수점).

    x <= -60 → 0, x >= 60 → MAX_UINT256.
    |x| > 2 이면 e^x = (e^(x/2))² 로 반씩 줄인 뒤 다항식을 평가한다.
    음수 인자는 SCALE² / poly(|x|) 로 평가해 양수·단조성을 유지한다.
    """
    if x <= EXP_LOWER_BOUND:
        return 0
    if x >= EXP_UPPER_BOUND:
        return MAX_UINT256
    if abs(x) > REDUCTION_BOUND:
        half = exp(tdiv(x, 2))
        return mul(half, half)
    if x < 0:
        return tdiv(SCALE * SCALE, _exp_taylor(-x))
    return _exp_taylor(x)


def exp_neg(x: int) -> int:
    """e^(-x), x >= 0. x >= 60 이면 0."""
    if x < 0:
        raise FixedPointDomainError(f"exp_neg expects a non-negative input, got {x}")
    if x >= EXP_UPPER_BOUND:
        return 0
    return exp(-x)


def ln(a: int) -> int:
    """자연로그 (a > 0). atanh 급수 5항 절단.

    ln(a) = 2·(y + y³/3 + y⁵/5 + y⁷/7 + y⁹/9),  y = (a-1)/(a+1)
    a < 1.0 이면 음수.
    """
    if a <= 0:
        raise FixedPointDomainError(f"ln undefined for {a}")
    y = tdiv((a - SCALE) * SCALE, a + SCALE)
    y_squared = mul(y, y)

    total = y
    term = y
    for denominator in _LN_SERIES_DENOMINATORS:
        term = mul(term, y_squared)
        total += tdiv(term, denominator)
    return 2 * total


def pow(a: int, p: int) -> int:
    """a^p = exp(ln(a)·p). a > 0, p는 부호 있는 고정소수점."""
    if a <= 0:
        raise FixedPointDomainError(f"pow undefined for base {a}")
    result = exp(mul(ln(a), p))
    # 근사 다항식이 정의역 끝에서 음수를 낼 가능성에 대한 명시적 검사
    if result < 0:
        raise FixedPointDomainError(f"pow({a}, {p}) produced a negative result")
    return result


def one_minus_exp_neg(s: int, s0: int) -> int:
    """1 - e^(-s/s0). 어느 한쪽이 0이면 0."""
    if s == 0 or s0 == 0:
        return 0
    ratio = tdiv(s * SCALE, s0)
    return max(0, SCALE - exp_neg(ratio))
