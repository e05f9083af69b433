"""
black_scholes.py - Black-Scholes Option Pricing and Greeks

European Black-Scholes formulas with a continuously compounded risk-free
rate. Time to expiry is in years (calendar days / 365).

Provides:
- Option pricing (call, put) and intrinsic value
- Greeks (delta, gamma, theta per calendar day, vega per 1% vol)
- option_price / greeks dispatchers that fall back to intrinsic at expiry

Naming convention:
- s: spot, k: strike, t: years to expiry, r: risk-free rate, v: volatility

Every public function accepts Decimal and returns Decimal quantized to 1e-8.
The math runs in float through numpy/scipy.
"""

import math
import numpy as np
from dataclasses import dataclass
from typing import Union
from scipy.special import erf as scipy_erf
from decimal import Decimal, ROUND_HALF_EVEN

from .core import InvalidParameter, OptionType


# Type alias for scalar or array inputs
Numeric = Union[float, np.ndarray]

# Constants
CALENDAR_DAYS_PER_YEAR = 365.0
SQRT_2 = math.sqrt(2.0)
INV_SQRT_2PI = 1.0 / math.sqrt(2.0 * math.pi)
RESULT_QUANTUM = Decimal("0.00000001")

def _to_result(value: Numeric) -> Decimal:
    return Decimal(str(float(value))).quantize(RESULT_QUANTUM, rounding=ROUND_HALF_EVEN)


def years_from_days(days) -> Decimal:
    """Convert calendar days to the year fraction used by every formula."""
    return Decimal(str(days)) / Decimal(str(CALENDAR_DAYS_PER_YEAR))


# ============================================================================
# NORMAL DISTRIBUTION FUNCTIONS
# ============================================================================

def normal_cdf(x: Numeric) -> Numeric:
    """
    Standard normal cumulative distribution function.

    Built on scipy's erf, which is odd-symmetric, so N(-x) == 1 - N(x)
    holds to float precision.
    """
    return 0.5 * (1.0 + scipy_erf(np.asarray(x) / SQRT_2))


def normal_pdf(x: Numeric) -> Numeric:
    """Standard normal probability density function."""
    return INV_SQRT_2PI * np.exp(-0.5 * x * x)


# ============================================================================
# D1 AND D2
# ============================================================================

def _validate_bs_inputs(s: Numeric, k: Numeric, t: Numeric, v: Numeric) -> None:
    """Validate Black-Scholes inputs to prevent division by zero and NaN/Inf."""
    s_arr = np.asarray(s)
    k_arr = np.asarray(k)
    t_arr = np.asarray(t)
    v_arr = np.asarray(v)
    if not np.all(np.isfinite(s_arr)) or np.any(s_arr <= 0):
        raise InvalidParameter("spot price must be positive and finite")
    if not np.all(np.isfinite(k_arr)) or np.any(k_arr <= 0):
        raise InvalidParameter("strike must be positive and finite")
    if not np.all(np.isfinite(t_arr)) or np.any(t_arr <= 0):
        raise InvalidParameter("time to expiry must be positive and finite")
    if not np.all(np.isfinite(v_arr)) or np.any(v_arr <= 0):
        raise InvalidParameter("volatility must be positive and finite")


def d1(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """
    Calculate d1 in the Black-Scholes formula.

    d1 = (ln(S/K) + (r + σ²/2)*T) / (σ*√T)

    Raises:
        InvalidParameter: If s, k, t or v is non-positive or not finite
    """
    _validate_bs_inputs(s, k, t, v)
    return (np.log(s / k) + (r + 0.5 * v * v) * t) / (v * np.sqrt(t))


def d2(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """
    Calculate d2 in the Black-Scholes formula.

    d2 = d1 - σ*√T
    """
    return d1(s, k, t, r, v) - v * np.sqrt(t)


# ============================================================================
# OPTION PRICES
# ============================================================================

def _call_float(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """
    Black-Scholes call price. Internal float implementation.

    C = S*N(d1) - K*e^(-rT)*N(d2)
    """
    d1_val = d1(s, k, t, r, v)
    d2_val = d1_val - v * np.sqrt(t)
    return s * normal_cdf(d1_val) - k * np.exp(-r * t) * normal_cdf(d2_val)


def call(s: Decimal, k: Decimal, t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """Black-Scholes call price with Decimal interface."""
    return _to_result(_call_float(float(s), float(k), float(t), float(r), float(v)))


def _put_float(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """
    Black-Scholes put price. Internal float implementation.

    P = K*e^(-rT)*N(-d2) - S*N(-d1)
    """
    d1_val = d1(s, k, t, r, v)
    d2_val = d1_val - v * np.sqrt(t)
    return k * np.exp(-r * t) * normal_cdf(-d2_val) - s * normal_cdf(-d1_val)


def put(s: Decimal, k: Decimal, t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """Black-Scholes put price with Decimal interface."""
    return _to_result(_put_float(float(s), float(k), float(t), float(r), float(v)))


def intrinsic_value(option_type: OptionType, s: Decimal, k: Decimal) -> Decimal:
    """Exercise value: max(S-K, 0) for calls, max(K-S, 0) for puts."""
    if option_type is OptionType.CALL:
        return max(s - k, Decimal("0"))
    return max(k - s, Decimal("0"))


def option_price(option_type: OptionType, s: Decimal, k: Decimal,
                 t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """
    Price a call or put. At or past expiry (t <= 0) returns intrinsic value.
    """
    if t <= 0:
        return intrinsic_value(option_type, s, k)
    if option_type is OptionType.CALL:
        return call(s, k, t, r, v)
    return put(s, k, t, r, v)


# ============================================================================
# GREEKS
# ============================================================================

def _call_delta_float(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """Call delta: ∂C/∂S = N(d1). Internal float implementation."""
    return normal_cdf(d1(s, k, t, r, v))


def call_delta(s: Decimal, k: Decimal, t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """Call delta with Decimal interface."""
    return _to_result(_call_delta_float(float(s), float(k), float(t), float(r), float(v)))


def _put_delta_float(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """Put delta: ∂P/∂S = N(d1) - 1. Internal float implementation."""
    return -normal_cdf(-d1(s, k, t, r, v))


def put_delta(s: Decimal, k: Decimal, t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """Put delta with Decimal interface."""
    return _to_result(_put_delta_float(float(s), float(k), float(t), float(r), float(v)))


def _gamma_float(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """
    Gamma: ∂²C/∂S² (same for calls and puts). Internal float implementation.

    Γ = n(d1) / (S*σ*√T)
    """
    return normal_pdf(d1(s, k, t, r, v)) / (s * v * np.sqrt(t))


def gamma(s: Decimal, k: Decimal, t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """Gamma with Decimal interface."""
    return _to_result(_gamma_float(float(s), float(k), float(t), float(r), float(v)))


def _call_theta_float(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """
    Call theta per calendar day. Internal float implementation.

    Θ = (-S*n(d1)*σ/(2√T) - r*K*e^(-rT)*N(d2)) / 365
    Negative for a long call: value lost per day held.
    """
    d1_val = d1(s, k, t, r, v)
    d2_val = d1_val - v * np.sqrt(t)
    annual = (-s * normal_pdf(d1_val) * v / (2.0 * np.sqrt(t))
              - r * k * np.exp(-r * t) * normal_cdf(d2_val))
    return annual / CALENDAR_DAYS_PER_YEAR


def call_theta(s: Decimal, k: Decimal, t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """Call theta with Decimal interface."""
    return _to_result(_call_theta_float(float(s), float(k), float(t), float(r), float(v)))


def _put_theta_float(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """
    Put theta per calendar day. Internal float implementation.

    Θ = (-S*n(d1)*σ/(2√T) + r*K*e^(-rT)*N(-d2)) / 365
    """
    d1_val = d1(s, k, t, r, v)
    d2_val = d1_val - v * np.sqrt(t)
    annual = (-s * normal_pdf(d1_val) * v / (2.0 * np.sqrt(t))
              + r * k * np.exp(-r * t) * normal_cdf(-d2_val))
    return annual / CALENDAR_DAYS_PER_YEAR


def put_theta(s: Decimal, k: Decimal, t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """Put theta with Decimal interface."""
    return _to_result(_put_theta_float(float(s), float(k), float(t), float(r), float(v)))


def _vega_float(s: Numeric, k: Numeric, t: Numeric, r: Numeric, v: Numeric) -> Numeric:
    """
    Vega per 1 percentage point of volatility. Internal float implementation.

    ν = S*n(d1)*√T / 100
    """
    return s * normal_pdf(d1(s, k, t, r, v)) * np.sqrt(t) / 100.0


def vega(s: Decimal, k: Decimal, t: Decimal, r: Decimal, v: Decimal) -> Decimal:
    """Vega with Decimal interface."""
    return _to_result(_vega_float(float(s), float(k), float(t), float(r), float(v)))


@dataclass(frozen=True, slots=True)
class Greeks:
    delta: Decimal
    gamma: Decimal
    theta: Decimal
    vega: Decimal


def greeks(option_type: OptionType, s: Decimal, k: Decimal,
           t: Decimal, r: Decimal, v: Decimal) -> Greeks:
    """
    All four Greeks for one option.

    At or past expiry the option is a step function of spot: delta is 1/-1
    in the money (0 otherwise) and the remaining Greeks are zero.
    """
    zero = Decimal("0")
    if t <= 0:
        in_money = intrinsic_value(option_type, s, k) > 0
        if not in_money:
            delta = zero
        elif option_type is OptionType.CALL:
            delta = Decimal("1")
        else:
            delta = Decimal("-1")
        return Greeks(delta=delta, gamma=zero, theta=zero, vega=zero)

    if option_type is OptionType.CALL:
        return Greeks(
            delta=call_delta(s, k, t, r, v),
            gamma=gamma(s, k, t, r, v),
            theta=call_theta(s, k, t, r, v),
            vega=vega(s, k, t, r, v),
        )
    return Greeks(
        delta=put_delta(s, k, t, r, v),
        gamma=gamma(s, k, t, r, v),
        theta=put_theta(s, k, t, r, v),
        vega=vega(s, k, t, r, v),
    )
