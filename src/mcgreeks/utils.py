r"""
Critical values for confidence intervals.

Functions
    :func:`z_crit` — Two-sided normal critical value
    :func:`t_crit` — Two-sided Student-t critical value
    :func:`autocrit` — Pick z or t from the method and sample size
"""

from __future__ import annotations

from scipy.stats import norm, t

__all__ = ["z_crit", "t_crit", "autocrit"]


def z_crit(confidence: float) -> float:
    r"""
    Two-sided normal critical value :math:`z_{1-\alpha/2}`.

    Examples
    --------
    >>> round(z_crit(0.95), 3)
    1.96
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    return float(norm.ppf(0.5 + confidence / 2.0))


def t_crit(confidence: float, df: int) -> float:
    r"""Two-sided Student-t critical value :math:`t_{1-\alpha/2,\,df}`."""
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    if df < 1:
        raise ValueError("df must be >= 1")
    return float(t.ppf(0.5 + confidence / 2.0, df))


def autocrit(confidence: float, n: int, method: str = "auto") -> tuple[float, str]:
    r"""
    Select a critical value for a mean CI.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    n : int
        Effective sample size.
    method : {"auto", "z", "t"}, default "auto"
        ``"auto"`` uses Student-t when :math:`n < 30`, otherwise z.

    Returns
    -------
    tuple of (float, str)
        Critical value and the method actually used (``"z"`` or ``"t"``).
    """
    method = getattr(method, "value", method)
    if method not in ("auto", "z", "t"):
        raise ValueError(f"method must be 'auto', 'z' or 't', got {method!r}")
    use_t = method == "t" or (method == "auto" and n < 30)
    if use_t and n >= 2:
        return t_crit(confidence, n - 1), "t"
    return z_crit(confidence), "z"
