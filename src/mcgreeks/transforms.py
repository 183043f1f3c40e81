r"""
Box-Muller transform for lane-wide uniform draws.

Given independent :math:`U_1, U_2 \sim \mathcal{U}(0, 1)`,

.. math::

   R = \sqrt{-2\ln U_1}, \qquad \Theta = 2\pi U_2, \qquad
   (Z_1, Z_2) = (R\sin\Theta,\; R\cos\Theta)

are two independent standard normals. The path loop only needs their sum
:math:`Z_1 + Z_2 \sim \mathcal{N}(0, 2)`, and pulls the :math:`\sqrt{2}` out of
:math:`R` into the per-call diffusion constant (see
:attr:`~mcgreeks.parameters.DerivedConstants.total_diffusion_scale`).
"""

from __future__ import annotations

import numpy as np

__all__ = ["box_muller", "box_muller_half_radius", "TWO_PI"]

TWO_PI = 2.0 * np.pi


def _clamped_log(u: np.ndarray) -> np.ndarray:
    """Natural log with exact zeros lifted to the dtype's smallest normal value."""
    u = np.asarray(u)
    dtype = u.dtype if np.issubdtype(u.dtype, np.floating) else np.dtype(float)
    return np.log(np.maximum(u, np.finfo(dtype).tiny))


def box_muller(u1: np.ndarray, u2: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    r"""
    Map two uniform lanes to two independent standard-normal lanes.

    Parameters
    ----------
    u1, u2 : ndarray
        Uniform draws on :math:`(0, 1)`. Zeros in ``u1`` are clamped before the
        logarithm.

    Returns
    -------
    tuple of ndarray
        ``(R sin(2 pi u2), R cos(2 pi u2))`` with :math:`R = \sqrt{-2 \ln u_1}`.

    Examples
    --------
    >>> z1, z2 = box_muller(np.array([np.exp(-0.5)]), np.array([0.0]))
    >>> round(float(z1[0]), 12), round(float(z2[0]), 12)
    (0.0, 1.0)
    """
    radius = np.sqrt(-2.0 * _clamped_log(u1))
    angle = TWO_PI * np.asarray(u2)
    return radius * np.sin(angle), radius * np.cos(angle)


def box_muller_half_radius(u1: np.ndarray, u2: np.ndarray) -> np.ndarray:
    r"""
    Fused Box-Muller pair used by the path loop.

    Returns :math:`\sqrt{-\ln u_1}\,(\sin 2\pi u_2 + \cos 2\pi u_2)`, which equals
    :math:`(Z_1 + Z_2)/\sqrt{2}`.
    """
    angle = TWO_PI * u2
    return np.sqrt(-_clamped_log(u1)) * (np.sin(angle) + np.cos(angle))
