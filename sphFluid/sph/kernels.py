# -- SPH Smoothing Kernels -- #

'''
Smoothing kernel functions for SPH interpolation.

Implements the 3D cubic spline (M4) kernel and its gradient. Every
function takes the kernel support radius h: the kernel vanishes for
r > h. Internally the spline is written in smoothing-length units,
q = r / (h/2), so the two spline branches meet at r = h/2 and the
support ends at q = 2.

Key properties of a valid SPH kernel:
- Normalization: integral of W over the ball of radius h = 1
- Compact support: W = 0 for r > h
- Positivity: W >= 0 within support
- Gradient vanishes at r = 0 by symmetry

References:
-----------
Monaghan (1992) -- Smoothed Particle Hydrodynamics
Monaghan & Lattanzio (1985) -- A refined particle method for
    astrophysical problems
'''

from __future__ import annotations

import math
from typing import Protocol

import numpy as np

from sphFluid import constants as const


######################################################################
# -- Kernel Protocol -- #
######################################################################

class SphKernel(Protocol):
    '''Protocol for SPH smoothing kernel functions.'''

    def evaluate(self, r: float, h: float) -> float:
        '''Evaluate kernel W(r, h) for support radius h.'''
        ...

    def gradient(self, rVec: np.ndarray, r: float, h: float) -> np.ndarray:
        '''Evaluate nabla_W for rVec = r_i - r_j, r = |rVec|.'''
        ...

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''Evaluate W for an array of distances.'''
        ...

    def gradientBatch(
        self, drVecs: np.ndarray, distances: np.ndarray, h: float
    ) -> np.ndarray:
        '''Evaluate nabla_W for an array of displacement vectors.'''
        ...


######################################################################
# -- Cubic Spline Kernel (M4) -- #
######################################################################

class CubicSplineKernel:
    '''
    3D cubic spline (M4) smoothing kernel with support radius h.

    With q = r / (h/2):

    W(q) = alpha * {
        1 - (3/2)*q^2 + (3/4)*q^3    for 0 <= q <= 1
        (1/4)*(2 - q)^3               for 1 < q <= 2
        0                              for q > 2
    }

    alpha = 8 / (pi * h^3), which is the usual 1 / (pi * h_s^3) for
    the smoothing length h_s = h/2.
    '''

    @staticmethod
    def _normalization(h: float) -> float:
        '''
        Compute normalization constant alpha for support radius h.

        Parameters:
        -----------
        h : float
            Support radius

        Returns:
        --------
        float : Normalization constant alpha
        '''
        return 8.0 / (math.pi * h * h * h)

    def evaluate(self, r: float, h: float) -> float:
        '''
        Evaluate cubic spline kernel W(r, h).

        Parameters:
        -----------
        r : float
            Distance between the two points
        h : float
            Support radius

        Returns:
        --------
        float : Kernel value [1/length^3], zero beyond the support
        '''
        q = 2.0 * r / h
        alpha = self._normalization(h)

        if q <= 1.0:
            # Inner region: 1 - (3/2)*q^2 + (3/4)*q^3
            return alpha * (1.0 - 1.5 * q * q + 0.75 * q * q * q)
        elif q <= 2.0:
            # Outer region: (1/4)*(2 - q)^3
            twoMinusQ = 2.0 - q
            return alpha * 0.25 * twoMinusQ * twoMinusQ * twoMinusQ
        else:
            # Beyond support
            return 0.0

    def gradientMagnitude(self, r: float, h: float) -> float:
        '''
        Compute the scalar part of the kernel gradient: dW/dr.

        The full gradient is: grad_W = (dW/dr) * (rVec / r)

        Parameters:
        -----------
        r : float
            Distance between the two points
        h : float
            Support radius

        Returns:
        --------
        float : dW/dr (non-positive)
        '''
        smoothingLength = 0.5 * h
        q = r / smoothingLength
        alpha = self._normalization(h)

        if q < const.zeroDistance:
            # At r = 0, gradient is zero by symmetry
            return 0.0
        elif q <= 1.0:
            # dW/dq = -3*q + (9/4)*q^2
            dwdq = -3.0 * q + 2.25 * q * q
            return alpha * dwdq / smoothingLength
        elif q <= 2.0:
            # dW/dq = -(3/4)*(2-q)^2
            twoMinusQ = 2.0 - q
            dwdq = -0.75 * twoMinusQ * twoMinusQ
            return alpha * dwdq / smoothingLength
        else:
            return 0.0

    def gradient(self, rVec: np.ndarray, r: float, h: float) -> np.ndarray:
        '''
        Evaluate kernel gradient vector nabla_W with respect to r_i.

        grad_W = (dW/dr) * (rVec / |rVec|)

        Parameters:
        -----------
        rVec : np.ndarray
            Vector from point j to point i (r_i - r_j)
        r : float
            Distance |rVec|
        h : float
            Support radius

        Returns:
        --------
        np.ndarray : Gradient vector, zero when r = 0
        '''
        if r < const.zeroDistance:
            return np.zeros_like(rVec, dtype=float)

        dwdr = self.gradientMagnitude(r, h)
        return dwdr * np.asarray(rVec, dtype=float) / r

    ######################################################################
    # -- Vectorized (Batch) Operations -- #
    ######################################################################

    def evaluateBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        Evaluate kernel W(r, h) for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Array of distances, shape (N,)
        h : float
            Support radius

        Returns:
        --------
        np.ndarray : Kernel values, shape (N,)
        '''
        q = 2.0 * np.asarray(distances, dtype=float) / h
        alpha = self._normalization(h)

        result = np.zeros_like(q)

        # Inner region: q <= 1
        inner = q <= 1.0
        qInner = q[inner]
        result[inner] = alpha * (1.0 - 1.5 * qInner ** 2 + 0.75 * qInner ** 3)

        # Outer region: 1 < q <= 2
        outer = (q > 1.0) & (q <= 2.0)
        twoMinusQ = 2.0 - q[outer]
        result[outer] = alpha * 0.25 * twoMinusQ ** 3

        return result

    def gradientMagnitudeBatch(self, distances: np.ndarray, h: float) -> np.ndarray:
        '''
        Compute dW/dr for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Array of distances, shape (N,)
        h : float
            Support radius

        Returns:
        --------
        np.ndarray : dW/dr values, shape (N,)
        '''
        smoothingLength = 0.5 * h
        q = np.asarray(distances, dtype=float) / smoothingLength
        alpha = self._normalization(h)

        result = np.zeros_like(q)

        # Inner region: 0 < q <= 1
        inner = (q >= const.zeroDistance) & (q <= 1.0)
        qInner = q[inner]
        result[inner] = alpha * (-3.0 * qInner + 2.25 * qInner ** 2) / smoothingLength

        # Outer region: 1 < q <= 2
        outer = (q > 1.0) & (q <= 2.0)
        twoMinusQ = 2.0 - q[outer]
        result[outer] = alpha * (-0.75 * twoMinusQ ** 2) / smoothingLength

        return result

    def gradientBatch(
        self, drVecs: np.ndarray, distances: np.ndarray, h: float
    ) -> np.ndarray:
        '''
        Evaluate kernel gradient vectors for an array of point pairs.

        grad_W_k = (dW/dr)_k * (dr_k / |dr_k|)

        Parameters:
        -----------
        drVecs : np.ndarray
            Displacement vectors r_i - r_j, shape (N, 3)
        distances : np.ndarray
            Distances |dr|, shape (N,)
        h : float
            Support radius

        Returns:
        --------
        np.ndarray : Gradient vectors, shape (N, 3)
        '''
        dwdr = self.gradientMagnitudeBatch(distances, h)

        # Avoid division by zero
        safeDistances = np.where(distances > const.zeroDistance, distances, 1.0)
        gradients = (dwdr / safeDistances)[:, np.newaxis] * drVecs

        # Zero out where distance was zero
        gradients[distances <= const.zeroDistance] = 0.0

        return gradients


######################################################################
# -- Module-level Helpers -- #
######################################################################

_defaultKernel = CubicSplineKernel()


def kernelValue(r: float, h: float) -> float:
    '''Cubic spline W(r, h) for distance r and support radius h.'''
    return _defaultKernel.evaluate(r, h)


def kernelGradient(fromPos, toPos, h: float) -> np.ndarray:
    '''
    Gradient of W with respect to fromPos, for the pair (fromPos, toPos).

    kernelGradient(a, b, h) == -kernelGradient(b, a, h). Coincident
    points return the zero vector.
    '''
    rVec = np.asarray(fromPos, dtype=float) - np.asarray(toPos, dtype=float)
    r = float(np.linalg.norm(rVec))
    return _defaultKernel.gradient(rVec, r, h)
