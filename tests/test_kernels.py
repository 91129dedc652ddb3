# -- Cubic Spline Kernel Tests -- #

import math

import numpy as np
import pytest

from sphFluid.sph.kernels import CubicSplineKernel, kernelGradient, kernelValue


def testKernelNormalization():
    '''Lattice quadrature of W over the support integrates to one.'''
    h = 40.0
    spacing = h / 20.0
    span = np.arange(-20, 21) * spacing
    xx, yy, zz = np.meshgrid(span, span, span, indexing='ij')
    distances = np.sqrt(xx ** 2 + yy ** 2 + zz ** 2).ravel()

    integral = np.sum(CubicSplineKernel().evaluateBatch(distances, h)) * spacing ** 3
    assert integral == pytest.approx(1.0, rel=1e-2)


def testKernelCompactSupport():
    h = 40.0
    assert kernelValue(h, h) == pytest.approx(0.0, abs=1e-15)
    assert kernelValue(1.5 * h, h) == 0.0
    assert kernelValue(0.0, h) == pytest.approx(8.0 / (math.pi * h ** 3))
    assert kernelValue(0.3 * h, h) > kernelValue(0.6 * h, h) > 0.0


def testBatchMatchesScalar(kernel):
    h = 25.0
    distances = np.linspace(0.0, 1.2 * h, 37)
    batch = kernel.evaluateBatch(distances, h)
    scalar = np.array([kernel.evaluate(r, h) for r in distances])
    np.testing.assert_allclose(batch, scalar, rtol=1e-12, atol=1e-18)

    grads = kernel.gradientMagnitudeBatch(distances, h)
    scalarGrads = np.array([kernel.gradientMagnitude(r, h) for r in distances])
    np.testing.assert_allclose(grads, scalarGrads, rtol=1e-12, atol=1e-18)


@pytest.mark.parametrize('r, h', [
    (3.0, 40.0),
    (12.5, 40.0),
    (27.0, 40.0),
    (35.0, 40.0),
    (0.4, 1.0),
    (0.8, 1.0),
])
def testGradientMatchesFiniteDifference(r, h):
    direction = np.array([0.6, -0.48, 0.64])
    point = r * direction
    gradient = kernelGradient(point, np.zeros(3), h)

    eps = 1e-6 * h
    for axis in range(3):
        step = np.zeros(3)
        step[axis] = eps
        forward = kernelValue(float(np.linalg.norm(point + step)), h)
        backward = kernelValue(float(np.linalg.norm(point - step)), h)
        finiteDiff = (forward - backward) / (2.0 * eps)
        assert gradient[axis] == pytest.approx(finiteDiff, rel=1e-4, abs=1e-12 / h ** 4)


def testGradientAntisymmetry():
    rng = np.random.default_rng(3)
    h = 40.0
    for _ in range(20):
        a = rng.uniform(-20.0, 20.0, 3)
        b = rng.uniform(-20.0, 20.0, 3)
        np.testing.assert_allclose(kernelGradient(a, b, h), -kernelGradient(b, a, h))


def testGradientAtZeroDistanceIsZero(kernel):
    '''Coincident points give a zero gradient, never NaN.'''
    point = np.array([5.0, 5.0, 5.0])
    gradient = kernelGradient(point, point, 40.0)
    assert np.all(gradient == 0.0)

    batch = kernel.gradientBatch(np.zeros((2, 3)), np.zeros(2), 40.0)
    assert np.all(np.isfinite(batch))
    assert np.all(batch == 0.0)


def testGradientPointsTowardNeighbor():
    '''grad_i W points from i toward j: W grows as i approaches j.'''
    gradient = kernelGradient(np.array([10.0, 0.0, 0.0]), np.zeros(3), 40.0)
    assert gradient[0] < 0.0
    assert gradient[1] == 0.0 and gradient[2] == 0.0
