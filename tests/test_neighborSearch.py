# -- Spatial Hash Grid Tests -- #

import numpy as np
import pytest

from sphFluid.sph.entities import BoundarySample, Particle
from sphFluid.sph.errors import InvalidConfigurationError
from sphFluid.sph.neighborSearch import SpatialHashGrid


def bruteForce(positions, point, radius):
    distances = np.linalg.norm(positions - point, axis=1)
    return set(np.flatnonzero(distances <= radius).tolist())


def testRejectsNonPositiveCellSize():
    with pytest.raises(InvalidConfigurationError):
        SpatialHashGrid(cellSize=0.0)
    with pytest.raises(InvalidConfigurationError):
        SpatialHashGrid(cellSize=-1.0)


def testInsertAndQueryEntities():
    '''Particles and boundary samples share one index through their ids.'''
    grid = SpatialHashGrid(cellSize=10.0)
    grid.insert(Particle(entityId=0, position=np.array([0.0, 0.0, 0.0])))
    grid.insert(Particle(entityId=1, position=np.array([4.0, 0.0, 0.0])))
    grid.insert(BoundarySample(entityId=2, position=np.array([0.0, -9.0, 0.0]), mass=1.0))
    grid.insert(BoundarySample(entityId=3, position=np.array([30.0, 0.0, 0.0]), mass=1.0))

    assert grid.nEntities == 4
    assert set(grid.queryRadius(np.zeros(3), 10.0).tolist()) == {0, 1, 2}
    assert set(grid.queryRadius(np.zeros(3), 5.0).tolist()) == {0, 1}
    assert grid.bucket((0, 0, 0)).tolist() == [0, 1]
    assert grid.bucket((0, -1, 0)).tolist() == [2]
    assert grid.bucket((5, 5, 5)).size == 0


def testNegativeCoordinatesFloorDivide():
    grid = SpatialHashGrid(cellSize=10.0)
    assert grid.cellKey(np.array([-0.5, 9.99, -10.0])) == (-1, 0, -1)


def testClearEmptiesGrid():
    grid = SpatialHashGrid(cellSize=5.0)
    grid.build(np.random.default_rng(0).uniform(-10.0, 10.0, (50, 3)))
    assert len(grid.queryRadius(np.zeros(3), 100.0)) == 50

    grid.clear()
    assert grid.nEntities == 0
    assert grid.queryRadius(np.zeros(3), 100.0).size == 0


@pytest.mark.parametrize('radius', [3.0, 10.0, 25.0])
def testQueryMatchesBruteForce(radius):
    '''Radii wider than a cell visit more rings of cells.'''
    rng = np.random.default_rng(42)
    positions = rng.uniform(-50.0, 50.0, (400, 3))
    grid = SpatialHashGrid(cellSize=10.0)
    grid.build(positions)

    for point in rng.uniform(-60.0, 60.0, (25, 3)):
        found = grid.queryRadius(point, radius)
        assert len(found) == len(set(found.tolist()))
        assert set(found.tolist()) == bruteForce(positions, point, radius)


def testRingWidth():
    grid = SpatialHashGrid(cellSize=10.0)
    assert grid.ringWidth(5.0) == 1
    assert grid.ringWidth(10.0) == 1
    assert grid.ringWidth(10.5) == 2
    assert grid.ringWidth(31.0) == 4


def testQueryPairsIncludesSelfAndDistances():
    rng = np.random.default_rng(7)
    positions = rng.uniform(0.0, 30.0, (60, 3))
    grid = SpatialHashGrid(cellSize=8.0)
    grid.build(positions)

    pairs = grid.queryPairs(positions, 8.0)
    selfPairs = pairs.entityIds == pairs.queryIndices
    assert np.count_nonzero(selfPairs) == len(positions)
    assert np.all(pairs.distances[selfPairs] == 0.0)

    expected = positions[pairs.queryIndices] - positions[pairs.entityIds]
    np.testing.assert_allclose(pairs.displacements, expected)
    np.testing.assert_allclose(pairs.distances, np.linalg.norm(expected, axis=1))

    # Pair list is symmetric: (i, j) present iff (j, i) present
    forward = set(zip(pairs.queryIndices.tolist(), pairs.entityIds.tolist()))
    assert forward == {(j, i) for i, j in forward}


def testInsertCopiesPositions():
    '''Moving the caller's array after insert does not corrupt the buckets.'''
    positions = np.array([[1.0, 1.0, 1.0], [2.0, 2.0, 2.0]])
    grid = SpatialHashGrid(cellSize=5.0)
    grid.insertMany(np.array([0, 1]), positions)
    positions += 100.0

    assert set(grid.queryRadius(np.zeros(3), 5.0).tolist()) == {0, 1}


def testEmptyGridQuery():
    grid = SpatialHashGrid(cellSize=1.0)
    assert len(grid.queryPairs(np.zeros((3, 3)), 1.0)) == 0


def testCellCountTracksOccupiedCells():
    grid = SpatialHashGrid(cellSize=10.0)
    grid.insertMany(
        np.array([0, 1, 2, 3]),
        np.array([[1.0, 1.0, 1.0], [9.0, 9.0, 9.0], [11.0, 1.0, 1.0], [-1.0, 1.0, 1.0]]),
    )
    assert grid.nCells == 3

    grid.clear()
    assert grid.nCells == 0
