# -- Spatial Hash Grid for Neighbor Search -- #

'''
Uniform-grid spatial hashing for neighbor search in SPH.

Divides space into cubic cells of a fixed size (conventionally the
kernel support radius). Each entity is filed under the cell its
position floor-divides to. A radius query visits the block of cells
around the query point -- 3x3x3 when the radius fits in one cell,
wider rings otherwise -- then keeps only entities whose true distance
is within the radius, since cubic cells over-cover a sphere.

Cell contents are held as one array sorted by packed cell key, so a
bucket is a contiguous run found with a binary search and a batch of
queries can be answered with NumPy operations only.

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
Green (2010) -- Particle Simulation using CUDA
'''

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from sphFluid.sph.entities import Positioned
from sphFluid.sph.errors import InvalidConfigurationError


# Each integer cell coordinate is stored in 21 bits of the packed key
_keyBits = 21
_keyOffset = 1 << (_keyBits - 1)
_keyMask = (1 << _keyBits) - 1


#--------------------------------------------------------------------#
# -- Neighbor Search Protocol -- #
#--------------------------------------------------------------------#

class NeighborSearch(Protocol):
    '''Protocol for neighbor search structures.'''

    def clear(self) -> None:
        '''Remove every entity.'''
        ...

    def insert(self, entity: Positioned) -> None:
        '''File one entity under the cell of its current position.'''
        ...

    def insertMany(self, entityIds: np.ndarray, positions: np.ndarray) -> None:
        '''File a batch of ids under the cells of their positions.'''
        ...

    def queryRadius(self, position: np.ndarray, radius: float) -> np.ndarray:
        '''Ids of all entities within radius of position.'''
        ...

    def queryPairs(self, queryPositions: np.ndarray, radius: float) -> NeighborPairs:
        '''All (query, entity) pairs within radius.'''
        ...


#--------------------------------------------------------------------#
# -- Neighbor Pair List -- #
#--------------------------------------------------------------------#

@dataclass
class NeighborPairs:
    '''
    Flat list of (query point, entity) pairs within a search radius.

    Parameters:
    -----------
    queryIndices : np.ndarray
        Row of the query point in the queried array, shape (P,)
    entityIds : np.ndarray
        Id of the neighboring entity, shape (P,)
    displacements : np.ndarray
        queryPosition - entityPosition, shape (P, 3)
    distances : np.ndarray
        |displacement|, shape (P,)
    '''

    queryIndices: np.ndarray
    entityIds: np.ndarray
    displacements: np.ndarray
    distances: np.ndarray

    @classmethod
    def empty(cls) -> NeighborPairs:
        '''Pair list with no entries.'''
        return cls(
            queryIndices=np.array([], dtype=np.int64),
            entityIds=np.array([], dtype=np.int64),
            displacements=np.zeros((0, 3)),
            distances=np.zeros(0),
        )

    def __len__(self) -> int:
        return len(self.queryIndices)

    def select(self, mask: np.ndarray) -> NeighborPairs:
        '''Subset of the pairs where mask is True.'''
        return NeighborPairs(
            queryIndices=self.queryIndices[mask],
            entityIds=self.entityIds[mask],
            displacements=self.displacements[mask],
            distances=self.distances[mask],
        )


#--------------------------------------------------------------------#
# -- Spatial Hash Grid -- #
#--------------------------------------------------------------------#

class SpatialHashGrid:
    '''
    Uniform grid spatial hashing for 3D neighbor search.

    The only mutation pattern is clear() followed by inserts; the
    sorted bucket arrays are rebuilt lazily on the first query after
    an insert, so every query sees the positions as last inserted.

    Parameters:
    -----------
    cellSize : float
        Grid cell edge length, should be at least the kernel support radius
    '''

    def __init__(self, cellSize: float) -> None:
        if not (cellSize > 0.0 and math.isfinite(cellSize)):
            raise InvalidConfigurationError(
                f'Cell size must be a positive finite number, got {cellSize}'
            )
        self._cellSize = float(cellSize)
        self.clear()

    @property
    def cellSize(self) -> float:
        '''Grid cell edge length.'''
        return self._cellSize

    @property
    def nEntities(self) -> int:
        '''Number of entities currently filed in the grid.'''
        return sum(len(ids) for ids in self._pendingIds)

    @property
    def nCells(self) -> int:
        '''Number of non-empty cells.'''
        self._finalize()
        return int(len(np.unique(self._sortedKeys)))

    ######################################################################
    # -- Mutation -- #
    ######################################################################

    def clear(self) -> None:
        '''Remove every entity and bucket.'''
        self._pendingIds: list[np.ndarray] = []
        self._pendingPositions: list[np.ndarray] = []
        self._sortedKeys = np.array([], dtype=np.int64)
        self._sortedIds = np.array([], dtype=np.int64)
        self._sortedPositions = np.zeros((0, 3))
        self._dirty = False

    def insert(self, entity: Positioned) -> None:
        '''
        File one entity under the cell its position floor-divides to.

        Parameters:
        -----------
        entity : Positioned
            Any entity exposing entityId and position
        '''
        self.insertMany(
            np.array([entity.entityId], dtype=np.int64),
            np.asarray(entity.position, dtype=float).reshape(1, 3),
        )

    def insertMany(self, entityIds: np.ndarray, positions: np.ndarray) -> None:
        '''
        File a batch of entities.

        Parameters:
        -----------
        entityIds : np.ndarray
            Entity ids, shape (N,)
        positions : np.ndarray
            Entity positions, shape (N, 3)
        '''
        ids = np.asarray(entityIds, dtype=np.int64).reshape(-1)
        pos = np.asarray(positions, dtype=float).reshape(-1, 3)
        if len(ids) != len(pos):
            raise ValueError(
                f'Got {len(ids)} entity ids for {len(pos)} positions'
            )
        if len(ids) == 0:
            return
        # Copy so later in-place moves of the caller's arrays do not
        # silently disagree with the bucket keys computed below
        self._pendingIds.append(ids.copy())
        self._pendingPositions.append(pos.copy())
        self._dirty = True

    def build(self, positions: np.ndarray, entityIds: np.ndarray | None = None) -> None:
        '''
        Clear the grid and insert every position.

        Parameters:
        -----------
        positions : np.ndarray
            Entity positions, shape (N, 3)
        entityIds : np.ndarray | None
            Entity ids (defaults to 0..N-1)
        '''
        self.clear()
        positions = np.asarray(positions, dtype=float).reshape(-1, 3)
        if entityIds is None:
            entityIds = np.arange(len(positions), dtype=np.int64)
        self.insertMany(entityIds, positions)

    ######################################################################
    # -- Cell Keys -- #
    ######################################################################

    def cellCoordinates(self, positions: np.ndarray) -> np.ndarray:
        '''
        Integer cell coordinates floor(position / cellSize).

        Parameters:
        -----------
        positions : np.ndarray
            Positions, shape (N, 3)

        Returns:
        --------
        np.ndarray : Cell coordinates, shape (N, 3), int64
        '''
        return np.floor(np.asarray(positions, dtype=float) / self._cellSize).astype(np.int64)

    def cellKey(self, position: np.ndarray) -> tuple[int, int, int]:
        '''Cell coordinate triple of a single position.'''
        cell = self.cellCoordinates(np.asarray(position, dtype=float).reshape(1, 3))[0]
        return (int(cell[0]), int(cell[1]), int(cell[2]))

    @staticmethod
    def _packKeys(cells: np.ndarray) -> np.ndarray:
        '''
        Concatenate the three cell coordinates into one int64 key.

        Each coordinate is offset into [0, 2^21) and placed in its own
        21-bit field, so keys are unique for |coordinate| < 2^20.
        '''
        shifted = (cells + _keyOffset) & _keyMask
        return (shifted[:, 0] << (2 * _keyBits)) | (shifted[:, 1] << _keyBits) | shifted[:, 2]

    def bucket(self, cell: tuple[int, int, int]) -> np.ndarray:
        '''
        Ids of the entities filed under one cell.

        Parameters:
        -----------
        cell : tuple[int, int, int]
            Integer cell coordinates

        Returns:
        --------
        np.ndarray : Entity ids in that cell (possibly empty)
        '''
        self._finalize()
        key = self._packKeys(np.array([cell], dtype=np.int64))
        lo = int(np.searchsorted(self._sortedKeys, key[0], side='left'))
        hi = int(np.searchsorted(self._sortedKeys, key[0], side='right'))
        return self._sortedIds[lo:hi].copy()

    def _finalize(self) -> None:
        '''Sort the inserted entities by cell key if anything changed.'''
        if not self._dirty:
            return

        ids = np.concatenate(self._pendingIds)
        positions = np.concatenate(self._pendingPositions)
        keys = self._packKeys(self.cellCoordinates(positions))
        order = np.argsort(keys, kind='stable')

        self._sortedKeys = keys[order]
        self._sortedIds = ids[order]
        self._sortedPositions = positions[order]

        # Keep a single pending block so later inserts re-sort everything
        self._pendingIds = [ids]
        self._pendingPositions = [positions]
        self._dirty = False

    ######################################################################
    # -- Queries -- #
    ######################################################################

    def ringWidth(self, radius: float) -> int:
        '''
        Number of cell rings to visit around the query cell.

        One ring (the 3x3x3 block) when the radius fits in a cell,
        ceil(radius / cellSize) rings otherwise.
        '''
        return max(1, int(math.ceil(radius / self._cellSize)))

    @staticmethod
    def _stencil(ring: int) -> np.ndarray:
        '''All integer offsets in [-ring, ring]^3, shape ((2*ring+1)^3, 3).'''
        span = np.arange(-ring, ring + 1, dtype=np.int64)
        dx, dy, dz = np.meshgrid(span, span, span, indexing='ij')
        return np.column_stack([dx.ravel(), dy.ravel(), dz.ravel()])

    def queryRadius(self, position: np.ndarray, radius: float) -> np.ndarray:
        '''
        Ids of all entities whose distance to position is <= radius.

        Parameters:
        -----------
        position : np.ndarray
            Query point, shape (3,)
        radius : float
            Search radius

        Returns:
        --------
        np.ndarray : Entity ids, int64
        '''
        pairs = self.queryPairs(np.asarray(position, dtype=float).reshape(1, 3), radius)
        return pairs.entityIds

    def queryPairs(self, queryPositions: np.ndarray, radius: float) -> NeighborPairs:
        '''
        Find every (query point, entity) pair within the given radius.

        Candidate entities come from the ring of cells around each query
        cell; the exact distance test then discards the cube corners.
        A query point that coincides with an inserted entity (itself,
        typically) is reported with distance 0.

        Parameters:
        -----------
        queryPositions : np.ndarray
            Query points, shape (Q, 3)
        radius : float
            Search radius

        Returns:
        --------
        NeighborPairs : Matching pairs with displacements and distances
        '''
        self._finalize()
        queryPositions = np.asarray(queryPositions, dtype=float).reshape(-1, 3)
        nQuery = len(queryPositions)
        if nQuery == 0 or len(self._sortedKeys) == 0 or radius < 0.0:
            return NeighborPairs.empty()

        radiusSq = radius * radius
        queryCells = self.cellCoordinates(queryPositions)
        queryRows = np.arange(nQuery, dtype=np.int64)

        queryChunks: list[np.ndarray] = []
        idChunks: list[np.ndarray] = []
        drChunks: list[np.ndarray] = []
        distSqChunks: list[np.ndarray] = []

        for offset in self._stencil(self.ringWidth(radius)):
            neighborKeys = self._packKeys(queryCells + offset)
            lo = np.searchsorted(self._sortedKeys, neighborKeys, side='left')
            hi = np.searchsorted(self._sortedKeys, neighborKeys, side='right')
            counts = hi - lo
            total = int(counts.sum())
            if total == 0:
                continue

            # Expand each [lo, hi) bucket range into explicit indices
            rangeStarts = np.cumsum(counts) - counts
            sortedIdx = np.repeat(lo - rangeStarts, counts) + np.arange(total)
            queryIdx = np.repeat(queryRows, counts)

            dr = queryPositions[queryIdx] - self._sortedPositions[sortedIdx]
            distSq = np.einsum('ij,ij->i', dr, dr)
            within = distSq <= radiusSq
            if not np.any(within):
                continue

            queryChunks.append(queryIdx[within])
            idChunks.append(self._sortedIds[sortedIdx[within]])
            drChunks.append(dr[within])
            distSqChunks.append(distSq[within])

        if not queryChunks:
            return NeighborPairs.empty()

        return NeighborPairs(
            queryIndices=np.concatenate(queryChunks),
            entityIds=np.concatenate(idChunks),
            displacements=np.concatenate(drChunks),
            distances=np.sqrt(np.concatenate(distSqChunks)),
        )
