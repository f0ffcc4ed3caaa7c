# maps/map_reader.py

import logging
import os
import numpy as np

logger = logging.getLogger(__name__)


def as_cost_grid(grid, copy=True):
    """
    Validates a cost grid and returns it as a 2D uint8 array.

    Args:
        grid (array-like): Cell costs indexed [y, x]; 0 is free, 255 is a wall.
        copy (bool): Always return a new array, even if grid is already uint8.

    Returns:
        np.ndarray: The grid as uint8.

    Raises:
        ValueError: If the grid is not a non-empty 2D array of integers in 0..255.
    """
    array = np.asarray(grid)
    if array.ndim != 2 or array.size == 0:
        raise ValueError(f"Cost grid must be a non-empty 2D array, got shape {array.shape}")
    if array.dtype == np.uint8:
        return array.copy() if copy else array
    if array.dtype.kind not in 'iuf':
        raise ValueError(f"Cost grid must be numeric, got dtype {array.dtype}")
    if array.dtype.kind == 'f' and not np.all(np.isfinite(array)):
        raise ValueError("Cost grid contains non-finite values")
    if array.min() < 0 or array.max() > 255:
        raise ValueError(f"Cost grid values must be in 0..255, got {array.min()}..{array.max()}")
    if array.dtype.kind == 'f' and not np.all(np.mod(array, 1) == 0):
        raise ValueError("Cost grid values must be whole numbers")
    return array.astype(np.uint8)


class MapReader:
    """
    Handles reading cost grids from disk (.npy arrays or whitespace separated text).
    Provides access to the last loaded grid.
    """
    def __init__(self, map_file_path=None):
        """
        Initializes the MapReader.

        Args:
            map_file_path (str, optional): Path to the cost grid file.
        """
        self.map_file_path = map_file_path
        self._loaded_grid = None # Last successfully loaded uint8 grid

        if self.map_file_path:
            logger.info(f"MapReader initialized with file: {self.map_file_path}")
        else:
            logger.warning("MapReader initialized without a map file path.")

    def load_map(self, map_file_path=None):
        """
        Loads a cost grid from the specified file.

        Args:
            map_file_path (str, optional): Path to the map file. If None, uses the initialized path.

        Returns:
            np.ndarray: The uint8 cost grid, or None if loading failed.
        """
        file_path = map_file_path if map_file_path is not None else self.map_file_path
        if not file_path or not os.path.exists(file_path):
            logger.error(f"Map file not found: {file_path}")
            self._loaded_grid = None
            return None

        logger.info(f"Loading cost grid from: {file_path}")
        try:
            if file_path.endswith('.npy'):
                raw = np.load(file_path, allow_pickle=False)
            else:
                raw = np.loadtxt(file_path, ndmin=2)
            self._loaded_grid = as_cost_grid(raw, copy=False)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading cost grid {file_path}: {e}")
            self._loaded_grid = None
            return None

        height, width = self._loaded_grid.shape
        walls = int(np.count_nonzero(self._loaded_grid == 255))
        logger.info(f"Successfully loaded cost grid {os.path.basename(file_path)}: {width}x{height}, {walls} wall cells")
        return self._loaded_grid

    def get_loaded_map(self):
        """Returns the currently loaded cost grid."""
        return self._loaded_grid
