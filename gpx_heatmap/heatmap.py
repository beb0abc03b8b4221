"""
Heatmap Generation for GPX Heatmap Analysis

This module rasterizes a point set into a georeferenced density image:

1. Size a grid from the requested width and the bounds' aspect ratio.
2. Bin points into grid cells (north up), counting hits per cell.
3. Smooth with a separable Gaussian kernel, clamping at the edges.
4. Normalize by a sampled 99th percentile and clamp to [0, 1].
5. Apply gamma correction.
6. Make cells at or below the threshold transparent, rescale the rest, and
   color them along a green-yellow-orange-red gradient with rising alpha.
7. Encode the RGBA raster as PNG for display over the map.
"""

import asyncio
import base64
import io
import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import matplotlib
matplotlib.use("Agg")  # Headless backend; nothing is ever shown on screen
import matplotlib.colors as mcolors
import matplotlib.image as mimage
import numpy as np

from . import constants
from . import geometry
from . import utils
from .models import RenderParams, TrackPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterOverlay:
    """A rendered heatmap anchored to geographic bounds."""
    rgba: np.ndarray
    bounds: geometry.BoundingBox
    params: RenderParams

    @property
    def width(self) -> int:
        return int(self.rgba.shape[1])

    @property
    def height(self) -> int:
        return int(self.rgba.shape[0])

    @property
    def opaque_pixel_count(self) -> int:
        return int(np.count_nonzero(self.rgba[..., 3]))

    def to_png_bytes(self) -> bytes:
        buffer = io.BytesIO()
        mimage.imsave(buffer, self.rgba, format="png")
        return buffer.getvalue()

    @property
    def data_uri(self) -> str:
        """PNG as a data URI, directly usable as an image overlay source."""
        encoded = base64.b64encode(self.to_png_bytes()).decode("ascii")
        return f"data:image/png;base64,{encoded}"


def create_gradient_colormap() -> mcolors.LinearSegmentedColormap:
    """
    Create the heat colormap from GRADIENT_STOPS.

    Returns:
        Matplotlib LinearSegmentedColormap over [0, 1].
    """
    return mcolors.LinearSegmentedColormap.from_list("track_heat", constants.GRADIENT_STOPS)


HEAT_COLORMAP = create_gradient_colormap()


def compute_grid_size(bounds: geometry.BoundingBox, resolution_px: int) -> Tuple[int, int]:
    """
    Grid dimensions preserving the bounds' aspect ratio.

    Args:
        bounds: Geographic bounds of the raster.
        resolution_px: Grid width in pixels.

    Returns:
        (width, height), height between MIN_GRID_HEIGHT_PX and
        MAX_GRID_HEIGHT_PX. When the height is capped the width shrinks by
        the same factor, so the grid never exceeds resolution_px x
        MAX_GRID_HEIGHT_PX cells.
    """
    width = int(resolution_px)
    lon_span = max(bounds.lon_span, constants.SPAN_EPSILON)
    lat_span = max(bounds.lat_span, 0.0)
    height = utils.round_half_up(width * (lat_span / lon_span))
    if height > constants.MAX_GRID_HEIGHT_PX:
        width = max(1, utils.round_half_up(width * constants.MAX_GRID_HEIGHT_PX / height))
        logger.debug(f"Capped {height}px tall grid to {width}x{constants.MAX_GRID_HEIGHT_PX}")
        height = constants.MAX_GRID_HEIGHT_PX
    return width, max(constants.MIN_GRID_HEIGHT_PX, height)


def bin_points(points: Sequence[TrackPoint], bounds: geometry.BoundingBox,
               width: int, height: int) -> np.ndarray:
    """
    Count points per grid cell.

    Positions are interpolated linearly across the bounds, so the bounds'
    edges land on the outer cell centers. Rows are flipped so that row 0 is
    the northern edge. Points that fall outside the grid are discarded.

    Args:
        points: Points to bin.
        bounds: Geographic bounds of the grid.
        width: Grid width.
        height: Grid height.

    Returns:
        float array of shape (height, width) with hit counts.
    """
    grid = np.zeros((height, width), dtype=float)
    if not points:
        return grid

    lats = np.array([p.lat for p in points], dtype=float)
    lons = np.array([p.lon for p in points], dtype=float)
    lon_span = max(bounds.lon_span, constants.SPAN_EPSILON)
    lat_span = max(bounds.lat_span, constants.SPAN_EPSILON)

    cols = np.floor((lons - bounds.min_lon) / lon_span * (width - 1) + 0.5)
    rows_from_south = np.floor((lats - bounds.min_lat) / lat_span * (height - 1) + 0.5)
    rows = (height - 1) - rows_from_south

    inside = (cols >= 0) & (cols < width) & (rows >= 0) & (rows < height)
    dropped = int(np.count_nonzero(~inside))
    if dropped:
        logger.debug(f"Discarded {dropped} points outside the raster bounds")

    np.add.at(grid, (rows[inside].astype(int), cols[inside].astype(int)), 1.0)
    return grid


def gaussian_kernel(sigma: float) -> np.ndarray:
    """
    Normalized 1D Gaussian kernel with radius round(3 * sigma).

    Args:
        sigma: Standard deviation in cells (> 0).

    Returns:
        Kernel of length 2 * radius + 1 summing to 1.
    """
    radius = utils.round_half_up(constants.KERNEL_RADIUS_SIGMAS * sigma)
    offsets = np.arange(-radius, radius + 1, dtype=float)
    kernel = np.exp(-(offsets ** 2) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


def _convolve_axis(grid: np.ndarray, kernel: np.ndarray, axis: int) -> np.ndarray:
    radius = len(kernel) // 2
    pad = [(0, 0), (0, 0)]
    pad[axis] = (radius, radius)
    padded = np.pad(grid, pad, mode="edge")
    size = grid.shape[axis]

    out = np.zeros_like(grid)
    for k, weight in enumerate(kernel):
        if axis == 1:
            out += weight * padded[:, k:k + size]
        else:
            out += weight * padded[k:k + size, :]
    return out


def smooth_grid(grid: np.ndarray, sigma: float) -> np.ndarray:
    """
    Separable Gaussian blur: horizontal pass, then vertical pass.

    Taps that fall outside the grid reuse the nearest edge cell.
    """
    kernel = gaussian_kernel(sigma)
    return _convolve_axis(_convolve_axis(grid, kernel, axis=1), kernel, axis=0)


def normalize_grid(grid: np.ndarray) -> np.ndarray:
    """
    Scale by the sampled 99th percentile and clamp to [0, 1].

    A zero ceiling (mostly empty grid) is replaced by the grid maximum so that
    sparse tracks still show up.
    """
    ceiling = geometry.sampled_percentile(grid, constants.NORMALIZATION_PERCENTILE)
    if ceiling <= 0:
        ceiling = float(grid.max())
    if ceiling <= 0:
        return np.zeros_like(grid)
    return np.clip(grid / ceiling, 0.0, 1.0)


def compute_intensity(points: Sequence[TrackPoint], bounds: geometry.BoundingBox,
                      params: RenderParams) -> np.ndarray:
    """
    Run the numeric stages (bin, smooth, normalize, gamma).

    Returns:
        Post-gamma intensity grid in [0, 1], shape (height, width).
    """
    width, height = compute_grid_size(bounds, params.resolution_px)
    counts = bin_points(points, bounds, width, height)
    smoothed = smooth_grid(counts, params.sigma)
    normalized = normalize_grid(smoothed)
    return np.power(normalized, params.gamma)


def colorize(intensity: np.ndarray, threshold: float) -> np.ndarray:
    """
    Map intensity to RGBA bytes.

    Values at or below threshold are fully transparent. The rest are rescaled
    over (threshold, 1] to [0, 1], colored through HEAT_COLORMAP, and given an
    alpha rising linearly from MIN_ALPHA to MAX_ALPHA.

    Args:
        intensity: Grid of values in [0, 1].
        threshold: Visibility threshold in [0, 1).

    Returns:
        uint8 array of shape (height, width, 4).
    """
    visible = intensity > threshold
    scaled = np.zeros_like(intensity)
    scaled[visible] = (intensity[visible] - threshold) / (1.0 - threshold)
    scaled = np.clip(scaled, 0.0, 1.0)

    rgba = HEAT_COLORMAP(scaled)
    rgba[..., 3] = constants.MIN_ALPHA + (constants.MAX_ALPHA - constants.MIN_ALPHA) * scaled
    rgba[~visible] = 0.0

    return np.round(rgba * 255).astype(np.uint8)


def render_heatmap(points: Sequence[TrackPoint], bounds: geometry.BoundingBox,
                   params: RenderParams) -> RasterOverlay:
    """
    Render a density heatmap for points inside bounds.

    Deterministic: identical inputs give pixel-identical output.

    Args:
        points: Non-empty point sequence.
        bounds: Bounds the overlay is anchored to.
        params: Rendering parameters.

    Returns:
        RasterOverlay.

    Raises:
        ValueError: If points is empty. Callers clear the overlay instead.
    """
    if not points:
        raise ValueError("Cannot render a heatmap without points")

    intensity = compute_intensity(points, bounds, params)
    rgba = colorize(intensity, params.threshold)
    logger.debug(f"Rendered {rgba.shape[1]}x{rgba.shape[0]} heatmap from {len(points)} points")
    return RasterOverlay(rgba=rgba, bounds=bounds, params=params)


async def build_overlay(points: Sequence[TrackPoint], bounds: geometry.BoundingBox,
                        params: RenderParams) -> RasterOverlay:
    """
    Render off the event loop.

    The computation touches no shared state, so it runs in a worker thread;
    the caller commits the result back on the loop.
    """
    return await asyncio.to_thread(render_heatmap, list(points), bounds, params.snapshot())
