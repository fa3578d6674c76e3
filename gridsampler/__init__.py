"""gridsampler: resampling of cropped RGBA images onto LED sample grids.

.. include:: ../README.md
"""

from __future__ import annotations

__docformat__ = 'google'
__version__ = '0.1.0'
__version_info__ = tuple(int(num) for num in __version__.split('.'))

from collections.abc import Sequence
import abc
import dataclasses
import math
import typing
from typing import Any, Union

import numpy as np
import numpy.typing as npt
import scipy.sparse

if typing.TYPE_CHECKING:
  import PIL.Image
  _NDArray = npt.NDArray[Any]
  _ArrayLike = npt.ArrayLike
  _Image = PIL.Image.Image
else:
  _NDArray = Any
  _ArrayLike = Any  # Else `pdoc` uses a long type expression for documentation.
  _Image = Any

_Color = Union[str, Sequence[int]]


class InvalidDimensionsError(ValueError):
  """The target grid, the crop region, or the source buffer has unusable dimensions."""


class DegenerateCropError(InvalidDimensionsError):
  """The crop region has a non-positive size."""


def _check_eq(a: Any, b: Any) -> None:
  """If the two values or arrays are not equal, raise an exception with a useful message."""
  are_equal = np.all(a == b) if isinstance(a, np.ndarray) else a == b
  if not are_equal:
    raise AssertionError(f'{a!r} == {b!r}')


def _to_uint8(array: _ArrayLike) -> _NDArray:
  """Clamp float values to [0, 255] and round them half-up to `uint8`.

  >>> _to_uint8([-3.0, 0.5, 127.49, 254.5, 300.0])
  array([  0,   1, 127, 255, 255], dtype=uint8)
  """
  return np.floor(np.clip(array, 0.0, 255.0) + 0.5).astype(np.uint8)


def _sinc(x: _ArrayLike) -> _NDArray:
  """Return the value `np.sinc(x)` but improved to:
  (1) ignore underflow that occurs at 0.0 for np.float32, and
  (2) output exact zero for integer input values.

  >>> _sinc(np.array([-3, -2, -1, 0]))
  array([0., 0., 0., 1.])

  >>> _sinc(0)
  1.0
  """
  x = np.asarray(x)
  x_is_scalar = x.ndim == 0
  with np.errstate(under='ignore'):
    result = np.sinc(np.atleast_1d(x))
    result[x == np.floor(x)] = 0.0
    result[x == 0] = 1.0
    return result.item() if x_is_scalar else result


def _check_pixel_buffer(buffer: _ArrayLike) -> _NDArray:
  """Return `buffer` as a `uint8` array of shape (height, width, 4), or raise."""
  array = np.asarray(buffer)
  if array.ndim != 3 or array.shape[2] != 4:
    raise InvalidDimensionsError(f'Pixel buffer shape {array.shape} is not (height, width, 4).')
  if array.shape[0] < 1 or array.shape[1] < 1:
    raise InvalidDimensionsError(f'Pixel buffer shape {array.shape} is empty.')
  if array.dtype == np.uint8:
    return array
  if not np.issubdtype(array.dtype, np.integer):
    raise ValueError(f'Pixel buffer type {array.dtype} is not an 8-bit integer type.')
  if array.min() < 0 or array.max() > 255:
    raise ValueError('Pixel buffer values lie outside the range [0, 255].')
  return array.astype(np.uint8)


@dataclasses.dataclass(frozen=True)
class CropRegion:
  """Square sub-rectangle of a source image, in source pixel units."""

  x: int
  """Column of the top-left crop pixel."""

  y: int
  """Row of the top-left crop pixel."""

  size: int
  """Side length of the square crop."""


@dataclasses.dataclass(frozen=True)
class TargetGrid:
  """Destination cell counts, equal to the dimensions of the physical LED matrix."""

  width: int
  height: int

  @property
  def shape(self) -> tuple[int, int]:
    """The `(height, width)` array shape of the destination buffer."""
    return self.height, self.width


@dataclasses.dataclass(frozen=True)
class ResampledCrop:
  """Result of `resample_crop`."""

  grid: _NDArray
  """Opaque RGB samples of shape (width * height, 3), row-major, with alpha folded in."""

  preview: _NDArray
  """RGBA `uint8` buffer of shape (height, width, 4) from which `grid` is derived."""


def _get_crop(crop: CropRegion | Sequence[int]) -> CropRegion:
  """Return a `CropRegion` of ints, which can be specified as an `(x, y, size)` sequence."""
  values = dataclasses.astuple(crop) if isinstance(crop, CropRegion) else tuple(crop)
  if len(values) != 3 or any(int(value) != value for value in values):
    raise InvalidDimensionsError(f'Crop region {values} is not three integers.')
  return CropRegion(*(int(value) for value in values))


def _get_target(target: TargetGrid | Sequence[int]) -> TargetGrid:
  """Return a validated `TargetGrid`, which can be specified as a `(width, height)` sequence."""
  target = target if isinstance(target, TargetGrid) else TargetGrid(*(int(v) for v in target))
  if target.width <= 0 or target.height <= 0:
    raise InvalidDimensionsError(f'Target grid {target.width}x{target.height} is empty.')
  return target


def _check_crop(crop: CropRegion, width: int, height: int) -> None:
  """Raise if `crop` is degenerate or does not lie within a `width` x `height` image."""
  if crop.size <= 0:
    raise DegenerateCropError(f'Crop size {crop.size} is not positive.')
  if crop.x < 0 or crop.y < 0 or crop.x + crop.size > width or crop.y + crop.size > height:
    raise InvalidDimensionsError(f'{crop} extends outside the {width}x{height} source image.')


# Premultiplication.  The color channels are weighted by coverage so that interpolation across
# pixels of differing transparency does not bleed the color of fully transparent pixels.  This is
# distinct from the final alpha fold in `extract_grid`.


def premultiply(buffer: _ArrayLike) -> _NDArray:
  """Return a float64 copy of the RGBA `buffer` with colors scaled by `alpha / 255`.

  The alpha channel keeps its original range [0, 255].
  """
  buffer = _check_pixel_buffer(buffer)
  result = buffer.astype(np.float64)
  result[..., :3] *= result[..., 3:] / 255.0
  return result


def unpremultiply(premultiplied: _ArrayLike) -> _NDArray:
  """Return the `uint8` RGBA buffer recovered from a premultiplied float buffer.

  Each color channel becomes `round(clamp(channel * 255 / alpha, 0, 255))` where alpha is
  positive, and 0 elsewhere.  Color channels round half-up.  The alpha channel is clamped and
  rounded half-to-even, like a store into a clamped byte array.

  >>> unpremultiply([[127.5, 0.0, 0.0, 126.5], [0.0, 0.0, 0.0, 127.5]])
  array([[255,   0,   0, 126],
         [  0,   0,   0, 128]], dtype=uint8)
  """
  premultiplied = np.asarray(premultiplied, np.float64)
  alpha = premultiplied[..., 3:]
  color = np.divide(premultiplied[..., :3] * 255.0, alpha,
                    out=np.zeros(premultiplied.shape[:-1] + (3,)), where=alpha > 0)
  result = np.empty(premultiplied.shape, np.uint8)
  result[..., :3] = _to_uint8(color)
  result[..., 3] = np.rint(np.clip(alpha[..., 0], 0.0, 255.0)).astype(np.uint8)
  return result


# Boundary sampling.


def clamp_index(index: _ArrayLike, size: int) -> _NDArray:
  """Map sample indices to the interior interval [0, size - 1] (clamp-to-edge).

  >>> clamp_index(np.array([-2, 0, 3, 7]), 4)
  array([0, 0, 3, 3])
  """
  return np.clip(index, 0, size - 1)


def sample_pixel(premultiplied: _NDArray, x: float, y: float) -> tuple[float, float, float, float]:
  """Return the four premultiplied channel values of the source pixel nearest to `(x, y)`.

  Coordinates outside the buffer are clamped to its edges; this never raises.
  """
  height, width = premultiplied.shape[:2]
  xi = int(clamp_index(math.floor(x + 0.5), width))
  yi = int(clamp_index(math.floor(y + 0.5), height))
  r, g, b, a = (float(value) for value in premultiplied[yi, xi])
  return r, g, b, a


# Reconstruction kernels.


@dataclasses.dataclass(frozen=True)
class Kernel:
  """Abstract base class for the separable kernels that map source pixels to grid cells.

  Destination index `d` along an axis corresponds to the source coordinate
  `(d + 0.5) * scale - 0.5`, where `scale = src_size / dst_size` (the pixel-center convention).
  A kernel returns, per destination index, the source taps and their weights; the 2D sample is
  the tensor product of the two per-axis tap sets.
  """

  name: str
  """Algorithm name."""

  radius: float
  """Max absolute source distance for which self(x) is nonzero."""

  normalized: bool = True
  """True if the tap weights are divided by their sum (a zero sum being treated as 1)."""

  interpolating: bool = True
  """True if resampling to the same size reproduces the source exactly."""

  @property
  def num_taps(self) -> int:
    """Number of source taps per destination index along one axis."""
    return int(math.ceil(self.radius * 2))

  @abc.abstractmethod
  def __call__(self, x: _ArrayLike) -> _NDArray:
    """Return evaluation of the kernel weight function at source distances x."""

  def taps(self, dst_index: _ArrayLike, src_size: int,
           dst_size: int) -> tuple[_NDArray, _NDArray]:
    """Return `index, weight`, both of shape `(len(dst_index), num_taps)`.

    The returned indices may lie outside [0, src_size) and must be clamped by the caller.
    """
    dst_index = np.asarray(dst_index, np.float64)
    src_position = (dst_index + 0.5) * (src_size / dst_size) - 0.5
    src_first_index = np.floor(src_position).astype(np.int64) - (self.num_taps // 2 - 1)
    index = src_first_index[:, None] + np.arange(self.num_taps)
    weight = self(src_position[:, None] - index)
    if self.normalized:
      total = weight.sum(axis=-1)
      weight = weight / np.where(total == 0.0, 1.0, total)[:, None]
    return index, weight


class BoxKernel(Kernel):
  """Area average over the exact destination cell footprint, suited for downscaling.

  The footprint of destination index `d` covers the source pixels
  `floor(d * scale) <= i < min(ceil((d + 1) * scale), src_size)`, each with equal weight.
  """

  def __init__(self) -> None:
    super().__init__(name='box', radius=0.5)

  def __call__(self, x: _ArrayLike) -> _NDArray:
    # Only used for direct evaluation; `taps` below integrates the exact cell footprint.
    x = np.asarray(x)
    return np.where((-0.5 <= x) & (x < 0.5), 1.0, 0.0)

  def taps(self, dst_index: _ArrayLike, src_size: int,
           dst_size: int) -> tuple[_NDArray, _NDArray]:
    dst_index = np.asarray(dst_index, np.float64)
    scale = src_size / dst_size
    start = np.floor(dst_index * scale).astype(np.int64)
    end = np.minimum(np.ceil((dst_index + 1) * scale).astype(np.int64), src_size)
    num_taps = max(int((end - start).max(initial=0)), 1)
    index = start[:, None] + np.arange(num_taps)
    weight = (index < end[:, None]).astype(np.float64)
    count = weight.sum(axis=-1)
    # An empty footprint keeps all-zero weights and so yields a transparent black sample.
    weight /= np.where(count == 0.0, 1.0, count)[:, None]
    return index, weight


class BilinearKernel(Kernel):
  """Linear interpolation between the two nearest source pixels along each axis.

  Also known as the tent or triangle function.  The two weights sum to one by construction.
  """

  def __init__(self) -> None:
    super().__init__(name='bilinear', radius=1.0, normalized=False)

  def __call__(self, x: _ArrayLike) -> _NDArray:
    return (1.0 - np.abs(x)).clip(0.0, 1.0)


class BicubicKernel(Kernel):
  """Keys cubic convolution over a 4x4 neighborhood.

  Args:
    a: Free parameter of the cubic; `a = -0.5` gives the Catmull-Rom spline.

  [R. G. Keys.  Cubic convolution interpolation for digital image processing.
  IEEE Trans. on Acoustics, Speech, and Signal Processing, 29(6), 1981.]
  """

  def __init__(self, *, a: float = -0.5) -> None:
    super().__init__(name='bicubic' if a == -0.5 else f'bicubic_a{a}', radius=2.0)
    self.a = a

  def __call__(self, x: _ArrayLike) -> _NDArray:
    x = np.abs(x)
    a = self.a
    v01 = ((a + 2) * x - (a + 3)) * x * x + 1
    v12 = ((a * x - 5 * a) * x + 8 * a) * x - 4 * a
    return np.where(x < 1.0, v01, np.where(x < 2.0, v12, 0.0))


class LanczosKernel(Kernel):
  """Sinc function windowed by a wider sinc; the sharpest of the four kernels.

  Args:
    radius: Window size `a`; the kernel uses `2 * a` taps per axis.

  The kernel has negative lobes, so results may overshoot the source value range and are always
  clamped when converted back to bytes.  See https://en.wikipedia.org/wiki/Lanczos_resampling.
  """

  def __init__(self, *, radius: int = 3) -> None:
    super().__init__(name='lanczos' if radius == 3 else f'lanczos{radius}', radius=radius)

  def __call__(self, x: _ArrayLike) -> _NDArray:
    x = np.abs(x)
    return np.where(x < self.radius, _sinc(x) * _sinc(x / self.radius), 0.0)


_DEFAULT_ALGORITHM = 'lanczos'

_DICT_KERNELS = {
    'box': BoxKernel(),
    'bilinear': BilinearKernel(),
    'bicubic': BicubicKernel(),
    'lanczos': LanczosKernel(radius=3),
}

ALGORITHMS = list(_DICT_KERNELS)
"""Names of the predefined scaling algorithms:

| name         | `Kernel`                  | support per axis | comments |
|--------------|---------------------------|------------------|----------|
| `'box'`      | `BoxKernel()`             | cell footprint   | area average, prevents aliasing when downscaling |
| `'bilinear'` | `BilinearKernel()`        | 2 taps           | cheap, adequate for small resizes |
| `'bicubic'`  | `BicubicKernel()`         | 4 taps           | Catmull-Rom, `a = -0.5` |
| `'lanczos'`  | `LanczosKernel(radius=3)` | 6 taps           | sharpest; may ring, output is clamped |
"""


def _get_kernel(algorithm: str | Kernel) -> Kernel:
  """Return a `Kernel`, which can be specified as a name in `ALGORITHMS`."""
  if isinstance(algorithm, Kernel):
    return algorithm
  if algorithm not in _DICT_KERNELS:
    raise ValueError(f'Unknown scaling algorithm {algorithm!r}; expected one of {ALGORITHMS}.')
  return _DICT_KERNELS[algorithm]


def sample_kernel(premultiplied: _NDArray, algorithm: str | Kernel, dx: int, dy: int,
                  shape: tuple[int, int]) -> tuple[float, float, float, float]:
  """Evaluate a single destination cell directly from the source pixels.

  Args:
    premultiplied: Source buffer as returned by `premultiply`.
    algorithm: Name in `ALGORITHMS` or a `Kernel` instance.
    dx: Destination column, with `0 <= dx < shape[1]`.
    dy: Destination row, with `0 <= dy < shape[0]`.
    shape: Destination `(height, width)`.

  Returns:
    The premultiplied `(r, g, b, a)` sample, before clamping.
  """
  kernel = _get_kernel(algorithm)
  dst_height, dst_width = shape
  if not (0 <= dx < dst_width and 0 <= dy < dst_height):
    raise ValueError(f'Cell ({dx}, {dy}) lies outside the destination shape {shape}.')
  src_height, src_width = premultiplied.shape[:2]
  (index_x,), (weight_x,) = kernel.taps([dx], src_width, dst_width)
  (index_y,), (weight_y,) = kernel.taps([dy], src_height, dst_height)
  total = np.zeros(4)
  for y, wy in zip(index_y, weight_y):
    for x, wx in zip(index_x, weight_x):
      if wx * wy != 0.0:
        total += wx * wy * np.array(sample_pixel(premultiplied, x, y))
  r, g, b, a = (float(value) for value in total)
  return r, g, b, a


def _create_resize_matrix(src_size: int, dst_size: int, kernel: Kernel) -> Any:
  """Compute the sparse matrix that resamples one axis from `src_size` to `dst_size`.

  Each row expresses a destination sample as a combination of source samples.  Taps beyond the
  domain are clamped to the edge samples; `scipy.sparse.csr_matrix` sums the duplicate entries
  that this creates.
  """
  if src_size < 1:
    raise InvalidDimensionsError(f'Source size {src_size} is too small for resampling.')
  if dst_size < 1:
    raise InvalidDimensionsError(f'Destination size {dst_size} is too small for resampling.')
  index, weight = kernel.taps(np.arange(dst_size), src_size, dst_size)
  _check_eq(index.shape, weight.shape)
  _check_eq(index.shape[0], dst_size)
  index = clamp_index(index, src_size)
  row_ind = np.broadcast_to(np.arange(dst_size)[:, None], index.shape).reshape(-1)
  col_ind = index.reshape(-1)
  data = weight.reshape(-1)
  nonzero = data != 0.0
  return scipy.sparse.csr_matrix((data[nonzero], (row_ind[nonzero], col_ind[nonzero])),
                                 shape=(dst_size, src_size))


def _resample_premultiplied(array: _NDArray, shape: tuple[int, int], kernel: Kernel) -> _NDArray:
  """Resample a premultiplied (height, width, 4) float array to `shape`, one axis at a time."""
  for dim in range(2):
    src_size, dst_size = array.shape[dim], shape[dim]
    if src_size == dst_size and kernel.interpolating:
      continue
    resize_matrix = _create_resize_matrix(src_size, dst_size, kernel)
    array_dim = np.moveaxis(array, dim, 0)
    array_flat = resize_matrix @ array_dim.reshape(src_size, -1)
    array_dim = array_flat.reshape(dst_size, *array_dim.shape[1:])
    array = np.moveaxis(array_dim, 0, dim)
  return array


def resample(source: _ArrayLike, shape: Sequence[int],
             algorithm: str | Kernel = _DEFAULT_ALGORITHM) -> _NDArray:
  """Resample an RGBA image onto a grid with resolution `shape`.

  The source is premultiplied by its alpha, filtered by the selected kernel along each axis, and
  un-premultiplied; every output channel is clamped to [0, 255].

  Args:
    source: RGBA `uint8` buffer of shape (height, width, 4).
    shape: Destination `(height, width)`; both must be positive.
    algorithm: Name in `ALGORITHMS` or a `Kernel` instance.

  Returns:
    A new RGBA `uint8` buffer of shape `(*shape, 4)`.

  >>> red = np.broadcast_to(np.array([255, 0, 0, 255], np.uint8), (4, 4, 4))
  >>> resample(red, (2, 2), 'box')[0, 0]
  array([255,   0,   0, 255], dtype=uint8)
  """
  shape = tuple(shape)
  if len(shape) != 2:
    raise InvalidDimensionsError(f'Destination shape {shape} is not (height, width).')
  if shape[0] <= 0 or shape[1] <= 0:
    raise InvalidDimensionsError(f'Destination shape {shape} is empty.')
  kernel = _get_kernel(algorithm)
  array = _resample_premultiplied(premultiply(source), shape, kernel)
  _check_eq(array.shape, (*shape, 4))
  return unpremultiply(array)


# Background compositing.


def _parse_color(color: _Color) -> tuple[int, int, int]:
  """Return an RGB triple given a triple or a hex string `'#RRGGBB'` or `'RRGGBB'`.

  >>> _parse_color('#FF8000')
  (255, 128, 0)
  """
  if isinstance(color, str):
    digits = color[1:] if color.startswith('#') else color
    if len(digits) != 6 or any(c not in '0123456789abcdefABCDEF' for c in digits):
      raise ValueError(f'Color {color!r} is not a hex string of the form #RRGGBB.')
    r, g, b = (int(digits[i:i + 2], 16) for i in range(0, 6, 2))
    return r, g, b
  values = tuple(int(v) for v in color)
  if len(values) != 3 or not all(0 <= v <= 255 for v in values):
    raise ValueError(f'Color {color!r} is not an RGB triple in the range [0, 255].')
  r, g, b = values
  return r, g, b


@dataclasses.dataclass(frozen=True)
class Background:
  """Abstract base class for the policies that resolve crop transparency.

  A policy may flatten the source crop before resampling (so that antialiased edges blend with
  the backdrop inside the kernels) and may adjust the resampled buffer afterwards.
  """

  name: str
  """Background policy name."""

  @abc.abstractmethod
  def before_resample(self, crop: _NDArray) -> _NDArray:
    """Return a new RGBA buffer to be resampled in place of the source `crop`."""

  @abc.abstractmethod
  def after_resample(self, buffer: _NDArray) -> _NDArray:
    """Return the final RGBA buffer given the resampled `buffer`."""


class TransparentBackground(Background):
  """Keep native alpha; transparent pixels end up dark once alpha is folded into the grid."""

  def __init__(self) -> None:
    super().__init__(name='transparent')

  def before_resample(self, crop: _NDArray) -> _NDArray:
    return crop.copy()

  def after_resample(self, buffer: _NDArray) -> _NDArray:
    return buffer


class SolidColorBackground(Background):
  """Flatten the crop onto an opaque color, which removes all transparency.

  Args:
    color: RGB triple or hex string such as `'#RRGGBB'`.
  """

  def __init__(self, color: _Color) -> None:
    rgb = _parse_color(color)
    super().__init__(name='color_%02x%02x%02x' % rgb)
    self.color = rgb

  def before_resample(self, crop: _NDArray) -> _NDArray:
    alpha = crop[..., 3:] / 255.0
    blended = np.array(self.color, np.float64) * (1.0 - alpha) + crop[..., :3] * alpha
    result = np.empty_like(crop)
    result[..., :3] = _to_uint8(blended)
    result[..., 3] = 255
    return result

  def after_resample(self, buffer: _NDArray) -> _NDArray:
    return buffer


class TrueBlackBackground(Background):
  """Keep native alpha, then raise the floor of every covered pixel by `lift`.

  Some LED hardware renders a channel value of 0 unevenly; remapping channels of pixels with
  nonzero alpha to `lift + channel * (255 - lift) / 255` avoids that without brightening the
  fully transparent background.  Coverage is judged from the resampled alpha.

  Args:
    lift: Additive floor in the range [0, 127].
  """

  def __init__(self, lift: int = 0) -> None:
    if not 0 <= lift <= 127:
      raise ValueError(f'Black lift {lift} is outside the range [0, 127].')
    super().__init__(name=f'black_lift{lift}')
    self.lift = lift

  def before_resample(self, crop: _NDArray) -> _NDArray:
    return crop.copy()

  def after_resample(self, buffer: _NDArray) -> _NDArray:
    if self.lift == 0:
      return buffer
    lifted = _to_uint8(self.lift + buffer[..., :3] * ((255 - self.lift) / 255))
    covered = buffer[..., 3:] > 0
    result = buffer.copy()
    result[..., :3] = np.where(covered, lifted, buffer[..., :3])
    return result


_DICT_BACKGROUNDS = {
    'transparent': TransparentBackground(),
    'black': TrueBlackBackground(),
}

BACKGROUNDS = list(_DICT_BACKGROUNDS)
"""Names of the predefined background policies:

| name            | `Background`               | comments |
|-----------------|----------------------------|----------|
| `'transparent'` | `TransparentBackground()`  | alpha preserved and folded into the grid |
| `'black'`       | `TrueBlackBackground()`    | no lift; use `TrueBlackBackground(lift)` |

Use `SolidColorBackground(color)` to flatten onto an arbitrary opaque color.
"""


def _get_background(background: str | Background) -> Background:
  """Return a `Background`, which can be specified as a name in `BACKGROUNDS`."""
  if isinstance(background, Background):
    return background
  if background not in _DICT_BACKGROUNDS:
    raise ValueError(f'Unknown background {background!r}; expected one of {BACKGROUNDS}.')
  return _DICT_BACKGROUNDS[background]


# Grid extraction.


def extract_grid(buffer: _ArrayLike) -> _NDArray:
  """Return the row-major RGB samples of `buffer` with alpha folded into the colors.

  LED hardware has no alpha channel, so coverage is baked into brightness as
  `round(channel * alpha / 255)`.  The result has shape (height * width, 3) and type `uint8`.
  """
  buffer = _check_pixel_buffer(buffer)
  alpha = buffer[..., 3:] / 255.0
  return _to_uint8(buffer[..., :3] * alpha).reshape(-1, 3)


# Crop geometry.


def centered_crop(width: int, height: int, size: int | None = None) -> CropRegion:
  """Return the square crop of `size` (by default the largest one) centered in the image.

  >>> centered_crop(640, 480)
  CropRegion(x=80, y=0, size=480)
  """
  if width <= 0 or height <= 0:
    raise InvalidDimensionsError(f'Image size {width}x{height} is empty.')
  max_size = min(width, height)
  size = max_size if size is None else min(size, max_size)
  if size <= 0:
    raise DegenerateCropError(f'Crop size {size} is not positive.')
  return CropRegion((width - size) // 2, (height - size) // 2, size)


def snap_crop_size(size: int, target: TargetGrid | Sequence[int], max_size: int) -> int:
  """Snap a requested crop `size` to a multiple of the larger target dimension.

  The result is clamped to `[step, max_size]`; if the image is smaller than one step, `max_size`
  is returned.

  >>> snap_crop_size(100, TargetGrid(16, 16), 480)
  96
  """
  target = _get_target(target)
  step = max(target.width, target.height)
  if max_size < step:
    return max_size
  snapped = math.floor(size / step + 0.5) * step
  return max(step, min(max_size, snapped))


def extract_crop(source: _ArrayLike, crop: CropRegion | Sequence[int]) -> _NDArray:
  """Return a copy of the square `crop` region of the RGBA `source` buffer."""
  source = _check_pixel_buffer(source)
  crop = _get_crop(crop)
  height, width = source.shape[:2]
  _check_crop(crop, width, height)
  return source[crop.y:crop.y + crop.size, crop.x:crop.x + crop.size].copy()


# Image adapters.


def pixel_buffer_from_image(image: _Image | _ArrayLike) -> _NDArray:
  """Return an RGBA `uint8` pixel buffer from a decoded image.

  Args:
    image: A `PIL.Image.Image` of any mode, or an array of shape (height, width),
      (height, width, 3) or (height, width, 4).  Unsigned integer arrays are taken as bytes and
      float arrays as values in [0.0, 1.0].
  """
  import PIL.Image
  if isinstance(image, PIL.Image.Image):
    return np.array(image.convert('RGBA'), np.uint8)
  array = np.asarray(image)
  if np.issubdtype(array.dtype, np.floating):
    array = _to_uint8(array * 255.0)
  if array.ndim == 2:
    array = np.repeat(array[..., None], 3, axis=-1)
  if array.ndim != 3 or array.shape[2] not in (3, 4):
    raise InvalidDimensionsError(
        f'Image shape {array.shape} is not a grayscale, RGB or RGBA image.')
  if array.shape[2] == 3:
    opaque = np.full(array.shape[:2] + (1,), 255, array.dtype)
    array = np.concatenate([array, opaque], axis=-1)
  return _check_pixel_buffer(array).copy()


def image_from_pixel_buffer(buffer: _ArrayLike) -> _Image:
  """Return an RGBA `PIL.Image.Image` showing the pixel buffer, e.g. a preview."""
  import PIL.Image
  return PIL.Image.fromarray(np.ascontiguousarray(_check_pixel_buffer(buffer)))


# Engine entry point.


def resample_crop(
    source: _ArrayLike,
    crop: CropRegion | Sequence[int],
    target: TargetGrid | Sequence[int],
    algorithm: str | Kernel = _DEFAULT_ALGORITHM,
    background: str | Background = 'transparent',
) -> ResampledCrop:
  """Convert a square crop of an RGBA image into one color sample per LED cell.

  The stages are: crop extraction, background compositing of the source crop, premultiplied
  resampling with the selected kernel, post-resample background adjustment, and the final alpha
  fold.  The function is pure: identical inputs yield byte-identical outputs.

  Args:
    source: RGBA `uint8` buffer of shape (height, width, 4).
    crop: `CropRegion` or `(x, y, size)` lying within `source`.
    target: `TargetGrid` or `(width, height)` with positive dimensions.
    algorithm: Name in `ALGORITHMS` or a `Kernel` instance.
    background: Name in `BACKGROUNDS` or a `Background` instance.

  Returns:
    A `ResampledCrop` whose `grid` is derived from its `preview`.

  Raises:
    InvalidDimensionsError: If the target is empty or the crop lies outside the source.
    DegenerateCropError: If the crop size is not positive.
  """
  target = _get_target(target)
  kernel = _get_kernel(algorithm)
  background = _get_background(background)
  region = extract_crop(source, crop)
  region = background.before_resample(region)
  preview = resample(region, target.shape, kernel)
  preview = background.after_resample(preview)
  return ResampledCrop(grid=extract_grid(preview), preview=preview)
