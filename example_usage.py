# %% [markdown]
# # gridsampler: Example usage

# %%
# !pip install -q mediapy gridsampler

# %%
"""Simple examples of `gridsampler` usage."""

import mediapy as media
import numpy as np

import gridsampler

# %% [markdown]
# ### Downsample a photo onto a 16x16 LED matrix

# %%
image = media.read_image('https://github.com/hhoppe/data/raw/main/image.png')
source = gridsampler.pixel_buffer_from_image(image)
crop = gridsampler.centered_crop(source.shape[1], source.shape[0])
target = gridsampler.TargetGrid(16, 16)
previews = {
    algorithm: gridsampler.resample_crop(source, crop, target, algorithm).preview
    for algorithm in gridsampler.ALGORITHMS
}
media.show_images(previews, height=128)

# %% [markdown]
# ### Antialiased sprite with transparency, against different backgrounds

# %%
yx = (np.moveaxis(np.indices((64, 64)), 0, -1) + 0.5) / 64
radius = np.linalg.norm(yx - 0.5, axis=-1)
sprite = np.zeros((64, 64, 4), np.uint8)
sprite[..., 0] = 255
sprite[..., 2] = (yx[..., 1] * 255).astype(np.uint8)
sprite[..., 3] = (np.clip((0.4 - radius) * 64, 0.0, 1.0) * 255).astype(np.uint8)

backgrounds = {
    'transparent': 'transparent',
    'navy': gridsampler.SolidColorBackground('#000040'),
    'black lift 24': gridsampler.TrueBlackBackground(24),
}
grids = {}
for name, background in backgrounds.items():
  result = gridsampler.resample_crop(sprite, (0, 0, 64), (12, 8), 'box', background)
  grids[name] = result.grid.reshape(8, 12, 3)
media.show_images(grids, height=96)

# %% [markdown]
# ### Inspect a single LED sample

# %%
premultiplied = gridsampler.premultiply(sprite)
for algorithm in gridsampler.ALGORITHMS:
  r, g, b, a = gridsampler.sample_kernel(premultiplied, algorithm, dx=6, dy=4, shape=(8, 12))
  print(f'{algorithm:9} premultiplied=({r:6.1f}, {g:6.1f}, {b:6.1f})  alpha={a:6.1f}')

# %% [markdown]
# ### Wide LED strip from a square crop

# %%
strip = gridsampler.resample_crop(source, crop, (60, 1), 'lanczos', 'transparent')
print(strip.grid.shape)  # One RGB triple per LED.
media.show_image(strip.preview, height=24)
