
import numpy as np
import pytest

from qoicodec.core import Descriptor, Channels, Colorspace

def header(width, height, channels = 3, colorspace = 0):
	return b'qoif' + width.to_bytes(4, 'big') + height.to_bytes(4, 'big') + bytes((channels, colorspace))

END = bytes((0, 0, 0, 0, 0, 0, 0, 1))

@pytest.fixture
def rng():
	return np.random.default_rng(0)

@pytest.fixture
def palette_image(rng):
	""" 37x23 RGBA image drawn from a small palette, so runs and cache hits are common """

	palette = rng.integers(0, 256, size = (12, 4), dtype = np.uint8)
	palette[:6, 3] = 255
	choice = rng.integers(0, len(palette), size = (23, 37))
	choice[5:9, :] = 0

	pixels = palette[choice]
	desc = Descriptor(37, 23, Channels.RGBA, Colorspace.SRGB)

	return pixels, desc

@pytest.fixture
def gradient_image():
	""" 64x48 RGB gradient, exercises DIFF and LUMA chunks """

	y, x = np.mgrid[0:48, 0:64]
	pixels = np.stack([x * 4, y * 5, (x + y) * 2], axis = -1).astype(np.uint8)
	desc = Descriptor(64, 48, Channels.RGB, Colorspace.LINEAR)

	return pixels, desc
