# Adapted from: https://github.com/phoboslab/qoi 2022

"""
MIT License

Copyright (c) 2022 Dominic Szablewski

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import IntEnum
import numpy as np

from qoicodec.errors import (
	ShapeMismatch, InvalidDimensions, PixelLimitExceeded,
	TruncatedHeader, InvalidMagic, InvalidChannelOrColorspace,
	TruncatedStream, MissingEndMarker,
)

# Header byte tags
class Utils:

	TAG_INDEX = 0x00   # 00------
	TAG_DIFF = 0x40    # 01------
	TAG_LUMA = 0x80    # 10------
	TAG_RUN = 0xc0     # 11------
	TAG_RGB = 0xfe     # 11111110
	TAG_RGBA = 0xff    # 11111111

	MASK_2 = 0xc0      # 11------

MAGIC = int.from_bytes(b'qoif', byteorder = 'big')
HEADER_SIZE = 14

END_OF_FILE = bytes((0, 0, 0, 0, 0, 0, 0, 1))

CACHE_SIZE = 64
MAX_RUN = 62

# 2GB worst case at 5 bytes per pixel, rounded down
PIXELS_MAX = 400_000_000

class Channels(IntEnum):
	RGB = 3
	RGBA = 4

class Colorspace(IntEnum):
	SRGB = 0
	LINEAR = 1

@dataclass(frozen = True)
class Descriptor:
	"""
	Image dimensions, channel layout and colorspace tag carried in the header.
	Construction validates every field, so a Descriptor is always encodable.
	"""

	width: int
	height: int
	channels: Channels = Channels.RGBA
	colorspace: Colorspace = Colorspace.SRGB

	def __post_init__(self):

		try:
			object.__setattr__(self, 'channels', Channels(self.channels))
			object.__setattr__(self, 'colorspace', Colorspace(self.colorspace))
		except ValueError as e:
			raise InvalidChannelOrColorspace(str(e)) from None

		for name in ('width', 'height'):
			value = getattr(self, name)
			if not 0 < value < (1 << 32):
				raise InvalidDimensions(f'{name} must be in 1..2^32-1, got {value}')

		if self.height >= PIXELS_MAX // self.width:
			raise PixelLimitExceeded(f'Maximum pixel count exceeded: {self.width}x{self.height}')

	@property
	def size(self) -> int:
		return self.width * self.height

	@property
	def raw_size(self) -> int:
		return self.size * self.channels

def color_hash(px) -> int:
	r, g, b, a = px
	return (r * 3 + g * 5 + b * 7 + a * 11) % CACHE_SIZE

def signed(x, n_bits = 8):
	max_value = 1 << n_bits
	x %= max_value
	if x >= max_value // 2:
		x -= max_value
	return x

def pixel_bytes(pixels) -> bytes:
	if isinstance(pixels, np.ndarray):
		if pixels.dtype != np.uint8:
			raise TypeError(f'Expected uint8 pixel array, got {pixels.dtype}')
		return pixels.tobytes()
	return bytes(pixels)

def to_array(pixels, desc: Descriptor) -> np.ndarray:
	""" View a flat pixel buffer as a (height, width, channels) uint8 array """

	data = np.frombuffer(pixel_bytes(pixels), dtype = np.uint8)
	if data.size != desc.raw_size:
		raise ShapeMismatch(f'Expected {desc.raw_size} bytes for {desc}, got {data.size}')

	return data.reshape((desc.height, desc.width, int(desc.channels)))

class ByteWriter:

	def __init__(self):
		self.header = bytearray()
		self.data = bytearray()

	def write_header(self, byte: int):
		self.header.append(byte % 256)

	def write_4_bytes_header(self, value):
		self.write_header((0xff000000 & value) >> 24)
		self.write_header((0x00ff0000 & value) >> 16)
		self.write_header((0x0000ff00 & value) >> 8)
		self.write_header((0x000000ff & value))

	def write(self, byte: int):
		self.data.append(byte % 256)

	def write_bytes(self, values):
		self.data.extend(values)

	def output(self):
		return bytes(self.header + self.data)

class ByteReader:

	def __init__(self, data: bytes):
		self.bytes = data
		self.read_pos = 0
		self.max_pos = len(self.bytes) - 1

	@property
	def remaining(self) -> int:
		return len(self.bytes) - self.read_pos

	def read(self):

		if self.read_pos > self.max_pos:
			raise TruncatedStream(f'Stream ended at byte {self.read_pos}')

		out = self.bytes[self.read_pos]
		self.read_pos += 1

		return out

	def read_bytes(self, n):

		if self.remaining < n:
			raise TruncatedStream(f'Expected {n} more bytes at {self.read_pos}, {self.remaining} left')

		out = bytes(self.bytes[self.read_pos : self.read_pos + n])
		self.read_pos += n

		return out

	def read_4_bytes(self):
		b1, b2, b3, b4 = self.read_bytes(4)
		return b1 << 24 | b2 << 16 | b3 << 8 | b4

class Encoder:

	def __init__(self, pixels, desc: Descriptor):

		self.desc = desc
		self.pixels = pixel_bytes(pixels)

		if len(self.pixels) != desc.raw_size:
			raise ShapeMismatch(f'Expected {desc.raw_size} bytes for {desc}, got {len(self.pixels)}')

		self.writer = ByteWriter()

		self.stats = [['Section', 'Size (KB)', 'Ratio (x)']]
		self.info = defaultdict(int)

	def write_header(self):

		self.writer.write_4_bytes_header(MAGIC)

		# Image dimensions
		self.writer.write_4_bytes_header(self.desc.width)
		self.writer.write_4_bytes_header(self.desc.height)

		self.writer.write_header(self.desc.channels)
		self.writer.write_header(self.desc.colorspace)

	def write_run(self, run):
		self.info['run'] += 1
		self.writer.write(Utils.TAG_RUN | (run - 1))

	def write_pixel(self, px, prev_px):
		""" Smallest of DIFF, LUMA, RGB or RGBA that reproduces px from prev_px """

		r, g, b, a = px

		if a != prev_px[3]:
			self.info['rgba'] += 1
			self.writer.write_bytes((Utils.TAG_RGBA, r, g, b, a))
			return

		dr = signed(r - prev_px[0])
		dg = signed(g - prev_px[1])
		db = signed(b - prev_px[2])

		dr_dg = dr - dg
		db_dg = db - dg

		if -2 <= dr <= 1 and -2 <= dg <= 1 and -2 <= db <= 1:
			self.info['diff'] += 1
			self.writer.write(Utils.TAG_DIFF | (dr + 2) << 4 | (dg + 2) << 2 | (db + 2))

		elif -32 <= dg <= 31 and -8 <= dr_dg <= 7 and -8 <= db_dg <= 7:
			self.info['luma'] += 1
			self.writer.write(Utils.TAG_LUMA | (dg + 32))
			self.writer.write((dr_dg + 8) << 4 | (db_dg + 8))

		else:
			self.info['rgb'] += 1
			self.writer.write_bytes((Utils.TAG_RGB, r, g, b))

	def encode(self) -> bytes:

		self.stats.append(['Original', self.desc.raw_size / 1000, 1.0])

		self.write_header()

		data = self.pixels
		pixel_jump = int(self.desc.channels)
		last = len(data) - pixel_jump
		has_alpha = pixel_jump == 4

		cache = [(0, 0, 0, 0)] * CACHE_SIZE
		prev_px = (0, 0, 0, 255)
		run = 0

		for index in range(0, len(data), pixel_jump):

			if has_alpha:
				px = tuple(data[index : index + 4])
			else:
				r, g, b = data[index : index + 3]
				px = (r, g, b, 255)

			# Run length encoding, cache already holds prev_px
			if px == prev_px:
				run += 1
				if run == MAX_RUN or index == last:
					self.write_run(run)
					run = 0
				continue

			if run:
				self.write_run(run)
				run = 0

			position = color_hash(px)

			if cache[position] == px:
				self.info['index'] += 1
				self.writer.write(Utils.TAG_INDEX | position)
			else:
				cache[position] = px
				self.write_pixel(px, prev_px)

			prev_px = px

		self.writer.write_bytes(END_OF_FILE)

		output = self.writer.output()

		self.stats.append(['QOI', len(output) / 1000, self.desc.raw_size / len(output)])

		return output

class Decoder:

	def __init__(self, file_bytes, channels = None):

		self.file_bytes = file_bytes
		self.reader = ByteReader(self.file_bytes)

		self.channels = channels

	def read_header(self) -> Descriptor:

		if len(self.file_bytes) < HEADER_SIZE:
			raise TruncatedHeader(f'Expected {HEADER_SIZE} header bytes, got {len(self.file_bytes)}')

		header_magic = self.reader.read_4_bytes()
		if header_magic != MAGIC:
			raise InvalidMagic(f'Image does not contain valid header: {header_magic:#010x}')

		width = self.reader.read_4_bytes()
		height = self.reader.read_4_bytes()

		channels = self.reader.read()
		colorspace = self.reader.read()

		self.stored = Descriptor(width, height, channels, colorspace)

		if self.channels is None:
			return self.stored

		return Descriptor(width, height, self.channels, colorspace)

	def decode(self):
		""" Returns the flat pixel buffer and the Descriptor that lays it out """

		self.desc = self.read_header()

		pixel_jump = int(self.desc.channels)
		has_alpha = pixel_jump == 4

		pixel_data = bytearray(self.desc.raw_size)

		cache = [(0, 0, 0, 0)] * CACHE_SIZE
		r, g, b, a = 0, 0, 0, 255
		run = 0

		read = self.reader.read

		for index in range(0, len(pixel_data), pixel_jump):

			if run > 0:
				run -= 1

			else:

				data = read()

				if data == Utils.TAG_RGB:
					r = read()
					g = read()
					b = read()

				elif data == Utils.TAG_RGBA:
					r = read()
					g = read()
					b = read()
					a = read()

				elif (data & Utils.MASK_2) == Utils.TAG_INDEX:
					r, g, b, a = cache[data]

				elif (data & Utils.MASK_2) == Utils.TAG_DIFF:
					r = (r + ((data >> 4) & 0x03) - 2) & 0xff
					g = (g + ((data >> 2) & 0x03) - 2) & 0xff
					b = (b + (data & 0x03) - 2) & 0xff

				elif (data & Utils.MASK_2) == Utils.TAG_LUMA:
					second = read()
					dg = (data & 0x3f) - 32
					r = (r + dg - 8 + ((second >> 4) & 0x0f)) & 0xff
					g = (g + dg) & 0xff
					b = (b + dg - 8 + (second & 0x0f)) & 0xff

				else:
					# Current pixel plus the remaining repeats
					run = data & 0x3f

				px = (r, g, b, a)
				cache[color_hash(px)] = px

			pixel_data[index] = r
			pixel_data[index + 1] = g
			pixel_data[index + 2] = b
			if has_alpha:
				pixel_data[index + 3] = a

		if run > 0:
			raise MissingEndMarker(f'Run of {run} pixels continues past the image end')

		padding = self.reader.read_bytes(len(END_OF_FILE))
		if padding != END_OF_FILE:
			raise MissingEndMarker(f'Expected end marker at byte {self.reader.read_pos - len(END_OF_FILE)}, got {padding.hex()}')

		return bytes(pixel_data), self.desc

def encode(pixels, desc: Descriptor) -> bytes:
	""" Encode a flat RGB or RGBA pixel buffer laid out by desc """
	return Encoder(pixels, desc).encode()

def decode(file_bytes, channels = None):
	"""
	Decode a QOI byte stream into (pixels, descriptor).

	channels forces RGB or RGBA output regardless of the stored layout;
	the returned descriptor always describes the returned buffer.
	"""
	return Decoder(file_bytes, channels).decode()
