
from qoicodec.core import (
	Channels, Colorspace, Descriptor,
	Encoder, Decoder,
	encode, decode, to_array,
)
from qoicodec.errors import (
	QoiError,
	ShapeMismatch, InvalidDimensions, PixelLimitExceeded,
	TruncatedHeader, InvalidMagic, InvalidChannelOrColorspace,
	TruncatedStream, MissingEndMarker,
)

__version__ = '0.1.0'
