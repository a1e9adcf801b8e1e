
class QoiError(ValueError):
	""" Base class for every malformed image or stream """

# Encoder input

class ShapeMismatch(QoiError):
	pass

class InvalidDimensions(QoiError):
	pass

class PixelLimitExceeded(QoiError):
	pass

# Header

class TruncatedHeader(QoiError):
	pass

class InvalidMagic(QoiError):
	pass

class InvalidChannelOrColorspace(QoiError):
	pass

# Chunk stream

class TruncatedStream(QoiError):
	pass

class MissingEndMarker(QoiError):
	pass
