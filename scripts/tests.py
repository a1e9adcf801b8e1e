
import numpy as np
import hashlib
import time
import sys

from qoicodec.core import Encoder, Decoder, to_array
from qoicodec.main import read_image, load_config

def main(input_path):

	config = load_config()

	print(f'\n==================== [ENCODING] ====================')

	image, desc = read_image(input_path, config)

	start_encode = time.process_time()

	encoder = Encoder(image, desc)
	file_bytes = encoder.encode()

	elapsed_encode = time.process_time() - start_encode
	print(f'\nEncoding Elapsed Time: {elapsed_encode:.2f} sec')
	print(f'Chunks: {dict(encoder.info)}')

	print(f'\n==================== [DECODING] ====================\n')

	start_decode = time.process_time()

	decoder = Decoder(file_bytes)
	pixels, decoded_desc = decoder.decode()
	output = to_array(pixels, decoded_desc)

	elapsed_decode = time.process_time() - start_decode
	print(f'Decoding Elapsed Time: {elapsed_decode:.2f} sec')

	print()

	# Confirming that reconstruction error is 0
	error = np.count_nonzero(image != output)
	print(f'Total Error: {error}')
	print(f'Descriptor Match: {desc == decoded_desc}')

	print()

	# Confirming that SHA hashes are the same
	original_hash  = hashlib.sha1(image.tobytes()).hexdigest()
	recovered_hash = hashlib.sha1(output.tobytes()).hexdigest()

	print(f'SHA1 Original Hash:  {original_hash}')
	print(f'SHA1 Recovered Hash: {recovered_hash}')

	return 0 if original_hash == recovered_hash else 1

if __name__ == '__main__':
	sys.exit(main(sys.argv[1]))
