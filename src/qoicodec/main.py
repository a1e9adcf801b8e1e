
import concurrent.futures as processor
from tabulate import tabulate
from tqdm import tqdm
from PIL import Image
import numpy as np
import argparse
import json
import os
import sys

from qoicodec.core import Encoder, Decoder, Descriptor, Channels, to_array
from qoicodec.errors import QoiError

CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'config.json')

CHUNKS = ('index', 'diff', 'luma', 'rgb', 'rgba', 'run')

def load_config(path = CONFIG_PATH):
	with open(path, 'r') as fin:
		return json.load(fin)

def get_filename(path, is_encoding, config, out_dir = None):

	path, filename = os.path.split(path)
	name, _ = os.path.splitext(filename)

	transfer_type = 'encoded' if is_encoding else 'decoded'
	filetype = config['extension'] if is_encoding else config['decode_format']

	if out_dir is not None:
		path = out_dir

	renamed = os.path.join(path, f'{transfer_type}-{name}.{filetype}')
	return renamed

def read_image(path, config):
	""" Load any Pillow-readable image as a (height, width, channels) uint8 array """

	with Image.open(path) as img:
		has_alpha = 'A' in img.getbands() or 'transparency' in img.info
		pixels = np.asarray(img.convert('RGBA' if has_alpha else 'RGB'))

	height, width, _ = pixels.shape

	desc = Descriptor(
		width = width, height = height,
		channels = Channels.RGBA if has_alpha else Channels.RGB,
		colorspace = config['colorspace']
	)

	return pixels, desc

def encode_file(path, config, out_dir = None):

	pixels, desc = read_image(path, config)
	out_path = get_filename(path, True, config, out_dir)

	encoder = Encoder(pixels, desc)
	output = encoder.encode()

	with open(out_path, 'wb') as fout:
		fout.write(output)

	row = {
		'File': path,
		'Output': out_path,
		'Raw (KB)': desc.raw_size / 1000,
		'QOI (KB)': len(output) / 1000,
		'Ratio (x)': desc.raw_size / len(output),
	}
	for chunk in CHUNKS:
		row[chunk] = encoder.info[chunk]

	return row

def decode_file(path, config, out_dir = None):

	with open(path, 'rb') as encoded:
		file_bytes = encoded.read()

	out_path = get_filename(path, False, config, out_dir)

	decoder = Decoder(file_bytes)
	pixels, desc = decoder.decode()

	Image.fromarray(to_array(pixels, desc)).save(out_path)

	return {
		'File': path,
		'Output': out_path,
		'Raw (KB)': desc.raw_size / 1000,
		'QOI (KB)': len(file_bytes) / 1000,
		'Ratio (x)': desc.raw_size / len(file_bytes),
	}

def convert(path, config, out_dir = None):
	""" Decode .qoi inputs, encode everything else """

	_, extension = os.path.splitext(path)

	if extension.lower() == '.' + config['extension']:
		return decode_file(path, config, out_dir)

	return encode_file(path, config, out_dir)

def main(argv = None):

	parser = argparse.ArgumentParser(prog = 'qoi', description = 'Convert images to and from QOI')
	parser.add_argument('files', nargs = '+', help = 'image files, .qoi inputs are decoded')
	parser.add_argument('-o', '--out-dir', type = str, required = False)
	parser.add_argument('-v', '--verbose', action = 'store_true', default = False)
	args = parser.parse_args(argv)

	config = load_config()
	if args.verbose:
		config['verbose'] = True

	if args.out_dir is not None:
		os.makedirs(args.out_dir, exist_ok = True)

	outputs = []
	failures = []

	if len(args.files) == 1:

		try:
			outputs.append(convert(args.files[0], config, args.out_dir))
		except (QoiError, OSError) as e:
			failures.append((args.files[0], e))

	else:

		with processor.ProcessPoolExecutor() as executor:

			processes = {
				executor.submit(convert, path, config, args.out_dir): path
				for path in args.files
			}

			with tqdm(total = len(processes)) as bar:
				for process in processor.as_completed(processes):
					try:
						outputs.append(process.result())
					except (QoiError, OSError) as e:
						failures.append((processes[process], e))
					bar.update(1)

	outputs.sort(key = lambda a: a['File'])

	for row in outputs:
		print(f'"{row["File"]}" converted to "{row["Output"]}"')

	if config['verbose'] and outputs:
		table = tabulate(outputs, headers = 'keys', tablefmt = 'simple_outline')
		print(table)

	for path, error in failures:
		print(f'"{path}" failed: {type(error).__name__}: {error}', file = sys.stderr)

	return 1 if failures else 0

if __name__ == '__main__':
	sys.exit(main())
