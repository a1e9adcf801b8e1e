
import concurrent.futures as processor
from tabulate import tabulate
from tqdm import tqdm
from PIL import Image
import argparse
import glob
import zlib
import io
import os

from qoicodec.core import Encoder
from qoicodec.main import read_image, load_config

# Data keys
FILE = 'File'
RAW = 'Raw'
ZIP = 'ZIP'
PNG = 'PNG'
QOI = 'QOI'

def comparison(input_path, config):

	output = dict.fromkeys([FILE, RAW, ZIP, PNG, QOI], 1)
	output[FILE] = os.path.basename(input_path)

	image, desc = read_image(input_path, config)

	# Raw
	output[RAW] = desc.raw_size

	# ZIP (max level)
	zip_data = zlib.compress(image.tobytes(), level = 9)
	output[ZIP] = len(zip_data)

	# PNG
	png_data = io.BytesIO()
	Image.fromarray(image).save(png_data, format = 'PNG', optimize = True)
	output[PNG] = png_data.tell()

	# PROPOSED
	compressed = Encoder(image, desc).encode()
	output[QOI] = len(compressed)

	return output

def main():

	parser = argparse.ArgumentParser()
	parser.add_argument('dataset_directory', type = str)
	parser.add_argument('-r', '--results-file', type = str, default = 'results/encoder-comparisons.csv')
	parser.add_argument('-p', '--pattern', type = str, default = '**/*.png')
	args = parser.parse_args()

	config = load_config()

	processes = []
	outputs = []

	with processor.ProcessPoolExecutor() as executor:

		for filename in glob.glob(os.path.join(args.dataset_directory, args.pattern), recursive = True):
			processes.append(executor.submit(comparison, filename, config))

		print(f'{len(processes)} testing images queued on {os.cpu_count()} threads')

		with tqdm(total = len(processes)) as bar:
			for process in processor.as_completed(processes):
				outputs.append(process.result())
				bar.update(1)

	if not outputs:
		return

	# Sort by filename
	outputs.sort(key = lambda a: a[FILE])

	results_directory = os.path.dirname(args.results_file)
	if results_directory:
		os.makedirs(results_directory, exist_ok = True)

	with open(args.results_file, 'w') as fout:
		fout.write(','.join(outputs[0].keys()))
		for line in outputs:
			fout.write('\n' + ','.join(map(str, line.values())))

	table = tabulate(outputs, headers = 'keys', tablefmt = 'simple_outline')
	print(table)

if __name__ == '__main__':
	main()
