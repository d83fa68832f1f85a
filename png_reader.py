import argparse
import logging
import os
import stat
import tempfile

from PIL import Image

from conversion_errors import ConversionError, OutputUnwritable, SourceUnreadable
from image_to_rgb import (CHARS_PER_PIXEL, DEFAULT_BUDGET, MAX_OUTPUT_CHARS, SCALE_MARGIN,
                          SCREEN_GAMMA, Budget, image_to_rgb)

log = logging.getLogger(__name__)

DEFAULT_OUTPUT = 'output.txt'


def open_image(source):
    name = getattr(source, 'name', source)
    try:
        img = Image.open(source)
        img.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise SourceUnreadable(name, e) from e
    return img


def convert(source, budget=DEFAULT_BUDGET, screen_gamma=SCREEN_GAMMA):
    img = open_image(source)
    return image_to_rgb(img, budget, screen_gamma)


def output_mode(path):
    # keep an existing file's mode, otherwise what a plain open() would create
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        pass
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_output(path, text):
    # written next to the destination and renamed, so a failure never leaves a partial file
    directory = os.path.dirname(os.path.abspath(path))
    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile('w', dir=directory, prefix='.png_reader-', suffix='.tmp',
                                         encoding='ascii', newline='', delete=False) as f:
            tmp_name = f.name
            f.write(text)
        os.chmod(tmp_name, output_mode(path))
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise OutputUnwritable(path, e) from e


def read_png_file(filename, output_filename=DEFAULT_OUTPUT, budget=DEFAULT_BUDGET,
                  screen_gamma=SCREEN_GAMMA):
    conversion = convert(filename, budget, screen_gamma)
    write_output(output_filename, conversion.text)
    log.info('wrote %s (%dx%d, %d chars)', output_filename,
             conversion.width, conversion.height, len(conversion.text))
    return conversion


def build_parser():
    ap = argparse.ArgumentParser(
        prog='png-reader',
        description='Convert an image to size-bounded "Image Data (RGB)" text.')
    ap.add_argument('input')
    ap.add_argument('output', nargs='?', default=DEFAULT_OUTPUT)
    ap.add_argument('--max-chars', type=int, default=MAX_OUTPUT_CHARS)
    ap.add_argument('--chars-per-pixel', type=int, default=CHARS_PER_PIXEL)
    ap.add_argument('--margin', type=float, default=SCALE_MARGIN)
    ap.add_argument('--gamma', type=float, default=SCREEN_GAMMA, help='screen gamma')
    ap.add_argument('--no-gamma', action='store_true', help='skip gamma correction')
    ap.add_argument('-v', '--verbose', action='store_true')
    return ap


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S')

    budget = Budget(args.max_chars, args.chars_per_pixel, args.margin)
    screen_gamma = None if args.no_gamma else args.gamma
    try:
        read_png_file(args.input, args.output, budget, screen_gamma)
    except ConversionError as e:
        log.error('Error: %s', e)
        return 1
    except ValueError as e:
        log.error('Error: %s', e)
        return 2
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
