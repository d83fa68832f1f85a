import logging
from collections import namedtuple

import numpy as np

from conversion_errors import BudgetExceeded, InvalidDimensions

log = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 190000
CHARS_PER_PIXEL = 25
SCALE_MARGIN = 0.95
SCREEN_GAMMA = 1.5
GAMMA_THRESHOLD = 0.05
MAX_REFITS = 8

HEADER = 'Image Data (RGB):\n'
TERMINATOR = '???'

# rows are bytes of length width * 3, RGB interleaved
PixelGrid = namedtuple('PixelGrid', ['width', 'height', 'rows'])

Budget = namedtuple('Budget', ['max_chars', 'chars_per_pixel', 'margin'],
                    defaults=(MAX_OUTPUT_CHARS, CHARS_PER_PIXEL, SCALE_MARGIN))

DEFAULT_BUDGET = Budget()

Conversion = namedtuple('Conversion', ['text', 'width', 'height', 'scale'])


def check_grid(grid):
    if grid.width <= 0 or grid.height <= 0:
        raise InvalidDimensions(grid.width, grid.height, 'source')
    if len(grid.rows) != grid.height:
        raise InvalidDimensions(grid.width, len(grid.rows), 'source')
    for row in grid.rows:
        if len(row) != grid.width * 3:
            raise InvalidDimensions(len(row) // 3, grid.height, 'source')


def source_positions(old_size, new_size):
    # single precision, matching the float arithmetic the format was produced with
    ratio = np.float32(old_size) / np.float32(new_size)
    src = np.arange(new_size, dtype=np.float32) * ratio
    lo = src.astype(np.intp)
    hi = np.minimum(lo + 1, old_size - 1)
    return lo, hi, src - lo.astype(np.float32)


def resize_image(grid, new_width, new_height):
    check_grid(grid)
    if new_width <= 0 or new_height <= 0:
        raise InvalidDimensions(new_width, new_height, 'target')

    pixels = np.frombuffer(b''.join(grid.rows), dtype=np.uint8)
    pixels = pixels.reshape(grid.height, grid.width, 3).astype(np.float32)

    x0, x1, x_weight = source_positions(grid.width, new_width)
    y0, y1, y_weight = source_positions(grid.height, new_height)
    x_weight = x_weight[np.newaxis, :, np.newaxis]
    y_weight = y_weight[:, np.newaxis, np.newaxis]

    upper = pixels[y0]
    lower = pixels[y1]
    top = (1 - x_weight) * upper[:, x0] + x_weight * upper[:, x1]
    bottom = (1 - x_weight) * lower[:, x0] + x_weight * lower[:, x1]
    out = ((1 - y_weight) * top + y_weight * bottom).astype(np.uint8)

    return PixelGrid(new_width, new_height, tuple(row.tobytes() for row in out))


def max_scale_factor(width, height, budget=DEFAULT_BUDGET):
    max_pixels = budget.max_chars // budget.chars_per_pixel
    return np.sqrt(np.float32(max_pixels) / np.float32(width * height)) * np.float32(budget.margin)


def truncated_size(width, height, scale):
    scale = np.float32(scale)
    return int(np.float32(width) * scale), int(np.float32(height) * scale)


def estimate_output_size(width, height, scale, chars_per_pixel=CHARS_PER_PIXEL):
    new_width, new_height = truncated_size(width, height, scale)
    return new_width * new_height * chars_per_pixel


def plan_scale(width, height, budget=DEFAULT_BUDGET):
    if width <= 0 or height <= 0:
        raise InvalidDimensions(width, height, 'source')
    if budget.chars_per_pixel <= 0 or budget.margin <= 0:
        raise ValueError(f'invalid budget {budget}')
    if budget.max_chars // budget.chars_per_pixel < 1:
        raise BudgetExceeded(budget.chars_per_pixel, budget.max_chars)

    scale = max_scale_factor(width, height, budget)
    if scale > 1.0:
        scale = np.float32(1.0)

    estimated_size = estimate_output_size(width, height, scale, budget.chars_per_pixel)
    if estimated_size > budget.max_chars:
        log.warning('Adjusting scale factor to fit within output size limit (%d > %d)',
                    estimated_size, budget.max_chars)
        scale *= np.sqrt(np.float32(budget.max_chars) / np.float32(estimated_size))

    return float(scale)


def scaled_size(width, height, scale):
    new_width, new_height = truncated_size(width, height, scale)
    if new_width <= 0 or new_height <= 0:
        raise InvalidDimensions(new_width, new_height, 'target')
    return new_width, new_height


def convert_to_rgb_data(grid):
    records = []
    for y, row in enumerate(grid.rows):
        flipped = grid.height - 1 - y
        for x in range(grid.width):
            r, g, b = row[x * 3:x * 3 + 3]
            records.append(f'14,0,0,{flipped},{x},{r}+{g}+{b}+2+0')
    return HEADER + ';'.join(records) + TERMINATOR


def refit_scale(width, height, scale, size, limit):
    scale = np.float32(scale)
    new_scale = scale * np.sqrt(np.float32(limit) / np.float32(size))
    if truncated_size(width, height, new_scale) == truncated_size(width, height, scale):
        new_scale = scale - np.float32(1.0) / np.float32(max(width, height))
    return float(new_scale)


def grid_to_rgb(grid, budget=DEFAULT_BUDGET):
    check_grid(grid)
    scale = plan_scale(grid.width, grid.height, budget)
    new_width, new_height = scaled_size(grid.width, grid.height, scale)

    for attempt in range(MAX_REFITS + 1):
        resized = resize_image(grid, new_width, new_height)
        text = convert_to_rgb_data(resized)
        if len(text) <= budget.max_chars:
            log.info('%dx%d -> %dx%d (scale %.6f, %d chars)',
                     grid.width, grid.height, new_width, new_height, scale, len(text))
            return Conversion(text, new_width, new_height, scale)

        log.warning('Encoded size %d over limit %d at %dx%d, refitting',
                    len(text), budget.max_chars, new_width, new_height)
        scale = refit_scale(grid.width, grid.height, scale, len(text), budget.max_chars)
        try:
            new_width, new_height = scaled_size(grid.width, grid.height, scale)
        except InvalidDimensions as e:
            raise BudgetExceeded(len(text), budget.max_chars) from e

    raise BudgetExceeded(len(text), budget.max_chars)


def gamma_table(file_gamma, screen_gamma):
    exponent = 1.0 / (file_gamma * screen_gamma)
    if abs(exponent - 1.0) < GAMMA_THRESHOLD:
        return None
    return [int(255 * (v / 255) ** exponent + 0.5) for v in range(256)]


def normalize_image(img):
    # 16-bit grayscale comes in as I / I;16, scale down before the RGB expansion
    if img.mode == 'I' or img.mode.startswith('I;16'):
        img = img.convert('I').point(lambda v: v * (1 / 256)).convert('L')
    return img.convert('RGB')


def pixels_from_image(img, screen_gamma=SCREEN_GAMMA):
    width, height = img.size
    if width <= 0 or height <= 0:
        raise InvalidDimensions(width, height, 'source')

    file_gamma = img.info.get('gamma')
    rgb = normalize_image(img)

    if screen_gamma:
        if file_gamma is None:
            log.warning('gAMA chunk not found. Using default gamma correction.')
            file_gamma = 1.0
        table = gamma_table(file_gamma, screen_gamma)
        if table:
            rgb = rgb.point(table * 3)

    data = rgb.tobytes()
    stride = width * 3
    rows = tuple(data[i:i + stride] for i in range(0, stride * height, stride))
    return PixelGrid(width, height, rows)


def image_to_rgb(img, budget=DEFAULT_BUDGET, screen_gamma=SCREEN_GAMMA):
    return grid_to_rgb(pixels_from_image(img, screen_gamma), budget)
