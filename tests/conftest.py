import io

import pytest
from PIL import Image

from image_to_rgb import PixelGrid


def grid_from_pixels(pixels):
    """PixelGrid from a list of rows of (r, g, b) tuples."""
    rows = tuple(bytes(c for px in row for c in px) for row in pixels)
    return PixelGrid(len(pixels[0]), len(pixels), rows)


def gradient_image(width, height):
    img = Image.new('RGB', (width, height))
    img.putdata([(x * 255 // max(width - 1, 1), y * 255 // max(height - 1, 1), 128)
                 for y in range(height) for x in range(width)])
    return img


@pytest.fixture
def make_grid():
    return grid_from_pixels


@pytest.fixture
def grid_2x2():
    return grid_from_pixels([
        [(1, 2, 3), (4, 5, 6)],
        [(7, 8, 9), (10, 11, 12)],
    ])


@pytest.fixture
def png_bytes():
    buf = io.BytesIO()
    gradient_image(100, 80).save(buf, format='PNG')
    return buf.getvalue()


@pytest.fixture
def png_path(tmp_path):
    path = tmp_path / 'input.png'
    gradient_image(40, 30).save(path)
    return path
