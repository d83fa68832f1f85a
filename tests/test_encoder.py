from image_to_rgb import HEADER, TERMINATOR, convert_to_rgb_data


def test_2x2_exact_text(grid_2x2):
    assert convert_to_rgb_data(grid_2x2) == (
        'Image Data (RGB):\n'
        '14,0,0,1,0,1+2+3+2+0;'
        '14,0,0,1,1,4+5+6+2+0;'
        '14,0,0,0,0,7+8+9+2+0;'
        '14,0,0,0,1,10+11+12+2+0'
        '???'
    )


def test_single_pixel(make_grid):
    text = convert_to_rgb_data(make_grid([[(255, 0, 128)]]))
    assert text == 'Image Data (RGB):\n14,0,0,0,0,255+0+128+2+0???'


def test_separators_between_records_only(make_grid):
    grid = make_grid([[(0, 0, 0)] * 3] * 2)
    text = convert_to_rgb_data(grid)
    assert text.startswith(HEADER)
    assert text.endswith('+2+0' + TERMINATOR)
    body = text[len(HEADER):-len(TERMINATOR)]
    records = body.split(';')
    assert len(records) == 6
    assert '\n' not in body
    assert [r.split(',')[3:5] for r in records] == [
        ['1', '0'], ['1', '1'], ['1', '2'], ['0', '0'], ['0', '1'], ['0', '2'],
    ]
