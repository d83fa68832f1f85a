import io
import os

import requests
from flask import Flask, Response, flash, get_flashed_messages, jsonify, redirect, request
from markupsafe import escape

from conversion_errors import ConversionError, SourceUnreadable
from image_to_rgb import MAX_OUTPUT_CHARS, SCREEN_GAMMA, Budget
from png_reader import DEFAULT_OUTPUT, convert

ALLOWED_EXTENSIONS = ['png', 'jpg', 'jpeg']


def env_gamma(value):
    if value is None:
        return SCREEN_GAMMA
    if value.lower() == 'none':
        return None
    return float(value)


app = Flask(__name__)
app.secret_key = os.environ.get('SECRET_KEY', b'_5#y2L"Ffghgfhgf4Q8z\n\xec]/')
app.config.update(
    MAX_OUTPUT_CHARS=int(os.environ.get('MAX_OUTPUT_CHARS', MAX_OUTPUT_CHARS)),
    MAX_CONTENT_LENGTH=int(os.environ.get('MAX_CONTENT_LENGTH', 16 * 1024 * 1024)),
    SCREEN_GAMMA=env_gamma(os.environ.get('SCREEN_GAMMA')),
    FETCH_TIMEOUT=float(os.environ.get('FETCH_TIMEOUT', 10)),
)


def fetch_image(url, timeout, max_bytes):
    app.logger.info('fetching %s', url)
    data = bytearray()
    try:
        with requests.get(url, timeout=timeout, stream=True) as r:
            r.raise_for_status()
            for chunk in r.iter_content(chunk_size=64 * 1024):
                data += chunk
                if len(data) > max_bytes:
                    raise SourceUnreadable(url, f'larger than {max_bytes} bytes')
    except requests.RequestException as e:
        raise SourceUnreadable(url, e) from e
    return io.BytesIO(bytes(data))


def parse_char_limit(value):
    max_chars = app.config['MAX_OUTPUT_CHARS']
    if not value:
        return max_chars
    try:
        char_limit = int(value)
    except ValueError:
        raise ValueError(f'char limit must be a number, got {value!r}')
    if char_limit <= 0 or char_limit > max_chars:
        raise ValueError(f'char limit must be between 1 and {max_chars}')
    return char_limit


def request_source():
    file = request.files.get('file', None)
    if file and file.filename:
        ext = file.filename.rsplit('.', 1)[-1].lower() if '.' in file.filename else ''
        if ext not in ALLOWED_EXTENSIONS:
            raise ValueError('supported file types are ' + ', '.join('.' + e for e in ALLOWED_EXTENSIONS))
        return file.stream

    url = request.form.get('url', '').strip()
    if url:
        if not url.startswith(('http://', 'https://')):
            raise ValueError('only http(s) urls are supported')
        return fetch_image(url, app.config['FETCH_TIMEOUT'], app.config['MAX_CONTENT_LENGTH'])

    raise ValueError('no file or url given')


def convert_request():
    budget = Budget(max_chars=parse_char_limit(request.form.get('char_limit')))
    source = request_source()
    conversion = convert(source, budget, app.config['SCREEN_GAMMA'])
    app.logger.info('converted to %dx%d (%d chars)',
                    conversion.width, conversion.height, len(conversion.text))
    return conversion


@app.route('/')
def route_index():
    page = ''
    page += '''
    <html>
    <head>
    <title>image data (rgb)</title>
    <style>
    body {
        color: lime;
        background: black;
        font-family: monospace;
    }
    input[type=submit] {
        border: 1px solid lime;
        background: black;
        color: lime;
        font-family: monospace;
        font-size: 12pt;
        padding: 10px;
        width: 500px;
    }
    input[type=submit]:hover {
        cursor: pointer;
        color: black;
        background: lime;
    }
    input[type=file], input[type=text] {
        background: black;
        font-family: monospace;
        color: lime;
        border: 1px solid lime;
        padding: 10px;
        width: 500px;
    }
    .field {
        margin-bottom: 10px;
    }
    </style>
    </head>
    <body>
    <h1>image data (rgb)</h1>
    '''

    for message in get_flashed_messages():
        page += f'<div><h3>{escape(message)}</h3></div>'

    max_chars = app.config['MAX_OUTPUT_CHARS']
    page += f'''
    <form method="post" enctype="multipart/form-data" action="/convert">
    <div class="field"><input type="file" name="file" accept=".png,.jpg,.jpeg"></div>
    <div class="field"><input type="text" name="url" placeholder="or image url"></div>
    <div class="field"><input type="text" name="char_limit" placeholder="char limit (max {max_chars})"></div>
    <input type="submit" value="[Convert]">
    </form>
    '''
    page += '</body>'
    page += '</html>'
    return page


@app.route('/convert', methods=['POST'])
def route_convert():
    try:
        conversion = convert_request()
    except (ValueError, ConversionError) as e:
        app.logger.warning('conversion failed: %s', e)
        flash(str(e))
        return redirect('/')

    return Response(conversion.text, mimetype='text/plain',
                    headers={'Content-Disposition': f'attachment; filename={DEFAULT_OUTPUT}'})


@app.route('/api/convert', methods=['POST'])
def route_api_convert():
    try:
        conversion = convert_request()
    except (ValueError, ConversionError) as e:
        app.logger.warning('conversion failed: %s', e)
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'width': conversion.width,
        'height': conversion.height,
        'scale': conversion.scale,
        'length': len(conversion.text),
        'data': conversion.text,
    })


if __name__ == '__main__':
    app.run(debug=True)
