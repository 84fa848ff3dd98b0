import contextlib
import io
import logging

import flask
import PIL.Image
import requests

from . import asciify
from .compositor import MalformedStream, UnsupportedCodec


logger = logging.getLogger(__name__)

MAX_LENGTH = 1 * 1024 * 1024
DEFAULT_WIDTH = 80
MAX_WIDTH = 300
app = flask.Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = MAX_LENGTH

INDEX = '''
<html>
  <body>
    <form action='result' method='post' enctype='multipart/form-data'>
      <h3>image2ascii</h3>
      <input name='url' style='width: 500px' type='text' placeholder='https://...'><br>
      <input name='upload' type='file'><br>
      <label>Width <input name='width' type='number' min='1' max='{max_width}' value='{width}'></label><br>
      <label><input name='color' type='checkbox'> Color</label><br>
      <label><input name='keep_zero_delay' type='checkbox'> Keep zero-delay frames</label><br>
      <input type='submit'>
    </form>
  </body>
</html>
'''

RESULT = '''
<html>
  <body style='background: black; color: white'>
    {% for frame in frames %}
      <pre class='frame' data-delay='{{ frame.delay }}'
           style='font-size: 8px; line-height: 8px{% if not loop.first %}; display: none{% endif %}'
      >{% if color %}{{ frame.text|safe }}{% else %}{{ frame.text }}{% endif %}</pre>
    {% endfor %}
    {% if frames|length > 1 %}
    <script>
      const frames = document.querySelectorAll('.frame');
      let current = 0;
      function next() {
        frames[current].style.display = 'none';
        current = (current + 1) % frames.length;
        frames[current].style.display = '';
        setTimeout(next, Number(frames[current].dataset.delay) || 100);
      }
      setTimeout(next, Number(frames[0].dataset.delay) || 100);
    </script>
    {% endif %}
  </body>
</html>
'''


@app.route('/', methods=['GET'])
def hello():
    return INDEX.format(width=DEFAULT_WIDTH, max_width=MAX_WIDTH)


class TooBig(ValueError):
    ...


def stream_image(img_response):
    CHUNK_READ_SIZE = 1024  # arbitrary afaict

    data = io.BytesIO()
    content_length = img_response.headers.get('Content-Length')
    if content_length and int(content_length) > MAX_LENGTH:
        raise TooBig("Too big")

    size = 0
    for chunk in img_response.iter_content(CHUNK_READ_SIZE):
        size += len(chunk)
        if size > MAX_LENGTH:
            raise TooBig("Too big")

        data.write(chunk)
    return data


def read_upload():
    file = flask.request.files.get('upload')
    if file and file.filename != '':
        return file.stream
    url = flask.request.form['url']
    with contextlib.closing(requests.get(url, stream=True)) as img_response:
        data = stream_image(img_response)
        data.seek(0)
        return data


def requested_width():
    width = flask.request.form.get('width', DEFAULT_WIDTH, type=int)
    return min(max(width, 1), MAX_WIDTH)


def convert():
    """
    Turn the posted image into ascii frames.

    Returns the frames, or an error response.
    """
    try:
        data = read_upload()
    except TooBig:
        return "Too big"
    except requests.exceptions.RequestException:
        return "Bad url"

    try:
        with PIL.Image.open(data) as im:
            return asciify.asciify(
                im,
                width=requested_width(),
                color='color' in flask.request.form,
                skip_zero_delay='keep_zero_delay' not in flask.request.form,
            )
    except (PIL.UnidentifiedImageError, UnsupportedCodec) as e:
        logger.warning("Rejected image: %s", e)
        return "Unsupported image", 400
    except MalformedStream as e:
        logger.warning("Rejected animation after %d frames: %s", len(e.frames), e)
        return "Malformed animation", 400


@app.route('/result', methods=['POST'])
def result():
    frames = convert()
    if not isinstance(frames, list):
        return frames
    return flask.render_template_string(
        RESULT,
        frames=frames,
        color='color' in flask.request.form,
    )


@app.route('/result.json', methods=['POST'])
def result_json():
    frames = convert()
    if not isinstance(frames, list):
        return frames
    return flask.jsonify(frames=[frame._asdict() for frame in frames])
