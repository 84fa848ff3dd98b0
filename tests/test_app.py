import io

import PIL.Image
import pytest
import requests

from image2ascii import app as app_module


@pytest.fixture
def client():
    app_module.app.config['TESTING'] = True
    return app_module.app.test_client()


def png(size=(8, 8), color=(128, 128, 128)):
    data = io.BytesIO()
    PIL.Image.new('RGB', size, color).save(data, format='PNG')
    data.seek(0)
    return data


def gif(durations, colors=((255, 0, 0), (0, 0, 255))):
    frames = [PIL.Image.new('RGB', (8, 8), color) for color in colors]
    kwargs = {} if durations is None else {'duration': durations}
    data = io.BytesIO()
    frames[0].save(data, format='GIF', save_all=True, append_images=frames[1:], **kwargs)
    data.seek(0)
    return data


class FakeResponse:
    def __init__(self, content, headers=None):
        self.content = content
        self.headers = headers or {}

    def iter_content(self, chunk_size):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def close(self):
        pass


def test_index(client):
    response = client.get('/')
    assert response.status_code == 200
    assert b"name='upload'" in response.data
    assert b"value='80'" in response.data


def test_upload(client):
    response = client.post('/result', data={
        'url': '',
        'width': '4',
        'upload': (png(), 'gray.png'),
    })
    assert response.status_code == 200
    assert b'<pre' in response.data
    assert b'++++\n++++\n</pre>' in response.data


def test_upload_animation_json(client):
    response = client.post('/result.json', data={
        'url': '',
        'width': '4',
        'upload': (gif([100, 200]), 'anim.gif'),
    })
    assert response.status_code == 200
    frames = response.get_json()['frames']
    assert [frame['delay'] for frame in frames] == [100, 200]
    assert all(frame['text'].count('\n') == 2 for frame in frames)


def test_animation_page_cycles_frames(client):
    response = client.post('/result', data={
        'url': '',
        'color': 'on',
        'upload': (gif([100, 200]), 'anim.gif'),
    })
    assert response.status_code == 200
    assert response.data.count(b"class='frame'") == 2
    assert b'<span style="color:#' in response.data
    assert b'setTimeout' in response.data


def test_unsupported_upload(client):
    response = client.post('/result', data={
        'url': '',
        'upload': (io.BytesIO(b'not an image'), 'junk.bin'),
    })
    assert response.status_code == 400
    assert response.data == b'Unsupported image'


def test_url(client, monkeypatch):
    monkeypatch.setattr(requests, 'get', lambda url, stream: FakeResponse(png().read()))
    response = client.post('/result.json', data={'url': 'http://example.com/x.png', 'width': '4'})
    assert response.get_json() == {'frames': [{'text': '++++\n++++\n', 'delay': 0}]}


def test_url_too_big(client, monkeypatch):
    response = FakeResponse(b'', headers={'Content-Length': str(app_module.MAX_LENGTH + 1)})
    monkeypatch.setattr(requests, 'get', lambda url, stream: response)
    assert client.post('/result', data={'url': 'http://example.com/big.png'}).data == b'Too big'


def test_url_too_big_while_streaming(client, monkeypatch):
    response = FakeResponse(b'x' * (app_module.MAX_LENGTH + 1))
    monkeypatch.setattr(requests, 'get', lambda url, stream: response)
    assert client.post('/result', data={'url': 'http://example.com/big.png'}).data == b'Too big'


def test_bad_url(client, monkeypatch):
    def fail(url, stream):
        raise requests.exceptions.ConnectionError(url)
    monkeypatch.setattr(requests, 'get', fail)
    assert client.post('/result', data={'url': 'http://nope.invalid'}).data == b'Bad url'


@pytest.mark.parametrize('width, expected', [('0', 1), ('10000', app_module.MAX_WIDTH), ('12', 12)])
def test_width_is_clamped(client, width, expected):
    response = client.post('/result.json', data={
        'url': '',
        'width': width,
        'upload': (png((4, 4)), 'gray.png'),
    })
    [frame] = response.get_json()['frames']
    assert len(frame['text'].split('\n')[0]) == expected


def test_animation_without_delays(client):
    response = client.post('/result', data={
        'url': '',
        'upload': (gif(None), 'anim.gif'),
    })
    assert response.status_code == 400
    assert response.data == b'Malformed animation'


def test_truncated_animation(client):
    colors = ((255, 0, 0), (0, 255, 0), (0, 0, 255))
    data = gif([100, 200, 300], colors).getvalue()[:-20]
    response = client.post('/result', data={
        'url': '',
        'upload': (io.BytesIO(data), 'anim.gif'),
    })
    assert response.status_code == 400
    assert response.data == b'Malformed animation'
