import collections
import logging

import PIL.Image

from . import compositor
from . import gifextract
from . import glyph


logger = logging.getLogger(__name__)

# Terminal and <pre> character cells are about twice as tall as they are wide.
CHAR_ASPECT = 0.5
BACKGROUND = (0, 0, 0, 255)

AsciiFrame = collections.namedtuple('AsciiFrame', ['text', 'delay'])


def flatten(im, background=BACKGROUND):
    new_image = PIL.Image.new('RGBA', im.size, background)
    new_image.alpha_composite(im.convert('RGBA'))
    return new_image.convert('RGB')


def scale(im, width):
    if width is None:
        return im
    height = max(1, round(im.height * width / im.width * CHAR_ASPECT))
    return im.resize((width, height))


def render(im, width, color):
    return glyph.pixel_to_glyph(scale(flatten(im), width), color=color)


def asciify(im, width=None, color=False, skip_zero_delay=True):
    """
    Convert an image into a list of (text, delay) frames.

    Animated GIFs are composited frame by frame; anything else becomes a
    single frame with no delay. Zero-delay frames of an animation are dropped
    unless `skip_zero_delay` is off, but never all of them: an animation made
    only of zero-delay frames keeps its last one.
    """
    if not getattr(im, 'is_animated', False):
        return [AsciiFrame(render(im, width, color), 0)]

    frames = compositor.decode(gifextract.GifSource(im))
    if skip_zero_delay:
        frames = compositor.displayed(frames) or frames[-1:]
    logger.debug("Rendering %d frames", len(frames))
    return [
        AsciiFrame(render(frame.image, width, color), frame.delay)
        for frame in frames
    ]
