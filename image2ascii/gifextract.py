import logging

import PIL.Image

from .compositor import Disposal, MalformedStream, RawFrame, UnsupportedCodec


"""
Reads the raw frames of an animated GIF with Pillow.

Pillow takes care of the palettes and the LZW data, and hands back each frame
already drawn over the previous ones. The part of it that the frame actually
updated is `dispose_extent`; that rectangle, its position, the frame's
duration and its disposal method are what a compositor needs to build the
full frames itself.
"""

logger = logging.getLogger(__name__)

DISPOSAL_METHODS = {
    0: Disposal.NONE,  # unspecified
    1: Disposal.NONE,
    2: Disposal.RESTORE_TO_BACKGROUND,
    3: Disposal.RESTORE_TO_PREVIOUS,
}


def disposal_for(code):
    try:
        return DISPOSAL_METHODS[code]
    except KeyError:
        raise MalformedStream(f"Unknown disposal method {code!r}") from None


class GifSource:
    """
    The frames of a GIF, in the order they should be shown.

    Use as a context manager; the image is closed on exit if this source
    opened it.
    """

    def __init__(self, im, close_image=False):
        if im.format != 'GIF':
            raise UnsupportedCodec(f"Not a GIF: {im.format}")
        self.im = im
        self.close_image = close_image
        # Pillow grows `size` if a later frame sticks out of the logical
        # screen, so remember what the header said.
        self._size = im.size

    @classmethod
    def open(cls, fp):
        try:
            im = PIL.Image.open(fp)
        except PIL.UnidentifiedImageError as e:
            raise UnsupportedCodec(str(e)) from e
        try:
            return cls(im, close_image=True)
        except UnsupportedCodec:
            im.close()
            raise

    def canvas_size(self):
        width, height = self._size
        if width < 1 or height < 1:
            return None
        return self._size

    def __iter__(self):
        im = self.im
        self._seek(0)
        while True:
            yield self.raw_frame()
            try:
                self._seek(im.tell() + 1)
            except EOFError:
                return

    def _seek(self, frame):
        try:
            self.im.seek(frame)
        except EOFError:
            raise
        except (IndexError, OSError, SyntaxError) as e:
            raise MalformedStream(f"Cannot read frame {frame}: {e}") from e

    def raw_frame(self):
        im = self.im
        box = getattr(im, 'dispose_extent', None) or (0, 0) + im.size
        duration = im.info.get('duration')
        try:
            # Pillow has already drawn this frame over the previous ones, so
            # where the frame is transparent the crop holds Pillow's own
            # canvas instead. After a restore to background without a
            # transparent index that is the opaque background colour, which
            # then gets drawn onto our transparent canvas.
            image = im.convert('RGBA').crop(box)
        except (IndexError, OSError, SyntaxError) as e:
            raise MalformedStream(f"Cannot read frame {im.tell()}: {e}") from e
        frame = RawFrame(
            image=image,
            offset=box[:2],
            delay=None if duration is None else int(duration),
            disposal=disposal_for(getattr(im, 'disposal_method', 0)),
        )
        logger.debug(
            "Frame %d: %r, delay %r, %s", im.tell(), box, frame.delay, frame.disposal.value,
        )
        return frame

    def close(self):
        if self.close_image:
            self.im.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
