"""
Turn the raw frames of an animated GIF into complete, displayable frames.

GIF frames are often only a sub-region of the full image, drawn at an offset
on top of whatever the previous frames left behind. After a frame has been
shown its disposal method says what to do with the canvas before the next one
is drawn:

- NONE leaves everything in place,
- RESTORE_TO_BACKGROUND clears the area the frame covered,
- RESTORE_TO_PREVIOUS puts the canvas back to how it looked before the frame
  was drawn. If the frame before that was also RESTORE_TO_PREVIOUS, the result
  is whatever it was before *that* frame, and so on.

http://www.imagemagick.org/Usage/anim_basics/#dispose
"""
import dataclasses
import enum
import logging
import typing

import PIL.Image


logger = logging.getLogger(__name__)

TRANSPARENT = (0, 0, 0, 0)


class DecodeError(ValueError):
    frames = ()


class MalformedStream(DecodeError):
    ...


class UnsupportedCodec(DecodeError):
    ...


class Disposal(enum.Enum):
    NONE = 'none'
    RESTORE_TO_BACKGROUND = 'restoreToBackground'
    RESTORE_TO_PREVIOUS = 'restoreToPrevious'


@dataclasses.dataclass(frozen=True)
class RawFrame:
    image: PIL.Image.Image
    offset: tuple = (0, 0)
    delay: typing.Optional[int] = None
    disposal: typing.Optional[Disposal] = None

    @property
    def box(self):
        x, y = self.offset
        return (x, y, x + self.image.width, y + self.image.height)


@dataclasses.dataclass(frozen=True)
class CompositedFrame:
    image: PIL.Image.Image
    delay: int
    disposal: Disposal

    @property
    def is_displayed(self):
        # Zero-delay frames only prepare the canvas for the frames after them.
        # http://www.imagemagick.org/Usage/anim_basics/#zero
        return self.delay > 0


@dataclasses.dataclass(frozen=True)
class _HistoryEntry:
    # The canvas as this frame left it for the next one, disposal applied.
    state: PIL.Image.Image
    disposal: Disposal


def _positive_size(size):
    if not size:
        return None
    width, height = size
    if not width or not height or width < 1 or height < 1:
        return None
    return (width, height)


def validate(raw_frame):
    if raw_frame.delay is None:
        raise MalformedStream("Frame has no delay")
    if raw_frame.disposal is None:
        raise MalformedStream("Frame has no disposal method")
    if not isinstance(raw_frame.delay, int) or raw_frame.delay < 0:
        raise MalformedStream(f"Invalid frame delay: {raw_frame.delay!r}")
    if not isinstance(raw_frame.disposal, Disposal):
        raise MalformedStream(f"Invalid disposal method: {raw_frame.disposal!r}")


class Compositor:
    """
    Draws raw frames, one after the other, onto a single canvas.

    `global_size` is the logical screen size of the animation, if the codec
    knows it. Otherwise the canvas takes the size of the first frame. Either
    way it never changes afterwards.
    """

    def __init__(self, global_size=None):
        self.global_size = global_size
        self.size = None
        self._canvas = None
        self._history = []

    def _resolve_size(self, first_frame):
        size = _positive_size(self.global_size)
        if size is None:
            size = _positive_size(first_frame.image.size)
        if size is None:
            raise MalformedStream(f"Invalid canvas size: {first_frame.image.size!r}")
        logger.debug("Canvas size resolved to %dx%d", *size)
        return size

    def add(self, raw_frame):
        validate(raw_frame)
        if self._canvas is None:
            self.size = self._resolve_size(raw_frame)
            self._canvas = PIL.Image.new('RGBA', self.size, TRANSPARENT)

        self._draw(raw_frame)
        frame = CompositedFrame(
            image=self._canvas.copy(),
            delay=raw_frame.delay,
            disposal=raw_frame.disposal,
        )
        self._dispose(raw_frame)
        self._history.append(_HistoryEntry(self._canvas.copy(), raw_frame.disposal))
        return frame

    def _draw(self, raw_frame):
        x, y = raw_frame.offset
        image = raw_frame.image.convert('RGBA')
        # Only the part of the frame that lies on the canvas is drawn.
        left, top = max(x, 0), max(y, 0)
        right = min(x + image.width, self._canvas.width)
        bottom = min(y + image.height, self._canvas.height)
        if left >= right or top >= bottom:
            return
        if (left, top, right, bottom) != raw_frame.box:
            image = image.crop((left - x, top - y, right - x, bottom - y))
        self._canvas.alpha_composite(image, dest=(left, top))

    def _dispose(self, raw_frame):
        if raw_frame.disposal is Disposal.RESTORE_TO_BACKGROUND:
            logger.debug("Clearing %r", raw_frame.box)
            self._canvas.paste(TRANSPARENT, raw_frame.box)
        elif raw_frame.disposal is Disposal.RESTORE_TO_PREVIOUS:
            if not self._history:
                # Nothing came before the first frame; the canvas stays as drawn.
                return
            index = self._restore_point()
            logger.debug("Restoring canvas from frame %d", index)
            self._canvas = self._history[index].state.copy()

    def _restore_point(self):
        index = len(self._history) - 1
        while index > 0 and self._history[index].disposal is Disposal.RESTORE_TO_PREVIOUS:
            index -= 1
        return index


def iter_frames(source):
    """
    Yield a CompositedFrame for each raw frame of `source`, in order.

    The source is closed when iteration finishes, fails, or is abandoned.
    """
    with source:
        compositor = Compositor(source.canvas_size())
        for raw_frame in source:
            yield compositor.add(raw_frame)


def decode(source):
    """
    Composite every frame of `source`.

    On failure the frames produced so far are attached to the exception as
    `frames`.
    """
    frames = []
    try:
        for frame in iter_frames(source):
            frames.append(frame)
    except DecodeError as e:
        e.frames = tuple(frames)
        raise
    return frames


def displayed(frames):
    return [frame for frame in frames if frame.is_displayed]
