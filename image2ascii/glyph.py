"""
Map pixels to characters by brightness.

Brightness is the perceived luminance sqrt(0.241 R^2 + 0.691 G^2 + 0.068 B^2)
(http://alienryderflex.com/hsp.html) rather than a plain channel average.
"""
import numpy as np


GLYPHS = '#A@%$+=*:,. '
WEIGHTS = np.array([0.241, 0.691, 0.068])
SPAN = '<span style="color:#{:02x}{:02x}{:02x};">{}</span>'


def brightness(pixels):
    """Luminance of each pixel of an (height, width, 3) array, 0 to 255."""
    channels = pixels.astype(np.float64)
    return np.sqrt((channels * channels) @ WEIGHTS)


def glyph_indices(pixels):
    values = brightness(pixels)
    last = len(GLYPHS) - 1
    indices = np.clip((values / 255 * last).astype(int), 0, last)
    # Pure black reads better as empty space than as the densest glyph.
    indices[values == 0] = last
    return indices


def pixel_to_glyph(im, color=False):
    """
    Render an image as text, one character per pixel.

    With `color`, each character is wrapped in a span carrying the pixel's
    colour and rows end with `<br>` instead of a newline.
    """
    pixels = np.asarray(im.convert('RGB'))
    glyphs = np.array(list(GLYPHS))[glyph_indices(pixels)]
    if not color:
        return ''.join(''.join(row) + '\n' for row in glyphs)

    lines = []
    for glyph_row, pixel_row in zip(glyphs, pixels):
        lines.append(''.join(
            SPAN.format(r, g, b, glyph)
            for glyph, (r, g, b) in zip(glyph_row, pixel_row.tolist())
        ))
        lines.append('<br>')
    return ''.join(lines)
