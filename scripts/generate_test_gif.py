#!/usr/bin/env python3
"""Generate a synthetic transparent GIF for GifMov pipeline testing.

Produces a 24-frame 320x160 animation: a colored square sweeps left to
right over a fully transparent background. Delays vary per frame
(20, 40, 60 and 120 ms in turn) to exercise both timing policies.
"""

import sys
from pathlib import Path

from PIL import Image, ImageDraw

COLORS = [(255, 64, 64), (64, 200, 64), (64, 64, 255), (255, 200, 0)]
DELAYS_MS = [20, 40, 60, 120]


def generate_test_gif(output: Path, frames: int = 24, size: tuple[int, int] = (320, 160)) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)

    width, height = size
    side = height // 2
    images = []
    for i in range(frames):
        frame = Image.new("RGBA", size, (0, 0, 0, 0))
        x = (width - side) * i // max(frames - 1, 1)
        ImageDraw.Draw(frame).rectangle(
            (x, side // 2, x + side, side // 2 + side), fill=COLORS[i % len(COLORS)] + (255,)
        )
        images.append(frame)

    images[0].save(
        output,
        save_all=True,
        append_images=images[1:],
        duration=[DELAYS_MS[i % len(DELAYS_MS)] for i in range(frames)],
        loop=0,
        disposal=2,
    )
    print(f"Generated: {output}")


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/sweep.gif")
    generate_test_gif(out)
