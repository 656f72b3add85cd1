from __future__ import annotations

import sys
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageOps

from .cache import list_files, write_if_changed
from .config import Settings
from .utils import rel_posix

IMAGE_PATTERNS = ["**/*.{jpg,jpeg,png,gif,ico,svg}"]
PREVIEW_PATTERNS = ["**/preview.{jpg,jpeg,png,gif,ico}"]
COPY_ONLY = {".ico", ".svg"}


def is_preview(path: Path) -> bool:
    return path.stem.lower() == "preview"


def jpeg_quality(level: int) -> int:
    return max(60, 95 - 5 * level)


def encode(img: Image.Image, fmt: str, level: int) -> bytes:
    buf = BytesIO()
    if fmt == "JPEG":
        if img.mode not in ("RGB", "L", "CMYK"):
            img = img.convert("RGB")
        img.save(buf, "JPEG", quality=jpeg_quality(level), optimize=level > 0, progressive=True)
    elif fmt == "PNG":
        img.save(buf, "PNG", optimize=level > 0)
    elif fmt == "GIF":
        img.save(buf, "GIF", optimize=level > 0, interlace=True)
    else:
        img.save(buf, fmt)
    return buf.getvalue()


def optimize_image(path: Path, level: int) -> bytes:
    """Re-encode a raster image, keeping whichever of old and new bytes is smaller."""
    original = path.read_bytes()
    if path.suffix.lower() in COPY_ONLY or level <= 0:
        return original
    with Image.open(BytesIO(original)) as img:
        img.load()
        if getattr(img, "is_animated", False):
            return original
        optimized = encode(img, img.format or "PNG", level)
    return optimized if len(optimized) < len(original) else original


def fit_preview(img: Image.Image, width: int, height: int) -> Image.Image:
    """Center-crop to ``width x height``; sources smaller than the target are never scaled up."""
    w, h = img.size
    if w >= width and h >= height:
        return ImageOps.fit(img, (width, height), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
    crop_w, crop_h = min(w, width), min(h, height)
    left = (w - crop_w) // 2
    top = (h - crop_h) // 2
    return img.crop((left, top, left + crop_w, top + crop_h))


def resize_preview(path: Path, size: tuple[int, int], level: int) -> bytes:
    with Image.open(path) as img:
        img.load()
        fmt = img.format or "PNG"
        fitted = fit_preview(img, *size)
        return encode(fitted, fmt, level)


def write_outputs(settings: Settings, rel: Path, data: bytes) -> list[Path]:
    written = []
    for root in settings.asset_roots:
        target = root / "images" / rel
        write_if_changed(target, data)
        written.append(target)
    return written


def optimize_images(settings: Settings) -> list[Path]:
    written = []
    for path in list_files(settings.images, IMAGE_PATTERNS):
        if is_preview(path):
            continue
        try:
            data = optimize_image(path, settings.optimization_level)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            print(f"[images] Skipping {rel_posix(path, settings.root)}: {exc}", file=sys.stderr)
            continue
        written.extend(write_outputs(settings, path.relative_to(settings.images), data))
    print(f"[images] Wrote {len(written)} file(s)")
    return written


def resize_previews(settings: Settings) -> list[Path]:
    written = []
    for path in list_files(settings.images, PREVIEW_PATTERNS):
        try:
            data = resize_preview(path, settings.preview_size, settings.optimization_level)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            print(f"[preview-images] Skipping {rel_posix(path, settings.root)}: {exc}", file=sys.stderr)
            continue
        written.extend(write_outputs(settings, path.relative_to(settings.images), data))
    print(f"[preview-images] Wrote {len(written)} file(s)")
    return written
