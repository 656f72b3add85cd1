"""Tests for image optimization and social preview cropping"""

import pytest
from PIL import Image

from blogpipe.images import fit_preview, jpeg_quality, optimize_images, resize_previews


def save_image(path, size, fmt="PNG", color=(200, 40, 40)):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, fmt)
    return path


@pytest.fixture
def images_dir(project):
    return project / "src" / "images"


def test_optimize_skips_previews_and_mirrors_layout(project, make_settings, images_dir):
    """Regular images are written to both asset roots; previews are left alone."""
    save_image(images_dir / "photo.png", (64, 64))
    save_image(images_dir / "posts" / "diagram.jpg", (64, 48), "JPEG")
    save_image(images_dir / "posts" / "preview.png", (64, 64))
    optimize_images(make_settings())
    for root in (project / "_site" / "assets" / "images", project / "assets" / "images"):
        assert (root / "photo.png").exists()
        assert (root / "posts" / "diagram.jpg").exists()
        assert not (root / "posts" / "preview.png").exists()


def test_optimized_image_is_never_larger(make_settings, images_dir, project):
    source = save_image(images_dir / "photo.png", (120, 80))
    optimize_images(make_settings())
    out = project / "assets" / "images" / "photo.png"
    assert out.stat().st_size <= source.stat().st_size
    with Image.open(out) as img:
        assert img.size == (120, 80)


def test_svg_is_copied_verbatim(make_settings, images_dir, project):
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="1" height="1"/>'
    images_dir.mkdir(parents=True)
    (images_dir / "logo.svg").write_bytes(svg)
    optimize_images(make_settings())
    assert (project / "assets" / "images" / "logo.svg").read_bytes() == svg


def test_corrupt_image_is_skipped(make_settings, images_dir, project, capsys):
    """An unreadable image is reported without stopping the others."""
    images_dir.mkdir(parents=True)
    (images_dir / "broken.png").write_bytes(b"not an image")
    save_image(images_dir / "ok.png", (10, 10))
    optimize_images(make_settings())
    assert (project / "assets" / "images" / "ok.png").exists()
    assert not (project / "assets" / "images" / "broken.png").exists()
    assert "broken.png" in capsys.readouterr().err


def test_optimization_is_idempotent(make_settings, images_dir, project):
    save_image(images_dir / "photo.jpg", (80, 60), "JPEG")
    settings = make_settings()
    optimize_images(settings)
    out = project / "assets" / "images" / "photo.jpg"
    first = out.read_bytes()
    optimize_images(settings)
    assert out.read_bytes() == first


@pytest.mark.parametrize(
    "source_size, expected",
    [
        ((2000, 1000), (1200, 630)),
        ((1200, 630), (1200, 630)),
        ((300, 200), (300, 200)),
        ((1500, 500), (1200, 500)),
    ],
)
def test_preview_is_cropped_without_upscaling(make_settings, images_dir, project, source_size, expected):
    save_image(images_dir / "posts" / "preview.png", source_size)
    resize_previews(make_settings())
    for root in (project / "_site" / "assets" / "images", project / "assets" / "images"):
        with Image.open(root / "posts" / "preview.png") as img:
            assert img.size == expected


def test_preview_size_is_configurable(make_settings, images_dir, project):
    save_image(images_dir / "preview.jpg", (1000, 1000), "JPEG")
    resize_previews(make_settings(preview_width=400, preview_height=200))
    with Image.open(project / "assets" / "images" / "preview.jpg") as img:
        assert img.size == (400, 200)


def test_previews_ignore_regular_images(make_settings, images_dir, project):
    save_image(images_dir / "photo.png", (2000, 1000))
    resize_previews(make_settings())
    assert not (project / "assets" / "images" / "photo.png").exists()


def test_fit_preview_centers_crop():
    img = Image.new("RGB", (100, 10))
    img.putpixel((50, 5), (255, 255, 255))
    cropped = fit_preview(img, 20, 50)
    assert cropped.size == (20, 10)
    assert cropped.getpixel((10, 5)) == (255, 255, 255)


def test_jpeg_quality_has_a_floor():
    assert jpeg_quality(0) == 95
    assert jpeg_quality(7) == 60
