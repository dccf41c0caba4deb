"""Integration tests against a real ImageMagick installation.

Tests the complete workflow:
1. Load image bytes
2. Query attributes
3. Mutate in place and change format
4. Write the result

Skipped when the ImageMagick command line tools are not installed.
"""

import io
import os
import shutil

import pytest
from PIL import Image as PILImage

from minimagick import (
    ExternalToolError,
    Image,
    InvalidImageError,
    TempFileManager,
)
from minimagick.services.command_service import CommandRunner


pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not all(shutil.which(tool) for tool in ("identify", "convert", "mogrify", "composite")),
        reason="ImageMagick command line tools not installed"
    ),
]


def image_bytes(fmt="PNG", size=(100, 80), color="red"):
    """Encode a solid test image with Pillow."""
    buffer = io.BytesIO()
    PILImage.new("RGB", size, color=color).save(buffer, fmt)
    return buffer.getvalue()


def animated_gif_bytes(frames=3):
    """Encode a multi-frame GIF with Pillow."""
    buffer = io.BytesIO()
    colors = ["red", "green", "blue", "white"]
    images = [PILImage.new("RGB", (20, 10), color=colors[i % len(colors)]) for i in range(frames)]
    images[0].save(buffer, "GIF", save_all=True, append_images=images[1:], duration=100, loop=0)
    return buffer.getvalue()


@pytest.fixture
def manager(tmp_path):
    temp_dir = tmp_path / "temp"
    temp_dir.mkdir()
    manager = TempFileManager(temp_dir=str(temp_dir))
    yield manager
    manager.release_all()


@pytest.fixture
def runner():
    return CommandRunner(prefix=[], use_shell=False)


def load(data, ext, runner, manager):
    return Image.from_blob(data, ext, runner=runner, temp_manager=manager)


class TestImageWorkflow:
    """Integration test for the Image handle with ImageMagick."""

    def test_attributes(self, runner, manager):
        data = image_bytes("PNG", size=(100, 80))
        image = load(data, "png", runner, manager)

        assert image["format"] == "PNG"
        assert image["width"] == 100
        assert image["height"] == 80
        assert image["dimensions"] == (100, 80)
        assert image["size"] == len(data)
        assert image["original_at"] is None

    def test_round_trip_without_mutation(self, runner, manager):
        data = image_bytes("JPEG")
        image = load(data, "jpg", runner, manager)

        assert image["format"] == "JPEG"
        assert image.to_bytes() == data

    def test_invalid_bytes(self, runner, manager):
        with pytest.raises(InvalidImageError):
            load(b"definitely not an image", "png", runner, manager)

        assert manager.live_count() == 0

    def test_blank(self, runner, manager):
        image = Image.new_blank("2x2", "white", runner=runner, temp_manager=manager)

        assert image["dimensions"] == (2, 2)

    def test_resize_operation(self, runner, manager):
        image = load(image_bytes("PNG", size=(100, 80)), "png", runner, manager)

        image.operation("resize", "50%")

        assert image["dimensions"] == (50, 40)

    def test_combine_options(self, runner, manager):
        image = load(image_bytes("PNG", size=(100, 80)), "png", runner, manager)

        with image.combine_options() as builder:
            builder.append("resize", "50x50!")
            builder.append("rotate", 90)

        assert image["dimensions"] == (50, 50)

    def test_bad_operation_raises(self, runner, manager):
        image = load(image_bytes("PNG"), "png", runner, manager)

        with pytest.raises(ExternalToolError):
            image.operation("no-such-operation-here")

    def test_convert_format(self, runner, manager):
        image = load(image_bytes("PNG"), "png", runner, manager)
        old_path = image.path

        image.convert_to("gif")

        assert image["format"].lower() == "gif"
        assert image.path.endswith(".gif")
        assert not os.path.exists(old_path)

    def test_convert_animation_keeps_first_page(self, runner, manager):
        image = load(animated_gif_bytes(frames=3), "gif", runner, manager)
        old_path = image.path

        image.convert_to("png")

        assert image["format"] == "PNG"
        assert image["dimensions"] == (20, 10)
        for page in range(3):
            assert not os.path.exists(f"{old_path}-{page}.png")

    def test_composite(self, runner, manager):
        base = load(image_bytes("PNG", size=(40, 40), color="white"), "png", runner, manager)
        overlay = load(image_bytes("PNG", size=(10, 10), color="black"), "png", runner, manager)

        base.composite(overlay, {"gravity": "center"})

        assert base["dimensions"] == (40, 40)

    def test_write_to(self, runner, manager, tmp_path):
        image = load(image_bytes("PNG"), "png", runner, manager)
        destination = tmp_path / "out.png"

        image.write_to(destination)

        assert Image.from_path(destination, runner=runner, temp_manager=manager)["format"] == "PNG"

    def test_independent_images(self, runner, manager):
        data = image_bytes("PNG")
        first = load(data, "png", runner, manager)
        second = load(data, "png", runner, manager)

        first.operation("resize", "10x10!")

        assert first.path != second.path
        assert second["dimensions"] == (100, 80)
