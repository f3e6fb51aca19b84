"""Tests for per-atlas packing and the session driver."""

import pytest
from PIL import Image

from atlaspack.binpack.max_rects import FreeRectChoiceHeuristic
from atlaspack.binpack.rect import Rect, DisjointRectCollection
from atlaspack.errors import CantFitError
from atlaspack.images import ImageRecord
from atlaspack.packer import Packer, Point, pack_session, sort_by_area

BSSF = FreeRectChoiceHeuristic.BEST_SHORT_SIDE_FIT


def make_image(name, width, height, color=(255, 0, 0, 255)):
    """Create a solid-colour image record."""
    return ImageRecord.from_image(Image.new("RGBA", (width, height), color), name)


class TestPoint:
    """Tests for Point dataclass."""

    def test_defaults(self):
        """Test a plain placement."""
        p = Point(3, 4)
        assert p.rotated is False
        assert p.duplicate_of is None
        assert not p.is_duplicate

    def test_duplicate(self):
        """Test a duplicate placement."""
        assert Point(0, 0, duplicate_of=2).is_duplicate


class TestPacker:
    """Tests for Packer class."""

    def test_three_images(self):
        """Test largest-first packing of three images into 100x100."""
        queue = sort_by_area([
            make_image("wide", 60, 40),
            make_image("small", 30, 30),
            make_image("square", 50, 50),
        ])
        packer = Packer(100, 100, 0)
        packer.pack(queue, heuristic=BSSF)

        assert queue == []
        assert [img.name for img in packer.images] == ["square", "wide", "small"]
        assert packer.points == [Point(0, 0), Point(0, 50), Point(60, 0)]

        collection = DisjointRectCollection()
        for img, p in zip(packer.images, packer.points):
            assert collection.add(Rect(p.x, p.y, img.width, img.height))
            assert p.x + img.width <= packer.width
            assert p.y + img.height <= packer.height

        # Tight bounds are 90x90, too big to halve
        assert (packer.width, packer.height) == (100, 100)

    def test_shrinks_to_power_of_two(self):
        """Test the atlas shrinks while half the size still holds everything."""
        packer = Packer(256, 256, 0)
        packer.pack([make_image("a", 10, 10)])
        assert (packer.width, packer.height) == (16, 16)

    def test_shrink_keeps_padding(self):
        """Test padding counts toward the tight bounds."""
        packer = Packer(256, 256, 1)
        packer.pack([make_image("a", 16, 8)])
        assert (packer.width, packer.height) == (32, 16)

    def test_leftover_returned(self):
        """Test an image that does not fit stays on the queue."""
        big = make_image("big", 60, 60)
        other = make_image("other", 50, 50)
        queue = [other, big]

        packer = Packer(64, 64, 0)
        packer.pack(queue)

        assert [img.name for img in packer.images] == ["big"]
        assert queue == [other]

    def test_nothing_fits(self):
        """Test an oversized image leaves the packer empty."""
        image = make_image("huge", 64, 64)
        queue = [image]

        packer = Packer(64, 64, 1)
        packer.pack(queue)

        assert packer.images == []
        assert queue == [image]
        assert (packer.width, packer.height) == (64, 64)

    def test_rotated_flag(self):
        """Test rotation is reported when the placement was turned."""
        packer = Packer(100, 50, 0)
        packer.pack([make_image("tall", 40, 80)], rotate=True)
        assert packer.points[0].rotated is True

    def test_square_never_rotated(self):
        """Test a square image is not reported as rotated."""
        packer = Packer(100, 100, 0)
        packer.pack([make_image("sq", 20, 20)], rotate=True)
        assert packer.points[0].rotated is False

    def test_duplicates_aliased(self):
        """Test identical images share one placement."""
        packer = Packer(50, 50, 0)
        packer.pack([make_image("first", 20, 20), make_image("second", 20, 20)], unique=True)

        assert len(packer.points) == 2
        original, duplicate = packer.points
        assert original.duplicate_of is None
        assert duplicate.duplicate_of == 0
        assert (duplicate.x, duplicate.y, duplicate.rotated) == (original.x, original.y, original.rotated)
        assert packer.occupancy == pytest.approx(400 / 2500)

    def test_duplicates_packed_without_unique(self):
        """Test identical images are packed twice when dedup is off."""
        packer = Packer(50, 50, 0)
        packer.pack([make_image("first", 20, 20), make_image("second", 20, 20)], unique=False)

        assert all(p.duplicate_of is None for p in packer.points)
        assert (packer.points[0].x, packer.points[0].y) != (packer.points[1].x, packer.points[1].y)

    def test_fingerprint_collision(self):
        """Test a fingerprint match with different pixels is not a duplicate."""
        a = ImageRecord("a", 2, 2, data=bytes(16), fingerprint=123)
        b = ImageRecord("b", 2, 2, data=bytes([255] * 16), fingerprint=123)

        packer = Packer(16, 16, 0)
        packer.pack([a, b], unique=True)

        assert all(p.duplicate_of is None for p in packer.points)

    def test_render(self):
        """Test pixels are copied to their placements."""
        packer = Packer(64, 64, 0)
        packer.pack([
            make_image("red", 10, 10, (255, 0, 0, 255)),
            make_image("blue", 20, 20, (0, 0, 255, 255)),
        ])
        atlas = packer.render()

        assert atlas.size == (packer.width, packer.height)
        for img, p in zip(packer.images, packer.points):
            expected = (255, 0, 0, 255) if img.name == "red" else (0, 0, 255, 255)
            assert atlas.getpixel((p.x, p.y)) == expected

    def test_render_rotated(self):
        """Test rotated images are turned clockwise when copied."""
        src = Image.new("RGBA", (2, 1))
        src.putpixel((0, 0), (255, 0, 0, 255))
        src.putpixel((1, 0), (0, 0, 255, 255))

        packer = Packer(1, 2, 0)
        packer.pack([ImageRecord.from_image(src, "strip")], rotate=True)
        assert packer.points[0].rotated

        atlas = packer.render()
        assert atlas.size == (1, 2)
        assert atlas.getpixel((0, 0)) == (255, 0, 0, 255)
        assert atlas.getpixel((0, 1)) == (0, 0, 255, 255)

    def test_save(self, tmp_path):
        """Test saving the atlas image."""
        packer = Packer(64, 64, 0)
        packer.pack([make_image("a", 10, 10)])

        path = packer.save(tmp_path / "atlas0.png")
        with Image.open(path) as img:
            assert img.size == (16, 16)


class TestPackSession:
    """Tests for the multi-atlas driver."""

    def test_sort_by_area_is_stable(self):
        """Test equal areas keep input order."""
        images = [make_image("b", 10, 20), make_image("a", 20, 10), make_image("c", 5, 5)]
        assert [img.name for img in sort_by_area(images)] == ["c", "b", "a"]

    def test_single_atlas(self):
        """Test everything fits into one atlas."""
        images = [make_image(f"img{i}", 16, 16) for i in range(4)]
        packers = pack_session(images, 64)

        assert len(packers) == 1
        assert len(packers[0]) == 4
        assert len(images) == 4  # Input list untouched

    def test_multiple_atlases(self):
        """Test overflow goes into further atlases."""
        images = [make_image(f"img{i}", 40, 40) for i in range(4)]
        packers = pack_session(images, 64)

        assert len(packers) == 4
        assert all(len(p) == 1 for p in packers)
        assert all((p.width, p.height) == (64, 64) for p in packers)

    def test_unfittable_image(self):
        """Test an image larger than the atlas is fatal."""
        images = [make_image("small", 8, 8), make_image("huge", 64, 64)]
        with pytest.raises(CantFitError) as exc_info:
            pack_session(images, 64, pad=1)
        assert exc_info.value.image_name == "huge"

    def test_dedup_session(self):
        """Test duplicates in a session reference their original."""
        images = [make_image("a", 20, 20), make_image("b", 20, 20)]
        packers = pack_session(images, 64, unique=True)

        assert len(packers) == 1
        assert packers[0].points[1].duplicate_of == 0

    @pytest.mark.parametrize("heuristic", list(FreeRectChoiceHeuristic))
    def test_no_overlap(self, heuristic):
        """Test padded placements never overlap in any atlas."""
        sizes = [(37, 12), (8, 30), (25, 25), (60, 10), (14, 44), (9, 9), (30, 18), (50, 50)] * 3
        images = [make_image(f"img{i}", w, h, (i, i, i, 255)) for i, (w, h) in enumerate(sizes)]
        pad = 2

        packers = pack_session(images, 128, pad=pad, rotate=True, heuristic=heuristic)

        assert sum(len(p) for p in packers) == len(images)
        for packer in packers:
            collection = DisjointRectCollection()
            for img, p in zip(packer.images, packer.points):
                w, h = (img.height, img.width) if p.rotated else (img.width, img.height)
                assert collection.add(Rect(p.x, p.y, w + pad, h + pad))
                assert p.x + w + pad <= packer.width
                assert p.y + h + pad <= packer.height
