import io
import unittest

from PIL import Image

from trendcycle.rasterizer import VibeCardRasterizer, display_title

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class RasterizerTests(unittest.TestCase):
    def test_renders_png_of_requested_size(self):
        data = VibeCardRasterizer().render("新作ゲーム発表 launch", "新作ゲーム発表-launch", width=240, height=126)

        self.assertTrue(data.startswith(PNG_SIGNATURE))
        with Image.open(io.BytesIO(data)) as image:
            self.assertEqual(image.size, (240, 126))
            self.assertEqual(image.mode, "RGB")

    def test_output_is_deterministic(self):
        rasterizer = VibeCardRasterizer()
        first = rasterizer.render("Same", "same", width=120, height=63)
        second = rasterizer.render("Same", "same", width=120, height=63)
        self.assertEqual(first, second)

    def test_background_runs_from_pink_to_purple(self):
        data = VibeCardRasterizer().render("", "x", width=200, height=100)
        with Image.open(io.BytesIO(data)) as image:
            top_left = image.getpixel((0, 0))
            bottom_right = image.getpixel((199, 99))
        self.assertGreater(top_left[0], bottom_right[0])
        self.assertLess(top_left[1], bottom_right[1])

    def test_display_title_truncates(self):
        self.assertEqual(display_title("short"), "short")
        self.assertEqual(display_title("x" * 30), "x" * 25 + "...")


if __name__ == "__main__":
    unittest.main()
