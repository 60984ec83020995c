# documents/tests/test_compositor.py

import base64
import io
from unittest.mock import patch

from django.test import SimpleTestCase
from PIL import Image
from pypdf import PdfReader
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from batches.tests.helpers import make_oversized_png
from documents.compositor import (
    CompositorError,
    bake,
    bake_history,
    decode_overlay,
    to_data_url,
)


def _master(pages=3):
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter, invariant=1)
    for n in range(1, pages + 1):
        c.drawString(72, 720, f"Page {n}")
        c.showPage()
    c.save()
    return buf.getvalue()


def _png(color):
    buf = io.BytesIO()
    Image.new("RGBA", (30, 40), color).save(buf, format="PNG")
    return buf.getvalue()


class CompositorTests(SimpleTestCase):
    """
    GUARANTEES:
    - Same inputs give byte-identical output
    - Only page 1 changes
    - History is always re-baked from the master
    """

    def setUp(self):
        self.master = _master()
        self.red = _png((255, 0, 0, 128))
        self.blue = _png((0, 0, 255, 128))

    def test_bake_is_deterministic(self):
        self.assertEqual(bake(self.master, self.red), bake(self.master, self.red))

    def test_only_first_page_gains_the_overlay(self):
        before = PdfReader(io.BytesIO(self.master))
        after = PdfReader(io.BytesIO(bake(self.master, self.red)))

        self.assertEqual(len(after.pages), 3)
        self.assertEqual(len(before.pages[0].images), 0)
        self.assertGreaterEqual(len(after.pages[0].images), 1)

        for n in (1, 2):
            self.assertEqual(len(after.pages[n].images), 0)
            self.assertEqual(
                after.pages[n].get_contents().get_data(),
                before.pages[n].get_contents().get_data(),
            )

    def test_page_size_is_preserved(self):
        after = PdfReader(io.BytesIO(bake(self.master, self.red)))
        box = after.pages[0].mediabox
        self.assertEqual((float(box.width), float(box.height)), letter)

    def test_data_url_and_raw_bytes_bake_the_same(self):
        url = "data:image/png;base64," + base64.b64encode(self.red).decode("ascii")
        self.assertEqual(bake(self.master, url), bake(self.master, self.red))

    def test_history_rebakes_from_master_in_order(self):
        expected = bake(bake(self.master, self.red), self.blue)
        self.assertEqual(bake_history(self.master, [self.red, self.blue]), expected)

    def test_empty_history_returns_master(self):
        self.assertEqual(bake_history(self.master, []), self.master)

    def test_garbage_master_is_rejected(self):
        with self.assertRaises(CompositorError):
            bake(b"definitely not a pdf", self.red)
        with self.assertRaises(CompositorError):
            bake(b"", self.red)
        with self.assertRaises(CompositorError):
            bake_history(b"", [self.red])

    def test_bad_overlays_are_rejected(self):
        for bad in (
            None,
            b"",
            "not a data url",
            "data:text/plain;base64,aGVsbG8=",
            "data:image/png,rawtext",
            "data:image/png;base64,@@@@",
            12345,
        ):
            with self.subTest(overlay=bad):
                with self.assertRaises(CompositorError):
                    decode_overlay(bad)

    def test_to_data_url_round_trips_through_decode(self):
        url = to_data_url(self.red, "image/png")
        self.assertTrue(url.startswith("data:image/png;base64,"))
        self.assertEqual(decode_overlay(url), self.red)

    def test_oversized_overlay_is_a_compositor_error(self):
        with self.assertRaises(CompositorError):
            bake(self.master, make_oversized_png())

    def test_unexpected_image_errors_are_wrapped(self):
        with patch("documents.compositor.ImageReader", side_effect=RuntimeError("decoder crashed")):
            with self.assertRaises(CompositorError) as ctx:
                bake(self.master, self.red)

        self.assertIn("decoder crashed", str(ctx.exception))
