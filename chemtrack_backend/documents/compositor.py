# documents/compositor.py

"""
DOCUMENT COMPOSITOR

Bakes hand-drawn annotation overlays (PNG) onto a master PDF.

Rules:
- Only page 1 is drawn on; pages 2..N are copied untouched
- The overlay is scaled to exactly cover page 1's mediabox
- Output is deterministic for identical inputs (reportlab invariant mode,
  document id carried over from the master)
- bake_history() always restarts from the immutable master and pipes each
  bake into the next; it never patches a previously baked artifact

Overlays are accepted as raw image bytes or `data:image/...;base64,` URLs.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from typing import Iterable

from pypdf import PdfReader, PdfWriter, Transformation
from pypdf.errors import PyPdfError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger("documents.compositor")

DATA_URL_PREFIX = "data:"


class CompositorError(Exception):
    """Raised when a master document or overlay cannot be baked."""


def decode_overlay(overlay) -> bytes:
    """
    Normalize an overlay to raw image bytes.
    """
    if overlay is None:
        raise CompositorError("overlay is required")

    if isinstance(overlay, memoryview):
        overlay = overlay.tobytes()

    if isinstance(overlay, bytes):
        if overlay.startswith(DATA_URL_PREFIX.encode()):
            overlay = overlay.decode("ascii", errors="replace")
        else:
            if not overlay:
                raise CompositorError("overlay is empty")
            return overlay

    if not isinstance(overlay, str):
        raise CompositorError("overlay must be bytes or a data URL")

    text = overlay.strip()
    if not text.startswith(DATA_URL_PREFIX):
        raise CompositorError("overlay string must be a data URL")

    header, sep, payload = text.partition(",")
    if not sep or ";base64" not in header or not header[len(DATA_URL_PREFIX):].startswith("image/"):
        raise CompositorError("overlay data URL must be a base64 image")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CompositorError("overlay data URL is not valid base64") from exc

    if not data:
        raise CompositorError("overlay is empty")
    return data


def to_data_url(data: bytes, content_type: str = "application/pdf") -> str:
    return f"data:{content_type};base64,{base64.b64encode(bytes(data)).decode('ascii')}"


def _render_overlay_page(image_bytes: bytes, width: float, height: float):
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height), invariant=1)
    c.drawImage(
        ImageReader(io.BytesIO(image_bytes)),
        0,
        0,
        width=width,
        height=height,
        mask="auto",
    )
    c.showPage()
    c.save()
    return PdfReader(io.BytesIO(buf.getvalue())).pages[0]


def bake(master_pdf: bytes, overlay) -> bytes:
    """
    Composite one overlay onto page 1 of `master_pdf` and return new PDF bytes.
    """
    if not master_pdf:
        raise CompositorError("master document is empty")

    image_bytes = decode_overlay(overlay)

    try:
        reader = PdfReader(io.BytesIO(bytes(master_pdf)))
        if not reader.pages:
            raise CompositorError("master document has no pages")

        writer = PdfWriter(clone_from=reader)
        first = writer.pages[0]
        box = first.mediabox
        width, height = float(box.width), float(box.height)
    except CompositorError:
        raise
    except (PyPdfError, OSError, ValueError, IndexError, KeyError, TypeError) as exc:
        raise CompositorError(f"Failed to read master document: {exc}") from exc

    try:
        overlay_page = _render_overlay_page(image_bytes, width, height)
    except Exception as exc:
        # Image decoders raise unrelated types (DecompressionBombError, zlib.error, ...)
        raise CompositorError(f"Overlay image could not be rendered: {exc}") from exc

    try:
        first.merge_transformed_page(
            overlay_page,
            Transformation().translate(float(box.left), float(box.bottom)),
        )

        out = io.BytesIO()
        writer.write(out)
    except (PyPdfError, OSError, ValueError, IndexError, KeyError, TypeError) as exc:
        raise CompositorError(f"Failed to bake overlay: {exc}") from exc

    data = out.getvalue()
    logger.debug(
        "Overlay baked",
        extra={"master_bytes": len(master_pdf), "overlay_bytes": len(image_bytes), "output_bytes": len(data)},
    )
    return data


def bake_history(master_pdf: bytes, overlays: Iterable) -> bytes:
    """
    Re-bake the full overlay history from the master, in order.

    An empty history returns the master unchanged.
    """
    result = bytes(master_pdf) if master_pdf else b""
    if not result:
        raise CompositorError("master document is empty")

    for overlay in overlays:
        result = bake(result, overlay)
    return result
