# batches/tests/helpers.py

import base64
import io
import struct
import zlib
from decimal import Decimal

from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from batches.services.exceptions import WorkOrderError
from batches.services.work_orders import WorkOrderClient
from files.models import File, FileComponent, Folder
from inventory.models import InventoryTransaction, Item
from inventory.services.ledger import post_transaction


def make_master_pdf(pages: int = 2) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter, invariant=1)
    for n in range(1, pages + 1):
        c.drawString(72, 720, f"Batch record page {n}")
        c.showPage()
    c.save()
    return buf.getvalue()


def make_png(color=(255, 0, 0, 160), size=(40, 52)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def make_oversized_png(width: int = 20000, height: int = 20000) -> bytes:
    """
    A tiny PNG whose header declares a huge canvas (decompression bomb shape).
    """

    def chunk(tag: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(tag + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + tag + data + struct.pack(">I", crc)

    header = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", zlib.compress(b"\x00"))
        + chunk(b"IEND", b"")
    )


def png_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def make_chemical(sku="CHM-1", *, lot=None, qty=None) -> Item:
    item = Item.objects.create(
        sku=sku,
        display_name=f"Chemical {sku}",
        item_type=Item.ItemType.CHEMICAL,
        uom="g",
    )
    if lot is not None:
        post_transaction(
            txn_type=InventoryTransaction.TxnType.RECEIPT,
            lines=[{"item": str(item.pk), "lot": lot, "qty": qty}],
        )
        item.refresh_from_db()
    return item


def make_solution(sku="SOL-1") -> Item:
    return Item.objects.create(
        sku=sku,
        display_name=f"Solution {sku}",
        item_type=Item.ItemType.SOLUTION,
        uom="L",
    )


def make_file(
    *,
    name="Buffer prep",
    solution=None,
    components=(),
    recipe_qty=Decimal("5"),
    recipe_unit="L",
    folder=None,
    master=None,
) -> File:
    f = File.objects.create(
        file_name=name,
        folder=folder,
        solution_ref=solution,
        recipe_qty=recipe_qty,
        recipe_unit=recipe_unit,
        pdf=master,
    )
    for item, amount, unit in components:
        FileComponent.objects.create(file=f, item=item, amount=Decimal(str(amount)), unit=unit)
    return f


def make_folder_chain(*names) -> Folder:
    parent = None
    for name in names:
        parent = Folder.objects.create(name=name, parent=parent)
    return parent


class FailingWorkOrderClient(WorkOrderClient):
    def create_work_order(self, batch, quantity):
        raise WorkOrderError("ERP unavailable")

    def complete_work_order(self, external_id):
        raise WorkOrderError("ERP unavailable")


FAILING_CLIENT = "batches.tests.helpers.FailingWorkOrderClient"
