# inventory/tests/test_lots.py

import uuid
from decimal import Decimal

from django.test import TestCase

from inventory.models import InventoryTransaction, Item, Lot
from inventory.services.exceptions import InventoryServiceError, ItemNotFound, LotNotFound
from inventory.services.ledger import post_transaction
from inventory.services.lots import (
    create_item,
    delete_lot,
    get_item,
    list_lots,
    update_item,
)


class LotStoreTests(TestCase):
    def setUp(self):
        self.item = Item.objects.create(sku="CHM-1", display_name="NaCl", item_type=Item.ItemType.CHEMICAL)
        post_transaction(
            txn_type=InventoryTransaction.TxnType.RECEIPT,
            lines=[
                {"item": str(self.item.pk), "lot": "L1", "qty": 10},
                {"item": str(self.item.pk), "lot": "L2", "qty": 5},
            ],
        )
        post_transaction(
            txn_type=InventoryTransaction.TxnType.ISSUE,
            lines=[{"item": str(self.item.pk), "lot": "L2", "qty": -5}],
        )

    def test_get_item_rejects_unknown_and_malformed_ids(self):
        self.assertEqual(get_item(str(self.item.pk)).pk, self.item.pk)
        with self.assertRaises(ItemNotFound):
            get_item(uuid.uuid4())
        with self.assertRaises(ItemNotFound):
            get_item("CHM-1")

    def test_list_lots_hides_empty_lots_unless_asked(self):
        self.assertEqual([lot.lot_number for lot in list_lots(self.item.pk)], ["L1"])
        self.assertEqual(
            sorted(lot.lot_number for lot in list_lots(self.item.pk, include_empty=True)),
            ["L1", "L2"],
        )

    def test_delete_lot_recomputes_on_hand(self):
        removed = delete_lot(self.item.pk, "L1")

        self.assertEqual(removed.lot_number, "L1")
        self.assertEqual(removed.quantity, Decimal("10"))
        self.assertFalse(Lot.objects.filter(item=self.item, lot_number="L1").exists())

        self.item.refresh_from_db()
        self.assertEqual(self.item.qty_on_hand, Decimal("0"))

    def test_delete_unknown_lot_raises(self):
        with self.assertRaises(LotNotFound):
            delete_lot(self.item.pk, "NOPE")


class CatalogTests(TestCase):
    def setUp(self):
        self.water = create_item(sku="CHM-H2O", display_name="Water", item_type=Item.ItemType.CHEMICAL)
        self.salt = create_item(sku="CHM-NACL", display_name="Salt", item_type=Item.ItemType.CHEMICAL)

    def test_solution_with_bill_of_materials(self):
        saline = create_item(
            sku="SOL-SALINE",
            display_name="Saline 0.9%",
            item_type=Item.ItemType.SOLUTION,
            uom="L",
            bom=[
                {"item": str(self.water.pk), "qty": "1000", "uom": "mL"},
                {"item": str(self.salt.pk), "qty": "9", "uom": "g"},
            ],
        )

        self.assertTrue(saline.has_bom)
        self.assertEqual(saline.components.count(), 2)
        self.assertEqual(saline.qty_on_hand, Decimal("0"))

    def test_chemicals_cannot_carry_bom(self):
        with self.assertRaises(InventoryServiceError):
            create_item(
                sku="CHM-MIX",
                display_name="Mix",
                item_type=Item.ItemType.CHEMICAL,
                bom=[{"item": str(self.water.pk), "qty": 1}],
            )

    def test_duplicate_sku_is_rejected(self):
        with self.assertRaises(InventoryServiceError):
            create_item(sku="CHM-H2O", display_name="Again", item_type=Item.ItemType.CHEMICAL)

    def test_update_item_refuses_quantity_fields(self):
        updated = update_item(self.water.pk, display_name="Purified water", cas_number="7732-18-5")
        self.assertEqual(updated.display_name, "Purified water")

        with self.assertRaises(InventoryServiceError):
            update_item(self.water.pk, qty_on_hand=Decimal("50"))
