# batches/tests/test_batches_api.py

import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from batches.models import Batch
from batches.tests.helpers import (
    FAILING_CLIENT,
    make_chemical,
    make_file,
    make_folder_chain,
    make_master_pdf,
    make_png,
    make_solution,
    png_data_url,
)
from inventory.models import InventoryTransaction, Lot

User = get_user_model()

BATCHES_URL = "/api/batches/batches/"
ARCHIVE_URL = "/api/batches/archive/"


class BatchApiTests(TestCase):
    """
    Batch workflow over HTTP.

    GUARANTEES:
    - Step failures never fail the request (flags + step_errors instead)
    - Lifecycle violations are 400, unknown batches 404, audit-blocked deletes 409
    - Completion lands the batch in the archive
    """

    def setUp(self):
        self.user = User.objects.create_user(username="operator", email="op@example.com", password="pass")
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)

        self.chem = make_chemical("CHM-1", lot="L1", qty=10)
        self.solution = make_solution("SOL-BUF")
        self.folder = make_folder_chain("QC", "2024")
        self.file = make_file(
            solution=self.solution,
            components=[(self.chem, "3", "g")],
            folder=self.folder,
            master=make_master_pdf(),
        )

    def _create(self, **payload):
        return self.client.post(BATCHES_URL, {"file_id": str(self.file.pk), **payload}, format="json")

    def _patch(self, batch_id, **payload):
        return self.client.patch(f"{BATCHES_URL}{batch_id}/", payload, format="json")

    def test_authentication_required(self):
        self.assertEqual(APIClient().get(BATCHES_URL).status_code, 401)

    def test_create_with_submit_review(self):
        res = self._create(
            action="submit_review",
            confirmation={
                "components": [{"item_id": str(self.chem.pk), "lot_number": "L1", "actual_amount": "3"}],
                "solution_lot_number": "SOL-240101",
            },
            overlay=png_data_url(make_png()),
        )

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["run_number"], 1)
        self.assertEqual(res.data["status"], "In Progress")
        self.assertTrue(res.data["chemicals_transacted"])
        self.assertTrue(res.data["solution_created"])
        self.assertTrue(res.data["has_signed_pdf"])
        self.assertEqual(res.data["overlay_count"], 1)
        self.assertEqual(res.data["created_by"], "operator")
        self.assertNotIn("signed_pdf", res.data)

        self.assertEqual(Lot.objects.get(item=self.chem, lot_number="L1").quantity, Decimal("7"))
        self.assertEqual(Lot.objects.get(item=self.solution, lot_number="SOL-240101").quantity, Decimal("5"))

    def test_invalid_action_and_unknown_file(self):
        self.assertEqual(self._create(action="ship_it").status_code, 400)

        res = self.client.post(BATCHES_URL, {"file_id": str(uuid.uuid4())}, format="json")
        self.assertEqual(res.status_code, 404)

        self.assertEqual(self._create(status="Completed").status_code, 400)
        self.assertEqual(Batch.objects.count(), 0)

    def test_lifecycle_through_archive(self):
        batch_id = self._create(action="create_work_order", quantity="2").data["id"]

        res = self._patch(batch_id, status="Completed")
        self.assertEqual(res.status_code, 400)

        self.assertEqual(self._patch(batch_id, status="Review").status_code, 200)
        res = self._patch(batch_id, status="Completed")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.data["is_archived"])
        self.assertEqual(res.data["folder_path"], "QC / 2024")
        self.assertEqual(res.data["work_order_status"], "completed")

        listing = self.client.get(ARCHIVE_URL, {"folder_path": "QC / 2024"})
        self.assertEqual(listing.status_code, 200)
        self.assertEqual(listing.data["count"], 1)
        self.assertEqual(listing.data["results"][0]["display_name"], "Buffer prep-Run-1.pdf")

        folders = self.client.get(f"{ARCHIVE_URL}folders/")
        self.assertEqual(folders.data["results"][0]["folder_path"], "QC / 2024")
        self.assertEqual(folders.data["results"][0]["file_count"], 1)

        detail = self.client.get(f"{ARCHIVE_URL}{batch_id}/")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.data["document_source"], "master")
        self.assertTrue(detail.data["document"].startswith("data:application/pdf;base64,"))

        doc = self.client.get(f"{ARCHIVE_URL}{batch_id}/document/")
        self.assertEqual(doc.status_code, 200)
        self.assertEqual(doc["Content-Type"], "application/pdf")
        self.assertTrue(doc.content.startswith(b"%PDF"))

        again = self.client.post(f"{BATCHES_URL}{batch_id}/archive/")
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.data["archived_at"], res.data["archived_at"])

    def test_rejection_via_patch(self):
        batch_id = self._create(status="Review").data["id"]

        res = self._patch(batch_id, status="In Progress", rejection_reason="Smudged signature")

        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.data["was_rejected"])
        self.assertEqual(res.data["rejected_by"], "operator")

    def test_consumed_components_cannot_be_rewritten(self):
        batch_id = self._create(
            action="submit_review",
            confirmation={"components": [{"item_id": str(self.chem.pk), "lot_number": "L1", "actual_amount": "3"}]},
        ).data["id"]

        res = self._patch(
            batch_id,
            confirmed_components=[{"item_id": str(self.chem.pk), "lot_number": "OTHER", "actual_amount": "99"}],
        )

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["confirmed_components"][0]["lot_number"], "L1")
        self.assertEqual(Lot.objects.get(item=self.chem, lot_number="L1").quantity, Decimal("7"))
        self.assertFalse(Lot.objects.filter(item=self.chem, lot_number="OTHER").exists())

    def test_patch_rejects_unknown_fields(self):
        batch_id = self._create().data["id"]
        res = self._patch(batch_id, is_archived=True)
        self.assertEqual(res.status_code, 400)

    def test_archive_endpoints_for_open_batch(self):
        batch_id = self._create().data["id"]

        self.assertEqual(self.client.post(f"{BATCHES_URL}{batch_id}/archive/").status_code, 400)
        self.assertEqual(self.client.get(f"{ARCHIVE_URL}{batch_id}/").status_code, 404)

    def test_delete_is_refused_once_ledger_references_batch(self):
        plain_id = self._create().data["id"]
        self.assertEqual(self.client.delete(f"{BATCHES_URL}{plain_id}/").status_code, 204)

        used_id = self._create(
            action="submit_review",
            confirmation={"components": [{"item_id": str(self.chem.pk), "lot_number": "L1", "actual_amount": "1"}]},
        ).data["id"]

        res = self.client.delete(f"{BATCHES_URL}{used_id}/")
        self.assertEqual(res.status_code, 409)
        self.assertTrue(InventoryTransaction.objects.filter(batch_id=used_id).exists())

    def test_work_order_failure_then_retry_endpoint(self):
        with override_settings(WORK_ORDERS={"CLIENT": FAILING_CLIENT}):
            res = self._create(action="create_work_order")

        self.assertEqual(res.status_code, 201)
        self.assertFalse(res.data["work_order_created"])
        self.assertIn("work_order", res.data["step_errors"])

        batch_id = res.data["id"]
        status_res = self.client.get(f"{BATCHES_URL}{batch_id}/work-order/")
        self.assertEqual(status_res.data["status"], "failed")

        retried = self.client.post(f"{BATCHES_URL}{batch_id}/retry/work_order/")
        self.assertEqual(retried.status_code, 200)
        self.assertTrue(retried.data["work_order_created"])
        self.assertEqual(retried.data["step_errors"], {})

        self.assertEqual(self.client.post(f"{BATCHES_URL}{batch_id}/retry/bake/").status_code, 400)

    def test_unknown_batch_is_404(self):
        self.assertEqual(self.client.get(f"{BATCHES_URL}{uuid.uuid4()}/").status_code, 404)
        self.assertEqual(self.client.get(f"{BATCHES_URL}not-a-uuid/").status_code, 404)
        self.assertEqual(self._patch(uuid.uuid4(), status="Review").status_code, 404)
        self.assertEqual(self.client.delete(f"{BATCHES_URL}{uuid.uuid4()}/").status_code, 404)

    def test_list_filters(self):
        self._create(status="Draft")
        self._create(status="Review")

        res = self.client.get(BATCHES_URL, {"status": "Draft"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["count"], 1)

        res = self.client.get(BATCHES_URL, {"file": str(self.file.pk)})
        self.assertEqual(res.data["count"], 2)
