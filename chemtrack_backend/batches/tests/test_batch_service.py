# batches/tests/test_batch_service.py

import uuid
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.test import TestCase, override_settings

from batches.models import Batch
from batches.services.actions import (
    Confirmation,
    ConfirmedComponent,
    CreateWorkOrder,
    SubmitReview,
)
from batches.services.batch_service import (
    create_batch,
    delete_batch,
    get_batch,
    get_work_order_status,
    list_batches,
    retry_step,
    update_batch,
)
from batches.services.exceptions import (
    BatchDeletionError,
    BatchNotFound,
    InvalidBatchTransitionError,
    InvalidBatchUpdateError,
    UnknownStepError,
)
from batches.services.steps import consumption_lines
from batches.tests.helpers import (
    FAILING_CLIENT,
    make_chemical,
    make_file,
    make_master_pdf,
    make_oversized_png,
    make_png,
    make_solution,
    png_data_url,
)
from documents.compositor import bake, bake_history
from files.models import FileComponent
from files.services.exceptions import FileNotFound
from inventory.models import InventoryTransaction, Lot
from inventory.services.ledger import post_transaction

User = get_user_model()

S = Batch.Status


def _review_action(item, lot="L1", amount=3, solution_lot="SOL-240101"):
    return SubmitReview(
        confirmation=Confirmation(
            components=(
                ConfirmedComponent(
                    item_id=str(item.pk),
                    lot_number=lot,
                    actual_amount=Decimal(str(amount)),
                    unit="g",
                ),
            ),
            solution_lot_number=solution_lot,
        )
    )


class BatchCreationTests(TestCase):
    """
    GUARANTEES:
    - Run numbers are sequential per File
    - The recipe snapshot never follows later template edits
    - submit_review consumes components and builds the solution lot
    """

    def setUp(self):
        self.user = User.objects.create_user(username="operator", email="op@example.com", password="pass")
        self.chem = make_chemical("CHM-1", lot="L1", qty=10)
        self.solution = make_solution("SOL-BUF")
        self.file = make_file(
            solution=self.solution,
            components=[(self.chem, "3", "g")],
            recipe_qty=Decimal("5"),
            recipe_unit="L",
        )

    def test_submit_review_consumes_and_builds(self):
        batch = create_batch(file_id=self.file.pk, action=_review_action(self.chem), user=self.user)

        self.assertTrue(batch.chemicals_transacted)
        self.assertTrue(batch.solution_created)
        self.assertEqual(batch.step_errors, {})
        self.assertIsNotNone(batch.transaction_date)
        self.assertIsNotNone(batch.solution_created_date)

        issue = InventoryTransaction.objects.get(batch=batch, txn_type=InventoryTransaction.TxnType.ISSUE)
        issue_line = issue.lines.get()
        self.assertEqual(issue_line.quantity, Decimal("-3"))
        self.assertEqual(issue_line.lot_number, "L1")
        self.assertEqual(issue.department, "Production")
        self.assertEqual(issue.ref_doc_type, "batch")

        build = InventoryTransaction.objects.get(batch=batch, txn_type=InventoryTransaction.TxnType.BUILD)
        build_line = build.lines.get()
        self.assertEqual(build_line.item_id, self.solution.pk)
        self.assertEqual(build_line.lot_number, "SOL-240101")
        self.assertEqual(build_line.quantity, Decimal("5"))

        self.assertEqual(Lot.objects.get(item=self.chem, lot_number="L1").quantity, Decimal("7"))
        self.assertEqual(Lot.objects.get(item=self.solution, lot_number="SOL-240101").quantity, Decimal("5"))
        self.assertEqual(batch.solution_unit, "L")

    def test_run_numbers_are_sequential_per_file(self):
        other = make_file(name="Other recipe")

        first = create_batch(file_id=self.file.pk)
        second = create_batch(file_id=self.file.pk)
        elsewhere = create_batch(file_id=other.pk)

        self.assertEqual((first.run_number, second.run_number), (1, 2))
        self.assertEqual(elsewhere.run_number, 1)
        self.assertEqual(second.display_name, "Buffer prep-Run-2.pdf")

    def test_new_batch_defaults(self):
        batch = create_batch(file_id=self.file.pk, user=self.user)

        self.assertEqual(batch.status, S.IN_PROGRESS)
        self.assertEqual(batch.created_by, self.user)
        self.assertFalse(batch.work_order_created)
        self.assertFalse(batch.is_archived)

    def test_snapshot_is_not_affected_by_template_edits(self):
        batch = create_batch(file_id=self.file.pk)

        self.file.recipe_qty = Decimal("50")
        self.file.save()
        FileComponent.objects.filter(file=self.file).delete()

        batch = get_batch(batch.pk)
        self.assertEqual(batch.snapshot["recipe_qty"], "5.0000")
        self.assertEqual(batch.snapshot["solution_ref"], str(self.solution.pk))
        self.assertEqual(len(batch.snapshot["components"]), 1)
        self.assertEqual(batch.snapshot["components"][0]["item_id"], str(self.chem.pk))

    def test_snapshot_cannot_be_rewritten_after_creation(self):
        batch = create_batch(file_id=self.file.pk)

        batch.snapshot = {**batch.snapshot, "recipe_qty": "50"}
        with self.assertRaises(ValidationError):
            batch.save()

        batch = get_batch(batch.pk)
        self.assertEqual(batch.snapshot["recipe_qty"], "5.0000")

        batch.solution_unit = "mL"
        batch.save()
        self.assertEqual(get_batch(batch.pk).solution_unit, "mL")

    def test_create_rejects_completed_and_unknown_file(self):
        with self.assertRaises(InvalidBatchTransitionError):
            create_batch(file_id=self.file.pk, status=S.COMPLETED)
        with self.assertRaises(FileNotFound):
            create_batch(file_id=uuid.uuid4())
        with self.assertRaises(FileNotFound):
            create_batch(file_id="nope")

        self.assertEqual(Batch.objects.count(), 0)

    def test_created_in_review_is_stamped(self):
        batch = create_batch(file_id=self.file.pk, status=S.REVIEW)
        self.assertIsNotNone(batch.submitted_for_review_at)

    def test_consumption_drops_incomplete_components(self):
        batch = create_batch(file_id=self.file.pk)
        batch.confirmed_components = [
            {"item_id": str(self.chem.pk), "lot_number": "L1", "planned_amount": "2", "actual_amount": None},
            {"item_id": str(self.chem.pk), "lot_number": "", "actual_amount": "1"},
            {"item_id": "", "lot_number": "L1", "actual_amount": "1"},
            {"item_id": str(self.chem.pk), "lot_number": "L1"},
        ]

        lines = consumption_lines(batch)
        self.assertEqual(lines, [{"item": str(self.chem.pk), "lot": "L1", "qty": Decimal("-2")}])

    def test_solution_step_fails_without_solution_item(self):
        plain = make_file(name="No solution", components=[(self.chem, "1", "g")])

        batch = create_batch(file_id=plain.pk, action=_review_action(self.chem, amount=1))

        self.assertTrue(batch.chemicals_transacted)
        self.assertFalse(batch.solution_created)
        self.assertIn("solution", batch.step_errors)
        self.assertFalse(
            InventoryTransaction.objects.filter(batch=batch, txn_type=InventoryTransaction.TxnType.BUILD).exists()
        )


class BatchArtifactTests(TestCase):
    """
    GUARANTEES:
    - signed artifact == bake_history(master, overlays)
    - a failed bake leaves the previous artifact in place
    """

    def setUp(self):
        self.master = make_master_pdf()
        self.file = make_file(master=self.master)
        self.red = make_png((255, 0, 0, 160))
        self.blue = make_png((0, 0, 255, 160))

    def test_create_with_overlay_bakes_master(self):
        batch = create_batch(file_id=self.file.pk, overlay=png_data_url(self.red))

        self.assertTrue(batch.has_signed_pdf)
        self.assertEqual(batch.overlays.count(), 1)
        self.assertEqual(bytes(batch.signed_pdf), bake(self.master, self.red))

    def test_second_overlay_rebakes_whole_history(self):
        batch = create_batch(file_id=self.file.pk, overlay=png_data_url(self.red))
        batch = update_batch(batch_id=batch.pk, overlay=png_data_url(self.blue))

        self.assertEqual(batch.overlays.count(), 2)
        self.assertEqual(bytes(batch.signed_pdf), bake_history(self.master, [self.red, self.blue]))
        self.assertEqual(
            [o.sequence for o in batch.overlays.order_by("sequence")],
            [1, 2],
        )

    def test_bad_overlay_keeps_previous_artifact(self):
        batch = create_batch(file_id=self.file.pk, overlay=png_data_url(self.red))
        before = bytes(batch.signed_pdf)

        batch = update_batch(batch_id=batch.pk, overlay="data:image/png;base64,@@@")

        self.assertEqual(bytes(batch.signed_pdf), before)
        self.assertEqual(batch.overlays.count(), 1)
        self.assertIn("bake", batch.step_errors)

        batch = update_batch(batch_id=batch.pk, overlay=png_data_url(self.blue))
        self.assertNotIn("bake", batch.step_errors)

    def test_oversized_overlay_does_not_abort_update(self):
        batch = create_batch(file_id=self.file.pk, status=S.DRAFT, overlay=png_data_url(self.red))
        before = bytes(batch.signed_pdf)

        batch = update_batch(
            batch_id=batch.pk,
            changes={"status": S.IN_PROGRESS},
            overlay=png_data_url(make_oversized_png()),
        )

        self.assertEqual(batch.status, S.IN_PROGRESS)
        self.assertEqual(bytes(batch.signed_pdf), before)
        self.assertEqual(batch.overlays.count(), 1)
        self.assertIn("bake", batch.step_errors)

    def test_oversized_first_overlay_still_creates_batch(self):
        batch = create_batch(file_id=self.file.pk, overlay=make_oversized_png())

        self.assertFalse(batch.has_signed_pdf)
        self.assertEqual(batch.overlays.count(), 0)
        self.assertIn("bake", batch.step_errors)

    def test_overlay_without_master_is_ignored(self):
        plain = make_file(name="No master")
        batch = create_batch(file_id=plain.pk, overlay=png_data_url(self.red))

        self.assertFalse(batch.has_signed_pdf)
        self.assertEqual(batch.overlays.count(), 0)
        self.assertEqual(batch.step_errors, {})


class WorkOrderStepTests(TestCase):
    def setUp(self):
        self.file = make_file(recipe_qty=Decimal("8"))

    def test_create_work_order_action(self):
        batch = create_batch(file_id=self.file.pk, action=CreateWorkOrder(quantity=Decimal("4")))

        self.assertTrue(batch.work_order_created)
        self.assertEqual(batch.work_order_status, Batch.WorkOrderStatus.CREATED)
        self.assertTrue(batch.work_order_id.startswith("LOCAL-0001-"))
        self.assertEqual(batch.work_order_quantity, Decimal("4"))

        state = get_work_order_status(batch.pk)
        self.assertTrue(state.created)
        self.assertEqual(state.work_order_id, batch.work_order_id)
        self.assertIsNotNone(state.created_at)

    def test_work_order_quantity_defaults_to_recipe(self):
        batch = create_batch(file_id=self.file.pk, action=CreateWorkOrder())
        self.assertEqual(batch.work_order_quantity, Decimal("8"))

    def test_run_number_is_committed_before_action_steps(self):
        with patch("batches.services.batch_service._run_action", side_effect=DatabaseError("connection reset")):
            with self.assertRaises(DatabaseError):
                create_batch(file_id=self.file.pk, action=CreateWorkOrder())

        (allocated,) = Batch.objects.filter(file=self.file)
        self.assertEqual(allocated.run_number, 1)
        self.assertFalse(allocated.work_order_created)

        self.assertEqual(create_batch(file_id=self.file.pk).run_number, 2)

    def test_failure_is_recorded_then_retry_succeeds(self):
        with override_settings(WORK_ORDERS={"CLIENT": FAILING_CLIENT}):
            batch = create_batch(file_id=self.file.pk, action=CreateWorkOrder())

        self.assertFalse(batch.work_order_created)
        self.assertEqual(batch.work_order_status, Batch.WorkOrderStatus.FAILED)
        self.assertEqual(batch.work_order_error, "ERP unavailable")
        self.assertIsNotNone(batch.work_order_failed_at)
        self.assertEqual(batch.step_errors["work_order"], "ERP unavailable")

        batch = retry_step(batch_id=batch.pk, step="work_order")

        self.assertTrue(batch.work_order_created)
        self.assertEqual(batch.work_order_error, "")
        self.assertIsNone(batch.work_order_failed_at)
        self.assertNotIn("work_order", batch.step_errors)

    def test_retry_of_completed_step_is_noop(self):
        batch = create_batch(file_id=self.file.pk, action=CreateWorkOrder())
        first_id = batch.work_order_id

        batch = retry_step(batch_id=batch.pk, step="work_order")
        self.assertEqual(batch.work_order_id, first_id)

    def test_retry_rejects_unknown_step_and_batch(self):
        batch = create_batch(file_id=self.file.pk)

        with self.assertRaises(UnknownStepError):
            retry_step(batch_id=batch.pk, step="bake")
        with self.assertRaises(BatchNotFound):
            retry_step(batch_id=uuid.uuid4(), step="work_order")

    def test_work_order_requested_through_update(self):
        batch = create_batch(file_id=self.file.pk)
        batch = update_batch(batch_id=batch.pk, changes={"work_order_created": True, "work_order_quantity": "3"})

        self.assertTrue(batch.work_order_created)
        self.assertEqual(batch.work_order_quantity, Decimal("3"))


class BatchUpdateTests(TestCase):
    """
    GUARANTEES:
    - only allowed lifecycle edges are accepted
    - rejection and completion are stamped
    - completion completes the work order and archives once
    """

    def setUp(self):
        self.user = User.objects.create_user(
            username="reviewer",
            email="qa@example.com",
            password="pass",
            first_name="Quinn",
            last_name="Auditor",
        )
        self.chem = make_chemical("CHM-1", lot="L1", qty=10)
        self.file = make_file(components=[(self.chem, "2", "g")])

    def test_full_lifecycle_completes_work_order_and_archives(self):
        batch = create_batch(file_id=self.file.pk, status=S.DRAFT, action=CreateWorkOrder())

        batch = update_batch(batch_id=batch.pk, changes={"status": S.IN_PROGRESS})
        batch = update_batch(batch_id=batch.pk, changes={"status": S.REVIEW})
        self.assertIsNotNone(batch.submitted_for_review_at)

        batch = update_batch(batch_id=batch.pk, changes={"status": S.COMPLETED})

        self.assertEqual(batch.status, S.COMPLETED)
        self.assertIsNotNone(batch.completed_at)
        self.assertEqual(batch.work_order_status, Batch.WorkOrderStatus.COMPLETED)
        self.assertIsNotNone(batch.work_order_completed_at)
        self.assertTrue(batch.is_archived)
        self.assertEqual(batch.folder_path, "Root")

    def test_invalid_transitions_are_rejected(self):
        batch = create_batch(file_id=self.file.pk, status=S.DRAFT)

        with self.assertRaises(InvalidBatchTransitionError):
            update_batch(batch_id=batch.pk, changes={"status": S.COMPLETED})

        self.assertEqual(get_batch(batch.pk).status, S.DRAFT)

    def test_completed_is_terminal(self):
        batch = create_batch(file_id=self.file.pk, status=S.REVIEW)
        update_batch(batch_id=batch.pk, changes={"status": S.COMPLETED})

        with self.assertRaises(InvalidBatchTransitionError):
            update_batch(batch_id=batch.pk, changes={"status": S.IN_PROGRESS})

    def test_same_status_update_is_noop(self):
        batch = create_batch(file_id=self.file.pk, status=S.REVIEW)
        stamped = batch.submitted_for_review_at

        batch = update_batch(batch_id=batch.pk, changes={"status": S.REVIEW})
        self.assertEqual(batch.submitted_for_review_at, stamped)

    def test_rejection_is_stamped(self):
        batch = create_batch(file_id=self.file.pk, status=S.REVIEW)

        batch = update_batch(
            batch_id=batch.pk,
            changes={"status": S.IN_PROGRESS, "rejection_reason": "Wrong lot recorded"},
            user=self.user,
        )

        self.assertEqual(batch.status, S.IN_PROGRESS)
        self.assertTrue(batch.was_rejected)
        self.assertEqual(batch.rejection_reason, "Wrong lot recorded")
        self.assertEqual(batch.rejected_by, "Quinn Auditor")
        self.assertIsNotNone(batch.rejected_at)

    def test_unknown_fields_are_rejected(self):
        batch = create_batch(file_id=self.file.pk)

        with self.assertRaises(InvalidBatchUpdateError):
            update_batch(batch_id=batch.pk, changes={"is_archived": True})
        with self.assertRaises(InvalidBatchUpdateError):
            update_batch(batch_id=batch.pk, changes={"run_number": 9})

    def test_chemicals_transacted_through_update(self):
        batch = create_batch(file_id=self.file.pk)

        batch = update_batch(
            batch_id=batch.pk,
            changes={
                "confirmed_components": [
                    {"item_id": str(self.chem.pk), "lot_number": "L1", "planned_amount": "2", "unit": "g"},
                ],
                "chemicals_transacted": True,
            },
            user=self.user,
        )

        self.assertTrue(batch.chemicals_transacted)
        self.assertEqual(Lot.objects.get(item=self.chem, lot_number="L1").quantity, Decimal("8"))

        # asking again does not post a second issue
        update_batch(batch_id=batch.pk, changes={"chemicals_transacted": True})
        self.assertEqual(InventoryTransaction.objects.filter(batch=batch).count(), 1)

    def test_confirmed_components_are_frozen_after_consumption(self):
        batch = create_batch(file_id=self.file.pk, action=_review_action(self.chem, amount=3, solution_lot=""))
        self.assertTrue(batch.chemicals_transacted)

        batch = update_batch(
            batch_id=batch.pk,
            changes={
                "confirmed_components": [
                    {"item_id": str(self.chem.pk), "lot_number": "OTHER", "actual_amount": "99"},
                ],
            },
        )

        (component,) = batch.confirmed_components
        self.assertEqual(component["lot_number"], "L1")
        self.assertEqual(Decimal(component["actual_amount"]), Decimal("3"))

        issue_line = InventoryTransaction.objects.get(batch=batch).lines.get()
        self.assertEqual(issue_line.lot_number, component["lot_number"])
        self.assertEqual(issue_line.quantity, -Decimal(component["actual_amount"]))

    def test_interrupted_consumption_post_is_rolled_back_whole(self):
        def post_then_fail(**kwargs):
            post_transaction(**kwargs)
            raise DatabaseError("connection reset")

        with patch("batches.services.steps.post_transaction", side_effect=post_then_fail):
            batch = create_batch(file_id=self.file.pk, action=_review_action(self.chem, amount=2, solution_lot=""))

        self.assertFalse(batch.chemicals_transacted)
        self.assertIn("chemicals", batch.step_errors)
        self.assertFalse(InventoryTransaction.objects.filter(batch=batch).exists())
        self.assertEqual(Lot.objects.get(item=self.chem, lot_number="L1").quantity, Decimal("10"))

        batch = retry_step(batch_id=batch.pk, step="chemicals")

        self.assertTrue(batch.chemicals_transacted)
        self.assertNotIn("chemicals", batch.step_errors)
        self.assertEqual(InventoryTransaction.objects.filter(batch=batch).count(), 1)
        self.assertEqual(Lot.objects.get(item=self.chem, lot_number="L1").quantity, Decimal("8"))

    def test_chemicals_retry_is_idempotent(self):
        batch = create_batch(file_id=self.file.pk, action=_review_action(self.chem, amount=2, solution_lot=""))
        self.assertTrue(batch.chemicals_transacted)

        retry_step(batch_id=batch.pk, step="chemicals")
        self.assertEqual(Lot.objects.get(item=self.chem, lot_number="L1").quantity, Decimal("8"))

    def test_unknown_batch(self):
        with self.assertRaises(BatchNotFound):
            update_batch(batch_id=uuid.uuid4(), changes={"status": S.REVIEW})
        with self.assertRaises(BatchNotFound):
            get_batch("not-a-uuid")


class BatchDeletionTests(TestCase):
    def setUp(self):
        self.chem = make_chemical("CHM-1", lot="L1", qty=10)
        self.file = make_file(components=[(self.chem, "1", "g")])

    def test_batch_without_ledger_entries_can_be_deleted(self):
        batch = create_batch(file_id=self.file.pk)
        delete_batch(batch_id=batch.pk)
        self.assertFalse(Batch.objects.filter(pk=batch.pk).exists())

    def test_batch_with_ledger_entries_cannot_be_deleted(self):
        batch = create_batch(file_id=self.file.pk, action=_review_action(self.chem, amount=1, solution_lot=""))

        with self.assertRaises(BatchDeletionError):
            delete_batch(batch_id=batch.pk)
        self.assertTrue(Batch.objects.filter(pk=batch.pk).exists())

    def test_list_batches_filters(self):
        a = create_batch(file_id=self.file.pk, status=S.DRAFT)
        create_batch(file_id=self.file.pk, status=S.REVIEW)

        self.assertEqual([b.pk for b in list_batches(status=S.DRAFT)], [a.pk])
        self.assertEqual(list_batches(file_id=self.file.pk).count(), 2)
        self.assertEqual(list_batches(is_archived=True).count(), 0)
