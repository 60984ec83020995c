# batches/tests/test_lifecycle.py

from types import SimpleNamespace

from django.test import SimpleTestCase

from batches.models import Batch
from batches.services import lifecycle
from batches.services.exceptions import InvalidBatchTransitionError

S = Batch.Status


class BatchLifecycleTests(SimpleTestCase):
    """
    GUARANTEES:
    - Draft -> In Progress -> Review -> Completed
    - Review -> In Progress is the only backwards edge (rejection)
    - Completed is terminal
    """

    def test_allowed_transitions(self):
        self.assertTrue(lifecycle.can_transition(from_status=S.DRAFT, to_status=S.IN_PROGRESS))
        self.assertTrue(lifecycle.can_transition(from_status=S.IN_PROGRESS, to_status=S.REVIEW))
        self.assertTrue(lifecycle.can_transition(from_status=S.REVIEW, to_status=S.COMPLETED))
        self.assertTrue(lifecycle.can_transition(from_status=S.REVIEW, to_status=S.IN_PROGRESS))

    def test_skips_and_backwards_moves_are_rejected(self):
        self.assertFalse(lifecycle.can_transition(from_status=S.DRAFT, to_status=S.COMPLETED))
        self.assertFalse(lifecycle.can_transition(from_status=S.DRAFT, to_status=S.REVIEW))
        self.assertFalse(lifecycle.can_transition(from_status=S.IN_PROGRESS, to_status=S.COMPLETED))
        self.assertFalse(lifecycle.can_transition(from_status=S.IN_PROGRESS, to_status=S.DRAFT))

    def test_completed_is_terminal(self):
        for target in S.values:
            self.assertFalse(lifecycle.can_transition(from_status=S.COMPLETED, to_status=target))

    def test_same_status_is_not_a_transition(self):
        self.assertFalse(lifecycle.is_transition(from_status=S.REVIEW, to_status=S.REVIEW))
        self.assertFalse(lifecycle.is_transition(from_status=S.REVIEW, to_status=None))
        self.assertTrue(lifecycle.is_transition(from_status=S.REVIEW, to_status=S.COMPLETED))

    def test_rejection_and_completion_edges(self):
        self.assertTrue(lifecycle.is_rejection(from_status=S.REVIEW, to_status=S.IN_PROGRESS))
        self.assertFalse(lifecycle.is_rejection(from_status=S.DRAFT, to_status=S.IN_PROGRESS))
        self.assertTrue(lifecycle.is_completion(from_status=S.REVIEW, to_status=S.COMPLETED))
        self.assertFalse(lifecycle.is_completion(from_status=S.COMPLETED, to_status=S.COMPLETED))

    def test_initial_status(self):
        self.assertEqual(lifecycle.validate_initial_status(None), S.IN_PROGRESS)
        self.assertEqual(lifecycle.validate_initial_status(S.DRAFT), S.DRAFT)
        self.assertEqual(lifecycle.validate_initial_status(S.REVIEW), S.REVIEW)

        with self.assertRaises(InvalidBatchTransitionError):
            lifecycle.validate_initial_status(S.COMPLETED)
        with self.assertRaises(InvalidBatchTransitionError):
            lifecycle.validate_initial_status("Shipped")

    def test_validate_transition_raises_with_context(self):
        batch = SimpleNamespace(id="b-1", status=S.DRAFT)

        lifecycle.validate_transition(batch=batch, target_status=S.IN_PROGRESS)

        with self.assertRaises(InvalidBatchTransitionError) as ctx:
            lifecycle.validate_transition(batch=batch, target_status=S.COMPLETED)
        self.assertIn("Draft", str(ctx.exception))

        with self.assertRaises(InvalidBatchTransitionError):
            lifecycle.validate_transition(batch=batch, target_status="Shipped")
