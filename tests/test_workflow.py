#!/usr/bin/env python3
"""
Status state machine: the transition table itself and change_status()
behaviour for every (from, to) pair.
"""

import unittest

import support

from cyberrisk.errors import InvalidTransitionError, ValidationError
from cyberrisk.models import Status
from cyberrisk.workflow import (VALID_STATUS_TRANSITIONS, can_transition,
                                check_transition)

PERMITTED = {
    (Status.OPEN, Status.IN_PROGRESS),
    (Status.OPEN, Status.ISSUE),
    (Status.OPEN, Status.CLOSED),
    (Status.IN_PROGRESS, Status.OPEN),
    (Status.IN_PROGRESS, Status.ISSUE),
    (Status.IN_PROGRESS, Status.CLOSED),
    (Status.ISSUE, Status.IN_PROGRESS),
    (Status.ISSUE, Status.CLOSED),
    (Status.CLOSED, Status.OPEN),
}

ALL_PAIRS = [(a, b) for a in Status for b in Status]


class TestTransitionTable(unittest.TestCase):

    def test_table_matches_permitted_edges(self):
        edges = {(a, b) for a, targets in VALID_STATUS_TRANSITIONS.items() for b in targets}
        self.assertEqual(edges, PERMITTED)

    def test_can_transition(self):
        for a, b in ALL_PAIRS:
            with self.subTest(frm=a, to=b):
                self.assertEqual(can_transition(a, b), (a, b) in PERMITTED)

    def test_self_loops_rejected(self):
        for s in Status:
            with self.assertRaises(InvalidTransitionError):
                check_transition(s, s)

    def test_labels_accepted(self):
        self.assertIs(check_transition('Open', 'InProgress'), Status.IN_PROGRESS)
        self.assertIs(check_transition('In Progress', 'closed'), Status.CLOSED)


class TestChangeStatus(unittest.TestCase):

    def _risk_in(self, register, status):
        result = register.create_risk(support.risk_data(status=status.value))
        self.assertTrue(result.success, result.error)
        return result.risk

    def test_rejected_pairs_leave_record_untouched(self):
        for a, b in ALL_PAIRS:
            if (a, b) in PERMITTED:
                continue
            with self.subTest(frm=a, to=b):
                register = support.make_register()
                risk = self._risk_in(register, a)
                result = register.change_status(risk.id, b)
                self.assertFalse(result.success)
                self.assertIsInstance(result.error, InvalidTransitionError)
                stored = register.get_risk(risk.id)
                self.assertIs(stored.status, a)
                self.assertEqual(len(stored.audit_trail), len(risk.audit_trail))
                self.assertEqual(stored.last_updated, risk.last_updated)

    def test_permitted_pairs_append_one_entry(self):
        for a, b in sorted(PERMITTED, key=lambda p: (p[0].value, p[1].value)):
            with self.subTest(frm=a, to=b):
                clock = support.FakeClock()
                register = support.make_register(clock=clock)
                risk = self._risk_in(register, a)
                clock.advance(hours=1)
                result = register.change_status(risk.id, b, comment='moving on')
                self.assertTrue(result.success, result.error)
                self.assertIs(result.risk.status, b)
                self.assertEqual(len(result.risk.audit_trail), len(risk.audit_trail) + 1)
                entry = result.risk.audit_trail[-1]
                self.assertEqual(entry.action, f"Status changed to {b.value}")
                self.assertEqual(entry.details, 'moving on')
                self.assertEqual(entry.previous_value, {'status': a.value})
                self.assertEqual(entry.new_value, {'status': b.value})
                self.assertEqual(result.risk.last_updated, clock.now)

    def test_default_details_describe_transition(self):
        register = support.make_register()
        risk = self._risk_in(register, Status.OPEN)
        result = register.change_status(risk.id, 'Issue')
        self.assertEqual(result.risk.audit_trail[-1].details,
                         'Risk status updated from Open to Issue')

    def test_closed_cannot_go_to_in_progress(self):
        register = support.make_register()
        risk = self._risk_in(register, Status.OPEN)
        self.assertTrue(register.change_status(risk.id, 'Closed').success)
        result = register.change_status(risk.id, 'InProgress')
        self.assertFalse(result.success)
        self.assertIsInstance(result.error, InvalidTransitionError)
        self.assertIs(register.get_risk(risk.id).status, Status.CLOSED)

    def test_closed_can_be_reopened(self):
        register = support.make_register()
        risk = self._risk_in(register, Status.CLOSED)
        result = register.change_status(risk.id, 'Open', comment='Recurred')
        self.assertTrue(result.success)
        self.assertIs(result.risk.status, Status.OPEN)

    def test_unknown_status_is_validation_error(self):
        register = support.make_register()
        risk = self._risk_in(register, Status.OPEN)
        result = register.change_status(risk.id, 'Pending')
        self.assertIsInstance(result.error, ValidationError)
        self.assertIn('status', result.error.errors)

    def test_unknown_risk(self):
        register = support.make_register()
        result = register.change_status('RSK-999', 'Closed')
        self.assertFalse(result.success)
        self.assertEqual(result.error.kind, 'not_found')

    def test_actor_recorded(self):
        register = support.make_register()
        risk = self._risk_in(register, Status.OPEN)
        result = register.change_status(risk.id, 'Closed', actor='alice')
        self.assertEqual(result.risk.audit_trail[-1].user, 'alice')


if __name__ == '__main__':
    unittest.main(verbosity=2)
