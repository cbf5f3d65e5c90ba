#!/usr/bin/env python3
"""
Metrics aggregator: counts, overdue/escalation rules, averages, category
histogram, monthly trends and the probability/impact matrix.
"""

import unittest
from datetime import datetime, timezone

import support

from cyberrisk.metrics import compute_metrics, trailing_months
from cyberrisk.models import Category


class TestTrailingMonths(unittest.TestCase):

    def test_crosses_year_boundary(self):
        now = datetime(2026, 2, 10, tzinfo=timezone.utc)
        self.assertEqual(
            trailing_months(now, 6),
            ['2025-09', '2025-10', '2025-11', '2025-12', '2026-01', '2026-02'],
        )


class TestEmptyRegister(unittest.TestCase):

    def test_empty(self):
        m = support.make_register().metrics()
        self.assertEqual(m['total'], 0)
        self.assertEqual(m['avg_risk_score'], 0)
        self.assertEqual(m['overdue'], 0)
        self.assertEqual(set(m['category_distribution']), {c.value for c in Category})
        self.assertEqual(len(m['monthly_trends']), 6)
        self.assertEqual(m['risk_matrix'], [[0] * 5 for _ in range(5)])


class TestComputeMetrics(unittest.TestCase):

    def setUp(self):
        self.clock = support.FakeClock(datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc))
        self.register = support.RiskRegister(clock=self.clock, escalation_threshold=1000)
        r = self.register

        # January: two risks, one closed in February
        self.a = r.create_risk(support.risk_data(
            severity='Critical', probability='High', impact='Very High',
            due_date='2026-02-01')).risk
        self.b = r.create_risk(support.risk_data(
            severity='Low', probability='Low', impact='Low',
            category='Financial', due_date='2026-06-01')).risk

        self.clock.set(datetime(2026, 2, 20, tzinfo=timezone.utc))
        r.change_status(self.b.id, 'Closed')

        # March: one more, medium/medium, already overdue for review later
        self.clock.set(datetime(2026, 3, 5, tzinfo=timezone.utc))
        self.c = r.create_risk(support.risk_data(
            severity='Medium', probability='Medium', impact='Medium',
            category='Regulatory', due_date='2026-03-10',
            review_date='2026-03-06')).risk
        r.change_status(self.c.id, 'In Progress')

        self.clock.set(datetime(2026, 3, 15, tzinfo=timezone.utc))
        self.metrics = r.metrics()

    def test_counts(self):
        m = self.metrics
        self.assertEqual(m['total'], 3)
        self.assertEqual(m['by_status'], {'Open': 1, 'In Progress': 1, 'Issue': 0, 'Closed': 1})
        self.assertEqual(m['by_severity'], {'Low': 1, 'Medium': 1, 'High': 0, 'Critical': 1})

    def test_overdue_excludes_closed(self):
        # a due 2026-02-01 and c due 2026-03-10 are past; b is closed
        self.assertEqual(self.metrics['overdue'], 2)
        self.assertEqual(self.metrics['overdue_for_review'], 1)

    def test_escalation_counts_open_only(self):
        # a is Critical (escalated); c scores 625 < 1000; b is closed
        self.assertEqual(self.metrics['escalation_required'], 1)

    def test_average_over_whole_collection(self):
        # (1575 + 225 + 625) / 3
        self.assertEqual(self.metrics['avg_risk_score'], 808.33)

    def test_category_distribution(self):
        dist = self.metrics['category_distribution']
        self.assertEqual(dist['Cybersecurity'], 1)
        self.assertEqual(dist['Financial'], 1)
        self.assertEqual(dist['Regulatory'], 1)
        self.assertEqual(dist['Strategic'], 0)
        self.assertEqual(sum(dist.values()), 3)

    def test_monthly_trends(self):
        trends = self.metrics['monthly_trends']
        self.assertEqual([t['month'] for t in trends],
                         ['2025-10', '2025-11', '2025-12', '2026-01', '2026-02', '2026-03'])
        by_month = {t['month']: (t['created'], t['closed']) for t in trends}
        self.assertEqual(by_month['2026-01'], (2, 0))
        self.assertEqual(by_month['2026-02'], (0, 1))
        self.assertEqual(by_month['2026-03'], (1, 0))
        self.assertEqual(by_month['2025-12'], (0, 0))

    def test_reopened_risk_still_counts_in_closing_month(self):
        self.register.change_status(self.b.id, 'Open')
        trends = {t['month']: t['closed'] for t in self.register.metrics()['monthly_trends']}
        self.assertEqual(trends['2026-02'], 1)

    def test_top_risks_are_open_and_sorted(self):
        top = self.metrics['top_risks']
        self.assertEqual([t['id'] for t in top], [self.a.id, self.c.id])
        self.assertEqual(top[0]['score'], 1575)

    def test_risk_matrix(self):
        matrix = self.metrics['risk_matrix']
        # Row 1 = probability High, column 4 = impact Very High
        self.assertEqual(matrix[1][4], 1)
        # Row 2 = probability Medium, column 2 = impact Medium
        self.assertEqual(matrix[2][2], 1)
        # Closed risk b (Low/Low) is excluded
        self.assertEqual(matrix[3][1], 0)
        self.assertEqual(sum(map(sum, matrix)), 2)

    def test_recomputed_after_mutation(self):
        self.register.delete_risk(self.a.id)
        self.assertEqual(self.register.metrics()['total'], 2)

    def test_pure_function_matches_register(self):
        m = compute_metrics(self.register.list_risks(), now=self.clock.now)
        self.assertEqual(m, self.metrics)


if __name__ == '__main__':
    unittest.main(verbosity=2)
