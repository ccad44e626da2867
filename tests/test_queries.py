from datetime import date

import pytest

from mediplan import queries


def test_dashboard_stats_for_demo_data(store):
    assert store.get_stats() == {
        'totalPatients': 4,
        'todayAppointments': 3,
        'upcomingAppointments': 4,
        'totalRevenue': 700,
        'monthlyRevenue': 700,
        'pendingPayments': 0,
        'totalInvoices': 2,
        'paidInvoices': 2,
        'absenceRate': 0,
        'remindersSent': 4,
    }


def test_stats_on_empty_store_are_zero(empty_store):
    stats = empty_store.get_stats()
    assert set(stats.values()) == {0}


def test_pending_payments_only_count_finished_visits(store):
    """An unpaid visit leaves the pending total once it moves back to "present"."""

    store.update_appointment('a5', {'paid': False})
    assert store.get_stats()['pendingPayments'] == 300

    store.update_appointment('a5', {'status': 'present'})
    assert store.get_stats()['pendingPayments'] == 0


def test_absence_rate_counts_present_as_attended(store):
    store.update_appointment('a1', {'status': 'absent'})
    store.update_appointment('a2', {'status': 'present'})

    # 1 absent out of 2 finished + 1 present + 1 absent.
    assert store.get_stats()['absenceRate'] == 25.0


def test_absence_rate_is_rounded_to_one_decimal():
    appointments = [{'status': 'absent'}] + [{'status': 'termine'}] * 2
    stats = queries.compute_stats([], appointments, [], '2025-01-13')
    assert stats['absenceRate'] == 33.3


def test_upcoming_excludes_inactive_statuses(store):
    store.update_appointment('a4', {'status': 'annule'})
    assert store.get_stats()['upcomingAppointments'] == 3


def test_revenue_only_counts_paid_invoices(store):
    store.add_invoice({'patientId': 'p4', 'items': [{'description': 'Bilan', 'unitPrice': 600}]})
    stats = store.get_stats()

    assert stats['totalRevenue'] == 700
    assert stats['totalInvoices'] == 3
    assert stats['paidInvoices'] == 2


def test_medical_records_are_sorted_most_recent_first(store):
    records = store.get_medical_records_by_patient('p1')
    assert [r['id'] for r in records] == ['mr2', 'mr1']


@pytest.mark.parametrize(
    'period, expected',
    [
        ('today', ('2025-01-15', '2025-01-15')),
        ('week', ('2025-01-13', '2025-01-15')),
        ('month', ('2025-01-01', '2025-01-15')),
        ('quarter', ('2025-01-01', '2025-01-15')),
        ('year', ('2025-01-01', '2025-01-15')),
        ('all', None),
    ],
)
def test_period_range(period, expected):
    assert queries.period_range(period, date(2025, 1, 15)) == expected


def test_quarter_starts_on_first_month_of_quarter():
    assert queries.period_range('quarter', date(2025, 8, 20)) == ('2025-07-01', '2025-08-20')


def test_invoice_number_counts_only_matching_prefix_and_year():
    invoices = [{'number': 'FAC-2024-010'}, {'number': 'FAC-2025-001'}, {'number': 'NOTE-2025-001'}]
    assert queries.generate_invoice_number('FAC', invoices, 2025) == 'FAC-2025-002'


def test_invoice_totals():
    invoices = [
        {'status': 'paid', 'total': 300},
        {'status': 'pending', 'total': 120.5},
        {'status': 'partial', 'total': 80},
    ]
    assert queries.invoice_totals(invoices) == {'total': 500.5, 'paid': 300, 'pending': 200.5, 'count': 3}


def test_time_slots():
    slots = queries.generate_time_slots()

    assert slots[0] == '08:00'
    assert slots[1] == '08:30'
    assert slots[-1] == '18:30'
    assert len(slots) == 22


def test_working_hours(store):
    config = store.cabinet

    assert queries.is_within_working_hours(config, '2025-01-13', '09:00')
    assert not queries.is_within_working_hours(config, '2025-01-13', '18:00')
    assert queries.is_within_working_hours(config, '2025-01-18', '12:30')
    assert not queries.is_within_working_hours(config, '2025-01-18', '14:00')
    assert not queries.is_within_working_hours(config, '2025-01-19', '10:00')
    assert not queries.is_within_working_hours(config, 'not-a-date', '10:00')
