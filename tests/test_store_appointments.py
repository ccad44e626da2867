import threading

import pytest

from mediplan.errors import RecordValidationError


def _booking(**overrides):
    payload = {
        'patientId': 'p2',
        'practitionerId': 'u2',
        'date': '2025-01-15',
        'time': '15:30',
        'type': 'bilan',
        'notes': 'Premier bilan',
    }
    payload.update(overrides)
    return payload


def test_add_appointment_uses_catalog_defaults(store):
    appointment = store.add_appointment(_booking())

    assert appointment['duration'] == 60
    assert appointment['fee'] == 600
    assert appointment['status'] == 'planifie'
    assert appointment['reminderSent'] is False
    assert appointment['createdAt'] == '2025-01-13T08:30:00Z'
    assert store.list_notifications()[-1]['message'] == 'RDV créé'


def test_explicit_duration_and_fee_win_over_catalog(store):
    appointment = store.add_appointment(_booking(duration=90, fee=750))
    assert appointment['duration'] == 90
    assert appointment['fee'] == 750


def test_add_appointment_forces_initial_status(store):
    appointment = store.add_appointment(_booking(status='termine', reminderSent=True))
    assert appointment['status'] == 'planifie'
    assert appointment['reminderSent'] is False


def test_add_appointment_records_signed_in_author(store):
    store.login('dr.sarah@mediplan.ma', 'sarah123')
    appointment = store.add_appointment(_booking())
    assert appointment['createdBy'] == 'u2'


def test_add_appointment_requires_patient_date_and_time(store):
    with pytest.raises(RecordValidationError) as excinfo:
        store.add_appointment({'type': 'suivi'})

    assert set(excinfo.value.errors) == {'patientId', 'date', 'time'}
    assert len(store.appointments) == 6


def test_add_appointment_rejects_unknown_type(store):
    with pytest.raises(RecordValidationError) as excinfo:
        store.add_appointment(_booking(type='massage', duration=30, fee=100))
    assert 'type' in excinfo.value.errors


def test_status_transitions_are_permissive(store):
    """Any status may follow any other, including moving backwards."""

    updated = store.update_appointment('a5', {'status': 'planifie'})
    assert updated['status'] == 'planifie'

    updated = store.update_appointment('a5', {'status': 'absent'})
    assert updated['status'] == 'absent'


def test_status_must_belong_to_the_enumeration(store):
    with pytest.raises(RecordValidationError) as excinfo:
        store.update_appointment('a1', {'status': 'oublie'})

    assert 'status' in excinfo.value.errors
    assert store.get_appointment_by_id('a1')['status'] == 'confirme'


def test_update_appointment_keeps_system_fields(store):
    created = store.add_appointment(_booking())

    updated = store.update_appointment(created['id'], {'id': 'other', 'createdAt': 'never', 'time': '16:00'})

    assert updated['id'] == created['id']
    assert updated['createdAt'] == created['createdAt']
    assert updated['time'] == '16:00'


def test_update_appointment_does_not_notify(store):
    store.update_appointment('a2', {'status': 'confirme'})
    assert store.list_notifications() == []


def test_update_unknown_appointment_returns_none(store):
    assert store.update_appointment('missing', {'status': 'confirme'}) is None


def test_delete_appointment(store, reopen):
    assert store.delete_appointment('a4') is True
    assert store.delete_appointment('a4') is False
    assert store.list_notifications()[-1]['message'] == 'RDV supprimé'
    assert reopen().get_appointment_by_id('a4') is None


def test_appointment_queries(store):
    assert [a['id'] for a in store.get_appointments_by_date('2025-01-13')] == ['a1', 'a2', 'a3']
    assert {a['id'] for a in store.get_appointments_by_patient('p1')} == {'a1', 'a5'}
    assert [a['id'] for a in store.get_appointments_between('2025-01-09', '2025-01-13')] == [
        'a6',
        'a5',
        'a1',
        'a2',
        'a3',
    ]


def test_send_reminder_flags_appointment_without_changing_status(store):
    result = store.send_reminder('a2', 'whatsapp')

    assert result == {'success': True, 'channel': 'whatsapp'}
    appointment = store.get_appointment_by_id('a2')
    assert appointment['reminderSent'] is True
    assert appointment['reminderType'] == 'whatsapp'
    assert appointment['status'] == 'planifie'
    assert store.list_notifications()[-1]['message'] == 'Rappel WHATSAPP envoyé'


def test_send_reminder_defaults_to_patient_preference(store):
    assert store.send_reminder('a4')['channel'] == 'email'


def test_send_reminder_rejects_unknown_channel(store):
    with pytest.raises(RecordValidationError):
        store.send_reminder('a2', 'pigeon')
    assert store.get_appointment_by_id('a2')['reminderSent'] is False


def test_send_reminder_unknown_appointment(store):
    assert store.send_reminder('missing', 'sms') is None


def test_mutations_from_other_threads_wait_for_the_store_lock(store):
    writer = threading.Thread(target=store.update_appointment, args=('a1', {'status': 'termine'}))

    with store.lock:
        writer.start()
        writer.join(timeout=0.2)
        assert writer.is_alive()
        assert store.get_appointment_by_id('a1')['status'] != 'termine'

    writer.join(timeout=5)
    assert store.get_appointment_by_id('a1')['status'] == 'termine'
