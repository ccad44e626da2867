import threading
from datetime import datetime

from mediplan import reminders
from mediplan.reminders import (
    build_reminder_message,
    format_reminder_message,
    pending_reminders,
    send_reminders,
    sent_reminders,
    should_send_reminder,
)


def test_pending_and_sent_reminders(store):
    pending = pending_reminders(store.appointments, store.patients, '2025-01-13')
    sent = sent_reminders(store.appointments, store.patients, '2025-01-13')

    assert [a['id'] for a in pending] == ['a2', 'a4']
    assert pending[0]['patient']['lastName'] == 'Ouazzani'
    assert {a['id'] for a in sent} == {'a1', 'a3'}


def test_pending_reminders_skip_cancelled(store):
    store.update_appointment('a4', {'status': 'annule'})
    assert [a['id'] for a in pending_reminders(store.appointments, store.patients, '2025-01-13')] == ['a2']


def test_format_reminder_message():
    message = format_reminder_message(
        'Bonjour {patient}, RDV le {date} à {time}. {cabinet} ({phone}) {inconnu}',
        patient='Salma Chraibi',
        date='14 janv. 2025',
        time='14:00',
        cabinet='Cabinet MediPlan',
    )
    assert message == 'Bonjour Salma Chraibi, RDV le 14 janv. 2025 à 14:00. Cabinet MediPlan () {inconnu}'


def test_build_reminder_message_picks_template_by_channel(store):
    appointment = store.get_appointment_by_id('a4')
    patient = store.get_patient_by_id('p4')

    sms = build_reminder_message(appointment, patient, store.cabinet, 'sms')
    whatsapp = build_reminder_message(appointment, patient, store.cabinet, 'whatsapp')
    email = build_reminder_message(appointment, patient, store.cabinet, 'email')

    assert sms == 'Rappel: RDV le 14 janv. 2025 à 14:00. Cabinet MediPlan'
    assert whatsapp.startswith('👋 Bonjour Salma Chraibi!')
    assert email == sms


def test_should_send_reminder_window():
    now = datetime(2025, 1, 13, 9, 0)

    assert should_send_reminder('2025-01-14', '08:00', 24, now=now)
    assert not should_send_reminder('2025-01-14', '10:00', 24, now=now)
    assert not should_send_reminder('2025-01-13', '08:00', 24, now=now)
    assert not should_send_reminder('bad', '08:00', 24, now=now)


def test_bulk_send_is_paced(store, scheduler):
    done = []
    batch = send_reminders(store, ['a2', 'a4'], pacing=0.3, on_done=done.append)

    assert batch.sent == []
    scheduler.advance(0.3)
    assert batch.sent == ['a2']
    assert batch.finished is False
    scheduler.advance(0.3)

    assert batch.sent == ['a2', 'a4']
    assert batch.finished is True
    assert done == [['a2', 'a4']]
    assert store.get_appointment_by_id('a4')['reminderType'] == 'email'
    messages = [n['message'] for n in store.list_notifications()]
    assert messages == ['Rappel SMS envoyé', 'Rappel EMAIL envoyé', '2 rappels envoyés avec succès']


def test_bulk_send_skips_appointments_no_longer_pending(store, scheduler):
    batch = send_reminders(store, ['a2', 'a1', 'a4'], pacing=0.3)
    store.update_appointment('a4', {'status': 'annule'})

    scheduler.advance(1)

    assert batch.sent == ['a2']
    assert store.get_appointment_by_id('a4')['reminderSent'] is False
    assert store.list_notifications()[-1]['message'] == '3 rappels envoyés avec succès'


def test_bulk_send_with_no_ids_finishes_immediately(store, scheduler):
    batch = send_reminders(store, [])
    assert batch.finished is True
    assert scheduler.pending_count == 0


def test_cancelled_batch_stops(store, scheduler):
    batch = send_reminders(store, ['a2', 'a4'], pacing=0.3)
    scheduler.advance(0.3)
    batch.cancel()

    scheduler.run_all()

    assert batch.sent == ['a2']
    assert store.get_appointment_by_id('a4')['reminderSent'] is False


def test_reminder_channel_falls_back_to_cabinet_default():
    settings = {'defaultType': 'sms'}
    assert reminders.reminder_channel_for({'preferredReminder': 'email'}, settings) == 'email'
    assert reminders.reminder_channel_for({}, settings) == 'sms'
    assert reminders.reminder_channel_for(None, {}) == 'whatsapp'


def test_batch_step_waits_for_the_store_lock(store, scheduler):
    batch = send_reminders(store, ['a2'], pacing=0.3)
    timer_thread = threading.Thread(target=scheduler.advance, args=(0.3,))

    with store.lock:
        timer_thread.start()
        timer_thread.join(timeout=0.2)
        assert timer_thread.is_alive()
        assert batch.sent == []
        store.delete_appointment('a2')

    timer_thread.join(timeout=5)
    assert batch.sent == []
    assert batch.finished is True
