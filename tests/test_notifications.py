from mediplan.notifications import NotificationQueue
from mediplan.scheduler import ManualScheduler


def test_notifications_expire_after_ttl():
    scheduler = ManualScheduler()
    queue = NotificationQueue(scheduler, ttl=4.0)

    queue.notify('Patient ajouté', 'success')
    scheduler.advance(3)
    assert len(queue) == 1

    scheduler.advance(1)
    assert len(queue) == 0


def test_notifications_keep_insertion_order():
    scheduler = ManualScheduler()
    queue = NotificationQueue(scheduler)

    queue.notify('premier')
    scheduler.advance(1)
    queue.notify('deuxième', 'warning')

    assert [n['message'] for n in queue.to_list()] == ['premier', 'deuxième']

    scheduler.advance(3)
    assert [n['message'] for n in queue.to_list()] == ['deuxième']


def test_dismiss_then_late_timer_is_harmless():
    scheduler = ManualScheduler()
    queue = NotificationQueue(scheduler)
    first = queue.notify('un')
    second = queue.notify('deux')

    assert queue.dismiss(first.id) is True
    assert queue.dismiss(first.id) is False
    scheduler.advance(2)
    third = queue.notify('trois')
    scheduler.advance(2)

    assert queue.get(second.id) is None
    assert [n.id for n in queue.items()] == [third.id]


def test_unknown_kind_falls_back_to_info():
    queue = NotificationQueue(ManualScheduler())
    assert queue.notify('message', 'fatal').type == 'info'


def test_close_cancels_timers():
    scheduler = ManualScheduler()
    queue = NotificationQueue(scheduler)
    queue.notify('un')

    queue.close()

    assert len(queue) == 0
    assert scheduler.pending_count == 0


def test_store_notifications_use_configured_ttl(store, scheduler):
    store.notify('Bonjour')
    scheduler.advance(4)
    assert store.list_notifications() == []


def test_store_dismiss(store):
    notification = store.notify('Bonjour', 'warning')
    assert store.dismiss_notification(notification.id) is True
    assert store.list_notifications() == []
