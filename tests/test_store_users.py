import pytest

from mediplan.auth import LOGIN_FAILED_MESSAGE, verify_password
from mediplan.errors import ProtectedUserError, RecordValidationError


def _new_user(**overrides):
    payload = {
        'name': 'Dr. Karim Idrissi',
        'email': 'karim.idrissi@mediplan.ma',
        'password': 'karim2025',
        'role': 'practitioner',
        'phone': '0664567890',
        'specialty': 'Kinésithérapie',
    }
    payload.update(overrides)
    return payload


def _stored(store, user_id):
    return next(u for u in store.users if u['id'] == user_id)


def test_add_user_hashes_password_and_hides_it(store):
    profile = store.add_user(_new_user())

    assert 'password' not in profile
    assert 'passwordHash' not in profile
    assert profile['isActive'] is True
    stored = _stored(store, profile['id'])
    assert 'password' not in stored
    assert stored['passwordHash'] != 'karim2025'
    assert verify_password('karim2025', stored['passwordHash'])


def test_demo_passwords_are_never_stored_in_clear(store, backend):
    assert 'admin123' not in backend.get('errami_users')
    assert all('password' not in user for user in store.users)


def test_duplicate_email_is_rejected(store):
    with pytest.raises(RecordValidationError) as excinfo:
        store.add_user(_new_user(email='dr.sarah@mediplan.ma'))
    assert excinfo.value.errors == {'email': 'Cet email est déjà utilisé'}


def test_add_user_requires_password(store):
    with pytest.raises(RecordValidationError) as excinfo:
        store.add_user(_new_user(password=''))
    assert excinfo.value.errors == {'password': 'Mot de passe requis'}


def test_update_user_rehashes_non_empty_password(store):
    old_hash = _stored(store, 'u3')['passwordHash']

    store.update_user('u3', {'password': ''})
    assert _stored(store, 'u3')['passwordHash'] == old_hash

    store.update_user('u3', {'password': 'nouveau2025'})
    assert verify_password('nouveau2025', _stored(store, 'u3')['passwordHash'])
    assert store.login('secretaire@mediplan.ma', 'nouveau2025').success


def test_update_user_cannot_overwrite_hash_directly(store):
    old_hash = _stored(store, 'u2')['passwordHash']
    store.update_user('u2', {'passwordHash': 'forged', 'phone': '0669999999'})

    assert _stored(store, 'u2')['passwordHash'] == old_hash
    assert _stored(store, 'u2')['phone'] == '0669999999'


def test_update_user_keeps_own_email(store):
    profile = store.update_user('u2', {'email': 'dr.sarah@mediplan.ma', 'name': 'Dr. Sarah B.'})
    assert profile['name'] == 'Dr. Sarah B.'


def test_update_signed_in_user_refreshes_session(store, reopen):
    store.login('dr.sarah@mediplan.ma', 'sarah123')
    store.update_user('u2', {'name': 'Dr. Sarah Bennani-Alami'})

    assert store.current_user['name'] == 'Dr. Sarah Bennani-Alami'
    assert reopen().current_user['name'] == 'Dr. Sarah Bennani-Alami'


def test_cannot_delete_own_account(store):
    store.login('dr.sarah@mediplan.ma', 'sarah123')

    with pytest.raises(ProtectedUserError) as excinfo:
        store.delete_user('u2')

    assert str(excinfo.value) == 'Vous ne pouvez pas supprimer votre propre compte'
    assert store.get_user_by_id('u2') is not None


def test_cannot_delete_an_administrator(store):
    with pytest.raises(ProtectedUserError):
        store.delete_user('u1')
    assert store.get_user_by_id('u1') is not None


def test_delete_user(store):
    store.login('admin@mediplan.ma', 'admin123')

    assert store.delete_user('u3') is True
    assert store.get_user_by_id('u3') is None
    assert store.delete_user('u3') is False


def test_practitioners_include_admins(store):
    assert [u['id'] for u in store.get_practitioners()] == ['u1', 'u2']
    assert all('passwordHash' not in u for u in store.list_users())


def test_login_success_persists_session(store, backend, reopen):
    result = store.login('admin@mediplan.ma', 'admin123')

    assert result.success is True
    assert result.user['id'] == 'u1'
    assert 'passwordHash' not in result.user
    assert store.is_authenticated
    assert 'passwordHash' not in backend.get('errami_auth')
    assert reopen().current_user['id'] == 'u1'


def test_login_failures_share_one_message(store):
    unknown = store.login('nobody@mediplan.ma', 'admin123')
    wrong = store.login('admin@mediplan.ma', 'wrong')

    assert unknown.success is False
    assert wrong.success is False
    assert unknown.error == wrong.error == LOGIN_FAILED_MESSAGE
    assert store.current_user is None


def test_inactive_account_cannot_sign_in(store):
    store.update_user('u3', {'isActive': False})
    result = store.login('secretaire@mediplan.ma', 'sec123')
    assert result.error == LOGIN_FAILED_MESSAGE


def test_logout_keeps_collections(store, backend, reopen):
    store.login('admin@mediplan.ma', 'admin123')
    store.delete_patient('p4')

    store.logout()

    assert store.current_user is None
    assert backend.get('errami_auth') is None
    reopened = reopen()
    assert reopened.current_user is None
    assert len(reopened.patients) == 3
    assert len(reopened.users) == 3


def test_legacy_plaintext_passwords_are_upgraded(backend, adapter, reopen):
    adapter.mark_initialized()
    adapter.save('users', [{'id': 'u9', 'name': 'Legacy', 'email': 'legacy@mediplan.ma', 'password': 'old', 'role': 'secretary'}])

    reopened = reopen()

    assert 'password' not in reopened.users[0]
    assert '"old"' not in backend.get('errami_users')
    assert reopened.login('legacy@mediplan.ma', 'old').success
