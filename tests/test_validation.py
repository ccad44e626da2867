import pytest

from mediplan.errors import RecordValidationError
from mediplan.models import Patient
from mediplan.validation import (
    appointment_errors,
    check_model,
    invoice_errors,
    patient_errors,
    user_errors,
    validate_email,
    validate_phone,
)


@pytest.mark.parametrize(
    'phone, valid',
    [
        ('0612345678', True),
        ('06 12 34 56 78', True),
        ('+212612345678', True),
        ('0512345678', True),
        ('0812345678', False),
        ('061234567', False),
        ('', False),
    ],
)
def test_validate_phone(phone, valid):
    assert validate_phone(phone) is valid


def test_validate_email():
    assert validate_email('dr.sarah@mediplan.ma')
    assert not validate_email('sans-arobase.ma')
    assert not validate_email('a b@c.d')
    assert not validate_email(None)


def test_optional_patient_contact_fields():
    assert patient_errors({'firstName': 'Ali', 'lastName': 'Berrada', 'email': '', 'phone': ''}) == {}


def test_user_errors_on_create_and_edit():
    users = [{'id': 'u1', 'email': 'admin@mediplan.ma'}]

    assert user_errors({'name': 'X', 'email': 'admin@mediplan.ma', 'password': 'p'}, users) == {
        'email': 'Cet email est déjà utilisé'
    }
    assert user_errors({'name': 'Admin', 'email': 'admin@mediplan.ma'}, users, editing_id='u1') == {}
    assert user_errors({'name': '', 'email': ''}, users) == {
        'name': 'Nom requis',
        'email': 'Email requis',
        'password': 'Mot de passe requis',
    }


def test_invoice_item_errors_are_indexed():
    errors = invoice_errors(
        {
            'patientId': 'p1',
            'items': [
                {'description': 'Séance', 'unitPrice': 300},
                {'description': 'Sans prix', 'unitPrice': 'abc'},
            ],
        }
    )
    assert errors == {'items.1': 'Quantité et prix valides requis'}


def test_appointment_errors():
    assert appointment_errors({'patientId': 'p1', 'date': '2025-01-13', 'time': '09:00'}) == {}


def test_check_model_folds_pydantic_errors():
    with pytest.raises(RecordValidationError) as excinfo:
        check_model(Patient, {'id': 'p9', 'firstName': 'A', 'lastName': 'B', 'createdAt': '13/01/2025'})
    assert list(excinfo.value.errors) == ['createdAt']
