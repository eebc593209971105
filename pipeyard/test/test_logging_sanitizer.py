"""
Test the logging sanitizer utility.
Verifies credentials and customer contact data are redacted from API payload logs.
"""

from pipeyard.utils.logging_sanitizer import SENSITIVE_FIELDS, sanitize_dict, sanitize_exception_message


def test_sanitize_dict():
    """Test dictionary sanitization"""
    test_data = {
        'reference_code': 'REQ-1',
        'owner': 'Acme',
        'contact_email': 'ops@acme.test',
        'requested_quantity': 120,
    }
    result = sanitize_dict(test_data)
    assert result['reference_code'] == 'REQ-1', "Reference code should not be redacted"
    assert result['owner'] == 'Acme', "Owner should not be redacted"
    assert result['contact_email'] == '[REDACTED]', "Contact email should be redacted"
    assert result['requested_quantity'] == 120, "Quantities should not be redacted"

    # Case insensitivity
    result = sanitize_dict({'Token': 'a', 'CONTACT_EMAIL': 'b', 'contactEmail': 'c'})
    assert result == {'Token': '[REDACTED]', 'CONTACT_EMAIL': '[REDACTED]', 'contactEmail': '[REDACTED]'}

    assert sanitize_dict({}) == {}
    assert sanitize_dict(None) is None


def test_nested_payloads_are_sanitized():
    """Manifest lines and nested objects are walked too"""
    test_data = {
        'actual_totals': {'quantity': 2},
        'manifest_lines': [
            {'serial_number': 'SN-1', 'quantity': 1, 'phone': '555-0100'},
            {'serial_number': 'SN-2', 'quantity': 1},
        ],
        'carrier': {'name': 'Haul Co', 'email': 'dispatch@haul.test'},
    }
    result = sanitize_dict(test_data)
    assert result['actual_totals'] == {'quantity': 2}
    assert result['manifest_lines'][0] == {'serial_number': 'SN-1', 'quantity': 1, 'phone': '[REDACTED]'}
    assert result['manifest_lines'][1]['serial_number'] == 'SN-2'
    assert result['carrier'] == {'name': 'Haul Co', 'email': '[REDACTED]'}
    assert test_data['carrier']['email'] == 'dispatch@haul.test', "The original payload must not be modified"


def test_all_sensitive_fields():
    """Verify all sensitive fields are properly configured"""
    test_data = {field: f"sensitive_{field}_value" for field in SENSITIVE_FIELDS}

    result = sanitize_dict(test_data)

    for field in SENSITIVE_FIELDS:
        assert result[field] == '[REDACTED]', f"Field '{field}' should be redacted"


def test_sanitize_exception_message():
    safe = ValueError("Unit U1 not found")
    assert sanitize_exception_message(safe) == "Unit U1 not found"

    leaky = RuntimeError("INSERT failed for contact_email='ops@acme.test'")
    assert sanitize_exception_message(leaky) == "RuntimeError: [Message contains sensitive data]"
