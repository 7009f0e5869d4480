from visitdesk.services.field_normalization import (
    extract_visitor_fields,
    merge_form_data,
    normalize_field_key,
    normalize_form_data,
)


def test_normalize_field_key_variants_collapse():
    assert normalize_field_key("Full Name") == "full_name"
    assert normalize_field_key("  full   name ") == "full_name"
    assert normalize_field_key("FULL_NAME") == "full_name"
    assert normalize_field_key("Phone\tNumber") == "phone_number"


def test_normalize_form_data_first_label_wins_on_collision():
    normalized = normalize_form_data({"Email": "first@example.com", "email": "second@example.com", "Note": "hi"})
    assert normalized == {"email": "first@example.com", "note": "hi"}


def test_normalize_form_data_skips_blank_keys():
    assert normalize_form_data({"   ": "x", "Name": "Ada"}) == {"name": "Ada"}


def test_merge_form_data_keeps_original_and_adds_canonical_keys():
    merged = merge_form_data({"Full Name": "Ada Lovelace", "email": "ada@example.com"})
    assert merged["Full Name"] == "Ada Lovelace"
    assert merged["full_name"] == "Ada Lovelace"
    assert merged["email"] == "ada@example.com"
    assert list(merged)[:2] == ["Full Name", "email"]


def test_extract_visitor_fields_cleans_values():
    fields = extract_visitor_fields(
        normalize_form_data(
            {
                "Full Name": "  Ada Lovelace ",
                "Email": " ADA@Example.COM ",
                "Phone Number": " 0700 000 000 ",
                "ID Number": "12345",
            }
        )
    )
    assert fields.full_name == "Ada Lovelace"
    assert fields.email == "ada@example.com"
    assert fields.phone == "0700 000 000"
    assert fields.id_number == "12345"
    assert fields.has_matching_key
    assert fields.has_profile_data


def test_extract_visitor_fields_falls_back_to_alternate_keys():
    fields = extract_visitor_fields({"name": "Grace", "phone": "0711"})
    assert fields.full_name == "Grace"
    assert fields.phone == "0711"


def test_blank_values_are_treated_as_missing():
    fields = extract_visitor_fields({"email": "   ", "phone_number": None, "full_name": ""})
    assert fields.email is None
    assert fields.phone is None
    assert not fields.has_matching_key
    assert not fields.has_profile_data
