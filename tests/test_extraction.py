from __future__ import annotations

from tracevista.models.entities import EntityType
from tracevista.research_core.extract.service import ExtractContext, extract


def _by_type(entities, entity_type):
    return [e for e in entities if e.type == entity_type]


def test_phone_is_normalized_to_display_form():
    entities = extract("Call 212.555.0100 today")

    phones = _by_type(entities, EntityType.PHONE)
    assert len(phones) == 1
    assert phones[0].value == "(212) 555-0100"
    assert phones[0].confidence == 90
    assert phones[0].verified is True
    assert phones[0].metadata["region"] == "New York, NY"
    assert phones[0].metadata["raw"] == "212.555.0100"


def test_canonical_phone_gets_format_bonus():
    phones = _by_type(extract("Phone: (212) 555-0100"), EntityType.PHONE)

    assert phones[0].confidence == 100


def test_toll_free_phone_scores_lower():
    phones = _by_type(extract("Support (800) 555-0100"), EntityType.PHONE)

    assert phones[0].confidence == 80
    assert phones[0].metadata["region"] == "Unknown"


def test_multiple_matches_of_same_type_are_all_returned():
    phones = _by_type(extract("212-555-0100 or 405-555-0199"), EntityType.PHONE)

    assert [p.value for p in phones] == ["(212) 555-0100", "(405) 555-0199"]
    assert phones[0].id != phones[1].id


def test_email_confidence_by_domain():
    custom = _by_type(extract("Reach jane.roe@example.org"), EntityType.EMAIL)
    common = _by_type(extract("Reach jroe@gmail.com"), EntityType.EMAIL)

    assert custom[0].value == "jane.roe@example.org"
    assert custom[0].confidence == 100
    assert custom[0].metadata["domain"] == "example.org"
    assert common[0].confidence == 85


def test_noreply_email_is_penalized():
    emails = _by_type(extract("From noreply@example.org"), EntityType.EMAIL)

    assert emails[0].confidence == 80


def test_address_requires_house_number_and_suffix():
    entities = extract("Lives at 123 Main Street, Durant")

    addresses = _by_type(entities, EntityType.ADDRESS)
    assert [a.value for a in addresses] == ["123 Main Street"]
    assert addresses[0].confidence == 85
    assert _by_type(extract("Lives on Main Street"), EntityType.ADDRESS) == []


def test_vin_and_masked_ssn():
    vins = _by_type(extract("VIN 1HGCM82633A004352 on file"), EntityType.VIN)
    ssns = _by_type(extract("SSN ***-**-1234 and 123-**-****"), EntityType.SSN_MASKED)

    assert [v.value for v in vins] == ["1HGCM82633A004352"]
    assert vins[0].confidence == 95
    assert [s.value for s in ssns] == ["***-**-1234", "123-**-****"]
    assert all(s.confidence == 90 for s in ssns)


def test_unmasked_ssn_is_never_extracted():
    assert _by_type(extract("SSN 123-45-6789"), EntityType.SSN_MASKED) == []


def test_vin_excludes_i_o_q():
    assert _by_type(extract("1HGCM82633I004352"), EntityType.VIN) == []


def test_names_skip_the_subject_and_flag_relatives():
    context = ExtractContext(search_name="John Smith")
    names = _by_type(
        extract("John Smith, Jane Smith and Robert Johnson", context),
        EntityType.NAME,
    )

    by_value = {n.value: n for n in names}
    assert set(by_value) == {"Jane Smith", "Robert Johnson"}
    assert by_value["Jane Smith"].confidence == 100
    assert by_value["Jane Smith"].metadata["candidate_relative"] is True
    assert by_value["Robert Johnson"].confidence == 80
    assert by_value["Robert Johnson"].metadata["candidate_relative"] is False


def test_subject_name_match_is_case_insensitive():
    context = ExtractContext(search_name="john smith")

    assert _by_type(extract("John Smith lives here", context), EntityType.NAME) == []


def test_placeholder_name_scores_lower_but_clears_name_threshold():
    names = _by_type(extract("contact: John Doe"), EntityType.NAME)

    assert names[0].value == "John Doe"
    assert names[0].confidence == 65
    assert names[0].verified is True


def test_verification_threshold_depends_on_type():
    entities = extract("Toll free 800.555.0100, VIN 1HGCM82633A004352, SSN ***-**-1234")

    phone = _by_type(entities, EntityType.PHONE)[0]
    assert phone.confidence == 70
    assert phone.verified is False
    assert _by_type(entities, EntityType.VIN)[0].verified is True
    assert _by_type(entities, EntityType.SSN_MASKED)[0].verified is True


def test_source_is_carried_on_every_entity():
    entities = extract("Call 212.555.0100 or mail jane@example.org", source="whitepages")

    assert entities
    assert {e.source for e in entities} == {"whitepages"}


def test_empty_text_yields_nothing():
    assert extract("") == []
