"""
Unit tests for the QR string encoder, decoder and validator
"""
import pytest
from dataclasses import replace

from lifetag.codec import (
    CRITICAL_KEYS, HEADER, build_machine_pairs, classify_format, decode_qr_string,
    deobfuscate, encode_qr_string, extract_profile_id, is_app_generated_qr,
    obfuscate, validate_qr_code,
)
from lifetag.models import EmergencyQRData, FormatKind, QRContact

LEGACY_STRING = ("V:1.0;N:Jane Doe;BT:O+;ALG:penicillin;"
                 "EC:John-5551234567-spouse;TS:2024-01-01T00:00:00.000Z")


class TestEncoder:

    def test_human_readable_block(self, emergency_data):
        qr = encode_qr_string(emergency_data)
        lines = qr.split('\n')

        assert lines[0] == HEADER
        assert lines[1] == ''
        assert 'PATIENT: JANE DOE' in lines
        assert '🩸 BLOOD TYPE: A-' in lines
        assert '⚠️  ALLERGIES:' in lines
        assert '   • Penicillin' in lines
        assert '📞 EMERGENCY CONTACT:' in lines
        assert '   John Smith (spouse)' in lines
        assert '   Phone: 155 5123 4567' in lines
        assert '🏥 MEDICAL NOTES:' in lines
        assert '📱 Full medical profile available in LifeTag app' in lines
        assert '📅 Updated: Mar 5, 2024' in lines
        assert '🔒 Generated by LifeTag Medical ID' in lines
        assert lines[-2] == ''
        assert lines[-1].startswith('APP_DATA: V:1.0;N:Jane Doe;BT:A-;ALG:Penicillin,dust;EC:')

    def test_phone_and_profile_id_are_obfuscated(self, emergency_data):
        qr = encode_qr_string(emergency_data)
        assert '15551234567' not in qr
        assert f'EC:John Smith-{obfuscate("15551234567")}-spouse' in qr
        assert f'LT:{obfuscate("abc123")}' in qr
        assert 'abc123' not in qr

    def test_minimal_data_still_encodes(self):
        data = EmergencyQRData(version="1.0", name="Sam Lee", timestamp="2024-01-01T00:00:00.000Z")
        qr = encode_qr_string(data)

        assert qr.endswith('APP_DATA: V:1.0;N:Sam Lee;TS:2024-01-01T00:00:00.000Z')
        assert 'BLOOD TYPE' not in qr
        assert 'ALLERGIES' not in qr
        assert 'EMERGENCY CONTACT' not in qr
        assert '📱' not in qr

    def test_long_note_is_wrapped_and_truncated(self, emergency_data):
        note = ' '.join(['word'] * 60)
        qr = encode_qr_string(replace(emergency_data, emergency_note=note))
        lines = qr.split('\n')
        start = lines.index('🏥 MEDICAL NOTES:') + 1
        note_lines = []
        for line in lines[start:]:
            if not line:
                break
            note_lines.append(line)

        assert all(len(line) <= 50 for line in note_lines)
        assert all(line.startswith('   ') for line in note_lines)
        assert note_lines[-1].endswith('...')
        assert f'NOTE:{note[:100]}...' in qr

    def test_delimiters_are_removed_from_values(self, emergency_data):
        data = replace(
            emergency_data,
            allergies=("nuts, seeds",),
            emergency_contact=QRContact(name="Mary-Jane Doe", phone="15551234567",
                                        relationship="step-mother"),
            emergency_note="Line one;\nline two",
        )
        decoded = decode_qr_string(encode_qr_string(data))

        assert decoded.allergies == ("nuts  seeds",)
        assert decoded.emergency_contact == QRContact("Mary Jane Doe", "15551234567", "step mother")
        assert decoded.emergency_note == "Line one  line two"


class TestLengthEnforcement:

    def test_oversized_payload_falls_back_to_machine_section(self, emergency_data):
        data = replace(emergency_data, allergies=tuple(c * 150 for c in "abcde"),
                       emergency_note="n" * 400)
        qr = encode_qr_string(data)

        assert len(qr) <= 1000
        assert HEADER not in qr
        assert 'APP_DATA' not in qr
        assert qr.startswith('V:1.0;N:Jane Doe;BT:A-;ALG:')

        decoded = decode_qr_string(qr)
        assert decoded.name == "Jane Doe"
        assert decoded.version == "1.0"
        assert decoded.allergies == data.allergies

    def test_reduced_payload_mentioning_header_text(self, emergency_data):
        data = replace(emergency_data, allergies=tuple(c * 150 for c in "abcde"),
                       emergency_note="Wears EMERGENCY MEDICAL ID bracelet")
        qr = encode_qr_string(data)

        assert 'APP_DATA' not in qr
        assert 'NOTE:Wears EMERGENCY MEDICAL ID bracelet' in qr
        assert classify_format(qr) is FormatKind.LEGACY

        decoded = decode_qr_string(qr)
        assert decoded.name == "Jane Doe"
        assert decoded.version == "1.0"
        assert decoded.emergency_note == data.emergency_note

    def test_optional_key_is_skipped_not_aborting(self, emergency_data):
        data = replace(emergency_data, emergency_note="n" * 300)
        pairs = build_machine_pairs(data)
        critical = ';'.join(f'{k}:{v}' for k, v in pairs if k in CRITICAL_KEYS)
        lt_part = f';LT:{obfuscate("abc123")}'
        ts_part = f';TS:{data.timestamp}'
        limit = len(critical) + len(lt_part) + len(ts_part)

        qr = encode_qr_string(data, max_length=limit)

        assert qr == critical + lt_part + ts_part
        assert 'NOTE:' not in qr
        decoded = decode_qr_string(qr)
        assert decoded.profile_id == "abc123"
        assert decoded.timestamp == data.timestamp
        assert decoded.emergency_note is None


class TestDecoder:

    def test_round_trip(self, emergency_data):
        assert decode_qr_string(encode_qr_string(emergency_data)) == emergency_data

    def test_round_trip_note_starting_with_data_prefix(self, emergency_data):
        data = replace(emergency_data, emergency_note="DATA: none recorded, see chart")
        qr = encode_qr_string(data)

        assert '   DATA: none recorded, see chart' in qr.splitlines()
        assert decode_qr_string(qr) == data

    def test_note_mentioning_blood_type_is_not_a_blood_type(self, emergency_data):
        data = replace(emergency_data, blood_type=None, emergency_note="BLOOD TYPE: unknown")
        decoded = decode_qr_string(encode_qr_string(data))

        assert decoded.blood_type is None
        assert decoded == data

    def test_round_trip_truncates_note(self, emergency_data):
        data = replace(emergency_data, emergency_note="x" * 200)
        decoded = decode_qr_string(encode_qr_string(data))
        assert decoded.emergency_note == "x" * 100 + "..."

    def test_legacy_format(self):
        decoded = decode_qr_string(LEGACY_STRING)

        assert decoded.name == "Jane Doe"
        assert decoded.version == "1.0"
        assert decoded.blood_type == "O+"
        assert list(decoded.allergies) == ["penicillin"]
        assert decoded.emergency_contact == QRContact(name="John", phone="5551234567",
                                                      relationship="spouse")
        assert decoded.timestamp == "2024-01-01T00:00:00.000Z"
        assert decoded.has_full_profile is False

    def test_legacy_data_prefix_and_legacy_keys(self):
        decoded = decode_qr_string("DATA:V:1.0;N:Old Code;APP:legacy-42;FULL:1")

        assert decoded.name == "Old Code"
        assert decoded.profile_id == "legacy-42"
        assert decoded.has_full_profile is True

    def test_dashed_plain_phone(self):
        decoded = decode_qr_string("V:1.0;N:A;EC:Bob-555-123-4567-brother")
        assert decoded.emergency_contact == QRContact("Bob", "555-123-4567", "brother")

    def test_unknown_keys_are_ignored(self):
        decoded = decode_qr_string("V:2.0;N:Future;XYZ:whatever;TS:2030-01-01T00:00:00.000Z")
        assert decoded.name == "Future"
        assert decoded.version == "2.0"

    def test_bad_profile_id_is_dropped(self, caplog):
        decoded = decode_qr_string("V:1.0;N:A;LT:%%%")
        assert decoded is not None
        assert decoded.profile_id is None
        assert "Failed to decode LifeTag internal ID" in caplog.text

    def test_damaged_machine_section_uses_readable_block(self, emergency_data):
        qr = encode_qr_string(emergency_data).replace(';N:Jane Doe', '')
        decoded = decode_qr_string(qr)

        assert decoded.name == "JANE DOE"
        assert decoded.blood_type == "A-"

    @pytest.mark.parametrize("text", [
        "not a qr code at all",
        "",
        "   ",
        "https://example.com/?a=b;c=d",
        "V:1.0;BT:O+",
        "N:Jane Doe;BT:O+",
    ])
    def test_decode_failure_returns_none(self, text):
        assert decode_qr_string(text) is None

    def test_readable_block_without_machine_section_fails(self, emergency_data):
        qr = encode_qr_string(emergency_data)
        readable_only = qr[:qr.index('APP_DATA:')]
        assert decode_qr_string(readable_only) is None

    def test_classify_format(self, emergency_data):
        assert classify_format(encode_qr_string(emergency_data)) is FormatKind.HUMAN_READABLE
        assert classify_format("DATA:V:1.0;N:A") is FormatKind.MACHINE_ONLY
        assert classify_format(LEGACY_STRING) is FormatKind.LEGACY

    def test_deobfuscate_rejects_plain_numbers(self):
        assert deobfuscate("5551234567") is None
        assert deobfuscate(obfuscate("+1 555 0100")) == "+1 555 0100"

    def test_plain_phone_that_is_valid_base64(self):
        assert deobfuscate("04000400") is None

        decoded = decode_qr_string("V:1.0;N:A;EC:Bob-04000400-brother")
        assert decoded.emergency_contact == QRContact("Bob", "04000400", "brother")

    def test_plain_phone_decoding_to_ascii_text_is_kept(self):
        # "QUJD" is base64 for "ABC", which is not a phone number
        decoded = decode_qr_string("V:1.0;N:A;EC:Bob-QUJD-brother")
        assert decoded.emergency_contact.phone == "QUJD"


class TestProfileIdHelpers:

    def test_extract_profile_id(self, emergency_data):
        assert extract_profile_id(encode_qr_string(emergency_data)) == "abc123"
        assert extract_profile_id("V:1.0;N:A;APP:p-1") == "p-1"
        assert extract_profile_id(LEGACY_STRING) is None

    def test_is_app_generated_qr(self, emergency_data):
        assert is_app_generated_qr(encode_qr_string(emergency_data))
        assert not is_app_generated_qr(encode_qr_string(replace(emergency_data, profile_id=None)))
        assert not is_app_generated_qr("hello")


class TestValidator:

    def test_valid_current_code(self, emergency_data):
        result = validate_qr_code(encode_qr_string(emergency_data))
        assert result.is_valid
        assert result.is_compatible
        assert result.errors == []
        assert result.version == "1.0"

    def test_invalid_code(self):
        result = validate_qr_code("not a qr code at all")
        assert not result.is_valid
        assert not result.is_compatible
        assert result.errors == ['Invalid QR code format']

    def test_old_version_without_contact(self):
        result = validate_qr_code("V:0.1;N:X;TS:2024-01-01T00:00:00.000Z")

        assert not result.is_compatible
        assert not result.is_valid
        assert 'Missing emergency contact information' in result.errors
        assert any('version 0.1' in e for e in result.errors)

    def test_compatible_version_is_valid_despite_warnings(self):
        text = "V:1.0;N:X;TS:2024-01-01T00:00:00.000Z"

        loose = validate_qr_code(text)
        assert loose.is_valid
        assert loose.errors == ['Missing emergency contact information']

        assert not validate_qr_code(text, strict=True).is_valid
