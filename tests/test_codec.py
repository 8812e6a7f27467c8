"""Tests for request encoding and response decoding of the service channel."""

import pytest

from mes4_connector import decode_response, encode_request
from mes4_connector.codec import split_pairs
from mes4_connector.errors import DuplicateKeyError, ProtocolFormatError
from mes4_connector.schema import ParameterSchema
from mes4_connector.types import ParameterKind, ResourceIdentity, ServicePackage


@pytest.fixture
def schema() -> ParameterSchema:
    entries = [
        {"id": 1, "name": "ResourceID", "kind": 1},
        {"id": 2, "name": "StepNo", "kind": 1},
        {"id": 3, "name": "ONo", "kind": 2},
        {"id": 4, "name": "Description", "kind": 3, "string_length": 110},
        {"id": 5, "name": "Broken", "kind": 7},
    ]
    return ParameterSchema(entries)


# ============================================================================
# Encoding
# ============================================================================


def test_encode_resource_request() -> None:
    request = ServicePackage(100, 1, 0, standard_parameters={"ResourceID": 50})
    text = encode_request(request, ResourceIdentity(50))
    assert text == "444;RequestId=50;MClass=100;MNo=1;ErrorState=0;#ResourceID=50*"


def test_encode_non_resource_omits_request_id() -> None:
    request = ServicePackage(100, 33, 0, standard_parameters={"#ONo": 3352, "#OPos": 1})
    text = encode_request(request, ResourceIdentity(50, is_resource=False))
    assert text == "444;MClass=100;MNo=33;ErrorState=0;#ONo=3352;#OPos=1*"


def test_encode_without_parameters() -> None:
    text = encode_request(ServicePackage(100, 1, 2), ResourceIdentity(7))
    assert text == "444;RequestId=7;MClass=100;MNo=1;ErrorState=2*"


def test_encode_keeps_insertion_order_and_single_hash() -> None:
    request = ServicePackage(1, 2, 0, standard_parameters={"#B": "x", "A": -5, "C": 70000})
    text = encode_request(request, ResourceIdentity(1, is_resource=False))
    assert text.endswith("#B=x;#A=-5;#C=70000*")
    assert "##" not in text


@pytest.mark.parametrize("value", [1.5, True, None, b"raw", [1], 2**31])
def test_encode_rejects_unsupported_values(value: object) -> None:
    request = ServicePackage(100, 1, 0, standard_parameters={"X": value})
    with pytest.raises(ProtocolFormatError):
        encode_request(request, ResourceIdentity(1))


def test_encode_rejects_non_ascii_string() -> None:
    request = ServicePackage(100, 1, 0, standard_parameters={"Text": "Prüfung"})
    with pytest.raises(ProtocolFormatError, match="ASCII"):
        encode_request(request, ResourceIdentity(1))


@pytest.mark.parametrize("value", ["a;b", "key=value", "end*", "x;=*"])
def test_encode_rejects_framing_characters_in_strings(value: str) -> None:
    request = ServicePackage(100, 1, 0, standard_parameters={"Text": value})
    with pytest.raises(ProtocolFormatError, match="reserved") as exc_info:
        encode_request(request, ResourceIdentity(1))
    assert exc_info.value.segment == "#Text"


def test_package_header_fields_are_int16() -> None:
    with pytest.raises(ValueError, match="int16"):
        ServicePackage(40000, 1)
    with pytest.raises(ValueError):
        ServicePackage(100, "1")  # type: ignore[arg-type]


# ============================================================================
# Decoding
# ============================================================================


def test_decode_types_schema_parameters(schema: ParameterSchema) -> None:
    response = decode_response("XXXX MClass=100;MNo=1;ErrorState=0;#StepNo=7;", schema)
    assert response.standard_parameters == {"StepNo": 7}
    assert isinstance(response.standard_parameters["StepNo"], int)
    assert response.message_class == 100
    assert response.message_number == 1
    assert response.error_state == 0


def test_decode_unknown_keys_stay_strings(schema: ParameterSchema) -> None:
    response = decode_response("0000MClass=100;MNo=1;ErrorState=0;Foo=12;ONo=3352;Bar= baz ", schema)
    assert response.standard_parameters == {"ONo": 3352}
    assert response.service_specific_parameters == {
        "MClass": "100",
        "MNo": "1",
        "ErrorState": "0",
        "Foo": "12",
        "Bar": "baz",
    }


def test_decode_preserves_encounter_order(schema: ParameterSchema) -> None:
    response = decode_response("0000Z=1;StepNo=2;A=3;ResourceID=4;M=5", schema)
    assert list(response.standard_parameters) == ["StepNo", "ResourceID"]
    assert list(response.service_specific_parameters) == ["Z", "A", "M"]


def test_decode_string_kind(schema: ParameterSchema) -> None:
    response = decode_response("0000Description=Inspektion;", schema)
    assert response.standard_parameters == {"Description": "Inspektion"}


def test_decode_removes_escaped_carriage_returns(schema: ParameterSchema) -> None:
    response = decode_response("0000StepNo=7\\r;Foo=a\\rb", schema)
    assert response.standard_parameters == {"StepNo": 7}
    assert response.service_specific_parameters == {"Foo": "ab"}


def test_decode_keeps_header_keys_as_raw_strings(schema: ParameterSchema) -> None:
    response = decode_response("XXXX MClass=100;MNo=1;ErrorState=0;RequestId=50;#StepNo=7;", schema)
    assert (response.message_class, response.message_number, response.error_state) == (100, 1, 0)
    assert response.standard_parameters == {"StepNo": 7}
    assert response.service_specific_parameters == {
        "MClass": "100",
        "MNo": "1",
        "ErrorState": "0",
        "RequestId": "50",
    }


def test_decode_error_state_header(schema: ParameterSchema) -> None:
    response = decode_response("0000RequestId=50;MClass=100;MNo=1;ErrorState=3", schema)
    assert response.error_state == 3
    assert response.service_specific_parameters["ErrorState"] == "3"


@pytest.mark.parametrize("body", ["0000StepNo;MNo=1", "0000StepNo=1=2", "0000=5", "0000StepNo="])
def test_decode_segment_needs_one_equals(schema: ParameterSchema, body: str) -> None:
    with pytest.raises(ProtocolFormatError) as exc_info:
        decode_response(body, schema)
    assert exc_info.value.segment is not None


def test_decode_error_names_segment(schema: ParameterSchema) -> None:
    with pytest.raises(ProtocolFormatError, match="'garbage'"):
        decode_response("0000MClass=100;garbage;MNo=1", schema)


def test_decode_duplicate_key(schema: ParameterSchema) -> None:
    with pytest.raises(DuplicateKeyError) as exc_info:
        decode_response("0000Foo=1;Foo=2", schema)
    assert exc_info.value.key == "Foo"


def test_decode_duplicate_after_hash_normalization(schema: ParameterSchema) -> None:
    with pytest.raises(DuplicateKeyError):
        decode_response("0000#StepNo=1;StepNo=2", schema)


@pytest.mark.parametrize("text", ["", "XXXX", "444"])
def test_decode_empty_after_preamble(schema: ParameterSchema, text: str) -> None:
    with pytest.raises(ProtocolFormatError, match="empty"):
        decode_response(text, schema)


def test_decode_unsupported_kind_code(schema: ParameterSchema) -> None:
    with pytest.raises(ProtocolFormatError, match="unsupported type code 7"):
        decode_response("0000Broken=1", schema)


@pytest.mark.parametrize("body", ["0000StepNo=abc", "0000StepNo=40000", "0000ONo=3000000000"])
def test_decode_bad_integer_values(schema: ParameterSchema, body: str) -> None:
    with pytest.raises(ProtocolFormatError):
        decode_response(body, schema)


def test_decode_int32_range(schema: ParameterSchema) -> None:
    response = decode_response("0000ONo=-2147483648", schema)
    assert response.standard_parameters["ONo"] == -2147483648


def test_split_pairs_ignores_empty_segments() -> None:
    assert split_pairs(";;A=1; ;B = 2 ;") == {"A": "1", "B": "2"}


def test_parameter_kind_codes() -> None:
    assert ParameterKind(1) is ParameterKind.INT16
    assert ParameterKind(2) is ParameterKind.INT32
    assert ParameterKind(3) is ParameterKind.STRING
