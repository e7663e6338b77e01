"""
Unit tests for the signature bundle codec.
"""
import base64
import json

import pytest

from backend.core.signing.codec import SignatureCodec
from backend.core.signing.errors import MalformedSignatureError
from backend.core.signing.models import SignatureBundle


def _encode_json(data) -> str:
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


@pytest.fixture
def codec():
    return SignatureCodec()


@pytest.fixture
def ecdsa_bundle():
    return SignatureBundle(
        signature="3045022100ab",
        public_key="-----BEGIN PUBLIC KEY-----\nMFYw\n-----END PUBLIC KEY-----\n",
        algorithm="ECDSA",
        curve="secp256k1",
    )


@pytest.fixture
def rsa_bundle():
    return SignatureBundle(
        signature="c2lnbmF0dXJl",
        public_key="-----BEGIN PUBLIC KEY-----\nMIIB\n-----END PUBLIC KEY-----\n",
        algorithm="RSA-SHA384",
        key_size=2048,
    )


class TestEncode:
    """Test bundle encoding"""

    def test_ecdsa_json_shape(self, codec, ecdsa_bundle):
        text = base64.b64decode(codec.encode(ecdsa_bundle)).decode("utf-8")

        assert json.loads(text) == {
            "signature": "3045022100ab",
            "publicKey": ecdsa_bundle.public_key,
            "algorithm": "ECDSA",
            "curve": "secp256k1",
            "hashAlgorithm": "SHA-384",
        }
        # Compact separators
        assert '": "' not in text and '", "' not in text

    def test_rsa_json_shape(self, codec, rsa_bundle):
        data = json.loads(base64.b64decode(codec.encode(rsa_bundle)))

        assert data["keySize"] == 2048
        assert "curve" not in data
        assert data["algorithm"] == "RSA-SHA384"

    def test_encoding_is_ascii_base64(self, codec, ecdsa_bundle):
        encoded = codec.encode(ecdsa_bundle)
        assert base64.b64encode(base64.b64decode(encoded, validate=True)).decode("ascii") == encoded


class TestDecode:
    """Test bundle decoding"""

    def test_round_trip_ecdsa(self, codec, ecdsa_bundle):
        assert codec.decode(codec.encode(ecdsa_bundle)) == ecdsa_bundle

    def test_round_trip_rsa(self, codec, rsa_bundle):
        assert codec.decode(codec.encode(rsa_bundle)) == rsa_bundle

    def test_round_trip_real_bundle(self, codec, pipeline):
        fields = pipeline.on_create_or_email_change("alice@example.com")
        bundle = codec.decode(fields.signature_encoded)
        assert codec.encode(bundle) == fields.signature_encoded

    def test_key_size_as_numeric_string(self, codec, rsa_bundle):
        data = rsa_bundle.to_dict()
        data["keySize"] = "2048"
        assert codec.decode(_encode_json(data)).key_size == 2048

    @pytest.mark.parametrize("encoded", ["", "not base64!!", "@@@@"])
    def test_invalid_base64(self, codec, encoded):
        with pytest.raises(MalformedSignatureError):
            codec.decode(encoded)

    def test_non_string(self, codec):
        with pytest.raises(MalformedSignatureError):
            codec.decode(None)

    def test_invalid_json(self, codec):
        with pytest.raises(MalformedSignatureError):
            codec.decode(base64.b64encode(b"{not json").decode("ascii"))

    def test_json_not_object(self, codec):
        with pytest.raises(MalformedSignatureError):
            codec.decode(_encode_json(["signature"]))

    @pytest.mark.parametrize("missing", ["signature", "publicKey", "algorithm", "hashAlgorithm"])
    def test_missing_required_field(self, codec, ecdsa_bundle, missing):
        data = ecdsa_bundle.to_dict()
        del data[missing]
        with pytest.raises(MalformedSignatureError, match=missing):
            codec.decode(_encode_json(data))

    def test_required_field_wrong_type(self, codec, ecdsa_bundle):
        data = ecdsa_bundle.to_dict()
        data["signature"] = 12345
        with pytest.raises(MalformedSignatureError):
            codec.decode(_encode_json(data))

    def test_ecdsa_without_curve(self, codec, ecdsa_bundle):
        data = ecdsa_bundle.to_dict()
        del data["curve"]
        with pytest.raises(MalformedSignatureError, match="curve"):
            codec.decode(_encode_json(data))

    def test_rsa_without_key_size(self, codec, rsa_bundle):
        data = rsa_bundle.to_dict()
        del data["keySize"]
        with pytest.raises(MalformedSignatureError, match="keySize"):
            codec.decode(_encode_json(data))

    @pytest.mark.parametrize("key_size", [True, "big", 2048.5, [2048]])
    def test_invalid_key_size(self, codec, rsa_bundle, key_size):
        data = rsa_bundle.to_dict()
        data["keySize"] = key_size
        with pytest.raises(MalformedSignatureError):
            codec.decode(_encode_json(data))

    def test_unknown_algorithm_still_decodes(self, codec, ecdsa_bundle):
        """Unknown tags are a verification outcome, not a decoding error."""
        data = ecdsa_bundle.to_dict()
        data["algorithm"] = "DSA"
        assert codec.decode(_encode_json(data)).algorithm == "DSA"

    def test_malformed_is_value_error(self, codec):
        with pytest.raises(ValueError):
            codec.decode("not base64!!")
