"""
Unit tests for signature verification.

Covers soundness, sensitivity to any change of the email, robustness against
tampered or malformed bundles, and the RSA variant.
"""
import base64
from dataclasses import replace

import pytest

from backend.core.export.records import SignedRecord
from backend.core.signing.algorithms import EcdsaAlgorithm
from backend.core.signing.keys import KeyStore
from backend.core.signing.signer import HashSigner, sha384_hex
from backend.core.signing.verify import VerificationFailure, Verifier

EMAIL = "alice@example.com"


@pytest.fixture
def verifier():
    return Verifier()


@pytest.fixture
def bundle(key_store):
    return HashSigner(key_store).sign_email(EMAIL).signature


def _mutations(value: str):
    """One-character substitutions, insertions and deletions."""
    yield "b" + value[1:]
    yield value[:-1] + "n"
    yield value + "x"
    yield value[1:]
    yield value.replace("@", "@@")
    yield value.upper()
    yield " " + value


def _flip_hex(text: str, position: int) -> str:
    current = text[position]
    replacement = "0" if current != "0" else "1"
    return text[:position] + replacement + text[position + 1:]


def _xor_char(text: str, position: int, mask: int) -> str:
    return text[:position] + chr(ord(text[position]) ^ mask) + text[position + 1:]


class TestSoundness:
    """A correctly produced bundle verifies"""

    def test_valid_signature(self, verifier, bundle):
        assert verifier.verify(EMAIL, bundle) is True

    def test_check_reports_hash(self, verifier, bundle):
        result = verifier.check(EMAIL, bundle)
        assert result.valid
        assert result.reason is None
        assert result.email_hash == sha384_hex(EMAIL)

    def test_rsa_signature(self, verifier, rsa_key_store):
        bundle = HashSigner(rsa_key_store).sign_email(EMAIL).signature
        assert verifier.verify(EMAIL, bundle) is True

    @pytest.mark.parametrize("curve", ["secp256r1", "secp384r1"])
    def test_other_curves(self, verifier, tmp_path, curve):
        store = KeyStore(tmp_path / curve, EcdsaAlgorithm(curve))
        store.initialize()
        bundle = HashSigner(store).sign_email(EMAIL).signature
        assert bundle.curve == curve
        assert verifier.verify(EMAIL, bundle) is True

    def test_survives_key_rotation(self, verifier, key_store, bundle):
        key_store.rotate()
        assert verifier.verify(EMAIL, bundle) is True


class TestEmailSensitivity:
    """Any change of the email invalidates the signature"""

    @pytest.mark.parametrize("mutated", list(_mutations(EMAIL)))
    def test_mutated_email(self, verifier, bundle, mutated):
        assert mutated != EMAIL
        result = verifier.check(mutated, bundle)
        assert result.valid is False
        assert result.reason == VerificationFailure.SIGNATURE_MISMATCH

    def test_other_users_signature(self, verifier, key_store):
        bob_bundle = HashSigner(key_store).sign_email("bob@example.com").signature
        assert verifier.verify(EMAIL, bob_bundle) is False

    def test_signature_over_raw_email_rejected(self, verifier, key_store, bundle):
        """Only signatures over the hex hash are accepted."""
        raw_signature = EcdsaAlgorithm().sign(key_store.get_private_key(), EMAIL.encode("utf-8"))
        forged = replace(bundle, signature=raw_signature)
        assert verifier.verify(EMAIL, forged) is False


class TestTamperedBundles:
    """Tampering yields False, never an exception"""

    @pytest.mark.parametrize("position", [0, 1, 7, 20, 40, -1, -2])
    def test_tampered_ecdsa_signature(self, verifier, bundle, position):
        position = position % len(bundle.signature)
        tampered = replace(bundle, signature=_flip_hex(bundle.signature, position))
        assert verifier.verify(EMAIL, tampered) is False

    @pytest.mark.parametrize("mask", [0x01, 0x20])
    def test_every_ecdsa_signature_character(self, verifier, bundle, mask):
        """Changing any character of the hex text, including its case, fails."""
        for position in range(len(bundle.signature)):
            tampered = replace(bundle, signature=_xor_char(bundle.signature, position, mask))
            assert verifier.verify(EMAIL, tampered) is False, position

    def test_uppercase_ecdsa_signature(self, verifier, bundle):
        result = verifier.check(EMAIL, replace(bundle, signature=bundle.signature.upper()))
        assert result.reason == VerificationFailure.MALFORMED_SIGNATURE

    def test_truncated_signature(self, verifier, bundle):
        assert verifier.verify(EMAIL, replace(bundle, signature=bundle.signature[:-2])) is False

    def test_odd_length_hex(self, verifier, bundle):
        result = verifier.check(EMAIL, replace(bundle, signature=bundle.signature[:-1]))
        assert result.reason == VerificationFailure.MALFORMED_SIGNATURE

    def test_non_hex_signature(self, verifier, bundle):
        result = verifier.check(EMAIL, replace(bundle, signature="zz" * 10))
        assert result.reason == VerificationFailure.MALFORMED_SIGNATURE

    def test_tampered_rsa_signature(self, verifier, rsa_key_store):
        bundle = HashSigner(rsa_key_store).sign_email(EMAIL).signature
        raw = bytearray(base64.b64decode(bundle.signature))
        raw[10] ^= 0x01
        tampered = replace(bundle, signature=base64.b64encode(bytes(raw)).decode("ascii"))
        assert verifier.verify(EMAIL, tampered) is False

    @pytest.mark.parametrize("mask", [0x01, 0x20])
    def test_every_rsa_signature_character(self, verifier, rsa_key_store, mask):
        """Changing any character of the base64 text, including padding bits, fails."""
        bundle = HashSigner(rsa_key_store).sign_email(EMAIL).signature
        for position in range(len(bundle.signature)):
            tampered = replace(bundle, signature=_xor_char(bundle.signature, position, mask))
            assert verifier.verify(EMAIL, tampered) is False, position

    def test_rsa_non_canonical_padding_bits(self, verifier, rsa_key_store):
        bundle = HashSigner(rsa_key_store).sign_email(EMAIL).signature
        text = bundle.signature.rstrip("=")
        tampered = _xor_char(text, len(text) - 1, 0x01) + bundle.signature[len(text):]
        result = verifier.check(EMAIL, replace(bundle, signature=tampered))
        assert result.reason == VerificationFailure.MALFORMED_SIGNATURE

    def test_rsa_invalid_base64(self, verifier, rsa_key_store):
        bundle = HashSigner(rsa_key_store).sign_email(EMAIL).signature
        result = verifier.check(EMAIL, replace(bundle, signature="***"))
        assert result.reason == VerificationFailure.MALFORMED_SIGNATURE

    def test_substituted_public_key(self, verifier, bundle, tmp_path):
        other = KeyStore(tmp_path / "other")
        other.initialize()
        forged = replace(bundle, public_key=other.get_public_key_pem())
        assert verifier.verify(EMAIL, forged) is False

    def test_malformed_public_key(self, verifier, bundle):
        result = verifier.check(EMAIL, replace(bundle, public_key="not a pem"))
        assert result.reason == VerificationFailure.MALFORMED_PUBLIC_KEY

    def test_key_algorithm_mismatch(self, verifier, bundle, rsa_key_store):
        forged = replace(bundle, public_key=rsa_key_store.get_public_key_pem())
        result = verifier.check(EMAIL, forged)
        assert result.reason == VerificationFailure.KEY_ALGORITHM_MISMATCH

    def test_curve_mismatch(self, verifier, bundle):
        result = verifier.check(EMAIL, replace(bundle, curve="secp256r1"))
        assert result.reason == VerificationFailure.KEY_ALGORITHM_MISMATCH

    def test_unsupported_algorithm(self, verifier, bundle):
        result = verifier.check(EMAIL, replace(bundle, algorithm="DSA"))
        assert result.reason == VerificationFailure.UNSUPPORTED_ALGORITHM

    def test_unsupported_curve(self, verifier, bundle):
        result = verifier.check(EMAIL, replace(bundle, curve="brainpoolP256r1"))
        assert result.reason == VerificationFailure.UNSUPPORTED_ALGORITHM

    def test_unsupported_hash(self, verifier, bundle):
        result = verifier.check(EMAIL, replace(bundle, hash_algorithm="SHA-256"))
        assert result.reason == VerificationFailure.UNSUPPORTED_HASH

    def test_not_a_bundle(self, verifier):
        result = verifier.check(EMAIL, {"signature": "00"})
        assert result.reason == VerificationFailure.MALFORMED_BUNDLE

    @pytest.mark.parametrize("email", ["", None])
    def test_invalid_email(self, verifier, bundle, email):
        result = verifier.check(email, bundle)
        assert result.valid is False
        assert result.reason == VerificationFailure.INVALID_INPUT


class TestCheckRecord:
    """Stored hash column is cross-checked"""

    def test_matching_hash(self, verifier, bundle):
        record = SignedRecord(id=1, email=EMAIL, email_hash=sha384_hex(EMAIL))
        assert verifier.check_record(record, bundle).valid

    def test_empty_hash_column(self, verifier, bundle):
        assert verifier.check_record(SignedRecord(id=1, email=EMAIL), bundle).valid

    def test_stale_hash_column(self, verifier, bundle):
        record = SignedRecord(id=1, email=EMAIL, email_hash=sha384_hex("old@example.com"))
        result = verifier.check_record(record, bundle)
        assert result.valid is False
        assert result.reason == VerificationFailure.HASH_MISMATCH

    def test_result_to_dict(self, verifier, bundle):
        data = verifier.check("mallory@example.com", bundle).to_dict()
        assert data["valid"] is False
        assert data["reason"] == "signature_mismatch"
        assert data["emailHash"] == sha384_hex("mallory@example.com")
