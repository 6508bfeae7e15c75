import pytest

from app.core.signature import SignatureVerifier, sign_timestamp

SECRET = "robot-secret"
NOW = 1_700_000_000.0  # секунды


def make_verifier(now: float = NOW) -> SignatureVerifier:
    return SignatureVerifier(SECRET, window_seconds=300, clock=lambda: now)


def test_valid_signature_within_window():
    ts = str(int((NOW - 60) * 1000))
    sig = sign_timestamp(SECRET, ts)

    assert make_verifier().verify(sig, ts) is True


def test_signature_from_the_future_within_window_is_accepted():
    ts = str(int((NOW + 120) * 1000))
    assert make_verifier().verify(sign_timestamp(SECRET, ts), ts) is True


def test_same_signature_fails_after_window():
    ts = str(int(NOW * 1000))
    sig = sign_timestamp(SECRET, ts)

    assert make_verifier(now=NOW + 299).verify(sig, ts) is True
    assert make_verifier(now=NOW + 301).verify(sig, ts) is False


def test_altered_signature_of_equal_length_fails():
    ts = str(int(NOW * 1000))
    sig = sign_timestamp(SECRET, ts)
    altered = ("0" if sig[0] != "0" else "1") + sig[1:]

    assert len(altered) == len(sig)
    assert make_verifier().verify(altered, ts) is False


def test_signature_with_wrong_secret_fails():
    ts = str(int(NOW * 1000))
    assert make_verifier().verify(sign_timestamp("other", ts), ts) is False


def test_signature_of_different_length_fails():
    ts = str(int(NOW * 1000))
    assert make_verifier().verify("abc", ts) is False


def test_missing_values_fail_closed():
    ts = str(int(NOW * 1000))
    verifier = make_verifier()

    assert verifier.verify(None, ts) is False
    assert verifier.verify(sign_timestamp(SECRET, ts), None) is False
    assert verifier.verify("", "") is False


def test_non_numeric_timestamp_fails():
    assert make_verifier().verify(sign_timestamp(SECRET, "yesterday"), "yesterday") is False


@pytest.mark.parametrize("timestamp", ["nan", "NaN", "inf", "-inf", "Infinity"])
def test_non_finite_timestamp_fails(timestamp):
    assert make_verifier().verify(sign_timestamp(SECRET, timestamp), timestamp) is False
