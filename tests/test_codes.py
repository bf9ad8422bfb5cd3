import pytest

from accounts.referral.codes import REFERRAL_CODE_ALPHABET, generate_referral_code


def test_default_code_is_eight_chars_from_alphabet():
    for _ in range(200):
        code = generate_referral_code()
        assert len(code) == 8
        assert set(code) <= set(REFERRAL_CODE_ALPHABET)


def test_alphabet_is_uppercase_letters_and_digits():
    assert REFERRAL_CODE_ALPHABET == "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


@pytest.mark.parametrize("length", [1, 6, 12, 32])
def test_custom_length(length):
    assert len(generate_referral_code(length)) == length


def test_rejects_non_positive_length():
    with pytest.raises(ValueError):
        generate_referral_code(0)


def test_codes_vary():
    codes = {generate_referral_code() for _ in range(100)}
    assert len(codes) > 95
