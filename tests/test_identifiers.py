"""
Tests for account number generation
"""

from bank_ledger.identifiers import (
    ACCOUNT_NUMBER_MAX, ACCOUNT_NUMBER_MIN, generate_account_number, is_valid_account_number
)


class TestAccountNumbers:
    """Shape, range and spread of generated account numbers"""

    def test_generated_numbers_are_valid(self):
        for _ in range(500):
            number = generate_account_number()
            assert len(number) == 10
            assert number.isdigit()
            assert ACCOUNT_NUMBER_MIN <= int(number) <= ACCOUNT_NUMBER_MAX
            assert is_valid_account_number(number)

    def test_generated_numbers_vary(self):
        numbers = {generate_account_number() for _ in range(200)}
        # Collisions among 200 draws from 9e9 values are vanishingly rare
        assert len(numbers) >= 199

    def test_validation(self):
        assert is_valid_account_number("1000000000")
        assert is_valid_account_number("9999999999")
        assert not is_valid_account_number("0999999999")
        assert not is_valid_account_number("123456789")
        assert not is_valid_account_number("12345678901")
        assert not is_valid_account_number("12345abcde")
        assert not is_valid_account_number("١٢٣٤٥٦٧٨٩٠")  # non-ASCII digits
        assert not is_valid_account_number(1234567890)
