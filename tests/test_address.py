import pytest

from raffle.utils.address import is_valid_address, normalize_address


class TestAddressValidation:

    @pytest.mark.parametrize("address", [
        "0x" + "a" * 40,
        "0x" + "0123456789abcdef" * 2 + "01234567",
        "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
    ])
    def test_valid(self, address):
        assert is_valid_address(address)

    @pytest.mark.parametrize("address", [
        "not-an-address",
        "",
        "0x",
        "0x" + "a" * 39,
        "0x" + "a" * 41,
        "0x" + "g" * 40,
        "1x" + "a" * 40,
        "a" * 42,
        "0x" + "a" * 40 + "\n",
        " 0x" + "a" * 40,
        None,
        12345
    ])
    def test_invalid(self, address):
        assert not is_valid_address(address)

    def test_normalize_lowercases(self):
        assert normalize_address("0xABCDEF0123456789ABCDEF0123456789ABCDEF01") == \
            "0xabcdef0123456789abcdef0123456789abcdef01"
