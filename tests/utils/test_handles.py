import pytest

from unidrive.exceptions import NotFoundError
from unidrive.schemas.drive import ItemRef
from unidrive.services.conflicts import ItemType
from unidrive.utils.handles import decrypt_id, encrypt_id
from unidrive.utils.ids import BASE62_CHARS, generate_file_id, generate_share_token
from unidrive.utils.refs import file_id_from_str, folder_id_from_handle, split_refs


class TestFolderHandles:
    """Encrypted folder handle tests"""

    @pytest.mark.parametrize("value", [1, 42, 2**31, 2**63 - 1])
    def test_round_trip(self, value):
        """Test decrypt(encrypt(id)) returns the id"""
        assert decrypt_id(encrypt_id(value)) == value

    def test_handles_are_not_deterministic(self):
        """Test the same id yields different handles"""
        assert encrypt_id(7) != encrypt_id(7)

    def test_tampered_handle(self):
        """Test a modified handle decrypts to nothing"""
        handle = encrypt_id(7)
        tampered = handle[:-4] + ("AAAA" if not handle.endswith("AAAA") else "BBBB")
        assert decrypt_id(tampered) is None

    @pytest.mark.parametrize("handle", [None, "", "garbage", "報告", "1", "%%%"])
    def test_malformed_handle(self, handle):
        """Test malformed input never raises"""
        assert decrypt_id(handle) is None

    def test_other_secret(self):
        """Test a handle from another key is rejected"""
        assert decrypt_id(encrypt_id(7, secret="one"), secret="two") is None


class TestIds:
    """Identifier generation tests"""

    def test_file_ids_fit_signed_64_bit(self):
        """Test file ids are positive 63-bit integers"""
        ids = {generate_file_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(0 < i < 2**63 for i in ids)

    def test_share_token(self):
        """Test share tokens are base62"""
        token = generate_share_token()
        assert len(token) == 12
        assert set(token) <= set(BASE62_CHARS)


class TestRefs:
    """Outward reference parsing tests"""

    def test_folder_handle(self):
        """Test a handle resolves or raises NotFoundError"""
        assert folder_id_from_handle(encrypt_id(5)) == 5
        with pytest.raises(NotFoundError):
            folder_id_from_handle("nope")

    def test_file_id(self):
        """Test file ids arrive as strings"""
        assert file_id_from_str("9007199254740993") == 9007199254740993
        for value in ("abc", "-1", "0", None, str(2**63), "9" * 30):
            with pytest.raises(NotFoundError):
                file_id_from_str(value)

    def test_split_refs_drops_unreadable(self):
        """Test unreadable refs are ignored"""
        refs = [
            ItemRef(type=ItemType.FILE, id="12"),
            ItemRef(type=ItemType.FOLDER, id=encrypt_id(3)),
            ItemRef(type=ItemType.FOLDER, id="tampered"),
            ItemRef(type=ItemType.FILE, id="x"),
        ]
        assert split_refs(refs) == ([12], [3])
