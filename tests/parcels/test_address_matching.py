"""
Tests for search address parsing and search-result matching.
"""
from src.parcels.scrapers.base import SearchRow, parse_int, parse_money, parse_number, select_best_result
from src.parcels.transformers.address_parser import AddressParser, parse_address


class TestAddressParser:
    """Tests for AddressParser."""

    def test_full_address(self):
        """Test splitting street, city, state and zip."""
        parsed = parse_address("123 North Main Street, Bradenton, FL 34205")

        assert parsed.street_number == "123"
        assert parsed.street_name == "N MAIN ST"
        assert parsed.normalized_street == "123 N MAIN ST"
        assert parsed.city == "Bradenton"
        assert parsed.state == "FL"
        assert parsed.zip_code == "34205"

    def test_unit_designators(self):
        """Test that unit designators are split off the street."""
        assert parse_address("5701 Long Common Cir #13, Sarasota").unit == "13"
        assert parse_address("456 Beach Dr Unit 302").unit == "302"
        assert parse_address("5692 Bentgrass Dr Unit #14-209, Sarasota, FL 34235").unit == "14-209"
        assert parse_address("5692 Bentgrass Dr Unit #14-209").street == "5692 Bentgrass Dr"

    def test_default_state(self):
        """Test that the state defaults when omitted."""
        assert parse_address("123 Main St, Bradenton").state == "FL"
        assert AddressParser(default_state=None).parse("123 Main St").state is None

    def test_zip_without_state(self):
        """Test a zip code in the state position."""
        assert parse_address("123 Main St, Bradenton, 34205").zip_code == "34205"

    def test_leading_suffix_word_is_kept(self):
        """Test that a street named like a suffix is not abbreviated."""
        assert AddressParser().normalize_street("Court Street") == "COURT ST"

    def test_significant_tokens(self):
        """Test that short tokens are ignored for matching."""
        assert parse_address("10 N Oak Ave").significant_street_tokens() == ["oak", "ave"]

    def test_empty(self):
        """Test that a blank address parses to an empty result."""
        parsed = parse_address("  ")
        assert parsed.street_number is None
        assert parsed.state == "FL"


class TestValueParsing:
    """Tests for cell value parsers."""

    def test_money(self):
        """Test currency parsing."""
        assert parse_money(" $250,000 ") == 250000.0
        assert parse_money("$3,120.55") == 3120.55
        assert parse_money("N/A") is None
        assert parse_money(None) is None

    def test_number_and_int(self):
        """Test number and leading integer parsing."""
        assert parse_number("1,850") == 1850.0
        assert parse_int("3 BR") == 3
        assert parse_int("none") is None


def _rows(*texts):
    return [SearchRow(text=text, href=f"/parcel/?parid={i}") for i, text in enumerate(texts)]


class TestSelectBestResult:
    """Tests for select_best_result."""

    def test_street_match(self):
        """Test that the row with the number and street name wins."""
        rows = _rows("456 OAK AVE BRADENTON", "123 MAIN ST BRADENTON")

        match = select_best_result(rows, "123 Main Street, Bradenton, FL 34205")

        assert match.address_found
        assert match.row is rows[1]
        assert match.confidence == 0.9
        assert match.reason == "street_match"

    def test_street_number_must_be_a_token(self):
        """Test that 123 does not match inside 1234."""
        rows = _rows("1234 MAIN ST", "4123 MAIN ST")

        match = select_best_result(rows, "123 Main St")

        assert not match.address_found
        assert match.row is None
        assert match.reason == "street_number_not_found"

    def test_unit_match(self):
        """Test that the row with the requested unit is chosen."""
        rows = _rows("5692 BENTGRASS DR #14-207", "5692 BENTGRASS DR #14-209")

        match = select_best_result(rows, "5692 Bentgrass Dr Unit #14-209, Sarasota, FL 34235")

        assert match.row is rows[1]
        assert match.confidence == 0.95

    def test_short_unit_does_not_match_street_number(self):
        """Test that unit 13 does not match the 13 inside the street number 5713."""
        rows = _rows("5713 LONG COMMON CIR #12", "5713 LONG COMMON CIR #13")

        match = select_best_result(rows, "5713 Long Common Cir #13")

        assert match.row is rows[1]

    def test_single_row_needs_only_number(self):
        """Test that a lone row with the street number is accepted."""
        rows = _rows("123 MAIN STREET EXT")

        match = select_best_result(rows, "123 Main St")

        assert match.address_found
        assert match.confidence == 0.9
        assert match.reason == "single_row"

    def test_single_row_other_street_low_confidence(self):
        """Test that a lone row matching only the street number is kept at low confidence."""
        rows = _rows("100 OAK AVE")

        match = select_best_result(rows, "100 Main St")

        assert match.address_found
        assert match.row is rows[0]
        assert match.confidence == 0.5
        assert match.reason == "single_row_street_mismatch"

    def test_rejects_when_street_name_differs(self):
        """Test that rows with the number but another street are rejected, never defaulted."""
        rows = _rows("123 OAK AVE", "123 PINE ST")

        match = select_best_result(rows, "123 Main St")

        assert not match.address_found
        assert match.row is None
        assert match.reason == "street_name_not_found"

    def test_no_rows(self):
        """Test that an empty result set is not a match."""
        assert select_best_result([], "123 Main St").reason == "no_rows"
