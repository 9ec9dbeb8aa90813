import pytest

from filevault.utils.sanitize import (
    build_stored_name,
    extract_suffix,
    format_bytes,
    new_suffix,
    repair_filename_encoding,
    safe_base,
    split_extension,
)


@pytest.mark.unit
class TestRepairFilenameEncoding:
    def test_repairs_latin1_mojibake(self) -> None:
        garbled = "relatório.pdf".encode().decode("latin-1")
        assert repair_filename_encoding(garbled) == "relatório.pdf"

    def test_keeps_plain_ascii(self) -> None:
        assert repair_filename_encoding("hello.txt") == "hello.txt"

    def test_keeps_proper_unicode(self) -> None:
        assert repair_filename_encoding("日本語.txt") == "日本語.txt"

    def test_keeps_genuine_latin1(self) -> None:
        # "é" alone is not valid UTF-8, so the reinterpretation is rejected
        assert repair_filename_encoding("café.txt") == "café.txt"


@pytest.mark.unit
class TestNames:
    def test_split_extension(self) -> None:
        assert split_extension("Report.PDF") == ("Report", ".pdf")
        assert split_extension("archive.tar.gz") == ("archive.tar", ".gz")
        assert split_extension("README") == ("README", "")

    def test_safe_base(self) -> None:
        assert safe_base("my file  name") == "my_file_name"
        assert safe_base("../evil") == "evil"
        assert safe_base('a<b>:c"d') == "abcd"
        assert safe_base("   ") == "file"

    def test_suffix_round_trip(self) -> None:
        suffix = new_suffix()
        stored = build_stored_name("hello world", suffix, ".txt")
        assert stored == f"hello_world-{suffix}.txt"
        assert extract_suffix(stored) == suffix

    def test_suffixes_are_random(self) -> None:
        assert len({new_suffix() for _ in range(50)}) == 50

    def test_extract_suffix_missing(self) -> None:
        assert extract_suffix("plain.txt") is None
        assert extract_suffix("dash-name.txt") is None


@pytest.mark.unit
class TestFormatBytes:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0, "0 B"),
            (11, "11 B"),
            (1024, "1 KB"),
            (1536, "1.5 KB"),
            (1024 * 1024, "1 MB"),
            (5 * 1024**3, "5 GB"),
        ],
    )
    def test_format(self, value: int, expected: str) -> None:
        assert format_bytes(value) == expected
