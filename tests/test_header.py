from pydantic import ValidationError

from tarcodec.constants import UNREADABLE_TEXT
from tarcodec.enums import LinkIndicator, Permission, SpecialBits
from tarcodec.header import HeaderFieldError, TarHeader, classify_block, encode_header
from tarcodec.octal import decode_octal_field, header_checksum
from tarcodec.schemas import FileMode, HeaderBlock, MalformedBlock, Metadata, NullBlock
from tests.base import TarCodecTestCase


class TestHeaderLayout(TarCodecTestCase):
    """Every field must sit at its exact USTAR offset."""

    def test_header_is_one_block(self):
        header = encode_header(self.create_metadata())
        self.assertEqual(len(header), 512)

    def test_field_offsets(self):
        metadata = self.create_metadata(
            filename="one.txt",
            owner_id=1000,
            group_id=100,
            file_size=3,
            last_modification_time=0o1234567,
            user_name="alice",
            group_name="staff",
            file_name_prefix="docs",
        )
        header = encode_header(metadata)

        self.assertEqual(header[0:100], b"one.txt" + b"\0" * 93)
        self.assertEqual(header[100:108], b"000644 \0")
        self.assertEqual(header[108:116], b"001750 \0")
        self.assertEqual(header[116:124], b"000144 \0")
        self.assertEqual(header[124:136], b"00000000003 ")
        self.assertEqual(header[136:148], b"00001234567 ")
        self.assertEqual(header[154:156], b"\0 ")
        self.assertEqual(header[156:157], b"0")
        self.assertEqual(header[157:257], b"\0" * 100)
        self.assertEqual(header[257:263], b"ustar\0")
        self.assertEqual(header[263:265], b"00")
        self.assertEqual(header[265:297], b"alice" + b"\0" * 27)
        self.assertEqual(header[297:329], b"staff" + b"\0" * 27)
        self.assertEqual(header[329:345], b"0000000 0000000 ")
        self.assertEqual(header[345:500], b"docs" + b"\0" * 151)
        self.assertEqual(header[500:512], b"\0" * 12)

    def test_type_flags(self):
        for indicator, flag in [
            (LinkIndicator.NORMAL_FILE, b"0"),
            (LinkIndicator.HARD_LINK, b"1"),
            (LinkIndicator.SYMBOLIC_LINK, b"2"),
        ]:
            header = encode_header(self.create_metadata(link_indicator=indicator))
            self.assertEqual(header[156:157], flag)

    def test_special_bits_live_in_the_mode_field(self):
        mode = FileMode.from_octal(0o4755)
        self.assertEqual(mode.special, SpecialBits.SETUID)
        rwx = Permission.READ | Permission.WRITE | Permission.EXECUTE
        self.assertEqual(mode.user, rwx)

        header = encode_header(self.create_metadata(mode=mode))
        self.assertEqual(header[100:108], b"004755 \0")

    def test_checksum_is_valid(self):
        """The stored checksum equals the byte sum with the field blanked."""
        for metadata in [
            self.create_metadata(),
            self.create_metadata(
                filename="ñandú.csv", user_name="ü", file_size=123456
            ),
            self.create_metadata(mode=FileMode.from_octal(0o7777), owner_id=0o777777),
        ]:
            header = encode_header(metadata)
            stored = decode_octal_field(header[148:156])
            self.assertEqual(stored, header_checksum(header))

    def test_binary_identity(self):
        """Same metadata, same bytes."""
        h1 = encode_header(self.create_metadata(filename="a/b.txt"))
        h2 = encode_header(self.create_metadata(filename="a/b.txt"))
        self.assertEqual(h1, h2)

    def test_long_filename_is_truncated_unicode_safe(self):
        metadata = self.create_metadata(filename="€" * 40)
        header = encode_header(metadata)

        name_field = header[0:100]
        self.assertEqual(name_field[99:100], b"\0")
        self.assertEqual(name_field.rstrip(b"\0").decode("utf-8"), "€" * 33)

    def test_builder_rejects_octal_overflow(self):
        builder = TarHeader(self.create_metadata())
        with self.assertRaises(HeaderFieldError):
            builder.set_octal((108, 8), 6, 0o1000000, b" \0")

    def test_large_id_uses_the_whole_field(self):
        header = encode_header(self.create_metadata(owner_id=300000))
        self.assertEqual(header[108:116], b"1111740\0")

        result = classify_block(header)
        self.assertIsInstance(result, HeaderBlock)
        self.assertEqual(result.metadata.owner_id, 300000)

    def test_large_size_uses_the_whole_field(self):
        metadata = self.create_metadata(last_modification_time=0o777777777777)
        header = encode_header(metadata)
        self.assertEqual(header[136:148], b"777777777777")
        self.assertEqual(classify_block(header).metadata, metadata)


class TestMetadataValidation(TarCodecTestCase):
    def test_out_of_range_ids_are_rejected(self):
        with self.assertRaises(ValidationError):
            Metadata(filename="x", owner_id=-1)
        with self.assertRaises(ValidationError):
            Metadata(filename="x", group_id=0o100000000)
        with self.assertRaises(ValidationError):
            Metadata(filename="x", file_size=0o1000000000000)

    def test_metadata_is_immutable(self):
        metadata = self.create_metadata()
        with self.assertRaises(ValidationError):
            metadata.filename = "other"

    def test_extension(self):
        self.assertEqual(Metadata(filename="a.tar.txt").extension, "txt")
        self.assertIsNone(Metadata(filename="README").extension)
        self.assertIsNone(Metadata(filename="dir.d/README").extension)
        self.assertIsNone(Metadata(filename="trailing.").extension)

    def test_split_path(self):
        path = "a" * 90 + "/" + "b" * 50
        self.assertEqual(Metadata.split_path(path), ("b" * 50, "a" * 90))
        self.assertEqual(Metadata.split_path("short/path.txt"), ("short/path.txt", ""))

        metadata = Metadata.for_path(path)
        self.assertEqual(metadata.full_path, path)

    def test_split_path_impossible(self):
        with self.assertRaisesRegex(ValueError, "cannot be split"):
            Metadata.split_path("a" * 90 + "/" + "b" * 90 + "/" + "c" * 70)


class TestBlockClassification(TarCodecTestCase):
    def test_header_block(self):
        metadata = self.create_metadata(
            filename="one.txt",
            mode=FileMode.from_octal(0o2750),
            link_indicator=LinkIndicator.SYMBOLIC_LINK,
            linked_file_name="target.txt",
            file_name_prefix="docs",
        )
        result = classify_block(encode_header(metadata))

        self.assertIsInstance(result, HeaderBlock)
        self.assertEqual(result.metadata, metadata)
        self.assertEqual(result.inferred_extension, "txt")

    def test_null_block(self):
        self.assertIsInstance(classify_block(b"\0" * 512), NullBlock)

    def test_malformed_block(self):
        self.assertIsInstance(classify_block(b"x" * 512), MalformedBlock)
        self.assertIsInstance(classify_block(b"\0" * 100), MalformedBlock)

    def test_checksum_mismatch(self):
        header = bytearray(encode_header(self.create_metadata()))
        header[0] = ord("X")

        result = classify_block(bytes(header))
        self.assertIsInstance(result, MalformedBlock)
        self.assertIn("Checksum", result.reason)

        lenient = classify_block(bytes(header), verify_checksum=False)
        self.assertIsInstance(lenient, HeaderBlock)
        self.assertEqual(lenient.metadata.filename, "Xile.txt")

    def test_unreadable_text_field_gets_placeholder(self):
        header = encode_header(self.create_metadata())
        header = self.patch_header(header, 265, b"\xff\xfe\0")

        result = classify_block(header)
        self.assertIsInstance(result, HeaderBlock)
        self.assertEqual(result.metadata.user_name, UNREADABLE_TEXT)

    def test_unparseable_number_decodes_to_zero(self):
        header = encode_header(self.create_metadata(owner_id=42))
        header = self.patch_header(header, 108, b"zz\0")

        result = classify_block(header)
        self.assertIsInstance(result, HeaderBlock)
        self.assertEqual(result.metadata.owner_id, 0)

    def test_full_width_numbers_are_read(self):
        """Other writers use the whole field: 7 digits for ids, 12 for sizes."""
        header = encode_header(self.create_metadata())
        header = self.patch_header(header, 108, b"7777777\0")
        header = self.patch_header(header, 136, b"777777777777")

        result = classify_block(header)
        self.assertIsInstance(result, HeaderBlock)
        self.assertEqual(result.metadata.owner_id, 0o7777777)
        self.assertEqual(result.metadata.last_modification_time, 0o777777777777)

    def test_empty_type_flag_means_regular_file(self):
        metadata = self.create_metadata(link_indicator=LinkIndicator.HARD_LINK)
        header = encode_header(metadata)
        header = self.patch_header(header, 156, b"\0")

        result = classify_block(header)
        self.assertEqual(result.metadata.link_indicator, LinkIndicator.NORMAL_FILE)

    def test_unsupported_type_flag_means_regular_file(self):
        header = encode_header(self.create_metadata(filename="dir/"))
        header = self.patch_header(header, 156, b"5")

        result = classify_block(header)
        self.assertIsInstance(result, HeaderBlock)
        self.assertEqual(result.metadata.link_indicator, LinkIndicator.NORMAL_FILE)
