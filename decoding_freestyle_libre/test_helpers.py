import unittest
import datetime
from .helpers import BitField, readBits, writeBits, hexDump, hexlify, BinaryDataDecoder, DateTimeHelper

class TestBitField(unittest.TestCase):

    def test_readBits(self):
        data = bytearray.fromhex('ABCD')

        self.assertEqual(readBits(data, 0, 0, 8), 0xAB)
        self.assertEqual(readBits(data, 0, 4, 8), 0xDA)
        self.assertEqual(readBits(data, 1, 0, 4), 0x0D)
        self.assertEqual(readBits(data, 0, 0, 16), 0xCDAB)
        self.assertEqual(readBits(data, 0, 15, 1), 1)
        self.assertEqual(readBits(data, 0, 3, 0), 0)

    def test_any_byte_buffer(self):
        for data in (bytes.fromhex('ABCD'), bytearray.fromhex('ABCD'), memoryview(b'\xab\xcd')):
            field = BitField(data)
            self.assertEqual(field.readBits(0, 4, 8), 0xDA)
            self.assertEqual(field.bytes, bytearray.fromhex('ABCD'))

    def test_writeBits_across_bytes(self):
        data = writeBits(bytearray.fromhex('ABCD'), 0, 4, 8, 0x12)

        self.assertEqual(data, bytearray.fromhex('2BC1'))

    def test_writeBits_masks_value(self):
        data = writeBits(bytearray(2), 0, 2, 3, 0xFF)

        self.assertEqual(data, bytearray.fromhex('1C00'))

    def test_write_then_read_other_fields_untouched(self):
        field = BitField(bytearray.fromhex('00000000000000'))
        field.writeBits(1, 2, 0xe, 0x2A5A)
        field.writeBits(4, 0, 9, 0x155)

        self.assertEqual(field.readBits(1, 2, 0xe), 0x2A5A)
        self.assertEqual(field.readBits(4, 0, 9), 0x155)
        self.assertEqual(field.readBits(0, 0, 8), 0)
        self.assertEqual(field.readBits(1, 0, 2), 0)
        self.assertEqual(len(field.bytes), 7)

class TestBinaryDataDecoder(unittest.TestCase):

    def test_little_endian(self):
        data = bytearray.fromhex('3412785600')

        self.assertEqual(BinaryDataDecoder.readUInt16LE(data, 0), 0x1234)
        self.assertEqual(BinaryDataDecoder.readUInt32LE(data, 0), 0x56781234)
        self.assertEqual(BinaryDataDecoder.makeUInt16(0x12, 0x34), 0x1234)
        self.assertEqual(BinaryDataDecoder.packUInt16LE(0x1234), b'\x34\x12')

class TestHexDump(unittest.TestCase):

    def test_blocks(self):
        lines = hexDump(b'ABCDEFGH\x00', 'FRAM:', startBlock = 0).split('\n')

        self.assertEqual(lines[0], 'FRAM:')
        self.assertEqual(lines[1], '00  41 42 43 44 45 46 47 48  ABCDEFGH')
        self.assertEqual(lines[2], '01  ' + '00'.ljust(23) + '  .')

    def test_addresses(self):
        lines = hexDump(bytes(16), address = 0xF860).split('\n')

        self.assertEqual(lines[0][:4], 'F860')
        self.assertEqual(lines[1][:4], 'F868')

    def test_hexlify(self):
        self.assertEqual(hexlify(bytearray.fromhex('DF0000')), 'df0000')

class TestDateTimeHelper(unittest.TestCase):

    def test_formattedInterval(self):
        self.assertEqual(DateTimeHelper.formattedInterval(0), '0 minutes')
        self.assertEqual(DateTimeHelper.formattedInterval(61), '1 hour, 1 minute')
        self.assertEqual(DateTimeHelper.formattedInterval(1500), '1 day, 1 hour')
        self.assertEqual(DateTimeHelper.formattedInterval(20160), '14 days')

    def test_startDate(self):
        last = datetime.datetime(2021, 3, 1, 12, 0)
        self.assertEqual(DateTimeHelper.startDate(last, 90), datetime.datetime(2021, 3, 1, 10, 30))

    def test_now_is_aware(self):
        self.assertIsNotNone(DateTimeHelper.now().tzinfo)

if __name__ == '__main__':
    unittest.main()
