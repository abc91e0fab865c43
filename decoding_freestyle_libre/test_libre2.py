import unittest
import struct
from Crypto.Util.strxor import strxor

from .checksum import crc16
from .constants import SENSOR_TYPE
from .exceptions import DecryptionException, UnsupportedOperationException
from .libre2 import decryptFRAM, encryptFRAM, decryptBLE, bleKeystream, usefulFunction, processCrypto, \
    streamingUnlockPayload

UID = bytes.fromhex('a1b2c3d4e5f607e0')
PATCH_INFO = bytes.fromhex('9D0830010A52')

def encryptedBLE( uid, plain, seed = 0x1234 ):
    payload = bytes( plain[:42] ) + struct.pack( '<H', crc16( plain[:42] ) )
    return struct.pack( '<H', seed ) + strxor( payload, bleKeystream( uid, seed )[:44] )

class TestProcessCrypto(unittest.TestCase):

    def test_is_deterministic(self):
        words = [ 0x1234, 0x5678, 0x9abc, 0xdef0 ]
        self.assertEqual(processCrypto(words), processCrypto(list(words)))
        self.assertEqual(len(processCrypto(words)), 4)
        self.assertTrue(all(0 <= w <= 0xFFFF for w in processCrypto(words)))

    def test_usefulFunction(self):
        block = usefulFunction(UID, 0x1B, 0x1b6a)
        self.assertEqual(len(block), 4)
        self.assertEqual(block, usefulFunction(UID, 0x1B, 0x1b6a))
        self.assertNotEqual(block, usefulFunction(UID, 0x1E, 0x1b6a))

class TestDecryptFRAM(unittest.TestCase):

    def test_is_an_involution(self):
        fram = bytes( ( i * 7 ) & 0xFF for i in range( 344 ) )
        for sensorType in ( SENSOR_TYPE.LIBRE2, SENSOR_TYPE.LIBRE_US_14DAY ):
            encrypted = encryptFRAM(sensorType, UID, PATCH_INFO, fram)
            self.assertNotEqual(encrypted, fram)
            self.assertEqual(decryptFRAM(sensorType, UID, PATCH_INFO, encrypted), fram)

    def test_blocks_use_different_keystreams(self):
        encrypted = encryptFRAM(SENSOR_TYPE.LIBRE2, UID, PATCH_INFO, bytes(344))
        self.assertNotEqual(encrypted[0:8], encrypted[8:16])

    def test_unsupported_type(self):
        with self.assertRaises(UnsupportedOperationException):
            decryptFRAM(SENSOR_TYPE.LIBRE1, UID, PATCH_INFO, bytes(344))

class TestDecryptBLE(unittest.TestCase):

    def setUp(self):
        self.plain = bytes( range( 42 ) )
        self.data = encryptedBLE(UID, self.plain)

    def test_decrypts(self):
        result = decryptBLE(UID, self.data)

        self.assertEqual(len(self.data), 46)
        self.assertEqual(result[:42], self.plain)
        self.assertEqual(struct.unpack('<H', result[42:44])[0], crc16(self.plain))

    def test_rejects_any_flipped_bit(self):
        for bit in range(len(self.data) * 8):
            corrupted = bytearray(self.data)
            corrupted[bit // 8] ^= 1 << (bit % 8)
            with self.assertRaises(DecryptionException):
                decryptBLE(UID, corrupted)

    def test_rejects_wrong_uid(self):
        with self.assertRaises(DecryptionException):
            decryptBLE(bytes.fromhex('01020304050607e0'), self.data)

    def test_rejects_short_payload(self):
        with self.assertRaises(DecryptionException):
            decryptBLE(UID, self.data[:40])

class TestStreamingUnlockPayload(unittest.TestCase):

    def test_layout(self):
        payload = streamingUnlockPayload(UID, PATCH_INFO, 1000, 3)

        self.assertEqual(len(payload), 12)
        self.assertEqual(payload[:4], struct.pack('<I', 1003))

    def test_changes_with_the_count(self):
        self.assertNotEqual(streamingUnlockPayload(UID, PATCH_INFO, 1000, 3)[4:],
            streamingUnlockPayload(UID, PATCH_INFO, 1000, 4)[4:])
        self.assertEqual(streamingUnlockPayload(UID, PATCH_INFO, 1000, 3),
            streamingUnlockPayload(UID, PATCH_INFO, 1000, 3))

if __name__ == '__main__':
    unittest.main()
