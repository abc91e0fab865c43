import unittest
from .config import Config
from .sensor import Sensor, CalibrationInfo

SERIAL = '31000000004'

class TestConfig(unittest.TestCase):

    def setUp(self):
        self.config = Config(SERIAL, ':memory:')

    def tearDown(self):
        self.config.close()

    def test_defaults(self):
        self.assertEqual(self.config.sensorSerial, SERIAL)
        self.assertEqual(self.config.patchInfo, b'')
        self.assertEqual(self.config.initialPatchInfo, b'')
        self.assertEqual(self.config.streamingUnlockCode, 0)
        self.assertEqual(self.config.streamingUnlockCount, 0)
        self.assertTrue(self.config.calibrationInfo.isEmpty)
        self.assertEqual(self.config.maxLife, 0)
        self.assertEqual(self.config.sensorAddress, '')

    def test_write_through(self):
        self.config.patchInfo = bytearray.fromhex('9D0830010A52')
        self.config.streamingUnlockCount = 0x10001
        self.config.calibrationInfo = CalibrationInfo(1, 2, -3, 4, 5, 6)
        self.config.sensorAddress = 'E0:07:A0:00:11:22'

        self.config.loadConfig(SERIAL)
        self.assertEqual(self.config.patchInfo, bytes.fromhex('9D0830010A52'))
        self.assertEqual(self.config.streamingUnlockCount, 1)
        self.assertEqual(self.config.calibrationInfo, CalibrationInfo(1, 2, -3, 4, 5, 6))
        self.assertEqual(self.config.sensorAddress, 'E0:07:A0:00:11:22')

    def test_new_streaming_unlock_code(self):
        code = self.config.newStreamingUnlockCode()

        self.assertTrue(0 <= code <= 0xFFFFFFFF)
        self.assertEqual(self.config.streamingUnlockCode, code)

    def test_store_and_restore(self):
        sensor = Sensor(patchInfo = bytes.fromhex('9D0830010A52'))
        sensor.maxLife = 20880
        sensor.calibrationInfo = CalibrationInfo(3, 100, 20, 8000, 9000, 7000)
        self.config.store(sensor)
        self.config.initialPatchInfo = bytes.fromhex('9D0830010A52')
        self.config.streamingUnlockCode = 42
        self.config.streamingUnlockCount = 7

        restored = Sensor()
        self.config.restore(restored)
        self.assertEqual(restored.initialPatchInfo, bytes.fromhex('9D0830010A52'))
        self.assertEqual(restored.streamingUnlockCode, 42)
        self.assertEqual(restored.streamingUnlockCount, 7)
        self.assertEqual(restored.maxLife, 20880)
        self.assertEqual(restored.calibrationInfo, CalibrationInfo(3, 100, 20, 8000, 9000, 7000))

    def test_rows_per_serial(self):
        self.config.maxLife = 100
        self.config.loadConfig('00000000000')
        self.assertIsNone(self.config.data)

if __name__ == '__main__':
    unittest.main()
