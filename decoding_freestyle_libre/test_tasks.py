import os
import shutil
import tempfile
import unittest
from unittest import mock

from .config import Config
from .constants import SENSOR_STATE, SUBCOMMAND, TASK_REQUEST
from .exceptions import DataIncompleteError, UnsupportedOperationException, TimeoutException
from .nfc import NFCSession, Iso15693Tag
from .tasks import runTask, TASKS
from .test_nfc import FakeReader, LIBRE2_PATCH_INFO, LIBRE_SENSE_PATCH_INFO
from .test_sensor import libreFRAM

class TestRunTask(unittest.TestCase):

    def setUp(self):
        self.directory = tempfile.mkdtemp()
        self.database = os.path.join(self.directory, 'read_libre.db')
        patcher = mock.patch.object(NFCSession, 'RETRY_DELAY', 0)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.directory)

    def test_every_request_has_a_task(self):
        self.assertEqual(sorted(TASKS.keys()), sorted(TASK_REQUEST.ALL))

    def test_unknown_request(self):
        with self.assertRaises(ValueError):
            runTask(Iso15693Tag(FakeReader()), 'format')

    def test_read_libre1(self):
        reader = FakeReader(fram = libreFRAM(blocks = 244))
        result = runTask(Iso15693Tag(reader), TASK_REQUEST.READ_FRAM, self.database)

        self.assertTrue(result.success)
        self.assertEqual(result.status, 'readFRAM completed')
        self.assertEqual(len(result.sensor.fram), 244 * 8)
        self.assertEqual(result.sensor.state, SENSOR_STATE.ACTIVE)
        self.assertEqual(result.sensor.trend[0].rawValue, 1040)
        self.assertEqual(len(result.sensor.crcReport.split('\n')), 4)

        config = Config(result.sensor.serial, self.database)
        self.assertEqual(config.patchInfo, reader.patchInfo)
        self.assertEqual(config.maxLife, 21600)
        config.close()

    def test_incomplete_read_is_parsed_and_reported(self):
        reader = FakeReader(fram = libreFRAM(blocks = 244))
        reader.failures[99] = 100
        result = runTask(Iso15693Tag(reader), TASK_REQUEST.READ_FRAM, self.database)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, DataIncompleteError)
        self.assertTrue(result.status.startswith('Incomplete read'))
        self.assertEqual(len(result.sensor.fram), 99 * 8)
        self.assertEqual(result.sensor.trend[0].rawValue, 1040)

    def test_unsupported_operation(self):
        reader = FakeReader(patchInfo = LIBRE2_PATCH_INFO)
        result = runTask(Iso15693Tag(reader), TASK_REQUEST.PROLONG, self.database)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, UnsupportedOperationException)
        self.assertEqual(result.status, 'FRAM overwriting not supported by Libre 2')
        self.assertEqual(result.sensor.fram, b'')

    def test_silent_tag(self):
        reader = FakeReader()
        reader.silent = True
        result = runTask(Iso15693Tag(reader), TASK_REQUEST.READ_FRAM, self.database)

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, TimeoutException)
        self.assertIsNone(result.sensor)

    def test_enable_streaming(self):
        reader = FakeReader(patchInfo = LIBRE2_PATCH_INFO)
        reader.responses[SUBCOMMAND.ENABLE_STREAMING] = bytes.fromhex('a1b2c3d4e5f6')
        result = runTask(Iso15693Tag(reader), TASK_REQUEST.ENABLE_STREAMING, self.database)

        sensor = result.sensor
        self.assertTrue(result.success)
        self.assertEqual(sensor.initialPatchInfo, LIBRE2_PATCH_INFO)
        self.assertEqual(sensor.streamingUnlockCount, 0)
        self.assertEqual(sensor.trend[0].rawValue, 1040)

        config = Config(sensor.serial, self.database)
        self.assertEqual(config.sensorAddress, 'F6:E5:D4:C3:B2:A1')
        self.assertEqual(config.initialPatchInfo, LIBRE2_PATCH_INFO)
        self.assertEqual(config.streamingUnlockCode, sensor.streamingUnlockCode)
        self.assertNotEqual(config.streamingUnlockCode, 0)
        config.close()

        frame = [ frame for frame in reader.frames if frame[:4] == bytes.fromhex('02a1071e') ][0]
        self.assertEqual(len(frame), 4 + 4 + 4)

    def test_gen2_read_authenticates(self):
        reader = FakeReader(patchInfo = LIBRE_SENSE_PATCH_INFO)
        reader.responses[SUBCOMMAND.READ_CHALLENGE] = bytes(25)
        reader.responses[SUBCOMMAND.GET_SESSION_INFO] = bytes(8)
        authenticator = mock.Mock()
        authenticator.authenticatedCommand.return_value = (1, bytes.fromhex('02a1071f00'))
        result = runTask(Iso15693Tag(reader), TASK_REQUEST.READ_FRAM, None, authenticator)

        self.assertTrue(result.success)
        self.assertEqual(result.sensor.trend[0].rawValue, 1040)
        self.assertEqual(authenticator.authenticatedCommand.call_count, 1)

    def test_dump_libre1(self):
        reader = FakeReader(fram = libreFRAM(blocks = 244))
        with self.assertLogs('decoding_freestyle_libre.tasks', level = 'INFO') as logs:
            result = runTask(Iso15693Tag(reader), TASK_REQUEST.DUMP, None)

        self.assertTrue(result.success)
        self.assertTrue(any('FRAM:' in line for line in logs.output))
        self.assertTrue(any('B0/B3 commands not supported' in line for line in logs.output))

    def test_prolong_libre1(self):
        reader = FakeReader(fram = libreFRAM(blocks = 244))
        result = runTask(Iso15693Tag(reader), TASK_REQUEST.PROLONG, None)

        self.assertTrue(result.success)
        self.assertEqual(reader.memory[326:328], b'\xff\xff')
        self.assertEqual(result.sensor.maxLife, 0xFFFF)
        self.assertNotIn('FAILED', result.sensor.crcReport)

if __name__ == '__main__':
    unittest.main()
