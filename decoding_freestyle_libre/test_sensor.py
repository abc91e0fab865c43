import unittest
import struct
import datetime

from .checksum import crc16, checksummedFRAM
from .constants import SENSOR_TYPE, SENSOR_STATE, SENSOR_FAMILY
from .sensor import Sensor, Glucose, Calibration, CalibrationInfo, factoryGlucose, parseBLEData, crcReport, \
    serialNumber, encodeStatusCode, decodeStatusCode, layoutFor, LIBRE_LAYOUT, LIBRE_PRO_LAYOUT

LIBRE1_PATCH_INFO = bytes.fromhex('DF0000080000')
LIBRE_PRO_PATCH_INFO = bytes.fromhex('700010000000')
LAST_READING = datetime.datetime(2021, 3, 1, 12, 0)

# A Libre Pro/H memory image read from a worn sensor
PRO_UID = bytes.fromhex('6e58b50300a407e0')
PRO_PATCH_INFO = bytes.fromhex('70001000e42e3a03')
PRO_FRAM = bytes.fromhex(''.join([
    # header
    'D340000003000000', '0000000000000000', '0000000000000000', '4A4647553236392D', '543033313147040E',
    # footer
    'C7DD1000F00BC04E', '140396805A00EDA6', '0E6E5AAF044D5A63', '3A03CB1B00000000',
    # body
    '6E6FE61405006401', '7743AFFCDC008043', 'AF10DD006D43AF00', 'DD009F43AF20DD00', '7943AF5CDD007A43',
    'AFCCDC005543AFD0', 'DC008B43AFD8DC00', '8443AFDCDC008543', 'AFF4DC008443AFE4', 'DC005843AFDCDC00',
    '8543AFE0DC007F43', 'AFE4DC007643AFE8', 'DC00A943AFE4DC00',
    # history
    '7D8380B69701C043', 'AFF4D601BE43AF80', 'D601CC43AF30D601', '4A43AF08D601D740', 'AFF4D5012042AF20',
    'D6017042AFE4D501', '3443AFE81502B343', 'AFCCD5014443AFF0', 'D5015243AFFCD501', 'A743AFEC1502A843',
    'AFBC1502CE43AFAC', '1502B843AFB41502', '4942AF8CD6018B41', 'AF64D601E140AF30', 'D6016241AF20D601',
    '5D41AF00D601BE42', 'AFDC1502E542AFF4', 'D501DF42AF28D601', '5543AF2CD601A042', 'AF28D6014543AF3C',
    'D6013343AF34D601',
]))

def libreFRAM( age = 1000, state = SENSOR_STATE.ACTIVE, trendIndex = 5, historyIndex = 3, blocks = 43 ):
    """A checksummed Libre 1 image: trend slot j holds 1000 + 10 j,
    history slot j holds 2000 + 10 j."""
    fram = bytearray( blocks * 8 )
    fram[4] = state
    fram[26] = trendIndex
    fram[27] = historyIndex
    for j in range( 16 ):
        fram[28 + j * 6:30 + j * 6] = struct.pack( '<H', 1000 + 10 * j )
    for j in range( 32 ):
        fram[124 + j * 6:126 + j * 6] = struct.pack( '<H', 2000 + 10 * j )
    fram[316:318] = struct.pack( '<H', age )
    fram[323] = 0x01
    fram[326:328] = struct.pack( '<H', 21600 )
    return checksummedFRAM( fram )

def proFRAM( age = 500, trendIndex = 2, historyIndex = 1 ):
    fram = bytearray( 46 * 8 )
    fram[4] = SENSOR_STATE.ACTIVE
    fram[43] = 0x02
    fram[46:48] = struct.pack( '<H', 20160 )
    fram[74:76] = struct.pack( '<H', age )
    fram[76:78] = struct.pack( '<H', trendIndex )
    fram[78:80] = struct.pack( '<H', historyIndex )
    for j in range( 16 ):
        fram[80 + j * 6:82 + j * 6] = struct.pack( '<H', 700 + j )
    fram[176:178] = struct.pack( '<H', 900 )
    for offset, end in ( ( 0, 40 ), ( 40, 72 ), ( 72, 176 ) ):
        fram[offset:offset + 2] = struct.pack( '<H', crc16( fram[offset + 2:end] ) )
    return bytes( fram )

def bleData( wearTime = 2000 ):
    """Decrypted BLE payload: record i holds 1000 + 10 i."""
    data = bytearray( 44 )
    for i in range( 10 ):
        data[i * 4:i * 4 + 2] = struct.pack( '<H', 1000 + 10 * i )
    data[40:42] = struct.pack( '<H', wearTime )
    data[42:44] = struct.pack( '<H', crc16( data[:42] ) )
    return bytes( data )

class TestSerialNumber(unittest.TestCase):

    def test_serialNumber(self):
        self.assertEqual(serialNumber(bytes.fromhex('00000000000007e0')), '00000000000')
        self.assertEqual(serialNumber(bytes.fromhex('01000000000807e0')), '01000000004')
        self.assertEqual(serialNumber(bytes.fromhex('01000000000807e0'), SENSOR_FAMILY.LIBRE2), '31000000004')

    def test_bad_uid(self):
        self.assertEqual(serialNumber(b'\x00\x01'), '')

    def test_sensor_follows_family(self):
        sensor = Sensor(bytes.fromhex('01000000000807e0'), bytes.fromhex('9D0830010000'))

        self.assertEqual(sensor.type, SENSOR_TYPE.LIBRE2)
        self.assertEqual(sensor.family, SENSOR_FAMILY.LIBRE2)
        self.assertEqual(sensor.serial, '31000000004')
        self.assertEqual(sensor.securityGeneration, 1)

class TestStatusCode(unittest.TestCase):

    def test_encode(self):
        self.assertEqual(encodeStatusCode(0), '0000000000')
        self.assertEqual(encodeStatusCode(1), '1000000000')
        self.assertEqual(encodeStatusCode(33), '1100000000')

    def test_decode(self):
        self.assertEqual(decodeStatusCode('1100000000'), 33)
        value = 0x2F5A3C1B9E7
        self.assertEqual(decodeStatusCode(encodeStatusCode(value)), value)

    def test_invalid_character(self):
        with self.assertRaises(ValueError):
            decodeStatusCode('B000000000')

class TestSensorType(unittest.TestCase):

    def test_security_generation(self):
        self.assertEqual(Sensor(patchInfo = LIBRE1_PATCH_INFO).securityGeneration, 0)
        self.assertEqual(Sensor(patchInfo = bytes.fromhex('9D0839010000')).securityGeneration, 2)
        self.assertEqual(Sensor(patchInfo = bytes.fromhex('760074010000')).type, SENSOR_TYPE.LIBRE_SENSE)
        self.assertEqual(Sensor(patchInfo = bytes.fromhex('760074010000')).securityGeneration, 2)
        self.assertEqual(Sensor(patchInfo = bytes.fromhex('760032020000')).type, SENSOR_TYPE.LIBRE2_US)
        self.assertEqual(Sensor(patchInfo = bytes.fromhex('A2083001000000')).type, SENSOR_TYPE.LIBRE1)

    def test_truncated_patch_info(self):
        self.assertEqual(SENSOR_TYPE.fromPatchInfo(bytes.fromhex('7600')), SENSOR_TYPE.UNKNOWN)
        self.assertEqual(SENSOR_TYPE.fromPatchInfo(bytes.fromhex('760074')), SENSOR_TYPE.UNKNOWN)
        self.assertEqual(SENSOR_TYPE.fromPatchInfo(b''), SENSOR_TYPE.UNKNOWN)

    def test_layout(self):
        self.assertIs(layoutFor(SENSOR_TYPE.LIBRE_PRO_H), LIBRE_PRO_LAYOUT)
        self.assertIs(layoutFor(SENSOR_TYPE.LIBRE2), LIBRE_LAYOUT)

class TestParseFRAM(unittest.TestCase):

    def setUp(self):
        self.fram = libreFRAM()
        self.sensor = Sensor(bytes.fromhex('01000000000807e0'), LIBRE1_PATCH_INFO)

    def test_crc_report(self):
        expected = '\n'.join([
            'Sensor header CRC16: {0:04x}, computed: {0:04x} -> OK'.format(crc16(self.fram[2:24])),
            'Sensor body CRC16: {0:04x}, computed: {0:04x} -> OK'.format(crc16(self.fram[26:320])),
            'Sensor footer CRC16: {0:04x}, computed: {0:04x} -> OK'.format(crc16(self.fram[322:344])),
        ])
        self.assertEqual(crcReport(self.fram), expected)

    def test_crc_report_failed_section(self):
        fram = bytearray(self.fram)
        fram[330] ^= 0xFF
        lines = crcReport(fram).split('\n')

        self.assertTrue(lines[0].endswith('-> OK'))
        self.assertTrue(lines[1].endswith('-> OK'))
        self.assertEqual(lines[2], 'Sensor footer CRC16: {0:04x}, computed: {1:04x} -> FAILED'.format(
            crc16(self.fram[322:344]), crc16(fram[322:344])))

    def test_short_image(self):
        self.assertEqual(crcReport(self.fram[:100]), "NFC: FRAM read did not complete: can't verify CRC")

    def test_trend(self):
        self.sensor.updateFRAM(self.fram, LAST_READING)
        trend = self.sensor.trend

        self.assertEqual(self.sensor.state, SENSOR_STATE.ACTIVE)
        self.assertEqual(self.sensor.age, 1000)
        self.assertEqual(len(trend), 16)
        self.assertEqual([ g.rawValue for g in trend[:6] ], [ 1040, 1030, 1020, 1010, 1000, 1150 ])
        self.assertEqual([ g.id for g in trend[:3] ], [ 1000, 999, 998 ])
        self.assertEqual(trend[0].date, LAST_READING)
        self.assertEqual(trend[2].date, LAST_READING - datetime.timedelta(minutes = 2))
        self.assertEqual(trend[0].value, 104)

    def test_history(self):
        self.sensor.updateFRAM(self.fram, LAST_READING)
        history = self.sensor.history

        self.assertEqual(len(history), 32)
        self.assertEqual([ g.rawValue for g in history[:4] ], [ 2020, 2010, 2000, 2310 ])
        # age 1000: the last history value is 10 minutes old
        self.assertEqual(history[0].id, 990)
        self.assertEqual(history[1].id, 975)

    def test_footer(self):
        self.sensor.updateFRAM(self.fram, LAST_READING)

        self.assertEqual(self.sensor.region, 1)
        self.assertEqual(self.sensor.regionDescription, 'European')
        self.assertEqual(self.sensor.maxLife, 21600)

    def test_gaps_for_a_young_sensor(self):
        self.sensor.updateFRAM(libreFRAM(age = 5), LAST_READING)

        self.assertFalse(self.sensor.trend[5].isGap)
        self.assertTrue(self.sensor.trend[6].isGap)
        self.assertEqual(self.sensor.trend[6].value, -1)
        self.assertEqual(self.sensor.trend[6].id, -1)
        self.assertEqual(self.sensor.history[0].id, 0)
        self.assertFalse(self.sensor.history[0].isGap)
        self.assertTrue(all(g.isGap for g in self.sensor.history[1:]))
        self.assertEqual(len(self.sensor.history), 32)

    def test_history_in_the_first_minutes(self):
        self.sensor.updateFRAM(libreFRAM(age = 1, historyIndex = 0), LAST_READING)
        history = self.sensor.history

        self.assertEqual(history[0].id, 0)
        self.assertFalse(history[0].isGap)
        self.assertEqual(history[0].rawValue, 2310)
        self.assertEqual(history[0].date, LAST_READING - datetime.timedelta(minutes = 1))
        self.assertEqual(history[1].id, -15)
        self.assertTrue(history[1].isGap)

    def test_parsing_twice_is_idempotent(self):
        self.sensor.updateFRAM(self.fram, LAST_READING)
        trend, history = self.sensor.trend, self.sensor.history
        self.sensor.updateFRAM(self.fram, LAST_READING)

        self.assertEqual(self.sensor.trend, trend)
        self.assertEqual(self.sensor.history, history)

    def test_checksum_failure_keeps_previous_series(self):
        self.sensor.updateFRAM(self.fram, LAST_READING)
        trend = self.sensor.trend

        corrupted = bytearray(self.fram)
        corrupted[100] ^= 0x01
        contents = self.sensor.updateFRAM(corrupted, LAST_READING)

        self.assertTrue(contents.checksumFailed)
        self.assertIsNone(contents.trend)
        self.assertIn('Sensor body CRC16', self.sensor.crcReport)
        self.assertIn('FAILED', self.sensor.crcReport)
        self.assertEqual(self.sensor.state, SENSOR_STATE.UNKNOWN)
        self.assertIs(self.sensor.trend, trend)
        self.assertEqual(self.sensor.fram, bytes(corrupted))

    def test_libre1_commands_section(self):
        fram = libreFRAM(blocks = 244)
        report = crcReport(fram)

        self.assertEqual(len(report.split('\n')), 4)
        self.assertTrue(report.split('\n')[3].startswith('Sensor commands CRC16'))
        self.assertNotIn('FAILED', report)

    def test_failure_state(self):
        fram = bytearray(libreFRAM(state = SENSOR_STATE.FAILURE))
        fram[6] = 0x0D
        fram[7:9] = struct.pack('<H', 300)
        self.sensor.updateFRAM(checksummedFRAM(fram), LAST_READING)

        self.assertEqual(self.sensor.state, SENSOR_STATE.FAILURE)
        self.assertEqual(self.sensor.failureCode, 0x0D)
        self.assertEqual(self.sensor.failureAge, 300)

class TestLibrePro(unittest.TestCase):

    def test_layout(self):
        sensor = Sensor(bytes.fromhex('01000000000807e0'), LIBRE_PRO_PATCH_INFO)
        contents = sensor.updateFRAM(proFRAM(), LAST_READING)

        self.assertEqual(sensor.type, SENSOR_TYPE.LIBRE_PRO_H)
        self.assertFalse(contents.checksumFailed)
        self.assertEqual(len(sensor.crcReport.split('\n')), 3)
        self.assertEqual(sensor.age, 500)
        self.assertEqual([ g.rawValue for g in sensor.trend[:3] ], [ 701, 700, 715 ])
        self.assertEqual(sensor.history[0].rawValue, 900)
        self.assertTrue(sensor.history[1].isGap)
        self.assertEqual(len(sensor.history), 32)
        self.assertEqual(sensor.region, 0x02)
        self.assertEqual(sensor.maxLife, 20160)

    def test_worn_sensor_image(self):
        self.assertEqual(crcReport(PRO_FRAM, LIBRE_PRO_LAYOUT), '\n'.join([
            'Sensor header CRC16: 40d3, computed: 40d3 -> OK',
            'Sensor footer CRC16: ddc7, computed: ddc7 -> OK',
            'Sensor body CRC16: 6f6e, computed: 6f6e -> OK',
        ]))

        sensor = Sensor(PRO_UID, PRO_PATCH_INFO)
        contents = sensor.updateFRAM(PRO_FRAM, LAST_READING)

        self.assertEqual(sensor.type, SENSOR_TYPE.LIBRE_PRO_H)
        self.assertFalse(contents.checksumFailed)
        self.assertEqual(sensor.state, SENSOR_STATE.ACTIVE)
        self.assertEqual(sensor.age, 0x14E6)
        self.assertEqual(len(sensor.trend), 16)

class TestParseBLEData(unittest.TestCase):

    def test_sparse_trend(self):
        contents = parseBLEData(bleData(), [], [], LAST_READING)
        trend = contents.trend

        self.assertEqual(contents.wearTime, 2000)
        self.assertEqual(len(contents.readings), 10)
        self.assertEqual(len(trend), 16)
        self.assertEqual([ g.id for g in trend ], list(range(2000, 1984, -1)))
        self.assertEqual(trend[0].rawValue, 1000)
        self.assertEqual(trend[0].date, LAST_READING)
        self.assertTrue(trend[1].isGap)
        self.assertEqual(trend[2].rawValue, 1010)
        self.assertEqual(trend[15].rawValue, 1060)

    def test_history_alignment(self):
        history = parseBLEData(bleData(), [], [], LAST_READING).history

        self.assertEqual(len(history), 32)
        self.assertEqual([ g.id for g in history[:3] ], [ 1995, 1980, 1965 ])
        self.assertEqual([ g.rawValue for g in history[:3] ], [ 1070, 1080, 1090 ])
        self.assertTrue(history[3].isGap)

    def test_merges_with_previous_values(self):
        previous = [ Glucose(rawValue = 1234, id = 1999) ]
        contents = parseBLEData(bleData(), previous, [], LAST_READING)

        self.assertEqual(contents.trend[1].rawValue, 1234)

    def test_updateBLEData(self):
        sensor = Sensor()
        sensor.updateBLEData(bleData(), LAST_READING)

        self.assertEqual(sensor.age, 2000)
        self.assertEqual(sensor.state, SENSOR_STATE.ACTIVE)
        self.assertEqual(sensor.trend[0].rawValue, 1000)

class TestCalibration(unittest.TestCase):

    def test_linear_fit(self):
        calibration = Calibration(slopeSlope = 1.0, slopeOffset = 2.0, offsetOffset = 3.0, offsetSlope = 4.0)

        self.assertEqual(calibration.value(10, 5), 103.0)
        self.assertEqual(calibration.apply(Glucose(rawValue = 10, rawTemperature = 5)).value, 103)

    def test_gaps_are_not_calibrated(self):
        gap = Glucose.gap(-1, LAST_READING)
        self.assertIs(Calibration(1.0, 2.0, 3.0, 4.0).apply(gap), gap)

    def test_null_calibration(self):
        self.assertTrue(Calibration.fromDict({ 'offset_offset': -2.0 }).isNull)
        self.assertFalse(Calibration.fromDict({ 'slopeSlope': 0.1, 'offsetOffset': -2.0 }).isNull)

    def test_factory_without_calibration_info(self):
        glucose = Glucose(rawValue = 1500, rawTemperature = 7000, temperatureAdjustment = 0)
        self.assertIs(factoryGlucose(glucose, CalibrationInfo()), glucose)
        self.assertEqual(glucose.value, 150)

if __name__ == '__main__':
    unittest.main()
