import asyncio
import unittest
from unittest import mock

from bleak.uuids import normalize_uuid_str

from .ble import BLEConnection, findTransmitter, manufacturerData
from .exceptions import DisconnectedException, TimeoutException
from .transmitters import MiaoMiao
from .test_sensor import libreFRAM
from .test_transmitters import miaoMiaoPacket

class FakeClient( object ):
    """Stands in for a BleakClient: replays `packet` as notifications once
    the start reading command is written."""

    def __init__( self, packet, disconnect = False ):
        self.packet = packet
        self.disconnect = disconnect
        self.handlers = {}
        self.writes = []
        self.tasks = []
        self.disconnectedCallback = None

    def __call__( self, device, timeout = None, disconnected_callback = None ):
        self.disconnectedCallback = disconnected_callback
        return self

    async def __aenter__( self ):
        return self

    async def __aexit__( self, *args ):
        return False

    async def start_notify( self, uuid, handler ):
        self.handlers[uuid] = handler

    async def write_gatt_char( self, uuid, data, response = False ):
        self.writes.append( ( uuid, bytes( data ), response ) )
        if data == b'\xf0':
            self.tasks.append( asyncio.get_running_loop().create_task( self.notify() ) )

    async def notify( self ):
        handler = self.handlers[normalize_uuid_str( MiaoMiao.READ_UUID )]
        for i in range( 0, len( self.packet ), 20 ):
            await handler( None, bytearray( self.packet[i:i + 20] ) )
        if self.disconnect:
            self.disconnectedCallback( self )

class TestBLEConnection(unittest.IsolatedAsyncioTestCase):

    async def test_reading(self):
        client = FakeClient(miaoMiaoPacket(libreFRAM()))
        statuses = []
        sensors = []
        connection = BLEConnection(mock.Mock(), MiaoMiao(), statuses.append, sensors.append)
        with mock.patch('decoding_freestyle_libre.ble.BleakClient', client):
            sensor = await connection.run(duration = 0.5)

        self.assertEqual(client.writes, [ (normalize_uuid_str(MiaoMiao.WRITE_UUID), b'\xf0', False) ])
        self.assertEqual(statuses, [ 'Libre 1  +  MiaoMiao' ])
        self.assertEqual(sensors, [ sensor ])
        self.assertEqual(sensor.trend[0].rawValue, 1040)

    async def test_disconnect(self):
        client = FakeClient(miaoMiaoPacket(libreFRAM()), disconnect = True)
        connection = BLEConnection(mock.Mock(), MiaoMiao())
        with mock.patch('decoding_freestyle_libre.ble.BleakClient', client):
            with self.assertRaises(DisconnectedException):
                await connection.run()

class TestFindTransmitter(unittest.IsolatedAsyncioTestCase):

    def advertisement(self, name, manufacturer = None):
        device = mock.Mock()
        device.name = name
        advertisementData = mock.Mock()
        advertisementData.local_name = name
        advertisementData.rssi = -60
        advertisementData.manufacturer_data = manufacturer or {}
        return device, advertisementData

    async def test_finds_a_known_name(self):
        devices = {
            'AA:00': self.advertisement('Polar H10'),
            'AA:01': self.advertisement('miaomiao2_42', { 0x0059: b'\x01\x02' }),
        }
        with mock.patch('decoding_freestyle_libre.ble.BleakScanner.discover', mock.AsyncMock(return_value = devices)):
            device, name, transmitterType, data = await findTransmitter(1.0)

        self.assertIs(device, devices['AA:01'][0])
        self.assertEqual(name, 'miaomiao2_42')
        self.assertIs(transmitterType, MiaoMiao)
        self.assertEqual(data, b'\x59\x00\x01\x02')

    async def test_name_pattern(self):
        devices = { 'AA:01': self.advertisement('miaomiao2_42') }
        with mock.patch('decoding_freestyle_libre.ble.BleakScanner.discover', mock.AsyncMock(return_value = devices)):
            with self.assertRaises(TimeoutException):
                await findTransmitter(1.0, 'bubble')

    def test_manufacturerData(self):
        self.assertEqual(manufacturerData(self.advertisement('x')[1]), b'')

if __name__ == '__main__':
    unittest.main()
