import asyncio
import logging
import struct
import binascii

from bleak import BleakClient, BleakScanner # pip install bleak
from bleak.uuids import normalize_uuid_str

from .exceptions import DisconnectedException, TimeoutException
from .transmitters import transmitterForName

logger = logging.getLogger(__name__)

SCAN_TIMEOUT = 10.0
CONNECTION_TIMEOUT = 30.0

def manufacturerData( advertisementData ):
    """Company id (LE) followed by the payload, as advertised on air."""
    for companyId, value in advertisementData.manufacturer_data.items():
        return struct.pack( '<H', companyId ) + bytes( value )
    return b''

async def findTransmitter( timeout = SCAN_TIMEOUT, pattern = None ):
    logger.info( '# Scanning for transmitters' )
    devices = await BleakScanner.discover( timeout = timeout, return_adv = True )
    for address, ( device, advertisementData ) in devices.items():
        name = device.name or advertisementData.local_name
        transmitterType = transmitterForName( name )
        if transmitterType is None:
            logger.debug( '## Bluetooth: skipped {0} ({1})'.format( name or 'an unnamed peripheral', address ) )
            continue
        if pattern and pattern.lower() not in name.lower():
            logger.debug( '## Bluetooth: skipped {0}: not matching {1!r}'.format( name, pattern ) )
            continue
        logger.info( 'Bluetooth: found {0} ({1}, RSSI {2})'.format( name, address, advertisementData.rssi ) )
        return device, name, transmitterType, manufacturerData( advertisementData )
    raise TimeoutException( 'No transmitter found in {0} seconds'.format( timeout ) )

class BLEConnection( object ):
    """Drives one transmitter state machine over a bleak connection.

    Only one connection is tracked at a time; notifications are handed to
    the transmitter in arrival order and its requested writes are issued
    before the next notification is processed.
    """

    def __init__( self, device, transmitter, onStatus = None, onSensor = None ):
        self.device = device
        self.transmitter = transmitter
        self.onStatus = onStatus
        self.onSensor = onSensor
        self.client = None
        self.disconnected = asyncio.Event()
        self.lock = asyncio.Lock()

    def _disconnected( self, client ):
        logger.warning( 'Bluetooth: {0} has disconnected'.format( self.transmitter.NAME ) )
        self.disconnected.set()

    async def _perform( self, result ):
        for uuid, data in result.writes:
            logger.debug( '## Bluetooth: writing {0} to {1}'.format( binascii.hexlify( data ), uuid ) )
            await self.client.write_gatt_char( normalize_uuid_str( uuid ), data, response = self.transmitter.WRITE_WITH_RESPONSE )
        if result.status:
            logger.info( 'Bluetooth: {0}'.format( result.status ) )
            if self.onStatus is not None:
                self.onStatus( result.status )
        if result.sensorUpdated and self.onSensor is not None:
            self.onSensor( self.transmitter.sensor )

    def _handler( self, uuid ):
        async def handler( characteristic, data ):
            async with self.lock:
                logger.debug( '## Bluetooth: {0} notified {1}'.format( uuid, binascii.hexlify( bytes( data ) ) ) )
                result = self.transmitter.handleNotification( data, uuid )
                await self._perform( result )
        return handler

    async def run( self, duration = None ):
        logger.info( '# Connecting to {0}'.format( self.transmitter.NAME ) )
        transmitter = self.transmitter
        async with BleakClient( self.device, timeout = CONNECTION_TIMEOUT, disconnected_callback = self._disconnected ) as client:
            self.client = client
            try:
                # the Libre 2 only notifies data after the login write
                if transmitter.WRITE_WITH_RESPONSE and transmitter.WRITE_UUID != transmitter.READ_UUID and \
                        getattr( transmitter, 'securityGeneration', 0 ) > 1:
                    await client.start_notify( normalize_uuid_str( transmitter.WRITE_UUID ), self._handler( transmitter.WRITE_UUID ) )
                await client.start_notify( normalize_uuid_str( transmitter.READ_UUID ), self._handler( transmitter.READ_UUID ) )

                async with self.lock:
                    await self._perform( transmitter.onConnect() )

                if duration is None:
                    await self.disconnected.wait()
                else:
                    try:
                        await asyncio.wait_for( self.disconnected.wait(), duration )
                    except asyncio.TimeoutError:
                        logger.info( '# Closing connection to {0}'.format( transmitter.NAME ) )
                        return transmitter.sensor
            finally:
                self.client = None
        raise DisconnectedException( '{0} disconnected'.format( transmitter.NAME ) )
