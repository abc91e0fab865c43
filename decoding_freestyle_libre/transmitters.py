import logging
import binascii

from .constants import SENSOR_TYPE, SENSOR_STATE
from .exceptions import DecryptionException, ChecksumException, UnexpectedMessageException, \
    UnsupportedOperationException
from .helpers import DateTimeHelper, hexlify
from .libre2 import decryptBLE, streamingUnlockPayload
from .sensor import Sensor

logger = logging.getLogger(__name__)

class NotificationResult( object ):
    """What a transmitter wants done after a notification: the writes to
    issue, in order, and a status line for the user."""

    def __init__( self ):
        self.writes = []
        self.status = ''
        self.sensorUpdated = False

    def write( self, data, uuid ):
        self.writes.append( ( uuid, bytes( data ) ) )

class Transmitter( object ):
    NAME = 'Unknown'
    SERVICE_UUID = ''
    WRITE_UUID = ''
    READ_UUID = ''
    WRITE_WITH_RESPONSE = False

    def __init__( self, sensor = None, config = None ):
        self.sensor = sensor
        self.config = config
        self.buffer = bytearray()
        self.battery = -1
        self.firmware = ''
        self.hardware = ''
        self.macAddress = b''
        self.lastReadingDate = None

    @classmethod
    def knownUUIDs( cls ):
        return [ cls.SERVICE_UUID, cls.WRITE_UUID, cls.READ_UUID ]

    def _sensor( self ):
        if self.sensor is None:
            self.sensor = Sensor()
        return self.sensor

    def parseManufacturerData( self, data ):
        logger.debug( "## {0}'s advertised manufacturer data: {1}".format( self.NAME, binascii.hexlify( bytes( data ) ) ) )

    def readCommand( self, interval = 5 ):
        return b''

    def onConnect( self ):
        """Writes to issue once the data characteristics are discovered."""
        result = NotificationResult()
        command = self.readCommand()
        if command:
            logger.info( '# {0}: writing start reading command 0x{1}'.format( self.NAME, hexlify( command ) ) )
            result.write( command, self.WRITE_UUID )
        return result

    def handleNotification( self, data, uuid = None ):
        """Feeds one notification to the state machine.

        A reassembly that fails to decode is dropped with its buffer and
        reported in the status; the connection stays up and the next
        notification starts over.
        """
        result = NotificationResult()
        data = bytes( data )
        if len( data ) == 0:
            return result
        try:
            self.read( data, uuid or self.READ_UUID, result )
        except ( DecryptionException, ChecksumException, UnexpectedMessageException ) as e:
            logger.error( '{0}: {1} (buffer: {2})'.format( self.NAME, e, binascii.hexlify( bytes( self.buffer ) ) ) )
            self.buffer = bytearray()
            result.status = '{0}: {1}'.format( self.NAME, e )
        return result

    def read( self, data, uuid, result ):
        raise NotImplementedError

    def _publishFRAM( self, fram, result ):
        sensor = self._sensor()
        contents = sensor.updateFRAM( fram, self.lastReadingDate )
        self.buffer = bytearray()
        result.sensorUpdated = True
        if contents.checksumFailed:
            logger.error( '{0}: {1}'.format( self.NAME, contents.crcReport ) )
            raise ChecksumException( '{0} CRC error'.format( sensor.type ) )
        result.status = '{0}  +  {1}'.format( sensor.type, self.NAME )

class AUTHENTICATION_STATE:
    NOT_AUTHENTICATED = 0
    # Gen2
    ENABLE_NOTIFICATION = 1
    CHALLENGE_RESPONSE = 2
    GET_SESSION_INFO = 3
    AUTHENTICATED = 4
    # Gen1
    BLE_LOGIN = 5

    DESCRIPTION = {
        NOT_AUTHENTICATED: 'AUTH_STATE_NOT_AUTHENTICATED',
        ENABLE_NOTIFICATION: 'AUTH_STATE_ENABLE_NOTIFICATION',
        CHALLENGE_RESPONSE: 'AUTH_STATE_CHALLENGE_RESPONSE',
        GET_SESSION_INFO: 'AUTH_STATE_GET_SESSION_INFO',
        AUTHENTICATED: 'AUTH_STATE_AUTHENTICATED',
        BLE_LOGIN: 'AUTH_STATE_BLE_LOGIN',
    }

class Abbott( Transmitter ):
    """Libre 2 and Libre Sense streaming directly over BLE."""

    NAME = 'Libre'
    SERVICE_UUID = 'FDE3'
    WRITE_UUID = 'F001' # BLE login
    READ_UUID = 'F002' # composite raw data
    WRITE_WITH_RESPONSE = True

    PAYLOAD_LENGTH = 46
    CHALLENGE_RESPONSE_LENGTH = 14
    SESSION_INFO_LENGTH = 25

    def __init__( self, sensor = None, config = None, securityGeneration = 0 ):
        Transmitter.__init__( self, sensor, config )
        self.securityGeneration = securityGeneration
        self.authenticationState = AUTHENTICATION_STATE.NOT_AUTHENTICATED
        self.sessionInfo = bytearray()
        self.uid = b''
        self.serial = ''

    def parseAdvertisedName( self, name ):
        # "ABBOTT" followed by the sensor serial
        if len( name ) == 18:
            raise UnsupportedOperationException( 'Libre 3 BLE streaming is not supported' )
        self.serial = name[6:]
        if self.serial[:1] == '7':
            self.NAME = 'Libre Sense'
            self.securityGeneration = 2
        elif self.serial[:1] == '3':
            self.NAME = 'Libre 2'

    def parseManufacturerData( self, data ):
        data = bytes( data )
        if len( data ) > 7:
            sensorUid = data[2:8] + bytes( [ 0x07, 0xe0 ] )
            # Gen2 advertises a value unrelated to the uid
            if data[7] == 0xa4:
                self.uid = sensorUid
            logger.info( "Bluetooth: advertised {0}'s UID: {1}".format( self.NAME, binascii.hexlify( sensorUid ) ) )

    def onConnect( self ):
        result = NotificationResult()
        sensor = self._sensor()
        if not sensor.patchInfo and self.config is not None and self.config.patchInfo:
            sensor.patchInfo = self.config.patchInfo
        if not sensor.uid and self.uid:
            sensor.uid = self.uid
        if self.config is not None:
            self.config.restore( sensor )
            logger.info( 'Bluetooth: the active sensor {0} has reconnected: restoring settings: initial patch info: {1}, current patch info: {2}, unlock count: {3}'.format(
                sensor.serial, hexlify( sensor.initialPatchInfo ), hexlify( sensor.patchInfo ), sensor.streamingUnlockCount ) )

        if self.securityGeneration > 1 and self.authenticationState == AUTHENTICATION_STATE.NOT_AUTHENTICATED:
            self.authenticationState = AUTHENTICATION_STATE.ENABLE_NOTIFICATION
            logger.debug( '## Bluetooth: enabled {0} security notification'.format( self.NAME ) )
            self.authenticationState = AUTHENTICATION_STATE.CHALLENGE_RESPONSE
            result.write( bytes( [ 0x20 ] ), self.WRITE_UUID )
            logger.debug( '## Bluetooth: sent {0} read security challenge'.format( self.NAME ) )

        elif sensor.uid and sensor.patchInfo and sensor.initialPatchInfo:
            sensor.streamingUnlockCount = ( sensor.streamingUnlockCount + 1 ) & 0xFFFF
            if self.config is not None:
                self.config.streamingUnlockCount = sensor.streamingUnlockCount
            payload = streamingUnlockPayload( sensor.uid, sensor.initialPatchInfo, sensor.streamingUnlockCode,
                sensor.streamingUnlockCount )
            logger.info( 'Bluetooth: writing streaming unlock payload: {0} (patch info: {1}, unlock code: {2}, unlock count: {3}, sensor id: {4})'.format(
                hexlify( payload ), hexlify( sensor.initialPatchInfo ), sensor.streamingUnlockCode, sensor.streamingUnlockCount,
                hexlify( sensor.uid ) ) )
            self.authenticationState = AUTHENTICATION_STATE.BLE_LOGIN
            result.write( payload, self.WRITE_UUID )
        else:
            result.status = '{0}: scan the sensor to enable streaming'.format( self.NAME )
        return result

    def read( self, data, uuid, result ):
        if uuid == self.WRITE_UUID:
            self._readLogin( data, result )
        elif uuid == self.READ_UUID:
            self._readRawData( data, result )

    def _readLogin( self, data, result ):
        if self.authenticationState == AUTHENTICATION_STATE.CHALLENGE_RESPONSE:
            if len( data ) == self.CHALLENGE_RESPONSE_LENGTH:
                logger.info( '{0}: challenge response: {1}'.format( self.NAME, hexlify( data ) ) )
                self.authenticationState = AUTHENTICATION_STATE.GET_SESSION_INFO
        elif self.authenticationState == AUTHENTICATION_STATE.GET_SESSION_INFO:
            # 7 + 18 bytes
            if len( data ) == 7:
                self.sessionInfo = bytearray( data )
            elif len( data ) == 18:
                self.sessionInfo += data
                if len( self.sessionInfo ) == self.SESSION_INFO_LENGTH:
                    logger.info( '{0}: session info: {1}'.format( self.NAME, hexlify( self.sessionInfo ) ) )
                    self.authenticationState = AUTHENTICATION_STATE.AUTHENTICATED
                    result.status = '{0}: authenticated'.format( self.NAME )

    def _readRawData( self, data, result ):
        # 46 bytes in three packets of 20 + 18 + 8
        if len( data ) == 20:
            self.buffer = bytearray()
            self.lastReadingDate = DateTimeHelper.now()
        self.buffer += data
        logger.debug( '## {0}: partial buffer size: {1}'.format( self.NAME, len( self.buffer ) ) )

        if len( self.buffer ) == self.PAYLOAD_LENGTH:
            sensor = self._sensor()
            if len( sensor.uid ) != 8:
                raise DecryptionException( 'BLE data decryption failed: unknown sensor uid' )
            bleData = decryptBLE( sensor.uid, self.buffer )
            contents = sensor.updateBLEData( bleData, self.lastReadingDate )
            logger.debug( '## Bluetooth: decrypted BLE data: {0}, wear time: {1} minutes'.format( hexlify( bleData ), contents.wearTime ) )
            logger.info( 'BLE raw values: {0}'.format( [ g.rawValue for g in contents.readings ] ) )
            logger.info( 'BLE merged trend: {0}'.format( [ g.value for g in sensor.factoryTrend ] ) )
            logger.info( 'BLE merged history: {0}'.format( [ g.value for g in sensor.factoryHistory ] ) )
            self.buffer = bytearray()
            result.sensorUpdated = True
            result.status = '{0}  +  BLE'.format( sensor.type )
        elif len( self.buffer ) > self.PAYLOAD_LENGTH:
            raise DecryptionException( 'BLE data decryption failed: {0} bytes received'.format( len( self.buffer ) ) )

class BUBBLE_RESPONSE:
    DATA_INFO = 0x80
    DATA_PACKET = 0x82
    DECRYPTED_DATA_PACKET = 0x88
    SECURITY_CHALLENGE = 0x8A
    NO_SENSOR = 0xBF
    SERIAL_NUMBER = 0xC0
    PATCH_INFO = 0xC1

    DESCRIPTION = {
        DATA_INFO: 'data info',
        DATA_PACKET: 'data packet',
        DECRYPTED_DATA_PACKET: 'decrypted data packet',
        SECURITY_CHALLENGE: 'security challenge',
        NO_SENSOR: 'no sensor',
        SERIAL_NUMBER: 'serial number',
        PATCH_INFO: 'patch info',
    }

class Bubble( Transmitter ):
    NAME = 'Bubble'
    SERVICE_UUID = '6E400001-B5A3-F393-E0A9-E50E24DCCA9E'
    WRITE_UUID = '6E400002-B5A3-F393-E0A9-E50E24DCCA9E'
    READ_UUID = '6E400003-B5A3-F393-E0A9-E50E24DCCA9E'

    def readCommand( self, interval = 5 ):
        return bytes( [ 0x00, 0x00, interval & 0xFF ] )

    @property
    def firmwareVersion( self ):
        try:
            return float( self.firmware )
        except ValueError:
            return 0.0

    def parseManufacturerData( self, data ):
        data = bytes( data )
        if len( data ) < 12:
            Transmitter.parseManufacturerData( self, data )
            return
        self.firmware = '{0}.{1}'.format( data[8], data[9] )
        self.hardware = '{0}.{1}'.format( data[10], data[11] )
        self.macAddress = bytes( reversed( data[2:8] ) )
        msg = '{0}: advertised manufacturer data: firmware: {1}, hardware: {2}, MAC address: {3}'.format( self.NAME,
            self.firmware, self.hardware, ':'.join( '{0:02X}'.format( b ) for b in self.macAddress ) )
        if len( data ) > 12:
            self.battery = data[12]
            msg += ', battery: {0}'.format( self.battery )
        logger.info( msg )

    def _knownType( self ):
        if self.sensor is not None and self.sensor.patchInfo:
            return self.sensor.type
        if self.config is not None and self.config.patchInfo:
            return SENSOR_TYPE.fromPatchInfo( self.config.patchInfo )
        return SENSOR_TYPE.UNKNOWN

    def read( self, data, uuid, result ):
        response = data[0]
        if response not in BUBBLE_RESPONSE.DESCRIPTION:
            raise UnexpectedMessageException( 'unknown response 0x{0:02x}'.format( response ) )
        logger.debug( '## {0} response: {1} (0x{2:02x})'.format( self.NAME, BUBBLE_RESPONSE.DESCRIPTION[response], response ) )

        if response == BUBBLE_RESPONSE.NO_SENSOR:
            result.status = '{0}: no sensor'.format( self.NAME )

        elif response == BUBBLE_RESPONSE.DATA_INFO:
            self.battery = data[4]
            self.firmware = '{0}.{1}'.format( data[2], data[3] )
            self.hardware = '{0}.{1}'.format( data[-2], data[-1] )
            logger.info( '{0}: battery: {1}, firmware: {2}, hardware: {3}'.format( self.NAME, self.battery, self.firmware, self.hardware ) )
            if self.firmwareVersion >= 2.6 and self._knownType() in ( SENSOR_TYPE.LIBRE2, SENSOR_TYPE.LIBRE_US_14DAY ):
                result.write( bytes( [ 0x08, 0x01, 0x00, 0x00, 0x00, 0x2B ] ), self.WRITE_UUID )
            else:
                result.write( bytes( [ 0x02, 0x01, 0x00, 0x00, 0x00, 0x2B ] ), self.WRITE_UUID )

        elif response == BUBBLE_RESPONSE.SERIAL_NUMBER:
            sensor = self._sensor()
            sensor.uid = data[2:10]
            logger.info( '{0}: patch uid: {1}'.format( self.NAME, hexlify( sensor.uid ) ) )

        elif response == BUBBLE_RESPONSE.PATCH_INFO:
            sensor = self._sensor()
            sensor.patchInfo = data[3:9] if self.firmwareVersion < 1.35 else data[5:11]
            if self.config is not None:
                self.config.patchInfo = sensor.patchInfo
            logger.info( '{0}: patch info: {1}, sensor type: {2}, serial number: {3}'.format( self.NAME,
                hexlify( sensor.patchInfo ), sensor.type, sensor.serial ) )

        elif response == BUBBLE_RESPONSE.SECURITY_CHALLENGE:
            if len( self.buffer ) == 0:
                self.buffer += data[5:]
            elif len( self.buffer ) == 15:
                self.buffer += data[4:]
            logger.debug( '## {0}: partial buffer size: {1}'.format( self.NAME, len( self.buffer ) ) )
            if len( self.buffer ) == 28:
                logger.info( '{0}: gen2 security challenge: {1}'.format( self.NAME, hexlify( self.buffer[:25] ) ) )
                self.buffer = bytearray()

        else:
            if len( self.buffer ) == 0:
                self.lastReadingDate = DateTimeHelper.now()
            self.buffer += data[4:]
            logger.debug( '## {0}: partial buffer size: {1}'.format( self.NAME, len( self.buffer ) ) )
            if len( self.buffer ) >= 344:
                self._publishFRAM( self.buffer[:344], result )

class MIAOMIAO_RESPONSE:
    DATA = 0x28
    NEW_SENSOR = 0x32
    NO_SENSOR = 0x34
    FREQUENCY_CHANGE = 0xD1

    DESCRIPTION = {
        DATA: 'data',
        NEW_SENSOR: 'new sensor',
        NO_SENSOR: 'no sensor',
        FREQUENCY_CHANGE: 'frequency change',
    }

class MiaoMiao( Transmitter ):
    NAME = 'MiaoMiao'
    SERVICE_UUID = '6E400001-B5A3-F393-E0A9-E50E24DCCA9E'
    WRITE_UUID = '6E400002-B5A3-F393-E0A9-E50E24DCCA9E'
    READ_UUID = '6E400003-B5A3-F393-E0A9-E50E24DCCA9E'

    # 18-byte header, 344 bytes of FRAM and the 0x29 end marker
    PACKET_LENGTH = 363
    DEFAULT_PATCH_INFO = bytes.fromhex( 'DF0000010102' )

    def readCommand( self, interval = 5 ):
        command = bytes( [ 0xF0 ] )
        if interval in ( 1, 3 ):
            command = bytes( [ 0xD1, interval ] ) + command
        return command

    def read( self, data, uuid, result ):
        response = data[0]
        if len( self.buffer ) == 0:
            logger.debug( '## {0} response: {1} (0x{2:02x})'.format( self.NAME,
                MIAOMIAO_RESPONSE.DESCRIPTION.get( response, 'data' ), response ) )

        if len( data ) == 1 and len( self.buffer ) == 0:
            if response == MIAOMIAO_RESPONSE.NO_SENSOR:
                result.status = '{0}: no sensor'.format( self.NAME )
            elif response == MIAOMIAO_RESPONSE.NEW_SENSOR:
                result.status = '{0}: detected a new sensor'.format( self.NAME )
                # allow the new sensor
                result.write( bytes( [ 0xD3, 0x01 ] ), self.WRITE_UUID )
            else:
                raise UnexpectedMessageException( 'unknown response 0x{0:02x}'.format( response ) )

        elif len( data ) == 2 and len( self.buffer ) == 0 and response == MIAOMIAO_RESPONSE.FREQUENCY_CHANGE:
            if data[1] == 0x01:
                logger.info( '{0}: success changing frequency'.format( self.NAME ) )
            else:
                logger.error( '{0}: failed to change frequency'.format( self.NAME ) )
                result.status = '{0}: failed to change frequency'.format( self.NAME )

        else:
            if len( self.buffer ) == 0:
                if response != MIAOMIAO_RESPONSE.DATA:
                    raise UnexpectedMessageException( 'unknown response 0x{0:02x}'.format( response ) )
                self.lastReadingDate = DateTimeHelper.now()
            self.buffer += data
            logger.debug( '## {0}: partial buffer size: {1}'.format( self.NAME, len( self.buffer ) ) )

            expectedLength = max( self.PACKET_LENGTH, self.buffer[1] << 8 | self.buffer[2] ) if len( self.buffer ) > 2 else self.PACKET_LENGTH
            if len( self.buffer ) >= expectedLength:
                self._parsePacket( bytes( self.buffer ), result )

    def _parsePacket( self, packet, result ):
        sensor = self._sensor()
        self.battery = packet[13]
        self.firmware = hexlify( packet[14:16] )
        self.hardware = hexlify( packet[16:18] )
        logger.info( '{0}: battery: {1}, firmware: {2}, hardware: {3}'.format( self.NAME, self.battery, self.firmware, self.hardware ) )
        sensor.uid = packet[5:13]
        if len( packet ) > self.PACKET_LENGTH:
            sensor.patchInfo = packet[363:369]
        elif not sensor.patchInfo:
            sensor.patchInfo = self.DEFAULT_PATCH_INFO
        logger.info( '{0}: patch uid: {1}, patch info: {2}, serial number: {3}'.format( self.NAME, hexlify( sensor.uid ),
            hexlify( sensor.patchInfo ), sensor.serial ) )
        self._publishFRAM( packet[18:362], result )

class BLUCON_RESPONSE:
    ACK = '8b0a00'
    PATCH_UID_INFO = '8b0e'
    NO_SENSOR = '8b1a02000f'
    READING_ERROR = '8b1a020011'
    TIMEOUT = '8b1a020014'
    SENSOR_INFO = '8bd9'
    BATTERY = '8bda'
    FIRMWARE = '8bdb'
    SINGLE_BLOCK = '8bde'
    MULTIPLE_BLOCKS = '8bdf'
    WAKEUP = 'cb010000'
    BATTERY_LOW_1 = 'cb020000'
    BATTERY_LOW_2 = 'cbdb0000'

    DESCRIPTION = {
        ACK: 'ack',
        PATCH_UID_INFO: 'patch uid/info',
        NO_SENSOR: 'no sensor',
        READING_ERROR: 'reading error',
        TIMEOUT: 'timeout',
        SENSOR_INFO: 'sensor info',
        BATTERY: 'battery',
        FIRMWARE: 'firmware',
        SINGLE_BLOCK: 'single block',
        MULTIPLE_BLOCKS: 'multiple blocks',
        WAKEUP: 'wake up',
        BATTERY_LOW_1: 'battery low 1',
        BATTERY_LOW_2: 'battery low 2',
    }

class BLUCON_REQUEST:
    NONE = ''
    ACK = '810a00'
    SLEEP = '010c0e00'
    SENSOR_INFO = '010d0900'
    FRAM = '010d0f02002b' # multiple blocks 0x00-0x2b
    BATTERY = '010d0a00'
    FIRMWARE = '010d0b00'
    PATCH_UID = '010e0003260100'
    PATCH_INFO = '010e000302a107'

    DESCRIPTION = {
        NONE: 'none',
        ACK: 'ack',
        SLEEP: 'sleep',
        SENSOR_INFO: 'sensor info',
        FRAM: 'fram',
        BATTERY: 'battery',
        FIRMWARE: 'firmware',
        PATCH_UID: 'patch uid',
        PATCH_INFO: 'patch info',
    }

class BluCon( Transmitter ):
    NAME = 'BluCon'
    SERVICE_UUID = '436A62C0-082E-4CE8-A08B-01D81F195B24'
    WRITE_UUID = '436AA6E9-082E-4CE8-A08B-01D81F195B24'
    READ_UUID = '436A0C82-082E-4CE8-A08B-01D81F195B24'
    WRITE_WITH_RESPONSE = True

    def __init__( self, sensor = None, config = None ):
        Transmitter.__init__( self, sensor, config )
        self.currentRequest = BLUCON_REQUEST.NONE

    def onConnect( self ):
        # the BluCon speaks first with a wake up
        return NotificationResult()

    def request( self, request, result ):
        result.write( bytes.fromhex( request ), self.WRITE_UUID )
        self.currentRequest = request
        logger.debug( '## {0}: did write request for {1}'.format( self.NAME, BLUCON_REQUEST.DESCRIPTION[request] ) )

    def read( self, data, uuid, result ):
        dataHex = hexlify( data )
        logger.debug( '## {0} response: {1} (0x{2})'.format( self.NAME, BLUCON_RESPONSE.DESCRIPTION.get( dataHex, 'data' ), dataHex ) )

        if dataHex == BLUCON_RESPONSE.TIMEOUT:
            result.status = '{0}: timeout'.format( self.NAME )
            self.request( BLUCON_REQUEST.SLEEP, result )

        elif dataHex == BLUCON_RESPONSE.NO_SENSOR:
            result.status = '{0}: no sensor'.format( self.NAME )

        elif dataHex == BLUCON_RESPONSE.READING_ERROR:
            result.status = '{0}: reading error'.format( self.NAME )
            self.request( BLUCON_REQUEST.SLEEP, result )

        elif dataHex == BLUCON_RESPONSE.WAKEUP:
            self.request( BLUCON_REQUEST.SENSOR_INFO, result )

        elif dataHex in ( BLUCON_RESPONSE.BATTERY_LOW_1, BLUCON_RESPONSE.BATTERY_LOW_2 ):
            self.battery = 5
            result.status = '{0}: battery low'.format( self.NAME )

        elif dataHex.startswith( BLUCON_RESPONSE.SENSOR_INFO ):
            sensor = self._sensor()
            sensor.uid = data[3:11]
            if len( data ) > 17:
                sensor.state = SENSOR_STATE.fromByte( data[17] )
            logger.info( '{0}: patch uid: {1}, serial number: {2}, sensor state: {3}'.format( self.NAME,
                hexlify( sensor.uid ), sensor.serial, sensor.stateDescription ) )
            if sensor.state == SENSOR_STATE.ACTIVE:
                self.request( BLUCON_REQUEST.ACK, result )
            else:
                self.request( BLUCON_REQUEST.SLEEP, result )

        elif dataHex == BLUCON_RESPONSE.ACK:
            if self.currentRequest == BLUCON_REQUEST.ACK:
                self.request( BLUCON_REQUEST.FIRMWARE, result )
            else:
                # acknowledging a sleep
                self.currentRequest = BLUCON_REQUEST.NONE

        elif dataHex.startswith( BLUCON_RESPONSE.FIRMWARE ):
            self.firmware = '.'.join( str( b ) for b in data[2:] )
            logger.info( '{0}: firmware: {1}'.format( self.NAME, self.firmware ) )
            self.request( BLUCON_REQUEST.BATTERY, result )

        elif dataHex.startswith( BLUCON_RESPONSE.BATTERY ):
            if data[2] == 0xaa:
                self.battery = 100
            elif data[2] == 0x02:
                self.battery = 5
            self.request( BLUCON_REQUEST.PATCH_INFO, result )

        elif dataHex.startswith( BLUCON_RESPONSE.PATCH_UID_INFO ):
            sensor = self._sensor()
            if self.currentRequest == BLUCON_REQUEST.PATCH_INFO:
                sensor.patchInfo = data[3:]
                logger.info( '{0}: patch info: {1} (sensor type: {2})'.format( self.NAME, hexlify( sensor.patchInfo ), sensor.type ) )
            elif self.currentRequest == BLUCON_REQUEST.PATCH_UID:
                sensor.uid = data[4:]
                logger.info( '{0}: patch uid: {1}, serial number: {2}'.format( self.NAME, hexlify( sensor.uid ), sensor.serial ) )
            self.request( BLUCON_REQUEST.FRAM, result )

        elif dataHex.startswith( BLUCON_RESPONSE.MULTIPLE_BLOCKS ):
            if len( self.buffer ) == 0:
                self.lastReadingDate = DateTimeHelper.now()
            self.buffer += data[4:]
            logger.debug( '## {0}: partial buffer size: {1}'.format( self.NAME, len( self.buffer ) ) )
            if len( self.buffer ) >= 344:
                self.request( BLUCON_REQUEST.SLEEP, result )
                self._publishFRAM( self.buffer[:344], result )

        else:
            raise UnexpectedMessageException( 'unknown response 0x{0}'.format( dataHex ) )

TRANSMITTER = {
    'abbott': Abbott,
    'bubble': Bubble,
    'miaomiao': MiaoMiao,
    'blucon': BluCon,
}

def transmitterForName( name ):
    """Picks the transmitter class from an advertised peripheral name."""
    if not name:
        return None
    lowered = name.lower()
    if lowered.startswith( 'abbott' ):
        return Abbott
    elif name.startswith( 'Bubble' ):
        return Bubble
    elif 'miaomiao' in lowered:
        return MiaoMiao
    elif lowered.startswith( 'blu' ):
        return BluCon
    return None

def transmitterForService( uuid ):
    uuid = uuid.upper()
    for transmitterType in TRANSMITTER.values():
        if transmitterType.SERVICE_UUID == uuid:
            return transmitterType
    return None
