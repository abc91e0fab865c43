import logging
import binascii
import struct

from .checksum import crc16, findChecksummedRegions
from .config import Config, DEFAULT_DATABASE
from .constants import SENSOR_TYPE, SUBCOMMAND, NFC_COMMAND_CODE, TASK_REQUEST
from .exceptions import UnsupportedOperationException, DataIncompleteError, TimeoutException, \
    TagCommandException, Gen2Exception
from .helpers import BinaryDataDecoder, DateTimeHelper, hexDump
from .nfc import NFCSession, NFCCommand, nfcCommand, activationCommand, getPatchInfoCommand, \
    lockCommand, unlockCommand
from .sensor import looksEncrypted

logger = logging.getLogger(__name__)

# Libre 1 memory map
CONFIG_ADDRESS = 0x1A00 # 64 bytes, patch uid at 0x1A08
SRAM_ADDRESS = 0x1C00 # 512 bytes
PATCH_TABLE_ADDRESS = 0xFFAC # 36 bytes, handlers of the A0-A4 and E0-E2 commands
FRAM_ADDRESS = 0xF860

LIBRE1_FULL_FRAM_BLOCKS = 244

# Libre Pro block 0x04DF gates the B1 writes
PRO_GATE_READ = bytes.fromhex( 'DF04' )
PRO_GATE_WRITE = bytes.fromhex( 'DF042000DF8800000000' )

PRO_RESET_BLOCKS = [
    # header
    ( 0x00, '6ABC000001000000' ),
    ( 0x01, '0000000000000000' ),
    ( 0x02, '0000000000000000' ),
    ( 0x03, '0000000000000000' ),
    ( 0x04, '0000000000000000' ),
    # footer
    ( 0x05, '99DD10001408C04E' ),
    ( 0x06, '140396805A00EDA6' ),
    ( 0x07, '1256DAA0040CD866' ),
    ( 0x08, '2902C81800000000' ),
    # age, trend and history indexes
    ( 0x09, 'BDD1000000000000' ),
] + [ ( block, '0000000000000000' ) for block in range( 0x0A, 0x16 ) ]

class TaskResult( object ):
    def __init__( self, taskRequest, sensor = None, success = True, status = '', error = None ):
        self.taskRequest = taskRequest
        self.sensor = sensor
        self.success = success
        self.status = status
        self.error = error

    def __str__( self ):
        return '{0}: {1}'.format( self.taskRequest, self.status )

def readFRAM( session, config, blocks = None ):
    sensor = session.sensor
    if blocks is None:
        blocks = session.fullFRAMBlocks
    if sensor.securityGeneration < 2:
        return session.read( 0, blocks )[1]
    return session.readBlocks( 0, blocks )[1]

def dump( session, config ):
    sensor = session.sensor
    logger.info( '# Dumping {0} memory'.format( sensor.type ) )
    extraBlocks = 201 if sensor.type == SENSOR_TYPE.LIBRE1 else 0

    if sensor.type == SENSOR_TYPE.LIBRE1:
        for address, count, header in ( ( CONFIG_ADDRESS, 64, 'Config RAM (patch UID at 0x1A08):' ),
                ( SRAM_ADDRESS, 512, 'SRAM:' ),
                ( PATCH_TABLE_ADDRESS, 36, 'Patch table for A0-A4 E0-E2 commands:' ),
                ( FRAM_ADDRESS, ( 43 + extraBlocks ) * 8, 'FRAM:' ) ):
            try:
                _, data = session.readRaw( address, count )
            except DataIncompleteError as e:
                logger.warning( 'NFC: raw read at 0x{0:04X} stopped after {1} bytes: {2}'.format( address, len( e.data ), e ) )
                data = e.data
            logger.info( hexDump( data, header, address = address ) )

    try:
        start, fram = session.read( 0, 43 + extraBlocks )
    except DataIncompleteError as e:
        logger.warning( 'NFC: FRAM dump stopped after {0} blocks'.format( e.blocks ) )
        start, fram = e.start, e.data
    logger.info( hexDump( fram, 'ISO 15693 FRAM blocks:', startBlock = start ) )

    if sensor.securityGeneration < 1 and sensor.type != SENSOR_TYPE.LIBRE_PRO_H:
        logger.info( 'NFC: B0/B3 commands not supported by {0}'.format( sensor.type ) )
        return fram

    # with an encrypted sensor the count is limited to 89 until A1 1A decrypts it in place
    count = 89 if looksEncrypted( fram, sensor.type ) else 1252
    if sensor.securityGeneration > 1:
        count = 43
    command = 'A1 21' if sensor.securityGeneration > 1 else 'B0/B3'

    try:
        start, data = session.readBlocks( 0, count )
    except DataIncompleteError as e:
        logger.error( "NFC: 'read blocks {0}' command error after {1} blocks: {2}".format( command, e.blocks, e ) )
        start, data = e.start, e.data
    logger.info( hexDump( data, "'{0}' command output ({1} blocks):".format( command, len( data ) // 8 ), startBlock = start ) )

    for offset, length, description in findChecksummedRegions( data ):
        logger.info( 'CRC matches for {0} bytes at #{1:02x} [{2}...{3}] {4}'.format( length, offset // 8, offset + 2,
            offset + length - 1, description ) )
        logger.debug( hexDump( data[offset:offset + length], '{0}:'.format( description ) ) )
    return fram

def _resetLibre1( session ):
    commandsAddress, commands = session.readRaw( FRAM_ADDRESS + 43 * 8, 195 * 8 )

    e0Offset = 0xFFB6 - commandsAddress
    a1Offset = 0xFFC6 - commandsAddress
    e0Address = commands[e0Offset:e0Offset + 2]
    a1Address = commands[a1Offset:a1Offset + 2]
    logger.debug( "## E0 and A1 commands' addresses: {0:04x} {1:04x} (should be fbae and f9ba)".format(
        BinaryDataDecoder.readUInt16LE( e0Address, 0 ), BinaryDataDecoder.readUInt16LE( a1Address, 0 ) ) )

    originalCRC = crc16( commands[2:195 * 8] )
    logger.debug( '## Commands section CRC: {0:04x}, computed: {1:04x}'.format(
        BinaryDataDecoder.readUInt16LE( commands, 0 ), originalCRC ) )

    # A1 jumps to the E0 reset handler for one command
    patched = bytearray( commands )
    patched[a1Offset:a1Offset + 2] = e0Address
    patchedCRC = crc16( patched[2:195 * 8] )
    logger.debug( '## CRC after replacing the A1 command address with E0: {0:04x}'.format( patchedCRC ) )

    session.writeRaw( commandsAddress + a1Offset, e0Address )
    session.writeRaw( commandsAddress, BinaryDataDecoder.packUInt16LE( patchedCRC ) )
    session.send( getPatchInfoCommand( session.sensor ) )
    session.writeRaw( commandsAddress + a1Offset, a1Address )
    session.writeRaw( commandsAddress, BinaryDataDecoder.packUInt16LE( originalCRC ) )

    start, fram = session.read( 0, 43 )
    logger.info( hexDump( fram, 'NFC: did reset FRAM:', startBlock = start ) )
    return fram

def _proGateCommands():
    readCommand = NFCCommand( NFC_COMMAND_CODE.READ_BLOCK, PRO_GATE_READ, 'B0 read 0x04DF' )
    writeCommand = NFCCommand( NFC_COMMAND_CODE.WRITE_BLOCK, PRO_GATE_WRITE, 'B1 write' )
    return readCommand, writeCommand

def _resetLibrePro( session ):
    sensor = session.sensor
    session.send( unlockCommand( sensor ) )
    for block, data in PRO_RESET_BLOCKS:
        session.write( block, bytes.fromhex( data ) )

    readCommand, writeCommand = _proGateCommands()
    session.send( readCommand )
    session.send( writeCommand )
    session.send( readCommand )
    session.send( lockCommand( sensor ) )
    return session.read( 0, session.fullFRAMBlocks )[1]

def reset( session, config ):
    sensor = session.sensor
    if sensor.type == SENSOR_TYPE.LIBRE1:
        return _resetLibre1( session )
    elif sensor.type == SENSOR_TYPE.LIBRE_PRO_H:
        return _resetLibrePro( session )
    logger.error( 'E0 reset command not supported by {0}'.format( sensor.type ) )
    raise UnsupportedOperationException( 'E0 reset command not supported by {0}'.format( sensor.type ) )

def prolong( session, config ):
    sensor = session.sensor
    if sensor.type != SENSOR_TYPE.LIBRE1:
        logger.error( 'FRAM overwriting not supported by {0}'.format( sensor.type ) )
        raise UnsupportedOperationException( 'FRAM overwriting not supported by {0}'.format( sensor.type ) )

    footerAddress, footer = session.readRaw( FRAM_ADDRESS + 40 * 8, 3 * 8 )
    maxLifeOffset = 6
    maxLife = BinaryDataDecoder.readUInt16LE( footer, maxLifeOffset )
    logger.info( '{0} current maximum life: {1} minutes ({2})'.format( sensor.type, maxLife, DateTimeHelper.formattedInterval( maxLife ) ) )

    patched = bytearray( footer )
    patched[maxLifeOffset:maxLifeOffset + 2] = b'\xff\xff'
    patchedCRC = crc16( patched[2:3 * 8] )

    session.writeRaw( footerAddress + maxLifeOffset, patched[maxLifeOffset:maxLifeOffset + 2] )
    session.writeRaw( footerAddress, BinaryDataDecoder.packUInt16LE( patchedCRC ) )

    _, fram = session.read( 0, 43 )
    logger.info( hexDump( fram[-3 * 8:], 'NFC: did overwrite FRAM footer:', startBlock = 40 ) )
    return fram

def unlock( session, config ):
    sensor = session.sensor
    if sensor.securityGeneration < 1:
        logger.error( "'A1 1A unlock' command not supported by {0}".format( sensor.type ) )
        raise UnsupportedOperationException( "'A1 1A unlock' command not supported by {0}".format( sensor.type ) )

    output = session.send( unlockCommand( sensor ) )
    if len( output ) == 0:
        logger.info( 'NFC: FRAM should have been decrypted in-place' )
    return session.read( 0, 43 )[1]

def activate( session, config ):
    sensor = session.sensor
    if sensor.securityGeneration > 1:
        logger.error( 'Activating a {0} is not supported'.format( sensor.type ) )
        raise UnsupportedOperationException( 'Activating a {0} is not supported'.format( sensor.type ) )

    if sensor.type == SENSOR_TYPE.LIBRE_PRO_H:
        readCommand, writeCommand = _proGateCommands()
        session.send( readCommand )
        session.send( unlockCommand( sensor ) )
        session.send( writeCommand )
        session.send( lockCommand( sensor ) )
        session.send( readCommand )

    output = session.send( activationCommand( sensor ) )
    logger.info( 'NFC: after trying to activate received {0} for the patch info {1}'.format( binascii.hexlify( output ),
        binascii.hexlify( sensor.patchInfo ) ) )
    if len( output ) == 4:
        logger.info( 'NFC: {0} should be activated and warming up'.format( sensor.type ) )
    return session.read( 0, 43 )[1]

def enableStreaming( session, config ):
    """A1 1E: the sensor answers with the MAC address of its BLE peripheral."""
    sensor = session.sensor
    if sensor.type != SENSOR_TYPE.LIBRE2:
        logger.error( 'Enabling BLE streaming not supported by {0}'.format( sensor.type ) )
        raise UnsupportedOperationException( 'Enabling BLE streaming not supported by {0}'.format( sensor.type ) )

    unlockCode = sensor.streamingUnlockCode
    if config is not None:
        unlockCode = config.streamingUnlockCode or config.newStreamingUnlockCode()

    parameters = struct.pack( '<I', unlockCode & 0xFFFFFFFF )
    secret = BinaryDataDecoder.readUInt16LE( sensor.patchInfo, 4 ) ^ BinaryDataDecoder.makeUInt16( parameters[1], parameters[0] )
    command = nfcCommand( sensor, SUBCOMMAND.ENABLE_STREAMING, parameters, secret )
    logger.info( '# Enabling BLE streaming with unlock code {0}'.format( unlockCode ) )

    output = session.send( command )
    if len( output ) == 6:
        address = ':'.join( '{0:02X}'.format( b ) for b in reversed( output ) )
        logger.info( 'NFC: enabled BLE streaming on {0} {1} (unlock code: {2}, MAC address: {3})'.format( sensor.type,
            sensor.serial, unlockCode, address ) )
        sensor.streamingUnlockCode = unlockCode
        sensor.initialPatchInfo = sensor.patchInfo
        sensor.streamingUnlockCount = 0
        if config is not None:
            config.sensorAddress = address
            config.initialPatchInfo = sensor.patchInfo
            config.streamingUnlockCount = 0
    else:
        logger.warning( 'NFC: unexpected enable streaming output: {0}'.format( binascii.hexlify( output ) ) )

    return readFRAM( session, config )

TASKS = {
    TASK_REQUEST.READ_FRAM: readFRAM,
    TASK_REQUEST.DUMP: dump,
    TASK_REQUEST.RESET: reset,
    TASK_REQUEST.PROLONG: prolong,
    TASK_REQUEST.UNLOCK: unlock,
    TASK_REQUEST.ACTIVATE: activate,
    TASK_REQUEST.ENABLE_STREAMING: enableStreaming,
}

def runTask( tag, taskRequest = TASK_REQUEST.READ_FRAM, database = DEFAULT_DATABASE, authenticator = None, sensor = None ):
    """Runs one named operation during one contact with the tag.

    The returned TaskResult always carries the sensor parsed from whatever
    memory was obtained; failures are described by its status.
    """
    if taskRequest not in TASKS:
        raise ValueError( 'Unknown task request: {0}'.format( taskRequest ) )

    session = NFCSession( tag, sensor, authenticator )
    result = TaskResult( taskRequest )
    fram = b''
    config = None
    try:
        try:
            sensor = session.identify()
        except ( TimeoutException, TagCommandException ) as e:
            result.success = False
            result.error = e
            result.status = 'NFC: sensor identification failed: {0}'.format( e )
            logger.error( result.status )
            return result
        result.sensor = sensor
        if database is not None and sensor.serial:
            config = Config( sensor.serial, database )
            config.restore( sensor )

        try:
            if sensor.securityGeneration > 1:
                session.authenticate()

            if taskRequest == TASK_REQUEST.READ_FRAM and sensor.type == SENSOR_TYPE.LIBRE1:
                fram = readFRAM( session, config, LIBRE1_FULL_FRAM_BLOCKS )
            else:
                fram = TASKS[taskRequest]( session, config )
            result.status = '{0} completed'.format( taskRequest )
        except UnsupportedOperationException as e:
            result.success = False
            result.error = e
            result.status = str( e )
        except DataIncompleteError as e:
            logger.error( 'NFC: {0} after {1} of {2} blocks ({3}): {4}'.format( taskRequest, e.blocks, e.requested,
                'timeout' if e.timedOut else 'tag error', binascii.hexlify( e.data ) ) )
            fram = e.data if e.start == 0 else b''
            result.success = False
            result.error = e
            result.status = 'Incomplete read: {0}'.format( e )
        except ( TimeoutException, TagCommandException, Gen2Exception ) as e:
            result.success = False
            result.error = e
            result.status = '{0} failed: {1}'.format( taskRequest, e )

        if fram:
            sensor.updateFRAM( fram, DateTimeHelper.now() )
            sensor.detailFRAM()
        if config is not None:
            config.store( sensor )
    finally:
        session.close()
        if config is not None:
            config.close()

    if not result.success:
        logger.error( result.status )
    return result
