import logging
import binascii
import time

from .constants import SENSOR_TYPE, SUBCOMMAND, NFC_COMMAND_CODE
from .exceptions import TimeoutException, TagCommandException, DataIncompleteError, \
    UnsupportedOperationException, Gen2Exception
from .helpers import hexDump
from .libre2 import SECRET, usefulFunction
from .sensor import Sensor

logger = logging.getLogger(__name__)

class ISO15693:
    REQUEST_HIGH_DATA_RATE = 0x02
    RESPONSE_ERROR = 0x01

    READ_MULTIPLE_BLOCKS = 0x23
    WRITE_MULTIPLE_BLOCKS = 0x24
    GET_SYSTEM_INFO = 0x2B

    MANUFACTURER_TEXAS_INSTRUMENTS = 0x07

    ERROR_DESCRIPTION = {
        0x00: 'none',
        0x01: 'command not supported',
        0x02: 'command not recognized (e.g. format error)',
        0x03: 'option not supported',
        0x0F: 'unknown',
        0x10: 'block not available',
        0x11: 'block already locked',
        0x12: 'block locked, content cannot be changed',
    }

    @staticmethod
    def describeError( code ):
        return ISO15693.ERROR_DESCRIPTION.get( code, 'unknown' )

# Abbott IC manufacturer of the Libre 3 NFC front end
LIBRE3_MANUFACTURER = 0x7A

class SystemInfo( object ):
    def __init__( self, response ):
        self.infoFlags = response[0]
        # uid comes LSB first
        self.identifier = bytes( reversed( response[1:9] ) )
        position = 9
        self.dsfid = 0
        self.afi = 0
        self.blockCount = 0
        self.blockSize = 0
        self.icReference = 0
        if self.infoFlags & 0x01:
            self.dsfid = response[position]
            position += 1
        if self.infoFlags & 0x02:
            self.afi = response[position]
            position += 1
        if self.infoFlags & 0x04:
            self.blockCount = response[position] + 1
            self.blockSize = ( response[position + 1] & 0x1F ) + 1
            position += 2
        if self.infoFlags & 0x08:
            self.icReference = response[position]

class Iso15693Tag( object ):
    """ISO 15693 framing over a reader that exchanges raw frames.

    The reader only has to offer transceive(frame) -> bytes and raise
    TimeoutException when the tag does not answer.
    """

    def __init__( self, reader, identifier = b'' ):
        self.reader = reader
        self.identifier = bytes( identifier )

    def transceive( self, command, parameters = b'' ):
        frame = bytes( [ ISO15693.REQUEST_HIGH_DATA_RATE, command ] ) + bytes( parameters )
        logger.debug( '## NFC SEND: {0}'.format( binascii.hexlify( frame ) ) )
        response = bytes( self.reader.transceive( frame ) )
        logger.debug( '## NFC RECV: {0}'.format( binascii.hexlify( response ) ) )

        if len( response ) == 0:
            raise TimeoutException( 'Empty response to command 0x{0:02x}'.format( command ) )
        if response[0] & ISO15693.RESPONSE_ERROR:
            code = response[1] if len( response ) > 1 else 0x0F
            raise TagCommandException( 'Command 0x{0:02x} failed: 0x{1:02x} ({2})'.format( command, code,
                ISO15693.describeError( code ) ), code )
        return response[1:]

    def customCommand( self, code, parameters = b'' ):
        return self.transceive( code, bytes( [ ISO15693.MANUFACTURER_TEXAS_INSTRUMENTS ] ) + bytes( parameters ) )

    def readMultipleBlocks( self, first, last ):
        """Returns the list of 8-byte blocks first..last."""
        data = self.transceive( ISO15693.READ_MULTIPLE_BLOCKS, bytes( [ first & 0xFF, ( last - first ) & 0xFF ] ) )
        return [ data[i:i + 8] for i in range( 0, len( data ), 8 ) ]

    def writeMultipleBlocks( self, first, data ):
        count = len( data ) // 8
        self.transceive( ISO15693.WRITE_MULTIPLE_BLOCKS, bytes( [ first & 0xFF, ( count - 1 ) & 0xFF ] ) + bytes( data ) )

    def systemInfo( self ):
        info = SystemInfo( self.transceive( ISO15693.GET_SYSTEM_INFO ) )
        self.identifier = info.identifier
        return info

class NFCCommand( object ):
    def __init__( self, code, parameters = b'', description = '' ):
        self.code = code
        self.parameters = bytes( parameters )
        self.description = description

    def __repr__( self ):
        return 'NFCCommand(0x{0:02x}, {1}, {2!r})'.format( self.code, binascii.hexlify( self.parameters ).decode( 'ascii' ),
            self.description )

def backdoor( sensor ):
    if sensor.type == SENSOR_TYPE.LIBRE1:
        return bytes( [ 0xc2, 0xad, 0x75, 0x21 ] )
    elif sensor.type == SENSOR_TYPE.LIBRE_PRO_H:
        return bytes( [ 0xc2, 0xad, 0x00, 0x90 ] )
    return bytes( [ 0xde, 0xad, 0xbe, 0xef ] )

def nfcCommand( sensor, code, parameters = b'', secret = 0 ):
    """A1 subcommand; the ones below 0x20 are signed with the sensor uid."""
    if secret == 0:
        secret = SECRET
    parameters = bytes( parameters )
    if code < 0x20:
        parameters += usefulFunction( sensor.uid, code, secret )
    return NFCCommand( NFC_COMMAND_CODE.PATCH_INFO, bytes( [ code ] ) + parameters,
        SUBCOMMAND.DESCRIPTION.get( code, 'unknown' ) )

def activationCommand( sensor ):
    if sensor.type == SENSOR_TYPE.LIBRE1:
        return NFCCommand( NFC_COMMAND_CODE.ACTIVATE, backdoor( sensor ), 'activate' )
    elif sensor.type == SENSOR_TYPE.LIBRE_PRO_H:
        return NFCCommand( NFC_COMMAND_CODE.ACTIVATE, backdoor( sensor ) + bytes.fromhex( '4A454D573136382D5430323638365F23' ), 'activate' )
    elif sensor.type == SENSOR_TYPE.LIBRE2:
        return nfcCommand( sensor, SUBCOMMAND.ACTIVATE )
    return NFCCommand( 0x00, b'', 'activate' )

def getPatchInfoCommand( sensor ):
    return NFCCommand( NFC_COMMAND_CODE.PATCH_INFO, b'', 'get patch info' )

def lockCommand( sensor ):
    return NFCCommand( NFC_COMMAND_CODE.LOCK, backdoor( sensor ), 'lock' )

def readRawCommand( sensor ):
    return NFCCommand( NFC_COMMAND_CODE.READ_RAW, backdoor( sensor ), 'read raw' )

def unlockCommand( sensor ):
    return NFCCommand( NFC_COMMAND_CODE.UNLOCK, backdoor( sensor ), 'unlock' )

class NFCSession( object ):
    """One contact with a sensor tag.

    Commands are exchanged strictly one after the other; a session is
    identified once and never reused for another contact.
    """

    RETRIES = 5
    RETRY_DELAY = 0.25

    def __init__( self, tag, sensor = None, authenticator = None ):
        self.tag = tag
        self.sensor = sensor
        self.authenticator = authenticator
        self.systemInfo = None
        self.sessionInfo = b''
        self.authContext = 0
        self.identified = False
        self.closed = False

    def identify( self, retries = RETRIES ):
        logger.info( '# Identifying sensor' )
        if self.identified or self.closed:
            raise UnsupportedOperationException( 'NFC session already used' )

        patchInfo = b''
        systemInfo = None
        requestedRetry = 0
        while True:
            failedToScan = False
            if requestedRetry > 0:
                logger.info( 'NFC: retry # {0}...'.format( requestedRetry ) )
                time.sleep( self.RETRY_DELAY )

            # the first command sometimes gets lost while the tag powers up
            try:
                patchInfo = self.tag.customCommand( NFC_COMMAND_CODE.PATCH_INFO )
            except ( TimeoutException, TagCommandException ) as e:
                logger.debug( '## NFC: first patch info request failed: {0}'.format( e ) )
                failedToScan = True

            try:
                systemInfo = self.tag.systemInfo()
            except ( TimeoutException, TagCommandException ) as e:
                logger.error( 'NFC: error while getting system info: {0}'.format( e ) )
                if requestedRetry > retries:
                    raise
                failedToScan = True
                requestedRetry += 1

            try:
                patchInfo = self.tag.customCommand( NFC_COMMAND_CODE.PATCH_INFO )
            except ( TimeoutException, TagCommandException ) as e:
                logger.error( 'NFC: error while getting patch info: {0}'.format( e ) )
                if requestedRetry > retries and systemInfo is not None:
                    requestedRetry = 0
                elif not failedToScan:
                    failedToScan = True
                    requestedRetry += 1

            if not ( failedToScan and requestedRetry > 0 ):
                break

        if systemInfo is None:
            raise TimeoutException( 'NFC: no system info from the tag' )

        self.systemInfo = systemInfo
        self.identified = True

        identifier = self.tag.identifier
        uid = bytes( reversed( identifier ) )
        if self.sensor is None or ( self.sensor.uid and self.sensor.uid != uid ):
            self.sensor = Sensor()
        self.sensor.patchInfo = patchInfo
        self.sensor.uid = uid

        logger.info( 'NFC: IC identifier: {0}'.format( binascii.hexlify( identifier ) ) )
        logger.info( 'NFC: IC manufacturer code: 0x{0:02x}, IC reference: 0x{1:02x}'.format( identifier[1], systemInfo.icReference ) )
        logger.info( 'NFC: block count: {0}, block size: {1}'.format( systemInfo.blockCount, systemInfo.blockSize ) )
        if identifier[1] == LIBRE3_MANUFACTURER:
            self.sensor.type = SENSOR_TYPE.LIBRE3
            self.sensor.securityGeneration = 3

        logger.info( 'NFC: patch info: {0}'.format( binascii.hexlify( patchInfo ) ) )
        logger.info( 'NFC: sensor type: {0}, serial: {1}, security generation: {2}'.format( self.sensor.type,
            self.sensor.serial, self.sensor.securityGeneration ) )
        return self.sensor

    def close( self ):
        self.closed = True

    def send( self, command ):
        logger.debug( '## NFC: sending {0} command: {1}'.format( command.description, command ) )
        try:
            output = self.tag.customCommand( command.code, command.parameters )
        except ( TimeoutException, TagCommandException ) as e:
            logger.error( 'NFC: {0} command {1} failed: {2}'.format( command.description,
                binascii.hexlify( bytes( [ command.code ] ) + command.parameters ), e ) )
            raise
        logger.debug( '## NFC: {0} command output ({1} bytes): {2}'.format( command.description, len( output ),
            binascii.hexlify( output ) ) )
        return output

    def authenticate( self ):
        """Gen2 handshake: the challenge goes to the authenticator, which
        returns the signed get session info command."""
        logger.info( '# Authenticating Gen2 sensor' )
        if self.authenticator is None:
            raise Gen2Exception( 'No authenticator available', -1 )

        challenge = self.send( nfcCommand( self.sensor, SUBCOMMAND.READ_CHALLENGE ) )
        if len( challenge ) == 0:
            raise Gen2Exception( 'Empty security challenge', -1 )

        context, authenticatedCommand = self.authenticator.authenticatedCommand( self.sensor.uid, challenge,
            SUBCOMMAND.GET_SESSION_INFO )
        if context < 0 or len( authenticatedCommand ) < 4:
            logger.error( 'NFC: Gen2 authentication failed: {0}'.format( context ) )
            raise Gen2Exception( 'Cannot get the session info command', context if context < 0 else -15 )

        # skip the 02 A1 07 frame prefix
        command = nfcCommand( self.sensor, SUBCOMMAND.GET_SESSION_INFO )
        command.parameters = bytes( authenticatedCommand[3:] )
        self.sessionInfo = self.send( command )
        self.authContext = context
        logger.debug( '## NFC: Gen2 session info: {0}, context: {1}'.format( binascii.hexlify( self.sessionInfo ), context ) )
        return self.sessionInfo

    def read( self, fromBlock, count, requesting = 3, retries = RETRIES ):
        """Reads with the standard command, retrying failed rounds.

        The retry budget is shared by the whole read; when it runs out the
        blocks read so far travel with the DataIncompleteError.
        """
        buffer = bytearray()
        remaining = count
        requested = min( requesting, count )
        retry = 0

        while remaining > 0 and retry <= retries:
            blockToRead = fromBlock + len( buffer ) // 8
            try:
                blocks = self.tag.readMultipleBlocks( blockToRead, blockToRead + requested - 1 )
            except ( TimeoutException, TagCommandException ) as e:
                logger.warning( 'NFC: error while reading multiple blocks #{0}-#{1} ({2:02X}-{3:02X}): {4}'.format(
                    blockToRead, blockToRead + requested - 1, blockToRead, blockToRead + requested - 1, e ) )
                retry += 1
                if retry <= retries:
                    logger.info( 'NFC: retry # {0}...'.format( retry ) )
                    time.sleep( self.RETRY_DELAY )
                    continue
                logger.error( 'NFC: failed to read {0} blocks from #{1}, got {2}: {3}'.format( count, fromBlock,
                    len( buffer ) // 8, binascii.hexlify( buffer ) ) )
                raise DataIncompleteError( 'NFC: read error: {0}'.format( e ), fromBlock, buffer, count, e )

            for block in blocks:
                buffer += block
            remaining -= requested
            if remaining != 0 and remaining < requested:
                requested = remaining

        logger.debug( hexDump( buffer, 'NFC: did read {0} FRAM blocks:'.format( len( buffer ) // 8 ), startBlock = fromBlock ) )
        return fromBlock, bytes( buffer )

    def readBlocks( self, fromBlock, count, requesting = 3 ):
        """Reads with the proprietary B0/B3 commands, or with the
        authenticated A1 21 subcommand on Gen2 sensors."""
        if self.sensor.securityGeneration < 1 and self.sensor.type != SENSOR_TYPE.LIBRE_PRO_H:
            logger.error( 'readBlocks() B0/B3 commands not supported by {0}'.format( self.sensor.type ) )
            raise UnsupportedOperationException( 'readBlocks() B0/B3 commands not supported by {0}'.format( self.sensor.type ) )

        buffer = bytearray()
        remaining = count
        requested = min( requesting, count )

        while remaining > 0:
            blockToRead = fromBlock + len( buffer ) // 8
            readCommand = NFCCommand( NFC_COMMAND_CODE.READ_BLOCKS,
                bytes( [ blockToRead & 0xFF, blockToRead >> 8, requested - 1 ] ), 'B3' )
            if requested == 1:
                readCommand = NFCCommand( NFC_COMMAND_CODE.READ_BLOCK, bytes( [ blockToRead & 0xFF, blockToRead >> 8 ] ), 'B0' )

            if self.sensor.securityGeneration > 1:
                if blockToRead <= 255:
                    readCommand = nfcCommand( self.sensor, SUBCOMMAND.READ_BLOCKS, bytes( [ blockToRead, requested - 1 ] ) )

            try:
                output = self.send( readCommand )
            except ( TimeoutException, TagCommandException ) as e:
                logger.error( 'NFC: error while reading block #{0}: {1}'.format( blockToRead, e ) )
                raise DataIncompleteError( 'NFC: read error: {0}'.format( e ), fromBlock, buffer, count, e )

            if self.sensor.securityGeneration < 2:
                buffer += output
            else:
                buffer += output[8:]
            remaining -= requested
            if remaining != 0 and remaining < requested:
                requested = remaining

        return fromBlock, bytes( buffer )

    def readRaw( self, address, bytesToRead ):
        """Reads any memory address of a Libre 1 with the backdoored A3 command."""
        if self.sensor.type != SENSOR_TYPE.LIBRE1:
            logger.error( 'readRaw() A3 command not supported by {0}'.format( self.sensor.type ) )
            raise UnsupportedOperationException( 'readRaw() A3 command not supported by {0}'.format( self.sensor.type ) )

        buffer = bytearray()
        remainingBytes = bytesToRead

        while remainingBytes > 0:
            addressToRead = address + len( buffer )
            chunk = min( remainingBytes, 24 )

            # the command reads words: an odd start or length needs one more
            remainingWords = remainingBytes // 2
            if remainingBytes % 2 == 1 or ( remainingBytes % 2 == 0 and addressToRead % 2 == 1 ):
                remainingWords += 1
            wordsToRead = min( remainingWords, 12 )

            command = readRawCommand( self.sensor )
            command.parameters += bytes( [ addressToRead & 0xFF, addressToRead >> 8, wordsToRead ] )

            try:
                output = self.send( command )
            except ( TimeoutException, TagCommandException ) as e:
                logger.error( 'NFC: error while reading {0} words at raw memory 0x{1:04X}: {2}'.format( wordsToRead, addressToRead, e ) )
                raise DataIncompleteError( 'NFC: raw read error: {0}'.format( e ), address, buffer, bytesToRead, e )

            if addressToRead % 2 == 1:
                output = output[1:]
            if len( output ) - chunk == 1:
                output = output[:-1]

            buffer += output
            remainingBytes -= len( output )
            if len( output ) == 0:
                raise DataIncompleteError( 'NFC: raw read returned no data', address, buffer, bytesToRead )

        logger.debug( hexDump( buffer, 'NFC: did read {0} bytes at raw memory 0x{1:04X}:'.format( len( buffer ), address ),
            address = address ) )
        return address, bytes( buffer )

    def writeRaw( self, address, data ):
        """Overwrites FRAM bytes of a Libre 1 by rewriting the enclosing blocks.

        Returns the number of blocks written.
        """
        if self.sensor.type != SENSOR_TYPE.LIBRE1:
            logger.error( 'FRAM overwriting not supported by {0}'.format( self.sensor.type ) )
            raise UnsupportedOperationException( 'FRAM overwriting not supported by {0}'.format( self.sensor.type ) )
        if address < 0xF860:
            raise UnsupportedOperationException( 'Only the FRAM from 0xF860 can be overwritten, not 0x{0:04X}'.format( address ) )

        data = bytes( data )
        self.send( unlockCommand( self.sensor ) )

        addressToRead = ( address // 8 ) * 8
        startOffset = address % 8
        endAddressToRead = ( ( address + len( data ) - 1 ) // 8 ) * 8 + 7
        blocksToRead = ( endAddressToRead - addressToRead ) // 8 + 1

        _, current = self.readRaw( addressToRead, blocksToRead * 8 )
        logger.debug( hexDump( current, 'NFC: blocks to overwrite:', address = addressToRead ) )
        patched = bytearray( current )
        patched[startOffset:startOffset + len( data )] = data
        logger.debug( hexDump( patched, 'NFC: patched blocks:', address = addressToRead ) )

        startBlock = addressToRead // 8 - 0xF860 // 8
        written = 0
        for i in range( 0, blocksToRead, 2 ):
            chunk = patched[i * 8:( i + 2 ) * 8]
            blockToWrite = startBlock + i
            try:
                self.tag.writeMultipleBlocks( blockToWrite, chunk )
            except ( TimeoutException, TagCommandException ) as e:
                logger.error( 'NFC: error while writing block #{0}: {1}'.format( blockToWrite, e ) )
                raise DataIncompleteError( 'NFC: write error: {0}'.format( e ), startBlock, patched[:written * 8], blocksToRead, e )
            written += len( chunk ) // 8
            logger.debug( '## NFC: wrote blocks 0x{0:02X}-0x{1:02X} {2} at 0x{3:04X}'.format( blockToWrite,
                blockToWrite + len( chunk ) // 8 - 1, binascii.hexlify( chunk ), addressToRead + i * 8 ) )

        self.send( lockCommand( self.sensor ) )
        return written

    def write( self, fromBlock, data ):
        """Writes whole blocks two at a time; returns the blocks written."""
        data = bytes( data )
        written = 0
        for offset in range( 0, len( data ), 16 ):
            chunk = data[offset:offset + 16]
            blockToWrite = fromBlock + offset // 8
            try:
                self.tag.writeMultipleBlocks( blockToWrite, chunk )
            except ( TimeoutException, TagCommandException ) as e:
                logger.error( 'NFC: error while writing multiple blocks #{0}-#{1} {2}: {3}'.format( blockToWrite,
                    blockToWrite + len( chunk ) // 8 - 1, binascii.hexlify( chunk ), e ) )
                raise DataIncompleteError( 'NFC: write error: {0}'.format( e ), fromBlock, data[:written * 8], len( data ) // 8, e )
            written += len( chunk ) // 8
        return written

    @property
    def fullFRAMBlocks( self ):
        # Libre Pro: 22 blocks of header, footer and body, then 24 of history
        if self.sensor.type == SENSOR_TYPE.LIBRE_PRO_H:
            return 22 + 24
        return 43

    def readFRAM( self, blocks = None ):
        if blocks is None:
            blocks = self.fullFRAMBlocks
        logger.info( '# Reading {0} FRAM blocks'.format( blocks ) )
        return self.read( 0, blocks )[1]