import argparse
import asyncio
import binascii
import logging
import string
import sys

from .ble import findTransmitter, BLEConnection
from .checksum import checksummedFRAM, findChecksummedRegions
from .config import Config, DEFAULT_DATABASE
from .exceptions import UnsupportedOperationException, TimeoutException, DisconnectedException
from .helpers import hexDump
from .sensor import Sensor, crcReport, LIBRE_LAYOUT, serialNumber, encodeStatusCode, decodeStatusCode

logger = logging.getLogger(__name__)

def loadDump( path ):
    """A dump file holds either raw bytes or their hex text."""
    with open( path, 'rb' ) as f:
        content = f.read()
    text = content.decode( 'ascii', errors = 'replace' )
    stripped = ''.join( text.split() )
    if stripped and all( c in string.hexdigits for c in stripped ):
        return binascii.unhexlify( stripped )
    return content

def parseCommand( args ):
    fram = loadDump( args.file )
    sensor = Sensor( bytes.fromhex( args.uid ) if args.uid else b'', bytes.fromhex( args.patch_info ) if args.patch_info else b'' )
    sensor.updateFRAM( fram )
    print( sensor.crcReport )
    print( 'Sensor: {0}'.format( sensor ) )
    print( 'Age: {0} minutes, maximum life: {1} minutes'.format( sensor.age, sensor.maxLife ) )
    print( 'Calibration info: {0}'.format( sensor.calibrationInfo ) )
    print( 'Trend:' )
    for glucose in sensor.factoryTrend:
        print( '  {0}'.format( glucose ) )
    print( 'History:' )
    for glucose in sensor.factoryHistory:
        print( '  {0}'.format( glucose ) )
    sensor.detailFRAM()

def checksumCommand( args ):
    fram = loadDump( args.file )
    if args.fix:
        fram = checksummedFRAM( fram )
        with open( args.fix, 'wb' ) as f:
            f.write( fram )
        logger.info( 'Wrote the checksummed FRAM to {0}'.format( args.fix ) )
    print( crcReport( fram, LIBRE_LAYOUT ) )
    for offset, length, description in findChecksummedRegions( fram ):
        print( 'CRC matches for {0} bytes at #{1:02x} {2}'.format( length, offset // 8, description ) )

def dumpCommand( args ):
    print( hexDump( loadDump( args.file ), startBlock = 0 ) )

def serialCommand( args ):
    print( serialNumber( bytes.fromhex( args.uid ), args.family ) )

def statusCodeCommand( args ):
    if args.value is not None:
        print( encodeStatusCode( args.value ) )
    else:
        print( decodeStatusCode( args.code ) )

def bleCommand( args ):
    async def stream():
        device, name, transmitterType, manufacturerData = await findTransmitter( args.timeout, args.name )
        config = None
        transmitter = transmitterType()
        if name.lower().startswith( 'abbott' ):
            transmitter.parseAdvertisedName( name )
            config = Config( transmitter.serial, args.db )
            transmitter.config = config
        transmitter.parseManufacturerData( manufacturerData )
        try:
            await BLEConnection( device, transmitter, onStatus = print ).run( args.duration )
        finally:
            if config is not None:
                config.close()

    try:
        asyncio.run( stream() )
    except ( UnsupportedOperationException, TimeoutException, DisconnectedException ) as e:
        logger.error( e )
        sys.exit( 1 )

def main():
    parser = argparse.ArgumentParser( prog = 'decoding_freestyle_libre' )
    parser.add_argument( '-v', '--verbose', action = 'count', default = 0, help = 'Log INFO messages, twice for DEBUG' )
    subparsers = parser.add_subparsers( dest = 'command' )
    subparsers.required = True

    p = subparsers.add_parser( 'parse', help = 'Decode a saved FRAM image' )
    p.add_argument( 'file', help = 'Binary or hex FRAM dump' )
    p.add_argument( '--uid', help = 'Patch uid in hex, needed to decrypt a Libre 2 FRAM' )
    p.add_argument( '--patch-info', help = 'Patch info in hex, selects the sensor type' )
    p.set_defaults( func = parseCommand )

    p = subparsers.add_parser( 'checksum', help = 'Verify the section CRCs of a saved FRAM image' )
    p.add_argument( 'file', help = 'Binary or hex FRAM dump' )
    p.add_argument( '--fix', metavar = 'OUTPUT', help = 'Write a copy with every section CRC recomputed' )
    p.set_defaults( func = checksumCommand )

    p = subparsers.add_parser( 'dump', help = 'Hex dump of a saved image in 8-byte blocks' )
    p.add_argument( 'file' )
    p.set_defaults( func = dumpCommand )

    p = subparsers.add_parser( 'serial', help = 'Serial number of a patch uid' )
    p.add_argument( 'uid', help = 'Patch uid in hex' )
    p.add_argument( '-f', '--family', type = int, default = 0, help = 'Sensor family digit (0, 1, 3 or 7)' )
    p.set_defaults( func = serialCommand )

    p = subparsers.add_parser( 'status-code', help = 'Encode or decode a 10 character status code' )
    group = p.add_mutually_exclusive_group( required = True )
    group.add_argument( '--value', type = int )
    group.add_argument( '--code' )
    p.set_defaults( func = statusCodeCommand )

    p = subparsers.add_parser( 'ble', help = 'Stream from the first transmitter found' )
    p.add_argument( '-n', '--name', help = 'Only connect to a peripheral whose name contains this' )
    p.add_argument( '-t', '--timeout', type = float, default = 10.0, help = 'Scan timeout in seconds' )
    p.add_argument( '-d', '--duration', type = float, help = 'Disconnect after this many seconds' )
    p.add_argument( '--db', default = DEFAULT_DATABASE, help = 'Sensor settings database' )
    p.set_defaults( func = bleCommand )

    args = parser.parse_args()
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig( format = '%(asctime)s %(levelname)s [%(name)s] %(message)s', level = level )

    args.func( args )

if __name__ == '__main__':
    main()
