import struct
from Crypto.Util.strxor import strxor # pip install pycryptodome

from .checksum import crc16
from .constants import SENSOR_TYPE, SUBCOMMAND
from .exceptions import DecryptionException, UnsupportedOperationException
from .helpers import BinaryDataDecoder

# Libre 2 keystream generator, shared by the FRAM, BLE and unlock payloads.
# Every function here is pure: the same inputs give the same bytes.

KEY = ( 0xA0C5, 0x6860, 0x0000, 0x14C6 )
SECRET = 0x1b6a

FRAM_BLOCKS = 43

u16 = BinaryDataDecoder.makeUInt16

def wordsToBytes( words ):
    return struct.pack( '<{0}H'.format( len( words ) ), *[ w & 0xFFFF for w in words ] )

def prepareVariables( uid, x, y ):
    return [
        ( u16( uid[5], uid[4] ) + x + y ) & 0xFFFF,
        ( u16( uid[3], uid[2] ) + KEY[2] ) & 0xFFFF,
        ( u16( uid[1], uid[0] ) + x * 2 ) & 0xFFFF,
        0x241a ^ KEY[3]
    ]

def prepareVariables2( uid, i1, i2, i3, i4 ):
    return [
        ( u16( uid[5], uid[4] ) + i1 ) & 0xFFFF,
        ( u16( uid[3], uid[2] ) + i2 ) & 0xFFFF,
        ( u16( uid[1], uid[0] ) + i3 + KEY[2] ) & 0xFFFF,
        ( i4 + KEY[3] ) & 0xFFFF
    ]

def _op( value ):
    # The two low bits select which key words get folded into the shifted value
    result = value >> 2
    if value & 1:
        result ^= KEY[1]
    if value & 2:
        result ^= KEY[0]
    return result

def processCrypto( words ):
    r0 = _op( words[0] ) ^ words[3]
    r1 = _op( r0 ) ^ words[2]
    r2 = _op( r1 ) ^ words[1]
    r3 = _op( r2 ) ^ words[0]
    r4 = _op( r3 )
    r5 = _op( r4 ^ r0 )
    r6 = _op( r5 ^ r1 )
    r7 = _op( r6 ^ r2 )
    return [ r3 ^ r7, r2 ^ r6, r1 ^ r5, r0 ^ r4 ]

def usefulFunction( uid, x, y ):
    blockKey = processCrypto( prepareVariables( uid, x, y ) )
    # low and high words are XORed with inverted constants
    return wordsToBytes( [ blockKey[0] ^ 0x4163, blockKey[1] ^ 0x4344 ] )

def _framArgument( sensorType, patchInfo, block ):
    if sensorType == SENSOR_TYPE.LIBRE_US_14DAY:
        # header and footer use a fixed value
        if block < 3 or block >= 40:
            return 0xcadc
        return u16( patchInfo[5], patchInfo[4] )
    return u16( patchInfo[5], patchInfo[4] ) ^ 0x44

def decryptFRAM( sensorType, uid, patchInfo, data ):
    """Decrypts the 43 FRAM blocks of a Libre 2 or Libre US 14 day sensor.

    XOR with the keystream is its own inverse, so this also encrypts.
    """
    if sensorType not in ( SENSOR_TYPE.LIBRE2, SENSOR_TYPE.LIBRE_US_14DAY ):
        raise UnsupportedOperationException( 'Unsupported sensor type: {0}'.format( sensorType ) )

    result = bytearray()
    for block in range( FRAM_BLOCKS ):
        blockKey = processCrypto( prepareVariables( uid, block, _framArgument( sensorType, patchInfo, block ) ) )
        result += strxor( bytes( data[block * 8:block * 8 + 8] ), wordsToBytes( blockKey ) )
    return bytes( result )

encryptFRAM = decryptFRAM

def streamingUnlockPayload( uid, patchInfo, enableTime, unlockCount ):
    """12 bytes written to the Abbott BLE login characteristic."""
    b = struct.pack( '<I', ( enableTime + unlockCount ) & 0xFFFFFFFF )

    # data of the activate and enable streaming commands sent to the sensor
    ad = usefulFunction( uid, SUBCOMMAND.ACTIVATE, SECRET )
    ed = usefulFunction( uid, SUBCOMMAND.ENABLE_STREAMING, ( enableTime & 0xFFFF ) ^ u16( patchInfo[5], patchInfo[4] ) )

    t11 = u16( ed[1], ed[0] ) ^ u16( b[3], b[2] )
    t12 = u16( ad[1], ad[0] )
    t13 = u16( ed[3], ed[2] ) ^ u16( b[1], b[0] )
    t14 = u16( ad[3], ad[2] )

    t2 = processCrypto( prepareVariables2( uid, t11, t12, t13, t14 ) )

    t31 = crc16( bytes( [ 0xc1, 0xc4, 0xc3, 0xc0, 0xd4, 0xe1, 0xe7, 0xba ] ) + wordsToBytes( t2[0:1] ) )
    t32 = crc16( wordsToBytes( t2[1:4] ) )
    t33 = crc16( ad[0:4] + ed[0:2] )
    t34 = crc16( ed[2:4] + b )

    t4 = processCrypto( prepareVariables2( uid, t31, t32, t33, t34 ) )

    return b + wordsToBytes( t4 )

def bleKeystream( uid, seed ):
    d = usefulFunction( uid, SUBCOMMAND.ACTIVATE, SECRET )
    x = ( u16( d[1], d[0] ) ^ u16( d[3], d[2] ) ) | 0x63
    y = seed ^ 0x63

    key = bytearray()
    blockKey = processCrypto( prepareVariables( uid, x, y ) )
    for _ in range( 8 ):
        key += wordsToBytes( blockKey )
        blockKey = processCrypto( blockKey )
    return bytes( key )

def decryptBLE( uid, data ):
    """Decrypts a 46-byte Libre 2 BLE payload.

    The first two bytes seed the keystream; the 44 decrypted bytes end with
    the CRC16 of the first 42.
    """
    if len( data ) < 46:
        raise DecryptionException( 'BLE data decryption failed: {0} bytes instead of 46'.format( len( data ) ) )

    payload = bytes( data[2:] )
    result = strxor( payload, bleKeystream( uid, u16( data[1], data[0] ) )[:len( payload )] )

    if crc16( result[:42] ) != BinaryDataDecoder.readUInt16LE( result, 42 ):
        raise DecryptionException( 'BLE data decryption failed' )
    return result
