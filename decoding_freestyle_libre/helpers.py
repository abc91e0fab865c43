import datetime
import struct
import binascii
from bitstring import BitArray, Bits # pip install bitstring
from dateutil import tz
from dateutil.relativedelta import relativedelta


class DateTimeHelper( object ):
    @staticmethod
    def now():
        # Non-naive, so that readings can be converted to UTC by consumers
        return datetime.datetime.now( tz.tzlocal() )

    @staticmethod
    def startDate( lastReadingDate, ageMinutes ):
        return lastReadingDate - datetime.timedelta( minutes = ageMinutes )

    @staticmethod
    def formattedInterval( minutes ):
        # relativedelta carries minutes into hours and hours into days
        delta = relativedelta( minutes = minutes )
        parts = []
        for amount, unit in ( ( delta.days, 'day' ), ( delta.hours, 'hour' ), ( delta.minutes, 'minute' ) ):
            if amount:
                parts.append( '{0} {1}{2}'.format( amount, unit, '' if amount == 1 else 's' ) )
        if not parts:
            return '0 minutes'
        return ', '.join( parts )

class BinaryDataDecoder( object ):
    @staticmethod
    def readUInt32LE( binData, offset ):
        return struct.unpack( '<I', bytes( binData[offset:offset + 4] ) )[0]

    @staticmethod
    def readUInt16LE( binData, offset ):
        return struct.unpack( '<H', bytes( binData[offset:offset + 2] ) )[0]

    @staticmethod
    def makeUInt16( high, low ):
        return ( ( high << 8 ) | low ) & 0xFFFF

    @staticmethod
    def packUInt16LE( value ):
        return struct.pack( '<H', value & 0xFFFF )

class BitField( object ):
    """Packed little-endian bit fields over a byte buffer.

    Bit ``i`` of a field starting at (byteOffset, bitOffset) is bit
    ``(byteOffset * 8 + bitOffset + i) % 8`` of byte
    ``(byteOffset * 8 + bitOffset + i) // 8``, i.e. the buffer is read as one
    little-endian integer. Callers must size buffers correctly: reading or
    writing past the end is a programming error and is not checked.
    """

    def __init__( self, buffer ):
        # The byte-reversed buffer puts bit 0 of byte 0 at the far right
        self.bits = BitArray( bytes( reversed( bytes( buffer ) ) ) )

    def _slice( self, byteOffset, bitOffset, bitCount ):
        start = byteOffset * 8 + bitOffset
        end = self.bits.len - start
        return end - bitCount, end

    def readBits( self, byteOffset, bitOffset, bitCount ):
        if bitCount == 0:
            return 0
        begin, end = self._slice( byteOffset, bitOffset, bitCount )
        return self.bits[begin:end].uint

    def writeBits( self, byteOffset, bitOffset, bitCount, value ):
        if bitCount == 0:
            return
        begin, end = self._slice( byteOffset, bitOffset, bitCount )
        self.bits[begin:end] = Bits( uint = value & ( ( 1 << bitCount ) - 1 ), length = bitCount )

    @property
    def bytes( self ):
        return bytearray( reversed( self.bits.bytes ) )

def readBits( buffer, byteOffset, bitOffset, bitCount ):
    return BitField( buffer ).readBits( byteOffset, bitOffset, bitCount )

def writeBits( buffer, byteOffset, bitOffset, bitCount, value ):
    field = BitField( buffer )
    field.writeBits( byteOffset, bitOffset, bitCount, value )
    return field.bytes

def hexDump( data, header = '', address = 0, startBlock = None ):
    """Eight bytes per line, prefixed by the block number or the memory address."""
    lines = [ header ] if header else []
    for offset in range( 0, len( data ), 8 ):
        chunk = bytes( data[offset:offset + 8] )
        if startBlock is not None:
            prefix = '{0:02X}'.format( startBlock + offset // 8 )
        else:
            prefix = '{0:04X}'.format( address + offset )
        hexBytes = ' '.join( '{0:02X}'.format( b ) for b in chunk )
        text = ''.join( chr( b ) if 32 <= b < 127 else '.' for b in chunk )
        lines.append( '{0}  {1:<23}  {2}'.format( prefix, hexBytes, text ) )
    return '\n'.join( lines )

def hexlify( data ):
    return binascii.hexlify( bytes( data ) ).decode( 'ascii' )
