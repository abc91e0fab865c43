from crc import Calculator, Configuration # pip install crc

from .constants import LIBRE2_DUMP_MAP
from .helpers import BinaryDataDecoder

# Reflected CCITT table walk with the final register bit-reversed:
# this is CRC-16/MCRF4XX with an unreflected output.
CRC16_CONFIGURATION = Configuration(
    width = 16,
    polynomial = 0x1021,
    init_value = 0xFFFF,
    final_xor_value = 0x0000,
    reverse_input = True,
    reverse_output = False
)

_calculator = Calculator( CRC16_CONFIGURATION, optimized = True )

def crc16( data ):
    return _calculator.checksum( bytes( data ) )

class FRAM_SECTION:
    # name, offset of the stored CRC, end of the checksummed bytes
    HEADER = ( 'header', 0, 3 * 8 )
    BODY = ( 'body', 3 * 8, 40 * 8 )
    FOOTER = ( 'footer', 40 * 8, 43 * 8 )
    COMMANDS = ( 'commands', 43 * 8, 43 * 8 + 195 * 8 )

    LIBRE = [ HEADER, BODY, FOOTER ]

def sectionCRC( fram, section ):
    _, offset, end = section
    return BinaryDataDecoder.readUInt16LE( fram, offset ), crc16( fram[offset + 2:end] )

def checksummedFRAM( data ):
    """Rewrites the stored CRC16 of every section with the computed one."""
    fram = bytearray( data )
    for _, offset, end in FRAM_SECTION.LIBRE:
        fram[offset:offset + 2] = BinaryDataDecoder.packUInt16LE( crc16( fram[offset + 2:end] ) )

    if len( fram ) > 43 * 8:
        # Libre 1 DF: 429e, A2: f9ae
        commandsCRC = crc16( fram[43 * 8 + 2:( 244 - 6 ) * 8] )
        fram[43 * 8:43 * 8 + 2] = BinaryDataDecoder.packUInt16LE( commandsCRC )
    return fram

def findChecksummedRegions( data, limit = 89 * 8 + 34 + 10 ):
    """Scans a dump for (offset, length, description) regions whose leading
    little-endian word is the CRC16 of the words following it."""
    regions = []
    size = min( limit, len( data ) )
    offset = 0
    i = offset + 2
    while offset < size - 3 and i < size - 1:
        if BinaryDataDecoder.readUInt16LE( data, offset ) == crc16( data[offset + 2:i + 2] ):
            description = LIBRE2_DUMP_MAP.get( offset, ( 0, '[???]' ) )[1]
            regions.append( ( offset, i - offset + 2, description ) )
            offset = i + 2
            i = offset
        i += 2
    return regions
