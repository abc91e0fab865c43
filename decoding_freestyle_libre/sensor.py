import logging
import math
import datetime

from .checksum import crc16, FRAM_SECTION
from .constants import SENSOR_TYPE, SENSOR_FAMILY, SENSOR_REGION, SENSOR_STATE, DATA_QUALITY, decodeFailure
from .helpers import DateTimeHelper, BinaryDataDecoder, BitField, hexDump
from . import libre2

logger = logging.getLogger(__name__)

SERIAL_ALPHABET = '0123456789ACDEFGHJKLMNPQRTUVWXYZ'

def serialNumber( uid, family = SENSOR_FAMILY.LIBRE ):
    if len( uid ) != 8:
        return ''
    b = bytes( reversed( bytes( uid ) ) )[2:]
    fiveBits = [
        b[0] >> 3,
        ( b[0] << 2 ) + ( b[1] >> 6 ),
        b[1] >> 1,
        ( b[1] << 4 ) + ( b[2] >> 4 ),
        ( b[2] << 1 ) + ( b[3] >> 7 ),
        b[3] >> 2,
        ( b[3] << 3 ) + ( b[4] >> 5 ),
        b[4],
        b[5] >> 3,
        b[5] << 2,
    ]
    return str( family ) + ''.join( SERIAL_ALPHABET[v & 0x1F] for v in fiveBits )

def encodeStatusCode( status ):
    return ''.join( SERIAL_ALPHABET[( status >> ( i * 5 ) ) & 0x1F] for i in range( 10 ) )

def decodeStatusCode( code ):
    status = 0
    for i, char in enumerate( code[:10] ):
        position = SERIAL_ALPHABET.find( char )
        if position < 0:
            raise ValueError( 'Invalid status code character: {0!r}'.format( char ) )
        status += position << ( i * 5 )
    return status

class Glucose( object ):
    def __init__( self, rawValue = 0, rawTemperature = 0, temperatureAdjustment = 0, id = 0, date = None,
            hasError = False, dataQuality = DATA_QUALITY.OK, dataQualityFlags = 0, value = None, source = 'raw' ):
        self.rawValue = rawValue
        self.rawTemperature = rawTemperature
        self.temperatureAdjustment = temperatureAdjustment
        self.id = id
        self.date = date
        self.hasError = hasError
        self.dataQuality = dataQuality
        self.dataQualityFlags = dataQualityFlags
        self.value = rawValue // 10 if value is None else value
        self.source = source

    @classmethod
    def gap( cls, id, date ):
        return cls( id = id, date = date, value = -1 )

    @property
    def isGap( self ):
        return self.value == -1

    def _key( self ):
        return ( self.rawValue, self.rawTemperature, self.temperatureAdjustment, self.id, self.date,
            self.hasError, self.dataQuality, self.dataQualityFlags, self.value )

    def __eq__( self, other ):
        return isinstance( other, Glucose ) and self._key() == other._key()

    def __ne__( self, other ):
        return not self.__eq__( other )

    def __str__( self ):
        return '{0} id:{1} raw:{2} value:{3} temp:{4} adj:{5} quality:{6}'.format( self.__class__.__name__,
            self.id, self.rawValue, self.value, self.rawTemperature, self.temperatureAdjustment,
            DATA_QUALITY.describe( self.dataQuality ) )

    def __repr__( self ):
        return str( self )

class CalibrationInfo( object ):
    def __init__( self, i1 = 0, i2 = 0, i3 = 0, i4 = 0, i5 = 0, i6 = 0 ):
        self.i1 = i1
        self.i2 = i2
        self.i3 = i3
        self.i4 = i4
        self.i5 = i5
        self.i6 = i6

    @property
    def values( self ):
        return ( self.i1, self.i2, self.i3, self.i4, self.i5, self.i6 )

    @property
    def isEmpty( self ):
        return not any( self.values )

    def __eq__( self, other ):
        return isinstance( other, CalibrationInfo ) and self.values == other.values

    def __ne__( self, other ):
        return not self.__eq__( other )

    def __repr__( self ):
        return 'CalibrationInfo(i1={0}, i2={1}, i3={2}, i4={3}, i5={4}, i6={5})'.format( *self.values )

class Calibration( object ):
    """Linear fit of the raw value whose slope and offset both depend on
    the raw temperature."""

    def __init__( self, slopeSlope = 0.0, slopeOffset = 0.0, offsetOffset = 0.0, offsetSlope = 0.0 ):
        self.slopeSlope = slopeSlope
        self.slopeOffset = slopeOffset
        self.offsetOffset = offsetOffset
        self.offsetSlope = offsetSlope

    @classmethod
    def fromDict( cls, parameters ):
        def get( camel, snake ):
            return float( parameters.get( camel, parameters.get( snake, 0.0 ) ) )
        return cls( get( 'slopeSlope', 'slope_slope' ), get( 'slopeOffset', 'slope_offset' ),
            get( 'offsetOffset', 'offset_offset' ), get( 'offsetSlope', 'offset_slope' ) )

    @property
    def isEmpty( self ):
        return self.slopeSlope == 0.0 and self.slopeOffset == 0.0 and self.offsetOffset == 0.0 and self.offsetSlope == 0.0

    @property
    def isNull( self ):
        # what the calibration server answers for a sensor it cannot fit
        return self.offsetOffset == -2.0 and self.slopeSlope == 0.0 and self.slopeOffset == 0.0 and self.offsetSlope == 0.0

    def value( self, rawValue, rawTemperature ):
        slope = self.slopeSlope * rawTemperature + self.offsetSlope
        offset = self.slopeOffset * rawTemperature + self.offsetOffset
        return rawValue * slope + offset

    def apply( self, glucose ):
        if glucose.isGap or glucose.rawValue == 0:
            return glucose
        calibrated = Glucose( glucose.rawValue, glucose.rawTemperature, glucose.temperatureAdjustment, glucose.id,
            glucose.date, glucose.hasError, glucose.dataQuality, glucose.dataQualityFlags,
            value = int( round( self.value( glucose.rawValue, glucose.rawTemperature ) ) ) )
        return calibrated

    def __eq__( self, other ):
        return isinstance( other, Calibration ) and ( self.slopeSlope, self.slopeOffset, self.offsetOffset, self.offsetSlope ) == \
            ( other.slopeSlope, other.slopeOffset, other.offsetOffset, other.offsetSlope )

    def __ne__( self, other ):
        return not self.__eq__( other )

# Steinhart-Hart coefficients of the sensor thermistor
THERMISTOR = ( 0.0009180023, 0.0001964561, 0.0000007061775, 0.00000005283566 )

def sensorTemperature( glucose, calibrationInfo ):
    resistance = ( glucose.rawTemperature * 72500.0 ) / ( glucose.temperatureAdjustment + calibrationInfo.i6 ) - 1000.0
    if resistance <= 0:
        return None
    logR = math.log( resistance )
    ca, cb, cc, cd = THERMISTOR
    return 1.0 / ( ca + cb * logR + cc * logR ** 2 + cd * logR ** 3 ) - 273.15

def factoryGlucose( glucose, calibrationInfo ):
    """Converts a raw reading with the factory values burned in the footer."""
    if calibrationInfo.isEmpty or glucose.isGap or glucose.rawValue == 0:
        return glucose
    if calibrationInfo.i4 == calibrationInfo.i3 or glucose.temperatureAdjustment + calibrationInfo.i6 == 0:
        return glucose
    temperature = sensorTemperature( glucose, calibrationInfo )
    if temperature is None:
        return glucose
    g1 = 65.0 * ( glucose.rawValue - calibrationInfo.i3 ) / ( calibrationInfo.i4 - calibrationInfo.i3 )
    g2 = math.pow( 1.045, 32.5 - temperature )
    return Glucose( glucose.rawValue, glucose.rawTemperature, glucose.temperatureAdjustment, glucose.id,
        glucose.date, glucose.hasError, glucose.dataQuality, glucose.dataQualityFlags,
        value = int( round( g1 * g2 ) ), source = 'factory' )

class FRAMLayout( object ):
    """Offsets of the logical fields of a sensor memory image."""

    def __init__( self, name, size, bodyEnd, sections, ageOffset, trendIndexOffset, historyIndexOffset,
            trendOffset, historyOffset, regionOffset, maxLifeOffset, i1Offset, calibrationOffset,
            cursorSize = 1, initializationsOffset = None, historyWraps = True, rawMask = 0x3FFF ):
        self.name = name
        self.size = size
        self.bodyEnd = bodyEnd
        self.sections = sections
        self.ageOffset = ageOffset
        self.trendIndexOffset = trendIndexOffset
        self.historyIndexOffset = historyIndexOffset
        self.cursorSize = cursorSize
        self.trendOffset = trendOffset
        self.historyOffset = historyOffset
        self.regionOffset = regionOffset
        self.maxLifeOffset = maxLifeOffset
        self.i1Offset = i1Offset
        self.calibrationOffset = calibrationOffset
        self.initializationsOffset = initializationsOffset
        self.historyWraps = historyWraps
        self.rawMask = rawMask

    def readCursor( self, fram, offset ):
        if self.cursorSize == 1:
            return fram[offset]
        return BinaryDataDecoder.readUInt16LE( fram, offset )

LIBRE_LAYOUT = FRAMLayout(
    name = 'Libre',
    size = 344,
    bodyEnd = 320,
    sections = FRAM_SECTION.LIBRE,
    ageOffset = 316,
    initializationsOffset = 318,
    trendIndexOffset = 26,
    historyIndexOffset = 27,
    trendOffset = 28,
    historyOffset = 124,
    regionOffset = 323,
    maxLifeOffset = 326,
    i1Offset = 2,
    calibrationOffset = 0x150
)

# 5 + 4 + 13 blocks; the historic measurements following the body have no CRC
LIBRE_PRO_LAYOUT = FRAMLayout(
    name = 'Libre Pro',
    size = 176,
    bodyEnd = 176,
    sections = [ ( 'header', 0, 40 ), ( 'footer', 40, 72 ), ( 'body', 72, 176 ) ],
    ageOffset = 74,
    cursorSize = 2,
    trendIndexOffset = 76,
    historyIndexOffset = 78,
    trendOffset = 80,
    historyOffset = 176,
    historyWraps = False,
    rawMask = 0x1FFF,
    regionOffset = 43,
    maxLifeOffset = 46,
    i1Offset = 26,
    calibrationOffset = 14 + 42
)

def layoutFor( sensorType ):
    return LIBRE_PRO_LAYOUT if sensorType == SENSOR_TYPE.LIBRE_PRO_H else LIBRE_LAYOUT

def crcReport( fram, layout = LIBRE_LAYOUT ):
    if len( fram ) < layout.size:
        return "NFC: FRAM read did not complete: can't verify CRC"

    sections = list( layout.sections )
    if layout is LIBRE_LAYOUT and len( fram ) >= 344 + 195 * 8:
        sections.append( FRAM_SECTION.COMMANDS )

    lines = []
    for section in sections:
        name, offset, end = section
        stored = BinaryDataDecoder.readUInt16LE( fram, offset )
        computed = crc16( fram[offset + 2:end] )
        lines.append( 'Sensor {0} CRC16: {1:04x}, computed: {2:04x} -> {3}'.format( name, stored, computed,
            'OK' if stored == computed else 'FAILED' ) )
    return '\n'.join( lines )

def readSlot( field, offset, rawMask = 0x3FFF ):
    """One 6-byte trend or history record."""
    qualityBits = field.readBits( offset, 0xe, 0xb )
    temperatureAdjustment = field.readBits( offset, 0x26, 0x9 ) << 2
    if field.readBits( offset, 0x2f, 0x1 ):
        temperatureAdjustment = -temperatureAdjustment
    return {
        'rawValue': field.readBits( offset, 0, 0xe ) & rawMask,
        'dataQuality': qualityBits & 0x1FF,
        'dataQualityFlags': ( qualityBits & 0x600 ) >> 9,
        'hasError': field.readBits( offset, 0x19, 0x1 ) != 0,
        'rawTemperature': field.readBits( offset, 0x1a, 0xc ) << 2,
        'temperatureAdjustment': temperatureAdjustment,
    }

def readCalibrationInfo( field, layout ):
    b = layout.calibrationOffset
    i3 = field.readBits( b, 0, 8 )
    if field.readBits( b, 0x21, 1 ):
        i3 = -i3
    return CalibrationInfo(
        i1 = field.readBits( layout.i1Offset, 0, 3 ),
        i2 = field.readBits( layout.i1Offset, 3, 0xa ),
        i3 = i3,
        i4 = field.readBits( b, 8, 0xe ),
        i5 = field.readBits( b, 0x28, 0xc ) << 2,
        i6 = field.readBits( b, 0x34, 0xc ) << 2
    )

class FRAMContents( object ):
    """Everything decoded from one memory image, built before being
    swapped into a Sensor."""

    def __init__( self ):
        self.fram = b''
        self.encryptedFram = b''
        self.crcReport = ''
        self.state = SENSOR_STATE.UNKNOWN
        self.age = None
        self.initializations = None
        self.trendIndex = None
        self.historyIndex = None
        self.trend = None
        self.history = None
        self.region = None
        self.maxLife = None
        self.calibrationInfo = None

    @property
    def checksumFailed( self ):
        return 'FAILED' in self.crcReport

def looksEncrypted( fram, sensorType ):
    return sensorType in ( SENSOR_TYPE.LIBRE2, SENSOR_TYPE.LIBRE_US_14DAY ) and len( fram ) >= 24 and \
        BinaryDataDecoder.readUInt16LE( fram, 0 ) != crc16( fram[2:24] )

def parseFRAM( fram, sensorType, uid, patchInfo, lastReadingDate ):
    fram = bytes( fram )
    layout = layoutFor( sensorType )
    contents = FRAMContents()

    if looksEncrypted( fram, sensorType ):
        contents.encryptedFram = fram
        if len( fram ) >= 344:
            fram = libre2.decryptFRAM( sensorType, uid, patchInfo, fram )

    contents.fram = fram
    contents.crcReport = crcReport( fram, layout )
    if contents.checksumFailed:
        return contents

    if len( fram ) < layout.size and contents.encryptedFram:
        return contents

    if len( fram ) > 4:
        contents.state = SENSOR_STATE.fromByte( fram[4] )

    if len( fram ) < layout.bodyEnd:
        return contents

    field = BitField( fram )
    age = BinaryDataDecoder.readUInt16LE( fram, layout.ageOffset )
    startDate = DateTimeHelper.startDate( lastReadingDate, age )
    contents.age = age
    if layout.initializationsOffset is not None:
        contents.initializations = fram[layout.initializationsOffset]

    trendIndex = layout.readCursor( fram, layout.trendIndexOffset )
    historyIndex = layout.readCursor( fram, layout.historyIndexOffset )
    contents.trendIndex = trendIndex
    contents.historyIndex = historyIndex

    trend = []
    for i in range( 16 ):
        j = trendIndex - 1 - i
        if j < 0:
            j += 16
        id = age - i
        date = startDate + datetime.timedelta( minutes = age - i )
        if id < 0:
            trend.append( Glucose.gap( id, date ) )
            continue
        trend.append( Glucose( id = id, date = date, **readSlot( field, layout.trendOffset + j * 6, layout.rawMask ) ) )

    # FRAM is updated with a 3 minutes delay; truncated division keeps delay == age before minute 3
    preciseHistoryIndex = int( ( age - 3 ) / 15 ) % 32
    delay = int( math.fmod( age - 3, 15 ) ) + 3
    if preciseHistoryIndex == historyIndex:
        readingDate = lastReadingDate - datetime.timedelta( minutes = delay )
    else:
        readingDate = lastReadingDate - datetime.timedelta( minutes = delay - 15 )

    history = []
    for i in range( 32 ):
        j = historyIndex - 1 - i
        id = age - delay - i * 15
        if j < 0:
            if not layout.historyWraps:
                history.append( Glucose.gap( id, readingDate - datetime.timedelta( minutes = i * 15 ) ) )
                continue
            j += 32
        offset = layout.historyOffset + j * 6
        if len( fram ) < offset + 6:
            # only the first history blocks were scanned
            scanned = ( len( fram ) - layout.historyOffset ) // 6
            offset = layout.historyOffset + ( scanned - 1 - i ) * 6
            if offset < layout.historyOffset:
                history.append( Glucose.gap( id, startDate ) )
                continue
        if id > -1:
            history.append( Glucose( id = id, date = readingDate - datetime.timedelta( minutes = i * 15 ),
                **readSlot( field, offset, layout.rawMask ) ) )
        else:
            history.append( Glucose.gap( id, startDate ) )

    contents.trend = trend
    contents.history = history

    if len( fram ) < layout.size:
        return contents

    contents.region = fram[layout.regionOffset]
    contents.maxLife = BinaryDataDecoder.readUInt16LE( fram, layout.maxLifeOffset )
    contents.calibrationInfo = readCalibrationInfo( field, layout )
    return contents

class BLEContents( object ):
    def __init__( self, wearTime, readings, trend, history ):
        self.wearTime = wearTime
        self.readings = readings
        self.trend = trend
        self.history = history

# minutes before the wear time of the seven sparse trend values
BLE_TREND_OFFSETS = [ 0, 2, 4, 6, 7, 12, 15 ]
BLE_HISTORY_DELAY = 2

def parseBLEData( data, trend, history, lastReadingDate ):
    """Merges a decrypted Libre 2 BLE payload into the current series.

    Missing ids are filled with gap readings so that both series keep
    their fixed length.
    """
    wearTime = BinaryDataDecoder.readUInt16LE( data, 40 )
    startDate = DateTimeHelper.startDate( lastReadingDate, wearTime )
    field = BitField( data[:44] )

    bleTrend = []
    bleHistory = []
    for i in range( 10 ):
        rawValue = field.readBits( i * 4, 0, 0xe )
        rawTemperature = field.readBits( i * 4, 0xe, 0xc ) << 2
        temperatureAdjustment = field.readBits( i * 4, 0x1a, 0x5 ) << 2
        if field.readBits( i * 4, 0x1f, 0x1 ):
            temperatureAdjustment = -temperatureAdjustment

        if i < 7:
            id = wearTime - BLE_TREND_OFFSETS[i]
        else:
            id = ( ( wearTime - BLE_HISTORY_DELAY ) // 15 ) * 15 - 15 * ( i - 7 )

        # with a null raw value the temperature field carries the error bits
        if rawValue == 0:
            quality = rawTemperature >> 2
            qualityFlags = ( ( rawTemperature >> 2 ) & 0x600 ) >> 9
        else:
            quality = DATA_QUALITY.OK
            qualityFlags = 0

        glucose = Glucose( rawValue = rawValue,
            rawTemperature = rawTemperature if rawValue != 0 else 0,
            temperatureAdjustment = temperatureAdjustment,
            id = id,
            date = startDate + datetime.timedelta( minutes = id ),
            hasError = rawValue == 0,
            dataQuality = quality,
            dataQualityFlags = qualityFlags )
        if i < 7:
            bleTrend.append( glucose )
        else:
            bleHistory.append( glucose )

    readingDate = bleTrend[0].date
    trendById = {}
    for i in range( 16 ):
        id = wearTime - i
        trendById[id] = Glucose.gap( id, readingDate - datetime.timedelta( minutes = i ) )
    for glucose in list( trend ) + bleTrend:
        if glucose.id > wearTime - 16:
            trendById[glucose.id] = glucose
    mergedTrend = sorted( trendById.values(), key = lambda g: g.id, reverse = True )[:16]

    lastHistoryId = bleHistory[0].id
    lastHistoryDate = bleHistory[0].date
    historyById = {}
    for i in range( 32 ):
        id = lastHistoryId - i * 15
        historyById[id] = Glucose.gap( id, lastHistoryDate - datetime.timedelta( minutes = i * 15 ) )
    for glucose in list( history ) + bleHistory:
        if glucose.id > lastHistoryId - 32 * 15:
            historyById[glucose.id] = glucose
    mergedHistory = sorted( historyById.values(), key = lambda g: g.id, reverse = True )[:32]

    return BLEContents( wearTime, bleTrend + bleHistory, mergedTrend, mergedHistory )

class Sensor( object ):
    def __init__( self, uid = b'', patchInfo = b'' ):
        self.type = SENSOR_TYPE.UNKNOWN
        self.family = SENSOR_FAMILY.LIBRE
        self.region = 0
        self.serial = ''
        self.securityGeneration = 0
        self._patchInfo = b''
        self._uid = b''

        self.state = SENSOR_STATE.UNKNOWN
        self.lastReadingDate = DateTimeHelper.now()
        self.age = 0
        self.maxLife = 0
        self.initializations = 0
        self.crcReport = ''
        self.fram = b''
        self.encryptedFram = b''
        self.trend = []
        self.history = []
        self.calibrationInfo = CalibrationInfo()

        # Libre 2 BLE streaming
        self.initialPatchInfo = b''
        self.streamingUnlockCode = 42
        self.streamingUnlockCount = 0

        self.patchInfo = patchInfo
        self.uid = uid

    @property
    def patchInfo( self ):
        return self._patchInfo

    @patchInfo.setter
    def patchInfo( self, info ):
        info = bytes( info )
        self._patchInfo = info
        self.type = SENSOR_TYPE.fromPatchInfo( info )
        if len( info ) > 3:
            self.region = info[3]
        if len( info ) >= 6:
            family = info[2] >> 4
            self.family = family if family in SENSOR_FAMILY.DESCRIPTION else SENSOR_FAMILY.LIBRE
            if self.serial:
                self.serial = str( self.family ) + self.serial[1:]
            generation = info[2] & 0x0F
            if self.family == SENSOR_FAMILY.LIBRE2:
                self.securityGeneration = 1 if generation < 9 else 2
            elif self.family == SENSOR_FAMILY.LIBRE_SENSE:
                self.securityGeneration = 1 if generation < 4 else 2
        if self.type == SENSOR_TYPE.LIBRE3:
            self.securityGeneration = 3

    @property
    def uid( self ):
        return self._uid

    @uid.setter
    def uid( self, uid ):
        self._uid = bytes( uid )
        self.serial = serialNumber( self._uid, self.family )

    @property
    def regionDescription( self ):
        return SENSOR_REGION.DESCRIPTION.get( self.region, 'unknown' )

    @property
    def stateDescription( self ):
        return SENSOR_STATE.DESCRIPTION[self.state]

    @property
    def failureCode( self ):
        return self.fram[6] if len( self.fram ) > 8 else 0

    @property
    def failureAge( self ):
        return BinaryDataDecoder.readUInt16LE( self.fram, 7 ) if len( self.fram ) > 8 else 0

    @property
    def factoryTrend( self ):
        return [ factoryGlucose( g, self.calibrationInfo ) for g in self.trend ]

    @property
    def factoryHistory( self ):
        return [ factoryGlucose( g, self.calibrationInfo ) for g in self.history ]

    def updateFRAM( self, fram, lastReadingDate = None ):
        """Parses a memory image and only then publishes its contents."""
        if lastReadingDate is None:
            lastReadingDate = DateTimeHelper.now()
        contents = parseFRAM( fram, self.type, self.uid, self.patchInfo, lastReadingDate )

        self.lastReadingDate = lastReadingDate
        self.fram = contents.fram
        self.encryptedFram = contents.encryptedFram
        self.crcReport = contents.crcReport
        self.state = contents.state
        if contents.age is not None:
            self.age = contents.age
        if contents.initializations is not None:
            self.initializations = contents.initializations
        if contents.trend is not None:
            self.trend = contents.trend
            self.history = contents.history
        if contents.maxLife is not None:
            self.region = contents.region
            self.maxLife = contents.maxLife
            self.calibrationInfo = contents.calibrationInfo
        return contents

    def updateBLEData( self, data, lastReadingDate = None ):
        if lastReadingDate is None:
            lastReadingDate = DateTimeHelper.now()
        contents = parseBLEData( data, self.trend, self.history, lastReadingDate )

        self.lastReadingDate = lastReadingDate
        if self.state == SENSOR_STATE.UNKNOWN:
            self.state = SENSOR_STATE.ACTIVE
        self.age = contents.wearTime
        self.trend = contents.trend
        self.history = contents.history
        return contents

    def detailFRAM( self ):
        if self.encryptedFram and len( self.fram ) >= 344:
            logger.debug( hexDump( self.fram, 'Sensor decrypted FRAM:', startBlock = 0 ) )
        if self.crcReport:
            logger.info( self.crcReport )
            if 'FAILED' in self.crcReport:
                logger.error( 'Error while validating sensor data' )
        logger.info( 'Sensor state: {0} (0x{1:02x})'.format( self.stateDescription.lower(), self.state ) )

        if self.state == SENSOR_STATE.FAILURE:
            failureAge = self.failureAge
            interval = 'an unknown time' if failureAge == 0 else '{0} minutes ({1})'.format( failureAge,
                DateTimeHelper.formattedInterval( failureAge ) )
            logger.warning( 'Sensor failure error 0x{0:02x} ({1}) at {2} after activation.'.format( self.failureCode,
                decodeFailure( self.failureCode ), interval ) )

        if self.initializations > 0:
            logger.info( 'Sensor initializations: {0}'.format( self.initializations ) )
        logger.info( 'Sensor region: {0}{1}'.format( self.regionDescription,
            ' (0x{0:02x})'.format( self.region ) if self.region != 0 else '' ) )
        if self.maxLife > 0:
            logger.info( 'Sensor maximum life: {0} minutes ({1})'.format( self.maxLife, DateTimeHelper.formattedInterval( self.maxLife ) ) )
        if self.age > 0:
            logger.info( 'Sensor age: {0} minutes ({1}), started on: {2}'.format( self.age, DateTimeHelper.formattedInterval( self.age ),
                DateTimeHelper.startDate( self.lastReadingDate, self.age ).strftime( '%c' ) ) )

    def __str__( self ):
        return '{0} {1} ({2})'.format( self.type, self.serial, self.stateDescription )
