class SENSOR_TYPE:
    LIBRE1 = 'Libre 1'
    LIBRE_US_14DAY = 'Libre US 14d'
    LIBRE_PRO_H = 'Libre Pro/H'
    LIBRE2 = 'Libre 2'
    LIBRE2_US = 'Libre 2 US'
    LIBRE2_CA = 'Libre 2 CA'
    LIBRE_SENSE = 'Libre Sense'
    LIBRE3 = 'Libre 3'
    UNKNOWN = 'Libre'

    @staticmethod
    def fromPatchInfo( patchInfo ):
        if len( patchInfo ) == 0:
            return SENSOR_TYPE.UNKNOWN
        first = patchInfo[0]
        if first in ( 0xDF, 0xA2 ):
            return SENSOR_TYPE.LIBRE1
        elif first == 0xE5:
            return SENSOR_TYPE.LIBRE_US_14DAY
        elif first == 0x70:
            return SENSOR_TYPE.LIBRE_PRO_H
        elif first == 0x9D:
            return SENSOR_TYPE.LIBRE2
        elif first == 0x76:
            if len( patchInfo ) < 4:
                return SENSOR_TYPE.UNKNOWN
            if patchInfo[3] == 0x02:
                return SENSOR_TYPE.LIBRE2_US
            elif patchInfo[3] == 0x04:
                return SENSOR_TYPE.LIBRE2_CA
            elif patchInfo[2] >> 4 == SENSOR_FAMILY.LIBRE_SENSE:
                return SENSOR_TYPE.LIBRE_SENSE
            return SENSOR_TYPE.UNKNOWN
        # The Libre 3 answers A1 with 28 or 35 bytes
        if len( patchInfo ) > 6:
            return SENSOR_TYPE.LIBRE3
        return SENSOR_TYPE.UNKNOWN

class SENSOR_FAMILY:
    LIBRE = 0
    LIBRE_PRO = 1
    LIBRE2 = 3
    LIBRE_SENSE = 7

    DESCRIPTION = {
        LIBRE: 'Libre',
        LIBRE_PRO: 'Libre Pro',
        LIBRE2: 'Libre 2',
        LIBRE_SENSE: 'Libre Sense',
    }

class SENSOR_REGION:
    UNKNOWN = 0
    EUROPEAN = 1
    USA = 2
    AUSTRALIAN_CANADIAN = 4
    EASTERN = 8

    DESCRIPTION = {
        UNKNOWN: 'unknown',
        EUROPEAN: 'European',
        USA: 'USA',
        AUSTRALIAN_CANADIAN: 'Australian / Canadian',
        EASTERN: 'Eastern',
    }

class SENSOR_STATE:
    UNKNOWN = 0x00
    NOT_ACTIVATED = 0x01
    WARMING_UP = 0x02 # 60 minutes
    ACTIVE = 0x03 # about 14.5 days
    EXPIRED = 0x04 # 12 more hours, Libre 2 stops Bluetooth
    SHUTDOWN = 0x05
    FAILURE = 0x06

    DESCRIPTION = {
        UNKNOWN: 'Unknown',
        NOT_ACTIVATED: 'Not activated',
        WARMING_UP: 'Warming up',
        ACTIVE: 'Active',
        EXPIRED: 'Expired',
        SHUTDOWN: 'Shut down',
        FAILURE: 'Failure',
    }

    @staticmethod
    def fromByte( value ):
        return value if value in SENSOR_STATE.DESCRIPTION else SENSOR_STATE.UNKNOWN

class DATA_QUALITY:
    OK = 0
    SD14_FIFO_OVERFLOW = 0x0001
    FILTER_DELTA = 0x0002 # delta between two successive raw values exceeds a factory threshold
    WORK_VOLTAGE = 0x0004
    PEAK_DELTA_EXCEEDED = 0x0008
    AVG_DELTA_EXCEEDED = 0x0010
    RF = 0x0020 # NFC activity during the measurement
    REF_R = 0x0040
    SIGNAL_SATURATED = 0x0080 # raw value above 0x3FFF
    SENSOR_SIGNAL_LOW = 0x0100 # raw value below a factory threshold (150 for a Libre 1)
    THERMISTOR_OUT_OF_RANGE = 0x0800
    TEMP_HIGH = 0x2000
    TEMP_LOW = 0x4000
    INVALID_DATA = 0x8000

    NAMES = [
        ( SD14_FIFO_OVERFLOW, 'SD14_FIFO_OVERFLOW' ),
        ( FILTER_DELTA, 'FILTER_DELTA' ),
        ( WORK_VOLTAGE, 'WORK_VOLTAGE' ),
        ( PEAK_DELTA_EXCEEDED, 'PEAK_DELTA_EXCEEDED' ),
        ( AVG_DELTA_EXCEEDED, 'AVG_DELTA_EXCEEDED' ),
        ( RF, 'RF' ),
        ( REF_R, 'REF_R' ),
        ( SIGNAL_SATURATED, 'SIGNAL_SATURATED' ),
        ( SENSOR_SIGNAL_LOW, 'SENSOR_SIGNAL_LOW' ),
        ( THERMISTOR_OUT_OF_RANGE, 'THERMISTOR_OUT_OF_RANGE' ),
        ( TEMP_HIGH, 'TEMP_HIGH' ),
        ( TEMP_LOW, 'TEMP_LOW' ),
        ( INVALID_DATA, 'INVALID_DATA' ),
    ]

    @staticmethod
    def describe( quality ):
        if quality == DATA_QUALITY.OK:
            return 'OK'
        return ', '.join( name for bit, name in DATA_QUALITY.NAMES if quality & bit )

class SUBCOMMAND:
    UNLOCK = 0x1A # lets read FRAM in clear and dump further blocks with B0/B3
    ACTIVATE = 0x1B
    ENABLE_STREAMING = 0x1E
    GET_SESSION_INFO = 0x1F # GEN_SECURITY_CMD_GET_SESSION_INFO
    UNKNOWN_0x10 = 0x10 # returns the number of parameters + 3
    UNKNOWN_0x1C = 0x1C
    UNKNOWN_0x1D = 0x1D # disables Bluetooth
    # Gen2
    READ_CHALLENGE = 0x20 # returns 25 bytes
    READ_BLOCKS = 0x21
    READ_ATTRIBUTE = 0x22 # returns 6 bytes ([0]: sensor state)

    DESCRIPTION = {
        UNLOCK: 'unlock',
        ACTIVATE: 'activate',
        ENABLE_STREAMING: 'enable BLE streaming',
        GET_SESSION_INFO: 'get session info',
        UNKNOWN_0x10: 'unknown 0x10',
        UNKNOWN_0x1C: 'unknown 0x1c',
        UNKNOWN_0x1D: 'unknown 0x1d',
        READ_CHALLENGE: 'read security challenge',
        READ_BLOCKS: 'read FRAM in blocks',
        READ_ATTRIBUTE: 'read patch attribute',
    }

class NFC_COMMAND_CODE:
    ACTIVATE = 0xA0
    PATCH_INFO = 0xA1 # also the prefix of the Libre 2 subcommands
    LOCK = 0xA2
    READ_RAW = 0xA3
    UNLOCK = 0xA4
    READ_BLOCK = 0xB0
    WRITE_BLOCK = 0xB1
    LOCK_BLOCK = 0xB2
    READ_BLOCKS = 0xB3
    WRITE_BLOCKS = 0xB4

class TASK_REQUEST:
    READ_FRAM = 'readFRAM'
    ENABLE_STREAMING = 'enableStreaming'
    UNLOCK = 'unlock'
    DUMP = 'dump'
    RESET = 'reset'
    PROLONG = 'prolong'
    ACTIVATE = 'activate'

    ALL = [ READ_FRAM, ENABLE_STREAMING, UNLOCK, DUMP, RESET, PROLONG, ACTIVATE ]

FAILURE_DESCRIPTION = {
    0x01: 'ADC IRQ overflow',
    0x05: 'MMI interrupt',
    0x09: 'error in patch table',
    0x0A: 'low voltage occurred',
    0x0B: 'low voltage occurred',
    0x0C: 'FRAM header section CRC error',
    0x0D: 'FRAM body section CRC error',
    0x0E: 'FRAM footer section CRC error',
    0x0F: 'FRAM code section CRC error',
    0x10: 'FRAM Lock Table error',
    0x13: 'brownout',
    0x28: 'battery low indication',
    0x34: 'from custom E1 and E2 command',
}

def decodeFailure( code ):
    return FAILURE_DESCRIPTION.get( code, 'no specific info' )

# Regions of a Libre 2 dump obtained with B0/B3 after unlocking
LIBRE2_DUMP_MAP = {
    0x000: ( 40, 'Extended header' ),
    0x028: ( 32, 'Extended footer' ),
    0x048: ( 296, 'Body right-rotated by 4' ),
    0x170: ( 24, 'FRAM header' ),
    0x188: ( 296, 'FRAM body' ),
    0x2b0: ( 24, 'FRAM footer' ),
    0x2c8: ( 34, 'Keys' ),
    0x2ea: ( 10, 'MAC address' ),
    0x26d8: ( 24, 'Table of enabled NFC commands' ),
}
