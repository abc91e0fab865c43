import sqlite3
import binascii
import logging
from Crypto.Random import get_random_bytes # pip install pycryptodome

from .helpers import BinaryDataDecoder
from .sensor import CalibrationInfo

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = 'read_libre.db'

class Config( object ):
    """State that has to survive between tag scans and BLE connections,
    one row per sensor serial."""

    def __init__( self, sensorSerial, database = DEFAULT_DATABASE ):
        self.conn = sqlite3.connect( database )
        self.c = self.conn.cursor()
        self.c.execute( '''CREATE TABLE IF NOT EXISTS
            config ( sensor_serial TEXT PRIMARY KEY, patch_info TEXT, initial_patch_info TEXT,
                streaming_unlock_code INTEGER, streaming_unlock_count INTEGER, calibration_info TEXT,
                max_life INTEGER, sensor_address TEXT )''' )
        self.c.execute( "INSERT OR IGNORE INTO config VALUES ( ?, ?, ?, ?, ?, ?, ?, ? )",
            ( sensorSerial, '', '', 0, 0, '', 0, '' ) )
        self.conn.commit()

        self.loadConfig( sensorSerial )

    def loadConfig( self, sensorSerial ):
        self.c.execute( 'SELECT * FROM config WHERE sensor_serial = ?', ( sensorSerial, ) )
        self.data = self.c.fetchone()

    def _update( self, column, value ):
        self.c.execute( "UPDATE config SET {0} = ? WHERE sensor_serial = ?".format( column ), ( value, self.sensorSerial ) )
        self.conn.commit()
        self.loadConfig( self.sensorSerial )

    def close( self ):
        self.conn.close()

    @property
    def sensorSerial( self ):
        return self.data[0]

    @property
    def patchInfo( self ):
        return binascii.unhexlify( self.data[1] )

    @patchInfo.setter
    def patchInfo( self, value ):
        self._update( 'patch_info', binascii.hexlify( bytes( value ) ).decode( 'ascii' ) )

    @property
    def initialPatchInfo( self ):
        return binascii.unhexlify( self.data[2] )

    @initialPatchInfo.setter
    def initialPatchInfo( self, value ):
        self._update( 'initial_patch_info', binascii.hexlify( bytes( value ) ).decode( 'ascii' ) )

    @property
    def streamingUnlockCode( self ):
        return self.data[3]

    @streamingUnlockCode.setter
    def streamingUnlockCode( self, value ):
        self._update( 'streaming_unlock_code', value & 0xFFFFFFFF )

    def newStreamingUnlockCode( self ):
        code = BinaryDataDecoder.readUInt32LE( get_random_bytes( 4 ), 0 )
        logger.debug( "## New streaming unlock code: {0}".format( code ) )
        self.streamingUnlockCode = code
        return code

    @property
    def streamingUnlockCount( self ):
        return self.data[4]

    @streamingUnlockCount.setter
    def streamingUnlockCount( self, value ):
        self._update( 'streaming_unlock_count', value & 0xFFFF )

    @property
    def calibrationInfo( self ):
        if not self.data[5]:
            return CalibrationInfo()
        return CalibrationInfo( *[ int( v ) for v in self.data[5].split( ',' ) ] )

    @calibrationInfo.setter
    def calibrationInfo( self, value ):
        self._update( 'calibration_info', ','.join( str( v ) for v in value.values ) )

    @property
    def maxLife( self ):
        return self.data[6]

    @maxLife.setter
    def maxLife( self, value ):
        self._update( 'max_life', value )

    @property
    def sensorAddress( self ):
        return self.data[7]

    @sensorAddress.setter
    def sensorAddress( self, value ):
        self._update( 'sensor_address', value )

    def restore( self, sensor ):
        """Copies the persisted streaming parameters into a Sensor."""
        if self.initialPatchInfo:
            sensor.initialPatchInfo = self.initialPatchInfo
        if self.streamingUnlockCode:
            sensor.streamingUnlockCode = self.streamingUnlockCode
        sensor.streamingUnlockCount = self.streamingUnlockCount
        if sensor.calibrationInfo.isEmpty:
            sensor.calibrationInfo = self.calibrationInfo
        if sensor.maxLife == 0:
            sensor.maxLife = self.maxLife

    def store( self, sensor ):
        if sensor.patchInfo:
            self.patchInfo = sensor.patchInfo
        if not sensor.calibrationInfo.isEmpty:
            self.calibrationInfo = sensor.calibrationInfo
        if sensor.maxLife:
            self.maxLife = sensor.maxLife
