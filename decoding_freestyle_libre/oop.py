import requests # pip install requests
import binascii
import logging
import time

from .exceptions import Gen2Exception, OOPException
from .sensor import Calibration

logger = logging.getLogger(__name__)

class GEN2_ERROR:
    INIT = -1
    CMD = -2
    KDF = -9
    RESPONSE_SIZE = -10
    AUTH_CONTEXT = -11
    PRNG = -12
    KEY_NOT_FOUND = -13
    SKB = -14
    INVALID_RESPONSE = -15
    INSUFFICIENT_BUFFER = -16
    CRC_MISMATCH = -17
    MISSING_NATIVE = -98
    PROCESS_ERROR = -99

    NAMES = {
        INIT: 'GEN2_SEC_ERROR_INIT',
        CMD: 'GEN2_SEC_ERROR_CMD',
        KDF: 'GEN2_SEC_ERROR_KDF',
        RESPONSE_SIZE: 'GEN2_SEC_ERROR_RESPONSE_SIZE',
        AUTH_CONTEXT: 'GEN2_ERROR_AUTH_CONTEXT',
        PRNG: 'GEN2_ERROR_PRNG_ERROR',
        KEY_NOT_FOUND: 'GEN2_ERROR_KEY_NOT_FOUND',
        SKB: 'GEN2_ERROR_SKB_ERROR',
        INVALID_RESPONSE: 'GEN2_ERROR_INVALID_RESPONSE',
        INSUFFICIENT_BUFFER: 'GEN2_ERROR_INSUFFICIENT_BUFFER',
        CRC_MISMATCH: 'GEN2_ERROR_CRC_MISMATCH',
        MISSING_NATIVE: 'GEN2_ERROR_MISSING_NATIVE',
        PROCESS_ERROR: 'GEN2_ERROR_PROCESS_ERROR',
    }

    @staticmethod
    def fromValue( value ):
        return value if value in GEN2_ERROR.NAMES else GEN2_ERROR.MISSING_NATIVE

    @staticmethod
    def describe( value ):
        return GEN2_ERROR.NAMES[GEN2_ERROR.fromValue( value )]

class OOPServer( object ):
    def __init__( self, siteURL, token, calibrationEndpoint = None, nfcAuthEndpoint = None, nfcDataEndpoint = None ):
        self.siteURL = siteURL
        self.token = token
        self.calibrationEndpoint = calibrationEndpoint
        self.nfcAuthEndpoint = nfcAuthEndpoint
        self.nfcDataEndpoint = nfcDataEndpoint

    def url( self, endpoint ):
        return '{0}/{1}'.format( self.siteURL, endpoint )

DEFAULT_SERVER = OOPServer( 'https://www.glucose.space', 'bubble-201907', calibrationEndpoint = 'calibrateSensor' )
GEN2_SERVER = OOPServer( 'https://www.glucose.space', 'xabet-202104', nfcAuthEndpoint = 'libre2ca/nfcAuth',
    nfcDataEndpoint = 'libre2ca/nfcData' )

class Gen2NFCRequest( object ):
    """Exchanges a security challenge for a signed tag command."""

    def __init__( self, server = GEN2_SERVER ):
        self.server = server

    def buildRequest( self, uid, challenge ):
        return {
            'patchUid': binascii.hexlify( bytes( uid ) ).decode( 'ascii' ),
            'authData': binascii.hexlify( bytes( challenge ) ).decode( 'ascii' ),
        }

    def decodeResponse( self, response ):
        if response.get( 'error' ):
            code = GEN2_ERROR.fromValue( response.get( 'p1', GEN2_ERROR.PROCESS_ERROR ) )
            raise Gen2Exception( 'OOP: {0}'.format( response['error'] ), code )
        try:
            return ( int( response['p1'] ), bytes.fromhex( response['data'] ) )
        except ( KeyError, ValueError, TypeError ) as e:
            raise Gen2Exception( 'OOP: malformed response: {0}'.format( e ), GEN2_ERROR.INVALID_RESPONSE )

    def post( self, endpoint, uid, challenge, session ):
        url = self.server.url( endpoint )
        payload = self.buildRequest( uid, challenge )
        logger.debug( '## OOP: posting to {0} {1}'.format( url, payload ) )
        response = session.post( url, json = payload )
        logger.debug( '## OOP: status code: {0}, response: {1}'.format( response.status_code, response.text ) )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            logger.error( 'OOP: error while decoding response: {0}'.format( response.text ) )
            raise OOPException( 'JSON decoding' )

class CalibrationRequest( object ):
    def __init__( self, server = DEFAULT_SERVER ):
        self.server = server

    def buildRequest( self, fram, date ):
        return {
            'content': binascii.hexlify( bytes( fram ) ).decode( 'ascii' ),
            'token': self.server.token,
            'timestamp': str( int( round( date * 1000.0 ) ) ),
        }

    def decodeResponse( self, response ):
        if 'slope' not in response:
            raise OOPException( 'OOP: calibration error {0}: {1}'.format( response.get( 'errcode' ), response.get( 'msg', '' ) ) )
        return Calibration.fromDict( response['slope'] )

    def post( self, fram, session, date = None ):
        if date is None:
            date = time.time()
        url = self.server.url( self.server.calibrationEndpoint )
        response = session.post( url, params = self.buildRequest( fram, date ),
            headers = { 'Content-Type': 'application/x-www-form-urlencoded' } )
        logger.debug( '## OOP: calibration response: {0}'.format( response.text ) )
        response.raise_for_status()
        try:
            return self.decodeResponse( response.json() )
        except ValueError:
            logger.error( 'OOP: error while decoding response: {0}'.format( response.text ) )
            raise OOPException( 'JSON decoding' )

class OOPClient( object ):
    """Cloud collaborator: signs Gen2 tag commands and fits calibrations."""

    def __init__( self, session = None, server = DEFAULT_SERVER, gen2Server = GEN2_SERVER ):
        self.session = session if session is not None else requests.Session()
        self.server = server
        self.gen2Server = gen2Server

    def authenticatedCommand( self, uid, challenge, command ):
        logger.info( '# Requesting the authenticated 0x{0:02x} command'.format( command ) )
        request = Gen2NFCRequest( self.gen2Server )
        try:
            request.post( self.gen2Server.nfcAuthEndpoint, uid, challenge, self.session )
        except ( requests.RequestException, OOPException ) as e:
            # the auth endpoint is optional on the server side
            logger.warning( 'OOP: {0} failed: {1}'.format( self.gen2Server.nfcAuthEndpoint, e ) )
        try:
            response = request.post( self.gen2Server.nfcDataEndpoint, uid, challenge, self.session )
        except ( requests.RequestException, OOPException ) as e:
            logger.error( 'OOP: connection failed: {0}'.format( e ) )
            raise Gen2Exception( 'OOP connection failed: {0}'.format( e ), GEN2_ERROR.PROCESS_ERROR )
        context, authenticatedCommand = request.decodeResponse( response )
        logger.debug( '## OOP: context: {0}, authenticated command: {1}'.format( context, binascii.hexlify( authenticatedCommand ) ) )
        return context, authenticatedCommand

    def calibration( self, fram, date = None ):
        """Returns the server fit, or None when it cannot fit this sensor."""
        logger.info( '# Requesting calibration from {0}'.format( self.server.siteURL ) )
        calibration = CalibrationRequest( self.server ).post( fram, self.session, date )
        if calibration.isNull:
            logger.warning( 'OOP: calibration not available for this sensor' )
            return None
        return calibration

    def close( self ):
        self.session.close()
